"""Tests for password generation and field validation."""

import string

import pytest

from nest import config
from nest.password_generator import (
    PasswordGenerationError, generate_memorable_password, generate_secure_password,
    password_from_request,
)
from nest.validation import validate_entry_fields, validate_title, validate_url


def test_default_length_and_classes() -> None:
    password = generate_secure_password()
    assert len(password) == config.DEFAULT_PASSWORD_LENGTH
    assert any(c in string.ascii_uppercase for c in password)
    assert any(c in string.ascii_lowercase for c in password)
    assert any(c in string.digits for c in password)
    assert any(c in string.punctuation for c in password)


def test_similar_characters_excluded() -> None:
    password = generate_secure_password(50)
    assert not set(password) & set("IOilo01")


@pytest.mark.parametrize("length", [0, config.MAX_GENERATED_LENGTH + 1])
def test_length_out_of_range(length: int) -> None:
    with pytest.raises(PasswordGenerationError):
        generate_secure_password(length)


def test_short_password_still_generated() -> None:
    assert len(generate_secure_password(1)) == 1


def test_memorable_password_shape() -> None:
    words = generate_memorable_password().split("-")
    assert len(words) == 4
    assert words[-1][-2:].isdigit()


def test_password_requests() -> None:
    assert password_from_request("hunter2") is None
    assert password_from_request("") is None
    assert len(password_from_request("g")) == config.DEFAULT_PASSWORD_LENGTH
    assert len(password_from_request("g8")) == 8
    assert "-" in password_from_request("w")
    with pytest.raises(PasswordGenerationError):
        password_from_request("g99")


def test_validate_title() -> None:
    assert validate_title("Gmail")[0]
    assert validate_title("Comcast/Xfinity")[0]
    assert not validate_title("")[0]
    assert not validate_title("..")[0]
    assert not validate_title("tab\there")[0]
    assert not validate_title("x" * (config.MAX_TITLE_LENGTH + 1))[0]


def test_validate_entry_fields() -> None:
    assert validate_entry_fields({"title": "ok", "notes": "n" * 1000})[0]
    ok, message = validate_entry_fields({"username": "u" * (config.MAX_FIELD_LENGTH + 1)})
    assert not ok
    assert "Username" in message


def test_validate_url() -> None:
    assert validate_url("")
    assert validate_url("https://mail.google.com/inbox")
    assert validate_url("example.com:8080")
    assert not validate_url("not a url")
