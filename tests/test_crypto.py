"""Tests for key derivation, AES-GCM helpers and the passphrase guard."""

from dataclasses import replace

import pytest

from nest.crypto import (
    SecretGuard, decrypt_data, derive_master_key, encrypt_data, secure_erase_bytes,
)
from nest.errors import SecretIntegrityError


def test_same_salt_same_key() -> None:
    key, salt = derive_master_key("correct horse")
    again, _ = derive_master_key("correct horse", salt)
    other, _ = derive_master_key("wrong horse", salt)
    assert len(key) == 64
    assert key == again
    assert key != other


def test_encrypt_decrypt_with_associated_data() -> None:
    key, _ = derive_master_key("pw")
    nonce, ciphertext, tag = encrypt_data(key, b"secret", b"header")
    assert decrypt_data(key, nonce, ciphertext, tag, b"header") == b"secret"


def test_decrypt_with_wrong_associated_data_fails() -> None:
    key, _ = derive_master_key("pw")
    nonce, ciphertext, tag = encrypt_data(key, b"secret", b"header")
    assert decrypt_data(key, nonce, ciphertext, tag, b"other") is None


def test_guard_round_trip() -> None:
    guard = SecretGuard()
    token = guard.capture("s3cret passphrase")
    assert b"s3cret" not in token.ciphertext
    assert guard.reveal(token) == "s3cret passphrase"


def test_guard_zeroes_bytearray_input() -> None:
    secret = bytearray(b"hunter2")
    token = SecretGuard().capture(secret)
    assert secret == bytearray(len(secret))
    assert SecretGuard().reveal(token) == "hunter2"


def test_guard_detects_tampering() -> None:
    """Flipping an IV bit corrupts the marker, which reveal() must notice."""
    guard = SecretGuard()
    token = guard.capture("passphrase")
    bad_iv = bytes([token.iv[0] ^ 0x01]) + token.iv[1:]
    with pytest.raises(SecretIntegrityError):
        guard.reveal(replace(token, iv=bad_iv))


def test_each_capture_uses_fresh_key() -> None:
    guard = SecretGuard()
    assert guard.capture("same").key != guard.capture("same").key


def test_secure_erase_bytes() -> None:
    data = bytearray(b"abc")
    secure_erase_bytes(data)
    assert data == bytearray(3)
    secure_erase_bytes(bytearray())
