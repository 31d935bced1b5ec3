"""Tests for numeric and path entry references."""

import pytest

from nest.database import Entry
from nest.errors import EntryNotFoundError, InvalidEntryNumberError
from nest.locator import is_entry_number
from nest.session import Session


def test_is_entry_number() -> None:
    assert is_entry_number("0")
    assert is_entry_number("12")
    assert not is_entry_number("-1")
    assert not is_entry_number("1a")
    assert not is_entry_number("")


def test_number_refers_to_last_listing(session: Session) -> None:
    session.ls(["/eMail", "/Internet"])
    session.cd("/personal")
    assert session.locator.locate("1").title == "Yahoo"
    assert session.locator.locate("3").title == "item10"


def test_number_without_listing_uses_current_group(session: Session) -> None:
    session.cd("/eMail")
    assert session.locator.locate("0").title == "Gmail"


def test_path_wins_over_number(session: Session) -> None:
    """An entry literally titled "2" beats listing item 2."""
    email = session.db.root_group_titled("eMail")
    session.db.add_entry(email.id, Entry(title="2"))
    session.refresh()
    session.cd("/eMail")
    listing = session.ls()

    assert [e.title for _, e in listing.sections[0].entries] == ["2", "Gmail", "Yahoo"]
    assert session.locator.locate("2").title == "2"
    assert session.locator.locate("1").title == "Gmail"


def test_number_out_of_range(session: Session) -> None:
    session.cd("/eMail")
    session.ls()
    with pytest.raises(InvalidEntryNumberError, match='Valid entries in "/eMail" are 0-1'):
        session.locator.locate("5")


def test_number_at_empty_root(session: Session) -> None:
    with pytest.raises(InvalidEntryNumberError, match="root path"):
        session.locator.locate("0")


def test_number_in_empty_group(session: Session) -> None:
    session.make_group("/Empty")
    session.cd("/Empty")
    with pytest.raises(InvalidEntryNumberError, match="No valid entries in /Empty"):
        session.locator.validate_entry_number("0")


def test_non_numeric_validation(session: Session) -> None:
    session.cd("/eMail")
    with pytest.raises(InvalidEntryNumberError, match="must be an integer"):
        session.locator.validate_entry_number("x")


def test_unknown_path(session: Session) -> None:
    with pytest.raises(EntryNotFoundError, match="Don't see an entry at path: /eMail/Hotmail"):
        session.locator.locate("/eMail/Hotmail")


def test_deleted_entry_is_not_returned(session: Session) -> None:
    session.cd("/eMail")
    session.ls()
    session.remove_entry("0")
    with pytest.raises(EntryNotFoundError):
        session.locator.locate("0")


def test_entry_location(session: Session) -> None:
    entry = session.locator.locate("/personal/Comcast\\/Xfinity")
    assert session.locator.entry_location(entry) == (
        "/personal/Comcast\\/Xfinity", "/personal",
    )


def test_shadowed_entry_location(session: Session) -> None:
    email = session.db.root_group_titled("eMail")
    gmail = session.locator.locate("/eMail/Gmail")
    hidden = session.db.add_entry(email.id, Entry(title="Gmail"))
    # re-appending puts the first Gmail last, so it wins the path
    session.db.move_entry(gmail.id, email.id)
    session.refresh()

    assert session.index.entry_path(hidden.id) is None
    assert session.locator.entry_location(hidden) == ("/eMail/Gmail", "/eMail")


def test_search_copy_reports_original_location(session: Session) -> None:
    copy = session.find("gmail")[0]
    assert session.locator.entry_location(copy) == ("/eMail/Gmail", "/eMail")
    original = session.locator.original_of(copy)
    assert original is not None
    assert original.id != copy.id
    assert session.index.entry_path(original.id).display() == "/eMail/Gmail"


def test_select_numbered_bounds(session: Session) -> None:
    session.cd("/eMail")
    session.ls()
    assert session.locator.select_numbered(1).title == "Yahoo"
    with pytest.raises(InvalidEntryNumberError):
        session.locator.select_numbered(2)
    with pytest.raises(InvalidEntryNumberError):
        session.locator.select_numbered(-1)
