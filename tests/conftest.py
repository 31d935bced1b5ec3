"""Shared test fixtures."""

from typing import List

import pytest

from nest import config, ui
from nest.database import Entry
from nest.session import Session
from roost import Roost


def populate(session: Session) -> Session:
    """
    Fill a fresh session with a small tree:

        /eMail/Gmail, /eMail/Yahoo
        /Internet/item10, /Internet/item2, /Internet/Shopping/eBay
        /personal/Comcast\\/Xfinity
    """
    db = session.db
    email = db.root_group_titled("eMail")
    internet = db.root_group_titled("Internet")
    db.add_entry(email.id, Entry(
        title="Gmail", username="alice", password="hunter2", url="https://mail.google.com/",
    ))
    db.add_entry(email.id, Entry(
        title="Yahoo", username="alice", password="swordfish", url="http://yahoo.com",
    ))
    db.add_entry(internet.id, Entry(title="item10"))
    db.add_entry(internet.id, Entry(title="item2", notes="second item"))
    shopping = db.add_group("Shopping", internet.id)
    db.add_entry(shopping.id, Entry(title="eBay", username="bidder", url="https://ebay.com"))
    personal = db.add_group("personal")
    db.add_entry(personal.id, Entry(title="Comcast/Xfinity", username="cable"))
    session.refresh()
    return session


@pytest.fixture(autouse=True)
def fast_kdf(monkeypatch: pytest.MonkeyPatch) -> None:
    """Cheapest Argon2id settings so store files write in milliseconds."""
    monkeypatch.setattr(config, "KDF_TIME_COST", 1)
    monkeypatch.setattr(config, "KDF_MEMORY_COST", 64)
    monkeypatch.setattr(config, "KDF_LANES", 1)


@pytest.fixture
def session() -> Session:
    return populate(Session())


@pytest.fixture
def answers(monkeypatch: pytest.MonkeyPatch) -> List[str]:
    """Queue of replies handed out, in order, to every prompt the UI shows."""
    queue: List[str] = []

    def fake_prompt(message: str = "", **kwargs) -> str:
        if not queue:
            raise AssertionError(f"Unexpected prompt: {message!r}")
        return queue.pop(0)

    monkeypatch.setattr(ui, "prompt", fake_prompt)
    return queue


@pytest.fixture
def shell() -> Roost:
    app = Roost()
    populate(app.session)
    return app
