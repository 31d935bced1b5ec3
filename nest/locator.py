"""
Entry references: "3" means the fourth entry of the last listing,
anything else is a path.
"""

import re
from typing import List, Optional, Tuple

from .database import Entry
from .errors import EntryNotFoundError, InvalidEntryNumberError
from .navigator import Navigator
from .paths import CanonicalPath, normalize

_NUMBER = re.compile(r"^[0-9]+$")


def is_entry_number(token: str) -> bool:
    return bool(_NUMBER.match(token))


class EntryLocator:
    """
    Resolves user entry references against the navigator's state.

    Both readings of a token are tried; when an entry is literally titled
    "3" in the current group, the path wins over the listing number.
    """

    def __init__(self, navigator: Navigator):
        self.navigator = navigator

    @property
    def index(self):
        return self.navigator.index

    @property
    def db(self):
        return self.navigator.db

    def snapshot(self) -> List[Entry]:
        """Entries numeric references index into."""
        if self.navigator.has_listed:
            return self.navigator.last_listing
        _, entries = self.navigator.listing(self.navigator.cwd)
        return entries

    def _snapshot_path(self) -> CanonicalPath:
        if self.navigator.has_listed:
            return self.navigator.last_listing_path or self.navigator.cwd
        return self.navigator.cwd

    def _live(self, entry: Entry) -> Optional[Entry]:
        """The entry if it still exists; listings can outlive deletions."""
        return self.db.get_entry(entry.id)

    def select_numbered(self, number: int) -> Entry:
        snapshot = self.snapshot()
        if number < 0 or number >= len(snapshot):
            raise InvalidEntryNumberError(self._range_message(snapshot))
        entry = self._live(snapshot[number])
        if entry is None:
            raise EntryNotFoundError(f"Entry {number} no longer exists; list again")
        return entry

    def resolve(self, token: str) -> Optional[Entry]:
        entry_id = self.index.entry_id(self.navigator.resolve(token))
        if entry_id is not None:
            return self.db.get_entry(entry_id)

        if is_entry_number(token):
            snapshot = self.snapshot()
            number = int(token)
            if number < len(snapshot):
                return self._live(snapshot[number])
        return None

    def locate(self, token: str) -> Entry:
        """
        Like resolve() but explains failure.

        Raises:
            InvalidEntryNumberError: token is a number outside the listing
            EntryNotFoundError: token names no entry
        """
        entry = self.resolve(token)
        if entry is not None:
            return entry
        if is_entry_number(token):
            self.validate_entry_number(token)
        raise EntryNotFoundError(f"Don't see an entry at path: {token}")

    def validate_entry_number(self, token: str, path: Optional[CanonicalPath] = None) -> int:
        """
        Check token is a usable listing number and return it.

        Raises:
            InvalidEntryNumberError: with a message saying what would work
        """
        path = path if path is not None else self._snapshot_path()
        snapshot = self.snapshot()
        if path.is_root and not snapshot:
            raise InvalidEntryNumberError("Entries cannot exist in the root path (/).")
        if not is_entry_number(token):
            raise InvalidEntryNumberError("Invalid item number (must be an integer).")
        number = int(token)
        if number >= len(snapshot):
            raise InvalidEntryNumberError(self._range_message(snapshot, path))
        return number

    def _range_message(self, snapshot: List[Entry], path: Optional[CanonicalPath] = None) -> str:
        path = path if path is not None else self._snapshot_path()
        if not snapshot:
            return f"Invalid item number. No valid entries in {path.display()}."
        return f'Invalid item number. Valid entries in "{path.display()}" are 0-{len(snapshot) - 1}.'

    def path_of(self, entry: Entry) -> Optional[CanonicalPath]:
        """
        Where entry lives in the tree.

        An entry shadowed by a same-titled sibling has no index path of its
        own; it is still placed under its group's path.
        """
        path = self.index.entry_path(entry.id)
        if path is None and entry.group_id is not None:
            group_path = self.index.group_path(entry.group_id)
            if group_path is not None:
                path = group_path.child(entry.title)
        return path

    def entry_location(self, entry: Entry) -> Tuple[str, str]:
        """(full path, containing group path) as display strings."""
        if entry.origin_path:
            full = normalize(entry.origin_path)
        else:
            full = self.path_of(entry)
            if full is None:
                raise EntryNotFoundError(f"Entry {entry.title!r} is not in the tree")
        return full.display(), full.parent.display()

    def original_of(self, entry: Entry) -> Optional[Entry]:
        """For a search-result copy, the entry it was copied from."""
        if not entry.origin_id:
            return None
        return self.db.get_entry(entry.origin_id)
