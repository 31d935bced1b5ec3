"""
Session navigation: current group, previous location and listings.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .database import Entry, Group, VaultDatabase
from .errors import InvalidPathError
from .index import PathIndex, sort_entries, sort_groups
from .paths import CanonicalPath, ROOT, normalize


@dataclass
class ListingSection:
    """
    One block of ls output.

    path is None for the block collecting entries that were named
    directly on the command line.
    """

    path: Optional[CanonicalPath]
    groups: List[Group] = field(default_factory=list)
    entries: List[Tuple[int, Entry]] = field(default_factory=list)


@dataclass
class Listing:
    sections: List[ListingSection] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    @property
    def entry_count(self) -> int:
        return sum(len(s.entries) for s in self.sections)


class Navigator:
    """
    Tracks where the user is and what they last listed.

    Attributes:
        current_id (str): Id of the current group
        previous_path (Optional[str]): pwd() before the last successful cd
        last_listing (List[Entry]): Entries numbered by the last ls, in order
        last_listing_path (Optional[CanonicalPath]): Group that ls showed,
            when it showed exactly one
        has_listed (bool): Whether ls has run since the store was loaded
    """

    def __init__(self, db: VaultDatabase, index: PathIndex):
        self.db = db
        self.index = index
        self.reset(db)

    def reset(self, db: VaultDatabase) -> None:
        """Point at a (new) store and forget all location state."""
        self.db = db
        self.current_id = db.root.id
        self.previous_path: Optional[str] = None
        self.last_listing: List[Entry] = []
        self.last_listing_path: Optional[CanonicalPath] = None
        self.has_listed = False

    # --------------------------------------------------------------------------
    # Location
    # --------------------------------------------------------------------------

    @property
    def cwd(self) -> CanonicalPath:
        path = self.index.group_path(self.current_id)
        if path is None:
            # current group was deleted or renamed out from under us
            self.current_id = self.db.root.id
            return ROOT
        return path

    def resolve(self, raw: str) -> CanonicalPath:
        return normalize(raw, self.cwd)

    def pwd(self) -> str:
        return self.cwd.display()

    def cd(self, raw: Optional[str] = None) -> str:
        """
        Change the current group.

        No argument goes to the root, "." stays put and "-" returns to the
        previous location (the root if there is none).

        Raises:
            InvalidPathError: raw is not a group; nothing changes
        """
        if not raw:
            raw = "/"
        if raw == ".":
            return self.pwd()
        if raw == "-":
            return self.cd(self.previous_path or "/")

        target = self.resolve(raw)
        group_id = self.index.group_id(target)
        if group_id is None:
            raise InvalidPathError(f"Invalid path: {raw}")

        self.previous_path = self.pwd()
        self.current_id = group_id
        return self.pwd()

    # --------------------------------------------------------------------------
    # Listing
    # --------------------------------------------------------------------------

    def listing(self, path: CanonicalPath) -> Tuple[List[Group], List[Entry]]:
        """Sorted sub-groups and entries of the group at path."""
        group_id = self.index.group_id(path)
        if group_id is None:
            raise InvalidPathError(f"Invalid path: {path.display()}")
        group = self.db.get_group(group_id)
        return sort_groups(group.groups, at_root=path.is_root), sort_entries(group.entries)

    def ls(self, raw_paths: Optional[Sequence[str]] = None) -> Listing:
        """
        List groups and entries, numbering entries from 0 across all sections.

        The numbered entries become the snapshot that numeric entry
        references resolve against. A call where nothing resolves leaves
        the previous snapshot in place.
        """
        targets = list(raw_paths) if raw_paths else ["."]
        result = Listing()
        named_entries: List[Entry] = []
        group_paths: List[CanonicalPath] = []

        for raw in targets:
            path = self.resolve(raw)
            if self.index.has_group(path):
                group_paths.append(path)
                continue
            entry_id = self.index.entry_id(path)
            if entry_id is not None:
                named_entries.append(self.db.get_entry(entry_id))
                continue
            result.missing.append(raw)

        numbered: List[Entry] = []

        def number(entries: List[Entry]) -> List[Tuple[int, Entry]]:
            start = len(numbered)
            numbered.extend(entries)
            return list(enumerate(entries, start))

        if named_entries:
            result.sections.append(ListingSection(None, [], number(named_entries)))
        for path in group_paths:
            groups, entries = self.listing(path)
            result.sections.append(ListingSection(path, groups, number(entries)))

        if result.sections:
            self.last_listing = numbered
            self.last_listing_path = group_paths[0] if len(group_paths) == 1 and not named_entries else None
            self.has_listed = True
        return result
