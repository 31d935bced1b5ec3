"""
Roost in-memory store.

The store is a tree: a synthetic root group holds groups, groups hold
groups and entries. Every node carries an opaque id; paths are worked out
by nest.index from the titles, never stored.

VaultDatabase is the only place that mutates the tree. It checks what it
can (unknown ids, entries at the root, moving a group under itself) and
raises MutationError before touching anything, so a failed call leaves the
tree as it was.
"""

import time
import uuid
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from loguru import logger

from . import config
from .errors import MutationError, StoreLoadError
from .vault_format import read_vault_file, write_vault_file

ROOT_ID = "root"
STORE_SCHEMA = 1


def new_id() -> str:
    return uuid.uuid4().hex


# ==============================================================================
# NODES
# ==============================================================================

@dataclass
class Entry:
    """A single credential record."""

    title: str
    username: str = ""
    password: str = field(default="", repr=False)
    url: str = ""
    notes: str = ""
    id: str = field(default_factory=new_id)
    group_id: Optional[str] = None
    created: float = field(default_factory=time.time)
    modified: float = field(default_factory=time.time)
    # Display path and id of the entry a search-result copy was made from
    origin_path: Optional[str] = None
    origin_id: Optional[str] = None

    EDITABLE = ("title", "username", "password", "url", "notes")

    def clone(self, **changes) -> "Entry":
        """Copy with a fresh id, detached from any group."""
        changes.setdefault("id", new_id())
        changes.setdefault("group_id", None)
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "username": self.username,
            "password": self.password,
            "url": self.url,
            "notes": self.notes,
            "created": self.created,
            "modified": self.modified,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entry":
        known = {f.name for f in fields(cls)} - {"group_id", "origin_path", "origin_id"}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class Group:
    """A folder of entries and sub-groups."""

    title: str
    id: str = field(default_factory=new_id)
    parent_id: Optional[str] = None
    groups: List["Group"] = field(default_factory=list, repr=False)
    entries: List[Entry] = field(default_factory=list, repr=False)
    created: float = field(default_factory=time.time)
    modified: float = field(default_factory=time.time)

    @property
    def is_root(self) -> bool:
        return self.id == ROOT_ID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "created": self.created,
            "modified": self.modified,
            "groups": [g.to_dict() for g in self.groups],
            "entries": [e.to_dict() for e in self.entries],
        }


# ==============================================================================
# DATABASE
# ==============================================================================

class VaultDatabase:
    """
    Group/entry tree with id registries for constant-time lookup.

    Attributes:
        root (Group): Synthetic, untitled top of the tree
    """

    def __init__(self):
        self.root = Group(title="", id=ROOT_ID)
        self._groups: Dict[str, Group] = {ROOT_ID: self.root}
        self._entries: Dict[str, Entry] = {}

    # --------------------------------------------------------------------------
    # Lookup
    # --------------------------------------------------------------------------

    def get_group(self, group_id: str) -> Optional[Group]:
        return self._groups.get(group_id)

    def get_entry(self, entry_id: str) -> Optional[Entry]:
        return self._entries.get(entry_id)

    def _require_group(self, group_id: str) -> Group:
        group = self._groups.get(group_id)
        if group is None:
            raise MutationError(f"No such group: {group_id}")
        return group

    def _require_entry(self, entry_id: str) -> Entry:
        entry = self._entries.get(entry_id)
        if entry is None:
            raise MutationError(f"No such entry: {entry_id}")
        return entry

    def iter_groups(self, start: Optional[Group] = None) -> Iterator[Group]:
        """Depth-first walk in stored order, excluding the start group."""
        for group in (start or self.root).groups:
            yield group
            yield from self.iter_groups(group)

    def iter_entries(self) -> Iterator[Entry]:
        yield from self.root.entries
        for group in self.iter_groups():
            yield from group.entries

    def find_groups(self, predicate: Callable[[Group], bool]) -> List[Group]:
        return [g for g in self.iter_groups() if predicate(g)]

    def find_group(self, predicate: Callable[[Group], bool]) -> Optional[Group]:
        return next((g for g in self.iter_groups() if predicate(g)), None)

    def find_entries(self, predicate: Callable[[Entry], bool]) -> List[Entry]:
        return [e for e in self.iter_entries() if predicate(e)]

    def find_entry(self, predicate: Callable[[Entry], bool]) -> Optional[Entry]:
        return next((e for e in self.iter_entries() if predicate(e)), None)

    def root_group_titled(self, title: str) -> Optional[Group]:
        return next((g for g in self.root.groups if g.title == title), None)

    def is_descendant(self, group_id: str, ancestor_id: str) -> bool:
        """True if group_id is ancestor_id or sits somewhere below it."""
        current = self._groups.get(group_id)
        while current is not None:
            if current.id == ancestor_id:
                return True
            current = self._groups.get(current.parent_id) if current.parent_id else None
        return False

    # --------------------------------------------------------------------------
    # Groups
    # --------------------------------------------------------------------------

    def add_group(self, title: str, parent_id: str = ROOT_ID) -> Group:
        if not title:
            raise MutationError("Group title cannot be empty")
        parent = self._require_group(parent_id)
        group = Group(title=title, parent_id=parent.id)
        parent.groups.append(group)
        self._groups[group.id] = group
        logger.debug(f"Added group {title!r} under {parent_id}")
        return group

    def delete_group(self, group_id: str) -> None:
        """Remove a group and everything under it."""
        group = self._require_group(group_id)
        if group.is_root:
            raise MutationError("The root group cannot be deleted")
        for entry in list(group.entries):
            self.delete_entry(entry.id)
        for sub in list(group.groups):
            self.delete_group(sub.id)
        parent = self._require_group(group.parent_id)
        parent.groups = [g for g in parent.groups if g.id != group_id]
        del self._groups[group_id]

    def update_group(self, group_id: str, title: Optional[str] = None) -> Group:
        group = self._require_group(group_id)
        if group.is_root:
            raise MutationError("The root group cannot be renamed")
        if title is not None:
            if not title:
                raise MutationError("Group title cannot be empty")
            group.title = title
        group.modified = time.time()
        return group

    def move_group(self, group_id: str, parent_id: str) -> Group:
        group = self._require_group(group_id)
        target = self._require_group(parent_id)
        if group.is_root:
            raise MutationError("The root group cannot be moved")
        if self.is_descendant(target.id, group.id):
            raise MutationError("Cannot move a group into itself or one of its sub-groups")
        source = self._require_group(group.parent_id)
        source.groups = [g for g in source.groups if g.id != group_id]
        target.groups.append(group)
        group.parent_id = target.id
        group.modified = time.time()
        return group

    # --------------------------------------------------------------------------
    # Entries
    # --------------------------------------------------------------------------

    def add_entry(self, group_id: str, entry: Entry) -> Entry:
        group = self._require_group(group_id)
        if group.is_root:
            raise MutationError("Entries cannot be made in the root path.")
        if entry.id in self._entries:
            raise MutationError(f"Entry id already present: {entry.id}")
        entry.group_id = group.id
        group.entries.append(entry)
        self._entries[entry.id] = entry
        return entry

    def delete_entry(self, entry_id: str) -> Entry:
        entry = self._require_entry(entry_id)
        group = self._require_group(entry.group_id)
        group.entries = [e for e in group.entries if e.id != entry_id]
        del self._entries[entry_id]
        return entry

    def update_entry(self, entry_id: str, **changes) -> Entry:
        entry = self._require_entry(entry_id)
        unknown = set(changes) - set(Entry.EDITABLE)
        if unknown:
            raise MutationError(f"Unknown entry fields: {', '.join(sorted(unknown))}")
        if "title" in changes and not changes["title"]:
            raise MutationError("Entry title cannot be empty")
        for name, value in changes.items():
            setattr(entry, name, value)
        entry.modified = time.time()
        return entry

    def move_entry(self, entry_id: str, group_id: str) -> Entry:
        entry = self._require_entry(entry_id)
        target = self._require_group(group_id)
        if target.is_root:
            raise MutationError("Entries cannot exist in the root path (/).")
        source = self._require_group(entry.group_id)
        source.entries = [e for e in source.entries if e.id != entry_id]
        target.entries.append(entry)
        entry.group_id = target.id
        return entry

    # --------------------------------------------------------------------------
    # Serialization
    # --------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data form of the tree; the search-results group is left out."""
        return {
            "schema": STORE_SCHEMA,
            "groups": [g.to_dict() for g in self.root.groups if g.title != config.FOUND_DIR],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VaultDatabase":
        db = cls()
        try:
            for group_data in data["groups"]:
                db._load_group(group_data, db.root)
        except (KeyError, TypeError, ValueError) as e:
            raise StoreLoadError(f"Store contents are malformed: {e}") from e
        return db

    def _load_group(self, data: Dict[str, Any], parent: Group) -> None:
        group = Group(
            title=data["title"],
            id=data.get("id") or new_id(),
            parent_id=parent.id,
            created=data.get("created", time.time()),
            modified=data.get("modified", time.time()),
        )
        if group.id in self._groups:
            group.id = new_id()
        parent.groups.append(group)
        self._groups[group.id] = group
        for entry_data in data.get("entries", []):
            entry = Entry.from_dict(entry_data)
            if entry.id in self._entries:
                entry.id = new_id()
            self.add_entry(group.id, entry)
        for sub in data.get("groups", []):
            self._load_group(sub, group)

    @classmethod
    def create_default(cls) -> "VaultDatabase":
        """Fresh store seeded with the default groups."""
        db = cls()
        for title in config.DEFAULT_GROUPS:
            db.add_group(title)
        return db

    @classmethod
    def load(cls, path: Path, passphrase: str) -> "VaultDatabase":
        db = cls.from_dict(read_vault_file(path, passphrase))
        logger.debug(f"Loaded {len(db._groups) - 1} groups and {len(db._entries)} entries from {path}")
        return db

    def save(self, path: Path, passphrase: str) -> None:
        write_vault_file(path, self.to_dict(), passphrase)
        logger.debug(f"Wrote {len(self._entries)} entries to {path}")
