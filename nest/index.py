"""
Path index for Roost.

PathIndex maps CanonicalPaths to node ids and back, separately for groups
and entries. It is a snapshot of the tree: after any structural change the
owner calls rebuild() before resolving another path.

The module also owns listing order. Titles sort naturally ("item2" before
"item10"), ignoring case and accents, and a few reserved root-level groups
always sort last.
"""

import re
import unicodedata
from typing import Dict, List, Optional

from loguru import logger

from . import config
from .database import Entry, Group
from .paths import CanonicalPath, ROOT

# ==============================================================================
# SORTING
# ==============================================================================

_DIGITS = re.compile(r"(\d+)")

# Reserved root-level groups, in the order they trail ordinary groups
_TRAILING_ROOT_GROUPS = (config.RECYCLE_BIN, config.BACKUP_GROUP, config.FOUND_DIR)


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


def natural_key(title: str):
    """Sort key comparing digit runs numerically and letters case-blind."""
    parts = _DIGITS.split(_fold(title))
    # re.split with a capture group alternates text, digits, text, ...
    key = tuple(int(p) if i % 2 else p for i, p in enumerate(parts))
    return key, title


def group_sort_key(group: Group, at_root: bool):
    rank = 0
    if at_root and group.title in _TRAILING_ROOT_GROUPS:
        rank = 1 + _TRAILING_ROOT_GROUPS.index(group.title)
    return rank, natural_key(group.title)


def sort_groups(groups: List[Group], at_root: bool = False) -> List[Group]:
    return sorted(groups, key=lambda g: group_sort_key(g, at_root))


def sort_entries(entries: List[Entry]) -> List[Entry]:
    return sorted(entries, key=lambda e: natural_key(e.title))

# ==============================================================================
# INDEX
# ==============================================================================

class PathIndex:
    """
    Bidirectional path <-> id maps for the whole tree.

    Attributes:
        forward_groups (Dict[CanonicalPath, str]): Group path to group id;
            the root group is keyed by the empty path
        reverse_groups (Dict[str, CanonicalPath]): Inverse of forward_groups
        forward_entries (Dict[CanonicalPath, str]): Entry path to entry id
        reverse_entries (Dict[str, CanonicalPath]): Inverse of forward_entries

    Paths are built from titles, so two siblings sharing a title share a
    key. The one visited last keeps the key; the other has no reverse
    mapping and cannot be addressed by path until one of them is renamed.
    """

    def __init__(self):
        self.forward_groups: Dict[CanonicalPath, str] = {}
        self.reverse_groups: Dict[str, CanonicalPath] = {}
        self.forward_entries: Dict[CanonicalPath, str] = {}
        self.reverse_entries: Dict[str, CanonicalPath] = {}

    def rebuild(self, root: Group) -> None:
        groups = {ROOT: root.id}
        entries = {}

        def walk(group: Group, path: CanonicalPath) -> None:
            for entry in group.entries:
                key = path.child(entry.title)
                if key in entries:
                    logger.warning(f"Multiple entries titled {key.display()}")
                entries[key] = entry.id
            for sub in group.groups:
                key = path.child(sub.title)
                if key in groups:
                    logger.warning(f"Multiple groups titled {key.display()}")
                groups[key] = sub.id
                walk(sub, key)

        walk(root, ROOT)

        self.forward_groups = groups
        self.forward_entries = entries
        self.reverse_groups = {node_id: path for path, node_id in groups.items()}
        self.reverse_entries = {node_id: path for path, node_id in entries.items()}
        logger.debug(f"Index rebuilt: {len(groups) - 1} groups, {len(entries)} entries")

    # --------------------------------------------------------------------------
    # Lookups
    # --------------------------------------------------------------------------

    def group_id(self, path: CanonicalPath) -> Optional[str]:
        return self.forward_groups.get(path)

    def entry_id(self, path: CanonicalPath) -> Optional[str]:
        return self.forward_entries.get(path)

    def group_path(self, group_id: str) -> Optional[CanonicalPath]:
        return self.reverse_groups.get(group_id)

    def entry_path(self, entry_id: str) -> Optional[CanonicalPath]:
        return self.reverse_entries.get(entry_id)

    def has_group(self, path: CanonicalPath) -> bool:
        return path in self.forward_groups

    def has_entry(self, path: CanonicalPath) -> bool:
        return path in self.forward_entries
