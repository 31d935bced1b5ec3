"""
Roost session state.

A Session owns everything one interactive run works with: the open store,
its path index, the navigator, the guarded master passphrase and the lock
sentinel. Shell commands call Session methods; nothing here prompts or
prints. Where the user has to agree to something first, a
ConfirmationRequired subclass is raised and the caller retries with
force=True.

Every structural change follows the same order: validate, mutate through
VaultDatabase, rebuild the index, mark the store changed.
"""

import hashlib
import os
import time
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger

from . import config
from .completion import CompletionEngine
from .crypto import GuardToken, SecretGuard
from .database import Entry, Group, VaultDatabase
from .errors import (
    ConfirmationRequired, EntryNotFoundError, FileChangedError, ForeignLockError,
    GroupNotEmptyError, InvalidPathError, MutationError, PassphraseError,
    PathExistsError, ReadOnlyError, SaveIOError, StoreLoadError, StoreWriteError,
    TitleConflictError, UnsavedChangesError, UsageError,
)
from .index import PathIndex
from .locator import EntryLocator
from .lockfile import LockSentinel
from .navigator import Listing, Navigator
from .paths import CanonicalPath, ROOT
from .validation import validate_entry_fields, validate_title

# Searches never look inside these root-level groups
_UNSEARCHED = (ROOT.child(config.BACKUP_GROUP), ROOT.child(config.RECYCLE_BIN))


def file_digest(path: Path) -> str:
    return hashlib.sha256(Path(path).read_bytes()).hexdigest()


class Session:
    """
    One interactive session over (at most) one store file.

    Attributes:
        db (VaultDatabase): The store being worked on
        index (PathIndex): Path snapshot of db, rebuilt after each change
        navigator (Navigator): Current group and last listing
        locator (EntryLocator): Numeric/path entry resolution
        completion (CompletionEngine): Tab-completion candidates
        store_path (Optional[Path]): File the store came from, None if new
        has_changed (bool): Unsaved modifications exist
        readonly (bool): Mutations and saving are refused
        recycle (bool): rm/edit keep a copy under /Backup
    """

    def __init__(self, readonly: bool = False, recycle: bool = True,
                 guard: Optional[SecretGuard] = None):
        self.readonly = readonly
        self.recycle = recycle
        self.guard = guard or SecretGuard()

        self.store_path: Optional[Path] = None
        self.master_token: Optional[GuardToken] = None
        self.lock: Optional[LockSentinel] = None
        self.file_digest: Optional[str] = None
        self.has_changed = False

        self.db = VaultDatabase.create_default()
        self.index = PathIndex()
        self.index.rebuild(self.db.root)
        self.navigator = Navigator(self.db, self.index)
        self.locator = EntryLocator(self.navigator)
        self.completion = CompletionEngine(self.navigator)

    # ==========================================================================
    # INTERNAL HELPERS
    # ==========================================================================

    def _install(self, db: VaultDatabase) -> None:
        self.db = db
        self.index.rebuild(db.root)
        self.navigator.reset(db)

    def refresh(self) -> None:
        """Rebuild the index from the tree."""
        self.index.rebuild(self.db.root)

    def _changed(self) -> None:
        self.refresh()
        self.has_changed = True

    def _check_writable(self) -> None:
        if self.readonly:
            raise ReadOnlyError()

    def group_at(self, raw: str) -> Tuple[CanonicalPath, Group]:
        path = self.navigator.resolve(raw)
        group_id = self.index.group_id(path)
        if group_id is None:
            raise InvalidPathError(f"Invalid path: {raw}")
        return path, self.db.get_group(group_id)

    @property
    def has_file(self) -> bool:
        return self.store_path is not None

    @property
    def cwd(self) -> CanonicalPath:
        return self.navigator.cwd

    def pwd(self) -> str:
        return self.navigator.pwd()

    def cd(self, raw: Optional[str] = None) -> str:
        return self.navigator.cd(raw)

    def ls(self, raw_paths: Optional[Sequence[str]] = None) -> Listing:
        return self.navigator.ls(raw_paths)

    # ==========================================================================
    # GROUPS
    # ==========================================================================

    def make_group(self, raw: str) -> CanonicalPath:
        """
        Create the group at raw. Its parent must already exist.

        Raises:
            PathExistsError: A group or entry already has that path
            InvalidPathError: The parent does not exist, or raw is the root
        """
        self._check_writable()
        path = self.navigator.resolve(raw)
        if path.is_root:
            raise InvalidPathError("Cannot make directory at path /")
        if self.index.has_group(path) or self.index.has_entry(path):
            raise PathExistsError(path.display())

        parent_id = self.index.group_id(path.parent)
        if parent_id is None:
            raise InvalidPathError(f"Cannot make directory at path {path.parent.display()}")
        if path.parent.is_root and path.name == config.FOUND_DIR:
            raise TitleConflictError(f'"{config.FOUND_DIR}" is reserved for search results')
        ok, message = validate_title(path.name, "group")
        if not ok:
            raise InvalidPathError(message)

        self.db.add_group(path.name, parent_id)
        self._changed()
        return path

    def remove_group(self, raw: str) -> CanonicalPath:
        """
        Delete an empty group.

        Raises:
            GroupNotEmptyError: It still holds entries or sub-groups
        """
        self._check_writable()
        path, group = self.group_at(raw)
        if path.is_root:
            raise InvalidPathError("Cannot remove the root group")
        if group.entries or group.groups:
            raise GroupNotEmptyError(path.display(), len(group.entries), len(group.groups))

        self.db.delete_group(group.id)
        self._changed()
        return path

    def rename_group(self, raw: str, new_title: str) -> bool:
        """
        Retitle a group. A blank or unchanged title is not a change.

        Returns:
            bool: True if the group was renamed
        """
        self._check_writable()
        path, group = self.group_at(raw)
        if path.is_root:
            raise InvalidPathError("The root group cannot be renamed")

        new_title = new_title.strip()
        if not new_title or new_title == group.title:
            return False
        ok, message = validate_title(new_title, "group")
        if not ok:
            raise InvalidPathError(message)
        target = path.parent.child(new_title)
        if self.index.has_group(target) or self.index.has_entry(target):
            raise TitleConflictError(f"{target.display()} already exists")

        self.db.update_group(group.id, title=new_title)
        self._changed()
        return True

    # ==========================================================================
    # ENTRIES
    # ==========================================================================

    def group_for_new_entry(self, raw: Optional[str] = None) -> Tuple[CanonicalPath, Optional[str]]:
        """
        Work out where "new [path]" puts its entry.

        Returns:
            (group path, preset title): raw may name a group, or a group
            plus the title for the new entry
        """
        title = None
        if raw is None:
            path = self.cwd
        else:
            path = self.navigator.resolve(raw)
            if not self.index.has_group(path):
                title = path.name
                path = path.parent
                if not self.index.has_group(path):
                    raise InvalidPathError("Bad path for new entry")
        if path.is_root:
            raise InvalidPathError("Entries cannot be made in the root path.")
        return path, title

    def add_entry(self, group_path: CanonicalPath, fields: Dict[str, str]) -> Entry:
        self._check_writable()
        group_id = self.index.group_id(group_path)
        if group_id is None:
            raise InvalidPathError(f"Invalid path: {group_path.display()}")
        ok, message = validate_entry_fields(fields)
        if not ok:
            raise UsageError(message)
        title = fields["title"]
        if self.index.has_entry(group_path.child(title)):
            raise TitleConflictError(f'An entry titled "{title}" is already in path.')

        entry = self.db.add_entry(group_id, Entry(**fields))
        self._changed()
        return entry

    def _recycle(self, entry: Entry) -> None:
        """Keep a copy of entry under /Backup before it is changed or removed."""
        if not self.recycle or entry.origin_id:
            return
        backup = self.db.root_group_titled(config.BACKUP_GROUP)
        if backup is not None and entry.group_id == backup.id:
            return
        if backup is None:
            backup = self.db.add_group(config.BACKUP_GROUP)

        stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(entry.modified))
        title = f"{entry.title} ({stamp})"
        taken = {e.title for e in backup.entries}
        candidate, n = title, 2
        while candidate in taken:
            candidate = f"{title} ({n})"
            n += 1
        self.db.add_entry(backup.id, entry.clone(title=candidate))

    def remove_entry(self, token: str) -> Entry:
        self._check_writable()
        entry = self.locator.locate(token)
        if entry.origin_id:
            # /_found is not persisted: not a store change
            self.db.delete_entry(entry.id)
            self.refresh()
            return entry
        self._recycle(entry)
        self.db.delete_entry(entry.id)
        self._changed()
        return entry

    def update_entry(self, entry: Entry, changes: Dict[str, str], keep_backup: bool = True) -> bool:
        """
        Apply changed fields to entry; unchanged or None values are ignored.

        Args:
            keep_backup (bool): Recycle the old version to /Backup first

        Returns:
            bool: True if anything changed
        """
        self._check_writable()
        changes = {
            name: value for name, value in changes.items()
            if value is not None and value != getattr(entry, name)
        }
        if not changes:
            return False
        ok, message = validate_entry_fields(changes)
        if not ok:
            raise UsageError(message)

        if "title" in changes:
            path = self.locator.path_of(entry)
            if path is not None and self.index.has_entry(path.parent.child(changes["title"])):
                raise TitleConflictError(f'An entry titled "{changes["title"]}" is already in path.')

        if keep_backup:
            self._recycle(entry)
        self.db.update_entry(entry.id, **changes)
        self._changed()
        return True

    def copy_entry(self, raw_source: str, raw_target: str) -> Entry:
        """
        Copy an entry to a new path, or into an existing group under its
        own title. Copying a search result copies the real entry.

        Raises:
            TitleConflictError: An entry already has the target path
            InvalidPathError: The target group is missing, the root, or /_found
        """
        self._check_writable()
        source = self.locator.locate(raw_source)
        source = self.locator.original_of(source) or source

        target = self.navigator.resolve(raw_target)
        if self.index.has_group(target):
            group_path, title = target, source.title
        else:
            group_path, title = target.parent, target.name
        group_id = self.index.group_id(group_path)
        if group_id is None:
            raise InvalidPathError(f"Invalid path: {group_path.display()}")
        if group_path.is_root:
            raise InvalidPathError("Entries cannot exist in the root path (/).")
        if group_path.startswith(ROOT.child(config.FOUND_DIR)):
            raise InvalidPathError(f"/{config.FOUND_DIR} only holds search results")
        if self.index.has_entry(group_path.child(title)):
            raise TitleConflictError("Copy cannot overwrite an existing entry.")

        copy = self.db.add_entry(
            group_id, source.clone(title=title, origin_path=None, origin_id=None)
        )
        self._changed()
        return copy

    def discard_copy(self, copy: Entry, had_changes: bool) -> None:
        """Drop an entry made by copy_entry and restore the changed flag."""
        self.db.delete_entry(copy.id)
        self.refresh()
        self.has_changed = had_changes

    def move(self, raw_source: str, raw_target: str) -> Optional[str]:
        """
        Move an entry or group into the group at raw_target.

        Returns:
            Optional[str]: Warning when the target already holds something
                with the same title; the move still happens
        """
        self._check_writable()
        target, target_group = self.group_at(raw_target)

        entry = self.locator.resolve(raw_source)
        if entry is not None:
            entry = self.locator.original_of(entry) or entry
            if target.is_root:
                raise InvalidPathError("Entries cannot exist in the root path (/).")
            warning = None
            if self.index.has_entry(target.child(entry.title)):
                warning = f'An entry titled "{entry.title}" already exists in {target.display()}'
            self.db.move_entry(entry.id, target_group.id)
            self._changed()
            return warning

        source = self.navigator.resolve(raw_source)
        source_id = self.index.group_id(source)
        if source_id is None or source.is_root:
            raise EntryNotFoundError(f"Don't see an entry or group at path: {raw_source}")
        if target.startswith(source):
            raise InvalidPathError("Cannot move a group into itself")
        warning = None
        if self.index.has_group(target.child(source.name)):
            warning = f'A group titled "{source.name}" already exists in {target.display()}'
        try:
            self.db.move_group(source_id, target_group.id)
        except MutationError:
            self.refresh()
            raise
        self._changed()
        return warning

    def original_of(self, entry: Entry) -> Optional[Entry]:
        return self.locator.original_of(entry)

    # ==========================================================================
    # SEARCH
    # ==========================================================================

    def destroy_found(self) -> None:
        """Remove /_found and everything in it. Not a store change."""
        found = self.db.root_group_titled(config.FOUND_DIR)
        if found is None:
            return
        for entry in list(found.entries):
            self.db.delete_entry(entry.id)
        self.db.delete_group(found.id)
        self.refresh()

    def find(self, needle: str, all_fields: bool = False) -> List[Entry]:
        """
        Case-insensitive search, results copied into a fresh /_found.

        Args:
            needle (str): Text to look for
            all_fields (bool): Search username, URL and notes too, not only
                the title

        Returns:
            List[Entry]: The copies placed in /_found, empty when nothing
                matched (in which case no /_found exists afterwards)
        """
        self.destroy_found()
        needle = needle.casefold()
        fields = ("title", "username", "url", "notes") if all_fields else ("title",)

        def hit(entry: Entry) -> bool:
            return any(needle in (getattr(entry, f) or "").casefold() for f in fields)

        matches = []
        for entry in self.db.find_entries(hit):
            path = self.locator.path_of(entry)
            if path is None or any(path.startswith(skip) for skip in _UNSEARCHED):
                continue
            matches.append((path, entry))

        logger.debug(f"find {needle!r}: {len(matches)} matches")
        if not matches:
            return []

        found = self.db.add_group(config.FOUND_DIR)
        counts = Counter()
        copies = []
        for path, entry in matches:
            counts[entry.title] += 1
            title = entry.title
            if counts[entry.title] > 1:
                title = f"{entry.title} ({counts[entry.title]})"
            copies.append(self.db.add_entry(
                found.id, entry.clone(title=title, origin_path=path.display(), origin_id=entry.id)
            ))
        self.refresh()
        return copies

    # ==========================================================================
    # STORE FILES
    # ==========================================================================

    def master_passphrase(self) -> str:
        if self.master_token is None:
            raise PassphraseError("No passphrase is set for this store; use saveas")
        return self.guard.reveal(self.master_token)

    def release_lock(self) -> None:
        if self.lock is not None:
            self.lock.release()
            self.lock = None

    def open_store(self, path, passphrase: str, force: bool = False) -> Optional[str]:
        """
        Load a store file, replacing the current one.

        The current session is untouched unless the load succeeds.

        Returns:
            Optional[str]: Warning when another session holds the lock

        Raises:
            UnsavedChangesError: Current store has unsaved changes
            StoreLoadError: Missing file, not a store, wrong passphrase
        """
        path = Path(path)
        if self.has_changed and not force:
            raise UnsavedChangesError(
                "WARNING: The database has changed and was not saved. Really open another?"
            )
        if not path.is_file():
            raise StoreLoadError(f"Cannot open: {path}: File does not exist")

        db = VaultDatabase.load(path, passphrase)
        digest = file_digest(path)

        self.release_lock()
        lock = LockSentinel(path)
        warning = None
        if self.readonly:
            if lock.exists():
                warning = f"{path} may be open elsewhere."
        elif not lock.acquire():
            warning = f"{path} may be open elsewhere. Be careful of saving!"

        self.lock = lock
        self.store_path = path
        self.file_digest = digest
        self.master_token = self.guard.capture(passphrase)
        self._install(db)
        self.has_changed = False
        logger.info(f"Opened {path}")
        return warning

    def _write(self, path: Path, passphrase: str) -> None:
        """Write to a temp file, check it reads back, then move it into place."""
        tmp = path.with_name(path.name + config.SAVE_TEMP_SUFFIX)
        try:
            self.db.save(tmp, passphrase)
        except OSError as e:
            raise StoreWriteError(f"Could not write {tmp}: {e.strerror or e}") from e
        try:
            VaultDatabase.load(tmp, passphrase)
        except StoreLoadError as e:
            tmp.unlink(missing_ok=True)
            raise StoreWriteError(f"The saved copy failed verification, {path} was not touched: {e}") from e
        try:
            os.replace(tmp, path)
        except OSError as e:
            raise SaveIOError(f"Could not move {tmp} to {path}: {e.strerror or e}") from e
        self.file_digest = file_digest(path)

    def save(self, force_lock: bool = False, force_changed: bool = False) -> Path:
        """
        Write the store back to the file it was opened from.

        Raises:
            FileChangedError: The file changed on disk since open/save
            ForeignLockError: Another session holds the lock
        """
        self._check_writable()
        if self.store_path is None:
            raise UsageError("Please use the saveas command for new files.")
        if (not force_changed and self.file_digest and self.store_path.exists()
                and file_digest(self.store_path) != self.file_digest):
            raise FileChangedError(
                f"{self.store_path} was modified by another program since it was opened. Save anyway?"
            )
        if not force_lock and self.lock is not None and self.lock.foreign_lock_present():
            raise ForeignLockError(
                f"The file {self.store_path} is locked by another session. Save anyway?"
            )

        self._write(self.store_path, self.master_passphrase())
        if self.lock is None:
            self.lock = LockSentinel(self.store_path)
        self.lock.place()
        self.has_changed = False
        logger.info(f"Saved to {self.store_path}")
        return self.store_path

    def save_as(self, path, passphrase: str, force: bool = False) -> Path:
        """
        Write the store to a new file under a new passphrase and switch to it.

        Raises:
            PassphraseError: Empty passphrase
            ConfirmationRequired: path exists and force is False
        """
        self._check_writable()
        path = Path(path)
        if not passphrase:
            raise PassphraseError("An empty passphrase is not allowed.")
        if path.exists() and not force:
            raise ConfirmationRequired(f"WARNING: {path} already exists. Overwrite it?")

        self._write(path, passphrase)

        self.release_lock()
        self.lock = LockSentinel(path)
        self.lock.place()
        self.store_path = path
        self.master_token = self.guard.capture(passphrase)
        self.has_changed = False
        logger.info(f"Saved to {path}")
        return path

    def change_passphrase(self, current: str, new: str) -> None:
        self._check_writable()
        if self.master_token is None:
            raise PassphraseError("No store file is open; use saveas to set a passphrase")
        if current != self.master_passphrase():
            raise PassphraseError("Incorrect password.")
        if not new:
            raise PassphraseError("An empty passphrase is not allowed.")
        self.master_token = self.guard.capture(new)
        self.has_changed = True

    def close(self, force: bool = False) -> None:
        """
        Drop the current store and start a fresh, unsaved one.

        Raises:
            UnsavedChangesError: Unsaved changes and force is False
        """
        if self.has_changed and not force:
            raise UnsavedChangesError(
                "WARNING: The database has changed and was not saved. Really close it?"
            )
        self.release_lock()
        self.store_path = None
        self.master_token = None
        self.file_digest = None
        self._install(VaultDatabase.create_default())
        self.has_changed = False

    def quit(self, force: bool = False) -> None:
        if self.has_changed and not force:
            raise UnsavedChangesError(
                "WARNING: The database has changed and was not saved. Really quit?"
            )
        self.release_lock()
