"""
Roost exception hierarchy.

Everything a command can fail with derives from RoostError; the shell
catches RoostError at the dispatch boundary and prints it. FatalError
subclasses end the session instead.
"""


class RoostError(Exception):
    """Base class for recoverable command failures."""
    pass


class FatalError(RoostError):
    """Failure after which the session cannot safely continue."""
    pass


# ==============================================================================
# PATH / LOOKUP ERRORS
# ==============================================================================

class InvalidPathError(RoostError):
    pass


class PathExistsError(RoostError):
    def __init__(self, path: str):
        super().__init__(f"Path already exists: {path}")
        self.path = path


class GroupNotEmptyError(RoostError):
    """Raised by rmdir on a group that still holds entries or sub-groups."""

    def __init__(self, path: str, entries: int, groups: int):
        super().__init__(
            f"Group {path} is not empty: it holds "
            f"{entries} entries and {groups} sub-groups"
        )
        self.path = path
        self.entries = entries
        self.groups = groups


class EntryNotFoundError(RoostError):
    pass


class InvalidEntryNumberError(RoostError):
    pass


class TitleConflictError(RoostError):
    pass


class UsageError(RoostError):
    pass


class ReadOnlyError(RoostError):
    def __init__(self, message: str = "Function not available with a read-only store."):
        super().__init__(message)


# ==============================================================================
# ERRORS THAT ASK FOR CONFIRMATION
# ==============================================================================

class ConfirmationRequired(RoostError):
    """The operation may proceed only after the user agrees."""
    pass


class UnsavedChangesError(ConfirmationRequired):
    pass


class ForeignLockError(ConfirmationRequired):
    pass


class FileChangedError(ConfirmationRequired):
    pass


# ==============================================================================
# STORE / ENGINE ERRORS
# ==============================================================================

class StoreLoadError(RoostError):
    pass


class MutationError(RoostError):
    pass


class SecretIntegrityError(FatalError):
    pass


class SaveIOError(FatalError):
    pass


class StoreWriteError(RoostError):
    """The store could not be written or the written copy did not verify."""
    pass


class PassphraseError(RoostError):
    pass
