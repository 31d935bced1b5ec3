"""
Advisory lock files.

Opening STORE drops an empty STORE.lock beside it so a second session can
tell the file is in use. Nothing enforces it: the second session just
warns, and asks before saving over a file it did not lock.
"""

from pathlib import Path

from loguru import logger

from . import config


class LockSentinel:
    """
    The .lock file for one store path.

    Attributes:
        lock_path (Path): Sentinel location
        placed (bool): True once this session created (or claimed) it
    """

    def __init__(self, store_path):
        self.store_path = Path(store_path)
        self.lock_path = Path(str(self.store_path) + config.LOCK_SUFFIX)
        self.placed = False

    def exists(self) -> bool:
        return self.lock_path.exists()

    def foreign_lock_present(self) -> bool:
        """A lock is on disk and this session is not the one that put it there."""
        return self.exists() and not self.placed

    def acquire(self) -> bool:
        """
        Place the lock unless someone else holds it.

        Returns:
            bool: False when a foreign lock was found; it is left alone
        """
        if self.exists():
            logger.warning(f"{self.store_path} is locked by another session")
            return False
        self.place()
        return True

    def place(self) -> None:
        self.lock_path.touch()
        self.placed = True
        logger.debug(f"Placed lock {self.lock_path}")

    def release(self) -> None:
        """Remove the lock if this session placed it; never touch anyone else's."""
        if not self.placed:
            return
        self.lock_path.unlink(missing_ok=True)
        self.placed = False
        logger.debug(f"Released lock {self.lock_path}")
