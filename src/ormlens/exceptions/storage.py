"""Snapshot storage exceptions."""

from pathlib import Path
from typing import Optional

from .base import OrmLensError


class StorageError(OrmLensError):
    """Base class for snapshot read/write errors."""

    pass


class SnapshotDecodeError(StorageError):
    """Raised when a snapshot does not have the expected structure."""

    def __init__(self, reason: str, path: Optional[Path] = None):
        details = {"reason": reason}
        if path is not None:
            details["path"] = str(path)
        super().__init__("Invalid snapshot", details=details)
        self.reason = reason
        self.path = path


class SnapshotWriteError(StorageError):
    """Raised when a snapshot cannot be written."""

    def __init__(self, path: Path, reason: str):
        super().__init__(
            f"Cannot write snapshot: {path}",
            details={"path": str(path), "reason": reason},
        )
        self.path = path
        self.reason = reason
