"""Exception hierarchy for ormlens."""

from .analysis import (
    AnalysisError,
    AnalysisFailure,
    FileAccessError,
    ParsingError,
)
from .base import OrmLensError, UserInputError
from .config import ConfigurationError, InvalidConfigError
from .storage import SnapshotDecodeError, SnapshotWriteError, StorageError

__all__ = [
    "OrmLensError",
    "UserInputError",
    "AnalysisError",
    "AnalysisFailure",
    "FileAccessError",
    "ParsingError",
    "ConfigurationError",
    "InvalidConfigError",
    "StorageError",
    "SnapshotDecodeError",
    "SnapshotWriteError",
]
