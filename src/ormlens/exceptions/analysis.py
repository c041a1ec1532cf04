"""Analysis-related exceptions: file access, parsing, detector failures."""

from pathlib import Path
from typing import Optional

from .base import OrmLensError


class AnalysisError(OrmLensError):
    """Base class for analysis-related errors."""

    pass


class AnalysisFailure(AnalysisError):
    """Raised when a detector fails in a way that aborts the whole run."""

    def __init__(self, reason: str, file_id: Optional[str] = None):
        details = {"reason": reason}
        if file_id is not None:
            details["file"] = file_id
        super().__init__("Analysis failed", details=details)
        self.reason = reason
        self.file_id = file_id


class FileAccessError(AnalysisError):
    """Raised when a file cannot be accessed or read."""

    def __init__(self, filepath: Path, reason: str):
        super().__init__(
            f"Cannot access file: {filepath}",
            details={"filepath": str(filepath), "reason": reason},
        )
        self.filepath = filepath
        self.reason = reason


class ParsingError(AnalysisError):
    """Raised when a source file cannot be parsed by a detector."""

    def __init__(self, filepath: Path, reason: str):
        super().__init__(
            f"Failed to parse file: {filepath}",
            details={"filepath": str(filepath), "reason": reason},
        )
        self.filepath = filepath
        self.reason = reason
