"""Base exception for ormlens."""

from typing import Dict, Optional


class OrmLensError(Exception):
    """Base exception for all ormlens errors."""

    def __init__(self, message: str, details: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class UserInputError(OrmLensError):
    """Raised when a manual command is rejected before touching any state.

    Covers empty or duplicate entity names, commands invoked against the wrong
    item kind, unknown auto-annotation tags and out-of-range item indices.
    """

    pass
