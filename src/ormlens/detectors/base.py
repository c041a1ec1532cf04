"""Detector contract: source files in, ORM findings out."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..exceptions import FileAccessError, ParsingError
from ..logging_config import get_logger
from ..model import OperationType, Selection

logger = get_logger(__name__)


@dataclass(frozen=True)
class ArgumentFinding:
    name: str
    selection: Optional[Selection] = None


@dataclass(frozen=True)
class OperationFinding:
    name: str
    type: OperationType
    arguments: tuple[ArgumentFinding, ...] = ()
    selection: Optional[Selection] = None


@dataclass(frozen=True)
class Finding:
    """One detector observation.

    Without an operation the finding declares that ``entity_name`` is a
    persistent entity. With one, it reports an operation performed on it.
    """

    entity_name: str
    operation: Optional[OperationFinding] = None
    selection: Optional[Selection] = None

    @property
    def is_declaration(self) -> bool:
        return self.operation is None


class Detector(ABC):
    """Base class for language/ORM detectors.

    Detectors are pure with respect to the Result Model: they only read
    files and return findings, so a file can be scanned again at any time.
    """

    name: str = ""

    def __init__(self, root: Path, max_file_size: Optional[int] = None):
        """
        Args:
            root: Workspace root; file identifiers are relative to it
            max_file_size: Skip files larger than this many bytes
        """
        self.root = root
        self.max_file_size = max_file_size

    def detect(self, files: Iterable[str]) -> list[Finding]:
        """Scan *files* in order and return all findings.

        A file that cannot be read or parsed is skipped with a warning. Any
        other exception propagates and aborts the caller's batch.
        """
        findings: list[Finding] = []
        for file_id in files:
            try:
                findings.extend(self.detect_file(file_id))
            except (ParsingError, FileAccessError) as e:
                logger.warning(f"Skipping {file_id}: {e}")
        return findings

    @abstractmethod
    def detect_file(self, file_id: str) -> list[Finding]:
        """Scan one workspace-relative file."""

    def get_name(self) -> str:
        return self.name

    def close(self) -> None:
        """Release resources held by the detector."""
