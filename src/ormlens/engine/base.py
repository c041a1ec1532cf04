"""Analyzer contract shared by all engine variants."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from ..config import AnalysisConfig
from ..result import AnalyzeResult
from . import annotate
from .cancellation import CancellationToken

MessageCallback = Callable[[str], None]


class AnalysisOutcome(Enum):
    COMPLETED = "completed"
    RESUMED = "resumed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class Analyzer(ABC):
    """One engine variant bound to a Result Model and a workspace.

    ``analyze`` never raises: failures are logged, reported through the
    message callback and signalled by a False return value.
    """

    name: str = ""

    def __init__(self, result: AnalyzeResult, root: Path, config: AnalysisConfig):
        self.result = result
        self.root = root
        self.config = config
        self.outcome: Optional[AnalysisOutcome] = None

    def get_name(self) -> str:
        return self.name

    @property
    def snapshot_file_name(self) -> str:
        return f"{self.name}-result.json"

    @property
    def snapshot_path(self) -> Path:
        return self.root / self.config.snapshot_dir / self.snapshot_file_name

    @abstractmethod
    def analyze(
        self, on_message: MessageCallback, token: Optional[CancellationToken] = None
    ) -> bool:
        """Bring the Result Model up to date, from a snapshot or a fresh scan.

        Returns:
            False only on unrecoverable failure. A cancelled run returns True
            and sets ``outcome`` to ``AnalysisOutcome.CANCELLED``.
        """

    @abstractmethod
    def cancel(self) -> None:
        """Ask the in-flight run to stop at the next batch boundary."""

    def auto_annotate(self, tag: str) -> int:
        return annotate.auto_annotate(self.result, tag)

    def supported_auto_annotate_tags(self) -> tuple[str, ...]:
        return annotate.supported_tags()

    def close(self) -> None:
        pass
