"""Workspace session: one Result Model, one engine, one snapshot.

Example:
    >>> from pathlib import Path
    >>> from ormlens.config import load_config
    >>> from ormlens.session import WorkspaceSession
    >>>
    >>> session = WorkspaceSession(Path("."), load_config())
    >>> session.analyze(print)
    [1/1] app/models.py
    Analyzed 1 files
    True
    >>> [s.entities for s in session.statistics()]
    [3, 1]
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from . import curation
from .classifier import PartitionStats, partition_statistics
from .config import AnalysisConfig
from .curation import ItemRef
from .engine import Analyzer, CancellationToken, MessageCallback, create_analyzer
from .exceptions import UserInputError
from .logging_config import get_logger
from .model import Argument, Entity, Operation, OperationType, Partition, Selection
from .result import AnalyzeResult

logger = get_logger(__name__)


class WorkspaceSession:
    """Owns the Result Model and the engine for one workspace.

    Curation wrappers save the snapshot after every successful mutation, so
    the file on disk always matches what was last shown.
    """

    def __init__(
        self,
        root: Path,
        config: AnalysisConfig,
        analyzer: Optional[Analyzer] = None,
        result: Optional[AnalyzeResult] = None,
    ):
        self.root = root
        self.config = config
        self.result = result if result is not None else AnalyzeResult()
        self.analyzer = analyzer or create_analyzer(config.analyzer, self.result, root, config)

    @property
    def snapshot_path(self) -> Path:
        return self.analyzer.snapshot_path

    # -- analysis ---------------------------------------------------------

    def analyze(
        self, on_message: MessageCallback, token: Optional[CancellationToken] = None
    ) -> bool:
        return self.analyzer.analyze(on_message, token)

    def cancel(self) -> None:
        self.analyzer.cancel()

    def reanalyze(
        self, on_message: MessageCallback, token: Optional[CancellationToken] = None
    ) -> bool:
        """Discard the snapshot and all findings, including custom items, then scan."""
        self.snapshot_path.unlink(missing_ok=True)
        self.result.clear()
        logger.info(f"Cleared {self.analyzer.get_name()} analysis")
        return self.analyze(on_message, token)

    def load(self) -> bool:
        return self.result.load(self.snapshot_path)

    def require_result(self) -> AnalyzeResult:
        """Load the snapshot, or fail with a hint to run ``analyze`` first."""
        if not self.load():
            raise UserInputError(
                "No analysis found; run 'ormlens analyze' first",
                details={"snapshot": str(self.snapshot_path)},
            )
        return self.result

    def commit(self) -> None:
        self.result.save(self.snapshot_path)

    def close(self) -> None:
        self.analyzer.close()

    # -- curation ---------------------------------------------------------

    def add_entity(
        self,
        name: str,
        partition: Partition = Partition.RECOGNIZED,
        selection: Optional[Selection] = None,
    ) -> Entity:
        entity = curation.add_entity(self.result, name, partition, selection)
        self.commit()
        return entity

    def add_operation(
        self,
        ref: ItemRef,
        name: str,
        op_type: OperationType,
        selection: Optional[Selection] = None,
    ) -> Operation:
        operation = curation.add_operation(self.result, ref, name, op_type, selection)
        self.commit()
        return operation

    def add_argument(
        self, ref: ItemRef, name: str, selection: Optional[Selection] = None
    ) -> Argument:
        argument = curation.add_argument(self.result, ref, name, selection)
        self.commit()
        return argument

    def remove_item(self, ref: ItemRef) -> bool:
        return self._commit_if(curation.remove_item(self.result, ref))

    def move_entity(self, ref: ItemRef, destination: Partition) -> bool:
        return self._commit_if(curation.move_entity(self.result, ref, destination))

    def move_operation(self, ref: ItemRef, destination: Partition, entity_name: str) -> bool:
        return self._commit_if(
            curation.move_operation(self.result, ref, destination, entity_name)
        )

    def move_argument(self, ref: ItemRef, target_ref: ItemRef) -> bool:
        return self._commit_if(curation.move_argument(self.result, ref, target_ref))

    def set_note(self, ref: ItemRef, note: str) -> bool:
        return self._commit_if(curation.set_note(self.result, ref, note))

    def auto_annotate(self, tag: str) -> int:
        touched = self.analyzer.auto_annotate(tag)
        self._commit_if(touched > 0)
        return touched

    def _commit_if(self, changed: bool) -> bool:
        if changed:
            self.commit()
        return changed

    # -- statistics -------------------------------------------------------

    def statistics(self) -> list[PartitionStats]:
        return partition_statistics(self.result)
