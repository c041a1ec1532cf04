"""Batch-driven engine: resume from snapshot, or scan, merge, finalize and save."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Optional

from ..config import AnalysisConfig
from ..detectors.base import Detector, Finding, OperationFinding
from ..discovery import discover_files
from ..exceptions import SnapshotWriteError
from ..logging_config import get_logger
from ..model import Argument, Entity, Operation, Partition
from ..provenance import detect_repository
from ..result import AnalyzeResult
from .base import AnalysisOutcome, Analyzer, MessageCallback
from .cancellation import CancellationToken

logger = get_logger(__name__)


def _batches(files: list[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(files), size):
        yield files[start : start + size]


def _to_operation(finding: OperationFinding) -> Operation:
    return Operation(
        name=finding.name,
        type=finding.type,
        arguments=[Argument(name=a.name, selection=a.selection) for a in finding.arguments],
        selection=finding.selection,
    )


def _append_operation(operations: list[Operation], operation: Operation) -> bool:
    """Append unless an operation with the same name, type and anchor exists."""
    for existing in operations:
        if (
            existing.name == operation.name
            and existing.type == operation.type
            and existing.selection == operation.selection
        ):
            return False
    operations.append(operation)
    return True


class BatchedAnalyzer(Analyzer):
    """Runs a :class:`Detector` over the workspace in fixed-size batches.

    Operation findings whose entity has not been declared yet are held in a
    pending buffer. A declaration found in a later batch claims them; the
    rest are moved to the Unknown partition by :meth:`finalize`.
    """

    def __init__(
        self,
        result: AnalyzeResult,
        root: Path,
        config: AnalysisConfig,
        detector: Detector,
        name: Optional[str] = None,
    ):
        super().__init__(result, root, config)
        self.detector = detector
        self.name = name or detector.name
        self._pending: dict[str, list[Operation]] = {}
        self._pending_files: frozenset[str] = frozenset()
        self._lock = threading.Lock()
        self._running = False
        self._token: Optional[CancellationToken] = None

    @property
    def source_dir(self) -> Path:
        return self.root / self.config.source_root if self.config.source_root else self.root

    @property
    def pending_count(self) -> int:
        return sum(len(ops) for ops in self._pending.values())

    def analyze(
        self, on_message: MessageCallback, token: Optional[CancellationToken] = None
    ) -> bool:
        with self._lock:
            if self._running:
                on_message(f"{self.name} analysis is already running")
                return False
            self._running = True
            self._token = token or CancellationToken()
            token = self._token

        try:
            return self._run(on_message, token)
        except Exception as e:
            logger.exception(f"{self.name} analysis failed")
            on_message(f"Analysis failed: {e}")
            self.outcome = AnalysisOutcome.FAILED
            return False
        finally:
            with self._lock:
                self._running = False
                self._token = None

    def cancel(self) -> None:
        with self._lock:
            token = self._token
        if token is not None:
            token.cancel()

    def _run(self, on_message: MessageCallback, token: CancellationToken) -> bool:
        snapshot = self.snapshot_path
        if self.result.load(snapshot):
            self.outcome = AnalysisOutcome.RESUMED
            on_message(f"Loaded {self.name} analysis from {snapshot}")
            return True

        # the buffer holds operations from the files already marked analyzed;
        # after an aborted run those files are not scanned again
        if self.result.analyzed_files != self._pending_files:
            self._pending.clear()
        self.result.set_repository(detect_repository(self.root))

        files = discover_files(self.root, self.source_dir, self.config)
        total = len(files)
        logger.info(
            f"Analyzing {total} files with {self.name} "
            f"in batches of {self.config.batch_size}"
        )

        processed = 0
        cancelled = False
        for batch in _batches(files, self.config.batch_size):
            todo = [f for f in batch if not self.result.file_analyzed(f)]
            # the whole batch is detected before anything is merged
            findings = self.detector.detect(todo)

            self.merge(findings)
            self.result.add_analyzed_files(batch)
            self._pending_files = self.result.analyzed_files
            self.result.refresh()

            processed += len(batch)
            on_message(f"[{processed}/{total}] {batch[0]}")

            if token.cancelled:
                cancelled = True
                break

        if not cancelled:
            self.finalize()

        try:
            self.result.save(snapshot)
        except SnapshotWriteError as e:
            logger.error(str(e))
            on_message(f"Could not save analysis: {e}")
            self.outcome = AnalysisOutcome.FAILED
            return False

        if cancelled:
            self.outcome = AnalysisOutcome.CANCELLED
            on_message(f"Analysis cancelled after {processed} of {total} files")
        else:
            self.outcome = AnalysisOutcome.COMPLETED
            on_message(f"Analyzed {total} files")
        return True

    def merge(self, findings: list[Finding]) -> None:
        recognized = self.result.get_group(Partition.RECOGNIZED)

        for finding in findings:
            name = finding.entity_name
            entity = recognized.get(name)

            if finding.operation is None:
                if entity is None:
                    entity = Entity(name=name, selection=finding.selection)
                    recognized[name] = entity
                elif entity.selection is None:
                    entity.selection = finding.selection
                for operation in self._pending.pop(name, []):
                    _append_operation(entity.operations, operation)
                continue

            operation = _to_operation(finding.operation)
            if entity is not None:
                _append_operation(entity.operations, operation)
            else:
                _append_operation(self._pending.setdefault(name, []), operation)

    def finalize(self) -> None:
        """Attach every pending operation; unclaimed ones go to Unknown."""
        recognized = self.result.get_group(Partition.RECOGNIZED)
        unknown = self.result.get_group(Partition.UNKNOWN)

        for name, operations in self._pending.items():
            entity = recognized.get(name)
            if entity is None:
                entity = unknown.get(name)
            if entity is None:
                entity = Entity(name=name)
                unknown[name] = entity
            for operation in operations:
                _append_operation(entity.operations, operation)

        if self._pending:
            logger.debug(f"Finalized {self.pending_count} pending operations")
        self._pending.clear()

    def close(self) -> None:
        self.detector.close()
