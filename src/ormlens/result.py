"""The Result Model: both entity partitions, the analyzed-file set and provenance."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Callable, Optional

from .codec import SnapshotState, decode_snapshot, encode_snapshot
from .events import RefreshEmitter, RefreshListener
from .exceptions import FileAccessError, SnapshotDecodeError
from .file_ops import atomic_write_text, read_text_file
from .logging_config import get_logger
from .model import Entity, Partition, Repository

logger = get_logger(__name__)


class AnalyzeResult:
    """Knowledge base of one workspace session.

    The partition dictionaries returned by :meth:`get_group` are created once
    and kept for the life of the object. Loading a snapshot replaces their
    contents, never the dictionaries themselves, so references held by
    presentation code stay live.
    """

    def __init__(self) -> None:
        self._groups: dict[Partition, dict[str, Entity]] = {p: {} for p in Partition}
        self._analyzed_files: set[str] = set()
        self._repository: Optional[Repository] = None
        self._emitter = RefreshEmitter()

    # -- partitions -------------------------------------------------------

    def get_group(self, partition: Partition) -> dict[str, Entity]:
        return self._groups[partition]

    def groups(self) -> Iterator[tuple[Partition, dict[str, Entity]]]:
        for partition in Partition:
            yield partition, self._groups[partition]

    def entity_count(self, partition: Partition) -> int:
        return len(self._groups[partition])

    def operation_count(self, partition: Partition) -> int:
        return sum(len(e.operations) for e in self._groups[partition].values())

    # -- analyzed files ---------------------------------------------------

    def add_analyzed_files(self, files: Iterable[str]) -> None:
        self._analyzed_files.update(files)

    def file_analyzed(self, file_id: str) -> bool:
        return file_id in self._analyzed_files

    @property
    def analyzed_files(self) -> frozenset[str]:
        return frozenset(self._analyzed_files)

    # -- provenance -------------------------------------------------------

    def set_repository(self, repository: Optional[Repository]) -> None:
        self._repository = repository

    def get_repository(self) -> Optional[Repository]:
        return self._repository

    # -- lifecycle --------------------------------------------------------

    def clear(self) -> None:
        """Empty both partitions and the analyzed-file set. Provenance is kept."""
        for entities in self._groups.values():
            entities.clear()
        self._analyzed_files.clear()
        self._emitter.fire()

    def load(self, path: Path) -> bool:
        """Replace the whole model with the snapshot at *path*.

        Returns:
            True on success. False if the snapshot is missing, unreadable or
            malformed; the model is left untouched in that case.
        """
        if not path.exists():
            logger.debug(f"No snapshot at {path}")
            return False

        try:
            state = decode_snapshot(read_text_file(path, errors="strict"))
        except FileAccessError as e:
            logger.warning(f"Cannot read snapshot: {e}")
            return False
        except SnapshotDecodeError as e:
            e.details.setdefault("path", str(path))
            logger.warning(f"Ignoring snapshot: {e}")
            return False

        for partition, entities in self._groups.items():
            entities.clear()
            entities.update(state.groups[partition])
        self._analyzed_files = set(state.analyzed_files)
        self._repository = state.repository

        logger.info(
            f"Loaded snapshot {path} "
            f"({sum(len(e) for e in self._groups.values())} entities, "
            f"{len(self._analyzed_files)} files)"
        )
        self._emitter.fire()
        return True

    def save(self, path: Path) -> None:
        """Write the full model to *path* atomically.

        Raises:
            SnapshotWriteError: If the snapshot cannot be written. Any previous
                snapshot at *path* is left intact.
        """
        atomic_write_text(path, encode_snapshot(self.snapshot_state()))
        logger.debug(f"Saved snapshot {path}")
        self._emitter.fire()

    def snapshot_state(self) -> SnapshotState:
        return SnapshotState(
            groups=self._groups,
            analyzed_files=self._analyzed_files,
            repository=self._repository,
        )

    # -- observers --------------------------------------------------------

    def refresh(self) -> None:
        """Notify observers without changing state."""
        self._emitter.fire()

    def subscribe(self, listener: RefreshListener) -> Callable[[], None]:
        return self._emitter.subscribe(listener)
