"""Source file discovery for analyzer runs."""

from pathlib import Path

from .config import AnalysisConfig
from .file_ops import should_skip_file
from .logging_config import get_logger

logger = get_logger(__name__)


def discover_files(workspace_root: Path, source_dir: Path, config: AnalysisConfig) -> list[str]:
    """Find the files an analyzer run should scan.

    Include patterns are globbed under *source_dir*; exclude patterns are
    matched against the path relative to *workspace_root*.

    Args:
        workspace_root: Root that file identifiers are relative to
        source_dir: Directory to search (the analyzer's source root)
        config: Patterns, size limit and symlink policy

    Returns:
        Sorted, de-duplicated POSIX paths relative to *workspace_root*
    """
    if not source_dir.is_dir():
        logger.warning(f"Source directory does not exist: {source_dir}")
        return []

    workspace_root = workspace_root.resolve()
    source_dir = source_dir.resolve()
    found: set[str] = set()

    for pattern in config.include_patterns:
        for item in source_dir.glob(pattern):
            if item.is_symlink() and not config.follow_symlinks:
                continue
            if not item.is_file():
                continue

            try:
                relative = item.relative_to(workspace_root).as_posix()
            except ValueError:
                logger.debug(f"Skipping {item}: outside workspace")
                continue

            if should_skip_file(relative, config.exclude_patterns):
                continue

            try:
                size = item.stat().st_size
            except OSError as e:
                logger.debug(f"Cannot stat {item}: {e}")
                continue
            if size > config.max_file_size_bytes:
                logger.info(f"Skipping {relative}: {size} bytes exceeds size limit")
                continue

            found.add(relative)

    logger.debug(f"Discovered {len(found)} files under {source_dir}")
    return sorted(found)
