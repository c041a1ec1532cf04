"""
File operations for ormlens.

Provides size-limited reads, atomic snapshot writes and exclude-pattern
matching.
"""

import os
import tempfile
from fnmatch import fnmatch
from pathlib import Path, PurePosixPath
from typing import Optional

from .exceptions import FileAccessError, SnapshotWriteError


def read_text_file(
    filepath: Path,
    max_bytes: Optional[int] = None,
    encoding: str = "utf-8",
    errors: str = "replace",
) -> str:
    """
    Read a text file, wrapping every failure in FileAccessError.

    Args:
        filepath: File to read
        max_bytes: Refuse files larger than this many bytes
        encoding: Text encoding
        errors: How to handle encoding errors

    Returns:
        File contents as string

    Raises:
        FileAccessError: If the file is missing, too large or unreadable
    """
    try:
        if max_bytes is not None:
            size = filepath.stat().st_size
            if size > max_bytes:
                raise FileAccessError(filepath, f"File too large ({size} bytes)")
        with open(filepath, encoding=encoding, errors=errors) as f:
            return f.read()
    except FileNotFoundError:
        raise FileAccessError(filepath, "File not found")
    except UnicodeDecodeError as e:
        raise FileAccessError(filepath, f"Cannot decode as {encoding}: {e.reason}")
    except OSError as e:
        raise FileAccessError(filepath, f"OS error: {e}")


def atomic_write_text(filepath: Path, content: str, encoding: str = "utf-8") -> None:
    """
    Write *content* so that readers see either the old or the new file.

    The data goes to a temporary file in the target directory which then
    replaces the target. The parent directory is created if needed.

    Raises:
        SnapshotWriteError: If the file cannot be written
    """
    temp_path: Optional[Path] = None
    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding=encoding,
            prefix=f".{filepath.name}.",
            suffix=".tmp",
            dir=filepath.parent,
            delete=False,
        ) as f:
            temp_path = Path(f.name)
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        # replace() overwrites existing files on all platforms
        temp_path.replace(filepath)
    except OSError as e:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink(missing_ok=True)
        raise SnapshotWriteError(filepath, str(e))


def should_skip_file(relative_path: str, exclude_patterns: list[str]) -> bool:
    """
    Check if a workspace-relative path matches any exclusion pattern.

    A pattern matches the path itself, or any trailing part of it, so
    ``venv/*`` excludes both ``venv/x.py`` and ``app/venv/lib/x.py``.

    Args:
        relative_path: POSIX-style path relative to the workspace root
        exclude_patterns: List of glob patterns to exclude

    Returns:
        True if file should be skipped
    """
    path = PurePosixPath(relative_path)
    parts = path.parts
    for pattern in exclude_patterns:
        if path.match(pattern):
            return True
        for start in range(len(parts)):
            if fnmatch("/".join(parts[start:]), pattern):
                return True
    return False
