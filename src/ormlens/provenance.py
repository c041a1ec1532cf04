"""Version-control provenance for fresh analysis runs."""

import subprocess
from pathlib import Path
from typing import Optional

from .logging_config import get_logger
from .model import Repository

logger = get_logger(__name__)

GIT_TIMEOUT_SECONDS = 5


def detect_repository(root: Path) -> Repository:
    """Capture the remote URL and HEAD commit of the repository at *root*.

    Never fails: outside a repository, without a remote, or without git
    installed, the missing values are empty strings.
    """
    url = _git(root, "config", "--get", "remote.origin.url") or ""
    commit_hash = _git(root, "rev-parse", "HEAD") or ""
    if not commit_hash:
        logger.debug(f"No git commit found for {root}")
    return Repository(url=url, commit_hash=commit_hash)


def _git(root: Path, *args: str) -> Optional[str]:
    try:
        result = subprocess.run(
            ["git", "-C", str(root), *args],
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT_SECONDS,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as e:
        logger.debug(f"git {args[0]} failed in {root}: {e}")
    return None
