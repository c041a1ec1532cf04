"""
Caching of per-file detector findings.

Uses diskcache for SQLite-based persistent caching. Findings are keyed on
the detector, the file and its modification time and size, so an edited file
is always scanned again.
"""

import hashlib
from pathlib import Path
from typing import Any, Optional

from diskcache import Cache

from .detectors.base import Detector, Finding
from .logging_config import get_logger

logger = get_logger(__name__)


class FindingCache:
    """
    SQLite-based cache for detector findings.

    Every failure of the underlying store is logged and treated as a miss;
    the cache never fails an analysis run.
    """

    def __init__(self, cache_dir: Path, ttl_hours: int = 24, enabled: bool = True):
        """
        Initialize cache.

        Args:
            cache_dir: Directory for cache storage
            ttl_hours: Time-to-live in hours
            enabled: Whether caching is enabled
        """
        self.enabled = enabled
        self.ttl_seconds = ttl_hours * 3600
        self.cache: Optional[Cache] = None

        if self.enabled:
            try:
                self.cache = Cache(str(cache_dir))
                logger.debug(f"Cache initialized at {cache_dir} with TTL={ttl_hours}h")
            except Exception as e:
                logger.warning(f"Cache unavailable at {cache_dir}: {e}")
                self.enabled = False
        else:
            logger.debug("Cache disabled")

    @staticmethod
    def file_key(detector_name: str, root: Path, file_id: str) -> Optional[str]:
        """
        Generate cache key from detector name and file metadata.

        Returns:
            Cache key string, or None if the file cannot be stat'ed
        """
        try:
            stat = (root / file_id).stat()
        except OSError:
            return None
        key_data = f"{detector_name}:{file_id}:{stat.st_mtime_ns}:{stat.st_size}"
        return hashlib.sha256(key_data.encode()).hexdigest()

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled or self.cache is None:
            return None

        try:
            value = self.cache.get(key)
            if value is not None:
                logger.debug(f"Cache hit: {key[:16]}...")
            return value
        except Exception as e:
            logger.warning(f"Cache get failed: {e}")
            return None

    def set(self, key: str, value: Any) -> None:
        if not self.enabled or self.cache is None:
            return

        try:
            self.cache.set(key, value, expire=self.ttl_seconds or None)
        except Exception as e:
            logger.warning(f"Cache set failed: {e}")

    def clear(self) -> None:
        """Clear all cache entries."""
        if not self.enabled or self.cache is None:
            return

        try:
            self.cache.clear()
            logger.info("Cache cleared")
        except Exception as e:
            logger.warning(f"Cache clear failed: {e}")

    def stats(self) -> dict:
        if not self.enabled or self.cache is None:
            return {"enabled": False}

        try:
            return {
                "enabled": True,
                "size": len(self.cache),
                "directory": self.cache.directory,
                "volume": self.cache.volume(),
            }
        except Exception as e:
            logger.warning(f"Cache stats failed: {e}")
            return {"enabled": True, "error": str(e)}

    def close(self) -> None:
        """Close cache (cleanup)."""
        if self.cache is not None:
            self.cache.close()


class CachingDetector(Detector):
    """Wraps a detector so unchanged files are answered from the cache."""

    def __init__(self, detector: Detector, cache: FindingCache):
        super().__init__(detector.root, detector.max_file_size)
        self.detector = detector
        self.cache = cache
        self.name = detector.name

    def detect_file(self, file_id: str) -> list[Finding]:
        key = FindingCache.file_key(self.name, self.root, file_id)
        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return list(cached)

        findings = self.detector.detect_file(file_id)
        if key is not None:
            self.cache.set(key, tuple(findings))
        return findings

    def close(self) -> None:
        self.detector.close()
        self.cache.close()
