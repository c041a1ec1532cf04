"""Analyzer engine: batching, resume, cancellation and auto-annotation."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..cache import CachingDetector, FindingCache
from ..config import AnalysisConfig
from ..detectors import DETECTORS, Detector
from ..exceptions import UserInputError
from ..result import AnalyzeResult
from .annotate import RULES, AutoAnnotateRule, auto_annotate, supported_tags
from .base import AnalysisOutcome, Analyzer, MessageCallback
from .batched import BatchedAnalyzer
from .cancellation import CancellationToken

# Engine variants, each with its own detector and snapshot file
ANALYZERS: dict[str, type[Detector]] = dict(DETECTORS)


def create_analyzer(
    name: str,
    result: AnalyzeResult,
    root: Path,
    config: AnalysisConfig,
    detector: Optional[Detector] = None,
) -> BatchedAnalyzer:
    """Build the engine variant *name* for the workspace at *root*.

    Args:
        name: Key of :data:`ANALYZERS`
        result: Result Model the engine writes into
        root: Workspace root
        config: Workspace configuration
        detector: Use this detector instead of the variant's own

    Raises:
        UserInputError: If *name* is not a known analyzer
    """
    if name not in ANALYZERS:
        raise UserInputError(
            f"Unknown analyzer '{name}'", details={"available": ", ".join(sorted(ANALYZERS))}
        )

    if detector is None:
        detector = ANALYZERS[name](root, max_file_size=config.max_file_size_bytes)
        if config.cache_enabled:
            cache = FindingCache(root / config.cache_dir, ttl_hours=config.cache_ttl_hours)
            detector = CachingDetector(detector, cache)

    return BatchedAnalyzer(result, root, config, detector, name=name)


__all__ = [
    "ANALYZERS",
    "AnalysisOutcome",
    "Analyzer",
    "AutoAnnotateRule",
    "BatchedAnalyzer",
    "CancellationToken",
    "MessageCallback",
    "RULES",
    "auto_annotate",
    "create_analyzer",
    "supported_tags",
]
