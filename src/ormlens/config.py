"""Configuration loading and management for ormlens.

Configuration sources are merged in priority order (lowest to highest):
    1. Defaults (defined in AnalysisConfig)
    2. Global config (~/.ormlens.toml)
    3. ``[tool.ormlens]`` table of the workspace ``pyproject.toml``
    4. Workspace config (<root>/ormlens.toml)
    5. Explicit config file
    6. Environment variables (ORMLENS_* prefix)
    7. Keyword overrides (typically CLI flags)

Example:
    >>> config = load_config(batch_size=10)
    >>> config.batch_size
    10
    >>> config.analyzer
    'sqlalchemy'
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional, get_type_hints

from .exceptions import ConfigurationError, InvalidConfigError

Verbosity = Literal["quiet", "normal", "verbose"]

CONFIG_FILE_NAME = "ormlens.toml"
ENV_PREFIX = "ORMLENS_"


@dataclass(frozen=True)
class AnalysisConfig:
    """Configuration for one workspace.

    Attributes:
        Analyzer selection:
            analyzer: Engine variant name (``sqlalchemy`` or ``django``)
            source_root: Directory, relative to the workspace root, that the
                engine variant scans. Empty means the workspace root.

        File discovery:
            include_patterns: Glob patterns selecting source files
            exclude_patterns: Glob patterns removing files from the selection
            max_file_size_mb: Files above this size are not scanned
            follow_symlinks: Follow symbolic links during discovery

        Batching:
            batch_size: Number of files handed to the detector per batch

        Storage:
            snapshot_dir: Workspace-relative directory holding snapshots

        Caching:
            cache_enabled: Cache per-file detector findings on disk
            cache_dir: Workspace-relative cache directory
            cache_ttl_hours: Cache time-to-live in hours

        Output control:
            verbosity: Logging verbosity level
    """

    # Analyzer selection
    analyzer: str = "sqlalchemy"
    source_root: str = ""

    # File discovery
    include_patterns: list[str] = field(default_factory=lambda: ["**/*.py"])
    exclude_patterns: list[str] = field(
        default_factory=lambda: [
            ".git/*",
            ".hg/*",
            "venv/*",
            ".venv/*",
            "env/*",
            "node_modules/*",
            "__pycache__/*",
            "build/*",
            "dist/*",
            ".tox/*",
            ".nox/*",
            ".mypy_cache/*",
            ".pytest_cache/*",
            ".ruff_cache/*",
            "*.egg-info/*",
            ".eggs/*",
            ".ormlens/*",
        ]
    )
    max_file_size_mb: float = 5.0
    follow_symlinks: bool = False

    # Batching
    batch_size: int = 50

    # Storage
    snapshot_dir: str = ".ormlens"

    # Caching
    cache_enabled: bool = True
    cache_dir: str = ".ormlens/cache"
    cache_ttl_hours: int = 24

    # Output control
    verbosity: Verbosity = "normal"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if isinstance(self.batch_size, bool) or not isinstance(self.batch_size, int):
            raise InvalidConfigError("batch_size", self.batch_size, "must be an integer")
        if self.batch_size < 1:
            raise InvalidConfigError("batch_size", self.batch_size, "must be a positive integer")
        if not self.include_patterns:
            raise InvalidConfigError(
                "include_patterns", self.include_patterns, "at least one pattern is required"
            )
        if self.max_file_size_mb <= 0:
            raise InvalidConfigError("max_file_size_mb", self.max_file_size_mb, "must be positive")
        if self.cache_ttl_hours < 0:
            raise InvalidConfigError(
                "cache_ttl_hours", self.cache_ttl_hours, "must be non-negative"
            )
        if not self.snapshot_dir:
            raise InvalidConfigError("snapshot_dir", self.snapshot_dir, "must not be empty")
        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise InvalidConfigError(
                "verbosity", self.verbosity, "expected quiet, normal or verbose"
            )
        if Path(self.source_root).is_absolute() or ".." in Path(self.source_root).parts:
            raise InvalidConfigError(
                "source_root", self.source_root, "must be relative to the workspace root"
            )

    @property
    def max_file_size_bytes(self) -> int:
        """Get max file size in bytes."""
        return int(self.max_file_size_mb * 1024 * 1024)

    @property
    def cache_ttl_seconds(self) -> int:
        """Get cache TTL in seconds."""
        return self.cache_ttl_hours * 3600


def load_config(
    root: Optional[Path] = None, config_file: Optional[Path] = None, **overrides
) -> AnalysisConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        root: Workspace root used to find ``pyproject.toml`` and
              ``ormlens.toml`` (default: current directory)
        config_file: Optional explicit config file path
        **overrides: Direct overrides; ``None`` values are ignored so CLI
                     options can be passed through unconditionally

    Returns:
        Validated AnalysisConfig instance

    Raises:
        ConfigurationError: If a config file is invalid or missing
        InvalidConfigError: If a merged value fails validation
    """
    workspace = Path(root) if root is not None else Path.cwd()
    merged: dict = {}

    global_config = Path.home() / f".{CONFIG_FILE_NAME}"
    if global_config.exists():
        merged.update(_read_config_file(global_config))

    pyproject = workspace / "pyproject.toml"
    if pyproject.exists():
        table = _read_config_file(pyproject).get("tool", {}).get("ormlens", {})
        if not isinstance(table, dict):
            raise ConfigurationError(f"Invalid [tool.ormlens] table in '{pyproject}'")
        merged.update(table)

    project_config = workspace / CONFIG_FILE_NAME
    if project_config.exists():
        merged.update(_read_config_file(project_config))

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        merged.update(_read_config_file(config_file))

    merged.update(_load_env_vars())

    if overrides.pop("verbose", False):
        overrides["verbosity"] = "verbose"
    if overrides.pop("quiet", False):
        overrides["verbosity"] = "quiet"
    merged.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return AnalysisConfig(**merged)
    except TypeError as e:
        # Unknown field in config
        raise ConfigurationError(f"Invalid configuration: {e}")


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from ORMLENS_* environment variables.

    List fields accept comma-separated values, e.g.
    ``ORMLENS_INCLUDE_PATTERNS="app/**/*.py,lib/**/*.py"``.
    """
    type_hints = get_type_hints(AnalysisConfig)
    result: dict[str, Any] = {}

    for field_name in AnalysisConfig.__dataclass_fields__:
        env_key = f"{ENV_PREFIX}{field_name.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        if type_hint is None:
            continue

        try:
            parsed = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            raise InvalidConfigError(field_name, env_value, f"{env_key}: {e}")
        if parsed is not None:
            result[field_name] = parsed

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse an environment variable string to the field's type."""
    origin = getattr(type_hint, "__origin__", None)

    if origin is list:
        return [part.strip() for part in value.split(",") if part.strip()]

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        elif lower in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    # String (including Literal types like Verbosity)
    if type_hint is str or origin is Literal:
        return value

    return None


def _read_config_file(path: Path) -> dict:
    """Read a TOML file, wrapping parse errors in ConfigurationError."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Invalid config file '{path}': {e}")
