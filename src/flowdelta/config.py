"""Configuration loading and management for flowdelta.

Configuration sources are merged in priority order:
    1. Defaults (defined in AnalysisConfig)
    2. Global config (~/.flowdelta.toml)
    3. Project config (./flowdelta.toml)
    4. Explicit config file
    5. Environment variables (FLOWDELTA_* prefix)
    6. CLI overrides (passed as kwargs)

Example:
    >>> config = load_config(mutation_threshold=25)
    >>> config.mutation_threshold
    25
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Optional, get_type_hints

from .exceptions import ConfigurationError, InvalidConfigError

Verbosity = Literal["quiet", "normal", "verbose"]


@dataclass(frozen=True)
class AnalysisConfig:
    """Configuration for cluster comparison.

    Attributes:
        Classification:
            mutation_threshold: Percentage used to flag structural mutations
                (problem-period excess of a cluster) and originating clusters
                (share of all problem-period requests).
            dont_enforce_one_to_n: Skip the requirement that every mutation
                has exactly one originator and every originator at least one
                mutation.

        Hypothesis tests:
            significance_level: Alpha used to reject the null hypothesis
            bonferroni_correction: Divide alpha by the number of tests run
            min_effective_samples: Tests whose effective sample size
                n0*n1/(n0+n1) falls below this are recorded as not run

        Reporting:
            large_cluster_min_requests: Clusters with fewer requests than this
                in either period are counted as small in the coverage report

        Performance tuning:
            workers: Parallel workers (None = auto-detect)

        Output control:
            verbosity: Logging verbosity level
    """

    mutation_threshold: float = 50.0
    dont_enforce_one_to_n: bool = False

    significance_level: float = 0.05
    bonferroni_correction: bool = False
    min_effective_samples: float = 4.0

    large_cluster_min_requests: int = 10

    workers: Optional[int] = None

    verbosity: Verbosity = "normal"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not 0.0 <= self.mutation_threshold <= 100.0:
            raise InvalidConfigError(
                "mutation_threshold", self.mutation_threshold, "must be between 0 and 100"
            )
        if not 0.0 < self.significance_level < 1.0:
            raise InvalidConfigError(
                "significance_level", self.significance_level, "must be between 0 and 1"
            )
        if self.min_effective_samples < 0:
            raise InvalidConfigError(
                "min_effective_samples", self.min_effective_samples, "must be non-negative"
            )
        if self.large_cluster_min_requests < 1:
            raise InvalidConfigError(
                "large_cluster_min_requests",
                self.large_cluster_min_requests,
                "must be at least 1",
            )
        if self.workers is not None and self.workers < 1:
            raise InvalidConfigError("workers", self.workers, "must be at least 1")
        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise InvalidConfigError("verbosity", self.verbosity, "must be quiet, normal or verbose")


DEFAULT_CONFIG = AnalysisConfig()


def load_config(config_file: Optional[Path] = None, **overrides) -> AnalysisConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        **overrides: Direct overrides (typically from CLI flags). ``None``
            values are ignored so unset CLI options keep lower-priority values.

    Returns:
        Validated AnalysisConfig instance

    Raises:
        ConfigurationError: If a config file is invalid or missing
    """
    merged: dict = {}

    global_config = Path.home() / ".flowdelta.toml"
    if global_config.exists():
        try:
            merged.update(_load_toml_file(global_config))
        except Exception as e:
            raise ConfigurationError(f"Invalid global config '{global_config}': {e}")

    project_config = Path.cwd() / "flowdelta.toml"
    if project_config.exists():
        try:
            merged.update(_load_toml_file(project_config))
        except Exception as e:
            raise ConfigurationError(f"Invalid project config '{project_config}': {e}")

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        try:
            merged.update(_load_toml_file(config_file))
        except Exception as e:
            raise ConfigurationError(f"Invalid config file '{config_file}': {e}")

    merged.update(_load_env_vars())

    if "verbose" in overrides:
        if overrides["verbose"]:
            overrides["verbosity"] = "verbose"
        del overrides["verbose"]
    if "quiet" in overrides:
        if overrides["quiet"]:
            overrides["verbosity"] = "quiet"
        del overrides["quiet"]

    merged.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return AnalysisConfig(**merged)
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from FLOWDELTA_* environment variables.

    Supported environment variables:
        FLOWDELTA_MUTATION_THRESHOLD: float
        FLOWDELTA_DONT_ENFORCE_ONE_TO_N: bool (true/false/1/0)
        FLOWDELTA_SIGNIFICANCE_LEVEL: float
        FLOWDELTA_BONFERRONI_CORRECTION: bool
        FLOWDELTA_MIN_EFFECTIVE_SAMPLES: float
        FLOWDELTA_LARGE_CLUSTER_MIN_REQUESTS: int
        FLOWDELTA_WORKERS: int
        FLOWDELTA_VERBOSITY: quiet/normal/verbose

    Returns:
        Dict of field_name -> parsed_value for any FLOWDELTA_* vars found.
    """
    type_hints = get_type_hints(AnalysisConfig)

    result: dict[str, Any] = {}

    for field_name in AnalysisConfig.__dataclass_fields__:
        env_key = f"FLOWDELTA_{field_name.upper()}"
        env_value = os.environ.get(env_key)

        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        if type_hint is None:
            continue

        try:
            parsed = _parse_env_value(env_value, type_hint)
            if parsed is not None:
                result[field_name] = parsed
        except ValueError as e:
            raise ConfigurationError(f"Invalid {env_key}: {e}")

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse environment variable string to the correct type.

    Raises:
        ValueError: If value can't be parsed to expected type
    """
    origin = getattr(type_hint, "__origin__", None)

    # Optional[X] is Union[X, None]
    args = getattr(type_hint, "__args__", ())
    if type(None) in args:
        non_none_types = [t for t in args if t is not type(None)]
        if non_none_types:
            type_hint = non_none_types[0]

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        elif lower in ("false", "0", "no", "off"):
            return False
        else:
            raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    if type_hint is str or origin is Literal:
        return value

    return None


def _load_toml_file(path: Path) -> dict:
    """Load TOML file and return parsed dict.

    Raises:
        ConfigurationError: If tomllib/tomli not available
        Exception: If TOML parsing fails
    """
    try:
        import tomllib
    except ModuleNotFoundError:
        try:
            import tomli as tomllib  # type: ignore
        except ImportError:
            raise ConfigurationError(
                "TOML support requires Python 3.11+ or 'tomli' package. "
                "Install with: pip install tomli"
            )

    with open(path, "rb") as f:
        return tomllib.load(f)
