"""Configuration loading for docvalidator (.docvalidator.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".docvalidator.yml"

VALIDATOR_NAMES: Sequence[str] = (
    "coverage",
    "consistency",
    "freshness",
    "best-practices",
    "code-style-compliance",
)

VALIDATOR_ALIASES: Dict[str, str] = {
    "eslint-compliance": "code-style-compliance",
    "best_practices": "best-practices",
    "code-style": "code-style-compliance",
}

DEFAULT_DOCS_DIRS: Sequence[str] = (
    "docs",
    "documentation",
    "doc",
    "src/docs",
    "app/docs",
)

DEFAULT_SOURCE_DIRS: Sequence[str] = (
    "app",
    "pages",
    "components",
    "lib",
    "utils",
    "hooks",
    "src",
)

DEFAULT_MIN_COVERAGE = 70.0


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class FreshnessConfig:
    """Day thresholds for freshness buckets and where related code lives."""

    critical_days: int = 90
    outdated_days: int = 30
    review_days: int = 7
    source_dirs: List[str] = field(default_factory=lambda: list(DEFAULT_SOURCE_DIRS))


@dataclass
class CoverageConfig:
    """Coverage policy."""

    min_percentage: float = DEFAULT_MIN_COVERAGE
    include_empty: bool = True


@dataclass
class ValidatorConfig:
    """Represents the settings defined in .docvalidator.yml."""

    root: Path
    docs_dir: Optional[str] = None
    validators: List[str] = field(default_factory=list)
    exclude_paths: List[str] = field(default_factory=list)
    terminology: Dict[str, str] = field(default_factory=dict)
    freshness: FreshnessConfig = field(default_factory=FreshnessConfig)
    coverage: CoverageConfig = field(default_factory=CoverageConfig)
    skip_external_links: bool = True
    require_language: bool = False


@dataclass
class ValidationOptions:
    """Per-request overrides supplied by a tool call or the CLI."""

    validators: Optional[List[str]] = None
    verbose: bool = False
    skip_external_links: Optional[bool] = None
    require_language: Optional[bool] = None
    include_empty: Optional[bool] = None
    min_coverage_percentage: Optional[float] = None
    docs_dir: Optional[str] = None


@dataclass
class ValidationSettings:
    """Effective settings for a single validation run."""

    validators: List[str]
    verbose: bool = False
    skip_external_links: bool = True
    require_language: bool = False
    include_empty: bool = True
    min_coverage_percentage: float = DEFAULT_MIN_COVERAGE
    docs_dir: Optional[str] = None
    exclude_paths: List[str] = field(default_factory=list)
    terminology: Dict[str, str] = field(default_factory=dict)
    freshness: FreshnessConfig = field(default_factory=FreshnessConfig)


def normalize_validator_name(name: str) -> str:
    """Map aliases such as ``eslint-compliance`` onto canonical validator names."""
    key = name.strip().lower()
    return VALIDATOR_ALIASES.get(key, key)


def load_config(config_path: Path) -> ValidatorConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return ValidatorConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    freshness = FreshnessConfig()
    freshness_data = _as_dict(data.get("freshness"))
    if freshness_data:
        for key in ("critical_days", "outdated_days", "review_days"):
            setattr(freshness, key, _first(_as_int(freshness_data.get(key)), getattr(freshness, key)))
        source_dirs = _as_str_list(freshness_data.get("source_dirs"))
        if source_dirs:
            freshness.source_dirs = source_dirs
    if not freshness.critical_days > freshness.outdated_days > freshness.review_days >= 0:
        raise ConfigError(
            "freshness thresholds must satisfy critical_days > outdated_days > review_days >= 0"
        )

    coverage = CoverageConfig()
    coverage_data = _as_dict(data.get("coverage"))
    if coverage_data:
        minimum = _as_float(coverage_data.get("min_percentage"))
        if minimum is not None:
            if not 0 <= minimum <= 100:
                raise ConfigError("coverage.min_percentage must be between 0 and 100")
            coverage.min_percentage = minimum
        include_empty = _as_bool(coverage_data.get("include_empty"))
        if include_empty is not None:
            coverage.include_empty = include_empty

    validators = [normalize_validator_name(name) for name in _as_str_list(data.get("validators"))]

    terminology: Dict[str, str] = {}
    for term, canonical in _as_dict(data.get("terminology")).items():
        canonical_str = _as_str(canonical)
        if canonical_str:
            terminology[str(term).lower()] = canonical_str

    links_data = _as_dict(data.get("links"))
    skip_external = _as_bool(links_data.get("skip_external")) if links_data else None
    examples_data = _as_dict(data.get("code_examples"))
    require_language = _as_bool(examples_data.get("require_language")) if examples_data else None

    return ValidatorConfig(
        root=root,
        docs_dir=_as_str(data.get("docs_dir")),
        validators=validators,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
        terminology=terminology,
        freshness=freshness,
        coverage=coverage,
        skip_external_links=True if skip_external is None else skip_external,
        require_language=bool(require_language),
    )


def resolve_settings(config: ValidatorConfig, options: ValidationOptions | None = None) -> ValidationSettings:
    """Combine file configuration with request options; options win."""
    options = options or ValidationOptions()

    if options.validators:
        requested = [normalize_validator_name(name) for name in options.validators]
    elif config.validators:
        requested = list(config.validators)
    else:
        requested = list(VALIDATOR_NAMES)
    # Canonical order first; unknown names follow so discovery can reject them.
    validators = [name for name in VALIDATOR_NAMES if name in requested]
    for name in requested:
        if name not in validators:
            validators.append(name)

    return ValidationSettings(
        validators=validators,
        verbose=options.verbose,
        skip_external_links=_first(options.skip_external_links, config.skip_external_links),
        require_language=_first(options.require_language, config.require_language),
        include_empty=_first(options.include_empty, config.coverage.include_empty),
        min_coverage_percentage=_first(
            options.min_coverage_percentage, config.coverage.min_percentage
        ),
        docs_dir=options.docs_dir or config.docs_dir,
        exclude_paths=list(config.exclude_paths),
        terminology=dict(config.terminology),
        freshness=config.freshness,
    )


def _first(value: Any, fallback: Any) -> Any:
    return fallback if value is None else value


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []
