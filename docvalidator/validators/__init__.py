"""Validator implementations and lookup by name."""

from __future__ import annotations

from typing import Callable, List, Sequence, Set

from ..config import normalize_validator_name
from .base import ValidationContext, Validator
from .best_practices import BestPracticesValidator
from .code_style import CodeStyleValidator
from .consistency import ConsistencyValidator
from .coverage import CoverageValidator
from .freshness import FreshnessValidator

_FACTORIES: dict[str, Callable[[], Validator]] = {
    "coverage": CoverageValidator,
    "consistency": ConsistencyValidator,
    "freshness": FreshnessValidator,
    "best-practices": BestPracticesValidator,
    "code-style-compliance": CodeStyleValidator,
}


def available_validators() -> List[str]:
    """Canonical names of the built-in validators."""
    return list(_FACTORIES)


def discover_validators(enabled: Sequence[str] | None = None) -> List[Validator]:
    """Return instantiated validators in the order requested."""

    names = [normalize_validator_name(name) for name in enabled] if enabled is not None else list(_FACTORIES)
    missing = sorted({name for name in names if name not in _FACTORIES})
    if missing:
        raise ValueError(f"Unknown validators requested: {', '.join(missing)}")

    validators: List[Validator] = []
    seen: Set[str] = set()
    for name in names:
        if name in seen:
            continue
        validators.append(_FACTORIES[name]())
        seen.add(name)
    return validators


__all__ = [
    "BestPracticesValidator",
    "CodeStyleValidator",
    "ConsistencyValidator",
    "CoverageValidator",
    "FreshnessValidator",
    "ValidationContext",
    "Validator",
    "available_validators",
    "discover_validators",
]
