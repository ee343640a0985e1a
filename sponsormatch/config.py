"""
Matching configuration.

All tunables (factor weights, thresholds, cooldown window, result cap) live on
one MatchingConfig object that is passed into the scorer, filter and ranker.
Defaults reproduce the production weighting.

Approach text similarity is computed for every candidate but carries a
default weight of 0.0, so it only moves the final score once the weights
are re-balanced (for example with_weights(preferences=0.0, approach=0.05)
or SPONSORMATCH_WEIGHT_APPROACH).
"""

import math
import os
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Mapping, Optional

from .env import load_env

RECOVERY_PROGRAM = "recovery_program"
AVAILABILITY = "availability"
LOCATION = "location"
EXPERIENCE_LEVEL = "experience_level"
PREFERENCES = "preferences"
APPROACH = "approach"

FACTORS = (RECOVERY_PROGRAM, AVAILABILITY, LOCATION, EXPERIENCE_LEVEL, PREFERENCES, APPROACH)

DEFAULT_WEIGHTS: Dict[str, float] = {
    RECOVERY_PROGRAM: 0.35,  # same program is critical
    AVAILABILITY: 0.25,
    LOCATION: 0.20,
    EXPERIENCE_LEVEL: 0.15,
    PREFERENCES: 0.05,
    APPROACH: 0.0,
}

EXPERIENCE_FIXED = "fixed"
EXPERIENCE_PROPORTIONAL = "proportional"
EXPERIENCE_STRATEGIES = (EXPERIENCE_FIXED, EXPERIENCE_PROPORTIONAL)

AVAILABILITY_OVERLAP = "overlap"
AVAILABILITY_DAY_COUNT = "day_count"
AVAILABILITY_MODELS = (AVAILABILITY_OVERLAP, AVAILABILITY_DAY_COUNT)

ENV_PREFIX = "SPONSORMATCH_"


class ConfigError(ValueError):
    """Raised when a configuration value is out of range or inconsistent."""
    pass


@dataclass(frozen=True)
class LocationTiers:
    """Mileage gates and the credit each tier earns (0-1)."""

    same_city_miles: float = 10.0
    nearby_miles: float = 100.0
    same_city_credit: float = 1.0
    same_state_credit: float = 0.6
    nearby_credit: float = 0.4


@dataclass(frozen=True)
class MatchingConfig:
    """
    Tunables for one matching deployment.

    Attributes:
        weights: Factor name -> weight. Must cover every factor and sum to 1.0.
        cooldown_days: Days a declined candidate stays hidden.
        min_experience_days: Minimum sponsor tenure for the fixed strategy.
        experience_strategy: "fixed" (365-day minimum) or "proportional"
            (twice the requester's own tenure).
        availability_model: "overlap" (label sets) or "day_count" (single
            frequency label mapped to days per week).
        result_limit: Maximum matches returned per request.
        restrict_to_program: Ask the store for same-program candidates only.
        parallel_fetch: Fetch pool and exclusions concurrently.
        location: Distance tiers for the location factor.
        api_tokens: Accepted bearer tokens. Empty means any token is accepted.
    """

    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    cooldown_days: int = 30
    min_experience_days: int = 365
    experience_strategy: str = EXPERIENCE_FIXED
    availability_model: str = AVAILABILITY_OVERLAP
    result_limit: int = 20
    restrict_to_program: bool = False
    parallel_fetch: bool = True
    location: LocationTiers = field(default_factory=LocationTiers)
    api_tokens: FrozenSet[str] = frozenset()

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        unknown = set(self.weights) - set(FACTORS)
        if unknown:
            raise ConfigError(f"Unknown scoring factors: {', '.join(sorted(unknown))}")
        missing = set(FACTORS) - set(self.weights)
        if missing:
            raise ConfigError(f"Missing weights for: {', '.join(sorted(missing))}")
        if any(w < 0 for w in self.weights.values()):
            raise ConfigError("Weights must be non-negative")
        total = sum(self.weights.values())
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ConfigError(f"Weights must sum to 1.0 (got {total:.6f})")
        if self.cooldown_days < 0:
            raise ConfigError("cooldown_days must be >= 0")
        if self.min_experience_days <= 0:
            raise ConfigError("min_experience_days must be > 0")
        if self.experience_strategy not in EXPERIENCE_STRATEGIES:
            raise ConfigError(f"Unknown experience strategy: {self.experience_strategy}")
        if self.availability_model not in AVAILABILITY_MODELS:
            raise ConfigError(f"Unknown availability model: {self.availability_model}")
        if self.result_limit < 1:
            raise ConfigError("result_limit must be >= 1")
        if not 0 < self.location.same_city_miles <= self.location.nearby_miles:
            raise ConfigError("Location tiers must satisfy 0 < same_city_miles <= nearby_miles")

    def with_weights(self, **overrides: float) -> "MatchingConfig":
        """Return a copy with some weights replaced (validated again)."""
        weights = dict(self.weights)
        weights.update(overrides)
        return replace(self, weights=weights)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MatchingConfig":
        """
        Build configuration from SPONSORMATCH_* environment variables.

        A .env file in the working directory is loaded first when reading
        from os.environ. Weights use SPONSORMATCH_WEIGHT_<FACTOR>.
        """
        if environ is None:
            load_env()
            environ = os.environ

        def get(name: str) -> Optional[str]:
            value = environ.get(ENV_PREFIX + name)
            return value.strip() if value is not None and value.strip() else None

        kwargs = {}
        weights = dict(DEFAULT_WEIGHTS)
        for factor in FACTORS:
            raw = get(f"WEIGHT_{factor.upper()}")
            if raw is not None:
                weights[factor] = _to_float(raw, f"WEIGHT_{factor.upper()}")
        kwargs["weights"] = weights

        for name, attr in (
            ("COOLDOWN_DAYS", "cooldown_days"),
            ("MIN_EXPERIENCE_DAYS", "min_experience_days"),
            ("RESULT_LIMIT", "result_limit"),
        ):
            raw = get(name)
            if raw is not None:
                kwargs[attr] = _to_int(raw, name)

        for name, attr in (
            ("EXPERIENCE_STRATEGY", "experience_strategy"),
            ("AVAILABILITY_MODEL", "availability_model"),
        ):
            raw = get(name)
            if raw is not None:
                kwargs[attr] = raw.lower()

        for name, attr in (
            ("RESTRICT_TO_PROGRAM", "restrict_to_program"),
            ("PARALLEL_FETCH", "parallel_fetch"),
        ):
            raw = get(name)
            if raw is not None:
                kwargs[attr] = raw.lower() in ("1", "true", "yes", "on")

        tokens = get("API_TOKENS")
        if tokens:
            kwargs["api_tokens"] = frozenset(t.strip() for t in tokens.split(",") if t.strip())

        return cls(**kwargs)


def _to_float(raw: str, name: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}")


def _to_int(raw: str, name: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")
