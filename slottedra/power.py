"""Replica power assignment."""

from __future__ import annotations

import math
from enum import Enum
from typing import Any

import numpy as np

from .distributions import sample
from .errors import ConfigurationError


class ReplicaPowerStrategy(Enum):
    """How the power of the replicas of one user in one frame is drawn.

    ``SAME_POWER``: a single sample shared by all replicas.
    ``INDEPENDENT_POWER``: one independent sample per replica.
    """

    SAME_POWER = "same"
    INDEPENDENT_POWER = "independent"

    @classmethod
    def parse(cls, value: "ReplicaPowerStrategy | str") -> "ReplicaPowerStrategy":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        aliases = {
            "same": cls.SAME_POWER,
            "same_power": cls.SAME_POWER,
            "samepower": cls.SAME_POWER,
            "independent": cls.INDEPENDENT_POWER,
            "independent_power": cls.INDEPENDENT_POWER,
            "independentpower": cls.INDEPENDENT_POWER,
        }
        try:
            return aliases[normalized]
        except KeyError as exc:
            raise ConfigurationError(f"Unsupported replica power strategy: {value!r}") from exc


SamePower = ReplicaPowerStrategy.SAME_POWER
IndependentPower = ReplicaPowerStrategy.INDEPENDENT_POWER


def _checked_power(value: float) -> float:
    if not math.isfinite(value) or value < 0:
        raise ConfigurationError(
            f"The power distribution produced an invalid replica power: {value!r}"
        )
    return value


def assign_powers(
    power_strategy: ReplicaPowerStrategy,
    power_dist: Any,
    effective_replicas: int,
    max_replicas: int,
    rng: np.random.Generator,
    out: np.ndarray | None = None,
) -> np.ndarray:
    """Return ``max_replicas`` powers, ``NaN`` past ``effective_replicas``."""

    powers = np.empty(max_replicas, dtype=float) if out is None else out
    powers[:] = math.nan
    if power_strategy is SamePower:
        if effective_replicas > 0:
            powers[:effective_replicas] = _checked_power(sample(power_dist, rng))
    elif power_strategy is IndependentPower:
        for i in range(effective_replicas):
            powers[i] = _checked_power(sample(power_dist, rng))
    else:
        raise ConfigurationError(f"Unsupported replica power strategy: {power_strategy!r}")
    return powers


__all__ = [
    "IndependentPower",
    "ReplicaPowerStrategy",
    "SamePower",
    "assign_powers",
]
