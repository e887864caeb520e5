"""Power distributions used to draw the received power of packet replicas."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import numpy as np

from .errors import ConfigurationError


@dataclass(frozen=True)
class Dirac:
    """Point mass: every sample equals ``value``."""

    value: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", float(self.value))
        if not math.isfinite(self.value) or self.value < 0:
            raise ConfigurationError("Dirac power must be a finite, non-negative number")

    def sample(self, rng: np.random.Generator) -> float:
        return self.value


@dataclass(frozen=True)
class LogUniformDB:
    """Distribution whose pdf is uniform in dB between ``min_db`` and ``max_db``.

    Samples are returned in linear units.
    """

    min_db: float
    max_db: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "min_db", float(self.min_db))
        object.__setattr__(self, "max_db", float(self.max_db))
        if self.max_db < self.min_db:
            raise ConfigurationError("max_db must be greater or equal than min_db")

    @property
    def low(self) -> float:
        return 10 ** (self.min_db / 10)

    @property
    def high(self) -> float:
        return 10 ** (self.max_db / 10)

    def sample(self, rng: np.random.Generator) -> float:
        return 10 ** (rng.uniform(self.min_db, self.max_db) / 10)


@dataclass(frozen=True)
class Poisson:
    """Poisson distribution of mean ``mean``."""

    mean: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "mean", float(self.mean))
        if not math.isfinite(self.mean) or self.mean < 0:
            raise ConfigurationError("Poisson mean must be a finite, non-negative number")

    def sample(self, rng: np.random.Generator) -> float:
        return float(rng.poisson(self.mean))


def sample(dist: Any, rng: np.random.Generator) -> float:
    """Draw one sample from ``dist`` using ``rng``.

    ``dist`` can be one of the distributions of this module (or any object
    exposing ``sample(rng)``), a scipy-like frozen distribution exposing
    ``rvs(random_state=...)``, or a plain callable taking the generator.
    """

    if hasattr(dist, "sample"):
        return float(dist.sample(rng))
    if hasattr(dist, "rvs"):
        return float(dist.rvs(random_state=rng))
    if callable(dist):
        return float(dist(rng))
    raise ConfigurationError(f"Unsupported power distribution: {dist!r}")


def check_distribution(dist: Any) -> Any:
    """Return ``dist`` if it can be sampled, raise ``ConfigurationError`` otherwise."""

    if hasattr(dist, "sample") or hasattr(dist, "rvs") or callable(dist):
        return dist
    if isinstance(dist, (int, float)) and not isinstance(dist, bool):
        # Bare numbers are accepted as point masses
        return Dirac(dist)
    raise ConfigurationError(f"Unsupported power distribution: {dist!r}")


__all__ = ["Dirac", "LogUniformDB", "Poisson", "check_distribution", "sample"]
