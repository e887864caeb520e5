"""Random stream helpers built on numpy ``Generator`` objects."""

from __future__ import annotations

import numpy as np


def create_generator(seed: int | np.random.SeedSequence | None = None) -> np.random.Generator:
    """Return a Generator backed by MT19937."""

    return np.random.Generator(np.random.MT19937(seed))


def spawn_generators(
    seed: int | np.random.SeedSequence | None, count: int
) -> list[np.random.Generator]:
    """Return ``count`` statistically independent generators derived from ``seed``.

    Each worker of a parallel run owns one of them, so no stream state is ever
    shared between processes.
    """

    if count < 0:
        raise ValueError("count must be non-negative")
    root = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    return [create_generator(child) for child in root.spawn(count)]


__all__ = ["create_generator", "spawn_generators"]
