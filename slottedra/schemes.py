"""Slotted random-access schemes and their replica placement policies."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Callable, Sequence

import numpy as np

from .errors import ConfigurationError, PreconditionError

# Slot index used for replica entries that are not transmitted.
EMPTY_SLOT = 0

TimeSlotsFunction = Callable[[np.random.Generator], Sequence[int]]


def _positive_int(name: str, value: object) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, not bool")
    try:
        as_float = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be an integer") from exc
    if not as_float.is_integer() or as_float < 1:
        raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
    return int(as_float)


def _require_nslots(nslots: int | None) -> int:
    if nslots is None:
        raise PreconditionError("The frame size of a slot based scheme is not known")
    return nslots


class SlottedRAScheme(abc.ABC):
    """Interface shared by every slotted random-access scheme.

    ``max_replicas`` is fixed per instance: replica tables and decoder
    buffers are sized from it.
    """

    max_replicas: int

    #: Whether the frame size must be given by the user (``nslots``).
    requires_nslots: bool = True

    @abc.abstractmethod
    def replica_slots(
        self, nslots: int, rng: np.random.Generator, out: np.ndarray | None = None
    ) -> np.ndarray:
        """Return ``max_replicas`` slot indices (1-based) for one user.

        Entries past the effective number of replicas hold ``EMPTY_SLOT``.
        """

    def check_nslots(self, nslots: int | None) -> int | None:
        """Validate the user supplied frame size for this scheme."""

        if nslots is None:
            raise ConfigurationError(
                f"`nslots` is mandatory for the {type(self).__name__} scheme"
            )
        nslots = _positive_int("nslots", nslots)
        if self.max_replicas > nslots:
            raise ConfigurationError(
                f"The number of replicas ({self.max_replicas}) cannot exceed the "
                f"number of slots ({nslots})"
            )
        return nslots

    def ra_slots(self, nslots: int | None) -> int:
        """Number of slots replicas are drawn from."""

        return _require_nslots(nslots)

    def user_slots(self, nslots: int | None) -> int:
        """Number of slots used to normalize the offered load."""

        return _require_nslots(nslots)

    def decoded_cap(self) -> int | None:
        """Maximum number of users that can be served per frame, if any."""

        return None

    def _output(self, out: np.ndarray | None) -> np.ndarray:
        if out is None:
            return np.zeros(self.max_replicas, dtype=np.int64)
        out[:] = EMPTY_SLOT
        return out


@dataclass(frozen=True)
class CRDSA(SlottedRAScheme):
    """Contention Resolution Diversity Slotted ALOHA with ``max_replicas`` replicas.

    Replicas of a user are sent in distinct slots drawn uniformly over the
    whole frame (https://doi.org/10.1109/TWC.2007.348337).
    """

    max_replicas: int = 2

    def __post_init__(self) -> None:
        object.__setattr__(self, "max_replicas", _positive_int("max_replicas", self.max_replicas))

    def replica_slots(self, nslots, rng, out=None):
        slots = self._output(out)
        chosen: list[int] = []
        for i in range(self.max_replicas):
            value = int(rng.integers(1, nslots + 1))
            while value in chosen:
                value = int(rng.integers(1, nslots + 1))
            chosen.append(value)
            slots[i] = value
        return slots


@dataclass(frozen=True)
class SlottedALOHA(CRDSA):
    """Plain Slotted ALOHA: CRDSA with a single replica."""

    max_replicas: int = 1

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.max_replicas != 1:
            raise ConfigurationError("SlottedALOHA sends exactly one replica")


@dataclass(frozen=True)
class FirstBlocks:
    """Default MF-CRDSA policy: replica ``i`` goes to time block ``i``."""

    count: int

    def __call__(self, rng: np.random.Generator) -> Sequence[int]:
        return tuple(range(1, self.count + 1))


@dataclass(frozen=True)
class MF_CRDSA(SlottedRAScheme):
    """Multi-Frequency CRDSA (https://doi.org/10.1109/TCOMM.2017.2696952).

    The frame is split into ``n_time_slots`` contiguous blocks of equal size.
    ``time_slots_function(rng)`` returns the ``max_replicas`` distinct blocks
    (1-based) used by a user; each replica then lands on a uniformly random
    slot of its block. By default replicas use blocks ``1..max_replicas``.
    """

    max_replicas: int = 2
    n_time_slots: int | None = None
    time_slots_function: TimeSlotsFunction | None = None

    def __post_init__(self) -> None:
        n = _positive_int("max_replicas", self.max_replicas)
        object.__setattr__(self, "max_replicas", n)
        n_time_slots = n if self.n_time_slots is None else self.n_time_slots
        n_time_slots = _positive_int("n_time_slots", n_time_slots)
        if n > n_time_slots:
            raise ConfigurationError(
                f"The number of replicas ({n}) cannot be greater than the number "
                f"of time slots ({n_time_slots})"
            )
        object.__setattr__(self, "n_time_slots", n_time_slots)
        if self.time_slots_function is None:
            object.__setattr__(self, "time_slots_function", FirstBlocks(n))
        elif not callable(self.time_slots_function):
            raise ConfigurationError("time_slots_function must be callable")

    def check_nslots(self, nslots):
        nslots = super().check_nslots(nslots)
        self.block_size(nslots)
        return nslots

    def block_size(self, nslots: int) -> int:
        """Number of slots in each time block."""

        if nslots % self.n_time_slots != 0:
            raise ConfigurationError(
                f"The number of total slots ({nslots}) must be a multiple of the "
                f"number of time slots ({self.n_time_slots})"
            )
        return nslots // self.n_time_slots

    def time_slots(self, rng: np.random.Generator) -> tuple[int, ...]:
        """Draw the time blocks of one user and check their validity."""

        blocks = tuple(int(b) for b in self.time_slots_function(rng))
        if len(blocks) != self.max_replicas:
            raise ConfigurationError(
                f"time_slots_function returned {len(blocks)} blocks, "
                f"expected {self.max_replicas}"
            )
        if len(set(blocks)) != len(blocks):
            raise ConfigurationError(f"time_slots_function returned repeated blocks: {blocks}")
        if min(blocks) < 1 or max(blocks) > self.n_time_slots:
            raise ConfigurationError(
                f"time_slots_function returned blocks outside [1, {self.n_time_slots}]: {blocks}"
            )
        return blocks

    def replica_slots(self, nslots, rng, out=None):
        size = self.block_size(nslots)
        slots = self._output(out)
        for i, block in enumerate(self.time_slots(rng)):
            slots[i] = int(rng.integers(1, size + 1)) + (block - 1) * size
        return slots


@dataclass(frozen=True)
class RA4Step(SlottedRAScheme):
    """4-step random access: a msg1 contention followed by reserved msg3 resources.

    Users pick a single msg1 opportunity among ``msg1_occasions * freq_slots``
    virtual slots (Slotted ALOHA). With ``limit_packets`` at most
    ``msg3_occasions * freq_slots`` decoded users can be served per frame.
    The frame size is derived from these parameters and must not be given.
    """

    msg1_occasions: int = 1
    msg3_occasions: int = 1
    freq_slots: int = 1
    limit_packets: bool = True

    max_replicas = 1
    requires_nslots = False

    def __post_init__(self) -> None:
        for name in ("msg1_occasions", "msg3_occasions", "freq_slots"):
            object.__setattr__(self, name, _positive_int(name, getattr(self, name)))
        object.__setattr__(self, "limit_packets", bool(self.limit_packets))

    @property
    def msg1_slots(self) -> int:
        return self.msg1_occasions * self.freq_slots

    @property
    def msg3_slots(self) -> int:
        return self.msg3_occasions * self.freq_slots

    def check_nslots(self, nslots):
        if nslots is not None:
            raise ConfigurationError(
                "`nslots` must not be provided for the RA4Step scheme, it is "
                "derived from msg1_occasions and freq_slots"
            )
        return None

    def ra_slots(self, nslots=None):
        return self.msg1_slots

    def user_slots(self, nslots=None):
        return self.msg3_slots

    def decoded_cap(self):
        return self.msg3_slots if self.limit_packets else None

    def replica_slots(self, nslots, rng, out=None):
        if nslots != self.msg1_slots:
            raise PreconditionError(
                f"RA4Step replicas are drawn over {self.msg1_slots} virtual msg1 "
                f"slots, got nslots={nslots}"
            )
        slots = self._output(out)
        slots[0] = int(rng.integers(1, nslots + 1))
        return slots


__all__ = [
    "CRDSA",
    "EMPTY_SLOT",
    "FirstBlocks",
    "MF_CRDSA",
    "RA4Step",
    "SlottedALOHA",
    "SlottedRAScheme",
]
