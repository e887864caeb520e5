"""Per-user replica realizations and frame power matrices."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

from ..errors import PreconditionError
from ..power import ReplicaPowerStrategy, assign_powers
from ..schemes import EMPTY_SLOT, SlottedRAScheme


@dataclass(frozen=True)
class UserRealization:
    """Slots and powers of the replicas sent by one user in one frame.

    Both arrays have ``max_replicas`` entries. Entries past the effective
    number of replicas carry ``EMPTY_SLOT`` as slot and ``NaN`` as power and
    are never decodable.
    """

    slots: np.ndarray
    powers: np.ndarray

    @property
    def max_replicas(self) -> int:
        return len(self.slots)

    @property
    def n_replicas(self) -> int:
        return int(np.count_nonzero(self.slots != EMPTY_SLOT))

    def replicas(self) -> list[tuple[int, float]]:
        """Return the ``(slot, power)`` pairs of the transmitted replicas."""

        return [
            (slot, power)
            for slot, power in zip(self.slots.tolist(), self.powers.tolist())
            if slot != EMPTY_SLOT
        ]


def build_user_realization(
    scheme: SlottedRAScheme,
    nslots: int,
    *,
    power_dist: Any,
    power_strategy: ReplicaPowerStrategy,
    rng: np.random.Generator,
    slots_out: np.ndarray | None = None,
    powers_out: np.ndarray | None = None,
) -> UserRealization:
    """Draw the replica slots of one user and the matching powers."""

    slots = scheme.replica_slots(nslots, rng, out=slots_out)
    effective = int(np.count_nonzero(slots != EMPTY_SLOT))
    powers = assign_powers(
        power_strategy, power_dist, effective, scheme.max_replicas, rng, out=powers_out
    )
    return UserRealization(slots, powers)


class FrameWorkspace:
    """Scratch buffers reused by one worker across the frames it simulates.

    The buffers grow when a frame carries more users than any previous one and
    are otherwise only reset, never reallocated.
    """

    def __init__(self, max_replicas: int, nslots: int, capacity: int = 16) -> None:
        self.max_replicas = max_replicas
        self.nslots = nslots
        self.capacity = 0
        self.slot_powers = np.zeros(nslots, dtype=float)
        self.interference_changed = np.ones(nslots, dtype=bool)
        self._allocate(max(1, capacity))

    def _allocate(self, capacity: int) -> None:
        self.capacity = capacity
        self.power_matrix = np.zeros((capacity, self.nslots), dtype=float)
        self.replica_slots = np.zeros((capacity, self.max_replicas), dtype=np.int64)
        self.replica_powers = np.full((capacity, self.max_replicas), np.nan)
        self.decoded = np.zeros(capacity, dtype=bool)
        self.cancelled = np.zeros(capacity, dtype=bool)

    def reset(self, nusers: int) -> None:
        """Prepare the buffers for a frame with ``nusers`` users."""

        if nusers > self.capacity:
            capacity = self.capacity
            while capacity < nusers:
                capacity *= 2
            self._allocate(capacity)
        self.power_matrix[:nusers].fill(0.0)
        self.decoded[:nusers] = False
        self.cancelled[:nusers] = False
        self.interference_changed.fill(True)
        self.slot_powers.fill(0.0)

    def matrix(self, nusers: int) -> np.ndarray:
        return self.power_matrix[:nusers]


@dataclass
class Frame:
    """A contention frame: ``users x slots`` power matrix and its realizations."""

    power_matrix: np.ndarray
    users: list[UserRealization]

    @property
    def nusers(self) -> int:
        return len(self.users)

    @property
    def nslots(self) -> int:
        return self.power_matrix.shape[1]


def allocate_users(power_matrix: np.ndarray, users: list[UserRealization]) -> np.ndarray:
    """Write the power of every active replica at ``(user, slot)``."""

    for u, user in enumerate(users):
        for slot, power in user.replicas():
            power_matrix[u, slot - 1] = power
    return power_matrix


def build_frame(
    scheme: SlottedRAScheme,
    power_strategy: ReplicaPowerStrategy,
    power_dist: Any,
    nusers: int,
    nslots: int,
    rng: np.random.Generator,
    workspace: FrameWorkspace | None = None,
) -> Frame:
    """Instantiate ``nusers`` users over ``nslots`` slots.

    Without ``workspace`` fresh arrays are allocated; with it, the frame
    matrix and the replica tables are views on the worker buffers and are
    only valid until the next ``workspace.reset``.
    """

    if workspace is None:
        workspace = FrameWorkspace(scheme.max_replicas, nslots, capacity=nusers)
    elif workspace.nslots != nslots or workspace.max_replicas != scheme.max_replicas:
        raise PreconditionError("The workspace does not match the frame geometry")
    workspace.reset(nusers)
    users = [
        build_user_realization(
            scheme,
            nslots,
            power_dist=power_dist,
            power_strategy=power_strategy,
            rng=rng,
            slots_out=workspace.replica_slots[u],
            powers_out=workspace.replica_powers[u],
        )
        for u in range(nusers)
    ]
    power_matrix = allocate_users(workspace.matrix(nusers), users)
    return Frame(power_matrix, users)


__all__ = [
    "Frame",
    "FrameWorkspace",
    "UserRealization",
    "allocate_users",
    "build_frame",
    "build_user_realization",
]
