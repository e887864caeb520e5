"""Successive Interference Cancellation (SIC) decoding of one frame."""

from __future__ import annotations

import math
from typing import Any, Callable, Sequence

import numpy as np

from ..errors import ConfigurationError, PreconditionError
from ..phy import CollisionModel, default_plr_function
from .frame import FrameWorkspace, UserRealization


def coding_gain(coderate: float, M: int) -> float:
    """Factor converting a SNIR into an Eb/N0: ``1 / (coderate * log2(M))``."""

    return 1.0 / (coderate * math.log2(M))


class CurveDecoding:
    """Probabilistic decoding driven by a PLR curve of Eb/N0.

    A replica is decoded with probability ``1 - plr_func(EbN0)``, where
    ``EbN0 = SNIR * coding_gain``. The framing overhead is not part of
    ``coding_gain``.
    """

    def __init__(self, plr_func: Callable[[float], float], gain: float) -> None:
        self.plr_func = plr_func
        self.coding_gain = gain

    def decodes(self, power: float, slot_power: float, rng: np.random.Generator) -> bool:
        snir = power / (slot_power - power)
        ebno = snir * self.coding_gain
        return rng.random() >= self.plr_func(ebno)

    def __repr__(self) -> str:
        return f"CurveDecoding({getattr(self.plr_func, '__name__', self.plr_func)!s})"


class CollisionDecoding:
    """Deterministic decoding: a replica succeeds iff it is alone in its slot.

    The slot is considered clean when the power left besides the replica
    matches the noise power, as ``math.isclose`` with ``rel_tol`` and
    ``abs_tol``. With the default relative tolerance an interferer weaker than
    ``rel_tol * noise_variance`` goes unnoticed; lower ``rel_tol`` and set a
    small ``abs_tol`` to resolve such powers.
    """

    def __init__(
        self, noise_variance: float, rel_tol: float = 1e-6, abs_tol: float = 0.0
    ) -> None:
        self.noise_variance = noise_variance
        self.rel_tol = rel_tol
        self.abs_tol = abs_tol

    def decodes(self, power: float, slot_power: float, rng: np.random.Generator) -> bool:
        return math.isclose(
            slot_power - power, self.noise_variance, rel_tol=self.rel_tol, abs_tol=self.abs_tol
        )

    def __repr__(self) -> str:
        return "CollisionDecoding()"


def decoding_rule(
    plr_func: Any, *, coderate: float, M: int, noise_variance: float
) -> CurveDecoding | CollisionDecoding:
    """Select the decoding rule matching ``plr_func``.

    ``None`` picks the default curve for ``coderate``; a ``CollisionModel``
    selects the collision rule; any other callable is used as PLR curve.
    """

    if isinstance(plr_func, CollisionModel):
        return CollisionDecoding(noise_variance)
    if plr_func is None:
        plr_func = default_plr_function(coderate)
    if not callable(plr_func):
        raise ConfigurationError(f"plr_func must be callable or CollisionModel(), got {plr_func!r}")
    return CurveDecoding(plr_func, coding_gain(coderate, M))


def process_frame(
    power_matrix: np.ndarray,
    users: Sequence[UserRealization],
    *,
    rule: CurveDecoding | CollisionDecoding,
    noise_variance: float,
    sic_iterations: int,
    rng: np.random.Generator,
    decoded_cap: int | None = None,
    workspace: FrameWorkspace | None = None,
) -> int:
    """Run SIC on one frame and return the number of decoded users.

    ``power_matrix`` holds the power of every user (rows) in every slot
    (columns) and ``users`` the matching realizations. When ``decoded_cap``
    is given the count is clamped to it.
    """

    if len(users) != power_matrix.shape[0]:
        raise PreconditionError(
            f"Mismatch between matrix rows ({power_matrix.shape[0]}) and number "
            f"of users ({len(users)})"
        )
    nusers, nslots = power_matrix.shape
    if workspace is None:
        workspace = FrameWorkspace(
            users[0].max_replicas if users else 1, nslots, capacity=nusers
        )
        workspace.reset(nusers)
    elif workspace.nslots != nslots or workspace.capacity < nusers:
        raise PreconditionError("The workspace does not match the frame geometry")

    decoded = workspace.decoded[:nusers]
    cancelled = workspace.cancelled[:nusers]
    decoded.fill(False)
    cancelled.fill(False)
    changed = workspace.interference_changed
    changed.fill(True)
    slot_powers = workspace.slot_powers
    np.sum(power_matrix, axis=0, out=slot_powers)
    slot_powers += noise_variance

    _decoding_iterations(
        slot_powers,
        decoded,
        cancelled,
        changed,
        [user.replicas() for user in users],
        rule=rule,
        sic_iterations=sic_iterations,
        rng=rng,
    )
    ndecoded = int(np.count_nonzero(decoded))
    if decoded_cap is not None:
        ndecoded = min(ndecoded, decoded_cap)
    return ndecoded


def _decoding_iterations(
    slot_powers: np.ndarray,
    decoded: np.ndarray,
    cancelled: np.ndarray,
    changed: np.ndarray,
    replicas: list[list[tuple[int, float]]],
    *,
    rule: CurveDecoding | CollisionDecoding,
    sic_iterations: int,
    rng: np.random.Generator,
) -> None:
    for _ in range(sic_iterations):
        if decoded.all():
            break
        for u, user_replicas in enumerate(replicas):
            if decoded[u]:
                continue
            for slot, power in user_replicas:
                # SNIR in this slot is unchanged since it was last evaluated
                if not changed[slot - 1]:
                    continue
                if rule.decodes(power, slot_powers[slot - 1], rng):
                    decoded[u] = True
                    break
        changed.fill(False)
        for u, user_replicas in enumerate(replicas):
            if not decoded[u] or cancelled[u]:
                continue
            for slot, power in user_replicas:
                changed[slot - 1] = True
                slot_powers[slot - 1] -= power
            cancelled[u] = True


__all__ = [
    "CollisionDecoding",
    "CurveDecoding",
    "coding_gain",
    "decoding_rule",
    "process_frame",
]
