"""Number of contending users per random-access frame."""

from __future__ import annotations

import numpy as np


def mean_users_per_frame(
    user_slots: int, load: float, coding_gain: float, overhead: float = 0.0
) -> float:
    """Return the average number of users offered to one frame.

    ``load`` is the normalized load in bits/symbol. ``coding_gain`` converts it
    to packets/slot and ``overhead`` inflates it to account for guard bands
    and pilots that consume resources without carrying information.
    """

    return user_slots * load * coding_gain * (1.0 + overhead)


def sample_user_count(mean_users: float, poisson: bool, rng: np.random.Generator) -> int:
    """Draw the number of users for one frame.

    With ``poisson`` the count is a Poisson variate of mean ``mean_users``,
    otherwise every frame carries ``round(mean_users)`` users.
    """

    if poisson:
        return int(rng.poisson(mean_users))
    return int(round(mean_users))


__all__ = ["mean_users_per_frame", "sample_user_count"]
