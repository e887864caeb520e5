"""Traffic and random stream helpers shared by the simulators."""

from .arrivals import mean_users_per_frame, sample_user_count
from .rng import create_generator, spawn_generators

__all__ = [
    "create_generator",
    "mean_users_per_frame",
    "sample_user_count",
    "spawn_generators",
]
