"""Frame generation, SIC decoding and Monte-Carlo driver."""

from .frame import Frame, FrameWorkspace, UserRealization, build_frame, build_user_realization
from .sic import CollisionDecoding, CurveDecoding, coding_gain, decoding_rule, process_frame
from .simulator import (
    DEFAULT_BATCH_SIZE,
    LoadPoint,
    PLRResult,
    PLRSimulation,
    SimulationParameters,
    compute_plr_result,
    default_ntasks,
    extract_plr,
    simulate,
    simulate_frames,
)

__all__ = [
    "CollisionDecoding",
    "CurveDecoding",
    "DEFAULT_BATCH_SIZE",
    "Frame",
    "FrameWorkspace",
    "LoadPoint",
    "PLRResult",
    "PLRSimulation",
    "SimulationParameters",
    "UserRealization",
    "build_frame",
    "build_user_realization",
    "coding_gain",
    "compute_plr_result",
    "decoding_rule",
    "default_ntasks",
    "extract_plr",
    "process_frame",
    "simulate",
    "simulate_frames",
]
