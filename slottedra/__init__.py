"""Monte-Carlo packet loss ratio of slotted random-access schemes."""

from .distributions import Dirac, LogUniformDB, Poisson
from .errors import ConfigurationError, PreconditionError, UnsimulatedResultWarning
from .launcher import (
    LoadPoint,
    PLRResult,
    PLRSimulation,
    SimulationParameters,
    compute_plr_result,
    extract_plr,
    simulate,
)
from .phy import CollisionModel, GeneralizedLogistic, db2lin, default_plr_function, lin2db
from .power import IndependentPower, ReplicaPowerStrategy, SamePower
from .schemes import CRDSA, MF_CRDSA, RA4Step, SlottedALOHA, SlottedRAScheme

__version__ = "0.1.0"

__all__ = [
    "CRDSA",
    "CollisionModel",
    "ConfigurationError",
    "Dirac",
    "GeneralizedLogistic",
    "IndependentPower",
    "LoadPoint",
    "LogUniformDB",
    "MF_CRDSA",
    "PLRResult",
    "PLRSimulation",
    "Poisson",
    "PreconditionError",
    "RA4Step",
    "ReplicaPowerStrategy",
    "SamePower",
    "SimulationParameters",
    "SlottedALOHA",
    "SlottedRAScheme",
    "UnsimulatedResultWarning",
    "compute_plr_result",
    "db2lin",
    "default_plr_function",
    "extract_plr",
    "lin2db",
    "simulate",
]
