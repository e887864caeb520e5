"""PHY abstraction: map a linear Eb/N0 to a packet loss probability."""

from __future__ import annotations

import math
from dataclasses import dataclass

from numpy.polynomial import Polynomial

from .errors import ConfigurationError


def db2lin(value_db: float) -> float:
    return 10 ** (value_db / 10)


def lin2db(value: float) -> float:
    if value <= 0:
        return -math.inf
    return 10 * math.log10(value)


# Packet error rate of a 100 bit word at rate 1/3 (log10 of the PLR as a
# function of Eb/N0 in dB), valid above -1.8 dB. Used for CRDSA/MF-CRDSA.
_PLR_CR13_100B_POLYNOMIAL = Polynomial(
    [
        -0.215782058480603,
        -0.374234466906317,
        -0.222858550651536,
        -0.0507630949758589,
        -0.00197105590755756,
        0.00436433391082898,
        0.00136041159250727,
        -0.000397502358373164,
    ]
)

# Same for rate 1/2, valid between -1 and 3 dB.
_PLR_CR12_100B_POLYNOMIAL = Polynomial(
    [
        -0.109622088831103,
        -0.243226557211830,
        -0.185414870643508,
        0.043439484192318,
        0.022671110316843,
        -0.137378346146966,
        0.044482830864468,
        0.056115084121172,
        -0.044564032105053,
        0.011682817565128,
        -0.001061188368566,
    ]
)


def plr_cr13(ebno: float) -> float:
    """Return the packet error rate of a rate 1/3, 100 bit word.

    ``ebno`` is the linear (not dB) energy per bit over noise spectral density.
    """

    ebno_db = lin2db(ebno)
    if ebno_db < -1.8:
        return 1.0
    return min(1.0, 10 ** float(_PLR_CR13_100B_POLYNOMIAL(ebno_db)))


def plr_cr12(ebno: float) -> float:
    """Return the packet error rate of a rate 1/2, 100 bit word.

    Below 3 dB a 10 degree polynomial is used; above, a straight line in the
    log domain.
    """

    ebno_db = lin2db(ebno)
    if ebno_db <= -1:
        return 1.0
    if ebno_db <= 3:
        return min(1.0, 10 ** float(_PLR_CR12_100B_POLYNOMIAL(ebno_db)))
    return 10 ** (-1.209949465790318 * ebno_db + 0.805939656426635)


@dataclass(frozen=True)
class GeneralizedLogistic:
    """Richards curve evaluated on Eb/N0 expressed in dB.

    ``plr = A + (K - A) / (C + Q * exp(-B * (x_db - M))) ** (1 / nu)``

    The defaults describe a waterfall going from 1 (low Eb/N0) to 0 (high
    Eb/N0) with its midpoint at ``M`` dB. The value is clipped to ``[0, 1]``.
    """

    B: float
    M: float
    A: float = 1.0
    K: float = 0.0
    Q: float = 1.0
    C: float = 1.0
    nu: float = 1.0

    def __post_init__(self) -> None:
        if self.nu == 0:
            raise ConfigurationError("nu must be non-zero")

    def __call__(self, ebno: float) -> float:
        x_db = lin2db(ebno)
        if x_db == -math.inf:
            return 1.0
        exponent = -self.B * (x_db - self.M)
        try:
            denominator = self.C + self.Q * math.exp(exponent)
        except OverflowError:
            return min(1.0, max(0.0, self.A))
        value = self.A + (self.K - self.A) / denominator ** (1 / self.nu)
        return min(1.0, max(0.0, value))


class CollisionModel:
    """Marker selecting the collision decoding rule.

    With this model a replica is decoded if and only if no other user's power
    is present in its slot, whatever its SNR.
    """

    def __repr__(self) -> str:
        return "CollisionModel()"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, CollisionModel)

    def __hash__(self) -> int:
        return hash(CollisionModel)


def default_plr_function(coderate: float):
    """Return the default PLR curve for ``coderate``."""

    if math.isclose(coderate, 1 / 3):
        return plr_cr13
    if math.isclose(coderate, 1 / 2):
        return plr_cr12
    raise ConfigurationError(
        f"The coderate {coderate} does not have a default packet loss rate function. "
        "Please provide manually a `plr_func`."
    )


__all__ = [
    "CollisionModel",
    "GeneralizedLogistic",
    "db2lin",
    "default_plr_function",
    "lin2db",
    "plr_cr12",
    "plr_cr13",
]
