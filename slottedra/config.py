"""Build simulations from YAML scenario files.

A scenario is a mapping such as::

    scheme:
      kind: crdsa
      max_replicas: 3
    power:
      kind: log_uniform_db
      min_db: 0.24
      max_db: 10.24
    nslots: 100
    loads: [0.6, 0.8, 1.0]
    coderate: 0.3333333333333333

Every other key is forwarded to :class:`SimulationParameters`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from .distributions import Dirac, LogUniformDB, Poisson
from .errors import ConfigurationError
from .launcher.simulator import PLRSimulation, SimulationParameters
from .phy import CollisionModel, GeneralizedLogistic, plr_cr12, plr_cr13
from .schemes import CRDSA, MF_CRDSA, RA4Step, SlottedALOHA, SlottedRAScheme

SCHEME_KINDS: dict[str, Callable[..., SlottedRAScheme]] = {
    "crdsa": CRDSA,
    "mf_crdsa": MF_CRDSA,
    "slotted_aloha": SlottedALOHA,
    "ra4step": RA4Step,
}

_PARAMETER_KEYS = {
    "nslots",
    "poisson",
    "coderate",
    "M",
    "overhead",
    "noise_variance",
    "power_strategy",
    "max_simulated_frames",
    "sic_iterations",
    "max_errored_frames",
}


def load_yaml(path: Path) -> Mapping[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    with path.open("r", encoding="utf8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, Mapping):
        raise ConfigurationError("The YAML file must contain a mapping at its root.")
    return data


def _ensure_mapping(name: str, value: object) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"The '{name}' section must be a mapping.")
    return value


def _kind(name: str, section: Mapping[str, Any]) -> str:
    kind = section.get("kind")
    if kind is None:
        raise ConfigurationError(f"The '{name}' section needs a 'kind' entry.")
    return str(kind).strip().lower().replace("-", "_")


def build_scheme(section: Mapping[str, Any]) -> SlottedRAScheme:
    section = _ensure_mapping("scheme", section)
    kind = _kind("scheme", section)
    try:
        factory = SCHEME_KINDS[kind]
    except KeyError as exc:
        raise ConfigurationError(
            f"Unknown scheme kind {kind!r}, expected one of {sorted(SCHEME_KINDS)}"
        ) from exc
    kwargs = {key: value for key, value in section.items() if key != "kind"}
    try:
        return factory(**kwargs)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid parameters for scheme {kind!r}: {exc}") from exc


def build_power_distribution(section: Any) -> Any:
    if isinstance(section, (int, float)) and not isinstance(section, bool):
        return Dirac(section)
    section = _ensure_mapping("power", section)
    kind = _kind("power", section)
    if kind == "dirac":
        return Dirac(section.get("value", 1.0))
    if kind in {"log_uniform_db", "loguniform_db"}:
        try:
            return LogUniformDB(section["min_db"], section["max_db"])
        except KeyError as exc:
            raise ConfigurationError(f"Missing {exc.args[0]!r} for the log_uniform_db power") from exc
    if kind == "poisson":
        return Poisson(section.get("mean", 1.0))
    raise ConfigurationError(f"Unknown power distribution kind {kind!r}")


def build_plr_func(value: Any) -> Any:
    """Translate the ``plr_func`` entry; ``None``/``default`` keeps the coderate default."""

    if value is None:
        return None
    if isinstance(value, str):
        name = value.strip().lower()
        if name == "default":
            return None
        if name == "collision":
            return CollisionModel()
        if name == "cr13":
            return plr_cr13
        if name == "cr12":
            return plr_cr12
        raise ConfigurationError(f"Unknown plr_func {value!r}")
    section = _ensure_mapping("plr_func", value)
    kind = _kind("plr_func", section)
    if kind != "generalized_logistic":
        raise ConfigurationError(f"Unknown plr_func kind {kind!r}")
    kwargs = {key: float(val) for key, val in section.items() if key != "kind"}
    try:
        return GeneralizedLogistic(**kwargs)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid generalized_logistic parameters: {exc}") from exc


def build_parameters(config: Mapping[str, Any]) -> SimulationParameters:
    """Return the :class:`SimulationParameters` described by ``config``."""

    config = _ensure_mapping("root", config)
    if "scheme" not in config:
        raise ConfigurationError("The configuration needs a 'scheme' section.")
    if "power" not in config:
        raise ConfigurationError("The configuration needs a 'power' section.")
    unknown = set(config) - _PARAMETER_KEYS - {"scheme", "power", "plr_func", "loads"}
    if unknown:
        raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
    kwargs = {key: config[key] for key in _PARAMETER_KEYS if key in config}
    return SimulationParameters(
        scheme=build_scheme(config["scheme"]),
        power_dist=build_power_distribution(config["power"]),
        plr_func=build_plr_func(config.get("plr_func")),
        **kwargs,
    )


def build_simulation(config: Mapping[str, Any]) -> PLRSimulation:
    """Return the load sweep described by ``config``."""

    config = _ensure_mapping("root", config)
    loads = config.get("loads")
    if not loads:
        raise ConfigurationError("The configuration needs a non-empty 'loads' list.")
    if isinstance(loads, (int, float)):
        loads = [loads]
    return PLRSimulation(loads, params=build_parameters(config))


__all__ = [
    "SCHEME_KINDS",
    "build_parameters",
    "build_plr_func",
    "build_power_distribution",
    "build_scheme",
    "build_simulation",
    "load_yaml",
]
