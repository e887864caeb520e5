from __future__ import annotations

from pathlib import Path

import pytest

from slottedra.config import build_parameters, build_simulation, load_yaml
from slottedra.distributions import Dirac, LogUniformDB, Poisson
from slottedra.errors import ConfigurationError
from slottedra.launcher.sic import CollisionDecoding, CurveDecoding
from slottedra.phy import GeneralizedLogistic, plr_cr12
from slottedra.power import IndependentPower
from slottedra.schemes import CRDSA, MF_CRDSA, RA4Step, SlottedALOHA


SCENARIO = """
scheme:
  kind: mf_crdsa
  max_replicas: 2
  n_time_slots: 3
power:
  kind: log_uniform_db
  min_db: 0.0
  max_db: 6.0
power_strategy: independent
nslots: 99
loads: [0.2, 0.5]
max_simulated_frames: 500
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "scenario.yaml"
    path.write_text(text, encoding="utf8")
    return path


def test_load_yaml_and_build(tmp_path):
    sim = build_simulation(load_yaml(_write(tmp_path, SCENARIO)))
    params = sim.params
    assert sim.loads == [0.2, 0.5]
    assert isinstance(params.scheme, MF_CRDSA)
    assert params.scheme.n_time_slots == 3
    assert params.power_dist == LogUniformDB(0.0, 6.0)
    assert params.power_strategy is IndependentPower
    assert params.nslots == 99
    assert params.max_simulated_frames == 500
    assert isinstance(params.rule, CurveDecoding)


def test_load_yaml_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_yaml(tmp_path / "missing.yaml")


def test_load_yaml_requires_mapping(tmp_path):
    with pytest.raises(ConfigurationError, match="mapping"):
        load_yaml(_write(tmp_path, "- 1\n- 2\n"))


@pytest.mark.parametrize(
    "scheme, expected",
    [
        ({"kind": "crdsa", "max_replicas": 3}, CRDSA(3)),
        ({"kind": "slotted-aloha"}, SlottedALOHA()),
        ({"kind": "RA4Step", "msg1_occasions": 4, "msg3_occasions": 2}, RA4Step(4, 2)),
    ],
)
def test_scheme_kinds(scheme, expected):
    config = {"scheme": scheme, "power": 2.0}
    if expected.requires_nslots:
        config["nslots"] = 10
    params = build_parameters(config)
    assert params.scheme == expected
    assert params.power_dist == Dirac(2.0)


@pytest.mark.parametrize(
    "config, message",
    [
        ({"scheme": {"kind": "irsa"}, "power": 1.0, "nslots": 10}, "Unknown scheme kind"),
        ({"scheme": {"max_replicas": 2}, "power": 1.0, "nslots": 10}, "kind"),
        ({"scheme": {"kind": "crdsa", "replicas": 2}, "power": 1.0, "nslots": 10}, "Invalid parameters"),
        ({"scheme": {"kind": "crdsa"}, "power": {"kind": "rayleigh"}, "nslots": 10}, "Unknown power"),
        ({"scheme": {"kind": "crdsa"}, "power": {"kind": "log_uniform_db"}, "nslots": 10}, "min_db"),
        ({"scheme": {"kind": "crdsa"}, "nslots": 10}, "power"),
        ({"power": 1.0, "nslots": 10}, "scheme"),
        ({"scheme": {"kind": "crdsa"}, "power": 1.0, "nslots": 10, "frames": 3}, "Unknown configuration keys"),
        ({"scheme": {"kind": "crdsa"}, "power": 1.0, "nslots": 10, "plr_func": "turbo"}, "plr_func"),
        ({"scheme": "crdsa", "power": 1.0, "nslots": 10}, "mapping"),
    ],
)
def test_invalid_configurations(config, message):
    with pytest.raises(ConfigurationError, match=message):
        build_parameters(config)


def test_plr_func_entries():
    base = {"scheme": {"kind": "crdsa"}, "power": {"kind": "poisson", "mean": 3}, "nslots": 10}
    collision = build_parameters({**base, "plr_func": "collision"})
    assert isinstance(collision.rule, CollisionDecoding)
    assert collision.power_dist == Poisson(3.0)

    cr12 = build_parameters({**base, "plr_func": "cr12", "coderate": 0.5})
    assert cr12.rule.plr_func is plr_cr12

    logistic = build_parameters(
        {**base, "plr_func": {"kind": "generalized_logistic", "B": 2, "M": 1.5}, "coderate": 0.6}
    )
    assert logistic.rule.plr_func == GeneralizedLogistic(B=2.0, M=1.5)


def test_loads_are_required():
    with pytest.raises(ConfigurationError, match="loads"):
        build_simulation({"scheme": {"kind": "crdsa"}, "power": 1.0, "nslots": 10})
    sim = build_simulation({"scheme": {"kind": "crdsa"}, "power": 1.0, "nslots": 10, "loads": 0.3})
    assert sim.loads == [0.3]
