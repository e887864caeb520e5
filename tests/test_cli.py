from __future__ import annotations

import argparse

import matplotlib

matplotlib.use("Agg")

import pytest  # noqa: E402

from slottedra import cli  # noqa: E402
from slottedra.cli import add_worker_argument, resolve_worker_count  # noqa: E402


@pytest.mark.parametrize("value, expected", [("3", 3), ("auto", "auto")])
def test_add_worker_argument_accepts_int_and_auto(value, expected):
    parser = argparse.ArgumentParser()
    add_worker_argument(parser)
    args = parser.parse_args(["--workers", value])
    assert args.workers == expected


@pytest.mark.parametrize("value", ["0", "-2", "many"])
def test_add_worker_argument_rejects_invalid_values(value):
    parser = argparse.ArgumentParser()
    add_worker_argument(parser)
    with pytest.raises(SystemExit):
        parser.parse_args(["--workers", value])


def test_resolve_worker_count_limits_to_tasks(monkeypatch):
    monkeypatch.setattr("slottedra.cli.os.cpu_count", lambda: 8)
    assert resolve_worker_count("auto", 3) == 3
    assert resolve_worker_count("auto", 12) == 8


@pytest.mark.parametrize("workers, tasks, expected", [(4, 2, 2), (4, 6, 4)])
def test_resolve_worker_count_with_explicit_integer(workers, tasks, expected):
    assert resolve_worker_count(workers, tasks) == expected


def test_resolve_worker_count_without_tasks_returns_zero():
    assert resolve_worker_count("auto", 0) == 0


def test_run_inline_scenario(capsys, tmp_path):
    figure = tmp_path / "plr.png"
    code = cli.run(
        [
            "--scheme",
            "crdsa",
            "--replicas",
            "2",
            "--nslots",
            "20",
            "--power",
            "10",
            "--loads",
            "0.2,0.4",
            "--frames",
            "40",
            "--workers",
            "2",
            "--seed",
            "1",
            "--plot",
            str(figure),
            "--log-level",
            "WARNING",
        ]
    )
    assert code == 0
    out = capsys.readouterr().out
    assert "load" in out
    assert "plr" in out
    assert "total_sent" in out
    assert figure.exists()


def test_run_from_config(capsys, tmp_path):
    config = tmp_path / "scenario.yaml"
    config.write_text(
        "scheme:\n  kind: slotted_aloha\npower: 1.0\nnslots: 10\nloads: [0.1]\nplr_func: collision\n",
        encoding="utf8",
    )
    assert cli.run(["--config", str(config), "--frames", "20", "--workers", "1"]) == 0
    assert "0.1" in capsys.readouterr().out


def test_run_reports_configuration_errors(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        cli.run(["--scheme", "crdsa", "--power", "1", "--loads", "0.1"])
    assert excinfo.value.code == 2
    with pytest.raises(SystemExit):
        cli.run(["--config", str(tmp_path / "missing.yaml")])
