"""Command line entry point running a PLR load sweep."""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Any, Optional, Sequence

from .config import SCHEME_KINDS, build_simulation, load_yaml
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def _worker_value(value: str) -> int | str:
    if value.strip().lower() == "auto":
        return "auto"
    try:
        workers = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"invalid worker count {value!r} (expected a positive integer or 'auto')"
        ) from exc
    if workers < 1:
        raise argparse.ArgumentTypeError("the number of workers must be at least 1")
    return workers


def add_worker_argument(parser: argparse.ArgumentParser, default: int | str = "auto") -> None:
    parser.add_argument(
        "--workers",
        type=_worker_value,
        default=default,
        help="Number of worker processes, or 'auto' to use every CPU (default: %(default)s).",
    )


def resolve_worker_count(workers: int | str, tasks: int) -> int:
    """Return the number of workers to start for ``tasks`` units of work."""

    if tasks <= 0:
        return 0
    if workers == "auto":
        return max(1, min(os.cpu_count() or 1, tasks))
    return max(1, min(int(workers), tasks))


def _parse_loads(value: str) -> list[float]:
    try:
        loads = [float(item) for item in value.split(",") if item.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid load list {value!r}") from exc
    if not loads:
        raise argparse.ArgumentTypeError("at least one load is required")
    return loads


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Estimate the packet loss ratio of a slotted random access scheme."
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML scenario file. Inline options below override its values.",
    )
    parser.add_argument("--scheme", choices=sorted(SCHEME_KINDS), help="Random access scheme.")
    parser.add_argument("--replicas", type=int, help="Maximum number of replicas per user.")
    parser.add_argument("--nslots", type=int, help="Slots per frame (CRDSA-like schemes).")
    parser.add_argument(
        "--power",
        type=float,
        help="Received power of every replica, linear scale (Dirac distribution).",
    )
    parser.add_argument(
        "--loads",
        type=_parse_loads,
        help="Comma separated normalized loads, e.g. 0.2,0.4,0.6.",
    )
    parser.add_argument("--frames", type=int, help="Maximum number of simulated frames per load.")
    add_worker_argument(parser)
    parser.add_argument("--seed", type=int, default=None, help="Seed of the random streams.")
    parser.add_argument("--plot", type=Path, help="Write the PLR figure to this path.")
    parser.add_argument(
        "--xtype",
        choices=("speff", "packets"),
        default="speff",
        help="Unit of the load axis of the figure.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging verbosity.",
    )
    return parser


def _scenario(args: argparse.Namespace) -> dict[str, Any]:
    config: dict[str, Any] = dict(load_yaml(args.config)) if args.config else {}
    if args.scheme is not None:
        config["scheme"] = {"kind": args.scheme}
    if args.replicas is not None:
        scheme = dict(config.get("scheme") or {"kind": "crdsa"})
        scheme["max_replicas"] = args.replicas
        config["scheme"] = scheme
    if args.nslots is not None:
        config["nslots"] = args.nslots
    if args.power is not None:
        config["power"] = {"kind": "dirac", "value": args.power}
    if args.loads is not None:
        config["loads"] = args.loads
    if args.frames is not None:
        config["max_simulated_frames"] = args.frames
    return config


def run(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s: %(message)s")

    try:
        sim = build_simulation(_scenario(args))
    except (ConfigurationError, FileNotFoundError) as exc:
        parser.error(str(exc))

    ntasks = resolve_worker_count(args.workers, sim.params.max_simulated_frames)
    logger.info("Simulating %d load point(s) with %d worker(s)", len(sim.points), ntasks)
    sim.simulate(ntasks=ntasks, seed=args.seed)
    print(sim.to_dataframe().to_string(index=False))

    if args.plot is not None:
        from .plots import plot_plr

        path = plot_plr(sim, xtype=args.xtype, output_path=args.plot)
        logger.info("Figure written to %s", path)
    return 0


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
