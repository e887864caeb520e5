"""Monte-Carlo estimation of the packet loss ratio of slotted RA schemes."""

from __future__ import annotations

import logging
import math
import numbers
import os
import pickle
import threading
import warnings
from concurrent.futures import ProcessPoolExecutor
from dataclasses import astuple, dataclass, field
from multiprocessing import get_context
from typing import Any, Iterable, Sequence

import numpy as np
import pandas as pd

from traffic.arrivals import mean_users_per_frame, sample_user_count
from traffic.rng import spawn_generators

from ..distributions import check_distribution
from ..errors import ConfigurationError, UnsimulatedResultWarning
from ..power import ReplicaPowerStrategy, SamePower
from ..schemes import SlottedRAScheme
from .frame import FrameWorkspace, build_frame
from .sic import CollisionDecoding, CurveDecoding, coding_gain, decoding_rule, process_frame

logger = logging.getLogger(__name__)

# Frames simulated by a worker between two merges into the shared result.
DEFAULT_BATCH_SIZE = 50


@dataclass(frozen=True)
class PLRResult:
    """Counters accumulated over simulated frames.

    Results add component-wise, with ``PLRResult()`` as identity, which is how
    partial results of workers and successive batches are merged.
    """

    simulated_frames: int = 0
    errored_frames: int = 0
    total_decoded: int = 0
    total_sent: int = 0

    def __add__(self, other: "PLRResult") -> "PLRResult":
        if not isinstance(other, PLRResult):
            return NotImplemented
        return PLRResult(
            simulated_frames=self.simulated_frames + other.simulated_frames,
            errored_frames=self.errored_frames + other.errored_frames,
            total_decoded=self.total_decoded + other.total_decoded,
            total_sent=self.total_sent + other.total_sent,
        )

    @property
    def is_valid(self) -> bool:
        return self.simulated_frames > 0

    def as_dict(self) -> dict[str, int]:
        return {
            "simulated_frames": self.simulated_frames,
            "errored_frames": self.errored_frames,
            "total_decoded": self.total_decoded,
            "total_sent": self.total_sent,
        }


def _validate_positive_real(name: str, value: object) -> float:
    """Return ``value`` as a positive real number or raise a clear error."""

    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigurationError(f"{name} must be a real number")
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive, finite number")
    return float(value)


def _validate_count(name: str, value: object, *, minimum: int = 1) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigurationError(f"{name} must be an integer")
    if not float(value).is_integer() or value < minimum:
        raise ConfigurationError(f"{name} must be an integer >= {minimum}, got {value!r}")
    return int(value)


@dataclass(frozen=True)
class SimulationParameters:
    """Immutable configuration of a PLR simulation.

    ``nslots`` is mandatory for CRDSA/MF-CRDSA and forbidden for RA4Step,
    whose frame size derives from its msg1 parameters. ``plr_func`` maps a
    linear Eb/N0 to a loss probability; ``None`` selects the default curve of
    ``coderate`` and ``CollisionModel()`` selects collision-only decoding.
    """

    scheme: SlottedRAScheme
    power_dist: Any
    nslots: int | None = None
    poisson: bool = True
    coderate: float = 1 / 3
    M: int = 4
    overhead: float = 0.0
    noise_variance: float = 1.0
    power_strategy: ReplicaPowerStrategy = SamePower
    max_simulated_frames: int = 10**5
    sic_iterations: int = 15
    max_errored_frames: int = 10**4
    plr_func: Any = None
    rule: CurveDecoding | CollisionDecoding = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.scheme, SlottedRAScheme):
            raise ConfigurationError(f"Unsupported random access scheme: {self.scheme!r}")
        set_ = object.__setattr__
        set_(self, "nslots", self.scheme.check_nslots(self.nslots))
        set_(self, "power_dist", check_distribution(self.power_dist))
        set_(self, "poisson", bool(self.poisson))
        set_(self, "coderate", _validate_positive_real("coderate", self.coderate))
        if self.coderate > 1:
            raise ConfigurationError("coderate must not exceed 1")
        set_(self, "M", _validate_count("M", self.M, minimum=2))
        if isinstance(self.overhead, bool) or not isinstance(self.overhead, numbers.Real):
            raise ConfigurationError("overhead must be a real number")
        if not math.isfinite(self.overhead) or self.overhead < 0:
            raise ConfigurationError("overhead must be a finite, non-negative number")
        set_(self, "overhead", float(self.overhead))
        set_(self, "noise_variance", _validate_positive_real("noise_variance", self.noise_variance))
        set_(self, "power_strategy", ReplicaPowerStrategy.parse(self.power_strategy))
        set_(
            self,
            "max_simulated_frames",
            _validate_count("max_simulated_frames", self.max_simulated_frames),
        )
        set_(self, "sic_iterations", _validate_count("sic_iterations", self.sic_iterations))
        set_(
            self,
            "max_errored_frames",
            _validate_count("max_errored_frames", self.max_errored_frames),
        )
        set_(
            self,
            "rule",
            decoding_rule(
                self.plr_func,
                coderate=self.coderate,
                M=self.M,
                noise_variance=self.noise_variance,
            ),
        )

    @property
    def coding_gain(self) -> float:
        return coding_gain(self.coderate, self.M)

    @property
    def ra_slots(self) -> int:
        """Slots over which replicas are placed."""

        return self.scheme.ra_slots(self.nslots)

    @property
    def user_slots(self) -> int:
        """Slots used to normalize the load."""

        return self.scheme.user_slots(self.nslots)

    def mean_users(self, load: float) -> float:
        return mean_users_per_frame(self.user_slots, load, self.coding_gain, self.overhead)


class _SharedResult:
    """Counters merged by all workers of one run, guarded by a single lock.

    Without ``manager`` the counters live in the calling process. With a
    ``multiprocessing`` manager the lock and the counters are proxies that
    worker processes receive pickled.
    """

    def __init__(self, manager=None) -> None:
        if manager is None:
            self._lock = threading.Lock()
            self._counts = [0, 0, 0, 0]
        else:
            self._lock = manager.Lock()
            self._counts = manager.list([0, 0, 0, 0])

    def merge(self, partial: PLRResult) -> int:
        """Add ``partial`` and return the updated number of errored frames."""

        with self._lock:
            counts = [a + b for a, b in zip(self._counts[:], astuple(partial))]
            self._counts[:] = counts
            return counts[1]

    @property
    def errored_frames(self) -> int:
        with self._lock:
            return self._counts[1]

    @property
    def result(self) -> PLRResult:
        with self._lock:
            return PLRResult(*self._counts[:])


def _split_frames(total: int, ntasks: int) -> list[int]:
    """Split ``total`` frames in ``ntasks`` contiguous chunks of near equal size."""

    ntasks = max(1, min(ntasks, total))
    base, extra = divmod(total, ntasks)
    return [base + (1 if i < extra else 0) for i in range(ntasks)]


def simulate_frames(
    params: SimulationParameters,
    mean_users: float,
    nframes: int,
    rng: np.random.Generator,
    workspace: FrameWorkspace | None = None,
) -> PLRResult:
    """Simulate ``nframes`` frames and return their accumulated result.

    Frames without users carry no information and are skipped.
    """

    ra_slots = params.ra_slots
    if workspace is None:
        workspace = FrameWorkspace(params.scheme.max_replicas, ra_slots)
    cap = params.scheme.decoded_cap()
    simulated = errored = decoded = sent = 0
    for _ in range(nframes):
        nusers = sample_user_count(mean_users, params.poisson, rng)
        if nusers == 0:
            workspace.reset(0)
            continue
        frame = build_frame(
            params.scheme,
            params.power_strategy,
            params.power_dist,
            nusers,
            ra_slots,
            rng,
            workspace,
        )
        ndecoded = process_frame(
            frame.power_matrix,
            frame.users,
            rule=params.rule,
            noise_variance=params.noise_variance,
            sic_iterations=params.sic_iterations,
            rng=rng,
            decoded_cap=cap,
            workspace=workspace,
        )
        simulated += 1
        sent += nusers
        decoded += ndecoded
        errored += ndecoded < nusers
    return PLRResult(
        simulated_frames=simulated,
        errored_frames=errored,
        total_decoded=decoded,
        total_sent=sent,
    )


def _run_task(
    params: SimulationParameters,
    mean_users: float,
    nframes: int,
    batch_size: int,
    rng: np.random.Generator,
    shared: _SharedResult,
) -> None:
    workspace = FrameWorkspace(params.scheme.max_replicas, params.ra_slots)
    remaining = nframes
    while remaining > 0:
        if shared.errored_frames >= params.max_errored_frames:
            break
        batch = min(batch_size, remaining)
        partial = simulate_frames(params, mean_users, batch, rng, workspace)
        remaining -= batch
        if shared.merge(partial) >= params.max_errored_frames:
            break


def _check_picklable(params: SimulationParameters) -> None:
    try:
        pickle.dumps(params)
    except (pickle.PicklingError, AttributeError, TypeError) as exc:
        raise ConfigurationError(
            "Parallel runs send the parameters to worker processes, which requires "
            "picklable `plr_func`, `power_dist` and scheme callables (e.g. module level "
            f"functions instead of lambdas). Use ntasks=1 otherwise. ({exc})"
        ) from exc


def default_ntasks() -> int:
    """Number of worker tasks used when none is requested."""

    return os.cpu_count() or 1


def compute_plr_result(
    params: SimulationParameters,
    load: float,
    *,
    ntasks: int | None = None,
    seed: int | np.random.SeedSequence | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> PLRResult:
    """Estimate the PLR counters of ``params`` at normalized ``load``.

    The frame budget is split across ``ntasks`` workers (one process each,
    each with its own random stream spawned from ``seed``). With a single
    chunk the run stays in the calling process. Workers merge
    their counters every ``batch_size`` frames and stop issuing new batches
    once ``max_errored_frames`` errored frames have been collected, so the
    final count can exceed it by at most ``batch_size * ntasks`` frames.
    """

    if isinstance(load, bool) or not isinstance(load, numbers.Real) or not 0 <= load < math.inf:
        raise ConfigurationError(f"load must be a non-negative number, got {load!r}")
    batch_size = _validate_count("batch_size", batch_size)
    ntasks = default_ntasks() if ntasks is None else _validate_count("ntasks", ntasks)
    mean_users = params.mean_users(load)
    chunks = _split_frames(params.max_simulated_frames, ntasks)
    rngs = spawn_generators(seed, len(chunks))
    logger.debug(
        "load=%.4g: %.4g users/frame on average, %d frames over %d task(s)",
        load,
        mean_users,
        params.max_simulated_frames,
        len(chunks),
    )

    if len(chunks) == 1:
        shared = _SharedResult()
        _run_task(params, mean_users, chunks[0], batch_size, rngs[0], shared)
        result = shared.result
    else:
        _check_picklable(params)
        ctx = get_context("spawn")
        with ctx.Manager() as manager:
            shared = _SharedResult(manager)
            with ProcessPoolExecutor(max_workers=len(chunks), mp_context=ctx) as executor:
                futures = [
                    executor.submit(_run_task, params, mean_users, nframes, batch_size, rng, shared)
                    for nframes, rng in zip(chunks, rngs)
                ]
                for future in futures:
                    future.result()
            result = shared.result

    if result.errored_frames >= params.max_errored_frames:
        logger.info(
            "load=%.4g: stopped after %d frames (%d errored frames)",
            load,
            result.simulated_frames,
            result.errored_frames,
        )
    return result


@dataclass
class LoadPoint:
    """One point of a load sweep; ``result`` is invalid until simulated."""

    load: float
    result: PLRResult = field(default_factory=PLRResult)

    def __post_init__(self) -> None:
        if isinstance(self.load, bool) or not isinstance(self.load, numbers.Real):
            raise ConfigurationError(f"load must be a real number, got {self.load!r}")
        if not math.isfinite(self.load) or self.load < 0:
            raise ConfigurationError(f"load must be finite and non-negative, got {self.load!r}")
        self.load = float(self.load)

    @property
    def is_valid(self) -> bool:
        return self.result.is_valid


def extract_plr(obj: "PLRResult | LoadPoint", *, warn: bool = True) -> float:
    """Return the packet loss ratio ``1 - total_decoded / total_sent``.

    Extracting from a result that was never simulated only emits an
    ``UnsimulatedResultWarning`` and returns ``nan``.
    """

    if isinstance(obj, LoadPoint):
        if not obj.is_valid and warn:
            warnings.warn(
                f"The load point {obj.load} does not seem to have been simulated yet. "
                "Call `simulate` on its PLRSimulation first.",
                UnsimulatedResultWarning,
                stacklevel=2,
            )
        return extract_plr(obj.result, warn=False)
    if not isinstance(obj, PLRResult):
        raise TypeError(f"Cannot extract a PLR from {type(obj).__name__}")
    if not obj.is_valid and warn:
        warnings.warn(
            "The provided PLR result does not seem to correspond to an actual "
            "simulation, as the number of simulated frames is 0.",
            UnsimulatedResultWarning,
            stacklevel=2,
        )
    if obj.total_sent == 0:
        return math.nan
    return 1 - obj.total_decoded / obj.total_sent


class PLRSimulation:
    """A load sweep of one configuration.

    ``PLRSimulation([0.5, 1.0], scheme=CRDSA(3), power_dist=Dirac(5), nslots=100)``
    creates the sweep; ``simulate()`` fills the points that have no result yet.
    """

    def __init__(
        self,
        loads: Iterable[float],
        params: SimulationParameters | None = None,
        **kwargs: Any,
    ) -> None:
        if params is None:
            params = SimulationParameters(**kwargs)
        elif kwargs:
            raise ConfigurationError("Pass either `params` or keyword parameters, not both")
        self.params = params
        self.points = [LoadPoint(load) for load in loads]
        self.plot_kwargs: dict[str, Any] = {}

    def __repr__(self) -> str:
        loads = ", ".join(f"{p.load:g}" for p in self.points)
        return f"PLRSimulation(loads=[{loads}], scheme={self.params.scheme!r})"

    @property
    def loads(self) -> list[float]:
        return [point.load for point in self.points]

    @property
    def results(self) -> list[PLRResult]:
        return [point.result for point in self.points]

    def add_plot_kwargs(self, **kwargs: Any) -> "PLRSimulation":
        """Store line styling used when this simulation is plotted."""

        self.plot_kwargs.update(kwargs)
        return self

    def simulate(
        self,
        *,
        ntasks: int | None = None,
        seed: int | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> "PLRSimulation":
        """Simulate every load point that has no valid result yet."""

        seeds = np.random.SeedSequence(seed).spawn(len(self.points))
        total = len(self.points)
        for index, (point, point_seed) in enumerate(zip(self.points, seeds), start=1):
            if point.is_valid:
                logger.debug("Load point %d/%d (load=%g) already simulated", index, total, point.load)
                continue
            point.result = compute_plr_result(
                self.params,
                point.load,
                ntasks=ntasks,
                seed=point_seed,
                batch_size=batch_size,
            )
            logger.info(
                "Load point %d/%d (load=%g): PLR=%.3e over %d frames",
                index,
                total,
                point.load,
                extract_plr(point, warn=False),
                point.result.simulated_frames,
            )
        return self

    def extract_plr(self) -> list[float]:
        return [extract_plr(point) for point in self.points]

    def to_dataframe(self) -> pd.DataFrame:
        """Return the sweep as a pandas DataFrame, one row per load point."""

        rows = []
        for point in self.points:
            row: dict[str, Any] = {"load": point.load, "plr": extract_plr(point, warn=False)}
            row.update(point.result.as_dict())
            rows.append(row)
        return pd.DataFrame(
            rows,
            columns=[
                "load",
                "plr",
                "simulated_frames",
                "errored_frames",
                "total_decoded",
                "total_sent",
            ],
        )


def simulate(
    sims: "PLRSimulation | Sequence[PLRSimulation]",
    *,
    ntasks: int | None = None,
    seed: int | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
):
    """Simulate one or several sweeps in order and return them."""

    if isinstance(sims, PLRSimulation):
        return sims.simulate(ntasks=ntasks, seed=seed, batch_size=batch_size)
    seeds = np.random.SeedSequence(seed).spawn(len(sims))
    for sim, sim_seed in zip(sims, seeds):
        sim.simulate(
            ntasks=ntasks,
            seed=int(sim_seed.generate_state(1)[0]),
            batch_size=batch_size,
        )
    return sims


__all__ = [
    "DEFAULT_BATCH_SIZE",
    "LoadPoint",
    "PLRResult",
    "PLRSimulation",
    "SimulationParameters",
    "compute_plr_result",
    "default_ntasks",
    "extract_plr",
    "simulate",
    "simulate_frames",
]
