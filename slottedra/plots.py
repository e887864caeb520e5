"""PLR vs load figures."""

from __future__ import annotations

import math
from pathlib import Path
from typing import Sequence

import matplotlib.pyplot as plt

from .launcher.simulator import PLRSimulation, extract_plr

XAXIS_TITLES = {
    "speff": "Average Load, G (bits/symbol)",
    "packets": "Average Load (packets/slot)",
}


def _check_xtype(xtype: str) -> str:
    if xtype not in XAXIS_TITLES:
        raise ValueError(
            f"Unsupported `xtype` {xtype!r}, expected one of {sorted(XAXIS_TITLES)}"
        )
    return xtype


def plot_points(sim: PLRSimulation, xtype: str = "speff") -> tuple[list[float], list[float]]:
    """Return the ``(x, plr)`` series of ``sim`` for the requested x-axis."""

    _check_xtype(xtype)
    params = sim.params
    if xtype == "packets":
        x = [params.mean_users(load) / params.user_slots for load in sim.loads]
    else:
        x = list(sim.loads)
    y = [extract_plr(point, warn=False) for point in sim.points]
    return x, y


def plot_plr(
    sims: PLRSimulation | Sequence[PLRSimulation],
    *,
    xtype: str = "speff",
    ax=None,
    output_path: Path | None = None,
):
    """Draw the PLR of one or several sweeps on a log y-axis.

    Styling stored with ``PLRSimulation.add_plot_kwargs`` is forwarded to
    ``Axes.plot``. When ``output_path`` is given the figure is written there
    and closed, and the path is returned; otherwise the axes are returned.
    """

    _check_xtype(xtype)
    if isinstance(sims, PLRSimulation):
        sims = [sims]
    if ax is None:
        _, ax = plt.subplots(figsize=(6.0, 4.5))
    for sim in sims:
        x, y = plot_points(sim, xtype)
        # Points with PLR 0 (or never simulated) cannot be shown on a log axis
        y = [value if value > 0 else math.nan for value in y]
        kwargs = {"marker": "o"}
        kwargs.update(sim.plot_kwargs)
        ax.plot(x, y, **kwargs)
    ax.set_yscale("log")
    ax.set_ylim(1e-5, 1.0)
    ax.set_xlabel(XAXIS_TITLES[xtype])
    ax.set_ylabel("Packet Loss Ratio")
    ax.grid(True, which="both", linestyle=":", alpha=0.5)
    if any("label" in sim.plot_kwargs for sim in sims):
        ax.legend(loc="lower right")
    if output_path is None:
        return ax
    fig = ax.figure
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path


__all__ = ["XAXIS_TITLES", "plot_plr", "plot_points"]
