"""
Visualization utilities for recorded controller runs.

This module loads ``cycles.csv`` written by ``DataCollector`` and plots tracking
errors, emitted commands, speed and solver cost over time.
"""

from pathlib import Path
from typing import Dict, List, Optional

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure

from .data_collector import CYCLE_HEADERS
from .plot_styles import (
    PLOT_BLUE,
    PLOT_DARK_BLUE,
    PLOT_ORANGE,
    PLOT_YELLOW_ORANGE,
    add_legend,
    load_csv_to_dict,
    style_axis,
)


def parse_cycle_data(filepath: Path) -> Dict[str, np.ndarray]:
    """Parse a cycle CSV into numpy arrays.

    Args:
        filepath: Path to ``cycles.csv``.

    Returns:
        Dictionary keyed by column name, plus 'time' (seconds since the first
        cycle).

    Raises:
        FileNotFoundError: If the CSV file does not exist.
        ValueError: If the headers are not the ones DataCollector writes.
    """
    data = load_csv_to_dict(filepath)
    if list(data.keys()) != CYCLE_HEADERS:
        raise ValueError(f"Unexpected cycle CSV headers: {list(data.keys())}")

    timestamps = data["timestamp"]
    data["time"] = timestamps - timestamps[0] if len(timestamps) else timestamps
    return data


def plot_tracking(data: Dict[str, np.ndarray], title: str = "Tracking", save_path: Optional[Path] = None) -> Figure:
    """Plot cross-track error, heading error and speed over time."""
    fig, (ax1, ax2, ax3) = plt.subplots(3, 1, figsize=(12, 10), sharex=True, facecolor=PLOT_DARK_BLUE)
    t = data["time"]

    ax1.plot(t, data["cte"], color=PLOT_ORANGE, label="CTE")
    ax1.plot(t, data["predicted_cte"], "--", color=PLOT_YELLOW_ORANGE, alpha=0.8, label="Predicted CTE")
    style_axis(ax1, title=f"{title} - Cross-Track Error", ylabel="CTE (m)")
    add_legend(ax1)

    ax2.plot(t, np.rad2deg(data["epsi"]), color=PLOT_BLUE, label="Heading error")
    style_axis(ax2, title=f"{title} - Heading Error", ylabel="epsi (deg)")
    add_legend(ax2)

    ax3.plot(t, data["speed"], color=PLOT_ORANGE, label="Speed")
    style_axis(ax3, title=f"{title} - Speed", xlabel="Time (s)", ylabel="Speed")
    add_legend(ax3)

    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
    return fig


def plot_commands(data: Dict[str, np.ndarray], title: str = "Commands", save_path: Optional[Path] = None) -> Figure:
    """Plot steering/throttle commands and solver cost over time.

    Fallback cycles are marked on the command axis.
    """
    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 8), sharex=True, facecolor=PLOT_DARK_BLUE)
    t = data["time"]

    ax1.plot(t, data["steering"], color=PLOT_ORANGE, label="Steering")
    ax1.plot(t, data["throttle"], color=PLOT_BLUE, label="Throttle")
    fallback = data["fallback"] > 0
    if np.any(fallback):
        ax1.scatter(t[fallback], data["steering"][fallback], color=PLOT_YELLOW_ORANGE, marker="x", label="Fallback", zorder=5)
    ax1.set_ylim(-1.1, 1.1)
    style_axis(ax1, title=f"{title} - Actuators", ylabel="Normalized command")
    add_legend(ax1)

    ax2.plot(t, data["cost"], color=PLOT_YELLOW_ORANGE, label="Cost")
    if np.any(data["cost"] > 0):
        ax2.set_yscale("log")
    style_axis(ax2, title=f"{title} - Solver Cost", xlabel="Time (s)", ylabel="Objective")
    add_legend(ax2)

    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
    return fig


def plot_run_summary(run_dir: Path, save_plots: bool = False, show_plots: bool = True) -> List[Figure]:
    """Generate summary plots for a complete run.

    Args:
        run_dir: Directory containing cycles.csv.
        save_plots: If True, save plots to run directory.
        show_plots: If True, display plots interactively.

    Returns:
        The generated figures.

    Raises:
        FileNotFoundError: If cycles.csv is not found.
    """
    data = parse_cycle_data(run_dir / "cycles.csv")
    run_name = run_dir.name

    figures = [
        plot_tracking(
            data, title=run_name, save_path=run_dir / "tracking.png" if save_plots else None
        ),
        plot_commands(
            data, title=run_name, save_path=run_dir / "commands.png" if save_plots else None
        ),
    ]

    if show_plots:
        plt.show()

    return figures
