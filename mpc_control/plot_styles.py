"""Colours, CSV loading and axis styling shared by the run plots."""

import csv
import math
from pathlib import Path
from typing import Dict, List

import numpy as np
from matplotlib.axes import Axes

from .config import (
    PLOT_BLUE,
    PLOT_CREAM,
    PLOT_DARK_BLUE,
    PLOT_ORANGE,
    PLOT_TAUPE,
    PLOT_YELLOW_ORANGE,
)

__all__ = [
    "PLOT_ORANGE",
    "PLOT_BLUE",
    "PLOT_CREAM",
    "PLOT_TAUPE",
    "PLOT_YELLOW_ORANGE",
    "PLOT_DARK_BLUE",
    "load_csv_to_dict",
    "style_axis",
    "add_legend",
]


def _to_float(text: str) -> float:
    try:
        return float(text)
    except (TypeError, ValueError):
        return math.nan


def load_csv_to_dict(csv_path: Path) -> Dict[str, np.ndarray]:
    """Read a CSV log column by column.

    Cells that are not numbers (e.g. the solver status) load as NaN.

    Args:
        csv_path: Log written by ``DataCollector``.

    Returns:
        Column name -> float array, in file column order.

    Raises:
        FileNotFoundError: If csv_path does not exist.
    """
    if not csv_path.is_file():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    with open(csv_path, newline="") as f:
        rows = csv.reader(f)
        header = next(rows, [])
        columns: List[List[float]] = [[] for _ in header]
        for row in rows:
            for column, cell in zip(columns, row):
                column.append(_to_float(cell))

    return {name: np.array(column, dtype=float) for name, column in zip(header, columns)}


def style_axis(ax: Axes, title: str = "", xlabel: str = "", ylabel: str = "") -> None:
    """Dark background, cream text and a faint grid. Empty labels are skipped."""
    for text, setter in ((xlabel, ax.set_xlabel), (ylabel, ax.set_ylabel)):
        if text:
            setter(text, color=PLOT_CREAM)
    if title:
        ax.set_title(title, fontweight="bold", color=PLOT_CREAM)

    ax.set_facecolor(PLOT_DARK_BLUE)
    ax.grid(True, alpha=0.2, color=PLOT_CREAM)
    ax.tick_params(colors=PLOT_CREAM, which="both")
    for spine in ax.spines.values():
        spine.set_edgecolor(PLOT_TAUPE)


def add_legend(ax: Axes, loc: str = "best") -> None:
    ax.legend(loc=loc, framealpha=0.9, facecolor=PLOT_DARK_BLUE, edgecolor=PLOT_TAUPE, labelcolor=PLOT_CREAM)
