#!/usr/bin/env python3
"""
Command-line viewer for recorded controller runs.

Picks a run directory under ``results/`` (the newest one unless ``--run`` names
another), prints a short tracking summary and plots the cycle log.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from .config import TERM_BLUE, TERM_ORANGE, TERM_RESET
from .visualization import parse_cycle_data, plot_run_summary


def _run_dirs(results_dir: Path) -> List[Path]:
    # Names embed a sortable timestamp
    return sorted(d for d in results_dir.iterdir() if d.is_dir() and d.name.startswith("run_"))


def find_latest_run(results_dir: Path) -> Path:
    """Return the newest run directory under results_dir.

    Raises:
        FileNotFoundError: If results_dir is missing or holds no runs.
    """
    if not results_dir.exists():
        raise FileNotFoundError(f"Results directory not found: {results_dir}")

    runs = _run_dirs(results_dir)
    if not runs:
        raise FileNotFoundError(f"No run directories found in {results_dir}")
    return runs[-1]


def resolve_run_dir(results_dir: Path, run_name: Optional[str] = None) -> Path:
    """Map an optional ``--run`` value to a run directory.

    Raises:
        FileNotFoundError: If the named run (or any run) does not exist.
    """
    if run_name is None:
        return find_latest_run(results_dir)

    run_dir = results_dir / run_name
    if not run_dir.is_dir():
        raise FileNotFoundError(f"Run directory not found: {run_dir}")
    return run_dir


def summarize_run(run_dir: Path) -> Dict[str, float]:
    """Aggregate tracking statistics from a run's cycle log.

    Returns:
        Dictionary with cycle count, duration, fallback count, mean and max
        absolute cross-track error, and mean speed.
    """
    data = parse_cycle_data(run_dir / "cycles.csv")
    cycles = len(data["timestamp"])
    if cycles == 0:
        return {"cycles": 0}

    abs_cte = np.abs(data["cte"])
    return {
        "cycles": cycles,
        "duration": float(data["time"][-1]),
        "fallbacks": int(np.sum(data["fallback"] > 0)),
        "mean_abs_cte": float(np.mean(abs_cte)),
        "max_abs_cte": float(np.max(abs_cte)),
        "mean_speed": float(np.mean(data["speed"])),
    }


def list_available_runs(results_dir: Path) -> None:
    """Log every run directory under results_dir, oldest first."""
    if not results_dir.exists():
        logging.error(f"Results directory not found: {results_dir}")
        return

    runs = _run_dirs(results_dir)
    if not runs:
        logging.info(f"No run directories found in {results_dir}")
        return

    logging.info("Available runs:")
    for i, run_dir in enumerate(runs, 1):
        logging.info(f"  {i}. {run_dir.name}")


def _log_summary(run_dir: Path, summary: Dict[str, float]) -> None:
    if not summary.get("cycles"):
        logging.info(f"{run_dir.name}: no cycles recorded")
        return

    logging.info(
        f"{run_dir.name}: {summary['cycles']} cycles over {summary['duration']:.1f}s, "
        f"mean |cte| {summary['mean_abs_cte']:.3f}, max |cte| {summary['max_abs_cte']:.3f}, "
        f"mean speed {summary['mean_speed']:.2f}"
    )
    if summary["fallbacks"]:
        logging.info(f"{TERM_ORANGE}{summary['fallbacks']} fallback cycles{TERM_RESET}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Plot and summarize recorded MPC controller runs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  mpc-control-plot                                   # newest run
  mpc-control-plot --run run_20251114_184704_s1 --save
  mpc-control-plot --save --no-show                  # headless
  mpc-control-plot --list
        """,
    )
    parser.add_argument("--run", default=None, help="Run directory name (default: newest run)")
    parser.add_argument(
        "--results-dir", default="results", help="Directory holding run_* folders (default: results)"
    )
    parser.add_argument("--save", action="store_true", help="Write PNG figures into the run directory")
    parser.add_argument("--no-show", action="store_true", help="Skip the interactive window")
    parser.add_argument("--list", action="store_true", help="List runs and exit")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point of the ``mpc-control-plot`` script."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    args = build_parser().parse_args(argv)
    results_dir = Path(args.results_dir)

    if args.list:
        list_available_runs(results_dir)
        return

    try:
        run_dir = resolve_run_dir(results_dir, args.run)
        logging.info(f"{TERM_BLUE}Run: {run_dir}{TERM_RESET}")
        _log_summary(run_dir, summarize_run(run_dir))
        plot_run_summary(run_dir=run_dir, save_plots=args.save, show_plots=not args.no_show)
    except FileNotFoundError as e:
        logging.error(f"Error: {e}")
        list_available_runs(results_dir)
        sys.exit(1)
    except ValueError as e:
        logging.error(f"Error reading run: {e}")
        sys.exit(1)

    if args.save:
        logging.info(f"{TERM_BLUE}✓ Saved tracking.png and commands.png to {run_dir}/{TERM_RESET}")


if __name__ == "__main__":
    main()
