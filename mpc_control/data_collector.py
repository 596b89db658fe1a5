"""Data collection and CSV logging for MPC control cycles.

This module provides CSV data logging for:
- Cycle records (telemetry, initial state, emitted command, solver outcome)
- Predicted trajectories (one row per predicted point per cycle)
"""

import csv
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, TextIO

from .config import TERM_BLUE, TERM_RESET

CYCLE_HEADERS = [
    "timestamp",
    "x",
    "y",
    "psi",
    "speed",
    "cte",
    "epsi",
    "steering",
    "throttle",
    "cost",
    "predicted_cte",
    "status",
    "fallback",
]

PREDICTION_HEADERS = ["timestamp", "index", "x", "y"]


class DataCollector:
    """Per-session CSV recorder for control cycles.

    One row per cycle goes to ``cycles.csv``; the cycle's predicted trajectory
    goes to ``predictions.csv``, one row per point.

    Attributes:
        run_dir: Directory receiving both CSV files.
        cycle_csv_file: File handle for the cycle CSV.
        prediction_csv_file: File handle for the predicted trajectory CSV.
    """

    def __init__(self, output_dir: str = ".", run_dir: Optional[str] = None) -> None:
        """Pick and create the run directory.

        Args:
            output_dir: Base directory; runs go under ``output_dir/results/``.
            run_dir: Explicit run directory. Falls back to the RUN_DIR
                environment variable, then to a timestamped directory.

        Raises:
            ValueError: If output_dir exists and is not a directory.
        """
        output_path = Path(output_dir)
        if output_path.exists() and not output_path.is_dir():
            raise ValueError(f"Output path exists but is not a directory: {output_dir}")

        self.cycle_csv_file: Optional[TextIO] = None
        self.cycle_csv_writer: Any = None
        self.prediction_csv_file: Optional[TextIO] = None
        self.prediction_csv_writer: Any = None
        self.cycle_count: int = 0

        if run_dir:
            self.run_dir: Path = Path(run_dir)
        elif env_run_dir := os.environ.get("RUN_DIR"):
            self.run_dir = Path(env_run_dir)
        else:
            # results/run_YYYYMMDD_HHMMSS/
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.run_dir = output_path / "results" / f"run_{timestamp}"

        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.cycle_output_path: Path = self.run_dir / "cycles.csv"
        self.prediction_output_path: Path = self.run_dir / "predictions.csv"

    def setup(self) -> None:
        """Open both CSV files and write their headers. Required before log_cycle."""
        self.cycle_csv_file = open(self.cycle_output_path, "w", newline="")
        self.cycle_csv_writer = csv.writer(self.cycle_csv_file)
        self.cycle_csv_writer.writerow(CYCLE_HEADERS)
        self.cycle_csv_file.flush()

        self.prediction_csv_file = open(self.prediction_output_path, "w", newline="")
        self.prediction_csv_writer = csv.writer(self.prediction_csv_file)
        self.prediction_csv_writer.writerow(PREDICTION_HEADERS)
        self.prediction_csv_file.flush()

        logging.info(f"{TERM_BLUE}✓ Initialized data collection to {self.run_dir}/{TERM_RESET}")

    def log_cycle(self, timestamp: float, telemetry: Any, state: Any, command: Any) -> None:
        """Log one control cycle.

        Args:
            timestamp: Wall-clock time of the cycle (seconds).
            telemetry: Telemetry the cycle ran on (world-frame pose and speed).
            state: Initial State derived from the reference fit.
            command: Command emitted for the cycle.
        """
        if self.cycle_csv_writer is None:
            raise RuntimeError("DataCollector.setup() must be called before logging")

        self.cycle_csv_writer.writerow(
            [
                timestamp,
                telemetry.x,
                telemetry.y,
                telemetry.psi,
                telemetry.speed,
                state.cte,
                state.epsi,
                command.steering,
                command.throttle,
                command.cost,
                command.cte,
                command.status,
                int(command.fallback),
            ]
        )
        for index, (x, y) in enumerate(zip(command.mpc_x, command.mpc_y)):
            self.prediction_csv_writer.writerow([timestamp, index, x, y])

        self.cycle_count += 1
        if self.cycle_csv_file:
            self.cycle_csv_file.flush()
        if self.prediction_csv_file:
            self.prediction_csv_file.flush()

    def cleanup(self) -> None:
        """Close all CSV files and log final output location."""
        if self.cycle_csv_file:
            self.cycle_csv_file.close()
        if self.prediction_csv_file:
            self.prediction_csv_file.close()

        logging.info(
            f"{TERM_BLUE}✓ Saved {self.cycle_count} control cycles to {self.run_dir}/{TERM_RESET}"
        )

    def __enter__(self) -> "DataCollector":
        self.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.cleanup()
