"""Post-processing of the solver's trajectory into a command.

Extracts the predicted trajectory and actuator sequences, smooths the actuators
with a moving average and re-integrates the trajectory so the displayed path
matches the commands actually emitted.
"""

from dataclasses import dataclass

import numpy as np

from .config import ControllerConfig
from .model import VariableLayout, heading_change
from .solver import SolveResult


@dataclass
class MPCResult:
    """Processed output of one solve.

    Attributes:
        predicted_xs: Predicted x for stages 1..N-1 (vehicle frame).
        predicted_ys: Predicted y for stages 1..N-1 (vehicle frame).
        steering_angles: Steering per interval 0..N-2 (rad).
        throttles: Acceleration per interval 0..N-2.
        cte: Cross-track error predicted at stage 1.
        cost: Objective value.
        status: Solver return status.
    """

    predicted_xs: np.ndarray
    predicted_ys: np.ndarray
    steering_angles: np.ndarray
    throttles: np.ndarray
    cte: float
    cost: float
    status: str

    def next_steering_angle(self) -> float:
        """Steering to apply now: the first sample of the sequence."""
        return float(self.steering_angles[0])

    def next_throttle(self) -> float:
        """Acceleration to apply now: the first sample of the sequence."""
        return float(self.throttles[0])


def moving_average(values: np.ndarray, window: int) -> np.ndarray:
    """Average each index with the window - 1 samples that follow it.

    Indices without a full window keep their original value.
    """
    smoothed = np.array(values, dtype=float)
    if window <= 1 or len(values) < window:
        return smoothed

    averaged = np.convolve(values, np.ones(window) / window, mode="valid")
    smoothed[: len(averaged)] = averaged
    return smoothed


def process_solution(
    result: SolveResult, layout: VariableLayout, config: ControllerConfig
) -> MPCResult:
    """Turn a solution vector into a smoothed, bounded MPCResult.

    Args:
        result: Solver output.
        layout: Variable layout the solution follows.
        config: Controller configuration.

    Returns:
        MPCResult with predictions for stages 1..N-1.
    """
    sol = result.solution
    n = layout.n
    dt = config.step_duration
    window = config.smoothing_window

    xs = sol[layout.x + 1 : layout.x + n].copy()
    ys = sol[layout.y + 1 : layout.y + n].copy()
    raw_steering = sol[layout.delta : layout.delta + n - 1]
    raw_throttles = sol[layout.a : layout.a + n - 1]

    steering = moving_average(raw_steering, window)
    throttles = moving_average(raw_throttles, window)

    smoothed_count = len(raw_steering) - window + 1 if window > 1 else 0
    # Semi-implicit step: position advances with the updated speed and heading
    for i in range(max(smoothed_count, 0)):
        v_prev = sol[layout.v + i]
        v = v_prev + throttles[i] * dt
        psi = sol[layout.psi + i] + heading_change(v_prev, steering[i], config.lf, dt)

        xs[i] = sol[layout.x + i] + v * np.cos(psi) * dt
        ys[i] = sol[layout.y + i] + v * np.sin(psi) * dt

    steering = np.clip(steering, -config.max_steering, config.max_steering)
    throttles = np.clip(throttles, config.min_acceleration, config.max_acceleration)

    return MPCResult(
        predicted_xs=xs,
        predicted_ys=ys,
        steering_angles=steering,
        throttles=throttles,
        cte=float(sol[layout.cte + 1]),
        cost=result.cost,
        status=result.status,
    )
