"""Configuration parameters for the MPC path-tracking controller.

This module centralizes all configuration parameters including:
- Horizon shape (stage count and step duration)
- Vehicle geometry and actuator limits
- Cost function weights
- Solver and post-processing settings
- WebSocket server and visualization settings

Module-level constants are the single source of truth. The controller reads
them through the immutable ``ControllerConfig`` value, which is built once and
passed explicitly to every pipeline stage.
"""

from dataclasses import dataclass, field

import numpy as np

# ============================================================================
# Horizon
# ============================================================================

HORIZON_STEPS = 25
"""Number of stages N planned per solve (including the fixed first stage).

Tuning rationale:
- 25 stages × 0.05s gives a 1.25s look-ahead, roughly the span covered by
  the six waypoints sent with each telemetry message at cruise speed
- Longer horizons extrapolate the cubic fit beyond the waypoints
"""

STEP_DURATION = 0.05
"""Time between two stages dt (seconds).

Small enough that the Euler-integrated kinematic model stays accurate at
cruise speed.
"""

# ============================================================================
# Vehicle Parameters
# ============================================================================

LF = 2.67
"""Distance from the front axle to the centre of gravity (meters).

Obtained by driving the simulator in a circle with constant steering and
speed on flat terrain, then tuning Lf until the model's radius matched.
"""

MPH_TO_MPS = 0.44704
"""Miles per hour to meters per second."""

TARGET_SPEED = 70.0 * MPH_TO_MPS
"""Reference cruise speed (m/s). 70 mph."""

MAX_STEERING = 0.436332
"""Steering angle limit (rad). ±25 degrees."""

MIN_ACCELERATION = -1.0
"""Strongest braking command (normalized)."""

MAX_ACCELERATION = 0.75
"""Strongest throttle command (normalized).

Asymmetric with braking so the optimizer prefers easing off over flooring it.
"""

STATE_BOUND = 1.0e19
"""Bound magnitude for state variables. Effectively unbounded for IPOPT."""

# ============================================================================
# Cost Weights
# ============================================================================

W_CTE = 1000.0
"""Weight on cross-track error squared."""

W_CTE_STEERING = 10000.0
"""Weight on (cte · steering)². Discourages steering hard while far off-track."""

W_EPSI = 10000.0
"""Weight on heading error squared."""

W_SPEED = 10.0
"""Weight on (speed - target speed)²."""

W_STEERING = 10.0
"""Weight on steering magnitude squared."""

W_ACCELERATION = 100.0
"""Weight on acceleration magnitude squared."""

W_ACCELERATION_STEERING = 100.0
"""Weight on (acceleration · steering)². Discourages braking hard in turns."""

W_STEERING_RATE = 10.0
"""Weight on consecutive steering change squared."""

W_ACCELERATION_RATE = 10.0
"""Weight on consecutive acceleration change squared."""

# ============================================================================
# Solver and Post-processing
# ============================================================================

SOLVER_MAX_TIME = 0.5
"""Wall-clock budget for one IPOPT solve (seconds)."""

SMOOTHING_WINDOW = 7
"""Width of the moving average applied to the predicted actuator sequences.

Values <= 1 disable smoothing.
"""

FALLBACK_THROTTLE = 0.0
"""Throttle sent when the solver does not converge. 0.0 = coast."""

# ============================================================================
# WebSocket Server
# ============================================================================

WS_HOST = "0.0.0.0"

WS_PORT = 4567
"""Port the simulator connects to."""

LATENCY_SECONDS = 0.1
"""Delay before each command is sent, emulating actuation latency (seconds)."""

# ============================================================================
# Visualization Colors
# ============================================================================

PLOT_ORANGE = "#f74823"
PLOT_BLUE = "#2374f7"
PLOT_CREAM = "#fffdee"
PLOT_TAUPE = "#686a5f"
PLOT_YELLOW_ORANGE = "#ffa726"
PLOT_DARK_BLUE = "#0d1b2a"

# Terminal color codes (ANSI escape sequences)
TERM_ORANGE = "\033[38;2;247;72;35m"
TERM_BLUE = "\033[38;2;35;116;247m"
TERM_RESET = "\033[0m"


@dataclass(frozen=True)
class CostWeights:
    """Per-term weights of the MPC objective. Fixed once the problem is built."""

    cte: float = W_CTE
    cte_steering: float = W_CTE_STEERING
    epsi: float = W_EPSI
    speed: float = W_SPEED
    steering: float = W_STEERING
    acceleration: float = W_ACCELERATION
    acceleration_steering: float = W_ACCELERATION_STEERING
    steering_rate: float = W_STEERING_RATE
    acceleration_rate: float = W_ACCELERATION_RATE


@dataclass(frozen=True)
class ControllerConfig:
    """Immutable controller configuration shared by every pipeline stage.

    Attributes:
        horizon_steps: Stage count N.
        step_duration: Time step dt (seconds).
        lf: Front axle to centre-of-gravity distance (meters).
        target_speed: Cruise speed the cost pulls towards.
        max_steering: Symmetric steering bound (rad).
        min_acceleration: Lower acceleration bound (normalized).
        max_acceleration: Upper acceleration bound (normalized).
        state_bound: Bound magnitude used for state variables.
        weights: Cost weights.
        solver_max_time: IPOPT wall-clock budget (seconds).
        smoothing_window: Moving-average width for the predicted actuators.
        fallback_throttle: Throttle emitted when the solve is discarded.
    """

    horizon_steps: int = HORIZON_STEPS
    step_duration: float = STEP_DURATION
    lf: float = LF
    target_speed: float = TARGET_SPEED
    max_steering: float = MAX_STEERING
    min_acceleration: float = MIN_ACCELERATION
    max_acceleration: float = MAX_ACCELERATION
    state_bound: float = STATE_BOUND
    weights: CostWeights = field(default_factory=CostWeights)
    solver_max_time: float = SOLVER_MAX_TIME
    smoothing_window: int = SMOOTHING_WINDOW
    fallback_throttle: float = FALLBACK_THROTTLE

    def __post_init__(self) -> None:
        if self.horizon_steps < 3:
            raise ValueError(f"horizon_steps must be at least 3, got {self.horizon_steps}")
        if not self.step_duration > 0:
            raise ValueError(f"step_duration must be positive, got {self.step_duration}")
        if not self.lf > 0:
            raise ValueError(f"lf must be positive, got {self.lf}")
        if not self.max_steering > 0:
            raise ValueError(f"max_steering must be positive, got {self.max_steering}")
        if self.min_acceleration > self.max_acceleration:
            raise ValueError(
                f"Acceleration bounds inverted: [{self.min_acceleration}, {self.max_acceleration}]"
            )
        if not np.isfinite(self.solver_max_time) or self.solver_max_time <= 0:
            raise ValueError(f"solver_max_time must be positive, got {self.solver_max_time}")
