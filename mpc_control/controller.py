"""MPC control loop: one telemetry message in, one command out.

Each cycle runs the full pipeline:
transform → fit → estimate state → build problem → solve → process result.

Nothing is carried between cycles except the immutable ControllerConfig.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from .config import ControllerConfig, TERM_ORANGE, TERM_RESET
from .data_collector import DataCollector
from .estimator import estimate_initial_state
from .problem import NumericError, build_problem
from .reference import ReferenceFitError, fit_reference
from .result import process_solution
from .solver import solve
from .transform import to_vehicle_frame

class TelemetryError(ValueError):
    """Raised when a telemetry message is missing fields or malformed."""


@dataclass(frozen=True)
class Telemetry:
    """One inbound telemetry message (world frame).

    Attributes:
        ptsx: Reference waypoint x coordinates.
        ptsy: Reference waypoint y coordinates.
        x: Vehicle x position.
        y: Vehicle y position.
        psi: Vehicle heading (rad).
        speed: Vehicle speed.
    """

    ptsx: List[float]
    ptsy: List[float]
    x: float
    y: float
    psi: float
    speed: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Telemetry":
        """Validate and convert a parsed telemetry payload.

        Raises:
            TelemetryError: If a field is missing, has the wrong type or is not
                finite, or the waypoint arrays differ in length.
        """
        if not isinstance(data, dict):
            raise TelemetryError(f"Telemetry must be an object, got {type(data).__name__}")

        missing = [key for key in ("ptsx", "ptsy", "x", "y", "psi", "speed") if key not in data]
        if missing:
            raise TelemetryError(f"Telemetry missing fields: {', '.join(missing)}")

        ptsx = _float_list(data["ptsx"], "ptsx")
        ptsy = _float_list(data["ptsy"], "ptsy")
        if len(ptsx) != len(ptsy):
            raise TelemetryError(f"ptsx and ptsy differ in length: {len(ptsx)} vs {len(ptsy)}")

        return cls(
            ptsx=ptsx,
            ptsy=ptsy,
            x=_float(data["x"], "x"),
            y=_float(data["y"], "y"),
            psi=_float(data["psi"], "psi"),
            speed=_float(data["speed"], "speed"),
        )


def _float(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise TelemetryError(f"Field '{name}' must be a number, got bool")
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise TelemetryError(f"Field '{name}' must be a number, got {value!r}") from None
    if not math.isfinite(result):
        raise TelemetryError(f"Field '{name}' is not finite: {result}")
    return result


def _float_list(values: Any, name: str) -> List[float]:
    if not isinstance(values, (list, tuple)):
        raise TelemetryError(f"Field '{name}' must be a list, got {type(values).__name__}")
    return [_float(v, f"{name}[{i}]") for i, v in enumerate(values)]


@dataclass
class Command:
    """Outbound actuator command plus display data for one cycle.

    Attributes:
        steering: Normalized steering in [-1, 1] (positive = right).
        throttle: Normalized throttle in [-1, 1].
        mpc_x: Predicted trajectory x (vehicle frame).
        mpc_y: Predicted trajectory y (vehicle frame).
        next_x: Reference waypoints x (vehicle frame).
        next_y: Reference waypoints y (vehicle frame).
        cost: Objective value (NaN for fallback commands).
        cte: Predicted cross-track error at stage 1.
        status: Solver return status.
        fallback: True if the solve was discarded.
    """

    steering: float
    throttle: float
    mpc_x: List[float] = field(default_factory=list)
    mpc_y: List[float] = field(default_factory=list)
    next_x: List[float] = field(default_factory=list)
    next_y: List[float] = field(default_factory=list)
    cost: float = float("nan")
    cte: float = float("nan")
    status: str = ""
    fallback: bool = False

    def to_message(self) -> Dict[str, Any]:
        """Payload of the outbound ``steer`` event."""
        return {
            "steering_angle": self.steering,
            "throttle": self.throttle,
            "mpc_x": self.mpc_x,
            "mpc_y": self.mpc_y,
            "next_x": self.next_x,
            "next_y": self.next_y,
        }


class MPCController:
    """Receding-horizon path-tracking controller.

    Attributes:
        config: Immutable controller configuration.
        data_collector: Optional per-cycle CSV logger.
    """

    def __init__(
        self, config: Optional[ControllerConfig] = None, data_collector: Optional[DataCollector] = None
    ) -> None:
        self.config = config if config is not None else ControllerConfig()
        self.data_collector = data_collector

    def fallback_command(self, next_x: List[float], next_y: List[float], status: str) -> Command:
        """Neutral command used when the solver's answer cannot be trusted."""
        return Command(
            steering=0.0,
            throttle=self.config.fallback_throttle,
            next_x=next_x,
            next_y=next_y,
            status=status,
            fallback=True,
        )

    def compute_command(self, telemetry: Telemetry) -> Command:
        """Run one full control cycle.

        Args:
            telemetry: Validated telemetry.

        Returns:
            Command for this cycle. If the solver does not converge, a neutral
            fallback command with ``fallback=True``.

        Raises:
            ReferenceFitError: If the waypoints cannot be fitted.
            NumericError: If non-finite values reach the problem.
        """
        cfg = self.config

        xs, ys = to_vehicle_frame(telemetry.ptsx, telemetry.ptsy, telemetry.x, telemetry.y, telemetry.psi)
        next_x = xs.tolist()
        next_y = ys.tolist()

        coeffs = fit_reference(xs, ys)
        state = estimate_initial_state(coeffs, telemetry.speed)

        logging.debug(
            f"State: v={state.v:.3f}, cte={state.cte:.4f}, epsi={state.epsi:.4f}, "
            f"coeffs={np.array2string(coeffs, precision=4)}"
        )

        problem = build_problem(state, coeffs, cfg)
        solved = solve(problem, cfg)

        if not solved.success:
            logging.warning(
                f"{TERM_ORANGE}Solver did not converge ({solved.status}); sending fallback command{TERM_RESET}"
            )
            command = self.fallback_command(next_x, next_y, solved.status)
        else:
            res = process_solution(solved, problem.layout, cfg)
            command = Command(
                steering=res.next_steering_angle() / cfg.max_steering,
                throttle=res.next_throttle(),
                mpc_x=res.predicted_xs.tolist(),
                mpc_y=res.predicted_ys.tolist(),
                next_x=next_x,
                next_y=next_y,
                cost=res.cost,
                cte=res.cte,
                status=res.status,
            )
            logging.debug(
                f"MPC round done [cost={res.cost:.3f}, cte={res.cte:.4f}, "
                f"steer={command.steering:.4f}, throttle={command.throttle:.4f}]"
            )

        if self.data_collector is not None:
            self.data_collector.log_cycle(time.time(), telemetry, state, command)

        return command

    def handle_telemetry(self, data: Dict[str, Any]) -> Optional[Command]:
        """Validate a parsed payload and run one cycle.

        Returns:
            Command, or None if the cycle was skipped because of bad input or a
            degenerate reference.
        """
        try:
            telemetry = Telemetry.from_dict(data)
            return self.compute_command(telemetry)
        except TelemetryError as e:
            logging.warning(f"Skipping cycle, invalid telemetry: {e}")
        except ReferenceFitError as e:
            logging.warning(f"Skipping cycle, reference fit failed: {e}")
        except NumericError as e:
            logging.warning(f"Skipping cycle, numeric error: {e}")
        return None
