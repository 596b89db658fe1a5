"""Finite-horizon nonlinear program for path tracking.

This module lays out the optimization problem solved once per control cycle:
- Flat variable vector (see ``model.VariableLayout``)
- Kinematic bicycle dynamics as equality constraints
- Multi-term quadratic cost
- Variable and constraint bounds

``CostEvaluator`` evaluates the objective and constraints for any candidate
vector. The same code runs on numpy arrays (tests, diagnostics) and on casadi
symbols (the solver builds exact derivatives from the symbolic graph).
"""

from dataclasses import dataclass
from typing import Any, Dict, Sequence, Tuple

import casadi as ca
import numpy as np

from .config import ControllerConfig
from .model import NUMPY_OPS, MathOps, State, VariableLayout, predict, rollout, variable_layout

CASADI_OPS = MathOps(cos=ca.cos, sin=ca.sin, atan=ca.atan)


class NumericError(ValueError):
    """Raised when non-finite values would be handed to the solver."""


@dataclass(frozen=True)
class CostEvaluator:
    """Objective and constraint evaluator for one solve.

    Holds only the reference curve coefficients and the immutable config.

    Attributes:
        coeffs: Reference curve coefficients, lowest degree first.
        config: Controller configuration.
    """

    coeffs: Tuple[float, ...]
    config: ControllerConfig

    @property
    def layout(self) -> VariableLayout:
        return variable_layout(self.config.horizon_steps)

    @staticmethod
    def _ops(z: Any) -> MathOps:
        return NUMPY_OPS if isinstance(z, np.ndarray) else CASADI_OPS

    def cost_terms(self, z: Any) -> Dict[str, Any]:
        """Evaluate each weighted cost term separately.

        Args:
            z: Candidate variable vector (numpy array or casadi SX/MX).

        Returns:
            Dictionary mapping term name to its weighted value summed over the
            horizon.
        """
        lay = self.layout
        w = self.config.weights
        n = lay.n
        target = self.config.target_speed

        terms: Dict[str, Any] = {
            "cte": 0.0,
            "cte_steering": 0.0,
            "epsi": 0.0,
            "speed": 0.0,
            "steering": 0.0,
            "acceleration": 0.0,
            "acceleration_steering": 0.0,
            "steering_rate": 0.0,
            "acceleration_rate": 0.0,
        }

        # Reference tracking
        for t in range(n):
            terms["cte"] += w.cte * z[lay.cte + t] ** 2
            terms["epsi"] += w.epsi * z[lay.epsi + t] ** 2
            terms["speed"] += w.speed * (z[lay.v + t] - target) ** 2

        # Actuator magnitude and coupling
        for t in range(n - 1):
            delta = z[lay.delta + t]
            a = z[lay.a + t]
            terms["cte_steering"] += w.cte_steering * (z[lay.cte + t] * delta) ** 2
            terms["steering"] += w.steering * delta**2
            terms["acceleration"] += w.acceleration * a**2
            terms["acceleration_steering"] += w.acceleration_steering * (a * delta) ** 2

        # Actuator smoothness
        for t in range(n - 2):
            terms["steering_rate"] += (
                w.steering_rate * (z[lay.delta + t + 1] - z[lay.delta + t]) ** 2
            )
            terms["acceleration_rate"] += (
                w.acceleration_rate * (z[lay.a + t + 1] - z[lay.a + t]) ** 2
            )

        return terms

    def cost(self, z: Any) -> Any:
        total = 0.0
        for value in self.cost_terms(z).values():
            total += value
        return total

    def constraints(self, z: Any) -> list:
        """Constraint values in layout order.

        Row ``start`` of each state block is the stage-0 variable itself (pinned
        by its bounds). Row ``start + t`` for t >= 1 is the dynamics residual
        between stage t and the model's prediction from stage t - 1.
        """
        lay = self.layout
        ops = self._ops(z)
        starts = lay.state_starts
        dt = self.config.step_duration
        lf = self.config.lf

        g = [0.0] * lay.n_constraints
        for start in starts:
            g[start] = z[start]

        for t in range(1, lay.n):
            previous = [z[start + t - 1] for start in starts]
            predicted = predict(
                previous,
                z[lay.delta + t - 1],
                z[lay.a + t - 1],
                self.coeffs,
                lf,
                dt,
                ops=ops,
            )
            for start, value in zip(starts, predicted):
                g[start + t] = z[start + t] - value

        return g

    def __call__(self, z: Any) -> Tuple[Any, Any]:
        """Evaluate (objective, constraint vector) for a candidate vector."""
        g = self.constraints(z)
        if isinstance(z, np.ndarray):
            return float(self.cost(z)), np.array(g, dtype=float)
        return self.cost(z), ca.vertcat(*g)


@dataclass(frozen=True)
class NLPProblem:
    """Everything the solver needs for one cycle.

    Attributes:
        layout: Variable layout.
        evaluator: Objective and constraint evaluator.
        x0: Initial guess.
        lbx: Variable lower bounds.
        ubx: Variable upper bounds.
        lbg: Constraint lower bounds.
        ubg: Constraint upper bounds.
    """

    layout: VariableLayout
    evaluator: CostEvaluator
    x0: np.ndarray
    lbx: np.ndarray
    ubx: np.ndarray
    lbg: np.ndarray
    ubg: np.ndarray

    def check_finite(self) -> None:
        """Raise NumericError if anything the solver reads is not finite.

        State bounds are allowed to be the large sentinel but never inf/NaN.
        """
        if not np.all(np.isfinite(self.evaluator.coeffs)):
            raise NumericError(f"Non-finite reference coefficients: {self.evaluator.coeffs}")
        for name in ("x0", "lbx", "ubx", "lbg", "ubg"):
            values = getattr(self, name)
            if not np.all(np.isfinite(values)):
                bad = np.flatnonzero(~np.isfinite(values))
                raise NumericError(f"Non-finite {name} at indices {bad.tolist()}")


def build_problem(
    initial_state: State, coeffs: Sequence[float], config: ControllerConfig
) -> NLPProblem:
    """Lay out variables, bounds and evaluator for one solve.

    Args:
        initial_state: Measured state the horizon starts from.
        coeffs: Reference curve coefficients, lowest degree first.
        config: Controller configuration.

    Returns:
        NLPProblem ready for ``solver.solve``.

    Raises:
        NumericError: If the initial state or coefficients are not finite.
    """
    lay = variable_layout(config.horizon_steps)
    n = lay.n
    coeffs = tuple(float(c) for c in coeffs)
    initial = np.asarray(initial_state, dtype=float)

    if not np.all(np.isfinite(initial)):
        raise NumericError(f"Non-finite initial state: {initial.tolist()}")
    if not np.all(np.isfinite(coeffs)):
        raise NumericError(f"Non-finite reference coefficients: {coeffs}")

    # Initial guess: zero-actuation rollout, which satisfies every constraint
    x0 = np.zeros(lay.n_vars)
    states = rollout(State(*initial), coeffs, n, config.lf, config.step_duration)
    for i, start in enumerate(lay.state_starts):
        x0[start : start + n] = states[:, i]

    lbx = np.empty(lay.n_vars)
    ubx = np.empty(lay.n_vars)
    lbx[: lay.delta] = -config.state_bound
    ubx[: lay.delta] = config.state_bound
    lbx[lay.delta : lay.a] = -config.max_steering
    ubx[lay.delta : lay.a] = config.max_steering
    lbx[lay.a :] = config.min_acceleration
    ubx[lay.a :] = config.max_acceleration

    lbg = np.zeros(lay.n_constraints)
    ubg = np.zeros(lay.n_constraints)
    for start, value in zip(lay.state_starts, initial):
        lbg[start] = value
        ubg[start] = value

    problem = NLPProblem(
        layout=lay,
        evaluator=CostEvaluator(coeffs=coeffs, config=config),
        x0=x0,
        lbx=lbx,
        ubx=ubx,
        lbg=lbg,
        ubg=ubg,
    )
    problem.check_finite()
    return problem
