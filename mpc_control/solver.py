"""IPOPT solve through casadi.

The problem is rebuilt symbolically from ``CostEvaluator`` each cycle; casadi
derives exact sparse Jacobians and Hessians from the expression graph, so the
evaluator never needs hand-written derivatives.
"""

import logging
from dataclasses import dataclass

import casadi as ca
import numpy as np

from .config import ControllerConfig
from .problem import NLPProblem

SOLVER_NAME = "ipopt"


@dataclass(frozen=True)
class SolveResult:
    """Outcome of one solve.

    Attributes:
        success: True only if IPOPT reports convergence.
        status: IPOPT return status string (e.g. "Solve_Succeeded").
        cost: Objective value at the returned point.
        solution: Variable vector in layout order.
    """

    success: bool
    status: str
    cost: float
    solution: np.ndarray


def solver_options(config: ControllerConfig) -> dict:
    """IPOPT options: quiet, time-capped, never raising on failure."""
    return {
        "ipopt.print_level": 0,
        "ipopt.sb": "yes",
        "ipopt.max_wall_time": config.solver_max_time,
        "print_time": False,
        "error_on_fail": False,
    }


def solve(problem: NLPProblem, config: ControllerConfig) -> SolveResult:
    """Dispatch the problem to IPOPT.

    Args:
        problem: Problem built by ``build_problem``.
        config: Controller configuration (solver time budget).

    Returns:
        SolveResult. A solver exception becomes an unsuccessful result carrying
        the initial guess so callers never trust it.

    Raises:
        NumericError: If the problem contains non-finite values.
    """
    problem.check_finite()

    z = ca.SX.sym("z", problem.layout.n_vars)
    cost, g = problem.evaluator(z)
    nlp = {"x": z, "f": cost, "g": g}

    try:
        nlp_solver = ca.nlpsol("mpc", SOLVER_NAME, nlp, solver_options(config))
        solution = nlp_solver(
            x0=problem.x0,
            lbx=problem.lbx,
            ubx=problem.ubx,
            lbg=problem.lbg,
            ubg=problem.ubg,
        )
    except RuntimeError as e:
        logging.error(f"Solver raised: {e}")
        return SolveResult(
            success=False, status="Exception", cost=float("nan"), solution=problem.x0.copy()
        )

    stats = nlp_solver.stats()
    status = str(stats.get("return_status", "Unknown"))
    x = np.array(solution["x"], dtype=float).flatten()
    cost_value = float(solution["f"])
    success = bool(stats.get("success", False)) and bool(np.all(np.isfinite(x)))

    logging.debug(
        f"Solver finished: status={status}, cost={cost_value:.3f}, "
        f"iterations={stats.get('iter_count', 'N/A')}"
    )

    return SolveResult(success=success, status=status, cost=cost_value, solution=x)
