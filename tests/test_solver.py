"""
Closed-form scenarios solved end to end with IPOPT.
"""

import dataclasses

import numpy as np
import pytest

from mpc_control.estimator import estimate_initial_state
from mpc_control.model import State
from mpc_control.problem import NumericError, build_problem
from mpc_control.result import process_solution
from mpc_control.solver import solve, solver_options


def test_solver_options_are_quiet_and_time_capped():
    from mpc_control.config import ControllerConfig

    options = solver_options(ControllerConfig())
    assert options["ipopt.max_wall_time"] == 0.5
    assert options["ipopt.print_level"] == 0
    assert options["error_on_fail"] is False


def test_straight_reference_drives_straight_and_accelerates(config):
    coeffs = np.zeros(4)
    state = estimate_initial_state(coeffs, 10.0)
    problem = build_problem(state, coeffs, config)

    result = solve(problem, config)

    assert result.success, result.status
    res = process_solution(result, problem.layout, config)
    assert abs(res.next_steering_angle()) < 1e-3
    assert res.next_throttle() > 0.0
    assert np.all(np.abs(res.predicted_ys) < 1e-2)


def test_reference_curving_left_steers_left(config):
    coeffs = np.array([0.0, 0.2, 0.005, 0.0])
    state = estimate_initial_state(coeffs, 10.0)
    assert state.epsi < 0.0

    problem = build_problem(state, coeffs, config)
    result = solve(problem, config)

    assert result.success, result.status
    res = process_solution(result, problem.layout, config)
    # Negative steering turns left
    assert res.next_steering_angle() < 0.0
    assert res.predicted_ys[-1] > 0.0


def test_solution_respects_dynamics_and_bounds(config):
    coeffs = np.array([1.0, -0.1, 0.002, 0.0])
    problem = build_problem(estimate_initial_state(coeffs, 15.0), coeffs, config)

    result = solve(problem, config)

    assert result.success, result.status
    lay = problem.layout
    _, g = problem.evaluator(result.solution)
    np.testing.assert_allclose(g, problem.lbg, atol=1e-5)
    delta = result.solution[lay.delta : lay.a]
    assert np.all(np.abs(delta) <= config.max_steering + 1e-6)
    assert result.cost == pytest.approx(problem.evaluator.cost(result.solution), rel=1e-6)


def test_non_finite_guess_is_rejected_before_solving(config):
    problem = build_problem(State(0.0, 0.0, 0.0, 5.0, 0.0, 0.0), np.zeros(4), config)
    x0 = problem.x0.copy()
    x0[0] = np.nan

    with pytest.raises(NumericError):
        solve(dataclasses.replace(problem, x0=x0), config)


def test_solver_exception_becomes_unsuccessful_result(config, monkeypatch):
    import mpc_control.solver as solver_module

    def broken_nlpsol(*args, **kwargs):
        raise RuntimeError("plugin 'ipopt' not found")

    monkeypatch.setattr(solver_module.ca, "nlpsol", broken_nlpsol)
    problem = build_problem(State(0.0, 0.0, 0.0, 5.0, 0.0, 0.0), np.zeros(4), config)

    result = solve(problem, config)

    assert result.success is False
    assert result.status == "Exception"
    assert np.isnan(result.cost)
    np.testing.assert_array_equal(result.solution, problem.x0)
