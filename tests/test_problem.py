import dataclasses

import casadi as ca
import numpy as np
import pytest

from mpc_control.config import ControllerConfig
from mpc_control.model import State, variable_layout
from mpc_control.problem import CostEvaluator, NumericError, build_problem

COEFFS = (0.4, 0.15, -0.01, 0.0005)


def _documented_step(s, delta, a, coeffs, lf, dt):
    """One step of the kinematic model written out term by term."""
    x, y, psi, v, cte, epsi = s
    f = coeffs[0] + coeffs[1] * x + coeffs[2] * x**2 + coeffs[3] * x**3
    psi_des = np.arctan(coeffs[1] + 2 * coeffs[2] * x + 3 * coeffs[3] * x**2)
    return (
        x + v * np.cos(psi) * dt,
        y + v * np.sin(psi) * dt,
        psi - (v / lf) * delta * dt,
        v + a * dt,
        (f - y) + v * np.sin(epsi) * dt,
        (psi - psi_des) - (v / lf) * delta * dt,
    )


def _trajectory_vector(config, initial, deltas, accels, coeffs=COEFFS):
    lay = variable_layout(config.horizon_steps)
    z = np.zeros(lay.n_vars)
    state = tuple(initial)
    for t in range(lay.n):
        for start, value in zip(lay.state_starts, state):
            z[start + t] = value
        if t < lay.n - 1:
            z[lay.delta + t] = deltas[t]
            z[lay.a + t] = accels[t]
            state = _documented_step(state, deltas[t], accels[t], coeffs, config.lf, config.step_duration)
    return z


def test_zero_actuation_rollout_has_zero_residuals() -> None:
    config = ControllerConfig(horizon_steps=8)
    lay = variable_layout(8)
    initial = State(0.0, 0.0, 0.0, 12.0, 0.4, -0.15)
    z = _trajectory_vector(config, initial, [0.0] * 7, [0.0] * 7)

    g = np.array(CostEvaluator(COEFFS, config).constraints(z), dtype=float)

    for start, value in zip(lay.state_starts, initial):
        assert g[start] == value
        np.testing.assert_allclose(g[start + 1 : start + lay.n], 0.0, atol=1e-12)


def test_actuated_trajectory_has_zero_residuals() -> None:
    config = ControllerConfig(horizon_steps=6)
    initial = State(0.0, 0.0, 0.0, 9.0, -0.2, 0.05)
    deltas = [0.1, -0.05, 0.2, 0.0, -0.3]
    accels = [0.5, -0.2, 0.75, -1.0, 0.1]
    z = _trajectory_vector(config, initial, deltas, accels)

    _, g = CostEvaluator(COEFFS, config)(z)

    lay = variable_layout(6)
    residual_rows = [start + t for start in lay.state_starts for t in range(1, lay.n)]
    np.testing.assert_allclose(g[residual_rows], 0.0, atol=1e-12)


def test_perturbed_stage_shows_nonzero_residual() -> None:
    config = ControllerConfig(horizon_steps=6)
    lay = variable_layout(6)
    z = _trajectory_vector(config, State(0.0, 0.0, 0.0, 9.0, 0.0, 0.0), [0.0] * 5, [0.0] * 5)
    z[lay.y + 3] += 0.5

    g = np.array(CostEvaluator(COEFFS, config).constraints(z), dtype=float)
    assert g[lay.y + 3] == pytest.approx(0.5)


def _cost_vector(config, cte_value, steering=0.2):
    lay = variable_layout(config.horizon_steps)
    z = np.zeros(lay.n_vars)
    z[lay.cte : lay.cte + lay.n] = cte_value
    z[lay.delta : lay.delta + lay.n - 1] = steering
    z[lay.v : lay.v + lay.n] = 10.0
    return z


def test_cte_terms_increase_strictly_with_cte_magnitude() -> None:
    config = ControllerConfig(horizon_steps=10)
    evaluator = CostEvaluator(COEFFS, config)

    previous = None
    for cte_value in [0.0, 0.5, -1.0, 2.0, -4.0]:
        terms = evaluator.cost_terms(_cost_vector(config, cte_value))
        if previous is not None:
            assert terms["cte"] > previous["cte"]
            assert terms["cte_steering"] > previous["cte_steering"]
            for name in ("epsi", "speed", "steering", "acceleration", "steering_rate"):
                assert terms[name] == pytest.approx(previous[name])
        previous = terms


def test_cost_is_sum_of_terms() -> None:
    config = ControllerConfig(horizon_steps=7)
    evaluator = CostEvaluator(COEFFS, config)
    rng = np.random.default_rng(3)
    z = rng.normal(size=variable_layout(7).n_vars)

    cost, _ = evaluator(z)
    assert cost == pytest.approx(sum(evaluator.cost_terms(z).values()))


def test_cost_term_weights() -> None:
    config = ControllerConfig(horizon_steps=3, target_speed=0.0)
    lay = variable_layout(3)
    evaluator = CostEvaluator((0.0, 0.0, 0.0, 0.0), config)

    # Unit values at the first stage only, so each term equals its weight
    z = np.zeros(lay.n_vars)
    z[lay.cte] = 1.0
    z[lay.epsi] = 1.0
    z[lay.v] = 1.0
    z[lay.delta] = 1.0
    z[lay.a] = 1.0
    terms = evaluator.cost_terms(z)

    assert terms == pytest.approx(
        {
            "cte": 1000.0,
            "cte_steering": 10000.0,
            "epsi": 10000.0,
            "speed": 10.0,
            "steering": 10.0,
            "acceleration": 100.0,
            "acceleration_steering": 100.0,
            "steering_rate": 10.0,
            "acceleration_rate": 10.0,
        }
    )


def test_symbolic_and_numeric_evaluation_agree() -> None:
    config = ControllerConfig(horizon_steps=6)
    evaluator = CostEvaluator(COEFFS, config)
    n_vars = variable_layout(6).n_vars

    sym = ca.SX.sym("z", n_vars)
    sym_cost, sym_g = evaluator(sym)
    fn = ca.Function("fg", [sym], [sym_cost, sym_g])

    point = np.random.default_rng(7).uniform(-0.5, 0.5, size=n_vars)
    cost_value, g_value = fn(point)
    num_cost, num_g = evaluator(point)

    assert float(cost_value) == pytest.approx(num_cost)
    np.testing.assert_allclose(np.array(g_value).flatten(), num_g, atol=1e-10)


def test_build_problem_bounds() -> None:
    config = ControllerConfig()
    lay = variable_layout(config.horizon_steps)
    initial = State(0.0, 0.0, 0.0, 15.0, 0.7, -0.05)
    problem = build_problem(initial, COEFFS, config)

    assert problem.x0.shape == (lay.n_vars,)
    assert np.all(problem.lbx[: lay.delta] == -1.0e19)
    assert np.all(problem.ubx[: lay.delta] == 1.0e19)
    np.testing.assert_allclose(problem.lbx[lay.delta : lay.a], -0.436332)
    np.testing.assert_allclose(problem.ubx[lay.delta : lay.a], 0.436332)
    assert np.all(problem.lbx[lay.a :] == -1.0)
    assert np.all(problem.ubx[lay.a :] == 0.75)

    for start, value in zip(lay.state_starts, initial):
        assert problem.lbg[start] == problem.ubg[start] == value
    pinned = set(lay.state_starts)
    others = [i for i in range(lay.n_constraints) if i not in pinned]
    assert np.all(problem.lbg[others] == 0.0)
    assert np.all(problem.ubg[others] == 0.0)


def test_initial_guess_is_feasible() -> None:
    config = ControllerConfig()
    problem = build_problem(State(0.0, 0.0, 0.0, 20.0, 1.0, 0.1), COEFFS, config)

    _, g = problem.evaluator(problem.x0)
    assert np.all(g >= problem.lbg - 1e-9)
    assert np.all(g <= problem.ubg + 1e-9)


def test_non_finite_initial_state_rejected() -> None:
    with pytest.raises(NumericError):
        build_problem(State(0.0, 0.0, 0.0, float("nan"), 0.0, 0.0), COEFFS, ControllerConfig())


def test_non_finite_coefficients_rejected() -> None:
    with pytest.raises(NumericError):
        build_problem(State(0.0, 0.0, 0.0, 5.0, 0.0, 0.0), (0.0, float("inf"), 0.0, 0.0), ControllerConfig())


def test_check_finite_catches_corrupted_bounds() -> None:
    problem = build_problem(State(0.0, 0.0, 0.0, 5.0, 0.0, 0.0), COEFFS, ControllerConfig())
    bad = problem.ubx.copy()
    bad[3] = np.inf
    with pytest.raises(NumericError):
        dataclasses.replace(problem, ubx=bad).check_finite()
