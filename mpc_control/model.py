"""
Kinematic bicycle model and optimization variable layout.

This module provides the discrete vehicle dynamics shared by the problem
builder (as equality constraints), the initial-guess rollout and the result
processor (re-integration after smoothing).

Steering sign convention: a positive steering angle turns the vehicle to the
right, i.e. it decreases the heading psi. The heading error epsi = psi - psi_des
receives exactly the same increment as psi, so both rows use
``heading_change``.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, NamedTuple, Sequence

import numpy as np

from .reference import desired_heading, polyeval


class State(NamedTuple):
    """Vehicle state in the vehicle frame."""

    x: float
    y: float
    psi: float
    v: float
    cte: float
    epsi: float


class MathOps(NamedTuple):
    """Elementary functions for the value type being evaluated."""

    cos: Callable[[Any], Any]
    sin: Callable[[Any], Any]
    atan: Callable[[Any], Any]


NUMPY_OPS = MathOps(cos=np.cos, sin=np.sin, atan=np.arctan)


@dataclass(frozen=True)
class VariableLayout:
    """Offsets of each block inside the flat optimization vector.

    The vector holds N samples of x, y, psi, v, cte and epsi, followed by
    N-1 steering values and N-1 acceleration values.
    """

    n: int
    x: int
    y: int
    psi: int
    v: int
    cte: int
    epsi: int
    delta: int
    a: int
    n_vars: int
    n_constraints: int

    @property
    def state_starts(self) -> tuple:
        """Start offsets of the six state blocks, in State field order."""
        return (self.x, self.y, self.psi, self.v, self.cte, self.epsi)


@lru_cache(maxsize=None)
def variable_layout(n: int) -> VariableLayout:
    """Compute the variable layout for a horizon of n stages.

    Args:
        n: Number of stages (must be >= 2).

    Returns:
        Immutable VariableLayout.
    """
    if n < 2:
        raise ValueError(f"Horizon needs at least 2 stages, got {n}")

    x = 0
    y = x + n
    psi = y + n
    v = psi + n
    cte = v + n
    epsi = cte + n
    delta = epsi + n
    a = delta + n - 1

    return VariableLayout(
        n=n,
        x=x,
        y=y,
        psi=psi,
        v=v,
        cte=cte,
        epsi=epsi,
        delta=delta,
        a=a,
        n_vars=6 * n + 2 * (n - 1),
        n_constraints=6 * n,
    )


def heading_change(v: Any, delta: Any, lf: float, dt: float) -> Any:
    """Heading increment over one step. Positive delta turns right (negative)."""
    return -(v / lf) * delta * dt


def predict(
    state: Sequence[Any],
    delta: Any,
    a: Any,
    coeffs: Sequence[float],
    lf: float,
    dt: float,
    ops: MathOps = NUMPY_OPS,
) -> State:
    """Advance a state by one Euler step of the kinematic bicycle model.

    Args:
        state: (x, y, psi, v, cte, epsi) at stage t.
        delta: Steering angle applied over the step (rad).
        a: Acceleration applied over the step.
        coeffs: Reference curve coefficients.
        lf: Front axle to centre-of-gravity distance.
        dt: Step duration.
        ops: Elementary functions matching the value type.

    Returns:
        State at stage t + 1.
    """
    x, y, psi, v, _cte, epsi = state
    dpsi = heading_change(v, delta, lf, dt)

    return State(
        x=x + v * ops.cos(psi) * dt,
        y=y + v * ops.sin(psi) * dt,
        psi=psi + dpsi,
        v=v + a * dt,
        cte=(polyeval(coeffs, x) - y) + v * ops.sin(epsi) * dt,
        epsi=(psi - desired_heading(coeffs, x, atan=ops.atan)) + dpsi,
    )


def rollout(
    initial: State, coeffs: Sequence[float], n: int, lf: float, dt: float
) -> np.ndarray:
    """Roll the model forward with zero actuation.

    Returns:
        Array of shape (n, 6), one State per stage, starting with ``initial``.
    """
    states = np.zeros((n, 6))
    states[0] = initial
    for t in range(1, n):
        states[t] = predict(states[t - 1], 0.0, 0.0, coeffs, lf, dt)
    return states
