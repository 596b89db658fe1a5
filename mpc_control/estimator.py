"""Initial control state from the fitted reference curve."""

from typing import Sequence

import numpy as np

from .model import State
from .reference import desired_heading, polyeval


def estimate_initial_state(coeffs: Sequence[float], speed: float) -> State:
    """Derive the state the horizon starts from.

    The vehicle is at the origin of its own frame with zero heading, so the
    cross-track error is f(0) - 0 and the heading error is 0 - atan(f'(0)).

    Args:
        coeffs: Reference curve coefficients, lowest degree first.
        speed: Current vehicle speed.

    Returns:
        State (0, 0, 0, speed, cte, epsi).
    """
    px, py, psi = 0.0, 0.0, 0.0

    cte = float(polyeval(coeffs, px)) - py
    epsi = psi - float(desired_heading(coeffs, px, atan=np.arctan))

    return State(x=px, y=py, psi=psi, v=float(speed), cte=cte, epsi=epsi)
