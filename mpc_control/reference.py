"""Reference curve fitting and evaluation.

The reference path is a cubic polynomial y = f(x) in the vehicle frame,
stored as coefficients lowest degree first. ``polyeval`` and ``polyderiv`` are
the only implementation of f and f'; the state estimator and the problem
builder both call them so the two can never drift apart. They use plain
arithmetic, which works for floats, numpy arrays and casadi symbols alike.
"""

from typing import Any, Sequence

import numpy as np
import numpy.typing as npt

REFERENCE_ORDER = 3


class ReferenceFitError(ValueError):
    """Raised when the reference points cannot produce a well-posed fit."""


def fit_reference(
    xs: Sequence[float], ys: Sequence[float], order: int = REFERENCE_ORDER
) -> npt.NDArray[np.float64]:
    """Least-squares polynomial fit via QR decomposition.

    Builds the Vandermonde matrix A (columns 1, x, x², ...), factors A = QR and
    solves R c = Qᵀ y.

    Args:
        xs: Vehicle-frame x coordinates.
        ys: Vehicle-frame y coordinates.
        order: Polynomial degree (default: 3).

    Returns:
        Coefficient array of length order + 1, lowest degree first.

    Raises:
        ReferenceFitError: If there are fewer than order + 1 points, the inputs
            differ in length or are not finite, or the x values do not span
            enough distinct positions for a unique fit.
    """
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)

    if xs.shape != ys.shape or xs.ndim != 1:
        raise ReferenceFitError(f"Reference arrays must be 1-D and equal length: {xs.shape} vs {ys.shape}")
    if len(xs) < order + 1:
        raise ReferenceFitError(
            f"Need at least {order + 1} reference points for a degree-{order} fit, got {len(xs)}"
        )
    if not (np.all(np.isfinite(xs)) and np.all(np.isfinite(ys))):
        raise ReferenceFitError("Reference points contain non-finite values")

    A = np.vander(xs, order + 1, increasing=True)
    if np.linalg.matrix_rank(A) < order + 1:
        raise ReferenceFitError(
            f"Reference fit is singular: {len(np.unique(xs))} distinct x values for degree {order}"
        )

    q, r = np.linalg.qr(A)
    coeffs = np.linalg.solve(r, q.T @ ys)

    if not np.all(np.isfinite(coeffs)):
        raise ReferenceFitError("Reference fit produced non-finite coefficients")

    return coeffs


def polyeval(coeffs: Sequence[float], x: Any) -> Any:
    """Evaluate f(x) with Horner's scheme."""
    result = 0.0
    for c in reversed(list(coeffs)):
        result = result * x + c
    return result


def polyderiv(coeffs: Sequence[float], x: Any) -> Any:
    """Evaluate f'(x)."""
    coeffs = list(coeffs)
    result = 0.0
    for power in range(len(coeffs) - 1, 0, -1):
        result = result * x + power * coeffs[power]
    return result


def desired_heading(coeffs: Sequence[float], x: Any, atan: Any = np.arctan) -> Any:
    """Heading of the reference curve's tangent at x.

    Args:
        coeffs: Curve coefficients, lowest degree first.
        x: Evaluation point (float, array or symbol).
        atan: Arctangent matching the type of x (``casadi.atan`` for symbols).
    """
    return atan(polyderiv(coeffs, x))
