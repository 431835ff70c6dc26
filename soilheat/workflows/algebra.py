"""This module contains algebraic solvers used by the soil heat conduction model."""

import logging

import numpy as np
from numba import njit

from soilheat.errors import BracketError, ConvergenceError
from soilheat.types import ArrayFloat, ArrayFloat64, ResidualFunction, State

logger: logging.Logger = logging.getLogger(__name__)

# Maximum number of iterations of the root finder
ROOT_BRENT_MAX_ITERATIONS: int = 50
# Relative error tolerance of the root finder
ROOT_BRENT_RELATIVE_EPSILON: float = 1e-8


@njit(cache=True)
def tdma_solver(
    lower_diagonal_a: ArrayFloat,
    main_diagonal_b: ArrayFloat,
    upper_diagonal_c: ArrayFloat,
    rhs_vector_d: ArrayFloat,
) -> ArrayFloat64:
    """Solve a tridiagonal system Ax = d using the Thomas algorithm.

    Row i of the system reads a[i] * x[i-1] + b[i] * x[i] + c[i] * x[i+1] = d[i].
    a[0] and c[n-1] fall outside the matrix and are ignored.

    Notes:
        There is no guard against a vanishing pivot. The soil heat equation
        yields diagonally dominant systems, so a zero pivot indicates
        ill-posed input.

    Args:
        lower_diagonal_a: Lower diagonal (length n).
        main_diagonal_b: Main diagonal (length n).
        upper_diagonal_c: Upper diagonal (length n).
        rhs_vector_d: Right hand side (length n).

    Returns:
        Solution vector x (length n) as a new float64 array.
    """
    n = len(rhs_vector_d)

    c_prime = np.empty(n, dtype=np.float64)
    d_prime = np.empty(n, dtype=np.float64)
    solution_vector_x = np.empty(n, dtype=np.float64)

    c_prime[0] = upper_diagonal_c[0] / main_diagonal_b[0]
    d_prime[0] = rhs_vector_d[0] / main_diagonal_b[0]

    for i in range(1, n):
        denominator = main_diagonal_b[i] - lower_diagonal_a[i] * c_prime[i - 1]
        if i < n - 1:
            c_prime[i] = upper_diagonal_c[i] / denominator
        else:
            c_prime[i] = 0.0
        d_prime[i] = (
            rhs_vector_d[i] - lower_diagonal_a[i] * d_prime[i - 1]
        ) / denominator

    solution_vector_x[n - 1] = d_prime[n - 1]
    for i in range(n - 2, -1, -1):
        solution_vector_x[i] = d_prime[i] - c_prime[i] * solution_vector_x[i + 1]

    return solution_vector_x


def _same_sign(x: float, y: float) -> bool:
    return (x > 0 and y > 0) or (x < 0 and y < 0)


def root_brent(
    func: ResidualFunction,
    xa: float,
    xb: float,
    tol: float,
    state: State,
    max_iterations: int = ROOT_BRENT_MAX_ITERATIONS,
) -> tuple[float, State]:
    """Find the root of a function known to lie between xa and xb with Brent's method.

    The method combines bisection, the secant rule and inverse quadratic
    interpolation. An interpolated step is only taken when it stays inside the
    bracket and shrinks it faster than bisection would.

    The residual function threads an auxiliary state: it is called as
    ``func(x, state)`` and returns ``(new_state, fx)``. Every evaluation is
    given the `state` passed to this function, so evaluations do not depend on
    each other. The state returned at each bracket point is kept together with
    its residual, so the state returned here is the one computed at the root.

    Args:
        func: Residual function ``(x, state) -> (state, fx)``.
        xa: One end of the bracket.
        xb: Other end of the bracket.
        tol: Absolute tolerance of the root.
        state: Auxiliary state passed to every evaluation of `func`.
        max_iterations: Maximum number of iterations.

    Returns:
        Tuple of:
            - The root.
            - The auxiliary state returned by `func` at the root.

    Raises:
        BracketError: If func(xa) and func(xb) have the same sign.
        ConvergenceError: If the root is not found within max_iterations.
    """
    if max_iterations < 1:
        raise ValueError("max_iterations must be at least 1.")

    a = xa
    b = xb
    state_a, fa = func(a, state)
    state_b, fb = func(b, state)

    if _same_sign(fa, fb):
        raise BracketError(
            f"Root must be bracketed: f({xa}) = {fa} and f({xb}) = {fb} have the same sign."
        )

    c = b
    fc = fb
    state_c = state_b
    d = b - a
    e = d

    for iteration in range(1, max_iterations + 1):
        if _same_sign(fb, fc):
            c = a
            fc = fa
            state_c = state_a
            d = b - a
            e = d
        if abs(fc) < abs(fb):
            a, b, c = b, c, b
            fa, fb, fc = fb, fc, fb
            state_a, state_b, state_c = state_b, state_c, state_b

        tol1 = 2.0 * ROOT_BRENT_RELATIVE_EPSILON * abs(b) + 0.5 * tol
        xm = 0.5 * (c - b)

        if abs(xm) <= tol1 or fb == 0:
            break

        if abs(e) >= tol1 and abs(fa) > abs(fb):
            s = fb / fa
            if a == c:
                # secant
                p = 2.0 * xm * s
                q = 1.0 - s
            else:
                # inverse quadratic interpolation
                q = fa / fc
                r = fb / fc
                p = s * (2.0 * xm * q * (q - r) - (b - a) * (r - 1.0))
                q = (q - 1.0) * (r - 1.0) * (s - 1.0)
            if p > 0:
                q = -q
            p = abs(p)
            if 2.0 * p < min(3.0 * xm * q - abs(tol1 * q), abs(e * q)):
                e = d
                d = p / q
            else:
                d = xm
                e = d
        else:
            d = xm
            e = d

        a = b
        fa = fb
        state_a = state_b
        if abs(d) > tol1:
            b = b + d
        elif xm >= 0:
            b = b + abs(tol1)
        else:
            b = b - abs(tol1)
        state_b, fb = func(b, state)

        if fb == 0:
            break

        if iteration == max_iterations:
            raise ConvergenceError(
                f"Root finder did not converge within {max_iterations} iterations."
            )

    logger.debug(f"Brent root finder converged to {b} after {iteration} iterations")
    return b, state_b
