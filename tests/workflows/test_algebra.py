"""Unit tests for the algebraic solvers in soilheat."""

import math

import numpy as np
import pytest

from soilheat.errors import BracketError, ConvergenceError
from soilheat.workflows.algebra import root_brent, tdma_solver


def test_tdma_solver_identity() -> None:
    """Test TDMA solver with an identity matrix."""
    n = 5
    a = np.zeros(n)
    b = np.ones(n)
    c = np.zeros(n)
    d = np.array([1.0, 2.0, 3.0, 4.0, 5.0])

    x = tdma_solver(a, b, c, d)

    np.testing.assert_allclose(x, d, atol=1e-12)


def test_tdma_solver_simple_system() -> None:
    """Test TDMA solver with a known 3x3 system.

    Matrix:
    [ 2  -1   0 ] [ x1 ]   [ 1 ]
    [ -1  2  -1 ] [ x2 ] = [ 0 ]
    [ 0  -1   2 ] [ x3 ]   [ 1 ]

    Solution: x = [1, 1, 1]
    """
    a = np.array([0.0, -1.0, -1.0])
    b = np.array([2.0, 2.0, 2.0])
    c = np.array([-1.0, -1.0, 0.0])
    d = np.array([1.0, 0.0, 1.0])

    x = tdma_solver(a, b, c, d)

    np.testing.assert_allclose(x, np.ones(3), atol=1e-12)


def test_tdma_solver_linear_profile() -> None:
    """Constant coefficients a = c = -1, b = 2, d = 0 with fixed end values give a straight line."""
    n = 11
    a = np.full(n, -1.0)
    b = np.full(n, 2.0)
    c = np.full(n, -1.0)
    d = np.zeros(n)

    # Fix the boundary values x[0] = 280 and x[n-1] = 270
    a[0], b[0], c[0], d[0] = 0.0, 1.0, 0.0, 280.0
    a[-1], b[-1], c[-1], d[-1] = 0.0, 1.0, 0.0, 270.0

    x = tdma_solver(a, b, c, d)

    expected = np.linspace(280.0, 270.0, n)
    np.testing.assert_allclose(x, expected, rtol=0, atol=1e-10)


def test_tdma_solver_sum_of_rows() -> None:
    """Test TDMA solver using the sum of rows method.

    If x is a vector of ones, then Ax = d where d_i is the sum of row i.
    """
    n = 10
    rng = np.random.default_rng(42)
    # Create a diagonally dominant tridiagonal matrix to ensure stability
    a = rng.uniform(-1, -0.5, n)
    c = rng.uniform(-1, -0.5, n)
    b = np.abs(a) + np.abs(c) + 1.0

    # a[0] and c[n-1] are outside the matrix
    a[0] = 0.0
    c[n - 1] = 0.0

    d = a + b + c

    x = tdma_solver(a, b, c, d)

    np.testing.assert_allclose(x, np.ones(n), atol=1e-12)


def test_tdma_solver_matches_dense_solve() -> None:
    """The Thomas algorithm agrees with a dense solve of the same matrix."""
    n = 8
    rng = np.random.default_rng(0)
    a = rng.uniform(-2, 0, n)
    c = rng.uniform(-2, 0, n)
    b = np.abs(a) + np.abs(c) + rng.uniform(0.1, 1.0, n)
    a[0] = 0.0
    c[-1] = 0.0
    d = rng.uniform(-10, 10, n)

    matrix = np.diag(b) + np.diag(a[1:], k=-1) + np.diag(c[:-1], k=1)
    expected = np.linalg.solve(matrix, d)

    a_before, b_before, c_before, d_before = a.copy(), b.copy(), c.copy(), d.copy()
    x = tdma_solver(a, b, c, d)

    np.testing.assert_allclose(x, expected, rtol=1e-10)
    # inputs are left untouched
    np.testing.assert_array_equal(a, a_before)
    np.testing.assert_array_equal(b, b_before)
    np.testing.assert_array_equal(c, c_before)
    np.testing.assert_array_equal(d, d_before)


def square_minus_two(x: float, state: dict) -> tuple[dict, float]:
    """Residual of x^2 - 2, recording the evaluation point in the state."""
    return {"x": x, "calls": state["calls"] + 1}, x * x - 2.0


def test_root_brent_square_root_of_two() -> None:
    """The root of x^2 - 2 on [0, 2] is found within the tolerance."""
    root, state = root_brent(square_minus_two, 0.0, 2.0, 1e-6, {"x": None, "calls": 0})

    assert abs(root - math.sqrt(2.0)) <= 1e-6
    # the state belongs to the evaluation at the root
    assert state["x"] == root


def test_root_brent_bracket_error() -> None:
    """An interval that does not bracket a root fails before iterating."""
    calls = []

    def always_positive(x: float, state: None) -> tuple[None, float]:
        calls.append(x)
        return state, x * x + 1.0

    with pytest.raises(BracketError):
        root_brent(always_positive, 0.0, 2.0, 1e-6, None)

    # only the two ends of the interval were evaluated
    assert calls == [0.0, 2.0]


def test_root_brent_bracket_error_is_value_error() -> None:
    """BracketError can be caught as a ValueError."""
    with pytest.raises(ValueError, match="bracketed"):
        root_brent(lambda x, s: (s, x - 5.0), 0.0, 2.0, 1e-6, None)


def test_root_brent_root_at_end_of_interval() -> None:
    """A root exactly at one end of the interval is returned without iterating."""
    root, _ = root_brent(lambda x, s: (s, x - 1.0), 1.0, 3.0, 1e-6, None)
    assert root == 1.0

    root, _ = root_brent(lambda x, s: (s, x - 3.0), 1.0, 3.0, 1e-6, None)
    assert root == 3.0


def test_root_brent_reversed_interval_and_decreasing_function() -> None:
    """The interval may be given in either order and the function may decrease."""
    root, _ = root_brent(lambda x, s: (s, math.cos(x)), 3.0, 0.0, 1e-8, None)

    assert abs(root - math.pi / 2) <= 1e-7


def test_root_brent_convergence_error() -> None:
    """Exceeding the maximum number of iterations raises ConvergenceError."""
    with pytest.raises(ConvergenceError):
        root_brent(
            lambda x, s: (s, x**3 - 2.0 * x - 5.0),
            0.0,
            10.0,
            1e-12,
            None,
            max_iterations=2,
        )


@pytest.mark.parametrize(
    "func,xa,xb,expected",
    [
        (lambda x: x**3 - 2.0 * x - 5.0, 2.0, 3.0, 2.0945514815423265),
        (lambda x: math.exp(x) - 10.0, 0.0, 5.0, math.log(10.0)),
        (lambda x: math.tanh(x - 0.3), -5.0, 5.0, 0.3),
    ],
)
def test_root_brent_known_roots(func, xa: float, xb: float, expected: float) -> None:
    """Brent's method finds known roots of smooth functions."""
    root, _ = root_brent(lambda x, s: (s, func(x)), xa, xb, 1e-9, None)

    assert abs(root - expected) <= 1e-7


def test_root_brent_every_evaluation_gets_initial_state() -> None:
    """Each evaluation receives the state given to the root finder, not the previous result."""
    initial_state = {"x": None, "calls": 0}
    seen = []

    def residual(x: float, state: dict) -> tuple[dict, float]:
        seen.append(state)
        return square_minus_two(x, state)

    root_brent(residual, 0.0, 2.0, 1e-6, initial_state)

    assert all(state is initial_state for state in seen)
    assert initial_state == {"x": None, "calls": 0}
