"""Tests for linear algebra and floating point helpers."""

import math

import numpy as np

from varstep.algebra.dense import DenseBackend
from varstep.utils.precision import equals_within_ulp


def test_equals_within_ulp():
    """Test ulp based float equality."""
    assert equals_within_ulp(1.0, 1.0)
    assert equals_within_ulp(1.0, math.nextafter(1.0, 2.0))
    assert equals_within_ulp(1.0, math.nextafter(1.0, 0.0))
    assert not equals_within_ulp(1.0, 1.0 + 4.0 * math.ulp(1.0))
    assert equals_within_ulp(1.0, 1.0 + 4.0 * math.ulp(1.0), max_ulps=4)
    assert equals_within_ulp(0.0, 0.0)
    assert not equals_within_ulp(0.0, 1e-300)


def test_lu_solve_multiple_right_hand_sides():
    """Test LU solve with several right hand sides."""
    backend = DenseBackend()
    A = np.array([[4.0, 1.0, 0.0], [1.0, 3.0, 1.0], [0.0, 1.0, 2.0]])
    B = np.arange(6.0).reshape(3, 2)

    X = backend.lu_solve(backend.lu_factor(A), B)

    np.testing.assert_allclose(A @ X, B, atol=1e-14)


def test_least_squares_matches_lstsq():
    """Test least squares against numpy."""
    backend = DenseBackend()
    rng = np.random.default_rng(3)
    A = rng.standard_normal((8, 3))
    b = rng.standard_normal((8, 2))

    x = backend.least_squares(A, b)

    expected, *_ = np.linalg.lstsq(A, b, rcond=None)
    np.testing.assert_allclose(x, expected, atol=1e-12)


def test_least_squares_exact_system():
    """Test least squares recovers an exactly consistent solution."""
    backend = DenseBackend()
    A = np.array([[1.0, 0.0], [0.0, 2.0], [1.0, 1.0]])
    x_true = np.array([3.0, -1.0])

    np.testing.assert_allclose(backend.least_squares(A, A @ x_true), x_true, atol=1e-14)


def test_rms():
    """Test root mean square of a vector."""
    backend = DenseBackend()

    assert backend.rms(np.array([3.0, 4.0])) == np.sqrt(12.5)
    assert backend.rms(np.zeros(4)) == 0.0
