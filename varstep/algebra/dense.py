"""Dense linear algebra backend using NumPy/SciPy."""

from typing import Tuple
import numpy as np
import scipy.linalg
from numpy.typing import NDArray


class DenseBackend:
    """NumPy/SciPy implementation of the linear algebra the integrators need."""

    def lu_factor(self, A: NDArray) -> Tuple[NDArray, NDArray]:
        """
        Compute LU factorization using scipy.

        Returns:
            (lu, piv) tuple from scipy.linalg.lu_factor
        """
        return scipy.linalg.lu_factor(A)

    def lu_solve(self, factorization: Tuple[NDArray, NDArray], b: NDArray) -> NDArray:
        """
        Solve using precomputed LU factorization.

        Args:
            factorization: (lu, piv) from lu_factor
            b: Right-hand side, vector or matrix

        Returns:
            Solution x
        """
        return scipy.linalg.lu_solve(factorization, b)

    def least_squares(self, A: NDArray, b: NDArray) -> NDArray:
        """
        Least squares solution of an overdetermined system via QR.

        Args:
            A: (m, k) matrix with m >= k and full column rank
            b: (m,) or (m, p) right-hand side

        Returns:
            x minimizing ||A x - b|| column by column
        """
        q, r = scipy.linalg.qr(A, mode="economic")
        return scipy.linalg.solve_triangular(r, q.T @ b)

    def rms(self, x: NDArray) -> float:
        """Root mean square of the entries of x."""
        return float(np.sqrt(np.mean(np.square(x))))
