"""Nordsieck representation of Adams multistep methods."""

from functools import lru_cache
import numpy as np
from numpy.typing import NDArray

from varstep.algebra.dense import DenseBackend
from varstep.core.exceptions import TooFewPointsError


_backend = DenseBackend()


class AdamsNordsieckTransformer:
    """
    Transformer between multistep history and the Nordsieck vector.

    The Nordsieck vector at t_n holds the scaled derivatives
    s_k(n) = h^k/k! y^(k)(t_n) for k = 2..n_steps+1 (s_1 = h y'(t_n) is kept
    separately as the scaled derivative). Adams methods then advance in two
    phases:

        phase 1:  r_{n+1} = A r_n             (Taylor shift of the rows)
        phase 2:  r_{n+1} += c1 (s_1(n) - s_1(n+1))

    where P_ij = (j+2) (-(i+1))^(j+1), A = P^{-1} shift(P) and c1 = P^{-1} 1.
    """

    def __init__(self, n_steps: int):
        if n_steps < 2:
            raise TooFewPointsError(n_steps)
        self.n_steps = n_steps

        p = _build_p(n_steps)
        lu = _backend.lu_factor(p)

        # shift rows of P down by one, first row becomes zero
        shifted_p = np.zeros_like(p)
        shifted_p[1:] = p[:-1]

        self.c1 = _backend.lu_solve(lu, np.ones(n_steps))
        self.update = _backend.lu_solve(lu, shifted_p)
        self.c1.setflags(write=False)
        self.update.setflags(write=False)

    def initialize_high_order_derivatives(
        self, h: float, t: NDArray, y: NDArray, ydot: NDArray
    ) -> NDArray:
        """
        Fit the Nordsieck rows to a sampled start of the trajectory.

        Args:
            h: Step size the Nordsieck vector is scaled for
            t: (m,) sample times, t[0] is the expansion point
            y: (m, d) states at the sample times
            ydot: (m, d) derivatives at the sample times

        Returns:
            (n_steps, d) Nordsieck matrix solving the least squares fit
        """
        t = np.asarray(t, dtype=float)
        y = np.asarray(y, dtype=float)
        ydot = np.asarray(ydot, dtype=float)

        n_points = t.shape[0]
        columns = self.c1.shape[0]
        j = np.arange(columns)

        a = np.zeros((2 * (n_points - 1), columns))
        b = np.zeros((2 * (n_points - 1), y.shape[1]))
        for i in range(1, n_points):
            di = t[i] - t[0]
            ratio = di / h
            dik_m1_ohk = ratio ** (j + 1) / h  # d_i^(k-1) / h^k

            # state equation: y_i - y_0 - d_i y'_0 = Σ_k s_k (d_i/h)^k
            a[2 * i - 2] = di * dik_m1_ohk
            b[2 * i - 2] = y[i] - y[0] - di * ydot[0]

            # derivative equation: y'_i - y'_0 = Σ_k k s_k d_i^(k-1) / h^k
            a[2 * i - 1] = (j + 2) * dik_m1_ohk
            b[2 * i - 1] = ydot[i] - ydot[0]

        return _backend.least_squares(a, b)

    def update_high_order_derivatives_phase1(self, high_order: NDArray) -> NDArray:
        """Taylor shift of the Nordsieck rows, returned as a new matrix."""
        return self.update @ high_order

    def update_high_order_derivatives_phase2(
        self, start: NDArray, end: NDArray, high_order: NDArray
    ) -> NDArray:
        """Add the c1 (start - end) correction to high_order in place."""
        high_order += np.outer(self.c1, start - end)
        return high_order


def _build_p(n_steps: int) -> NDArray:
    i = np.arange(1, n_steps + 1, dtype=float)[:, np.newaxis]
    j = np.arange(n_steps)[np.newaxis, :]
    return (j + 2) * (-i) ** (j + 1)


@lru_cache(maxsize=None)
def adams_transformer(n_steps: int) -> AdamsNordsieckTransformer:
    """Shared transformer for a given number of steps."""
    return AdamsNordsieckTransformer(n_steps)
