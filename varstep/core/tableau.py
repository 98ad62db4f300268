"""Explicit Runge-Kutta Butcher tableaux."""

from dataclasses import dataclass
from functools import cached_property
from typing import Optional
import numpy as np
from numpy.typing import NDArray

from varstep.core.exceptions import ConfigurationError, DimensionMismatchError


@dataclass(frozen=True, eq=False)
class ButcherTableau:
    """Explicit Runge-Kutta tableau, optionally with dense output and error weights."""

    c: NDArray  # (s,)   - abscissae, c[0] == 0
    a: NDArray  # (s, s) - strictly lower triangular stage coefficients
    b: NDArray  # (s,)   - output weights
    order: int
    dense: Optional[NDArray] = None  # (s + m, p) - coefficients of θ, θ², ..., θ^p
    error: Optional[NDArray] = None  # (s,)   - embedded error weights
    fsal: bool = False  # last stage is evaluated at the step end state
    dense_c: Optional[NDArray] = None  # (m,)   - abscissae of the dense output stages
    dense_a: Optional[NDArray] = None  # (m, s + m) - their coefficients over all earlier stages

    def __post_init__(self):
        for name in ("c", "a", "b", "dense", "error", "dense_c", "dense_a"):
            value = getattr(self, name)
            if value is None:
                continue
            array = np.array(value, dtype=float)
            array.setflags(write=False)
            object.__setattr__(self, name, array)

        s = self.b.shape[0]
        if self.a.shape != (s, s):
            raise DimensionMismatchError(self.a.shape[0], s)
        if self.c.shape != (s,):
            raise DimensionMismatchError(self.c.shape[0], s)
        if not np.allclose(self.a, np.tril(self.a, -1)):
            raise ConfigurationError("stage matrix of an explicit method must be strictly lower triangular")
        m = 0 if self.dense_c is None else self.dense_c.shape[0]
        if m:
            if self.dense is None:
                raise ConfigurationError("dense output stages require dense output weights")
            if self.dense_a is None or self.dense_a.shape != (m, s + m):
                raise DimensionMismatchError(0 if self.dense_a is None else self.dense_a.shape[0], m)
            if not np.allclose(self.dense_a[:, s:], np.tril(self.dense_a[:, s:], -1)):
                raise ConfigurationError("dense output stages must only use earlier stages")
        elif self.dense_a is not None:
            raise ConfigurationError("dense output stage coefficients given without abscissae")
        if self.dense is not None and self.dense.shape[0] != s + m:
            raise DimensionMismatchError(self.dense.shape[0], s + m)
        if self.error is not None and self.error.shape != (s,):
            raise DimensionMismatchError(self.error.shape[0], s)

    @cached_property
    def stages(self) -> int:
        """Number of stages s."""
        return self.b.shape[0]

    @cached_property
    def dense_stages(self) -> int:
        """Number m of extra stages evaluated after the step for dense output."""
        return 0 if self.dense_c is None else self.dense_c.shape[0]

    @cached_property
    def total_stages(self) -> int:
        return self.stages + self.dense_stages

    @cached_property
    def extended_b(self) -> NDArray:
        """Output weights padded with zeros for the dense output stages."""
        b = np.zeros(self.total_stages)
        b[: self.stages] = self.b
        b.setflags(write=False)
        return b

    @cached_property
    def is_embedded(self) -> bool:
        """Whether an embedded error estimator is available."""
        return self.error is not None

    def weights(self, theta: float) -> NDArray:
        """Dense output weights b_i(θ) over all s + m stages, with b_i(1) = b_i."""
        if self.dense is None:
            return theta * self.b
        powers = theta ** np.arange(1, self.dense.shape[1] + 1)
        return self.dense @ powers

    def weight_rates(self, theta: float) -> NDArray:
        """Derivatives d b_i(θ) / dθ."""
        if self.dense is None:
            return self.b.copy()
        exponents = np.arange(self.dense.shape[1])
        return self.dense @ ((exponents + 1) * theta ** exponents)
