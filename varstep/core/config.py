"""Integrator configuration records."""

from dataclasses import dataclass
from typing import Optional, Union
import numpy as np
from numpy.typing import NDArray

from varstep.core.exceptions import ConfigurationError, DimensionMismatchError


Tolerance = Union[float, NDArray]


@dataclass(frozen=True, eq=False)
class StepSizeControl:
    """Step bounds and error tolerances of an adaptive integrator.

    Tolerances are either scalars or vectors with one entry per primary
    state component. Step bounds are stored as absolute values.
    """

    min_step: float
    max_step: float
    absolute_tolerance: Tolerance
    relative_tolerance: Tolerance

    def __post_init__(self):
        object.__setattr__(self, "min_step", abs(float(self.min_step)))
        object.__setattr__(self, "max_step", abs(float(self.max_step)))
        if self.min_step > self.max_step:
            raise ConfigurationError(
                f"min_step ({self.min_step:g}) exceeds max_step ({self.max_step:g})"
            )

        abs_tol = np.array(self.absolute_tolerance, dtype=float)
        rel_tol = np.array(self.relative_tolerance, dtype=float)
        if abs_tol.ndim != rel_tol.ndim or abs_tol.ndim > 1:
            raise ConfigurationError(
                "tolerances must both be scalars or both be 1-D vectors"
            )
        if abs_tol.shape != rel_tol.shape:
            raise DimensionMismatchError(rel_tol.size, abs_tol.size)
        if abs_tol.ndim == 0:
            object.__setattr__(self, "absolute_tolerance", float(abs_tol))
            object.__setattr__(self, "relative_tolerance", float(rel_tol))
        else:
            abs_tol.setflags(write=False)
            rel_tol.setflags(write=False)
            object.__setattr__(self, "absolute_tolerance", abs_tol)
            object.__setattr__(self, "relative_tolerance", rel_tol)

    @property
    def is_vector(self) -> bool:
        """True when tolerances are given per component."""
        return isinstance(self.absolute_tolerance, np.ndarray)

    def check_dimension(self, n: int) -> None:
        """Ensure vector tolerances match the primary dimension n."""
        if self.is_vector and self.absolute_tolerance.size != n:
            raise DimensionMismatchError(self.absolute_tolerance.size, n)

    def tolerance(self, y_scale: NDArray) -> NDArray:
        """Componentwise tolerance abs + rel * y_scale."""
        return self.absolute_tolerance + self.relative_tolerance * y_scale


@dataclass
class ControllerSettings:
    """Step size controller coefficients.

    The grow/shrink factor applied to a step with normalized error e is
    min(max_growth, max(min_reduction, safety * e^exponent)).
    """

    safety: float = 0.9
    min_reduction: float = 0.2
    max_growth: float = 10.0

    def factor(self, error: float, exponent: float) -> float:
        """Grow/shrink factor for a normalized error estimate."""
        if error == 0.0:
            # e^exponent is infinite for the negative exponents used here
            return self.max_growth
        return min(self.max_growth, max(self.min_reduction, self.safety * error ** exponent))


@dataclass
class ParameterConfiguration:
    """A sensitivity parameter and its finite-difference step.

    A step of None means no finite-difference provider is configured.
    """

    name: str
    step: Optional[float] = None
