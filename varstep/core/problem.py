"""Equation protocols and capability queries."""

from typing import Callable, Protocol
import numpy as np
from numpy.typing import NDArray


class OrdinaryDifferentialEquation(Protocol):
    """First order system dy/dt = f(t, y)."""

    @property
    def dimension(self) -> int:
        """State dimension n."""
        ...

    def compute_derivatives(self, t: float, y: NDArray) -> NDArray:
        """Time derivative ydot = f(t, y), shape (n,)."""
        ...


class SecondaryEquations(Protocol):
    """Equations riding on the primary state of a composite system."""

    @property
    def dimension(self) -> int:
        """Dimension of the secondary state."""
        ...

    def compute_derivatives(
        self, t: float, y: NDArray, ydot: NDArray, z: NDArray
    ) -> NDArray:
        """Time derivative of z given the primary state and its derivative."""
        ...


class MainStateJacobianProvider(OrdinaryDifferentialEquation, Protocol):
    """ODE able to compute dF/dY analytically."""

    def compute_main_state_jacobian(
        self, t: float, y: NDArray, ydot: NDArray
    ) -> NDArray:
        """State Jacobian dF/dY, shape (n, n)."""
        ...


class Parameterizable(Protocol):
    """Anything that declares named parameters."""

    def parameter_names(self) -> list[str]:
        """Names of all supported parameters."""
        ...

    def is_supported(self, name: str) -> bool:
        """Whether the named parameter is supported."""
        ...


class ParameterizedODE(Parameterizable, Protocol):
    """Parameters can be read and written (finite differences use this)."""

    def get_parameter(self, name: str) -> float:
        ...

    def set_parameter(self, name: str, value: float) -> None:
        ...


class ParameterJacobianProvider(Parameterizable, Protocol):
    """Provides dF/dp for one parameter at a time."""

    def compute_parameter_jacobian(
        self, t: float, y: NDArray, ydot: NDArray, name: str
    ) -> NDArray:
        """Parameter Jacobian dF/dp, shape (n,)."""
        ...


def has_analytic_jacobian(ode) -> bool:
    """True when ode provides compute_main_state_jacobian."""
    return callable(getattr(ode, "compute_main_state_jacobian", None))


def declares_parameters(ode) -> bool:
    """True when ode can answer is_supported queries."""
    return callable(getattr(ode, "is_supported", None))


def has_parameter_support(ode) -> bool:
    """True when ode declares parameters and lets them be changed."""
    return (
        declares_parameters(ode)
        and callable(getattr(ode, "get_parameter", None))
        and callable(getattr(ode, "set_parameter", None))
    )


def has_parameter_jacobian(provider) -> bool:
    """True when provider computes dF/dp analytically."""
    return declares_parameters(provider) and callable(
        getattr(provider, "compute_parameter_jacobian", None)
    )


class FunctionODE:
    """Wrap a plain callable f(t, y) as an ODE of fixed dimension."""

    def __init__(self, fun: Callable[[float, NDArray], NDArray], dimension: int):
        self._fun = fun
        self._dimension = int(dimension)

    @property
    def dimension(self) -> int:
        return self._dimension

    def compute_derivatives(self, t: float, y: NDArray) -> NDArray:
        return np.asarray(self._fun(t, y), dtype=float)
