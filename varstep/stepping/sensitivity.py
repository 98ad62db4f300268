"""Variational equations for state and parameter sensitivities."""

import logging
from typing import Iterable, Optional, Sequence, Union
import numpy as np
from numpy.typing import NDArray

from varstep.core.config import ParameterConfiguration
from varstep.core.exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    MismatchedEquationsError,
    UnknownParameterError,
)
from varstep.core.expandable import ExpandableODE
from varstep.core.problem import (
    MainStateJacobianProvider,
    OrdinaryDifferentialEquation,
    ParameterizedODE,
    ParameterJacobianProvider,
    declares_parameters,
    has_analytic_jacobian,
    has_parameter_jacobian,
    has_parameter_support,
)

logger = logging.getLogger(__name__)

SCHEMES = ("forward", "central")


def _check_scheme(scheme: str) -> str:
    if scheme not in SCHEMES:
        raise ConfigurationError(f"unknown finite difference scheme {scheme!r}, expected one of {SCHEMES}")
    return scheme


class MainStateJacobianWrapper:
    """dF/dY of a plain ODE by finite differences with one step per state variable."""

    def __init__(
        self,
        ode: OrdinaryDifferentialEquation,
        state_steps: Sequence[float],
        scheme: str = "forward",
    ):
        steps = np.array(state_steps, dtype=float)
        if steps.shape != (ode.dimension,):
            raise DimensionMismatchError(steps.size, ode.dimension)
        self.ode = ode
        self.state_steps = steps
        self.scheme = _check_scheme(scheme)

    @property
    def dimension(self) -> int:
        return self.ode.dimension

    def compute_derivatives(self, t: float, y: NDArray) -> NDArray:
        return np.asarray(self.ode.compute_derivatives(t, y), dtype=float)

    def compute_main_state_jacobian(self, t: float, y: NDArray, ydot: NDArray) -> NDArray:
        n = self.ode.dimension
        dfdy = np.empty((n, n))
        y_work = np.array(y, dtype=float)
        for j in range(n):
            saved = y_work[j]
            h = self.state_steps[j]

            y_work[j] = saved + h
            forward_dot = self.compute_derivatives(t, y_work)
            if self.scheme == "central":
                y_work[j] = saved - h
                backward_dot = self.compute_derivatives(t, y_work)
                dfdy[:, j] = (forward_dot - backward_dot) / (2.0 * h)
            else:
                dfdy[:, j] = (forward_dot - ydot) / h
            y_work[j] = saved
        return dfdy


class ParameterJacobianWrapper:
    """dF/dp by finite differences, perturbing parameters of a ParameterizedODE."""

    def __init__(
        self,
        jode: OrdinaryDifferentialEquation,
        pode: ParameterizedODE,
        parameters: Iterable[ParameterConfiguration],
        scheme: str = "forward",
    ):
        self.jode = jode
        self.pode = pode
        self.scheme = _check_scheme(scheme)
        parameters = list(parameters)
        for param in parameters:
            if not pode.is_supported(param.name):
                raise UnknownParameterError(param.name)
        self._steps = {p.name: p.step for p in parameters if p.step is not None}

    def parameter_names(self) -> list[str]:
        return list(self._steps)

    def is_supported(self, name: str) -> bool:
        return name in self._steps

    def compute_parameter_jacobian(
        self, t: float, y: NDArray, ydot: NDArray, name: str
    ) -> NDArray:
        p = self.pode.get_parameter(name)
        h = self._steps[name]
        try:
            self.pode.set_parameter(name, p + h)
            forward_dot = np.asarray(self.jode.compute_derivatives(t, y), dtype=float)
            if self.scheme == "central":
                self.pode.set_parameter(name, p - h)
                backward_dot = np.asarray(self.jode.compute_derivatives(t, y), dtype=float)
                return (forward_dot - backward_dot) / (2.0 * h)
            return (forward_dot - ydot) / h
        finally:
            self.pode.set_parameter(name, p)


class JacobianMatrices:
    """
    Sensitivities dY/dY0 and dY/dp as secondary equations of a composite ODE.

    The secondary state has n (n + p) components: the n x n matrix dY/dY0 in
    row-major order followed by one dY/dp vector per selected parameter. They
    evolve by the variational equations

        d(dY/dY0)/dt = dF/dY dY/dY0
        d(dY/dp)/dt  = dF/dY dY/dp + dF/dp

    Args:
        ode: Either an ODE with an analytic compute_main_state_jacobian, or a
            plain ODE when state_steps is given
        parameters: Parameter names or configurations to track
        state_steps: Finite difference steps for dF/dY, one per state variable
        scheme: "forward" or "central" finite differences

    Example:
        >>> jacobians = JacobianMatrices(ode, ["omega"], state_steps=[1e-6, 1e-6])
        >>> expandable = ExpandableODE(ode)
        >>> jacobians.register_variational_equations(expandable)
        >>> jacobians.set_parameterized_ode(ode)
        >>> jacobians.set_parameter_step("omega", 1e-6)
    """

    def __init__(
        self,
        ode: Union[MainStateJacobianProvider, OrdinaryDifferentialEquation],
        parameters: Iterable[Union[str, ParameterConfiguration]] = (),
        state_steps: Optional[Sequence[float]] = None,
        scheme: str = "forward",
    ):
        self.scheme = _check_scheme(scheme)
        if state_steps is not None:
            self._jode = MainStateJacobianWrapper(ode, state_steps, scheme)
        elif has_analytic_jacobian(ode):
            self._jode = ode
        else:
            raise ConfigurationError(
                "state_steps are required when the ODE has no analytic Jacobian"
            )
        self._ode = ode
        self.state_dimension = int(ode.dimension)

        self.selected_parameters: list[ParameterConfiguration] = [
            ParameterConfiguration(p) if isinstance(p, str) else p
            for p in parameters
        ]
        names = [p.name for p in self.selected_parameters]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"duplicate parameters in {names}")
        for name in names:
            if not declares_parameters(ode) or not ode.is_supported(name):
                raise UnknownParameterError(name)

        self._pode: Optional[ParameterizedODE] = ode if has_parameter_support(ode) else None
        self._providers: list[ParameterJacobianProvider] = []
        self._finite_difference_provider: Optional[ParameterJacobianWrapper] = None
        self._dirty_parameter = True

        # identity dY/dY0, zero dY/dp
        n = self.state_dimension
        self._matrices = np.zeros((n + len(names)) * n)
        self._matrices[: n * n] = np.eye(n).ravel()

        self._expandable: Optional[ExpandableODE] = None
        self._index = -1

    @property
    def parameter_dimension(self) -> int:
        return len(self.selected_parameters)

    def register_variational_equations(self, expandable: ExpandableODE) -> int:
        """
        Add the variational equations to a composite ODE built on the same ODE.

        Returns:
            Secondary equation index inside expandable
        """
        if expandable.primary is not self._ode:
            raise MismatchedEquationsError()
        self._expandable = expandable
        self._index = expandable.add_secondary_equations(_VariationalEquations(self))
        expandable.set_secondary_state(self._index, self._matrices)
        return self._index

    def add_parameter_jacobian_provider(self, provider: ParameterJacobianProvider) -> None:
        """Register an analytic dF/dp provider, consulted before finite differences."""
        if not has_parameter_jacobian(provider):
            raise ConfigurationError(
                "a parameter Jacobian provider needs is_supported and compute_parameter_jacobian"
            )
        self._providers.append(provider)

    def set_parameterized_ode(self, pode: ParameterizedODE) -> None:
        """Set the ODE whose parameters are perturbed for finite differences."""
        for param in self.selected_parameters:
            if not pode.is_supported(param.name):
                raise UnknownParameterError(param.name)
        self._pode = pode
        self._dirty_parameter = True

    def set_parameter_step(self, name: str, step: float) -> None:
        """Set the finite difference step of a selected parameter."""
        self._parameter(name).step = step
        self._dirty_parameter = True

    def set_initial_main_state_jacobian(self, dydy0: NDArray) -> None:
        n = self.state_dimension
        dydy0 = np.asarray(dydy0, dtype=float)
        if dydy0.ndim != 2 or dydy0.shape[0] != n:
            raise DimensionMismatchError(dydy0.shape[0] if dydy0.ndim else 0, n)
        if dydy0.shape[1] != n:
            raise DimensionMismatchError(dydy0.shape[1], n)
        self._matrices[: n * n] = dydy0.ravel()
        self._sync()

    def set_initial_parameter_jacobian(self, name: str, dydp: NDArray) -> None:
        n = self.state_dimension
        dydp = np.asarray(dydp, dtype=float)
        if dydp.shape != (n,):
            raise DimensionMismatchError(dydp.size, n)
        start = n * n + self._parameter_position(name) * n
        self._matrices[start:start + n] = dydp
        self._sync()

    def get_current_main_set_jacobian(self) -> NDArray:
        """Current dY/dY0, shape (n, n)."""
        n = self.state_dimension
        return self._current()[: n * n].reshape(n, n)

    def get_current_parameter_jacobian(self, name: str) -> NDArray:
        """Current dY/dp for one parameter, shape (n,)."""
        n = self.state_dimension
        start = n * n + self._parameter_position(name) * n
        return self._current()[start:start + n]

    def _current(self) -> NDArray:
        if self._expandable is None:
            raise ConfigurationError("variational equations are not registered")
        return self._expandable.get_secondary_state(self._index)

    def _sync(self) -> None:
        if self._expandable is not None:
            self._expandable.set_secondary_state(self._index, self._matrices)

    def _parameter_position(self, name: str) -> int:
        for position, param in enumerate(self.selected_parameters):
            if param.name == name:
                return position
        raise UnknownParameterError(name)

    def _parameter(self, name: str) -> ParameterConfiguration:
        return self.selected_parameters[self._parameter_position(name)]

    def _ensure_parameter_providers(self) -> None:
        """Rebuild the finite difference provider after a configuration change."""
        if not self._dirty_parameter or not self.selected_parameters:
            return
        self._finite_difference_provider = None
        if self._pode is not None:
            wrapper = ParameterJacobianWrapper(
                self._jode, self._pode, self.selected_parameters, self.scheme
            )
            self._finite_difference_provider = wrapper
            logger.debug(
                "finite difference dF/dp provider for %s", wrapper.parameter_names()
            )
        self._dirty_parameter = False

    def compute_variational_derivatives(
        self, t: float, y: NDArray, ydot: NDArray, z: NDArray
    ) -> NDArray:
        self._ensure_parameter_providers()

        n = self.state_dimension
        dfdy = np.asarray(self._jode.compute_main_state_jacobian(t, y, ydot), dtype=float)
        if dfdy.shape != (n, n):
            raise DimensionMismatchError(dfdy.shape[0], n)

        zdot = np.zeros_like(z)
        zdot[: n * n] = (dfdy @ z[: n * n].reshape(n, n)).ravel()

        # analytic providers first, finite differences last
        providers = list(self._providers)
        if self._finite_difference_provider is not None:
            providers.append(self._finite_difference_provider)

        for position, param in enumerate(self.selected_parameters):
            provider = next(
                (p for p in providers if p.is_supported(param.name)), None
            )
            if provider is None:
                continue
            start = n * n + position * n
            dfdp = np.asarray(
                provider.compute_parameter_jacobian(t, y, ydot, param.name), dtype=float
            )
            if dfdp.shape != (n,):
                raise DimensionMismatchError(dfdp.size, n)
            zdot[start:start + n] = dfdy @ z[start:start + n] + dfdp

        return zdot


class _VariationalEquations:
    """Secondary equations view of a JacobianMatrices instance."""

    def __init__(self, matrices: JacobianMatrices):
        self._matrices = matrices

    @property
    def dimension(self) -> int:
        n = self._matrices.state_dimension
        return n * (n + self._matrices.parameter_dimension)

    def compute_derivatives(self, t: float, y: NDArray, ydot: NDArray, z: NDArray) -> NDArray:
        return self._matrices.compute_variational_derivatives(t, y, ydot, z)
