"""Composite ODE: primary equations plus any number of secondary sets."""

from dataclasses import dataclass, field
import numpy as np
from numpy.typing import NDArray

from varstep.core.exceptions import DimensionMismatchError
from varstep.core.mapper import EquationsMapper
from varstep.core.problem import OrdinaryDifferentialEquation, SecondaryEquations


@dataclass
class _SecondaryComponent:
    equations: SecondaryEquations
    mapper: EquationsMapper
    state: NDArray
    state_dot: NDArray = field(default=None)


def _checked(values, expected: int) -> NDArray:
    result = np.array(values, dtype=float)
    if result.shape != (expected,):
        raise DimensionMismatchError(result.size, expected)
    return result


class ExpandableODE:
    """
    Composite state made of a primary ODE and ordered secondary equation sets.

    The primary state occupies the first n0 components of the complete state
    vector. Each secondary set is placed right after the previous one, so the
    layout is fixed once registered and never has gaps or overlaps.

    Secondary equations are evaluated after the primary ones and receive the
    primary state and its derivative, which is how variational equations see
    the trajectory they are attached to.
    """

    def __init__(self, primary: OrdinaryDifferentialEquation):
        n = int(primary.dimension)
        self.primary = primary
        self.primary_mapper = EquationsMapper(0, n)
        self.time = float("nan")
        self._primary_state = np.zeros(n)
        self._primary_state_dot = np.zeros(n)
        self._components: list[_SecondaryComponent] = []

    def add_secondary_equations(self, equations: SecondaryEquations) -> int:
        """
        Append a secondary equation set.

        Args:
            equations: Secondary equations with a fixed dimension

        Returns:
            Index of the new set, to be used with the secondary accessors
        """
        if self._components:
            first_index = self._components[-1].mapper.end_index
        else:
            first_index = self.primary_mapper.dimension
        dimension = int(equations.dimension)
        self._components.append(
            _SecondaryComponent(
                equations=equations,
                mapper=EquationsMapper(first_index, dimension),
                state=np.zeros(dimension),
                state_dot=np.zeros(dimension),
            )
        )
        return len(self._components) - 1

    register_secondary = add_secondary_equations

    @property
    def total_dimension(self) -> int:
        if self._components:
            return self._components[-1].mapper.end_index
        return self.primary_mapper.dimension

    @property
    def secondary_mappers(self) -> tuple[EquationsMapper, ...]:
        return tuple(component.mapper for component in self._components)

    def compute_derivatives(self, t: float, y: NDArray) -> NDArray:
        """
        Evaluate the complete time derivative.

        Args:
            t: Current time
            y: Complete state vector, shape (total_dimension,)

        Returns:
            Complete derivative vector, shape (total_dimension,)
        """
        y = np.asarray(y, dtype=float)
        total = self.total_dimension
        if y.shape != (total,):
            raise DimensionMismatchError(y.size, total)

        ydot = np.empty(total)

        primary_state = self.primary_mapper.extract(y)
        primary_dot = _checked(
            self.primary.compute_derivatives(t, primary_state),
            self.primary_mapper.dimension,
        )
        self.primary_mapper.insert(primary_dot, ydot)
        self._primary_state_dot = primary_dot.copy()

        for component in self._components:
            z = component.mapper.extract(y)
            zdot = _checked(
                component.equations.compute_derivatives(
                    t, primary_state.copy(), primary_dot.copy(), z
                ),
                component.mapper.dimension,
            )
            component.mapper.insert(zdot, ydot)
            component.state_dot = zdot

        return ydot

    @property
    def primary_state(self) -> NDArray:
        return self._primary_state.copy()

    @primary_state.setter
    def primary_state(self, value: NDArray) -> None:
        self._primary_state = _checked(value, self.primary_mapper.dimension)

    @property
    def primary_state_dot(self) -> NDArray:
        """Primary derivative from the most recent evaluation."""
        return self._primary_state_dot.copy()

    def get_secondary_state(self, index: int) -> NDArray:
        return self._components[index].state.copy()

    def set_secondary_state(self, index: int, value: NDArray) -> None:
        component = self._components[index]
        component.state = _checked(value, component.mapper.dimension)

    def get_secondary_state_dot(self, index: int) -> NDArray:
        """Secondary derivative from the most recent evaluation."""
        return self._components[index].state_dot.copy()

    @property
    def complete_state(self) -> NDArray:
        """Flat vector holding the primary state then every secondary state."""
        complete = np.empty(self.total_dimension)
        self.primary_mapper.insert(self._primary_state, complete)
        for component in self._components:
            component.mapper.insert(component.state, complete)
        return complete

    @complete_state.setter
    def complete_state(self, value: NDArray) -> None:
        value = _checked(value, self.total_dimension)
        self._primary_state = self.primary_mapper.extract(value)
        for component in self._components:
            component.state = component.mapper.extract(value)
