"""Dense output over a single accepted step."""

from abc import ABC, abstractmethod
import copy
from typing import Sequence, Tuple
import numpy as np
from numpy.typing import NDArray

from varstep.core.mapper import EquationsMapper
from varstep.core.tableau import ButcherTableau


class StepInterpolator(ABC):
    """
    Record of one accepted step, able to rebuild the state anywhere in it.

    Integrators build a fresh interpolator for every accepted step from copies
    of their working buffers, so a record never changes once handed to the
    step handlers. Handlers that keep records beyond the callback should still
    call copy() since subclasses may cache evaluations.

    Queries work on the complete state vector; the primary and secondary
    helpers slice it with the mappers of the composite ODE. Times slightly
    outside [previous_time, current_time] are extrapolated.
    """

    def __init__(
        self,
        previous_time: float,
        current_time: float,
        previous_state: NDArray,
        current_state: NDArray,
        forward: bool,
        primary_mapper: EquationsMapper,
        secondary_mappers: Sequence[EquationsMapper] = (),
    ):
        self.previous_time = previous_time
        self.current_time = current_time
        self.previous_state = np.array(previous_state, dtype=float)
        self.current_state = np.array(current_state, dtype=float)
        self.forward = forward
        self.primary_mapper = primary_mapper
        self.secondary_mappers = tuple(secondary_mappers)
        self._cached_time = float("nan")
        self._cached = None

    @property
    def h(self) -> float:
        """Signed step size."""
        return self.current_time - self.previous_time

    @property
    def dimension(self) -> int:
        """Dimension of the complete state vector."""
        return self.current_state.shape[0]

    @abstractmethod
    def _compute(self, t: float) -> Tuple[NDArray, NDArray]:
        """State and derivative at t from the step coefficients."""

    def interpolate(self, t: float) -> Tuple[NDArray, NDArray]:
        """
        Complete state and derivative at time t.

        Step boundaries return the accepted boundary states exactly.

        Returns:
            (state, derivative) copies, each of shape (dimension,)
        """
        if t != self._cached_time:
            state, derivative = self._compute(t)
            if t == self.current_time:
                state = self.current_state.copy()
            elif t == self.previous_time:
                state = self.previous_state.copy()
            self._cached_time = t
            self._cached = (state, derivative)
        state, derivative = self._cached
        return state.copy(), derivative.copy()

    def state_at(self, t: float) -> NDArray:
        return self.interpolate(t)[0]

    def derivative_at(self, t: float) -> NDArray:
        return self.interpolate(t)[1]

    def primary_state(self, t: float) -> NDArray:
        return self.primary_mapper.extract(self.state_at(t))

    def primary_derivative(self, t: float) -> NDArray:
        return self.primary_mapper.extract(self.derivative_at(t))

    def secondary_state(self, t: float, index: int) -> NDArray:
        return self.secondary_mappers[index].extract(self.state_at(t))

    def secondary_derivative(self, t: float, index: int) -> NDArray:
        return self.secondary_mappers[index].extract(self.derivative_at(t))

    def copy(self) -> "StepInterpolator":
        """Independent deep copy, safe to retain."""
        return copy.deepcopy(self)


class RungeKuttaStepInterpolator(StepInterpolator):
    """Continuous extension of an explicit Runge-Kutta step."""

    def __init__(
        self,
        tableau: ButcherTableau,
        ydot_k: NDArray,
        previous_time: float,
        current_time: float,
        previous_state: NDArray,
        current_state: NDArray,
        forward: bool,
        primary_mapper: EquationsMapper,
        secondary_mappers: Sequence[EquationsMapper] = (),
    ):
        super().__init__(
            previous_time, current_time, previous_state, current_state,
            forward, primary_mapper, secondary_mappers,
        )
        self.tableau = tableau
        self.ydot_k = np.array(ydot_k, dtype=float)  # (s + m, n) stage derivatives

    def _compute(self, t: float) -> Tuple[NDArray, NDArray]:
        h = self.h
        theta = (t - self.previous_time) / h if h != 0.0 else 0.0
        weights = self.tableau.weights(theta)
        rates = self.tableau.weight_rates(theta)

        if theta <= 0.5:
            state = self.previous_state + h * (weights @ self.ydot_k)
        else:
            # evaluate backwards from the end of the step
            state = self.current_state - h * ((self.tableau.extended_b - weights) @ self.ydot_k)
        derivative = rates @ self.ydot_k
        return state, derivative
