"""Step size control shared by adaptive integrators."""

import math
import numpy as np
from numpy.typing import NDArray

from varstep.core.config import StepSizeControl, Tolerance
from varstep.core.exceptions import MinimalStepReached
from varstep.core.expandable import ExpandableODE
from varstep.solvers.base import AbstractIntegrator


class AdaptiveStepsizeIntegrator(AbstractIntegrator):
    """
    Integrator whose step size follows a local error estimate.

    The error estimate is normalized componentwise by
    absolute_tolerance + relative_tolerance * |y_i| over the primary state
    only; secondary equations never influence step size control.
    """

    def __init__(
        self,
        name: str,
        min_step: float,
        max_step: float,
        absolute_tolerance: Tolerance,
        relative_tolerance: Tolerance,
    ):
        super().__init__(name)
        self.set_step_size_control(min_step, max_step, absolute_tolerance, relative_tolerance)
        self.main_set_dimension = 0
        self.reset_internal_state()

    def set_step_size_control(
        self,
        min_step: float,
        max_step: float,
        absolute_tolerance: Tolerance,
        relative_tolerance: Tolerance,
    ) -> None:
        self.control = StepSizeControl(min_step, max_step, absolute_tolerance, relative_tolerance)
        self._initial_step = -1.0

    @property
    def min_step(self) -> float:
        return self.control.min_step

    @property
    def max_step(self) -> float:
        return self.control.max_step

    @property
    def initial_step_size(self) -> float:
        """User supplied first step, negative when it is estimated."""
        return self._initial_step

    @initial_step_size.setter
    def initial_step_size(self, value: float) -> None:
        if value < self.control.min_step or value > self.control.max_step:
            self._initial_step = -1.0
        else:
            self._initial_step = value

    def sanity_checks(self, expandable: ExpandableODE, t: float) -> None:
        super().sanity_checks(expandable, t)
        self.main_set_dimension = expandable.primary_mapper.dimension
        self.control.check_dimension(self.main_set_dimension)

    def tolerance(self, y_scale: NDArray) -> NDArray:
        """Componentwise tolerance for the primary state magnitudes y_scale."""
        return self.control.tolerance(y_scale)

    def initialize_step(
        self,
        forward: bool,
        order: int,
        scale: NDArray,
        t0: float,
        y0: NDArray,
        ydot0: NDArray,
    ) -> float:
        """
        Estimate a first step size.

        Args:
            forward: Integration direction
            order: Order of the method
            scale: Tolerance per primary component
            t0: Start time
            y0: Complete state at t0
            ydot0: Complete derivative at t0

        Returns:
            Signed first step size
        """
        if self._initial_step > 0:
            return self._initial_step if forward else -self._initial_step

        # h ~ 1% of the ratio between state and derivative magnitudes
        n = scale.shape[0]
        y_on_scale2 = float(np.sum((y0[:n] / scale) ** 2))
        ydot_on_scale2 = float(np.sum((ydot0[:n] / scale) ** 2))
        if y_on_scale2 < 1.0e-10 or ydot_on_scale2 < 1.0e-10:
            h = 1.0e-6
        else:
            h = 0.01 * math.sqrt(y_on_scale2 / ydot_on_scale2)
        if not forward:
            h = -h

        # Euler step to estimate the second derivative
        y1 = y0 + h * ydot0
        ydot1 = self.compute_derivatives(t0 + h, y1)
        yddot_on_scale = math.sqrt(float(np.sum(((ydot1[:n] - ydot0[:n]) / scale) ** 2))) / h

        # step such that h^order * max(|y'|, |y''|) ~ 0.01
        max_inv2 = max(math.sqrt(ydot_on_scale2), abs(yddot_on_scale))
        if max_inv2 < 1.0e-15:
            h1 = max(1.0e-6, 0.001 * abs(h))
        else:
            h1 = (0.01 / max_inv2) ** (1.0 / order)
        h = min(100.0 * abs(h), h1)
        h = max(h, 1.0e-12 * abs(t0))
        h = min(max(h, self.control.min_step), self.control.max_step)

        return h if forward else -h

    def filter_step(self, h: float, forward: bool, accept_small: bool) -> float:
        """
        Clamp a step size to the configured bounds.

        Args:
            h: Signed step size proposed by the controller
            forward: Integration direction
            accept_small: Use min_step instead of failing when h is too small

        Raises:
            MinimalStepReached: |h| < min_step and accept_small is False
        """
        filtered = h
        if abs(h) < self.control.min_step:
            if not accept_small:
                raise MinimalStepReached(abs(h), self.control.min_step)
            filtered = self.control.min_step if forward else -self.control.min_step

        if filtered > self.control.max_step:
            filtered = self.control.max_step
        elif filtered < -self.control.max_step:
            filtered = -self.control.max_step

        return filtered

    def reset_internal_state(self) -> None:
        self.step_start = float("nan")
        self.step_size = math.sqrt(self.control.min_step * self.control.max_step)
