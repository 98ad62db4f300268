"""Multistep integrators in Nordsieck form and their bootstrap phase."""

from abc import abstractmethod
import logging
from typing import Optional
import numpy as np
from numpy.typing import NDArray

from varstep.core.config import ControllerSettings, Tolerance
from varstep.core.exceptions import (
    EvaluationBudgetExceeded,
    NumericalFailure,
    TooFewPointsError,
)
from varstep.solvers.adaptive import AdaptiveStepsizeIntegrator
from varstep.solvers.base import AbstractIntegrator
from varstep.solvers.embedded import DormandPrince853Integrator
from varstep.stepping.interpolator import StepInterpolator

logger = logging.getLogger(__name__)


class MultistepIntegrator(AdaptiveStepsizeIntegrator):
    """
    Adaptive multistep integrator carrying a Nordsieck vector.

    The Nordsieck state is the scaled first derivative h y' plus a matrix of
    rows h^k/k! y^(k), k = 2..n_steps+1. A multistep method needs a history,
    so integration starts with a single-step starter integrator that runs
    until n_steps points are known; the Nordsieck vector at the initial time
    is then fitted to those points and the starter is stopped.
    """

    def __init__(
        self,
        name: str,
        n_steps: int,
        order: int,
        min_step: float,
        max_step: float,
        absolute_tolerance: Tolerance,
        relative_tolerance: Tolerance,
    ):
        if n_steps < 2:
            raise TooFewPointsError(n_steps)
        super().__init__(name, min_step, max_step, absolute_tolerance, relative_tolerance)

        self.n_steps = n_steps
        self.order = order
        self.exponent = -1.0 / order
        self.controller = ControllerSettings(
            safety=0.9, min_reduction=0.2, max_growth=2.0 ** (1.0 / order)
        )
        self._starter: AbstractIntegrator = DormandPrince853Integrator(
            min_step, max_step, absolute_tolerance, relative_tolerance
        )
        self.scaled: Optional[NDArray] = None
        self.nordsieck: Optional[NDArray] = None

    @property
    def starter_integrator(self) -> AbstractIntegrator:
        """Integrator producing the first n_steps points."""
        return self._starter

    @starter_integrator.setter
    def starter_integrator(self, starter: AbstractIntegrator) -> None:
        self._starter = starter

    @property
    def safety(self) -> float:
        return self.controller.safety

    @safety.setter
    def safety(self, value: float) -> None:
        self.controller.safety = value

    @property
    def min_reduction(self) -> float:
        return self.controller.min_reduction

    @min_reduction.setter
    def min_reduction(self, value: float) -> None:
        self.controller.min_reduction = value

    @property
    def max_growth(self) -> float:
        return self.controller.max_growth

    @max_growth.setter
    def max_growth(self, value: float) -> None:
        self.controller.max_growth = value

    def compute_step_grow_shrink_factor(self, error: float) -> float:
        """min(max_growth, max(min_reduction, safety * error^exponent))."""
        return self.controller.factor(error, self.exponent)

    @abstractmethod
    def initialize_high_order_derivatives(
        self, h: float, t: NDArray, y: NDArray, ydot: NDArray
    ) -> NDArray:
        """Nordsieck rows fitted to the bootstrap points."""

    def start(self, t0: float, t: float) -> None:
        """
        Run the starter from the current state of the composite ODE.

        On return step_start is t0, step_size is the mean bootstrap step and
        scaled/nordsieck describe the solution around t0.

        Raises:
            EvaluationBudgetExceeded: starter plus main evaluations exceed
                max_evaluations
            NumericalFailure: the interval is too short for n_steps points
        """
        starter = self._starter
        initializer = NordsieckInitializer(self, starter, self.n_steps)
        starter.clear_step_handlers()
        starter.add_step_handler(initializer)

        remaining = None
        if self.max_evaluations is not None:
            remaining = self.max_evaluations - self.evaluations
        starter.max_evaluations = remaining

        # the starter must not move the caller's state, even when it reaches t
        saved_time = self._expandable.time
        saved_state = self._expandable.complete_state
        try:
            starter.integrate(self._expandable, t)
        except EvaluationBudgetExceeded as exc:
            if remaining is not None and starter.evaluations > remaining:
                raise EvaluationBudgetExceeded(self.max_evaluations) from exc
            raise
        finally:
            starter.clear_step_handlers()
            self._expandable.time = saved_time
            self._expandable.complete_state = saved_state

        self._increment_evaluations(starter.evaluations)

        if not initializer.completed:
            raise NumericalFailure(
                f"{self.name}: interval from t={t0:g} to t={t:g} is too short "
                f"to gather {self.n_steps} starting points"
            )

    def initialize_nordsieck(self, t: NDArray, y: NDArray, ydot: NDArray) -> None:
        """Set up the Nordsieck state from the bootstrap points."""
        self.step_start = t[0]
        self.step_size = (t[-1] - t[0]) / (t.shape[0] - 1)
        self.scaled = self.step_size * ydot[0]
        self.nordsieck = self.initialize_high_order_derivatives(self.step_size, t, y, ydot)
        logger.debug(
            "%s: bootstrap complete, %d points up to t=%g, h=%g",
            self.name, t.shape[0], t[-1], self.step_size,
        )

    def error_ratio(self, y_scale: NDArray, difference: NDArray) -> NDArray:
        """Primary components of difference divided by their tolerance."""
        n = self.main_set_dimension
        return difference[:n] / self.tolerance(y_scale[:n])


class NordsieckInitializer:
    """Step handler recording the bootstrap points of a multistep method."""

    def __init__(
        self,
        integrator: MultistepIntegrator,
        starter: AbstractIntegrator,
        n_steps: int,
    ):
        self._integrator = integrator
        self._starter = starter
        self.count = 0
        self.completed = False
        self.t = np.zeros(n_steps)
        self.y: list[NDArray] = [None] * n_steps
        self.ydot: list[NDArray] = [None] * n_steps

    def init(self, t0: float, y0: NDArray, t: float) -> None:
        pass

    def handle_step(self, interpolator: StepInterpolator, is_last: bool) -> None:
        if self.completed:
            return

        if self.count == 0:
            # first step, record the starting point
            self._record(0, interpolator, interpolator.previous_time)

        self.count += 1
        self._record(self.count, interpolator, interpolator.current_time)

        if self.count == self.t.shape[0] - 1:
            self._integrator.initialize_nordsieck(
                self.t.copy(), np.array(self.y), np.array(self.ydot)
            )
            self.completed = True
            self._starter.request_stop()

    def _record(self, index: int, interpolator: StepInterpolator, t: float) -> None:
        self.t[index] = t
        self.y[index], self.ydot[index] = interpolator.interpolate(t)
