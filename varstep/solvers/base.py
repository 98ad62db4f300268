"""Base integrator: evaluation budget, step handlers and step acceptance."""

from abc import ABC, abstractmethod
import logging
import math
from typing import Optional
import numpy as np
from numpy.typing import NDArray

from varstep.core.exceptions import (
    DimensionMismatchError,
    EvaluationBudgetExceeded,
    TooSmallIntervalError,
)
from varstep.core.expandable import ExpandableODE
from varstep.core.problem import OrdinaryDifferentialEquation
from varstep.stepping.handlers import StepHandler
from varstep.stepping.interpolator import StepInterpolator
from varstep.utils.precision import equals_within_ulp

logger = logging.getLogger(__name__)


class AbstractIntegrator(ABC):
    """
    Common machinery of all integrators.

    Subclasses implement integrate(); they evaluate derivatives through
    compute_derivatives() so that every evaluation is counted, hand every
    accepted step to accept_step(), and leave their loop as soon as the step
    is the last one or a stop has been requested.
    """

    def __init__(self, name: str):
        self.name = name
        self._step_handlers: list[StepHandler] = []
        self._max_evaluations: Optional[int] = None
        self._evaluations = 0
        self._expandable: Optional[ExpandableODE] = None
        self._stop_requested = False
        self.step_start = float("nan")
        self.step_size = float("nan")
        self.is_last_step = False

    # Step handlers

    def add_step_handler(self, handler: StepHandler) -> None:
        self._step_handlers.append(handler)

    def clear_step_handlers(self) -> None:
        self._step_handlers.clear()

    @property
    def step_handlers(self) -> tuple[StepHandler, ...]:
        return tuple(self._step_handlers)

    # Evaluation budget

    @property
    def max_evaluations(self) -> Optional[int]:
        """Ceiling on derivative evaluations, None when unbounded."""
        return self._max_evaluations

    @max_evaluations.setter
    def max_evaluations(self, value: Optional[int]) -> None:
        self._max_evaluations = None if value is None or value < 0 else int(value)

    @property
    def evaluations(self) -> int:
        """Derivative evaluations of the current or last integration."""
        return self._evaluations

    def _increment_evaluations(self, count: int = 1) -> None:
        self._evaluations += count
        if self._max_evaluations is not None and self._evaluations > self._max_evaluations:
            raise EvaluationBudgetExceeded(self._max_evaluations)

    def compute_derivatives(self, t: float, y: NDArray) -> NDArray:
        """Counted evaluation of the complete derivative."""
        self._increment_evaluations()
        return self._expandable.compute_derivatives(t, y)

    # Current step

    @property
    def current_step_start(self) -> float:
        return self.step_start

    @property
    def current_signed_stepsize(self) -> float:
        return self.step_size

    # Cooperative stop

    def request_stop(self) -> None:
        """Ask the running integration to return after the current step."""
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    # Integration

    @abstractmethod
    def integrate(self, expandable: ExpandableODE, t: float) -> None:
        """
        Integrate a composite ODE up to time t.

        The initial time and state are read from expandable; on return they
        hold the final time and state.

        Args:
            expandable: Composite ODE carrying the initial time and state
            t: Target time, may be before the initial time
        """

    def integrate_ode(
        self, ode: OrdinaryDifferentialEquation, t0: float, y0: NDArray, t: float
    ) -> tuple[float, NDArray]:
        """
        Integrate a plain ODE from (t0, y0) up to t.

        Returns:
            (final time, final state)
        """
        y0 = np.asarray(y0, dtype=float)
        if y0.shape != (ode.dimension,):
            raise DimensionMismatchError(y0.size, ode.dimension)
        expandable = ExpandableODE(ode)
        expandable.time = t0
        expandable.primary_state = y0
        self.integrate(expandable, t)
        return expandable.time, expandable.primary_state

    def sanity_checks(self, expandable: ExpandableODE, t: float) -> None:
        """Reject intervals too small to be resolved in floating point."""
        t0 = expandable.time
        threshold = 1000.0 * math.ulp(max(abs(t0), abs(t)))
        dt = abs(t0 - t)
        if dt <= threshold:
            raise TooSmallIntervalError(dt, threshold)

    def init_integration(self, t0: float, y0: NDArray, t: float) -> None:
        """Reset per-run state and notify the step handlers."""
        self._evaluations = 0
        self._stop_requested = False
        self.is_last_step = False
        logger.info("%s: integrating from t=%g to t=%g", self.name, t0, t)
        for handler in self._step_handlers:
            handler.init(t0, np.array(y0), t)

    def accept_step(self, interpolator: StepInterpolator, t_end: float) -> float:
        """
        Hand an accepted step to the step handlers.

        Returns:
            Time at the end of the step, the start of the next one
        """
        current_t = interpolator.current_time
        self.is_last_step = self.is_last_step or equals_within_ulp(current_t, t_end)
        for handler in self._step_handlers:
            handler.handle_step(interpolator, self.is_last_step)
        return current_t

    def finish_integration(self, expandable: ExpandableODE, y: NDArray) -> None:
        """Write the final time and state back unless the run was stopped."""
        if not self._stop_requested:
            expandable.time = self.step_start
            expandable.complete_state = y
        logger.info(
            "%s: finished at t=%g after %d evaluations",
            self.name, self.step_start, self._evaluations,
        )
