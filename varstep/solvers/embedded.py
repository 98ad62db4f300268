"""Adaptive embedded Runge-Kutta integrators."""

import logging
import numpy as np
from numpy.typing import NDArray

from varstep.algebra.dense import DenseBackend
from varstep.core.config import ControllerSettings, Tolerance
from varstep.core.exceptions import ConfigurationError
from varstep.core.expandable import ExpandableODE
from varstep.core.tableau import ButcherTableau
from varstep.methods.runge_kutta import (
    DORMAND_PRINCE853_E2,
    dormand_prince54,
    dormand_prince853,
    higham_hall54,
)
from varstep.solvers.adaptive import AdaptiveStepsizeIntegrator
from varstep.solvers.explicit import dense_output_stages, runge_kutta_stages
from varstep.stepping.interpolator import RungeKuttaStepInterpolator

logger = logging.getLogger(__name__)

_backend = DenseBackend()


class EmbeddedRungeKuttaIntegrator(AdaptiveStepsizeIntegrator):
    """
    Explicit Runge-Kutta pair with local error control.

    The tableau must carry embedded error weights. When it is FSAL the last
    stage derivative of an accepted step is reused as the first stage of the
    next one.
    """

    def __init__(
        self,
        name: str,
        tableau: ButcherTableau,
        min_step: float,
        max_step: float,
        absolute_tolerance: Tolerance,
        relative_tolerance: Tolerance,
    ):
        if not tableau.is_embedded:
            raise ConfigurationError(f"{name} has no embedded error estimator")
        super().__init__(name, min_step, max_step, absolute_tolerance, relative_tolerance)
        self.tableau = tableau
        self.exponent = -1.0 / tableau.order
        self.controller = ControllerSettings(safety=0.9, min_reduction=0.2, max_growth=10.0)

    @property
    def order(self) -> int:
        return self.tableau.order

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

    def estimate_error(self, ydot_k: NDArray, y0: NDArray, y1: NDArray, h: float) -> float:
        """Normalized RMS of the embedded error over the primary state."""
        n = self.main_set_dimension
        err = self.tableau.error @ ydot_k[:, :n]
        y_scale = np.maximum(np.abs(y0[:n]), np.abs(y1[:n]))
        return _backend.rms(h * err / self.tolerance(y_scale))

    def integrate(self, expandable: ExpandableODE, t: float) -> None:
        self.sanity_checks(expandable, t)
        self._expandable = expandable
        forward = t > expandable.time

        tableau = self.tableau
        n = self.main_set_dimension
        y0 = expandable.complete_state
        y = y0.copy()
        ydot_k = np.zeros((tableau.stages, y0.shape[0]))  # (s, n) stage derivatives
        primary_mapper = expandable.primary_mapper
        secondary_mappers = expandable.secondary_mappers

        self.init_integration(expandable.time, y0, t)
        self.step_start = expandable.time
        h_new = 0.0
        first_time = True

        while True:
            error = 10.0
            while error >= 1.0:
                if first_time or not tableau.fsal:
                    ydot_k[0] = self.compute_derivatives(self.step_start, y)

                if first_time:
                    scale = self.tolerance(np.abs(y[:n]))
                    h_new = self.initialize_step(
                        forward, tableau.order, scale, self.step_start, y, ydot_k[0]
                    )
                    first_time = False

                self.step_size = h_new
                next_t = self.step_start + self.step_size
                if (next_t >= t) if forward else (next_t <= t):
                    self.step_size = t - self.step_start

                y_tmp = runge_kutta_stages(
                    self.compute_derivatives, tableau,
                    self.step_start, y, self.step_size, ydot_k,
                )
                error = self.estimate_error(ydot_k, y, y_tmp, self.step_size)
                if error >= 1.0:
                    factor = self.controller.factor(error, self.exponent)
                    h_new = self.filter_step(self.step_size * factor, forward, False)
                    logger.debug(
                        "%s: rejected step at t=%g (error %.3g), retrying with h=%g",
                        self.name, self.step_start, error, h_new,
                    )

            stage_derivatives = ydot_k
            if self._step_handlers:
                stage_derivatives = dense_output_stages(
                    self.compute_derivatives, tableau,
                    self.step_start, y, self.step_size, ydot_k,
                )
            interpolator = RungeKuttaStepInterpolator(
                tableau, stage_derivatives,
                self.step_start, self.step_start + self.step_size,
                y, y_tmp, forward, primary_mapper, secondary_mappers,
            )
            y = y_tmp
            last_stage = ydot_k[-1].copy()

            self.step_start = self.accept_step(interpolator, t)
            if self.is_last_step or self._stop_requested:
                break

            if tableau.fsal:
                ydot_k[0] = last_stage

            factor = self.controller.factor(error, self.exponent)
            scaled_h = self.step_size * factor
            next_t = self.step_start + scaled_h
            next_is_last = (next_t >= t) if forward else (next_t <= t)
            h_new = self.filter_step(scaled_h, forward, next_is_last)

            filtered_next_t = self.step_start + h_new
            if (filtered_next_t >= t) if forward else (filtered_next_t <= t):
                h_new = t - self.step_start

        self.finish_integration(expandable, y)
        self.reset_internal_state()


class DormandPrince54Integrator(EmbeddedRungeKuttaIntegrator):
    """Dormand-Prince 5(4) integrator with dense output."""

    def __init__(
        self,
        min_step: float,
        max_step: float,
        absolute_tolerance: Tolerance,
        relative_tolerance: Tolerance,
    ):
        super().__init__(
            "Dormand-Prince 5(4)", dormand_prince54(),
            min_step, max_step, absolute_tolerance, relative_tolerance,
        )


class HighamHall54Integrator(EmbeddedRungeKuttaIntegrator):
    """Higham-Hall 5(4) integrator with dense output."""

    def __init__(
        self,
        min_step: float,
        max_step: float,
        absolute_tolerance: Tolerance,
        relative_tolerance: Tolerance,
    ):
        super().__init__(
            "Higham-Hall 5(4)", higham_hall54(),
            min_step, max_step, absolute_tolerance, relative_tolerance,
        )


class DormandPrince853Integrator(EmbeddedRungeKuttaIntegrator):
    """
    Dormand-Prince 8(5,3) integrator with 7th-order dense output.

    The local error combines a 5th and a 3rd order estimator. When step
    handlers are registered, every accepted step costs three more
    evaluations for the continuous extension.
    """

    def __init__(
        self,
        min_step: float,
        max_step: float,
        absolute_tolerance: Tolerance,
        relative_tolerance: Tolerance,
    ):
        super().__init__(
            "Dormand-Prince 8 (5, 3)", dormand_prince853(),
            min_step, max_step, absolute_tolerance, relative_tolerance,
        )

    def estimate_error(self, ydot_k: NDArray, y0: NDArray, y1: NDArray, h: float) -> float:
        n = self.main_set_dimension
        y_scale = np.maximum(np.abs(y0[:n]), np.abs(y1[:n]))
        tol = self.tolerance(y_scale)
        error1 = np.sum(((self.tableau.error @ ydot_k[:, :n]) / tol) ** 2)
        error2 = np.sum(((DORMAND_PRINCE853_E2 @ ydot_k[:, :n]) / tol) ** 2)

        den = error1 + 0.01 * error2
        if den <= 0.0:
            den = 1.0
        return abs(h) * error1 / np.sqrt(n * den)
