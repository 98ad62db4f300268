"""Adams-Bashforth and Adams-Moulton integrators in Nordsieck form."""

from abc import abstractmethod
import logging
import numpy as np
from numpy.typing import NDArray

from varstep.algebra.dense import DenseBackend
from varstep.core.config import Tolerance
from varstep.core.expandable import ExpandableODE
from varstep.methods.multistep import adams_transformer
from varstep.solvers.multistep import MultistepIntegrator
from varstep.stepping.nordsieck import (
    NordsieckStepInterpolator,
    nordsieck_expansion,
    rescale_nordsieck,
)

logger = logging.getLogger(__name__)

_backend = DenseBackend()


class AdamsIntegrator(MultistepIntegrator):
    """Shared plumbing of the Adams family."""

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
        super().__init__(
            name, n_steps, order, min_step, max_step,
            absolute_tolerance, relative_tolerance,
        )
        self.transformer = adams_transformer(n_steps)

    def initialize_high_order_derivatives(
        self, h: float, t: NDArray, y: NDArray, ydot: NDArray
    ) -> NDArray:
        return self.transformer.initialize_high_order_derivatives(h, t, y, ydot)

    def update_high_order_derivatives_phase1(self, high_order: NDArray) -> NDArray:
        return self.transformer.update_high_order_derivatives_phase1(high_order)

    def update_high_order_derivatives_phase2(
        self, start: NDArray, end: NDArray, high_order: NDArray
    ) -> NDArray:
        return self.transformer.update_high_order_derivatives_phase2(start, end, high_order)

    def integrate(self, expandable: ExpandableODE, t: float) -> None:
        self.sanity_checks(expandable, t)
        self._expandable = expandable
        forward = t > expandable.time

        y0 = expandable.complete_state
        y = y0.copy()

        self.init_integration(expandable.time, y0, t)
        self.start(expandable.time, t)

        h_new = self.step_size
        scaled, nordsieck = self.scaled, self.nordsieck

        while True:
            error = 10.0
            while error >= 1.0:
                self.step_size = h_new
                y_new, predicted_scaled, nordsieck_tmp, error = self._attempt_step(
                    y, scaled, nordsieck
                )
                if error >= 1.0:
                    factor = self.compute_step_grow_shrink_factor(error)
                    h_new = self.filter_step(self.step_size * factor, forward, False)
                    scaled, nordsieck = rescale_nordsieck(scaled, nordsieck, h_new / self.step_size)
                    logger.debug(
                        "%s: rejected step at t=%g (error %.3g), retrying with h=%g",
                        self.name, self.step_start, error, h_new,
                    )

            step_end = self.step_start + self.step_size
            y_new, scaled, nordsieck = self._complete_step(
                step_end, y, y_new, predicted_scaled, nordsieck_tmp
            )

            interpolator = NordsieckStepInterpolator(
                step_end, y_new, self.step_size, scaled, nordsieck,
                self.step_start, y, forward,
                expandable.primary_mapper, expandable.secondary_mappers,
            )
            y = y_new

            self.step_start = self.accept_step(interpolator, t)
            self.scaled, self.nordsieck = scaled, nordsieck
            if self.is_last_step or self._stop_requested:
                break

            factor = self.compute_step_grow_shrink_factor(error)
            scaled_h = self.step_size * factor
            next_t = self.step_start + scaled_h
            next_is_last = (next_t >= t) if forward else (next_t <= t)
            h_new = self.filter_step(scaled_h, forward, next_is_last)

            filtered_next_t = self.step_start + h_new
            if (filtered_next_t >= t) if forward else (filtered_next_t <= t):
                h_new = t - self.step_start

            scaled, nordsieck = rescale_nordsieck(scaled, nordsieck, h_new / self.step_size)

        self.finish_integration(expandable, y)
        self.reset_internal_state()

    def _predict(self, y: NDArray, scaled: NDArray, nordsieck: NDArray):
        """State at the end of the trial step and its scaled derivative there."""
        step_end = self.step_start + self.step_size
        y_predicted, _ = nordsieck_expansion(
            y, scaled, nordsieck, self.step_size, step_end - self.step_start
        )
        ydot = self.compute_derivatives(step_end, y_predicted)
        return y_predicted, self.step_size * ydot

    @abstractmethod
    def _attempt_step(self, y: NDArray, scaled: NDArray, nordsieck: NDArray):
        """
        Try a step of size step_size from step_start.

        Returns:
            (state at step end, scaled derivative there, updated Nordsieck
            rows, normalized error)
        """

    @abstractmethod
    def _complete_step(
        self,
        step_end: float,
        y: NDArray,
        y_new: NDArray,
        predicted_scaled: NDArray,
        nordsieck_tmp: NDArray,
    ):
        """
        Finish an accepted step.

        Returns:
            (state, scaled derivative, Nordsieck rows) at step_end
        """


class AdamsBashforthIntegrator(AdamsIntegrator):
    """
    Explicit Adams-Bashforth integrator of order n_steps.

    The local error is estimated from the last Nordsieck row, the highest
    order term of the expansion.
    """

    def __init__(
        self,
        n_steps: int,
        min_step: float,
        max_step: float,
        absolute_tolerance: Tolerance,
        relative_tolerance: Tolerance,
    ):
        super().__init__(
            "Adams-Bashforth", n_steps, n_steps, min_step, max_step,
            absolute_tolerance, relative_tolerance,
        )

    def _attempt_step(self, y, scaled, nordsieck):
        ratio = self.error_ratio(np.abs(y), nordsieck[-1])
        error = _backend.rms(ratio)
        if error >= 1.0:
            return None, None, None, error

        y_predicted, predicted_scaled = self._predict(y, scaled, nordsieck)
        nordsieck_tmp = self.update_high_order_derivatives_phase1(nordsieck)
        self.update_high_order_derivatives_phase2(scaled, predicted_scaled, nordsieck_tmp)
        return y_predicted, predicted_scaled, nordsieck_tmp, error

    def _complete_step(self, step_end, y, y_new, predicted_scaled, nordsieck_tmp):
        return y_new, predicted_scaled, nordsieck_tmp


class AdamsMoultonIntegrator(AdamsIntegrator):
    """
    Implicit Adams-Moulton integrator of order n_steps + 1.

    Each step is a predictor-corrector pass: the Nordsieck expansion predicts
    the end state, the implicit formula corrects it once, and the difference
    between prediction and correction is the local error estimate.
    """

    def __init__(
        self,
        n_steps: int,
        min_step: float,
        max_step: float,
        absolute_tolerance: Tolerance,
        relative_tolerance: Tolerance,
    ):
        super().__init__(
            "Adams-Moulton", n_steps, n_steps + 1, min_step, max_step,
            absolute_tolerance, relative_tolerance,
        )

    def _attempt_step(self, y, scaled, nordsieck):
        y_predicted, predicted_scaled = self._predict(y, scaled, nordsieck)
        nordsieck_tmp = self.update_high_order_derivatives_phase1(nordsieck)
        self.update_high_order_derivatives_phase2(scaled, predicted_scaled, nordsieck_tmp)

        # y_{n+1} = y_n + s1(n+1) - Σ_k (-1)^k r_k(n+1)
        signs = np.where(np.arange(nordsieck_tmp.shape[0]) % 2 == 0, -1.0, 1.0)
        y_corrected = y + predicted_scaled + signs @ nordsieck_tmp

        y_scale = np.maximum(np.abs(y), np.abs(y_corrected))
        error = _backend.rms(self.error_ratio(y_scale, y_corrected - y_predicted))
        return y_corrected, predicted_scaled, nordsieck_tmp, error

    def _complete_step(self, step_end, y, y_new, predicted_scaled, nordsieck_tmp):
        ydot = self.compute_derivatives(step_end, y_new)
        corrected_scaled = self.step_size * ydot
        self.update_high_order_derivatives_phase2(predicted_scaled, corrected_scaled, nordsieck_tmp)
        return y_new, corrected_scaled, nordsieck_tmp
