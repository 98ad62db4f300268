"""Continuous output over a whole integration."""

import logging
from numpy.typing import NDArray

from varstep.core.exceptions import (
    DimensionMismatchError,
    DirectionMismatchError,
    TrajectoryGapError,
    VarstepError,
)
from varstep.stepping.interpolator import StepInterpolator

logger = logging.getLogger(__name__)


class ContinuousOutputModel:
    """
    Step handler retaining every step for later random-time queries.

    Attach it to an integrator, integrate, then set interpolated_time and
    read interpolated_state. Lookups start from the step found by the
    previous query, so sweeping monotonically through time is cheap, and
    arbitrary jumps use an inverse quadratic estimate of the step index.

    Models built from consecutive integrations can be joined with append().
    """

    def __init__(self):
        self.steps: list[StepInterpolator] = []
        self.initial_time = float("nan")
        self.final_time = float("nan")
        self.forward = True
        self._index = 0
        self._interpolated_time = float("nan")

    def append(self, model: "ContinuousOutputModel") -> None:
        """
        Append the steps of another model at the end of this one.

        Raises:
            DimensionMismatchError: the models carry states of different sizes
            DirectionMismatchError: the models run in opposite directions
            TrajectoryGapError: model does not start where this one ends
        """
        if not model.steps:
            return

        if not self.steps:
            self.initial_time = model.initial_time
            self.forward = model.forward
        else:
            last = self.steps[-1]
            other = model.steps[0]
            if last.dimension != other.dimension:
                raise DimensionMismatchError(other.dimension, last.dimension)
            if self.forward != model.forward:
                raise DirectionMismatchError()

            step = last.current_time - last.previous_time
            gap = model.initial_time - last.current_time
            if abs(gap) > 1.0e-3 * abs(step):
                raise TrajectoryGapError(abs(gap))

        for interpolator in model.steps:
            self.steps.append(interpolator.copy())

        self._index = len(self.steps) - 1
        self.final_time = self.steps[self._index].current_time
        logger.debug(
            "appended %d steps, trajectory now spans [%g, %g]",
            len(model.steps), self.initial_time, self.final_time,
        )

    def init(self, t0: float, y0: NDArray, t: float) -> None:
        self.initial_time = float("nan")
        self.final_time = float("nan")
        self.forward = True
        self._index = 0
        self._interpolated_time = float("nan")
        self.steps.clear()

    def handle_step(self, interpolator: StepInterpolator, is_last: bool) -> None:
        if not self.steps:
            self.initial_time = interpolator.previous_time
            self.forward = interpolator.forward

        self.steps.append(interpolator.copy())

        if is_last:
            self.final_time = interpolator.current_time
            self._index = len(self.steps) - 1

    @property
    def interpolated_time(self) -> float:
        return self._interpolated_time

    @interpolated_time.setter
    def interpolated_time(self, time: float) -> None:
        if not self.steps:
            raise VarstepError("no step has been stored in the trajectory")
        self._index = self._locate_step(time)
        self._interpolated_time = time

    def _locate_step(self, time: float) -> int:
        steps = self.steps

        # initialize the search with the complete steps table
        i_min = 0
        s_min = steps[i_min]
        t_min = 0.5 * (s_min.previous_time + s_min.current_time)

        i_max = len(steps) - 1
        s_max = steps[i_max]
        t_max = 0.5 * (s_max.previous_time + s_max.current_time)

        # points outside of the integration interval or in the end steps
        if self._locate_point(time, s_min) <= 0:
            return i_min
        if self._locate_point(time, s_max) >= 0:
            return i_max

        index = self._index
        while i_max - i_min > 5:
            # use the last estimated index as the splitting index
            si = steps[index]
            location = self._locate_point(time, si)
            if location < 0:
                i_max = index
                t_max = 0.5 * (si.previous_time + si.current_time)
            elif location > 0:
                i_min = index
                t_min = 0.5 * (si.previous_time + si.current_time)
            else:
                return index

            i_med = (i_min + i_max) // 2
            s_med = steps[i_med]
            t_med = 0.5 * (s_med.previous_time + s_med.current_time)

            if abs(t_med - t_min) < 1e-6 or abs(t_max - t_med) < 1e-6:
                # too close to the bounds, plain dichotomy
                index = i_med
            else:
                # inverse quadratic through (t_min, i_min), (t_med, i_med), (t_max, i_max)
                d12 = t_max - t_med
                d23 = t_med - t_min
                d13 = t_max - t_min
                dt1 = time - t_max
                dt2 = time - t_med
                dt3 = time - t_min
                i_lagrange = (
                    (dt2 * dt3 * d23) * i_max
                    - (dt1 * dt3 * d13) * i_med
                    + (dt1 * dt2 * d12) * i_min
                ) / (d12 * d23 * d13)
                index = int(round(i_lagrange))

            # force the next size reduction to be at least one tenth
            low = max(i_min + 1, (9 * i_min + i_max) // 10)
            high = min(i_max - 1, (i_min + 9 * i_max) // 10)
            index = min(max(index, low), high)

        # the slice is small now, finish with a linear scan
        index = i_min
        while index <= i_max and self._locate_point(time, steps[index]) > 0:
            index += 1
        return index

    def _locate_point(self, time: float, interval: StepInterpolator) -> int:
        """-1 before the step, +1 after it, 0 inside, in integration direction."""
        if self.forward:
            if time < interval.previous_time:
                return -1
            if time > interval.current_time:
                return 1
            return 0
        if time > interval.previous_time:
            return -1
        if time < interval.current_time:
            return 1
        return 0

    @property
    def interpolated_state(self) -> NDArray:
        """Primary state at interpolated_time."""
        return self.steps[self._index].primary_state(self._interpolated_time)

    @property
    def interpolated_derivatives(self) -> NDArray:
        """Primary derivative at interpolated_time."""
        return self.steps[self._index].primary_derivative(self._interpolated_time)

    def get_interpolated_secondary_state(self, index: int) -> NDArray:
        return self.steps[self._index].secondary_state(self._interpolated_time, index)

    def get_interpolated_secondary_derivatives(self, index: int) -> NDArray:
        return self.steps[self._index].secondary_derivative(self._interpolated_time, index)

    def state_at(self, time: float) -> NDArray:
        """Primary state at an arbitrary time."""
        self.interpolated_time = time
        return self.interpolated_state
