"""Step handler protocols and the fixed-step normalizer."""

from enum import Enum, auto
import math
from typing import Optional, Protocol
import numpy as np
from numpy.typing import NDArray

from varstep.stepping.interpolator import StepInterpolator
from varstep.utils.precision import equals_within_ulp


class StepHandler(Protocol):
    """Receives every accepted step of an integration."""

    def init(self, t0: float, y0: NDArray, t: float) -> None:
        """Called once before the first step."""
        ...

    def handle_step(self, interpolator: StepInterpolator, is_last: bool) -> None:
        """Called after each accepted step."""
        ...


class FixedStepHandler(Protocol):
    """Receives primary state samples at regularly spaced times."""

    def init(self, t0: float, y0: NDArray, t: float) -> None:
        ...

    def handle_step(self, t: float, y: NDArray, ydot: NDArray, is_last: bool) -> None:
        ...


class StepNormalizerMode(Enum):
    """How sample times are laid out."""
    INCREMENT = auto()  # t0, t0 + h, t0 + 2h, ...
    MULTIPLES = auto()  # integer multiples of h


class StepNormalizerBounds(Enum):
    """Whether the integration bounds are sampled."""
    NEITHER = auto()
    FIRST = auto()
    LAST = auto()
    BOTH = auto()

    @property
    def first_included(self) -> bool:
        return self in (StepNormalizerBounds.FIRST, StepNormalizerBounds.BOTH)

    @property
    def last_included(self) -> bool:
        return self in (StepNormalizerBounds.LAST, StepNormalizerBounds.BOTH)


class StepNormalizer:
    """
    Adapter turning variable integrator steps into fixed-interval samples.

    Args:
        h: Sampling interval (sign ignored, the integration direction is used)
        handler: Fixed step handler receiving the samples
        mode: Sample layout
        bounds: Whether the first and last integration times are sampled
    """

    def __init__(
        self,
        h: float,
        handler: FixedStepHandler,
        mode: StepNormalizerMode = StepNormalizerMode.INCREMENT,
        bounds: StepNormalizerBounds = StepNormalizerBounds.FIRST,
    ):
        self.h = abs(h)
        self.handler = handler
        self.mode = mode
        self.bounds = bounds
        self._reset()

    def _reset(self) -> None:
        self._step = self.h
        self._first_time = float("nan")
        self._last_time = float("nan")
        self._last_state: Optional[NDArray] = None
        self._last_derivative: Optional[NDArray] = None
        self._forward = True

    def init(self, t0: float, y0: NDArray, t: float) -> None:
        self._reset()
        self.handler.init(t0, y0, t)

    def handle_step(self, interpolator: StepInterpolator, is_last: bool) -> None:
        if self._last_state is None:
            self._first_time = interpolator.previous_time
            self._store(interpolator, interpolator.previous_time)
            self._forward = interpolator.current_time >= self._last_time
            if not self._forward:
                self._step = -self.h

        h = self._step
        if self.mode is StepNormalizerMode.INCREMENT:
            next_time = self._last_time + h
        else:
            next_time = (math.floor(self._last_time / h) + 1) * h
            if equals_within_ulp(next_time, self._last_time):
                next_time += h

        while self._in_step(next_time, interpolator):
            self._emit(False)
            self._store(interpolator, next_time)
            next_time += h

        if is_last:
            add_last = (
                self.bounds.last_included
                and self._last_time != interpolator.current_time
            )
            self._emit(not add_last)
            if add_last:
                self._store(interpolator, interpolator.current_time)
                self._emit(True)

    def _in_step(self, t: float, interpolator: StepInterpolator) -> bool:
        if self._forward:
            return t <= interpolator.current_time
        return t >= interpolator.current_time

    def _store(self, interpolator: StepInterpolator, t: float) -> None:
        self._last_time = t
        self._last_state = interpolator.primary_state(t)
        self._last_derivative = interpolator.primary_derivative(t)

    def _emit(self, is_last: bool) -> None:
        if not self.bounds.first_included and self._first_time == self._last_time:
            return
        self.handler.handle_step(
            self._last_time,
            np.array(self._last_state),
            np.array(self._last_derivative),
            is_last,
        )
