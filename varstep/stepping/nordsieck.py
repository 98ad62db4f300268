"""Interpolation from a Nordsieck vector."""

from typing import Sequence, Tuple
import numpy as np
from numpy.typing import NDArray

from varstep.core.mapper import EquationsMapper
from varstep.stepping.interpolator import StepInterpolator


def nordsieck_expansion(
    reference_state: NDArray,
    scaled: NDArray,
    nordsieck: NDArray,
    scaling_h: float,
    x: float,
) -> Tuple[NDArray, NDArray]:
    """
    Taylor expansion of a Nordsieck vector.

    Args:
        reference_state: State at the reference time
        scaled: Scaled first derivative h y'
        nordsieck: (k, n) rows h^j/j! y^(j), j = 2..k+1
        scaling_h: Step size the scaled quantities were built for
        x: Offset from the reference time

    Returns:
        (state, derivative) at reference time + x
    """
    a = x / scaling_h
    orders = np.arange(2, nordsieck.shape[0] + 2)
    variation = scaled * a + (a ** orders) @ nordsieck
    # differentiate term by term so that x = 0 needs no division
    derivative = (scaled + (orders * a ** (orders - 1)) @ nordsieck) / scaling_h
    return reference_state + variation, derivative


def rescale_nordsieck(
    scaled: NDArray, nordsieck: NDArray, ratio: float
) -> Tuple[NDArray, NDArray]:
    """
    Rebuild the scaled derivative and Nordsieck rows for h_new = ratio * h.

    Returns:
        New (scaled, nordsieck) arrays; inputs are left untouched
    """
    orders = np.arange(2, nordsieck.shape[0] + 2)
    return scaled * ratio, nordsieck * (ratio ** orders)[:, np.newaxis]


class NordsieckStepInterpolator(StepInterpolator):
    """Step record of an Adams integrator, expanded around the end of the step."""

    def __init__(
        self,
        reference_time: float,
        reference_state: NDArray,
        scaling_h: float,
        scaled: NDArray,
        nordsieck: NDArray,
        previous_time: float,
        previous_state: NDArray,
        forward: bool,
        primary_mapper: EquationsMapper,
        secondary_mappers: Sequence[EquationsMapper] = (),
    ):
        super().__init__(
            previous_time, reference_time, previous_state, reference_state,
            forward, primary_mapper, secondary_mappers,
        )
        self.reference_time = reference_time
        self.scaling_h = scaling_h
        self.scaled = np.array(scaled, dtype=float)
        self.nordsieck = np.array(nordsieck, dtype=float)

    def _compute(self, t: float) -> Tuple[NDArray, NDArray]:
        return nordsieck_expansion(
            self.current_state, self.scaled, self.nordsieck,
            self.scaling_h, t - self.reference_time,
        )
