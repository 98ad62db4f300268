"""Step records, step handlers, trajectories and sensitivities."""

from varstep.stepping.interpolator import StepInterpolator, RungeKuttaStepInterpolator
from varstep.stepping.nordsieck import NordsieckStepInterpolator
from varstep.stepping.handlers import (
    StepHandler,
    FixedStepHandler,
    StepNormalizer,
    StepNormalizerMode,
    StepNormalizerBounds,
)
from varstep.stepping.trajectory import ContinuousOutputModel
from varstep.stepping.sensitivity import JacobianMatrices

__all__ = [
    "StepInterpolator",
    "RungeKuttaStepInterpolator",
    "NordsieckStepInterpolator",
    "StepHandler",
    "FixedStepHandler",
    "StepNormalizer",
    "StepNormalizerMode",
    "StepNormalizerBounds",
    "ContinuousOutputModel",
    "JacobianMatrices",
]
