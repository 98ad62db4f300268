"""Integrators."""

from varstep.solvers.base import AbstractIntegrator
from varstep.solvers.explicit import RungeKuttaIntegrator
from varstep.solvers.adaptive import AdaptiveStepsizeIntegrator
from varstep.solvers.embedded import (
    EmbeddedRungeKuttaIntegrator,
    DormandPrince54Integrator,
    DormandPrince853Integrator,
    HighamHall54Integrator,
)
from varstep.solvers.multistep import MultistepIntegrator
from varstep.solvers.adams import AdamsBashforthIntegrator, AdamsMoultonIntegrator
from varstep.solvers.factory import create_integrator

__all__ = [
    "AbstractIntegrator",
    "RungeKuttaIntegrator",
    "AdaptiveStepsizeIntegrator",
    "EmbeddedRungeKuttaIntegrator",
    "DormandPrince54Integrator",
    "DormandPrince853Integrator",
    "HighamHall54Integrator",
    "MultistepIntegrator",
    "AdamsBashforthIntegrator",
    "AdamsMoultonIntegrator",
    "create_integrator",
]
