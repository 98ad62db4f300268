"""Integrator factory and dispatch logic."""

from typing import Callable

from varstep.core.exceptions import ConfigurationError
from varstep.core.tableau import ButcherTableau
from varstep.methods.runge_kutta import (
    explicit_euler,
    heun,
    midpoint,
    rk4,
    three_eighths,
)
from varstep.solvers.adams import AdamsBashforthIntegrator, AdamsMoultonIntegrator
from varstep.solvers.base import AbstractIntegrator
from varstep.solvers.embedded import (
    DormandPrince54Integrator,
    DormandPrince853Integrator,
    HighamHall54Integrator,
)
from varstep.solvers.explicit import RungeKuttaIntegrator


FIXED_STEP_METHODS: dict[str, tuple[str, Callable[[], ButcherTableau]]] = {
    "euler": ("Euler", explicit_euler),
    "midpoint": ("midpoint", midpoint),
    "heun": ("Heun", heun),
    "classical_rk4": ("classical Runge-Kutta", rk4),
    "three_eighths": ("3/8", three_eighths),
}

ADAPTIVE_METHODS = {
    "dormand_prince54": DormandPrince54Integrator,
    "dormand_prince853": DormandPrince853Integrator,
    "higham_hall54": HighamHall54Integrator,
}

MULTISTEP_METHODS = {
    "adams_bashforth": AdamsBashforthIntegrator,
    "adams_moulton": AdamsMoultonIntegrator,
}


def create_integrator(name: str, **options) -> AbstractIntegrator:
    """
    Build an integrator by name.

    Args:
        name: One of the fixed step methods ("euler", "midpoint", "heun",
            "classical_rk4", "three_eighths"), the adaptive Runge-Kutta pairs
            ("dormand_prince54", "dormand_prince853", "higham_hall54"),
            "adams_bashforth" or "adams_moulton"
        **options: Constructor arguments. Fixed step methods take step;
            adaptive ones take min_step, max_step, absolute_tolerance and
            relative_tolerance; Adams methods also take n_steps. Every
            integrator accepts max_evaluations.

    Returns:
        Configured integrator
    """
    max_evaluations = options.pop("max_evaluations", None)

    try:
        if name in FIXED_STEP_METHODS:
            label, tableau = FIXED_STEP_METHODS[name]
            integrator = RungeKuttaIntegrator(label, tableau(), **options)
        elif name in ADAPTIVE_METHODS:
            integrator = ADAPTIVE_METHODS[name](**options)
        elif name in MULTISTEP_METHODS:
            integrator = MULTISTEP_METHODS[name](**options)
        else:
            known = sorted([*FIXED_STEP_METHODS, *ADAPTIVE_METHODS, *MULTISTEP_METHODS])
            raise ConfigurationError(f"unknown integrator {name!r}, expected one of {known}")
    except TypeError as exc:
        raise ConfigurationError(f"invalid options for {name!r}: {exc}") from exc

    integrator.max_evaluations = max_evaluations
    return integrator
