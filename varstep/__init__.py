"""
Varstep: adaptive integration of ordinary differential equations.

This library provides:
- Composite state vectors (primary equations plus secondary equation sets)
- Fixed step explicit Runge-Kutta integrators
- Adaptive embedded Runge-Kutta (Dormand-Prince, Higham-Hall) and Adams
  (Nordsieck) integrators
- Sensitivity analysis through variational equations
- Dense output trajectories with fast random-time queries
"""

__version__ = "0.1.0"

from varstep.core.expandable import ExpandableODE
from varstep.core.problem import FunctionODE
from varstep.core.tableau import ButcherTableau
from varstep.solvers.factory import create_integrator
from varstep.stepping.sensitivity import JacobianMatrices
from varstep.stepping.trajectory import ContinuousOutputModel

__all__ = [
    "ExpandableODE",
    "FunctionODE",
    "ButcherTableau",
    "create_integrator",
    "JacobianMatrices",
    "ContinuousOutputModel",
]
