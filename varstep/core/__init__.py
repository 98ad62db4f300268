"""Core abstractions: equations, composite state, configuration."""

from varstep.core.config import ControllerSettings, ParameterConfiguration, StepSizeControl
from varstep.core.exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    DirectionMismatchError,
    EvaluationBudgetExceeded,
    MinimalStepReached,
    MismatchedEquationsError,
    NumericalFailure,
    TooFewPointsError,
    TooSmallIntervalError,
    TrajectoryGapError,
    UnknownParameterError,
    VarstepError,
)
from varstep.core.expandable import ExpandableODE
from varstep.core.mapper import EquationsMapper
from varstep.core.problem import (
    FunctionODE,
    MainStateJacobianProvider,
    OrdinaryDifferentialEquation,
    ParameterizedODE,
    ParameterJacobianProvider,
    SecondaryEquations,
    has_analytic_jacobian,
    has_parameter_support,
)
from varstep.core.tableau import ButcherTableau

__all__ = [
    "ControllerSettings",
    "ParameterConfiguration",
    "StepSizeControl",
    "ConfigurationError",
    "DimensionMismatchError",
    "DirectionMismatchError",
    "EvaluationBudgetExceeded",
    "MinimalStepReached",
    "MismatchedEquationsError",
    "NumericalFailure",
    "TooFewPointsError",
    "TooSmallIntervalError",
    "TrajectoryGapError",
    "UnknownParameterError",
    "VarstepError",
    "ExpandableODE",
    "EquationsMapper",
    "FunctionODE",
    "MainStateJacobianProvider",
    "OrdinaryDifferentialEquation",
    "ParameterizedODE",
    "ParameterJacobianProvider",
    "SecondaryEquations",
    "has_analytic_jacobian",
    "has_parameter_support",
    "ButcherTableau",
]
