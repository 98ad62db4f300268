"""Exception hierarchy for integration errors."""


class VarstepError(Exception):
    """Base class for all errors raised by varstep."""

    def __init__(self, message: str):
        super().__init__(message)


class ConfigurationError(VarstepError, ValueError):
    """Problem or integrator set up inconsistently."""


class DimensionMismatchError(ConfigurationError):
    """A vector or matrix does not have the expected dimension."""

    def __init__(self, actual: int, expected: int):
        super().__init__(f"dimension mismatch: {actual} != {expected}")
        self.actual = actual
        self.expected = expected


class TooFewPointsError(ConfigurationError):
    """A multistep method needs at least two steps."""

    def __init__(self, n_steps: int):
        super().__init__(f"multistep method needs at least 2 steps, got {n_steps}")
        self.n_steps = n_steps


class UnknownParameterError(ConfigurationError):
    """Parameter not declared by the parameterized equations."""

    def __init__(self, name: str):
        super().__init__(f"unknown parameter {name!r}")
        self.name = name


class MismatchedEquationsError(ConfigurationError):
    """Variational equations registered against a foreign primary ODE."""

    def __init__(self):
        super().__init__(
            "variational equations do not belong to the primary equations "
            "of this composite state"
        )


class TooSmallIntervalError(ConfigurationError):
    """Integration interval too small to be resolved in floating point."""

    def __init__(self, interval: float, threshold: float):
        super().__init__(
            f"integration interval {interval:g} is below the resolvable "
            f"threshold {threshold:g}"
        )
        self.interval = interval
        self.threshold = threshold


class DirectionMismatchError(ConfigurationError):
    """Appended trajectory runs in the opposite time direction."""

    def __init__(self):
        super().__init__("cannot append a trajectory running in the opposite direction")


class TrajectoryGapError(ConfigurationError):
    """Appended trajectory does not start where the model ends."""

    def __init__(self, gap: float):
        super().__init__(f"gap of {gap:g} between the two trajectories")
        self.gap = gap


class EvaluationBudgetExceeded(VarstepError):
    """Too many derivative evaluations."""

    def __init__(self, max_count: int):
        super().__init__(f"maximal count ({max_count}) of evaluations exceeded")
        self.max_count = max_count


class NumericalFailure(VarstepError):
    """The integration cannot proceed with the requested accuracy."""


class MinimalStepReached(NumericalFailure):
    """Step size control asks for a step smaller than allowed."""

    def __init__(self, step: float, min_step: float):
        super().__init__(
            f"minimal step size ({min_step:g}) reached, integration needs {step:g}"
        )
        self.step = step
        self.min_step = min_step
