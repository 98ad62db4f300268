"""Fixed step explicit Runge-Kutta integrator."""

from typing import Callable
import numpy as np
from numpy.typing import NDArray

from varstep.core.expandable import ExpandableODE
from varstep.core.problem import OrdinaryDifferentialEquation
from varstep.core.tableau import ButcherTableau
from varstep.solvers.base import AbstractIntegrator
from varstep.stepping.interpolator import RungeKuttaStepInterpolator


def runge_kutta_stages(
    f: Callable[[float, NDArray], NDArray],
    tableau: ButcherTableau,
    t_n: float,
    y: NDArray,
    h: float,
    ydot_k: NDArray,
) -> NDArray:
    """
    Forward substitution through the stages of an explicit tableau.

    Args:
        f: Derivative function f(t, y)
        tableau: Explicit Butcher tableau
        t_n: Time at start of step
        y: State at start of step
        h: Signed step size
        ydot_k: (s, n) stage derivatives; row 0 must hold f(t_n, y) and
            the other rows are overwritten

    Returns:
        State at the end of the step
    """
    a, c = tableau.a, tableau.c
    for k in range(1, tableau.stages):
        # Y_k = y + h Σ_{l<k} a[k,l] f_l
        y_stage = y + h * (a[k, :k] @ ydot_k[:k])
        ydot_k[k] = f(t_n + c[k] * h, y_stage)
    return y + h * (tableau.b @ ydot_k)



def dense_output_stages(
    f: Callable[[float, NDArray], NDArray],
    tableau: ButcherTableau,
    t_n: float,
    y: NDArray,
    h: float,
    ydot_k: NDArray,
) -> NDArray:
    """
    Stage derivatives of an accepted step extended with the dense output stages.

    Returns ydot_k itself when the tableau has no such stages, otherwise a new
    (s + m, n) array. Each extra stage is evaluated from the step start state y.
    """
    if tableau.dense_stages == 0:
        return ydot_k
    s = tableau.stages
    extended = np.zeros((tableau.total_stages, ydot_k.shape[1]))
    extended[:s] = ydot_k
    for k in range(tableau.dense_stages):
        y_stage = y + h * (tableau.dense_a[k, :s + k] @ extended[:s + k])
        extended[s + k] = f(t_n + tableau.dense_c[k] * h, y_stage)
    return extended


class RungeKuttaIntegrator(AbstractIntegrator):
    """Explicit Runge-Kutta integrator with a constant step size."""

    def __init__(self, name: str, tableau: ButcherTableau, step: float):
        super().__init__(name)
        self.tableau = tableau
        self.step = abs(step)

    def integrate(self, expandable: ExpandableODE, t: float) -> None:
        self.sanity_checks(expandable, t)
        self._expandable = expandable
        forward = t > expandable.time

        y0 = expandable.complete_state
        y = y0.copy()
        ydot_k = np.zeros((self.tableau.stages, y0.shape[0]))  # (s, n) stage derivatives
        primary_mapper = expandable.primary_mapper
        secondary_mappers = expandable.secondary_mappers

        self.init_integration(expandable.time, y0, t)
        self.step_start = expandable.time
        self.step_size = self.step if forward else -self.step
        if _overshoots(self.step_start + self.step_size, t, forward):
            self.step_size = t - self.step_start

        while True:
            ydot_k[0] = self.compute_derivatives(self.step_start, y)
            y_tmp = runge_kutta_stages(
                self.compute_derivatives, self.tableau,
                self.step_start, y, self.step_size, ydot_k,
            )

            stage_derivatives = ydot_k
            if self._step_handlers:
                stage_derivatives = dense_output_stages(
                    self.compute_derivatives, self.tableau,
                    self.step_start, y, self.step_size, ydot_k,
                )
            interpolator = RungeKuttaStepInterpolator(
                self.tableau, stage_derivatives,
                self.step_start, self.step_start + self.step_size,
                y, y_tmp, forward, primary_mapper, secondary_mappers,
            )
            y = y_tmp

            self.step_start = self.accept_step(interpolator, t)
            if self.is_last_step or self._stop_requested:
                break

            # shorten the last step so that it lands on the target
            if _overshoots(self.step_start + self.step_size, t, forward):
                self.step_size = t - self.step_start

        self.finish_integration(expandable, y)
        self.step_start = float("nan")
        self.step_size = float("nan")

    def single_step(
        self, ode: OrdinaryDifferentialEquation, t0: float, y0: NDArray, t: float
    ) -> NDArray:
        """
        One step from t0 to t without touching the integrator state.

        No step handler is called and no evaluation is counted, so this can
        be used concurrently on independent inputs.

        Returns:
            State at time t
        """
        y = np.array(y0, dtype=float)
        h = t - t0
        ydot_k = np.zeros((self.tableau.stages, y.shape[0]))
        ydot_k[0] = ode.compute_derivatives(t0, y)
        return runge_kutta_stages(ode.compute_derivatives, self.tableau, t0, y, h, ydot_k)


def _overshoots(next_t: float, t: float, forward: bool) -> bool:
    return next_t >= t if forward else next_t <= t
