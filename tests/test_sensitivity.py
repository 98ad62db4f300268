"""Tests for the variational equations against closed form sensitivities."""

import logging

import numpy as np
import pytest
from scipy.linalg import expm

from varstep.core.config import ParameterConfiguration
from varstep.core.exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    MismatchedEquationsError,
    UnknownParameterError,
)
from varstep.core.expandable import ExpandableODE
from varstep.core.problem import FunctionODE
from varstep.solvers.adams import AdamsMoultonIntegrator
from varstep.solvers.embedded import DormandPrince54Integrator
from varstep.stepping.sensitivity import JacobianMatrices


T_FINAL = 2.0


class Oscillator:
    """x' = v, v' = -omega^2 x with an analytic state Jacobian."""

    dimension = 2

    def __init__(self, omega=1.5):
        self.omega = omega

    def compute_derivatives(self, t, y):
        return np.array([y[1], -self.omega ** 2 * y[0]])

    def compute_main_state_jacobian(self, t, y, ydot):
        return self.state_matrix()

    def state_matrix(self):
        return np.array([[0.0, 1.0], [-self.omega ** 2, 0.0]])

    def parameter_names(self):
        return ["omega"]

    def is_supported(self, name):
        return name == "omega"

    def get_parameter(self, name):
        return self.omega

    def set_parameter(self, name, value):
        self.omega = value


class OmegaJacobian:
    """Analytic dF/domega of the oscillator."""

    def __init__(self, ode):
        self.ode = ode

    def parameter_names(self):
        return ["omega"]

    def is_supported(self, name):
        return name == "omega"

    def compute_parameter_jacobian(self, t, y, ydot, name):
        return np.array([0.0, -2.0 * self.ode.omega * y[0]])


def exact_parameter_jacobian(omega, t):
    """d/domega of (cos(omega t), -omega sin(omega t))."""
    return np.array([
        -t * np.sin(omega * t),
        -np.sin(omega * t) - omega * t * np.cos(omega * t),
    ])


def _integrate(ode, jacobians, t=T_FINAL):
    expandable = ExpandableODE(ode)
    jacobians.register_variational_equations(expandable)
    expandable.time = 0.0
    expandable.primary_state = np.array([1.0, 0.0])
    integrator = DormandPrince54Integrator(1e-8, 0.1, 1e-11, 1e-11)
    integrator.integrate(expandable, t)
    return expandable, integrator


def test_analytic_jacobians_match_closed_form():
    """Test analytic Jacobians against the closed form sensitivities."""
    ode = Oscillator()
    jacobians = JacobianMatrices(ode, ["omega"])
    jacobians.add_parameter_jacobian_provider(OmegaJacobian(ode))

    expandable, _ = _integrate(ode, jacobians)

    np.testing.assert_allclose(
        jacobians.get_current_main_set_jacobian(),
        expm(ode.state_matrix() * T_FINAL),
        atol=1e-7,
    )
    np.testing.assert_allclose(
        jacobians.get_current_parameter_jacobian("omega"),
        exact_parameter_jacobian(ode.omega, T_FINAL),
        atol=1e-6,
    )
    np.testing.assert_allclose(
        expandable.primary_state,
        [np.cos(ode.omega * T_FINAL), -ode.omega * np.sin(ode.omega * T_FINAL)],
        atol=1e-8,
    )


@pytest.mark.parametrize("scheme", ["forward", "central"])
def test_finite_differences_agree_with_analytic(scheme):
    """Test finite difference Jacobians against the closed form sensitivities."""
    ode = Oscillator()
    jacobians = JacobianMatrices(
        ode, [ParameterConfiguration("omega", 1e-6)],
        state_steps=[1e-6, 1e-6], scheme=scheme,
    )

    _integrate(ode, jacobians)

    np.testing.assert_allclose(
        jacobians.get_current_main_set_jacobian(),
        expm(ode.state_matrix() * T_FINAL),
        atol=1e-4,
    )
    np.testing.assert_allclose(
        jacobians.get_current_parameter_jacobian("omega"),
        exact_parameter_jacobian(ode.omega, T_FINAL),
        atol=1e-4,
    )
    # perturbed parameter restored
    assert ode.omega == 1.5


def test_parameter_step_set_after_construction():
    """Test a parameter step can be set after construction."""
    ode = Oscillator()
    jacobians = JacobianMatrices(ode, ["omega"])
    jacobians.set_parameter_step("omega", 1e-7)

    _integrate(ode, jacobians)

    np.testing.assert_allclose(
        jacobians.get_current_parameter_jacobian("omega"),
        exact_parameter_jacobian(ode.omega, T_FINAL),
        atol=1e-4,
    )


def test_parameter_without_provider_stays_zero():
    """Test dY/dp stays zero when nothing can compute dF/dp."""
    ode = Oscillator()
    jacobians = JacobianMatrices(ode, ["omega"])

    _integrate(ode, jacobians)

    np.testing.assert_array_equal(jacobians.get_current_parameter_jacobian("omega"), [0.0, 0.0])


def test_changing_parameterized_ode_replaces_provider():
    """Test a new parameterized ODE replaces the finite difference provider."""
    ode = Oscillator()
    jacobians = JacobianMatrices(ode, [ParameterConfiguration("omega", 1e-6)])
    expandable, integrator = _integrate(ode, jacobians)
    assert np.linalg.norm(jacobians.get_current_parameter_jacobian("omega")) > 0.1

    # perturbing an unrelated instance leaves the derivatives unchanged
    jacobians.set_parameterized_ode(Oscillator())
    jacobians.set_initial_main_state_jacobian(np.eye(2))
    jacobians.set_initial_parameter_jacobian("omega", np.zeros(2))
    expandable.time = 0.0
    expandable.primary_state = np.array([1.0, 0.0])
    integrator.integrate(expandable, T_FINAL)

    np.testing.assert_allclose(
        jacobians.get_current_parameter_jacobian("omega"), [0.0, 0.0], atol=1e-12
    )


def test_initial_jacobians_are_propagated():
    """Test non-default initial Jacobians are propagated."""
    ode = Oscillator()
    jacobians = JacobianMatrices(ode, ["omega"])
    jacobians.add_parameter_jacobian_provider(OmegaJacobian(ode))
    jacobians.set_initial_main_state_jacobian(2.0 * np.eye(2))
    jacobians.set_initial_parameter_jacobian("omega", [0.0, 0.0])

    _integrate(ode, jacobians)

    np.testing.assert_allclose(
        jacobians.get_current_main_set_jacobian(),
        2.0 * expm(ode.state_matrix() * T_FINAL),
        atol=2e-7,
    )


def test_secondary_block_layout():
    """Test the size and initial content of the variational block."""
    ode = Oscillator()
    jacobians = JacobianMatrices(ode, ["omega"])
    expandable = ExpandableODE(ode)

    index = jacobians.register_variational_equations(expandable)

    assert jacobians.parameter_dimension == 1
    assert expandable.secondary_mappers[index].dimension == 2 * (2 + 1)
    np.testing.assert_array_equal(
        expandable.get_secondary_state(index), [1.0, 0.0, 0.0, 1.0, 0.0, 0.0]
    )


def test_works_with_multistep_integrator():
    """Test sensitivities through an Adams integrator."""
    ode = Oscillator()
    jacobians = JacobianMatrices(ode, ["omega"])
    jacobians.add_parameter_jacobian_provider(OmegaJacobian(ode))
    expandable = ExpandableODE(ode)
    jacobians.register_variational_equations(expandable)
    expandable.time = 0.0
    expandable.primary_state = np.array([1.0, 0.0])

    AdamsMoultonIntegrator(4, 1e-8, 0.1, 1e-10, 1e-10).integrate(expandable, T_FINAL)

    np.testing.assert_allclose(
        jacobians.get_current_parameter_jacobian("omega"),
        exact_parameter_jacobian(ode.omega, T_FINAL),
        atol=1e-5,
    )


def test_unknown_parameter():
    """Test unknown parameter names are rejected."""
    with pytest.raises(UnknownParameterError) as excinfo:
        JacobianMatrices(Oscillator(), ["beta"])
    assert excinfo.value.name == "beta"

    jacobians = JacobianMatrices(Oscillator(), ["omega"])
    with pytest.raises(UnknownParameterError):
        jacobians.set_initial_parameter_jacobian("beta", np.zeros(2))


class Decay:
    """y' = -k y without any parameter declarations."""

    dimension = 1
    k = 0.5

    def compute_derivatives(self, t, y):
        return -self.k * y

    def compute_main_state_jacobian(self, t, y, ydot):
        return np.array([[-self.k]])


class BetaOnly(Oscillator):
    """Oscillator variant that only exposes a parameter named beta."""

    def parameter_names(self):
        return ["beta"]

    def is_supported(self, name):
        return name == "beta"


def test_parameters_of_undeclared_ode_rejected():
    """Test that an ODE declaring no parameters cannot have any selected."""
    with pytest.raises(UnknownParameterError) as excinfo:
        JacobianMatrices(Decay(), ["k"])
    assert excinfo.value.name == "k"

    # no parameters selected is fine
    assert JacobianMatrices(Decay()).parameter_dimension == 0


def test_parameterized_ode_must_support_selection():
    """Test that a replacement parameterized ODE must know every selected parameter."""
    ode = Oscillator()
    jacobians = JacobianMatrices(ode, [ParameterConfiguration("omega", 1e-6)])

    with pytest.raises(UnknownParameterError) as excinfo:
        jacobians.set_parameterized_ode(BetaOnly())
    assert excinfo.value.name == "omega"

    # the original ODE is still perturbed
    _integrate(ode, jacobians)
    np.testing.assert_allclose(
        jacobians.get_current_parameter_jacobian("omega"),
        exact_parameter_jacobian(ode.omega, T_FINAL),
        atol=1e-4,
    )


def test_duplicate_parameters_rejected():
    """Test a parameter cannot be selected twice."""
    with pytest.raises(ConfigurationError):
        JacobianMatrices(Oscillator(), ["omega", "omega"])


def test_mismatched_equations():
    """Test registration on a composite ODE of another ODE fails."""
    jacobians = JacobianMatrices(Oscillator())

    with pytest.raises(MismatchedEquationsError):
        jacobians.register_variational_equations(ExpandableODE(Oscillator()))


def test_state_steps_required_without_analytic_jacobian():
    """Test state steps are required and sized without an analytic Jacobian."""
    ode = FunctionODE(lambda t, y: -y, 2)

    with pytest.raises(ConfigurationError):
        JacobianMatrices(ode)
    with pytest.raises(DimensionMismatchError):
        JacobianMatrices(ode, state_steps=[1e-6])

    # plain ODE with finite differences and no parameters
    jacobians = JacobianMatrices(ode, state_steps=[1e-6, 1e-6])
    assert jacobians.parameter_dimension == 0


def test_invalid_scheme():
    """Test unknown finite difference schemes are rejected."""
    with pytest.raises(ConfigurationError):
        JacobianMatrices(Oscillator(), scheme="backward")


def test_invalid_provider_rejected():
    """Test providers without the Jacobian methods are rejected."""
    jacobians = JacobianMatrices(Oscillator(), ["omega"])

    with pytest.raises(ConfigurationError):
        jacobians.add_parameter_jacobian_provider(object())


def test_queries_before_registration():
    """Test queries fail before the equations are registered."""
    jacobians = JacobianMatrices(Oscillator(), ["omega"])

    with pytest.raises(ConfigurationError):
        jacobians.get_current_main_set_jacobian()


def test_initial_main_jacobian_shape_checked():
    """Test the initial state Jacobian must be square of the state size."""
    jacobians = JacobianMatrices(Oscillator())

    with pytest.raises(DimensionMismatchError):
        jacobians.set_initial_main_state_jacobian(np.eye(3))
    with pytest.raises(DimensionMismatchError):
        jacobians.set_initial_main_state_jacobian(np.zeros((2, 3)))


def test_provider_creation_is_logged(caplog):
    """Test creation of the finite difference provider is logged."""
    ode = Oscillator()
    jacobians = JacobianMatrices(ode, [ParameterConfiguration("omega", 1e-6)])

    with caplog.at_level(logging.DEBUG, logger="varstep.stepping.sensitivity"):
        _integrate(ode, jacobians, t=0.1)

    messages = [r.getMessage() for r in caplog.records if r.name == "varstep.stepping.sensitivity"]
    assert messages == ["finite difference dF/dp provider for ['omega']"]
