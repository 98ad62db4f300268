"""Tests for the composite state of primary and secondary equations."""

import numpy as np
import pytest

from varstep.core.expandable import ExpandableODE
from varstep.core.exceptions import DimensionMismatchError
from varstep.core.mapper import EquationsMapper
from varstep.core.problem import (
    FunctionODE,
    has_analytic_jacobian,
    has_parameter_support,
)


class ConstantODE:
    """dy/dt = rate, any dimension."""

    def __init__(self, dimension, rate=1.0):
        self.dimension = dimension
        self.rate = rate

    def compute_derivatives(self, t, y):
        return np.full(self.dimension, self.rate)


class RecordingSecondary:
    """dz/dt = sum of primary derivative, records its inputs."""

    def __init__(self, dimension):
        self.dimension = dimension
        self.calls = []

    def compute_derivatives(self, t, y, ydot, z):
        self.calls.append((t, y.copy(), ydot.copy(), z.copy()))
        return np.full(self.dimension, ydot.sum()) + z


class WrongSizeODE:
    dimension = 2

    def compute_derivatives(self, t, y):
        return np.zeros(3)


def test_composite_dimensions_and_placements():
    """Sets of dimensions 3 and 5 on a primary of 4 occupy [4,7) and [7,12)."""
    expandable = ExpandableODE(ConstantODE(4))

    first = expandable.register_secondary(RecordingSecondary(3))
    second = expandable.add_secondary_equations(RecordingSecondary(5))

    assert (first, second) == (0, 1)
    assert expandable.total_dimension == 12
    assert expandable.primary_mapper == EquationsMapper(0, 4)
    assert expandable.secondary_mappers == (EquationsMapper(4, 3), EquationsMapper(7, 5))
    assert expandable.secondary_mappers[0].slice == slice(4, 7)
    assert expandable.secondary_mappers[1].slice == slice(7, 12)


def test_compute_derivatives_passes_primary_to_secondary():
    """Test secondary equations see the primary state and derivative."""
    primary = ConstantODE(2, rate=3.0)
    secondary = RecordingSecondary(2)
    expandable = ExpandableODE(primary)
    expandable.register_secondary(secondary)

    y = np.array([1.0, 2.0, 10.0, 20.0])
    ydot = expandable.compute_derivatives(0.5, y)

    np.testing.assert_allclose(ydot, [3.0, 3.0, 16.0, 26.0])
    t, y_seen, ydot_seen, z_seen = secondary.calls[0]
    assert t == 0.5
    np.testing.assert_array_equal(y_seen, [1.0, 2.0])
    np.testing.assert_array_equal(ydot_seen, [3.0, 3.0])
    np.testing.assert_array_equal(z_seen, [10.0, 20.0])
    np.testing.assert_array_equal(expandable.primary_state_dot, [3.0, 3.0])
    np.testing.assert_array_equal(expandable.get_secondary_state_dot(0), [16.0, 26.0])


def test_complete_state_round_trip():
    """Test the complete state splits back into its components."""
    expandable = ExpandableODE(ConstantODE(2))
    expandable.register_secondary(RecordingSecondary(3))

    complete = np.arange(5.0)
    expandable.complete_state = complete

    np.testing.assert_array_equal(expandable.complete_state, complete)
    np.testing.assert_array_equal(expandable.primary_state, [0.0, 1.0])
    np.testing.assert_array_equal(expandable.get_secondary_state(0), [2.0, 3.0, 4.0])

    expandable.set_secondary_state(0, [7.0, 8.0, 9.0])
    np.testing.assert_array_equal(expandable.complete_state, [0.0, 1.0, 7.0, 8.0, 9.0])


def test_dimension_mismatches_are_rejected():
    """Test states of the wrong size are rejected."""
    expandable = ExpandableODE(ConstantODE(2))
    expandable.register_secondary(RecordingSecondary(3))

    with pytest.raises(DimensionMismatchError) as excinfo:
        expandable.complete_state = np.zeros(4)
    assert excinfo.value.actual == 4
    assert excinfo.value.expected == 5

    with pytest.raises(DimensionMismatchError):
        expandable.set_secondary_state(0, np.zeros(2))

    with pytest.raises(DimensionMismatchError):
        expandable.primary_state = np.zeros(3)

    with pytest.raises(DimensionMismatchError):
        expandable.compute_derivatives(0.0, np.zeros(3))


def test_wrong_derivative_size_is_rejected():
    """Test derivatives of the wrong size are rejected."""
    expandable = ExpandableODE(WrongSizeODE())

    with pytest.raises(DimensionMismatchError):
        expandable.compute_derivatives(0.0, np.zeros(2))


def test_mapper_extract_copies():
    """Test extracted slices do not alias the complete state."""
    mapper = EquationsMapper(1, 2)
    complete = np.array([0.0, 1.0, 2.0, 3.0])

    part = mapper.extract(complete)
    part[0] = 99.0

    assert complete[1] == 1.0
    mapper.insert([5.0, 6.0], complete)
    np.testing.assert_array_equal(complete, [0.0, 5.0, 6.0, 3.0])


def test_capability_queries():
    """Test detection of optional ODE capabilities."""
    class WithJacobian(ConstantODE):
        def compute_main_state_jacobian(self, t, y, ydot):
            return np.zeros((self.dimension, self.dimension))

    class WithParameters(ConstantODE):
        def parameter_names(self):
            return ["rate"]

        def is_supported(self, name):
            return name == "rate"

        def get_parameter(self, name):
            return self.rate

        def set_parameter(self, name, value):
            self.rate = value

    assert has_analytic_jacobian(WithJacobian(1))
    assert not has_analytic_jacobian(ConstantODE(1))
    assert has_parameter_support(WithParameters(1))
    assert not has_parameter_support(ConstantODE(1))


def test_function_ode_wraps_callable():
    """Test a plain callable can be used as an ODE."""
    ode = FunctionODE(lambda t, y: [y[1], -y[0]], 2)

    assert ode.dimension == 2
    np.testing.assert_array_equal(ode.compute_derivatives(0.0, np.array([1.0, 2.0])), [2.0, -1.0])
