#!/usr/bin/env python3
"""Tests for the damped Gauss-Newton refiner.

The refiner knows nothing about diodes; two small model families are
defined here to exercise it independently of the Shockley model.
"""

import numpy as np
import pytest

from curve_tracer.model.gauss_newton import (
    STOP_SHIFT_CUT,
    STOP_TOTAL_ERROR,
    DifferentiableModel,
    GaussNewtonParams,
    gauss_newton,
)


class LineModel(DifferentiableModel):
    """y = a + b*x; uses the per-point fallbacks for values/jacobian."""
    n_params = 2
    param_names = ('a', 'b')

    def value(self, x):
        a, b = self._params
        return a + b * x

    def grad(self, x):
        return np.array([1.0, x])

    def deriv(self, x):
        return self._params[1]


class WrongSignLineModel(LineModel):
    """Line whose gradient points the wrong way: every step is uphill."""

    def grad(self, x):
        return -super().grad(x)


class DecayModel(DifferentiableModel):
    """y = a * exp(-k*x)"""
    n_params = 2
    param_names = ('a', 'k')

    def value(self, x):
        a, k = self._params
        return a * np.exp(-k * x)

    def values(self, xs):
        a, k = self._params
        return a * np.exp(-k * np.asarray(xs))

    def grad(self, x):
        a, k = self._params
        e = np.exp(-k * x)
        return np.array([e, -a * x * e])

    def deriv(self, x):
        a, k = self._params
        return -a * k * np.exp(-k * x)


@pytest.fixture
def line_data():
    xs = np.linspace(-1.0, 2.0, 20)
    return xs, 0.5 + 3.0 * xs


# ---------------------------------------------------------------------------
# Model interface
# ---------------------------------------------------------------------------

def test_parameter_count_is_checked():
    with pytest.raises(ValueError):
        LineModel([1.0, 2.0, 3.0])
    model = LineModel([1.0, 2.0])
    with pytest.raises(ValueError):
        model.set_params([1.0])


def test_params_property_returns_copy():
    model = LineModel([1.0, 2.0])
    p = model.params
    p[0] = 99.0
    assert model.params[0] == 1.0


def test_fallback_values_and_jacobian():
    model = LineModel([1.0, 2.0])
    xs = np.array([0.0, 1.0, 2.0])
    np.testing.assert_allclose(model.values(xs), [1.0, 3.0, 5.0])
    np.testing.assert_allclose(model.jacobian(xs), [[1, 0], [1, 1], [1, 2]])
    assert model.jacobian(np.empty(0)).shape == (0, 2)


def test_repr_names_parameters():
    assert repr(LineModel([1.0, 2.0])) == "LineModel(a=1, b=2)"


# ---------------------------------------------------------------------------
# Refinement
# ---------------------------------------------------------------------------

def test_linear_model_converges_exactly(line_data):
    xs, ys = line_data
    model = LineModel([0.0, 0.0])
    result = gauss_newton(xs, ys, model)

    np.testing.assert_allclose(model.params, [0.5, 3.0], rtol=1e-12)
    assert result.model is model
    assert result.converged
    assert result.stop_reason == STOP_TOTAL_ERROR
    assert result.iterations > GaussNewtonParams().min_iterations
    assert result.total_error < 1e-13


def test_nonlinear_family_converges():
    xs = np.linspace(0.0, 3.0, 40)
    ys = 2.0 * np.exp(-1.5 * xs)
    model = DecayModel([1.5, 1.2])
    result = gauss_newton(xs, ys, model)

    assert result.converged
    np.testing.assert_allclose(model.params, [2.0, 1.5], rtol=1e-8)


def test_error_history_is_non_increasing():
    xs = np.linspace(0.0, 3.0, 40)
    ys = 2.0 * np.exp(-1.5 * xs) + 0.01 * np.sin(7 * xs)
    result = gauss_newton(xs, ys, DecayModel([0.5, 3.0]))

    history = np.array(result.error_history)
    assert len(history) > 0
    assert np.all(np.diff(history) <= 0)
    assert result.total_error <= history[0]


def test_uphill_steps_are_rolled_back(line_data):
    xs, ys = line_data
    start = [0.0, 0.0]
    model = WrongSignLineModel(start)
    initial_error = np.linalg.norm(ys - model.values(xs))

    result = gauss_newton(xs, ys, model)

    assert result.n_rollbacks > 0
    assert result.stop_reason == STOP_SHIFT_CUT
    assert not result.converged
    assert result.shift_cut < GaussNewtonParams().min_shift_cut
    np.testing.assert_allclose(model.params, start)
    assert result.total_error == pytest.approx(initial_error)


def test_max_iterations_is_respected(line_data):
    xs, ys = line_data
    params = GaussNewtonParams(min_iterations=0, max_iterations=3)
    result = gauss_newton(xs, ys, WrongSignLineModel([0.0, 0.0]), params)
    assert result.iterations <= 3


def test_weights_do_not_change_exact_solution(line_data):
    xs, ys = line_data
    model = LineModel([0.0, 0.0])
    weights = np.linspace(0.5, 2.0, len(xs))
    gauss_newton(xs, ys, model, weights=weights)
    np.testing.assert_allclose(model.params, [0.5, 3.0], rtol=1e-10)


def test_scaled_thresholds(line_data):
    xs, ys = line_data
    params = GaussNewtonParams(scale_thresholds_by_shift_cut=True)
    model = LineModel([0.0, 0.0])
    result = gauss_newton(xs, ys, model, params)
    assert result.converged
    np.testing.assert_allclose(model.params, [0.5, 3.0], rtol=1e-12)


def test_result_carries_residuals_and_jacobian(line_data):
    xs, ys = line_data
    result = gauss_newton(xs, ys, LineModel([0.0, 0.0]))
    assert result.residuals.shape == xs.shape
    assert result.jacobian.shape == (len(xs), 2)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("kwargs", [
    dict(min_iterations=-1),
    dict(min_iterations=10, max_iterations=5),
    dict(shift_cut_refining_step=1.0),
    dict(shift_cut_refining_step=0.0),
    dict(shift_cut_speed_up=0.5),
    dict(min_shift_cut=-1.0),
])
def test_invalid_settings_raise(kwargs):
    with pytest.raises(ValueError):
        GaussNewtonParams(**kwargs).validate()


def test_mismatched_inputs_raise():
    with pytest.raises(ValueError):
        gauss_newton(np.zeros(3), np.zeros(4), LineModel([0.0, 0.0]))
    with pytest.raises(ValueError):
        gauss_newton(np.zeros(3), np.zeros(3), LineModel([0.0, 0.0]), weights=np.ones(2))
