#!/usr/bin/env python3
"""Tests for the Shockley diode model and the fit_diode pipeline."""

import numpy as np
import pytest

from curve_tracer.io import RawTrace, generate_synthetic_trace
from curve_tracer.model import (
    GaussNewtonParams,
    ShockleyDiodeModel,
    diode_model,
    fit_diode,
    model_curve,
)
from curve_tracer.model.config import MIN_SATURATION_CURRENT, MIN_THERMAL_SCALE
from curve_tracer.model.diode import compute_weights
from curve_tracer.model.gauss_newton import STOP_TOTAL_ERROR, gauss_newton


TRUE_PARAMS = (2e-4, 1e-4, 0.25)


def shockley(v, i_os, i_s, n_vt):
    return i_os + i_s * np.expm1(v / n_vt)


@pytest.fixture
def exact_samples():
    """Three identical samples at every bucket midpoint of [0, 1) / 100."""
    v = (np.arange(100) + 0.5) / 100
    v = np.repeat(v, 3)
    return np.column_stack([v, shockley(v, *TRUE_PARAMS)])


def exact_fit(samples, **kwargs):
    return fit_diode(samples, min_v=0.0, max_v=1.0, buckets=100,
                     min_bucket_population=1, **kwargs)


class RecordingDiodeModel(ShockleyDiodeModel):
    """Keeps the parameters left by every sanitize_params() call."""

    def __init__(self, *args):
        self.sanitized = []
        super().__init__(*args)

    def sanitize_params(self):
        super().sanitize_params()
        self.sanitized.append(self.params)


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------

def test_value_at_zero_is_offset():
    model = ShockleyDiodeModel(*TRUE_PARAMS)
    assert model.value(0.0) == TRUE_PARAMS[0]
    assert model.evaluate(0.0) == TRUE_PARAMS[0]


def test_values_match_pointwise():
    model = ShockleyDiodeModel(*TRUE_PARAMS)
    v = np.linspace(0, 1, 7)
    np.testing.assert_allclose(model.values(v), [model.value(x) for x in v], rtol=1e-14)
    np.testing.assert_allclose(model.jacobian(v), [model.grad(x) for x in v], rtol=1e-14)


def test_sanitize_keeps_parameters_positive():
    model = ShockleyDiodeModel(-1e-3, -5.0, 0.0)
    model.sanitize_params()
    assert model.current_offset == -1e-3
    assert model.saturation_current == MIN_SATURATION_CURRENT
    assert model.thermal_scale == MIN_THERMAL_SCALE


def test_valid_domain():
    model = ShockleyDiodeModel(*TRUE_PARAMS)
    assert model.min_v == 0.0
    assert model.max_v == pytest.approx(0.25 * np.log(1 + 1e10))
    assert model.evaluate(model.max_v) == pytest.approx(2e-4 + 1e-4 * 1e10, rel=1e-9)


def test_report():
    model = ShockleyDiodeModel(*TRUE_PARAMS)
    expected = "I_OS\t200.000µA\nI_S\t100.000µA\nn·V_T\t250.000mV\n"
    assert model.report() == expected
    assert str(model) == expected


def test_model_curve_stays_inside_domain():
    model = ShockleyDiodeModel(*TRUE_PARAMS)
    v, i = model_curve(model, n_points=11, v_limit=1.0)
    np.testing.assert_allclose(v, np.linspace(0, 1, 11))
    np.testing.assert_allclose(i, shockley(v, *TRUE_PARAMS), rtol=1e-12)

    steep = ShockleyDiodeModel(0.0, 1e-12, 0.01)
    v, _ = model_curve(steep)
    assert v[-1] == pytest.approx(steep.max_v)


# ---------------------------------------------------------------------------
# Fitting
# ---------------------------------------------------------------------------

def test_exact_data_is_recovered(exact_samples):
    result = exact_fit(exact_samples)

    assert result is not None
    np.testing.assert_allclose(result.model.params, TRUE_PARAMS, rtol=1e-6)
    assert result.converged
    assert result.refinement.stop_reason == STOP_TOTAL_ERROR
    assert result.n_points == 100
    assert result.n_samples == 300
    # Too few samples in the offset window: the seed starts from zero offset
    assert result.seed.current_offset == 0.0


def test_exact_data_with_proportional_weighting(exact_samples):
    result = exact_fit(exact_samples, weighting='proportional')
    np.testing.assert_allclose(result.model.params, TRUE_PARAMS, rtol=1e-6)


def test_fit_accepts_raw_trace_and_pairs(exact_samples):
    from_array = exact_fit(exact_samples)
    from_trace = exact_fit(RawTrace(exact_samples[:, 0], exact_samples[:, 1]))
    from_pairs = exact_fit([tuple(p) for p in exact_samples])
    np.testing.assert_array_equal(from_array.model.params, from_trace.model.params)
    np.testing.assert_array_equal(from_array.model.params, from_pairs.model.params)


def test_fit_is_deterministic():
    trace = generate_synthetic_trace(seed=7)
    a = fit_diode(trace)
    b = fit_diode(trace)
    np.testing.assert_array_equal(a.model.params, b.model.params)
    assert a.refinement.iterations == b.refinement.iterations


def test_noisy_trace():
    trace = generate_synthetic_trace(
        current_offset=2e-6, saturation_current=1e-6, thermal_scale=0.1,
        n_samples=20000, noise=1e-6, current_limit=None, seed=3,
    )
    result = fit_diode(trace, min_v=0.0, max_v=1.0, buckets=100)

    assert result is not None
    assert result.model.thermal_scale == pytest.approx(0.1, rel=0.02)
    assert result.model.saturation_current == pytest.approx(1e-6, rel=0.2)
    assert result.refinement.error_history[-1] <= result.refinement.error_history[0]
    assert np.all(np.isfinite(result.params_stderr))

    lo, hi = result.params_ci_95
    assert np.all(lo <= result.model.params)
    assert np.all(result.model.params <= hi)


def test_refinement_keeps_parameters_positive(exact_samples):
    v, i = exact_samples[::3, 0], exact_samples[::3, 1]
    model = RecordingDiodeModel(-1e-3, 1e-9, 1.0)
    result = gauss_newton(v, i, model, GaussNewtonParams(max_iterations=200))

    # Once up front, then after every applied step
    assert len(model.sanitized) >= len(result.error_history)
    sanitized = np.array(model.sanitized)
    assert np.all(sanitized[:, 1] >= MIN_SATURATION_CURRENT)
    assert np.all(sanitized[:, 2] >= MIN_THERMAL_SCALE)
    assert result.model.saturation_current > 0
    assert result.model.thermal_scale > 0


def test_seed_is_refined(exact_samples):
    result = exact_fit(exact_samples)
    seed_model = ShockleyDiodeModel(*result.seed)
    v = exact_samples[::3, 0]
    seed_error = np.linalg.norm(exact_samples[::3, 1] - seed_model.values(v))
    assert result.total_error < seed_error


def test_custom_refinement_settings(exact_samples):
    params = GaussNewtonParams(min_iterations=0, max_iterations=2)
    result = exact_fit(exact_samples, gn_params=params)
    assert result.refinement.iterations <= 2


def test_diode_model_shortcut(exact_samples):
    model = diode_model(exact_samples, min_v=0.0, max_v=1.0, buckets=100,
                        min_bucket_population=1)
    np.testing.assert_allclose(model.params, TRUE_PARAMS, rtol=1e-6)


# ---------------------------------------------------------------------------
# No fit
# ---------------------------------------------------------------------------

def test_no_samples():
    assert fit_diode(np.empty((0, 2))) is None
    assert diode_model([]) is None


def test_no_samples_in_domain():
    pts = np.array([[-1.0, 1e-3], [6.0, 1e-3], [5.0, 1e-3]])
    assert fit_diode(pts, min_bucket_population=1) is None


def test_single_bucket_is_singular():
    pts = np.array([[0.5, 1e-3], [0.501, 2e-3], [0.502, 3e-3]])
    assert fit_diode(pts, min_v=0.0, max_v=1.0, buckets=10, min_bucket_population=1) is None


def test_underpopulated_trace_gives_no_fit():
    pts = np.array([[0.1, 1e-3], [0.6, 2e-3]])
    assert fit_diode(pts, min_v=0.0, max_v=1.0, buckets=2, min_bucket_population=2) is None


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

def test_invalid_weighting_raises(exact_samples):
    with pytest.raises(ValueError):
        exact_fit(exact_samples, weighting='modulus')
    with pytest.raises(ValueError):
        compute_weights(np.ones(3), 'modulus')


def test_invalid_domain_raises(exact_samples):
    with pytest.raises(ValueError):
        fit_diode(exact_samples, min_v=1.0, max_v=1.0)
    with pytest.raises(ValueError):
        fit_diode(exact_samples, buckets=0)


def test_proportional_weights_have_unit_mean():
    w = compute_weights(np.array([1e-3, 1e-4, -1e-2]), 'proportional')
    assert np.mean(w) == pytest.approx(1.0)
    assert w[1] > w[0] > w[2]
    assert compute_weights(np.ones(3), 'uniform') is None
