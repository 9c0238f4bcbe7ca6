#!/usr/bin/env python3
"""Systematic tests: analytic derivatives vs numerical central differences.

Two levels:
1. Parameter Jacobian (grad / jacobian) of the Shockley model
2. Voltage derivative (deriv)
"""

import numpy as np
import pytest

from curve_tracer.model import ShockleyDiodeModel


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------

def numerical_jacobian(model, v, eps=1e-7):
    """Central-difference numerical Jacobian with respect to the parameters.

    Uses relative step sizing: h = eps * |param| (or eps if param is 0).
    The offset enters additively, so its step is sized to the largest
    modelled current instead; a step far below that is lost to rounding.

    Returns
    -------
    dI_num : ndarray of float, shape (n_v, n_params)
    """
    params = model.params
    dI = np.zeros((len(v), model.n_params))
    current_scale = np.max(np.abs(model.values(v))) if len(v) else 0.0

    for j in range(model.n_params):
        p_fwd = params.copy()
        p_bwd = params.copy()
        h = eps * abs(params[j]) if params[j] != 0 else eps
        if j == 0:
            h = max(h, eps * current_scale)
        p_fwd[j] += h
        p_bwd[j] -= h
        fwd = ShockleyDiodeModel(*p_fwd).values(v)
        bwd = ShockleyDiodeModel(*p_bwd).values(v)
        dI[:, j] = (fwd - bwd) / (2 * h)

    return dI


def assert_jacobian_close(model, v, tol=1e-5):
    """Assert analytic Jacobian matches numerical for every column."""
    dI_anal = model.jacobian(v)
    dI_num = numerical_jacobian(model, v)

    for j in range(dI_anal.shape[1]):
        col_anal = dI_anal[:, j]
        col_num = dI_num[:, j]
        scale = np.max(np.abs(col_num))
        if scale < 1e-30:
            assert np.max(np.abs(col_anal)) < 1e-20, (
                f"Column {j}: numerical ~0 but analytic is not"
            )
            continue
        rel_err = np.max(np.abs(col_anal - col_num)) / scale
        assert rel_err < tol, (
            f"Column {j}: relative error {rel_err:.2e} exceeds tolerance {tol}"
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def voltages():
    """40 points from 0 to 1 V."""
    return np.linspace(0.0, 1.0, 40)


# ---------------------------------------------------------------------------
# Level 1: Parameter Jacobian
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("params", [
    (0.0, 1e-12, 0.026),
    (2e-4, 1e-4, 0.25),
    (-5e-6, 3e-9, 0.05),
    (1e-3, 1e-6, 1.0),
    # Tiny offset under ampere-level currents
    (1e-9, 1e-6, 0.05),
])
def test_parameter_jacobian(voltages, params):
    model = ShockleyDiodeModel(*params)
    # Stay where the model is representable
    v = voltages[voltages < 0.9 * model.max_v]
    assert_jacobian_close(model, v)


def test_grad_matches_jacobian_rows(voltages):
    model = ShockleyDiodeModel(2e-4, 1e-4, 0.25)
    J = model.jacobian(voltages)
    for k, v in enumerate(voltages):
        np.testing.assert_allclose(model.grad(v), J[k], rtol=1e-14)


def test_offset_column_is_constant(voltages):
    J = ShockleyDiodeModel(2e-4, 1e-4, 0.25).jacobian(voltages)
    np.testing.assert_array_equal(J[:, 0], 1.0)
    assert J[0, 1] == 0.0
    assert J[0, 2] == 0.0


# ---------------------------------------------------------------------------
# Level 2: Voltage derivative
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("v", [0.0, 0.1, 0.5, 0.9])
def test_voltage_derivative(v):
    model = ShockleyDiodeModel(2e-4, 1e-4, 0.25)
    h = 1e-6
    numeric = (model.value(v + h) - model.value(v - h)) / (2 * h)
    assert model.deriv(v) == pytest.approx(numeric, rel=1e-6)
