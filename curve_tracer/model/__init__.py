"""
Trace-to-model fitting.

Architecture:
- resampling.py: Bucketed resampling of raw samples
- linear.py: Current offset and log-linear seed (SVD least squares)
- gauss_newton.py: Generic damped Gauss-Newton refiner and model interface
- covariance.py: Parameter uncertainty at the refined parameters
- diode.py: Shockley diode model and fit_diode() entry point
- biased.py: Per-bias fitting of three-terminal sweeps
- base.py: IVModel interface used by reporting/plotting
- config.py: Constants with documentation

Usage Example
-------------
```python
from curve_tracer.model import fit_diode

result = fit_diode(samples)          # samples: iterable of (v, i)
if result is None:
    print("No model")
else:
    print(result.model)              # I_OS / I_S / n·V_T report
    print(result.converged, result.total_error)
```
"""

from .base import IVModel, model_curve
from .resampling import BucketedFunction, as_xy_arrays
from .linear import (
    ShockleySeed,
    linear_regression,
    estimate_current_offset,
    log_linear_seed,
)
from .gauss_newton import (
    DifferentiableModel,
    GaussNewtonParams,
    GaussNewtonResult,
    gauss_newton,
)
from .covariance import CovarianceResult, compute_covariance_matrix
from .diode import ShockleyDiodeModel, DiodeFitResult, fit_diode, diode_model
from .biased import fit_biased_traces

__all__ = [
    # Interfaces
    'IVModel',
    'DifferentiableModel',
    'model_curve',

    # Resampling
    'BucketedFunction',
    'as_xy_arrays',

    # Linear seed
    'ShockleySeed',
    'linear_regression',
    'estimate_current_offset',
    'log_linear_seed',

    # Refinement
    'GaussNewtonParams',
    'GaussNewtonResult',
    'gauss_newton',
    'CovarianceResult',
    'compute_covariance_matrix',

    # Diode
    'ShockleyDiodeModel',
    'DiodeFitResult',
    'fit_diode',
    'diode_model',
    'fit_biased_traces',
]
