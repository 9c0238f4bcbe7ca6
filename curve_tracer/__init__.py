"""
Curve Tracer Toolkit
====================

Model extraction from curve tracer sweeps: noisy (voltage, current)
samples are resampled into voltage buckets, seeded with a linear
least-squares fit and refined by damped Gauss-Newton.

Modules:
- io: Sweep loading/saving and synthetic data generation
- model: Resampling, linear seed, Gauss-Newton refiner, diode model
- utils: Engineering notation formatting
- cli: Command-line interface (entry point in tracer.py)

Version is imported from curve_tracer.version (single source of truth).
"""

from .version import __version__, __version_info__, get_version_string

# I/O
from .io import (
    RawTrace,
    load_trace_csv,
    load_biased_traces_csv,
    save_trace_csv,
    save_biased_traces_csv,
    generate_synthetic_trace,
    generate_synthetic_biased_traces,
)

# Model fitting
from .model import (
    BucketedFunction,
    IVModel,
    DifferentiableModel,
    GaussNewtonParams,
    GaussNewtonResult,
    gauss_newton,
    linear_regression,
    log_linear_seed,
    ShockleyDiodeModel,
    DiodeFitResult,
    fit_diode,
    diode_model,
    fit_biased_traces,
    model_curve,
)

# Utilities
from .utils import format_engineering, format_quantity

__all__ = [
    # Version
    '__version__',
    '__version_info__',
    'get_version_string',
    # I/O
    'RawTrace',
    'load_trace_csv',
    'load_biased_traces_csv',
    'save_trace_csv',
    'save_biased_traces_csv',
    'generate_synthetic_trace',
    'generate_synthetic_biased_traces',
    # Model fitting
    'BucketedFunction',
    'IVModel',
    'DifferentiableModel',
    'GaussNewtonParams',
    'GaussNewtonResult',
    'gauss_newton',
    'linear_regression',
    'log_linear_seed',
    'ShockleyDiodeModel',
    'DiodeFitResult',
    'fit_diode',
    'diode_model',
    'fit_biased_traces',
    'model_curve',
    # Utilities
    'format_engineering',
    'format_quantity',
]
