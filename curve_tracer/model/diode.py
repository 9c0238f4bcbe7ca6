"""
Shockley diode model and the trace-to-model fitting entry point.

Model
-----
    I(v) = I_OS + I_S * (exp(v / nV_T) - 1)

with current offset I_OS [A], saturation current I_S [A] and
thermal-voltage-scaled slope nV_T [V].

Derivatives
-----------
    dI/dI_OS = 1
    dI/dI_S  = exp(v / nV_T) - 1
    dI/dnV_T = -I_S * v * exp(v / nV_T) / nV_T^2
    dI/dv    = I_S * exp(v / nV_T) / nV_T

Pipeline
--------
raw samples -> bucketed resampling -> current offset -> log-linear seed
-> damped Gauss-Newton. Only the seed stage can fail ("no fit", returned
as None); refinement always produces a model.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from .base import IVModel
from .config import (
    DEFAULT_BUCKETS,
    DEFAULT_MAX_V,
    DEFAULT_MIN_BUCKET_POPULATION,
    DEFAULT_MIN_V,
    LOG_CURRENT_FLOOR,
    MAX_CURRENT_RATIO,
    MIN_SATURATION_CURRENT,
    MIN_THERMAL_SCALE,
)
from .covariance import CovarianceResult, compute_confidence_interval, compute_covariance_matrix
from .gauss_newton import DifferentiableModel, GaussNewtonParams, GaussNewtonResult, gauss_newton
from .linear import ShockleySeed, estimate_current_offset, log_linear_seed
from .resampling import BucketedFunction, Points, as_xy_arrays
from ..utils.engineering import format_quantity

logger = logging.getLogger(__name__)

VALID_WEIGHTINGS = ['uniform', 'proportional']


class ShockleyDiodeModel(DifferentiableModel, IVModel):
    """
    Three-parameter Shockley diode: (current_offset, saturation_current,
    thermal_scale).
    """
    n_params = 3
    param_names = ('current_offset', 'saturation_current', 'thermal_scale')
    param_labels = ('I_OS', 'I_S', 'n·V_T')
    param_units = ('A', 'A', 'V')

    def __init__(
        self,
        current_offset: float = 0.0,
        saturation_current: float = 1e-12,
        thermal_scale: float = 0.026
    ):
        super().__init__([current_offset, saturation_current, thermal_scale])

    @property
    def current_offset(self) -> float:
        return float(self._params[0])

    @property
    def saturation_current(self) -> float:
        return float(self._params[1])

    @property
    def thermal_scale(self) -> float:
        return float(self._params[2])

    def sanitize_params(self) -> None:
        """Keep I_S and nV_T strictly positive."""
        self._params[1] = max(self._params[1], MIN_SATURATION_CURRENT)
        self._params[2] = max(self._params[2], MIN_THERMAL_SCALE)

    def value(self, x: float) -> float:
        i_os, i_s, n_vt = self._params
        return float(i_os + i_s * np.expm1(x / n_vt))

    def values(self, xs: NDArray[np.float64]) -> NDArray[np.float64]:
        i_os, i_s, n_vt = self._params
        return i_os + i_s * np.expm1(np.asarray(xs, dtype=float) / n_vt)

    def grad(self, x: float) -> NDArray[np.float64]:
        _, i_s, n_vt = self._params
        e = np.exp(x / n_vt)
        return np.array([1.0, np.expm1(x / n_vt), -i_s * x * e / (n_vt * n_vt)])

    def deriv(self, x: float) -> float:
        _, i_s, n_vt = self._params
        return float(i_s * np.exp(x / n_vt) / n_vt)

    def jacobian(self, xs: NDArray[np.float64]) -> NDArray[np.float64]:
        _, i_s, n_vt = self._params
        xs = np.asarray(xs, dtype=float)
        e = np.exp(xs / n_vt)
        return np.column_stack([
            np.ones_like(xs),
            np.expm1(xs / n_vt),
            -i_s * xs * e / (n_vt * n_vt),
        ])

    # IVModel

    @property
    def min_v(self) -> float:
        return 0.0

    @property
    def max_v(self) -> float:
        """Voltage at which I_S * (exp(v/nV_T) - 1) reaches MAX_CURRENT_RATIO * I_S."""
        return float(self.thermal_scale * np.log1p(MAX_CURRENT_RATIO))

    def evaluate(self, v: float) -> float:
        return self.value(v)

    def report(self) -> str:
        lines = [
            f"{label}\t{format_quantity(value, unit)}"
            for label, value, unit in zip(self.param_labels, self._params, self.param_units)
        ]
        return '\n'.join(lines) + '\n'


@dataclass
class DiodeFitResult:
    """
    Successful diode fit.

    Attributes
    ----------
    model : ShockleyDiodeModel
        Refined model
    refinement : GaussNewtonResult
        Convergence information of the Gauss-Newton stage
    seed : ShockleySeed
        Log-linear initial estimate
    covariance : CovarianceResult
        Parameter covariance at the refined parameters
    n_samples : int
        Raw samples supplied
    n_points : int
        Populated buckets the model was fitted to
    """
    model: ShockleyDiodeModel
    refinement: GaussNewtonResult
    seed: ShockleySeed
    covariance: CovarianceResult
    n_samples: int
    n_points: int

    @property
    def total_error(self) -> float:
        return self.refinement.total_error

    @property
    def converged(self) -> bool:
        return self.refinement.converged

    @property
    def params_stderr(self) -> NDArray[np.float64]:
        return self.covariance.stderr

    @property
    def params_ci_95(self) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """95% confidence intervals for (I_OS, I_S, nV_T)."""
        params = self.model.params
        if not np.all(np.isfinite(self.params_stderr)):
            return np.full_like(params, -np.inf), np.full_like(params, np.inf)
        return compute_confidence_interval(params, self.params_stderr, self.n_points, 0.95)

    def __repr__(self) -> str:
        lines = []
        lines.append("Diode fit:")
        lines.append(f"  Model: {self.model!r}")
        lines.append(f"  Std errors: {self.params_stderr}")
        lines.append(f"  Total error: {self.total_error:.3e} A")
        lines.append(f"  Converged: {self.converged} ({self.refinement.stop_reason}, "
                     f"{self.refinement.iterations} iterations)")
        lines.append(f"  Points: {self.n_points} buckets from {self.n_samples} samples")
        return '\n'.join(lines)


def compute_weights(ys: NDArray[np.float64], weighting: str) -> Optional[NDArray[np.float64]]:
    """
    Residual weights for the refinement stage.

    'uniform' weighs every bucket equally (None). 'proportional' uses
    w = 1/|I| so the low-current region counts as much as the high-current
    one; weights are normalized to mean 1.
    """
    if weighting == 'uniform':
        return None
    if weighting == 'proportional':
        weights = 1.0 / np.maximum(np.abs(ys), LOG_CURRENT_FLOOR)
        return weights / np.mean(weights)
    raise ValueError(f"weighting must be one of {VALID_WEIGHTINGS}, got '{weighting}'")


def fit_diode(
    points: Points,
    min_v: float = DEFAULT_MIN_V,
    max_v: float = DEFAULT_MAX_V,
    buckets: int = DEFAULT_BUCKETS,
    min_bucket_population: int = DEFAULT_MIN_BUCKET_POPULATION,
    gn_params: Optional[GaussNewtonParams] = None,
    weighting: str = 'uniform'
) -> Optional[DiodeFitResult]:
    """
    Fit a Shockley diode model to a raw trace.

    Parameters
    ----------
    points : ndarray, RawTrace or iterable of (v, i)
        Raw samples, any order; must be finite
    min_v, max_v : float
        Fitted voltage domain [min_v, max_v)
    buckets : int
        Number of resampling buckets
    min_bucket_population : int
        Minimum samples per kept bucket
    gn_params : GaussNewtonParams, optional
        Refinement settings (defaults if None)
    weighting : str
        'uniform' (default) or 'proportional'

    Returns
    -------
    DiodeFitResult or None
        None when no model can be seeded: no samples in the domain, a
        singular log-linear regression, or a seed that evaluates to
        non-finite currents.

    Raises
    ------
    ValueError
        For invalid configuration (domain, buckets, weighting, gn_params)
    """
    if weighting not in VALID_WEIGHTINGS:
        raise ValueError(f"weighting must be one of {VALID_WEIGHTINGS}, got '{weighting}'")

    xs_raw, ys_raw = as_xy_arrays(points)
    raw = np.column_stack([xs_raw, ys_raw]) if len(xs_raw) else np.empty((0, 2))

    bucketed = BucketedFunction.from_points(min_v, max_v, buckets, min_bucket_population, raw)
    xs, ys = bucketed.xs(), bucketed.ys()
    if len(xs) == 0:
        logger.debug("No populated buckets, no fit")
        return None

    # Offset window needs the raw sample density, buckets are too coarse
    current_offset = estimate_current_offset(raw)

    seed = log_linear_seed(bucketed, current_offset)
    if seed is None:
        logger.debug("Log-linear seed failed, no fit")
        return None

    model = ShockleyDiodeModel(*seed)
    model.sanitize_params()
    with np.errstate(over='ignore', invalid='ignore'):
        seed_values = model.values(xs)
    if not np.all(np.isfinite(seed_values)):
        logger.debug(f"Seed {model!r} is not finite over the trace, no fit")
        return None

    logger.debug(f"Seed: {model!r}")

    weights = compute_weights(ys, weighting)
    refinement = gauss_newton(xs, ys, model, gn_params, weights)
    covariance = compute_covariance_matrix(refinement.jacobian, refinement.residuals)
    if covariance.warning_message:
        logger.debug(covariance.warning_message)

    return DiodeFitResult(
        model=model,
        refinement=refinement,
        seed=seed,
        covariance=covariance,
        n_samples=len(xs_raw),
        n_points=len(xs),
    )


def diode_model(points: Points, **kwargs) -> Optional[ShockleyDiodeModel]:
    """Fit a diode and return only the model, or None when no fit exists."""
    result = fit_diode(points, **kwargs)
    return None if result is None else result.model


__all__ = [
    'ShockleyDiodeModel',
    'DiodeFitResult',
    'fit_diode',
    'diode_model',
    'compute_weights',
    'VALID_WEIGHTINGS',
]
