"""
Closed-form initial estimate for exponential I-V models.

The Shockley law I = I_OS + I_S * exp(v / nV_T) becomes linear in v after
subtracting the offset and taking the logarithm:

    ln(I - I_OS) = v / nV_T + ln(I_S)

so an ordinary least-squares regression of ln(I - I_OS) against [v, 1]
yields both remaining parameters. The regression is solved through the
SVD of the design matrix rather than the normal equations, which stays
stable when the regressors are nearly collinear (e.g. a narrow voltage
window far from zero).
"""

import logging
from typing import NamedTuple, Optional, Tuple

import numpy as np
from numpy.typing import NDArray
from scipy.linalg import LinAlgError, svd

from .config import (
    LOG_CURRENT_FLOOR,
    OFFSET_MIN_SAMPLES,
    OFFSET_WINDOW_MAX_V,
    OFFSET_WINDOW_MIN_V,
)
from .resampling import Points, as_xy_arrays

logger = logging.getLogger(__name__)


class ShockleySeed(NamedTuple):
    """Initial Shockley parameters from the log-linear regression."""
    current_offset: float
    saturation_current: float
    thermal_scale: float


def linear_regression(
    x: NDArray[np.float64],
    y: NDArray[np.float64]
) -> Optional[NDArray[np.float64]]:
    """
    Solve min ||x @ beta - y|| via the SVD pseudo-inverse.

    Parameters
    ----------
    x : ndarray of float, shape (n_samples, n_regressors)
        Design matrix
    y : ndarray of float, shape (n_samples,)
        Observations

    Returns
    -------
    beta : ndarray of float, shape (n_regressors,) or None
        Regression coefficients, or None if the design matrix is empty,
        rank deficient, or the SVD does not converge

    Notes
    -----
    x = U S V^T  =>  beta = V S^-1 U^T y
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)

    if x.ndim != 2 or x.shape[0] == 0 or x.shape[1] == 0:
        return None
    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
        return None

    try:
        u, s, v_t = svd(x, full_matrices=False)
    except LinAlgError as e:
        logger.debug(f"Linear regression SVD failed: {e}")
        return None

    # More regressors than samples, or numerically collinear columns
    tol = s.max() * max(x.shape) * np.finfo(float).eps if len(s) else 0.0
    if len(s) < x.shape[1] or np.any(s <= tol):
        return None

    alpha = u.T @ y
    beta = v_t.T @ (alpha / s)

    if not np.all(np.isfinite(beta)):
        return None
    return beta


def estimate_current_offset(
    points: Points,
    window: Tuple[float, float] = (OFFSET_WINDOW_MIN_V, OFFSET_WINDOW_MAX_V),
    min_samples: int = OFFSET_MIN_SAMPLES
) -> float:
    """
    Estimate the instrument current offset from the small-voltage region.

    Parameters
    ----------
    points : ndarray, trace-like or iterable of (v, i)
        Samples
    window : (float, float)
        Voltage window [lo, hi) in which the device does not conduct
    min_samples : int
        Minimum number of samples inside the window

    Returns
    -------
    offset : float
        Mean current in the window, or 0.0 with fewer than ``min_samples``
        samples there
    """
    xs, ys = as_xy_arrays(points)
    lo, hi = window
    mask = (xs >= lo) & (xs < hi)
    n = int(np.count_nonzero(mask))
    if n < min_samples:
        logger.debug(f"Current offset: {n} samples in window, assuming 0")
        return 0.0
    offset = float(np.mean(ys[mask]))
    logger.debug(f"Current offset: {offset:.3e} A from {n} samples")
    return offset


def log_linear_seed(
    points: Points,
    current_offset: float = 0.0,
    floor: float = LOG_CURRENT_FLOOR
) -> Optional[ShockleySeed]:
    """
    Initial Shockley parameters from a log-linear regression.

    Parameters
    ----------
    points : ndarray, trace-like or iterable of (v, i)
        Usually the bucketed trace
    current_offset : float
        Offset subtracted before taking the logarithm [A]
    floor : float
        Lower clamp for offset-corrected currents [A]

    Returns
    -------
    ShockleySeed or None
        None when there are no points or the regression is singular
    """
    xs, ys = as_xy_arrays(points)
    if len(xs) == 0:
        logger.debug("Log-linear seed: no points")
        return None

    design = np.column_stack([xs, np.ones_like(xs)])
    log_i = np.log(np.maximum(ys - current_offset, floor))

    betas = linear_regression(design, log_i)
    if betas is None:
        logger.debug("Log-linear seed: singular regression")
        return None

    slope, intercept = betas
    with np.errstate(divide='ignore', over='ignore'):
        thermal_scale = 1.0 / slope
        saturation_current = np.exp(intercept)

    if not (np.isfinite(thermal_scale) and np.isfinite(saturation_current)):
        logger.debug(f"Log-linear seed: non-finite coefficients {betas}")
        return None

    return ShockleySeed(
        current_offset=float(current_offset),
        saturation_current=float(saturation_current),
        thermal_scale=float(thermal_scale),
    )


__all__ = [
    'ShockleySeed',
    'linear_regression',
    'estimate_current_offset',
    'log_linear_seed',
]
