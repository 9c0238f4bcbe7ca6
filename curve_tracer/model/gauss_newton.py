"""
Damped Gauss-Newton refinement for small differentiable models.

Theory
------
For observations (x_i, y_i) and a model f(x; p) with n parameters, one
Gauss-Newton step solves the linearized least-squares problem

    J dp ~= r,   J[i, j] = df(x_i)/dp_j,   r_i = y_i - f(x_i)

through the SVD J = U S V^T, giving dp = V S^-1 U^T r. The step is scaled
by a damping factor ("shift cut") before being applied.

Damping
-------
An undamped step can overshoot badly on exponential models even from a
good seed. When the residual norm grows, the parameters are rolled back
to the last accepted values and the shift cut is multiplied by
``shift_cut_refining_step``; every accepted step multiplies it by
``shift_cut_speed_up`` again, capped at 1. This plays the role of a
Levenberg-Marquardt trust region while keeping plain Gauss-Newton steps.

Stopping
--------
From ``min_iterations`` on, the loop stops as soon as any of these holds:

- total error < max_total_error
- sum |dp| <= max_absolute_change
- shift cut < min_shift_cut (stagnation, not convergence)
- relative error improvement < max_error_improvement

With ``scale_thresholds_by_shift_cut`` the change and improvement
thresholds are multiplied by the current shift cut. Otherwise the loop
ends after ``max_iterations`` and returns the best accepted parameters.
Refinement never raises for numerical reasons.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
from numpy.typing import NDArray
from scipy.linalg import LinAlgError, svd

from .config import (
    GN_MAX_ABSOLUTE_CHANGE,
    GN_MAX_ERROR_IMPROVEMENT,
    GN_MAX_ITERATIONS,
    GN_MAX_TOTAL_ERROR,
    GN_MIN_ITERATIONS,
    GN_MIN_SHIFT_CUT,
    GN_SHIFT_CUT_REFINING_STEP,
    GN_SHIFT_CUT_SPEED_UP,
)

logger = logging.getLogger(__name__)

# Stop reasons
STOP_TOTAL_ERROR = 'total_error'
STOP_ABSOLUTE_CHANGE = 'absolute_change'
STOP_SHIFT_CUT = 'shift_cut'
STOP_ERROR_IMPROVEMENT = 'error_improvement'
STOP_MAX_ITERATIONS = 'max_iterations'
STOP_SVD_FAILED = 'svd_failed'
STOP_NON_FINITE_STEP = 'non_finite_step'

CONVERGED_REASONS = (STOP_TOTAL_ERROR, STOP_ABSOLUTE_CHANGE, STOP_ERROR_IMPROVEMENT)


@dataclass
class GaussNewtonParams:
    """
    Settings of the damped Gauss-Newton loop.

    Attributes
    ----------
    min_iterations : int
        Iterations performed before any stopping criterion is checked
    max_iterations : int
        Hard iteration limit (rollbacks count as iterations)
    max_absolute_change : float
        Stop when the summed absolute parameter correction is this small
    max_total_error : float
        Stop when the residual norm drops below this
    max_error_improvement : float
        Stop when the relative residual improvement drops below this
    min_shift_cut : float
        Stop when the damping factor falls below this
    shift_cut_refining_step : float
        Damping multiplier applied on rollback (0 < x < 1)
    shift_cut_speed_up : float
        Damping multiplier applied on accepted steps (>= 1), capped at 1
    scale_thresholds_by_shift_cut : bool
        Multiply the change and improvement thresholds by the shift cut
    """
    min_iterations: int = GN_MIN_ITERATIONS
    max_iterations: int = GN_MAX_ITERATIONS
    max_absolute_change: float = GN_MAX_ABSOLUTE_CHANGE
    max_total_error: float = GN_MAX_TOTAL_ERROR
    max_error_improvement: float = GN_MAX_ERROR_IMPROVEMENT
    min_shift_cut: float = GN_MIN_SHIFT_CUT
    shift_cut_refining_step: float = GN_SHIFT_CUT_REFINING_STEP
    shift_cut_speed_up: float = GN_SHIFT_CUT_SPEED_UP
    scale_thresholds_by_shift_cut: bool = False

    def validate(self) -> None:
        """Raise ValueError for inconsistent settings."""
        if self.min_iterations < 0:
            raise ValueError(f"min_iterations must be >= 0, got {self.min_iterations}")
        if self.max_iterations < self.min_iterations:
            raise ValueError(
                f"max_iterations ({self.max_iterations}) must be >= "
                f"min_iterations ({self.min_iterations})"
            )
        if not 0.0 < self.shift_cut_refining_step < 1.0:
            raise ValueError(
                f"shift_cut_refining_step must be in (0, 1), "
                f"got {self.shift_cut_refining_step}"
            )
        if self.shift_cut_speed_up < 1.0:
            raise ValueError(
                f"shift_cut_speed_up must be >= 1, got {self.shift_cut_speed_up}"
            )
        for name in ('max_absolute_change', 'max_total_error',
                     'max_error_improvement', 'min_shift_cut'):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")


class DifferentiableModel(ABC):
    """
    Parametric model with analytic derivatives.

    Subclasses set ``n_params`` and ``param_names`` and implement
    :meth:`value`, :meth:`grad` and :meth:`deriv`. Vectorized
    :meth:`values` and :meth:`jacobian` fall back to per-point loops and
    should be overridden where a closed form is cheap.

    The parameter vector is stored as a private copy; :attr:`params`
    returns a copy as well, so snapshots taken by the refiner never alias
    the live model.
    """
    n_params: int = 0
    param_names: tuple = ()

    def __init__(self, params):
        self._params = self._check_params(params)

    def _check_params(self, params) -> NDArray[np.float64]:
        arr = np.array(params, dtype=float).reshape(-1)
        if arr.shape != (self.n_params,):
            raise ValueError(
                f"{type(self).__name__} takes {self.n_params} parameters, "
                f"got {arr.size}"
            )
        return arr

    @property
    def params(self) -> NDArray[np.float64]:
        return self._params.copy()

    def set_params(self, params) -> None:
        self._params = self._check_params(params)

    def sanitize_params(self) -> None:
        """Clamp parameters into the model's valid region (default: no-op)."""

    @abstractmethod
    def value(self, x: float) -> float:
        """Model value at x."""

    def values(self, xs: NDArray[np.float64]) -> NDArray[np.float64]:
        return np.array([self.value(x) for x in np.asarray(xs, dtype=float)])

    @abstractmethod
    def grad(self, x: float) -> NDArray[np.float64]:
        """Gradient of the model value with respect to the parameters at x."""

    @abstractmethod
    def deriv(self, x: float) -> float:
        """Derivative of the model value with respect to x."""

    def jacobian(self, xs: NDArray[np.float64]) -> NDArray[np.float64]:
        xs = np.asarray(xs, dtype=float)
        if xs.size == 0:
            return np.empty((0, self.n_params))
        return np.vstack([self.grad(x) for x in xs])

    def __repr__(self) -> str:
        if self.param_names:
            inner = ', '.join(f"{n}={v:.6g}" for n, v in zip(self.param_names, self._params))
        else:
            inner = ', '.join(f"{v:.6g}" for v in self._params)
        return f"{type(self).__name__}({inner})"


@dataclass
class GaussNewtonResult:
    """
    Outcome of a refinement run.

    Refinement has no failure mode: ``model`` always holds the best accepted
    parameters. ``converged`` tells whether a convergence criterion (rather
    than stagnation or the iteration limit) ended the loop.

    Attributes
    ----------
    model : DifferentiableModel
        Refined model (the same object that was passed in)
    iterations : int
        Loop iterations performed, rollbacks included
    total_error : float
        Residual norm at the returned parameters
    converged : bool
        True if stopped by total error, absolute change or error improvement
    stop_reason : str
        One of the STOP_* constants
    shift_cut : float
        Damping factor when the loop ended
    n_rollbacks : int
        Number of rejected steps
    error_history : list of float
        Residual norm of every accepted iteration (non-increasing)
    residuals : ndarray
        Weighted residuals at the returned parameters
    jacobian : ndarray
        Weighted Jacobian at the returned parameters
    """
    model: DifferentiableModel
    iterations: int
    total_error: float
    converged: bool
    stop_reason: str
    shift_cut: float
    n_rollbacks: int = 0
    error_history: List[float] = field(default_factory=list)
    residuals: Optional[NDArray[np.float64]] = None
    jacobian: Optional[NDArray[np.float64]] = None


def _pseudo_inverse_step(
    jacobian: NDArray[np.float64],
    residuals: NDArray[np.float64]
) -> NDArray[np.float64]:
    """V S^-1 U^T r; zero singular values contribute nothing."""
    u, s, v_t = svd(jacobian, full_matrices=False)
    s_inv = np.zeros_like(s)
    nonzero = s > 0.0
    s_inv[nonzero] = 1.0 / s[nonzero]
    return v_t.T @ (s_inv * (u.T @ residuals))


def _weighted_residuals(model, xs, ys, w):
    with np.errstate(over='ignore', invalid='ignore'):
        residuals = w * (ys - model.values(xs))
        total_error = float(np.linalg.norm(residuals))
    return residuals, total_error


def gauss_newton(
    xs: NDArray[np.float64],
    ys: NDArray[np.float64],
    model: DifferentiableModel,
    params: Optional[GaussNewtonParams] = None,
    weights: Optional[NDArray[np.float64]] = None
) -> GaussNewtonResult:
    """
    Refine ``model`` in place against observations (xs, ys).

    Parameters
    ----------
    xs, ys : ndarray of float
        Observations, same length
    model : DifferentiableModel
        Initial model; modified in place
    params : GaussNewtonParams, optional
        Loop settings (defaults if None)
    weights : ndarray of float, optional
        Per-point residual weights (uniform if None)

    Returns
    -------
    GaussNewtonResult

    Raises
    ------
    ValueError
        If the inputs have mismatched shapes or the settings are invalid
    """
    if params is None:
        params = GaussNewtonParams()
    params.validate()

    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    if xs.shape != ys.shape or xs.ndim != 1:
        raise ValueError(f"xs and ys must be 1-D of equal length, got {xs.shape} and {ys.shape}")
    if weights is None:
        w = np.ones_like(ys)
    else:
        w = np.asarray(weights, dtype=float)
        if w.shape != ys.shape:
            raise ValueError(f"weights must have shape {ys.shape}, got {w.shape}")

    model.sanitize_params()

    shift_cut = 1.0
    old_total_error = np.inf
    old_params = model.params
    error_history: List[float] = []
    n_rollbacks = 0
    stop_reason = STOP_MAX_ITERATIONS
    iterations = 0

    logger.debug(f"Gauss-Newton start: {model!r}")

    for iteration in range(params.max_iterations):
        iterations = iteration + 1
        logger.debug(f"Iteration {iteration}: shift cut {shift_cut:.3e}")

        residuals, total_error = _weighted_residuals(model, xs, ys, w)
        logger.debug(f"  total error: {total_error:.6e}")

        if not np.isfinite(total_error) or total_error > old_total_error:
            logger.debug("  rolling back")
            model.set_params(old_params)
            shift_cut *= params.shift_cut_refining_step
            old_total_error = np.inf
            n_rollbacks += 1
            continue

        old_params = model.params
        error_history.append(total_error)

        if np.isfinite(old_total_error) and old_total_error > 0.0:
            error_improvement = abs((total_error - old_total_error) / old_total_error)
        else:
            error_improvement = np.inf
        old_total_error = total_error

        try:
            with np.errstate(over='ignore', invalid='ignore'):
                jacobian = model.jacobian(xs) * w[:, np.newaxis]
            correction = shift_cut * _pseudo_inverse_step(jacobian, residuals)
        except (LinAlgError, ValueError) as e:
            logger.debug(f"  SVD failed: {e}")
            stop_reason = STOP_SVD_FAILED
            break

        if not np.all(np.isfinite(correction)):
            logger.debug(f"  non-finite correction {correction}")
            stop_reason = STOP_NON_FINITE_STEP
            break

        absolute_change = float(np.sum(np.abs(correction)))

        model.set_params(model.params + correction)
        model.sanitize_params()

        shift_cut = min(shift_cut * params.shift_cut_speed_up, 1.0)

        logger.debug(f"  absolute change: {absolute_change:.3e}")
        logger.debug(f"  error improvement: {error_improvement:.3e}")
        logger.debug(f"  model: {model!r}")

        if iteration < params.min_iterations:
            continue

        scale = shift_cut if params.scale_thresholds_by_shift_cut else 1.0

        if total_error < params.max_total_error:
            stop_reason = STOP_TOTAL_ERROR
        elif absolute_change <= params.max_absolute_change * scale:
            stop_reason = STOP_ABSOLUTE_CHANGE
        elif shift_cut < params.min_shift_cut:
            stop_reason = STOP_SHIFT_CUT
        elif error_improvement < params.max_error_improvement * scale:
            stop_reason = STOP_ERROR_IMPROVEMENT
        else:
            continue
        break

    # The last correction was applied but never evaluated; keep it only if
    # it does not make things worse.
    residuals, total_error = _weighted_residuals(model, xs, ys, w)
    if error_history and (not np.isfinite(total_error) or total_error > error_history[-1]):
        model.set_params(old_params)
        residuals, total_error = _weighted_residuals(model, xs, ys, w)

    with np.errstate(over='ignore', invalid='ignore'):
        jacobian = model.jacobian(xs) * w[:, np.newaxis]

    converged = stop_reason in CONVERGED_REASONS
    logger.debug(
        f"Gauss-Newton done after {iterations} iterations ({stop_reason}), "
        f"total error {total_error:.6e}, {n_rollbacks} rollbacks"
    )

    return GaussNewtonResult(
        model=model,
        iterations=iterations,
        total_error=total_error,
        converged=converged,
        stop_reason=stop_reason,
        shift_cut=shift_cut,
        n_rollbacks=n_rollbacks,
        error_history=error_history,
        residuals=residuals,
        jacobian=jacobian,
    )


__all__ = [
    'DifferentiableModel',
    'GaussNewtonParams',
    'GaussNewtonResult',
    'gauss_newton',
    'STOP_TOTAL_ERROR',
    'STOP_ABSOLUTE_CHANGE',
    'STOP_SHIFT_CUT',
    'STOP_ERROR_IMPROVEMENT',
    'STOP_MAX_ITERATIONS',
    'STOP_SVD_FAILED',
    'STOP_NON_FINITE_STEP',
]
