"""
Parameter uncertainty of a converged fit.

The Gauss-Newton refiner always returns its best parameters, even when it
ran out of iterations. Standard errors derived from the Jacobian at those
parameters let callers judge how well the trace actually constrains each
parameter.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray
from scipy.linalg import LinAlgError, svd
from scipy.stats import t

logger = logging.getLogger(__name__)

WELL_CONDITIONED_LIMIT = 1e10


@dataclass
class CovarianceResult:
    """
    Result of covariance matrix computation.

    Attributes
    ----------
    cov : ndarray or None
        Covariance matrix (None if computation failed)
    stderr : ndarray
        Standard errors of parameters (inf if computation failed)
    condition_number : float
        Ratio of largest to smallest singular value of the Jacobian
    rank : int
        Numerical rank of the Jacobian
    is_well_conditioned : bool
        True if condition number < 1e10
    warning_message : str or None
        Warning message if any issues detected
    """
    cov: Optional[NDArray[np.float64]]
    stderr: NDArray[np.float64]
    condition_number: float
    rank: int
    is_well_conditioned: bool
    warning_message: Optional[str]


def compute_covariance_matrix(
    jacobian: NDArray[np.float64],
    residuals: NDArray[np.float64],
    rcond: float = 1e-12
) -> CovarianceResult:
    """
    Covariance of fitted parameters from the (weighted) model Jacobian.

    With J = U S V^T and s^2 = RSS / (n - p):

        cov = s^2 (J^T J)^-1 = s^2 V S^-2 V^T

    Singular values below ``rcond * max(S)`` are clamped to that threshold.

    Parameters
    ----------
    jacobian : ndarray of float, shape (n_points, n_params)
        d(model)/d(param) at the fitted parameters
    residuals : ndarray of float, shape (n_points,)
        Observed minus modelled values
    rcond : float, optional
        Relative cutoff for small singular values

    Returns
    -------
    CovarianceResult
    """
    n_points, n_params = jacobian.shape
    dof = max(n_points - n_params, 1)
    residual_variance = float(residuals @ residuals) / dof

    try:
        if n_points == 0:
            raise ValueError("empty Jacobian")
        _, S, Vt = svd(jacobian, full_matrices=False)
    except (LinAlgError, ValueError) as e:
        logger.debug(f"Covariance SVD failed: {e}")
        return CovarianceResult(
            cov=None,
            stderr=np.full(n_params, np.inf),
            condition_number=np.inf,
            rank=0,
            is_well_conditioned=False,
            warning_message=f"SVD failed: {e}"
        )

    warning_message = None
    condition_number = S[0] / S[-1] if S[-1] > 0 else np.inf
    threshold = rcond * S[0]
    rank = int(np.sum(S > threshold))
    is_well_conditioned = condition_number < WELL_CONDITIONED_LIMIT

    if not is_well_conditioned:
        warning_message = (
            f"Ill-conditioned Jacobian (cond={condition_number:.2e}). "
            f"Uncertainty estimates may be unreliable."
        )
    if rank < n_params:
        warning_message = (
            f"Rank-deficient Jacobian (rank={rank}/{n_params}). "
            f"Some parameters are not identifiable from the trace."
        )

    S_safe = np.maximum(S, threshold) if threshold > 0 else S
    with np.errstate(divide='ignore'):
        S_inv_sq = 1.0 / (S_safe * S_safe)

    cov = residual_variance * (Vt.T @ np.diag(S_inv_sq) @ Vt)
    stderr = np.sqrt(np.abs(np.diag(cov)))

    return CovarianceResult(
        cov=cov,
        stderr=stderr,
        condition_number=float(condition_number),
        rank=rank,
        is_well_conditioned=bool(is_well_conditioned),
        warning_message=warning_message
    )


def compute_confidence_interval(
    params_opt: NDArray[np.float64],
    params_stderr: NDArray[np.float64],
    n_data: int,
    confidence_level: float = 0.95
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Confidence intervals from standard errors using the t-distribution.

    Uses (n_data - n_params) degrees of freedom.
    """
    n_params = len(params_opt)
    dof = max(n_data - n_params, 1)

    alpha = 1 - confidence_level
    t_critical = t.ppf(1 - alpha/2, dof)

    margin = t_critical * params_stderr
    return params_opt - margin, params_opt + margin


__all__ = [
    'CovarianceResult',
    'compute_covariance_matrix',
    'compute_confidence_interval',
]
