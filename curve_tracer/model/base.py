"""
Common interface of fitted I-V models as seen by reporting and plotting.
"""

from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np
from numpy.typing import NDArray

from .config import MODEL_CURVE_MAX_V, MODEL_CURVE_POINTS


class IVModel(ABC):
    """
    Fitted current/voltage model of a device.

    ``min_v`` and ``max_v`` bound the region where the model is meaningful;
    plotting code must not extrapolate outside it.
    """

    @property
    @abstractmethod
    def min_v(self) -> float:
        """Lower edge of the valid voltage domain [V]."""

    @property
    @abstractmethod
    def max_v(self) -> float:
        """Upper edge of the valid voltage domain [V]."""

    @abstractmethod
    def evaluate(self, v: float) -> float:
        """Modelled current at voltage v [A]."""

    @abstractmethod
    def report(self) -> str:
        """Multi-line human-readable parameter report."""

    def __str__(self) -> str:
        return self.report()


def model_curve(
    model: IVModel,
    n_points: int = MODEL_CURVE_POINTS,
    v_limit: float = MODEL_CURVE_MAX_V
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Sample a model over its valid domain for plotting.

    Parameters
    ----------
    model : IVModel
        Fitted model
    n_points : int
        Number of samples
    v_limit : float
        Upper voltage limit of the plot [V]

    Returns
    -------
    v, i : ndarray of float
        Voltages in [max(min_v, 0), min(max_v, v_limit)] and modelled currents
    """
    v_lo = max(model.min_v, 0.0)
    v_hi = min(model.max_v, v_limit)
    v = np.linspace(v_lo, v_hi, n_points)
    i = np.array([model.evaluate(x) for x in v])
    return v, i


__all__ = ['IVModel', 'model_curve']
