"""
Per-bias fitting of three-terminal sweeps.

A transistor sweep is a set of traces, one per bias level (base current or
gate voltage). Each trace is fitted independently; the results keep the
ascending bias order of the input.
"""

import logging
import math
from collections import OrderedDict
from typing import Mapping, Optional

from .diode import DiodeFitResult, fit_diode
from .resampling import Points

logger = logging.getLogger(__name__)


def check_bias(bias: float) -> float:
    """
    Validate a bias key.

    Raises
    ------
    ValueError
        If the bias is not a finite number
    """
    bias = float(bias)
    if not math.isfinite(bias):
        raise ValueError(f"Bias levels must be finite, got {bias}")
    return bias


def fit_biased_traces(
    traces: Mapping[float, Points],
    **fit_kwargs
) -> 'OrderedDict[float, Optional[DiodeFitResult]]':
    """
    Fit every trace of a bias-partitioned sweep.

    Parameters
    ----------
    traces : mapping of float -> samples
        Bias level to raw trace
    **fit_kwargs
        Forwarded to :func:`fit_diode`

    Returns
    -------
    OrderedDict of float -> DiodeFitResult or None
        In ascending bias order; None where no model could be fitted

    Raises
    ------
    ValueError
        If any bias level is not finite
    """
    checked = [(check_bias(bias), trace) for bias, trace in traces.items()]
    checked.sort(key=lambda item: item[0])

    results = OrderedDict()
    for bias, trace in checked:
        result = fit_diode(trace, **fit_kwargs)
        if result is None:
            logger.debug(f"Bias {bias:g}: no fit")
        results[bias] = result
    return results


__all__ = ['fit_biased_traces', 'check_bias']
