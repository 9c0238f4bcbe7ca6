"""
Synthetic diode sweeps for testing and demonstration.
"""

import logging
from collections import OrderedDict
from typing import Optional, Sequence

import numpy as np

from .trace import RawTrace
from ..utils.engineering import format_quantity

logger = logging.getLogger(__name__)


def generate_synthetic_trace(
    current_offset: float = 2e-6,
    saturation_current: float = 1e-6,
    thermal_scale: float = 0.1,
    v_max: float = 1.0,
    n_samples: int = 4000,
    noise: float = 1e-6,
    current_limit: Optional[float] = 5e-3,
    seed: Optional[int] = None
) -> RawTrace:
    """
    Generate a noisy Shockley diode sweep.

    Voltages are drawn uniformly from [0, v_max), mimicking the
    unordered sample cloud of a sine-driven sweep.

    Parameters
    ----------
    current_offset : float
        Instrument current offset I_OS [A]
    saturation_current : float
        I_S [A]
    thermal_scale : float
        n*V_T [V]
    v_max : float
        Upper end of the sweep [V]
    n_samples : int
        Number of samples
    noise : float
        Standard deviation of additive Gaussian current noise [A]
    current_limit : float or None
        Samples above this current are dropped, as the front end clips
        them [A]
    seed : int or None
        Seed for the random generator

    Returns
    -------
    RawTrace
    """
    logger.info("=" * 60)
    logger.info("Generating synthetic diode trace")
    logger.info("=" * 60)
    logger.info(f"I_OS = {format_quantity(current_offset, 'A')}, "
                f"I_S = {format_quantity(saturation_current, 'A')}, "
                f"n·V_T = {format_quantity(thermal_scale, 'V')}")

    rng = np.random.default_rng(seed)
    v = rng.uniform(0.0, v_max, n_samples)
    i = current_offset + saturation_current * np.expm1(v / thermal_scale)
    i = i + noise * rng.standard_normal(n_samples)

    if current_limit is not None:
        keep = i <= current_limit
        v, i = v[keep], i[keep]

    return RawTrace(v, i)


def generate_synthetic_biased_traces(
    biases: Sequence[float] = (1e-5, 2e-5, 5e-5),
    seed: Optional[int] = None,
    **kwargs
) -> 'OrderedDict[float, RawTrace]':
    """
    One synthetic trace per bias level; the saturation current scales with
    the bias so the traces are distinguishable.
    """
    rng = np.random.default_rng(seed)
    base_is = kwargs.pop('saturation_current', 1e-6)
    traces = OrderedDict()
    for bias in sorted(float(b) for b in biases):
        traces[bias] = generate_synthetic_trace(
            saturation_current=base_is * bias / min(biases),
            seed=int(rng.integers(0, 2**31 - 1)),
            **kwargs
        )
    return traces


__all__ = ['generate_synthetic_trace', 'generate_synthetic_biased_traces']
