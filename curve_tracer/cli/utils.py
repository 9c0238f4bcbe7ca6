"""
Exceptions and data containers for the curve tracer CLI.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from ..io import RawTrace


class CurveTracerError(Exception):
    """Base exception for curve tracer CLI errors."""
    pass


@dataclass
class LoadedData:
    """
    Container for a loaded sweep.

    Attributes
    ----------
    title : str
        File name or "Synthetic data"
    trace : RawTrace or None
        Two-terminal sweep
    biased : dict of float -> RawTrace, or None
        Three-terminal sweep, one trace per bias level
    """
    title: str
    trace: Optional[RawTrace] = None
    biased: Optional[Dict[float, RawTrace]] = None

    @property
    def n_samples(self) -> int:
        if self.trace is not None:
            return len(self.trace)
        return sum(len(t) for t in (self.biased or {}).values())
