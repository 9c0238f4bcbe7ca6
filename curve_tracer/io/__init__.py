"""
I/O module for loading, saving and generating curve tracer sweeps.
"""

from .trace import RawTrace
from .data_loading import (
    load_trace_csv,
    load_biased_traces_csv,
    save_trace_csv,
    save_biased_traces_csv,
)
from .synthetic import generate_synthetic_trace, generate_synthetic_biased_traces

__all__ = [
    'RawTrace',
    'load_trace_csv',
    'load_biased_traces_csv',
    'save_trace_csv',
    'save_biased_traces_csv',
    'generate_synthetic_trace',
    'generate_synthetic_biased_traces',
]
