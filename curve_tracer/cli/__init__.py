"""
CLI module for the curve tracer toolkit.

This module provides the command-line interface components:
- logging: Custom log formatters and setup
- parser: Argument parsing
- handlers: Loading, export and fitting workflow
- utils: Exception and data container

The main entry point is in the root tracer.py script.
"""

from .logging import setup_logging, log_separator
from .parser import parse_arguments, build_parser
from .handlers import (
    load_sweep,
    run_export,
    run_diode_fitting,
    run_biased_fitting,
    gn_params_from_args,
)
from .utils import CurveTracerError, LoadedData

__all__ = [
    # Logging
    'setup_logging',
    'log_separator',
    # Parser
    'parse_arguments',
    'build_parser',
    # Handlers
    'load_sweep',
    'run_export',
    'run_diode_fitting',
    'run_biased_fitting',
    'gn_params_from_args',
    # Utils
    'CurveTracerError',
    'LoadedData',
]
