"""
Workflow handlers for the curve tracer CLI.

Each handler corresponds to a step of the pipeline:
- load_sweep: Load from file or generate synthetic data
- run_export: Write the loaded sweep back out
- run_diode_fitting: Fit and report a two-terminal sweep
- run_biased_fitting: Fit and report every bias level of a three-terminal sweep
"""

import argparse
import logging
import os
from typing import Dict, Optional

from .logging import log_separator
from .utils import CurveTracerError, LoadedData
from ..io import (
    RawTrace,
    generate_synthetic_biased_traces,
    generate_synthetic_trace,
    load_biased_traces_csv,
    load_trace_csv,
    save_biased_traces_csv,
    save_trace_csv,
)
from ..model import DiodeFitResult, GaussNewtonParams, fit_biased_traces, fit_diode
from ..utils.engineering import format_quantity

logger = logging.getLogger(__name__)

SYNTHETIC_SEED = 42


# =============================================================================
# Data Loading
# =============================================================================

def load_sweep(args: argparse.Namespace) -> LoadedData:
    """
    Load a sweep from file or generate synthetic data.

    Raises
    ------
    CurveTracerError
        If the file does not exist or cannot be parsed
    """
    if args.input is None:
        title = "Synthetic data"
        if args.bias:
            return LoadedData(title, biased=generate_synthetic_biased_traces(seed=SYNTHETIC_SEED))
        return LoadedData(title, trace=generate_synthetic_trace(seed=SYNTHETIC_SEED))

    if not os.path.exists(args.input):
        raise CurveTracerError(f"File '{args.input}' does not exist!")

    title = os.path.basename(args.input)
    try:
        if args.bias:
            return LoadedData(title, biased=load_biased_traces_csv(args.input))
        return LoadedData(title, trace=load_trace_csv(args.input))
    except ValueError as e:
        raise CurveTracerError(str(e)) from e


def run_export(data: LoadedData, args: argparse.Namespace) -> None:
    """Write the loaded sweep to ``--export`` if given."""
    if args.export is None:
        return
    try:
        if data.biased is not None:
            save_biased_traces_csv(args.export, data.biased)
        else:
            save_trace_csv(args.export, data.trace)
    except OSError as e:
        raise CurveTracerError(f"Cannot write '{args.export}': {e}") from e


# =============================================================================
# Fitting
# =============================================================================

def gn_params_from_args(args: argparse.Namespace) -> GaussNewtonParams:
    """Gauss-Newton settings from CLI arguments."""
    params = GaussNewtonParams(
        min_iterations=args.min_iterations,
        max_iterations=args.max_iterations,
        max_absolute_change=args.max_absolute_change,
        max_total_error=args.max_total_error,
        max_error_improvement=args.max_error_improvement,
        min_shift_cut=args.min_shift_cut,
        shift_cut_refining_step=args.shift_cut_refining_step,
        shift_cut_speed_up=args.shift_cut_speed_up,
        scale_thresholds_by_shift_cut=args.scale_thresholds,
    )
    try:
        params.validate()
    except ValueError as e:
        raise CurveTracerError(f"Invalid refinement settings: {e}") from e
    return params


def _fit_kwargs(args: argparse.Namespace) -> dict:
    if args.buckets < 1:
        raise CurveTracerError(f"--buckets must be >= 1, got {args.buckets}")
    if not args.v_max > args.v_min:
        raise CurveTracerError(f"Empty voltage domain [{args.v_min}, {args.v_max})")
    if args.min_population < 0:
        raise CurveTracerError(f"--min-population must be >= 0, got {args.min_population}")
    return dict(
        min_v=args.v_min,
        max_v=args.v_max,
        buckets=args.buckets,
        min_bucket_population=args.min_population,
        gn_params=gn_params_from_args(args),
        weighting=args.weighting,
    )


def log_fit_result(result: Optional[DiodeFitResult]) -> None:
    """Report a fit, or its absence."""
    if result is None:
        logger.warning("No model fitted (too few samples in the domain or singular seed)")
        return

    for line in result.model.report().splitlines():
        logger.info(line)

    stderr = result.params_stderr
    for label, unit, err in zip(result.model.param_labels, result.model.param_units, stderr):
        logger.debug(f"  {label} std error: {format_quantity(err, unit)}")

    refinement = result.refinement
    logger.info(f"Residual norm: {format_quantity(result.total_error, 'A')} "
                f"({result.n_points} points from {result.n_samples} samples)")
    if result.converged:
        logger.info(f"Converged after {refinement.iterations} iterations ({refinement.stop_reason})")
    else:
        logger.warning(f"Refinement did not converge: {refinement.stop_reason} "
                       f"after {refinement.iterations} iterations")
    if result.covariance.warning_message:
        logger.warning(result.covariance.warning_message)


def run_diode_fitting(trace: RawTrace, args: argparse.Namespace) -> Optional[DiodeFitResult]:
    """Fit a two-terminal sweep and log the model report."""
    log_separator()
    logger.info("Diode model")
    log_separator()

    result = fit_diode(trace, **_fit_kwargs(args))
    log_fit_result(result)
    return result


def run_biased_fitting(
    traces: Dict[float, RawTrace],
    args: argparse.Namespace
) -> Dict[float, Optional[DiodeFitResult]]:
    """Fit every bias level of a three-terminal sweep."""
    results = fit_biased_traces(traces, **_fit_kwargs(args))
    for bias, result in results.items():
        log_separator()
        logger.info(f"Bias {bias:g}")
        log_separator()
        log_fit_result(result)
    return results
