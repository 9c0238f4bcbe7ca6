#!/usr/bin/env python3
"""
Curve Tracer Model Extraction
=============================

CLI tool for fitting device models to curve tracer sweeps.

Version: Imported from curve_tracer.version (single source of truth)

Features:
- Bucketed resampling of noisy (voltage, current) samples
- Linear seed of the Shockley diode model (SVD least squares)
- Damped Gauss-Newton refinement with shift-cut rollback
- Per-bias fitting of three-terminal sweeps (--bias)
- Parameter uncertainties from the Jacobian at the optimum

Usage:
    tracer                          # synthetic data demo
    tracer diode.csv                # fit a diode sweep
    tracer diode.csv.gz -v          # with Gauss-Newton iteration trace
    tracer npn.csv --bias           # one fit per bias level
    tracer --export demo.csv.gz     # save synthetic data

    tracer --help                   # help
"""

import argparse
import logging
import sys
from typing import List, Optional

from curve_tracer.cli import (
    CurveTracerError,
    load_sweep,
    log_separator,
    parse_arguments,
    run_biased_fitting,
    run_diode_fitting,
    run_export,
    setup_logging,
)
from curve_tracer.version import get_version_string

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    args = parse_arguments(argv)
    setup_logging(args)

    try:
        _run_analysis(args)
    except CurveTracerError as e:
        logger.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Analysis interrupted by user")
        sys.exit(130)


def _run_analysis(args: argparse.Namespace) -> None:
    """Run the full fitting pipeline."""
    log_separator(60)
    logger.info(f"Curve tracer model extraction ({get_version_string()})")
    log_separator(60)

    data = load_sweep(args)
    logger.info(f"{data.title}: {data.n_samples} samples")

    run_export(data, args)

    if data.biased is not None:
        run_biased_fitting(data.biased, args)
    else:
        run_diode_fitting(data.trace, args)

    log_separator(60)
    logger.info("Analysis complete")
    log_separator(60)


if __name__ == "__main__":
    main()
