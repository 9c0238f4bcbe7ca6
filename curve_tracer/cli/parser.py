"""
Argument parsing for the curve tracer CLI.

Options are grouped as:
- Input/Output options
- Resampling options
- Gauss-Newton refinement options
"""

import argparse
from typing import List, Optional

from ..model.config import (
    DEFAULT_BUCKETS,
    DEFAULT_MAX_V,
    DEFAULT_MIN_BUCKET_POPULATION,
    DEFAULT_MIN_V,
)
from ..model.diode import VALID_WEIGHTINGS
from ..model.gauss_newton import GaussNewtonParams
from ..version import get_version_string


class OnePerLineHelpFormatter(argparse.RawDescriptionHelpFormatter):
    """Usage block listing one argument per line under the program name."""

    usage_indent = 14

    def _format_usage(self, usage, actions, groups, prefix):
        prefix = "usage: " if prefix is None else prefix
        if usage is not None:
            return f"{prefix}{usage % dict(prog=self._prog)}\n\n"

        pad = " " * self.usage_indent
        lines = [f"{prefix}{self._prog}"]
        lines.extend(pad + self._usage_item(action) for action in actions)
        return "\n".join(lines) + "\n\n"

    @staticmethod
    def _usage_item(action: argparse.Action) -> str:
        if not action.option_strings:
            return f"[{action.dest}]" if action.nargs == "?" else action.dest
        flag = action.option_strings[0]
        if action.nargs == 0:
            return f"[{flag}]"
        return f"[{flag} {action.metavar or action.dest.upper()}]"


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    defaults = GaussNewtonParams()

    parser = argparse.ArgumentParser(
        prog='tracer',
        description=f'Diode model extraction from curve tracer sweeps ({get_version_string()})',
        formatter_class=OnePerLineHelpFormatter,
        epilog="""
Examples:
  tracer                             Synthetic data demo
  tracer diode.csv                   Fit a diode sweep
  tracer diode.csv.gz -v             Same, with Gauss-Newton trace
  tracer npn.csv --bias              Fit every bias level of a transistor sweep
        """
    )

    parser.add_argument('--version', action='version',
                        version=f'%(prog)s {get_version_string()}')

    # ==========================================================================
    # Input/Output Group
    # ==========================================================================
    io_group = parser.add_argument_group('Input/Output')

    io_group.add_argument('input', nargs='?', default=None,
                          help='Tab-separated sweep file (v, i [, bias]), optionally .gz. '
                               'Without argument, synthetic data is used.')
    io_group.add_argument('--bias', action='store_true',
                          help='Input is a three-terminal sweep with a bias column')
    io_group.add_argument('--export', type=str, default=None, metavar='FILE',
                          help='Write the loaded sweep to FILE (.gz to compress)')
    io_group.add_argument('--verbose', '-v', action='count', default=0,
                          help='Show debug messages on stderr')
    io_group.add_argument('--quiet', '-q', action='store_true',
                          help='Quiet mode - hide INFO messages, show only warnings and errors')

    # ==========================================================================
    # Resampling Group
    # ==========================================================================
    rs_group = parser.add_argument_group('Resampling')

    rs_group.add_argument('--v-min', type=float, default=DEFAULT_MIN_V,
                          help=f'Lower edge of the fitted voltage domain [V] (default: {DEFAULT_MIN_V})')
    rs_group.add_argument('--v-max', type=float, default=DEFAULT_MAX_V,
                          help=f'Upper edge (exclusive) of the fitted domain [V] (default: {DEFAULT_MAX_V})')
    rs_group.add_argument('--buckets', type=int, default=DEFAULT_BUCKETS,
                          help=f'Number of resampling buckets (default: {DEFAULT_BUCKETS})')
    rs_group.add_argument('--min-population', type=int, default=DEFAULT_MIN_BUCKET_POPULATION,
                          help='Minimum samples per kept bucket '
                               f'(default: {DEFAULT_MIN_BUCKET_POPULATION})')

    # ==========================================================================
    # Refinement Group
    # ==========================================================================
    gn_group = parser.add_argument_group('Gauss-Newton Refinement')

    gn_group.add_argument('--weighting', type=str, default='uniform',
                          choices=VALID_WEIGHTINGS,
                          help='Residual weighting (default: uniform)')
    gn_group.add_argument('--min-iterations', type=int, default=defaults.min_iterations,
                          help=f'Iterations before convergence checks (default: {defaults.min_iterations})')
    gn_group.add_argument('--max-iterations', type=int, default=defaults.max_iterations,
                          help=f'Iteration limit (default: {defaults.max_iterations})')
    gn_group.add_argument('--max-total-error', type=float, default=defaults.max_total_error,
                          help=f'Residual norm threshold (default: {defaults.max_total_error:g})')
    gn_group.add_argument('--max-absolute-change', type=float, default=defaults.max_absolute_change,
                          help=f'Parameter change threshold (default: {defaults.max_absolute_change:g})')
    gn_group.add_argument('--max-error-improvement', type=float,
                          default=defaults.max_error_improvement,
                          help='Relative improvement threshold '
                               f'(default: {defaults.max_error_improvement:g})')
    gn_group.add_argument('--min-shift-cut', type=float, default=defaults.min_shift_cut,
                          help=f'Damping floor (default: {defaults.min_shift_cut:g})')
    gn_group.add_argument('--shift-cut-refining-step', type=float,
                          default=defaults.shift_cut_refining_step,
                          help='Damping multiplier on rollback '
                               f'(default: {defaults.shift_cut_refining_step:g})')
    gn_group.add_argument('--shift-cut-speed-up', type=float,
                          default=defaults.shift_cut_speed_up,
                          help='Damping multiplier on accepted steps '
                               f'(default: {defaults.shift_cut_speed_up:g})')
    gn_group.add_argument('--scale-thresholds', action='store_true',
                          help='Scale change/improvement thresholds by the damping factor')

    return parser


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Parameters
    ----------
    argv : list of str, optional
        Arguments (sys.argv[1:] if None)

    Returns
    -------
    args : argparse.Namespace
    """
    return build_parser().parse_args(argv)
