"""
Loading and saving curve tracer sweeps as delimited text files.

File format
-----------
Tab-separated with a header row:

    v       i
    0.0     1.2e-07
    ...

Three-terminal sweeps carry an extra ``bias`` column, one row per sample:

    v       i       bias
    0.0     1.2e-07 1e-05

Files whose name ends in ``.gz`` are gzip-compressed. Lines starting with
``#`` are comments.
"""

import gzip
import logging
import os
from collections import OrderedDict
from typing import Dict, List, Optional, TextIO

import numpy as np

from .trace import RawTrace
from ..model.biased import check_bias

logger = logging.getLogger(__name__)

VOLTAGE_PATTERNS = ['v', 'voltage', 'u']
CURRENT_PATTERNS = ['i', 'current']
BIAS_PATTERNS = ['bias', 'b']


def _is_gz(filename: str) -> bool:
    return str(filename).lower().endswith('.gz')


def _open_text(filename: str, mode: str) -> TextIO:
    if _is_gz(filename):
        return gzip.open(filename, mode + 't', encoding='utf-8', newline='')
    return open(filename, mode, encoding='utf-8', newline='')


def _detect_delimiter(header_line: str) -> str:
    """
    Auto-detect delimiter from header line.

    Tries tab, semicolon and comma; returns the one that produces most
    columns.
    """
    delimiters = ['\t', ';', ',']
    best_delimiter = '\t'
    max_columns = 0

    for delim in delimiters:
        columns = len(header_line.split(delim))
        if columns > max_columns:
            max_columns = columns
            best_delimiter = delim

    return best_delimiter


def _find_column_index(headers: List[str], patterns: List[str]) -> Optional[int]:
    """Index of the first header equal to one of the patterns (case-insensitive)."""
    normalized = [h.strip().lower() for h in headers]
    for pattern in patterns:
        if pattern in normalized:
            return normalized.index(pattern)
    return None


def _read_columns(filename: str, with_bias: bool) -> Dict[str, np.ndarray]:
    try:
        with _open_text(filename, 'r') as f:
            lines = f.readlines()
    except FileNotFoundError:
        raise ValueError(f"File not found: {filename}")
    except (OSError, UnicodeDecodeError) as e:
        raise ValueError(f"Error reading file {filename}: {e}")

    header_idx = None
    for idx, line in enumerate(lines):
        stripped = line.strip()
        if stripped and not stripped.startswith('#'):
            header_idx = idx
            break
    if header_idx is None:
        raise ValueError(f"No header found in {filename}")

    header_line = lines[header_idx].strip()
    delimiter = _detect_delimiter(header_line)
    headers = header_line.split(delimiter)
    logger.debug(f"Headers: {headers}, delimiter {delimiter!r}")

    columns = {
        'v': _find_column_index(headers, VOLTAGE_PATTERNS),
        'i': _find_column_index(headers, CURRENT_PATTERNS),
    }
    if with_bias:
        columns['bias'] = _find_column_index(headers, BIAS_PATTERNS)

    missing = [name for name, col in columns.items() if col is None]
    if missing:
        raise ValueError(f"Missing column(s) {missing} in {filename}, header: {headers}")

    values: Dict[str, List[float]] = {name: [] for name in columns}
    n_dropped = 0

    for line_num, line in enumerate(lines[header_idx + 1:], start=header_idx + 2):
        line = line.strip()
        if not line or line.startswith('#'):
            continue

        parts = line.split(delimiter)
        try:
            row = {name: float(parts[col]) for name, col in columns.items()}
        except (ValueError, IndexError) as e:
            raise ValueError(f"{filename}, line {line_num}: malformed row ({e})")

        if not all(np.isfinite(v) for v in row.values()):
            n_dropped += 1
            continue

        for name, v in row.items():
            values[name].append(v)

    if n_dropped:
        logger.warning(f"Dropped {n_dropped} non-finite sample(s) from {filename}")

    return {name: np.array(v, dtype=np.float64) for name, v in values.items()}


def load_trace_csv(filename: str) -> RawTrace:
    """
    Load a two-terminal sweep.

    Parameters
    ----------
    filename : str
        Path to a ``v``/``i`` file, optionally ``.gz`` compressed

    Returns
    -------
    RawTrace

    Raises
    ------
    ValueError
        If the file cannot be read, lacks the required columns or has a
        malformed row
    """
    cols = _read_columns(filename, with_bias=False)
    trace = RawTrace(cols['v'], cols['i'])
    logger.info(f"Loaded {len(trace)} samples from {os.path.basename(str(filename))}")
    return trace


def load_biased_traces_csv(filename: str) -> 'OrderedDict[float, RawTrace]':
    """
    Load a three-terminal sweep.

    Parameters
    ----------
    filename : str
        Path to a ``v``/``i``/``bias`` file, optionally ``.gz`` compressed

    Returns
    -------
    OrderedDict of float -> RawTrace
        One trace per bias level, in ascending bias order
    """
    cols = _read_columns(filename, with_bias=True)

    grouped: Dict[float, List[int]] = {}
    for idx, bias in enumerate(cols['bias']):
        grouped.setdefault(check_bias(bias), []).append(idx)

    traces = OrderedDict()
    for bias in sorted(grouped):
        idx = np.array(grouped[bias], dtype=int)
        traces[bias] = RawTrace(cols['v'][idx], cols['i'][idx])

    logger.info(
        f"Loaded {len(cols['v'])} samples in {len(traces)} bias levels "
        f"from {os.path.basename(str(filename))}"
    )
    return traces


def save_trace_csv(filename: str, trace: RawTrace) -> None:
    """Write a two-terminal sweep (gzip-compressed for ``.gz`` names)."""
    with _open_text(filename, 'w') as f:
        f.write('v\ti\n')
        for v, i in trace.iter():
            f.write(f"{v!r}\t{i!r}\n")
    logger.info(f"Saved: {filename}")


def save_biased_traces_csv(filename: str, traces: Dict[float, RawTrace]) -> None:
    """Write a three-terminal sweep, bias levels in ascending order."""
    with _open_text(filename, 'w') as f:
        f.write('v\ti\tbias\n')
        for bias in sorted(check_bias(b) for b in traces):
            for v, i in traces[bias].iter():
                f.write(f"{v!r}\t{i!r}\t{bias!r}\n")
    logger.info(f"Saved: {filename}")


__all__ = [
    'load_trace_csv',
    'load_biased_traces_csv',
    'save_trace_csv',
    'save_biased_traces_csv',
]
