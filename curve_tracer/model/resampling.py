"""
Bucketed resampling of raw traces.

A raw trace holds thousands of noisy (voltage, current) samples in no
particular order. Before fitting, the voltage domain [min, max) is split
into equal-width buckets and each bucket is replaced by the mean current
of the samples that fall into it. This bounds the size of the optimizer's
working set independently of the acquisition rate and averages out noise,
which keeps the subsequent linear solve well conditioned.

Edge policy: the left edge of every bucket is inclusive and the right edge
exclusive, including the last bucket, so a sample at exactly ``max`` is
never used.
"""

import logging
from typing import Iterable, Iterator, Tuple, Union

import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger(__name__)

Points = Union[NDArray[np.float64], Iterable[Tuple[float, float]]]


def as_xy_arrays(points: Points) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Convert a sample source into separate x and y arrays.

    Parameters
    ----------
    points : ndarray of shape (n, 2), trace-like or iterable of (x, y)
        Objects exposing ``voltage`` and ``current`` arrays (RawTrace,
        BucketedFunction) are used directly.

    Returns
    -------
    xs, ys : ndarray of float
    """
    if hasattr(points, 'voltage') and hasattr(points, 'current'):
        return (np.asarray(points.voltage, dtype=float),
                np.asarray(points.current, dtype=float))

    if isinstance(points, np.ndarray):
        arr = points.astype(float)
    else:
        arr = np.array(list(points), dtype=float)

    if arr.size == 0:
        return np.empty(0), np.empty(0)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"Expected (x, y) pairs, got array of shape {arr.shape}")
    return arr[:, 0].copy(), arr[:, 1].copy()


class BucketedFunction:
    """
    Piecewise constant approximation of a sample cloud over [min, max).

    Parameters
    ----------
    min_x, max_x : float
        Domain bounds; ``min_x`` inclusive, ``max_x`` exclusive
    values : ndarray of float
        Representative value per bucket, NaN for omitted buckets
    populations : ndarray of int, optional
        Number of samples that contributed to each bucket

    Use :meth:`from_points` to build one from raw samples.
    """

    def __init__(
        self,
        min_x: float,
        max_x: float,
        values: NDArray[np.float64],
        populations: NDArray[np.int64] = None
    ):
        self.min_x = float(min_x)
        self.max_x = float(max_x)
        self._values = np.asarray(values, dtype=float)
        if populations is None:
            populations = np.where(np.isnan(self._values), 0, 1)
        self.populations = np.asarray(populations, dtype=int)

    @classmethod
    def from_points(
        cls,
        min_x: float,
        max_x: float,
        buckets: int,
        min_bucket_population: int,
        points: Points
    ) -> 'BucketedFunction':
        """
        Resample a sample cloud into ``buckets`` averaged points.

        Parameters
        ----------
        min_x, max_x : float
            Domain [min_x, max_x); samples outside are dropped silently
        buckets : int
            Number of equal-width buckets (>= 1)
        min_bucket_population : int
            Buckets with fewer samples than this are omitted
        points : ndarray, trace-like or iterable of (x, y)
            Raw samples, in any order. Finiteness is not checked.

        Returns
        -------
        BucketedFunction

        Raises
        ------
        ValueError
            If the domain or bucket configuration is invalid
        """
        if buckets < 1:
            raise ValueError(f"buckets must be >= 1, got {buckets}")
        if not max_x > min_x:
            raise ValueError(f"Empty domain [{min_x}, {max_x})")
        if min_bucket_population < 0:
            raise ValueError(
                f"min_bucket_population must be >= 0, got {min_bucket_population}"
            )

        xs, ys = as_xy_arrays(points)

        span = max_x - min_x
        edges = min_x + span * (np.arange(buckets + 1) / buckets)

        in_domain = (xs >= min_x) & (xs < max_x)
        xs, ys = xs[in_domain], ys[in_domain]

        # edges[b] <= x < edges[b + 1]
        idx = np.searchsorted(edges, xs, side='right') - 1
        idx = np.clip(idx, 0, buckets - 1)

        counts = np.bincount(idx, minlength=buckets)
        sums = np.bincount(idx, weights=ys, minlength=buckets)

        values = np.full(buckets, np.nan)
        keep = (counts >= min_bucket_population) & (counts > 0)
        values[keep] = sums[keep] / counts[keep]

        logger.debug(
            f"Resampled {len(in_domain)} samples ({int(in_domain.sum())} in domain) "
            f"into {int(keep.sum())}/{buckets} buckets"
        )
        return cls(min_x, max_x, values, counts)

    @property
    def buckets(self) -> int:
        """Total number of buckets, populated or not."""
        return len(self._values)

    def midpoints(self) -> NDArray[np.float64]:
        """Midpoints of all buckets."""
        n = self.buckets
        span = self.max_x - self.min_x
        return self.min_x + span * ((np.arange(n) + 0.5) / n)

    def iter(self) -> Iterator[Tuple[float, float]]:
        """Yield (midpoint, value) for populated buckets in ascending order."""
        n = self.buckets
        span = self.max_x - self.min_x
        for ix, v in enumerate(self._values):
            if np.isnan(v):
                continue
            yield self.min_x + span * ((ix + 0.5) / n), float(v)

    def __iter__(self) -> Iterator[Tuple[float, float]]:
        return self.iter()

    def __len__(self) -> int:
        return int(np.count_nonzero(~np.isnan(self._values)))

    @property
    def voltage(self) -> NDArray[np.float64]:
        """Midpoints of the populated buckets."""
        return self.midpoints()[~np.isnan(self._values)]

    @property
    def current(self) -> NDArray[np.float64]:
        """Mean values of the populated buckets."""
        return self._values[~np.isnan(self._values)]

    def xs(self) -> NDArray[np.float64]:
        return self.voltage

    def ys(self) -> NDArray[np.float64]:
        return self.current

    def __repr__(self) -> str:
        return (f"BucketedFunction([{self.min_x}, {self.max_x}), "
                f"{len(self)}/{self.buckets} buckets)")


__all__ = [
    'BucketedFunction',
    'as_xy_arrays',
    'Points',
]
