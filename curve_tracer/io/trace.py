"""
Containers for raw curve tracer sweeps.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Tuple

import numpy as np
from numpy.typing import NDArray


@dataclass
class RawTrace:
    """
    One sweep of (voltage, current) samples.

    Sample order carries no meaning; only the pairing of voltage and
    current does.

    Attributes
    ----------
    voltage : ndarray of float
        Voltages [V]
    current : ndarray of float
        Currents [A], same length as voltage
    """
    voltage: NDArray[np.float64]
    current: NDArray[np.float64]

    def __post_init__(self):
        self.voltage = np.asarray(self.voltage, dtype=float).reshape(-1)
        self.current = np.asarray(self.current, dtype=float).reshape(-1)
        if self.voltage.shape != self.current.shape:
            raise ValueError(
                f"voltage and current lengths differ: "
                f"{len(self.voltage)} != {len(self.current)}"
            )

    @classmethod
    def from_points(cls, points: Iterable[Tuple[float, float]]) -> 'RawTrace':
        pairs = list(points)
        if not pairs:
            return cls(np.empty(0), np.empty(0))
        arr = np.array(pairs, dtype=float)
        return cls(arr[:, 0], arr[:, 1])

    def iter(self) -> Iterator[Tuple[float, float]]:
        """Yield (voltage, current) pairs."""
        for v, i in zip(self.voltage, self.current):
            yield float(v), float(i)

    def __iter__(self) -> Iterator[Tuple[float, float]]:
        return self.iter()

    def __len__(self) -> int:
        return len(self.voltage)

    def points(self) -> NDArray[np.float64]:
        """Samples as an (n, 2) array."""
        return np.column_stack([self.voltage, self.current])

    def finite(self) -> 'RawTrace':
        """Copy without NaN/inf samples."""
        mask = np.isfinite(self.voltage) & np.isfinite(self.current)
        return RawTrace(self.voltage[mask], self.current[mask])


__all__ = ['RawTrace']
