import math

import numpy as np

from .config import SENTINEL, validate_binning
from .data import as_float_array, valid_mask
from .log import get_logger
from .statistics import EMPTY_1D, Statistics1D, bin_for, weighted_statistics, window_bins

logger = get_logger(__name__)


class Histogram1D:
    """
    Fixed bin count histogram over [min, max).

    A sample v lands in bin floor((v - min) / bin_width) when min <= v < max.
    Samples outside the range, NaN, or equal to the sentinel are dropped silently.
    """

    def __init__(self, bins: int, range: tuple, name: str = ""):
        self.bin_count, self.range = validate_binning(bins, range)
        self.bin_width = (self.range[1] - self.range[0]) / self.bin_count
        self.bins = np.zeros(self.bin_count, dtype=np.uint64)
        self.name = name

    def __repr__(self):
        return f"Histogram1D(name={self.name!r}, bins={self.bin_count}, range={self.range}, integral={self.integral})"

    def _sample_bin(self, value: float) -> int:
        index = int((value - self.range[0]) / self.bin_width)
        return min(index, self.bin_count - 1)  # rounding just below max can land on bin_count

    def fill(self, value: float):
        if value == SENTINEL:
            return
        if self.range[0] <= value < self.range[1]:
            self.bins[self._sample_bin(value)] += 1

    def fill_many(self, values) -> int:
        """Fill from a whole column; returns the number of samples that were counted."""

        data = as_float_array(values)
        data = data[valid_mask(data)]
        data = data[(data >= self.range[0]) & (data < self.range[1])]

        indices = ((data - self.range[0]) / self.bin_width).astype(np.int64)
        np.minimum(indices, self.bin_count - 1, out=indices)

        self.bins += np.bincount(indices, minlength=self.bin_count).astype(np.uint64)

        logger.debug(f"Filled {self.name or 'histogram'} with {data.size} samples")
        return int(data.size)

    def bin_index_for(self, x: float):
        """
        Bin under a query point such as a cursor position.

        Unlike filling, the upper edge is included: x == max maps to the last bin.
        Returns None outside [min, max].
        """
        if math.isnan(x) or x < self.range[0] or x > self.range[1]:
            return None
        return bin_for(x, self.range, self.bin_count)

    def statistics(self, window_start: float = None, window_end: float = None) -> Statistics1D:
        """
        Integral, mean and standard deviation over the bins overlapping the window.

        Computed from bin centers weighted by bin counts, so mean and stdev are
        approximate (within half a bin width) population statistics.
        """
        first, last = window_bins(self.range, self.bin_count, window_start, window_end)
        if first > last:
            return EMPTY_1D
        return weighted_statistics(self.centers[first:last + 1], self.bins[first:last + 1])

    @property
    def edges(self) -> np.ndarray:
        return self.range[0] + np.arange(self.bin_count + 1) * self.bin_width

    @property
    def centers(self) -> np.ndarray:
        return self.range[0] + (np.arange(self.bin_count) + 0.5) * self.bin_width

    @property
    def integral(self) -> int:
        return int(np.sum(self.bins, dtype=np.uint64))

    def step_points(self) -> np.ndarray:
        """(x, count) pairs at the start and end of every bin, ready for a step line."""

        edges = self.edges
        points = np.empty((2 * self.bin_count, 2), dtype=np.float64)
        points[0::2, 0] = edges[:-1]
        points[1::2, 0] = edges[1:]
        points[0::2, 1] = self.bins
        points[1::2, 1] = self.bins
        return points

    def reset(self):
        self.bins[:] = 0
