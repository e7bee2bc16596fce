"""
Windowed statistics computed from histogram bin contents.

Nothing here looks at raw samples: every bin contributes its count at the bin
center. The mean and standard deviation are therefore an approximation of the
sample statistics, good to within half a bin width, and they are population
statistics (divide by N, not N - 1).
"""

import math
from typing import NamedTuple

import numpy as np


class Statistics1D(NamedTuple):
    count: int
    mean: float
    stdev: float


class Statistics2D(NamedTuple):
    count: int
    mean_x: float
    mean_y: float
    stdev_x: float
    stdev_y: float


EMPTY_1D = Statistics1D(0, 0.0, 0.0)
EMPTY_2D = Statistics2D(0, 0.0, 0.0, 0.0, 0.0)


def bin_for(x: float, range: tuple, bin_count: int) -> int:
    """Bin holding a query point already known to lie in [min, max]; max maps to the last bin."""

    low, high = range
    bin_width = (high - low) / bin_count
    return min(int(math.floor((x - low) / bin_width)), bin_count - 1)


def window_bins(range: tuple, bin_count: int, start: float = None, end: float = None) -> tuple:
    """
    First and last bin (inclusive) overlapping the window [start, end].

    None means open on that side. A window that misses the axis, or whose
    start lies after its end, gives first > last.
    """

    low, high = range

    if start is None:
        start = low
    if end is None:
        end = high

    if math.isnan(start) or math.isnan(end):
        return 1, 0

    if start < low:
        first = 0
    elif start > high:
        first = bin_count
    else:
        first = bin_for(start, range, bin_count)

    if end > high:
        last = bin_count - 1
    elif end < low:
        last = -1
    else:
        last = bin_for(end, range, bin_count)

    return first, last


def weighted_statistics(values, counts) -> Statistics1D:
    """Population count/mean/stdev of values weighted by integer counts."""

    counts = np.asarray(counts)
    total = int(np.sum(counts, dtype=np.uint64))
    if total == 0:
        return EMPTY_1D

    values = np.asarray(values, dtype=np.float64)
    weights = counts.astype(np.float64)

    mean = float(np.dot(weights, values) / total)
    variance = float(np.dot(weights, (values - mean) ** 2) / total)

    return Statistics1D(total, mean, math.sqrt(variance))


def combine_axes(x_stats: Statistics1D, y_stats: Statistics1D) -> Statistics2D:
    if x_stats.count == 0:
        return EMPTY_2D
    return Statistics2D(x_stats.count, x_stats.mean, y_stats.mean, x_stats.stdev, y_stats.stdev)
