import math
from typing import Iterator, NamedTuple

import numpy as np

from .config import SENTINEL, validate_binning
from .data import as_float_array, valid_mask
from .errors import LengthMismatch
from .histo1d import Histogram1D
from .log import get_logger
from .statistics import EMPTY_2D, Statistics2D, bin_for, combine_axes, weighted_statistics, window_bins

logger = get_logger(__name__)


class BarData(NamedTuple):
    x: float
    y: float
    width: float
    height: float
    count: int


class Histogram2D:
    """
    Sparse 2D histogram: only populated bins are stored, keyed by (x_index, y_index).

    Memory and iteration cost follow the number of occupied bins, so nominal
    grids of 4096 x 4096 and beyond are fine. Each axis uses the same half-open
    [min, max) rule as Histogram1D and a sample is only counted when both
    coordinates are in range and neither is the sentinel.
    """

    def __init__(self, x_bins: int, x_range: tuple, y_bins: int, y_range: tuple, name: str = ""):
        self.x_bin_count, self.x_range = validate_binning(x_bins, x_range, axis="x")
        self.y_bin_count, self.y_range = validate_binning(y_bins, y_range, axis="y")
        self.x_bin_width = (self.x_range[1] - self.x_range[0]) / self.x_bin_count
        self.y_bin_width = (self.y_range[1] - self.y_range[0]) / self.y_bin_count
        self.bins: dict = {}
        self.name = name

        # Running extrema over populated bins, for colour scaling. max only ever
        # grows on a single fill; min may go stale when its bin grows and is
        # then recomputed on access.
        self._min_count = 0
        self._max_count = 0
        self._min_stale = False

    def __repr__(self):
        return (
            f"Histogram2D(name={self.name!r}, x_bins={self.x_bin_count}, x_range={self.x_range}, "
            f"y_bins={self.y_bin_count}, y_range={self.y_range}, populated={len(self.bins)})"
        )

    def _in_range(self, x: float, y: float) -> bool:
        if x == SENTINEL or y == SENTINEL:
            return False
        return self.x_range[0] <= x < self.x_range[1] and self.y_range[0] <= y < self.y_range[1]

    def fill(self, x: float, y: float):
        if not self._in_range(x, y):
            return

        x_index = min(int((x - self.x_range[0]) / self.x_bin_width), self.x_bin_count - 1)
        y_index = min(int((y - self.y_range[0]) / self.y_bin_width), self.y_bin_count - 1)
        key = (x_index, y_index)

        previous = self.bins.get(key, 0)
        count = previous + 1
        self.bins[key] = count

        if count > self._max_count:
            self._max_count = count
        if previous == 0:
            self._min_count = 1
            self._min_stale = False
        elif previous == self._min_count:
            self._min_stale = True

    def fill_many(self, xs, ys) -> int:
        """
        Fill from two columns of equal length; returns the number of counted pairs.

        Raises LengthMismatch before touching any bin when the lengths differ.
        """
        x_data = as_float_array(xs)
        y_data = as_float_array(ys)

        if x_data.size != y_data.size:
            raise LengthMismatch(f"x has {x_data.size} values but y has {y_data.size}")

        mask = valid_mask(x_data, y_data)
        mask &= (x_data >= self.x_range[0]) & (x_data < self.x_range[1])
        mask &= (y_data >= self.y_range[0]) & (y_data < self.y_range[1])
        x_data = x_data[mask]
        y_data = y_data[mask]

        if x_data.size:
            x_indices = np.minimum(((x_data - self.x_range[0]) / self.x_bin_width).astype(np.int64), self.x_bin_count - 1)
            y_indices = np.minimum(((y_data - self.y_range[0]) / self.y_bin_width).astype(np.int64), self.y_bin_count - 1)

            pairs, counts = np.unique(np.stack([x_indices, y_indices], axis=1), axis=0, return_counts=True)

            for (x_index, y_index), count in zip(pairs.tolist(), counts.tolist()):
                key = (x_index, y_index)
                self.bins[key] = self.bins.get(key, 0) + count

        self.update_min_max()

        logger.debug(f"Filled {self.name or 'histogram'} with {x_data.size} pairs, {len(self.bins)} bins populated")
        return int(x_data.size)

    def update_min_max(self):
        """Full rescan of populated bins."""

        if self.bins:
            counts = self.bins.values()
            self._min_count = min(counts)
            self._max_count = max(counts)
        else:
            self._min_count = 0
            self._max_count = 0
        self._min_stale = False

    @property
    def min_count(self) -> int:
        if self._min_stale:
            self.update_min_max()
        return self._min_count

    @property
    def max_count(self) -> int:
        return self._max_count

    def populated_bins(self) -> Iterator[tuple]:
        for (x_index, y_index), count in self.bins.items():
            if count:
                yield x_index, y_index, count

    def bin_rect(self, x_index: int, y_index: int) -> tuple:
        """(x_center, y_center, width, height) of a bin."""

        x_center = self.x_range[0] + (x_index + 0.5) * self.x_bin_width
        y_center = self.y_range[0] + (y_index + 0.5) * self.y_bin_width
        return x_center, y_center, self.x_bin_width, self.y_bin_width

    def bar_data(self) -> list:
        bars = []
        for x_index, y_index, count in self.populated_bins():
            x, y, width, height = self.bin_rect(x_index, y_index)
            bars.append(BarData(x, y, width, height, count))
        return bars

    def bin_index_for(self, x: float, y: float):
        """Bin pair under a query point, upper edges included; None outside either range."""

        if math.isnan(x) or math.isnan(y):
            return None
        if not (self.x_range[0] <= x <= self.x_range[1] and self.y_range[0] <= y <= self.y_range[1]):
            return None
        return bin_for(x, self.x_range, self.x_bin_count), bin_for(y, self.y_range, self.y_bin_count)

    @property
    def integral(self) -> int:
        return sum(self.bins.values())

    def _populated_arrays(self):
        if not self.bins:
            empty = np.empty(0, dtype=np.int64)
            return empty, empty, np.empty(0, dtype=np.uint64)
        keys = np.array(list(self.bins.keys()), dtype=np.int64)
        counts = np.fromiter(self.bins.values(), dtype=np.uint64, count=len(self.bins))
        return keys[:, 0], keys[:, 1], counts

    def _window_selection(self, x_window, y_window):
        x_first, x_last = window_bins(self.x_range, self.x_bin_count, *(x_window or (None, None)))
        y_first, y_last = window_bins(self.y_range, self.y_bin_count, *(y_window or (None, None)))

        x_indices, y_indices, counts = self._populated_arrays()
        selected = (x_indices >= x_first) & (x_indices <= x_last) & (y_indices >= y_first) & (y_indices <= y_last)
        return x_indices[selected], y_indices[selected], counts[selected]

    def statistics(self, x_window: tuple = None, y_window: tuple = None) -> Statistics2D:
        """
        Count, means and standard deviations over the bins overlapping both windows.

        Like Histogram1D.statistics, uses bin centers, so the moments are
        approximate to within half a bin width per axis.
        """
        x_indices, y_indices, counts = self._window_selection(x_window, y_window)
        if counts.size == 0:
            return EMPTY_2D

        x_centers = self.x_range[0] + (x_indices + 0.5) * self.x_bin_width
        y_centers = self.y_range[0] + (y_indices + 0.5) * self.y_bin_width

        return combine_axes(weighted_statistics(x_centers, counts), weighted_statistics(y_centers, counts))

    def x_projection(self, y_window: tuple = None) -> Histogram1D:
        """Bin contents summed over y (restricted to y_window) into an x histogram."""

        x_indices, _, counts = self._window_selection(None, y_window)
        projection = Histogram1D(self.x_bin_count, self.x_range, name=f"{self.name}_x_projection")
        np.add.at(projection.bins, x_indices, counts)
        return projection

    def y_projection(self, x_window: tuple = None) -> Histogram1D:
        """Bin contents summed over x (restricted to x_window) into a y histogram."""

        _, y_indices, counts = self._window_selection(x_window, None)
        projection = Histogram1D(self.y_bin_count, self.y_range, name=f"{self.name}_y_projection")
        np.add.at(projection.bins, y_indices, counts)
        return projection

    def reset(self):
        self.bins.clear()
        self.update_min_max()
