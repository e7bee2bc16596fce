from typing import Optional, Union

import polars as pl
from tabulate import tabulate

from .config import SENTINEL, HistogramDefinition
from .cut import CutHandler
from .errors import HistViewError, NotFound
from .histo1d import Histogram1D
from .histo2d import Histogram2D
from .log import get_logger

logger = get_logger(__name__)

HistogramEntry = Union[Histogram1D, Histogram2D]


class Histogrammer:
    """
    Name-keyed store of 1D and 2D histograms.

    Adding under an existing name replaces the old histogram. Filling an
    existing name adds to it, which is how summed spectra are built from
    several columns.
    """

    def __init__(self):
        self.histogram_list: dict[str, HistogramEntry] = {}

    def __len__(self):
        return len(self.histogram_list)

    def __contains__(self, name):
        return name in self.histogram_list

    def names(self) -> list:
        return sorted(self.histogram_list)

    def get(self, name: str) -> Optional[HistogramEntry]:
        return self.histogram_list.get(name)

    def remove(self, name: str):
        if name not in self.histogram_list:
            raise NotFound(f"no histogram named '{name}'")
        del self.histogram_list[name]

    def _store(self, name: str, hist: HistogramEntry) -> HistogramEntry:
        if name in self.histogram_list:
            logger.debug(f"Replacing histogram '{name}'")
        else:
            logger.debug(f"Created histogram '{name}'")
        self.histogram_list[name] = hist
        return hist

    def add_hist1d(self, name: str, bins: int, range: tuple) -> Histogram1D:
        return self._store(name, Histogram1D(bins, range, name=name))

    def add_hist2d(self, name: str, x_bins: int, x_range: tuple, y_bins: int, y_range: tuple) -> Histogram2D:
        return self._store(name, Histogram2D(x_bins, x_range, y_bins, y_range, name=name))

    def fill_hist1d(self, name: str, data) -> int:
        hist = self.get(name)
        if not isinstance(hist, Histogram1D):
            raise NotFound(f"no 1D histogram named '{name}'")
        return hist.fill_many(data)

    def fill_hist2d(self, name: str, x_data, y_data) -> int:
        hist = self.get(name)
        if not isinstance(hist, Histogram2D):
            raise NotFound(f"no 2D histogram named '{name}'")
        return hist.fill_many(x_data, y_data)

    def fill_hist1d_from_polars(self, name: str, df: pl.DataFrame, column_name: str) -> bool:
        """Fill from a DataFrame column, logging and skipping on failure."""

        try:
            if column_name not in df.columns:
                raise NotFound(f"column '{column_name}' is not in the table")
            self.fill_hist1d(name, df[column_name])
        except HistViewError as error:
            logger.error(f"Failed to fill histogram '{name}' from column '{column_name}': {error}")
            return False
        return True

    def fill_hist2d_from_polars(self, name: str, df: pl.DataFrame, x_column_name: str, y_column_name: str) -> bool:
        try:
            for column in (x_column_name, y_column_name):
                if column not in df.columns:
                    raise NotFound(f"column '{column}' is not in the table")
            self.fill_hist2d(name, df[x_column_name], df[y_column_name])
        except HistViewError as error:
            logger.error(
                f"Failed to fill histogram '{name}' from columns '{x_column_name}' and '{y_column_name}': {error}"
            )
            return False
        return True

    def add_fill_hist1d_from_polars(self, name: str, df: pl.DataFrame, column_name: str, bins: int, range: tuple) -> bool:
        self.add_hist1d(name, bins, range)
        return self.fill_hist1d_from_polars(name, df, column_name)

    def add_fill_hist2d_from_polars(self, name: str, df: pl.DataFrame, x_column_name: str, x_bins: int, x_range: tuple,
                                    y_column_name: str, y_bins: int, y_range: tuple) -> bool:
        self.add_hist2d(name, x_bins, x_range, y_bins, y_range)
        return self.fill_hist2d_from_polars(name, df, x_column_name, y_column_name)

    def summary(self, tablefmt: str = "pretty") -> str:
        """Table of every histogram with its binning and full-range statistics."""

        rows = []
        for name in self.names():
            hist = self.histogram_list[name]
            if isinstance(hist, Histogram1D):
                stats = hist.statistics()
                rows.append([name, "1D", hist.bin_count, f"{hist.range}", stats.count, f"{stats.mean:.4f}", f"{stats.stdev:.4f}"])
            elif isinstance(hist, Histogram2D):
                stats = hist.statistics()
                rows.append([
                    name, "2D", f"{hist.x_bin_count}x{hist.y_bin_count}", f"{hist.x_range} x {hist.y_range}",
                    stats.count, f"({stats.mean_x:.4f}, {stats.mean_y:.4f})", f"({stats.stdev_x:.4f}, {stats.stdev_y:.4f})",
                ])

        headers = ["Histogram", "Type", "Bins", "Range", "Integral", "Mean", "Std Dev"]
        return tabulate(rows, headers, tablefmt=tablefmt)


def _has_value(column: str) -> pl.Expr:
    # null and NaN count as the sentinel
    value = pl.col(column).cast(pl.Float64)
    return (value.is_not_null() & value.is_not_nan() & (value != SENTINEL)).fill_null(False)


def _definition_filter(definition: HistogramDefinition):
    conditions = [_has_value(column) for column in definition.require]
    conditions += [~_has_value(column) for column in definition.missing]
    if not conditions:
        return None
    return pl.all_horizontal(conditions)


def build_histograms(df, definitions, cuts: Optional[CutHandler] = None) -> Histogrammer:
    """
    Build a fresh Histogrammer from a table and a list of HistogramDefinitions.

    The result is a new object; callers swap it in place of the one they were
    displaying rather than refilling it. When cuts holds bound cuts, only rows
    inside their union are used. A definition that cannot be filled (missing
    column, bad filter) is logged and skipped.
    """

    if isinstance(df, pl.LazyFrame):
        df = df.collect()

    if cuts is not None and cuts.bound_cuts():
        df = cuts.filter_df(df)
        logger.info(f"Cuts kept {df.height} rows")

    h = Histogrammer()

    for definition in definitions:
        missing_columns = [column for column in (*definition.columns, *definition.require, *definition.missing)
                           if column not in df.columns]
        if missing_columns:
            logger.error(f"Skipping histogram '{definition.name}': columns {missing_columns} are not in the table")
            continue

        condition = _definition_filter(definition)
        selected = df if condition is None else df.filter(condition)

        if definition.is_2d:
            h.add_fill_hist2d_from_polars(definition.name, selected, definition.x_column, definition.bins, definition.range,
                                          definition.y_column, definition.y_bins, definition.y_range)
        else:
            h.add_fill_hist1d_from_polars(definition.name, selected, definition.x_column, definition.bins, definition.range)

    logger.info(f"Built {len(h)} histograms from {df.height} rows")
    return h
