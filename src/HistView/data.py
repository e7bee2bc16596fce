import numpy as np
import polars as pl

from .config import SENTINEL


def as_float_array(values) -> np.ndarray:
    """
    Coerce a column into a flat float64 numpy array.

    Accepts a numpy array, a polars Series, a list of polars Series (concatenated,
    e.g. the same quantity from several detectors) or any sequence of numbers.
    Polars nulls come back as NaN.
    """

    if isinstance(values, np.ndarray):
        return np.asarray(values, dtype=np.float64).ravel()

    if isinstance(values, pl.Series):  # nulls become NaN once cast to float
        return values.cast(pl.Float64).to_numpy().astype(np.float64, copy=False)

    if isinstance(values, (list, tuple)) and values and all(isinstance(item, pl.Series) for item in values):
        return np.concatenate([as_float_array(item) for item in values])

    return np.asarray(values, dtype=np.float64).ravel()


def valid_mask(*columns: np.ndarray) -> np.ndarray:
    """True where every column holds a real value (not the sentinel, not NaN)."""

    mask = np.ones(columns[0].shape, dtype=bool)
    for column in columns:
        mask &= (column != SENTINEL) & ~np.isnan(column)
    return mask
