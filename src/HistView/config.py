import json
import math
from dataclasses import dataclass, field
from typing import Optional

from .errors import InvalidConfiguration

# Value written by the event builder in place of a missing measurement.
SENTINEL = -1e6

LOG_LEVEL_ENV = "HISTVIEW_LOG_LEVEL"


def validate_binning(bins, range, axis: str = "x"):
    """Return (bins, (low, high)) as (int, (float, float)) or raise InvalidConfiguration."""

    if isinstance(bins, bool) or not hasattr(bins, "__index__"):
        raise InvalidConfiguration(f"{axis} bin count must be an integer, got {bins!r}")
    bins = int(bins)
    if bins <= 0:
        raise InvalidConfiguration(f"{axis} bin count must be positive, got {bins}")

    try:
        low, high = (float(edge) for edge in range)
    except (TypeError, ValueError):
        raise InvalidConfiguration(f"{axis} range must be a (min, max) pair, got {range!r}") from None

    if not (math.isfinite(low) and math.isfinite(high)):
        raise InvalidConfiguration(f"{axis} range must be finite, got ({low}, {high})")
    if high <= low:
        raise InvalidConfiguration(f"{axis} range is inverted or empty: ({low}, {high})")
    if (high - low) / bins <= 0.0:
        raise InvalidConfiguration(f"{axis} bin width underflows for {bins} bins over ({low}, {high})")

    return bins, (low, high)


@dataclass
class HistogramDefinition:
    """
    Describes one histogram to build from a table.

    A definition with a y_column is a 2D histogram. require lists columns that
    must hold a real value for a row to be used; missing lists columns that must
    hold the sentinel (e.g. "only the first wire plane fired").
    """

    name: str
    x_column: str
    bins: int
    range: tuple
    y_column: Optional[str] = None
    y_bins: Optional[int] = None
    y_range: Optional[tuple] = None
    require: tuple = field(default_factory=tuple)
    missing: tuple = field(default_factory=tuple)

    def __post_init__(self):
        if not self.name:
            raise InvalidConfiguration("histogram definition needs a name")
        if not self.x_column:
            raise InvalidConfiguration(f"histogram '{self.name}' needs an x column")

        self.bins, self.range = validate_binning(self.bins, self.range, axis="x")

        if self.y_column is not None:
            if self.y_bins is None or self.y_range is None:
                raise InvalidConfiguration(f"2D histogram '{self.name}' needs y_bins and y_range")
            self.y_bins, self.y_range = validate_binning(self.y_bins, self.y_range, axis="y")
        elif self.y_bins is not None or self.y_range is not None:
            raise InvalidConfiguration(f"histogram '{self.name}' has y binning but no y column")

        self.require = tuple(self.require)
        self.missing = tuple(self.missing)

    @property
    def is_2d(self) -> bool:
        return self.y_column is not None

    @property
    def columns(self) -> list:
        columns = [self.x_column]
        if self.is_2d:
            columns.append(self.y_column)
        return columns

    def to_dict(self) -> dict:
        data = {"name": self.name, "x_column": self.x_column, "bins": self.bins, "range": list(self.range)}
        if self.is_2d:
            data.update(y_column=self.y_column, y_bins=self.y_bins, y_range=list(self.y_range))
        if self.require:
            data["require"] = list(self.require)
        if self.missing:
            data["missing"] = list(self.missing)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "HistogramDefinition":
        if not isinstance(data, dict):
            raise InvalidConfiguration(f"histogram definition must be an object, got {type(data).__name__}")
        for key in ("name", "x_column", "bins", "range"):
            if key not in data:
                raise InvalidConfiguration(f"histogram definition is missing '{key}': {data}")
        known = {"name", "x_column", "bins", "range", "y_column", "y_bins", "y_range", "require", "missing"}
        unknown = set(data) - known
        if unknown:
            raise InvalidConfiguration(f"unknown keys in histogram definition '{data['name']}': {sorted(unknown)}")
        return cls(**data)


def load_histogram_definitions(filepath) -> list:
    with open(filepath, "r") as input_file:
        try:
            content = json.load(input_file)
        except json.JSONDecodeError as error:
            raise InvalidConfiguration(f"{filepath} is not valid JSON: {error}") from error

    if not isinstance(content, list):
        raise InvalidConfiguration(f"{filepath} must contain a list of histogram definitions")

    return [HistogramDefinition.from_dict(item) for item in content]


def write_histogram_definitions(definitions, filepath):
    with open(filepath, "w") as output:
        json.dump([definition.to_dict() for definition in definitions], output, indent=4)


def _sps_histograms() -> list:
    position = (-300.0, 300.0)
    energy = (0.0, 4096.0)
    both_planes = ("X1", "X2")

    definitions = [
        HistogramDefinition("X1", "X1", 600, position),
        HistogramDefinition("X2", "X2", 600, position),
        HistogramDefinition("X2_X1", "X1", 600, position, y_column="X2", y_bins=600, y_range=position),
        HistogramDefinition("X1_bothplanes", "X1", 600, position, require=both_planes),
        HistogramDefinition("X2_bothplanes", "X2", 600, position, require=both_planes),
        HistogramDefinition("Xavg_bothplanes", "Xavg", 600, position, require=both_planes),
        HistogramDefinition("X1_only1plane", "X1", 600, position, require=("X1",), missing=("X2",)),
        HistogramDefinition("X2_only1plane", "X2", 600, position, require=("X2",), missing=("X1",)),
        HistogramDefinition("Theta_Xavg_bothplanes", "Xavg", 600, position,
                            y_column="Theta", y_bins=300, y_range=(0.0, math.pi / 2), require=both_planes),
    ]

    for scint in ("ScintLeft", "ScintRight"):
        for detector in ("AnodeBack", "AnodeFront", "Cathode"):
            definitions.append(
                HistogramDefinition(f"{detector}_{scint}", f"{scint}Energy", 256, energy,
                                    y_column=f"{detector}Energy", y_bins=256, y_range=energy)
            )

    for detector in ("ScintLeft", "ScintRight", "AnodeBack", "AnodeFront", "Cathode"):
        for plane in ("X1", "X2", "Xavg"):
            definitions.append(
                HistogramDefinition(f"{detector}_{plane}", plane, 600, position,
                                    y_column=f"{detector}Energy", y_bins=256, y_range=energy)
            )

    return definitions


# Focal-plane histograms for the split-pole spectrograph.
SPS_HISTOGRAMS = _sps_histograms()
