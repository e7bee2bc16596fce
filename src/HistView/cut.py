"""
Polygon cuts on pairs of columns.

Cut2D is a polygon bound to an (x column, y column) pair. CutHandler keeps the
cuts of a session, tracks the one being edited, and turns all bound cuts into
one row mask (their union) to filter a polars DataFrame.

Containment is the even-odd ray-casting rule with half-open edges: a ray is
cast from the point towards +x, an edge from (x_i, y_i) to (x_j, y_j) is
crossed when (y_i > y) != (y_j > y) and the crossing lies strictly to the
right of the point. On an axis-aligned rectangle this puts the left and bottom
edges inside and the right and top edges outside, so neighbouring cuts that
share an edge never both claim a point on it.
"""

import json
from typing import Mapping, Optional

import numpy as np
import polars as pl
from matplotlib.path import Path

from .data import as_float_array, valid_mask
from .errors import InvalidConfiguration, LengthMismatch, NotFound
from .log import get_logger

logger = get_logger(__name__)


def points_in_polygon(vertices: np.ndarray, x: np.ndarray, y: np.ndarray) -> np.ndarray:
    inside = np.zeros(x.shape, dtype=bool)
    if len(vertices) < 3:
        return inside

    x_vertices = vertices[:, 0]
    y_vertices = vertices[:, 1]

    j = len(vertices) - 1
    for i in range(len(vertices)):
        xi, yi = x_vertices[i], y_vertices[i]
        xj, yj = x_vertices[j], y_vertices[j]

        straddles = (yi > y) != (yj > y)
        if straddles.any():
            # yi != yj wherever straddles holds, the other rows are masked out
            with np.errstate(divide="ignore", invalid="ignore"):
                x_crossing = xi + (y - yi) * (xj - xi) / (yj - yi)
            inside ^= straddles & (x < x_crossing)
        j = i

    return inside


class Cut2D:
    """
    Polygon cut bound to an x and a y column.

    Fewer than 3 vertices contain nothing. Self-intersecting polygons give the
    even-odd answer.
    """

    def __init__(self, vertices=None, x_column: Optional[str] = None, y_column: Optional[str] = None, name: str = "cut"):
        self.vertices: list[tuple[float, float]] = [(float(x), float(y)) for x, y in ([] if vertices is None else vertices)]
        self.x_column = x_column
        self.y_column = y_column
        self.name = name

    def __repr__(self):
        return f"Cut2D(name={self.name!r}, x_column={self.x_column!r}, y_column={self.y_column!r}, vertices={len(self.vertices)})"

    def __eq__(self, other):
        if not isinstance(other, Cut2D):
            return NotImplemented
        return (self.vertices, self.x_column, self.y_column, self.name) == (
            other.vertices, other.x_column, other.y_column, other.name)

    def add_vertex(self, point: tuple):
        x, y = point
        self.vertices.append((float(x), float(y)))

    def remove_vertex(self, index: int) -> tuple:
        return self.vertices.pop(index)

    def remove_nearest_vertex(self, point: tuple) -> Optional[int]:
        """Delete the vertex closest to point; returns its index, or None when empty."""

        if not self.vertices:
            return None
        x, y = point
        distances = [(vx - x) ** 2 + (vy - y) ** 2 for vx, vy in self.vertices]
        index = int(np.argmin(distances))
        self.vertices.pop(index)
        return index

    def clear(self):
        self.vertices.clear()

    def is_bound(self) -> bool:
        return self.x_column is not None and self.y_column is not None

    def get_vertices(self) -> np.ndarray:
        return np.array(self.vertices, dtype=np.float64).reshape(-1, 2)

    @property
    def path(self) -> Path:
        """Closed matplotlib Path of the polygon, for drawing."""

        vertices = self.get_vertices()
        if len(vertices) == 0:
            return Path(np.empty((0, 2)))
        return Path(np.vstack([vertices, vertices[:1]]), closed=True)

    def contains(self, x: float, y: float) -> bool:
        return bool(self.contains_points([x], [y])[0])

    def contains_points(self, xs, ys) -> np.ndarray:
        """Vectorized contains; rows where either coordinate is the sentinel or NaN are outside."""

        x_data = as_float_array(xs)
        y_data = as_float_array(ys)
        if x_data.size != y_data.size:
            raise LengthMismatch(f"x has {x_data.size} values but y has {y_data.size}")

        return points_in_polygon(self.get_vertices(), x_data, y_data) & valid_mask(x_data, y_data)

    def is_cols_inside(self, df: pl.DataFrame) -> pl.Series:
        """Boolean Series over the rows of df using the bound columns."""

        if not self.is_bound():
            raise NotFound(f"cut '{self.name}' is not bound to an x and a y column")
        for column in (self.x_column, self.y_column):
            if column not in df.columns:
                raise NotFound(f"column '{column}' used by cut '{self.name}' is not in the table")
        return pl.Series(self.name, self.contains_points(df[self.x_column], df[self.y_column]))

    def default_filename(self) -> str:
        if self.is_bound():
            return f"{self.y_column}_{self.x_column}_cut.json"
        return "cut.json"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "vertices": [list(vertex) for vertex in self.vertices],
            "x_column": self.x_column,
            "y_column": self.y_column,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Cut2D":
        if not isinstance(data, dict) or "vertices" not in data:
            raise InvalidConfiguration("cut data needs a 'vertices' list")

        try:
            vertices = [(float(x), float(y)) for x, y in data["vertices"]]
        except (TypeError, ValueError):
            raise InvalidConfiguration(f"cut vertices must be [x, y] pairs, got {data['vertices']!r}") from None

        # files saved by the egui viewer use the selected_* keys
        x_column = data.get("x_column", data.get("selected_x_column"))
        y_column = data.get("y_column", data.get("selected_y_column"))

        return cls(vertices, x_column=x_column, y_column=y_column, name=data.get("name", "cut"))

    def to_json_str(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json_str(cls, json_str: str) -> "Cut2D":
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as error:
            raise InvalidConfiguration(f"cut is not valid JSON: {error}") from error
        return cls.from_dict(data)


def write_cut_json(cut: Cut2D, filepath):
    with open(filepath, "w") as output:
        output.write(cut.to_json_str())
    logger.info(f"Cut '{cut.name}' saved to {filepath}")


def load_cut_json(filepath) -> Cut2D:
    with open(filepath, "r") as input_file:
        cut = Cut2D.from_json_str(input_file.read())
    logger.info(f"Loaded cut '{cut.name}' from {filepath}")
    return cut


class CutHandler:
    """
    The cuts of a session, keyed by an integer id.

    Ids come from a counter and are never handed out twice, even after a
    removal. The row mask is the logical OR of every bound cut; unbound cuts
    are skipped, and a handler with no bound cuts selects nothing.
    """

    def __init__(self):
        self.cuts: dict[int, Cut2D] = {}
        self.active_id: Optional[int] = None
        self._next_id = 0

    def __len__(self):
        return len(self.cuts)

    def __contains__(self, cut_id):
        return cut_id in self.cuts

    def __getitem__(self, cut_id) -> Cut2D:
        try:
            return self.cuts[cut_id]
        except KeyError:
            raise NotFound(f"no cut with id {cut_id}") from None

    def add(self, cut: Cut2D) -> int:
        cut_id = self._next_id
        self._next_id += 1
        self.cuts[cut_id] = cut
        self.active_id = cut_id
        return cut_id

    def add_cut(self, vertices=None, x_column: Optional[str] = None, y_column: Optional[str] = None) -> int:
        """Create a cut (empty by default), make it the active one and return its id."""

        return self.add(Cut2D(vertices, x_column=x_column, y_column=y_column, name=f"cut_{self._next_id}"))

    def onselect(self, vertices: list[tuple[float, float]]):
        """Callback for matplotlib's PolygonSelector."""

        self.add_cut(vertices)

    def remove(self, cut_id: int):
        if cut_id not in self.cuts:
            raise NotFound(f"no cut with id {cut_id}")
        del self.cuts[cut_id]
        if self.active_id == cut_id:
            self.active_id = None

    def set_active(self, cut_id: Optional[int]):
        if cut_id is not None and cut_id not in self.cuts:
            raise NotFound(f"no cut with id {cut_id}")
        self.active_id = cut_id

    @property
    def active(self) -> Optional[Cut2D]:
        if self.active_id is None:
            return None
        return self.cuts[self.active_id]

    def bound_cuts(self) -> list:
        return [cut for cut in self.cuts.values() if cut.is_bound()]

    def load(self, filepath) -> int:
        return self.add(load_cut_json(filepath))

    def save(self, cut_id: int, filepath=None):
        cut = self[cut_id]
        write_cut_json(cut, filepath if filepath is not None else cut.default_filename())

    def row_mask(self, table) -> np.ndarray:
        """
        One bool per row: True when some bound cut contains the row's (x, y).

        table is a polars DataFrame or a mapping of column name to values.
        Every referenced column must exist (NotFound) and have the same length
        (LengthMismatch).
        """
        cuts = self.bound_cuts()

        columns = {}
        for cut in cuts:
            for name in (cut.x_column, cut.y_column):
                if name in columns:
                    continue
                if name not in _column_names(table):
                    raise NotFound(f"column '{name}' used by cut '{cut.name}' is not in the table")
                columns[name] = as_float_array(table[name])

        lengths = {name: values.size for name, values in columns.items()}
        if len(set(lengths.values())) > 1:
            raise LengthMismatch(f"cut columns differ in length: {lengths}")

        rows = next(iter(lengths.values())) if lengths else _table_height(table)

        mask = np.zeros(rows, dtype=bool)
        for cut in cuts:
            mask |= cut.contains_points(columns[cut.x_column], columns[cut.y_column])

        return mask

    def filter_table(self, table: pl.DataFrame, mask) -> pl.DataFrame:
        """Rows of table where mask is True; the mask must have one entry per row."""

        mask = np.asarray(mask, dtype=bool)
        if mask.size != table.height:
            raise LengthMismatch(f"mask has {mask.size} entries but the table has {table.height} rows")
        return table.filter(pl.Series("mask", mask))

    def filter_df(self, df: pl.DataFrame) -> pl.DataFrame:
        return self.filter_table(df, self.row_mask(df))


def _column_names(table) -> list:
    if isinstance(table, pl.DataFrame):
        return table.columns
    return list(table.keys())


def _table_height(table) -> int:
    if isinstance(table, pl.DataFrame):
        return table.height
    if isinstance(table, Mapping) and table:
        return as_float_array(next(iter(table.values()))).size
    return 0
