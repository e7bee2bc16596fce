"""Tests for polygon cuts and the cut handler."""
import json
import math

import numpy as np
import polars as pl
import pytest

from HistView import (
    SENTINEL,
    Cut2D,
    CutHandler,
    InvalidConfiguration,
    LengthMismatch,
    NotFound,
    load_cut_json,
    write_cut_json,
)

SQUARE = [(0, 0), (10, 0), (10, 10), (0, 10)]
L_SHAPE = [(0, 0), (10, 0), (10, 4), (4, 4), (4, 10), (0, 10)]


class TestContains:
    def test_square(self):
        cut = Cut2D(SQUARE)
        assert cut.contains(5, 5) is True
        assert cut.contains(15, 5) is False

    @pytest.mark.parametrize("point, expected", [
        ((0, 5), True),
        ((5, 0), True),
        ((0, 0), True),
        ((10, 5), False),
        ((5, 10), False),
        ((10, 10), False),
    ])
    def test_half_open_edges(self, point, expected):
        assert Cut2D(SQUARE).contains(*point) is expected

    def test_shared_edge_claimed_once(self):
        left = Cut2D(SQUARE)
        right = Cut2D([(10, 0), (20, 0), (20, 10), (10, 10)])
        ys = np.linspace(0.5, 9.5, 10)
        xs = np.full_like(ys, 10.0)
        assert not np.any(left.contains_points(xs, ys) & right.contains_points(xs, ys))
        assert np.all(left.contains_points(xs, ys) | right.contains_points(xs, ys))

    def test_vertex_order_does_not_matter(self):
        assert Cut2D(list(reversed(SQUARE))).contains(5, 5)

    def test_non_convex(self):
        cut = Cut2D(L_SHAPE)
        assert cut.contains(2, 8)
        assert cut.contains(8, 2)
        assert not cut.contains(8, 8)

    @pytest.mark.parametrize("vertices", [[], [(0, 0)], [(0, 0), (10, 10)]])
    def test_degenerate_contains_nothing(self, vertices):
        cut = Cut2D(vertices)
        assert cut.contains(0, 0) is False
        assert not cut.contains_points([0.0, 5.0], [0.0, 5.0]).any()

    def test_self_intersecting_does_not_raise(self):
        bowtie = Cut2D([(0, 0), (10, 10), (10, 0), (0, 10)])
        assert isinstance(bowtie.contains(5, 5), bool)
        assert bowtie.contains(9, 5)

    def test_sentinel_and_nan_outside(self):
        huge = Cut2D([(-2e6, -2e6), (2e6, -2e6), (2e6, 2e6), (-2e6, 2e6)])
        assert huge.contains(0, 0)
        assert not huge.contains(SENTINEL, 0)
        assert not huge.contains(0, SENTINEL)
        assert not huge.contains(math.nan, 0)

    def test_vectorized_matches_scalar(self):
        rng = np.random.default_rng(2)
        xs = rng.uniform(-2, 12, 500)
        ys = rng.uniform(-2, 12, 500)
        cut = Cut2D(L_SHAPE)
        expected = [cut.contains(x, y) for x, y in zip(xs, ys)]
        np.testing.assert_array_equal(cut.contains_points(xs, ys), expected)

    def test_contains_points_length_mismatch(self):
        with pytest.raises(LengthMismatch):
            Cut2D(SQUARE).contains_points([1.0, 2.0], [1.0])


class TestEditing:
    def test_add_remove_clear(self):
        cut = Cut2D()
        for vertex in SQUARE:
            cut.add_vertex(vertex)
        assert cut.contains(5, 5)
        assert cut.remove_vertex(1) == (10.0, 0.0)
        assert len(cut.vertices) == 3
        cut.clear()
        assert cut.vertices == []
        assert not cut.contains(5, 5)

    def test_remove_nearest_vertex(self):
        cut = Cut2D(SQUARE)
        assert cut.remove_nearest_vertex((9, 9)) == 2
        assert cut.vertices == [(0.0, 0.0), (10.0, 0.0), (0.0, 10.0)]
        assert Cut2D().remove_nearest_vertex((0, 0)) is None

    def test_is_bound(self):
        assert not Cut2D(SQUARE).is_bound()
        assert not Cut2D(SQUARE, x_column="x").is_bound()
        assert Cut2D(SQUARE, x_column="x", y_column="y").is_bound()

    def test_path_is_closed(self):
        path = Cut2D(SQUARE).path
        assert len(path.vertices) == 5
        np.testing.assert_array_equal(path.vertices[0], path.vertices[-1])

    def test_default_filename(self):
        assert Cut2D(SQUARE).default_filename() == "cut.json"
        cut = Cut2D(SQUARE, x_column="ScintLeftEnergy", y_column="AnodeBackEnergy")
        assert cut.default_filename() == "AnodeBackEnergy_ScintLeftEnergy_cut.json"


class TestPersistence:
    VERTICES = [(0.1, 1 / 3), (123456.789, -1e-300), (math.pi, math.e), (-7.25, 2 ** 0.5), (1e17, 0.0)]

    def test_round_trip(self):
        cut = Cut2D(self.VERTICES, x_column="Xavg", y_column="AnodeBackEnergy", name="protons")
        loaded = Cut2D.from_json_str(cut.to_json_str())
        assert loaded.vertices == cut.vertices
        assert loaded.x_column == "Xavg"
        assert loaded.y_column == "AnodeBackEnergy"
        assert loaded == cut

    def test_file_round_trip(self, tmp_path):
        cut = Cut2D(self.VERTICES, x_column="x", y_column="y")
        filepath = tmp_path / "cut.json"
        write_cut_json(cut, filepath)
        assert load_cut_json(filepath) == cut

    def test_reads_viewer_key_names(self, tmp_path):
        filepath = tmp_path / "viewer_cut.json"
        filepath.write_text(json.dumps({
            "vertices": [[0.0, 0.0], [10.0, 0.0], [10.0, 10.0]],
            "selected_vertex_index": None,
            "selected_x_column": "ScintLeftEnergy",
            "selected_y_column": "AnodeBackEnergy",
        }))
        cut = load_cut_json(filepath)
        assert cut.x_column == "ScintLeftEnergy"
        assert cut.y_column == "AnodeBackEnergy"
        assert len(cut.vertices) == 3

    @pytest.mark.parametrize("content", ["not json", "{}", '{"vertices": [[1, 2, 3]]}', "[]"])
    def test_malformed(self, content):
        with pytest.raises(InvalidConfiguration):
            Cut2D.from_json_str(content)


class TestCutHandler:
    def test_add_cut_is_active(self):
        handler = CutHandler()
        cut_id = handler.add_cut()
        assert handler.active_id == cut_id
        assert handler.active.vertices == []
        assert len(handler) == 1

    def test_ids_not_reused(self):
        handler = CutHandler()
        first = handler.add_cut()
        second = handler.add_cut()
        handler.remove(second)
        third = handler.add_cut()
        assert len({first, second, third}) == 3

    def test_remove_active_clears_active(self):
        handler = CutHandler()
        first = handler.add_cut()
        second = handler.add_cut()
        handler.remove(second)
        assert handler.active_id is None
        handler.set_active(first)
        handler.remove(first)
        assert handler.active is None

    def test_remove_inactive_keeps_active(self):
        handler = CutHandler()
        first = handler.add_cut()
        second = handler.add_cut()
        handler.remove(first)
        assert handler.active_id == second

    def test_unknown_ids(self):
        handler = CutHandler()
        with pytest.raises(NotFound):
            handler.remove(3)
        with pytest.raises(NotFound):
            handler.set_active(3)
        with pytest.raises(NotFound):
            handler[3]
        handler.set_active(None)

    def test_onselect(self):
        handler = CutHandler()
        handler.onselect(SQUARE)
        assert handler.active.contains(5, 5)

    def test_load_and_save(self, tmp_path):
        handler = CutHandler()
        cut_id = handler.add_cut(SQUARE, x_column="x", y_column="y")
        handler.save(cut_id, tmp_path / "square.json")
        loaded_id = handler.load(tmp_path / "square.json")
        assert loaded_id != cut_id
        assert handler[loaded_id] == handler[cut_id]


class TestRowMask:
    TABLE = {"x": [5.0], "y": [5.0]}

    def test_union(self):
        handler = CutHandler()
        handler.add_cut(SQUARE, x_column="x", y_column="y")
        handler.add_cut([(20, 20), (30, 20), (30, 30)], x_column="x", y_column="y")
        assert handler.row_mask(self.TABLE).tolist() == [True]

    def test_all_cuts_exclude(self):
        handler = CutHandler()
        handler.add_cut([(20, 20), (30, 20), (30, 30)], x_column="x", y_column="y")
        handler.add_cut([(-5, -5), (-1, -5), (-1, -1)], x_column="x", y_column="y")
        assert handler.row_mask(self.TABLE).tolist() == [False]

    def test_no_cuts_selects_nothing(self):
        assert CutHandler().row_mask(self.TABLE).tolist() == [False]

    def test_unbound_cuts_are_skipped(self):
        handler = CutHandler()
        handler.add_cut(SQUARE)
        handler.add_cut(SQUARE, x_column="x")
        assert handler.row_mask(self.TABLE).tolist() == [False]

    def test_cuts_on_different_columns(self):
        table = pl.DataFrame({
            "x": [5.0, 50.0, 50.0, SENTINEL],
            "y": [5.0, 50.0, 50.0, 5.0],
            "u": [50.0, 1.0, 50.0, 1.0],
            "v": [50.0, 1.0, 50.0, 1.0],
        })
        handler = CutHandler()
        handler.add_cut(SQUARE, x_column="x", y_column="y")
        handler.add_cut([(0, 0), (2, 0), (2, 2), (0, 2)], x_column="u", y_column="v")
        assert handler.row_mask(table).tolist() == [True, True, False, True]

    def test_sentinel_rows_excluded(self):
        handler = CutHandler()
        handler.add_cut([(-2e6, -2e6), (2e6, -2e6), (2e6, 2e6), (-2e6, 2e6)], x_column="x", y_column="y")
        mask = handler.row_mask({"x": [0.0, SENTINEL, 1.0], "y": [0.0, 0.0, SENTINEL]})
        assert mask.tolist() == [True, False, False]

    def test_length_mismatch(self):
        handler = CutHandler()
        handler.add_cut(SQUARE, x_column="x", y_column="y")
        with pytest.raises(LengthMismatch):
            handler.row_mask({"x": [1.0, 2.0], "y": [1.0]})

    def test_missing_column(self):
        handler = CutHandler()
        handler.add_cut(SQUARE, x_column="x", y_column="missing")
        with pytest.raises(NotFound):
            handler.row_mask(self.TABLE)


class TestFilterTable:
    def _df(self):
        return pl.DataFrame({"x": [1.0, 15.0, 5.0], "y": [1.0, 5.0, 9.0], "label": ["a", "b", "c"]})

    def test_filter_df(self):
        handler = CutHandler()
        handler.add_cut(SQUARE, x_column="x", y_column="y")
        filtered = handler.filter_df(self._df())
        assert filtered["label"].to_list() == ["a", "c"]
        assert filtered.columns == ["x", "y", "label"]

    def test_filter_table_mask_mismatch(self):
        with pytest.raises(LengthMismatch):
            CutHandler().filter_table(self._df(), [True, False])

    def test_is_cols_inside(self):
        cut = Cut2D(SQUARE, x_column="x", y_column="y")
        assert cut.is_cols_inside(self._df()).to_list() == [True, False, True]
        with pytest.raises(NotFound):
            Cut2D(SQUARE).is_cols_inside(self._df())
