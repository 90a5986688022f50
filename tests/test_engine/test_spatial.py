"""Tests for the spatial aggregator."""

from __future__ import annotations

import pytest

from eis_dashboard.engine.normalizer import normalize, points_at_frequency, read_csv
from eis_dashboard.engine.spatial import aggregate, heat_color, resolve_metric
from eis_dashboard.models.measurement import MeasurementPoint
from tests.conftest import MAP_CSV


def _point(x, y, mag, phase=-30.0, freq=100.0) -> MeasurementPoint:
    return MeasurementPoint(frequency=freq, magnitude=mag, phase_degrees=phase, x=x, y=y)


class TestAggregate:
    def test_single_point_is_midpoint(self):
        result = aggregate([_point(3, 4, 500)], "magnitude")
        cell = result.cells[0]
        assert cell.normalized == 0.5
        assert cell.left == 0.5
        assert cell.top == 0.5

    def test_min_max_normalization(self):
        result = aggregate([_point(0, 0, 100), _point(10, 5, 300), _point(5, 10, 200)])
        assert [c.normalized for c in result.cells] == pytest.approx([0.0, 1.0, 0.5])
        assert [c.left for c in result.cells] == pytest.approx([0.0, 1.0, 0.5])
        assert [c.top for c in result.cells] == pytest.approx([0.0, 0.5, 1.0])
        assert result.value_bounds.min == 100
        assert result.value_bounds.max == 300

    def test_zero_width_coordinate_span(self):
        result = aggregate([_point(2, 0, 1), _point(2, 9, 2)])
        assert all(c.left == 0.5 for c in result.cells)
        assert [c.top for c in result.cells] == [0.0, 1.0]

    def test_phase_metric(self):
        result = aggregate([_point(0, 0, 1, phase=-80), _point(1, 1, 1, phase=-20)], "phase")
        assert result.metric == "phase_degrees"
        assert [c.value for c in result.cells] == [-80, -20]
        assert [c.normalized for c in result.cells] == [0.0, 1.0]

    def test_colors(self):
        result = aggregate([_point(0, 0, 1), _point(1, 1, 2)])
        assert result.cells[0].color == "hsl(240, 100%, 50%)"
        assert result.cells[1].color == "hsl(0, 100%, 50%)"
        assert heat_color(0.5) == "hsl(120, 100%, 50%)"

    def test_scattered_samples(self):
        points = normalize(read_csv(MAP_CSV), "map")
        result = aggregate(points_at_frequency(points, 1000), "magnitude")
        assert len(result.cells) == 3
        assert result.value_bounds.min == 800
        assert result.value_bounds.max == 950

    def test_empty(self):
        assert aggregate([], "magnitude").cells == []

    def test_points_without_coordinates(self):
        with pytest.raises(ValueError):
            aggregate([MeasurementPoint(frequency=1, magnitude=1, phase_degrees=0)])

    def test_unknown_metric(self):
        with pytest.raises(ValueError):
            resolve_metric("temperature")
