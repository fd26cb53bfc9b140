from __future__ import annotations

import pytest

from civic_portal_api.app.core.geo import (
    boundary_center,
    bounding_box,
    google_maps_directions_url,
    grid_plots,
    haversine_distance,
    normalize_plot_coordinates,
    plot_style,
    polygon_area,
)

SQUARE = [[14.0, 121.0], [14.0, 121.001], [14.001, 121.001], [14.001, 121.0]]


def test_haversine_one_degree_of_latitude():
    d = haversine_distance(0.0, 0.0, 1.0, 0.0)
    assert 111_000 < d < 111_400


def test_haversine_same_point_is_zero():
    assert haversine_distance(14.6, 121.0, 14.6, 121.0) == 0


def test_bounding_box_rejects_empty_input():
    with pytest.raises(ValueError):
        bounding_box([])


def test_boundary_center_needs_three_points():
    assert boundary_center([[1.0, 2.0], [3.0, 4.0]]) is None
    assert boundary_center(None, (5.0, 6.0)) == (5.0, 6.0)
    lat, lng = boundary_center(SQUARE)
    assert lat == pytest.approx(14.0005)
    assert lng == pytest.approx(121.0005)


def test_polygon_area_of_unit_square():
    assert polygon_area([[0, 0], [0, 1], [1, 1], [1, 0]]) == pytest.approx(1.0)
    assert polygon_area([[0, 0], [1, 1]]) == 0.0


def test_single_point_becomes_rectangle():
    center, boundary = normalize_plot_coordinates([14.5, 121.0])
    assert center == (14.5, 121.0)
    assert len(boundary) == 4
    assert boundary_center(boundary) == pytest.approx((14.5, 121.0))


def test_polygon_coordinates_keep_boundary():
    center, boundary = normalize_plot_coordinates(SQUARE)
    assert boundary == SQUARE
    assert center == pytest.approx((14.0005, 121.0005))
    assert normalize_plot_coordinates([]) == (None, None)


def test_grid_plots_produces_closed_rectangles():
    plots = grid_plots(SQUARE, length=10, width=10, spacing=1)
    assert plots
    for rect in plots:
        assert len(rect) == 5
        assert rect[0] == rect[-1]
        assert rect[0][0] >= 14.0 and rect[2][0] <= 14.001 + 1e-9


def test_grid_plots_rejects_degenerate_boundary():
    with pytest.raises(ValueError):
        grid_plots([[14.0, 121.0], [14.001, 121.001]])


def test_plot_style_defaults_to_vacant():
    assert plot_style("occupied") == {"color": "#ef4444", "fill_opacity": 0.6}
    assert plot_style("UNKNOWN") == {"color": "#10b981", "fill_opacity": 0.4}
    style = plot_style(None)
    style["color"] = "#000000"
    assert plot_style(None)["color"] == "#10b981"


def test_google_maps_url_swaps_to_lat_lng():
    url = google_maps_directions_url([121.0, 14.5], [121.1, 14.6])
    assert "origin=14.5,121.0" in url
    assert "destination=14.6,121.1" in url
    assert url.endswith("travelmode=walking")
