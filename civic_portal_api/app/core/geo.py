"""
Geometry helpers for cemetery maps and navigation.

Coordinates inside the service are ``[lat, lng]`` pairs; routing
providers and GeoJSON use ``[lng, lat]`` and conversions happen at the
navigation boundary.  Distances use the Haversine great-circle formula
and small offsets use the 111 km per degree approximation, which is
accurate enough for plots measured in metres.
"""

import math
from typing import Dict, List, Optional, Sequence, Tuple

Point = Sequence[float]

EARTH_RADIUS_M = 6_371_000
METERS_PER_DEGREE = 111_000

PLOT_STYLES: Dict[str, Dict[str, object]] = {
    "VACANT": {"color": "#10b981", "fill_opacity": 0.4},
    "RESERVED": {"color": "#f59e0b", "fill_opacity": 0.4},
    "OCCUPIED": {"color": "#ef4444", "fill_opacity": 0.6},
    "BLOCKED": {"color": "#6b7280", "fill_opacity": 0.8},
}

SECTION_PALETTE = ["#3b82f6", "#8b5cf6", "#ec4899", "#14b8a6", "#f97316", "#84cc16"]


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in metres between two points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bounding_box(points: Sequence[Point]) -> Tuple[float, float, float, float]:
    """Return ``(min_lat, min_lng, max_lat, max_lng)`` of a non-empty point list."""
    if not points:
        raise ValueError("Cannot compute a bounding box of no points")
    lats = [p[0] for p in points]
    lngs = [p[1] for p in points]
    return min(lats), min(lngs), max(lats), max(lngs)


def boundary_center(
    points: Optional[Sequence[Point]],
    default: Optional[Tuple[float, float]] = None,
) -> Optional[Tuple[float, float]]:
    """Midpoint of the bounding box of a polygon.

    Polygons need at least three vertices; anything smaller yields
    ``default``.
    """
    if not points or len(points) < 3:
        return default
    min_lat, min_lng, max_lat, max_lng = bounding_box(points)
    return (min_lat + max_lat) / 2, (min_lng + max_lng) / 2


def polygon_area(points: Sequence[Point]) -> float:
    """Shoelace area in squared coordinate units."""
    if len(points) < 3:
        return 0.0
    area = 0.0
    n = len(points)
    for i in range(n):
        j = (i + 1) % n
        area += points[i][0] * points[j][1]
        area -= points[j][0] * points[i][1]
    return abs(area) / 2


def plot_boundary(center_lat: float, center_lng: float, length: float = 2, width: float = 1) -> List[List[float]]:
    """Rectangle around a plot center: top-left, top-right, bottom-right, bottom-left.

    ``length`` runs north-south and ``width`` east-west, both in metres.
    """
    lat_offset = (length / 2) / METERS_PER_DEGREE
    lng_offset = (width / 2) / (METERS_PER_DEGREE * math.cos(math.radians(center_lat)))
    return [
        [center_lat + lat_offset, center_lng - lng_offset],
        [center_lat + lat_offset, center_lng + lng_offset],
        [center_lat - lat_offset, center_lng + lng_offset],
        [center_lat - lat_offset, center_lng - lng_offset],
    ]


def normalize_plot_coordinates(
    coordinates,
    length: float = 2,
    width: float = 1,
) -> Tuple[Optional[Tuple[float, float]], Optional[List[List[float]]]]:
    """Turn submitted plot coordinates into ``(center, boundary)``.

    Accepts either a polygon (list of ``[lat, lng]`` pairs) or a single
    ``[lat, lng]`` pair, in which case a rectangle of the plot's size is
    generated around it.  Anything else yields ``(None, None)``.
    """
    if not coordinates:
        return None, None
    first = coordinates[0]
    if isinstance(first, (list, tuple)):
        boundary = [[float(p[0]), float(p[1])] for p in coordinates]
        return boundary_center(boundary), boundary
    if len(coordinates) == 2:
        lat, lng = float(coordinates[0]), float(coordinates[1])
        return (lat, lng), plot_boundary(lat, lng, length, width)
    return None, None


def grid_plots(
    boundary: Sequence[Point],
    length: float = 2,
    width: float = 1,
    spacing: float = 0.5,
) -> List[List[List[float]]]:
    """Fill a boundary's bounding box with closed plot rectangles.

    Rows advance north by ``length + spacing`` and columns east by
    ``width + spacing`` (metres, converted with 111 km per degree).
    """
    if len(boundary) < 3:
        raise ValueError("Boundary must have at least 3 points")
    min_lat, min_lng, max_lat, max_lng = bounding_box(boundary)
    plot_length = length / METERS_PER_DEGREE
    plot_width = width / METERS_PER_DEGREE
    gap = spacing / METERS_PER_DEGREE

    plots: List[List[List[float]]] = []
    row = 0
    while True:
        lat = min_lat + row * (plot_length + gap)
        if lat > max_lat - plot_length:
            break
        col = 0
        while True:
            lng = min_lng + col * (plot_width + gap)
            if lng > max_lng - plot_width:
                break
            plots.append([
                [lat, lng],
                [lat + plot_length, lng],
                [lat + plot_length, lng + plot_width],
                [lat, lng + plot_width],
                [lat, lng],
            ])
            col += 1
        row += 1
    return plots


def plot_style(status: Optional[str]) -> Dict[str, object]:
    """Map color and fill opacity for a plot status (vacant style by default)."""
    style = PLOT_STYLES.get((status or "").upper(), PLOT_STYLES["VACANT"])
    return dict(style)


def section_color(index: int) -> str:
    return SECTION_PALETTE[index % len(SECTION_PALETTE)]


def google_maps_directions_url(start: Point, end: Point, travel_mode: str = "walking") -> str:
    """Directions link; ``start`` and ``end`` are ``[lng, lat]``."""
    return (
        "https://www.google.com/maps/dir/?api=1"
        f"&origin={start[1]},{start[0]}"
        f"&destination={end[1]},{end[0]}"
        f"&travelmode={travel_mode}"
    )
