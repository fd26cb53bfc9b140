"""
Navigation to a plot.

``plot_navigation`` gives a straight-line distance and walking estimate
from the visitor to a plot.  ``route`` asks OpenRouteService for a real
route and falls back to a Haversine estimate with Google Maps links when
the provider is not configured or fails.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from civic_portal_api.app.core.config import settings
from civic_portal_api.app.core.db import get_connection, row_to_dict
from civic_portal_api.app.core.geo import boundary_center, google_maps_directions_url, haversine_distance
from civic_portal_api.app.schemas.navigation import PlotNavigation, RouteResponse, RouteStep
from civic_portal_api.app.services.routing_client import OpenRouteServiceClient
from civic_portal_api.app.services.search_service import plot_coordinates

logger = logging.getLogger(__name__)

# Straight-line fallback assumes two minutes per kilometre.
FALLBACK_SECONDS_PER_KM = 120


def walking_estimate(distance_m: float, speed_mps: Optional[float] = None) -> int:
    """Walking time in whole seconds for a distance in metres."""
    speed = speed_mps or settings.walking_speed_mps
    return round(distance_m / speed)


def fallback_route(start: Sequence[float], end: Sequence[float], profile: str) -> RouteResponse:
    """Straight-line route between ``[lng, lat]`` points."""
    distance_m = haversine_distance(start[1], start[0], end[1], end[0])
    return RouteResponse(
        source="google-maps-fallback",
        distance_m=distance_m,
        duration_s=distance_m / 1000 * FALLBACK_SECONDS_PER_KM,
        bbox=[min(start[0], end[0]), min(start[1], end[1]), max(start[0], end[0]), max(start[1], end[1])],
        geometry=None,
        steps=[],
        google_maps_url=google_maps_directions_url(start, end, "walking" if profile.startswith("foot") else "driving"),
        google_maps_driving_url=google_maps_directions_url(start, end, "driving"),
    )


class NavigationService:
    """Distance estimates and routes from a visitor to a plot."""

    client_factory = OpenRouteServiceClient

    @classmethod
    async def plot_navigation(cls, plot_id: int, lat: Optional[float] = None, lng: Optional[float] = None) -> PlotNavigation:
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT p.id, p.plot_number, p.latitude, p.longitude, p.boundary, c.id AS cemetery_id, "
                "c.name AS cemetery_name, c.address AS cemetery_address, c.boundary AS cemetery_boundary "
                "FROM cemetery_plots p JOIN cemeteries c ON c.id = p.cemetery_id WHERE p.id = ?",
                (plot_id,),
            ).fetchone()
        finally:
            conn.close()
        if not row:
            raise LookupError(f"Plot {plot_id} not found")
        plot = row_to_dict(row, ("boundary", "cemetery_boundary"))
        center = boundary_center(
            plot.get("cemetery_boundary"), (settings.default_map_lat, settings.default_map_lng)
        )
        plot_lat, plot_lng = plot_coordinates(plot, center)

        navigation = PlotNavigation(
            plot_id=plot["id"],
            plot_name=plot["plot_number"],
            plot_coordinates=[plot_lat, plot_lng],
            cemetery_id=plot["cemetery_id"],
            cemetery_name=plot["cemetery_name"],
            cemetery_address=plot["cemetery_address"],
            cemetery_center=[center[0], center[1]],
            destination=[plot_lng, plot_lat],
        )
        if lat is not None and lng is not None:
            distance = haversine_distance(lat, lng, plot_lat, plot_lng)
            navigation.distance_m = round(distance)
            navigation.estimated_walk_seconds = walking_estimate(distance)
            navigation.visitor_location = [lng, lat]
        return navigation

    @classmethod
    async def route(cls, start: Sequence[float], end: Sequence[float], profile: str = "foot-walking") -> RouteResponse:
        """Route between ``[lng, lat]`` points, falling back to a straight line."""
        client = cls.client_factory()
        if client.enabled:
            route, error = await asyncio.to_thread(client.directions, start, end, profile)
            if route is not None:
                summary = route.get("summary") or {}
                return RouteResponse(
                    source="openrouteservice",
                    distance_m=summary.get("distance", 0),
                    duration_s=summary.get("duration", 0),
                    bbox=route.get("bbox") or [],
                    geometry=route.get("geometry"),
                    steps=[RouteStep(**step) for step in client.flatten_steps(route)],
                    google_maps_url=google_maps_directions_url(start, end),
                )
            logger.info("Falling back to straight-line navigation: %s", error.get("message") if error else "")
        return fallback_route(start, end, profile)
