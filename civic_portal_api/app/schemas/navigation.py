"""
Pydantic models for plot navigation and walking routes.

Route coordinates follow the routing-provider convention ``[lng, lat]``.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class PlotNavigation(BaseModel):
    plot_id: int
    plot_name: str
    plot_coordinates: List[float] = Field(..., description="[lat, lng]")
    cemetery_id: int
    cemetery_name: str
    cemetery_address: Optional[str] = None
    cemetery_center: List[float]
    distance_m: Optional[int] = None
    estimated_walk_seconds: Optional[int] = None
    visitor_location: Optional[List[float]] = Field(None, description="[lng, lat]")
    destination: List[float] = Field(..., description="[lng, lat]")


class RouteRequest(BaseModel):
    start: List[float] = Field(..., min_length=2, max_length=2, examples=[[121.0437, 14.6760]])
    end: List[float] = Field(..., min_length=2, max_length=2, examples=[[121.0450, 14.6772]])
    profile: str = Field("foot-walking", examples=["foot-walking", "driving-car"])


class RouteStep(BaseModel):
    instruction: str
    distance: float
    duration: float
    name: Optional[str] = None


class RouteResponse(BaseModel):
    source: str
    distance_m: float
    duration_s: float
    bbox: List[float]
    geometry: Optional[Any] = Field(None, description="Encoded polyline or GeoJSON from the provider")
    steps: List[RouteStep] = []
    google_maps_url: Optional[str] = None
    google_maps_driving_url: Optional[str] = None
