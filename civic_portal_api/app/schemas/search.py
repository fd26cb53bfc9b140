"""
Pydantic models for the burial search and area occupant views.
"""

from typing import List, Optional

from pydantic import BaseModel


class PlotLocation(BaseModel):
    cemetery_id: int
    cemetery_name: str
    section_id: Optional[int] = None
    section_name: Optional[str] = None
    block_id: Optional[int] = None
    block_name: Optional[str] = None
    plot_id: int
    plot_number: str
    layer: int
    coordinates: List[float]


class GravestoneSummary(BaseModel):
    material: Optional[str] = None
    inscription: Optional[str] = None
    condition: Optional[str] = None


class BurialSearchResult(BaseModel):
    deceased_id: int
    assignment_id: int
    full_name: str
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    date_of_birth: Optional[str] = None
    date_of_death: Optional[str] = None
    burial_date: Optional[str] = None
    age: Optional[int] = None
    location: PlotLocation
    gravestone: Optional[GravestoneSummary] = None
    permit_number: Optional[str] = None


class SearchResponse(BaseModel):
    query: str
    total: int
    results: List[BurialSearchResult]


class AreaOccupant(BaseModel):
    assignment_id: int
    deceased_id: int
    full_name: str
    date_of_death: Optional[str] = None
    burial_date: Optional[str] = None
    age: Optional[int] = None
    plot_id: int
    plot_number: str
    layer: int
