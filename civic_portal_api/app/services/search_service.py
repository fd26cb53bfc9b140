"""
Burial search across the cemetery hierarchy.

The search walks cemetery → section → block → plot → active assignment
→ deceased and keeps every burial whose name contains the query
(case-insensitive).  It is a linear scan with no ranking; results are
ordered alphabetically by last name, then first name, then plot id.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from civic_portal_api.app.core.config import settings
from civic_portal_api.app.core.db import get_connection, row_to_dict
from civic_portal_api.app.core.geo import boundary_center
from civic_portal_api.app.schemas.search import (
    AreaOccupant,
    BurialSearchResult,
    GravestoneSummary,
    PlotLocation,
    SearchResponse,
)
from civic_portal_api.app.services.deceased_service import full_name

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
AREA_TYPES = {"plot": "a.plot_id", "block": "p.block_id", "section": "p.section_id"}


def name_matches(needle: str, first_name: str, middle_name: Optional[str], last_name: str, display_name: str) -> bool:
    """Substring match of an already lower-cased needle against the name variants."""
    candidates = (
        display_name,
        f"{first_name} {last_name}",
        first_name,
        last_name,
        middle_name or "",
    )
    return any(needle in candidate.lower() for candidate in candidates)


def plot_coordinates(plot: dict, cemetery_center: Optional[Tuple[float, float]]) -> List[float]:
    """Plot position: stored center, else boundary center, else cemetery center, else map default."""
    if plot.get("latitude") is not None and plot.get("longitude") is not None:
        return [plot["latitude"], plot["longitude"]]
    center = boundary_center(plot.get("boundary"))
    if center is None:
        center = cemetery_center or (settings.default_map_lat, settings.default_map_lng)
    return [center[0], center[1]]


class SearchService:
    """Name search over burials and occupant listings per map area."""

    @classmethod
    async def search(cls, query: str) -> SearchResponse:
        """Find active burials whose name contains ``query``.

        Raises ``ValueError`` when the stripped query is shorter than two
        characters.
        """
        term = (query or "").strip()
        if len(term) < MIN_QUERY_LENGTH:
            raise ValueError(f"Search query must be at least {MIN_QUERY_LENGTH} characters long")
        needle = term.lower()

        conn = get_connection()
        try:
            cemeteries = [row_to_dict(r, ("boundary",)) for r in conn.execute(
                "SELECT id, name, boundary FROM cemeteries ORDER BY id").fetchall()]
            sections = [dict(r) for r in conn.execute(
                "SELECT id, cemetery_id, name FROM cemetery_sections ORDER BY id").fetchall()]
            blocks = [dict(r) for r in conn.execute(
                "SELECT id, section_id, name FROM cemetery_blocks ORDER BY id").fetchall()]
            plots = [row_to_dict(r, ("boundary",)) for r in conn.execute(
                "SELECT id, cemetery_id, section_id, block_id, plot_number, latitude, longitude, boundary "
                "FROM cemetery_plots ORDER BY id").fetchall()]
            assignments = [dict(r) for r in conn.execute(
                "SELECT id, plot_id, deceased_id, permit_id, layer FROM plot_assignments "
                "WHERE status = 'ASSIGNED' ORDER BY id").fetchall()]
            deceased = {r["id"]: dict(r) for r in conn.execute(
                "SELECT id, first_name, middle_name, last_name, suffix, date_of_birth, date_of_death, "
                "burial_date, age FROM deceased_records").fetchall()}
            gravestones: Dict[int, dict] = {}
            for r in conn.execute("SELECT plot_id, material, inscription, condition FROM gravestones ORDER BY id"):
                gravestones.setdefault(r["plot_id"], dict(r))
            permits = {r["id"]: r["permit_number"] for r in conn.execute("SELECT id, permit_number FROM permits")}
        finally:
            conn.close()

        sections_by_cemetery: Dict[int, list] = defaultdict(list)
        for section in sections:
            sections_by_cemetery[section["cemetery_id"]].append(section)
        blocks_by_section: Dict[int, list] = defaultdict(list)
        for block in blocks:
            blocks_by_section[block["section_id"]].append(block)
        plots_by_block: Dict[int, list] = defaultdict(list)
        loose_plots: Dict[int, list] = defaultdict(list)
        for plot in plots:
            if plot["block_id"] is not None:
                plots_by_block[plot["block_id"]].append(plot)
            else:
                loose_plots[plot["cemetery_id"]].append(plot)
        assignments_by_plot: Dict[int, list] = defaultdict(list)
        for assignment in assignments:
            assignments_by_plot[assignment["plot_id"]].append(assignment)
        section_names = {s["id"]: s["name"] for s in sections}

        results: List[BurialSearchResult] = []

        def visit(cemetery: dict, center, plot: dict, section_id, section_name, block_id, block_name) -> None:
            for assignment in assignments_by_plot.get(plot["id"], []):
                person = deceased.get(assignment["deceased_id"])
                if not person:
                    continue
                name = full_name(person["first_name"], person["middle_name"], person["last_name"], person["suffix"])
                if not name_matches(needle, person["first_name"], person["middle_name"], person["last_name"], name):
                    continue
                gravestone = gravestones.get(plot["id"])
                results.append(
                    BurialSearchResult(
                        deceased_id=person["id"],
                        assignment_id=assignment["id"],
                        full_name=name,
                        first_name=person["first_name"],
                        middle_name=person["middle_name"],
                        last_name=person["last_name"],
                        date_of_birth=person["date_of_birth"],
                        date_of_death=person["date_of_death"],
                        burial_date=person["burial_date"] or person["date_of_death"],
                        age=person["age"],
                        location=PlotLocation(
                            cemetery_id=cemetery["id"],
                            cemetery_name=cemetery["name"],
                            section_id=section_id,
                            section_name=section_name,
                            block_id=block_id,
                            block_name=block_name,
                            plot_id=plot["id"],
                            plot_number=plot["plot_number"],
                            layer=assignment["layer"],
                            coordinates=plot_coordinates(plot, center),
                        ),
                        gravestone=GravestoneSummary(**gravestone) if gravestone else None,
                        permit_number=permits.get(assignment["permit_id"]),
                    )
                )

        for cemetery in cemeteries:
            center = boundary_center(cemetery.get("boundary"))
            for section in sections_by_cemetery.get(cemetery["id"], []):
                for block in blocks_by_section.get(section["id"], []):
                    for plot in plots_by_block.get(block["id"], []):
                        visit(cemetery, center, plot, section["id"], section["name"], block["id"], block["name"])
            for plot in loose_plots.get(cemetery["id"], []):
                section_id = plot["section_id"]
                visit(cemetery, center, plot, section_id, section_names.get(section_id), None, None)

        results.sort(key=lambda r: (r.last_name.lower(), r.first_name.lower(), r.location.plot_id))
        logger.debug("Burial search '%s' matched %s records", term, len(results))
        return SearchResponse(query=term, total=len(results), results=results)

    @classmethod
    async def area_occupants(cls, area_type: str, area_id: int) -> List[AreaOccupant]:
        """Active burials in a plot, block or section, newest burial first."""
        column = AREA_TYPES.get(area_type.lower())
        if column is None:
            raise ValueError("area_type must be one of: plot, block, section")
        conn = get_connection()
        try:
            rows = conn.execute(
                f"""
                SELECT a.id AS assignment_id, a.layer, p.id AS plot_id, p.plot_number, d.id AS deceased_id,
                       d.first_name, d.middle_name, d.last_name, d.suffix, d.date_of_death, d.burial_date, d.age
                FROM plot_assignments a
                JOIN cemetery_plots p ON p.id = a.plot_id
                JOIN deceased_records d ON d.id = a.deceased_id
                WHERE a.status = 'ASSIGNED' AND {column} = ?
                """,
                (area_id,),
            ).fetchall()
        finally:
            conn.close()
        occupants = [
            AreaOccupant(
                assignment_id=row["assignment_id"],
                deceased_id=row["deceased_id"],
                full_name=full_name(row["first_name"], row["middle_name"], row["last_name"], row["suffix"]),
                date_of_death=row["date_of_death"],
                burial_date=row["burial_date"] or row["date_of_death"],
                age=row["age"],
                plot_id=row["plot_id"],
                plot_number=row["plot_number"],
                layer=row["layer"],
            )
            for row in rows
        ]
        occupants.sort(key=lambda o: (o.burial_date or "", o.assignment_id), reverse=True)
        return occupants
