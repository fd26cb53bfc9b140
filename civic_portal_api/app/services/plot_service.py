"""
Business logic for cemetery plots and burial assignments.

A plot holds up to ``max_layers`` burials stacked in layers.  Each
active (``ASSIGNED``) assignment occupies one layer; a plot with at
least one active assignment is ``OCCUPIED`` and returns to ``VACANT``
when the last one is vacated.  Map colors are derived from the status.
"""

from __future__ import annotations

import json
import logging
import math
import sqlite3
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional

from civic_portal_api.app.core.db import get_connection, now_timestamp, row_to_dict
from civic_portal_api.app.core.geo import normalize_plot_coordinates, plot_style
from civic_portal_api.app.schemas.deceased import (
    AssignmentCreate,
    AssignmentRead,
    BurialAssignmentCreate,
    BurialAssignmentRead,
    GravestoneCreate,
    GravestoneRead,
)
from civic_portal_api.app.schemas.plot import (
    PlotCreate,
    PlotPage,
    PlotRead,
    PlotReservation,
    PlotStatistics,
)
from civic_portal_api.app.services.audit_service import AuditService
from civic_portal_api.app.services.deceased_service import full_name, insert_deceased, load_deceased

logger = logging.getLogger(__name__)

PLOT_STATUSES = {"VACANT", "RESERVED", "OCCUPIED", "BLOCKED"}
PLOT_SIZES = {"STANDARD", "LARGE", "FAMILY", "NICHE"}
STATUS_ALIASES = {"AVAILABLE": "VACANT", "UNAVAILABLE": "BLOCKED"}
SIZE_PRICE_COLUMNS = {
    "STANDARD": "standard_price",
    "LARGE": "large_price",
    "FAMILY": "family_price",
    "NICHE": "niche_price",
}


def normalize_status(value: str) -> str:
    status = STATUS_ALIASES.get(value.strip().upper(), value.strip().upper())
    if status not in PLOT_STATUSES:
        raise ValueError(f"Invalid plot status '{value}'")
    return status


def normalize_size(value: str) -> str:
    size = value.strip().upper()
    if size not in PLOT_SIZES:
        raise ValueError(f"Invalid plot size '{value}'")
    return size


def load_assignments(
    conn: sqlite3.Connection,
    plot_ids: Iterable[int],
    active_only: bool = False,
) -> Dict[int, List[AssignmentRead]]:
    """Assignments (with their deceased record) grouped by plot id."""
    ids = list(plot_ids)
    if not ids:
        return {}
    placeholders = ",".join("?" for _ in ids)
    query = f"SELECT * FROM plot_assignments WHERE plot_id IN ({placeholders})"
    if active_only:
        query += " AND status = 'ASSIGNED'"
    query += " ORDER BY layer, id"
    rows = conn.execute(query, tuple(ids)).fetchall()
    deceased = load_deceased(conn, {row["deceased_id"] for row in rows})
    grouped: Dict[int, List[AssignmentRead]] = defaultdict(list)
    for row in rows:
        data = dict(row)
        data["deceased"] = deceased.get(row["deceased_id"])
        grouped[row["plot_id"]].append(AssignmentRead(**data))
    return grouped


def load_gravestones(conn: sqlite3.Connection, plot_ids: Iterable[int]) -> Dict[int, List[GravestoneRead]]:
    ids = list(plot_ids)
    if not ids:
        return {}
    placeholders = ",".join("?" for _ in ids)
    rows = conn.execute(
        f"SELECT * FROM gravestones WHERE plot_id IN ({placeholders}) ORDER BY id", tuple(ids)
    ).fetchall()
    grouped: Dict[int, List[GravestoneRead]] = defaultdict(list)
    for row in rows:
        grouped[row["plot_id"]].append(GravestoneRead(**dict(row)))
    return grouped


def plot_to_read(
    row: sqlite3.Row,
    assignments: Optional[List[AssignmentRead]] = None,
    gravestones: Optional[List[GravestoneRead]] = None,
) -> PlotRead:
    data = row_to_dict(row, ("boundary",))
    data["accessibility"] = bool(data.get("accessibility"))
    style = plot_style(data["status"])
    data["color"] = style["color"]
    data["fill_opacity"] = style["fill_opacity"]
    data["assignments"] = assignments or []
    data["gravestones"] = gravestones or []
    data["occupied_layers"] = sum(1 for a in data["assignments"] if a.status == "ASSIGNED")
    return PlotRead(**data)


def _fetch_plot(cursor: sqlite3.Cursor, plot_id: int) -> sqlite3.Row:
    row = cursor.execute("SELECT * FROM cemetery_plots WHERE id = ?", (plot_id,)).fetchone()
    if not row:
        raise LookupError(f"Plot {plot_id} not found")
    return row


def _resolve_location(
    cursor: sqlite3.Cursor,
    cemetery_id: int,
    section_id: Optional[int],
    block_id: Optional[int],
) -> Optional[int]:
    """Check that section and block belong to the cemetery; returns the effective section id."""
    if block_id is not None:
        block = cursor.execute(
            "SELECT b.id, b.section_id, s.cemetery_id FROM cemetery_blocks b "
            "JOIN cemetery_sections s ON s.id = b.section_id WHERE b.id = ?",
            (block_id,),
        ).fetchone()
        if not block:
            raise LookupError(f"Block {block_id} not found")
        if block["cemetery_id"] != cemetery_id:
            raise ValueError("Block does not belong to this cemetery")
        if section_id is not None and section_id != block["section_id"]:
            raise ValueError("Block does not belong to the given section")
        return block["section_id"]
    if section_id is not None:
        section = cursor.execute(
            "SELECT id, cemetery_id FROM cemetery_sections WHERE id = ?", (section_id,)
        ).fetchone()
        if not section:
            raise LookupError(f"Section {section_id} not found")
        if section["cemetery_id"] != cemetery_id:
            raise ValueError("Section does not belong to this cemetery")
    return section_id


def _active_layers(cursor: sqlite3.Cursor, plot_id: int) -> Dict[int, int]:
    rows = cursor.execute(
        "SELECT id, layer FROM plot_assignments WHERE plot_id = ? AND status = 'ASSIGNED'",
        (plot_id,),
    ).fetchall()
    return {row["layer"]: row["id"] for row in rows}


def assign_on_cursor(
    cursor: sqlite3.Cursor,
    plot_id: int,
    deceased_id: int,
    layer: int,
    permit_id: Optional[int],
    notes: Optional[str],
    assigned_by: Optional[int],
) -> int:
    """Place a deceased person in a plot layer; returns the assignment id.

    Raises ``LookupError`` for unknown plot, deceased or permit and
    ``ValueError`` when the plot is blocked, the layer is out of range or
    taken, or the deceased is already buried elsewhere.
    """
    plot = _fetch_plot(cursor, plot_id)
    if plot["status"] == "BLOCKED":
        raise ValueError("Plot is blocked and cannot receive burials")
    max_layers = plot["max_layers"] or 1
    if layer < 1 or layer > max_layers:
        raise ValueError(f"Layer {layer} exceeds the maximum of {max_layers} layers for this plot")
    if layer in _active_layers(cursor, plot_id):
        raise ValueError(f"Layer {layer} is already occupied")
    if not cursor.execute("SELECT id FROM deceased_records WHERE id = ?", (deceased_id,)).fetchone():
        raise LookupError(f"Deceased record {deceased_id} not found")
    already = cursor.execute(
        "SELECT plot_id FROM plot_assignments WHERE deceased_id = ? AND status = 'ASSIGNED'",
        (deceased_id,),
    ).fetchone()
    if already:
        raise ValueError(f"Deceased is already assigned to plot {already['plot_id']}")
    if permit_id is not None and not cursor.execute(
        "SELECT id FROM permits WHERE id = ?", (permit_id,)
    ).fetchone():
        raise LookupError(f"Permit {permit_id} not found")

    cursor.execute(
        "INSERT INTO plot_assignments (plot_id, deceased_id, permit_id, layer, status, notes, assigned_by, assigned_at) "
        "VALUES (?, ?, ?, ?, 'ASSIGNED', ?, ?, ?)",
        (plot_id, deceased_id, permit_id, layer, notes, assigned_by, now_timestamp()),
    )
    assignment_id = cursor.lastrowid
    cursor.execute(
        "UPDATE cemetery_plots SET status = 'OCCUPIED', reserved_by = NULL, reservation_expiry = NULL, "
        "updated_at = ? WHERE id = ?",
        (now_timestamp(), plot_id),
    )
    return assignment_id


class PlotService:
    """Service for plot records, reservations and burial assignments."""

    @classmethod
    async def create_plot(cls, data: PlotCreate, current_user: Optional[dict] = None) -> PlotRead:
        """Create a plot.

        The plot number must be unique within the cemetery.  Fees default
        to the cemetery's price for the plot size and its maintenance fee.
        Coordinates may be a polygon or a single center point.
        """
        size = normalize_size(data.size)
        status = normalize_status(data.status)
        center, boundary = normalize_plot_coordinates(data.coordinates, data.length, data.width)
        if center is None and data.latitude is not None and data.longitude is not None:
            center, boundary = normalize_plot_coordinates([data.latitude, data.longitude], data.length, data.width)

        conn = get_connection()
        try:
            cursor = conn.cursor()
            cemetery = cursor.execute("SELECT * FROM cemeteries WHERE id = ?", (data.cemetery_id,)).fetchone()
            if not cemetery:
                raise LookupError(f"Cemetery {data.cemetery_id} not found")
            section_id = _resolve_location(cursor, data.cemetery_id, data.section_id, data.block_id)
            duplicate = cursor.execute(
                "SELECT id FROM cemetery_plots WHERE cemetery_id = ? AND plot_number = ?",
                (data.cemetery_id, data.plot_number),
            ).fetchone()
            if duplicate:
                raise ValueError(f"Plot number {data.plot_number} already exists in this cemetery")
            base_fee = data.base_fee if data.base_fee is not None else cemetery[SIZE_PRICE_COLUMNS[size]]
            maintenance_fee = data.maintenance_fee if data.maintenance_fee is not None else cemetery["maintenance_fee"]
            cursor.execute(
                """
                INSERT INTO cemetery_plots (
                    cemetery_id, section_id, block_id, plot_number, plot_code, latitude, longitude,
                    boundary, size, length, width, depth, base_fee, maintenance_fee, orientation,
                    accessibility, status, max_layers, notes
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data.cemetery_id,
                    section_id,
                    data.block_id,
                    data.plot_number,
                    data.plot_code or data.plot_number,
                    center[0] if center else None,
                    center[1] if center else None,
                    json.dumps(boundary) if boundary else None,
                    size,
                    data.length,
                    data.width,
                    data.depth,
                    base_fee,
                    maintenance_fee,
                    data.orientation.upper(),
                    1 if data.accessibility else 0,
                    status,
                    data.max_layers,
                    data.notes,
                ),
            )
            plot_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        logger.info("Created plot %s (%s) in cemetery %s", plot_id, data.plot_number, data.cemetery_id)
        await AuditService.record((current_user or {}).get("user_id"), "create", "plot", plot_id,
                                  {"plot_number": data.plot_number})
        return await cls.get_plot(plot_id)

    @classmethod
    async def get_plot(cls, plot_id: int) -> PlotRead:
        conn = get_connection()
        try:
            row = _fetch_plot(conn.cursor(), plot_id)
            assignments = load_assignments(conn, [plot_id])
            gravestones = load_gravestones(conn, [plot_id])
            return plot_to_read(row, assignments.get(plot_id), gravestones.get(plot_id))
        finally:
            conn.close()

    @classmethod
    async def list_plots(
        cls,
        cemetery_id: Optional[int] = None,
        section_id: Optional[int] = None,
        block_id: Optional[int] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> PlotPage:
        """Paginated plot listing with active assignments attached.

        ``search`` matches the plot number, plot code or the name of an
        actively buried person.
        """
        where_clauses: List[str] = []
        params: List[Any] = []
        if cemetery_id is not None:
            where_clauses.append("p.cemetery_id = ?")
            params.append(cemetery_id)
        if section_id is not None:
            where_clauses.append("p.section_id = ?")
            params.append(section_id)
        if block_id is not None:
            where_clauses.append("p.block_id = ?")
            params.append(block_id)
        if status:
            where_clauses.append("p.status = ?")
            params.append(normalize_status(status))
        if search:
            pattern = f"%{search.strip().lower()}%"
            where_clauses.append(
                "(lower(p.plot_number) LIKE ? OR lower(COALESCE(p.plot_code, '')) LIKE ? OR EXISTS ("
                " SELECT 1 FROM plot_assignments a JOIN deceased_records d ON d.id = a.deceased_id"
                " WHERE a.plot_id = p.id AND a.status = 'ASSIGNED'"
                " AND lower(d.first_name || ' ' || d.last_name) LIKE ?))"
            )
            params.extend([pattern, pattern, pattern])
        where_sql = (" WHERE " + " AND ".join(where_clauses)) if where_clauses else ""

        conn = get_connection()
        try:
            total = conn.execute(f"SELECT COUNT(*) FROM cemetery_plots p{where_sql}", tuple(params)).fetchone()[0]
            rows = conn.execute(
                f"SELECT p.* FROM cemetery_plots p{where_sql} ORDER BY p.plot_number, p.id LIMIT ? OFFSET ?",
                tuple(params) + (limit, (page - 1) * limit),
            ).fetchall()
            assignments = load_assignments(conn, [row["id"] for row in rows], active_only=True)
            items = [plot_to_read(row, assignments.get(row["id"])) for row in rows]
        finally:
            conn.close()
        return PlotPage(items=items, total=total, page=page, limit=limit, pages=math.ceil(total / limit) if total else 0)

    @classmethod
    async def update_plot(cls, plot_id: int, updates: Dict[str, Any], current_user: Optional[dict] = None) -> PlotRead:
        """Partially update a plot.

        A plot with active burials cannot be marked vacant or reserved,
        and ``max_layers`` cannot drop below the highest occupied layer.
        """
        conn = get_connection()
        try:
            cursor = conn.cursor()
            plot = _fetch_plot(cursor, plot_id)
            values: Dict[str, Any] = {}
            layers = _active_layers(cursor, plot_id)
            for key, value in updates.items():
                if key == "coordinates":
                    length = updates.get("length") or plot["length"] or 2
                    width = updates.get("width") or plot["width"] or 1
                    center, boundary = normalize_plot_coordinates(value, length, width)
                    values["latitude"] = center[0] if center else None
                    values["longitude"] = center[1] if center else None
                    values["boundary"] = json.dumps(boundary) if boundary else None
                elif key == "status":
                    values["status"] = normalize_status(value)
                elif key == "size":
                    values["size"] = normalize_size(value)
                elif key == "orientation":
                    values["orientation"] = value.upper()
                elif isinstance(value, bool):
                    values[key] = 1 if value else 0
                else:
                    values[key] = value
            if layers and values.get("status") in {"VACANT", "RESERVED"}:
                raise ValueError("Plot has active burials and cannot be marked vacant or reserved")
            if "max_layers" in values and layers and values["max_layers"] < max(layers):
                raise ValueError("max_layers cannot be lower than an occupied layer")
            if "section_id" in values or "block_id" in values:
                values["section_id"] = _resolve_location(
                    cursor,
                    plot["cemetery_id"],
                    values.get("section_id", plot["section_id"]),
                    values.get("block_id", plot["block_id"]),
                )
            if "plot_number" in values and values["plot_number"] != plot["plot_number"]:
                duplicate = cursor.execute(
                    "SELECT id FROM cemetery_plots WHERE cemetery_id = ? AND plot_number = ? AND id != ?",
                    (plot["cemetery_id"], values["plot_number"], plot_id),
                ).fetchone()
                if duplicate:
                    raise ValueError(f"Plot number {values['plot_number']} already exists in this cemetery")
            if values:
                values["updated_at"] = now_timestamp()
                assignments = ", ".join(f"{key} = ?" for key in values)
                cursor.execute(
                    f"UPDATE cemetery_plots SET {assignments} WHERE id = ?",
                    tuple(values.values()) + (plot_id,),
                )
                conn.commit()
        finally:
            conn.close()
        await AuditService.record((current_user or {}).get("user_id"), "update", "plot", plot_id, updates)
        return await cls.get_plot(plot_id)

    @classmethod
    async def delete_plot(cls, plot_id: int, current_user: Optional[dict] = None) -> None:
        """Delete a plot that has never held a burial."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            _fetch_plot(cursor, plot_id)
            count = cursor.execute(
                "SELECT COUNT(*) FROM plot_assignments WHERE plot_id = ?", (plot_id,)
            ).fetchone()[0]
            if count:
                raise ValueError("Cannot delete plot with burial assignments")
            cursor.execute("DELETE FROM gravestones WHERE plot_id = ?", (plot_id,))
            cursor.execute("DELETE FROM cemetery_plots WHERE id = ?", (plot_id,))
            conn.commit()
        finally:
            conn.close()
        await AuditService.record((current_user or {}).get("user_id"), "delete", "plot", plot_id)

    @classmethod
    async def reserve_plot(cls, plot_id: int, reservation: PlotReservation, current_user: Optional[dict] = None) -> PlotRead:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            plot = _fetch_plot(cursor, plot_id)
            if plot["status"] != "VACANT":
                raise ValueError(f"Only vacant plots can be reserved (plot is {plot['status']})")
            notes = reservation.notes if reservation.notes is not None else plot["notes"]
            cursor.execute(
                "UPDATE cemetery_plots SET status = 'RESERVED', reserved_by = ?, reservation_expiry = ?, "
                "notes = ?, updated_at = ? WHERE id = ?",
                (
                    reservation.reserved_by,
                    reservation.reservation_expiry.isoformat() if reservation.reservation_expiry else None,
                    notes,
                    now_timestamp(),
                    plot_id,
                ),
            )
            conn.commit()
        finally:
            conn.close()
        await AuditService.record((current_user or {}).get("user_id"), "reserve", "plot", plot_id,
                                  {"reserved_by": reservation.reserved_by})
        return await cls.get_plot(plot_id)

    @classmethod
    async def assign(cls, plot_id: int, data: AssignmentCreate, current_user: Optional[dict] = None) -> PlotRead:
        """Assign an existing deceased record to a plot layer."""
        user_id = (current_user or {}).get("user_id")
        conn = get_connection()
        try:
            assignment_id = assign_on_cursor(
                conn.cursor(), plot_id, data.deceased_id, data.layer, data.permit_id, data.notes, user_id
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Assigned deceased %s to plot %s layer %s", data.deceased_id, plot_id, data.layer)
        await AuditService.record(user_id, "assign", "plot", plot_id,
                                  {"assignment_id": assignment_id, "deceased_id": data.deceased_id, "layer": data.layer})
        return await cls.get_plot(plot_id)

    @classmethod
    async def burial_assignment(cls, data: BurialAssignmentCreate, current_user: Optional[dict] = None) -> BurialAssignmentRead:
        """Register the deceased and assign the plot in a single transaction."""
        user_id = (current_user or {}).get("user_id")
        name = full_name(data.deceased.first_name, data.deceased.middle_name, data.deceased.last_name, data.deceased.suffix)
        notes = data.notes or f"Burial assignment for {name} - Layer {data.layer}"
        conn = get_connection()
        try:
            cursor = conn.cursor()
            deceased_id = insert_deceased(cursor, data.deceased, user_id)
            assignment_id = assign_on_cursor(
                cursor, data.plot_id, deceased_id, data.layer, data.permit_id, notes, user_id
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("Burial assignment %s: %s in plot %s layer %s", assignment_id, name, data.plot_id, data.layer)
        await AuditService.record(user_id, "burial_assignment", "plot", data.plot_id,
                                  {"assignment_id": assignment_id, "deceased_id": deceased_id})
        plot = await cls.get_plot(data.plot_id)
        assignment = next(a for a in plot.assignments if a.id == assignment_id)
        return BurialAssignmentRead(deceased=assignment.deceased, assignment=assignment)

    @classmethod
    async def vacate(cls, plot_id: int, assignment_id: int, current_user: Optional[dict] = None) -> PlotRead:
        """End an active assignment (e.g. after exhumation) and recompute the plot status."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            _fetch_plot(cursor, plot_id)
            assignment = cursor.execute(
                "SELECT id, status FROM plot_assignments WHERE id = ? AND plot_id = ?",
                (assignment_id, plot_id),
            ).fetchone()
            if not assignment:
                raise LookupError(f"Assignment {assignment_id} not found on plot {plot_id}")
            if assignment["status"] != "ASSIGNED":
                raise ValueError("Assignment is not active")
            now = now_timestamp()
            cursor.execute(
                "UPDATE plot_assignments SET status = 'VACATED', vacated_at = ? WHERE id = ?",
                (now, assignment_id),
            )
            new_status = "OCCUPIED" if _active_layers(cursor, plot_id) else "VACANT"
            cursor.execute(
                "UPDATE cemetery_plots SET status = ?, updated_at = ? WHERE id = ?",
                (new_status, now, plot_id),
            )
            conn.commit()
        finally:
            conn.close()
        await AuditService.record((current_user or {}).get("user_id"), "vacate", "plot", plot_id,
                                  {"assignment_id": assignment_id})
        return await cls.get_plot(plot_id)

    @classmethod
    async def statistics(cls, cemetery_id: Optional[int] = None) -> PlotStatistics:
        """Plot counts by status and the occupancy rate (percent, two decimals)."""
        conn = get_connection()
        try:
            if cemetery_id is not None:
                status_rows = conn.execute(
                    "SELECT status, COUNT(*) AS count FROM cemetery_plots WHERE cemetery_id = ? GROUP BY status",
                    (cemetery_id,),
                ).fetchall()
                assignments = conn.execute(
                    "SELECT COUNT(*) FROM plot_assignments a JOIN cemetery_plots p ON p.id = a.plot_id "
                    "WHERE a.status = 'ASSIGNED' AND p.cemetery_id = ?",
                    (cemetery_id,),
                ).fetchone()[0]
                sections = conn.execute(
                    "SELECT COUNT(*) FROM cemetery_sections WHERE cemetery_id = ?", (cemetery_id,)
                ).fetchone()[0]
                blocks = conn.execute(
                    "SELECT COUNT(*) FROM cemetery_blocks b JOIN cemetery_sections s ON s.id = b.section_id "
                    "WHERE s.cemetery_id = ?",
                    (cemetery_id,),
                ).fetchone()[0]
            else:
                status_rows = conn.execute(
                    "SELECT status, COUNT(*) AS count FROM cemetery_plots GROUP BY status"
                ).fetchall()
                assignments = conn.execute(
                    "SELECT COUNT(*) FROM plot_assignments WHERE status = 'ASSIGNED'"
                ).fetchone()[0]
                sections = conn.execute("SELECT COUNT(*) FROM cemetery_sections").fetchone()[0]
                blocks = conn.execute("SELECT COUNT(*) FROM cemetery_blocks").fetchone()[0]
        finally:
            conn.close()
        by_status = {row["status"]: row["count"] for row in status_rows}
        total = sum(by_status.values())
        occupied = by_status.get("OCCUPIED", 0)
        return PlotStatistics(
            total_plots=total,
            vacant_plots=by_status.get("VACANT", 0),
            reserved_plots=by_status.get("RESERVED", 0),
            occupied_plots=occupied,
            blocked_plots=by_status.get("BLOCKED", 0),
            total_assignments=assignments,
            occupancy_rate=round(occupied / total * 100, 2) if total else 0.0,
            total_sections=sections,
            total_blocks=blocks,
        )

    @classmethod
    async def add_gravestone(cls, plot_id: int, data: GravestoneCreate, current_user: Optional[dict] = None) -> GravestoneRead:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            _fetch_plot(cursor, plot_id)
            cursor.execute(
                "INSERT INTO gravestones (plot_id, material, inscription, condition, installed_date) VALUES (?, ?, ?, ?, ?)",
                (
                    plot_id,
                    data.material,
                    data.inscription,
                    data.condition.upper(),
                    data.installed_date.isoformat() if data.installed_date else None,
                ),
            )
            gravestone_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute("SELECT * FROM gravestones WHERE id = ?", (gravestone_id,)).fetchone()
        finally:
            conn.close()
        await AuditService.record((current_user or {}).get("user_id"), "create", "gravestone", gravestone_id)
        return GravestoneRead(**dict(row))

    @classmethod
    async def list_gravestones(cls, plot_id: int) -> List[GravestoneRead]:
        conn = get_connection()
        try:
            _fetch_plot(conn.cursor(), plot_id)
            return load_gravestones(conn, [plot_id]).get(plot_id, [])
        finally:
            conn.close()

    @classmethod
    async def delete_gravestone(cls, plot_id: int, gravestone_id: int, current_user: Optional[dict] = None) -> None:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM gravestones WHERE id = ? AND plot_id = ?", (gravestone_id, plot_id))
            if cursor.rowcount == 0:
                raise LookupError(f"Gravestone {gravestone_id} not found on plot {plot_id}")
            conn.commit()
        finally:
            conn.close()
        await AuditService.record((current_user or {}).get("user_id"), "delete", "gravestone", gravestone_id)
