"""
Business logic for cemeteries and their layout.

A cemetery is divided into sections, sections into blocks and blocks
into plots.  This module manages the three upper levels, produces the
nested structure and map layers consumed by the portal, and generates
plot grids inside block boundaries.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections import defaultdict
from typing import Any, Dict, List, Optional

from civic_portal_api.app.core.config import settings
from civic_portal_api.app.core.db import get_connection, now_timestamp, row_to_dict
from civic_portal_api.app.core.geo import boundary_center, grid_plots, plot_style, polygon_area, section_color
from civic_portal_api.app.schemas.cemetery import (
    BlockCreate,
    BlockRead,
    CemeteryCreate,
    CemeteryRead,
    CemeteryStatistics,
    PlotGeneration,
    SectionCreate,
    SectionRead,
)
from civic_portal_api.app.services.audit_service import AuditService
from civic_portal_api.app.services.plot_service import PlotService, load_assignments, plot_to_read

logger = logging.getLogger(__name__)

BLOCK_TYPES = {"STANDARD", "PREMIUM", "FAMILY", "NICHE"}


def _dump_boundary(boundary: Optional[List[List[float]]]) -> Optional[str]:
    return json.dumps(boundary) if boundary else None


def cemetery_center(boundary: Optional[List[List[float]]]) -> List[float]:
    """Center of a cemetery boundary, or the configured default map center."""
    center = boundary_center(boundary, (settings.default_map_lat, settings.default_map_lng))
    return [center[0], center[1]]


def _cemetery_to_read(row: sqlite3.Row) -> CemeteryRead:
    data = row_to_dict(row, ("boundary",))
    data["center"] = cemetery_center(data.get("boundary"))
    return CemeteryRead(**data)


def _normalize_block_type(value: str) -> str:
    block_type = value.strip().upper()
    if block_type not in BLOCK_TYPES:
        raise ValueError(f"Invalid block type '{value}'. Expected one of {', '.join(sorted(BLOCK_TYPES))}")
    return block_type


def _update_row(cursor: sqlite3.Cursor, table: str, row_id: int, updates: Dict[str, Any]) -> None:
    values: Dict[str, Any] = {}
    for key, value in updates.items():
        if key == "boundary":
            values[key] = _dump_boundary(value)
        elif isinstance(value, bool):
            values[key] = 1 if value else 0
        elif hasattr(value, "isoformat"):
            values[key] = value.isoformat()
        else:
            values[key] = value
    if not values:
        return
    values["updated_at"] = now_timestamp()
    assignments = ", ".join(f"{key} = ?" for key in values)
    cursor.execute(f"UPDATE {table} SET {assignments} WHERE id = ?", tuple(values.values()) + (row_id,))


class CemeteryService:
    """Service for cemetery records, nested layout, statistics and map data."""

    @classmethod
    async def create_cemetery(cls, data: CemeteryCreate, current_user: Optional[dict] = None) -> CemeteryRead:
        total_area = data.total_area
        if total_area is None and data.boundary and len(data.boundary) >= 3:
            # Shoelace in degrees squared, converted with 111 km per degree.
            total_area = round(polygon_area(data.boundary) * 111_000 * 111_000, 2)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO cemeteries (
                    name, description, address, city, postal_code, established_date, total_area,
                    boundary, standard_price, large_price, family_price, niche_price, maintenance_fee
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data.name,
                    data.description,
                    data.address,
                    data.city,
                    data.postal_code,
                    data.established_date.isoformat() if data.established_date else None,
                    total_area,
                    _dump_boundary(data.boundary),
                    data.standard_price,
                    data.large_price,
                    data.family_price,
                    data.niche_price,
                    data.maintenance_fee,
                ),
            )
            cemetery_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        logger.info("Created cemetery %s (%s)", cemetery_id, data.name)
        await AuditService.record((current_user or {}).get("user_id"), "create", "cemetery", cemetery_id,
                                  {"name": data.name})
        return await cls.get_cemetery(cemetery_id)

    @classmethod
    async def list_cemeteries(cls, include_inactive: bool = False) -> List[CemeteryRead]:
        conn = get_connection()
        try:
            query = "SELECT * FROM cemeteries"
            if not include_inactive:
                query += " WHERE is_active = 1"
            query += " ORDER BY name, id"
            return [_cemetery_to_read(row) for row in conn.execute(query).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def get_cemetery(cls, cemetery_id: int) -> CemeteryRead:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM cemeteries WHERE id = ?", (cemetery_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise LookupError(f"Cemetery {cemetery_id} not found")
        return _cemetery_to_read(row)

    @classmethod
    async def update_cemetery(cls, cemetery_id: int, updates: Dict[str, Any], current_user: Optional[dict] = None) -> CemeteryRead:
        await cls.get_cemetery(cemetery_id)
        conn = get_connection()
        try:
            _update_row(conn.cursor(), "cemeteries", cemetery_id, updates)
            conn.commit()
        finally:
            conn.close()
        await AuditService.record((current_user or {}).get("user_id"), "update", "cemetery", cemetery_id,
                                  {k: v for k, v in updates.items() if k != "boundary"})
        return await cls.get_cemetery(cemetery_id)

    @classmethod
    async def delete_cemetery(cls, cemetery_id: int, cascade: bool = False, current_user: Optional[dict] = None) -> Dict[str, int]:
        """Delete a cemetery.

        Without ``cascade`` the cemetery must have no sections or plots.
        With ``cascade`` every assignment, gravestone, plot, block and
        section is removed in the same transaction; permits keep their
        deceased link but lose the plot reference.
        """
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM cemeteries WHERE id = ?", (cemetery_id,)).fetchone():
                raise LookupError(f"Cemetery {cemetery_id} not found")
            plot_count = cursor.execute(
                "SELECT COUNT(*) FROM cemetery_plots WHERE cemetery_id = ?", (cemetery_id,)
            ).fetchone()[0]
            section_count = cursor.execute(
                "SELECT COUNT(*) FROM cemetery_sections WHERE cemetery_id = ?", (cemetery_id,)
            ).fetchone()[0]
            if (plot_count or section_count) and not cascade:
                raise ValueError(
                    f"Cemetery has {section_count} sections and {plot_count} plots; use cascade=true to delete them"
                )
            plot_ids = "SELECT id FROM cemetery_plots WHERE cemetery_id = ?"
            removed_assignments = cursor.execute(
                f"DELETE FROM plot_assignments WHERE plot_id IN ({plot_ids})", (cemetery_id,)
            ).rowcount
            cursor.execute(f"DELETE FROM gravestones WHERE plot_id IN ({plot_ids})", (cemetery_id,))
            cursor.execute(f"UPDATE permits SET plot_id = NULL WHERE plot_id IN ({plot_ids})", (cemetery_id,))
            cursor.execute("DELETE FROM cemetery_plots WHERE cemetery_id = ?", (cemetery_id,))
            removed_blocks = cursor.execute(
                "DELETE FROM cemetery_blocks WHERE section_id IN (SELECT id FROM cemetery_sections WHERE cemetery_id = ?)",
                (cemetery_id,),
            ).rowcount
            cursor.execute("DELETE FROM cemetery_sections WHERE cemetery_id = ?", (cemetery_id,))
            cursor.execute("DELETE FROM cemeteries WHERE id = ?", (cemetery_id,))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        summary = {
            "sections": section_count,
            "blocks": removed_blocks,
            "plots": plot_count,
            "assignments": removed_assignments,
        }
        logger.warning("Deleted cemetery %s (cascade=%s): %s", cemetery_id, cascade, summary)
        await AuditService.record((current_user or {}).get("user_id"), "delete", "cemetery", cemetery_id, summary)
        return summary

    @classmethod
    async def structure(cls, cemetery_id: int) -> Dict[str, Any]:
        """Nested cemetery → sections → blocks → plots → active burials.

        Plots placed in a section but no block are listed on the section;
        plots with neither are listed on the cemetery as ``unplaced_plots``.
        """
        cemetery = await cls.get_cemetery(cemetery_id)
        conn = get_connection()
        try:
            sections = conn.execute(
                "SELECT * FROM cemetery_sections WHERE cemetery_id = ? ORDER BY name, id", (cemetery_id,)
            ).fetchall()
            blocks = conn.execute(
                "SELECT b.* FROM cemetery_blocks b JOIN cemetery_sections s ON s.id = b.section_id "
                "WHERE s.cemetery_id = ? ORDER BY b.name, b.id",
                (cemetery_id,),
            ).fetchall()
            plots = conn.execute(
                "SELECT * FROM cemetery_plots WHERE cemetery_id = ? ORDER BY plot_number, id", (cemetery_id,)
            ).fetchall()
            assignments = load_assignments(conn, [p["id"] for p in plots], active_only=True)
        finally:
            conn.close()

        plots_by_block: Dict[int, list] = defaultdict(list)
        plots_by_section: Dict[int, list] = defaultdict(list)
        unplaced = []
        for plot in plots:
            read = plot_to_read(plot, assignments.get(plot["id"])).model_dump()
            if plot["block_id"] is not None:
                plots_by_block[plot["block_id"]].append(read)
            elif plot["section_id"] is not None:
                plots_by_section[plot["section_id"]].append(read)
            else:
                unplaced.append(read)

        blocks_by_section: Dict[int, list] = defaultdict(list)
        for block in blocks:
            data = row_to_dict(block, ("boundary",))
            data["plots"] = plots_by_block.get(block["id"], [])
            blocks_by_section[block["section_id"]].append(data)

        result = cemetery.model_dump()
        result["sections"] = []
        for section in sections:
            data = row_to_dict(section, ("boundary",))
            data["blocks"] = blocks_by_section.get(section["id"], [])
            data["plots"] = plots_by_section.get(section["id"], [])
            result["sections"].append(data)
        result["unplaced_plots"] = unplaced
        return result

    @classmethod
    async def statistics(cls, cemetery_id: int) -> CemeteryStatistics:
        await cls.get_cemetery(cemetery_id)
        stats = await PlotService.statistics(cemetery_id)
        return CemeteryStatistics(
            cemetery_id=cemetery_id,
            total_plots=stats.total_plots,
            vacant_plots=stats.vacant_plots,
            reserved_plots=stats.reserved_plots,
            occupied_plots=stats.occupied_plots,
            blocked_plots=stats.blocked_plots,
            total_sections=stats.total_sections,
            total_blocks=stats.total_blocks,
            total_burials=stats.total_assignments,
            occupancy_rate=stats.occupancy_rate,
        )

    @classmethod
    async def map_layers(cls, cemetery_id: int) -> Dict[str, Any]:
        """Boundary, center and colored polygons for sections, blocks and plots."""
        cemetery = await cls.get_cemetery(cemetery_id)
        conn = get_connection()
        try:
            sections = conn.execute(
                "SELECT id, name, boundary FROM cemetery_sections WHERE cemetery_id = ? ORDER BY id", (cemetery_id,)
            ).fetchall()
            blocks = conn.execute(
                "SELECT b.id, b.name, b.section_id, b.block_type, b.boundary FROM cemetery_blocks b "
                "JOIN cemetery_sections s ON s.id = b.section_id WHERE s.cemetery_id = ? ORDER BY b.id",
                (cemetery_id,),
            ).fetchall()
            plots = conn.execute(
                "SELECT id, plot_number, status, latitude, longitude, boundary, block_id FROM cemetery_plots "
                "WHERE cemetery_id = ? ORDER BY id",
                (cemetery_id,),
            ).fetchall()
        finally:
            conn.close()

        section_colors: Dict[int, str] = {}
        section_features = []
        for index, row in enumerate(sections):
            section_colors[row["id"]] = section_color(index)
            data = row_to_dict(row, ("boundary",))
            section_features.append({**data, "color": section_colors[row["id"]]})
        block_features = []
        for row in blocks:
            data = row_to_dict(row, ("boundary",))
            block_features.append({**data, "color": section_colors.get(row["section_id"], section_color(0))})
        plot_features = []
        for row in plots:
            data = row_to_dict(row, ("boundary",))
            plot_features.append({**data, **plot_style(row["status"])})
        return {
            "cemetery_id": cemetery.id,
            "name": cemetery.name,
            "boundary": cemetery.boundary,
            "center": cemetery.center,
            "sections": section_features,
            "blocks": block_features,
            "plots": plot_features,
        }


class SectionService:
    """Service for cemetery sections."""

    @classmethod
    async def create_section(cls, data: SectionCreate, current_user: Optional[dict] = None) -> SectionRead:
        """Create a section; names are unique per cemetery (case-insensitive)."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM cemeteries WHERE id = ?", (data.cemetery_id,)).fetchone():
                raise LookupError(f"Cemetery {data.cemetery_id} not found")
            duplicate = cursor.execute(
                "SELECT id FROM cemetery_sections WHERE cemetery_id = ? AND lower(name) = lower(?)",
                (data.cemetery_id, data.name),
            ).fetchone()
            if duplicate:
                raise ValueError(f"A section named '{data.name}' already exists in this cemetery")
            cursor.execute(
                "INSERT INTO cemetery_sections (cemetery_id, name, description, capacity, boundary) VALUES (?, ?, ?, ?, ?)",
                (data.cemetery_id, data.name, data.description, data.capacity, _dump_boundary(data.boundary)),
            )
            section_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        await AuditService.record((current_user or {}).get("user_id"), "create", "section", section_id)
        return await cls.get_section(section_id)

    @classmethod
    async def get_section(cls, section_id: int) -> SectionRead:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM cemetery_sections WHERE id = ?", (section_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise LookupError(f"Section {section_id} not found")
        return SectionRead(**row_to_dict(row, ("boundary",)))

    @classmethod
    async def list_sections(cls, cemetery_id: Optional[int] = None) -> List[SectionRead]:
        conn = get_connection()
        try:
            if cemetery_id is not None:
                rows = conn.execute(
                    "SELECT * FROM cemetery_sections WHERE cemetery_id = ? ORDER BY name, id", (cemetery_id,)
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM cemetery_sections ORDER BY cemetery_id, name, id").fetchall()
            return [SectionRead(**row_to_dict(row, ("boundary",))) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def update_section(cls, section_id: int, updates: Dict[str, Any], current_user: Optional[dict] = None) -> SectionRead:
        section = await cls.get_section(section_id)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if updates.get("name"):
                duplicate = cursor.execute(
                    "SELECT id FROM cemetery_sections WHERE cemetery_id = ? AND lower(name) = lower(?) AND id != ?",
                    (section.cemetery_id, updates["name"], section_id),
                ).fetchone()
                if duplicate:
                    raise ValueError(f"A section named '{updates['name']}' already exists in this cemetery")
            _update_row(cursor, "cemetery_sections", section_id, updates)
            conn.commit()
        finally:
            conn.close()
        await AuditService.record((current_user or {}).get("user_id"), "update", "section", section_id)
        return await cls.get_section(section_id)

    @classmethod
    async def delete_section(cls, section_id: int, current_user: Optional[dict] = None) -> None:
        """Delete an empty section (no blocks and no plots)."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM cemetery_sections WHERE id = ?", (section_id,)).fetchone():
                raise LookupError(f"Section {section_id} not found")
            blocks = cursor.execute(
                "SELECT COUNT(*) FROM cemetery_blocks WHERE section_id = ?", (section_id,)
            ).fetchone()[0]
            plots = cursor.execute(
                "SELECT COUNT(*) FROM cemetery_plots WHERE section_id = ?", (section_id,)
            ).fetchone()[0]
            if blocks or plots:
                raise ValueError("Cannot delete a section that still has blocks or plots")
            cursor.execute("DELETE FROM cemetery_sections WHERE id = ?", (section_id,))
            conn.commit()
        finally:
            conn.close()
        await AuditService.record((current_user or {}).get("user_id"), "delete", "section", section_id)


class BlockService:
    """Service for blocks inside sections, including plot grid generation."""

    @classmethod
    def _to_read(cls, row: sqlite3.Row) -> BlockRead:
        return BlockRead(**row_to_dict(row, ("boundary",)))

    _SELECT = (
        "SELECT b.*, s.cemetery_id AS cemetery_id, s.name AS section_name FROM cemetery_blocks b "
        "JOIN cemetery_sections s ON s.id = b.section_id"
    )

    @classmethod
    async def create_block(cls, data: BlockCreate, current_user: Optional[dict] = None) -> BlockRead:
        block_type = _normalize_block_type(data.block_type)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM cemetery_sections WHERE id = ?", (data.section_id,)).fetchone():
                raise LookupError(f"Section {data.section_id} not found")
            duplicate = cursor.execute(
                "SELECT id FROM cemetery_blocks WHERE section_id = ? AND lower(name) = lower(?)",
                (data.section_id, data.name),
            ).fetchone()
            if duplicate:
                raise ValueError(f"A block named '{data.name}' already exists in this section")
            cursor.execute(
                "INSERT INTO cemetery_blocks (section_id, name, block_type, capacity, boundary) VALUES (?, ?, ?, ?, ?)",
                (data.section_id, data.name, block_type, data.capacity, _dump_boundary(data.boundary)),
            )
            block_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        await AuditService.record((current_user or {}).get("user_id"), "create", "block", block_id)
        return await cls.get_block(block_id)

    @classmethod
    async def get_block(cls, block_id: int) -> BlockRead:
        conn = get_connection()
        try:
            row = conn.execute(f"{cls._SELECT} WHERE b.id = ?", (block_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise LookupError(f"Block {block_id} not found")
        return cls._to_read(row)

    @classmethod
    async def list_blocks(cls, section_id: Optional[int] = None, cemetery_id: Optional[int] = None) -> List[BlockRead]:
        query = cls._SELECT
        where_clauses: List[str] = []
        params: List[Any] = []
        if section_id is not None:
            where_clauses.append("b.section_id = ?")
            params.append(section_id)
        if cemetery_id is not None:
            where_clauses.append("s.cemetery_id = ?")
            params.append(cemetery_id)
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY b.section_id, b.name, b.id"
        conn = get_connection()
        try:
            return [cls._to_read(row) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def update_block(cls, block_id: int, updates: Dict[str, Any], current_user: Optional[dict] = None) -> BlockRead:
        block = await cls.get_block(block_id)
        if updates.get("block_type"):
            updates["block_type"] = _normalize_block_type(updates["block_type"])
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if updates.get("name"):
                duplicate = cursor.execute(
                    "SELECT id FROM cemetery_blocks WHERE section_id = ? AND lower(name) = lower(?) AND id != ?",
                    (block.section_id, updates["name"], block_id),
                ).fetchone()
                if duplicate:
                    raise ValueError(f"A block named '{updates['name']}' already exists in this section")
            _update_row(cursor, "cemetery_blocks", block_id, updates)
            conn.commit()
        finally:
            conn.close()
        await AuditService.record((current_user or {}).get("user_id"), "update", "block", block_id)
        return await cls.get_block(block_id)

    @classmethod
    async def delete_block(cls, block_id: int, current_user: Optional[dict] = None) -> None:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM cemetery_blocks WHERE id = ?", (block_id,)).fetchone():
                raise LookupError(f"Block {block_id} not found")
            plots = cursor.execute("SELECT COUNT(*) FROM cemetery_plots WHERE block_id = ?", (block_id,)).fetchone()[0]
            if plots:
                raise ValueError("Cannot delete a block that still has plots")
            cursor.execute("DELETE FROM cemetery_blocks WHERE id = ?", (block_id,))
            conn.commit()
        finally:
            conn.close()
        await AuditService.record((current_user or {}).get("user_id"), "delete", "block", block_id)

    @classmethod
    async def generate_plots(cls, block_id: int, params: PlotGeneration, current_user: Optional[dict] = None) -> Dict[str, Any]:
        """Fill the block boundary with vacant plots.

        Plot numbers follow ``<section>-<block>-NNN``; numbers already
        used in the cemetery are skipped so the call can be repeated
        after the boundary grows.
        """
        block = await cls.get_block(block_id)
        if not block.boundary or len(block.boundary) < 3:
            raise ValueError("Block boundary must have at least 3 points to generate plots")
        rectangles = grid_plots(block.boundary, params.length, params.width, params.spacing)

        conn = get_connection()
        try:
            cursor = conn.cursor()
            cemetery = cursor.execute("SELECT * FROM cemeteries WHERE id = ?", (block.cemetery_id,)).fetchone()
            existing = {
                row["plot_number"]
                for row in cursor.execute(
                    "SELECT plot_number FROM cemetery_plots WHERE cemetery_id = ?", (block.cemetery_id,)
                ).fetchall()
            }
            created = 0
            skipped = 0
            for index, rectangle in enumerate(rectangles, start=1):
                plot_number = f"{block.section_name}-{block.name}-{index:03d}"
                if plot_number in existing:
                    skipped += 1
                    continue
                center = boundary_center(rectangle)
                cursor.execute(
                    """
                    INSERT INTO cemetery_plots (
                        cemetery_id, section_id, block_id, plot_number, plot_code, latitude, longitude,
                        boundary, size, length, width, depth, base_fee, maintenance_fee, status, max_layers
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'STANDARD', ?, ?, 1.5, ?, ?, 'VACANT', 3)
                    """,
                    (
                        block.cemetery_id,
                        block.section_id,
                        block_id,
                        plot_number,
                        plot_number,
                        center[0],
                        center[1],
                        json.dumps(rectangle),
                        params.length,
                        params.width,
                        cemetery["standard_price"],
                        cemetery["maintenance_fee"],
                    ),
                )
                created += 1
            conn.commit()
        finally:
            conn.close()
        logger.info("Generated %s plots in block %s (%s skipped)", created, block_id, skipped)
        await AuditService.record((current_user or {}).get("user_id"), "generate_plots", "block", block_id,
                                  {"created": created, "skipped": skipped})
        return {"block_id": block_id, "created": created, "skipped": skipped, "grid_size": len(rectangles)}
