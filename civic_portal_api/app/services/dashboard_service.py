"""
Service layer for dashboards and health reporting.

The portal overview gathers the statistics of every department at once.
Each part runs as its own coroutine under ``asyncio.gather`` with
``return_exceptions=True``; a part that fails is replaced by zeroed
defaults and reported as ``down`` in ``system_health`` instead of
failing the whole overview.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import Any, Awaitable, Callable, Dict, List

from civic_portal_api.app.core.db import get_connection, now_timestamp
from civic_portal_api.app.services.deceased_service import full_name
from civic_portal_api.app.services.facility_service import FacilityRequestService
from civic_portal_api.app.services.parks_service import ReservationService
from civic_portal_api.app.services.permit_service import PermitService
from civic_portal_api.app.services.plot_service import PlotService
from civic_portal_api.app.services.user_service import UserService
from civic_portal_api.app.services.water_service import DrainageService, WaterIssueService

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_LIMIT = 10

PART_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "permits": {
        "total_permits": 0,
        "burial_permits": 0,
        "exhumation_permits": 0,
        "cremation_permits": 0,
        "pending_permits": 0,
        "issued_permits": 0,
        "by_status": {},
    },
    "cemetery": {
        "total_plots": 0,
        "vacant_plots": 0,
        "reserved_plots": 0,
        "occupied_plots": 0,
        "blocked_plots": 0,
        "total_assignments": 0,
        "occupancy_rate": 0.0,
        "total_sections": 0,
        "total_blocks": 0,
    },
    "parks": {
        "total_reservations": 0,
        "upcoming_reservations": 0,
        "pending_reservations": 0,
        "active_amenities": 0,
    },
    "facilities": {
        "total_requests": 0,
        "pending_requests": 0,
        "approved_requests": 0,
        "rejected_requests": 0,
        "cancelled_requests": 0,
        "active_requests": 0,
        "government_events": 0,
        "private_events": 0,
        "total_revenue": 0.0,
        "active_facilities": 0,
    },
    "water": {"total": 0, "pending": 0, "in_progress": 0, "resolved": 0},
    "drainage": {"total": 0, "pending": 0, "in_progress": 0, "completed": 0},
    "users": {"total_users": 0, "admins": 0, "employees": 0, "citizens": 0},
}


async def _permit_part() -> Dict[str, Any]:
    return await PermitService.statistics()


async def _cemetery_part() -> Dict[str, Any]:
    return (await PlotService.statistics()).model_dump()


async def _parks_part() -> Dict[str, Any]:
    return await ReservationService.dashboard_stats()


async def _facility_part() -> Dict[str, Any]:
    return await FacilityRequestService.dashboard_stats()


async def _water_part() -> Dict[str, Any]:
    summary = await WaterIssueService.summary()
    return {
        "total": summary.total,
        "pending": summary.by_status.get("PENDING", 0),
        "in_progress": summary.by_status.get("IN_PROGRESS", 0),
        "resolved": summary.by_status.get("RESOLVED", 0),
    }


async def _drainage_part() -> Dict[str, Any]:
    summary = await DrainageService.summary()
    return {
        "total": summary.total,
        "pending": summary.by_status.get("PENDING", 0),
        "in_progress": summary.by_status.get("IN_PROGRESS", 0),
        "completed": summary.by_status.get("COMPLETED", 0),
    }


async def _user_part() -> Dict[str, Any]:
    return await UserService.statistics()


PARTS: Dict[str, Callable[[], Awaitable[Dict[str, Any]]]] = {
    "permits": _permit_part,
    "cemetery": _cemetery_part,
    "parks": _parks_part,
    "facilities": _facility_part,
    "water": _water_part,
    "drainage": _drainage_part,
    "users": _user_part,
}


class DashboardService:
    """Aggregated views for the admin dashboards."""

    @classmethod
    async def portal_overview(cls) -> Dict[str, Any]:
        """Statistics of every department plus per-service health."""
        names = list(PARTS)
        results = await asyncio.gather(*(PARTS[name]() for name in names), return_exceptions=True)
        overview: Dict[str, Any] = {}
        services: Dict[str, str] = {}
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.error("Dashboard part %s failed: %s", name, result)
                overview[name] = dict(PART_DEFAULTS[name])
                services[name] = "down"
            else:
                overview[name] = result
                services[name] = "up"
        overview["system_health"] = {
            "services": services,
            "overall": "healthy" if all(state == "up" for state in services.values()) else "degraded",
        }
        overview["generated_at"] = now_timestamp()
        return overview

    @classmethod
    async def cemetery_dashboard(cls) -> Dict[str, Any]:
        """Permit and plot counts with the ten most recent burial activities."""
        permits = await PermitService.statistics()
        plots = await PlotService.statistics()
        conn = get_connection()
        try:
            cemeteries = conn.execute("SELECT COUNT(*) FROM cemeteries WHERE is_active = 1").fetchone()[0]
            permit_rows = conn.execute(
                "SELECT p.id, p.permit_number, p.permit_type, p.status, p.created_at, "
                "d.first_name, d.middle_name, d.last_name, d.suffix "
                "FROM permits p LEFT JOIN deceased_records d ON d.id = p.deceased_id "
                "ORDER BY p.created_at DESC, p.id DESC LIMIT ?",
                (RECENT_ACTIVITY_LIMIT,),
            ).fetchall()
            assignment_rows = conn.execute(
                "SELECT a.id, a.layer, a.assigned_at, pl.plot_number, "
                "d.first_name, d.middle_name, d.last_name, d.suffix "
                "FROM plot_assignments a JOIN cemetery_plots pl ON pl.id = a.plot_id "
                "JOIN deceased_records d ON d.id = a.deceased_id "
                "ORDER BY a.assigned_at DESC, a.id DESC LIMIT ?",
                (RECENT_ACTIVITY_LIMIT,),
            ).fetchall()
        finally:
            conn.close()

        activities: List[Dict[str, Any]] = []
        for row in permit_rows:
            name = full_name(row["first_name"], row["middle_name"], row["last_name"], row["suffix"]) \
                if row["first_name"] else None
            activities.append({
                "type": "permit",
                "id": row["id"],
                "description": f"{row['permit_type'].title()} permit {row['permit_number']} ({row['status']})",
                "deceased_name": name,
                "timestamp": row["created_at"],
            })
        for row in assignment_rows:
            name = full_name(row["first_name"], row["middle_name"], row["last_name"], row["suffix"])
            activities.append({
                "type": "assignment",
                "id": row["id"],
                "description": f"{name} assigned to plot {row['plot_number']} layer {row['layer']}",
                "deceased_name": name,
                "timestamp": row["assigned_at"],
            })
        activities.sort(key=lambda a: a["timestamp"] or "", reverse=True)

        return {
            "permits": permits,
            "total_cemeteries": cemeteries,
            "plots": plots.model_dump(),
            "recent_activities": activities[:RECENT_ACTIVITY_LIMIT],
        }

    @classmethod
    async def health(cls) -> Dict[str, Any]:
        """Database reachability and the number of mapped plots."""
        try:
            conn = get_connection()
            try:
                plots = conn.execute("SELECT COUNT(*) FROM cemetery_plots").fetchone()[0]
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "unhealthy", "database": "down", "error": str(exc), "timestamp": now_timestamp()}
        return {"status": "healthy", "database": "up", "plots": plots, "timestamp": now_timestamp()}
