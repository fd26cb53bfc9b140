"""
Business logic for barangays and water / drainage service requests.

Water issue reports and drainage requests share one table layout and one
workflow, implemented once in :class:`ServiceRequestService` and bound to
its tables by the subclasses.  Issue types and statuses are stored in
upper snake case (``no-water`` becomes ``NO_WATER``).
"""

from __future__ import annotations

import json
import logging
import math
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from civic_portal_api.app.core.db import get_connection, now_timestamp, row_to_dict
from civic_portal_api.app.schemas.water import (
    BarangayCreate,
    BarangayRead,
    BarangayUpdate,
    DrainageSummary,
    ServiceRequestCreate,
    ServiceRequestPage,
    ServiceRequestRead,
    ServiceRequestUpdate,
    StatusUpdateCreate,
    StatusUpdateRead,
)

logger = logging.getLogger(__name__)

PRIORITIES = ("LOW", "MEDIUM", "HIGH", "URGENT")
DEFAULT_PRIORITY = "MEDIUM"
RECENT_UPDATES = 3
TOP_BARANGAYS = 10


def normalize_code(value: str) -> str:
    """``in-progress`` -> ``IN_PROGRESS``."""
    return value.strip().upper().replace("-", "_").replace(" ", "_")


def normalize_priority(value: Optional[str]) -> str:
    if not value:
        return DEFAULT_PRIORITY
    priority = value.strip().upper()
    if priority not in PRIORITIES:
        raise ValueError(f"Invalid priority. Must be one of: {', '.join(PRIORITIES)}")
    return priority


class BarangayService:
    """CRUD for barangays (city districts used to tag service requests)."""

    @classmethod
    async def list_barangays(cls, district: Optional[str] = None, search: Optional[str] = None) -> List[BarangayRead]:
        where_clauses: List[str] = []
        params: List[Any] = []
        if district:
            where_clauses.append("district = ?")
            params.append(district)
        if search:
            where_clauses.append("LOWER(name) LIKE ?")
            params.append(f"%{search.lower()}%")
        query = "SELECT * FROM barangays"
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY name"
        conn = get_connection()
        try:
            return [BarangayRead(**dict(row)) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def get_barangay(cls, barangay_id: int) -> BarangayRead:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM barangays WHERE id = ?", (barangay_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise LookupError(f"Barangay {barangay_id} not found")
        return BarangayRead(**dict(row))

    @classmethod
    async def create_barangay(cls, data: BarangayCreate) -> BarangayRead:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    "INSERT INTO barangays (name, district, population) VALUES (?, ?, ?)",
                    (data.name.strip(), data.district, data.population),
                )
            except sqlite3.IntegrityError as exc:
                raise ValueError(f"Barangay '{data.name}' already exists") from exc
            barangay_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        return await cls.get_barangay(barangay_id)

    @classmethod
    async def update_barangay(cls, barangay_id: int, updates: BarangayUpdate) -> BarangayRead:
        await cls.get_barangay(barangay_id)
        values = {k: v for k, v in updates.model_dump(exclude_unset=True).items() if v is not None}
        if values:
            values["updated_at"] = now_timestamp()
            assignments = ", ".join(f"{key} = ?" for key in values)
            conn = get_connection()
            try:
                try:
                    conn.execute(f"UPDATE barangays SET {assignments} WHERE id = ?",
                                 tuple(values.values()) + (barangay_id,))
                except sqlite3.IntegrityError as exc:
                    raise ValueError(f"Barangay '{values.get('name')}' already exists") from exc
                conn.commit()
            finally:
                conn.close()
        return await cls.get_barangay(barangay_id)

    @classmethod
    async def delete_barangay(cls, barangay_id: int) -> None:
        conn = get_connection()
        try:
            cursor = conn.execute("DELETE FROM barangays WHERE id = ?", (barangay_id,))
            conn.commit()
        finally:
            conn.close()
        if cursor.rowcount == 0:
            raise LookupError(f"Barangay {barangay_id} not found")


class ServiceRequestService:
    """Shared workflow for ticketed field-service requests.

    Subclasses set the request and update tables, the ticket prefix and
    the timestamp column stamped when a request reaches a final status.
    """

    table = ""
    updates_table = ""
    ticket_prefix = ""
    label = "Request"
    completion_columns: Dict[str, str] = {}

    @classmethod
    def _to_update(cls, row: sqlite3.Row) -> StatusUpdateRead:
        data = row_to_dict(row, ("photos",))
        data["photos"] = data.get("photos") or []
        return StatusUpdateRead(**data)

    @classmethod
    def _to_read(cls, row: sqlite3.Row, updates: Optional[List[StatusUpdateRead]] = None) -> ServiceRequestRead:
        data = row_to_dict(row, ("photos",))
        data["photos"] = data.get("photos") or []
        data["updates"] = updates or []
        return ServiceRequestRead(**data)

    @classmethod
    def _next_ticket(cls, cursor: sqlite3.Cursor) -> str:
        year = datetime.now(timezone.utc).year
        prefix = f"{cls.ticket_prefix}-{year}-"
        last = cursor.execute(
            f"SELECT MAX(CAST(substr(ticket_number, ?) AS INTEGER)) FROM {cls.table} WHERE ticket_number LIKE ?",
            (len(prefix) + 1, f"{prefix}%"),
        ).fetchone()[0]
        sequence = (last or 0) + 1
        return f"{prefix}{sequence:05d}"

    @classmethod
    def _load_updates(cls, conn: sqlite3.Connection, request_ids: List[int], per_request: Optional[int] = None) -> Dict[int, List[StatusUpdateRead]]:
        updates: Dict[int, List[StatusUpdateRead]] = {request_id: [] for request_id in request_ids}
        if not request_ids:
            return updates
        placeholders = ", ".join("?" for _ in request_ids)
        rows = conn.execute(
            f"SELECT * FROM {cls.updates_table} WHERE request_id IN ({placeholders}) "
            "ORDER BY created_at DESC, id DESC",
            tuple(request_ids),
        ).fetchall()
        for row in rows:
            bucket = updates[row["request_id"]]
            if per_request is None or len(bucket) < per_request:
                bucket.append(cls._to_update(row))
        return updates

    @classmethod
    def _status_values(cls, status: str) -> Dict[str, Any]:
        values: Dict[str, Any] = {"status": status}
        column = cls.completion_columns.get(status)
        if column:
            values[column] = now_timestamp()
        return values

    @classmethod
    async def list_requests(
        cls,
        status: Optional[str] = None,
        barangay: Optional[str] = None,
        issue_type: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> ServiceRequestPage:
        """Filtered, newest-first page of requests with their latest updates."""
        where_clauses: List[str] = []
        params: List[Any] = []
        if status:
            where_clauses.append("status = ?")
            params.append(normalize_code(status))
        if barangay:
            where_clauses.append("LOWER(barangay) LIKE ?")
            params.append(f"%{barangay.lower()}%")
        if issue_type:
            where_clauses.append("issue_type = ?")
            params.append(normalize_code(issue_type))
        if priority:
            where_clauses.append("priority = ?")
            params.append(priority.upper())
        if search:
            term = f"%{search.lower()}%"
            where_clauses.append(
                "(LOWER(ticket_number) LIKE ? OR LOWER(reporter_name) LIKE ? OR LOWER(COALESCE(account_number, '')) LIKE ? "
                "OR LOWER(COALESCE(location, '')) LIKE ? OR LOWER(description) LIKE ?)"
            )
            params.extend([term] * 5)
        where = " WHERE " + " AND ".join(where_clauses) if where_clauses else ""
        page = max(page, 1)
        limit = max(limit, 1)
        conn = get_connection()
        try:
            total = conn.execute(f"SELECT COUNT(*) FROM {cls.table}{where}", tuple(params)).fetchone()[0]
            rows = conn.execute(
                f"SELECT * FROM {cls.table}{where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                tuple(params) + (limit, (page - 1) * limit),
            ).fetchall()
            updates = cls._load_updates(conn, [row["id"] for row in rows], RECENT_UPDATES)
        finally:
            conn.close()
        return ServiceRequestPage(
            items=[cls._to_read(row, updates[row["id"]]) for row in rows],
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit),
        )

    @classmethod
    async def get_request(cls, request_id: int) -> ServiceRequestRead:
        conn = get_connection()
        try:
            row = conn.execute(f"SELECT * FROM {cls.table} WHERE id = ?", (request_id,)).fetchone()
            if not row:
                raise LookupError(f"{cls.label} {request_id} not found")
            updates = cls._load_updates(conn, [request_id])
        finally:
            conn.close()
        return cls._to_read(row, updates[request_id])

    @classmethod
    async def create_request(cls, data: ServiceRequestCreate) -> ServiceRequestRead:
        """File a new ticket in ``PENDING``."""
        issue_type = normalize_code(data.issue_type)
        priority = normalize_priority(data.priority)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            ticket_number = cls._next_ticket(cursor)
            cursor.execute(
                f"""
                INSERT INTO {cls.table} (
                    ticket_number, reporter_name, contact_number, email, account_number, issue_type,
                    description, location, barangay, latitude, longitude, priority, status, photos
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'PENDING', ?)
                """,
                (
                    ticket_number,
                    data.reporter_name,
                    data.contact_number,
                    data.email,
                    data.account_number,
                    issue_type,
                    data.description,
                    data.location,
                    data.barangay,
                    data.latitude,
                    data.longitude,
                    priority,
                    json.dumps(data.photos),
                ),
            )
            request_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        logger.info("%s %s filed (%s, %s)", cls.label, ticket_number, issue_type, priority)
        return await cls.get_request(request_id)

    @classmethod
    async def update_request(cls, request_id: int, updates: ServiceRequestUpdate) -> ServiceRequestRead:
        """Staff update of status, priority, assignment and notes."""
        await cls.get_request(request_id)
        data = updates.model_dump(exclude_unset=True)
        values: Dict[str, Any] = {}
        if data.get("status"):
            values.update(cls._status_values(normalize_code(data["status"])))
        if data.get("priority"):
            values["priority"] = normalize_priority(data["priority"])
        if "assigned_staff_id" in data:
            values["assigned_staff_id"] = data["assigned_staff_id"]
            values["assigned_staff_name"] = data.get("assigned_staff_name")
            if data["assigned_staff_id"]:
                values["assigned_at"] = now_timestamp()
        if "scheduled_date" in data:
            values["scheduled_date"] = data["scheduled_date"].isoformat() if data["scheduled_date"] else None
        for key in ("resolution_notes", "admin_notes"):
            if key in data:
                values[key] = data[key]
        if values:
            values["updated_at"] = now_timestamp()
            assignments = ", ".join(f"{key} = ?" for key in values)
            conn = get_connection()
            try:
                conn.execute(f"UPDATE {cls.table} SET {assignments} WHERE id = ?",
                             tuple(values.values()) + (request_id,))
                conn.commit()
            finally:
                conn.close()
        return await cls.get_request(request_id)

    @classmethod
    async def add_update(cls, request_id: int, data: StatusUpdateCreate) -> StatusUpdateRead:
        """Append a progress note and move the request to its status."""
        await cls.get_request(request_id)
        status = normalize_code(data.status)
        values = cls._status_values(status)
        values["updated_at"] = now_timestamp()
        assignments = ", ".join(f"{key} = ?" for key in values)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                f"INSERT INTO {cls.updates_table} (request_id, status, description, photos, updated_by, updated_by_role) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (request_id, status, data.description, json.dumps(data.photos), data.updated_by, data.updated_by_role),
            )
            update_id = cursor.lastrowid
            cursor.execute(f"UPDATE {cls.table} SET {assignments} WHERE id = ?", tuple(values.values()) + (request_id,))
            row = cursor.execute(f"SELECT * FROM {cls.updates_table} WHERE id = ?", (update_id,)).fetchone()
            conn.commit()
        finally:
            conn.close()
        logger.info("%s %s moved to %s", cls.label, request_id, status)
        return cls._to_update(row)

    @classmethod
    async def delete_request(cls, request_id: int) -> None:
        await cls.get_request(request_id)
        conn = get_connection()
        try:
            conn.execute(f"DELETE FROM {cls.updates_table} WHERE request_id = ?", (request_id,))
            conn.execute(f"DELETE FROM {cls.table} WHERE id = ?", (request_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("%s %s deleted", cls.label, request_id)

    @classmethod
    async def summary(cls) -> DrainageSummary:
        """Counts by status, issue type, priority and the ten busiest barangays."""
        conn = get_connection()
        try:
            def grouped(column: str, limit: Optional[int] = None) -> Dict[str, int]:
                query = (
                    f"SELECT {column} AS name, COUNT(*) AS total FROM {cls.table} "
                    f"WHERE {column} IS NOT NULL GROUP BY {column} ORDER BY total DESC, name"
                )
                if limit:
                    query += f" LIMIT {int(limit)}"
                return {row["name"]: row["total"] for row in conn.execute(query).fetchall()}

            total = conn.execute(f"SELECT COUNT(*) FROM {cls.table}").fetchone()[0]
            summary = DrainageSummary(
                total=total,
                by_status=grouped("status"),
                by_issue_type=grouped("issue_type"),
                by_barangay=grouped("barangay", TOP_BARANGAYS),
                by_priority=grouped("priority"),
            )
        finally:
            conn.close()
        return summary


class WaterIssueService(ServiceRequestService):
    table = "water_issues"
    updates_table = "water_issue_updates"
    ticket_prefix = "WI"
    label = "Water issue"
    completion_columns = {"RESOLVED": "resolved_at", "CLOSED": "closed_at"}


class DrainageService(ServiceRequestService):
    table = "drainage_requests"
    updates_table = "drainage_updates"
    ticket_prefix = "DR"
    label = "Drainage request"
    completion_columns = {"COMPLETED": "completed_at"}
