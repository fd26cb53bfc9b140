"""
Audit service for recording and querying staff actions.

Significant changes (permit overrides, plot assignments, cemetery
deletions, reservation reviews, role changes) are written to the
``audit_logs`` table.  Only administrators may read the log.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Dict, List, Optional

from civic_portal_api.app.core.db import get_connection

logger = logging.getLogger(__name__)

# Record kinds written by the services; the log can only be filtered by these.
OBJECT_TYPES = (
    "cemetery",
    "section",
    "block",
    "plot",
    "gravestone",
    "deceased",
    "permit",
    "amenity",
    "amenity_reservation",
    "facility_request",
    "user",
)

_COLUMNS = "id, user_id, action, object_type, object_id, timestamp, details"


def normalize_object_type(value: str) -> str:
    object_type = value.strip().lower().replace("-", "_")
    if object_type not in OBJECT_TYPES:
        raise ValueError(f"Unknown object type '{value}'. Expected one of: {', '.join(OBJECT_TYPES)}")
    return object_type


def _to_entry(row: sqlite3.Row) -> Dict[str, Any]:
    entry = dict(row)
    if entry["details"]:
        try:
            entry["details"] = json.loads(entry["details"])
        except json.JSONDecodeError:
            logger.warning("Audit entry %s has non-JSON details", entry["id"])
    return entry


class AuditService:
    """Writes audit entries and answers the admin log views."""

    @classmethod
    async def log(
        cls,
        user_id: Optional[int],
        action: str,
        object_type: str,
        object_id: Optional[int] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Insert a new audit record.

        Parameters
        ----------
        user_id : Optional[int]
            Acting account, ``None`` for service tokens and self-registration.
        action : str
            ``create``, ``update``, ``assign``, ``PERMIT_OVERRIDE_WAIVE_FEE`` ...
        object_type : str
            One of ``OBJECT_TYPES``.
        object_id : Optional[int]
            Primary key of the affected record.
        details : Optional[dict]
            Extra data (previous status, reason, ids), stored as JSON.
        """
        details_json = json.dumps(details, default=str) if details else None
        conn = get_connection()
        try:
            conn.execute(
                "INSERT INTO audit_logs (user_id, action, object_type, object_id, details) VALUES (?, ?, ?, ?, ?)",
                (user_id, action, object_type, object_id, details_json),
            )
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def record(cls, user_id: Optional[int], action: str, object_type: str,
                     object_id: Optional[int] = None, details: Optional[dict] = None) -> None:
        """Like ``log`` but never fails the calling operation."""
        try:
            await cls.log(user_id, action, object_type, object_id, details)
        except sqlite3.Error as exc:
            logger.warning("Audit log write failed for %s %s/%s: %s", action, object_type, object_id, exc)

    @classmethod
    async def list_logs(
        cls,
        user_id: Optional[int] = None,
        object_type: Optional[str] = None,
        object_id: Optional[int] = None,
        action: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Audit records, newest first.

        Raises ``ValueError`` for an object type no service writes.  Date
        filters are ISO strings compared against ``timestamp``.
        """
        where_clauses: List[str] = []
        params: List[Any] = []
        if user_id is not None:
            where_clauses.append("user_id = ?")
            params.append(user_id)
        if object_type:
            where_clauses.append("object_type = ?")
            params.append(normalize_object_type(object_type))
        if object_id is not None:
            where_clauses.append("object_id = ?")
            params.append(object_id)
        if action:
            where_clauses.append("upper(action) = upper(?)")
            params.append(action)
        if start_date:
            where_clauses.append("timestamp >= ?")
            params.append(start_date)
        if end_date:
            where_clauses.append("timestamp <= ?")
            params.append(end_date)
        query = f"SELECT {_COLUMNS} FROM audit_logs"
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?"
        conn = get_connection()
        try:
            rows = conn.execute(query, tuple(params) + (limit, offset)).fetchall()
        finally:
            conn.close()
        return [_to_entry(row) for row in rows]

    @classmethod
    async def trail(cls, object_type: str, object_id: int) -> List[Dict[str, Any]]:
        """Everything done to one record (a permit, plot, reservation ...), oldest first."""
        conn = get_connection()
        try:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM audit_logs WHERE object_type = ? AND object_id = ? ORDER BY id",
                (normalize_object_type(object_type), object_id),
            ).fetchall()
        finally:
            conn.close()
        return [_to_entry(row) for row in rows]
