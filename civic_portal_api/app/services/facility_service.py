"""
Business logic for municipal facility reservations.

Facilities (auditoriums, gyms, halls) are booked by date-time range.  A
range is unavailable when it touches an active request or a blackout
period; the comparison is inclusive so back-to-back bookings sharing a
boundary instant conflict.  Every status change of a request is
recorded in ``facility_request_history``.
"""

from __future__ import annotations

import logging
import math
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from civic_portal_api.app.core.db import get_connection, now_timestamp, to_db_datetime
from civic_portal_api.app.schemas.facility import (
    AvailabilityRead,
    BlackoutCreate,
    BlackoutRead,
    FacilityCreate,
    FacilityRead,
    FacilityRequestCancel,
    FacilityRequestCreate,
    FacilityRequestRead,
    FacilityRequestStatusUpdate,
    FacilityUpdate,
    StatusHistoryRead,
)
from civic_portal_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

REQUEST_STATUSES = (
    "PENDING_REVIEW",
    "AWAITING_REQUIREMENTS",
    "AWAITING_PAYMENT",
    "APPROVED",
    "REJECTED",
    "CANCELLED",
    "COMPLETED",
)
ACTIVE_STATUSES = ("PENDING_REVIEW", "AWAITING_REQUIREMENTS", "AWAITING_PAYMENT", "APPROVED")
CANCELLABLE_STATUSES = ("PENDING_REVIEW", "AWAITING_PAYMENT")
PAYMENT_STATUSES = ("PENDING", "PAID", "EXEMPTED", "REFUNDED")
EXEMPT_EVENT_TYPES = ("GOVERNMENT",)

_SELECT = (
    "SELECT r.*, f.name AS facility_name FROM facility_requests r "
    "JOIN facilities f ON f.id = r.facility_id"
)


def payment_amount(hourly_rate: float, start: datetime, end: datetime, event_type: str) -> float:
    """Whole hours (rounded up) times the hourly rate; government events are free."""
    if event_type.upper() in EXEMPT_EVENT_TYPES:
        return 0.0
    hours = math.ceil((end - start).total_seconds() / 3600)
    return float(hours * (hourly_rate or 0))


def _next_request_number(cursor: sqlite3.Cursor) -> str:
    year = datetime.now(timezone.utc).year
    prefix = f"FR-{year}-"
    last = cursor.execute(
        "SELECT MAX(CAST(substr(request_number, ?) AS INTEGER)) FROM facility_requests WHERE request_number LIKE ?",
        (len(prefix) + 1, f"{prefix}%"),
    ).fetchone()[0]
    sequence = (last or 0) + 1
    return f"{prefix}{sequence:04d}"


def _add_history(
    cursor: sqlite3.Cursor,
    request_id: int,
    from_status: Optional[str],
    to_status: str,
    changed_by: Optional[str],
    remarks: Optional[str],
) -> None:
    cursor.execute(
        "INSERT INTO facility_request_history (request_id, from_status, to_status, changed_by, remarks) "
        "VALUES (?, ?, ?, ?, ?)",
        (request_id, from_status, to_status, changed_by, remarks),
    )


def _facility_to_read(row: sqlite3.Row) -> FacilityRead:
    data = dict(row)
    data["is_active"] = bool(data.get("is_active"))
    return FacilityRead(**data)


def _actor(current_user: Optional[dict]) -> Optional[str]:
    if not current_user:
        return None
    return str(current_user.get("sub") or current_user.get("user_id"))


class FacilityService:
    """Facilities and their blackout periods."""

    @classmethod
    async def list_facilities(cls, include_inactive: bool = False) -> List[FacilityRead]:
        query = "SELECT * FROM facilities"
        if not include_inactive:
            query += " WHERE is_active = 1"
        query += " ORDER BY name"
        conn = get_connection()
        try:
            return [_facility_to_read(row) for row in conn.execute(query).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def get_facility(cls, facility_id: int) -> FacilityRead:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM facilities WHERE id = ?", (facility_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise LookupError(f"Facility {facility_id} not found")
        return _facility_to_read(row)

    @classmethod
    async def create_facility(cls, data: FacilityCreate) -> FacilityRead:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO facilities (name, facility_type, capacity, description, location, hourly_rate) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (data.name, data.facility_type.upper(), data.capacity, data.description, data.location,
                 data.hourly_rate),
            )
            facility_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        logger.info("Facility %s created (%s)", facility_id, data.name)
        return await cls.get_facility(facility_id)

    @classmethod
    async def update_facility(cls, facility_id: int, updates: FacilityUpdate) -> FacilityRead:
        await cls.get_facility(facility_id)
        values = {k: v for k, v in updates.model_dump(exclude_unset=True).items() if v is not None}
        if values.get("facility_type"):
            values["facility_type"] = values["facility_type"].upper()
        if "is_active" in values:
            values["is_active"] = 1 if values["is_active"] else 0
        if values:
            values["updated_at"] = now_timestamp()
            assignments = ", ".join(f"{key} = ?" for key in values)
            conn = get_connection()
            try:
                conn.execute(f"UPDATE facilities SET {assignments} WHERE id = ?",
                             tuple(values.values()) + (facility_id,))
                conn.commit()
            finally:
                conn.close()
        return await cls.get_facility(facility_id)

    @classmethod
    async def add_blackout(cls, facility_id: int, data: BlackoutCreate) -> BlackoutRead:
        if data.end_at <= data.start_at:
            raise ValueError("Blackout end must be after its start")
        await cls.get_facility(facility_id)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO facility_blackouts (facility_id, start_at, end_at, reason) VALUES (?, ?, ?, ?)",
                (facility_id, to_db_datetime(data.start_at), to_db_datetime(data.end_at), data.reason),
            )
            row = cursor.execute("SELECT * FROM facility_blackouts WHERE id = ?", (cursor.lastrowid,)).fetchone()
            conn.commit()
        finally:
            conn.close()
        logger.info("Blackout %s-%s added to facility %s", row["start_at"], row["end_at"], facility_id)
        return BlackoutRead(**dict(row))

    @classmethod
    async def list_blackouts(cls, facility_id: int) -> List[BlackoutRead]:
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM facility_blackouts WHERE facility_id = ? ORDER BY start_at", (facility_id,)
            ).fetchall()
        finally:
            conn.close()
        return [BlackoutRead(**dict(row)) for row in rows]

    @classmethod
    async def delete_blackout(cls, blackout_id: int) -> None:
        conn = get_connection()
        try:
            cursor = conn.execute("DELETE FROM facility_blackouts WHERE id = ?", (blackout_id,))
            conn.commit()
        finally:
            conn.close()
        if cursor.rowcount == 0:
            raise LookupError(f"Blackout {blackout_id} not found")

    @classmethod
    async def check_availability(
        cls,
        facility_id: int,
        start_at: datetime,
        end_at: datetime,
        exclude_id: Optional[int] = None,
    ) -> AvailabilityRead:
        """Active requests and blackouts touching ``[start_at, end_at]``."""
        start = to_db_datetime(start_at)
        end = to_db_datetime(end_at)
        placeholders = ", ".join("?" for _ in ACTIVE_STATUSES)
        query = (
            f"{_SELECT} WHERE r.facility_id = ? AND r.status IN ({placeholders}) "
            "AND r.start_at <= ? AND r.end_at >= ?"
        )
        params: List[Any] = [facility_id, *ACTIVE_STATUSES, end, start]
        if exclude_id is not None:
            query += " AND r.id != ?"
            params.append(exclude_id)
        conn = get_connection()
        try:
            conflicts = conn.execute(query, tuple(params)).fetchall()
            blackouts = conn.execute(
                "SELECT * FROM facility_blackouts WHERE facility_id = ? AND start_at <= ? AND end_at >= ? "
                "ORDER BY start_at",
                (facility_id, end, start),
            ).fetchall()
        finally:
            conn.close()
        return AvailabilityRead(
            available=not conflicts and not blackouts,
            conflicts=[FacilityRequestRead(**dict(row)) for row in conflicts],
            blackouts=[BlackoutRead(**dict(row)) for row in blackouts],
        )


class FacilityRequestService:
    """Reservation requests for facilities."""

    @classmethod
    async def create_request(cls, data: FacilityRequestCreate) -> FacilityRequestRead:
        """Submit a request in ``PENDING_REVIEW``.

        Raises ``ValueError`` when the range is empty or unavailable and
        ``LookupError`` for an unknown facility.
        """
        if data.end_at <= data.start_at:
            raise ValueError("End date must be after start date")
        facility = await FacilityService.get_facility(data.facility_id)
        if not facility.is_active:
            raise ValueError("Facility is not available for reservations")
        availability = await FacilityService.check_availability(data.facility_id, data.start_at, data.end_at)
        if not availability.available:
            raise ValueError("Facility is not available for the selected dates")

        event_type = data.event_type.strip().upper()
        amount = payment_amount(facility.hourly_rate, data.start_at, data.end_at, event_type)
        payment_status = "EXEMPTED" if event_type in EXEMPT_EVENT_TYPES else "PENDING"
        conn = get_connection()
        try:
            cursor = conn.cursor()
            request_number = _next_request_number(cursor)
            cursor.execute(
                """
                INSERT INTO facility_requests (
                    request_number, facility_id, applicant_name, applicant_email, contact_number,
                    organization, event_type, event_title, purpose, expected_attendees, start_at, end_at,
                    status, payment_amount, payment_status
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'PENDING_REVIEW', ?, ?)
                """,
                (
                    request_number,
                    data.facility_id,
                    data.applicant_name,
                    data.applicant_email,
                    data.contact_number,
                    data.organization,
                    event_type,
                    data.event_title,
                    data.purpose,
                    data.expected_attendees,
                    to_db_datetime(data.start_at),
                    to_db_datetime(data.end_at),
                    amount,
                    payment_status,
                ),
            )
            request_id = cursor.lastrowid
            _add_history(cursor, request_id, None, "PENDING_REVIEW", data.applicant_email or data.contact_number,
                         "Request submitted")
            conn.commit()
        finally:
            conn.close()
        logger.info("Facility request %s submitted for facility %s", request_number, data.facility_id)
        return await cls.get_request(request_id)

    @classmethod
    async def get_request(cls, request_id: int) -> FacilityRequestRead:
        conn = get_connection()
        try:
            row = conn.execute(f"{_SELECT} WHERE r.id = ?", (request_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise LookupError(f"Facility request {request_id} not found")
        return FacilityRequestRead(**dict(row))

    @classmethod
    async def get_by_number(cls, request_number: str) -> FacilityRequestRead:
        conn = get_connection()
        try:
            row = conn.execute(f"{_SELECT} WHERE r.request_number = ?", (request_number,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise LookupError(f"Facility request {request_number} not found")
        return FacilityRequestRead(**dict(row))

    @classmethod
    async def list_requests(
        cls,
        status: Optional[str] = None,
        facility_id: Optional[int] = None,
        email: Optional[str] = None,
        contact_number: Optional[str] = None,
    ) -> List[FacilityRequestRead]:
        where_clauses: List[str] = []
        params: List[Any] = []
        if status:
            where_clauses.append("r.status = ?")
            params.append(status.upper())
        if facility_id is not None:
            where_clauses.append("r.facility_id = ?")
            params.append(facility_id)
        if email:
            where_clauses.append("r.applicant_email = ?")
            params.append(email)
        if contact_number:
            where_clauses.append("r.contact_number = ?")
            params.append(contact_number)
        query = _SELECT
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY r.created_at DESC, r.id DESC"
        conn = get_connection()
        try:
            return [FacilityRequestRead(**dict(row)) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def my_requests(cls, email: Optional[str] = None, contact_number: Optional[str] = None) -> List[FacilityRequestRead]:
        """Requests filed under an email or contact number."""
        if not email and not contact_number:
            raise ValueError("Email or contact number required")
        return await cls.list_requests(email=email, contact_number=contact_number)

    @classmethod
    async def history(cls, request_id: int) -> List[StatusHistoryRead]:
        await cls.get_request(request_id)
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM facility_request_history WHERE request_id = ? ORDER BY id", (request_id,)
            ).fetchall()
        finally:
            conn.close()
        return [StatusHistoryRead(**dict(row)) for row in rows]

    @classmethod
    async def update_status(
        cls, request_id: int, update: FacilityRequestStatusUpdate, current_user: Optional[dict] = None
    ) -> FacilityRequestRead:
        """Staff status change with a history entry.

        Approval schedules the event; rejection cancels it.
        """
        status = update.status.strip().upper()
        if status not in REQUEST_STATUSES:
            raise ValueError(f"Invalid status. Must be one of: {', '.join(REQUEST_STATUSES)}")
        request = await cls.get_request(request_id)
        values: Dict[str, Any] = {"status": status, "updated_at": now_timestamp()}
        if status == "APPROVED":
            values["event_status"] = "SCHEDULED"
        elif status in ("REJECTED", "CANCELLED"):
            values["event_status"] = "CANCELLED"
        elif status == "COMPLETED":
            values["event_status"] = "COMPLETED"
        if update.payment_status:
            payment_status = update.payment_status.strip().upper()
            if payment_status not in PAYMENT_STATUSES:
                raise ValueError(f"Invalid payment status. Must be one of: {', '.join(PAYMENT_STATUSES)}")
            values["payment_status"] = payment_status
        if update.remarks:
            values["admin_notes"] = update.remarks
        await cls._apply(request_id, values, request.status, status, _actor(current_user), update.remarks)
        logger.info("Facility request %s status %s -> %s", request.request_number, request.status, status)
        await AuditService.record((current_user or {}).get("user_id"), "status_update", "facility_request",
                                  request_id, {"from": request.status, "to": status})
        return await cls.get_request(request_id)

    @classmethod
    async def cancel(cls, request_id: int, data: FacilityRequestCancel) -> FacilityRequestRead:
        """Applicant-initiated cancellation.

        Raises ``PermissionError`` when the contact number does not match
        and ``ValueError`` when the request is past the cancellable states.
        """
        request = await cls.get_request(request_id)
        if request.contact_number != data.contact_number:
            raise PermissionError("Unauthorized to cancel this request")
        if request.status not in CANCELLABLE_STATUSES:
            raise ValueError("Cannot cancel request with current status")
        reason = data.reason or "Cancelled by applicant"
        await cls._apply(
            request_id,
            {"status": "CANCELLED", "event_status": "CANCELLED", "updated_at": now_timestamp()},
            request.status,
            "CANCELLED",
            data.contact_number,
            reason,
        )
        logger.info("Facility request %s cancelled by applicant", request.request_number)
        return await cls.get_request(request_id)

    @classmethod
    async def _apply(
        cls,
        request_id: int,
        values: Dict[str, Any],
        from_status: str,
        to_status: str,
        changed_by: Optional[str],
        remarks: Optional[str],
    ) -> None:
        assignments = ", ".join(f"{key} = ?" for key in values)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(f"UPDATE facility_requests SET {assignments} WHERE id = ?",
                           tuple(values.values()) + (request_id,))
            _add_history(cursor, request_id, from_status, to_status, changed_by, remarks)
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def dashboard_stats(cls) -> Dict[str, Any]:
        """Request counts by outcome plus collected and exempted amounts."""
        conn = get_connection()
        try:
            by_status = {row["status"]: row["count"] for row in conn.execute(
                "SELECT status, COUNT(*) AS count FROM facility_requests GROUP BY status").fetchall()}
            by_event_type = {row["event_type"]: row["count"] for row in conn.execute(
                "SELECT event_type, COUNT(*) AS count FROM facility_requests GROUP BY event_type").fetchall()}
            revenue = conn.execute(
                "SELECT COALESCE(SUM(payment_amount), 0) FROM facility_requests WHERE payment_status = 'PAID'"
            ).fetchone()[0]
            facilities = conn.execute("SELECT COUNT(*) FROM facilities WHERE is_active = 1").fetchone()[0]
        finally:
            conn.close()
        return {
            "total_requests": sum(by_status.values()),
            "pending_requests": by_status.get("PENDING_REVIEW", 0),
            "approved_requests": by_status.get("APPROVED", 0),
            "rejected_requests": by_status.get("REJECTED", 0),
            "cancelled_requests": by_status.get("CANCELLED", 0),
            "active_requests": sum(by_status.get(s, 0) for s in ACTIVE_STATUSES),
            "government_events": by_event_type.get("GOVERNMENT", 0),
            "private_events": by_event_type.get("PRIVATE", 0),
            "total_revenue": float(revenue),
            "active_facilities": facilities,
        }
