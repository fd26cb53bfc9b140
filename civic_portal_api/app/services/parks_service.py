"""
Business logic for park amenities and their reservations.

A reservation starts in ``PENDING_REVIEW`` with a 24 hour hold.  Staff
move it to ``AWAITING_PAYMENT`` (payment due within 24 hours) and then to
``APPROVED``, at which point a QR payload is issued.  The QR payload can
be used for exactly one check-in.
"""

from __future__ import annotations

import json
import logging
import secrets
import sqlite3
import string
import time
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from civic_portal_api.app.core.db import get_connection, now_timestamp, row_to_dict, to_db_datetime
from civic_portal_api.app.schemas.parks import (
    AmenityAvailabilityCheck,
    AmenityCreate,
    AmenityRead,
    AmenityUpdate,
    ReservationCreate,
    ReservationPaymentUpdate,
    ReservationRead,
    ReservationStatusUpdate,
)
from civic_portal_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

RESERVATION_STATUSES = (
    "PENDING_REVIEW",
    "AWAITING_PAYMENT",
    "APPROVED",
    "REJECTED",
    "CHECKED_IN",
    "COMPLETED",
    "CANCELLED",
)
PAYMENT_STATUSES = ("UNPAID", "PAID", "EXEMPTED", "REFUNDED")
# Reservations in these states hold their time slot.
BLOCKING_STATUSES = ("APPROVED", "AWAITING_PAYMENT", "CHECKED_IN")
HOLD_HOURS = 24
PAYMENT_WINDOW_HOURS = 24

_SELECT = (
    "SELECT r.*, a.name AS amenity_name FROM amenity_reservations r "
    "JOIN amenities a ON a.id = r.amenity_id"
)


def generate_booking_code() -> str:
    """``AMN-<last 6 digits of epoch millis>-<4 random chars>``."""
    millis = str(int(time.time() * 1000))[-6:]
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(4))
    return f"AMN-{millis}-{suffix}"


def _hours_from_now(hours: int) -> str:
    return to_db_datetime(datetime.now(timezone.utc) + timedelta(hours=hours))


def _amenity_to_read(row: sqlite3.Row, upcoming: Optional[List[ReservationRead]] = None) -> AmenityRead:
    data = dict(row)
    data["is_active"] = bool(data.get("is_active"))
    data["upcoming_reservations"] = upcoming or []
    return AmenityRead(**data)


def _reservation_to_read(row: sqlite3.Row) -> ReservationRead:
    return ReservationRead(**row_to_dict(row, ("qr_payload",)))


def find_conflicts(
    cursor: sqlite3.Cursor,
    amenity_id: int,
    reservation_date: str,
    start: str,
    end: str,
    exclude_id: Optional[int] = None,
) -> List[sqlite3.Row]:
    """Reservations holding any part of ``[start, end)`` on that amenity and day."""
    placeholders = ", ".join("?" for _ in BLOCKING_STATUSES)
    query = (
        f"{_SELECT} WHERE r.amenity_id = ? AND r.reservation_date = ? AND r.status IN ({placeholders}) "
        "AND r.start_time < ? AND r.end_time > ?"
    )
    params: List[Any] = [amenity_id, reservation_date, *BLOCKING_STATUSES, end, start]
    if exclude_id is not None:
        query += " AND r.id != ?"
        params.append(exclude_id)
    return cursor.execute(query + " ORDER BY r.start_time", tuple(params)).fetchall()


class AmenityService:
    """CRUD for bookable park amenities."""

    @classmethod
    async def list_amenities(cls, amenity_type: Optional[str] = None, is_active: Optional[bool] = None) -> List[AmenityRead]:
        where_clauses: List[str] = []
        params: List[Any] = []
        if amenity_type:
            where_clauses.append("amenity_type = ?")
            params.append(amenity_type.upper())
        if is_active is not None:
            where_clauses.append("is_active = ?")
            params.append(1 if is_active else 0)
        query = "SELECT * FROM amenities"
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY name"
        conn = get_connection()
        try:
            return [_amenity_to_read(row) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def get_amenity(cls, amenity_id: int) -> AmenityRead:
        """Amenity with its upcoming approved or checked-in reservations."""
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM amenities WHERE id = ?", (amenity_id,)).fetchone()
            if not row:
                raise LookupError(f"Amenity {amenity_id} not found")
            upcoming = conn.execute(
                f"{_SELECT} WHERE r.amenity_id = ? AND r.status IN ('APPROVED', 'CHECKED_IN') "
                "AND r.reservation_date >= ? ORDER BY r.reservation_date, r.start_time",
                (amenity_id, date.today().isoformat()),
            ).fetchall()
        finally:
            conn.close()
        return _amenity_to_read(row, [_reservation_to_read(r) for r in upcoming])

    @classmethod
    async def create_amenity(cls, data: AmenityCreate) -> AmenityRead:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO amenities (name, amenity_type, description, capacity, hourly_rate, daily_rate) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (data.name, data.amenity_type.upper(), data.description, data.capacity, data.hourly_rate,
                 data.daily_rate),
            )
            amenity_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        logger.info("Amenity %s created (%s)", amenity_id, data.name)
        return await cls.get_amenity(amenity_id)

    @classmethod
    async def update_amenity(cls, amenity_id: int, updates: AmenityUpdate) -> AmenityRead:
        await cls.get_amenity(amenity_id)
        values = {k: v for k, v in updates.model_dump(exclude_unset=True).items() if v is not None}
        if "amenity_type" in values and values["amenity_type"]:
            values["amenity_type"] = values["amenity_type"].upper()
        if "is_active" in values:
            values["is_active"] = 1 if values["is_active"] else 0
        if values:
            values["updated_at"] = now_timestamp()
            assignments = ", ".join(f"{key} = ?" for key in values)
            conn = get_connection()
            try:
                conn.execute(f"UPDATE amenities SET {assignments} WHERE id = ?",
                             tuple(values.values()) + (amenity_id,))
                conn.commit()
            finally:
                conn.close()
        return await cls.get_amenity(amenity_id)

    @classmethod
    async def check_availability(cls, amenity_id: int, data: AmenityAvailabilityCheck) -> Dict[str, Any]:
        """Whether a time slot is free, with the reservations holding it."""
        start = data.start_time.strftime("%H:%M")
        end = data.end_time.strftime("%H:%M")
        if end <= start:
            raise ValueError("End time must be after start time")
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM amenities WHERE id = ?", (amenity_id,)).fetchone():
                raise LookupError(f"Amenity {amenity_id} not found")
            rows = find_conflicts(cursor, amenity_id, data.reservation_date.isoformat(), start, end)
        finally:
            conn.close()
        return {"available": not rows, "conflicts": [_reservation_to_read(row) for row in rows]}

    @classmethod
    async def delete_amenity(cls, amenity_id: int, current_user: Optional[dict] = None) -> None:
        """Delete an amenity and its past reservation records.

        Raises ``ValueError`` while a reservation still holds one of its
        time slots.
        """
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM amenities WHERE id = ?", (amenity_id,)).fetchone():
                raise LookupError(f"Amenity {amenity_id} not found")
            placeholders = ", ".join("?" for _ in BLOCKING_STATUSES)
            active = cursor.execute(
                f"SELECT COUNT(*) FROM amenity_reservations WHERE amenity_id = ? AND status IN ({placeholders})",
                (amenity_id, *BLOCKING_STATUSES),
            ).fetchone()[0]
            if active:
                raise ValueError(f"Amenity has {active} active reservation(s) and cannot be deleted")
            cursor.execute("DELETE FROM amenity_reservations WHERE amenity_id = ?", (amenity_id,))
            cursor.execute("DELETE FROM amenities WHERE id = ?", (amenity_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Amenity %s deleted", amenity_id)
        await AuditService.record((current_user or {}).get("user_id"), "delete", "amenity", amenity_id)


class ReservationService:
    """Amenity reservations from request to check-in."""

    @classmethod
    async def create_reservation(cls, data: ReservationCreate) -> ReservationRead:
        """Book an amenity for a time slot on one day.

        Raises ``LookupError`` for an unknown amenity and ``ValueError``
        when the amenity is inactive, the slot is empty or it overlaps a
        reservation that already holds it.
        """
        start = data.start_time.strftime("%H:%M")
        end = data.end_time.strftime("%H:%M")
        if end <= start:
            raise ValueError("End time must be after start time")
        reservation_date = data.reservation_date.isoformat()

        conn = get_connection()
        try:
            cursor = conn.cursor()
            amenity = cursor.execute("SELECT * FROM amenities WHERE id = ?", (data.amenity_id,)).fetchone()
            if not amenity:
                raise LookupError(f"Amenity {data.amenity_id} not found")
            if not amenity["is_active"]:
                raise ValueError("Amenity is not available for reservations")
            if find_conflicts(cursor, data.amenity_id, reservation_date, start, end):
                raise ValueError("Selected time slot is not available")

            booking_code = generate_booking_code()
            cursor.execute(
                """
                INSERT INTO amenity_reservations (
                    booking_code, amenity_id, requester_name, requester_email, requester_contact,
                    reservation_date, start_time, end_time, guest_count, purpose, status,
                    total_amount, payment_status, hold_expires_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'PENDING_REVIEW', ?, 'UNPAID', ?)
                """,
                (
                    booking_code,
                    data.amenity_id,
                    data.requester_name,
                    data.requester_email,
                    data.requester_contact,
                    reservation_date,
                    start,
                    end,
                    data.guest_count,
                    data.purpose,
                    amenity["daily_rate"] or 0,
                    _hours_from_now(HOLD_HOURS),
                ),
            )
            reservation_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        logger.info("Reservation %s created for amenity %s on %s %s-%s",
                    booking_code, data.amenity_id, reservation_date, start, end)
        return await cls.get_reservation(reservation_id)

    @classmethod
    async def get_reservation(cls, reservation_id: int) -> ReservationRead:
        conn = get_connection()
        try:
            row = conn.execute(f"{_SELECT} WHERE r.id = ?", (reservation_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise LookupError(f"Reservation {reservation_id} not found")
        return _reservation_to_read(row)

    @classmethod
    async def list_reservations(
        cls,
        status: Optional[str] = None,
        reservation_date: Optional[date] = None,
        amenity_id: Optional[int] = None,
    ) -> List[ReservationRead]:
        where_clauses: List[str] = []
        params: List[Any] = []
        if status:
            where_clauses.append("r.status = ?")
            params.append(status.upper())
        if reservation_date:
            where_clauses.append("r.reservation_date = ?")
            params.append(reservation_date.isoformat())
        if amenity_id is not None:
            where_clauses.append("r.amenity_id = ?")
            params.append(amenity_id)
        query = _SELECT
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY r.created_at DESC, r.id DESC"
        conn = get_connection()
        try:
            return [_reservation_to_read(row) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def update_status(
        cls, reservation_id: int, update: ReservationStatusUpdate, current_user: Optional[dict] = None
    ) -> ReservationRead:
        """Move a reservation through review.

        ``AWAITING_PAYMENT`` opens a 24 hour payment window, ``APPROVED``
        issues the QR payload and ``REJECTED`` records the reason.
        """
        status = update.status.strip().upper()
        if status not in RESERVATION_STATUSES:
            raise ValueError(f"Invalid status. Must be one of: {', '.join(RESERVATION_STATUSES)}")
        reservation = await cls.get_reservation(reservation_id)
        if status in BLOCKING_STATUSES and reservation.status not in BLOCKING_STATUSES:
            conn = get_connection()
            try:
                taken = find_conflicts(
                    conn.cursor(),
                    reservation.amenity_id,
                    reservation.reservation_date.isoformat(),
                    reservation.start_time,
                    reservation.end_time,
                    exclude_id=reservation_id,
                )
            finally:
                conn.close()
            if taken:
                raise ValueError(f"Time slot is already held by reservation {taken[0]['booking_code']}")
        user_id = (current_user or {}).get("user_id")
        now = now_timestamp()
        values: Dict[str, Any] = {"status": status, "updated_at": now}
        if status == "AWAITING_PAYMENT":
            values.update(payment_due_at=_hours_from_now(PAYMENT_WINDOW_HOURS), reviewed_by=user_id, reviewed_at=now)
        elif status == "APPROVED":
            payload = {
                "bookingCode": reservation.booking_code,
                "type": "AMENITY",
                "date": reservation.reservation_date.isoformat(),
                "requester": reservation.requester_name,
            }
            values.update(qr_payload=json.dumps(payload), approved_by=user_id, approved_at=now)
        elif status == "REJECTED":
            values.update(rejection_reason=update.rejection_reason, reviewed_by=user_id, reviewed_at=now)
        elif status == "CANCELLED":
            values["cancelled_at"] = now
        await cls._apply(reservation_id, values)
        logger.info("Reservation %s status %s -> %s", reservation.booking_code, reservation.status, status)
        await AuditService.record(user_id, "status_update", "amenity_reservation", reservation_id,
                                  {"from": reservation.status, "to": status})
        return await cls.get_reservation(reservation_id)

    @classmethod
    async def update_payment(cls, reservation_id: int, update: ReservationPaymentUpdate) -> ReservationRead:
        payment_status = update.payment_status.strip().upper()
        if payment_status not in PAYMENT_STATUSES:
            raise ValueError(f"Invalid payment status. Must be one of: {', '.join(PAYMENT_STATUSES)}")
        await cls.get_reservation(reservation_id)
        values: Dict[str, Any] = {"payment_status": payment_status, "updated_at": now_timestamp()}
        if payment_status in ("PAID", "EXEMPTED"):
            values["paid_at"] = now_timestamp()
        await cls._apply(reservation_id, values)
        return await cls.get_reservation(reservation_id)

    @classmethod
    async def check_in(cls, reservation_id: int, current_user: Optional[dict] = None) -> ReservationRead:
        """Admit the holder of an approved reservation.

        The QR payload is single use; a second check-in is refused with
        ``ValueError``.
        """
        reservation = await cls.get_reservation(reservation_id)
        if reservation.qr_used_at:
            raise ValueError("QR code has already been used")
        if reservation.status != "APPROVED":
            raise ValueError("Only approved reservations can be checked in")
        now = now_timestamp()
        await cls._apply(reservation_id, {"status": "CHECKED_IN", "qr_used_at": now, "checked_in_at": now,
                                          "updated_at": now})
        logger.info("Reservation %s checked in", reservation.booking_code)
        await AuditService.record((current_user or {}).get("user_id"), "check_in", "amenity_reservation",
                                  reservation_id)
        return await cls.get_reservation(reservation_id)

    @classmethod
    async def cancel(cls, reservation_id: int) -> ReservationRead:
        reservation = await cls.get_reservation(reservation_id)
        if reservation.status in ("CHECKED_IN", "COMPLETED", "CANCELLED"):
            raise ValueError(f"Reservation cannot be cancelled while {reservation.status}")
        now = now_timestamp()
        await cls._apply(reservation_id, {"status": "CANCELLED", "cancelled_at": now, "updated_at": now})
        logger.info("Reservation %s cancelled", reservation.booking_code)
        return await cls.get_reservation(reservation_id)

    @classmethod
    async def _apply(cls, reservation_id: int, values: Dict[str, Any]) -> None:
        assignments = ", ".join(f"{key} = ?" for key in values)
        conn = get_connection()
        try:
            conn.execute(f"UPDATE amenity_reservations SET {assignments} WHERE id = ?",
                         tuple(values.values()) + (reservation_id,))
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def dashboard_stats(cls) -> Dict[str, int]:
        """Reservation totals, approved bookings in the next 7 days and pending reviews."""
        today = date.today()
        conn = get_connection()
        try:
            total = conn.execute("SELECT COUNT(*) FROM amenity_reservations").fetchone()[0]
            upcoming = conn.execute(
                "SELECT COUNT(*) FROM amenity_reservations WHERE status = 'APPROVED' "
                "AND reservation_date >= ? AND reservation_date <= ?",
                (today.isoformat(), (today + timedelta(days=7)).isoformat()),
            ).fetchone()[0]
            pending = conn.execute(
                "SELECT COUNT(*) FROM amenity_reservations WHERE status = 'PENDING_REVIEW'"
            ).fetchone()[0]
            amenities = conn.execute("SELECT COUNT(*) FROM amenities WHERE is_active = 1").fetchone()[0]
        finally:
            conn.close()
        return {
            "total_reservations": total,
            "upcoming_reservations": upcoming,
            "pending_reservations": pending,
            "active_amenities": amenities,
        }
