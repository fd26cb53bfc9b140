"""
Business logic for burial, exhumation and cremation permits.

Citizens submit permit applications against a deceased record; staff
move them through verification, payment and issuance.  Administrators
may override the workflow (approve, reject, waive or adjust the fee,
reset the status); every override requires a reason and is written to
the audit log.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from civic_portal_api.app.core.db import get_connection, now_timestamp
from civic_portal_api.app.schemas.permit import PermitCreate, PermitOverride, PermitRead, PermitStatusUpdate
from civic_portal_api.app.services.audit_service import AuditService
from civic_portal_api.app.services.deceased_service import full_name

logger = logging.getLogger(__name__)

PERMIT_FEES = {"BURIAL": 500.0, "EXHUMATION": 1000.0, "CREMATION": 750.0}
DEFAULT_PERMIT_FEE = 500.0
PERMIT_PREFIXES = {"BURIAL": "BP", "EXHUMATION": "EP", "CREMATION": "CP"}
PERMIT_STATUSES = (
    "DRAFT",
    "SUBMITTED",
    "PENDING_VERIFICATION",
    "FOR_PAYMENT",
    "PAID",
    "ISSUED",
    "FOR_PICKUP",
    "CLAIMED",
    "REJECTED",
    "CANCELLED",
)
OVERRIDE_ACTIONS = ("approve", "reject", "waive_fee", "adjust_fee", "reset_status")

_SELECT = (
    "SELECT p.*, d.first_name, d.middle_name, d.last_name, d.suffix FROM permits p "
    "LEFT JOIN deceased_records d ON d.id = p.deceased_id"
)


def permit_fee(permit_type: str) -> float:
    return PERMIT_FEES.get(permit_type.upper(), DEFAULT_PERMIT_FEE)


def normalize_permit_type(value: str) -> str:
    permit_type = value.strip().upper()
    if permit_type not in PERMIT_FEES:
        raise ValueError("Invalid permit type. Must be BURIAL, EXHUMATION, or CREMATION")
    return permit_type


def build_remarks(data: PermitCreate) -> str:
    """Initial remarks carrying the scheduling details of the application."""
    remarks = data.remarks or "New permit request submitted"
    if data.requested_date:
        remarks += f"\nRequested Date: {data.requested_date.isoformat()}"
        if data.requested_time:
            remarks += f" at {data.requested_time}"
    if data.plot_preference:
        remarks += f"\nPlot Preference: {data.plot_preference}"
    if data.special_requests:
        remarks += f"\nSpecial Requests: {data.special_requests}"
    if data.contact_person:
        remarks += f"\nContact Person: {data.contact_person}"
    if data.contact_number:
        remarks += f"\nContact Number: {data.contact_number}"
    return remarks


def _next_permit_number(cursor: sqlite3.Cursor, permit_type: str) -> str:
    year = datetime.now(timezone.utc).year
    prefix = f"{PERMIT_PREFIXES[permit_type]}-{year}-"
    last = cursor.execute(
        "SELECT MAX(CAST(substr(permit_number, ?) AS INTEGER)) FROM permits WHERE permit_number LIKE ?",
        (len(prefix) + 1, f"{prefix}%"),
    ).fetchone()[0]
    sequence = (last or 0) + 1
    return f"{prefix}{sequence:05d}"


def _to_read(row: sqlite3.Row) -> PermitRead:
    data = dict(row)
    data["fee_waived"] = bool(data.get("fee_waived"))
    if row["first_name"]:
        data["deceased_name"] = full_name(row["first_name"], row["middle_name"], row["last_name"], row["suffix"])
    return PermitRead(**data)


class PermitService:
    """Service for permit applications and their workflow."""

    @classmethod
    async def create_permit(cls, data: PermitCreate, current_user: Optional[dict] = None) -> PermitRead:
        """Submit a permit application.

        The fee is fixed by the permit type and the application starts in
        ``SUBMITTED``.  Raises ``LookupError`` if the deceased or plot does
        not exist.
        """
        permit_type = normalize_permit_type(data.permit_type)
        user = current_user or {}
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM deceased_records WHERE id = ?", (data.deceased_id,)).fetchone():
                raise LookupError(f"Deceased record {data.deceased_id} not found")
            if data.plot_id is not None and not cursor.execute(
                "SELECT id FROM cemetery_plots WHERE id = ?", (data.plot_id,)
            ).fetchone():
                raise LookupError(f"Plot {data.plot_id} not found")
            permit_number = _next_permit_number(cursor, permit_type)
            cursor.execute(
                """
                INSERT INTO permits (
                    permit_number, permit_type, deceased_id, plot_id, applicant_id, applicant_name,
                    applicant_email, applicant_phone, relationship_to_deceased, status, fee_amount, remarks
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 'SUBMITTED', ?, ?)
                """,
                (
                    permit_number,
                    permit_type,
                    data.deceased_id,
                    data.plot_id,
                    user.get("user_id"),
                    data.applicant_name,
                    data.applicant_email or (user.get("sub") if "@" in str(user.get("sub", "")) else None),
                    data.applicant_phone,
                    data.relationship_to_deceased,
                    permit_fee(permit_type),
                    build_remarks(data),
                ),
            )
            permit_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        logger.info("Permit %s submitted (%s)", permit_number, permit_type)
        await AuditService.record(user.get("user_id"), "create", "permit", permit_id, {"permit_number": permit_number})
        return await cls.get_permit(permit_id)

    @classmethod
    async def get_permit(cls, permit_id: int) -> PermitRead:
        conn = get_connection()
        try:
            row = conn.execute(f"{_SELECT} WHERE p.id = ?", (permit_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise LookupError(f"Permit {permit_id} not found")
        return _to_read(row)

    @classmethod
    async def list_permits(
        cls,
        permit_type: Optional[str] = None,
        status: Optional[str] = None,
        deceased_id: Optional[int] = None,
        applicant_id: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[PermitRead]:
        where_clauses: List[str] = []
        params: List[Any] = []
        if permit_type:
            where_clauses.append("p.permit_type = ?")
            params.append(permit_type.upper())
        if status:
            where_clauses.append("p.status = ?")
            params.append(status.upper())
        if deceased_id is not None:
            where_clauses.append("p.deceased_id = ?")
            params.append(deceased_id)
        if applicant_id is not None:
            where_clauses.append("p.applicant_id = ?")
            params.append(applicant_id)
        query = _SELECT
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY p.created_at DESC, p.id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        conn = get_connection()
        try:
            return [_to_read(row) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def update_status(cls, permit_id: int, update: PermitStatusUpdate, current_user: Optional[dict] = None) -> PermitRead:
        """Move a permit to another workflow status.

        ``ISSUED`` stamps ``issued_at`` and marks the permit ready for pickup.
        """
        status = update.status.strip().upper()
        if status not in PERMIT_STATUSES:
            raise ValueError(f"Invalid status. Must be one of: {', '.join(PERMIT_STATUSES)}")
        permit = await cls.get_permit(permit_id)
        values: Dict[str, Any] = {"status": status, "updated_at": now_timestamp()}
        if update.remarks:
            values["remarks"] = update.remarks
        if status == "ISSUED":
            values["issued_at"] = now_timestamp()
            values["pickup_status"] = "READY"
        elif status == "CLAIMED":
            values["pickup_status"] = "CLAIMED"
        if status == "REJECTED" and update.rejection_reason:
            values["rejection_reason"] = update.rejection_reason
        await cls._apply(permit_id, values)
        logger.info("Permit %s status %s -> %s", permit.permit_number, permit.status, status)
        await AuditService.record((current_user or {}).get("user_id"), "status_update", "permit", permit_id,
                                  {"from": permit.status, "to": status})
        return await cls.get_permit(permit_id)

    @classmethod
    async def override(cls, permit_id: int, override: PermitOverride, current_user: Optional[dict] = None) -> PermitRead:
        """Apply an administrator override and record it in the audit log."""
        action = override.action.strip().lower()
        if action not in OVERRIDE_ACTIONS:
            raise ValueError(f"Invalid override action. Must be one of: {', '.join(OVERRIDE_ACTIONS)}")
        reason = override.reason.strip()
        if not reason:
            raise ValueError("A reason is required for overrides")
        permit = await cls.get_permit(permit_id)
        now = now_timestamp()
        if action == "approve":
            values = {"status": "ISSUED", "issued_at": now, "pickup_status": "READY",
                      "remarks": f"Admin Override: {reason}"}
        elif action == "reject":
            values = {"status": "REJECTED", "rejection_reason": reason, "remarks": f"Admin Override: {reason}"}
        elif action == "waive_fee":
            values = {"fee_amount": 0, "fee_waived": 1, "remarks": f"Admin Override - Fee Waived: {reason}"}
        elif action == "adjust_fee":
            if override.new_fee is None:
                raise ValueError("new_fee is required to adjust the fee")
            values = {"fee_amount": override.new_fee, "fee_waived": 0,
                      "remarks": f"Admin Override - Fee Adjusted to PHP {override.new_fee:.2f}: {reason}"}
        else:
            values = {"status": "SUBMITTED", "issued_at": None, "pickup_status": "NOT_READY",
                      "remarks": f"Admin Override - Status Reset: {reason}"}
        values["updated_at"] = now
        await cls._apply(permit_id, values)
        logger.warning("Permit %s override %s by user %s", permit.permit_number, action,
                       (current_user or {}).get("user_id"))
        await AuditService.record(
            (current_user or {}).get("user_id"),
            f"PERMIT_OVERRIDE_{action.upper()}",
            "permit",
            permit_id,
            {"reason": reason, "previous_status": permit.status, "previous_fee": permit.fee_amount},
        )
        return await cls.get_permit(permit_id)

    @classmethod
    async def _apply(cls, permit_id: int, values: Dict[str, Any]) -> None:
        assignments = ", ".join(f"{key} = ?" for key in values)
        conn = get_connection()
        try:
            conn.execute(f"UPDATE permits SET {assignments} WHERE id = ?", tuple(values.values()) + (permit_id,))
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def statistics(cls) -> Dict[str, Any]:
        """Permit counts by type and status."""
        conn = get_connection()
        try:
            by_type = {row["permit_type"]: row["count"] for row in conn.execute(
                "SELECT permit_type, COUNT(*) AS count FROM permits GROUP BY permit_type").fetchall()}
            by_status = {row["status"]: row["count"] for row in conn.execute(
                "SELECT status, COUNT(*) AS count FROM permits GROUP BY status").fetchall()}
        finally:
            conn.close()
        return {
            "total_permits": sum(by_type.values()),
            "burial_permits": by_type.get("BURIAL", 0),
            "exhumation_permits": by_type.get("EXHUMATION", 0),
            "cremation_permits": by_type.get("CREMATION", 0),
            "pending_permits": sum(by_status.get(s, 0) for s in ("SUBMITTED", "PENDING_VERIFICATION", "FOR_PAYMENT")),
            "issued_permits": sum(by_status.get(s, 0) for s in ("ISSUED", "FOR_PICKUP", "CLAIMED")),
            "by_status": by_status,
        }
