"""
Business logic for deceased records.

Deceased records are the anchor for permits and plot assignments.  The
age at death is derived from the birth and death dates when the caller
does not supply it.
"""

import logging
import sqlite3
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from civic_portal_api.app.core.db import get_connection, now_timestamp
from civic_portal_api.app.schemas.deceased import DeceasedCreate, DeceasedRead
from civic_portal_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

_DATE_FIELDS = ("date_of_birth", "date_of_death", "burial_date")


def calculate_age(date_of_birth: Optional[date], date_of_death: Optional[date]) -> Optional[int]:
    """Whole years between birth and death using 365.25-day years."""
    if not date_of_birth or not date_of_death:
        return None
    return int((date_of_death - date_of_birth).days / 365.25)


def full_name(first_name: str, middle_name: Optional[str], last_name: str, suffix: Optional[str] = None) -> str:
    return " ".join(part for part in (first_name, middle_name, last_name, suffix) if part)


def deceased_to_read(row: sqlite3.Row) -> DeceasedRead:
    data = dict(row)
    data["full_name"] = full_name(row["first_name"], row["middle_name"], row["last_name"], row["suffix"])
    return DeceasedRead(**data)


def load_deceased(conn: sqlite3.Connection, deceased_ids: Iterable[int]) -> Dict[int, DeceasedRead]:
    """Fetch several deceased records keyed by id."""
    ids = list(deceased_ids)
    if not ids:
        return {}
    placeholders = ",".join("?" for _ in ids)
    rows = conn.execute(
        f"SELECT * FROM deceased_records WHERE id IN ({placeholders})", tuple(ids)
    ).fetchall()
    return {row["id"]: deceased_to_read(row) for row in rows}


def _serialise(values: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(values)
    for field in _DATE_FIELDS:
        if isinstance(result.get(field), date):
            result[field] = result[field].isoformat()
    return result


def _validate_dates(date_of_birth: Optional[date], date_of_death: Optional[date]) -> None:
    if date_of_birth and date_of_death and date_of_death < date_of_birth:
        raise ValueError("Date of death cannot be before date of birth")


def insert_deceased(cursor: sqlite3.Cursor, data: DeceasedCreate, created_by: Optional[int]) -> int:
    """Insert a deceased record on an open cursor and return its id.

    Used directly by the burial assignment flow so the record and the
    plot assignment share one transaction.
    """
    _validate_dates(data.date_of_birth, data.date_of_death)
    values = data.model_dump()
    if values.get("age") is None:
        values["age"] = calculate_age(data.date_of_birth, data.date_of_death)
    values = _serialise(values)
    values["created_by"] = created_by
    columns = list(values.keys())
    cursor.execute(
        f"INSERT INTO deceased_records ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
        tuple(values[c] for c in columns),
    )
    return cursor.lastrowid


class DeceasedService:
    """Service for creating and maintaining deceased records."""

    @classmethod
    async def create_deceased(cls, data: DeceasedCreate, current_user: Optional[dict] = None) -> DeceasedRead:
        user_id = (current_user or {}).get("user_id")
        conn = get_connection()
        try:
            deceased_id = insert_deceased(conn.cursor(), data, user_id)
            conn.commit()
        finally:
            conn.close()
        logger.info("Registered deceased record %s (%s %s)", deceased_id, data.first_name, data.last_name)
        await AuditService.record(user_id, "create", "deceased", deceased_id)
        return await cls.get_deceased(deceased_id)

    @classmethod
    async def get_deceased(cls, deceased_id: int) -> DeceasedRead:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM deceased_records WHERE id = ?", (deceased_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise LookupError(f"Deceased record {deceased_id} not found")
        return deceased_to_read(row)

    @classmethod
    async def list_deceased(cls, name: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[DeceasedRead]:
        """List records, optionally filtered by a case-insensitive name fragment."""
        conn = get_connection()
        try:
            query = "SELECT * FROM deceased_records"
            params: List[Any] = []
            if name:
                pattern = f"%{name.strip().lower()}%"
                query += (
                    " WHERE lower(first_name) LIKE ? OR lower(last_name) LIKE ?"
                    " OR lower(COALESCE(middle_name, '')) LIKE ?"
                    " OR lower(first_name || ' ' || last_name) LIKE ?"
                )
                params.extend([pattern] * 4)
            query += " ORDER BY last_name, first_name, id LIMIT ? OFFSET ?"
            params.extend([limit, offset])
            return [deceased_to_read(row) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def update_deceased(cls, deceased_id: int, updates: Dict[str, Any], current_user: Optional[dict] = None) -> DeceasedRead:
        """Partially update a record; the age is re-derived when dates change."""
        existing = await cls.get_deceased(deceased_id)
        date_of_birth = updates.get("date_of_birth", existing.date_of_birth)
        date_of_death = updates.get("date_of_death", existing.date_of_death)
        _validate_dates(date_of_birth, date_of_death)
        if "age" not in updates and ("date_of_birth" in updates or "date_of_death" in updates):
            updates["age"] = calculate_age(date_of_birth, date_of_death)
        if not updates:
            return existing
        values = _serialise(updates)
        values["updated_at"] = now_timestamp()
        assignments = ", ".join(f"{key} = ?" for key in values)
        conn = get_connection()
        try:
            conn.execute(
                f"UPDATE deceased_records SET {assignments} WHERE id = ?",
                tuple(values.values()) + (deceased_id,),
            )
            conn.commit()
        finally:
            conn.close()
        await AuditService.record((current_user or {}).get("user_id"), "update", "deceased", deceased_id, updates)
        return await cls.get_deceased(deceased_id)

    @classmethod
    async def delete_deceased(cls, deceased_id: int, current_user: Optional[dict] = None) -> None:
        """Delete a record that is not referenced by burials or permits."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM deceased_records WHERE id = ?", (deceased_id,)).fetchone():
                raise LookupError(f"Deceased record {deceased_id} not found")
            assignments = cursor.execute(
                "SELECT COUNT(*) FROM plot_assignments WHERE deceased_id = ?", (deceased_id,)
            ).fetchone()[0]
            permits = cursor.execute(
                "SELECT COUNT(*) FROM permits WHERE deceased_id = ?", (deceased_id,)
            ).fetchone()[0]
            if assignments or permits:
                raise ValueError("Cannot delete a deceased record with plot assignments or permits")
            cursor.execute("DELETE FROM deceased_records WHERE id = ?", (deceased_id,))
            conn.commit()
        finally:
            conn.close()
        await AuditService.record((current_user or {}).get("user_id"), "delete", "deceased", deceased_id)
