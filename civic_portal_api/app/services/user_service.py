"""
Business logic for portal accounts.

Accounts are stored in SQLite with PBKDF2-hashed passwords.  The first
account ever registered becomes the administrator so that a fresh
installation can be bootstrapped without a seed script.
"""

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from civic_portal_api.app.core.db import ROLE_ADMIN, ROLE_CITIZEN, get_connection
from civic_portal_api.app.core.security import hash_password, verify_password
from civic_portal_api.app.schemas.user import UserCreate, UserRead
from civic_portal_api.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

_USER_COLUMNS = "id, email, full_name, contact_number, role_id, disabled"


def _to_user(row: sqlite3.Row) -> UserRead:
    return UserRead(
        id=row["id"],
        email=row["email"],
        full_name=row["full_name"],
        contact_number=row["contact_number"],
        role_id=row["role_id"],
        disabled=bool(row["disabled"]),
    )


class UserService:
    """Service for registering, authenticating and administering users."""

    @classmethod
    async def create_user(cls, data: UserCreate) -> UserRead:
        """Register a new account.

        Raises ``ValueError`` when the e-mail is already registered.
        """
        logger.info("Registering user %s", data.email)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            existing = cursor.execute("SELECT id FROM users WHERE email = ?", (data.email,)).fetchone()
            if existing:
                raise ValueError(f"Email {data.email} is already registered")
            count = cursor.execute("SELECT COUNT(*) FROM users").fetchone()[0]
            role_id = ROLE_ADMIN if count == 0 else ROLE_CITIZEN
            cursor.execute(
                "INSERT INTO users (email, full_name, contact_number, password, role_id) VALUES (?, ?, ?, ?, ?)",
                (data.email, data.full_name, data.contact_number, hash_password(data.password), role_id),
            )
            user_id = cursor.lastrowid
            conn.commit()
        finally:
            conn.close()
        await AuditService.record(None, "create", "user", user_id, {"email": data.email, "role_id": role_id})
        return UserRead(
            id=user_id,
            email=data.email,
            full_name=data.full_name,
            contact_number=data.contact_number,
            role_id=role_id,
            disabled=False,
        )

    @classmethod
    async def authenticate(cls, email: str, password: str) -> Optional[UserRead]:
        """Return the user when the credentials match and the account is enabled."""
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {_USER_COLUMNS}, password FROM users WHERE email = ?",
                (email,),
            ).fetchone()
        finally:
            conn.close()
        if not row or row["disabled"]:
            return None
        if not verify_password(password, row["password"]):
            return None
        return _to_user(row)

    @classmethod
    async def list_users(cls, role_id: Optional[int] = None, limit: int = 100, offset: int = 0) -> List[UserRead]:
        conn = get_connection()
        try:
            query = f"SELECT {_USER_COLUMNS} FROM users"
            params: List[Any] = []
            if role_id is not None:
                query += " WHERE role_id = ?"
                params.append(role_id)
            query += " ORDER BY id LIMIT ? OFFSET ?"
            params.extend([limit, offset])
            return [_to_user(row) for row in conn.execute(query, tuple(params)).fetchall()]
        finally:
            conn.close()

    @classmethod
    async def get_user(cls, user_id: int) -> UserRead:
        conn = get_connection()
        try:
            row = conn.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise LookupError(f"User {user_id} not found")
        return _to_user(row)

    @classmethod
    async def update_user(cls, user_id: int, updates: Dict[str, Any], acting_user_id: Optional[int] = None) -> UserRead:
        """Apply administrator changes to an account.

        Raises ``LookupError`` if the user does not exist.
        """
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM users WHERE id = ?", (user_id,)).fetchone():
                raise LookupError(f"User {user_id} not found")
            fields = []
            values: List[Any] = []
            for key, value in updates.items():
                if key == "password":
                    value = hash_password(value)
                if isinstance(value, bool):
                    value = 1 if value else 0
                fields.append(f"{key} = ?")
                values.append(value)
            if fields:
                values.append(user_id)
                cursor.execute(
                    f"UPDATE users SET {', '.join(fields)}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    tuple(values),
                )
                conn.commit()
        finally:
            conn.close()
        audit_details = {k: v for k, v in updates.items() if k != "password"}
        await AuditService.record(acting_user_id, "update", "user", user_id, audit_details)
        return await cls.get_user(user_id)

    @classmethod
    async def statistics(cls) -> Dict[str, int]:
        """Account counts by role for the portal overview."""
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT role_id, COUNT(*) AS count FROM users WHERE disabled = 0 GROUP BY role_id"
            ).fetchall()
        finally:
            conn.close()
        by_role = {row["role_id"]: row["count"] for row in rows}
        return {
            "total_users": sum(by_role.values()),
            "admins": by_role.get(1, 0),
            "employees": by_role.get(2, 0),
            "citizens": by_role.get(3, 0),
        }
