"""
SQLite database integration and simple migration system.

This module provides functions for obtaining a database connection
(``get_connection``), a committing cursor context manager
(``get_cursor``) and ``init_db`` which applies migrations on
application start.  Applied migration versions are stored in the
``migrations`` table and new migrations are executed in order.

Timestamps are written as naive UTC strings (``YYYY-MM-DD HH:MM:SS``)
so that lexical comparison in SQL matches chronological order.
Polygon boundaries and other structured columns are stored as JSON
text and decoded with ``row_to_dict``.
"""

import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Optional

from .config import settings


ROLE_ADMIN = 1
ROLE_EMPLOYEE = 2
ROLE_CITIZEN = 3


def get_database_path() -> str:
    """Compute the path to the SQLite database file.

    If ``settings.database_url`` is an absolute path, use it directly.
    Otherwise resolve it relative to the project root.
    """
    db_url = settings.database_url
    if os.path.isabs(db_url):
        return db_url
    base_dir = Path(__file__).resolve().parent.parent.parent  # civic_portal_api/
    return str((base_dir / db_url).resolve())


def get_connection() -> sqlite3.Connection:
    """Create and return a new SQLite connection.

    Rows are returned as ``sqlite3.Row`` objects keyed by column name and
    foreign key enforcement is switched on for the connection.
    """
    conn = sqlite3.connect(get_database_path())
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_cursor() -> Iterator[sqlite3.Cursor]:
    """Context manager that yields a cursor and closes the connection on exit."""
    conn = get_connection()
    try:
        yield conn.cursor()
        conn.commit()
    finally:
        conn.close()


def now_timestamp() -> str:
    """Current UTC time in the storage format."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def to_db_datetime(value: Optional[datetime]) -> Optional[str]:
    """Normalise a datetime into the storage format.

    Aware datetimes are converted to UTC first; naive ones are assumed to
    already be in UTC.
    """
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%d %H:%M:%S")


def row_to_dict(row: Optional[sqlite3.Row], json_fields: Iterable[str] = ()) -> Optional[Dict[str, Any]]:
    """Convert a row into a plain dict, decoding JSON text columns."""
    if row is None:
        return None
    data = dict(row)
    for field in json_fields:
        raw = data.get(field)
        if isinstance(raw, str) and raw:
            try:
                data[field] = json.loads(raw)
            except json.JSONDecodeError:
                data[field] = None
    return data


MIGRATIONS: list[tuple[int, str]] = [
    # Migration 1: identity and audit
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS roles (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            permissions TEXT
        );

        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT NOT NULL UNIQUE,
            full_name TEXT,
            contact_number TEXT,
            password TEXT,
            role_id INTEGER,
            disabled INTEGER DEFAULT 0,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(role_id) REFERENCES roles(id)
        );

        CREATE TABLE IF NOT EXISTS audit_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER,
            action TEXT NOT NULL,
            object_type TEXT NOT NULL,
            object_id INTEGER,
            timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            details TEXT
        );
        """,
    ),
    # Migration 2: cemetery layout, deceased records and burials
    (
        2,
        """
        CREATE TABLE IF NOT EXISTS cemeteries (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            description TEXT,
            address TEXT,
            city TEXT,
            postal_code TEXT,
            established_date TEXT,
            total_area REAL,
            boundary TEXT,
            standard_price REAL DEFAULT 5000,
            large_price REAL DEFAULT 8000,
            family_price REAL DEFAULT 15000,
            niche_price REAL DEFAULT 3000,
            maintenance_fee REAL DEFAULT 500,
            is_active INTEGER DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS cemetery_sections (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            cemetery_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            description TEXT,
            capacity INTEGER DEFAULT 100,
            boundary TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(cemetery_id) REFERENCES cemeteries(id)
        );

        CREATE TABLE IF NOT EXISTS cemetery_blocks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            section_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            block_type TEXT NOT NULL DEFAULT 'STANDARD',
            capacity INTEGER DEFAULT 50,
            boundary TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(section_id) REFERENCES cemetery_sections(id)
        );

        CREATE TABLE IF NOT EXISTS cemetery_plots (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            cemetery_id INTEGER NOT NULL,
            section_id INTEGER,
            block_id INTEGER,
            plot_number TEXT NOT NULL,
            plot_code TEXT,
            latitude REAL,
            longitude REAL,
            boundary TEXT,
            size TEXT NOT NULL DEFAULT 'STANDARD',
            length REAL DEFAULT 2.0,
            width REAL DEFAULT 1.0,
            depth REAL DEFAULT 1.5,
            base_fee REAL DEFAULT 5000,
            maintenance_fee REAL DEFAULT 500,
            orientation TEXT DEFAULT 'NORTH',
            accessibility INTEGER DEFAULT 1,
            status TEXT NOT NULL DEFAULT 'VACANT',
            max_layers INTEGER DEFAULT 3,
            notes TEXT,
            reserved_by TEXT,
            reservation_expiry TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(cemetery_id, plot_number),
            FOREIGN KEY(cemetery_id) REFERENCES cemeteries(id),
            FOREIGN KEY(section_id) REFERENCES cemetery_sections(id),
            FOREIGN KEY(block_id) REFERENCES cemetery_blocks(id)
        );

        CREATE TABLE IF NOT EXISTS deceased_records (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            first_name TEXT NOT NULL,
            middle_name TEXT,
            last_name TEXT NOT NULL,
            suffix TEXT,
            sex TEXT,
            date_of_birth TEXT,
            date_of_death TEXT NOT NULL,
            age INTEGER,
            place_of_death TEXT,
            residence_address TEXT,
            citizenship TEXT DEFAULT 'Filipino',
            civil_status TEXT,
            occupation TEXT,
            cause_of_death TEXT,
            burial_date TEXT,
            created_by INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS plot_assignments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            plot_id INTEGER NOT NULL,
            deceased_id INTEGER NOT NULL,
            permit_id INTEGER,
            layer INTEGER NOT NULL DEFAULT 1,
            status TEXT NOT NULL DEFAULT 'ASSIGNED',
            notes TEXT,
            assigned_by INTEGER,
            assigned_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            vacated_at TIMESTAMP,
            FOREIGN KEY(plot_id) REFERENCES cemetery_plots(id),
            FOREIGN KEY(deceased_id) REFERENCES deceased_records(id)
        );

        CREATE TABLE IF NOT EXISTS gravestones (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            plot_id INTEGER NOT NULL,
            material TEXT,
            inscription TEXT,
            condition TEXT DEFAULT 'GOOD',
            installed_date TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(plot_id) REFERENCES cemetery_plots(id)
        );

        CREATE INDEX IF NOT EXISTS idx_plots_cemetery ON cemetery_plots(cemetery_id);
        CREATE INDEX IF NOT EXISTS idx_assignments_plot ON plot_assignments(plot_id);
        CREATE INDEX IF NOT EXISTS idx_deceased_names ON deceased_records(last_name, first_name);
        """,
    ),
    # Migration 3: burial, exhumation and cremation permits
    (
        3,
        """
        CREATE TABLE IF NOT EXISTS permits (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            permit_number TEXT NOT NULL UNIQUE,
            permit_type TEXT NOT NULL,
            deceased_id INTEGER NOT NULL,
            plot_id INTEGER,
            applicant_id INTEGER,
            applicant_name TEXT NOT NULL,
            applicant_email TEXT,
            applicant_phone TEXT,
            relationship_to_deceased TEXT,
            status TEXT NOT NULL DEFAULT 'SUBMITTED',
            fee_amount REAL NOT NULL DEFAULT 0,
            fee_waived INTEGER DEFAULT 0,
            remarks TEXT,
            rejection_reason TEXT,
            pickup_status TEXT,
            issued_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(deceased_id) REFERENCES deceased_records(id),
            FOREIGN KEY(plot_id) REFERENCES cemetery_plots(id)
        );
        """,
    ),
    # Migration 4: park amenities and reservations
    (
        4,
        """
        CREATE TABLE IF NOT EXISTS amenities (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            amenity_type TEXT NOT NULL,
            description TEXT,
            capacity INTEGER,
            hourly_rate REAL DEFAULT 0,
            daily_rate REAL DEFAULT 0,
            is_active INTEGER DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS amenity_reservations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_code TEXT NOT NULL UNIQUE,
            amenity_id INTEGER NOT NULL,
            requester_name TEXT NOT NULL,
            requester_email TEXT,
            requester_contact TEXT,
            reservation_date TEXT NOT NULL,
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            guest_count INTEGER,
            purpose TEXT,
            status TEXT NOT NULL DEFAULT 'PENDING_REVIEW',
            total_amount REAL DEFAULT 0,
            payment_status TEXT NOT NULL DEFAULT 'UNPAID',
            hold_expires_at TIMESTAMP,
            payment_due_at TIMESTAMP,
            paid_at TIMESTAMP,
            qr_payload TEXT,
            qr_used_at TIMESTAMP,
            rejection_reason TEXT,
            reviewed_by INTEGER,
            reviewed_at TIMESTAMP,
            approved_by INTEGER,
            approved_at TIMESTAMP,
            checked_in_at TIMESTAMP,
            cancelled_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(amenity_id) REFERENCES amenities(id)
        );
        """,
    ),
    # Migration 5: facility reservations
    (
        5,
        """
        CREATE TABLE IF NOT EXISTS facilities (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            facility_type TEXT NOT NULL,
            capacity INTEGER,
            description TEXT,
            location TEXT,
            hourly_rate REAL DEFAULT 0,
            is_active INTEGER DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS facility_blackouts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            facility_id INTEGER NOT NULL,
            start_at TIMESTAMP NOT NULL,
            end_at TIMESTAMP NOT NULL,
            reason TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(facility_id) REFERENCES facilities(id)
        );

        CREATE TABLE IF NOT EXISTS facility_requests (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            request_number TEXT NOT NULL UNIQUE,
            facility_id INTEGER NOT NULL,
            applicant_name TEXT NOT NULL,
            applicant_email TEXT,
            contact_number TEXT NOT NULL,
            organization TEXT,
            event_type TEXT NOT NULL DEFAULT 'PRIVATE',
            event_title TEXT NOT NULL,
            purpose TEXT,
            expected_attendees INTEGER,
            start_at TIMESTAMP NOT NULL,
            end_at TIMESTAMP NOT NULL,
            status TEXT NOT NULL DEFAULT 'PENDING_REVIEW',
            event_status TEXT,
            payment_amount REAL DEFAULT 0,
            payment_status TEXT NOT NULL DEFAULT 'PENDING',
            admin_notes TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(facility_id) REFERENCES facilities(id)
        );

        CREATE TABLE IF NOT EXISTS facility_request_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            request_id INTEGER NOT NULL,
            from_status TEXT,
            to_status TEXT NOT NULL,
            changed_by TEXT,
            remarks TEXT,
            changed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(request_id) REFERENCES facility_requests(id)
        );
        """,
    ),
    # Migration 6: barangays, water issues and drainage requests
    (
        6,
        """
        CREATE TABLE IF NOT EXISTS barangays (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            district TEXT,
            population INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS water_issues (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            ticket_number TEXT NOT NULL UNIQUE,
            reporter_name TEXT NOT NULL,
            contact_number TEXT,
            email TEXT,
            account_number TEXT,
            issue_type TEXT NOT NULL,
            description TEXT NOT NULL,
            location TEXT,
            barangay TEXT,
            latitude REAL,
            longitude REAL,
            priority TEXT NOT NULL DEFAULT 'MEDIUM',
            status TEXT NOT NULL DEFAULT 'PENDING',
            photos TEXT,
            assigned_staff_id INTEGER,
            assigned_staff_name TEXT,
            assigned_at TIMESTAMP,
            scheduled_date TEXT,
            resolution_notes TEXT,
            admin_notes TEXT,
            resolved_at TIMESTAMP,
            closed_at TIMESTAMP,
            completed_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS water_issue_updates (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            request_id INTEGER NOT NULL,
            status TEXT NOT NULL,
            description TEXT,
            photos TEXT,
            updated_by TEXT,
            updated_by_role TEXT DEFAULT 'staff',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(request_id) REFERENCES water_issues(id)
        );

        CREATE TABLE IF NOT EXISTS drainage_requests (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            ticket_number TEXT NOT NULL UNIQUE,
            reporter_name TEXT NOT NULL,
            contact_number TEXT,
            email TEXT,
            account_number TEXT,
            issue_type TEXT NOT NULL,
            description TEXT NOT NULL,
            location TEXT,
            barangay TEXT,
            latitude REAL,
            longitude REAL,
            priority TEXT NOT NULL DEFAULT 'MEDIUM',
            status TEXT NOT NULL DEFAULT 'PENDING',
            photos TEXT,
            assigned_staff_id INTEGER,
            assigned_staff_name TEXT,
            assigned_at TIMESTAMP,
            scheduled_date TEXT,
            resolution_notes TEXT,
            admin_notes TEXT,
            resolved_at TIMESTAMP,
            closed_at TIMESTAMP,
            completed_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS drainage_updates (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            request_id INTEGER NOT NULL,
            status TEXT NOT NULL,
            description TEXT,
            photos TEXT,
            updated_by TEXT,
            updated_by_role TEXT DEFAULT 'staff',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(request_id) REFERENCES drainage_requests(id)
        );
        """,
    ),
]


def init_db() -> None:
    """Initialise the database and apply pending migrations.

    Creates the ``migrations`` table if it does not exist, checks the
    current schema version, and applies any new migrations defined in
    ``MIGRATIONS``.  Default roles are inserted afterwards.
    """
    with get_cursor() as cursor:
        cursor.execute(
            "CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)"
        )
        cursor.execute("SELECT MAX(version) as version FROM migrations")
        row = cursor.fetchone()
        current_version = row["version"] if row and row["version"] is not None else 0

        for version, sql in MIGRATIONS:
            if version > current_version:
                cursor.executescript(sql)
                cursor.execute(
                    "INSERT INTO migrations (version) VALUES (?)", (version,)
                )
                current_version = version

        for role_id, name in ((ROLE_ADMIN, "admin"), (ROLE_EMPLOYEE, "employee"), (ROLE_CITIZEN, "citizen")):
            cursor.execute(
                "INSERT OR IGNORE INTO roles (id, name, permissions) VALUES (?, ?, '[]')",
                (role_id, name),
            )
