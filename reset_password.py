#!/usr/bin/env python3
"""
Reset a portal account's password in the Civic Portal SQLite database.

This script DOES NOT read or reveal any existing passwords.  It sets a
new PBKDF2 hash (same format as the API) for the specified user email
and can optionally re-enable a disabled account.

Usage:
    python reset_password.py --email admin@city.gov.ph --password "NewStrongPass!234"
    python reset_password.py --db ./civic_portal_api/civic_portal.db --email clerk@city.gov.ph --enable

If --password is omitted, you will be prompted to enter it securely.
If --db is omitted, the path configured by DATABASE_URL is used.
"""

import argparse
import getpass
import os
import sqlite3
import sys

from civic_portal_api.app.core.db import get_database_path
from civic_portal_api.app.core.security import hash_password


def main():
    ap = argparse.ArgumentParser(description="Reset a Civic Portal user password (SQLite).")
    ap.add_argument("--db", help="Path to SQLite DB file (defaults to DATABASE_URL)")
    ap.add_argument("--email", required=True, help="User email to update")
    ap.add_argument("--password", help="New password. If omitted, you'll be prompted securely.")
    ap.add_argument("--enable", action="store_true", help="Also clear the disabled flag")
    args = ap.parse_args()

    db_path = args.db or get_database_path()
    if not os.path.exists(db_path):
        print(f"[!] DB not found: {db_path}", file=sys.stderr)
        sys.exit(1)

    new_password = args.password or getpass.getpass("Enter NEW password: ")
    if len(new_password) < 6:
        print("[!] Password must be at least 6 characters.", file=sys.stderr)
        sys.exit(1)

    conn = sqlite3.connect(db_path)
    try:
        cur = conn.cursor()
        cur.execute("SELECT id FROM users WHERE email = ?", (args.email,))
        if not cur.fetchone():
            print(f"[!] No user found with email: {args.email}", file=sys.stderr)
            sys.exit(2)

        sql = "UPDATE users SET password = ?, updated_at = CURRENT_TIMESTAMP"
        if args.enable:
            sql += ", disabled = 0"
        cur.execute(sql + " WHERE email = ?", (hash_password(new_password), args.email))
        conn.commit()
        print(f"[+] Password updated for user: {args.email}")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
