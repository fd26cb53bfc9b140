"""Print a long-lived access token for a portal account.

Usage:
    python create_token.py admin@city.gov.ph [days]
"""
import sys

from civic_portal_api.app.core.security import create_access_token

email = sys.argv[1] if len(sys.argv) > 1 else "admin@city.gov.ph"
days = int(sys.argv[2]) if len(sys.argv) > 2 else 365
# expires_delta is in seconds
token = create_access_token({"sub": email}, expires_delta=days * 24 * 60 * 60)
print(token)
