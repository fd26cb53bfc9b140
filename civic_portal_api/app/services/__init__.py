"""
Service layer.

Each service encapsulates the business rules for a domain and talks to
SQLite directly through ``core.db``.  Services raise ``LookupError``
for missing records and ``ValueError`` for rule violations; endpoints
translate those into HTTP errors.
"""
