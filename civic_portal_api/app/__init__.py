"""
Application package initializer.

This package contains the main entrypoint for the API and all of its
submodules.  Each municipal domain (cemetery, permits, parks,
facilities, water and drainage) exposes a router defined in
``api/v1/endpoints`` and keeps its business rules in ``services``.
"""

from .main import app  # noqa: F401
