"""
Top-level router for version 1 of the API.

This router aggregates the department routers (cemetery, permits,
parks, facilities, water and drainage) and the account, audit and
dashboard routes under one prefix.  When a new department is added,
include its router here.
"""

from fastapi import APIRouter

from .endpoints import (
    audit,
    barangays,
    blocks,
    cemeteries,
    dashboard,
    deceased,
    facilities,
    navigation,
    parks,
    permits,
    plots,
    search,
    sections,
    users,
    water,
)

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(audit.router, prefix="/audit", tags=["audit"])
router.include_router(cemeteries.router, prefix="/cemeteries", tags=["cemeteries"])
router.include_router(sections.router, prefix="/sections", tags=["cemeteries"])
router.include_router(blocks.router, prefix="/blocks", tags=["cemeteries"])
router.include_router(plots.router, prefix="/plots", tags=["plots"])
router.include_router(deceased.router, prefix="/deceased", tags=["deceased"])
router.include_router(search.router, prefix="/cemetery-search", tags=["search"])
router.include_router(navigation.router, prefix="/navigation", tags=["navigation"])
router.include_router(permits.router, prefix="/permits", tags=["permits"])
router.include_router(parks.router, prefix="/parks", tags=["parks"])
router.include_router(facilities.router, prefix="/facilities", tags=["facilities"])
router.include_router(water.water_router, prefix="/water-issues", tags=["water"])
router.include_router(water.drainage_router, prefix="/drainage", tags=["drainage"])
router.include_router(barangays.router, prefix="/barangays", tags=["barangays"])
# Dashboard routes carry their own "/dashboard" and "/health" paths.
router.include_router(dashboard.router, tags=["dashboard"])
