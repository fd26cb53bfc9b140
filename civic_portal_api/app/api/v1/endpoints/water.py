"""
Water issue and drainage request endpoints for API v1.

Both services expose the same routes, so the router is built once per
service class.  Filing a ticket and reading it are public; updates,
progress notes and deletion are staff operations.
"""

from typing import Optional, Type

from fastapi import APIRouter, Depends, HTTPException, Query, status

from civic_portal_api.app.core.db import ROLE_ADMIN, ROLE_EMPLOYEE
from civic_portal_api.app.core.security import require_roles
from civic_portal_api.app.schemas.water import (
    DrainageSummary,
    ServiceRequestCreate,
    ServiceRequestPage,
    ServiceRequestRead,
    ServiceRequestUpdate,
    StatusUpdateCreate,
    StatusUpdateRead,
)
from civic_portal_api.app.services.water_service import DrainageService, ServiceRequestService, WaterIssueService


def build_router(service: Type[ServiceRequestService]) -> APIRouter:
    """Routes for one ticketed service (water issues or drainage)."""
    router = APIRouter()

    @router.get("/", response_model=ServiceRequestPage)
    async def list_requests(
        status_filter: Optional[str] = Query(None, alias="status"),
        barangay: Optional[str] = Query(None),
        issue_type: Optional[str] = Query(None),
        priority: Optional[str] = Query(None),
        search: Optional[str] = Query(None),
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=200),
    ) -> ServiceRequestPage:
        return await service.list_requests(
            status=status_filter,
            barangay=barangay,
            issue_type=issue_type,
            priority=priority,
            search=search,
            page=page,
            limit=limit,
        )

    @router.post("/", response_model=ServiceRequestRead, status_code=status.HTTP_201_CREATED)
    async def create_request(request: ServiceRequestCreate) -> ServiceRequestRead:
        try:
            return await service.create_request(request)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    @router.get("/stats/summary", response_model=DrainageSummary)
    async def summary(
        current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
    ) -> DrainageSummary:
        """Counts by status, issue type, priority and the ten busiest barangays."""
        return await service.summary()

    @router.get("/{request_id}", response_model=ServiceRequestRead)
    async def get_request(request_id: int) -> ServiceRequestRead:
        try:
            return await service.get_request(request_id)
        except LookupError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    @router.put("/{request_id}", response_model=ServiceRequestRead)
    async def update_request(
        request_id: int,
        updates: ServiceRequestUpdate,
        current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
    ) -> ServiceRequestRead:
        try:
            return await service.update_request(request_id, updates)
        except LookupError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    @router.post("/{request_id}/updates", response_model=StatusUpdateRead, status_code=status.HTTP_201_CREATED)
    async def add_update(
        request_id: int,
        update: StatusUpdateCreate,
        current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
    ) -> StatusUpdateRead:
        """Record progress and move the request to the given status."""
        try:
            return await service.add_update(request_id, update)
        except LookupError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    @router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_request(
        request_id: int,
        current_user: dict = Depends(require_roles(ROLE_ADMIN)),
    ) -> None:
        try:
            await service.delete_request(request_id)
        except LookupError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        return None

    return router


water_router = build_router(WaterIssueService)
drainage_router = build_router(DrainageService)
