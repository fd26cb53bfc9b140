"""
User endpoints for API v1.

Provide registration, login, listing and administration of portal
accounts.  Only administrators may change roles or disable accounts;
staff may list users.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from civic_portal_api.app.core.db import ROLE_ADMIN, ROLE_EMPLOYEE
from civic_portal_api.app.core.security import create_access_token, get_current_user, require_roles
from civic_portal_api.app.schemas.user import UserCreate, UserLogin, UserRead, UserUpdate
from civic_portal_api.app.services.user_service import UserService


router = APIRouter()


@router.post("/", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def register_user(user: UserCreate) -> UserRead:
    """Register a new account.

    The first account becomes the administrator; later accounts are
    citizens.  Returns 400 when the e-mail is already registered.
    """
    try:
        return await UserService.create_user(user)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.post("/login")
async def login_user(credentials: UserLogin) -> dict:
    """Authenticate a user and return a bearer token."""
    db_user = await UserService.authenticate(credentials.email, credentials.password)
    if not db_user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    token = create_access_token({"sub": db_user.email})
    return {"access_token": token, "token_type": "bearer", "role_id": db_user.role_id}


@router.get("/me", response_model=UserRead)
async def read_current_user(current_user: dict = Depends(get_current_user)) -> UserRead:
    if current_user.get("user_id") is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service tokens have no account")
    try:
        return await UserService.get_user(current_user["user_id"])
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/", response_model=List[UserRead])
async def list_users(
    role_id: Optional[int] = Query(None, ge=1, le=3),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> List[UserRead]:
    """List accounts (staff only), optionally filtered by role."""
    return await UserService.list_users(role_id=role_id, limit=limit, offset=offset)


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> UserRead:
    try:
        return await UserService.get_user(user_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.put("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: int,
    updates: UserUpdate,
    current_user: dict = Depends(get_current_user),
) -> UserRead:
    """Update a user's profile, status or password.

    Users may edit their own profile and password.  Changing ``role_id``
    or ``disabled`` requires the administrator role.
    """
    is_admin = current_user.get("role_id") == ROLE_ADMIN
    if not is_admin and current_user.get("user_id") != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    update_dict = updates.model_dump(exclude_unset=True)
    if not is_admin and ("role_id" in update_dict or "disabled" in update_dict):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only administrators can change roles or disable accounts",
        )
    update_dict = {k: v for k, v in update_dict.items() if v is not None}
    try:
        return await UserService.update_user(user_id, update_dict, acting_user_id=current_user.get("user_id"))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
