"""
Pydantic models for portal accounts.

Citizens normally authenticate through the municipality's central
login; local accounts exist for clerks, cemetery staff and
administrators.  Passwords are accepted on input only.
"""

from typing import Optional

from pydantic import BaseModel, Field


class UserBase(BaseModel):
    email: str = Field(..., examples=["clerk@city.gov.ph"])
    full_name: Optional[str] = Field(None, examples=["Maria Santos"])
    contact_number: Optional[str] = Field(None, examples=["09171234567"])


class UserCreate(UserBase):
    """Schema for registering a user.

    The first account created becomes the administrator; later accounts
    are citizens until an administrator changes their role.
    """

    password: str = Field(..., min_length=6, examples=["strongpassword"])


class UserLogin(BaseModel):
    email: str
    password: str


class UserRead(UserBase):
    """Schema for reading a user from the API."""

    id: int
    role_id: Optional[int] = None
    disabled: bool = False

    model_config = {
        "from_attributes": True,
    }


class UserUpdate(BaseModel):
    """Fields an administrator may change on an account."""

    full_name: Optional[str] = None
    contact_number: Optional[str] = None
    role_id: Optional[int] = Field(None, ge=1, le=3)
    disabled: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=6)
