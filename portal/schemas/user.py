# File: portal/schemas/user.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr

from portal.models.enums import Role


class UserBase(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    photo_url: Optional[str] = None
    phone: Optional[str] = None


class UserRead(UserBase):
    id: int
    subject: str
    role: Role
    is_blocked: bool
    is_premium: bool
    issues_created: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True  # Pydantic v2: replaces orm_mode


class UserListResponse(BaseModel):
    items: List[UserRead]
    total: int
    page: int
    total_pages: int


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    photo_url: Optional[str] = None

    class Config:
        extra = "forbid"  # role and account flags are not profile fields


class StaffCreate(BaseModel):
    subject: str
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    photo_url: Optional[str] = None


class SessionVerifyRequest(BaseModel):
    token: Optional[str] = None


class SessionVerifyResponse(BaseModel):
    success: bool = True
    user: UserRead
    remaining_quota: Optional[int] = None
