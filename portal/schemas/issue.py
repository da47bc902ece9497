# File: portal/schemas/issue.py

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from portal.models.enums import IssuePriority, IssueStatus


# -----------------------------
# Requests
# -----------------------------

class IssueCreate(BaseModel):
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    images: List[str] = []


class IssueUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    images: Optional[List[str]] = None


class AssignStaffRequest(BaseModel):
    staffId: int


class StatusChangeRequest(BaseModel):
    status: str
    note: str = ""


# -----------------------------
# Responses
# -----------------------------

class IssueRead(BaseModel):
    id: int
    submitter_id: int
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    images: List[str] = []
    status: IssueStatus
    priority: IssuePriority
    upvotes: int
    is_boosted: bool
    assigned_staff_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class IssueDetail(IssueRead):
    permissions: List[str] = Field(default_factory=list)


class IssueListResponse(BaseModel):
    items: List[IssueRead]
    total: int
    page: int
    total_pages: int


class TimelineEntryRead(BaseModel):
    id: int
    issue_id: int
    status: IssueStatus
    note: str
    actor_id: Optional[int] = None
    actor_role: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VotesResponse(BaseModel):
    issue_id: int
    voters: List[int]
    total: int
