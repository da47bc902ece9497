# File: portal/api/v1/routes_issues.py

"""
Issue endpoints. Thin wrappers: every rule lives in portal.services.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status as http_status
from sqlalchemy.orm import Session

from portal.api.deps import get_current_user, get_db, get_payment_gateway
from portal.models.enums import IssuePriority, IssueStatus
from portal.models.user import User
from portal.schemas.issue import (
    AssignStaffRequest,
    IssueCreate,
    IssueDetail,
    IssueListResponse,
    IssueRead,
    IssueUpdate,
    StatusChangeRequest,
    TimelineEntryRead,
    VotesResponse,
)
from portal.schemas.payment import CheckoutResponse
from portal.services import issue_service, payment_service, timeline_service
from portal.services.gateway import PaymentGateway

router = APIRouter()


@router.get("", response_model=IssueListResponse, summary="List issues")
def list_issues(
    q: Optional[str] = None,
    category: Optional[str] = None,
    status: Optional[IssueStatus] = None,
    priority: Optional[IssuePriority] = None,
    submitter_id: Optional[int] = None,
    assigned_staff_id: Optional[int] = None,
    sort: Optional[str] = None,
    page: int = 1,
    limit: int = 12,
    db: Session = Depends(get_db),
):
    return issue_service.list_issues(
        db,
        q=q,
        category=category,
        status=status,
        priority=priority,
        submitter_id=submitter_id,
        assigned_staff_id=assigned_staff_id,
        sort=sort,
        page=page,
        limit=limit,
    )


@router.post(
    "",
    response_model=IssueRead,
    status_code=http_status.HTTP_201_CREATED,
    summary="Report an issue",
)
def create_issue(
    payload: IssueCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return issue_service.create_issue(db, current_user, payload.model_dump())


@router.get("/{issue_id}", response_model=IssueDetail, summary="Issue detail")
def get_issue(
    issue_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    issue = issue_service.get_issue(db, issue_id)
    detail = IssueDetail.model_validate(issue)
    detail.permissions = issue_service.available_actions(current_user, issue)
    return detail


@router.put("/{issue_id}", response_model=IssueRead, summary="Edit a pending issue")
def edit_issue(
    issue_id: int,
    payload: IssueUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return issue_service.edit_issue(
        db, current_user, issue_id, payload.model_dump(exclude_unset=True)
    )


@router.delete("/{issue_id}", status_code=http_status.HTTP_204_NO_CONTENT, summary="Delete an issue")
def delete_issue(
    issue_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    issue_service.delete_issue(db, current_user, issue_id)


@router.put("/{issue_id}/assign", response_model=IssueRead, summary="Assign staff (admin)")
def assign_staff(
    issue_id: int,
    payload: AssignStaffRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return issue_service.assign_staff(db, current_user, issue_id, payload.staffId)


@router.put("/{issue_id}/status", response_model=IssueRead, summary="Change status")
def change_status(
    issue_id: int,
    payload: StatusChangeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return issue_service.change_status(db, current_user, issue_id, payload.status, payload.note)


@router.put("/{issue_id}/boost", response_model=CheckoutResponse, summary="Start boost checkout")
def boost_issue(
    issue_id: int,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    current_user: User = Depends(get_current_user),
):
    return payment_service.initiate_boost_checkout(db, gateway, current_user, issue_id)


@router.get(
    "/{issue_id}/timeline",
    response_model=list[TimelineEntryRead],
    summary="Issue timeline",
)
def get_timeline(issue_id: int, db: Session = Depends(get_db)):
    issue_service.get_issue(db, issue_id)
    return timeline_service.list_for_issue(db, issue_id)


@router.post("/{issue_id}/upvote", response_model=IssueRead, summary="Upvote an issue")
def upvote_issue(
    issue_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return issue_service.upvote_issue(db, current_user, issue_id)


@router.get("/{issue_id}/votes", response_model=VotesResponse, summary="Issue voters")
def get_votes(issue_id: int, db: Session = Depends(get_db)):
    voters = issue_service.list_votes(db, issue_id)
    return VotesResponse(issue_id=issue_id, voters=voters, total=len(voters))
