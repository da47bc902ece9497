# File: portal/services/issue_service.py

"""
Issue state machine.

Lifecycle:

    pending -> in-progress | working | resolved | closed | rejected
    in-progress, working -> in-progress | working | resolved | closed
    resolved, closed, rejected: terminal

Every status change needs a non-empty note and appends exactly one timeline
entry; creation appends the initial "pending" entry. Who may do what is
decided by portal.services.authorization; this module owns the state rules
and the atomic writes.
"""

import logging
import math
from typing import Any, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal.core.errors import (
    AlreadyVoted,
    InvalidTransition,
    NotFound,
    ValidationFailed,
)
from portal.core.locks import issue_locks, submitter_locks
from portal.db.session import transaction
from portal.models.enums import IssuePriority, IssueStatus, Role
from portal.models.issue import Issue, IssueVote
from portal.models.user import User
from portal.services import entitlement_service, timeline_service
from portal.services.authorization import Action, authorize, permitted_actions

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[IssueStatus, frozenset[IssueStatus]] = {
    IssueStatus.PENDING: frozenset(
        {
            IssueStatus.IN_PROGRESS,
            IssueStatus.WORKING,
            IssueStatus.RESOLVED,
            IssueStatus.CLOSED,
            IssueStatus.REJECTED,
        }
    ),
    IssueStatus.IN_PROGRESS: frozenset(
        {IssueStatus.IN_PROGRESS, IssueStatus.WORKING, IssueStatus.RESOLVED, IssueStatus.CLOSED}
    ),
    IssueStatus.WORKING: frozenset(
        {IssueStatus.IN_PROGRESS, IssueStatus.WORKING, IssueStatus.RESOLVED, IssueStatus.CLOSED}
    ),
    IssueStatus.RESOLVED: frozenset(),
    IssueStatus.CLOSED: frozenset(),
    IssueStatus.REJECTED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, nxt in ALLOWED_TRANSITIONS.items() if not nxt)

CONTENT_FIELDS = ("title", "description", "category", "location", "images")

CREATION_NOTE = "Issue reported by citizen"


def is_terminal(status: IssueStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: IssueStatus, target: IssueStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def _parse_status(value: Any) -> IssueStatus:
    try:
        return IssueStatus(value)
    except ValueError:
        raise ValidationFailed(f"Unknown status: {value!r}")


def _clean_content(data: dict, *, partial: bool) -> dict:
    unknown = set(data) - set(CONTENT_FIELDS)
    if unknown:
        raise ValidationFailed(f"Fields not editable: {', '.join(sorted(unknown))}")

    cleaned = dict(data)
    if "title" in cleaned or not partial:
        title = (cleaned.get("title") or "").strip()
        if not title:
            raise ValidationFailed("Title is required")
        cleaned["title"] = title
    if "images" in cleaned and cleaned["images"] is None:
        cleaned["images"] = []
    return cleaned


# -----------------------------
# Queries
# -----------------------------
def get_issue(db: Session, issue_id: int, *, for_update: bool = False) -> Issue:
    stmt = select(Issue).where(Issue.id == issue_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    issue = db.scalars(stmt).one_or_none()
    if issue is None:
        raise NotFound(f"Issue {issue_id} not found")
    return issue


def issue_exists(db: Session, issue_id: int) -> bool:
    return db.scalar(select(Issue.id).where(Issue.id == issue_id)) is not None


def list_issues(
    db: Session,
    *,
    q: Optional[str] = None,
    category: Optional[str] = None,
    status: Optional[IssueStatus] = None,
    priority: Optional[IssuePriority] = None,
    submitter_id: Optional[int] = None,
    assigned_staff_id: Optional[int] = None,
    sort: Optional[str] = None,
    page: int = 1,
    limit: int = 12,
) -> dict:
    """
    Filtered, paginated issue listing. Boosted issues always come first,
    then most upvoted (sort="upvotes") or newest.
    """
    stmt = select(Issue)
    if q:
        pattern = f"%{q.strip()}%"
        stmt = stmt.where(
            or_(
                Issue.title.ilike(pattern),
                Issue.description.ilike(pattern),
                Issue.location.ilike(pattern),
            )
        )
    if category:
        stmt = stmt.where(Issue.category == category)
    if status is not None:
        stmt = stmt.where(Issue.status == status)
    if priority is not None:
        stmt = stmt.where(Issue.priority == priority)
    if submitter_id is not None:
        stmt = stmt.where(Issue.submitter_id == submitter_id)
    if assigned_staff_id is not None:
        stmt = stmt.where(Issue.assigned_staff_id == assigned_staff_id)

    total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0

    order = [Issue.is_boosted.desc()]
    if sort == "upvotes":
        order.append(Issue.upvotes.desc())
    order.append(Issue.id.desc())

    page = max(page, 1)
    limit = max(limit, 1)
    items = db.scalars(stmt.order_by(*order).offset((page - 1) * limit).limit(limit)).all()

    return {
        "items": list(items),
        "total": total,
        "page": page,
        "total_pages": math.ceil(total / limit),
    }


def list_votes(db: Session, issue_id: int) -> list[int]:
    get_issue(db, issue_id)
    return list(
        db.scalars(
            select(IssueVote.voter_id).where(IssueVote.issue_id == issue_id).order_by(IssueVote.id)
        ).all()
    )


def available_actions(actor: User, issue: Issue) -> list[str]:
    """permitted_actions narrowed by the issue's current state."""
    actions = []
    for action in permitted_actions(actor, issue):
        if action in (Action.CHANGE_STATUS, Action.ASSIGN_STAFF) and is_terminal(issue.status):
            continue
        if action is Action.REJECT_ISSUE and not can_transition(issue.status, IssueStatus.REJECTED):
            continue
        if action is Action.BOOST_ISSUE and issue.is_boosted:
            continue
        actions.append(action.value)
    return actions


# -----------------------------
# Mutations
# -----------------------------
def create_issue(db: Session, actor: User, payload: dict) -> Issue:
    authorize(actor, Action.CREATE_ISSUE)
    content = _clean_content(payload, partial=False)

    # Count-and-insert is one atomic unit per submitter
    with submitter_locks.hold(actor.id):
        with transaction(db):
            entitlement_service.reserve_issue_slot(db, actor)
            issue = Issue(
                submitter_id=actor.id,
                status=IssueStatus.PENDING,
                priority=IssuePriority.NORMAL,
                upvotes=0,
                is_boosted=False,
                **content,
            )
            db.add(issue)
            db.flush()
            timeline_service.record(db, issue, IssueStatus.PENDING, CREATION_NOTE, actor)

    db.refresh(issue)
    logger.info("[ISSUES] Issue %s created by user %s", issue.id, actor.id)
    return issue


def edit_issue(db: Session, actor: User, issue_id: int, patch: dict) -> Issue:
    changes = _clean_content(patch, partial=True)

    with transaction(db):
        issue = get_issue(db, issue_id, for_update=True)
        authorize(actor, Action.EDIT_ISSUE, issue)
        for field, value in changes.items():
            setattr(issue, field, value)

    db.refresh(issue)
    logger.info("[ISSUES] Issue %s edited by user %s", issue.id, actor.id)
    return issue


def delete_issue(db: Session, actor: User, issue_id: int) -> None:
    with transaction(db):
        issue = get_issue(db, issue_id, for_update=True)
        authorize(actor, Action.DELETE_ISSUE, issue)
        db.delete(issue)

    logger.info("[ISSUES] Issue %s deleted by %s %s", issue_id, actor.role.value, actor.id)


def upvote_issue(db: Session, actor: User, issue_id: int) -> Issue:
    """
    Add one vote. A user votes at most once per issue, enforced by the
    (issue_id, voter_id) unique constraint; the counter moves with an atomic
    increment in the same transaction.
    """
    issue = get_issue(db, issue_id)
    authorize(actor, Action.UPVOTE_ISSUE, issue)

    with issue_locks.hold(issue_id):
        try:
            with transaction(db):
                db.add(IssueVote(issue_id=issue_id, voter_id=actor.id))
                db.flush()
                db.execute(
                    update(Issue)
                    .where(Issue.id == issue_id)
                    .values(upvotes=Issue.upvotes + 1)
                    .execution_options(synchronize_session=False)
                )
        except IntegrityError as e:
            logger.debug("[ISSUES] Duplicate upvote on %s by %s", issue_id, actor.id)
            raise AlreadyVoted() from e

    db.refresh(issue)
    return issue


def assign_staff(db: Session, actor: User, issue_id: int, staff_id: int) -> Issue:
    # Admin only; checked before the lookup so others learn nothing about the issue
    authorize(actor, Action.ASSIGN_STAFF)

    with transaction(db):
        issue = get_issue(db, issue_id, for_update=True)

        staff = db.get(User, staff_id)
        if staff is None or staff.role is not Role.STAFF:
            raise NotFound(f"Staff member {staff_id} not found")
        if is_terminal(issue.status):
            raise InvalidTransition(f"Cannot assign staff to a {issue.status.value} issue")

        issue.assigned_staff_id = staff.id

    db.refresh(issue)
    logger.info("[ISSUES] Issue %s assigned to staff %s by admin %s", issue.id, staff_id, actor.id)
    return issue


def change_status(
    db: Session,
    actor: User,
    issue_id: int,
    new_status: IssueStatus | str,
    note: str,
) -> Issue:
    target = _parse_status(new_status)
    note = (note or "").strip()
    if not note:
        raise ValidationFailed("A note is required for every status change")

    action = Action.REJECT_ISSUE if target is IssueStatus.REJECTED else Action.CHANGE_STATUS

    with issue_locks.hold(issue_id):
        with transaction(db):
            issue = get_issue(db, issue_id, for_update=True)
            authorize(actor, action, issue)

            current = issue.status
            recorded = timeline_service.last_status(db, issue_id)
            if recorded is not None and recorded is not current:
                logger.warning(
                    "[ISSUES] Issue %s status %s disagrees with timeline %s",
                    issue_id, current.value, recorded.value,
                )
                raise InvalidTransition("Issue changed concurrently, reload and retry")

            if not can_transition(current, target):
                raise InvalidTransition(
                    f"Cannot change status from {current.value} to {target.value}"
                )

            result = db.execute(
                update(Issue)
                .where(Issue.id == issue_id, Issue.status == current)
                .values(status=target)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidTransition("Issue changed concurrently, reload and retry")

            timeline_service.record(db, issue, target, note, actor)

    db.refresh(issue)
    logger.info(
        "[ISSUES] Issue %s %s -> %s by %s %s",
        issue_id, current.value, target.value, actor.role.value, actor.id,
    )
    return issue


def mark_boosted(db: Session, issue_id: int) -> bool:
    """
    Apply a paid boost. Monotonic; returns False if already boosted.
    Runs inside the payment reconciler's transaction.
    """
    result = db.execute(
        update(Issue)
        .where(Issue.id == issue_id, Issue.is_boosted.is_(False))
        .values(is_boosted=True, priority=IssuePriority.HIGH)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
