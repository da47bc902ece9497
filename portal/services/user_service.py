# File: portal/services/user_service.py

"""
User / account store accessor.

Reads and writes User rows. Role never changes through here except for the
bootstrap admin migration; is_blocked is admin controlled; is_premium is
only granted by the payment reconciler (grant_premium).
"""

import logging
from typing import Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal.core.errors import Forbidden, NotFound, ValidationFailed
from portal.db.session import transaction
from portal.models.enums import Role
from portal.models.issue import Issue, IssueVote
from portal.models.user import User
from portal.services.authorization import Action, authorize

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "phone", "photo_url")


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")
    return user


def get_by_subject(db: Session, subject: str) -> Optional[User]:
    return db.scalars(select(User).where(User.subject == subject)).one_or_none()


def list_users(
    db: Session,
    actor: User,
    *,
    role: Optional[Role] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    authorize(actor, Action.MANAGE_USERS)

    stmt = select(User)
    if role is not None:
        stmt = stmt.where(User.role == role)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))

    total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    page = max(page, 1)
    items = db.scalars(
        stmt.order_by(User.id.desc()).offset((page - 1) * limit).limit(limit)
    ).all()

    return {
        "items": list(items),
        "total": total,
        "page": page,
        "total_pages": (total + limit - 1) // limit if limit else 0,
    }


def _check_profile_fields(changes: dict) -> None:
    unknown = set(changes) - set(PROFILE_FIELDS)
    if unknown:
        raise ValidationFailed(f"Fields not editable: {', '.join(sorted(unknown))}")


def update_profile(db: Session, actor: User, changes: dict) -> User:
    """Self-service profile edit. Only display fields are writable."""
    _check_profile_fields(changes)

    with transaction(db):
        for field, value in changes.items():
            setattr(actor, field, value)
    db.refresh(actor)
    return actor


def update_staff_profile(db: Session, actor: User, staff_id: int, changes: dict) -> User:
    """Admin edit of a staff member's display fields; role and flags stay put."""
    authorize(actor, Action.MANAGE_USERS)
    _check_profile_fields(changes)

    with transaction(db):
        staff = get_user(db, staff_id)
        if staff.role is not Role.STAFF:
            raise Forbidden("Only staff profiles can be edited")
        for field, value in changes.items():
            setattr(staff, field, value)

    db.refresh(staff)
    logger.info("[USERS] Staff profile %s updated by admin %s", staff.id, actor.id)
    return staff


def toggle_block(db: Session, actor: User, user_id: int) -> User:
    authorize(actor, Action.MANAGE_USERS)

    with transaction(db):
        target = get_user(db, user_id)
        if target.role is Role.ADMIN:
            raise Forbidden("Admin accounts cannot be blocked")
        target.is_blocked = not target.is_blocked

    db.refresh(target)
    logger.info(
        "[USERS] User %s %s by admin %s",
        target.id,
        "blocked" if target.is_blocked else "unblocked",
        actor.id,
    )
    return target


def create_staff(
    db: Session,
    actor: User,
    *,
    subject: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
    phone: Optional[str] = None,
    photo_url: Optional[str] = None,
) -> User:
    """
    Pre-register a staff account for an identity-provider subject.

    When that subject signs in, session verification finds this row and the
    staff role sticks.
    """
    authorize(actor, Action.MANAGE_USERS)

    subject = (subject or "").strip()
    if not subject:
        raise ValidationFailed("Staff subject id is required")

    staff = User(
        subject=subject,
        email=email,
        name=name,
        phone=phone,
        photo_url=photo_url,
        role=Role.STAFF,
    )
    try:
        with transaction(db):
            db.add(staff)
    except IntegrityError as e:
        raise ValidationFailed(f"A user with subject {subject} already exists") from e

    db.refresh(staff)
    logger.info("[USERS] Staff account %s created by admin %s", staff.id, actor.id)
    return staff


def delete_staff(db: Session, actor: User, staff_id: int) -> None:
    """Hard-delete a staff account. Issues it was assigned go back to unassigned."""
    authorize(actor, Action.MANAGE_USERS)

    with transaction(db):
        staff = get_user(db, staff_id)
        if staff.role is not Role.STAFF:
            raise Forbidden("Only staff accounts can be deleted")

        db.execute(
            update(Issue)
            .where(Issue.assigned_staff_id == staff.id)
            .values(assigned_staff_id=None)
        )
        # Take the staff member's votes back out of the counters with the rows
        voted_on = select(IssueVote.issue_id).where(IssueVote.voter_id == staff.id)
        db.execute(
            update(Issue)
            .where(Issue.id.in_(voted_on))
            .values(upvotes=Issue.upvotes - 1)
            .execution_options(synchronize_session=False)
        )
        db.execute(delete(IssueVote).where(IssueVote.voter_id == staff.id))
        db.delete(staff)

    logger.info("[USERS] Staff account %s deleted by admin %s", staff_id, actor.id)


def grant_premium(db: Session, user_id: int) -> bool:
    """
    Set is_premium on a user. Returns False if it was already set.

    Must run inside the caller's transaction (payment reconciliation).
    """
    result = db.execute(
        update(User)
        .where(User.id == user_id, User.is_premium.is_(False))
        .values(is_premium=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def promote_admin(db: Session, subject: str) -> User:
    """Privileged migration only: ensure the subject exists with role=admin."""
    with transaction(db):
        user = get_by_subject(db, subject)
        if user is None:
            user = User(subject=subject, role=Role.ADMIN)
            db.add(user)
        else:
            user.role = Role.ADMIN
            user.is_blocked = False
    db.refresh(user)
    return user
