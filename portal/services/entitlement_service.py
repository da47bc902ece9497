# File: portal/services/entitlement_service.py

"""
Entitlements: permissions computed from account state rather than role.

  - Issue quota: a non-premium user may create at most `free_issue_quota`
    issues over the account's lifetime. Every issue counts, whatever its
    status, and deleting an issue does not give the slot back.
  - Boost: only for an issue that is not boosted yet.
  - Premium: only for an account that is not premium yet.

can_create_issue() is an advisory read. The binding check is
reserve_issue_slot(), which runs inside the transaction that inserts the
issue.
"""

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.errors import AlreadyBoosted, AlreadyPremium, QuotaExceeded
from portal.models.issue import Issue
from portal.models.user import User


def issue_count(db: Session, user: User) -> int:
    """Lifetime number of issues the user has created."""
    db.refresh(user, attribute_names=["issues_created", "is_premium"])
    return user.issues_created or 0


def can_create_issue(db: Session, user: User) -> bool:
    count = issue_count(db, user)
    return user.is_premium or count < settings.free_issue_quota


def remaining_quota(db: Session, user: User) -> int | None:
    """None means unlimited."""
    count = issue_count(db, user)
    if user.is_premium:
        return None
    return max(settings.free_issue_quota - count, 0)


def reserve_issue_slot(db: Session, user: User) -> None:
    """
    Atomically count the new issue against the user's quota.

    A single conditional UPDATE, so two concurrent creations at count=2
    cannot both pass. Must be called inside the creating transaction.
    """
    result = db.execute(
        update(User)
        .where(
            User.id == user.id,
            or_(User.is_premium.is_(True), User.issues_created < settings.free_issue_quota),
        )
        .values(issues_created=User.issues_created + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise QuotaExceeded()


def ensure_can_boost(issue: Issue) -> None:
    if issue.is_boosted:
        raise AlreadyBoosted()


def ensure_can_purchase_premium(user: User) -> None:
    if user.is_premium:
        raise AlreadyPremium()
