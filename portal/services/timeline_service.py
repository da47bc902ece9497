# File: portal/services/timeline_service.py

"""
Audit timeline recorder. Append-only; entries are never updated or deleted
except together with their issue.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from portal.models.enums import IssueStatus
from portal.models.issue import Issue, TimelineEntry
from portal.models.user import User

SYSTEM_ACTOR = "system"


def record(
    db: Session,
    issue: Issue,
    status: IssueStatus,
    note: str,
    actor: Optional[User] = None,
) -> TimelineEntry:
    """Append an entry. Runs inside the caller's transaction."""
    entry = TimelineEntry(
        issue=issue,
        status=status,
        note=note,
        actor_id=actor.id if actor is not None else None,
        actor_role=actor.role.value if actor is not None else SYSTEM_ACTOR,
    )
    db.add(entry)
    return entry


def list_for_issue(db: Session, issue_id: int) -> list[TimelineEntry]:
    return list(
        db.scalars(
            select(TimelineEntry)
            .where(TimelineEntry.issue_id == issue_id)
            .order_by(TimelineEntry.id)
        ).all()
    )


def last_status(db: Session, issue_id: int) -> Optional[IssueStatus]:
    """Status recorded by the most recent entry, None for an empty timeline."""
    return db.scalar(
        select(TimelineEntry.status)
        .where(TimelineEntry.issue_id == issue_id)
        .order_by(TimelineEntry.id.desc())
        .limit(1)
    )
