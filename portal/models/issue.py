# File: portal/models/issue.py

"""
Issue, IssueVote and TimelineEntry models.

Title, description, category, location and images are an opaque payload as
far as the workflow engine is concerned; only status, priority, upvotes,
is_boosted and the submitter / assigned staff references carry rules.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.models.base import Base, TimestampMixin
from portal.models.enums import IssuePriority, IssueStatus, enum_values
from portal.models.user import User


class Issue(Base, TimestampMixin):
    __tablename__ = "issues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    submitter_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    location: Mapped[str | None] = mapped_column(String(512), nullable=True)
    images: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[IssueStatus] = mapped_column(
        Enum(IssueStatus, name="issue_status", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=IssueStatus.PENDING,
        index=True,
    )
    priority: Mapped[IssuePriority] = mapped_column(
        Enum(IssuePriority, name="issue_priority", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=IssuePriority.NORMAL,
    )
    upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Monotonic: set by the payment reconciler, never cleared
    is_boosted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    assigned_staff_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    submitter: Mapped[User] = relationship(foreign_keys=[submitter_id])
    assigned_staff: Mapped[User | None] = relationship(foreign_keys=[assigned_staff_id])

    timeline: Mapped[list["TimelineEntry"]] = relationship(
        back_populates="issue",
        cascade="all, delete-orphan",
        order_by="TimelineEntry.id",
    )
    votes: Mapped[list["IssueVote"]] = relationship(
        back_populates="issue",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Issue id={self.id} status={self.status.value} submitter={self.submitter_id}>"


class IssueVote(Base, TimestampMixin):
    __tablename__ = "issue_votes"
    __table_args__ = (
        UniqueConstraint("issue_id", "voter_id", name="uq_issue_votes_issue_voter"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    issue_id: Mapped[int] = mapped_column(
        ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True
    )
    voter_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    issue: Mapped[Issue] = relationship(back_populates="votes")


class TimelineEntry(Base, TimestampMixin):
    """
    Append-only audit record: one row per status transition, including
    the initial "pending" at creation.
    """

    __tablename__ = "timeline_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    issue_id: Mapped[int] = mapped_column(
        ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[IssueStatus] = mapped_column(
        Enum(IssueStatus, name="issue_status", native_enum=False, values_callable=enum_values),
        nullable=False,
    )
    note: Mapped[str] = mapped_column(Text, nullable=False)

    # None means the entry was written by the system
    actor_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    actor_role: Mapped[str] = mapped_column(String(32), nullable=False, default="system")

    issue: Mapped[Issue] = relationship(back_populates="timeline")
    actor: Mapped[User | None] = relationship()
