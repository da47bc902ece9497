# File: portal/models/user.py

"""
User model.

A user is keyed by the identity provider's subject id. The row is created
on first successful session verification; role is fixed at creation
(admin only through the bootstrap migration), is_blocked is flipped by
admins and is_premium only by the payment reconciler.
"""

from sqlalchemy import Boolean, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from portal.models.base import Base, TimestampMixin
from portal.models.enums import Role, enum_values


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # External subject id from the identity provider, never changes
    subject: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)

    # Display profile, synced from the identity assertion
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    photo_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    role: Mapped[Role] = mapped_column(
        Enum(Role, name="user_role", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=Role.CITIZEN,
    )
    is_blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_premium: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Lifetime count of issues created, used by the free-tier quota
    issues_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<User id={self.id} subject={self.subject!r} role={self.role.value}>"
