# File: portal/models/payment.py

"""
Payment model.

A row is written when a checkout session is initiated (status=pending) and
flipped to completed exactly once by the payment reconciler. The gateway's
session id is unique so duplicate confirmations resolve to the same row.
"""

from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.models.base import Base, TimestampMixin
from portal.models.enums import PaymentPurpose, PaymentStatus, enum_values
from portal.models.user import User


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    purpose: Mapped[PaymentPurpose] = mapped_column(
        Enum(PaymentPurpose, name="payment_purpose", native_enum=False, values_callable=enum_values),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False)

    external_session_id: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=PaymentStatus.PENDING,
    )

    # Target issue, purpose=boost only
    issue_id: Mapped[int | None] = mapped_column(
        ForeignKey("issues.id", ondelete="SET NULL"), nullable=True
    )

    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped[User] = relationship()

    def __repr__(self) -> str:
        return (
            f"<Payment id={self.id} purpose={self.purpose.value} "
            f"session={self.external_session_id!r} status={self.status.value}>"
        )
