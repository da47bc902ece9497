# File: portal/services/payment_service.py

"""
Checkout initiation and payment reconciliation.

confirm_payment() is idempotent. The gateway may redirect twice, the user may
refresh the success page, a webhook may arrive alongside the redirect: the
boost / premium effect is applied by whichever caller flips the Payment row
from pending to completed, and only that one. Everyone else reads the
completed row back and gets the same answer.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.errors import NotFound, PaymentNotFound, PaymentNotVerified, Unavailable
from portal.core.locks import payment_locks
from portal.db.session import transaction
from portal.models.enums import PaymentPurpose, PaymentStatus
from portal.models.payment import Payment
from portal.models.user import User
from portal.services import entitlement_service, issue_service, user_service
from portal.services.authorization import Action, authorize
from portal.services.gateway import GatewaySession, GatewayUnavailable, PaymentGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    url: str
    session_id: str
    payment_id: int


@dataclass(frozen=True)
class Confirmation:
    purpose: PaymentPurpose
    target: Optional[int]
    payment_id: int


def _confirmation(payment: Payment) -> Confirmation:
    target = payment.issue_id if payment.purpose is PaymentPurpose.BOOST else payment.user_id
    return Confirmation(purpose=payment.purpose, target=target, payment_id=payment.id)


def get_by_session(db: Session, external_session_id: str) -> Optional[Payment]:
    return db.scalars(
        select(Payment).where(Payment.external_session_id == external_session_id)
    ).one_or_none()


# -----------------------------
# Checkout
# -----------------------------
def _start_checkout(
    db: Session,
    gateway: PaymentGateway,
    actor: User,
    purpose: PaymentPurpose,
    amount: int,
    issue_id: Optional[int] = None,
) -> CheckoutResult:
    metadata = {"purpose": purpose.value, "user_id": actor.id, "issue_id": issue_id}
    try:
        checkout = gateway.create_checkout(
            amount=amount,
            currency=settings.payment_currency,
            purpose=purpose.value,
            metadata=metadata,
            customer_email=actor.email,
        )
    except GatewayUnavailable as e:
        raise Unavailable("Payment gateway unavailable, please retry") from e

    payment = Payment(
        user_id=actor.id,
        purpose=purpose,
        amount=amount,
        currency=settings.payment_currency,
        external_session_id=checkout.session_id,
        status=PaymentStatus.PENDING,
        issue_id=issue_id,
    )
    with transaction(db):
        db.add(payment)

    logger.info(
        "[PAYMENTS] %s checkout %s started by user %s",
        purpose.value, checkout.session_id, actor.id,
    )
    return CheckoutResult(url=checkout.url, session_id=checkout.session_id, payment_id=payment.id)


def initiate_boost_checkout(
    db: Session, gateway: PaymentGateway, actor: User, issue_id: int
) -> CheckoutResult:
    issue = issue_service.get_issue(db, issue_id)
    authorize(actor, Action.BOOST_ISSUE, issue)
    entitlement_service.ensure_can_boost(issue)
    return _start_checkout(
        db, gateway, actor, PaymentPurpose.BOOST, settings.boost_amount, issue_id=issue.id
    )


def initiate_premium_checkout(db: Session, gateway: PaymentGateway, actor: User) -> CheckoutResult:
    authorize(actor, Action.PURCHASE_PREMIUM)
    db.refresh(actor, attribute_names=["is_premium"])
    entitlement_service.ensure_can_purchase_premium(actor)
    return _start_checkout(db, gateway, actor, PaymentPurpose.PREMIUM, settings.premium_amount)


# -----------------------------
# Reconciliation
# -----------------------------
def _verify_with_gateway(gateway: PaymentGateway, external_session_id: str) -> Optional[GatewaySession]:
    try:
        return gateway.fetch_session(external_session_id)
    except GatewayUnavailable as e:
        raise PaymentNotVerified("Payment gateway did not confirm the session") from e


def _payment_from_gateway(db: Session, session: GatewaySession) -> Payment:
    """
    Record a payment we only know from the gateway (e.g. the pending row was
    never written). The session metadata has to identify purpose and user.
    """
    meta = session.metadata
    try:
        purpose = PaymentPurpose(meta.get("purpose"))
        user_id = int(meta["user_id"])
        issue_id = int(meta["issue_id"]) if meta.get("issue_id") else None
    except (KeyError, TypeError, ValueError) as e:
        raise PaymentNotFound() from e

    if db.get(User, user_id) is None:
        raise PaymentNotFound()
    if purpose is PaymentPurpose.BOOST and issue_id is None:
        raise PaymentNotFound()

    amount = session.amount
    if amount is None:
        amount = settings.boost_amount if purpose is PaymentPurpose.BOOST else settings.premium_amount

    payment = Payment(
        user_id=user_id,
        purpose=purpose,
        amount=amount,
        currency=settings.payment_currency,
        external_session_id=session.session_id,
        status=PaymentStatus.PENDING,
        issue_id=issue_id,
    )
    try:
        with transaction(db):
            db.add(payment)
    except IntegrityError:
        # Someone recorded it first
        payment = get_by_session(db, session.session_id)
        if payment is None:
            raise Unavailable("Could not record payment, please retry")
    return payment


def _apply_effect(db: Session, payment: Payment) -> None:
    """
    Runs in the transaction that flipped the payment to completed. Raising
    here rolls the flip back, so the payment stays pending.
    """
    if payment.purpose is PaymentPurpose.BOOST:
        if payment.issue_id is None or not issue_service.issue_exists(db, payment.issue_id):
            logger.warning(
                "[PAYMENTS] Boost payment %s targets issue %s which no longer exists",
                payment.id, payment.issue_id,
            )
            raise NotFound("The boosted issue no longer exists")
        if not issue_service.mark_boosted(db, payment.issue_id):
            logger.info("[PAYMENTS] Issue %s was already boosted", payment.issue_id)
    elif payment.purpose is PaymentPurpose.PREMIUM:
        if not user_service.grant_premium(db, payment.user_id):
            logger.info("[PAYMENTS] User %s was already premium", payment.user_id)


def confirm_payment(db: Session, gateway: PaymentGateway, external_session_id: str) -> Confirmation:
    """
    Confirm a checkout session and apply its effect at most once.

    Raises PaymentNotFound for a session neither we nor the gateway know,
    PaymentNotVerified when the gateway says it is unpaid, expired, or
    cannot be asked, and NotFound when a boost's issue was deleted after
    checkout (the payment is left pending).
    """
    external_session_id = (external_session_id or "").strip()
    if not external_session_id:
        raise PaymentNotFound()

    with payment_locks.hold(external_session_id):
        payment = get_by_session(db, external_session_id)
        if payment is not None and payment.status is PaymentStatus.COMPLETED:
            return _confirmation(payment)

        session = _verify_with_gateway(gateway, external_session_id)
        if session is None:
            if payment is None:
                raise PaymentNotFound()
            raise PaymentNotVerified("Payment gateway does not know this session")
        if session.expired or not session.paid:
            logger.info("[PAYMENTS] Session %s not paid (expired=%s)", external_session_id, session.expired)
            raise PaymentNotVerified("Payment has not been completed")

        if payment is None:
            payment = _payment_from_gateway(db, session)

        with transaction(db):
            # First writer wins: only the caller that flips pending -> completed
            # applies the effect
            flipped = db.execute(
                update(Payment)
                .where(Payment.id == payment.id, Payment.status == PaymentStatus.PENDING)
                .values(status=PaymentStatus.COMPLETED, completed_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
            if flipped.rowcount == 1:
                _apply_effect(db, payment)
                logger.info(
                    "[PAYMENTS] Payment %s (%s) completed for user %s",
                    payment.id, payment.purpose.value, payment.user_id,
                )

    db.refresh(payment)
    return _confirmation(payment)


# -----------------------------
# Queries
# -----------------------------
def list_payments(db: Session, actor: User, purpose: Optional[PaymentPurpose] = None) -> dict:
    authorize(actor, Action.VIEW_PAYMENTS)

    stmt = select(Payment)
    revenue = select(func.coalesce(func.sum(Payment.amount), 0)).where(
        Payment.status == PaymentStatus.COMPLETED
    )
    if purpose is not None:
        stmt = stmt.where(Payment.purpose == purpose)
        revenue = revenue.where(Payment.purpose == purpose)

    items = db.scalars(stmt.order_by(Payment.id.desc())).all()
    return {
        "items": list(items),
        "total": len(items),
        "total_revenue": db.scalar(revenue) or 0,
    }


def list_my_payments(db: Session, actor: User) -> list[Payment]:
    return list(
        db.scalars(
            select(Payment).where(Payment.user_id == actor.id).order_by(Payment.id.desc())
        ).all()
    )
