# File: portal/api/v1/routes_payments.py

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from portal.api.deps import get_current_user, get_db, get_payment_gateway
from portal.core.errors import ValidationFailed
from portal.models.enums import PaymentPurpose
from portal.models.user import User
from portal.schemas.payment import (
    CheckoutRequest,
    CheckoutResponse,
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    PaymentListResponse,
    PaymentRead,
)
from portal.services import payment_service
from portal.services.gateway import PaymentGateway

router = APIRouter()


@router.post(
    "/create-checkout-session",
    response_model=CheckoutResponse,
    summary="Start a boost or premium checkout",
)
def create_checkout_session(
    payload: CheckoutRequest,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    current_user: User = Depends(get_current_user),
):
    if payload.purpose is PaymentPurpose.BOOST:
        if payload.issueId is None:
            raise ValidationFailed("issueId is required for a boost")
        return payment_service.initiate_boost_checkout(db, gateway, current_user, payload.issueId)
    return payment_service.initiate_premium_checkout(db, gateway, current_user)


@router.post(
    "/confirm-payment",
    response_model=ConfirmPaymentResponse,
    summary="Confirm a completed checkout session",
)
def confirm_payment(
    payload: ConfirmPaymentRequest,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    confirmation = payment_service.confirm_payment(db, gateway, payload.sessionId)
    return ConfirmPaymentResponse(
        purpose=confirmation.purpose,
        target=confirmation.target,
        payment_id=confirmation.payment_id,
    )


@router.get("", response_model=PaymentListResponse, summary="All payments (admin)")
def list_payments(
    purpose: Optional[PaymentPurpose] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return payment_service.list_payments(db, current_user, purpose)


@router.get("/my", response_model=list[PaymentRead], summary="Own payments")
def my_payments(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return payment_service.list_my_payments(db, current_user)
