# File: portal/schemas/payment.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from portal.models.enums import PaymentPurpose, PaymentStatus


class CheckoutRequest(BaseModel):
    purpose: PaymentPurpose
    issueId: Optional[int] = None
    # Accepted for compatibility with the web client; prices are server side
    amount: Optional[int] = None


class CheckoutResponse(BaseModel):
    url: str
    session_id: str
    payment_id: int


class ConfirmPaymentRequest(BaseModel):
    sessionId: str


class ConfirmPaymentResponse(BaseModel):
    success: bool = True
    purpose: PaymentPurpose
    target: Optional[int] = None
    payment_id: int


class PaymentRead(BaseModel):
    id: int
    user_id: int
    purpose: PaymentPurpose
    amount: int
    currency: str
    external_session_id: str
    status: PaymentStatus
    issue_id: Optional[int] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentListResponse(BaseModel):
    items: List[PaymentRead]
    total: int
    total_revenue: int
