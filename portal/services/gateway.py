# File: portal/services/gateway.py

"""
Payment gateway client.

The engine only needs two things from the gateway: a hosted checkout URL for
an amount + purpose, and later whether that checkout session was paid.
StripeGateway implements this with Stripe Checkout Sessions; tests use an
in-memory fake with the same shape.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import stripe

from portal.core.config import Settings, settings

logger = logging.getLogger(__name__)


class GatewayUnavailable(Exception):
    """The gateway could not be reached, or answered with a server error."""


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    url: str


@dataclass(frozen=True)
class GatewaySession:
    session_id: str
    paid: bool
    expired: bool = False
    amount: Optional[int] = None
    metadata: dict = field(default_factory=dict)


class PaymentGateway(Protocol):
    def create_checkout(
        self,
        *,
        amount: int,
        currency: str,
        purpose: str,
        metadata: dict,
        customer_email: Optional[str] = None,
    ) -> CheckoutSession:
        ...

    def fetch_session(self, session_id: str) -> Optional[GatewaySession]:
        """None when the gateway does not know the session."""
        ...


PRODUCT_NAMES = {
    "boost": "Issue Boost",
    "premium": "Premium Subscription",
}


class StripeGateway:
    def __init__(self, config: Settings = settings):
        if not config.stripe_secret_key:
            raise RuntimeError("STRIPE_SECRET_KEY is not configured")
        self._config = config
        self._client = stripe.StripeClient(
            config.stripe_secret_key,
            max_network_retries=1,
            http_client=stripe.RequestsClient(timeout=config.gateway_timeout_seconds),
        )

    def create_checkout(
        self,
        *,
        amount: int,
        currency: str,
        purpose: str,
        metadata: dict,
        customer_email: Optional[str] = None,
    ) -> CheckoutSession:
        params = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        # Stripe wants the smallest currency unit
                        "unit_amount": amount * 100,
                        "product_data": {"name": PRODUCT_NAMES.get(purpose, purpose)},
                    },
                    "quantity": 1,
                }
            ],
            "metadata": {k: str(v) for k, v in metadata.items() if v is not None},
            "success_url": (
                f"{self._config.client_url}/payment/success?session_id={{CHECKOUT_SESSION_ID}}"
            ),
            "cancel_url": f"{self._config.client_url}/payment/cancelled",
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = self._client.checkout.sessions.create(params=params)
        except (stripe.APIConnectionError, stripe.APIError) as e:
            logger.warning("[PAYMENTS] Stripe checkout creation failed: %s", e)
            raise GatewayUnavailable(str(e)) from e

        return CheckoutSession(session_id=session.id, url=session.url)

    def fetch_session(self, session_id: str) -> Optional[GatewaySession]:
        try:
            session = self._client.checkout.sessions.retrieve(session_id)
        except stripe.InvalidRequestError:
            return None
        except (stripe.APIConnectionError, stripe.APIError) as e:
            logger.warning("[PAYMENTS] Stripe session lookup failed for %s: %s", session_id, e)
            raise GatewayUnavailable(str(e)) from e

        amount_total = session.amount_total
        return GatewaySession(
            session_id=session.id,
            paid=session.payment_status == "paid",
            expired=session.status == "expired",
            amount=amount_total // 100 if amount_total is not None else None,
            metadata=dict(session.metadata or {}),
        )


def get_gateway() -> PaymentGateway:
    return StripeGateway()
