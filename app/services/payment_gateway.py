"""
Payment gateway client backed by Stripe.

The entitlement core treats the gateway as a black box: create an order,
verify a confirmation signature, refund a payment. Stripe errors surface as
GatewayError so callers never see a half-applied local change.
"""
import hashlib
import hmac
import logging
from decimal import Decimal
from typing import Dict, Optional

import stripe

from app.core.config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from app.core.errors import GatewayError

logger = logging.getLogger(__name__)


def to_minor_units(amount) -> int:
    """Convert a major-unit amount (e.g. rupees) to the smallest unit (paise)."""
    return int((Decimal(str(amount)) * 100).to_integral_value())


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


class StripeGateway:
    """Thin wrapper over the stripe SDK with the calls the core needs."""

    def __init__(self, api_key: Optional[str] = STRIPE_SECRET_KEY, webhook_secret: Optional[str] = STRIPE_WEBHOOK_SECRET):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        if not api_key:
            logger.warning("STRIPE_SECRET_KEY not configured - payment gateway calls will fail")

    def create_order(self, amount, currency: str, receipt: str) -> Dict:
        """
        Create a gateway order (a Stripe PaymentIntent).

        Returns:
            Dictionary with id, amount (major units) and currency
        """
        if not self.api_key:
            raise GatewayError("Payment gateway not configured")
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.api_key,
                amount=to_minor_units(amount),
                currency=currency.lower(),
                metadata={"receipt": receipt},
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating order: receipt={receipt}, error={e}")
            raise GatewayError(f"Failed to create order: {e}")

        logger.info(f"Created gateway order: id={intent.id}, receipt={receipt}")
        return {
            "id": intent.id,
            "amount": from_minor_units(intent.amount),
            "currency": intent.currency,
            "client_secret": intent.client_secret,
        }

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check the HMAC-SHA256 of 'order_id|payment_id' against the signature."""
        if not self.webhook_secret or not signature:
            return False
        body = f"{order_id}|{payment_id}".encode("utf-8")
        expected = hmac.new(self.webhook_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature)

    def construct_event(self, payload: bytes, sig_header: str) -> Dict:
        """
        Verify and parse a Stripe webhook event.

        Raises:
            ValueError: If the payload or signature is invalid
        """
        if not self.webhook_secret:
            raise ValueError("STRIPE_WEBHOOK_SECRET not configured")
        try:
            event = stripe.Webhook.construct_event(payload, sig_header, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.error(f"Webhook signature verification failed: {e}")
            raise ValueError(f"Invalid signature: {e}")
        logger.info(f"Verified webhook event: {event['type']}, id={event['id']}")
        return event

    def refund(self, payment_id: str, amount) -> Dict:
        """
        Refund a captured payment.

        Returns:
            Dictionary with the gateway refund id
        """
        if not self.api_key:
            raise GatewayError("Payment gateway not configured")
        target = {"charge": payment_id} if payment_id.startswith("ch_") else {"payment_intent": payment_id}
        try:
            refund = stripe.Refund.create(
                api_key=self.api_key,
                amount=to_minor_units(amount),
                **target,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error refunding payment: payment_id={payment_id}, error={e}")
            raise GatewayError(f"Refund failed: {e}")

        logger.info(f"Gateway refund created: refund_id={refund.id}, payment_id={payment_id}")
        return {"id": refund.id}


_default_gateway: Optional[StripeGateway] = None


def get_gateway() -> StripeGateway:
    """FastAPI dependency returning the process-wide gateway client."""
    global _default_gateway
    if _default_gateway is None:
        _default_gateway = StripeGateway()
    return _default_gateway
