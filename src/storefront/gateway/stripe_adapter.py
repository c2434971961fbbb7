"""Stripe webhook adapter.

Recognized event types:

- `payment_intent.succeeded` → success
- `payment_intent.payment_failed` → failure
- `charge.dispute.created` → dispute

The order id travels in the PaymentIntent's `metadata.order_id`. Disputes
only carry the charge id, which is what completion recorded as the gateway
transaction id.

Signatures are checked with the stripe SDK against the endpoint secret.
"""

from collections.abc import Mapping

import stripe
import structlog

from storefront.gateway.port import WebhookAdapter, dig, header
from storefront.payment.normalized import (
    ChargeDetails,
    DisputeDetails,
    GatewayOutcome,
    NormalizedEvent,
)

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"

EVENT_OUTCOMES = {
    "payment_intent.succeeded": GatewayOutcome.SUCCESS,
    "payment_intent.payment_failed": GatewayOutcome.FAILURE,
    "charge.dispute.created": GatewayOutcome.DISPUTE,
}


class StripeAdapter(WebhookAdapter):
    provider = "stripe"

    def __init__(self, webhook_secret: str | None, tolerance: int = 300) -> None:
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

    def verify_signature(self, raw_body: bytes, headers: Mapping[str, str]) -> bool:
        """Check the `Stripe-Signature` header. A tolerance of 0 skips the timestamp check."""
        if not self.webhook_secret:
            logger.warning("Stripe webhook secret not configured; refusing delivery")
            return False

        value = header(headers, SIGNATURE_HEADER)
        if not value:
            return False

        try:
            stripe.WebhookSignature.verify_header(
                raw_body.decode("utf-8"),
                value,
                self.webhook_secret,
                tolerance=self.tolerance or None,
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as exc:
            logger.warning("Stripe signature verification failed", error=str(exc))
            return False
        return True

    def normalize(self, payload: dict) -> NormalizedEvent | None:
        event_id = dig(payload, "id")
        event_type = dig(payload, "type") or "unknown"
        if not event_id:
            return None

        outcome = EVENT_OUTCOMES.get(event_type)
        obj = dig(payload, "data", "object") or {}

        if outcome is None:
            return NormalizedEvent(
                provider=self.provider,
                provider_event_id=event_id,
                event_type=event_type,
                outcome=None,
                raw_payload=payload,
            )

        if outcome == GatewayOutcome.DISPUTE:
            return NormalizedEvent(
                provider=self.provider,
                provider_event_id=event_id,
                event_type=event_type,
                outcome=outcome,
                gateway_transaction_id=obj.get("charge"),
                details=DisputeDetails(
                    dispute_id=obj.get("id"),
                    reason=obj.get("reason"),
                    status=obj.get("status"),
                ),
                raw_payload=payload,
            )

        intent_id = obj.get("id")
        charge_id = dig(obj, "charges", "data", 0, "id") or obj.get("latest_charge")
        fee = dig(obj, "charges", "data", 0, "balance_transaction", "fee")
        return NormalizedEvent(
            provider=self.provider,
            provider_event_id=event_id,
            event_type=event_type,
            outcome=outcome,
            order_id=dig(obj, "metadata", "order_id"),
            gateway_transaction_id=charge_id or intent_id,
            failure_reason=dig(obj, "last_payment_error", "message"),
            details=ChargeDetails(
                payment_intent_id=intent_id,
                fee_cents=int(fee) if isinstance(fee, int | float) else None,
            ),
            raw_payload=payload,
        )
