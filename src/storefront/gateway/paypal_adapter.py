"""PayPal webhook adapter.

Recognized event types:

- `PAYMENT.CAPTURE.COMPLETED` → success
- `PAYMENT.CAPTURE.DENIED` → failure
- `CUSTOMER.DISPUTE.CREATED` → dispute

Captures carry the order id in `resource.custom_id`; the capture id becomes
the gateway transaction id. Disputes reference the capture through
`disputed_transactions[0].seller_transaction_id`.

Deliveries are authenticated with a shared token in `X-Webhook-Token`.
"""

import hmac
from collections.abc import Mapping

import structlog

from storefront.gateway.port import WebhookAdapter, dig, header
from storefront.payment.normalized import (
    ChargeDetails,
    DisputeDetails,
    GatewayOutcome,
    NormalizedEvent,
)
from storefront.shared.money import to_cents, to_decimal

logger = structlog.get_logger(__name__)

TOKEN_HEADER = "X-Webhook-Token"

EVENT_OUTCOMES = {
    "PAYMENT.CAPTURE.COMPLETED": GatewayOutcome.SUCCESS,
    "PAYMENT.CAPTURE.DENIED": GatewayOutcome.FAILURE,
    "CUSTOMER.DISPUTE.CREATED": GatewayOutcome.DISPUTE,
}


def _fee_cents(resource: dict) -> int | None:
    value = dig(resource, "seller_receivable_breakdown", "paypal_fee", "value")
    if value is None:
        return None
    try:
        return to_cents(to_decimal(value))
    except ArithmeticError:
        logger.warning("Unparseable PayPal fee", value=value)
        return None


class PayPalAdapter(WebhookAdapter):
    provider = "paypal"

    def __init__(self, webhook_token: str | None) -> None:
        self.webhook_token = webhook_token

    def verify_signature(self, raw_body: bytes, headers: Mapping[str, str]) -> bool:  # noqa: ARG002
        if not self.webhook_token:
            logger.warning("PayPal webhook token not configured; refusing delivery")
            return False
        supplied = header(headers, TOKEN_HEADER)
        if not supplied:
            return False
        return hmac.compare_digest(supplied.encode(), self.webhook_token.encode())

    def normalize(self, payload: dict) -> NormalizedEvent | None:
        event_id = dig(payload, "id")
        event_type = dig(payload, "event_type") or "unknown"
        if not event_id:
            return None

        outcome = EVENT_OUTCOMES.get(event_type)
        resource = dig(payload, "resource") or {}

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
                gateway_transaction_id=dig(resource, "disputed_transactions", 0, "seller_transaction_id"),
                details=DisputeDetails(
                    dispute_id=resource.get("dispute_id"),
                    reason=resource.get("reason"),
                    status=resource.get("status"),
                ),
                raw_payload=payload,
            )

        return NormalizedEvent(
            provider=self.provider,
            provider_event_id=event_id,
            event_type=event_type,
            outcome=outcome,
            order_id=resource.get("custom_id"),
            gateway_transaction_id=resource.get("id"),
            failure_reason=dig(resource, "status_details", "reason"),
            details=ChargeDetails(
                payment_intent_id=dig(resource, "supplementary_data", "related_ids", "order_id"),
                fee_cents=_fee_cents(resource),
            ),
            raw_payload=payload,
        )
