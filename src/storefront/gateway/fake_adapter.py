"""Fake webhook adapter for development and testing.

Accepts a flat payload so tests and local tooling can drive the order
lifecycle without provider fixtures:

    {"id": "evt_1", "type": "payment.succeeded", "order_id": "...",
     "transaction_id": "fake_txn_1"}

Types: `payment.succeeded`, `payment.failed` (with `reason`) and
`payment.disputed` (with `transaction_id`, `dispute_id`, `reason`).
Signature is a fixed test value in `X-Gateway-Signature`.
"""

from collections.abc import Mapping
from uuid import uuid4

from storefront.gateway.port import WebhookAdapter, header
from storefront.payment.normalized import (
    ChargeDetails,
    DisputeDetails,
    GatewayOutcome,
    NormalizedEvent,
)

SIGNATURE_HEADER = "X-Gateway-Signature"
TEST_SIGNATURE = "test-signature"

EVENT_OUTCOMES = {
    "payment.succeeded": GatewayOutcome.SUCCESS,
    "payment.failed": GatewayOutcome.FAILURE,
    "payment.disputed": GatewayOutcome.DISPUTE,
}


class FakeAdapter(WebhookAdapter):
    """Configurable fake gateway adapter."""

    provider = "fake"

    def __init__(self) -> None:
        self.received: list[dict] = []

    def verify_signature(self, raw_body: bytes, headers: Mapping[str, str]) -> bool:  # noqa: ARG002
        return header(headers, SIGNATURE_HEADER) == TEST_SIGNATURE

    def normalize(self, payload: dict) -> NormalizedEvent | None:
        self.received.append(payload)
        event_id = payload.get("id")
        if not event_id:
            return None

        event_type = payload.get("type") or "unknown"
        outcome = EVENT_OUTCOMES.get(event_type)
        if outcome == GatewayOutcome.DISPUTE:
            details = DisputeDetails(
                dispute_id=payload.get("dispute_id"),
                reason=payload.get("reason"),
                status=payload.get("status", "needs_response"),
            )
        elif outcome is not None:
            details = ChargeDetails(
                payment_intent_id=payload.get("payment_intent_id"),
                fee_cents=payload.get("fee_cents"),
            )
        else:
            details = None

        return NormalizedEvent(
            provider=self.provider,
            provider_event_id=event_id,
            event_type=event_type,
            outcome=outcome,
            order_id=payload.get("order_id"),
            gateway_transaction_id=payload.get("transaction_id"),
            failure_reason=payload.get("reason") if outcome == GatewayOutcome.FAILURE else None,
            details=details,
            raw_payload=payload,
        )


def fake_event(event_type: str, order_id: str | None = None, **fields) -> dict:
    """Build a fake gateway payload with a fresh event id."""
    payload = {"id": fields.pop("id", f"evt_{uuid4().hex[:12]}"), "type": event_type}
    if order_id is not None:
        payload["order_id"] = order_id
    if event_type == "payment.succeeded":
        payload.setdefault("transaction_id", f"fake_txn_{uuid4().hex[:12]}")
    payload.update(fields)
    return payload
