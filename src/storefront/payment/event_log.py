"""PaymentEvent aggregate — append-only audit log of inbound gateway events.

One row per (provider, provider event id), whatever happened to the event.
`event_key` concatenates the two and is declared unique, so the store itself
rejects a second row for a redelivered event even when two deliveries race.
Rows are created once and never modified.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront


class EventOutcome(Enum):
    APPLIED = "Applied"
    DUPLICATE = "Duplicate"
    ORPHANED = "Orphaned"
    IGNORED_STALE = "Ignored_Stale"
    IGNORED_UNRECOGNIZED = "Ignored_Unrecognized"


def event_key_for(provider: str, provider_event_id: str) -> str:
    return f"{provider}:{provider_event_id}"


@storefront.aggregate
class PaymentEvent:
    provider = String(required=True, max_length=50)
    provider_event_id = String(required=True, max_length=255)
    event_key = String(required=True, max_length=320, unique=True)
    event_type = String(required=True, max_length=100)
    outcome = String(required=True, choices=EventOutcome)
    order_id = Identifier()
    detail = String(max_length=1000)
    payload = Text()  # raw provider payload, JSON
    received_at = DateTime(required=True)

    @classmethod
    def record(
        cls,
        provider: str,
        provider_event_id: str,
        event_type: str,
        outcome: EventOutcome,
        order_id: str | None = None,
        detail: str | None = None,
        payload: str | None = None,
    ):
        return cls(
            provider=provider,
            provider_event_id=provider_event_id,
            event_key=event_key_for(provider, provider_event_id),
            event_type=event_type,
            outcome=outcome.value,
            order_id=order_id,
            detail=detail[:1000] if detail else detail,
            payload=payload,
            received_at=datetime.now(UTC),
        )


def find_event(provider: str, provider_event_id: str) -> PaymentEvent | None:
    results = (
        current_domain.repository_for(PaymentEvent)
        ._dao.query.filter(event_key=event_key_for(provider, provider_event_id))
        .all()
        .items
    )
    return results[0] if results else None


def events_for_order(order_id: str) -> list[PaymentEvent]:
    """Audit trail of one order, oldest first."""
    results = current_domain.repository_for(PaymentEvent)._dao.query.filter(order_id=str(order_id)).all().items
    return sorted(results, key=lambda event: event.received_at)
