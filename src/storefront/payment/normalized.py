"""The provider-agnostic shape a webhook adapter hands to the lifecycle coordinator.

Provider specifics survive only as typed details (`ChargeDetails`,
`DisputeDetails`) plus the raw payload, which is stored verbatim on the
audit row and never read by business logic.
"""

from dataclasses import dataclass, field
from enum import Enum


class GatewayOutcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    DISPUTE = "dispute"


@dataclass(frozen=True)
class ChargeDetails:
    payment_intent_id: str | None = None
    fee_cents: int | None = None


@dataclass(frozen=True)
class DisputeDetails:
    dispute_id: str | None = None
    reason: str | None = None
    status: str | None = None


@dataclass(frozen=True)
class NormalizedEvent:
    """One gateway notification, reduced to what the order lifecycle needs.

    `outcome` is None for event types the adapter does not recognize; such
    events are recorded for audit and otherwise ignored. Dispute events carry
    no order id and are matched on `gateway_transaction_id` instead.
    """

    provider: str
    provider_event_id: str
    event_type: str
    outcome: GatewayOutcome | None
    order_id: str | None = None
    gateway_transaction_id: str | None = None
    failure_reason: str | None = None
    details: ChargeDetails | DisputeDetails | None = None
    raw_payload: dict = field(default_factory=dict, repr=False)

    @property
    def is_recognized(self) -> bool:
        return self.outcome is not None
