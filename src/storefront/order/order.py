"""Order aggregate (CQRS) — a purchase of store packages awaiting or past payment.

Orders are created `Pending` by checkout and from then on change status only
through the lifecycle coordinator (`storefront.payment.lifecycle`). Unit
prices are captured on each OrderItem when the order is placed, so later
catalogue price changes never alter a placed order. Monetary fields are
integer minor units and are never modified after placement.

State Machine:
    PENDING → COMPLETED → REFUNDED
    PENDING → FAILED
    PENDING → CANCELLED
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from storefront.domain import storefront
from storefront.order.events import (
    FulfillmentFlagged,
    OrderCancelled,
    OrderCompleted,
    OrderPaymentFailed,
    OrderPlaced,
    OrderRefunded,
)
from storefront.shared.money import to_cents


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


class PaymentProvider(Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"
    FAKE = "fake"


class FulfillmentIssue(Enum):
    UNRESOLVED_IDENTITY = "Unresolved_Identity"
    UNRESOLVED_PACKAGE = "Unresolved_Package"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.COMPLETED, OrderStatus.FAILED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: {OrderStatus.REFUNDED},
    OrderStatus.FAILED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

TERMINAL_STATUSES = frozenset(
    {OrderStatus.COMPLETED, OrderStatus.FAILED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
)

_SETTLED_AMOUNTS = ("subtotal_cents", "discount_cents", "final_cents")


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class BillingContact:
    """Billing contact captured at checkout."""

    email = String(max_length=254)
    name = String(max_length=255)
    address_line1 = String(max_length=255)
    address_line2 = String(max_length=255)
    city = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(max_length=100)


@storefront.value_object(part_of="Order")
class GatewayCharge:
    """What the gateway told us when it confirmed the funds."""

    payment_intent_id = String(max_length=255)
    fee_cents = Integer(min_value=0)
    captured_at = DateTime()


@storefront.value_object(part_of="Order")
class GatewayDispute:
    """A dispute or chargeback opened against a completed order."""

    dispute_id = String(max_length=255)
    reason = String(max_length=500)
    status = String(max_length=100)
    opened_at = DateTime()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderItem:
    """A package and quantity, priced at the moment the order was placed."""

    package_id = Identifier(required=True)
    package_name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price_cents = Integer(required=True, min_value=0)
    total_price_cents = Integer(required=True, min_value=0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    user_id = Identifier(required=True)
    order_number = String(required=True, max_length=50, unique=True)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    items = HasMany(OrderItem)
    subtotal_cents = Integer(default=0, min_value=0)
    discount_cents = Integer(default=0, min_value=0)
    final_cents = Integer(default=0, min_value=0)
    discount_code = String(max_length=50)
    currency = String(max_length=3, default="USD")
    payment_provider = String(required=True, choices=PaymentProvider)
    payment_method = String(max_length=50)
    gateway_transaction_id = String(max_length=255)
    charge = ValueObject(GatewayCharge)
    dispute = ValueObject(GatewayDispute)
    billing = ValueObject(BillingContact)
    failure_reason = String(max_length=1000)
    fulfillment_issue = String(choices=FulfillmentIssue)
    diagnostics = Text()  # JSON object of provider-specific details
    created_at = DateTime()
    updated_at = DateTime()
    completed_at = DateTime()

    @invariant.post
    def final_amount_is_subtotal_less_discount(self):
        expected = max(0, (self.subtotal_cents or 0) - (self.discount_cents or 0))
        if self.final_cents != expected:
            raise ValidationError({"final_cents": ["Final amount must equal subtotal less discount, floored at zero"]})

    def __setattr__(self, name, value):
        # Amounts are frozen once the order leaves Pending
        if (
            name in _SETTLED_AMOUNTS
            and getattr(self, "_initialized", False)
            and self.status != OrderStatus.PENDING.value
            and value != getattr(self, name)
        ):
            raise ValidationError({name: [f"Cannot change amounts on a {self.status} order"]})
        super().__setattr__(name, value)

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        user_id: str,
        order_number: str,
        quote,
        payment_provider: str,
        billing: dict | None = None,
        payment_method: str | None = None,
    ):
        """Create a pending order from an authoritative `Quote`.

        Unit prices come from the quote lines and are frozen on the items.
        """
        now = datetime.now(UTC)
        order = cls(
            user_id=user_id,
            order_number=order_number,
            status=OrderStatus.PENDING.value,
            subtotal_cents=quote.subtotal_cents,
            discount_cents=quote.discount_cents,
            final_cents=quote.final_cents,
            discount_code=quote.discount_code if quote.discount_applied else None,
            payment_provider=payment_provider,
            payment_method=payment_method,
            billing=BillingContact(**billing) if billing else None,
            created_at=now,
            updated_at=now,
        )

        items_data = []
        for line in quote.lines:
            unit_price_cents = to_cents(line.unit_price)
            order.add_items(
                OrderItem(
                    package_id=line.package_id,
                    package_name=line.package_name,
                    quantity=line.quantity,
                    unit_price_cents=unit_price_cents,
                    total_price_cents=to_cents(line.total_price),
                )
            )
            items_data.append(
                {
                    "package_id": line.package_id,
                    "quantity": line.quantity,
                    "unit_price_cents": unit_price_cents,
                }
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                user_id=str(user_id),
                items=json.dumps(items_data),
                subtotal_cents=order.subtotal_cents,
                discount_cents=order.discount_cents,
                final_cents=order.final_cents,
                discount_code=order.discount_code,
                payment_provider=payment_provider,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    @property
    def is_terminal(self) -> bool:
        return OrderStatus(self.status) in TERMINAL_STATUSES

    def can_move_to(self, target_status: OrderStatus) -> bool:
        return target_status in _VALID_TRANSITIONS.get(OrderStatus(self.status), set())

    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if not self.can_move_to(target_status):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def record_diagnostics(self, **details) -> None:
        """Merge provider-specific details into the opaque diagnostics blob."""
        current = json.loads(self.diagnostics) if self.diagnostics else {}
        current.update({key: value for key, value in details.items() if value is not None})
        self.diagnostics = json.dumps(current, default=str, sort_keys=True)

    # -------------------------------------------------------------------
    # Lifecycle transitions (invoked by the lifecycle coordinator)
    # -------------------------------------------------------------------
    def complete(
        self,
        gateway_transaction_id: str | None,
        payment_intent_id: str | None = None,
        fee_cents: int | None = None,
    ) -> None:
        self._assert_can_transition(OrderStatus.COMPLETED)
        now = datetime.now(UTC)
        self.status = OrderStatus.COMPLETED.value
        self.gateway_transaction_id = gateway_transaction_id
        self.charge = GatewayCharge(
            payment_intent_id=payment_intent_id,
            fee_cents=fee_cents,
            captured_at=now,
        )
        self.completed_at = now
        self.updated_at = now
        self.raise_(
            OrderCompleted(
                order_id=str(self.id),
                order_number=self.order_number,
                user_id=str(self.user_id),
                final_cents=self.final_cents,
                gateway_transaction_id=gateway_transaction_id,
                completed_at=now,
            )
        )

    def fail(self, reason: str | None, gateway_transaction_id: str | None = None) -> None:
        self._assert_can_transition(OrderStatus.FAILED)
        now = datetime.now(UTC)
        self.status = OrderStatus.FAILED.value
        self.failure_reason = reason or "Payment failed"
        if gateway_transaction_id:
            self.gateway_transaction_id = gateway_transaction_id
        self.updated_at = now
        self.raise_(
            OrderPaymentFailed(
                order_id=str(self.id),
                order_number=self.order_number,
                reason=self.failure_reason,
                failed_at=now,
            )
        )

    def refund(
        self,
        dispute_id: str | None = None,
        reason: str | None = None,
        dispute_status: str | None = None,
    ) -> None:
        """Reverse a completed order after a dispute or chargeback."""
        self._assert_can_transition(OrderStatus.REFUNDED)
        now = datetime.now(UTC)
        self.status = OrderStatus.REFUNDED.value
        self.dispute = GatewayDispute(
            dispute_id=dispute_id,
            reason=reason,
            status=dispute_status,
            opened_at=now,
        )
        self.updated_at = now
        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                order_number=self.order_number,
                gateway_transaction_id=self.gateway_transaction_id,
                dispute_id=dispute_id,
                reason=reason,
                refunded_at=now,
            )
        )

    def cancel(self, reason: str | None = None) -> None:
        self._assert_can_transition(OrderStatus.CANCELLED)
        now = datetime.now(UTC)
        self.status = OrderStatus.CANCELLED.value
        self.failure_reason = reason
        self.updated_at = now
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                reason=reason,
                cancelled_at=now,
            )
        )

    def flag_fulfillment_issue(self, issue: FulfillmentIssue, detail: str | None = None) -> None:
        """Mark a completed order whose fulfillment could not be fully generated."""
        now = datetime.now(UTC)
        self.fulfillment_issue = issue.value
        self.record_diagnostics(fulfillment_detail=detail)
        self.updated_at = now
        self.raise_(
            FulfillmentFlagged(
                order_id=str(self.id),
                order_number=self.order_number,
                issue=issue.value,
                detail=detail,
                flagged_at=now,
            )
        )
