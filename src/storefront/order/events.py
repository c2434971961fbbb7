"""Domain events for the Order aggregate.

Amounts are carried in integer minor units, matching the aggregate.
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """A pending order was created from a priced cart."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: [{package_id, quantity, unit_price_cents}]
    subtotal_cents = Integer(required=True)
    discount_cents = Integer(required=True)
    final_cents = Integer(required=True)
    discount_code = String()
    payment_provider = String(required=True)
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderCompleted:
    """The gateway confirmed the funds for an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    user_id = Identifier(required=True)
    final_cents = Integer(required=True)
    gateway_transaction_id = String()
    completed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPaymentFailed:
    """The gateway reported that the payment did not go through."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    reason = String()
    failed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderRefunded:
    """A completed order was reversed by a dispute or chargeback."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    gateway_transaction_id = String()
    dispute_id = String()
    reason = String()
    refunded_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderCancelled:
    """A pending order was abandoned before payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)


@storefront.event(part_of="Order")
class FulfillmentFlagged:
    """Some or all of a completed order could not be turned into fulfillment work."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    issue = String(required=True)
    detail = String()
    flagged_at = DateTime(required=True)
