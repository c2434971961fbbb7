"""Checkout — PlaceOrder command and handler.

The client's view of the price is never trusted: the handler re-quotes the
cart against the catalogue at placement time, re-checking the discount code,
and stores the resulting totals and unit prices on a new `Pending` order.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from storefront import settings
from storefront.domain import storefront
from storefront.errors import PersistenceError, PricingError, PricingErrorKind
from storefront.order.numbering import generate_order_number
from storefront.order.order import Order
from storefront.order.pricing import DiscountStatus, quote

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class PlaceOrder:
    """Create a pending order for a cart."""

    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {package_id, quantity}
    payment_provider = String(required=True, max_length=20)
    discount_code = String(max_length=50)
    payment_method = String(max_length=50)
    billing = Text()  # JSON: BillingContact fields


def _unused_order_number(repo) -> str:
    for _ in range(settings.order_number_attempts()):
        candidate = generate_order_number()
        if not repo._dao.query.filter(order_number=candidate).all().items:
            return candidate
        logger.warning("Order number collision, regenerating", order_number=candidate)
    raise PersistenceError("Could not allocate a unique order number")


@storefront.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        items = json.loads(command.items) if isinstance(command.items, str) else command.items
        priced = quote(items, discount_code=command.discount_code)

        if command.discount_code and not priced.discount_applied:
            kind = (
                PricingErrorKind.DISCOUNT_NOT_FOUND
                if priced.discount_status == DiscountStatus.NOT_FOUND
                else PricingErrorKind.DISCOUNT_NOT_APPLICABLE
            )
            raise PricingError(
                kind,
                f"Discount code {priced.discount_code} cannot be used: {priced.discount_status}",
                discount_status=priced.discount_status,
            )

        repo = current_domain.repository_for(Order)
        billing = json.loads(command.billing) if command.billing else None
        order = Order.place(
            user_id=command.user_id,
            order_number=_unused_order_number(repo),
            quote=priced,
            payment_provider=command.payment_provider,
            billing=billing,
            payment_method=command.payment_method,
        )
        repo.add(order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            final_cents=order.final_cents,
            discount_code=order.discount_code,
        )
        return str(order.id)


def _is_order_number_conflict(exc: ValidationError) -> bool:
    return "order_number" in str(exc.messages)


def place_order(command: PlaceOrder) -> str:
    """Process `command`, retrying with a fresh order number on a unique-key conflict at commit."""
    attempts = settings.order_number_attempts()
    for attempt in range(1, attempts + 1):
        try:
            return current_domain.process(command, asynchronous=False)
        except ValidationError as exc:
            if not _is_order_number_conflict(exc) or attempt == attempts:
                raise
            logger.warning("Order number taken at commit, retrying", attempt=attempt)
    raise PersistenceError("Could not allocate a unique order number")
