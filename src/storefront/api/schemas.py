"""Pydantic request/response schemas for the storefront API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands. Money leaves the API as decimal strings.
"""

from pydantic import BaseModel, Field

from storefront.fulfillment.command_execution import CommandExecution
from storefront.order.order import Order
from storefront.order.pricing import Quote
from storefront.shared.money import format_amount


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CartItemSchema(BaseModel):
    package_id: str
    quantity: int = Field(gt=0)


class BillingSchema(BaseModel):
    email: str | None = None
    name: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    postal_code: str | None = None
    country: str | None = None


# ---------------------------------------------------------------------------
# Store Request Schemas
# ---------------------------------------------------------------------------
class QuoteRequest(BaseModel):
    items: list[CartItemSchema] = Field(min_length=1)
    discount_code: str | None = None


class PlaceOrderRequest(BaseModel):
    user_id: str
    items: list[CartItemSchema] = Field(min_length=1)
    payment_provider: str
    discount_code: str | None = None
    payment_method: str | None = None
    billing: BillingSchema | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "user_id": "user-001",
                    "items": [{"package_id": "pkg-vip", "quantity": 2}],
                    "payment_provider": "stripe",
                    "discount_code": "SAVE10",
                    "billing": {"email": "steve@example.com", "country": "SE"},
                }
            ]
        }
    }


class CancelOrderRequest(BaseModel):
    reason: str | None = None


# ---------------------------------------------------------------------------
# Fulfillment Request Schemas
# ---------------------------------------------------------------------------
class ClaimCommandRequest(BaseModel):
    worker_id: str


class CommandFailureRequest(BaseModel):
    error: str | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str


class WebhookResponse(BaseModel):
    status: str
    outcome: str


class OrderIdResponse(BaseModel):
    order_id: str


class QuoteLineResponse(BaseModel):
    package_id: str
    package_name: str
    quantity: int
    unit_price: str
    total_price: str


class QuoteResponse(BaseModel):
    subtotal: str
    discount_amount: str
    final_amount: str
    gift_card_amount: str
    discount_code: str | None = None
    discount_status: str
    lines: list[QuoteLineResponse]

    @classmethod
    def from_quote(cls, quote: Quote) -> "QuoteResponse":
        return cls(
            subtotal=str(quote.subtotal),
            discount_amount=str(quote.discount_amount),
            final_amount=str(quote.final_amount),
            gift_card_amount=str(quote.gift_card_amount),
            discount_code=quote.discount_code,
            discount_status=quote.discount_status,
            lines=[
                QuoteLineResponse(
                    package_id=line.package_id,
                    package_name=line.package_name,
                    quantity=line.quantity,
                    unit_price=str(line.unit_price),
                    total_price=str(line.total_price),
                )
                for line in quote.lines
            ],
        )


class OrderItemResponse(BaseModel):
    package_id: str
    package_name: str
    quantity: int
    unit_price: str
    total_price: str


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    user_id: str
    status: str
    subtotal: str
    discount_amount: str
    final_amount: str
    currency: str
    discount_code: str | None = None
    payment_provider: str
    gateway_transaction_id: str | None = None
    failure_reason: str | None = None
    fulfillment_issue: str | None = None
    items: list[OrderItemResponse]

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            order_id=str(order.id),
            order_number=order.order_number,
            user_id=str(order.user_id),
            status=order.status,
            subtotal=format_amount(order.subtotal_cents),
            discount_amount=format_amount(order.discount_cents),
            final_amount=format_amount(order.final_cents),
            currency=order.currency,
            discount_code=order.discount_code,
            payment_provider=order.payment_provider,
            gateway_transaction_id=order.gateway_transaction_id,
            failure_reason=order.failure_reason,
            fulfillment_issue=order.fulfillment_issue,
            items=[
                OrderItemResponse(
                    package_id=str(item.package_id),
                    package_name=item.package_name,
                    quantity=item.quantity,
                    unit_price=format_amount(item.unit_price_cents),
                    total_price=format_amount(item.total_price_cents),
                )
                for item in order.items
            ],
        )


class CommandExecutionResponse(BaseModel):
    command_execution_id: str
    order_id: str
    package_id: str
    username: str
    command: str
    status: str
    attempts: int
    max_attempts: int
    last_error: str | None = None
    claimed_by: str | None = None

    @classmethod
    def from_item(cls, item: CommandExecution) -> "CommandExecutionResponse":
        return cls(
            command_execution_id=str(item.id),
            order_id=str(item.order_id),
            package_id=str(item.package_id),
            username=item.username,
            command=item.command,
            status=item.status,
            attempts=item.attempts,
            max_attempts=item.max_attempts,
            last_error=item.last_error,
            claimed_by=item.claimed_by,
        )


class ClaimResponse(BaseModel):
    command: CommandExecutionResponse | None = None
