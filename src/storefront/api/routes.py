"""FastAPI routes for the storefront — store, webhooks and the fulfillment queue."""

import json

import structlog
from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    CancelOrderRequest,
    ClaimCommandRequest,
    ClaimResponse,
    CommandExecutionResponse,
    CommandFailureRequest,
    OrderIdResponse,
    OrderResponse,
    PlaceOrderRequest,
    QuoteRequest,
    QuoteResponse,
    StatusResponse,
    WebhookResponse,
)
from storefront.errors import (
    InvalidSignatureError,
    PersistenceError,
    PricingError,
    UnknownProviderError,
)
from storefront.fulfillment.command_execution import CommandExecutionStatus
from storefront.fulfillment.execution import (
    ReportCommandFailure,
    ReportCommandSuccess,
    RetryCommand,
    claim_next_command,
)
from storefront.fulfillment.queries import commands_by_status
from storefront.gateway.ingestion import ingest
from storefront.order.checkout import PlaceOrder, place_order
from storefront.order.order import Order
from storefront.order.pricing import quote
from storefront.payment.lifecycle import CancelOrder

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Store Router
# ---------------------------------------------------------------------------
store_router = APIRouter(prefix="/store", tags=["store"])


@store_router.post("/quote", response_model=QuoteResponse)
async def quote_cart(body: QuoteRequest) -> QuoteResponse:
    """Price a cart without creating an order."""
    priced = quote(
        [item.model_dump() for item in body.items],
        discount_code=body.discount_code,
    )
    return QuoteResponse.from_quote(priced)


@store_router.post("/orders", status_code=201, response_model=OrderIdResponse)
async def create_order(body: PlaceOrderRequest) -> OrderIdResponse:
    """Place a pending order. Prices are recomputed server-side."""
    command = PlaceOrder(
        user_id=body.user_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        payment_provider=body.payment_provider,
        discount_code=body.discount_code,
        payment_method=body.payment_method,
        billing=json.dumps(body.billing.model_dump(exclude_none=True)) if body.billing else None,
    )
    return OrderIdResponse(order_id=place_order(command))


@store_router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    order = current_domain.repository_for(Order).get(order_id)
    return OrderResponse.from_order(order)


@store_router.post("/orders/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest | None = None) -> StatusResponse:
    """Abandon a pending order."""
    command = CancelOrder(order_id=order_id, reason=body.reason if body else None)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="cancelled")


# ---------------------------------------------------------------------------
# Webhook Router
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@webhook_router.post("/{provider}", response_model=WebhookResponse)
async def receive_webhook(provider: str, request: Request) -> WebhookResponse:
    """Receive a payment gateway notification.

    Answers 200 for everything recorded or deliberately ignored so the
    gateway stops redelivering; 401 for a bad signature and 503 when the
    event could not be stored.
    """
    raw_body = await request.body()
    result = ingest(provider, raw_body=raw_body, headers=dict(request.headers))
    return WebhookResponse(
        status="recorded" if result.recorded else "ignored",
        outcome=result.outcome,
    )


# ---------------------------------------------------------------------------
# Fulfillment Router
# ---------------------------------------------------------------------------
fulfillment_router = APIRouter(prefix="/fulfillment", tags=["fulfillment"])


@fulfillment_router.get("/commands", response_model=list[CommandExecutionResponse])
async def list_commands(status: CommandExecutionStatus | None = Query(default=None)) -> list[CommandExecutionResponse]:
    return [CommandExecutionResponse.from_item(item) for item in commands_by_status(status)]


@fulfillment_router.post("/commands/claim", response_model=ClaimResponse)
async def claim_command(body: ClaimCommandRequest) -> ClaimResponse:
    """Claim the oldest pending command; `command` is null when the queue is empty."""
    item = claim_next_command(body.worker_id)
    return ClaimResponse(command=CommandExecutionResponse.from_item(item) if item else None)


@fulfillment_router.post("/commands/{command_execution_id}/success", response_model=StatusResponse)
async def report_success(command_execution_id: str) -> StatusResponse:
    current_domain.process(
        ReportCommandSuccess(command_execution_id=command_execution_id),
        asynchronous=False,
    )
    return StatusResponse(status="completed")


@fulfillment_router.post("/commands/{command_execution_id}/failure", response_model=StatusResponse)
async def report_failure(command_execution_id: str, body: CommandFailureRequest) -> StatusResponse:
    current_domain.process(
        ReportCommandFailure(command_execution_id=command_execution_id, error=body.error),
        asynchronous=False,
    )
    return StatusResponse(status="failure_recorded")


@fulfillment_router.post("/commands/{command_execution_id}/retry", response_model=StatusResponse)
async def retry_command(command_execution_id: str) -> StatusResponse:
    """Send a permanently failed command back to the queue."""
    current_domain.process(
        RetryCommand(command_execution_id=command_execution_id),
        asynchronous=False,
    )
    return StatusResponse(status="requeued")


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message, **extra})


async def _pricing_error(request: Request, exc: PricingError) -> JSONResponse:
    return _error(422, exc.message, kind=exc.kind.value)


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return _error(400, "Validation failed", errors=exc.messages)


async def _not_found(request: Request, exc: Exception) -> JSONResponse:
    return _error(404, str(exc) or "Not found")


async def _invalid_signature(request: Request, exc: InvalidSignatureError) -> JSONResponse:
    return _error(401, exc.message)


async def _persistence_error(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("Request failed to persist", path=request.url.path, error=exc.message)
    return _error(503, exc.message)


def install_exception_handlers(app: FastAPI) -> None:
    """Map storefront and Protean errors onto HTTP status codes."""
    app.add_exception_handler(PricingError, _pricing_error)
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(ObjectNotFoundError, _not_found)
    app.add_exception_handler(UnknownProviderError, _not_found)
    app.add_exception_handler(InvalidSignatureError, _invalid_signature)
    app.add_exception_handler(PersistenceError, _persistence_error)
