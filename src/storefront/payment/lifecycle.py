"""Order lifecycle coordinator: the only writer of order status.

`ProcessGatewayEvent` carries one normalized gateway event. Its handler runs
in a single unit of work and applies the gates in order:

1. Idempotency: an audit row for (provider, event id) already exists →
   `Duplicate`, nothing is written.
2. Existence: the order cannot be resolved → `Orphaned`.
3. Staleness: the order cannot make the requested transition (a failure
   after a completion, a second completion, a dispute on an unpaid order) →
   `Ignored_Stale`.
4. Apply: move the order, and on `Pending → Completed` generate its
   fulfillment work items and redeem its discount code.
5. Record the audit row with the outcome, whichever gate decided it.

The audit row carries a unique key, so when two deliveries of the same event
race past gate 1 the second commit fails and the whole unit rolls back;
`process_gateway_event` then reports it as a duplicate. Any other failure to
commit is raised as `PersistenceError` for the transport to redeliver.

`CancelOrder` is the other transition request this module accepts.
"""

import json

import structlog
from protean import handle
from protean.exceptions import (
    DatabaseError,
    ExpectedVersionError,
    ObjectNotFoundError,
    TransactionError,
    ValidationError,
)
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront import settings
from storefront.catalogue.discount import DiscountCode
from storefront.catalogue.snapshot import CatalogSnapshot
from storefront.domain import storefront
from storefront.errors import (
    DuplicateEventError,
    OrphanedEventError,
    PersistenceError,
    StaleTransitionError,
)
from storefront.fulfillment.command_execution import CommandExecution
from storefront.fulfillment.generator import generate
from storefront.order.order import Order, OrderStatus
from storefront.payment.event_log import EventOutcome, PaymentEvent, find_event
from storefront.payment.normalized import ChargeDetails, DisputeDetails, GatewayOutcome, NormalizedEvent
from storefront.player.profile import resolve_username

logger = structlog.get_logger(__name__)

_TARGET_STATUS = {
    GatewayOutcome.SUCCESS.value: OrderStatus.COMPLETED,
    GatewayOutcome.FAILURE.value: OrderStatus.FAILED,
    GatewayOutcome.DISPUTE.value: OrderStatus.REFUNDED,
}


@storefront.command(part_of="PaymentEvent")
class ProcessGatewayEvent:
    """Apply one normalized gateway event to its order."""

    provider = String(required=True, max_length=50)
    provider_event_id = String(required=True, max_length=255)
    event_type = String(required=True, max_length=100)
    outcome = String(max_length=20)  # success, failure, dispute; empty when unrecognized
    order_id = Identifier()
    gateway_transaction_id = String(max_length=255)
    failure_reason = String(max_length=1000)
    payment_intent_id = String(max_length=255)
    fee_cents = Integer()
    dispute_id = String(max_length=255)
    dispute_reason = String(max_length=500)
    dispute_status = String(max_length=100)
    payload = Text()


@storefront.command(part_of="Order")
class CancelOrder:
    """Abandon a pending order before payment."""

    order_id = Identifier(required=True)
    reason = String(max_length=500)


def _clip(value: str | None, limit: int) -> str | None:
    return value[:limit] if value else value


def command_for(event: NormalizedEvent) -> ProcessGatewayEvent:
    """Build the coordinator command. Gateway text is clipped to the column widths it is stored in."""
    charge = event.details if isinstance(event.details, ChargeDetails) else ChargeDetails()
    dispute = event.details if isinstance(event.details, DisputeDetails) else DisputeDetails()
    return ProcessGatewayEvent(
        provider=event.provider,
        provider_event_id=_clip(event.provider_event_id, 255),
        event_type=_clip(event.event_type, 100),
        outcome=event.outcome.value if event.outcome else None,
        order_id=event.order_id,
        gateway_transaction_id=_clip(event.gateway_transaction_id, 255),
        failure_reason=_clip(event.failure_reason, 1000),
        payment_intent_id=_clip(charge.payment_intent_id, 255),
        fee_cents=charge.fee_cents,
        dispute_id=_clip(dispute.dispute_id, 255),
        dispute_reason=_clip(dispute.reason, 500),
        dispute_status=_clip(dispute.status, 100),
        payload=json.dumps(event.raw_payload, default=str),
    )


def _assert_first_delivery(command) -> None:
    if find_event(command.provider, command.provider_event_id) is not None:
        raise DuplicateEventError(
            f"{command.provider} event {command.provider_event_id} already recorded",
            provider=command.provider,
            provider_event_id=command.provider_event_id,
        )


def _resolve_order(command) -> Order:
    """Find the order an event refers to. Disputes are matched on the gateway transaction id."""
    repo = current_domain.repository_for(Order)

    if command.outcome == GatewayOutcome.DISPUTE.value:
        if not command.gateway_transaction_id:
            raise OrphanedEventError("Dispute carries no gateway transaction id")
        matches = (
            repo._dao.query.filter(gateway_transaction_id=command.gateway_transaction_id).all().items
        )
        if not matches:
            raise OrphanedEventError(f"No order for gateway transaction {command.gateway_transaction_id}")
        return repo.get(matches[0].id)

    if not command.order_id:
        raise OrphanedEventError("Event carries no order id")
    try:
        return repo.get(command.order_id)
    except ObjectNotFoundError as exc:
        raise OrphanedEventError(f"Order {command.order_id} does not exist") from exc


def _assert_not_stale(order: Order, target: OrderStatus) -> None:
    if not order.can_move_to(target):
        raise StaleTransitionError(f"Order is {order.status}; cannot move to {target.value}")


def _redeem_discount(order: Order) -> None:
    if not order.discount_code:
        return
    repo = current_domain.repository_for(DiscountCode)
    codes = repo._dao.query.filter(code=order.discount_code).all().items
    if not codes:
        logger.warning("Discount code vanished before redemption", order_id=str(order.id), code=order.discount_code)
        return

    discount = repo.get(codes[0].id)
    if not discount.is_valid_at(order.created_at):
        # The order was priced while the code was valid; the paid amount stands
        logger.warning(
            "Redeeming discount past its validity",
            order_id=str(order.id),
            code=discount.code,
            validity=discount.validity_at(order.created_at).value,
        )
    discount.redeem()
    repo.add(discount)


def _fulfill(order: Order) -> int:
    """Queue work items for a freshly completed order. Returns how many were queued."""
    packages = CatalogSnapshot().packages_by_ids(
        [item.package_id for item in order.items],
        include_inactive=True,
    )
    plan = generate(
        order,
        username=resolve_username(order.user_id),
        packages=packages,
        max_attempts=settings.fulfillment_max_attempts(),
    )

    if plan.issue is not None:
        order.flag_fulfillment_issue(plan.issue, plan.detail)
        logger.warning(
            "Fulfillment needs attention",
            order_id=str(order.id),
            issue=plan.issue.value,
            detail=plan.detail,
            commands_queued=len(plan.work_items),
        )

    repo = current_domain.repository_for(CommandExecution)
    for work_item in plan.work_items:
        repo.add(work_item)
    return len(plan.work_items)


def _apply(order: Order, command, target: OrderStatus) -> None:
    diagnostics = {"last_event": f"{command.provider}:{command.provider_event_id}"}

    if target == OrderStatus.COMPLETED:
        order.complete(
            gateway_transaction_id=command.gateway_transaction_id,
            payment_intent_id=command.payment_intent_id,
            fee_cents=command.fee_cents,
        )
        _redeem_discount(order)
        queued = _fulfill(order)
        diagnostics["commands_queued"] = queued
    elif target == OrderStatus.FAILED:
        order.fail(
            reason=command.failure_reason,
            gateway_transaction_id=command.gateway_transaction_id,
        )
    elif target == OrderStatus.REFUNDED:
        order.refund(
            dispute_id=command.dispute_id,
            reason=command.dispute_reason,
            dispute_status=command.dispute_status,
        )

    order.record_diagnostics(**diagnostics)
    current_domain.repository_for(Order).add(order)


@storefront.command_handler(part_of=PaymentEvent)
class GatewayEventHandler:
    @handle(ProcessGatewayEvent)
    def process_gateway_event(self, command):
        log = logger.bind(
            provider=command.provider,
            provider_event_id=command.provider_event_id,
            event_type=command.event_type,
        )

        try:
            _assert_first_delivery(command)  # Gate 1: idempotency
        except DuplicateEventError:
            log.info("Duplicate gateway event ignored", outcome=EventOutcome.DUPLICATE.value)
            return EventOutcome.DUPLICATE.value

        order_id = command.order_id
        detail = None
        if not command.outcome:
            outcome = EventOutcome.IGNORED_UNRECOGNIZED
            log.warning("Unrecognized gateway event type", outcome=outcome.value)
        else:
            target = _TARGET_STATUS[command.outcome]
            try:
                order = _resolve_order(command)  # Gate 2: existence
                order_id = str(order.id)
                _assert_not_stale(order, target)  # Gate 3: staleness
                _apply(order, command, target)  # Gate 4: apply
                outcome = EventOutcome.APPLIED
                log.info("Order transitioned", order_id=order_id, status=order.status, outcome=outcome.value)
            except OrphanedEventError as exc:
                outcome, detail = EventOutcome.ORPHANED, str(exc)
                log.warning("Orphaned gateway event", order_id=order_id, detail=detail, outcome=outcome.value)
            except StaleTransitionError as exc:
                outcome, detail = EventOutcome.IGNORED_STALE, str(exc)
                log.warning("Stale gateway event ignored", order_id=order_id, detail=detail, outcome=outcome.value)

        # Gate 5: audit row, committed with the order change
        current_domain.repository_for(PaymentEvent).add(
            PaymentEvent.record(
                provider=command.provider,
                provider_event_id=command.provider_event_id,
                event_type=command.event_type,
                outcome=outcome,
                order_id=order_id,
                detail=detail,
                payload=command.payload,
            )
        )
        return outcome.value


def process_gateway_event(event: NormalizedEvent) -> EventOutcome:
    """Run one normalized event through the coordinator.

    Returns the recorded outcome. A unique-key conflict on the audit row at
    commit means a concurrent delivery of the same event won the race and is
    reported as `Duplicate`; every other storage failure becomes `PersistenceError`.
    """
    command = command_for(event)
    try:
        return EventOutcome(current_domain.process(command, asynchronous=False))
    except (ValidationError, ExpectedVersionError, TransactionError, DatabaseError) as exc:
        if find_event(command.provider, command.provider_event_id) is not None:
            logger.info(
                "Concurrent delivery already recorded",
                provider=event.provider,
                provider_event_id=event.provider_event_id,
                outcome=EventOutcome.DUPLICATE.value,
            )
            return EventOutcome.DUPLICATE
        logger.error(
            "Failed to record gateway event",
            provider=event.provider,
            provider_event_id=event.provider_event_id,
            error=repr(exc),
        )
        raise PersistenceError(
            f"Could not record {event.provider} event {event.provider_event_id}",
            provider=event.provider,
            provider_event_id=event.provider_event_id,
        ) from exc


@storefront.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.cancel(reason=command.reason)
        repo.add(order)
        logger.info("Order cancelled", order_id=str(order.id), reason=command.reason)
