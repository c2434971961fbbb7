"""Read-side queries over the fulfillment queue for support tooling."""

from protean.utils.globals import current_domain

from storefront.fulfillment.command_execution import CommandExecution, CommandExecutionStatus
from storefront.order.order import Order


def commands_by_status(status: CommandExecutionStatus | str | None = None) -> list[CommandExecution]:
    """All work items, optionally of one status, oldest first."""
    query = current_domain.repository_for(CommandExecution)._dao.query
    if status is not None:
        query = query.filter(status=CommandExecutionStatus(status).value)
    return sorted(query.all().items, key=lambda item: item.created_at)


def commands_for_order(order_id: str) -> list[CommandExecution]:
    items = current_domain.repository_for(CommandExecution)._dao.query.filter(order_id=str(order_id)).all().items
    return sorted(items, key=lambda item: item.created_at)


def failed_commands() -> list[CommandExecution]:
    """Items that exhausted their attempts and need an operator."""
    return commands_by_status(CommandExecutionStatus.FAILED)


def orders_needing_attention() -> list[Order]:
    """Completed orders whose fulfillment could not be generated."""
    orders = current_domain.repository_for(Order)._dao.query.all().items
    flagged = [order for order in orders if order.fulfillment_issue]
    return sorted(flagged, key=lambda order: order.created_at)
