"""Fulfillment queue generator — completed order in, command work items out.

Runs inside the unit of work that moves an order to `Completed`, so either
the order and all of its work items are stored or neither is.

Each unit of quantity gets its own work item: buying three of a package
yields three independently retryable commands. Items whose package has no
command template produce nothing. A package that has vanished from the
catalogue cannot be rendered; the rest of the order is still queued and the
plan names the issue for the caller to flag. When the purchaser has no
usable in-game username, nothing is generated at all.
"""

from dataclasses import dataclass, field

import structlog

from storefront.catalogue.snapshot import PackageSnapshot
from storefront.errors import UnresolvedIdentityError
from storefront.fulfillment.command_execution import DEFAULT_MAX_ATTEMPTS, CommandExecution
from storefront.fulfillment.templates import render_command, unresolved_placeholders
from storefront.order.order import FulfillmentIssue

logger = structlog.get_logger(__name__)


@dataclass
class FulfillmentPlan:
    work_items: list[CommandExecution] = field(default_factory=list)
    issue: FulfillmentIssue | None = None
    detail: str | None = None


def _require_username(order, username: str | None) -> str:
    if not username:
        raise UnresolvedIdentityError(
            f"No usable in-game username for user {order.user_id}",
            user_id=str(order.user_id),
        )
    return username


def generate(
    order,
    username: str | None,
    packages: dict[str, PackageSnapshot],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> FulfillmentPlan:
    """Expand `order`'s items into `CommandExecution` work items.

    `packages` maps package id to its catalogue snapshot, including inactive
    packages. Nothing is persisted here; the caller adds the items to the
    repository in its own unit of work.
    """
    templated = []
    missing_packages = []
    for item in order.items:
        package = packages.get(str(item.package_id))
        if package is None:
            missing_packages.append(str(item.package_id))
        elif package.has_command_template:
            templated.append((item, package))

    if templated:
        try:
            username = _require_username(order, username)
        except UnresolvedIdentityError as exc:
            return FulfillmentPlan(issue=FulfillmentIssue.UNRESOLVED_IDENTITY, detail=exc.message)

    work_items = []
    for item, package in templated:
        command = render_command(
            package.command_template,
            {
                "username": username,
                "package_name": package.name,
                "quantity": item.quantity,
                "order_id": str(order.id),
                "order_number": order.order_number,
            },
        )
        leftovers = unresolved_placeholders(command)
        if leftovers:
            logger.warning(
                "Command template has unresolved placeholders",
                order_id=str(order.id),
                package_id=package.id,
                placeholders=leftovers,
            )

        for _ in range(item.quantity):
            work_items.append(
                CommandExecution.queue(
                    order_id=str(order.id),
                    package_id=package.id,
                    username=username,
                    command=command,
                    max_attempts=max_attempts,
                )
            )

    if missing_packages:
        return FulfillmentPlan(
            work_items=work_items,
            issue=FulfillmentIssue.UNRESOLVED_PACKAGE,
            detail=f"Packages no longer in catalogue: {', '.join(missing_packages)}",
        )
    return FulfillmentPlan(work_items=work_items)
