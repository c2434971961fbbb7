"""Storefront bounded context — orders, payment webhooks and in-game fulfillment.

Prices a cart against the package catalogue, records pending orders, consumes
asynchronous payment-gateway notifications exactly once and turns completed
orders into a queue of retryable game-server commands.

Every aggregate lives in this single domain so that an order's status change,
its payment audit row and its fulfillment work items commit in one unit of work.
"""

from protean.domain import Domain

from storefront.utils.logging import configure_logging

configure_logging()

# Domain Composition Root
storefront = Domain(name="storefront")
