"""Error taxonomy for the order lifecycle and fulfillment pipeline.

Two families live here. Errors that can never change outcome on redelivery
(`DuplicateEventError`, `OrphanedEventError`, `StaleTransitionError`) are
signals: the lifecycle coordinator records them on the payment audit row and
reports success to the gateway. Errors that may succeed on retry
(`PersistenceError`) propagate so the transport redelivers the webhook.
"""

from enum import Enum


class StorefrontError(Exception):
    """Base class for storefront errors."""

    def __init__(self, message: str = "", **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class PricingErrorKind(Enum):
    UNKNOWN_PACKAGE = "Unknown_Package"
    INVALID_QUANTITY = "Invalid_Quantity"
    NO_ITEMS = "No_Items"
    DISCOUNT_NOT_FOUND = "Discount_Not_Found"
    DISCOUNT_NOT_APPLICABLE = "Discount_Not_Applicable"


class PricingError(StorefrontError):
    """The cart cannot be priced as submitted. Re-quote after fixing the input."""

    def __init__(self, kind: PricingErrorKind, message: str, **context):
        super().__init__(message, **context)
        self.kind = kind


class DuplicateEventError(StorefrontError):
    """A gateway event with the same idempotency key was already recorded."""


class OrphanedEventError(StorefrontError):
    """The event references an order that does not exist."""


class StaleTransitionError(StorefrontError):
    """The order is terminal and the event asks for a transition it does not allow."""


class PersistenceError(StorefrontError):
    """Storing the outcome of an event failed. Safe to redeliver."""


class UnresolvedIdentityError(StorefrontError):
    """The purchaser has no usable in-game username.

    Never raised out of fulfillment generation; it becomes the order's
    `fulfillment_issue` flag instead.
    """


class UnknownProviderError(StorefrontError):
    """No webhook adapter is registered for the provider."""


class InvalidSignatureError(StorefrontError):
    """The webhook signature did not verify against the provider secret."""
