"""Storefront API package."""

from storefront.api.routes import (
    fulfillment_router,
    install_exception_handlers,
    store_router,
    webhook_router,
)

__all__ = ["store_router", "webhook_router", "fulfillment_router", "install_exception_handlers"]
