"""Webhook adapter registry.

Provides get_adapter() / register_adapter() / reset_adapters():
- StripeAdapter and PayPalAdapter, configured from the environment
- FakeAdapter for development and testing (not registered in production)
"""

from storefront import settings
from storefront.errors import UnknownProviderError
from storefront.gateway.fake_adapter import FakeAdapter
from storefront.gateway.paypal_adapter import PayPalAdapter
from storefront.gateway.port import WebhookAdapter
from storefront.gateway.stripe_adapter import StripeAdapter

_adapters: dict[str, WebhookAdapter] | None = None


def _default_adapters() -> dict[str, WebhookAdapter]:
    adapters: list[WebhookAdapter] = [
        StripeAdapter(
            webhook_secret=settings.stripe_webhook_secret(),
            tolerance=settings.stripe_webhook_tolerance(),
        ),
        PayPalAdapter(webhook_token=settings.paypal_webhook_token()),
    ]
    if not settings.is_production():
        adapters.append(FakeAdapter())
    return {adapter.provider: adapter for adapter in adapters}


def get_adapter(provider: str) -> WebhookAdapter:
    """Return the adapter for `provider`, building the defaults on first use."""
    global _adapters
    if _adapters is None:
        _adapters = _default_adapters()
    try:
        return _adapters[provider.lower()]
    except KeyError:
        raise UnknownProviderError(f"Unknown payment provider: {provider}", provider=provider) from None


def register_adapter(adapter: WebhookAdapter) -> None:
    """Install or replace the adapter for `adapter.provider` (useful for tests)."""
    global _adapters
    if _adapters is None:
        _adapters = _default_adapters()
    _adapters[adapter.provider] = adapter


def reset_adapters() -> None:
    """Drop registered adapters; the next lookup rebuilds them from the environment."""
    global _adapters
    _adapters = None
