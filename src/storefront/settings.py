"""Runtime settings read from the environment.

`PROTEAN_ENV` picks the domain.toml overlay; everything below is specific to
the storefront and has a safe default for local development.
"""

import os

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_ORDER_NUMBER_ATTEMPTS = 5
DEFAULT_STRIPE_TOLERANCE = 300


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def environment() -> str:
    return os.environ.get("PROTEAN_ENV", "development").lower()


def is_production() -> bool:
    return environment() == "production"


def fulfillment_max_attempts() -> int:
    """Attempt ceiling stamped on newly generated work items."""
    return max(1, _int_env("FULFILLMENT_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS))


def order_number_attempts() -> int:
    return max(1, _int_env("ORDER_NUMBER_ATTEMPTS", DEFAULT_ORDER_NUMBER_ATTEMPTS))


def stripe_webhook_secret() -> str | None:
    return os.environ.get("STRIPE_WEBHOOK_SECRET") or None


def stripe_webhook_tolerance() -> int:
    return _int_env("STRIPE_WEBHOOK_TOLERANCE", DEFAULT_STRIPE_TOLERANCE)


def paypal_webhook_token() -> str | None:
    return os.environ.get("PAYPAL_WEBHOOK_TOKEN") or None
