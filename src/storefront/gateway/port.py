"""Webhook adapter port (abstract interface).

Each payment provider gets one adapter. An adapter authenticates the raw
delivery and maps the provider's payload onto `NormalizedEvent`; it never
touches orders. Everything downstream of `normalize()` is provider-agnostic.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping

from storefront.payment.normalized import NormalizedEvent


def header(headers: Mapping[str, str] | None, name: str) -> str | None:
    """Case-insensitive header lookup over a plain mapping."""
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def dig(payload, *path):
    """Walk nested dicts and lists, returning None at the first missing step."""
    current = payload
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or len(current) <= step:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[step] if isinstance(step, int) else current.get(step)
        if current is None:
            return None
    return current


class WebhookAdapter(ABC):
    """Abstract inbound webhook interface."""

    provider: str = ""

    @abstractmethod
    def verify_signature(self, raw_body: bytes, headers: Mapping[str, str]) -> bool:
        """Verify that a delivery is authentically from the provider."""
        ...

    @abstractmethod
    def normalize(self, payload: dict) -> NormalizedEvent | None:
        """Map a provider payload to a `NormalizedEvent`.

        Returns None when the payload cannot be identified at all (no event
        id). Unrecognized event types still normalize, with `outcome=None`.
        """
        ...
