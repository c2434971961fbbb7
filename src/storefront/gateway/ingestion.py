"""Webhook ingestion: authenticate, normalize, hand off to the coordinator.

`ingest()` never raises for payloads it cannot use. Gateways send many event
types this store does not care about and retry anything that is not a 2xx,
so unrecognized types are recorded as `Ignored_Unrecognized` and payloads
without an event id are logged and dropped. Only an unknown provider, a bad
signature or a failure to persist escape as exceptions.
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass

import structlog

from storefront.errors import InvalidSignatureError
from storefront.gateway import get_adapter
from storefront.payment.event_log import EventOutcome
from storefront.payment.lifecycle import process_gateway_event

logger = structlog.get_logger(__name__)

UNPARSEABLE = "Ignored_Unparseable"


@dataclass(frozen=True)
class IngestionResult:
    recorded: bool
    outcome: str


def _decode(payload, raw_body: bytes | None) -> dict | None:
    if payload is None and raw_body is not None:
        try:
            payload = json.loads(raw_body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None
    return payload if isinstance(payload, dict) else None


def ingest(
    provider: str,
    payload: dict | None = None,
    raw_body: bytes | None = None,
    headers: Mapping[str, str] | None = None,
) -> IngestionResult:
    """Process one webhook delivery from `provider`.

    The signature is checked when `headers` are supplied; in-process callers
    that already trust the payload pass none. `payload` may be omitted when
    `raw_body` holds the JSON document.
    """
    adapter = get_adapter(provider)

    if headers is not None and not adapter.verify_signature(raw_body or b"", headers):
        logger.warning("Webhook signature rejected", provider=adapter.provider)
        raise InvalidSignatureError(f"Invalid {adapter.provider} webhook signature", provider=adapter.provider)

    document = _decode(payload, raw_body)
    event = adapter.normalize(document) if document is not None else None
    if event is None:
        logger.warning("Unparseable webhook payload dropped", provider=adapter.provider, outcome=UNPARSEABLE)
        return IngestionResult(recorded=False, outcome=UNPARSEABLE)

    outcome = process_gateway_event(event)
    return IngestionResult(recorded=outcome != EventOutcome.DUPLICATE, outcome=outcome.value)
