"""Human-readable order numbers: `ORD-<epoch-ms tail>-<base36 suffix>`.

The clock component keeps numbers roughly sortable for support lookups; the
random suffix makes collisions unlikely. Uniqueness is still enforced by the
`order_number` unique field, and a collision is retried with a new number.
"""

import secrets
import string
import time

ORDER_NUMBER_PREFIX = "ORD"
_BASE36 = string.digits + string.ascii_uppercase
_CLOCK_DIGITS = 6
_SUFFIX_LENGTH = 6


def generate_order_number(now_ms: int | None = None) -> str:
    clock = str(now_ms if now_ms is not None else time.time_ns() // 1_000_000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(_SUFFIX_LENGTH))
    return f"{ORDER_NUMBER_PREFIX}-{clock[-_CLOCK_DIGITS:].rjust(_CLOCK_DIGITS, '0')}-{suffix}"
