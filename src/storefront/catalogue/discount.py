"""DiscountCode aggregate and its validity rule.

A code is valid at time T when it is active, T falls inside [starts_at,
expires_at) for whichever bounds are set, and uses_count is below max_uses
when a cap is set. Validity is always evaluated against the caller's clock;
nothing about it is cached between a quote and a redemption.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from storefront.domain import storefront


class DiscountType(Enum):
    PERCENTAGE = "Percentage"
    FIXED_AMOUNT = "Fixed_Amount"


class DiscountValidity(Enum):
    VALID = "Valid"
    INACTIVE = "Inactive"
    NOT_STARTED = "Not_Started"
    EXPIRED = "Expired"
    EXHAUSTED = "Exhausted"


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def as_utc(value: datetime | None) -> datetime | None:
    """SQL backends may hand back naive timestamps; they are stored as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@storefront.aggregate
class DiscountCode:
    code = String(required=True, max_length=50, unique=True)
    discount_type = String(required=True, max_length=20, choices=DiscountType)
    value = Float(required=True, min_value=0.0)
    is_active = Boolean(default=True)
    starts_at = DateTime()
    expires_at = DateTime()
    max_uses = Integer(min_value=0)
    uses_count = Integer(default=0, min_value=0)

    @classmethod
    def create(
        cls,
        code: str,
        discount_type: str,
        value: float,
        is_active: bool = True,
        starts_at: datetime | None = None,
        expires_at: datetime | None = None,
        max_uses: int | None = None,
    ):
        normalized = normalize_code(code)
        if not normalized:
            raise ValidationError({"code": ["Discount code cannot be blank"]})
        if discount_type == DiscountType.PERCENTAGE.value and value > 100:
            raise ValidationError({"value": ["Percentage discounts cannot exceed 100"]})
        if starts_at and expires_at and as_utc(expires_at) <= as_utc(starts_at):
            raise ValidationError({"expires_at": ["Expiry must be after the start time"]})

        return cls(
            code=normalized,
            discount_type=discount_type,
            value=value,
            is_active=is_active,
            starts_at=starts_at,
            expires_at=expires_at,
            max_uses=max_uses,
            uses_count=0,
        )

    def validity_at(self, at: datetime | None = None) -> DiscountValidity:
        at = as_utc(at) or datetime.now(UTC)

        if not self.is_active:
            return DiscountValidity.INACTIVE
        if self.starts_at is not None and at < as_utc(self.starts_at):
            return DiscountValidity.NOT_STARTED
        if self.expires_at is not None and at >= as_utc(self.expires_at):
            return DiscountValidity.EXPIRED
        if self.max_uses is not None and (self.uses_count or 0) >= self.max_uses:
            return DiscountValidity.EXHAUSTED
        return DiscountValidity.VALID

    def is_valid_at(self, at: datetime | None = None) -> bool:
        return self.validity_at(at) == DiscountValidity.VALID

    def redeem(self) -> None:
        """Count one use of the code against its cap."""
        self.uses_count = (self.uses_count or 0) + 1
