"""Pricing engine — the authoritative price of a candidate order.

`quote()` is a pure function of its inputs and the catalogue state at call
time: it reads packages and the discount code, computes in cent-quantized
`Decimal`, and writes nothing. Calling it twice against the same catalogue
returns the same totals.

    subtotal        = Σ round(effective unit price × quantity)
    discount_amount = round(subtotal × pct / 100)      percentage codes
                    = min(value, subtotal)             fixed-amount codes
    final_amount    = max(0, subtotal − discount_amount − gift_card_amount)

Gift cards are not supported; `gift_card_amount` is always zero.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

from storefront.catalogue.discount import DiscountCode, DiscountType, DiscountValidity, normalize_code
from storefront.catalogue.snapshot import CatalogSnapshot, DiscountLookupStatus
from storefront.errors import PricingError, PricingErrorKind
from storefront.shared.money import CENT, ZERO, to_cents, to_decimal


class DiscountStatus:
    NONE = "none"
    APPLIED = "applied"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    NOT_STARTED = "not_started"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


_VALIDITY_STATUS = {
    DiscountValidity.VALID: DiscountStatus.APPLIED,
    DiscountValidity.INACTIVE: DiscountStatus.INACTIVE,
    DiscountValidity.NOT_STARTED: DiscountStatus.NOT_STARTED,
    DiscountValidity.EXPIRED: DiscountStatus.EXPIRED,
    DiscountValidity.EXHAUSTED: DiscountStatus.EXHAUSTED,
}


@dataclass(frozen=True)
class CartLine:
    package_id: str
    quantity: int


@dataclass(frozen=True)
class QuoteLine:
    package_id: str
    package_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


@dataclass(frozen=True)
class Quote:
    subtotal: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    gift_card_amount: Decimal = ZERO
    discount_code: str | None = None
    discount_status: str = DiscountStatus.NONE
    lines: tuple[QuoteLine, ...] = field(default_factory=tuple)

    @property
    def discount_applied(self) -> bool:
        return self.discount_status == DiscountStatus.APPLIED

    @property
    def subtotal_cents(self) -> int:
        return to_cents(self.subtotal)

    @property
    def discount_cents(self) -> int:
        return to_cents(self.discount_amount)

    @property
    def final_cents(self) -> int:
        return to_cents(self.final_amount)


def _cart_lines(items) -> list[CartLine]:
    lines = []
    for item in items:
        if isinstance(item, CartLine):
            line = item
        elif isinstance(item, dict):
            line = CartLine(package_id=str(item["package_id"]), quantity=item["quantity"])
        else:
            package_id, quantity = item
            line = CartLine(package_id=str(package_id), quantity=quantity)

        if not isinstance(line.quantity, int) or isinstance(line.quantity, bool) or line.quantity < 1:
            raise PricingError(
                PricingErrorKind.INVALID_QUANTITY,
                f"Quantity for package {line.package_id} must be a whole number of at least 1",
                package_id=line.package_id,
            )
        lines.append(line)

    if not lines:
        raise PricingError(PricingErrorKind.NO_ITEMS, "An order needs at least one item")
    return lines


def discount_amount_for(discount: DiscountCode, subtotal: Decimal) -> Decimal:
    """Discount on `subtotal`, always within [0, subtotal]."""
    value = Decimal(repr(float(discount.value or 0)))
    if discount.discount_type == DiscountType.PERCENTAGE.value:
        amount = (subtotal * value / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP)
    else:
        amount = to_decimal(value)
    return max(ZERO, min(amount, subtotal))


def quote(
    items,
    discount_code: str | None = None,
    at: datetime | None = None,
    catalog: CatalogSnapshot | None = None,
) -> Quote:
    """Price `items` — (package_id, quantity) pairs, dicts or `CartLine`s.

    Raises `PricingError` when any package id does not resolve; no partial
    totals are returned. A discount code that does not apply leaves the
    totals undiscounted and reports why through `discount_status`.
    """
    catalog = catalog or CatalogSnapshot()
    at = at or datetime.now(UTC)
    lines = _cart_lines(items)

    packages = catalog.packages_by_ids([line.package_id for line in lines])
    missing = [line.package_id for line in lines if line.package_id not in packages]
    if missing:
        raise PricingError(
            PricingErrorKind.UNKNOWN_PACKAGE,
            f"Unknown package: {', '.join(missing)}",
            package_ids=missing,
        )

    quote_lines = []
    subtotal = ZERO
    for line in lines:
        package = packages[line.package_id]
        unit_price = package.effective_price
        line_total = (unit_price * line.quantity).quantize(CENT, rounding=ROUND_HALF_UP)
        subtotal += line_total
        quote_lines.append(
            QuoteLine(
                package_id=line.package_id,
                package_name=package.name,
                quantity=line.quantity,
                unit_price=unit_price,
                total_price=line_total,
            )
        )

    discount_amount = ZERO
    code = normalize_code(discount_code) or None
    status = DiscountStatus.NONE
    if code:
        lookup = catalog.lookup_discount(code)
        if lookup.status == DiscountLookupStatus.NOT_FOUND:
            status = DiscountStatus.NOT_FOUND
        elif lookup.status == DiscountLookupStatus.INACTIVE:
            status = DiscountStatus.INACTIVE
        else:
            status = _VALIDITY_STATUS[lookup.discount.validity_at(at)]
            if status == DiscountStatus.APPLIED:
                discount_amount = discount_amount_for(lookup.discount, subtotal)

    gift_card_amount = ZERO
    final_amount = max(ZERO, subtotal - discount_amount - gift_card_amount)

    return Quote(
        subtotal=subtotal,
        discount_amount=discount_amount,
        final_amount=final_amount,
        gift_card_amount=gift_card_amount,
        discount_code=code,
        discount_status=status,
        lines=tuple(quote_lines),
    )
