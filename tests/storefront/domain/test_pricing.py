"""Tests for the pricing engine: totals, discounts and failure modes."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from storefront.catalogue.discount import DiscountCode
from storefront.catalogue.snapshot import DiscountLookup, DiscountLookupStatus, PackageSnapshot
from storefront.errors import PricingError, PricingErrorKind
from storefront.order.pricing import CartLine, DiscountStatus, discount_amount_for, quote


class FakeCatalog:
    """In-memory stand-in for `CatalogSnapshot`."""

    def __init__(self, packages=(), discounts=()):
        self.packages = {package.id: package for package in packages}
        self.discounts = {discount.code: discount for discount in discounts}
        self.package_reads = 0

    def packages_by_ids(self, package_ids, include_inactive=False):
        self.package_reads += 1
        return {
            pid: self.packages[pid]
            for pid in package_ids
            if pid in self.packages and (include_inactive or self.packages[pid].is_active)
        }

    def lookup_discount(self, code):
        discount = self.discounts.get(code)
        if discount is None:
            return DiscountLookup(status=DiscountLookupStatus.NOT_FOUND, code=code)
        if not discount.is_active:
            return DiscountLookup(status=DiscountLookupStatus.INACTIVE, code=code, discount=discount)
        return DiscountLookup(status=DiscountLookupStatus.FOUND, code=code, discount=discount)


def _package(pid="pkg-p", price="10.00", sale_price="8.00", template="lp user {username} parent add vip", **kw):
    return PackageSnapshot(
        id=pid,
        name=kw.pop("name", "VIP Rank"),
        price=Decimal(price),
        sale_price=Decimal(sale_price) if sale_price is not None else None,
        command_template=template,
        **kw,
    )


def _discount(code="SAVE10", discount_type="Percentage", value=10, **kwargs):
    return DiscountCode.create(code=code, discount_type=discount_type, value=value, **kwargs)


class TestSubtotal:
    def test_sale_price_is_used_when_present(self):
        catalog = FakeCatalog([_package()])
        result = quote([("pkg-p", 2)], catalog=catalog)
        assert result.subtotal == Decimal("16.00")
        assert result.final_amount == Decimal("16.00")
        assert result.discount_amount == Decimal("0.00")

    def test_base_price_when_no_sale_price(self):
        catalog = FakeCatalog([_package(sale_price=None)])
        result = quote([("pkg-p", 3)], catalog=catalog)
        assert result.subtotal == Decimal("30.00")

    def test_zero_sale_price_makes_package_free(self):
        catalog = FakeCatalog([_package(sale_price="0.00")])
        result = quote([("pkg-p", 1)], catalog=catalog)
        assert result.subtotal == Decimal("0.00")
        assert result.final_amount == Decimal("0.00")

    def test_lines_are_summed_in_cents(self):
        catalog = FakeCatalog(
            [
                _package("pkg-a", price="0.10", sale_price=None),
                _package("pkg-b", price="0.20", sale_price=None),
            ]
        )
        result = quote([("pkg-a", 1), ("pkg-b", 1)], catalog=catalog)
        assert result.subtotal == Decimal("0.30")
        assert result.subtotal_cents == 30

    def test_quote_lines_capture_unit_prices(self):
        catalog = FakeCatalog([_package()])
        result = quote([{"package_id": "pkg-p", "quantity": 2}], catalog=catalog)
        assert len(result.lines) == 1
        line = result.lines[0]
        assert line.unit_price == Decimal("8.00")
        assert line.total_price == Decimal("16.00")
        assert line.package_name == "VIP Rank"

    def test_accepts_cart_lines(self):
        catalog = FakeCatalog([_package()])
        result = quote([CartLine(package_id="pkg-p", quantity=1)], catalog=catalog)
        assert result.subtotal == Decimal("8.00")

    def test_gift_card_amount_is_zero(self):
        catalog = FakeCatalog([_package()])
        assert quote([("pkg-p", 1)], catalog=catalog).gift_card_amount == Decimal("0.00")


class TestPercentageDiscount:
    def test_example_scenario(self):
        catalog = FakeCatalog([_package()], [_discount()])
        result = quote([("pkg-p", 2)], discount_code="SAVE10", catalog=catalog)
        assert result.subtotal == Decimal("16.00")
        assert result.discount_amount == Decimal("1.60")
        assert result.final_amount == Decimal("14.40")
        assert result.discount_status == DiscountStatus.APPLIED
        assert result.discount_applied is True

    def test_code_lookup_is_case_insensitive(self):
        catalog = FakeCatalog([_package()], [_discount()])
        result = quote([("pkg-p", 2)], discount_code="  save10 ", catalog=catalog)
        assert result.discount_code == "SAVE10"
        assert result.discount_amount == Decimal("1.60")

    def test_percentage_rounds_half_up_to_cents(self):
        catalog = FakeCatalog([_package(price="0.05", sale_price=None)], [_discount(value=50)])
        result = quote([("pkg-p", 1)], discount_code="SAVE10", catalog=catalog)
        assert result.discount_amount == Decimal("0.03")
        assert result.final_amount == Decimal("0.02")

    def test_hundred_percent_makes_order_free(self):
        catalog = FakeCatalog([_package()], [_discount(value=100)])
        result = quote([("pkg-p", 2)], discount_code="SAVE10", catalog=catalog)
        assert result.final_amount == Decimal("0.00")


class TestFixedDiscount:
    def test_fixed_amount_is_subtracted(self):
        catalog = FakeCatalog([_package()], [_discount(code="FIVE", discount_type="Fixed_Amount", value=5)])
        result = quote([("pkg-p", 2)], discount_code="FIVE", catalog=catalog)
        assert result.discount_amount == Decimal("5.00")
        assert result.final_amount == Decimal("11.00")

    def test_fixed_amount_never_exceeds_subtotal(self):
        catalog = FakeCatalog([_package()], [_discount(code="BIG", discount_type="Fixed_Amount", value=50)])
        result = quote([("pkg-p", 1)], discount_code="BIG", catalog=catalog)
        assert result.discount_amount == Decimal("8.00")
        assert result.final_amount == Decimal("0.00")


class TestDiscountNotApplied:
    def test_unknown_code_is_reported_not_raised(self):
        catalog = FakeCatalog([_package()])
        result = quote([("pkg-p", 2)], discount_code="NOPE", catalog=catalog)
        assert result.discount_status == DiscountStatus.NOT_FOUND
        assert result.discount_amount == Decimal("0.00")
        assert result.final_amount == Decimal("16.00")

    def test_inactive_code(self):
        catalog = FakeCatalog([_package()], [_discount(is_active=False)])
        result = quote([("pkg-p", 1)], discount_code="SAVE10", catalog=catalog)
        assert result.discount_status == DiscountStatus.INACTIVE

    def test_expired_code(self):
        now = datetime.now(UTC)
        discount = _discount(starts_at=now - timedelta(days=2), expires_at=now - timedelta(days=1))
        result = quote([("pkg-p", 1)], discount_code="SAVE10", catalog=FakeCatalog([_package()], [discount]))
        assert result.discount_status == DiscountStatus.EXPIRED
        assert result.discount_amount == Decimal("0.00")

    def test_not_started_code(self):
        now = datetime.now(UTC)
        discount = _discount(starts_at=now + timedelta(days=1))
        result = quote([("pkg-p", 1)], discount_code="SAVE10", catalog=FakeCatalog([_package()], [discount]))
        assert result.discount_status == DiscountStatus.NOT_STARTED

    def test_exhausted_code(self):
        discount = _discount(max_uses=1)
        discount.redeem()
        result = quote([("pkg-p", 1)], discount_code="SAVE10", catalog=FakeCatalog([_package()], [discount]))
        assert result.discount_status == DiscountStatus.EXHAUSTED

    def test_validity_is_checked_at_quote_time(self):
        now = datetime.now(UTC)
        discount = _discount(expires_at=now + timedelta(hours=1))
        catalog = FakeCatalog([_package()], [discount])
        assert quote([("pkg-p", 1)], discount_code="SAVE10", at=now, catalog=catalog).discount_applied
        later = now + timedelta(hours=2)
        assert not quote([("pkg-p", 1)], discount_code="SAVE10", at=later, catalog=catalog).discount_applied

    def test_blank_code_means_no_discount(self):
        catalog = FakeCatalog([_package()])
        result = quote([("pkg-p", 1)], discount_code="   ", catalog=catalog)
        assert result.discount_status == DiscountStatus.NONE
        assert result.discount_code is None


class TestPricingErrors:
    def test_unknown_package_aborts_whole_quote(self):
        catalog = FakeCatalog([_package()])
        with pytest.raises(PricingError) as exc:
            quote([("pkg-p", 1), ("pkg-missing", 1)], catalog=catalog)
        assert exc.value.kind == PricingErrorKind.UNKNOWN_PACKAGE
        assert exc.value.context["package_ids"] == ["pkg-missing"]

    def test_inactive_package_cannot_be_priced(self):
        catalog = FakeCatalog([_package(is_active=False)])
        with pytest.raises(PricingError) as exc:
            quote([("pkg-p", 1)], catalog=catalog)
        assert exc.value.kind == PricingErrorKind.UNKNOWN_PACKAGE

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
    def test_invalid_quantity(self, quantity):
        catalog = FakeCatalog([_package()])
        with pytest.raises(PricingError) as exc:
            quote([("pkg-p", quantity)], catalog=catalog)
        assert exc.value.kind == PricingErrorKind.INVALID_QUANTITY

    def test_empty_cart(self):
        with pytest.raises(PricingError) as exc:
            quote([], catalog=FakeCatalog())
        assert exc.value.kind == PricingErrorKind.NO_ITEMS


class TestPricingProperties:
    def test_quote_is_deterministic(self):
        catalog = FakeCatalog([_package(), _package("pkg-k", price="4.99", sale_price=None)], [_discount()])
        items = [("pkg-p", 2), ("pkg-k", 3)]
        first = quote(items, discount_code="SAVE10", catalog=catalog)
        second = quote(items, discount_code="SAVE10", catalog=catalog)
        assert first == second

    def test_catalogue_is_read_on_every_call(self):
        catalog = FakeCatalog([_package()])
        quote([("pkg-p", 1)], catalog=catalog)
        quote([("pkg-p", 1)], catalog=catalog)
        assert catalog.package_reads == 2

    @pytest.mark.parametrize(
        "discount_type,value",
        [("Percentage", 0), ("Percentage", 33), ("Percentage", 100), ("Fixed_Amount", 0.01), ("Fixed_Amount", 999)],
    )
    @pytest.mark.parametrize("subtotal", ["0.00", "0.01", "7.77", "1000.00"])
    def test_discount_stays_within_subtotal(self, discount_type, value, subtotal):
        amount = discount_amount_for(_discount(discount_type=discount_type, value=value), Decimal(subtotal))
        assert Decimal("0.00") <= amount <= Decimal(subtotal)
