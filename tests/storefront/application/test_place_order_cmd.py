"""Application tests for checkout (PlaceOrder)."""

import json

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from storefront.catalogue.discount import DiscountCode
from storefront.catalogue.package import StorePackage
from storefront.errors import PersistenceError, PricingError, PricingErrorKind
from storefront.order import checkout
from storefront.order.checkout import PlaceOrder, place_order
from storefront.order.order import Order, OrderStatus


def _command(items, **overrides):
    defaults = {
        "user_id": "user-001",
        "items": json.dumps(items),
        "payment_provider": "stripe",
    }
    defaults.update(overrides)
    return PlaceOrder(**defaults)


class TestPlaceOrder:
    def test_creates_pending_order(self, vip_package):
        order_id = place_order(_command([{"package_id": vip_package.id, "quantity": 2}]))
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.PENDING.value
        assert order.subtotal_cents == 1600
        assert order.final_cents == 1600
        assert order.order_number.startswith("ORD-")

    def test_applies_discount(self, vip_package, save10):
        order_id = place_order(_command([{"package_id": vip_package.id, "quantity": 2}], discount_code="save10"))
        order = current_domain.repository_for(Order).get(order_id)
        assert order.discount_cents == 160
        assert order.final_cents == 1440
        assert order.discount_code == "SAVE10"

    def test_discount_is_not_redeemed_at_checkout(self, vip_package, save10, make_order):
        make_order([(vip_package.id, 1)], discount_code="SAVE10")
        assert current_domain.repository_for(DiscountCode).get(save10.id).uses_count == 0

    def test_stores_billing_contact(self, vip_package):
        order_id = place_order(
            _command(
                [{"package_id": vip_package.id, "quantity": 1}],
                billing=json.dumps({"email": "steve@example.com", "name": "Steve"}),
            )
        )
        order = current_domain.repository_for(Order).get(order_id)
        assert order.billing.email == "steve@example.com"

    def test_unit_price_is_frozen_at_placement(self, vip_package, make_order):
        order = make_order([(vip_package.id, 1)])

        repo = current_domain.repository_for(StorePackage)
        package = repo.get(vip_package.id)
        package.sale_price = 1.00
        repo.add(package)

        reloaded = current_domain.repository_for(Order).get(order.id)
        assert reloaded.items[0].unit_price_cents == 800


class TestPlaceOrderRejections:
    def test_unknown_package(self, vip_package):
        with pytest.raises(PricingError) as exc:
            place_order(_command([{"package_id": "missing", "quantity": 1}]))
        assert exc.value.kind == PricingErrorKind.UNKNOWN_PACKAGE
        assert current_domain.repository_for(Order)._dao.query.all().items == []

    def test_unknown_discount_code(self, vip_package):
        with pytest.raises(PricingError) as exc:
            place_order(_command([{"package_id": vip_package.id, "quantity": 1}], discount_code="NOPE"))
        assert exc.value.kind == PricingErrorKind.DISCOUNT_NOT_FOUND

    def test_inactive_discount_code(self, vip_package, make_discount):
        make_discount(code="OLD", is_active=False)
        with pytest.raises(PricingError) as exc:
            place_order(_command([{"package_id": vip_package.id, "quantity": 1}], discount_code="OLD"))
        assert exc.value.kind == PricingErrorKind.DISCOUNT_NOT_APPLICABLE

    def test_unknown_payment_provider(self, vip_package):
        with pytest.raises(ValidationError):
            place_order(_command([{"package_id": vip_package.id, "quantity": 1}], payment_provider="bitcoin"))


class TestOrderNumberCollisions:
    def test_taken_number_is_regenerated(self, vip_package, make_order, monkeypatch):
        first = make_order([(vip_package.id, 1)])
        numbers = iter([first.order_number, "ORD-999999-NEWNUM"])
        monkeypatch.setattr(checkout, "generate_order_number", lambda: next(numbers))

        second = make_order([(vip_package.id, 1)])
        assert second.order_number == "ORD-999999-NEWNUM"

    def test_gives_up_after_configured_attempts(self, vip_package, make_order, monkeypatch):
        first = make_order([(vip_package.id, 1)])
        monkeypatch.setenv("ORDER_NUMBER_ATTEMPTS", "2")
        monkeypatch.setattr(checkout, "generate_order_number", lambda: first.order_number)

        with pytest.raises(PersistenceError):
            make_order([(vip_package.id, 1)])
