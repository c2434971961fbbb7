import hashlib
import hmac
import time
from datetime import UTC, datetime, timedelta

import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    from protean import current_domain
    from storefront.gateway import reset_adapters

    with storefront_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()

    reset_adapters()


# ---------------------------------------------------------------------------
# Catalogue fixtures
# ---------------------------------------------------------------------------
def _add_package(name="VIP Rank", price=10.00, sale_price=None, command_template=None, is_active=True):
    from protean import current_domain
    from storefront.catalogue.package import StorePackage

    package = StorePackage(
        name=name,
        price=price,
        sale_price=sale_price,
        command_template=command_template,
        is_active=is_active,
    )
    current_domain.repository_for(StorePackage).add(package)
    return package


def _add_discount(code="SAVE10", discount_type="Percentage", value=10, **kwargs):
    from protean import current_domain
    from storefront.catalogue.discount import DiscountCode

    discount = DiscountCode.create(code=code, discount_type=discount_type, value=value, **kwargs)
    current_domain.repository_for(DiscountCode).add(discount)
    return discount


def _add_player(user_id="user-001", username="Steve"):
    from protean import current_domain
    from storefront.player.profile import PlayerProfile

    profile = PlayerProfile(user_id=user_id, username=username)
    current_domain.repository_for(PlayerProfile).add(profile)
    return profile


@pytest.fixture
def vip_package():
    """$10.00 rank on sale for $8.00, granted by one command."""
    return _add_package(
        name="VIP Rank",
        price=10.00,
        sale_price=8.00,
        command_template="lp user {username} parent add vip",
    )


@pytest.fixture
def kit_package():
    return _add_package(
        name="Diamond Kit",
        price=4.99,
        command_template="give {username} minecraft:diamond {quantity}",
    )


@pytest.fixture
def badge_package():
    """A cosmetic package with nothing to run in-game."""
    return _add_package(name="Supporter Badge", price=2.50)


@pytest.fixture
def save10():
    now = datetime.now(UTC)
    return _add_discount(
        code="SAVE10",
        discount_type="Percentage",
        value=10,
        starts_at=now - timedelta(days=1),
        expires_at=now + timedelta(days=1),
        max_uses=5,
    )


@pytest.fixture
def player():
    return _add_player()


# ---------------------------------------------------------------------------
# Order helpers
# ---------------------------------------------------------------------------
def _place(items, user_id="user-001", discount_code=None, payment_provider="fake"):
    """Place an order through checkout and return it."""
    import json

    from protean import current_domain
    from storefront.order.checkout import PlaceOrder, place_order
    from storefront.order.order import Order

    order_id = place_order(
        PlaceOrder(
            user_id=user_id,
            items=json.dumps([{"package_id": str(pid), "quantity": qty} for pid, qty in items]),
            payment_provider=payment_provider,
            discount_code=discount_code,
        )
    )
    return current_domain.repository_for(Order).get(order_id)


@pytest.fixture
def make_package():
    return _add_package


@pytest.fixture
def make_discount():
    return _add_discount


@pytest.fixture
def make_player():
    return _add_player


@pytest.fixture
def make_order():
    """Place an order through checkout: `make_order([(package_id, qty), ...])`."""
    return _place


# ---------------------------------------------------------------------------
# Gateway helpers
# ---------------------------------------------------------------------------
def _stripe_signature(secret, raw_body, timestamp=None):
    """`Stripe-Signature` header value as Stripe builds it for `raw_body`."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode() + raw_body
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture
def stripe_signature():
    return _stripe_signature
