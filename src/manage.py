"""Craftstore database management CLI.

Creates and drops the storefront schema, and seeds a small demo catalogue
for local development.

Usage:
    python src/manage.py setup-db    # Create all tables
    python src/manage.py drop-db     # Drop all tables
    python src/manage.py seed-demo   # Add demo packages, a discount code and a player
"""

import argparse
import sys
from datetime import UTC, datetime, timedelta

DEMO_PACKAGES = [
    {
        "name": "VIP Rank",
        "price": 10.00,
        "sale_price": 8.00,
        "command_template": "lp user {username} parent add vip",
    },
    {
        "name": "Diamond Kit",
        "price": 4.99,
        "command_template": "give {username} minecraft:diamond {quantity}",
    },
    {
        "name": "Supporter Badge",
        "price": 2.50,
        "command_template": None,
    },
]


def setup_database():
    """Create database schema for the storefront domain."""
    from storefront.domain import storefront
    from storefront.utils.db import setup_db

    print("Initializing storefront domain...")
    storefront.init()
    print("Creating storefront database schema...")
    setup_db(storefront)
    print("Done.")


def drop_database():
    """Drop database schema for the storefront domain."""
    from storefront.domain import storefront
    from storefront.utils.db import drop_db

    print("Initializing storefront domain...")
    storefront.init()
    print("Dropping storefront database schema...")
    drop_db(storefront)
    print("Done.")


def seed_demo(username: str):
    """Add a demo catalogue, a `WELCOME10` code and one player profile."""
    from storefront.catalogue.discount import DiscountCode, DiscountType
    from storefront.catalogue.package import StorePackage
    from storefront.domain import storefront
    from storefront.player.profile import PlayerProfile

    storefront.init()
    with storefront.domain_context():
        package_repo = storefront.repository_for(StorePackage)
        for data in DEMO_PACKAGES:
            package = StorePackage(**data)
            package_repo.add(package)
            print(f"  package {package.name}: {package.id}")

        now = datetime.now(UTC)
        storefront.repository_for(DiscountCode).add(
            DiscountCode.create(
                code="welcome10",
                discount_type=DiscountType.PERCENTAGE.value,
                value=10,
                starts_at=now - timedelta(days=1),
                expires_at=now + timedelta(days=30),
                max_uses=100,
            )
        )
        print("  discount code WELCOME10")

        profile = PlayerProfile(user_id="demo-user", username=username)
        storefront.repository_for(PlayerProfile).add(profile)
        print(f"  player demo-user -> {username}")

    print("Done.")


def main():
    parser = argparse.ArgumentParser(description="Craftstore database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    seed_parser = subparsers.add_parser("seed-demo", help="Seed demo catalogue data")
    seed_parser.add_argument("--username", default="Steve", help="In-game username for the demo player")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "seed-demo":
        seed_demo(args.username)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
