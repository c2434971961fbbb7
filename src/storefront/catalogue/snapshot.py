"""Read-only view of the catalogue used by pricing and fulfillment.

Each call reads the repositories afresh; no prices or discount states are
cached between calls.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.catalogue.discount import DiscountCode, normalize_code
from storefront.catalogue.package import StorePackage
from storefront.shared.money import to_decimal


@dataclass(frozen=True)
class PackageSnapshot:
    id: str
    name: str
    price: Decimal
    sale_price: Decimal | None
    command_template: str | None
    is_active: bool = True

    @property
    def effective_price(self) -> Decimal:
        return self.sale_price if self.sale_price is not None else self.price

    @property
    def has_command_template(self) -> bool:
        return bool(self.command_template and self.command_template.strip())

    @classmethod
    def from_package(cls, package: StorePackage) -> "PackageSnapshot":
        return cls(
            id=str(package.id),
            name=package.name,
            price=to_decimal(package.price),
            sale_price=to_decimal(package.sale_price) if package.sale_price is not None else None,
            command_template=package.command_template,
            is_active=bool(package.is_active),
        )


class DiscountLookupStatus(Enum):
    FOUND = "Found"
    NOT_FOUND = "Not_Found"
    INACTIVE = "Inactive"


@dataclass(frozen=True)
class DiscountLookup:
    status: DiscountLookupStatus
    code: str
    discount: DiscountCode | None = None


class CatalogSnapshot:
    """Catalogue queries by package-id set and by discount code."""

    def packages_by_ids(self, package_ids, include_inactive: bool = False) -> dict[str, PackageSnapshot]:
        """Return snapshots keyed by id. Ids that do not resolve are absent from the result."""
        repo = current_domain.repository_for(StorePackage)
        found = {}
        for package_id in dict.fromkeys(str(pid) for pid in package_ids):
            try:
                package = repo.get(package_id)
            except ObjectNotFoundError:
                continue
            if not package.is_active and not include_inactive:
                continue
            found[package_id] = PackageSnapshot.from_package(package)
        return found

    def lookup_discount(self, code: str) -> DiscountLookup:
        normalized = normalize_code(code)
        if not normalized:
            return DiscountLookup(status=DiscountLookupStatus.NOT_FOUND, code=normalized)

        results = current_domain.repository_for(DiscountCode)._dao.query.filter(code=normalized).all().items
        if not results:
            return DiscountLookup(status=DiscountLookupStatus.NOT_FOUND, code=normalized)

        discount = results[0]
        if not discount.is_active:
            return DiscountLookup(status=DiscountLookupStatus.INACTIVE, code=normalized, discount=discount)
        return DiscountLookup(status=DiscountLookupStatus.FOUND, code=normalized, discount=discount)
