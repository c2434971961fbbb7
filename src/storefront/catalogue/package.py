"""StorePackage aggregate — a purchasable bundle in the game-server store.

Owned by the catalogue administration screens; the order pipeline only reads
it, through `storefront.catalogue.snapshot`. A sale price of 0.00 is a free
package, not a missing one.
"""

from protean.fields import Boolean, Float, String, Text

from storefront.domain import storefront


@storefront.aggregate
class StorePackage:
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    sale_price = Float(min_value=0.0)
    command_template = Text()
    is_active = Boolean(default=True)
