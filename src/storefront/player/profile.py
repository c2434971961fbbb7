"""PlayerProfile aggregate — links a store account to its in-game username.

Maintained by the account screens; fulfillment only reads it. A username
that breaks the game's naming rule is treated as missing, because a command
addressed to it could never reach a player.
"""

import re

from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront

_USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,16}$")


def is_valid_username(username: str | None) -> bool:
    """3-16 letters, digits or underscores, not starting or ending with an underscore."""
    if not username:
        return False
    if username.startswith("_") or username.endswith("_"):
        return False
    return bool(_USERNAME_PATTERN.match(username))


@storefront.aggregate
class PlayerProfile:
    user_id = Identifier(required=True, unique=True)
    username = String(max_length=16)


def resolve_username(user_id: str) -> str | None:
    """The purchaser's in-game username, or None when it cannot be used."""
    profiles = current_domain.repository_for(PlayerProfile)._dao.query.filter(user_id=str(user_id)).all().items
    if not profiles:
        return None
    username = (profiles[0].username or "").strip()
    return username if is_valid_username(username) else None
