"""Domain models for channel sessions and carts."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class Channel(StrEnum):
    """Customer-facing channels a session can live on."""

    WEB = "web"
    MOBILE = "mobile"
    MESSAGING = "messaging"
    KIOSK = "kiosk"
    VOICE = "voice"
    POS = "pos"


@dataclass
class CartItem:
    """A cart line; one per sku per session."""

    sku: str
    qty: int
    unit_price: float
    loyalty_applied: bool = False


@dataclass
class SessionContext:
    """Mutable shopping context carried by a session."""

    cart_items: list[CartItem] = field(default_factory=list)
    browsing_history: list[str] = field(default_factory=list)
    memory: dict[str, object] = field(default_factory=dict)

    def find_item(self, sku: str) -> CartItem | None:
        """Return the cart line for a sku, if present."""
        for item in self.cart_items:
            if item.sku == sku:
                return item
        return None


@dataclass
class Session:
    """A bounded-lifetime shopping context tied to one channel."""

    session_id: str
    channel: Channel
    created_at: datetime
    last_activity: datetime
    ttl_seconds: int
    user_id: str | None = None
    store_id: str | None = None
    context: SessionContext = field(default_factory=SessionContext)
