"""Domain models for stock, holds and fulfillment options."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class ReservationStatus(StrEnum):
    """Lifecycle states of an inventory hold."""

    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"
    RELEASED = "released"


@dataclass(frozen=True)
class Product:
    """Catalog product snapshot."""

    sku: str
    name: str
    category: str
    price: float
    description: str = ""
    attributes: dict[str, str] = field(default_factory=dict)
    complement_skus: list[str] = field(default_factory=list)


@dataclass
class StoreStock:
    """On-hand and held units of a sku at one store."""

    store_id: str
    qty: int
    location: tuple[float, float]
    reserved_qty: int = 0

    @property
    def available_qty(self) -> int:
        """Units that can still be held."""
        return max(self.qty - self.reserved_qty, 0)


@dataclass
class InventoryRecord:
    """Stock position of a sku across online and store channels."""

    sku: str
    online_qty: int
    stores: list[StoreStock]
    last_sync: datetime

    @property
    def reserved_qty(self) -> int:
        """Units held across all stores."""
        return sum(store.reserved_qty for store in self.stores)

    def store(self, store_id: str) -> StoreStock | None:
        """Return the stock entry for a store, if carried there."""
        for store in self.stores:
            if store.store_id == store_id:
                return store
        return None


@dataclass
class Reservation:
    """A time-bounded claim on store inventory."""

    reservation_id: str
    sku: str
    store_id: str
    user_id: str
    session_id: str
    qty: int
    hold_until: datetime
    created_at: datetime
    status: ReservationStatus = ReservationStatus.ACTIVE

    @property
    def is_terminal(self) -> bool:
        """Return true once the hold can no longer change."""
        return self.status != ReservationStatus.ACTIVE


@dataclass(frozen=True)
class FulfillmentOption:
    """One way a requested quantity can be fulfilled."""

    type: str
    qty_available: int | None = None
    estimated_days: int | None = None
    store_id: str | None = None
    location: tuple[float, float] | None = None
    distance_km: float | None = None
    time_slots: tuple[str, ...] = ()
    notify: bool = False
