"""Inventory availability and time-bounded store holds."""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from retail_coordinator.domain.inventory import (
    FulfillmentOption,
    InventoryRecord,
    Reservation,
    ReservationStatus,
)
from retail_coordinator.errors import NotFoundError
from retail_coordinator.scheduling import ScheduledTask
from retail_coordinator.services.catalog import CatalogRepository
from retail_coordinator.services.event_bus import EventBus

PICKUP_TIME_SLOTS = ("09:00", "12:00", "15:00", "18:00")
SHIP_ESTIMATED_DAYS = 3
BACKORDER_ESTIMATED_DAYS = 7
_EARTH_RADIUS_KM = 6371.0

_logger = logging.getLogger(__name__)


@dataclass
class ReservationService:
    """Places holds on store stock and releases them exactly once."""

    catalog: CatalogRepository
    event_bus: EventBus
    hold_seconds: float = 900
    _stock: dict[str, InventoryRecord] = field(default_factory=dict)
    _reservations: dict[str, Reservation] = field(default_factory=dict)
    _timers: dict[str, ScheduledTask] = field(default_factory=dict)

    async def check_availability(
        self,
        sku: str,
        qty: int,
        radius_km: float = 25.0,
        origin: tuple[float, float] | None = None,
    ) -> list[FulfillmentOption]:
        """List fulfillment options in priority order; empty means unavailable.

        Stores are only filtered by ``radius_km`` when an ``origin`` is given.
        """
        inventory = self._inventory(sku)
        if inventory is None:
            raise NotFoundError(f"Product {sku} not found")

        options: list[FulfillmentOption] = []
        if inventory.online_qty >= qty:
            options.append(
                FulfillmentOption(
                    type="ship_to_home",
                    qty_available=inventory.online_qty,
                    estimated_days=SHIP_ESTIMATED_DAYS,
                )
            )
        for store in inventory.stores:
            if store.available_qty < qty:
                continue
            distance = None
            if origin is not None:
                distance = round(_distance_km(origin, store.location), 1)
                if distance > radius_km:
                    continue
            options.append(
                FulfillmentOption(
                    type="reserve_in_store",
                    store_id=store.store_id,
                    location=store.location,
                    distance_km=distance,
                    qty_available=store.available_qty,
                    time_slots=PICKUP_TIME_SLOTS,
                )
            )
        if not options and inventory.reserved_qty > 0:
            options.append(
                FulfillmentOption(
                    type="backorder",
                    estimated_days=BACKORDER_ESTIMATED_DAYS,
                    notify=True,
                )
            )

        await self.event_bus.publish(
            "inventory.checked",
            {"sku": sku, "qty_requested": qty, "options_found": len(options)},
        )
        return options

    async def reserve(  # noqa: PLR0913
        self,
        sku: str,
        store_id: str,
        user_id: str,
        session_id: str,
        qty: int,
        hold_seconds: float | None = None,
    ) -> Reservation | None:
        """Hold units at a store; return None when the store lacks stock."""
        if qty <= 0:
            raise ValueError("Quantity must be positive")
        inventory = self._inventory(sku)
        store = inventory.store(store_id) if inventory else None
        if store is None or store.available_qty < qty:
            await self.event_bus.publish(
                "inventory.reserve_failed",
                {"sku": sku, "store_id": store_id, "qty": qty},
            )
            return None

        duration = self.hold_seconds if hold_seconds is None else hold_seconds
        now = datetime.now(tz=UTC)
        reservation = Reservation(
            reservation_id=str(uuid4()),
            sku=sku,
            store_id=store_id,
            user_id=user_id,
            session_id=session_id,
            qty=qty,
            hold_until=now + timedelta(seconds=duration),
            created_at=now,
        )
        store.reserved_qty += qty
        self._reservations[reservation.reservation_id] = reservation
        self._timers[reservation.reservation_id] = ScheduledTask.start(
            duration,
            lambda: self._expire(reservation.reservation_id),
            name=f"hold:{reservation.reservation_id}",
        )
        await self.event_bus.publish(
            "inventory.reserved",
            {
                "reservation_id": reservation.reservation_id,
                "sku": sku,
                "store_id": store_id,
                "qty": qty,
                "hold_until": reservation.hold_until.isoformat(),
            },
        )
        return reservation

    async def release_reservation(self, reservation_id: str) -> bool:
        """Release a hold on request; False if it had already ended."""
        reservation = self._require(reservation_id)
        if self._settle(reservation_id, ReservationStatus.RELEASED) is None:
            return False
        await self.event_bus.publish(
            "inventory.reservation_released",
            {"reservation_id": reservation_id, "sku": reservation.sku},
        )
        return True

    async def complete_reservation(self, reservation_id: str) -> bool:
        """Convert a hold into a sale; False if it had already ended."""
        reservation = self._require(reservation_id)
        if self._settle(reservation_id, ReservationStatus.COMPLETED) is None:
            return False
        await self.event_bus.publish(
            "inventory.reservation_completed",
            {
                "reservation_id": reservation_id,
                "sku": reservation.sku,
                "store_id": reservation.store_id,
                "qty": reservation.qty,
            },
        )
        return True

    def get_reservation(self, reservation_id: str) -> Reservation | None:
        """Return a reservation by id, if known."""
        return self._reservations.get(reservation_id)

    def list_active_reservations(self) -> list[Reservation]:
        """Return every hold that is still active."""
        return [
            reservation
            for reservation in self._reservations.values()
            if reservation.status == ReservationStatus.ACTIVE
        ]

    def get_stock(self, sku: str) -> InventoryRecord | None:
        """Return the tracked stock position for a sku."""
        return self._inventory(sku)

    async def refresh_inventory(self, sku: str) -> InventoryRecord:
        """Reload on-hand quantities from the catalog, keeping held units.

        When a store now reports fewer units than are held there, its newest
        holds expire until the remaining holds fit.
        """
        fresh = self.catalog.get_inventory(sku)
        if fresh is None:
            raise NotFoundError(f"Product {sku} not found")
        current = self._stock.get(sku)
        stores = []
        for store in fresh.stores:
            tracked = current.store(store.store_id) if current else None
            held = tracked.reserved_qty if tracked else 0
            stores.append(replace(store, reserved_qty=held))
        record = InventoryRecord(
            sku=sku,
            online_qty=fresh.online_qty,
            stores=stores,
            last_sync=datetime.now(tz=UTC),
        )
        self._stock[sku] = record
        for store in record.stores:
            await self._expire_shortfall(sku, store.store_id)
        await self.event_bus.publish(
            "inventory.sync_completed",
            {"sku": sku, "timestamp": record.last_sync.isoformat()},
        )
        return record

    async def _expire(self, reservation_id: str) -> None:
        self._timers.pop(reservation_id, None)
        reservation = self._settle(reservation_id, ReservationStatus.EXPIRED)
        if reservation is None:
            return
        _logger.info("Reservation %s expired", reservation_id)
        await self._publish_expired(reservation, "hold_expired")

    async def _expire_shortfall(self, sku: str, store_id: str) -> None:
        """Expire the newest active holds until held units fit on-hand stock."""
        inventory = self._inventory(sku)
        store = inventory.store(store_id) if inventory else None
        if store is None:
            return
        newest_first = [
            reservation
            for reservation in reversed(self._reservations.values())
            if reservation.sku == sku
            and reservation.store_id == store_id
            and reservation.status == ReservationStatus.ACTIVE
        ]
        for reservation in newest_first:
            if store.reserved_qty <= store.qty:
                break
            if self._settle(reservation.reservation_id, ReservationStatus.EXPIRED) is None:
                continue
            _logger.warning(
                "Reservation %s expired: %s at %s has %s units on hand",
                reservation.reservation_id,
                sku,
                store_id,
                store.qty,
            )
            await self._publish_expired(reservation, "stock_shortfall")

    async def _publish_expired(self, reservation: Reservation, reason: str) -> None:
        await self.event_bus.publish(
            "inventory.reservation_expired",
            {
                "reservation_id": reservation.reservation_id,
                "sku": reservation.sku,
                "store_id": reservation.store_id,
                "qty": reservation.qty,
                "reason": reason,
            },
        )

    def _settle(
        self, reservation_id: str, status: ReservationStatus
    ) -> Reservation | None:
        """Move an active hold to a terminal status and undo its hold.

        Check and write happen with no suspension point in between, so only
        the first of expiry, release or completion has any effect.
        """
        reservation = self._reservations.get(reservation_id)
        if reservation is None or reservation.is_terminal:
            return None
        reservation.status = status
        inventory = self._inventory(reservation.sku)
        store = inventory.store(reservation.store_id) if inventory else None
        if store is not None:
            store.reserved_qty = max(store.reserved_qty - reservation.qty, 0)
            if status == ReservationStatus.COMPLETED:
                store.qty = max(store.qty - reservation.qty, 0)
        timer = self._timers.pop(reservation_id, None)
        if timer is not None:
            timer.cancel()
        return reservation

    def _require(self, reservation_id: str) -> Reservation:
        reservation = self._reservations.get(reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    def _inventory(self, sku: str) -> InventoryRecord | None:
        record = self._stock.get(sku)
        if record is None:
            loaded = self.catalog.get_inventory(sku)
            if loaded is None:
                return None
            record = InventoryRecord(
                sku=loaded.sku,
                online_qty=loaded.online_qty,
                stores=[replace(store) for store in loaded.stores],
                last_sync=loaded.last_sync,
            )
            self._stock[sku] = record
        return record


def _distance_km(origin: tuple[float, float], target: tuple[float, float]) -> float:
    """Great-circle distance between two (lat, lng) points."""
    lat1, lng1 = map(math.radians, origin)
    lat2, lng2 = map(math.radians, target)
    a = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lng2 - lng1) / 2) ** 2
    )
    return 2 * _EARTH_RADIUS_KM * math.asin(math.sqrt(a))
