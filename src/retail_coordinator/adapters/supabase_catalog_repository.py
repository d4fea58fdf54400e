"""Supabase implementation of the catalog read model."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from retail_coordinator.domain.inventory import InventoryRecord, Product, StoreStock
from retail_coordinator.domain.orders import CustomerProfile, LoyaltyRule, Promotion
from retail_coordinator.services.catalog import CatalogRepository


@dataclass
class SupabaseCatalogRepository(CatalogRepository):
    """Supabase-backed catalog of products, stock, customers and offers."""

    client: Client

    def get_product(self, sku: str) -> Product | None:
        """Return a product by sku, if present."""
        row = self._first("products", "sku", sku)
        if row is None:
            return None
        return Product(
            sku=str(row["sku"]),
            name=str(row.get("name", "")),
            category=str(row.get("category", "")),
            price=float(row.get("price", 0.0)),
            description=str(row.get("description") or ""),
            attributes=dict(row.get("attributes") or {}),
            complement_skus=list(row.get("complement_skus") or []),
        )

    def get_inventory(self, sku: str) -> InventoryRecord | None:
        """Return on-hand stock for a sku across online and stores."""
        row = self._first("inventory", "sku", sku)
        if row is None:
            return None
        stores_response = (
            self.client.table("store_inventory")
            .select("*")
            .eq("sku", sku)
            .order("store_id")
            .execute()
        )
        return InventoryRecord(
            sku=sku,
            online_qty=int(row.get("online_qty", 0)),
            stores=[_parse_store(store) for store in stores_response.data or []],
            last_sync=_parse_datetime(row.get("last_sync")) or datetime.now(tz=UTC),
        )

    def get_customer(self, user_id: str) -> CustomerProfile | None:
        """Return a customer profile, if present."""
        row = self._first("customers", "user_id", user_id)
        if row is None:
            return None
        return CustomerProfile(
            user_id=str(row["user_id"]),
            name=str(row.get("name", "")),
            loyalty_tier=str(row.get("loyalty_tier", "bronze")),
            loyalty_points=int(row.get("loyalty_points", 0)),
            preferred_channels=list(row.get("preferred_channels") or []),
        )

    def get_promotion(self, code: str) -> Promotion | None:
        """Return a promotion by code, if present."""
        row = self._first("promotions", "code", code)
        if row is None:
            return None
        valid_until = _parse_datetime(row.get("valid_until"))
        if valid_until is None:
            return None
        return Promotion(
            code=str(row["code"]),
            type=str(row.get("type", "fixed")),
            value=float(row.get("value", 0.0)),
            min_cart_value=float(row.get("min_cart_value", 0.0)),
            valid_until=valid_until,
            applicable_tiers=list(row.get("applicable_tiers") or []),
        )

    def get_loyalty_rule(self, tier: str) -> LoyaltyRule | None:
        """Return the accrual rule for a loyalty tier, if present."""
        row = self._first("loyalty_rules", "tier", tier)
        if row is None:
            return None
        return LoyaltyRule(
            tier=str(row["tier"]),
            point_multiplier=float(row.get("point_multiplier", 1.0)),
            points_per_unit=float(row.get("points_per_unit", 1.0)),
        )

    def _first(self, table: str, column: str, value: str) -> dict[str, object] | None:
        response = (
            self.client.table(table).select("*").eq(column, value).limit(1).execute()
        )
        if not response.data:
            return None
        return response.data[0]


def _parse_store(row: dict[str, object]) -> StoreStock:
    """Parse a store inventory row; location comes from lat/lng columns."""
    return StoreStock(
        store_id=str(row["store_id"]),
        qty=int(row.get("qty", 0)),
        location=(float(row.get("lat", 0.0)), float(row.get("lng", 0.0))),
    )


def _parse_datetime(raw: object) -> datetime | None:
    if not isinstance(raw, str) or not raw:
        return None
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed
