"""Read-only catalog interface consumed by the coordinator."""

from typing import Protocol

from retail_coordinator.domain.inventory import InventoryRecord, Product
from retail_coordinator.domain.orders import CustomerProfile, LoyaltyRule, Promotion


class CatalogRepository(Protocol):
    """Read model over the external product and customer store."""

    def get_product(self, sku: str) -> Product | None:
        """Return a product by sku, if present."""

    def get_inventory(self, sku: str) -> InventoryRecord | None:
        """Return on-hand stock for a sku across online and stores."""

    def get_customer(self, user_id: str) -> CustomerProfile | None:
        """Return a customer profile, if present."""

    def get_promotion(self, code: str) -> Promotion | None:
        """Return a promotion by code, if present."""

    def get_loyalty_rule(self, tier: str) -> LoyaltyRule | None:
        """Return the accrual rule for a loyalty tier, if present."""
