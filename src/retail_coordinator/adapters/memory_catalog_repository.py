"""In-memory catalog seeded with demo products, stores and customers."""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta

from retail_coordinator.domain.inventory import InventoryRecord, Product, StoreStock
from retail_coordinator.domain.orders import CustomerProfile, LoyaltyRule, Promotion
from retail_coordinator.services.catalog import CatalogRepository

STORE_LOCATIONS: dict[str, tuple[float, float]] = {
    "store_001": (12.9716, 77.5946),
    "store_002": (13.0827, 80.2707),
    "store_003": (19.076, 72.8777),
    "store_004": (28.7041, 77.1025),
}

_PRODUCTS = (
    Product("TSHIRT-001", "Classic Cotton Tee", "apparel", 499.0,
            complement_skus=["JEANS-001", "SHOES-001"]),
    Product("JEANS-001", "Slim Fit Denim", "apparel", 1499.0,
            complement_skus=["TSHIRT-001", "SHOES-001"]),
    Product("SHOES-001", "Casual White Sneakers", "footwear", 1999.0,
            attributes={"color": "White", "material": "Canvas"},
            complement_skus=["TSHIRT-001", "JEANS-001", "WATCH-001"]),
    Product("SHOES-002", "Running Trainers", "footwear", 3999.0,
            attributes={"color": "Black", "material": "Mesh"}),
    Product("WATCH-001", "Analog Steel Watch", "accessories", 2999.0,
            complement_skus=["TSHIRT-001"]),
)

# sku -> (online qty, on-hand qty per store in STORE_LOCATIONS order)
_STOCK: dict[str, tuple[int, tuple[int, ...]]] = {
    "TSHIRT-001": (120, (40, 25, 30, 18)),
    "JEANS-001": (60, (12, 8, 15, 10)),
    "SHOES-001": (0, (5, 3, 9, 0)),
    "SHOES-002": (25, (2, 0, 4, 6)),
    "WATCH-001": (8, (1, 0, 0, 2)),
}

_CUSTOMERS = (
    CustomerProfile("user_001", "Rahul Kumar", "gold", 1200, ["web", "mobile"]),
    CustomerProfile("user_002", "Priya Singh", "silver", 400, ["mobile"]),
    CustomerProfile("user_003", "Amit Patel", "bronze", 0, ["kiosk"]),
    CustomerProfile("user_004", "Neha Verma", "platinum", 5600, ["web", "messaging"]),
)

_LOYALTY_RULES = (
    LoyaltyRule("bronze", 1.0, 0.01),
    LoyaltyRule("silver", 1.5, 0.01),
    LoyaltyRule("gold", 2.0, 0.01),
    LoyaltyRule("platinum", 3.0, 0.02),
)


def _seed_promotions(now: datetime) -> dict[str, Promotion]:
    return {
        "SAVE10": Promotion(
            code="SAVE10",
            type="percentage",
            value=10,
            min_cart_value=1000,
            valid_until=now + timedelta(days=30),
        ),
        "FLAT500": Promotion(
            code="FLAT500",
            type="fixed",
            value=500,
            min_cart_value=2000,
            valid_until=now + timedelta(days=60),
            applicable_tiers=["silver", "gold", "platinum"],
        ),
    }


@dataclass
class InMemoryCatalogRepository(CatalogRepository):
    """Catalog held in process memory; used when no Supabase backend is set."""

    products: dict[str, Product] = field(default_factory=dict)
    inventory: dict[str, InventoryRecord] = field(default_factory=dict)
    customers: dict[str, CustomerProfile] = field(default_factory=dict)
    promotions: dict[str, Promotion] = field(default_factory=dict)
    loyalty_rules: dict[str, LoyaltyRule] = field(default_factory=dict)

    @classmethod
    def seeded(cls) -> "InMemoryCatalogRepository":
        """Create a catalog with the demo data set."""
        now = datetime.now(tz=UTC)
        inventory = {}
        for sku, (online_qty, store_qty) in _STOCK.items():
            stores = [
                StoreStock(store_id=store_id, qty=qty, location=location)
                for (store_id, location), qty in zip(
                    STORE_LOCATIONS.items(), store_qty, strict=True
                )
            ]
            inventory[sku] = InventoryRecord(
                sku=sku, online_qty=online_qty, stores=stores, last_sync=now
            )
        return cls(
            products={product.sku: product for product in _PRODUCTS},
            inventory=inventory,
            customers={customer.user_id: customer for customer in _CUSTOMERS},
            promotions=_seed_promotions(now),
            loyalty_rules={rule.tier: rule for rule in _LOYALTY_RULES},
        )

    def get_product(self, sku: str) -> Product | None:
        return self.products.get(sku)

    def get_inventory(self, sku: str) -> InventoryRecord | None:
        """Return a copy so callers cannot mutate the seed."""
        record = self.inventory.get(sku)
        if record is None:
            return None
        return replace(record, stores=[replace(store) for store in record.stores])

    def get_customer(self, user_id: str) -> CustomerProfile | None:
        return self.customers.get(user_id)

    def get_promotion(self, code: str) -> Promotion | None:
        return self.promotions.get(code)

    def get_loyalty_rule(self, tier: str) -> LoyaltyRule | None:
        return self.loyalty_rules.get(tier)
