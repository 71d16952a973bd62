"""
Flat record schemas for the files exchanged with the partner.

A flat record is one row of a remote CSV file: an ordered mapping of field
name to text. Each entity type declares its column order and the natural
key that identifies a row inside a consolidated file.
"""
from dataclasses import dataclass
from typing import Optional

FlatRecord = dict[str, str]


@dataclass(frozen=True)
class EntitySchema:
    name: str
    key_field: str
    fieldnames: tuple[str, ...]

    def to_record(self, row: dict) -> FlatRecord:
        """Project a catalog row onto this schema's columns as text."""
        return {f: to_text(row.get(f)) for f in self.fieldnames}


def to_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


DELIVERY_CENTERS = EntitySchema(
    name="delivery_centers",
    key_field="code",
    fieldnames=("code", "name", "is_active", "created_at", "updated_at"),
)

STORES = EntitySchema(
    name="stores",
    key_field="code",
    fieldnames=(
        "code", "name", "responsible_email", "delivery_center_code",
        "is_active", "created_at", "updated_at",
    ),
)

# Password hashes never leave the catalog
USERS = EntitySchema(
    name="users",
    key_field="email",
    fieldnames=("email", "store_id", "name", "is_active", "created_at", "updated_at"),
)

TAXES = EntitySchema(
    name="taxes",
    key_field="code",
    fieldnames=("code", "name", "tax_rate", "created_at", "updated_at"),
)

PRODUCTS = EntitySchema(
    name="products",
    key_field="ean",
    fieldnames=(
        "ean", "ref", "title", "description", "base_price", "tax_code",
        "unit_of_measure", "quantity_measure", "image_url", "is_active",
        "created_at", "updated_at",
    ),
)

# One row per order line; key is not unique within a file
PURCHASE_ORDER_DETAIL = EntitySchema(
    name="purchase_orders",
    key_field="purchase_order_id",
    fieldnames=(
        "purchase_order_id", "user_email", "store_id", "status",
        "subtotal", "tax_total", "final_total",
        "server_sent_at", "created_at", "updated_at",
        "item_ean", "item_ref", "item_title",
        "quantity", "base_price_at_order", "tax_rate_at_order",
    ),
)

ENTITY_SCHEMAS: dict[str, EntitySchema] = {
    s.name: s for s in (DELIVERY_CENTERS, STORES, USERS, TAXES, PRODUCTS)
}

# Entity types synchronised through the consolidated upsert-by-key files
CONSOLIDATED_ENTITY_TYPES = ("delivery_centers", "stores", "users", "taxes")

# Entity types exported as bulk timestamped snapshots
SNAPSHOT_ENTITY_TYPES = ("delivery_centers", "stores", "users", "taxes", "products")


def get_schema(entity_type: str) -> EntitySchema:
    schema: Optional[EntitySchema] = ENTITY_SCHEMAS.get(entity_type)
    if schema is None:
        raise ValueError(
            f"Unknown entity type {entity_type!r}. Must be one of {sorted(ENTITY_SCHEMAS)}"
        )
    return schema
