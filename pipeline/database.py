"""
SQLite catalog store.

Holds the authoritative catalog (taxes, products, delivery centers, stores,
users) and purchase orders with their items. The CRUD API in front of it is
a separate concern; this module exposes only what the sync jobs and the
simulation engine read, plus the writes needed to load data.

Purchase order items are owned by their order and removed with it
(ON DELETE CASCADE). Simulated orders are NOT stored here, see
scratch_store.py.
"""
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from models.catalog import Product, Store, Tax
from models.purchase_order import PurchaseOrder, PurchaseOrderItem, compute_totals

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS taxes (
    code        TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    tax_rate    REAL NOT NULL,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS products (
    ean              TEXT PRIMARY KEY,
    ref              TEXT,
    title            TEXT NOT NULL,
    description      TEXT,
    base_price       REAL NOT NULL,
    tax_code         TEXT NOT NULL REFERENCES taxes (code),
    unit_of_measure  TEXT NOT NULL,
    quantity_measure REAL NOT NULL,
    image_url        TEXT,
    is_active        INTEGER NOT NULL DEFAULT 1,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS delivery_centers (
    code        TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    is_active   INTEGER NOT NULL DEFAULT 1,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS stores (
    code                  TEXT PRIMARY KEY,
    name                  TEXT NOT NULL,
    responsible_email     TEXT,
    delivery_center_code  TEXT NOT NULL REFERENCES delivery_centers (code),
    is_active             INTEGER NOT NULL DEFAULT 1,
    created_at            TEXT NOT NULL,
    updated_at            TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS users (
    email          TEXT PRIMARY KEY,
    store_id       TEXT NOT NULL REFERENCES stores (code),
    name           TEXT,
    password_hash  TEXT NOT NULL DEFAULT '',
    is_active      INTEGER NOT NULL DEFAULT 1,
    last_login     TEXT,
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS purchase_orders (
    purchase_order_id  TEXT PRIMARY KEY,
    user_email         TEXT NOT NULL REFERENCES users (email),
    store_id           TEXT NOT NULL REFERENCES stores (code),
    status             TEXT NOT NULL,
    subtotal           REAL NOT NULL DEFAULT 0,
    tax_total          REAL NOT NULL DEFAULT 0,
    final_total        REAL NOT NULL DEFAULT 0,
    server_sent_at     TEXT,
    created_at         TEXT NOT NULL,
    updated_at         TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS purchase_order_items (
    item_id              INTEGER PRIMARY KEY AUTOINCREMENT,
    purchase_order_id    TEXT NOT NULL
                         REFERENCES purchase_orders (purchase_order_id) ON DELETE CASCADE,
    item_ean             TEXT NOT NULL,
    item_ref             TEXT,
    item_title           TEXT,
    item_description     TEXT,
    unit_of_measure      TEXT,
    quantity_measure     REAL,
    image_url            TEXT,
    quantity             INTEGER NOT NULL,
    base_price_at_order  REAL NOT NULL,
    tax_rate_at_order    REAL NOT NULL,
    created_at           TEXT NOT NULL,
    updated_at           TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_po_items_order ON purchase_order_items (purchase_order_id);
CREATE INDEX IF NOT EXISTS idx_products_active ON products (is_active);
"""

# Columns that may be written through upsert(), per collection, key first
_COLLECTIONS: dict[str, tuple[str, ...]] = {
    "taxes": ("code", "name", "tax_rate"),
    "products": (
        "ean", "ref", "title", "description", "base_price", "tax_code",
        "unit_of_measure", "quantity_measure", "image_url", "is_active",
    ),
    "delivery_centers": ("code", "name", "is_active"),
    "stores": ("code", "name", "responsible_email", "delivery_center_code", "is_active"),
    "users": ("email", "store_id", "name", "password_hash", "is_active", "last_login"),
}

# Never returned by list_collection()
_PRIVATE_COLUMNS = {"password_hash"}

_BOOL_COLUMNS = {"is_active"}


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_dict(row: sqlite3.Row) -> dict:
    data = {k: row[k] for k in row.keys() if k not in _PRIVATE_COLUMNS}
    for col in _BOOL_COLUMNS & data.keys():
        data[col] = bool(data[col])
    return data


class CatalogDatabase:
    """Thin wrapper around the catalog SQLite file."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Catalog schema ready: %s", self.db_path)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def upsert(self, collection: str, row: dict) -> None:
        """
        Insert or update one row of a catalog collection by its key.
        created_at is kept on update; updated_at is always refreshed.
        """
        columns = _COLLECTIONS.get(collection)
        if columns is None:
            raise ValueError(f"Unknown collection {collection!r}. Must be one of {sorted(_COLLECTIONS)}")
        key = columns[0]
        if not row.get(key):
            raise ValueError(f"{collection} row has no {key}")

        present = [c for c in columns if c in row]
        now = _utcnow()
        params = {c: row[c] for c in present}
        for col in _BOOL_COLUMNS & set(present):
            params[col] = int(bool(params[col]))
        params["created_at"] = row.get("created_at") or now
        params["updated_at"] = row.get("updated_at") or now

        insert_cols = present + ["created_at", "updated_at"]
        updates = ",\n                    ".join(
            f"{c} = excluded.{c}" for c in present + ["updated_at"] if c != key
        )
        with self._conn() as conn:
            conn.execute(
                f"""
                INSERT INTO {collection} ({', '.join(insert_cols)})
                VALUES ({', '.join(':' + c for c in insert_cols)})
                ON CONFLICT({key}) DO UPDATE SET
                    {updates}
                """,
                params,
            )
        logger.debug("Catalog upserted: %s %s", collection, row[key])

    def add_purchase_order(self, order: PurchaseOrder) -> None:
        now = _utcnow()
        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO purchase_orders (
                    purchase_order_id, user_email, store_id, status,
                    subtotal, tax_total, final_total, server_sent_at,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    order.purchase_order_id, order.user_email, order.store_id, order.status,
                    order.subtotal, order.tax_total, order.final_total, order.server_sent_at,
                    order.created_at or now, order.updated_at or now,
                ),
            )

    def add_purchase_order_item(self, item: PurchaseOrderItem) -> int:
        """
        Append a line to an order and refresh the order's totals.
        Returns the assigned item_id.
        """
        now = _utcnow()
        with self._conn() as conn:
            cur = conn.execute(
                """
                INSERT INTO purchase_order_items (
                    purchase_order_id, item_ean, item_ref, item_title, item_description,
                    unit_of_measure, quantity_measure, image_url,
                    quantity, base_price_at_order, tax_rate_at_order,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    item.purchase_order_id, item.item_ean, item.item_ref, item.item_title,
                    item.item_description, item.unit_of_measure, item.quantity_measure,
                    item.image_url, item.quantity, item.base_price_at_order,
                    item.tax_rate_at_order, now, now,
                ),
            )
            item_id = cur.lastrowid
            self._refresh_totals(conn, item.purchase_order_id)
        return item_id

    def _refresh_totals(self, conn: sqlite3.Connection, purchase_order_id: str) -> None:
        rows = conn.execute(
            "SELECT * FROM purchase_order_items WHERE purchase_order_id = ?",
            (purchase_order_id,),
        ).fetchall()
        subtotal, tax_total, final_total = compute_totals(
            PurchaseOrderItem(**_row_to_dict(r)) for r in rows
        )
        conn.execute(
            """UPDATE purchase_orders
               SET subtotal = ?, tax_total = ?, final_total = ?, updated_at = ?
               WHERE purchase_order_id = ?""",
            (subtotal, tax_total, final_total, _utcnow(), purchase_order_id),
        )

    def mark_purchase_order_sent(self, purchase_order_id: str, sent_at: Optional[datetime] = None) -> bool:
        """Record when an order was delivered to the partner. Returns True if found."""
        stamp = (sent_at or datetime.now(timezone.utc)).isoformat()
        with self._conn() as conn:
            conn.execute(
                """UPDATE purchase_orders SET server_sent_at = ?, updated_at = ?
                   WHERE purchase_order_id = ?""",
                (stamp, _utcnow(), purchase_order_id),
            )
            return conn.execute("SELECT changes()").fetchone()[0] > 0

    def delete_purchase_order(self, purchase_order_id: str) -> bool:
        """Delete an order; its items go with it."""
        with self._conn() as conn:
            conn.execute(
                "DELETE FROM purchase_orders WHERE purchase_order_id = ?", (purchase_order_id,)
            )
            return conn.execute("SELECT changes()").fetchone()[0] > 0

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def list_collection(self, collection: str) -> list[dict]:
        """Return every row of a catalog collection, ordered by key."""
        columns = _COLLECTIONS.get(collection)
        if columns is None:
            raise ValueError(f"Unknown collection {collection!r}. Must be one of {sorted(_COLLECTIONS)}")
        with self._conn() as conn:
            rows = conn.execute(f"SELECT * FROM {collection} ORDER BY {columns[0]}").fetchall()
        return [_row_to_dict(r) for r in rows]

    def get_store(self, code: str) -> Optional[Store]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM stores WHERE code = ?", (code,)).fetchone()
        return Store(**_row_to_dict(row)) if row else None

    def get_tax(self, code: str) -> Optional[Tax]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM taxes WHERE code = ?", (code,)).fetchone()
        return Tax(**_row_to_dict(row)) if row else None

    def list_active_products(self) -> list[Product]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT * FROM products WHERE is_active = 1 ORDER BY ean"
            ).fetchall()
        return [Product(**_row_to_dict(r)) for r in rows]

    def get_purchase_order(self, purchase_order_id: str) -> Optional[PurchaseOrder]:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM purchase_orders WHERE purchase_order_id = ?",
                (purchase_order_id,),
            ).fetchone()
        return PurchaseOrder(**_row_to_dict(row)) if row else None

    def get_purchase_order_items(self, purchase_order_id: str) -> list[PurchaseOrderItem]:
        """Return an order's lines in the order they were added."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT * FROM purchase_order_items
                   WHERE purchase_order_id = ? ORDER BY item_id""",
                (purchase_order_id,),
            ).fetchall()
        return [PurchaseOrderItem(**_row_to_dict(r)) for r in rows]
