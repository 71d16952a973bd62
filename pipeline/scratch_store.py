"""
Scratch store for simulated orders.

Simulated orders are previews, not orders. They live in their own SQLite
file, apart from the catalog database, and every one carries an expires_at
stamp. purge_expired() is the maintenance sweep that deletes them once
stale; explicit deletes are idempotent. Nothing in this module writes to
the authoritative order tables.
"""
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from models.simulated_order import SimulatedOrder, SimulatedOrderItem, SimulationResult

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS orders_simulated (
    order_id                  TEXT PRIMARY KEY,
    source_purchase_order_id  TEXT NOT NULL,   -- informational, no FK
    user_email                TEXT NOT NULL,
    store_id                  TEXT NOT NULL,
    status                    TEXT NOT NULL,
    observations              TEXT,
    subtotal                  REAL NOT NULL,
    tax_total                 REAL NOT NULL,
    final_total               REAL NOT NULL,
    created_at                TEXT NOT NULL,
    expires_at                TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_orders_simulated_expires ON orders_simulated (expires_at);

CREATE TABLE IF NOT EXISTS order_items_simulated (
    item_id              INTEGER PRIMARY KEY AUTOINCREMENT,
    order_id             TEXT NOT NULL
                         REFERENCES orders_simulated (order_id) ON DELETE CASCADE,
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
    substituted_ean      TEXT
);

CREATE INDEX IF NOT EXISTS idx_order_items_simulated_order ON order_items_simulated (order_id);
"""

_ITEM_COLUMNS = (
    "order_id", "item_ean", "item_ref", "item_title", "item_description",
    "unit_of_measure", "quantity_measure", "image_url",
    "quantity", "base_price_at_order", "tax_rate_at_order", "substituted_ean",
)


class SimulatedOrderStore:
    """Bounded-lifetime storage for SimulationResult objects."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Scratch schema ready: %s", self.db_path)

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def save(self, result: SimulationResult) -> None:
        """Persist a simulated order and its lines in one transaction."""
        order = result.order
        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO orders_simulated (
                    order_id, source_purchase_order_id, user_email, store_id, status,
                    observations, subtotal, tax_total, final_total, created_at, expires_at
                ) VALUES (
                    :order_id, :source_purchase_order_id, :user_email, :store_id, :status,
                    :observations, :subtotal, :tax_total, :final_total, :created_at, :expires_at
                )
                """,
                order.model_dump(),
            )
            conn.executemany(
                f"""INSERT INTO order_items_simulated ({', '.join(_ITEM_COLUMNS)})
                    VALUES ({', '.join('?' for _ in _ITEM_COLUMNS)})""",
                [tuple(getattr(i, c) for c in _ITEM_COLUMNS) for i in result.items],
            )

    def delete(self, order_id: str) -> bool:
        """Delete one simulated order and its lines. Missing ids are not an error."""
        with self._conn() as conn:
            conn.execute("DELETE FROM orders_simulated WHERE order_id = ?", (order_id,))
            deleted = conn.execute("SELECT changes()").fetchone()[0] > 0
        if deleted:
            logger.info("Simulated order cleaned up: %s", order_id)
        else:
            logger.debug("Simulated order %s already gone", order_id)
        return deleted

    def delete_all(self) -> int:
        """Delete every simulated order. Returns how many were removed."""
        with self._conn() as conn:
            conn.execute("DELETE FROM orders_simulated")
            count = conn.execute("SELECT changes()").fetchone()[0]
        logger.info("All simulated orders cleaned up (%d removed)", count)
        return count

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete simulated orders whose expires_at has passed."""
        cutoff = (now or datetime.now(timezone.utc)).isoformat()
        with self._conn() as conn:
            conn.execute("DELETE FROM orders_simulated WHERE expires_at <= ?", (cutoff,))
            count = conn.execute("SELECT changes()").fetchone()[0]
        if count:
            logger.info("Purged %d expired simulated orders", count)
        return count

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get(self, order_id: str) -> Optional[SimulationResult]:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM orders_simulated WHERE order_id = ?", (order_id,)
            ).fetchone()
            if row is None:
                return None
            items = conn.execute(
                "SELECT * FROM order_items_simulated WHERE order_id = ? ORDER BY item_id",
                (order_id,),
            ).fetchall()
        return SimulationResult(
            order=SimulatedOrder(**dict(row)),
            items=[SimulatedOrderItem(**dict(i)) for i in items],
        )

    def count(self) -> int:
        with self._conn() as conn:
            return conn.execute("SELECT COUNT(*) FROM orders_simulated").fetchone()[0]
