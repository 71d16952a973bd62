"""
Outbound purchase order delivery.

Writes a purchase order and its lines as /in/purchase_orders/{id}.csv on the
partner endpoint: one row per line, repeating the order header fields, or a
single placeholder row with empty item fields if the order has no lines.
After a successful upload the order's server_sent_at is stamped.
"""
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from models.purchase_order import PurchaseOrder, PurchaseOrderItem
from models.records import PURCHASE_ORDER_DETAIL, FlatRecord
from .database import CatalogDatabase
from .errors import NotFoundError
from .flat_codec import FlatRecordCodec
from .layout import PURCHASE_ORDERS_INBOX, purchase_order_path
from .local_files import temp_csv_path
from .remote_channel import RemoteFileChannel

logger = logging.getLogger(__name__)


def build_detail_rows(order: PurchaseOrder, items: list[PurchaseOrderItem]) -> list[FlatRecord]:
    header = {
        "purchase_order_id": order.purchase_order_id,
        "user_email": order.user_email,
        "store_id": order.store_id,
        "status": order.status,
        "subtotal": order.subtotal,
        "tax_total": order.tax_total,
        "final_total": order.final_total,
        "server_sent_at": order.server_sent_at or "",
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }
    if not items:
        placeholder = {
            **header,
            "item_ean": "", "item_ref": "", "item_title": "",
            "quantity": 0, "base_price_at_order": 0, "tax_rate_at_order": 0,
        }
        return [PURCHASE_ORDER_DETAIL.to_record(placeholder)]

    return [
        PURCHASE_ORDER_DETAIL.to_record({
            **header,
            "item_ean": item.item_ean,
            "item_ref": item.item_ref or "",
            "item_title": item.item_title or "",
            "quantity": item.quantity,
            "base_price_at_order": item.base_price_at_order,
            "tax_rate_at_order": item.tax_rate_at_order,
        })
        for item in items
    ]


class PurchaseOrderSender:
    """Uploads purchase orders to the partner's inbound directory."""

    def __init__(
        self,
        channel: RemoteFileChannel,
        catalog: CatalogDatabase,
        temp_dir: Optional[Path] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.channel = channel
        self.catalog = catalog
        self.temp_dir = temp_dir
        self._now = now
        self.codec = FlatRecordCodec(PURCHASE_ORDER_DETAIL.fieldnames)

    def send(self, purchase_order_id: str) -> str:
        """Upload one purchase order. Returns the remote path written."""
        order = self.catalog.get_purchase_order(purchase_order_id)
        if order is None:
            raise NotFoundError(f"Purchase order {purchase_order_id} not found")
        items = self.catalog.get_purchase_order_items(purchase_order_id)
        rows = build_detail_rows(order, items)
        remote_path = purchase_order_path(purchase_order_id)

        logger.info("Sending purchase order %s (%d lines) to %s", purchase_order_id, len(items), remote_path)
        with self.channel.session():
            with temp_csv_path(f"{purchase_order_id}_", self.temp_dir) as local:
                self.codec.write_file(local, rows)
                self.channel.mkdir(PURCHASE_ORDERS_INBOX, recursive=True)
                self.channel.put(local, remote_path)

        self.catalog.mark_purchase_order_sent(purchase_order_id, self._now())
        logger.info("Purchase order %s sent", purchase_order_id)
        return remote_path
