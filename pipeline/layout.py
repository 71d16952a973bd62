"""
Remote filesystem layout agreed with the partner.

  /in/purchase_orders/{purchase_order_id}.csv          outbound order detail
  /out/{entity}/{entity}.csv                           consolidated, upsert-by-key
  /out/{entity}/{entity}_{YYYYMMDDHHMMSS}.csv          bulk timestamped snapshot
  /processed/{entity}/{filename}                       archive for consumed inbound files

These paths are part of the contract with the partner and are not configurable.
"""
import posixpath
from datetime import datetime

PURCHASE_ORDERS_INBOX = "/in/purchase_orders"
OUT_ROOT = "/out"
PROCESSED_ROOT = "/processed"

SNAPSHOT_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def purchase_order_path(purchase_order_id: str) -> str:
    return posixpath.join(PURCHASE_ORDERS_INBOX, f"{purchase_order_id}.csv")


def entity_dir(entity_type: str) -> str:
    return posixpath.join(OUT_ROOT, entity_type)


def consolidated_path(entity_type: str) -> str:
    return posixpath.join(entity_dir(entity_type), f"{entity_type}.csv")


def snapshot_prefix(entity_type: str) -> str:
    return f"{entity_type}_"


def snapshot_path(entity_type: str, when: datetime) -> str:
    stamp = when.strftime(SNAPSHOT_TIMESTAMP_FORMAT)
    return posixpath.join(entity_dir(entity_type), f"{snapshot_prefix(entity_type)}{stamp}.csv")


def is_snapshot_name(entity_type: str, filename: str) -> bool:
    """True for {entity}_{14 digits}.csv; the consolidated file does not match."""
    prefix = snapshot_prefix(entity_type)
    if not (filename.startswith(prefix) and filename.endswith(".csv")):
        return False
    stamp = filename[len(prefix):-len(".csv")]
    return len(stamp) == 14 and stamp.isdigit()


def processed_dir(entity_type: str) -> str:
    return posixpath.join(PROCESSED_ROOT, entity_type)
