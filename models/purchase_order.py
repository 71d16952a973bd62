from pydantic import BaseModel, Field
from typing import Iterable, Optional, Protocol


class PricedLine(Protocol):
    quantity: int
    base_price_at_order: float
    tax_rate_at_order: float


class PurchaseOrderItem(BaseModel):
    """
    A single line on a Purchase Order.

    Price and tax rate are captured at order time so later catalog changes
    do not alter the order's totals.
    """
    item_id: Optional[int] = None           # position within the order
    purchase_order_id: str
    item_ean: str
    item_ref: Optional[str] = None
    item_title: Optional[str] = None
    item_description: Optional[str] = None
    unit_of_measure: Optional[str] = None
    quantity_measure: Optional[float] = None
    image_url: Optional[str] = None
    quantity: int = Field(gt=0)
    base_price_at_order: float
    tax_rate_at_order: float

    @property
    def line_subtotal(self) -> float:
        return line_subtotal(self)

    @property
    def line_tax(self) -> float:
        return line_tax(self)


class PurchaseOrder(BaseModel):
    """
    An authoritative customer order awaiting fulfillment.
    purchase_order_id is the primary key; store_id references a store code.
    """
    purchase_order_id: str
    user_email: str
    store_id: str
    status: str
    subtotal: float = 0.0
    tax_total: float = 0.0
    final_total: float = 0.0
    server_sent_at: Optional[str] = None    # ISO 8601, set once sent to the partner
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


def line_subtotal(line: PricedLine) -> float:
    return line.quantity * line.base_price_at_order


def line_tax(line: PricedLine) -> float:
    return line_subtotal(line) * line.tax_rate_at_order


def compute_totals(lines: Iterable[PricedLine]) -> tuple[float, float, float]:
    """Return (subtotal, tax_total, final_total) summed over the given lines."""
    subtotal = 0.0
    tax_total = 0.0
    for line in lines:
        subtotal += line_subtotal(line)
        tax_total += line_tax(line)
    return subtotal, tax_total, subtotal + tax_total
