from pydantic import BaseModel, Field
from typing import List, Optional

from .purchase_order import line_subtotal, line_tax


class SimulatedOrderItem(BaseModel):
    """
    A line on a simulated order. Same shape as PurchaseOrderItem, but the
    product may be a substitute for the one originally ordered.
    """
    order_id: str
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
    substituted_ean: Optional[str] = None   # EAN of the line this one replaces

    @property
    def line_subtotal(self) -> float:
        return line_subtotal(self)

    @property
    def line_tax(self) -> float:
        return line_tax(self)


class SimulatedOrder(BaseModel):
    """
    A non-authoritative projection of a purchase order after applying the
    fulfillment-variance policy. Lives only in the scratch store and is never
    copied into the authoritative order tables.
    """
    order_id: str                           # {deliveryCenter}-{YYMMDDHHMMSS}-{XXXX}
    source_purchase_order_id: str           # informational; no cascade
    user_email: str
    store_id: str
    status: str
    observations: Optional[str] = None
    subtotal: float
    tax_total: float
    final_total: float
    created_at: str                         # ISO 8601
    expires_at: str                         # ISO 8601, after which the sweep may delete it


class SimulationResult(BaseModel):
    """A simulated order together with its emitted lines."""
    order: SimulatedOrder
    items: List[SimulatedOrderItem] = Field(default_factory=list)

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def substitution_count(self) -> int:
        return sum(1 for i in self.items if i.substituted_ean)
