from .catalog import Tax, Product, DeliveryCenter, Store, User
from .purchase_order import PurchaseOrder, PurchaseOrderItem, compute_totals
from .simulated_order import SimulatedOrder, SimulatedOrderItem, SimulationResult
from .records import FlatRecord, EntitySchema, ENTITY_SCHEMAS, get_schema

__all__ = [
    "Tax", "Product", "DeliveryCenter", "Store", "User",
    "PurchaseOrder", "PurchaseOrderItem", "compute_totals",
    "SimulatedOrder", "SimulatedOrderItem", "SimulationResult",
    "FlatRecord", "EntitySchema", "ENTITY_SCHEMAS", "get_schema",
]
