"""
Order fulfillment simulation.

Produces a simulated order from a purchase order by applying a
fulfillment-variance policy to each line independently:

  1. Draw p in [0, 1). If p <= 0.8 the line ships unchanged.
  2. Otherwise the line is short-picked: draw f uniform in [0.1, 0.8] and
     ship floor(quantity * f).
  3. If that rounds down to zero the line is dropped. One more draw
     <= 0.2 (and a non-empty active catalog) replaces it with a uniformly
     chosen substitute product at the ORIGINAL quantity, priced and taxed
     from the catalog.

Draw order per line is p, f, the substitution draw, then the product
choice; the order id suffix is drawn after every line. The random source
and the clock are injected so the policy can be replayed in tests.

Simulated orders are written to the scratch store and must be cleaned up by
the caller (or by the expiry sweep).
"""
import logging
import math
import random
import string
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Sequence

from models.catalog import Product
from models.purchase_order import PurchaseOrder, PurchaseOrderItem, compute_totals
from models.simulated_order import SimulatedOrder, SimulatedOrderItem, SimulationResult
from .database import CatalogDatabase
from .errors import NotFoundError
from .scratch_store import SimulatedOrderStore

logger = logging.getLogger(__name__)

UNCHANGED_PROBABILITY = 0.8
REDUCTION_FACTOR_RANGE = (0.1, 0.8)
SUBSTITUTION_PROBABILITY = 0.2

ORDER_ID_ALPHABET = string.ascii_uppercase + string.digits
ORDER_ID_SUFFIX_LENGTH = 4

OBSERVATIONS = "Temporary order generated for CSV export"

# Rates for the short tax codes used by older catalog data
LEGACY_TAX_RATES = {"GEN": 0.21, "RED": 0.10, "SUP": 0.04}

_DESCRIPTIVE_FIELDS = (
    "item_ean", "item_ref", "item_title", "item_description",
    "unit_of_measure", "quantity_measure", "image_url",
)


def _copy_line(order_id: str, item: PurchaseOrderItem, quantity: int) -> SimulatedOrderItem:
    return SimulatedOrderItem(
        order_id=order_id,
        quantity=quantity,
        base_price_at_order=item.base_price_at_order,
        tax_rate_at_order=item.tax_rate_at_order,
        **{f: getattr(item, f) for f in _DESCRIPTIVE_FIELDS},
    )


def _substitute_line(
    order_id: str, item: PurchaseOrderItem, product: Product, tax_rate: float
) -> SimulatedOrderItem:
    return SimulatedOrderItem(
        order_id=order_id,
        item_ean=product.ean,
        item_ref=product.ref,
        item_title=product.title,
        item_description=product.description,
        unit_of_measure=product.unit_of_measure,
        quantity_measure=product.quantity_measure,
        image_url=product.image_url,
        quantity=item.quantity,
        base_price_at_order=product.base_price,
        tax_rate_at_order=tax_rate,
        substituted_ean=item.item_ean,
    )


def apply_fulfillment_policy(
    order_id: str,
    items: Sequence[PurchaseOrderItem],
    candidates: Sequence[Product],
    rng: random.Random,
    tax_rate_for: Callable[[Product], float],
) -> list[SimulatedOrderItem]:
    """Run the per-line policy over items and return the emitted lines."""
    emitted: list[SimulatedOrderItem] = []
    for item in items:
        if item.quantity <= 0:
            logger.warning("Skipping %s: non-positive quantity %d", item.item_ean, item.quantity)
            continue
        if rng.random() <= UNCHANGED_PROBABILITY:
            emitted.append(_copy_line(order_id, item, item.quantity))
            continue

        factor = rng.uniform(*REDUCTION_FACTOR_RANGE)
        reduced = math.floor(item.quantity * factor)
        if reduced > 0:
            logger.debug("Short-pick %s: %d -> %d", item.item_ean, item.quantity, reduced)
            emitted.append(_copy_line(order_id, item, reduced))
            continue

        # Line dropped; maybe substitute
        if rng.random() <= SUBSTITUTION_PROBABILITY and candidates:
            product = rng.choice(candidates)
            logger.debug("Substituting %s with %s", item.item_ean, product.ean)
            emitted.append(_substitute_line(order_id, item, product, tax_rate_for(product)))
        else:
            logger.debug("Dropped %s", item.item_ean)
    return emitted


class OrderSimulationEngine:
    """
    Builds simulated orders from purchase orders in the catalog and keeps
    them in the scratch store.

    Usage:
        engine = OrderSimulationEngine(catalog, scratch)
        result = engine.simulate("PO-1")
        ...
        engine.cleanup(result.order.order_id)
    """

    def __init__(
        self,
        catalog: CatalogDatabase,
        scratch: SimulatedOrderStore,
        rng: Optional[random.Random] = None,
        now: Callable[[], datetime] = datetime.now,
        ttl: timedelta = timedelta(hours=1),
    ) -> None:
        self.catalog = catalog
        self.scratch = scratch
        self.rng = rng or random.Random()
        self._now = now
        self.ttl = ttl

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def simulate(self, purchase_order_id: str) -> SimulationResult:
        """Simulate fulfillment of a stored purchase order."""
        order = self.catalog.get_purchase_order(purchase_order_id)
        if order is None:
            raise NotFoundError(f"Purchase order {purchase_order_id} not found")
        items = self.catalog.get_purchase_order_items(purchase_order_id)
        return self.simulate_order(order, items)

    def simulate_order(
        self, order: PurchaseOrder, items: Sequence[PurchaseOrderItem]
    ) -> SimulationResult:
        """Simulate fulfillment of the given order and lines. The inputs are not modified."""
        store = self.catalog.get_store(order.store_id)
        if store is None:
            raise NotFoundError(f"Store {order.store_id} not found")

        started = self._now()
        candidates = self.catalog.list_active_products()

        # Lines are built against a placeholder id; the suffix is drawn last
        lines = apply_fulfillment_policy("", items, candidates, self.rng, self.tax_rate_for)
        order_id = self._order_id(store.delivery_center_code, started)
        lines = [line.model_copy(update={"order_id": order_id}) for line in lines]

        subtotal, tax_total, final_total = compute_totals(lines)
        created = started.astimezone(timezone.utc)
        simulated = SimulatedOrder(
            order_id=order_id,
            source_purchase_order_id=order.purchase_order_id,
            user_email=order.user_email,
            store_id=order.store_id,
            status=order.status,
            observations=OBSERVATIONS,
            subtotal=subtotal,
            tax_total=tax_total,
            final_total=final_total,
            created_at=created.isoformat(),
            expires_at=(created + self.ttl).isoformat(),
        )
        result = SimulationResult(order=simulated, items=lines)
        self.scratch.save(result)

        logger.info(
            "Simulated order created: %s from %s (%d of %d lines, %d substituted, total %.2f)",
            order_id, order.purchase_order_id, result.item_count, len(items),
            result.substitution_count, final_total,
        )
        return result

    def cleanup(self, order_id: str) -> bool:
        """Delete one simulated order. Returns False if it was already gone."""
        return self.scratch.delete(order_id)

    def cleanup_all(self) -> int:
        return self.scratch.delete_all()

    def purge_expired(self) -> int:
        return self.scratch.purge_expired(self._now().astimezone(timezone.utc))

    def tax_rate_for(self, product: Product) -> float:
        """Tax rate from the product's tax classification."""
        tax = self.catalog.get_tax(product.tax_code)
        if tax is not None:
            return tax.tax_rate
        rate = LEGACY_TAX_RATES.get(product.tax_code)
        if rate is None:
            logger.warning("Unknown tax code %s for product %s — using 0", product.tax_code, product.ean)
            return 0.0
        return rate

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _order_id(self, delivery_center_code: str, when: datetime) -> str:
        suffix = "".join(self.rng.choice(ORDER_ID_ALPHABET) for _ in range(ORDER_ID_SUFFIX_LENGTH))
        return f"{delivery_center_code}-{when.strftime('%y%m%d%H%M%S')}-{suffix}"
