"""
Cart Module - Reconciler
=========================
Resolves the locally stored cart against live catalog data and renders it.

render():
  1. tag the call with a new version and show the item count right away
  2. fetch every referenced product concurrently (cached per product id)
  3. drop entries whose product can't be fetched, persisting immediately
  4. if a newer render has started meanwhile, stop here: no display
     update, no notification
  5. otherwise show the resolved lines and total, then emit CartUpdated
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from common.exceptions import ValidationError
from common.helpers import safe_decimal, format_money, to_positive_int
from modules.cart.events import CartEvents, CartUpdated
from modules.cart.store import CartEntry, CartStore
from modules.catalog.client import CatalogClient

logger = logging.getLogger("shop.cart")


@dataclass(frozen=True)
class CartLine:
    entry: CartEntry
    product: Dict[str, Any]

    @property
    def product_id(self) -> int:
        return self.entry.product_id

    @property
    def quantity(self) -> int:
        return self.entry.quantity

    @property
    def unit_price(self) -> Decimal:
        """Catalog price; unparseable or negative prices count as 0."""
        price = safe_decimal(self.product.get("price"))
        if price is None or price < 0:
            return Decimal("0")
        return price

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class CartSnapshot:
    lines: List[CartLine]
    total: Decimal
    total_text: str
    total_quantity: int


# ==========================================
# Display
# ==========================================

class CartView:
    """What a cart UI must be able to show."""

    def show_count(self, total_quantity: int) -> None:
        raise NotImplementedError

    def show_empty(self) -> None:
        raise NotImplementedError

    def show_lines(self, lines: List[CartLine], total_text: str) -> None:
        raise NotImplementedError


class CartDisplay(CartView):
    """In-memory view holding whatever was rendered last."""

    EMPTY_MESSAGE = "Your cart is empty."

    def __init__(self):
        self.count = 0
        self.lines: List[CartLine] = []
        self.total_text = "$0.00"
        self.message: Optional[str] = self.EMPTY_MESSAGE

    def show_count(self, total_quantity: int) -> None:
        self.count = total_quantity

    def show_empty(self) -> None:
        self.lines = []
        self.total_text = "$0.00"
        self.message = self.EMPTY_MESSAGE

    def show_lines(self, lines: List[CartLine], total_text: str) -> None:
        self.lines = list(lines)
        self.total_text = total_text
        self.message = None

    def rows(self) -> List[dict]:
        """Plain rows for the cart panel: name, unit price text, image, quantity."""
        return [
            {
                "pid": line.product_id,
                "name": line.product.get("name", ""),
                "price_text": f"{format_money(line.unit_price)} each",
                "image": line.product.get("thumb_path") or line.product.get("image_path") or "",
                "quantity": line.quantity,
            }
            for line in self.lines
        ]


# ==========================================
# Reconciler
# ==========================================

class CartReconciler:

    def __init__(
        self,
        store: CartStore,
        client: CatalogClient,
        view: Optional[CartView] = None,
        events: Optional[CartEvents] = None,
    ):
        self.store = store
        self.client = client
        self.view = view or CartDisplay()
        self.events = events or CartEvents()
        self._product_cache: Dict[int, asyncio.Task] = {}
        self._render_version = 0

    # ==========================================
    # Product fetches
    # ==========================================

    async def fetch_product(self, product_id) -> Dict[str, Any]:
        """Fetch one product, sharing a single request per id. Failures are not cached."""
        pid = to_positive_int(product_id)
        if not pid:
            raise ValidationError("Invalid product id.")

        task = self._product_cache.get(pid)
        if task is None:
            task = asyncio.ensure_future(self.client.get_product(pid))
            self._product_cache[pid] = task
        try:
            return await asyncio.shield(task)
        except Exception:
            if self._product_cache.get(pid) is task:
                del self._product_cache[pid]
            raise

    def invalidate(self, product_id: Optional[int] = None) -> None:
        """Forget cached product data (one id, or everything)."""
        if product_id is None:
            self._product_cache.clear()
        else:
            self._product_cache.pop(product_id, None)

    async def _resolve(self, entries: List[CartEntry]) -> List[CartLine]:
        results = await asyncio.gather(
            *(self.fetch_product(e.product_id) for e in entries),
            return_exceptions=True,
        )

        lines, stale = [], []
        for entry, result in zip(entries, results):
            if isinstance(result, Exception) or not isinstance(result, dict):
                logger.warning(f"Dropping product #{entry.product_id} from cart: {result}")
                stale.append(entry.product_id)
            else:
                lines.append(CartLine(entry, result))

        if stale:
            self.store.drop(stale)
        return lines

    # ==========================================
    # Render
    # ==========================================

    async def render(self) -> Optional[CartSnapshot]:
        """Render the cart. Returns None when a newer render superseded this one."""
        self._render_version += 1
        version = self._render_version
        entries = self.store.entries()
        self.view.show_count(sum(e.quantity for e in entries))

        lines = await self._resolve(entries) if entries else []
        if version != self._render_version:
            return None

        lines.sort(key=lambda line: line.product_id)
        total = sum((line.line_total for line in lines), Decimal("0"))
        total_quantity = self.store.total_quantity()
        snapshot = CartSnapshot(
            lines=lines,
            total=total,
            total_text=format_money(total),
            total_quantity=total_quantity,
        )

        self.view.show_count(total_quantity)
        if lines:
            self.view.show_lines(lines, snapshot.total_text)
        else:
            self.view.show_empty()

        self.events.emit(CartUpdated(
            line_count=len(lines),
            total_quantity=total_quantity,
            items=[line.entry for line in lines],
        ))
        return snapshot

    # ==========================================
    # Actions (store mutation + fresh render)
    # ==========================================

    async def add(self, product_id, quantity=1) -> Optional[CartSnapshot]:
        self.store.add_item(product_id, quantity)
        return await self.render()

    async def set_quantity(self, product_id, quantity) -> Optional[CartSnapshot]:
        self.store.set_quantity(product_id, quantity)
        return await self.render()

    async def increment(self, product_id) -> Optional[CartSnapshot]:
        return await self.set_quantity(product_id, self.store.get_quantity(product_id) + 1)

    async def decrement(self, product_id) -> Optional[CartSnapshot]:
        return await self.set_quantity(product_id, self.store.get_quantity(product_id) - 1)

    async def remove(self, product_id) -> Optional[CartSnapshot]:
        self.store.remove_item(product_id)
        return await self.render()

    async def clear(self) -> Optional[CartSnapshot]:
        self.store.clear()
        return await self.render()

    async def refresh(self) -> Optional[CartSnapshot]:
        return await self.render()

    def get_items(self) -> List[CartEntry]:
        return self.store.entries()

    def get_total_quantity(self) -> int:
        return self.store.total_quantity()
