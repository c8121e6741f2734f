"""
Cart Module - Store
====================
Persistent product-id → quantity mapping.

Rules:
  * ids are positive integers, quantities are clamped to [1, CART_MAX_QTY]
  * a missing id means quantity 0
  * malformed input never raises; it degrades to "no such item"
"""

import json
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List

from config.settings import CART_STORAGE_KEY, CART_MAX_QTY
from common.helpers import to_positive_int, to_quantity
from modules.cart.storage import BaseStorage

logger = logging.getLogger("shop.cart")


@dataclass(frozen=True)
class CartEntry:
    product_id: int
    quantity: int


def normalize_cart_map(raw) -> Dict[int, int]:
    """Turn decoded JSON into a strict {pid: qty} map, dropping anything malformed."""
    if not isinstance(raw, dict):
        return {}
    normalized = {}
    for pid_raw, qty_raw in raw.items():
        pid = to_positive_int(pid_raw)
        qty = to_quantity(qty_raw, CART_MAX_QTY)
        if pid and qty > 0:
            normalized[pid] = qty
    return normalized


class CartStore:
    """
    The only writer of the persisted cart. Every mutation re-reads the
    stored mapping and writes the full result back.
    """

    def __init__(self, storage: BaseStorage, key: str = CART_STORAGE_KEY, max_qty: int = CART_MAX_QTY):
        self.storage = storage
        self.key = key
        self.max_qty = max_qty

    def load(self) -> Dict[int, int]:
        try:
            raw = self.storage.get_item(self.key)
            if not raw:
                return {}
            parsed = json.loads(raw)
        except (ValueError, TypeError, OSError) as e:
            logger.warning(f"Discarding unreadable cart state: {e}")
            return {}
        if not isinstance(parsed, dict):
            logger.warning("Discarding cart state that isn't a JSON object")
            return {}
        return normalize_cart_map(parsed)

    def save(self, cart_map: Dict[int, int]) -> None:
        payload = {str(pid): int(qty) for pid, qty in sorted(cart_map.items())}
        self.storage.set_item(self.key, json.dumps(payload))

    def set_quantity(self, product_id, quantity) -> None:
        pid = to_positive_int(product_id)
        if not pid:
            return
        qty = to_quantity(quantity, self.max_qty)
        cart_map = self.load()
        if qty <= 0:
            cart_map.pop(pid, None)
        else:
            cart_map[pid] = qty
        self.save(cart_map)

    def add_item(self, product_id, delta=1) -> None:
        pid = to_positive_int(product_id)
        if not pid:
            return
        increment = to_quantity(delta, self.max_qty)
        if increment <= 0:
            return
        cart_map = self.load()
        cart_map[pid] = min(cart_map.get(pid, 0) + increment, self.max_qty)
        self.save(cart_map)

    def remove_item(self, product_id) -> None:
        self.set_quantity(product_id, 0)

    def drop(self, product_ids: Iterable[int]) -> None:
        """Remove several ids with a single write."""
        cart_map = self.load()
        changed = False
        for pid in product_ids:
            if cart_map.pop(pid, None) is not None:
                changed = True
        if changed:
            self.save(cart_map)

    def clear(self) -> None:
        self.save({})

    # ==========================================
    # Reads
    # ==========================================

    def get_quantity(self, product_id) -> int:
        pid = to_positive_int(product_id)
        if not pid:
            return 0
        return self.load().get(pid, 0)

    def entries(self) -> List[CartEntry]:
        """Current entries ordered by product id."""
        return [CartEntry(pid, qty) for pid, qty in sorted(self.load().items())]

    def total_quantity(self) -> int:
        return sum(self.load().values())
