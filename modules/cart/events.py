"""
Cart Module - Change Notifications
===================================
Explicit subscribe/emit channel for "cart changed" events, so fragments
like a badge counter can follow the cart without knowing the reconciler.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List

from modules.cart.store import CartEntry

logger = logging.getLogger("shop.cart")


@dataclass(frozen=True)
class CartUpdated:
    """Emitted after every render that reaches the display."""
    line_count: int
    total_quantity: int
    items: List[CartEntry] = field(default_factory=list)


Listener = Callable[[CartUpdated], None]


class CartEvents:

    def __init__(self):
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: CartUpdated) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                # One broken listener must not block the others
                logger.error(f"Cart listener {listener!r} failed: {e}")
