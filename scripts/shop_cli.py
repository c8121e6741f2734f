"""
Catalog Shop - Terminal Storefront
===================================
Browse the catalog and manage the local cart against a running API.

Usage:
    python scripts/shop_cli.py browse [catid]
    python scripts/shop_cli.py product <pid>
    python scripts/shop_cli.py cart
    python scripts/shop_cli.py add <pid> [qty]
    python scripts/shop_cli.py set <pid> <qty>
    python scripts/shop_cli.py inc <pid>
    python scripts/shop_cli.py dec <pid>
    python scripts/shop_cli.py remove <pid>
    python scripts/shop_cli.py clear
"""

import asyncio
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.settings import CART_STORAGE_PATH
from common.exceptions import ShopError
from modules.cart.events import CartUpdated
from modules.cart.reconciler import CartReconciler, CartDisplay
from modules.cart.storage import JsonFileStorage
from modules.cart.store import CartStore
from modules.catalog.client import CatalogClient
from modules.shop.service import StorefrontService


def print_catalog(page: dict):
    nav = "  ".join(f"[{c['name']}]" if c["active"] else c["name"] for c in page["categories"])
    print(nav)
    print(f"\n== {page['breadcrumb']} ==")
    if page["message"]:
        print(page["message"])
    for card in page["products"]:
        print(f"  #{card['pid']:<4} {card['name']:<40} {card['price_text']:>10}")


def print_product(page: dict):
    print(f"{page['category']} / {page['name']}")
    print(f"SKU: {page['sku']}   {page['price_text']}")
    print(page["description"])


def print_cart(display: CartDisplay):
    if display.message:
        print(display.message)
        return
    for row in display.rows():
        print(f"  #{row['pid']:<4} {row['name']:<40} x{row['quantity']:<4} {row['price_text']}")
    print(f"Total: {display.total_text}")


def print_badge(event: CartUpdated):
    print(f"[cart: {event.total_quantity} item(s), {event.line_count} line(s)]")


async def run(args):
    command = args[0] if args else "cart"
    arg = lambda i, default=None: args[i] if len(args) > i else default  # noqa: E731

    async with CatalogClient() as client:
        if command == "browse":
            print_catalog(await StorefrontService(client).catalog_page(arg(1)))
            return 0
        if command == "product":
            page = await StorefrontService(client).product_page(arg(1))
            if not page:
                print("Product not found.")
                return 1
            print_product(page)
            return 0

        display = CartDisplay()
        cart = CartReconciler(CartStore(JsonFileStorage(CART_STORAGE_PATH)), client, view=display)
        cart.events.subscribe(print_badge)

        actions = {
            "cart": lambda: cart.refresh(),
            "add": lambda: cart.add(arg(1), arg(2, 1)),
            "set": lambda: cart.set_quantity(arg(1), arg(2, 0)),
            "inc": lambda: cart.increment(arg(1)),
            "dec": lambda: cart.decrement(arg(1)),
            "remove": lambda: cart.remove(arg(1)),
            "clear": lambda: cart.clear(),
        }
        if command not in actions:
            print(__doc__)
            return 2
        await actions[command]()
        print_cart(display)
        return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(run(sys.argv[1:])))
    except ShopError as e:
        print(f"[ERROR] {e.message}")
        sys.exit(1)
