"""
Shop Module - Service Layer
==============================
Storefront view models built from the catalog API:
category navigation, product grid and product detail.
"""

import logging
from typing import List, Optional

from common.exceptions import ShopError, NotFoundError
from common.helpers import to_positive_int, format_money
from modules.catalog.client import CatalogClient

logger = logging.getLogger("shop.storefront")

ALL_PRODUCTS_LABEL = "Popular Picks"
NO_DESCRIPTION = "No description."
EMPTY_GRID_MESSAGE = "No products in this category yet."
UNAVAILABLE_MESSAGE = "Unable to load products right now."


class StorefrontService:

    def __init__(self, client: CatalogClient):
        self.client = client

    async def catalog_page(self, catid_raw=None) -> dict:
        """
        Category page context.

        Returns:
            {"categories": [{name, href, active}], "breadcrumb": str,
             "products": [card], "message": Optional[str]}
        """
        active = to_positive_int(catid_raw) if catid_raw else None

        try:
            categories = await self.client.list_categories()
        except ShopError as e:
            logger.warning(f"Category list failed: {e}")
            categories = []

        try:
            products = await self.client.list_products(active)
            message = None if products else EMPTY_GRID_MESSAGE
        except ShopError as e:
            logger.warning(f"Product list failed: {e}")
            products, message = [], UNAVAILABLE_MESSAGE

        return {
            "categories": self._category_links(categories, active),
            "breadcrumb": self._breadcrumb(categories, active),
            "products": [self._product_card(p) for p in products],
            "message": message,
        }

    async def product_page(self, pid_raw) -> Optional[dict]:
        """Product detail context, or None when the product doesn't exist."""
        pid = to_positive_int(pid_raw)
        if not pid:
            return None
        try:
            p = await self.client.get_product(pid)
        except NotFoundError:
            return None

        return {
            "pid": p.get("pid"),
            "name": p.get("name", ""),
            "category": p.get("category_name") or "",
            "category_href": f"/?catid={p.get('catid')}" if p.get("catid") else "/",
            "sku": f"P00{p.get('pid')}",
            "price_text": format_money(p.get("price")),
            "description": p.get("description") or NO_DESCRIPTION,
            "image": p.get("image_path") or p.get("thumb_path") or "",
            "thumb": p.get("thumb_path") or p.get("image_path") or "",
        }

    # ==========================================
    # Private helpers
    # ==========================================

    def _category_links(self, categories: List[dict], active: Optional[int]) -> List[dict]:
        links = [{"name": ALL_PRODUCTS_LABEL, "href": "/", "active": not active}]
        for c in categories:
            links.append({
                "name": c.get("name", ""),
                "href": f"/?catid={c.get('catid')}",
                "active": active is not None and c.get("catid") == active,
            })
        return links

    def _breadcrumb(self, categories: List[dict], active: Optional[int]) -> str:
        if not active:
            return ALL_PRODUCTS_LABEL
        for c in categories:
            if c.get("catid") == active:
                return c.get("name") or ALL_PRODUCTS_LABEL
        return ALL_PRODUCTS_LABEL

    def _product_card(self, p: dict) -> dict:
        return {
            "pid": p.get("pid"),
            "name": p.get("name", ""),
            "price_text": format_money(p.get("price")),
            "description": p.get("description") or NO_DESCRIPTION,
            "image": p.get("thumb_path") or p.get("image_path") or "",
            "href": f"/product?pid={p.get('pid')}",
        }
