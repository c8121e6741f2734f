"""
Catalog API Client
===================
Async httpx client used by the cart and the storefront to read live
catalog data. 404 → NotFoundError; anything else that isn't a usable JSON
answer → CatalogUnavailableError.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from config.settings import CATALOG_API_URL, CATALOG_TIMEOUT
from common.exceptions import NotFoundError, CatalogUnavailableError

logger = logging.getLogger("shop.catalog.client")


class CatalogClient:

    def __init__(
        self,
        base_url: str = CATALOG_API_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = CATALOG_TIMEOUT,
    ):
        self._client = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def list_categories(self) -> List[Dict[str, Any]]:
        return await self._get_json("/api/categories")

    async def list_products(self, catid: Optional[int] = None) -> List[Dict[str, Any]]:
        params = {"catid": catid} if catid else None
        return await self._get_json("/api/products", params=params)

    async def get_product(self, pid: int) -> Dict[str, Any]:
        return await self._get_json(f"/api/products/{pid}")

    async def _get_json(self, path: str, params: Optional[dict] = None):
        try:
            resp = await self._client.get(path, params=params)
        except httpx.HTTPError as e:
            logger.warning(f"Catalog request failed [{path}]: {e}")
            raise CatalogUnavailableError("Catalog is unavailable.") from e

        if resp.status_code == 404:
            raise NotFoundError(_detail(resp, "Not found."))
        if resp.is_error:
            logger.warning(f"Catalog answered {resp.status_code} [{path}]")
            raise CatalogUnavailableError(_detail(resp, "Request failed."))

        try:
            return resp.json()
        except ValueError as e:
            raise CatalogUnavailableError("Catalog returned invalid JSON.") from e


def _detail(resp: httpx.Response, default: str) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return default
    if isinstance(payload, dict) and payload.get("detail"):
        return str(payload["detail"])
    return default
