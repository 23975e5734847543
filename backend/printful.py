"""Printful API integration for print-area catalog lookups"""

import os
import logging
from typing import Optional

import httpx

from errors import CatalogLookupError

logger = logging.getLogger(__name__)


class PrintfulAPI:
    """Printful API client for printfile (print area) data"""

    BASE_URL = "https://api.printful.com"

    def __init__(
        self,
        api_token: Optional[str] = None,
        store_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        self.api_token = api_token or os.getenv("PRINTFUL_API_TOKEN", "")
        self.store_id = store_id or os.getenv("PRINTFUL_STORE_ID", "")
        self.timeout = timeout
        self._transport = transport
        self.headers = {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }
        if self.store_id:
            self.headers["X-PF-Store-Id"] = self.store_id

    @property
    def is_configured(self) -> bool:
        return bool(self.api_token)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport)

    async def get_printfiles(self, product_id: int, technique: Optional[str] = None) -> dict:
        """Get print areas and variant → placement → printfile mapping for a product.

        Raises CatalogLookupError when Printful is unreachable, answers with
        an error, or returns no result.
        """
        params = {"technique": technique} if technique else None
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.BASE_URL}/mockup-generator/printfiles/{product_id}",
                    headers=self.headers,
                    params=params,
                    timeout=self.timeout,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise CatalogLookupError(
                f"Printful printfiles lookup failed for product {product_id}: "
                f"HTTP {e.response.status_code}",
                product_id=product_id,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise CatalogLookupError(
                f"Printful printfiles lookup failed for product {product_id}: {e}",
                product_id=product_id,
            ) from e

        result = data.get("result") if isinstance(data, dict) else None
        if not isinstance(result, dict):
            raise CatalogLookupError(
                f"Printful returned no printfiles for product {product_id}",
                product_id=product_id,
            )
        return result
