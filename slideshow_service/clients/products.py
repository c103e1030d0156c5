from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Optional

import httpx

from slideshow_service.models.domain import ProductMedia

# PostgREST error codes for a missing table or column
MISSING_RELATION_CODES = {"42P01", "42703", "PGRST205"}


class SupabaseProductCatalog:
    """Reads a category's products and their media through Supabase PostgREST."""

    def __init__(
        self,
        api_url: str | None,
        api_key: str | None,
        products_table: str = "products",
        media_table: str = "product_media",
        timeout: float = 30.0,
        logger: Optional[logging.Logger] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_url = (api_url or "").rstrip("/")
        self.api_key = (api_key or "").strip()
        self.products_table = products_table
        self.media_table = media_table
        self.timeout = timeout
        self.log = logger or logging.getLogger(__name__)
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_key)

    def list(self, owner_id: str | None, category_id: str | None) -> list[ProductMedia]:
        if not self.is_configured():
            return []
        params = {"select": "id,preview_url,link", "order": "created_at.desc"}
        if owner_id:
            params["owner_id"] = f"eq.{owner_id}"
        if category_id:
            params["category_id"] = f"eq.{category_id}"
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            rows = self._select(client, self.products_table, params)
            product_ids = [str(row["id"]) for row in rows if row.get("id") is not None]
            media = self._load_media(client, product_ids) if product_ids else {}

        products: list[ProductMedia] = []
        for row in rows:
            media_urls = media.get(str(row.get("id")), [])
            preview_url = media_urls[0] if media_urls else row.get("preview_url")
            products.append(
                ProductMedia(
                    media_urls=media_urls or ([row["preview_url"]] if row.get("preview_url") else []),
                    preview_url=preview_url,
                    link=row.get("link"),
                )
            )
        return products

    def _load_media(self, client: httpx.Client, product_ids: list[str]) -> dict[str, list[str]]:
        params = {
            "select": "product_id,preview_url,sort_order,created_at",
            "product_id": f"in.({','.join(product_ids)})",
            "order": "sort_order.asc,created_at.asc",
        }
        try:
            rows = self._select(client, self.media_table, params)
        except _MissingRelation:
            self.log.debug("product media table unavailable", extra={"table": self.media_table})
            return {}
        grouped: dict[str, list[str]] = defaultdict(list)
        for row in rows:
            if row.get("product_id") is not None and row.get("preview_url"):
                grouped[str(row["product_id"])].append(row["preview_url"])
        return grouped

    def _select(self, client: httpx.Client, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        response = client.get(
            f"{self.api_url}/rest/v1/{table}",
            params=params,
            headers={
                "apikey": self.api_key,
                "Authorization": f"Bearer {self.api_key}",
                "Accept": "application/json",
            },
        )
        if response.status_code >= 400:
            code = _error_code(response)
            if code in MISSING_RELATION_CODES:
                raise _MissingRelation(f"Supabase relation {table} is unavailable ({code})")
            raise ValueError(f"Supabase query on {table} failed: {response.status_code} {response.text}")
        return response.json() or []


class _MissingRelation(ValueError):
    pass


def _error_code(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    return body.get("code") if isinstance(body, dict) else None
