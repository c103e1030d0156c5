from __future__ import annotations

import logging
import os
from typing import Optional

import httpx

from slideshow_service.models.domain import PublishedVideo


class SupabaseVideoPublisher:
    def __init__(
        self,
        api_url: str | None,
        public_url: str | None,
        bucket: str,
        api_key: str | None,
        folder: str = "category-videos",
        timeout: float = 120.0,
        logger: Optional[logging.Logger] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_url = (api_url or "").rstrip("/")
        self.public_url_base = (public_url or "").rstrip("/")
        self.bucket = bucket.strip("/")
        self.api_key = (api_key or "").strip()
        self.folder = folder.strip("/")
        self.timeout = timeout
        self.log = logger or logging.getLogger(__name__)
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_key)

    def upload(self, local_path: str) -> PublishedVideo:
        if not self.is_configured():
            raise RuntimeError("Supabase publisher is not configured")
        object_path = self._normalize_path(f"{self.folder}/{os.path.basename(local_path)}")
        url = f"{self.api_url}/storage/v1/object/{self.bucket}/{object_path}"
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "video/mp4",
            "x-upsert": "true",
        }
        with open(local_path, "rb") as f, httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            response = client.post(url, headers=headers, content=f)
            if response.status_code not in (200, 201):
                raise ValueError(f"Supabase upload failed: {response.status_code} {response.text}")
        self.log.info("video published to supabase", extra={"bucket": self.bucket, "path": object_path})
        return PublishedVideo(url=self.public_url(object_path), remote_id=object_path)

    def public_url(self, path: str) -> str:
        base = self.public_url_base or f"{self.api_url.rstrip('/')}/storage/v1/object/public"
        joined_path = "/".join(part.strip("/") for part in (self.bucket, path))
        return f"{base.rstrip('/')}/{joined_path}"

    def _normalize_path(self, path: str) -> str:
        return path.strip().lstrip("/")
