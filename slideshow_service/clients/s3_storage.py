from __future__ import annotations

import logging
import os
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from slideshow_service.models.domain import PublishedVideo


class S3VideoPublisher:
    """Uploads finished videos to an S3-compatible bucket."""

    def __init__(
        self,
        bucket: str,
        access_key: str | None,
        secret_key: str | None,
        endpoint_url: str | None = None,
        region_name: str | None = None,
        public_url: str | None = None,
        folder: str = "category-videos",
        addressing_style: str | None = None,
        logger: Optional[logging.Logger] = None,
        client=None,
    ) -> None:
        self.bucket = (bucket or "").strip()
        self.access_key = (access_key or "").strip()
        self.secret_key = (secret_key or "").strip()
        self.endpoint_url = (endpoint_url or "").rstrip("/") or None
        self.region_name = (region_name or "").strip() or None
        self.public_url_base = (public_url or "").rstrip("/")
        self.folder = self._normalize_path(folder)
        self.log = logger or logging.getLogger(__name__)
        self._client = client
        if self._client is None and self.is_configured():
            session = boto3.session.Session(
                aws_access_key_id=self.access_key,
                aws_secret_access_key=self.secret_key,
                region_name=self.region_name,
            )
            config = BotoConfig(
                s3={"addressing_style": (addressing_style or "virtual").lower()}
            )
            self._client = session.client("s3", endpoint_url=self.endpoint_url, config=config)

    def is_configured(self) -> bool:
        return bool(self.bucket and self.access_key and self.secret_key)

    def upload(self, local_path: str) -> PublishedVideo:
        if self._client is None:
            raise RuntimeError("S3 publisher is not configured")
        key = self._normalize_path(f"{self.folder}/{os.path.basename(local_path)}")
        try:
            self._client.upload_file(
                local_path,
                self.bucket,
                key,
                ExtraArgs={"ContentType": "video/mp4"},
            )
        except (BotoCoreError, ClientError) as exc:
            raise ValueError(f"S3 upload failed: {exc}") from exc
        url = self.public_url(key)
        self.log.info("video published to s3", extra={"bucket": self.bucket, "key": key})
        return PublishedVideo(url=url, remote_id=key)

    def public_url(self, path: str) -> str:
        clean = self._normalize_path(path)
        if self.public_url_base:
            return f"{self.public_url_base}/{clean}"
        if self.endpoint_url:
            return f"{self.endpoint_url}/{self.bucket}/{clean}"
        return f"/{self.bucket}/{clean}"

    def _normalize_path(self, path: str | None) -> str:
        if not path:
            return ""
        return "/".join(part for part in path.strip().split("/") if part)
