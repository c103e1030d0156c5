from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

import httpx

USER_AGENT = "SlideshowService/1.0"

T = TypeVar("T")

log = logging.getLogger(__name__)


class DownloadError(RuntimeError):
    pass


@dataclass(frozen=True)
class DownloadOptions:
    timeout_ms: int = 30_000
    max_redirects: int = 5
    retries: int = 0
    retry_delay_ms: int = 500


# Audio files are larger and hosted less reliably than product images.
IMAGE_DOWNLOAD_OPTIONS = DownloadOptions(timeout_ms=60_000, max_redirects=5, retries=1, retry_delay_ms=800)
AUDIO_DOWNLOAD_OPTIONS = DownloadOptions(timeout_ms=150_000, max_redirects=6, retries=2, retry_delay_ms=1_200)


class RetryPolicy:
    """Runs an operation up to ``retries + 1`` times with exponential backoff."""

    def __init__(
        self,
        retries: int = 0,
        base_delay: float = 0.5,
        multiplier: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        retry_on: tuple[type[BaseException], ...] = (DownloadError, httpx.HTTPError, OSError),
    ) -> None:
        self.retries = max(0, int(retries))
        self.base_delay = max(0.0, base_delay)
        self.multiplier = multiplier
        self.retry_on = retry_on
        self._sleep = sleep

    @classmethod
    def from_options(cls, options: DownloadOptions, sleep: Callable[[float], None] = time.sleep) -> "RetryPolicy":
        return cls(retries=options.retries, base_delay=options.retry_delay_ms / 1000, sleep=sleep)

    @property
    def attempts(self) -> int:
        return self.retries + 1

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (self.multiplier ** attempt)

    def call(self, operation: Callable[[], T], description: str = "operation") -> T:
        last_error: BaseException | None = None
        for attempt in range(self.attempts):
            try:
                return operation()
            except self.retry_on as exc:
                last_error = exc
                if attempt + 1 >= self.attempts:
                    break
                delay = self.delay_for(attempt)
                log.warning(
                    "%s failed, retrying",
                    description,
                    extra={"attempt": attempt + 1, "delay_seconds": delay, "error": str(exc)},
                )
                self._sleep(delay)
        noun = "attempt" if self.attempts == 1 else "attempts"
        raise DownloadError(f"{last_error} (after {self.attempts} {noun})") from last_error


def download_url(
    url: str,
    dest_path: str,
    options: DownloadOptions = DownloadOptions(),
    *,
    transport: Optional[httpx.BaseTransport] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Download ``url`` into ``dest_path`` and return the path.

    Every attempt starts from scratch with a fresh connection and a fresh
    redirect budget. On failure no partial file is left behind.
    """
    _ensure_http_url(url)
    policy = RetryPolicy.from_options(options, sleep=sleep)
    return policy.call(
        lambda: _download_once(url, dest_path, options, transport),
        description=f"download {url}",
    )


def _ensure_http_url(url: str) -> None:
    try:
        scheme = httpx.URL(url).scheme
    except (httpx.InvalidURL, TypeError) as exc:
        raise DownloadError(f"Invalid URL: {url!r}") from exc
    if scheme not in ("http", "https"):
        raise DownloadError(f"Unsupported URL scheme: {scheme or 'none'}")


def _download_once(
    url: str,
    dest_path: str,
    options: DownloadOptions,
    transport: Optional[httpx.BaseTransport],
) -> str:
    client = httpx.Client(
        timeout=options.timeout_ms / 1000,
        follow_redirects=True,
        max_redirects=options.max_redirects,
        headers={"User-Agent": USER_AGENT},
        transport=transport,
    )
    try:
        with client, client.stream("GET", url) as resp:
            if not resp.is_success:
                raise DownloadError(f"HTTP {resp.status_code}")
            _write_stream(resp, dest_path)
    except httpx.TooManyRedirects as exc:
        raise DownloadError(f"Too many redirects (max {options.max_redirects})") from exc
    except httpx.TimeoutException as exc:
        raise DownloadError("Download timeout") from exc
    except httpx.HTTPError as exc:
        raise DownloadError(f"Request failed: {exc}") from exc
    return dest_path


def _write_stream(resp: httpx.Response, dest_path: str) -> None:
    try:
        with open(dest_path, "wb") as f:
            for chunk in resp.iter_bytes():
                if chunk:
                    f.write(chunk)
    except OSError as exc:
        _remove_partial(dest_path)
        raise DownloadError(f"Failed to write {dest_path}: {exc}") from exc
    except httpx.HTTPError:
        _remove_partial(dest_path)
        raise


def _remove_partial(path: str) -> None:
    try:
        os.remove(path)
    except OSError:
        pass
