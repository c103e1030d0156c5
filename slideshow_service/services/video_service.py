from __future__ import annotations

import logging
import os
import secrets
import time
from datetime import datetime
from typing import Any, Mapping, Optional, Protocol, Sequence, Union

from slideshow_service.clients.ffmpeg import FfmpegEncoder
from slideshow_service.clients.products import SupabaseProductCatalog
from slideshow_service.clients.s3_storage import S3VideoPublisher
from slideshow_service.clients.supabase_storage import SupabaseVideoPublisher
from slideshow_service.config import Settings
from slideshow_service.models.api import VideoJobRequest
from slideshow_service.models.domain import (
    JobStatus,
    ProductMedia,
    PublishedVideo,
    RenderOptions,
    VideoJob,
    ensure_transition,
)
from slideshow_service.queue.queue import BaseQueue
from slideshow_service.services.slideshow import SlideshowComposer
from slideshow_service.storage.repository import VideoJobRepository

PROGRESS_STARTED = 10
PROGRESS_RESOLVED = 20
PROGRESS_ENCODED = 80
PROGRESS_DONE = 100


class ProductCatalog(Protocol):
    def list(
        self, owner_id: str, category_id: str
    ) -> Sequence[Union[ProductMedia, Mapping[str, Any]]]: ...  # pragma: no cover


class VideoPublisher(Protocol):
    def upload(self, local_path: str) -> PublishedVideo: ...  # pragma: no cover


def build_publisher(settings: Settings, logger: Optional[logging.Logger] = None) -> Optional[VideoPublisher]:
    provider = (settings.publish_provider or "").strip().lower()
    if not provider:
        return None
    if provider == "s3":
        publisher = S3VideoPublisher(
            bucket=settings.s3_bucket,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            endpoint_url=settings.s3_endpoint_url,
            region_name=settings.s3_region,
            public_url=settings.s3_public_url,
            folder=settings.publish_folder,
            addressing_style=settings.s3_addressing_style,
            logger=logger,
        )
    elif provider == "supabase":
        publisher = SupabaseVideoPublisher(
            api_url=settings.supabase_url,
            public_url=settings.supabase_public_url,
            bucket=settings.supabase_bucket,
            api_key=settings.supabase_key,
            folder=settings.publish_folder,
            logger=logger,
        )
    else:
        raise ValueError(f"unknown publish provider: {settings.publish_provider}")
    if not publisher.is_configured():
        raise ValueError(f"publish provider {provider} is missing credentials")
    return publisher


class VideoJobService:
    """Accepts category video jobs and runs them one at a time.

    ``add`` only records the job and hands its id to the queue; the queue's
    single worker calls ``process_job``, which is the only code that mutates a
    job after creation.
    """

    def __init__(
        self,
        repo: VideoJobRepository,
        settings: Settings,
        catalog: Optional[ProductCatalog] = None,
        composer: Optional[SlideshowComposer] = None,
        publisher: Optional[VideoPublisher] = None,
    ) -> None:
        self.repo = repo
        self.queue: BaseQueue | None = None
        self.settings = settings
        self.log = logging.getLogger(__name__)
        self.catalog = catalog or SupabaseProductCatalog(
            api_url=settings.supabase_url,
            api_key=settings.supabase_key,
            products_table=settings.products_table,
            media_table=settings.product_media_table,
            logger=self.log,
        )
        self.composer = composer or SlideshowComposer(
            encoder=FfmpegEncoder(settings.ffmpeg_binary, logger=self.log),
            logger=self.log,
        )
        self.publisher = publisher if publisher is not None else build_publisher(settings, self.log)

    def bind_queue(self, queue: BaseQueue) -> None:
        self.queue = queue

    def render_options(self, payload: VideoJobRequest | None = None) -> RenderOptions:
        payload = payload or VideoJobRequest()
        return RenderOptions(
            audio_url=payload.audio_url,
            slide_duration=payload.slide_duration or self.settings.default_slide_duration,
            transition_duration=payload.transition_duration or self.settings.default_transition_duration,
            transition_type=payload.transition_type or self.settings.default_transition_type,
            fps=self.settings.video_fps,
            width=self.settings.video_width,
            height=self.settings.video_height,
        )

    def add(self, owner_id: str, category_id: str, options: RenderOptions | None = None) -> str:
        job = VideoJob(
            id=self._new_job_id(),
            owner_id=owner_id,
            category_id=category_id,
            options=options or self.render_options(),
        )
        self.repo.save(job)
        self.log.info(
            "video job enqueued",
            extra={"job_id": job.id, "owner_id": owner_id, "category_id": category_id},
        )
        if self.queue is not None:
            self.queue.enqueue(job.id)
        return job.id

    def get(self, job_id: str) -> VideoJob | None:
        return self.repo.get(job_id)

    def list_jobs(self) -> list[VideoJob]:
        jobs = self.repo.list()
        jobs.sort(key=lambda job: job.created_at, reverse=True)
        return jobs

    def process_job(self, job_id: str) -> None:
        job = self.repo.get(job_id)
        if not job:
            return
        if job.status != JobStatus.PENDING:
            self.log.warning(
                "skipping job that is no longer pending",
                extra={"job_id": job_id, "status": job.status.value},
            )
            return
        self._update_status(job, JobStatus.PROCESSING, progress=PROGRESS_STARTED)
        try:
            self._pipeline(job)
        except Exception as exc:
            self.log.exception("video job failed", extra={"job_id": job_id})
            self._update_status(job, JobStatus.FAILED, error=str(exc) or exc.__class__.__name__)

    def _pipeline(self, job: VideoJob) -> None:
        image_urls = self._resolve_slide_urls(job)
        self._set_progress(job, PROGRESS_RESOLVED)

        output_dir = os.path.abspath(self.settings.output_dir)
        os.makedirs(output_dir, exist_ok=True)
        output_path = os.path.join(output_dir, f"{job.id}.mp4")
        self.composer.compose(image_urls, job.options.audio_url, output_path, job.options)
        self._set_progress(job, PROGRESS_ENCODED)

        if self.publisher is not None:
            published = self.publisher.upload(output_path)
            job.video_url = published.url
            job.remote_id = published.remote_id
            try:
                os.remove(output_path)
            except OSError:
                self.log.warning("local video cleanup failed", extra={"job_id": job.id, "path": output_path})
        else:
            job.video_url = f"{self.settings.static_url_prefix.rstrip('/')}/{os.path.basename(output_path)}"
        self._update_status(job, JobStatus.COMPLETED, progress=PROGRESS_DONE)

    def _resolve_slide_urls(self, job: VideoJob) -> list[str]:
        products = self.catalog.list(job.owner_id, job.category_id)
        if not products:
            raise ValueError("No products in this category")
        image_urls: list[str] = []
        for item in products:
            product = item if isinstance(item, ProductMedia) else ProductMedia.model_validate(item)
            image_urls.extend(product.slide_urls())
        if not image_urls:
            raise ValueError("No product images found")
        self.log.debug("resolved slide urls", extra={"job_id": job.id, "slides": len(image_urls)})
        return image_urls

    def _set_progress(self, job: VideoJob, progress: int) -> None:
        job.progress = max(job.progress, min(PROGRESS_DONE, progress))
        job.updated_at = datetime.utcnow()
        self.repo.save(job)

    def _update_status(
        self,
        job: VideoJob,
        status: JobStatus,
        progress: int | None = None,
        error: str | None = None,
    ) -> None:
        ensure_transition(job.status, status)
        job.status = status
        if progress is not None:
            job.progress = max(job.progress, min(PROGRESS_DONE, progress))
        if error:
            job.error = error
        job.updated_at = datetime.utcnow()
        self.repo.save(job)
        self.log.info(
            "video job status changed",
            extra={"job_id": job.id, "status": status.value, "progress": job.progress},
        )

    def _new_job_id(self) -> str:
        return f"vid_{int(time.time() * 1000)}_{secrets.token_hex(4)}"
