from __future__ import annotations

import logging
import os

from fastapi import Depends, FastAPI, Header, HTTPException, status
from fastapi.staticfiles import StaticFiles

from slideshow_service.config import Settings, get_settings
from slideshow_service.models.api import (
    VideoJobListResponse,
    VideoJobRequest,
    VideoJobResponse,
    VideoJobSnapshot,
)
from slideshow_service.queue.queue import LocalQueue
from slideshow_service.services.video_service import VideoJobService
from slideshow_service.storage.repository import VideoJobRepository

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(title=get_settings().app_name)

_repo = VideoJobRepository()
_service: VideoJobService | None = None

_static_settings = get_settings()
os.makedirs(_static_settings.output_dir, exist_ok=True)
app.mount(
    _static_settings.static_url_prefix,
    StaticFiles(directory=_static_settings.output_dir),
    name="videos",
)


def require_user_id(x_user_id: str = Header(default=None, alias="X-User-ID")) -> str:
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-ID header required")
    return x_user_id


def get_video_service(settings: Settings = Depends(get_settings)) -> VideoJobService:
    global _service
    if _service is None:
        service = VideoJobService(repo=_repo, settings=settings)
        service.bind_queue(LocalQueue(processor=service.process_job))
        _service = service
    return _service


@app.post(
    "/categories/{category_id}/videos",
    response_model=VideoJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def create_category_video(
    category_id: str,
    payload: VideoJobRequest | None = None,
    owner_id: str = Depends(require_user_id),
    service: VideoJobService = Depends(get_video_service),
) -> VideoJobResponse:
    job_id = service.add(owner_id, category_id, service.render_options(payload))
    job = service.get(job_id)
    return VideoJobResponse(job=VideoJobSnapshot.from_job(job))


@app.get("/videos", response_model=VideoJobListResponse)
def list_videos(service: VideoJobService = Depends(get_video_service)) -> VideoJobListResponse:
    return VideoJobListResponse(items=[VideoJobSnapshot.from_job(job) for job in service.list_jobs()])


@app.get("/videos/{job_id}", response_model=VideoJobResponse)
def get_video(job_id: str, service: VideoJobService = Depends(get_video_service)) -> VideoJobResponse:
    job = service.get(job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video job not found")
    return VideoJobResponse(job=VideoJobSnapshot.from_job(job))
