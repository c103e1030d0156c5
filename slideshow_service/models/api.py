from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain import JobStatus, VideoJob


class VideoJobRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    audio_url: Optional[str] = Field(default=None, validation_alias="audio_url")
    slide_duration: Optional[float] = Field(default=None, gt=0, validation_alias="slide_duration")
    transition_duration: Optional[float] = Field(default=None, ge=0, validation_alias="transition_duration")
    transition_type: Optional[str] = Field(default=None, validation_alias="transition_type")

    @field_validator("audio_url")
    @classmethod
    def validate_audio_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        if not value.strip().lower().startswith(("http://", "https://")):
            raise ValueError("audio_url must be an http(s) URL")
        return value.strip()


class VideoJobSnapshot(BaseModel):
    """What pollers see: branch on ``status``, not on ``video_url``."""

    id: str
    status: JobStatus
    progress: int
    video_url: Optional[str]
    error: Optional[str]

    @classmethod
    def from_job(cls, job: VideoJob) -> "VideoJobSnapshot":
        return cls(
            id=job.id,
            status=job.status,
            progress=job.progress,
            video_url=job.video_url,
            error=job.error,
        )


class VideoJobResponse(BaseModel):
    job: VideoJobSnapshot


class VideoJobListResponse(BaseModel):
    items: List[VideoJobSnapshot]
