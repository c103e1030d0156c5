from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationInfo, field_validator

DEFAULT_SLIDE_DURATION = 3.0
DEFAULT_TRANSITION_DURATION = 0.5
DEFAULT_FPS = 30
DEFAULT_WIDTH = 1080
DEFAULT_HEIGHT = 1920


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[JobStatus, tuple[JobStatus, ...]] = {
    JobStatus.PENDING: (JobStatus.PROCESSING,),
    JobStatus.PROCESSING: (JobStatus.COMPLETED, JobStatus.FAILED),
    JobStatus.COMPLETED: (),
    JobStatus.FAILED: (),
}


def ensure_transition(current: JobStatus, target: JobStatus) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, ()):
        raise ValueError(f"Invalid transition: {current.value} -> {target.value}")


class TransitionType(str, Enum):
    FADE = "fade"
    CUT = "cut"
    SLIDE_LEFT = "slideleft"
    SLIDE_RIGHT = "slideright"
    WIPE_LEFT = "wipeleft"
    WIPE_RIGHT = "wiperight"
    DISSOLVE = "dissolve"


TRANSITION_ALIASES: dict[str, TransitionType] = {
    "fade": TransitionType.FADE,
    "crossfade": TransitionType.FADE,
    "cut": TransitionType.CUT,
    "none": TransitionType.CUT,
    "slideleft": TransitionType.SLIDE_LEFT,
    "slide-left": TransitionType.SLIDE_LEFT,
    "slide_left": TransitionType.SLIDE_LEFT,
    "slideright": TransitionType.SLIDE_RIGHT,
    "slide-right": TransitionType.SLIDE_RIGHT,
    "slide_right": TransitionType.SLIDE_RIGHT,
    "wipeleft": TransitionType.WIPE_LEFT,
    "wipe-left": TransitionType.WIPE_LEFT,
    "wipe_left": TransitionType.WIPE_LEFT,
    "wiperight": TransitionType.WIPE_RIGHT,
    "wipe-right": TransitionType.WIPE_RIGHT,
    "wipe_right": TransitionType.WIPE_RIGHT,
    "dissolve": TransitionType.DISSOLVE,
}


def normalize_transition_type(value: Any) -> TransitionType:
    """Map free-form user input onto a known transition, falling back to fade."""
    if isinstance(value, TransitionType):
        return value
    raw = str(value or "").strip().lower()
    return TRANSITION_ALIASES.get(raw, TransitionType.FADE)


def positive_or_default(value: Any, fallback: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(number) or number <= 0:
        return fallback
    return number


class RenderOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    audio_url: Optional[str] = None
    slide_duration: float = DEFAULT_SLIDE_DURATION
    transition_duration: float = DEFAULT_TRANSITION_DURATION
    transition_type: TransitionType = TransitionType.FADE
    fps: int = DEFAULT_FPS
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT

    @field_validator("audio_url", mode="before")
    @classmethod
    def _blank_audio_is_absent(cls, value: Any) -> Optional[str]:
        if not isinstance(value, str):
            return None
        return value.strip() or None

    @field_validator("slide_duration", mode="before")
    @classmethod
    def _positive_slide_duration(cls, value: Any) -> float:
        return positive_or_default(value, DEFAULT_SLIDE_DURATION)

    @field_validator("transition_duration", mode="before")
    @classmethod
    def _positive_transition_duration(cls, value: Any) -> float:
        return positive_or_default(value, DEFAULT_TRANSITION_DURATION)

    @field_validator("transition_type", mode="before")
    @classmethod
    def _known_transition_type(cls, value: Any) -> TransitionType:
        return normalize_transition_type(value)

    @field_validator("fps", mode="before")
    @classmethod
    def _whole_fps(cls, value: Any) -> int:
        return max(1, round(positive_or_default(value, DEFAULT_FPS)))

    @field_validator("width", "height", mode="before")
    @classmethod
    def _positive_dimension(cls, value: Any, info: ValidationInfo) -> int:
        fallback = DEFAULT_WIDTH if info.field_name == "width" else DEFAULT_HEIGHT
        return int(positive_or_default(value, fallback))


class VideoJob(BaseModel):
    id: str = Field(frozen=True)
    owner_id: str = Field(frozen=True)
    category_id: str = Field(frozen=True)
    options: RenderOptions = Field(frozen=True)
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    video_url: Optional[str] = None
    remote_id: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class ProductMedia(BaseModel):
    """Media belonging to one product, as returned by the product catalog."""

    media_urls: List[Optional[str]] = Field(
        default_factory=list, validation_alias=AliasChoices("media_urls", "mediaUrls")
    )
    preview_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("preview_url", "previewUrl"))
    link: Optional[str] = None

    @field_validator("media_urls", mode="before")
    @classmethod
    def _media_urls_list(cls, value: Any) -> list:
        return list(value) if isinstance(value, (list, tuple)) else []

    def slide_urls(self) -> list[str]:
        urls = [url for url in self.media_urls if url]
        if urls:
            return urls
        fallback = self.preview_url or self.link
        return [fallback] if fallback else []


class PublishedVideo(BaseModel):
    url: str
    remote_id: str
