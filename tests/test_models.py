import pydantic
import pytest

from slideshow_service.models.domain import (
    JobStatus,
    ProductMedia,
    RenderOptions,
    TransitionType,
    VideoJob,
    ensure_transition,
    normalize_transition_type,
)


def test_render_option_defaults():
    options = RenderOptions()
    assert options.slide_duration == 3
    assert options.transition_duration == 0.5
    assert options.transition_type == TransitionType.FADE
    assert options.audio_url is None
    assert (options.fps, options.width, options.height) == (30, 1080, 1920)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("fade", TransitionType.FADE),
        ("Crossfade", TransitionType.FADE),
        ("none", TransitionType.CUT),
        ("CUT", TransitionType.CUT),
        ("slide-left", TransitionType.SLIDE_LEFT),
        ("slide_right", TransitionType.SLIDE_RIGHT),
        (" wipe-left ", TransitionType.WIPE_LEFT),
        ("wiperight", TransitionType.WIPE_RIGHT),
        ("dissolve", TransitionType.DISSOLVE),
        ("zoom", TransitionType.FADE),
        ("", TransitionType.FADE),
        (None, TransitionType.FADE),
    ],
)
def test_transition_names_are_normalized(raw, expected):
    assert normalize_transition_type(raw) == expected
    assert RenderOptions(transition_type=raw).transition_type == expected


def test_invalid_durations_fall_back_to_defaults():
    options = RenderOptions(slide_duration=0, transition_duration=-1)
    assert options.slide_duration == 3
    assert options.transition_duration == 0.5
    assert RenderOptions(slide_duration="abc").slide_duration == 3
    assert RenderOptions(slide_duration=float("inf")).slide_duration == 3
    assert RenderOptions(fps=29.6).fps == 30


def test_blank_audio_url_means_no_audio():
    assert RenderOptions(audio_url="   ").audio_url is None
    assert RenderOptions(audio_url=" https://ex.com/a.mp3 ").audio_url == "https://ex.com/a.mp3"


def test_render_options_are_frozen():
    options = RenderOptions()
    with pytest.raises(pydantic.ValidationError):
        options.slide_duration = 10


def test_job_identity_is_immutable():
    job = VideoJob(id="vid_1", owner_id="owner", category_id="cat", options=RenderOptions())
    assert job.status == JobStatus.PENDING
    assert job.progress == 0
    with pytest.raises(pydantic.ValidationError):
        job.owner_id = "someone-else"


def test_status_only_moves_forward():
    ensure_transition(JobStatus.PENDING, JobStatus.PROCESSING)
    ensure_transition(JobStatus.PROCESSING, JobStatus.COMPLETED)
    ensure_transition(JobStatus.PROCESSING, JobStatus.FAILED)
    for current, target in [
        (JobStatus.PENDING, JobStatus.COMPLETED),
        (JobStatus.PROCESSING, JobStatus.PENDING),
        (JobStatus.COMPLETED, JobStatus.FAILED),
        (JobStatus.FAILED, JobStatus.COMPLETED),
        (JobStatus.COMPLETED, JobStatus.PROCESSING),
    ]:
        with pytest.raises(ValueError, match="Invalid transition"):
            ensure_transition(current, target)


def test_product_media_prefers_expanded_media():
    assert ProductMedia(media_urls=["a", None, "b"], preview_url="p").slide_urls() == ["a", "b"]
    assert ProductMedia(preview_url="p", link="l").slide_urls() == ["p"]
    assert ProductMedia(link="l").slide_urls() == ["l"]
    assert ProductMedia().slide_urls() == []


def test_product_media_accepts_camel_case_records():
    product = ProductMedia.model_validate({"mediaUrls": None, "previewUrl": "https://ex.com/p.jpg"})
    assert product.slide_urls() == ["https://ex.com/p.jpg"]
