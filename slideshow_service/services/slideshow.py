from __future__ import annotations

import logging
import os
import secrets
import shutil
import time
from typing import Callable, Optional, Sequence

import httpx

from slideshow_service.clients.downloader import (
    AUDIO_DOWNLOAD_OPTIONS,
    IMAGE_DOWNLOAD_OPTIONS,
    DownloadOptions,
    download_url,
)
from slideshow_service.clients.ffmpeg import VideoEncoder, run_encoder
from slideshow_service.models.domain import RenderOptions, TransitionType

# A transition may never reach the slide boundary it belongs to.
TRANSITION_EPSILON = 0.05
AUDIO_VOLUME = 0.5
AUDIO_SAMPLE_RATE = 44100
MIN_AUDIO_SECONDS = 0.1

Downloader = Callable[[str, str, DownloadOptions], str]


def effective_transition_duration(options: RenderOptions) -> float:
    if options.transition_type == TransitionType.CUT:
        return 0.0
    ceiling = max(0.0, options.slide_duration - TRANSITION_EPSILON)
    return max(0.0, min(options.transition_duration, ceiling))


def build_filter_graph(slide_count: int, options: RenderOptions, has_audio: bool) -> str:
    """Build the ``-filter_complex`` expression for ``slide_count`` image inputs.

    Every slide is normalized to the same frame size, rate, timebase and pixel
    format so that ``concat`` joins them frame-accurately. Directional and wipe
    styles are rendered with the same fade in/out pair as ``fade``; only ``cut``
    disables transitions.
    """
    width, height = options.width, options.height
    duration = options.slide_duration
    transition = effective_transition_duration(options)
    use_fades = slide_count > 1 and transition > 0
    transition_text = f"{transition:.3f}"
    fade_out_start = f"{max(0.0, duration - transition):.3f}"

    normalize = ",".join(
        [
            f"scale={width}:{height}:force_original_aspect_ratio=decrease",
            f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:color=black",
            f"fps={options.fps}",
            f"trim=duration={_seconds(duration)}",
            "settb=AVTB",
            "setpts=PTS-STARTPTS",
            "setsar=1/1",
            f"setdar={width}/{height}",
            "format=yuv420p",
        ]
    )
    parts: list[str] = []
    for idx in range(slide_count):
        chain = f"[{idx}:v]{normalize}"
        if use_fades:
            if idx > 0:
                chain += f",fade=t=in:st=0:d={transition_text}"
            if idx < slide_count - 1:
                chain += f",fade=t=out:st={fade_out_start}:d={transition_text}"
        parts.append(f"{chain}[s{idx}]")

    if slide_count == 1:
        parts.append("[s0]null[outv]")
    else:
        labels = "".join(f"[s{idx}]" for idx in range(slide_count))
        parts.append(f"{labels}concat=n={slide_count}:v=1:a=0[outv]")

    if has_audio:
        total = max(MIN_AUDIO_SECONDS, slide_count * duration)
        # plain apad then atrim: the track is padded past the video and cut to its exact length
        parts.append(
            f"[{slide_count}:a]aformat=sample_rates={AUDIO_SAMPLE_RATE}:channel_layouts=stereo,"
            f"volume={AUDIO_VOLUME},apad,atrim=0:{total:.3f},asetpts=PTS-STARTPTS[outa]"
        )
    return ";".join(parts)


def build_ffmpeg_args(
    image_paths: Sequence[str],
    audio_path: Optional[str],
    output_path: str,
    options: RenderOptions,
) -> list[str]:
    args = ["-y"]
    for path in image_paths:
        args += ["-loop", "1", "-t", _seconds(options.slide_duration), "-i", path]
    if audio_path:
        args += ["-i", audio_path]
    args += ["-filter_complex", build_filter_graph(len(image_paths), options, bool(audio_path))]
    if audio_path:
        args += ["-map", "[outv]", "-map", "[outa]"]
    else:
        args += ["-map", "[outv]", "-an"]
    args += ["-c:v", "libx264"]
    if audio_path:
        args += ["-c:a", "aac", "-b:a", "192k", "-ar", str(AUDIO_SAMPLE_RATE), "-ac", "2", "-shortest"]
    args += [
        "-preset",
        "medium",
        "-crf",
        "23",
        "-pix_fmt",
        "yuv420p",
        "-movflags",
        "+faststart",
        output_path,
    ]
    return args


class SlideshowComposer:
    def __init__(
        self,
        encoder: VideoEncoder,
        downloader: Downloader = download_url,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.encoder = encoder
        self.downloader = downloader
        self.log = logger or logging.getLogger(__name__)

    def compose(
        self,
        image_urls: Sequence[Optional[str]],
        audio_url: Optional[str],
        output_path: Optional[str],
        options: Optional[RenderOptions] = None,
    ) -> str:
        if not image_urls:
            raise ValueError("At least one image URL is required")
        if not output_path:
            raise ValueError("outputPath is required")
        options = options or RenderOptions()

        output_dir = os.path.dirname(os.path.abspath(output_path))
        scratch_dir = os.path.join(output_dir, f"_tmp_{int(time.time() * 1000)}_{secrets.token_hex(3)}")
        os.makedirs(scratch_dir, exist_ok=True)
        try:
            image_paths = self._download_images(image_urls, scratch_dir)
            if not image_paths:
                raise ValueError("No valid images could be downloaded")
            audio_path = None
            if audio_url:
                audio_path = os.path.join(scratch_dir, "audio.mp3")
                self.downloader(audio_url, audio_path, AUDIO_DOWNLOAD_OPTIONS)

            self.log.info(
                "encoding slideshow",
                extra={
                    "slides": len(image_paths),
                    "has_audio": bool(audio_path),
                    "slide_duration": options.slide_duration,
                    "transition": options.transition_type.value,
                    "output_path": output_path,
                },
            )
            args = build_ffmpeg_args(image_paths, audio_path, output_path, options)
            run_encoder(self.encoder, args)
            return output_path
        finally:
            shutil.rmtree(scratch_dir, ignore_errors=True)

    def _download_images(self, image_urls: Sequence[Optional[str]], scratch_dir: str) -> list[str]:
        paths: list[str] = []
        for idx, url in enumerate(image_urls):
            if not url or not isinstance(url, str):
                continue
            dest = os.path.join(scratch_dir, f"img_{idx:03d}{_extension(url)}")
            self.downloader(url, dest, IMAGE_DOWNLOAD_OPTIONS)
            paths.append(dest)
        return paths


def _extension(url: str, default: str = ".jpg") -> str:
    try:
        path = httpx.URL(url).path
    except httpx.InvalidURL:
        return default
    return os.path.splitext(path)[1] or default


def _seconds(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".")
