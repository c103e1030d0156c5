from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

DIAGNOSTIC_TAIL = 1200


class EncoderError(RuntimeError):
    pass


@dataclass(frozen=True)
class EncoderResult:
    returncode: int
    stderr: str = ""


class VideoEncoder(Protocol):
    def run(self, args: Sequence[str]) -> EncoderResult: ...  # pragma: no cover


class FfmpegEncoder:
    """Runs the ffmpeg binary. There is no wall-clock limit on an encode."""

    def __init__(self, binary: str = "ffmpeg", logger: Optional[logging.Logger] = None) -> None:
        self.binary = binary
        self.log = logger or logging.getLogger(__name__)

    def run(self, args: Sequence[str]) -> EncoderResult:
        cmd = [self.binary, *args]
        self.log.debug("running ffmpeg", extra={"argc": len(cmd)})
        try:
            proc = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
                check=False,
            )
        except OSError as exc:
            raise EncoderError(f"FFmpeg could not be started: {exc}") from exc
        return EncoderResult(returncode=proc.returncode, stderr=proc.stderr or "")


def run_encoder(encoder: VideoEncoder, args: Sequence[str]) -> None:
    """Run ``encoder`` and raise with the diagnostic tails on a nonzero exit."""
    result = encoder.run(args)
    if result.returncode != 0:
        stderr_tail = result.stderr[-DIAGNOSTIC_TAIL:]
        args_tail = " ".join(args)[-DIAGNOSTIC_TAIL:]
        raise EncoderError(f"FFmpeg exited {result.returncode}: {stderr_tail}\nArgs: {args_tail}")
