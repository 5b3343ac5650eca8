"""
Metadata Prober: Duration, bitrate, resolution and codecs of an input.

Video and audio are probed with ffprobe; still images and GIFs are read
with Pillow. A probe failure is fatal for the request: no search runs.
"""

from __future__ import annotations

import io
import json
import logging
import math
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from PIL import Image, UnidentifiedImageError

from ..config import EngineSettings
from ..errors import EncodeError, ProbeError
from ..models import CompressionRequest, ProbeResult
from .process import run_process

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 30  # seconds


def probe_media(
    path: Path,
    media_type: str,
    settings: EngineSettings,
    cancel_event: Optional[threading.Event] = None,
) -> ProbeResult:
    """
    Probe a video or audio file with ffprobe.

    Raises:
        ProbeError: ffprobe failed or required metadata is missing
    """
    cmd = [
        settings.ffprobe_path, "-v", "error",
        "-show_entries", "format=duration,size,bit_rate",
        "-show_entries", "stream=codec_name,codec_type,width,height,bit_rate",
        "-of", "json",
        str(path),
    ]

    try:
        result = run_process(cmd, timeout=PROBE_TIMEOUT, cancel_event=cancel_event)
    except EncodeError as e:
        raise ProbeError(f"ffprobe failed: {e}", path=str(path))

    if not result.ok:
        raise ProbeError(
            f"ffprobe failed (rc={result.returncode}): {result.stderr_tail()}",
            path=str(path),
        )

    try:
        payload = json.loads(result.stdout or b"{}")
    except json.JSONDecodeError as e:
        raise ProbeError(f"ffprobe returned invalid JSON: {e}", path=str(path))

    probe = parse_ffprobe(payload, media_type, path.stat().st_size, path=str(path))
    logger.info(
        f"Probed {media_type}: {probe.duration_seconds:.1f}s, {probe.bitrate_kbps} kbps, "
        f"codec={probe.codec_name}, resolution={probe.resolution}"
    )
    return probe


def parse_ffprobe(
    payload: Dict[str, Any],
    media_type: str,
    file_size: int,
    path: Optional[str] = None,
) -> ProbeResult:
    """Turn ffprobe JSON into a ProbeResult, checking what the media type needs."""
    fmt = payload.get("format") or {}
    streams = payload.get("streams") or []

    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio = next((s for s in streams if s.get("codec_type") == "audio"), None)

    duration = _as_float(fmt.get("duration"))
    if not duration or duration <= 0:
        raise ProbeError("Could not determine duration", path=path)

    if media_type == "video":
        if video is None:
            raise ProbeError("No video stream found", path=path)
        width, height = _as_int(video.get("width")), _as_int(video.get("height"))
        if not width or not height:
            raise ProbeError("Could not determine video resolution", path=path)
        primary = video
    else:
        if audio is None:
            raise ProbeError("No audio stream found", path=path)
        width = height = None
        primary = audio

    bit_rate = _as_float(fmt.get("bit_rate"))
    if bit_rate:
        bitrate_kbps = math.floor(bit_rate / 1000)
    else:
        bitrate_kbps = math.floor(file_size * 8 / 1000 / duration)
        logger.debug(f"No container bitrate, derived {bitrate_kbps} kbps from size")

    return ProbeResult(
        duration_seconds=duration,
        bitrate_kbps=max(1, bitrate_kbps),
        width=width,
        height=height,
        codec_name=primary.get("codec_name"),
        audio_codec_name=audio.get("codec_name") if audio else None,
        has_audio=audio is not None,
    )


def probe_image(data: bytes) -> ProbeResult:
    """Read dimensions and format of a still image or GIF with Pillow."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
            codec = (img.format or "").lower() or None
    except Image.DecompressionBombError as e:
        raise ProbeError(f"Image too large to decode: {e}")
    except (UnidentifiedImageError, OSError) as e:
        raise ProbeError(f"Cannot decode image: {e}")

    return ProbeResult(width=width, height=height, codec_name=codec)


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def probe_request(
    request: CompressionRequest,
    input_path: Path,
    settings: EngineSettings,
    cancel_event: Optional[threading.Event] = None,
) -> ProbeResult:
    """Probe whatever the request holds: ffprobe for video/audio, Pillow otherwise."""
    if request.media_type in ("video", "audio"):
        return probe_media(input_path, request.media_type, settings, cancel_event)
    return probe_image(request.data)
