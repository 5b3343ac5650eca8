"""
Parameter Ladder Tables: Initial guesses and fallback steps per media type.

Every function here is pure: (reduction needed, file size, probe numbers)
in, parameter values out. The search engine never hard-codes thresholds;
it asks these tables.

Reduction needed is ``1 - target / original``, so 0.75 means "shrink to a
quarter of the current size".
"""

from __future__ import annotations

import math
from typing import List, Tuple

MB = 1024 * 1024


def reduction_needed(original_size: int, target: int) -> float:
    """Fraction of the original that has to go to reach ``target``."""
    if original_size <= 0:
        return 0.0
    return 1 - (target / original_size)


# ── Image ──────────────────────────────────────────────────────────

IMAGE_QUALITY_MIN = 1
IMAGE_QUALITY_MAX = 100

# Highest matching bucket wins
_IMAGE_QUALITY_BUCKETS = (
    (0.75, 20),
    (0.60, 35),
    (0.45, 50),
    (0.30, 65),
)
_IMAGE_QUALITY_DEFAULT = 80

IMAGE_FORMATS = {
    "image/jpeg": "jpeg",
    "image/jpg": "jpeg",
    "image/pjpeg": "jpeg",
    "image/png": "png",
    "image/webp": "webp",
    "image/avif": "avif",
    "image/tiff": "tiff",
}
IMAGE_FALLBACK_FORMAT = "jpeg"

IMAGE_FORMAT_MIMES = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "avif": "image/avif",
    "tiff": "image/tiff",
}


def image_initial_quality(reduction: float, file_size_mb: float) -> int:
    """First quality to try for a still image."""
    quality = _IMAGE_QUALITY_DEFAULT
    for threshold, value in _IMAGE_QUALITY_BUCKETS:
        if reduction >= threshold:
            quality = value
            break

    if reduction >= 0.50:
        if file_size_mb > 20:
            quality -= 10
        elif file_size_mb > 10:
            quality -= 5

    return max(IMAGE_QUALITY_MIN, quality)


def image_format_for(mime_type: str) -> str:
    """Output format for an image MIME type. Unknown types re-encode as JPEG."""
    return IMAGE_FORMATS.get(mime_type.lower(), IMAGE_FALLBACK_FORMAT)


# ── GIF ────────────────────────────────────────────────────────────

GIF_LOSSY_MIN = 30
GIF_LOSSY_MAX = 2000
GIF_COLOR_STEPS = (256, 128, 64, 32)
GIF_ACCEPT_FIRST_VALID_REDUCTION = 0.60

_GIF_BASE_LOSSY_BUCKETS = (
    (0.75, 200),
    (0.60, 160),
    (0.45, 130),
    (0.30, 100),
)
_GIF_BASE_LOSSY_DEFAULT = 70


def gif_base_lossy(reduction: float) -> int:
    for threshold, value in _GIF_BASE_LOSSY_BUCKETS:
        if reduction >= threshold:
            return value
    return _GIF_BASE_LOSSY_DEFAULT


def gif_size_multiplier(reduction: float, file_size_mb: float) -> float:
    """
    Scale factor for the lossy guess.

    Large GIFs need disproportionately more lossiness to hit the same
    ratio, and the effect grows with the reduction asked for.
    """
    if file_size_mb > 30:
        if reduction >= 0.60:
            return 3.5
        if reduction >= 0.40:
            return 2.2
        return 1.5
    if file_size_mb > 20:
        if reduction >= 0.60:
            return 2.5
        if reduction >= 0.40:
            return 1.8
        return 1.3
    if file_size_mb > 10:
        return 1.8 if reduction >= 0.60 else 1.3
    if file_size_mb > 5:
        return 1.2
    return 1.0


def gif_initial_lossy(reduction: float, file_size_mb: float) -> int:
    lossy = round(gif_base_lossy(reduction) * gif_size_multiplier(reduction, file_size_mb))
    return min(GIF_LOSSY_MAX, lossy)


def gif_starting_colors(reduction: float, file_size_mb: float) -> int:
    if reduction >= 0.95 or (reduction >= 0.90 and file_size_mb > 100):
        return 32
    if reduction >= 0.90 or (reduction >= 0.85 and file_size_mb > 50):
        return 64
    if reduction >= 0.70 or file_size_mb > 30:
        return 128
    return 256


def gif_color_rungs(start_colors: int) -> List[int]:
    """Palette sizes to try, best first, starting at ``start_colors``."""
    return [c for c in GIF_COLOR_STEPS if c <= start_colors]


# ── Video ──────────────────────────────────────────────────────────

VIDEO_MIN_BITRATE = 8
RESOLUTION_STEPS = (1080, 720, 480, 360)


def total_bitrate_budget(target_mb: float, duration_seconds: float) -> int:
    """Whole-file bitrate (kbps) that lands on ``target_mb`` for this duration."""
    return math.floor(target_mb * 8 * 1024 / duration_seconds)


def video_audio_bitrate(budget_kbps: int) -> int:
    """Audio share of the budget. 0 means drop the audio track."""
    if budget_kbps < 40:
        return 0
    if budget_kbps < 80:
        return 24
    return min(32, math.floor(budget_kbps * 0.25))


def video_bitrate_target(budget_kbps: int, audio_kbps: int) -> int:
    return max(VIDEO_MIN_BITRATE, budget_kbps - audio_kbps)


def video_audio_layout(audio_kbps: int) -> Tuple[int, int]:
    """(channels, sample rate) for the audio track at this bitrate."""
    if audio_kbps <= 24:
        return 1, 22050
    return 2, 44100


def resolution_rungs(source_height: int) -> List[int]:
    """Standard heights strictly below the source height, largest first."""
    return [h for h in RESOLUTION_STEPS if h < source_height]


def scaled_width(source_width: int, source_height: int, height: int) -> int:
    """Width keeping the aspect ratio at ``height``, rounded down to even."""
    width = math.floor(source_width * height / source_height)
    return max(2, width - (width % 2))


def source_rung_bounds(video_target: int, source_bitrate: int) -> Tuple[int, int]:
    return max(VIDEO_MIN_BITRATE, math.floor(video_target * 0.5)), source_bitrate


def reduced_rung_bounds(
    video_target: int, source_bitrate: int, height: int, source_height: int
) -> Tuple[int, int]:
    """Bitrate bounds at a lower resolution, scaled by the pixel-count ratio."""
    low = max(VIDEO_MIN_BITRATE, math.floor(video_target * 0.7))
    high = math.floor(source_bitrate * (height / source_height) ** 2)
    return low, high


# ── Audio ──────────────────────────────────────────────────────────

MIN_AUDIO_BITRATE = 32
AUDIO_TRIM_SILENCE_REDUCTION = 0.50

# probed codec -> (ffmpeg encoder, output extension, output MIME)
AUDIO_CODECS = {
    "mp3": ("libmp3lame", ".mp3", "audio/mpeg"),
    "mp2": ("libmp3lame", ".mp3", "audio/mpeg"),
    "mp1": ("libmp3lame", ".mp3", "audio/mpeg"),
    "aac": ("aac", ".aac", "audio/aac"),
    "vorbis": ("libvorbis", ".ogg", "audio/ogg"),
    "opus": ("libopus", ".opus", "audio/opus"),
    "flac": ("flac", ".flac", "audio/flac"),
    "wav": ("pcm_s16le", ".wav", "audio/wav"),
}
AUDIO_FALLBACK_CODEC = ("aac", ".m4a", "audio/mp4")
LOSSLESS_AUDIO_ENCODERS = ("flac", "pcm_s16le")

_MP3_QSCALE = (
    (64, 7),
    (96, 5),
    (128, 4),
    (160, 2),
)


def audio_initial_bitrate(source_kbps: int, target: int, original_size: int) -> int:
    """Source bitrate scaled by the size ratio, kept between the floor and the source."""
    start = math.floor(source_kbps * (target / original_size))
    return max(MIN_AUDIO_BITRATE, min(source_kbps, start))


def audio_codec_for(codec_name: str) -> Tuple[str, str, str]:
    name = (codec_name or "").lower()
    if name.startswith("pcm_"):
        name = "wav"
    return AUDIO_CODECS.get(name, AUDIO_FALLBACK_CODEC)


def audio_layout(bitrate_kbps: int) -> Tuple[int, int]:
    if bitrate_kbps <= 32:
        return 1, 22050
    return 2, 44100


def mp3_qscale(bitrate_kbps: int) -> int:
    """VBR quality index for libmp3lame (0 best, 9 worst)."""
    for ceiling, q in _MP3_QSCALE:
        if bitrate_kbps <= ceiling:
            return q
    return 0


def should_trim_silence(reduction: float) -> bool:
    return reduction >= AUDIO_TRIM_SILENCE_REDUCTION
