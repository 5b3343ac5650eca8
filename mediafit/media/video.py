"""
Video Encoder: H.264 + AAC in MP4 through ffmpeg.

Knob: video bitrate in kbps (higher = larger output).
Ladder: source resolution, then 1080p -> 720p -> 480p -> 360p (only steps
below the source height). Each lower rung scales the bitrate ceiling by
the pixel-count ratio.

The audio share is fixed up front from the total bitrate budget; a very
small budget drops the audio track entirely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..config import EngineSettings
from ..engine.ladder import LadderRung
from ..engine.search import SearchPolicy
from ..errors import ProbeError
from ..models import CompressionRequest, ProbeResult
from . import tables
from .base import EncodeParams, ExternalEncoder, MediaPlan

logger = logging.getLogger(__name__)

VIDEO_SEARCH_POLICY = SearchPolicy(
    max_attempts=8,
    epsilon=20,
    narrow_step=50,
    flat_size_delta=1000,
    flat_jump=100,
    nudge_min=50,
    nudge_scale=50,
)


@dataclass(frozen=True)
class VideoParams(EncodeParams):
    video_bitrate_kbps: int
    width: int
    height: int
    audio_bitrate_kbps: int


class FfmpegVideoEncoder(ExternalEncoder):
    """Re-encode with libx264 at a fixed bitrate and output size."""

    media_type = "video"
    suffix = ".mp4"

    def build_command(self, params: VideoParams, output_path: Path) -> List[str]:
        settings = self.context.settings
        cmd = [
            settings.ffmpeg_path, "-y", "-hide_banner", "-loglevel", "error",
            "-i", str(self.context.input_path),
            "-c:v", "libx264",
            "-b:v", f"{params.video_bitrate_kbps}k",
            "-preset", settings.video_preset,
            "-vf", f"scale={params.width}:{params.height}",
            "-pix_fmt", "yuv420p",
        ]

        if params.audio_bitrate_kbps > 0:
            channels, sample_rate = tables.video_audio_layout(params.audio_bitrate_kbps)
            cmd += [
                "-c:a", "aac",
                "-b:a", f"{params.audio_bitrate_kbps}k",
                "-ac", str(channels),
                "-ar", str(sample_rate),
            ]
        else:
            cmd += ["-an"]

        cmd += ["-movflags", "+faststart", str(output_path)]
        return cmd


def plan_video(
    request: CompressionRequest,
    probe: Optional[ProbeResult],
    settings: EngineSettings,
) -> MediaPlan:
    if probe is None or not probe.duration_seconds or not probe.width or not probe.height:
        raise ProbeError("Video plan needs duration and resolution")

    target_mb = request.effective_target / tables.MB
    budget = tables.total_bitrate_budget(target_mb, probe.duration_seconds)
    audio_kbps = tables.video_audio_bitrate(budget) if probe.has_audio else 0
    video_target = tables.video_bitrate_target(budget, audio_kbps)
    source_bitrate = probe.bitrate_kbps or video_target
    src_w, src_h = probe.width, probe.height

    logger.info(
        f"Video budget: {budget} kbps total, {audio_kbps} kbps audio, {video_target} kbps video target"
    )

    rungs = []

    low, high = tables.source_rung_bounds(video_target, source_bitrate)
    rungs.append(
        _rung(
            f"{src_h}p", src_h, low, high, video_target,
            src_w - src_w % 2, src_h - src_h % 2, audio_kbps,
            resolution=probe.resolution,
        )
    )

    for height in tables.resolution_rungs(src_h):
        width = tables.scaled_width(src_w, src_h, height)
        low, high = tables.reduced_rung_bounds(video_target, source_bitrate, height, src_h)
        rungs.append(_rung(f"{height}p", height, low, high, video_target, width, height, audio_kbps))

    return MediaPlan(
        media_type="video",
        policy=VIDEO_SEARCH_POLICY,
        rungs=tuple(rungs),
        output_mime_type="video/mp4",
        details={
            "reduction_needed": round(request.reduction_needed, 4),
            "total_bitrate_kbps": budget,
            "audio_bitrate_kbps": audio_kbps,
            "video_bitrate_target_kbps": video_target,
            "audio_muted": probe.has_audio and audio_kbps == 0,
            "original_resolution": probe.resolution,
        },
    )


def _rung(
    name: str,
    rank: int,
    low: int,
    high: int,
    video_target: int,
    width: int,
    height: int,
    audio_kbps: int,
    resolution: Optional[str] = None,
) -> LadderRung:
    high = max(low, high)

    def build(bitrate: int) -> VideoParams:
        return VideoParams(
            video_bitrate_kbps=bitrate,
            width=width,
            height=height,
            audio_bitrate_kbps=audio_kbps,
        )

    return LadderRung(
        name=name,
        rank=rank,
        low=low,
        high=high,
        initial=max(low, min(high, video_target)),
        build_params=build,
        details={"resolution": resolution or f"{width}x{height}"},
    )
