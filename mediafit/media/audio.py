"""
Audio Encoder: Re-encode audio in its own codec family through ffmpeg.

Knob: bitrate in kbps, never below 32 (higher = larger output).
Ladder: source channel layout -> mono 22.05 kHz -> mono with leading
silence trimmed. Heavy reductions trim silence from the first rung on,
and rungs that would repeat an earlier one are dropped. FLAC and PCM
ignore the bitrate, so their rungs are a single trial each.
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
from .base import EncodeContext, EncodeParams, ExternalEncoder, MediaPlan

logger = logging.getLogger(__name__)

AUDIO_SEARCH_POLICY = SearchPolicy(
    max_attempts=8,
    epsilon=8,
    narrow_step=16,
    flat_size_delta=1,
    flat_jump=32,
    nudge_min=8,
    nudge_scale=16,
)

SILENCE_FILTER = "silenceremove=start_periods=1:start_threshold=-50dB:detection=peak"
FLAC_COMPRESSION_LEVEL = 12


@dataclass(frozen=True)
class AudioParams(EncodeParams):
    bitrate_kbps: int
    channels: int
    sample_rate: int
    trim_silence: bool = False


class FfmpegAudioEncoder(ExternalEncoder):
    """Re-encode with the encoder matching the probed codec."""

    media_type = "audio"

    def __init__(self, context: EncodeContext):
        super().__init__(context)
        codec_name = context.probe.codec_name if context.probe else ""
        self.codec, self.suffix, _ = tables.audio_codec_for(codec_name)

    def build_command(self, params: AudioParams, output_path: Path) -> List[str]:
        cmd = [
            self.context.settings.ffmpeg_path, "-y", "-hide_banner", "-loglevel", "error",
            "-i", str(self.context.input_path),
            "-vn",
            "-map_metadata", "0",
            "-c:a", self.codec,
        ]

        if params.trim_silence:
            cmd += ["-af", SILENCE_FILTER]

        if self.codec == "libmp3lame":
            cmd += ["-q:a", str(tables.mp3_qscale(params.bitrate_kbps))]
        elif self.codec == "flac":
            cmd += ["-compression_level", str(FLAC_COMPRESSION_LEVEL)]
        elif self.codec not in tables.LOSSLESS_AUDIO_ENCODERS:
            cmd += ["-b:a", f"{params.bitrate_kbps}k"]

        if params.channels:
            cmd += ["-ac", str(params.channels)]
        if params.sample_rate:
            cmd += ["-ar", str(params.sample_rate)]

        if self.suffix == ".m4a":
            cmd += ["-movflags", "+faststart"]

        cmd.append(str(output_path))
        return cmd


def plan_audio(
    request: CompressionRequest,
    probe: Optional[ProbeResult],
    settings: EngineSettings,
) -> MediaPlan:
    if probe is None or not probe.bitrate_kbps or not probe.duration_seconds:
        raise ProbeError("Audio plan needs bitrate and duration")

    reduction = request.reduction_needed
    source_kbps = probe.bitrate_kbps
    initial = tables.audio_initial_bitrate(source_kbps, request.effective_target, request.original_size)
    low, high = tables.MIN_AUDIO_BITRATE, max(tables.MIN_AUDIO_BITRATE, source_kbps)
    heavy = tables.should_trim_silence(reduction)
    codec, _, output_mime = tables.audio_codec_for(probe.codec_name or "")
    lossless = codec in tables.LOSSLESS_AUDIO_ENCODERS

    if source_kbps < tables.MIN_AUDIO_BITRATE:
        logger.info(
            f"Source is {source_kbps} kbps, below the {tables.MIN_AUDIO_BITRATE} kbps floor; "
            f"searching at the floor only"
        )

    candidates = [
        ("source layout", None, heavy),
        ("mono", (1, 22050), heavy),
        ("mono, silence trimmed", (1, 22050), True),
    ]

    rungs = []
    seen = set()
    for name, layout, trim in candidates:
        key = (layout, trim)
        if key in seen:
            continue
        seen.add(key)
        if lossless:
            # Bitrate only selects the channel layout here: one trial per rung.
            point = high if layout is None else tables.MIN_AUDIO_BITRATE
            rung_bounds = (point, point, point)
        else:
            rung_bounds = (low, high, initial)
        rungs.append(_rung(name, 3 - len(rungs), *rung_bounds, layout, trim))

    return MediaPlan(
        media_type="audio",
        policy=AUDIO_SEARCH_POLICY,
        rungs=tuple(rungs),
        output_mime_type=output_mime,
        details={
            "reduction_needed": round(reduction, 4),
            "source_bitrate_kbps": source_kbps,
            "codec": codec,
            "lossless": lossless,
            "trim_silence": heavy,
        },
    )


def _rung(name, rank, low, high, initial, layout, trim) -> LadderRung:
    def build(bitrate: int) -> AudioParams:
        channels, sample_rate = layout or tables.audio_layout(bitrate)
        return AudioParams(
            bitrate_kbps=bitrate,
            channels=channels,
            sample_rate=sample_rate,
            trim_silence=trim,
        )

    details = {"trim_silence": trim}
    if layout:
        details["channels"], details["sample_rate"] = layout

    return LadderRung(
        name=name,
        rank=rank,
        low=low,
        high=high,
        initial=initial,
        build_params=build,
        details=details,
    )
