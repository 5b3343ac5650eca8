"""
GIF Encoder: Lossy GIF compression through gifsicle.

Knob: ``--lossy`` level 30-2000 (higher = smaller output).
Ladder: palette size 256 -> 128 -> 64 -> 32, starting from the rung the
reduction and file size predict.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional

from ..config import EngineSettings
from ..engine.ladder import LadderRung
from ..engine.search import SearchPolicy
from ..models import CompressionRequest, ProbeResult
from . import tables
from .base import EncodeParams, ExternalEncoder, MediaPlan

logger = logging.getLogger(__name__)

GIF_SEARCH_POLICY = SearchPolicy(
    max_attempts=4,
    epsilon=1,
    inverse=True,
    narrow_step=5,
    flat_size_delta=1,
    flat_jump=500,
    nudge_min=5,
    nudge_scale=10,
)

GIFSICLE_OPTIMIZE_LEVEL = 3


@dataclass(frozen=True)
class GifParams(EncodeParams):
    lossy: int
    colors: int


class GifsicleEncoder(ExternalEncoder):
    """Run gifsicle with a lossy level and palette size."""

    media_type = "gif"
    suffix = ".gif"

    def build_command(self, params: GifParams, output_path: Path) -> List[str]:
        return [
            self.context.settings.gifsicle_path,
            f"--lossy={params.lossy}",
            f"--colors={params.colors}",
            f"--optimize={GIFSICLE_OPTIMIZE_LEVEL}",
            str(self.context.input_path),
            "-o", str(output_path),
        ]


def plan_gif(
    request: CompressionRequest,
    probe: Optional[ProbeResult],
    settings: EngineSettings,
) -> MediaPlan:
    reduction = request.reduction_needed
    size_mb = request.file_size_mb
    initial = tables.gif_initial_lossy(reduction, size_mb)
    start_colors = tables.gif_starting_colors(reduction, size_mb)

    policy = GIF_SEARCH_POLICY
    if reduction >= tables.GIF_ACCEPT_FIRST_VALID_REDUCTION:
        # Heavy reduction: any fit is good enough, save the extra passes
        policy = replace(policy, accept_first_valid=True)

    rungs = []
    for colors in tables.gif_color_rungs(start_colors):

        def build(lossy: int, colors: int = colors) -> GifParams:
            return GifParams(lossy=lossy, colors=colors)

        rungs.append(
            LadderRung(
                name=f"{colors} colors",
                rank=colors,
                low=tables.GIF_LOSSY_MIN,
                high=tables.GIF_LOSSY_MAX,
                initial=initial,
                build_params=build,
                details={"colors": colors},
            )
        )

    logger.debug(
        f"GIF plan: reduction={reduction:.2f}, multiplier="
        f"{tables.gif_size_multiplier(reduction, size_mb)}, lossy={initial}, colors={start_colors}"
    )

    return MediaPlan(
        media_type="gif",
        policy=policy,
        rungs=tuple(rungs),
        output_mime_type="image/gif",
        details={
            "reduction_needed": round(reduction, 4),
            "size_multiplier": tables.gif_size_multiplier(reduction, size_mb),
            "starting_colors": start_colors,
            "original_resolution": probe.resolution if probe else None,
        },
    )
