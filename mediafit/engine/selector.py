"""
Result Selector: Turn ladder outcomes into a CompressionResult.

Preference order:
1. The largest trial within target, if it is meaningfully smaller than
   the original.
2. No trial within target: depends on ``on_unreachable``. ``best_effort``
   returns the smallest over-target trial with a warning, ``original``
   returns the input, ``fail`` raises TargetUnreachableError.
3. Anything that does not beat ``original_size * min_ratio`` is discarded
   in favor of the original bytes.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..errors import TargetUnreachableError
from ..models import CompressionRequest, CompressionResult
from .ladder import LadderOutcome, LadderRung
from .state import Trial

logger = logging.getLogger(__name__)

MB = 1024 * 1024


def _mb(size: int) -> str:
    return f"{size / MB:.2f} MB"


class ResultSelector:
    """Pick the result to return for one request."""

    def __init__(self, min_ratio: float, on_unreachable: str = "best_effort"):
        self.min_ratio = min_ratio
        self.on_unreachable = on_unreachable

    def select(
        self,
        request: CompressionRequest,
        ladder: LadderOutcome,
        output_mime_type: Optional[str] = None,
        plan_details: Optional[Mapping[str, Any]] = None,
    ) -> CompressionResult:
        details = dict(plan_details or {})
        threshold = request.original_size * self.min_ratio

        winner = ladder.winner
        if winner is not None:
            trial = winner.outcome.best
            if trial.size < threshold:
                return self._compressed(
                    request, ladder, winner.rung, trial, output_mime_type, details, target_reached=True
                )
            logger.info(
                f"Best result {trial.size} bytes saves less than {1 - self.min_ratio:.0%}; keeping original"
            )
            return self._original(
                request,
                ladder,
                details,
                warning="Compression saved too little to be worthwhile; returning the original file",
            )

        closest = ladder.closest_over
        target_text = _mb(request.target_size)

        if self.on_unreachable == "fail":
            raise TargetUnreachableError(
                f"Could not reach target {target_text}",
                best_size=closest[1].size if closest else None,
                rungs=list(ladder.rungs_tried),
            )

        if self.on_unreachable == "best_effort" and closest is not None:
            rung, trial = closest
            if trial.size < threshold:
                return self._compressed(
                    request,
                    ladder,
                    rung,
                    trial,
                    output_mime_type,
                    details,
                    target_reached=False,
                    extra_warning=f"Could not reach target {target_text}; best result is {_mb(trial.size)}",
                )

        return self._original(
            request,
            ladder,
            details,
            warning=f"Could not reach target {target_text}; returning the original file",
        )

    # ── Builders ────────────────────────────────────────────────────

    def _compressed(
        self,
        request: CompressionRequest,
        ladder: LadderOutcome,
        rung: LadderRung,
        trial: Trial,
        output_mime_type: Optional[str],
        details: Dict[str, Any],
        target_reached: bool,
        extra_warning: Optional[str] = None,
    ) -> CompressionResult:
        params = rung.build_params(trial.param)
        params_used = params.to_dict() if hasattr(params, "to_dict") else dict(params)
        params_used["rung"] = rung.name

        warnings: List[str] = []
        if extra_warning:
            warnings.append(extra_warning)

        video_fields: Dict[str, Any] = {}
        if request.media_type == "video":
            original_resolution = details.get("original_resolution")
            final_resolution = rung.details.get("resolution", original_resolution)
            resolution_reduced = final_resolution != original_resolution
            audio_muted = bool(details.get("audio_muted", False))
            if resolution_reduced:
                warnings.append(f"Resolution reduced from {original_resolution} to {final_resolution}")
            if audio_muted:
                warnings.append("Audio removed to fit the target size")
            video_fields = {
                "audio_muted": audio_muted,
                "resolution_reduced": resolution_reduced,
                "original_resolution": original_resolution,
                "final_resolution": final_resolution,
            }

        return CompressionResult(
            output_bytes=trial.output,
            original_size=request.original_size,
            compressed_size=trial.size,
            was_compressed=True,
            params_used=params_used,
            warning="; ".join(warnings) or None,
            output_mime_type=output_mime_type or request.mime_type,
            media_type=request.media_type,
            target_size=request.target_size,
            effective_target=request.effective_target,
            target_reached=target_reached,
            trials_run=ladder.trials_run,
            rungs_tried=list(ladder.rungs_tried),
            **video_fields,
        )

    @staticmethod
    def _original(
        request: CompressionRequest,
        ladder: Optional[LadderOutcome],
        details: Mapping[str, Any],
        warning: Optional[str],
    ) -> CompressionResult:
        video_fields: Dict[str, Any] = {}
        if request.media_type == "video":
            resolution = details.get("original_resolution")
            video_fields = {
                "audio_muted": False,
                "resolution_reduced": False,
                "original_resolution": resolution,
                "final_resolution": resolution,
            }

        return CompressionResult(
            output_bytes=request.data,
            original_size=request.original_size,
            compressed_size=request.original_size,
            was_compressed=False,
            warning=warning,
            output_mime_type=request.mime_type,
            media_type=request.media_type,
            target_size=request.target_size,
            effective_target=request.effective_target,
            target_reached=request.original_size <= request.effective_target,
            trials_run=ladder.trials_run if ladder else 0,
            rungs_tried=list(ladder.rungs_tried) if ladder else [],
            **video_fields,
        )

    def unchanged(self, request: CompressionRequest) -> CompressionResult:
        """Result for an input already within the effective target."""
        return self._original(request, None, {}, warning=None)

    def below_margin(self, request: CompressionRequest) -> CompressionResult:
        """Result for a target too small to search: the original, with a warning."""
        margin = request.target_size - request.effective_target
        return self._original(
            request,
            None,
            {},
            warning=(
                f"Target size {request.target_size:,} bytes is within the safety margin "
                f"of {margin:,} bytes; returning the original file"
            ),
        )
