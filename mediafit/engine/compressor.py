"""
Compressor: The compress() pipeline.

Flow for one request:
1. Validate the request and compute the effective target
   (target minus safety margin).
2. Inputs already within the effective target come back untouched, as do
   targets the safety margin swallows whole (with a warning).
3. Write the input into a private workspace and probe it.
4. Build the plan (search policy + rung ladder) for the media type.
5. Run the ladder with the media type's encoder.
6. Let the result selector decide what to return.

Encoders and the prober are injectable so the whole pipeline runs in
tests without ffmpeg or gifsicle.

Usage:
    from mediafit import compress

    result = compress(data, "image/jpeg", 10 * 1024 * 1024)
    if result.warning:
        print(result.warning)
"""

from __future__ import annotations

import logging
import mimetypes
import threading
import uuid
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from ..config import EngineSettings, load_settings
from ..errors import CompressionCancelled
from ..media.audio import FfmpegAudioEncoder, plan_audio
from ..media.base import EncodeContext, Encoder, MediaPlan
from ..media.gif import GifsicleEncoder, plan_gif
from ..media.image import ImageEncoder, plan_image
from ..media.probe import probe_request
from ..media.process import request_workspace
from ..media.video import FfmpegVideoEncoder, plan_video
from ..models import CompressionRequest, CompressionResult, ProbeResult
from ..validation import validate_request
from .ladder import LadderFallbackManager
from .selector import ResultSelector

logger = logging.getLogger(__name__)

Planner = Callable[[CompressionRequest, Optional[ProbeResult], EngineSettings], MediaPlan]
EncoderFactory = Callable[[EncodeContext], Encoder]
Prober = Callable[..., ProbeResult]

PLANNERS: Dict[str, Planner] = {
    "image": plan_image,
    "gif": plan_gif,
    "video": plan_video,
    "audio": plan_audio,
}

ENCODERS: Dict[str, EncoderFactory] = {
    "image": ImageEncoder,
    "gif": GifsicleEncoder,
    "video": FfmpegVideoEncoder,
    "audio": FfmpegAudioEncoder,
}


def normalize_mime(mime_type: str) -> str:
    return (mime_type or "").lower().split(";")[0].strip()


class MediaCompressor:
    """
    Compress media to a byte budget.

    Holds configuration only; every call to ``compress`` is independent
    and keeps its state on the stack.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        encoders: Optional[Dict[str, EncoderFactory]] = None,
        prober: Optional[Prober] = None,
    ):
        self.settings = settings or EngineSettings()
        self.encoders = {**ENCODERS, **(encoders or {})}
        self.prober = prober or probe_request

    def build_request(
        self,
        data: bytes,
        mime_type: str,
        target_size_bytes: int,
        filename: Optional[str] = None,
    ) -> CompressionRequest:
        """Validate inputs and build the immutable request."""
        mime = normalize_mime(mime_type)
        margin = self.settings.safety_margin_bytes
        media_type = validate_request(data, mime, target_size_bytes)
        return CompressionRequest(
            data=data,
            mime_type=mime,
            media_type=media_type,
            target_size=target_size_bytes,
            effective_target=target_size_bytes - margin,
            filename=filename,
        )

    def plan(self, request: CompressionRequest, probe: Optional[ProbeResult]) -> MediaPlan:
        return PLANNERS[request.media_type](request, probe, self.settings)

    def preview(
        self,
        data: bytes,
        mime_type: str,
        target_size_bytes: int,
        filename: Optional[str] = None,
    ) -> Tuple[CompressionRequest, Optional[ProbeResult], Optional[MediaPlan]]:
        """Probe and plan without encoding. The plan is None when no compression is needed."""
        request = self.build_request(data, mime_type, target_size_bytes, filename)
        if not request.needs_compression:
            return request, None, None

        with request_workspace(self.settings.tmp_dir) as workspace:
            input_path = workspace / f"input{_suffix_for(request)}"
            input_path.write_bytes(request.data)
            probe = self.prober(request, input_path, self.settings, None)

        return request, probe, self.plan(request, probe)

    def compress(
        self,
        data: bytes,
        mime_type: str,
        target_size_bytes: int,
        *,
        cancel_event: Optional[threading.Event] = None,
        filename: Optional[str] = None,
    ) -> CompressionResult:
        """
        Compress ``data`` to at most ``target_size_bytes``.

        Raises:
            InvalidRequestError: Non-positive target, empty input or unsupported type
            ProbeError: Required metadata could not be read
            EncodeError: Every encode attempt on every rung failed
            CompressionCancelled: ``cancel_event`` was set
            TargetUnreachableError: Target missed and on_unreachable="fail"
        """
        request = self.build_request(data, mime_type, target_size_bytes, filename)
        log_extra = {"request_id": uuid.uuid4().hex[:8], "media_type": request.media_type}
        selector = ResultSelector(
            self.settings.min_ratio_for(request.media_type),
            self.settings.on_unreachable,
        )

        if request.below_margin:
            logger.warning(
                f"Target {request.target_size:,} bytes leaves no room after the safety margin; "
                f"returning original",
                extra=log_extra,
            )
            return selector.below_margin(request)

        if not request.needs_compression:
            logger.info(
                f"{request.original_size:,} bytes already within {request.effective_target:,}; "
                f"returning original",
                extra=log_extra,
            )
            return selector.unchanged(request)

        logger.info(
            f"Compressing {request.media_type} {request.original_size:,} -> "
            f"{request.effective_target:,} bytes (reduction {request.reduction_needed:.1%})",
            extra=log_extra,
        )

        _check_cancelled(cancel_event)

        with request_workspace(self.settings.tmp_dir) as workspace:
            input_path = workspace / f"input{_suffix_for(request)}"
            input_path.write_bytes(request.data)

            probe = self.prober(request, input_path, self.settings, cancel_event)
            plan = self.plan(request, probe)

            context = EncodeContext(
                data=request.data,
                mime_type=request.mime_type,
                input_path=input_path,
                workspace=workspace,
                settings=self.settings,
                timeout=self._trial_timeout(request, probe),
                probe=probe,
                cancel_event=cancel_event,
            )
            encoder = self.encoders[request.media_type](context)

            def encode(params):
                _check_cancelled(cancel_event)
                return encoder.encode(params)

            ladder = LadderFallbackManager(plan.policy).run(plan.rungs, request.effective_target, encode)
            result = selector.select(
                request,
                ladder,
                output_mime_type=plan.output_mime_type,
                plan_details=plan.details,
            )

        logger.info(
            f"Done: {result.original_size:,} -> {result.compressed_size:,} bytes "
            f"(compressed={result.was_compressed}, trials={result.trials_run}, "
            f"rungs={', '.join(result.rungs_tried)})",
            extra=log_extra,
        )
        if result.warning:
            logger.warning(result.warning, extra=log_extra)
        return result

    def _trial_timeout(self, request: CompressionRequest, probe: Optional[ProbeResult]) -> float:
        if request.media_type == "video":
            duration = probe.duration_seconds if probe and probe.duration_seconds else 0
            return self.settings.video_timeout_for(duration)
        return self.settings.trial_timeout_seconds


def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise CompressionCancelled("Compression cancelled")


def _suffix_for(request: CompressionRequest) -> str:
    """Input file extension, so the external tools can sniff the container."""
    if request.filename:
        suffix = Path(request.filename).suffix
        if suffix:
            return suffix.lower()
    return mimetypes.guess_extension(request.mime_type) or ".bin"


def compress(
    input_bytes: bytes,
    mime_type: str,
    target_size_bytes: int,
    *,
    settings: Optional[EngineSettings] = None,
    cancel_event: Optional[threading.Event] = None,
    filename: Optional[str] = None,
) -> CompressionResult:
    """Compress with settings loaded from the environment unless given."""
    compressor = MediaCompressor(settings or load_settings())
    return compressor.compress(
        input_bytes,
        mime_type,
        target_size_bytes,
        cancel_event=cancel_event,
        filename=filename,
    )
