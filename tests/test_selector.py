"""
Tests for the result selector.

Tests cover:
- Compressed result when a trial fits and saves enough
- Original returned when savings are below the minimum ratio
- on_unreachable modes: best_effort, original, fail
- Video resolution and audio fields and warnings
"""

import pytest

from mediafit.engine import LadderOutcome, LadderRung, ResultSelector, RungResult, SearchOutcome, StopReason, Trial
from mediafit.errors import TargetUnreachableError
from mediafit.media.image import ImageParams
from mediafit.media.video import VideoParams
from mediafit.models import CompressionRequest

from conftest import MB


def make_request(size=10_000, target=6_000, media_type="image", mime_type="image/jpeg"):
    return CompressionRequest(
        data=b"\1" * size,
        mime_type=mime_type,
        media_type=media_type,
        target_size=target,
        effective_target=target,
    )


def image_rung(name="quality", rank=1):
    return LadderRung(
        name=name,
        rank=rank,
        low=1,
        high=100,
        initial=50,
        build_params=lambda q: ImageParams(format="jpeg", quality=q),
    )


def video_rung(height, width, resolution=None):
    return LadderRung(
        name=f"{height}p",
        rank=height,
        low=100,
        high=1000,
        initial=500,
        build_params=lambda b: VideoParams(
            video_bitrate_kbps=b, width=width, height=height, audio_bitrate_kbps=0
        ),
        details={"resolution": resolution or f"{width}x{height}"},
    )


def outcome(best=None, closest_over=None):
    trials = tuple(t for t in (best, closest_over) if t is not None)
    return SearchOutcome(
        best=best,
        closest_over=closest_over,
        trials=trials,
        failures=(),
        stop_reason=StopReason.MAX_ATTEMPTS,
    )


def trial(param, size):
    return Trial(param=param, size=size, output=b"\2" * size)


# ═══════════════════════════════════════════════════════════════════
# Within target
# ═══════════════════════════════════════════════════════════════════


class TestWinner:
    """Tests for ladders where a trial fits."""

    def test_compressed_result(self):
        """A fitting trial becomes the result with its params and rung."""
        request = make_request()
        ladder = LadderOutcome((RungResult(image_rung(), outcome(best=trial(56, 5_500))),))

        result = ResultSelector(0.98).select(request, ladder, output_mime_type="image/jpeg")

        assert result.was_compressed is True
        assert result.compressed_size == 5_500
        assert result.output_bytes == b"\2" * 5_500
        assert result.params_used == {"format": "jpeg", "quality": 56, "rung": "quality"}
        assert result.warning is None
        assert result.target_reached is True
        assert result.output_mime_type == "image/jpeg"

    def test_output_mime_defaults_to_input(self):
        """Without an output type the input MIME type is kept."""
        request = make_request(mime_type="image/bmp")
        ladder = LadderOutcome((RungResult(image_rung(), outcome(best=trial(56, 5_500))),))

        result = ResultSelector(0.98).select(request, ladder)

        assert result.output_mime_type == "image/bmp"

    def test_too_little_saving_returns_original(self):
        """9 900 of 10 000 bytes is not below 98%."""
        request = make_request(size=10_000, target=10_000)
        ladder = LadderOutcome((RungResult(image_rung(), outcome(best=trial(90, 9_900))),))

        result = ResultSelector(0.98).select(request, ladder)

        assert result.was_compressed is False
        assert result.output_bytes == request.data
        assert result.compressed_size == 10_000
        assert "saved too little" in result.warning


# ═══════════════════════════════════════════════════════════════════
# Target unreachable
# ═══════════════════════════════════════════════════════════════════


class TestUnreachable:
    """Tests for ladders where nothing fits."""

    def _ladder(self, over_size=7_000):
        return LadderOutcome((RungResult(image_rung(), outcome(closest_over=trial(1, over_size))),))

    def test_best_effort_returns_closest(self):
        """Best effort returns the smallest miss with a warning."""
        result = ResultSelector(0.98, "best_effort").select(make_request(), self._ladder())

        assert result.was_compressed is True
        assert result.target_reached is False
        assert result.compressed_size == 7_000
        assert "Could not reach target" in result.warning
        assert "best result is" in result.warning

    def test_best_effort_not_smaller_returns_original(self):
        """A miss that saves too little falls back to the original."""
        result = ResultSelector(0.98, "best_effort").select(make_request(), self._ladder(9_950))

        assert result.was_compressed is False
        assert "returning the original file" in result.warning

    def test_original_mode(self):
        """on_unreachable="original" keeps the input bytes."""
        result = ResultSelector(0.98, "original").select(make_request(), self._ladder())

        assert result.was_compressed is False
        assert result.output_bytes == b"\1" * 10_000
        assert result.target_reached is False
        assert "returning the original file" in result.warning

    def test_fail_mode_raises(self):
        """on_unreachable="fail" raises with the best size and rungs tried."""
        with pytest.raises(TargetUnreachableError) as exc_info:
            ResultSelector(0.98, "fail").select(make_request(), self._ladder())

        assert exc_info.value.best_size == 7_000
        assert exc_info.value.rungs == ["quality"]

    def test_warning_names_target_in_mb(self):
        """Warnings quote the target in megabytes."""
        request = make_request(size=20 * MB, target=8 * MB)
        result = ResultSelector(0.98, "original").select(request, self._ladder())

        assert "8.00 MB" in result.warning

    def test_bookkeeping_carried_to_original(self):
        result = ResultSelector(0.98, "original").select(make_request(), self._ladder())

        assert result.trials_run == 1
        assert result.rungs_tried == ["quality"]


# ═══════════════════════════════════════════════════════════════════
# Video fields
# ═══════════════════════════════════════════════════════════════════


class TestVideoFields:
    """Tests for resolution and audio reporting."""

    def _request(self):
        return make_request(size=20_000, target=10_000, media_type="video", mime_type="video/mp4")

    def test_source_resolution_not_reduced(self):
        """Fitting on the source rung reports no resolution change."""
        ladder = LadderOutcome(
            (RungResult(video_rung(1080, 1920), outcome(best=trial(600, 9_000))),)
        )

        result = ResultSelector(0.95).select(
            self._request(), ladder, plan_details={"original_resolution": "1920x1080"}
        )

        assert result.resolution_reduced is False
        assert result.final_resolution == "1920x1080"
        assert result.audio_muted is False
        assert result.warning is None

    def test_reduced_resolution_warns(self):
        """A lower rung is reported with a resolution warning."""
        ladder = LadderOutcome((
            RungResult(video_rung(1080, 1920), outcome(closest_over=trial(100, 12_000))),
            RungResult(video_rung(720, 1280), outcome(best=trial(607, 9_500))),
        ))

        result = ResultSelector(0.95).select(
            self._request(), ladder, plan_details={"original_resolution": "1920x1080"}
        )

        assert result.resolution_reduced is True
        assert result.original_resolution == "1920x1080"
        assert result.final_resolution == "1280x720"
        assert result.params_used["video_bitrate_kbps"] == 607
        assert result.params_used["rung"] == "720p"
        assert result.warning == "Resolution reduced from 1920x1080 to 1280x720"
        assert result.rungs_tried == ["1080p", "720p"]

    def test_muted_audio_warns(self):
        """Dropping the audio track is called out in the warning."""
        ladder = LadderOutcome(
            (RungResult(video_rung(1080, 1920), outcome(best=trial(600, 9_000))),)
        )

        result = ResultSelector(0.95).select(
            self._request(),
            ladder,
            plan_details={"original_resolution": "1920x1080", "audio_muted": True},
        )

        assert result.audio_muted is True
        assert "Audio removed" in result.warning

    def test_unchanged_video_reports_resolution(self):
        """Returning the original still fills in the resolution fields."""
        result = ResultSelector(0.95, "original").select(
            self._request(),
            LadderOutcome((RungResult(video_rung(1080, 1920), outcome(closest_over=trial(100, 12_000))),)),
            plan_details={"original_resolution": "1920x1080"},
        )

        assert result.resolution_reduced is False
        assert result.final_resolution == "1920x1080"


class TestUnchanged:
    """Tests for inputs already within target."""

    def test_unchanged(self):
        """Inputs under the target come back with no warning."""
        request = make_request(size=5_000, target=6_000)
        result = ResultSelector(0.98).unchanged(request)

        assert result.was_compressed is False
        assert result.warning is None
        assert result.trials_run == 0
        assert result.target_reached is True
