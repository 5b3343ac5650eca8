"""
Tests for the metadata prober.

ffprobe output is fed in as parsed JSON or through a mocked run_process;
images are real, built with Pillow.
"""

import json
from pathlib import Path
from unittest import mock

import pytest
from PIL import Image

from mediafit.config import EngineSettings
from mediafit.errors import EncodeError, ProbeError
from mediafit.media.probe import parse_ffprobe, probe_image, probe_media, probe_request
from mediafit.media.process import ProcessResult
from mediafit.models import CompressionRequest

from conftest import make_image_bytes

VIDEO_PAYLOAD = {
    "format": {"duration": "3600.5", "size": "524288000", "bit_rate": "1165432"},
    "streams": [
        {"codec_type": "video", "codec_name": "h264", "width": 1920, "height": 1080},
        {"codec_type": "audio", "codec_name": "aac", "bit_rate": "128000"},
    ],
}

AUDIO_PAYLOAD = {
    "format": {"duration": "180.0", "bit_rate": "192000"},
    "streams": [{"codec_type": "audio", "codec_name": "mp3"}],
}


class TestParseFfprobe:
    """Tests for turning ffprobe JSON into a ProbeResult."""

    def test_video(self):
        """Duration, bitrate, resolution and both codecs from one payload."""
        probe = parse_ffprobe(VIDEO_PAYLOAD, "video", file_size=524288000)

        assert probe.duration_seconds == 3600.5
        assert probe.bitrate_kbps == 1165
        assert probe.resolution == "1920x1080"
        assert probe.codec_name == "h264"
        assert probe.audio_codec_name == "aac"
        assert probe.has_audio is True

    def test_video_without_audio(self):
        """A silent video reports has_audio False."""
        payload = {"format": VIDEO_PAYLOAD["format"], "streams": VIDEO_PAYLOAD["streams"][:1]}
        probe = parse_ffprobe(payload, "video", file_size=1)

        assert probe.has_audio is False
        assert probe.audio_codec_name is None

    def test_audio(self):
        """Audio probes carry bitrate and codec but no resolution."""
        probe = parse_ffprobe(AUDIO_PAYLOAD, "audio", file_size=4_320_000)

        assert probe.bitrate_kbps == 192
        assert probe.codec_name == "mp3"
        assert probe.width is None

    def test_bitrate_derived_from_size(self):
        """No container bitrate: size * 8 / duration."""
        payload = {"format": {"duration": "100"}, "streams": AUDIO_PAYLOAD["streams"]}
        probe = parse_ffprobe(payload, "audio", file_size=1_600_000)

        assert probe.bitrate_kbps == 128

    @pytest.mark.parametrize("duration", [None, "N/A", "0", "-1"])
    def test_missing_duration(self, duration):
        """Missing or non-positive durations are probe errors."""
        payload = {"format": {"duration": duration}, "streams": AUDIO_PAYLOAD["streams"]}

        with pytest.raises(ProbeError, match="duration"):
            parse_ffprobe(payload, "audio", file_size=100)

    def test_video_needs_video_stream(self):
        """A video request with only audio streams cannot be planned."""
        payload = {"format": {"duration": "10"}, "streams": AUDIO_PAYLOAD["streams"]}

        with pytest.raises(ProbeError, match="No video stream"):
            parse_ffprobe(payload, "video", file_size=100)

    def test_video_needs_resolution(self):
        """Width and height are required for video."""
        payload = {
            "format": {"duration": "10"},
            "streams": [{"codec_type": "video", "codec_name": "h264"}],
        }

        with pytest.raises(ProbeError, match="resolution"):
            parse_ffprobe(payload, "video", file_size=100)

    def test_audio_needs_audio_stream(self):
        """An audio request needs an audio stream."""
        payload = {"format": {"duration": "10"}, "streams": VIDEO_PAYLOAD["streams"][:1]}

        with pytest.raises(ProbeError, match="No audio stream"):
            parse_ffprobe(payload, "audio", file_size=100)

    def test_error_carries_path(self):
        with pytest.raises(ProbeError) as exc_info:
            parse_ffprobe({}, "audio", file_size=1, path="/tmp/x.mp3")
        assert exc_info.value.path == "/tmp/x.mp3"


class TestProbeMedia:
    """Tests for the ffprobe invocation."""

    def _input(self, tmp_path):
        path = tmp_path / "song.mp3"
        path.write_bytes(b"\0" * 1000)
        return path

    def test_runs_ffprobe(self, tmp_path):
        """The configured ffprobe is called with JSON output on the input file."""
        path = self._input(tmp_path)
        settings = EngineSettings(ffprobe_path="/opt/bin/ffprobe")
        output = ProcessResult(0, json.dumps(AUDIO_PAYLOAD).encode(), "", 0.1)

        with mock.patch("mediafit.media.probe.run_process", return_value=output) as run:
            probe = probe_media(path, "audio", settings)

        cmd = run.call_args[0][0]
        assert cmd[0] == "/opt/bin/ffprobe"
        assert cmd[-1] == str(path)
        assert "json" in cmd
        assert probe.bitrate_kbps == 192

    def test_nonzero_exit(self, tmp_path):
        """ffprobe's stderr ends up in the ProbeError."""
        output = ProcessResult(1, b"", "Invalid data found", 0.1)
        with mock.patch("mediafit.media.probe.run_process", return_value=output):
            with pytest.raises(ProbeError, match="Invalid data found"):
                probe_media(self._input(tmp_path), "audio", EngineSettings())

    def test_invalid_json(self, tmp_path):
        """Unparseable output is a probe error."""
        output = ProcessResult(0, b"not json", "", 0.1)
        with mock.patch("mediafit.media.probe.run_process", return_value=output):
            with pytest.raises(ProbeError, match="invalid JSON"):
                probe_media(self._input(tmp_path), "audio", EngineSettings())

    def test_missing_ffprobe(self, tmp_path):
        """A missing binary becomes a ProbeError."""
        with mock.patch("mediafit.media.probe.run_process", side_effect=EncodeError("ffprobe not found")):
            with pytest.raises(ProbeError, match="ffprobe failed"):
                probe_media(self._input(tmp_path), "audio", EngineSettings())


class TestProbeImage:
    """Tests for Pillow-based image probing."""

    def test_png(self):
        probe = probe_image(make_image_bytes(64, 48, "PNG"))

        assert probe.resolution == "64x48"
        assert probe.codec_name == "png"
        assert probe.duration_seconds is None

    def test_gif(self):
        probe = probe_image(make_image_bytes(32, 16, "GIF"))

        assert probe.codec_name == "gif"
        assert (probe.width, probe.height) == (32, 16)

    def test_garbage(self):
        """Bytes Pillow cannot identify raise ProbeError."""
        with pytest.raises(ProbeError):
            probe_image(b"definitely not an image")

    def test_oversized_image(self, monkeypatch):
        """Pillow's decompression bomb guard comes back as a ProbeError."""
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

        with pytest.raises(ProbeError, match="too large"):
            probe_image(make_image_bytes(64, 48, "PNG"))


class TestProbeRequest:
    """Tests for dispatch by media type."""

    def _request(self, data, mime, media_type):
        return CompressionRequest(
            data=data, mime_type=mime, media_type=media_type, target_size=10, effective_target=5
        )

    def test_image_uses_pillow(self, tmp_path):
        """Images never go through ffprobe."""
        request = self._request(make_image_bytes(), "image/png", "image")

        with mock.patch("mediafit.media.probe.probe_media") as media:
            probe = probe_request(request, tmp_path / "input.png", EngineSettings())

        media.assert_not_called()
        assert probe.width == 64

    def test_video_uses_ffprobe(self, tmp_path):
        """Video is probed from the workspace file."""
        request = self._request(b"\0" * 10, "video/mp4", "video")
        settings = EngineSettings()

        with mock.patch("mediafit.media.probe.probe_media", return_value="probed") as media:
            result = probe_request(request, Path("/tmp/input.mp4"), settings)

        media.assert_called_once_with(Path("/tmp/input.mp4"), "video", settings, None)
        assert result == "probed"
