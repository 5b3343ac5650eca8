"""
Tests for the mediafit CLI: compress, probe, plan, check-config.

Uses Click's CliRunner to test commands without spawning subprocesses.
Logging is held at ERROR so JSON output stays parseable.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest import mock

import pytest
from click.testing import CliRunner

from mediafit.errors import ProbeError
from mediafit.main import cli
from mediafit.models import CompressionResult

from conftest import make_image_bytes

QUIET = ["--log-level", "ERROR"]


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def png_file(tmp_path) -> Path:
    path = tmp_path / "photo.png"
    path.write_bytes(make_image_bytes(96, 64))
    return path


def compressed_result(original_size=1000, size=400, mime="image/png"):
    return CompressionResult(
        output_bytes=b"\2" * size,
        original_size=original_size,
        compressed_size=size,
        was_compressed=True,
        params_used={"format": "png", "quality": 40, "rung": "quality"},
        output_mime_type=mime,
        media_type="image",
        trials_run=3,
        rungs_tried=["quality"],
    )


# ═══════════════════════════════════════════════════════════════════
# compress
# ═══════════════════════════════════════════════════════════════════


class TestCompressCommand:
    """Tests for `mediafit compress`."""

    def test_writes_default_output(self, runner, png_file, clean_env):
        """Output goes next to the input as <stem>.compressed<ext>."""
        with mock.patch("mediafit.cli.compress.MediaCompressor") as compressor_cls:
            compressor_cls.return_value.compress.return_value = compressed_result()
            result = runner.invoke(cli, QUIET + ["compress", str(png_file), "--target", "1KB"])

        assert result.exit_code == 0, result.output
        out_path = png_file.with_name("photo.compressed.png")
        assert out_path.read_bytes() == b"\2" * 400
        assert "Written to" in result.output

        args, kwargs = compressor_cls.return_value.compress.call_args
        assert args[1:] == ("image/png", 1024)
        assert kwargs["filename"] == "photo.png"

    def test_output_extension_follows_output_format(self, runner, tmp_path, clean_env):
        """A BMP re-encoded as JPEG is written with a JPEG extension."""
        bmp = tmp_path / "scan.bmp"
        bmp.write_bytes(b"BM" + b"\0" * 100)

        with mock.patch("mediafit.cli.compress.MediaCompressor") as compressor_cls:
            compressor_cls.return_value.compress.return_value = compressed_result(mime="image/jpeg")
            result = runner.invoke(cli, QUIET + ["compress", str(bmp), "--target", "1KB"])

        assert result.exit_code == 0, result.output
        written = list(tmp_path.glob("scan.compressed.*"))
        assert len(written) == 1
        assert written[0].suffix in (".jpg", ".jpeg", ".jpe")

    def test_explicit_output(self, runner, png_file, tmp_path, clean_env):
        """--output sets the destination."""
        out = tmp_path / "small.png"
        with mock.patch("mediafit.cli.compress.MediaCompressor") as compressor_cls:
            compressor_cls.return_value.compress.return_value = compressed_result()
            result = runner.invoke(cli, QUIET + ["compress", str(png_file), "-t", "1KB", "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert out.exists()

    def test_json_output(self, runner, png_file, clean_env):
        """--json prints the summary without the payload bytes."""
        with mock.patch("mediafit.cli.compress.MediaCompressor") as compressor_cls:
            compressor_cls.return_value.compress.return_value = compressed_result()
            result = runner.invoke(cli, QUIET + ["compress", str(png_file), "-t", "1KB", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["compressed_size"] == 400
        assert data["compression_ratio"] == 0.4
        assert data["output"].endswith("photo.compressed.png")
        assert "output_bytes" not in data

    def test_overrides_reach_settings(self, runner, png_file, clean_env):
        """CLI flags override loaded settings."""
        with mock.patch("mediafit.cli.compress.MediaCompressor") as compressor_cls:
            compressor_cls.return_value.compress.return_value = compressed_result()
            runner.invoke(
                cli,
                QUIET + ["compress", str(png_file), "-t", "1KB", "--on-unreachable", "fail", "--timeout", "5"],
            )

        settings = compressor_cls.call_args[0][0]
        assert settings.on_unreachable == "fail"
        assert settings.trial_timeout_seconds == 5.0
        assert settings.video_timeout_seconds == 5.0

    def test_engine_error_is_reported(self, runner, png_file, clean_env):
        """Engine errors exit 1 with the message."""
        with mock.patch("mediafit.cli.compress.MediaCompressor") as compressor_cls:
            compressor_cls.return_value.compress.side_effect = ProbeError("Cannot decode image")
            result = runner.invoke(cli, QUIET + ["compress", str(png_file), "-t", "1KB"])

        assert result.exit_code == 1
        assert "Cannot decode image" in result.output

    def test_bad_target(self, runner, png_file, clean_env):
        """An unparseable --target is a usage error."""
        result = runner.invoke(cli, QUIET + ["compress", str(png_file), "--target", "huge"])

        assert result.exit_code == 2
        assert "Invalid size" in result.output

    def test_unknown_type_needs_mime(self, runner, tmp_path, clean_env):
        """Unrecognized extensions ask for --mime."""
        blob = tmp_path / "blob.xyz123"
        blob.write_bytes(b"\0" * 10)

        result = runner.invoke(cli, QUIET + ["compress", str(blob), "-t", "1MB"])

        assert result.exit_code == 2
        assert "--mime" in result.output

    def test_small_file_kept(self, runner, png_file, clean_env):
        """A real run: the file is already under target, nothing is written."""
        result = runner.invoke(cli, QUIET + ["compress", str(png_file), "-t", "10MB"])

        assert result.exit_code == 0, result.output
        assert "kept original" in result.output
        assert not png_file.with_name("photo.compressed.png").exists()


# ═══════════════════════════════════════════════════════════════════
# probe / plan
# ═══════════════════════════════════════════════════════════════════


class TestInfoCommands:
    """Tests for `mediafit probe` and `mediafit plan`."""

    def test_probe_image(self, runner, png_file, clean_env):
        """probe reports image dimensions."""
        result = runner.invoke(cli, QUIET + ["probe", str(png_file), "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["media_type"] == "image"
        assert data["width"] == 96
        assert data["height"] == 64

    def test_probe_unsupported(self, runner, tmp_path, clean_env):
        """Unsupported files fail with a clear message."""
        doc = tmp_path / "notes.txt"
        doc.write_text("hello")

        result = runner.invoke(cli, QUIET + ["probe", str(doc)])

        assert result.exit_code == 1
        assert "Unsupported media type" in result.output

    def test_plan_already_small(self, runner, png_file, clean_env):
        """A file under the target needs no plan."""
        result = runner.invoke(cli, QUIET + ["plan", str(png_file), "-t", "10MB", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["needs_compression"] is False
        assert data["plan"] is None

    def test_plan_target_inside_margin(self, runner, png_file, clean_env):
        """A target smaller than the safety margin is reported, not rejected."""
        result = runner.invoke(cli, QUIET + ["plan", str(png_file), "-t", "1KB", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["below_margin"] is True
        assert data["plan"] is None

    def test_plan_image(self, runner, png_file, clean_env):
        """plan shows the effective target, probe and rungs."""
        clean_env.setenv("MEDIAFIT_SAFETY_MARGIN_BYTES", "0")
        target = png_file.stat().st_size // 2

        result = runner.invoke(cli, QUIET + ["plan", str(png_file), "-t", str(target), "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["effective_target"] == target
        assert data["probe"]["width"] == 96
        assert data["plan"]["rungs"][0]["name"] == "quality"

    def test_plan_text(self, runner, png_file, clean_env):
        """The text view lists the rungs."""
        clean_env.setenv("MEDIAFIT_SAFETY_MARGIN_BYTES", "0")
        target = png_file.stat().st_size // 2

        result = runner.invoke(cli, QUIET + ["plan", str(png_file), "-t", str(target)])

        assert result.exit_code == 0, result.output
        assert "Rungs:" in result.output
        assert "quality" in result.output


# ═══════════════════════════════════════════════════════════════════
# check-config / global options
# ═══════════════════════════════════════════════════════════════════


class TestCheckConfig:
    """Tests for `mediafit check-config`."""

    def test_json(self, runner, clean_env):
        """JSON report with media availability, settings and codecs."""
        with mock.patch("mediafit.config.validator.shutil.which", return_value=None):
            result = runner.invoke(cli, QUIET + ["check-config", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["media"]["image"]["available"] is True
        assert data["media"]["gif"]["available"] is False
        assert data["settings"]["safety_margin_bytes"] == 209715
        assert "webp" in data["image_codecs"]

    def test_text_shows_guidance(self, runner, clean_env):
        """Missing binaries print the setup guide."""
        with mock.patch("mediafit.config.validator.shutil.which", return_value=None):
            result = runner.invoke(cli, QUIET + ["check-config"])

        assert result.exit_code == 0, result.output
        assert "Setup Guide" in result.output
        assert "gifsicle" in result.output

    def test_config_file_option(self, runner, tmp_path, clean_env):
        """--config loads a YAML settings file."""
        path = tmp_path / "mediafit.yaml"
        path.write_text("on_unreachable: original\n")

        with mock.patch("mediafit.config.validator.shutil.which", return_value="/usr/bin/x"):
            result = runner.invoke(cli, QUIET + ["--config", str(path), "check-config", "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["settings"]["on_unreachable"] == "original"

    def test_bad_configuration(self, runner, clean_env):
        """Invalid settings exit with a configuration error."""
        clean_env.setenv("MEDIAFIT_ON_UNREACHABLE", "sometimes")

        result = runner.invoke(cli, QUIET + ["check-config"])

        assert result.exit_code == 1
        assert "Configuration error" in result.output
