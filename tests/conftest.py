"""
Shared fixtures and encoder doubles for the engine tests.

FakeEncoder stands in for Pillow/gifsicle/ffmpeg: its output size is a
pure function of the parameter set, so searches are deterministic and
no external program ever runs.
"""

from __future__ import annotations

import io
import logging
from typing import Callable, List, Optional

import pytest

from mediafit.config import EngineSettings
from mediafit.errors import EncodeError
from mediafit.models import ProbeResult

MB = 1024 * 1024


class FakeEncoder:
    """
    Encoder factory and encoder in one.

    Passed to ``MediaCompressor(encoders={...})``; the compressor calls it
    with the request's EncodeContext and gets itself back.
    """

    def __init__(
        self,
        size_fn: Callable[[object], int],
        fail_on: Optional[Callable[[object], bool]] = None,
    ):
        self.size_fn = size_fn
        self.fail_on = fail_on or (lambda params: False)
        self.calls: List[object] = []
        self.context = None

    def __call__(self, context):
        self.context = context
        return self

    def encode(self, params) -> bytes:
        self.calls.append(params)
        if self.fail_on(params):
            raise EncodeError(f"fake failure for {params}")
        return b"\0" * self.size_fn(params)


class ExplodingEncoder:
    """Encoder factory that must never be used."""

    def __call__(self, context):
        raise AssertionError("encoder should not be built")


def fixed_prober(probe: ProbeResult):
    """Prober double returning the same metadata for every request."""
    calls = []

    def prober(request, input_path, settings, cancel_event=None):
        calls.append(input_path)
        return probe

    prober.calls = calls
    return prober


def sized_encode_fn(size_fn: Callable[[int], int], record: Optional[list] = None):
    """encode_fn for SearchController.run: bytes of size_fn(param)."""

    def encode(param: int) -> bytes:
        if record is not None:
            record.append(param)
        return b"\0" * size_fn(param)

    return encode


def make_image_bytes(width: int = 64, height: int = 48, fmt: str = "PNG", mode: str = "RGB") -> bytes:
    """A real image with some texture so encoders have something to work on."""
    from PIL import Image

    img = Image.new(mode, (width, height))
    pixels = img.load()
    for x in range(width):
        for y in range(height):
            value = (x * 7 + y * 13) % 256
            if mode == "RGBA":
                pixels[x, y] = (value, 255 - value, (x * y) % 256, 128 if x < width // 2 else 255)
            else:
                pixels[x, y] = (value, 255 - value, (x * y) % 256)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def settings() -> EngineSettings:
    """Default settings with every env override ignored."""
    return EngineSettings()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove mediafit env vars so config tests start from defaults."""
    from mediafit.config.loader import ENV_VARS

    for name in list(ENV_VARS) + ["MEDIAFIT_CONFIG", "MEDIAFIT_CONFIG_FILE"]:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """Undo setup_logging() calls (e.g. from CLI tests) so later caplog checks see records."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
