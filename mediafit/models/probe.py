"""
Probe Models: Metadata extracted from an input file.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class ProbeResult(BaseModel):
    """Read-only metadata for one input. Computed once per request."""

    model_config = ConfigDict(frozen=True)

    duration_seconds: Optional[float] = None
    bitrate_kbps: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    codec_name: Optional[str] = None
    audio_codec_name: Optional[str] = None
    has_audio: bool = False

    @property
    def resolution(self) -> Optional[str]:
        if self.width and self.height:
            return f"{self.width}x{self.height}"
        return None
