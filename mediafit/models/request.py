"""
Request Models: Pydantic schema for one compression request.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

MediaType = Literal["image", "gif", "video", "audio"]


class CompressionRequest(BaseModel):
    """An immutable request: these bytes, this type, at most this size."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    mime_type: str
    media_type: MediaType
    target_size: int
    effective_target: int
    filename: Optional[str] = None

    @property
    def original_size(self) -> int:
        return len(self.data)

    @property
    def file_size_mb(self) -> float:
        return self.original_size / (1024 * 1024)

    @property
    def reduction_needed(self) -> float:
        """Fractional size decrease needed to reach the effective target."""
        return 1 - (self.effective_target / self.original_size)

    @property
    def below_margin(self) -> bool:
        """True when the target leaves nothing after the safety margin."""
        return self.effective_target <= 0

    @property
    def needs_compression(self) -> bool:
        return not self.below_margin and self.original_size > self.effective_target
