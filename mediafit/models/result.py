"""
Result Models: What compress() hands back to its caller.

Either compressed bytes that fit (or best-effort bytes with a warning),
or the original bytes with ``was_compressed=False``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CompressionResult(BaseModel):
    """Outcome of one compress() call."""

    output_bytes: bytes = Field(repr=False)
    original_size: int
    compressed_size: int
    was_compressed: bool
    params_used: Dict[str, Any] = Field(default_factory=dict)
    warning: Optional[str] = None
    output_mime_type: Optional[str] = None

    # Video only
    audio_muted: Optional[bool] = None
    resolution_reduced: Optional[bool] = None
    original_resolution: Optional[str] = None
    final_resolution: Optional[str] = None

    # Search bookkeeping
    media_type: Optional[str] = None
    target_size: Optional[int] = None
    effective_target: Optional[int] = None
    target_reached: bool = True
    trials_run: int = 0
    rungs_tried: List[str] = Field(default_factory=list)

    @property
    def compression_ratio(self) -> float:
        return self.compressed_size / float(self.original_size or 1)

    @property
    def saved_bytes(self) -> int:
        return self.original_size - self.compressed_size

    def summary(self) -> Dict[str, Any]:
        """Everything except the output bytes, for logs and JSON output."""
        data = self.model_dump(exclude={"output_bytes"})
        data["compression_ratio"] = round(self.compression_ratio, 4)
        return data
