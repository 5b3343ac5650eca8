"""
Image Encoder: Still images re-encoded in-process with Pillow.

One quality knob (1-100, higher = larger output), one rung. The output
format follows the input MIME type; types without a quality setting
(BMP and friends) come out as JPEG.

Format notes:
- JPEG: alpha is flattened onto white, progressive + optimized Huffman
- PNG: "quality" picks the palette size, then zlib level 9
- WebP / AVIF: native quality setting
- TIFF: JPEG compression inside the TIFF container
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from PIL import Image, UnidentifiedImageError

from ..config import EngineSettings
from ..engine.ladder import LadderRung
from ..engine.search import SearchPolicy
from ..errors import EncodeError, ProbeError
from ..models import CompressionRequest, ProbeResult
from . import tables
from .base import EncodeContext, EncodeParams, Encoder, MediaPlan

logger = logging.getLogger(__name__)

IMAGE_SEARCH_POLICY = SearchPolicy(
    max_attempts=4,
    epsilon=1,
    narrow_step=1,
    flat_size_delta=1,
    flat_jump=15,
    nudge_min=1,
    nudge_scale=2,
)

WEBP_METHOD = 4  # compression effort (0-6)


@dataclass(frozen=True)
class ImageParams(EncodeParams):
    format: str
    quality: int


def png_palette_colors(quality: int) -> int:
    """Palette size standing in for a PNG quality value."""
    return max(2, min(256, round(256 * quality / 100)))


class ImageEncoder(Encoder):
    """Encode a still image at a given quality."""

    media_type = "image"

    def __init__(self, context: EncodeContext):
        super().__init__(context)
        self._prepared: Dict[str, Image.Image] = {}

    def encode(self, params: ImageParams) -> bytes:
        img = self._prepare(params.format)
        buf = io.BytesIO()

        try:
            if params.format == "jpeg":
                img.save(buf, format="JPEG", quality=params.quality, optimize=True, progressive=True)
            elif params.format == "png":
                colors = png_palette_colors(params.quality)
                method = (
                    Image.Quantize.FASTOCTREE if img.mode == "RGBA" else Image.Quantize.MEDIANCUT
                )
                img.quantize(colors=colors, method=method).save(
                    buf, format="PNG", optimize=True, compress_level=9
                )
            elif params.format == "webp":
                img.save(buf, format="WEBP", quality=params.quality, method=WEBP_METHOD)
            elif params.format == "avif":
                img.save(buf, format="AVIF", quality=params.quality)
            elif params.format == "tiff":
                img.save(buf, format="TIFF", compression="jpeg", quality=params.quality)
            else:
                raise EncodeError(f"Unsupported image format: {params.format}", params=params.to_dict())
        except (OSError, ValueError, KeyError) as e:
            raise EncodeError(
                f"Pillow could not encode {params.format} at quality {params.quality}: {e}",
                params=params.to_dict(),
            )

        return buf.getvalue()

    def _prepare(self, fmt: str) -> Image.Image:
        """Decode once, then convert to a mode the target format accepts."""
        if fmt in self._prepared:
            return self._prepared[fmt]

        try:
            img = Image.open(io.BytesIO(self.context.data))
            img.load()
        except Image.DecompressionBombError as e:
            raise ProbeError(f"Image too large to decode: {e}")
        except (UnidentifiedImageError, OSError) as e:
            raise ProbeError(f"Cannot decode image: {e}")

        if fmt in ("jpeg", "tiff"):
            img = _flatten(img)
        elif img.mode not in ("RGB", "RGBA"):
            has_alpha = "A" in img.getbands() or "transparency" in img.info
            img = img.convert("RGBA" if has_alpha else "RGB")

        self._prepared[fmt] = img
        return img


def _flatten(img: Image.Image) -> Image.Image:
    """Drop alpha by compositing onto white."""
    if img.mode in ("RGBA", "LA", "P"):
        img = img.convert("RGBA")
        bg = Image.new("RGB", img.size, (255, 255, 255))
        bg.paste(img, mask=img.split()[-1])
        return bg
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def plan_image(
    request: CompressionRequest,
    probe: Optional[ProbeResult],
    settings: EngineSettings,
) -> MediaPlan:
    """A single quality rung over 1-100, starting from the table guess."""
    fmt = tables.image_format_for(request.mime_type)
    reduction = request.reduction_needed
    initial = tables.image_initial_quality(reduction, request.file_size_mb)

    def build(quality: int) -> ImageParams:
        return ImageParams(format=fmt, quality=quality)

    rung = LadderRung(
        name="quality",
        rank=1,
        low=tables.IMAGE_QUALITY_MIN,
        high=tables.IMAGE_QUALITY_MAX,
        initial=initial,
        build_params=build,
        details={"format": fmt},
    )

    return MediaPlan(
        media_type="image",
        policy=IMAGE_SEARCH_POLICY,
        rungs=(rung,),
        output_mime_type=tables.IMAGE_FORMAT_MIMES[fmt],
        details={
            "reduction_needed": round(reduction, 4),
            "original_resolution": probe.resolution if probe else None,
        },
    )
