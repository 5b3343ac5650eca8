"""
Validation: Request validation and input parsing utilities.

Everything here runs before any probing or encoding, so a rejected
request never touches an external program.

## Usage

    from mediafit.validation import validate_request, parse_size

    try:
        category = validate_request(data, "image/jpeg", parse_size("10MB"))
    except InvalidRequestError as e:
        print(f"Rejected: {e}")
"""

from __future__ import annotations

import mimetypes
import re
from pathlib import Path
from typing import Dict, Optional

from .errors import MediafitError


class ValidationError(MediafitError):
    """Raised when validation fails."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
        self.message = message
        self.field = field
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class InvalidRequestError(ValidationError):
    """Raised when a compression request is rejected before any work starts."""
    pass


class ConfigurationError(MediafitError):
    """Raised when configuration is missing or invalid."""
    pass


# MIME type → media category
IMAGE_MIMES = {
    "image/jpeg", "image/jpg", "image/pjpeg", "image/png", "image/webp",
    "image/avif", "image/tiff", "image/bmp",
}
GIF_MIMES = {"image/gif"}
VIDEO_MIMES = {
    "video/mp4", "video/quicktime", "video/x-msvideo", "video/webm",
    "video/x-matroska", "video/x-flv", "video/mpeg", "video/3gpp",
    "video/x-ms-wmv", "video/mp2t",
}
AUDIO_MIMES = {
    "audio/mpeg", "audio/mp4", "audio/x-m4a", "audio/aac", "audio/ogg",
    "audio/opus", "audio/wav", "audio/x-wav", "audio/webm", "audio/flac",
    "audio/x-flac",
}

# Extensions the stdlib mimetypes table does not know on every platform
_EXTRA_TYPES = {
    ".bmp": "image/bmp",
    ".avif": "image/avif",
    ".webp": "image/webp",
    ".mkv": "video/x-matroska",
    ".flv": "video/x-flv",
    ".m4a": "audio/mp4",
    ".opus": "audio/opus",
    ".flac": "audio/flac",
    ".ts": "video/mp2t",
    ".mts": "video/mp2t",
    ".m2ts": "video/mp2t",
}

_SIZE_UNITS = {
    "": 1,
    "b": 1,
    "k": 1024,
    "kb": 1024,
    "kib": 1024,
    "m": 1024 ** 2,
    "mb": 1024 ** 2,
    "mib": 1024 ** 2,
    "g": 1024 ** 3,
    "gb": 1024 ** 3,
    "gib": 1024 ** 3,
}

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$")


def media_category(mime_type: str) -> Optional[str]:
    """Map a MIME type to image, gif, video or audio. None if unsupported."""
    mime = (mime_type or "").lower().split(";")[0].strip()
    if mime in GIF_MIMES:
        return "gif"
    if mime in IMAGE_MIMES:
        return "image"
    if mime in VIDEO_MIMES:
        return "video"
    if mime in AUDIO_MIMES:
        return "audio"
    return None


def guess_mime_type(path: Path) -> Optional[str]:
    """Guess the MIME type of a file from its extension."""
    suffix = path.suffix.lower()
    if suffix in _EXTRA_TYPES:
        return _EXTRA_TYPES[suffix]
    mime, _ = mimetypes.guess_type(str(path))
    return mime


def parse_size(value: str) -> int:
    """
    Parse a human size string into bytes.

    Units are binary: ``10MB`` is ``10 * 1024 * 1024`` bytes.

    Raises:
        ValidationError: If the string is not a size
    """
    match = _SIZE_RE.match(str(value))
    if not match:
        raise ValidationError(f"Invalid size: {value!r}", field="target")

    number, unit = match.groups()
    multiplier = _SIZE_UNITS.get(unit.lower())
    if multiplier is None:
        raise ValidationError(
            f"Unknown size unit: {unit!r}",
            field="target",
            details={"valid_units": sorted(u for u in _SIZE_UNITS if u)},
        )
    return int(float(number) * multiplier)


def validate_request(
    data: bytes,
    mime_type: str,
    target_size_bytes: int,
) -> str:
    """
    Validate a compression request.

    Checks:
    - Input is non-empty
    - Target is positive
    - MIME type maps to a supported category

    Returns:
        The media category

    Raises:
        InvalidRequestError: If validation fails
    """
    if not data:
        raise InvalidRequestError("Input is empty", field="input")

    if target_size_bytes <= 0:
        raise InvalidRequestError(
            f"Target size must be positive, got {target_size_bytes}",
            field="target_size_bytes",
        )

    category = media_category(mime_type)
    if category is None:
        raise InvalidRequestError(
            f"Unsupported media type: {mime_type}",
            field="mime_type",
            details={"mime_type": mime_type},
        )

    return category
