"""
Environment Validator: Check that each media type's encoders are usable.

Image compression runs in-process through Pillow; GIF needs gifsicle;
video and audio need ffmpeg plus ffprobe.

## Usage

    from mediafit.config.validator import EnvironmentValidator

    validator = EnvironmentValidator(settings)
    for media_type, status in validator.validate_all().items():
        if not status.available:
            print(f"{media_type}: missing {status.missing}")
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from PIL import features

from .loader import EngineSettings

logger = logging.getLogger(__name__)


@dataclass
class MediaSupport:
    """Availability of the tools one media type depends on."""

    media_type: str
    available: bool
    missing: List[str] = field(default_factory=list)
    present: List[str] = field(default_factory=list)
    guidance: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "media_type": self.media_type,
            "available": self.available,
            "missing": self.missing,
            "present": self.present,
            "guidance": self.guidance,
        }


# Media type → settings fields naming the binaries it needs
MEDIA_REQUIREMENTS = {
    "image": {
        "binaries": [],
        "guidance": "Pillow handles still images in-process",
    },
    "gif": {
        "binaries": ["gifsicle_path"],
        "guidance": "Install gifsicle (https://www.lcdf.org/gifsicle/) or set GIFSICLE_PATH",
    },
    "video": {
        "binaries": ["ffmpeg_path", "ffprobe_path"],
        "guidance": "Install ffmpeg (https://ffmpeg.org/) or set FFMPEG_PATH / FFPROBE_PATH",
    },
    "audio": {
        "binaries": ["ffmpeg_path", "ffprobe_path"],
        "guidance": "Install ffmpeg (https://ffmpeg.org/) or set FFMPEG_PATH / FFPROBE_PATH",
    },
}


class EnvironmentValidator:
    """Resolve the external programs each media type depends on."""

    def __init__(self, settings: EngineSettings):
        self.settings = settings
        self.requirements = MEDIA_REQUIREMENTS

    def validate_media(self, media_type: str) -> MediaSupport:
        if media_type not in self.requirements:
            return MediaSupport(
                media_type=media_type,
                available=False,
                guidance=f"Unknown media type: {media_type}",
            )

        reqs = self.requirements[media_type]
        missing = []
        present = []

        for attr in reqs["binaries"]:
            binary = getattr(self.settings, attr)
            if shutil.which(binary):
                present.append(binary)
            else:
                missing.append(binary)

        return MediaSupport(
            media_type=media_type,
            available=not missing,
            missing=missing,
            present=present,
            guidance=None if not missing else reqs["guidance"],
        )

    def validate_all(self) -> Dict[str, MediaSupport]:
        return {name: self.validate_media(name) for name in self.requirements}

    def image_codecs(self) -> Dict[str, bool]:
        """Optional Pillow codecs that affect which image formats encode."""
        return {
            "webp": bool(features.check("webp")),
            "avif": bool(features.check("avif")),
            "libtiff": bool(features.check("libtiff")),
        }

    def log_status(self) -> None:
        """Log availability for all media types."""
        for name, status in self.validate_all().items():
            if status.available:
                logger.info(f"✓ {name}: available")
            else:
                logger.warning(
                    f"✗ {name}: unavailable (missing: {', '.join(status.missing)})"
                )


def check_environment(settings: EngineSettings) -> Dict[str, MediaSupport]:
    """Availability of every media type's tools under ``settings``."""
    return EnvironmentValidator(settings).validate_all()
