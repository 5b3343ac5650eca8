"""
mediafit: Compress media files to a target byte budget.

    from mediafit import compress

    result = compress(data, "video/mp4", 50 * 1024 * 1024)
    print(result.compressed_size, result.warning)
"""

from .config import EngineSettings, load_settings
from .engine.compressor import MediaCompressor, compress
from .errors import (
    CompressionCancelled,
    EncodeError,
    EncodeTimeoutError,
    MediafitError,
    ProbeError,
    TargetUnreachableError,
)
from .models import CompressionRequest, CompressionResult, ProbeResult
from .validation import ConfigurationError, InvalidRequestError, ValidationError

__version__ = "0.1.0"

__all__ = [
    "CompressionCancelled",
    "CompressionRequest",
    "CompressionResult",
    "ConfigurationError",
    "EncodeError",
    "EncodeTimeoutError",
    "EngineSettings",
    "InvalidRequestError",
    "MediaCompressor",
    "MediafitError",
    "ProbeError",
    "ProbeResult",
    "TargetUnreachableError",
    "ValidationError",
    "compress",
    "load_settings",
]
