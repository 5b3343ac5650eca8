"""
Models: Pydantic schemas for requests, probe metadata and results.
"""

from .probe import ProbeResult
from .request import CompressionRequest, MediaType
from .result import CompressionResult

__all__ = [
    "CompressionRequest",
    "CompressionResult",
    "MediaType",
    "ProbeResult",
]
