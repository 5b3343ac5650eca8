"""
Errors: Exception taxonomy for the compression engine.

Only request validation and probe failures abort a request immediately.
Encode failures are per-trial and recoverable; they surface as
``EncodeError`` only once every ladder rung has failed to produce output.
Missing the target is not an error at all: the result carries a warning.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class MediafitError(Exception):
    """Base class for all engine errors."""


class ProbeError(MediafitError):
    """Raised when required metadata cannot be extracted from the input."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class EncodeError(MediafitError):
    """Raised when an external encoder invocation fails."""

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr: str = "",
        params: Optional[Dict[str, Any]] = None,
    ):
        self.returncode = returncode
        self.stderr = stderr
        self.params = params or {}
        super().__init__(message)


class EncodeTimeoutError(EncodeError):
    """Raised when an encoder exceeds its deadline and is killed."""

    def __init__(self, message: str, timeout: float):
        self.timeout = timeout
        super().__init__(message)


class CompressionCancelled(MediafitError):
    """Raised when the caller cancels an in-flight compression."""


class TargetUnreachableError(MediafitError):
    """Raised when no trial fits the budget and the caller asked to fail."""

    def __init__(self, message: str, best_size: Optional[int] = None, rungs: Optional[List[str]] = None):
        self.best_size = best_size
        self.rungs = rungs or []
        super().__init__(message)
