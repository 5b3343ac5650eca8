"""
Configuration: Engine settings and environment checks.
"""

from .loader import EngineSettings, SAFETY_MARGIN_BYTES, load_settings
from .validator import EnvironmentValidator, MediaSupport, check_environment

__all__ = [
    "EngineSettings",
    "SAFETY_MARGIN_BYTES",
    "load_settings",
    "EnvironmentValidator",
    "MediaSupport",
    "check_environment",
]
