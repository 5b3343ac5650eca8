"""
Media: Probing, ladder tables and encoders for each media type.
"""

from .audio import AudioParams, FfmpegAudioEncoder, plan_audio
from .base import EncodeContext, EncodeParams, Encoder, ExternalEncoder, MediaPlan
from .gif import GifParams, GifsicleEncoder, plan_gif
from .image import ImageEncoder, ImageParams, plan_image
from .probe import parse_ffprobe, probe_image, probe_media, probe_request
from .video import FfmpegVideoEncoder, VideoParams, plan_video

__all__ = [
    "AudioParams",
    "EncodeContext",
    "EncodeParams",
    "Encoder",
    "ExternalEncoder",
    "FfmpegAudioEncoder",
    "FfmpegVideoEncoder",
    "GifParams",
    "GifsicleEncoder",
    "ImageEncoder",
    "ImageParams",
    "MediaPlan",
    "VideoParams",
    "parse_ffprobe",
    "plan_audio",
    "plan_gif",
    "plan_image",
    "plan_video",
    "probe_image",
    "probe_media",
    "probe_request",
]
