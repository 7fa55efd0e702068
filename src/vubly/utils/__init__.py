"""Utility helpers for Vubly."""

from .youtube_utils import extract_video_id, validate_youtube_url, normalize_youtube_url
from .language_utils import get_language_name, normalize_language_code
from .logging import get_logger, get_job_logger

__all__ = [
    "extract_video_id",
    "validate_youtube_url",
    "normalize_youtube_url",
    "get_language_name",
    "normalize_language_code",
    "get_logger",
    "get_job_logger",
]
