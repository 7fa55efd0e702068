"""Data models for Vubly."""

from .session import JobSession, JobStatus, VideoInfo, BINARY_FIELDS

__all__ = [
    "JobSession",
    "JobStatus",
    "VideoInfo",
    "BINARY_FIELDS",
]
