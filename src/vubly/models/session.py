"""Data models for dubbing jobs."""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from ..core.exceptions import InvalidSessionStateError

BINARY_FIELDS = ("original_audio", "translated_audio", "video_buffer")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(Enum):
    """Job lifecycle states. ``completed`` and ``error`` are terminal."""
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PROCESSING


@dataclass
class VideoInfo:
    """Represents YouTube video metadata."""
    video_id: str
    title: str = "Unknown Title"
    duration: Optional[int] = None
    thumbnail: Optional[str] = None
    author: str = "Unknown Author"

    @property
    def youtube_url(self) -> str:
        return f"https://www.youtube.com/watch?v={self.video_id}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "video_id": self.video_id,
            "title": self.title,
            "duration": self.duration,
            "thumbnail": self.thumbnail,
            "author": self.author,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VideoInfo":
        return cls(
            video_id=data["video_id"],
            title=data.get("title") or "Unknown Title",
            duration=data.get("duration"),
            thumbnail=data.get("thumbnail"),
            author=data.get("author") or "Unknown Author",
        )


@dataclass
class JobSession:
    """
    One translate-a-video job and everything accumulated for it.

    Binary fields hold raw bytes in-process; encoding for storage happens in
    the session repository.
    """
    session_id: str
    video_id: str
    video_info: VideoInfo
    status: JobStatus = JobStatus.PROCESSING
    transcript: Optional[str] = None
    detected_language: Optional[str] = None
    target_language: Optional[str] = None
    voice_id: Optional[str] = None
    translated_text: Optional[str] = None
    original_audio: Optional[bytes] = None
    translated_audio: Optional[bytes] = None
    video_buffer: Optional[bytes] = None
    error: Optional[str] = None
    translation_round: int = 0
    dispatched_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def has_original_audio(self) -> bool:
        return bool(self.original_audio)

    @property
    def has_translated_audio(self) -> bool:
        return bool(self.translated_audio)

    @property
    def has_video(self) -> bool:
        return bool(self.video_buffer)

    @property
    def has_transcript(self) -> bool:
        return self.transcript is not None and len(self.transcript.strip()) > 0

    def validate(self) -> None:
        """
        Enforce the lifecycle invariants.

        Raises:
            InvalidSessionStateError: if a completed job lacks results or an
                errored job lacks a message
        """
        if self.status is JobStatus.COMPLETED and not (self.translated_text and self.translated_audio):
            raise InvalidSessionStateError(
                f"Session {self.session_id} cannot be completed without translated text and audio"
            )
        if self.status is JobStatus.ERROR and not self.error:
            raise InvalidSessionStateError(
                f"Session {self.session_id} cannot enter error state without a message"
            )
        for name in BINARY_FIELDS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, (bytes, bytearray)):
                raise InvalidSessionStateError(f"Field {name} must be bytes, got {type(value).__name__}")

    def merged(self, **changes: Any) -> "JobSession":
        """Return a copy with ``changes`` applied. Unknown field names raise ``TypeError``."""
        allowed = {f.name for f in fields(self)} - {"session_id", "created_at"}
        unknown = set(changes) - allowed
        if unknown:
            raise TypeError(f"Unknown session fields: {', '.join(sorted(unknown))}")
        if isinstance(changes.get("status"), str):
            changes["status"] = JobStatus(changes["status"])
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary. Binary fields stay as bytes."""
        return {
            "session_id": self.session_id,
            "video_id": self.video_id,
            "video_info": self.video_info.to_dict(),
            "status": self.status.value,
            "transcript": self.transcript,
            "detected_language": self.detected_language,
            "target_language": self.target_language,
            "voice_id": self.voice_id,
            "translated_text": self.translated_text,
            "original_audio": self.original_audio,
            "translated_audio": self.translated_audio,
            "video_buffer": self.video_buffer,
            "error": self.error,
            "translation_round": self.translation_round,
            "dispatched_at": self.dispatched_at.isoformat() if self.dispatched_at else None,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobSession":
        """Create from dictionary."""
        if not isinstance(data, dict):
            raise TypeError(f"Expected dictionary, got {type(data)}")
        if "session_id" not in data or "video_id" not in data:
            raise ValueError("Missing required field 'session_id' or 'video_id' in data")

        dispatched_at = data.get("dispatched_at")
        created_at = data.get("created_at")
        return cls(
            session_id=data["session_id"],
            video_id=data["video_id"],
            video_info=VideoInfo.from_dict(data.get("video_info") or {"video_id": data["video_id"]}),
            status=JobStatus(data.get("status", JobStatus.PROCESSING.value)),
            transcript=data.get("transcript"),
            detected_language=data.get("detected_language"),
            target_language=data.get("target_language"),
            voice_id=data.get("voice_id"),
            translated_text=data.get("translated_text"),
            original_audio=data.get("original_audio"),
            translated_audio=data.get("translated_audio"),
            video_buffer=data.get("video_buffer"),
            error=data.get("error"),
            translation_round=int(data.get("translation_round") or 0),
            dispatched_at=datetime.fromisoformat(dispatched_at) if dispatched_at else None,
            created_at=datetime.fromisoformat(created_at) if created_at else utcnow(),
        )
