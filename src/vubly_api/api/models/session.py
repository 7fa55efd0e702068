"""Dubbing job models for the API."""

import base64
from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from vubly.models import JobSession, VideoInfo
from vubly.services import CaptionCheck
from vubly.utils.language_utils import normalize_language_code
from vubly.utils.youtube_utils import validate_youtube_url

from .base import BaseResponse, CamelModel


def _require_youtube_url(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("YouTube URL is required")
    if not validate_youtube_url(v):
        raise ValueError("Invalid YouTube URL")
    return v


def _require_text(v: str, name: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError(f"{name} is required")
    return v


class VideoInfoModel(CamelModel):
    """Video metadata shown alongside a job."""

    video_id: str
    title: str
    duration: Optional[int] = None
    thumbnail: Optional[str] = None
    author: str

    @classmethod
    def from_domain(cls, info: VideoInfo) -> "VideoInfoModel":
        return cls(
            video_id=info.video_id,
            title=info.title,
            duration=info.duration,
            thumbnail=info.thumbnail,
            author=info.author,
        )


class ProcessRequest(CamelModel):
    """Start a dubbing job for a video."""

    youtube_url: str = Field(..., description="YouTube video URL")
    target_language: str = Field(..., description="ISO 639-1 code to dub into")
    voice_id: str = Field(..., description="Voice used for speech synthesis")

    @field_validator("youtube_url")
    @classmethod
    def validate_youtube_url_format(cls, v):
        return _require_youtube_url(v)

    @field_validator("target_language")
    @classmethod
    def validate_target_language(cls, v):
        code = normalize_language_code(v)
        if not code:
            raise ValueError("Target language is required")
        return code

    @field_validator("voice_id")
    @classmethod
    def validate_voice_id(cls, v):
        return _require_text(v, "Voice ID")


class ProcessWithTranscriptRequest(ProcessRequest):
    """Start a dubbing job with a transcript captured by the client."""

    transcript: str = Field(default="", description="Transcript text extracted client-side")


class CheckCaptionsRequest(CamelModel):
    """Probe a video for captions."""

    youtube_url: str = Field(..., description="YouTube video URL")

    @field_validator("youtube_url")
    @classmethod
    def validate_youtube_url_format(cls, v):
        return _require_youtube_url(v)


class RetranslateRequest(CamelModel):
    """Translate an existing job again with a new language or voice."""

    session_id: str
    target_language: str
    voice_id: str

    @field_validator("session_id")
    @classmethod
    def validate_session_id(cls, v):
        return _require_text(v, "Session ID")

    @field_validator("target_language")
    @classmethod
    def validate_target_language(cls, v):
        code = normalize_language_code(v)
        if not code:
            raise ValueError("Target language is required")
        return code

    @field_validator("voice_id")
    @classmethod
    def validate_voice_id(cls, v):
        return _require_text(v, "Voice ID")


class ProcessResponse(BaseResponse):
    """Response for a newly started job."""

    session_id: str
    status: str
    video_info: VideoInfoModel

    @classmethod
    def from_session(cls, session: JobSession) -> "ProcessResponse":
        return cls(
            session_id=session.session_id,
            status=session.status.value,
            video_info=VideoInfoModel.from_domain(session.video_info),
        )


class RetranslateResponse(BaseResponse):
    session_id: str
    status: str


class CallbackResponse(BaseResponse):
    session_id: str
    message: str = "Translation received"


class WebhookTestRequest(CamelModel):
    """A ready-made automation payload; emptiness is reported by the pipeline."""

    session_id: Optional[str] = None
    transcript: Optional[str] = None
    detected_language: Optional[str] = None
    target_language: Optional[str] = None
    voice_id: Optional[str] = None
    callback_url: Optional[str] = None


class WebhookTestResponse(BaseResponse):
    session_id: str
    message: str = "Webhook triggered successfully. Results will be sent to callback."


class SessionResponse(CamelModel):
    """A job as seen by clients: binary payloads replaced by presence flags."""

    session_id: str
    video_id: str
    video_info: VideoInfoModel
    status: str
    transcript: Optional[str] = None
    detected_language: Optional[str] = None
    target_language: Optional[str] = None
    voice_id: Optional[str] = None
    translated_text: Optional[str] = None
    error: Optional[str] = None
    translation_round: int = 0
    created_at: datetime
    dispatched_at: Optional[datetime] = None
    has_original_audio: bool = False
    has_translated_audio: bool = False
    has_video: bool = False
    translated_audio: Optional[str] = Field(default=None, description="Base64 MP3, only with includeAudio")

    @classmethod
    def from_session(cls, session: JobSession, include_audio: bool = False) -> "SessionResponse":
        fields = dict(
            session_id=session.session_id,
            video_id=session.video_id,
            video_info=VideoInfoModel.from_domain(session.video_info),
            status=session.status.value,
            transcript=session.transcript,
            detected_language=session.detected_language,
            target_language=session.target_language,
            voice_id=session.voice_id,
            translated_text=session.translated_text,
            error=session.error,
            translation_round=session.translation_round,
            created_at=session.created_at,
            dispatched_at=session.dispatched_at,
            has_original_audio=session.has_original_audio,
            has_translated_audio=session.has_translated_audio,
            has_video=session.has_video,
        )
        # Left unset otherwise so the router can drop it from the body
        if include_audio and session.has_translated_audio:
            fields["translated_audio"] = base64.b64encode(session.translated_audio).decode("ascii")
        return cls(**fields)


class CaptionCheckResponse(CamelModel):
    has_captions: bool
    video_id: str
    message: str
    preview: Optional[str] = None
    source: Optional[str] = None

    @classmethod
    def from_check(cls, check: CaptionCheck) -> "CaptionCheckResponse":
        return cls(
            has_captions=check.has_captions,
            video_id=check.video_id,
            message=check.message,
            preview=check.preview,
            source=check.source,
        )


class DebugCaptionsResponse(CamelModel):
    video_id: str
    has_caption_tracks: bool
    available_languages: List[str] = Field(default_factory=list)
    selected_language: Optional[str] = None
    error: Optional[str] = None
