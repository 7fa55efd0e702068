"""Service layer for Vubly."""

from .transcription_service import TranscriptionService
from .translation_service import TranslationService
from .webhook_service import WebhookService, CallbackPayload, parse_callback_payload, sanitize_transcript
from .pipeline_service import PipelineService, CaptionCheck

__all__ = [
    "TranscriptionService",
    "TranslationService",
    "WebhookService",
    "CallbackPayload",
    "parse_callback_payload",
    "sanitize_transcript",
    "PipelineService",
    "CaptionCheck",
]
