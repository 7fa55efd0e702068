"""Hand-off to the external translation/voice automation and parsing of its callback."""

import asyncio
import base64
import binascii
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlencode

import requests

from ..core.config import WebhookConfig
from ..core.exceptions import CallbackValidationError, WebhookDispatchError
from ..core.http_client import new_session
from ..models import JobSession
from ..utils.language_utils import get_language_name
from ..utils.logging import get_logger

logger = get_logger("webhook_service")

_CONTROL_CHARS = re.compile(r'[\u0000-\u001F\u007F-\u009F]')

SESSION_ID_PATHS: Sequence[Tuple[str, ...]] = (("sessionId",), ("session_id",), ("session",), ("id",))
TRANSLATION_PATHS: Sequence[Tuple[str, ...]] = (
    ("translation",), ("translatedText",), ("text",), ("translation_text",),
    ("data", "translation"), ("data", "translatedText"),
)
AUDIO_PATHS: Sequence[Tuple[str, ...]] = (
    ("audioData",), ("audio_base64",), ("audio",),
    ("data", "audio_base64"), ("data", "audio"), ("data", "data"),
)

MISSING_FIELDS_MESSAGE = "Missing required fields: sessionId, translation, audioData"


def sanitize_transcript(text: str) -> str:
    """Line breaks become spaces, control characters go, whitespace collapses."""
    text = text.replace('\r\n', ' ')
    text = re.sub(r'[\r\n]', ' ', text)
    text = _CONTROL_CHARS.sub('', text)
    return re.sub(r'\s+', ' ', text).strip()


def _lookup(body: Mapping[str, Any], path: Tuple[str, ...]) -> Any:
    node: Any = body
    for key in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node


def _first(body: Mapping[str, Any], paths: Sequence[Tuple[str, ...]]) -> Any:
    for path in paths:
        value = _lookup(body, path)
        if value not in (None, "", [], {}):
            return value
    return None


def _normalize_audio(value: Any) -> Optional[str]:
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, Mapping):
        value = value.get("data")
    if not isinstance(value, str) or not value:
        return None
    if value.startswith("data:") and "," in value:
        value = value.split(",", 1)[1]
    return value.strip() or None


@dataclass
class CallbackPayload:
    """A validated callback from the automation platform."""
    session_id: str
    translated_text: str
    translated_audio: bytes
    translation_round: Optional[int] = None


def parse_callback_payload(body: Any, query: Optional[Mapping[str, str]] = None) -> CallbackPayload:
    """
    Validate and normalize a callback body.

    Several field-name conventions are accepted for each value, the audio may
    arrive wrapped in a list or object or behind a data-URL prefix, and the
    session id and round may come from the callback URL's query string.

    Raises:
        CallbackValidationError: if a required field is missing or the audio
            is not valid base64
    """
    query = query or {}
    body = body if isinstance(body, Mapping) else {}

    session_id = _first(body, SESSION_ID_PATHS) or query.get("sessionId") or query.get("session_id")
    translation = _first(body, TRANSLATION_PATHS)
    audio_b64 = _normalize_audio(_first(body, AUDIO_PATHS))

    if not session_id or not translation or not audio_b64:
        received = {
            "sessionId": bool(session_id),
            "translation": bool(translation),
            "audioData": bool(audio_b64),
            "bodyKeys": sorted(str(k) for k in body.keys()),
        }
        raise CallbackValidationError(MISSING_FIELDS_MESSAGE, received=received)

    try:
        audio = base64.b64decode(audio_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CallbackValidationError("audioData is not valid base64", received={"error": str(e)}) from e
    if not audio:
        raise CallbackValidationError("audioData decoded to an empty payload")

    round_value = query.get("round", body.get("round"))
    try:
        translation_round = int(round_value) if round_value not in (None, "") else None
    except (TypeError, ValueError):
        raise CallbackValidationError(f"Invalid round value: {round_value!r}")

    return CallbackPayload(
        session_id=str(session_id),
        translated_text=str(translation),
        translated_audio=audio,
        translation_round=translation_round,
    )


def make_payload(session_id: str, transcript: str, detected_language: str, target_language: str,
                 voice_id: str, callback_url: str) -> Dict[str, Any]:
    """The body the automation scenario expects: clean transcript, languages by name."""
    return {
        "sessionId": session_id,
        "transcript": sanitize_transcript(transcript),
        "detectedLanguage": get_language_name(detected_language),
        "targetLanguage": get_language_name(target_language),
        "voiceId": voice_id,
        "callbackUrl": callback_url,
    }


class WebhookService:
    """Sends jobs to the external automation endpoint."""

    def __init__(self, config: WebhookConfig, session_factory: Optional[Callable[[], requests.Session]] = None):
        self.config = config
        self.session_factory = session_factory or (lambda: new_session(youtube=False, retries=2))

    def callback_url_for(self, session_id: str, translation_round: int) -> str:
        return f"{self.config.callback_url}?{urlencode({'sessionId': session_id, 'round': translation_round})}"

    def build_payload(self, job: JobSession, fallback_language: str = "en") -> Dict[str, Any]:
        return make_payload(
            job.session_id,
            job.transcript or "",
            job.detected_language or fallback_language,
            job.target_language,
            job.voice_id,
            self.callback_url_for(job.session_id, job.translation_round),
        )

    def _post(self, payload: Dict[str, Any]) -> int:
        s = self.session_factory()
        r = s.post(self.config.url, json=payload, timeout=self.config.timeout)
        r.raise_for_status()
        return r.status_code

    async def send(self, payload: Dict[str, Any]) -> int:
        """
        POST a prepared payload to the automation endpoint.

        Returns:
            The HTTP status of the accepting response

        Raises:
            WebhookDispatchError: if no endpoint is configured or the POST fails
        """
        if not self.config.url:
            raise WebhookDispatchError("MAKE_WEBHOOK_URL environment variable is not set")
        try:
            status_code = await asyncio.to_thread(self._post, payload)
        except requests.RequestException as e:
            raise WebhookDispatchError(f"Failed to send to Make.com: {e}") from e
        logger.info(f"Webhook accepted session {payload.get('sessionId')} with status {status_code}")
        return status_code

    async def dispatch(self, job: JobSession, fallback_language: str = "en") -> None:
        """
        Send the job for translation and speech synthesis.

        Any 2xx response means the job was accepted; results arrive later via
        the callback.
        """
        payload = self.build_payload(job, fallback_language)
        logger.info(f"Dispatching session {job.session_id} (round {job.translation_round}) "
                    f"{payload['detectedLanguage']} -> {payload['targetLanguage']}, "
                    f"{len(payload['transcript'])} chars")
        await self.send(payload)
