"""Speech-to-text and language identification through the OpenAI API."""

import asyncio
from typing import Any, Callable, Optional

import openai

from ..core.config import AIConfig
from ..core.exceptions import LanguageDetectionError, TranscriptionError
from ..utils.language_utils import parse_language_code
from ..utils.logging import get_logger

logger = get_logger("transcription_service")

DETECTION_SAMPLE_CHARS = 500


class TranscriptionService:
    """Whisper transcription plus a small chat call for language detection."""

    def __init__(self, config: AIConfig, client_factory: Callable[..., Any] = openai.OpenAI):
        self.config = config
        self._client_factory = client_factory
        self._client: Optional[Any] = None

    @property
    def client(self) -> Any:
        """Lazily build the OpenAI client so a missing key only matters when used."""
        if self._client is None:
            if not self.config.openai_api_key:
                raise TranscriptionError("OPENAI_API_KEY is not configured")
            self._client = self._client_factory(api_key=self.config.openai_api_key,
                                                timeout=self.config.request_timeout)
        return self._client

    def _transcribe_sync(self, audio: bytes, filename: str) -> str:
        resp = self.client.audio.transcriptions.create(
            file=(filename, audio),
            model=self.config.whisper_model,
            response_format="verbose_json",
        )
        return (getattr(resp, "text", None) or "").strip()

    async def transcribe(self, audio: bytes, filename: str = "audio.mp3") -> str:
        """
        Transcribe audio bytes.

        Returns:
            The transcript text (may be empty if nothing was recognized)

        Raises:
            TranscriptionError: if the provider call fails
        """
        if not audio:
            raise TranscriptionError("No audio to transcribe")
        logger.info(f"Transcribing {len(audio)} bytes with {self.config.whisper_model}")
        try:
            return await asyncio.to_thread(self._transcribe_sync, audio, filename)
        except TranscriptionError:
            raise
        except openai.OpenAIError as e:
            raise TranscriptionError(f"Transcription failed: {e}") from e

    def _detect_sync(self, text: str) -> str:
        resp = self.client.chat.completions.create(
            model=self.config.language_detection_model,
            messages=[
                {
                    "role": "system",
                    "content": "You identify the language of text. Answer with only the ISO 639-1 "
                               "two-letter code, for example: en, es, fr.",
                },
                {"role": "user", "content": text[:DETECTION_SAMPLE_CHARS]},
            ],
            max_tokens=5,
            temperature=0,
        )
        if not resp.choices:
            return ""
        return resp.choices[0].message.content or ""

    async def detect_language(self, text: str) -> str:
        """
        Identify the language of ``text``.

        Raises:
            LanguageDetectionError: on provider failure or an unusable answer
        """
        if not text or not text.strip():
            raise LanguageDetectionError("No text to detect language from")
        try:
            answer = await asyncio.to_thread(self._detect_sync, text)
        except (openai.OpenAIError, TranscriptionError) as e:
            raise LanguageDetectionError(f"Language detection failed: {e}") from e

        code = parse_language_code(answer)
        if not code:
            raise LanguageDetectionError(f"Unusable language detection answer: {answer!r}")
        return code
