"""Translation (Anthropic Messages API) and speech synthesis (ElevenLabs)."""

import asyncio
from typing import Callable, Optional

import requests

from ..core.config import AIConfig
from ..core.exceptions import SpeechSynthesisError, TranslationError
from ..core.http_client import new_session
from ..utils.language_utils import get_language_name
from ..utils.logging import get_logger

logger = get_logger("translation_service")

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
ELEVENLABS_TTS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"


class TranslationService:
    """Translate text and voice it, the same work the external automation performs."""

    def __init__(self, config: AIConfig, session_factory: Optional[Callable[[], requests.Session]] = None):
        self.config = config
        self.session_factory = session_factory or (lambda: new_session(youtube=False, retries=2))

    def _translate_sync(self, text: str, source_language: str, target_language: str) -> str:
        if not self.config.anthropic_api_key:
            raise TranslationError("ANTHROPIC_API_KEY is not configured")

        source_name = get_language_name(source_language) or source_language
        target_name = get_language_name(target_language) or target_language
        prompt = (
            f"Translate this text from {source_name} to {target_name}. Maintain natural flow and "
            f"timing for speech. Only output the translation, nothing else:\n\n{text}"
        )

        s = self.session_factory()
        r = s.post(ANTHROPIC_MESSAGES_URL, json={
            "model": self.config.translation_model,
            "max_tokens": self.config.translation_max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }, headers={
            "x-api-key": self.config.anthropic_api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }, timeout=self.config.request_timeout)
        r.raise_for_status()

        blocks = r.json().get("content") or []
        translated = "".join(b.get("text", "") for b in blocks if b.get("type") == "text").strip()
        if not translated:
            raise TranslationError("Translation response contained no text")
        return translated

    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        """
        Translate ``text`` between two ISO 639-1 languages.

        Raises:
            TranslationError: on provider failure or an empty answer
        """
        logger.info(f"Translating {len(text)} chars {source_language} -> {target_language}")
        try:
            return await asyncio.to_thread(self._translate_sync, text, source_language, target_language)
        except requests.RequestException as e:
            raise TranslationError(f"Translation failed: {e}") from e

    def _synthesize_sync(self, text: str, voice_id: str) -> bytes:
        if not self.config.elevenlabs_api_key:
            raise SpeechSynthesisError("ELEVENLABS_API_KEY is not configured")

        s = self.session_factory()
        r = s.post(ELEVENLABS_TTS_URL.format(voice_id=voice_id), json={
            "text": text,
            "model_id": self.config.elevenlabs_model,
            "voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
        }, headers={
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self.config.elevenlabs_api_key,
        }, timeout=self.config.request_timeout)
        r.raise_for_status()
        if not r.content:
            raise SpeechSynthesisError("Speech synthesis returned no audio")
        return r.content

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        """
        Render ``text`` as MP3 speech with the given voice.

        Raises:
            SpeechSynthesisError: on provider failure or empty audio
        """
        logger.info(f"Synthesizing {len(text)} chars with voice {voice_id}")
        try:
            return await asyncio.to_thread(self._synthesize_sync, text, voice_id)
        except requests.RequestException as e:
            raise SpeechSynthesisError(f"Speech synthesis failed: {e}") from e
