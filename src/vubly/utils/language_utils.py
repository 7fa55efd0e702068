"""Language code helpers shared by the webhook payload and the AI adapters."""

import re
from typing import Optional

# ISO 639-1 codes understood by the translation and voice providers
SUPPORTED_LANGUAGES = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese",
    "ar": "Arabic",
    "ru": "Russian",
    "hi": "Hindi",
    "nl": "Dutch",
    "pl": "Polish",
    "tr": "Turkish",
    "vi": "Vietnamese",
    "th": "Thai",
    "id": "Indonesian",
}

_CODE_PATTERN = re.compile(r'\b([a-z]{2})\b')


def normalize_language_code(code: Optional[str]) -> Optional[str]:
    """Reduce ``en-US`` style codes to their two-letter base."""
    if not code:
        return None
    c = code.strip().lower().replace('_', '-')
    if '-' in c:
        c = c.split('-')[0]
    return c or None


def get_language_name(language_code: Optional[str]) -> Optional[str]:
    """
    Get the English name for a language code.

    Unknown codes are returned unchanged so downstream systems still receive
    something meaningful.

    Args:
        language_code: ISO 639-1 language code

    Returns:
        Language name, the original code when unknown, or None for empty input
    """
    if not language_code:
        return None
    base = normalize_language_code(language_code)
    return SUPPORTED_LANGUAGES.get(base, language_code)


def parse_language_code(answer: str) -> Optional[str]:
    """Pull a two-letter language code out of a free-form model answer."""
    if not answer:
        return None
    match = _CODE_PATTERN.search(answer.strip().lower())
    return match.group(1) if match else None
