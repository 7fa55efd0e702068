"""
Configuration for the Vubly dubbing backend.
Every tunable is read from the environment (or a local .env file) once, when
the configuration object is first built.
"""

import os
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import List
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path('.env')
if env_path.exists():
    load_dotenv(dotenv_path=env_path)


def _parse_list_env(env_var: str, default: List[str]) -> List[str]:
    """Parse a comma-separated environment variable into a list."""
    value = os.getenv(env_var)
    if value:
        return [item.strip() for item in value.split(',') if item.strip()]
    return default


def _parse_bool_env(env_var: str, default: str) -> bool:
    return os.getenv(env_var, default).lower() in ('1', 'true', 'yes', 'on')

# =============================================================================
# SESSION STORE
# =============================================================================

@dataclass
class SessionConfig:
    """Session store configuration."""
    redis_url: str = field(default_factory=lambda: os.getenv('REDIS_URL', ''))
    key_prefix: str = field(default_factory=lambda: os.getenv('REDIS_KEY_PREFIX', 'vubly:session:'))
    ttl_seconds: int = field(default_factory=lambda: int(os.getenv('SESSION_TTL_SECONDS', '3600')))
    sweep_interval: int = field(default_factory=lambda: int(os.getenv('SESSION_SWEEP_INTERVAL', '60')))

# =============================================================================
# ACQUISITION CASCADES
# =============================================================================

@dataclass
class TranscriptConfig:
    """Transcript cascade configuration."""
    min_length: int = field(default_factory=lambda: int(os.getenv('TRANSCRIPT_MIN_LENGTH', '50')))
    strategies: List[str] = field(default_factory=lambda: _parse_list_env(
        'TRANSCRIPT_STRATEGIES', ['page', 'ytdlp', 'innertube', 'transcript_api']
    ))
    strategy_timeout: float = field(default_factory=lambda: float(os.getenv('TRANSCRIPT_STRATEGY_TIMEOUT', '60')))
    final_retry_delay: float = field(default_factory=lambda: float(os.getenv('TRANSCRIPT_FINAL_RETRY_DELAY', '2')))
    language_hints: List[str] = field(default_factory=lambda: _parse_list_env(
        'TRANSCRIPT_LANGUAGE_HINTS', ['en', 'en-US', 'en-GB']
    ))


@dataclass
class MediaConfig:
    """Media cascade configuration."""
    providers: List[str] = field(default_factory=lambda: _parse_list_env(
        'MEDIA_PROVIDERS', ['cobalt', 'rapidapi', 'y2mate', 'ytdlp']
    ))
    provider_timeout: float = field(default_factory=lambda: float(os.getenv('MEDIA_PROVIDER_TIMEOUT', '180')))
    fetch_video: bool = field(default_factory=lambda: _parse_bool_env('MEDIA_FETCH_VIDEO', 'true'))
    work_dir: str = field(default_factory=lambda: os.getenv('MEDIA_WORK_DIR', tempfile.gettempdir()))
    http_timeout: int = field(default_factory=lambda: int(os.getenv('MEDIA_HTTP_TIMEOUT', '60')))

    cobalt_api_url: str = field(default_factory=lambda: os.getenv('COBALT_API_URL', 'https://api.cobalt.tools/'))
    cobalt_api_key: str = field(default_factory=lambda: os.getenv('COBALT_API_KEY', ''))

    rapidapi_key: str = field(default_factory=lambda: os.getenv('RAPIDAPI_KEY', ''))
    rapidapi_host: str = field(default_factory=lambda: os.getenv('RAPIDAPI_HOST', 'youtube-mp36.p.rapidapi.com'))
    rapidapi_max_attempts: int = field(default_factory=lambda: int(os.getenv('RAPIDAPI_MAX_ATTEMPTS', '30')))
    rapidapi_poll_interval: float = field(default_factory=lambda: float(os.getenv('RAPIDAPI_POLL_INTERVAL', '1')))

    y2mate_base_url: str = field(default_factory=lambda: os.getenv('Y2MATE_BASE_URL', 'https://www.y2mate.com'))

    ytdlp_ffmpeg_location: str = field(default_factory=lambda: os.getenv('YTDLP_FFMPEG_LOCATION', ''))
    ytdlp_cookies_file: str = field(default_factory=lambda: os.getenv('YTDLP_COOKIES_FILE', ''))


@dataclass
class YouTubeConfig:
    """YouTube metadata lookup configuration."""
    api_key: str = field(default_factory=lambda: os.getenv('YOUTUBE_API_KEY', ''))
    request_timeout: int = field(default_factory=lambda: int(os.getenv('YOUTUBE_REQUEST_TIMEOUT', '25')))

# =============================================================================
# HOSTED AI PROVIDERS
# =============================================================================

@dataclass
class AIConfig:
    """Speech-to-text, language detection, translation and TTS settings."""
    openai_api_key: str = field(default_factory=lambda: os.getenv('OPENAI_API_KEY', ''))
    whisper_model: str = field(default_factory=lambda: os.getenv('WHISPER_MODEL', 'whisper-1'))
    language_detection_model: str = field(default_factory=lambda: os.getenv('LANGUAGE_DETECTION_MODEL', 'gpt-4o'))
    default_source_language: str = field(default_factory=lambda: os.getenv('DEFAULT_SOURCE_LANGUAGE', 'en'))

    anthropic_api_key: str = field(default_factory=lambda: os.getenv('ANTHROPIC_API_KEY', ''))
    translation_model: str = field(default_factory=lambda: os.getenv('TRANSLATION_MODEL', 'claude-sonnet-4-20250514'))
    translation_max_tokens: int = field(default_factory=lambda: int(os.getenv('TRANSLATION_MAX_TOKENS', '4000')))

    elevenlabs_api_key: str = field(default_factory=lambda: os.getenv('ELEVENLABS_API_KEY', ''))
    elevenlabs_model: str = field(default_factory=lambda: os.getenv('ELEVENLABS_MODEL', 'eleven_multilingual_v2'))

    request_timeout: int = field(default_factory=lambda: int(os.getenv('AI_REQUEST_TIMEOUT', '120')))

# =============================================================================
# WEBHOOK AND PIPELINE
# =============================================================================

@dataclass
class WebhookConfig:
    """External automation webhook configuration."""
    url: str = field(default_factory=lambda: os.getenv('MAKE_WEBHOOK_URL', ''))
    app_base_url: str = field(default_factory=lambda: os.getenv('APP_BASE_URL', 'http://localhost:8000'))
    timeout: int = field(default_factory=lambda: int(os.getenv('WEBHOOK_TIMEOUT', '30')))
    callback_timeout_seconds: int = field(default_factory=lambda: int(os.getenv('CALLBACK_TIMEOUT_SECONDS', '1800')))
    translation_mode: str = field(default_factory=lambda: os.getenv('TRANSLATION_MODE', 'webhook').lower())

    @property
    def callback_url(self) -> str:
        return f"{self.app_base_url.rstrip('/')}/api/makecom-callback"


@dataclass
class PipelineConfig:
    """Pipeline scheduling configuration."""
    run_in_background: bool = field(default_factory=lambda: _parse_bool_env('PIPELINE_RUN_IN_BACKGROUND', 'false'))

# =============================================================================
# MAIN CONFIGURATION CLASS
# =============================================================================

@dataclass
class Config:
    """Main configuration class that aggregates all configuration sections."""
    session: SessionConfig = field(default_factory=SessionConfig)
    transcript: TranscriptConfig = field(default_factory=TranscriptConfig)
    media: MediaConfig = field(default_factory=MediaConfig)
    youtube: YouTubeConfig = field(default_factory=YouTubeConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)

    def validate(self) -> List[str]:
        """
        Check the configuration for problems.

        Returns:
            List of human-readable problems; empty when the configuration is usable.
        """
        errors = []

        if self.session.ttl_seconds <= 0:
            errors.append("SESSION_TTL_SECONDS must be positive")
        if self.transcript.min_length < 0:
            errors.append("TRANSCRIPT_MIN_LENGTH must not be negative")
        if self.webhook.translation_mode not in ('webhook', 'direct'):
            errors.append("TRANSLATION_MODE must be 'webhook' or 'direct'")

        if self.webhook.translation_mode == 'webhook' and not self.webhook.url:
            errors.append("MAKE_WEBHOOK_URL is not set; translation jobs cannot be dispatched")
        if self.webhook.translation_mode == 'direct':
            if not self.ai.anthropic_api_key:
                errors.append("ANTHROPIC_API_KEY is required when TRANSLATION_MODE=direct")
            if not self.ai.elevenlabs_api_key:
                errors.append("ELEVENLABS_API_KEY is required when TRANSLATION_MODE=direct")
        if not self.ai.openai_api_key:
            errors.append("OPENAI_API_KEY is not set; audio transcription and language detection are disabled")

        if (self.webhook.callback_timeout_seconds
                and self.webhook.callback_timeout_seconds >= self.session.ttl_seconds):
            errors.append("CALLBACK_TIMEOUT_SECONDS should be shorter than SESSION_TTL_SECONDS")

        return errors


@lru_cache()
def get_config() -> Config:
    """Get the cached configuration instance."""
    return Config()
