"""Factory for creating and configuring services."""

from typing import Optional

from .core.config import Config, get_config
from .core.media_downloader import MediaCascade
from .core.transcript_fetcher import TranscriptCascade
from .core.youtube_client import YouTubeClient
from .repositories import InMemorySessionRepository, RedisSessionRepository, SessionRepository
from .services import PipelineService, TranscriptionService, TranslationService, WebhookService
from .utils.logging import get_logger

logger = get_logger("service_factory")


class ServiceFactory:
    """Factory for creating and managing service dependencies."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()
        self._session_repository = None
        self._transcript_cascade = None
        self._media_cascade = None
        self._youtube_client = None
        self._transcription_service = None
        self._translation_service = None
        self._webhook_service = None
        self._pipeline_service = None

        logger.info("Initialized ServiceFactory")

    def get_session_repository(self) -> SessionRepository:
        """Redis when REDIS_URL is set, otherwise the in-process store."""
        if self._session_repository is None:
            session_config = self.config.session
            if session_config.redis_url:
                self._session_repository = RedisSessionRepository.from_url(
                    session_config.redis_url,
                    ttl_seconds=session_config.ttl_seconds,
                    key_prefix=session_config.key_prefix,
                )
                logger.info("Using Redis session store")
            else:
                self._session_repository = InMemorySessionRepository(
                    ttl_seconds=session_config.ttl_seconds,
                    sweep_interval=session_config.sweep_interval,
                )
                logger.warning("REDIS_URL not set, sessions are kept in process memory")
        return self._session_repository

    def get_transcript_cascade(self) -> TranscriptCascade:
        if self._transcript_cascade is None:
            self._transcript_cascade = TranscriptCascade.from_config(self.config.transcript, self.config.media)
        return self._transcript_cascade

    def get_media_cascade(self) -> MediaCascade:
        if self._media_cascade is None:
            self._media_cascade = MediaCascade.from_config(self.config.media)
        return self._media_cascade

    def get_youtube_client(self) -> YouTubeClient:
        if self._youtube_client is None:
            self._youtube_client = YouTubeClient(self.config.youtube)
        return self._youtube_client

    def get_transcription_service(self) -> TranscriptionService:
        if self._transcription_service is None:
            self._transcription_service = TranscriptionService(self.config.ai)
        return self._transcription_service

    def get_translation_service(self) -> TranslationService:
        if self._translation_service is None:
            self._translation_service = TranslationService(self.config.ai)
        return self._translation_service

    def get_webhook_service(self) -> WebhookService:
        if self._webhook_service is None:
            self._webhook_service = WebhookService(self.config.webhook)
        return self._webhook_service

    def get_pipeline_service(self) -> PipelineService:
        """Get or create the pipeline service with all its collaborators."""
        if self._pipeline_service is None:
            self._pipeline_service = PipelineService(
                repository=self.get_session_repository(),
                transcript_cascade=self.get_transcript_cascade(),
                media_cascade=self.get_media_cascade(),
                youtube_client=self.get_youtube_client(),
                transcription_service=self.get_transcription_service(),
                translation_service=self.get_translation_service(),
                webhook_service=self.get_webhook_service(),
                config=self.config,
            )
        return self._pipeline_service

    async def startup(self) -> None:
        await self.get_session_repository().start()

    async def cleanup(self):
        """Cleanup all services."""
        if self._session_repository:
            await self._session_repository.close()

        logger.info("ServiceFactory cleanup completed")


# Global service factory instance
_service_factory = None


def get_service_factory() -> ServiceFactory:
    """Get the global service factory instance."""
    global _service_factory
    if _service_factory is None:
        _service_factory = ServiceFactory()
    return _service_factory

