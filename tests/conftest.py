"""Pytest configuration and fixtures for the Vubly backend tests."""

import asyncio
import os
import sys
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

# Add the src directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

# Set test environment variables before importing app
os.environ.pop("REDIS_URL", None)
os.environ["API_DEBUG"] = "true"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["CORS_ORIGINS"] = "http://localhost:3000"
os.environ["MAKE_WEBHOOK_URL"] = "https://hook.test.make.com/abc123"
os.environ["APP_BASE_URL"] = "http://testserver"
os.environ["OPENAI_API_KEY"] = "test-openai-key"
os.environ["TRANSLATION_MODE"] = "webhook"
os.environ["PIPELINE_RUN_IN_BACKGROUND"] = "false"

from vubly.core.config import Config
from vubly.core.exceptions import MediaUnavailableError
from vubly.core.media_downloader import MediaResult
from vubly.core.transcript_fetcher import TranscriptResult
from vubly.models import VideoInfo
from vubly.repositories import InMemorySessionRepository
from vubly.service_factory import ServiceFactory
from vubly.services import PipelineService
from vubly_api.app import create_app
from vubly_api.dependencies import get_service_factory


TEST_VIDEO_ID = "abc123XYZ_9"
TEST_VIDEO_URL = f"https://www.youtube.com/watch?v={TEST_VIDEO_ID}"
TEST_TRANSCRIPT = (
    "Welcome back to the channel. Today we are going to look at how sourdough "
    "starters work and why temperature matters so much."
)


def run(coro):
    """Drive a coroutine from a synchronous test."""
    return asyncio.run(coro)


@pytest.fixture
def test_config():
    """Configuration with deterministic values for tests."""
    config = Config()
    config.webhook.url = "https://hook.test.make.com/abc123"
    config.webhook.app_base_url = "http://testserver"
    config.webhook.translation_mode = "webhook"
    config.webhook.callback_timeout_seconds = 1800
    config.media.fetch_video = True
    config.pipeline.run_in_background = False
    config.ai.default_source_language = "en"
    return config


@pytest.fixture
def repository():
    """In-memory session store."""
    return InMemorySessionRepository(ttl_seconds=3600, sweep_interval=60)


@pytest.fixture
def test_video_info():
    return VideoInfo(
        video_id=TEST_VIDEO_ID,
        title="Test Video Title",
        duration=212,
        thumbnail=f"https://img.youtube.com/vi/{TEST_VIDEO_ID}/hqdefault.jpg",
        author="Test Channel",
    )


@pytest.fixture
def mock_transcript_cascade():
    """Transcript cascade that finds captions."""
    cascade = Mock()
    cascade.strategies = []
    cascade.fetch = AsyncMock(return_value=TranscriptResult(text=TEST_TRANSCRIPT, source="page"))
    return cascade


@pytest.fixture
def mock_media_cascade():
    """Media cascade with no video available and a small MP3 for audio."""
    async def acquire(video_id, kind):
        if kind.value == "video":
            raise MediaUnavailableError("video", [])
        return MediaResult(data=b"ID3-original-audio", provider="ytdlp")

    cascade = Mock()
    cascade.acquire = AsyncMock(side_effect=acquire)
    return cascade


@pytest.fixture
def mock_youtube_client(test_video_info):
    client = Mock()
    client.get_video_info = AsyncMock(return_value=test_video_info)
    return client


@pytest.fixture
def mock_transcription_service():
    service = Mock()
    service.transcribe = AsyncMock(return_value="Transcribed speech from the audio track of the video.")
    service.detect_language = AsyncMock(return_value="en")
    return service


@pytest.fixture
def mock_translation_service():
    service = Mock()
    service.translate = AsyncMock(return_value="Hola a todos")
    service.synthesize = AsyncMock(return_value=b"ID3-translated-audio")
    return service


@pytest.fixture
def mock_webhook_service():
    service = Mock()
    service.dispatch = AsyncMock(return_value=None)
    service.send = AsyncMock(return_value=200)
    return service


@pytest.fixture
def pipeline_service(
    repository,
    mock_transcript_cascade,
    mock_media_cascade,
    mock_youtube_client,
    mock_transcription_service,
    mock_translation_service,
    mock_webhook_service,
    test_config
):
    """Real pipeline wired to an in-memory store and mocked adapters."""
    return PipelineService(
        repository=repository,
        transcript_cascade=mock_transcript_cascade,
        media_cascade=mock_media_cascade,
        youtube_client=mock_youtube_client,
        transcription_service=mock_transcription_service,
        translation_service=mock_translation_service,
        webhook_service=mock_webhook_service,
        config=test_config,
    )


@pytest.fixture
def service_factory(test_config, repository, pipeline_service):
    """ServiceFactory whose store and pipeline are the test doubles above."""
    factory = ServiceFactory(config=test_config)
    factory._session_repository = repository
    factory._pipeline_service = pipeline_service
    return factory


@pytest.fixture
def app(service_factory):
    """Application with the service factory overridden."""
    application = create_app()
    application.dependency_overrides[get_service_factory] = lambda: service_factory
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """HTTP test client."""
    return TestClient(app)


@pytest.fixture
def seeded_session(repository, test_video_info):
    """A processing session that already has a transcript and one dispatch."""
    return run(repository.create(
        TEST_VIDEO_ID,
        test_video_info,
        transcript=TEST_TRANSCRIPT,
        detected_language="en",
        target_language="es",
        voice_id="V1",
        translation_round=1,
    ))
