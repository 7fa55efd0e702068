"""Unit tests for the dubbing job pipeline."""

import json
from datetime import timedelta
from unittest.mock import AsyncMock, Mock

import pytest

from vubly.core.exceptions import (
    InvalidJobRequestError,
    InvalidVideoURLError,
    LanguageDetectionError,
    MediaUnavailableError,
    SessionConflictError,
    SessionNotFoundError,
    WebhookDispatchError,
)
from vubly.core.media_downloader import MediaKind, MediaResult
from vubly.core.transcript_fetcher import PageCaptionStrategy
from vubly.models import JobStatus
from vubly.models.session import utcnow
from vubly.services.pipeline_service import (
    CALLBACK_TIMED_OUT,
    NO_TRANSCRIPT_NO_AUDIO,
    TRANSCRIPTION_EMPTY,
)
from vubly.services.webhook_service import CallbackPayload

VIDEO_URL = "https://www.youtube.com/watch?v=abc123XYZ_9"


def _kinds(media_cascade):
    return [call.args[1] for call in media_cascade.acquire.await_args_list]


@pytest.mark.unit
class TestStartJob:
    """Tests for job creation and the synchronous pipeline run."""

    @pytest.mark.asyncio
    async def test_captions_path_dispatches_for_translation(
        self, pipeline_service, repository, mock_media_cascade, mock_webhook_service
    ):
        # Act
        session = await pipeline_service.start_job(VIDEO_URL, "es", "V1")

        # Assert
        assert session.status is JobStatus.PROCESSING
        assert session.video_id == "abc123XYZ_9"
        assert session.transcript.startswith("Welcome back to the channel.")
        assert session.detected_language == "en"
        assert session.target_language == "es"
        assert session.voice_id == "V1"
        assert session.translation_round == 1
        assert session.dispatched_at is not None
        assert not session.has_original_audio
        assert _kinds(mock_media_cascade) == [MediaKind.VIDEO]
        dispatched = mock_webhook_service.dispatch.await_args.args[0]
        assert dispatched.session_id == session.session_id
        assert dispatched.translation_round == 1
        assert await repository.get(session.session_id) == session

    @pytest.mark.asyncio
    async def test_falls_back_to_audio_transcription(
        self, pipeline_service, mock_transcript_cascade, mock_media_cascade, mock_transcription_service
    ):
        # Arrange
        mock_transcript_cascade.fetch.return_value = None

        # Act
        session = await pipeline_service.start_job(VIDEO_URL, "es", "V1")

        # Assert
        assert session.transcript == "Transcribed speech from the audio track of the video."
        assert session.original_audio == b"ID3-original-audio"
        assert _kinds(mock_media_cascade) == [MediaKind.AUDIO, MediaKind.VIDEO]
        mock_transcription_service.transcribe.assert_awaited_once_with(b"ID3-original-audio")

    @pytest.mark.asyncio
    async def test_no_captions_and_no_audio_is_an_error(
        self, pipeline_service, mock_transcript_cascade, mock_media_cascade, mock_webhook_service
    ):
        # Arrange
        mock_transcript_cascade.fetch.return_value = None
        mock_media_cascade.acquire.side_effect = MediaUnavailableError("audio", [])

        # Act
        session = await pipeline_service.start_job(VIDEO_URL, "es", "V1")

        # Assert
        assert session.status is JobStatus.ERROR
        assert session.error == NO_TRANSCRIPT_NO_AUDIO
        mock_webhook_service.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_transcription_keeps_partial_results(
        self, pipeline_service, mock_transcript_cascade, mock_transcription_service
    ):
        # Arrange
        mock_transcript_cascade.fetch.return_value = None
        mock_transcription_service.transcribe.return_value = "   "

        # Act
        session = await pipeline_service.start_job(VIDEO_URL, "es", "V1")

        # Assert
        assert session.status is JobStatus.ERROR
        assert session.error == TRANSCRIPTION_EMPTY
        assert session.original_audio == b"ID3-original-audio"
        assert session.transcript is None

    @pytest.mark.asyncio
    async def test_language_detection_failure_uses_default(
        self, pipeline_service, mock_transcription_service
    ):
        # Arrange
        mock_transcription_service.detect_language.side_effect = LanguageDetectionError("quota")

        # Act
        session = await pipeline_service.start_job(VIDEO_URL, "es", "V1")

        # Assert
        assert session.detected_language == "en"
        assert session.status is JobStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_video_is_stored_when_available(self, pipeline_service, mock_media_cascade):
        # Arrange
        mock_media_cascade.acquire.side_effect = None
        mock_media_cascade.acquire.return_value = MediaResult(data=b"mp4-bytes", provider="cobalt")

        # Act
        session = await pipeline_service.start_job(VIDEO_URL, "es", "V1")

        # Assert
        assert session.video_buffer == b"mp4-bytes"
        assert session.has_video

    @pytest.mark.asyncio
    async def test_video_fetch_can_be_disabled(self, pipeline_service, test_config, mock_media_cascade):
        # Arrange
        test_config.media.fetch_video = False

        # Act
        await pipeline_service.start_job(VIDEO_URL, "es", "V1")

        # Assert
        mock_media_cascade.acquire.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_webhook_failure_marks_error(self, pipeline_service, mock_webhook_service):
        # Arrange
        mock_webhook_service.dispatch.side_effect = WebhookDispatchError("Failed to send to Make.com: 500")

        # Act
        session = await pipeline_service.start_job(VIDEO_URL, "es", "V1")

        # Assert
        assert session.status is JobStatus.ERROR
        assert session.error == "Failed to send to Make.com: 500"
        assert session.transcript is not None

    @pytest.mark.asyncio
    async def test_direct_mode_completes_in_process(
        self, pipeline_service, test_config, mock_translation_service, mock_webhook_service
    ):
        # Arrange
        test_config.webhook.translation_mode = "direct"

        # Act
        session = await pipeline_service.start_job(VIDEO_URL, "es", "V1")

        # Assert
        assert session.status is JobStatus.COMPLETED
        assert session.translated_text == "Hola a todos"
        assert session.translated_audio == b"ID3-translated-audio"
        mock_translation_service.translate.assert_awaited_once_with(session.transcript, "en", "es")
        mock_translation_service.synthesize.assert_awaited_once_with("Hola a todos", "V1")
        mock_webhook_service.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_url_creates_nothing(self, pipeline_service, repository):
        # Act & Assert
        with pytest.raises(InvalidVideoURLError):
            await pipeline_service.start_job("https://vimeo.com/123", "es", "V1")
        assert len(repository) == 0

    @pytest.mark.asyncio
    async def test_scheduled_run_returns_immediately(self, pipeline_service, mock_transcript_cascade):
        # Arrange
        schedule = Mock()

        # Act
        session = await pipeline_service.start_job(VIDEO_URL, "es", "V1", schedule=schedule)

        # Assert
        assert session.status is JobStatus.PROCESSING
        assert session.transcript is None
        schedule.assert_called_once_with(pipeline_service.process_job, session.session_id, True)
        mock_transcript_cascade.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_process_job_ignores_terminal_sessions(self, pipeline_service, repository,
                                                         mock_transcript_cascade):
        # Arrange
        created = await repository.create("abc123XYZ_9", status=JobStatus.ERROR, error="earlier failure")

        # Act
        await pipeline_service.process_job(created.session_id)

        # Assert
        mock_transcript_cascade.fetch.assert_not_awaited()
        assert (await repository.get(created.session_id)).error == "earlier failure"


@pytest.mark.unit
class TestStartJobWithTranscript:

    @pytest.mark.asyncio
    async def test_uses_supplied_transcript(self, pipeline_service, mock_transcript_cascade, mock_media_cascade):
        # Act
        session = await pipeline_service.start_job_with_transcript(
            VIDEO_URL, "  Captions captured in the browser.  ", "fr", "V2"
        )

        # Assert
        assert session.transcript == "Captions captured in the browser."
        assert session.translation_round == 1
        mock_transcript_cascade.fetch.assert_not_awaited()
        mock_media_cascade.acquire.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("transcript", ["", "   ", "too short"])
    async def test_rejects_short_transcript(self, pipeline_service, repository, transcript):
        # Act & Assert
        with pytest.raises(InvalidJobRequestError):
            await pipeline_service.start_job_with_transcript(VIDEO_URL, transcript, "fr", "V2")
        assert len(repository) == 0


@pytest.mark.unit
class TestCallbackCompletion:

    @pytest.mark.asyncio
    async def test_completes_processing_session(self, pipeline_service, repository, seeded_session):
        # Arrange
        payload = CallbackPayload(seeded_session.session_id, "Hola", b"mp3-bytes", translation_round=1)

        # Act
        session = await pipeline_service.complete_from_callback(payload)

        # Assert
        assert session.status is JobStatus.COMPLETED
        assert session.translated_text == "Hola"
        assert session.translated_audio == b"mp3-bytes"
        assert await repository.get(seeded_session.session_id) == session

    @pytest.mark.asyncio
    async def test_round_is_optional(self, pipeline_service, seeded_session):
        # Act
        session = await pipeline_service.complete_from_callback(
            CallbackPayload(seeded_session.session_id, "Hola", b"mp3-bytes")
        )

        # Assert
        assert session.status is JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_unknown_session(self, pipeline_service):
        # Act & Assert
        with pytest.raises(SessionNotFoundError):
            await pipeline_service.complete_from_callback(CallbackPayload("session_0_missing", "Hola", b"mp3"))

    @pytest.mark.asyncio
    async def test_stale_round_is_rejected(self, pipeline_service, repository, seeded_session):
        # Act & Assert
        with pytest.raises(SessionConflictError):
            await pipeline_service.complete_from_callback(
                CallbackPayload(seeded_session.session_id, "Hola", b"mp3", translation_round=0)
            )
        assert await repository.get(seeded_session.session_id) == seeded_session

    @pytest.mark.asyncio
    async def test_terminal_session_is_rejected(self, pipeline_service, repository, seeded_session):
        # Arrange
        await repository.update(seeded_session.session_id, status=JobStatus.ERROR, error="Timed out")

        # Act & Assert
        with pytest.raises(SessionConflictError):
            await pipeline_service.complete_from_callback(
                CallbackPayload(seeded_session.session_id, "Hola", b"mp3", translation_round=1)
            )


@pytest.mark.unit
class TestRetranslate:

    @pytest.mark.asyncio
    async def test_resets_results_and_dispatches_new_round(
        self, pipeline_service, repository, seeded_session, mock_webhook_service
    ):
        # Arrange
        await repository.update(seeded_session.session_id, translated_text="Hola", translated_audio=b"mp3",
                                status=JobStatus.COMPLETED)

        # Act
        session = await pipeline_service.retranslate(seeded_session.session_id, "de", "V9")

        # Assert
        assert session.status is JobStatus.PROCESSING
        assert session.target_language == "de"
        assert session.voice_id == "V9"
        assert session.translated_text is None
        assert session.translated_audio is None
        assert session.translation_round == 2
        assert mock_webhook_service.dispatch.await_args.args[0].translation_round == 2

    @pytest.mark.asyncio
    async def test_unknown_session(self, pipeline_service):
        # Act & Assert
        with pytest.raises(SessionNotFoundError):
            await pipeline_service.retranslate("session_0_missing", "de", "V9")

    @pytest.mark.asyncio
    async def test_requires_transcript(self, pipeline_service, repository):
        # Arrange
        created = await repository.create("abc123XYZ_9")

        # Act & Assert
        with pytest.raises(InvalidJobRequestError):
            await pipeline_service.retranslate(created.session_id, "de", "V9")

    @pytest.mark.asyncio
    async def test_dispatch_failure_marks_error(self, pipeline_service, seeded_session, mock_webhook_service):
        # Arrange
        mock_webhook_service.dispatch.side_effect = WebhookDispatchError("unreachable")

        # Act
        session = await pipeline_service.retranslate(seeded_session.session_id, "de", "V9")

        # Assert
        assert session.status is JobStatus.ERROR
        assert session.error == "unreachable"


@pytest.mark.unit
class TestSessionReads:

    @pytest.mark.asyncio
    async def test_overdue_callback_times_out(self, pipeline_service, repository, seeded_session, test_config):
        # Arrange
        test_config.webhook.callback_timeout_seconds = 60
        await repository.update(seeded_session.session_id, dispatched_at=utcnow() - timedelta(seconds=120))

        # Act
        session = await pipeline_service.get_session(seeded_session.session_id)

        # Assert
        assert session.status is JobStatus.ERROR
        assert session.error == CALLBACK_TIMED_OUT

    @pytest.mark.asyncio
    async def test_timeout_disabled_with_zero(self, pipeline_service, repository, seeded_session, test_config):
        # Arrange
        test_config.webhook.callback_timeout_seconds = 0
        await repository.update(seeded_session.session_id, dispatched_at=utcnow() - timedelta(days=1))

        # Act
        session = await pipeline_service.get_session(seeded_session.session_id)

        # Assert
        assert session.status is JobStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_get_and_delete_unknown_session(self, pipeline_service):
        # Act & Assert
        with pytest.raises(SessionNotFoundError):
            await pipeline_service.get_session("session_0_missing")
        with pytest.raises(SessionNotFoundError):
            await pipeline_service.delete_session("session_0_missing")

    @pytest.mark.asyncio
    async def test_delete_session(self, pipeline_service, repository, seeded_session):
        # Act
        await pipeline_service.delete_session(seeded_session.session_id)

        # Assert
        assert await repository.get(seeded_session.session_id) is None


@pytest.mark.unit
class TestCaptionProbes:

    @pytest.mark.asyncio
    async def test_check_captions_found(self, pipeline_service):
        # Act
        check = await pipeline_service.check_captions(VIDEO_URL)

        # Assert
        assert check.has_captions is True
        assert check.video_id == "abc123XYZ_9"
        assert check.source == "page"
        assert check.preview.startswith("Welcome back")

    @pytest.mark.asyncio
    async def test_check_captions_missing(self, pipeline_service, mock_transcript_cascade):
        # Arrange
        mock_transcript_cascade.fetch.return_value = None

        # Act
        check = await pipeline_service.check_captions(VIDEO_URL)

        # Assert
        assert check.has_captions is False
        assert check.preview is None
        assert "Audio transcription will be used" in check.message

    @pytest.mark.asyncio
    async def test_debug_captions_lists_tracks(self, pipeline_service, mock_transcript_cascade):
        # Arrange
        tracks = [{"languageCode": "es", "baseUrl": "u1"}, {"languageCode": "en", "kind": "asr", "baseUrl": "u2"}]
        player = {"captions": {"playerCaptionsTracklistRenderer": {"captionTracks": tracks}}}
        page = Mock()
        page.text = f"var ytInitialPlayerResponse = {json.dumps(player)};"
        http = Mock()
        http.get.return_value = page
        mock_transcript_cascade.strategies = [PageCaptionStrategy(session_factory=lambda: http)]

        # Act
        report = await pipeline_service.debug_captions(VIDEO_URL)

        # Assert
        assert report == {
            "videoId": "abc123XYZ_9",
            "hasCaptionTracks": True,
            "availableLanguages": ["es", "en-asr"],
            "selectedLanguage": "en",
            "error": None,
        }

    @pytest.mark.asyncio
    async def test_debug_captions_reports_errors(self, pipeline_service, mock_transcript_cascade):
        # Arrange
        http = Mock()
        http.get.side_effect = ConnectionError("network down")
        mock_transcript_cascade.strategies = [PageCaptionStrategy(session_factory=lambda: http)]

        # Act
        report = await pipeline_service.debug_captions(VIDEO_URL)

        # Assert
        assert report["hasCaptionTracks"] is False
        assert report["error"] == "network down"


@pytest.mark.unit
class TestSendTestWebhook:

    FIELDS = {
        "sessionId": "session_7_manual",
        "transcript": "Hello there",
        "detectedLanguage": "fr",
        "targetLanguage": "de",
        "voiceId": "V9",
        "callbackUrl": "https://vubly.example/api/makecom-callback",
    }

    @pytest.mark.asyncio
    async def test_seeds_processing_session_under_given_id(
        self, pipeline_service, repository, mock_webhook_service, mock_transcript_cascade
    ):
        # Act
        session = await pipeline_service.send_test_webhook(self.FIELDS)

        # Assert
        assert session.session_id == "session_7_manual"
        assert session.status is JobStatus.PROCESSING
        assert session.video_info.author == "Test"
        assert session.dispatched_at is not None
        assert await repository.get("session_7_manual") == session
        payload = mock_webhook_service.send.await_args.args[0]
        assert payload["detectedLanguage"] == "French"
        assert payload["targetLanguage"] == "German"
        assert payload["callbackUrl"] == "https://vubly.example/api/makecom-callback"
        mock_transcript_cascade.fetch.assert_not_awaited()
        mock_webhook_service.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lists_every_missing_field(self, pipeline_service, repository, mock_webhook_service):
        # Arrange
        fields = dict(self.FIELDS, transcript="", callbackUrl=None)

        # Act & Assert
        with pytest.raises(InvalidJobRequestError, match="Missing required fields: transcript, callbackUrl"):
            await pipeline_service.send_test_webhook(fields)
        assert len(repository) == 0
        mock_webhook_service.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dispatch_failure_propagates(self, pipeline_service, mock_webhook_service):
        # Arrange
        mock_webhook_service.send.side_effect = WebhookDispatchError("Failed to send to Make.com: timeout")

        # Act & Assert
        with pytest.raises(WebhookDispatchError):
            await pipeline_service.send_test_webhook(self.FIELDS)
