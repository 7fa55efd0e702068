"""Integration tests for job submission endpoints."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from vubly.core.exceptions import WebhookDispatchError

VIDEO_URL = "https://www.youtube.com/watch?v=abc123XYZ_9"
DEBUG_REPORT = {
    "videoId": "abc123XYZ_9",
    "hasCaptionTracks": True,
    "availableLanguages": ["en", "de-asr"],
    "selectedLanguage": "en",
    "error": None,
}


def _body(**overrides):
    body = {"youtubeUrl": VIDEO_URL, "targetLanguage": "es", "voiceId": "V1"}
    body.update(overrides)
    return body


@pytest.mark.integration
class TestProcessEndpoint:
    """Test POST /api/process."""

    def test_process_success(self, client, repository, mock_webhook_service):
        # Act
        response = client.post("/api/process", json=_body())

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["status"] == "processing"
        assert data["sessionId"].startswith("session_")
        assert data["videoInfo"]["videoId"] == "abc123XYZ_9"
        assert data["videoInfo"]["title"] == "Test Video Title"
        mock_webhook_service.dispatch.assert_awaited_once()

        stored = asyncio.run(repository.get(data["sessionId"]))
        assert stored.transcript is not None
        assert stored.translation_round == 1

    def test_process_accepts_snake_case_and_region_codes(self, client, mock_webhook_service):
        # Act
        response = client.post("/api/process", json={
            "youtube_url": "https://youtu.be/abc123XYZ_9",
            "target_language": "es-MX",
            "voice_id": "V1",
        })

        # Assert
        assert response.status_code == 200
        assert mock_webhook_service.dispatch.await_args.args[0].target_language == "es"

    @pytest.mark.parametrize("url", ["", "https://vimeo.com/12345", "not a url"])
    def test_process_invalid_url(self, client, repository, url):
        # Act
        response = client.post("/api/process", json=_body(youtubeUrl=url))

        # Assert
        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["error"]["code"] == "VALIDATION_ERROR"
        assert "YouTube URL" in data["error"]["message"]
        assert len(repository) == 0

    def test_process_missing_fields(self, client):
        # Act
        response = client.post("/api/process", json={"youtubeUrl": VIDEO_URL})

        # Assert
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_process_pipeline_failure_is_reported_on_the_session(self, client, mock_webhook_service):
        # Arrange
        mock_webhook_service.dispatch.side_effect = WebhookDispatchError("Failed to send to Make.com: 500")

        # Act
        response = client.post("/api/process", json=_body())
        session = client.get(f"/api/session/{response.json()['sessionId']}").json()

        # Assert
        assert response.status_code == 200
        assert response.json()["status"] == "error"
        assert session["status"] == "error"
        assert session["error"] == "Failed to send to Make.com: 500"

    def test_process_in_background(self, client, test_config, mock_transcript_cascade):
        # Arrange
        test_config.pipeline.run_in_background = True

        # Act
        response = client.post("/api/process", json=_body())

        # Assert
        assert response.status_code == 200
        assert response.json()["status"] == "processing"
        # Background tasks finish before the test client returns
        mock_transcript_cascade.fetch.assert_awaited_once_with("abc123XYZ_9")
        session = client.get(f"/api/session/{response.json()['sessionId']}").json()
        assert session["translationRound"] == 1


@pytest.mark.integration
class TestProcessWithTranscriptEndpoint:

    def test_uses_client_transcript(self, client, mock_transcript_cascade):
        # Act
        response = client.post("/api/process-with-transcript", json=_body(
            transcript="These captions were captured in the browser extension."
        ))

        # Assert
        assert response.status_code == 200
        session = client.get(f"/api/session/{response.json()['sessionId']}").json()
        assert session["transcript"] == "These captions were captured in the browser extension."
        mock_transcript_cascade.fetch.assert_not_awaited()

    @pytest.mark.parametrize("transcript", [None, "", "short"])
    def test_rejects_missing_transcript(self, client, repository, transcript):
        # Arrange
        body = _body()
        if transcript is not None:
            body["transcript"] = transcript

        # Act
        response = client.post("/api/process-with-transcript", json=body)

        # Assert
        assert response.status_code == 400
        assert "No transcript provided" in response.json()["error"]["message"]
        assert len(repository) == 0


@pytest.mark.integration
class TestCaptionEndpoints:

    def test_check_captions(self, client):
        # Act
        response = client.post("/api/check-captions", json={"youtubeUrl": VIDEO_URL})

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["hasCaptions"] is True
        assert data["videoId"] == "abc123XYZ_9"
        assert data["source"] == "page"
        assert data["preview"].startswith("Welcome back")

    def test_check_captions_none_found(self, client, mock_transcript_cascade):
        # Arrange
        mock_transcript_cascade.fetch.return_value = None

        # Act
        data = client.post("/api/check-captions", json={"youtubeUrl": VIDEO_URL}).json()

        # Assert
        assert data["hasCaptions"] is False
        assert data["preview"] is None

    def test_check_captions_invalid_url(self, client):
        # Act
        response = client.post("/api/check-captions", json={"youtubeUrl": "https://example.com"})

        # Assert
        assert response.status_code == 400

    def test_debug_captions(self, client, pipeline_service):
        # Arrange
        pipeline_service.debug_captions = AsyncMock(return_value=DEBUG_REPORT)

        # Act
        response = client.post("/api/debug-captions", json={"youtubeUrl": VIDEO_URL})

        # Assert
        assert response.status_code == 200
        assert response.json() == DEBUG_REPORT


@pytest.mark.integration
class TestRetranslateEndpoint:

    def test_retranslate(self, client, seeded_session, mock_webhook_service):
        # Act
        response = client.post("/api/retranslate", json={
            "sessionId": seeded_session.session_id,
            "targetLanguage": "fr",
            "voiceId": "V7",
        })

        # Assert
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "sessionId": seeded_session.session_id,
            "status": "processing",
        }
        dispatched = mock_webhook_service.dispatch.await_args.args[0]
        assert dispatched.target_language == "fr"
        assert dispatched.translation_round == 2

    def test_retranslate_unknown_session(self, client):
        # Act
        response = client.post("/api/retranslate", json={
            "sessionId": "session_0_missing",
            "targetLanguage": "fr",
            "voiceId": "V7",
        })

        # Assert
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Session not found or expired"
