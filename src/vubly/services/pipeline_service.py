"""
Job pipeline: transcript, optional video, language detection, then hand-off
for translation and speech synthesis.

A job starts in ``processing`` and ends in ``completed`` (via the callback or
direct translation) or ``error``. Any failure inside the pipeline marks the
job as errored while keeping whatever partial results were already stored.
"""

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..core.config import Config
from ..core.exceptions import (
    InvalidJobRequestError,
    InvalidVideoURLError,
    LanguageDetectionError,
    MediaUnavailableError,
    SessionConflictError,
    SessionNotFoundError,
    TranscriptUnavailableError,
)
from ..core.media_downloader import MediaCascade, MediaKind
from ..core.transcript_fetcher import PageCaptionStrategy, TranscriptCascade, select_caption_track, \
    track_language_labels
from ..core.youtube_client import YouTubeClient
from ..models import JobSession, JobStatus, VideoInfo
from ..models.session import utcnow
from ..repositories import SessionRepository
from ..utils.logging import get_job_logger, get_logger
from ..utils.youtube_utils import extract_video_id, normalize_youtube_url
from .transcription_service import TranscriptionService
from .translation_service import TranslationService
from .webhook_service import CallbackPayload, WebhookService, make_payload

logger = get_logger("pipeline")

MIN_CLIENT_TRANSCRIPT_LENGTH = 10
PREVIEW_CHARS = 200

NO_TRANSCRIPT_NO_AUDIO = "No transcript available and audio download failed"
TRANSCRIPTION_EMPTY = (
    "Unable to get transcript: no captions were found and audio transcription returned no text"
)
CALLBACK_TIMED_OUT = "Timed out waiting for translation results"

WEBHOOK_TEST_VIDEO_ID = "test-video"
TEST_WEBHOOK_FIELDS = ("sessionId", "transcript", "detectedLanguage", "targetLanguage", "voiceId", "callbackUrl")

Scheduler = Callable[..., Any]


@dataclass
class CaptionCheck:
    """Outcome of a caption availability probe."""
    has_captions: bool
    video_id: str
    message: str
    preview: Optional[str] = None
    source: Optional[str] = None


class PipelineService:
    """Runs dubbing jobs against the session store."""

    def __init__(
        self,
        repository: SessionRepository,
        transcript_cascade: TranscriptCascade,
        media_cascade: MediaCascade,
        youtube_client: YouTubeClient,
        transcription_service: TranscriptionService,
        translation_service: TranslationService,
        webhook_service: WebhookService,
        config: Config,
    ):
        self.repository = repository
        self.transcript_cascade = transcript_cascade
        self.media_cascade = media_cascade
        self.youtube_client = youtube_client
        self.transcription_service = transcription_service
        self.translation_service = translation_service
        self.webhook_service = webhook_service
        self.config = config

    # ------------------------------------------------------------------
    # Job creation
    # ------------------------------------------------------------------

    def _resolve(self, youtube_url: str) -> str:
        video_id = extract_video_id(youtube_url)
        if not video_id:
            raise InvalidVideoURLError(youtube_url)
        return video_id

    async def create_job(self, youtube_url: str, target_language: str, voice_id: str,
                         transcript: Optional[str] = None) -> JobSession:
        video_id = self._resolve(youtube_url)
        logger.info(f"New job for {normalize_youtube_url(youtube_url)} -> {target_language}")
        video_info = await self.youtube_client.get_video_info(video_id)
        return await self.repository.create(
            video_id,
            video_info,
            target_language=target_language,
            voice_id=voice_id,
            transcript=transcript,
        )

    async def _launch(self, session: JobSession, fetch_video: bool,
                      schedule: Optional[Scheduler]) -> JobSession:
        if schedule is not None:
            schedule(self.process_job, session.session_id, fetch_video)
            return session
        await self.process_job(session.session_id, fetch_video)
        return await self.repository.get(session.session_id) or session

    async def start_job(self, youtube_url: str, target_language: str, voice_id: str,
                        schedule: Optional[Scheduler] = None) -> JobSession:
        """
        Create a job and run the pipeline.

        Args:
            youtube_url: Source video URL
            target_language: ISO 639-1 code to dub into
            voice_id: Voice selector for speech synthesis
            schedule: When given, called as ``schedule(fn, *args)`` to run the
                pipeline later instead of awaiting it here

        Returns:
            The session as stored when this call returns

        Raises:
            InvalidVideoURLError: if no video id can be extracted
        """
        session = await self.create_job(youtube_url, target_language, voice_id)
        return await self._launch(session, self.config.media.fetch_video, schedule)

    async def start_job_with_transcript(self, youtube_url: str, transcript: str, target_language: str,
                                        voice_id: str, schedule: Optional[Scheduler] = None) -> JobSession:
        """Like :meth:`start_job` but with a transcript supplied by the client."""
        if not transcript or len(transcript.strip()) < MIN_CLIENT_TRANSCRIPT_LENGTH:
            raise InvalidJobRequestError(
                "No transcript provided. Please ensure the video has captions enabled."
            )
        session = await self.create_job(youtube_url, target_language, voice_id, transcript=transcript.strip())
        return await self._launch(session, False, schedule)

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    async def process_job(self, session_id: str, fetch_video: bool = True) -> None:
        """Run every pipeline step for a ``processing`` session, recording failures on it."""
        log = get_job_logger(logger, session_id)
        session = await self.repository.get(session_id)
        if session is None:
            log.warning("Session disappeared before processing started")
            return
        if session.status.is_terminal:
            log.info(f"Session already {session.status.value}, nothing to do")
            return

        try:
            if not session.has_transcript:
                session = await self._acquire_transcript(session, log)
            else:
                log.info(f"Using supplied transcript ({len(session.transcript)} chars)")

            if fetch_video:
                session = await self._acquire_video(session, log)

            language = await self._detect_language(session.transcript, log)
            session = await self._update(session_id, detected_language=language)

            await self._dispatch(session, log)
        except Exception as e:
            message = str(e) or type(e).__name__
            log.error(f"Pipeline failed: {message}")
            await self._fail(session_id, message)

    async def _update(self, session_id: str, **fields: Any) -> JobSession:
        session = await self.repository.update(session_id, **fields)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def _fail(self, session_id: str, message: str) -> Optional[JobSession]:
        return await self.repository.update(session_id, status=JobStatus.ERROR, error=message)

    async def _acquire_transcript(self, session: JobSession, log) -> JobSession:
        result = await self.transcript_cascade.fetch(session.video_id)
        if result is not None:
            log.info(f"Transcript from '{result.source}' ({len(result.text)} chars)")
            return await self._update(session.session_id, transcript=result.text)

        log.info("No captions found, falling back to audio transcription")
        try:
            media = await self.media_cascade.acquire(session.video_id, MediaKind.AUDIO)
        except MediaUnavailableError as e:
            raise TranscriptUnavailableError(NO_TRANSCRIPT_NO_AUDIO) from e

        session = await self._update(session.session_id, original_audio=media.data)
        text = (await self.transcription_service.transcribe(media.data)).strip()
        if not text:
            raise TranscriptUnavailableError(TRANSCRIPTION_EMPTY)
        log.info(f"Transcribed {len(text)} chars from audio")
        return await self._update(session.session_id, transcript=text)

    async def _acquire_video(self, session: JobSession, log) -> JobSession:
        try:
            media = await self.media_cascade.acquire(session.video_id, MediaKind.VIDEO)
        except MediaUnavailableError as e:
            log.warning(f"Video unavailable, continuing with audio-only playback: {e}")
            return session
        return await self._update(session.session_id, video_buffer=media.data)

    async def _detect_language(self, transcript: str, log) -> str:
        fallback = self.config.ai.default_source_language
        try:
            language = await self.transcription_service.detect_language(transcript)
        except LanguageDetectionError as e:
            log.warning(f"Language detection failed, using '{fallback}': {e}")
            return fallback
        log.info(f"Detected language: {language}")
        return language

    async def _dispatch(self, session: JobSession, log) -> JobSession:
        session = await self._update(
            session.session_id,
            translation_round=session.translation_round + 1,
            dispatched_at=utcnow(),
        )
        if self.config.webhook.translation_mode == "direct":
            return await self._translate_directly(session, log)

        await self.webhook_service.dispatch(session, fallback_language=self.config.ai.default_source_language)
        log.info(f"Waiting for translation callback (round {session.translation_round})")
        return session

    async def _translate_directly(self, session: JobSession, log) -> JobSession:
        source = session.detected_language or self.config.ai.default_source_language
        translated = await self.translation_service.translate(session.transcript, source, session.target_language)
        audio = await self.translation_service.synthesize(translated, session.voice_id)
        log.info(f"Translated in-process ({len(translated)} chars, {len(audio)} bytes of audio)")
        return await self._update(
            session.session_id,
            translated_text=translated,
            translated_audio=audio,
            status=JobStatus.COMPLETED,
        )

    # ------------------------------------------------------------------
    # Follow-up operations
    # ------------------------------------------------------------------

    async def complete_from_callback(self, payload: CallbackPayload) -> JobSession:
        """
        Store translation results delivered by the automation platform.

        Raises:
            SessionNotFoundError: if the session is unknown or expired
            SessionConflictError: if the job is not awaiting results or the
                callback belongs to an earlier translation round
        """
        session = await self.repository.get(payload.session_id)
        if session is None:
            raise SessionNotFoundError(payload.session_id)
        if session.status is not JobStatus.PROCESSING:
            raise SessionConflictError(
                f"Session {payload.session_id} is not awaiting results (status={session.status.value})"
            )
        if payload.translation_round is not None and payload.translation_round != session.translation_round:
            raise SessionConflictError(
                f"Stale callback for session {payload.session_id}: round {payload.translation_round}, "
                f"current round {session.translation_round}"
            )

        updated = await self._update(
            payload.session_id,
            translated_text=payload.translated_text,
            translated_audio=payload.translated_audio,
            status=JobStatus.COMPLETED,
        )
        get_job_logger(logger, payload.session_id).info(
            f"Completed with {len(payload.translated_audio)} bytes of translated audio"
        )
        return updated

    async def retranslate(self, session_id: str, target_language: str, voice_id: str) -> JobSession:
        """
        Re-run translation and synthesis with a new language and voice.

        Raises:
            SessionNotFoundError: if the session is unknown or expired
            InvalidJobRequestError: if the session has no transcript
        """
        session = await self.repository.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if not session.has_transcript:
            raise InvalidJobRequestError("No transcript available for retranslation")

        log = get_job_logger(logger, session_id)
        session = await self._update(
            session_id,
            status=JobStatus.PROCESSING,
            target_language=target_language,
            voice_id=voice_id,
            translated_text=None,
            translated_audio=None,
            error=None,
        )
        log.info(f"Retranslating to {target_language} with voice {voice_id}")
        try:
            session = await self._dispatch(session, log)
        except Exception as e:
            message = str(e) or type(e).__name__
            log.error(f"Retranslation failed: {message}")
            session = await self._fail(session_id, message) or session
        return session

    async def get_session(self, session_id: str) -> JobSession:
        """
        Read a session, expiring an overdue wait for the callback.

        Raises:
            SessionNotFoundError: if the session is unknown or expired
        """
        session = await self.repository.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        timeout = self.config.webhook.callback_timeout_seconds
        if (timeout > 0 and session.status is JobStatus.PROCESSING and session.dispatched_at is not None
                and utcnow() - session.dispatched_at > timedelta(seconds=timeout)):
            get_job_logger(logger, session_id).warning(f"No callback within {timeout}s, marking as error")
            session = await self._fail(session_id, CALLBACK_TIMED_OUT) or session
        return session

    async def delete_session(self, session_id: str) -> None:
        if not await self.repository.delete(session_id):
            raise SessionNotFoundError(session_id)

    async def send_test_webhook(self, fields: Mapping[str, Any]) -> JobSession:
        """
        Seed a bare ``processing`` session and send its payload to the automation endpoint.

        Exercises the dispatch and callback loop without acquiring a transcript
        or media. The caller chooses the session id and the callback URL, and
        the languages are passed through by name when they are known codes.

        Raises:
            InvalidJobRequestError: if any payload field is missing or empty
            WebhookDispatchError: if the POST fails
        """
        missing = [name for name in TEST_WEBHOOK_FIELDS if not fields.get(name)]
        if missing:
            raise InvalidJobRequestError(f"Missing required fields: {', '.join(missing)}")

        session_id = str(fields["sessionId"])
        session = await self.repository.save(JobSession(
            session_id=session_id,
            video_id=WEBHOOK_TEST_VIDEO_ID,
            video_info=VideoInfo(video_id=WEBHOOK_TEST_VIDEO_ID, title="Test Translation", duration=0,
                                 thumbnail="", author="Test"),
            transcript=str(fields["transcript"]),
            detected_language=str(fields["detectedLanguage"]),
            target_language=str(fields["targetLanguage"]),
            voice_id=str(fields["voiceId"]),
            dispatched_at=utcnow(),
        ))
        get_job_logger(logger, session_id).info("Seeded test session, sending it to the webhook")

        await self.webhook_service.send(make_payload(
            session_id,
            session.transcript,
            session.detected_language,
            session.target_language,
            session.voice_id,
            str(fields["callbackUrl"]),
        ))
        return session

    async def check_captions(self, youtube_url: str) -> CaptionCheck:
        """Probe the transcript cascade without creating a job."""
        video_id = self._resolve(youtube_url)
        result = await self.transcript_cascade.fetch(video_id)
        if result is None:
            return CaptionCheck(
                has_captions=False,
                video_id=video_id,
                message="No captions available for this video. Audio transcription will be used.",
            )
        return CaptionCheck(
            has_captions=True,
            video_id=video_id,
            message=f"Captions available ({len(result.text)} characters)",
            preview=result.text[:PREVIEW_CHARS],
            source=result.source,
        )

    async def debug_captions(self, youtube_url: str) -> Dict[str, Any]:
        """Report which caption tracks the watch page advertises."""
        video_id = self._resolve(youtube_url)
        strategy = next(
            (s for s in self.transcript_cascade.strategies if isinstance(s, PageCaptionStrategy)),
            PageCaptionStrategy(),
        )
        try:
            tracks: List[Dict[str, Any]] = await asyncio.to_thread(strategy.list_tracks, video_id)
        except Exception as e:
            return {
                "videoId": video_id,
                "hasCaptionTracks": False,
                "availableLanguages": [],
                "selectedLanguage": None,
                "error": str(e) or type(e).__name__,
            }

        selected = select_caption_track(tracks)
        return {
            "videoId": video_id,
            "hasCaptionTracks": bool(tracks),
            "availableLanguages": track_language_labels(tracks),
            "selectedLanguage": selected.get("languageCode") if selected else None,
            "error": None,
        }
