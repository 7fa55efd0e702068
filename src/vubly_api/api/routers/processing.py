"""Job submission router: start, probe and retranslate."""

from typing import Callable, Optional

from fastapi import APIRouter, BackgroundTasks, Depends

from vubly.core.config import Config
from vubly.core.exceptions import VublyError
from vubly.services import PipelineService
from vubly.utils.logging import get_logger

from ...dependencies import get_config, get_pipeline_service
from ...exceptions import to_api_error
from ..models.session import (
    CaptionCheckResponse,
    CheckCaptionsRequest,
    DebugCaptionsResponse,
    ProcessRequest,
    ProcessResponse,
    ProcessWithTranscriptRequest,
    RetranslateRequest,
    RetranslateResponse,
)

router = APIRouter()
logger = get_logger("api.processing")


def _scheduler(background_tasks: BackgroundTasks, config: Config) -> Optional[Callable[..., None]]:
    return background_tasks.add_task if config.pipeline.run_in_background else None


@router.post("/process", response_model=ProcessResponse)
async def process_video(
    request: ProcessRequest,
    background_tasks: BackgroundTasks,
    pipeline: PipelineService = Depends(get_pipeline_service),
    config: Config = Depends(get_config)
):
    """
    Start a dubbing job for a YouTube video.

    The pipeline runs inside the request unless background processing is
    enabled, in which case the job is returned while still ``processing``.
    """
    logger.info(f"Process request for {request.youtube_url} -> {request.target_language}")
    try:
        session = await pipeline.start_job(
            request.youtube_url,
            request.target_language,
            request.voice_id,
            schedule=_scheduler(background_tasks, config),
        )
    except VublyError as e:
        raise to_api_error(e)
    return ProcessResponse.from_session(session)


@router.post("/process-with-transcript", response_model=ProcessResponse)
async def process_with_transcript(
    request: ProcessWithTranscriptRequest,
    background_tasks: BackgroundTasks,
    pipeline: PipelineService = Depends(get_pipeline_service),
    config: Config = Depends(get_config)
):
    """Start a dubbing job using a transcript the client already extracted."""
    logger.info(f"Process-with-transcript request for {request.youtube_url} ({len(request.transcript)} chars)")
    try:
        session = await pipeline.start_job_with_transcript(
            request.youtube_url,
            request.transcript,
            request.target_language,
            request.voice_id,
            schedule=_scheduler(background_tasks, config),
        )
    except VublyError as e:
        raise to_api_error(e)
    return ProcessResponse.from_session(session)


@router.post("/check-captions", response_model=CaptionCheckResponse)
async def check_captions(
    request: CheckCaptionsRequest,
    pipeline: PipelineService = Depends(get_pipeline_service)
):
    try:
        check = await pipeline.check_captions(request.youtube_url)
    except VublyError as e:
        raise to_api_error(e)
    return CaptionCheckResponse.from_check(check)


@router.post("/debug-captions", response_model=DebugCaptionsResponse)
async def debug_captions(
    request: CheckCaptionsRequest,
    pipeline: PipelineService = Depends(get_pipeline_service)
):
    """Report the caption tracks the watch page advertises for a video."""
    try:
        report = await pipeline.debug_captions(request.youtube_url)
    except VublyError as e:
        raise to_api_error(e)
    return DebugCaptionsResponse(**report)


@router.post("/retranslate", response_model=RetranslateResponse)
async def retranslate(
    request: RetranslateRequest,
    pipeline: PipelineService = Depends(get_pipeline_service)
):
    """Dispatch an existing job's transcript again with a new language or voice."""
    try:
        session = await pipeline.retranslate(request.session_id, request.target_language, request.voice_id)
    except VublyError as e:
        raise to_api_error(e)
    return RetranslateResponse(session_id=session.session_id, status=session.status.value)
