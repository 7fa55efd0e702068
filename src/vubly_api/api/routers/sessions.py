"""Session, audio and video retrieval router."""

import re
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, Header, Query, Response

from vubly.core.exceptions import VublyError
from vubly.services import PipelineService

from ...dependencies import get_pipeline_service
from ...exceptions import BadRequestError, NotFoundError, RangeNotSatisfiableError, to_api_error
from ..models.base import ErrorResponseModel
from ..models.session import SessionResponse

router = APIRouter()

NOT_FOUND_RESPONSE = {404: {"model": ErrorResponseModel, "description": "Session not found or expired"}}
CACHE_CONTROL = "public, max-age=31536000"
AUDIO_TYPES = ("original", "translated")

_RANGE_PATTERN = re.compile(r"^bytes=(\d*)-(\d*)$")


def parse_range(header: str, size: int) -> Tuple[int, int]:
    """
    Resolve a single ``bytes=`` range against a resource of ``size`` bytes.

    Supports ``a-b``, open-ended ``a-`` and suffix ``-n`` forms; the end is
    clamped to the last byte.

    Returns:
        Inclusive (start, end) offsets

    Raises:
        RangeNotSatisfiableError: if the range is malformed or outside the resource
    """
    match = _RANGE_PATTERN.match(header.strip())
    if not match or size <= 0:
        raise RangeNotSatisfiableError(size)

    first, last = match.groups()
    if not first and not last:
        raise RangeNotSatisfiableError(size)

    if not first:
        suffix = int(last)
        if suffix == 0:
            raise RangeNotSatisfiableError(size)
        return max(size - suffix, 0), size - 1

    start = int(first)
    end = int(last) if last else size - 1
    if start >= size or end < start:
        raise RangeNotSatisfiableError(size)
    return start, min(end, size - 1)


@router.get(
    "/session/{session_id}",
    response_model=SessionResponse,
    response_model_exclude_unset=True,
    responses=NOT_FOUND_RESPONSE
)
async def get_session(
    session_id: str,
    include_audio: bool = Query(False, alias="includeAudio"),
    pipeline: PipelineService = Depends(get_pipeline_service)
):
    """Get a job's state; binary payloads are reported as flags unless audio is requested."""
    try:
        session = await pipeline.get_session(session_id)
    except VublyError as e:
        raise to_api_error(e)
    return SessionResponse.from_session(session, include_audio=include_audio)


@router.delete("/session/{session_id}", status_code=204, responses=NOT_FOUND_RESPONSE)
async def delete_session(
    session_id: str,
    pipeline: PipelineService = Depends(get_pipeline_service)
):
    try:
        await pipeline.delete_session(session_id)
    except VublyError as e:
        raise to_api_error(e)
    return Response(status_code=204)


@router.get("/audio/{session_id}/{audio_type}", responses=NOT_FOUND_RESPONSE)
async def get_audio(
    session_id: str,
    audio_type: str,
    pipeline: PipelineService = Depends(get_pipeline_service)
):
    """Stream a job's original or translated MP3."""
    if audio_type not in AUDIO_TYPES:
        raise BadRequestError("Invalid audio type. Use 'original' or 'translated'")

    try:
        session = await pipeline.get_session(session_id)
    except VublyError as e:
        raise to_api_error(e)

    audio = session.original_audio if audio_type == "original" else session.translated_audio
    if not audio:
        raise NotFoundError(f"{audio_type.capitalize()} audio not available")

    return Response(
        content=audio,
        media_type="audio/mpeg",
        headers={
            "Content-Length": str(len(audio)),
            "Cache-Control": CACHE_CONTROL,
        }
    )


@router.get(
    "/video/{session_id}",
    responses={**NOT_FOUND_RESPONSE, 416: {"model": ErrorResponseModel, "description": "Range not satisfiable"}}
)
async def get_video(
    session_id: str,
    range_header: Optional[str] = Header(None, alias="Range"),
    pipeline: PipelineService = Depends(get_pipeline_service)
):
    """Serve a job's MP4, honouring a single byte range for seeking."""
    try:
        session = await pipeline.get_session(session_id)
    except VublyError as e:
        raise to_api_error(e)

    video = session.video_buffer
    if not video:
        raise NotFoundError("Video not available")

    size = len(video)
    if range_header:
        start, end = parse_range(range_header, size)
        chunk = video[start:end + 1]
        return Response(
            content=chunk,
            status_code=206,
            media_type="video/mp4",
            headers={
                "Content-Range": f"bytes {start}-{end}/{size}",
                "Accept-Ranges": "bytes",
                "Content-Length": str(len(chunk)),
            }
        )

    return Response(
        content=video,
        media_type="video/mp4",
        headers={
            "Content-Length": str(size),
            "Accept-Ranges": "bytes",
            "Cache-Control": CACHE_CONTROL,
        }
    )
