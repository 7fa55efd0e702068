"""Inbound callback from the translation automation."""

from fastapi import APIRouter, Depends, Request

from vubly.core.exceptions import CallbackValidationError, VublyError
from vubly.services import PipelineService, parse_callback_payload
from vubly.utils.logging import get_logger

from ...dependencies import get_pipeline_service
from ...exceptions import to_api_error
from ..models.session import CallbackResponse, WebhookTestRequest, WebhookTestResponse

router = APIRouter()
logger = get_logger("api.callbacks")


@router.post("/makecom-callback", response_model=CallbackResponse)
async def makecom_callback(
    request: Request,
    pipeline: PipelineService = Depends(get_pipeline_service)
):
    """
    Receive the translated text and synthesized audio for a job.

    The body is read leniently: an unparsable body counts as empty so the
    caller gets the usual missing-fields report instead of a parser error.
    """
    try:
        body = await request.json()
    except ValueError:
        body = {}

    try:
        payload = parse_callback_payload(body, request.query_params)
    except CallbackValidationError as e:
        logger.warning(f"Rejected callback: {e} {e.received}")
        raise to_api_error(e)

    try:
        session = await pipeline.complete_from_callback(payload)
    except VublyError as e:
        logger.warning(f"Callback for {payload.session_id} not applied: {e}")
        raise to_api_error(e)
    return CallbackResponse(session_id=session.session_id)


@router.post("/test-webhook", response_model=WebhookTestResponse)
async def send_test_webhook(
    request: WebhookTestRequest,
    pipeline: PipelineService = Depends(get_pipeline_service)
):
    """Send a hand-written payload to the automation and wait for its callback like a real job."""
    try:
        session = await pipeline.send_test_webhook(request.model_dump(by_alias=True))
    except VublyError as e:
        logger.warning(f"Test webhook not sent: {e}")
        raise to_api_error(e)
    return WebhookTestResponse(session_id=session.session_id)
