"""Request and response models for the API."""

from .base import BaseResponse, CamelModel, ErrorDetail, ErrorResponseModel, HealthStatus
from .session import (
    CallbackResponse,
    CaptionCheckResponse,
    CheckCaptionsRequest,
    DebugCaptionsResponse,
    ProcessRequest,
    ProcessResponse,
    ProcessWithTranscriptRequest,
    RetranslateRequest,
    RetranslateResponse,
    SessionResponse,
    VideoInfoModel,
    WebhookTestRequest,
    WebhookTestResponse,
)

__all__ = [
    "BaseResponse",
    "CamelModel",
    "ErrorDetail",
    "ErrorResponseModel",
    "HealthStatus",
    "CallbackResponse",
    "CaptionCheckResponse",
    "CheckCaptionsRequest",
    "DebugCaptionsResponse",
    "ProcessRequest",
    "ProcessResponse",
    "ProcessWithTranscriptRequest",
    "RetranslateRequest",
    "RetranslateResponse",
    "SessionResponse",
    "VideoInfoModel",
    "WebhookTestRequest",
    "WebhookTestResponse",
]
