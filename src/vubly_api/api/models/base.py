"""Base response models for the API."""

from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serializes as camelCase and accepts either camelCase or snake_case input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BaseResponse(CamelModel):
    """Base response model."""

    success: bool = True


class ErrorDetail(BaseModel):
    """Error response details."""

    code: str
    message: str


class ErrorResponseModel(BaseModel):
    """Error response model."""

    success: bool = False
    error: ErrorDetail
    request_id: Optional[str] = None


class HealthStatus(BaseModel):
    """Health check response model."""

    status: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str
    services: Dict[str, str] = Field(default_factory=dict)
