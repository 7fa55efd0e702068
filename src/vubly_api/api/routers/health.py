"""Health check router."""

from fastapi import APIRouter, Depends

from vubly.service_factory import ServiceFactory
from vubly.utils.logging import get_logger

from ... import __version__
from ...dependencies import get_service_factory
from ..models.base import HealthStatus

router = APIRouter()
logger = get_logger("api.health")


@router.get("/health", response_model=HealthStatus)
async def health_check():
    """
    Health check endpoint.

    Returns:
        Health status response
    """
    return HealthStatus(status="healthy", version=__version__)


@router.get("/health/detailed", response_model=HealthStatus)
async def detailed_health_check(factory: ServiceFactory = Depends(get_service_factory)):
    """
    Detailed health check including session store connectivity and which
    external integrations are configured.
    """
    repository = factory.get_session_repository()
    try:
        store = "healthy" if await repository.ping() else "unhealthy"
    except Exception as e:
        logger.warning(f"Session store ping failed: {e}")
        store = "unhealthy"

    config = factory.config
    services = {
        "api": "healthy",
        "session_store": store,
        "session_backend": type(repository).__name__,
        "webhook": "configured" if config.webhook.url else "not_configured",
        "openai": "configured" if config.ai.openai_api_key else "not_configured",
        "youtube_data_api": "configured" if config.youtube.api_key else "not_configured",
    }
    if config.webhook.translation_mode == "direct":
        services["anthropic"] = "configured" if config.ai.anthropic_api_key else "not_configured"
        services["elevenlabs"] = "configured" if config.ai.elevenlabs_api_key else "not_configured"

    return HealthStatus(
        status="healthy" if store == "healthy" else "degraded",
        version=__version__,
        services=services,
    )
