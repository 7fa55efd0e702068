"""FastAPI dependencies for service injection."""

from fastapi import Depends

from vubly.core.config import Config
from vubly.service_factory import ServiceFactory, get_service_factory as _get_global_factory
from vubly.services import PipelineService


def get_service_factory() -> ServiceFactory:
    """Get the process-wide service factory; overridden in tests."""
    return _get_global_factory()


def get_pipeline_service(factory: ServiceFactory = Depends(get_service_factory)) -> PipelineService:
    return factory.get_pipeline_service()


def get_config(factory: ServiceFactory = Depends(get_service_factory)) -> Config:
    return factory.config
