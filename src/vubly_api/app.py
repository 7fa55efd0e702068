"""Main FastAPI application factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from vubly.utils.logging import get_logger

from . import __version__
from .config import get_api_config
from .dependencies import get_service_factory
from .exceptions import APIError, BadRequestError
from .middleware import setup_middleware


logger = get_logger("api")

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the session store (and its expiry sweeper) before serving; release it on shutdown."""
    config = get_api_config()
    logger.info(f"Starting Vubly API (environment={config.environment}, debug={config.debug})")

    factory = app.dependency_overrides.get(get_service_factory, get_service_factory)()
    for problem in factory.config.validate():
        logger.warning(f"Configuration: {problem}")
    await factory.startup()

    yield

    logger.info("Shutting down Vubly API")
    await factory.cleanup()


def _format_validation_error(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "Invalid value").replace("Value error, ", "")
        messages.append(f"{field}: {message}" if field else message)
    return "; ".join(messages) or "Invalid request"


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    config = get_api_config()

    app = FastAPI(
        title=config.title,
        description=config.description,
        version=config.version,
        debug=config.debug,
        lifespan=lifespan,
        docs_url="/docs" if config.show_docs else None,
        redoc_url="/redoc" if config.show_docs else None
    )

    setup_middleware(app)

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "message": "Vubly API",
            "version": __version__,
            "docs": "/docs" if config.show_docs else "Documentation disabled"
        }

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers=exc.headers or None
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Report malformed request bodies as 400 with the offending fields."""
        error = BadRequestError(_format_validation_error(exc))
        error.error_code = "VALIDATION_ERROR"
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    from .api.routers import callbacks, health, processing, sessions

    # Health checks stay at the root for load balancers
    app.include_router(health.router, tags=["Health"])
    for router, tag in (
        (processing.router, "Processing"),
        (sessions.router, "Sessions"),
        (callbacks.router, "Callbacks"),
    ):
        app.include_router(router, prefix=API_PREFIX, tags=[tag])

    logger.info(f"Vubly API {config.version} ready ({len(app.routes)} routes)")
    return app


# Create app instance
app = create_app()


def main() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    config = get_api_config()
    uvicorn.run(
        "vubly_api.app:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower()
    )


if __name__ == "__main__":
    main()
