"""Request tracing, error envelopes and CORS for the Vubly API."""

import json
import time
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from vubly.utils.logging import get_logger

from .config import get_api_config
from .exceptions import APIError


logger = get_logger("api.middleware")

REQUEST_ID_HEADER = "X-Request-ID"
PROCESS_TIME_HEADER = "X-Process-Time"

# Polled by load balancers and the frontend; logged at debug only
QUIET_PATHS = ("/health", "/health/detailed")


def _elapsed(started: float) -> str:
    return f"{time.perf_counter() - started:.3f}"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with an ID and log how it went.

    An ``X-Request-ID`` sent by the caller is reused so a frontend request can
    be followed through the backend logs; otherwise a UUID is generated. The
    ID and the handling time are echoed back as response headers.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        log = logger.debug if request.url.path in QUIET_PATHS else logger.info

        started = time.perf_counter()
        log(f"[{request_id}] {request.method} {request.url.path}")
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"[{request_id}] {request.method} {request.url.path} raised "
                         f"{type(e).__name__} after {_elapsed(started)}s")
            raise

        duration = _elapsed(started)
        log(f"[{request_id}] {response.status_code} in {duration}s")
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[PROCESS_TIME_HEADER] = duration
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn errors that escape the routers into the JSON error envelope."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except APIError as e:
            logger.warning(f"{e.error_code} on {request.url.path}: {e.message}")
            return Response(
                content=e.to_json(),
                status_code=e.status_code,
                headers=e.headers,
                media_type="application/json"
            )
        except Exception as e:
            request_id = getattr(request.state, "request_id", "unknown")
            logger.exception(f"[{request_id}] Unhandled error on {request.url.path}: {e}")
            body = {
                "success": False,
                "error": {
                    "code": "INTERNAL_SERVER_ERROR",
                    "message": "An unexpected error occurred"
                },
                "request_id": request_id
            }
            return Response(content=json.dumps(body), status_code=500, media_type="application/json")


def setup_cors_middleware(app: FastAPI) -> None:
    """Allow the configured frontends, and let them read the tracing and range headers."""
    config = get_api_config()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, PROCESS_TIME_HEADER, "Content-Range", "Accept-Ranges"]
    )


def setup_middleware(app: FastAPI) -> None:
    # Last added runs first: CORS answers preflights before anything is logged
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    setup_cors_middleware(app)
    logger.info("Middleware setup completed")
