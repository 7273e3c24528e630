"""
Production FastAPI app: lifespan (credential check, client shutdown), request logging,
structured JSON errors for every failure path.
"""

from __future__ import annotations

import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from image_gateway import __version__
from image_gateway.config import GatewaySettings, get_settings
from image_gateway.errors import ErrorKind, GatewayError, RejectReason
from image_gateway.gateway import GenerationGateway
from image_gateway.routes import AVAILABLE_ENDPOINTS, router
from image_gateway.schemas import ErrorResponse, utc_now_iso

logging.basicConfig(
    level=getattr(logging, get_settings().log_level),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


def _error_response(
    status_code: int,
    kind: ErrorKind,
    message: str,
    *,
    reason: RejectReason | None = None,
    details=None,
) -> JSONResponse:
    body = ErrorResponse(
        error=message,
        error_kind=kind.value,
        reason=reason.value if reason else None,
        details=details,
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body, exclude_none=True))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: refuse to run without a credential. Shutdown: close the upstream client."""
    settings: GatewaySettings = app.state.settings
    if settings.require_api_key and not settings.api_configured:
        logger.error("GATEWAY_API_KEY is not set; refusing to start.")
        raise RuntimeError("Upstream API key not configured (set GATEWAY_API_KEY).")
    gateway: GenerationGateway = app.state.gateway
    options = settings.options
    logger.info(
        "Image gateway starting: upstream=%s, models=%s, environment=%s, api_key=%s",
        settings.api_base_url,
        len(gateway.catalog),
        settings.environment,
        "configured" if settings.api_configured else "missing",
    )
    logger.info(
        "Variant: forced_model=%s, default_model=%s, enforce_catalog=%s, legacy_shape=%s",
        options.forced_model,
        options.default_model,
        options.enforce_model_catalog,
        options.include_legacy_shape,
    )
    if options.forced_model and options.forced_model not in gateway.catalog:
        logger.warning("Forced model %r is not in the capability catalog.", options.forced_model)
    logger.info("CORS origins: %s", ", ".join(settings.cors_origins))
    yield
    logger.info("Image gateway shutting down...")
    try:
        await gateway.close()
    except Exception as e:
        logger.warning("Error closing upstream client: %s", e)
    logger.info("Image gateway shutdown complete.")


def create_app(
    settings: GatewaySettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(
        title="Image Generation Gateway",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.gateway = GenerationGateway(settings, transport=transport)
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start
        client_ip = request.client.host if request.client else "unknown"
        logger.info(
            "%s %s %s %.3fs ip=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration,
            client_ip,
        )
        return response

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.kind.value)
        return _error_response(
            exc.status_code,
            exc.kind,
            exc.message,
            reason=exc.reason,
            details=exc.details,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(
            400,
            ErrorKind.VALIDATION_ERROR,
            "Malformed request body.",
            reason=RejectReason.MALFORMED_BODY,
            details=jsonable_encoder(exc.errors()),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(
                status_code=404,
                content={
                    "error": "Endpoint not found",
                    "available_endpoints": list(AVAILABLE_ENDPOINTS),
                    "timestamp": utc_now_iso(),
                },
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "timestamp": utc_now_iso()},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
        return _error_response(
            500,
            ErrorKind.UNEXPECTED,
            "Internal server error",
            details=str(exc) if settings.is_development else "Something went wrong",
        )

    app.include_router(router)
    return app


app = create_app()


def main() -> None:
    """Run under uvicorn; its SIGTERM/SIGINT handling drains requests and runs the lifespan shutdown."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "image_gateway.main:app",
        host=settings.host,
        port=settings.port,
        workers=1,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
