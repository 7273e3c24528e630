"""
FastAPI routes: /generate, model catalog, liveness, connectivity probe, download proxy.
Failures are raised as GatewayError and rendered by the app-level handlers.
"""

from __future__ import annotations

import logging
import time
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from image_gateway import __version__
from image_gateway.catalog import SUPPORTED_SIZES
from image_gateway.config import GatewaySettings
from image_gateway.gateway import GenerationGateway
from image_gateway.schemas import GenerateBody, GenerationResult, ModelsResponse, utc_now_iso
from image_gateway.validator import validate_generation_request

logger = logging.getLogger(__name__)

router = APIRouter(tags=["images"])

# Reported by the 404 handler.
AVAILABLE_ENDPOINTS: tuple[str, ...] = (
    "/",
    "/ping",
    "/generate",
    "/models",
    "/constraints",
    "/test-api",
    "/download-image",
)


def get_gateway(request: Request) -> GenerationGateway:
    return request.app.state.gateway


def get_gateway_settings(request: Request) -> GatewaySettings:
    return request.app.state.settings


GatewayDep = Annotated[GenerationGateway, Depends(get_gateway)]
SettingsDep = Annotated[GatewaySettings, Depends(get_gateway_settings)]


def _uptime_seconds(request: Request) -> float:
    return round(time.monotonic() - request.app.state.started_at, 3)


@router.post("/generate", response_model=GenerationResult, response_model_exclude_none=True)
async def generate(body: GenerateBody, gateway: GatewayDep, settings: SettingsDep) -> GenerationResult:
    """
    Validate, forward to the upstream generation API, return images (and legacy data[] shape).
    Invalid requests are rejected with 400 before any upstream call.
    """
    req = validate_generation_request(body, settings.options, gateway.catalog)
    logger.debug("Prompt: %r", req.prompt)
    return await gateway.generate(req)


@router.get("/models", response_model=ModelsResponse)
@router.get("/model", response_model=ModelsResponse, include_in_schema=False)
@router.get("/capabilities", response_model=ModelsResponse, include_in_schema=False)
async def list_models(gateway: GatewayDep) -> ModelsResponse:
    """Live upstream listing with constraints; static catalog with fallback=true if upstream fails."""
    return await gateway.list_models()


@router.get("/constraints")
async def constraints(gateway: GatewayDep) -> dict[str, Any]:
    return {
        "constraints": gateway.catalog.as_constraints(),
        "supported_models": gateway.catalog.ids(),
        "supported_sizes": list(SUPPORTED_SIZES),
        "timestamp": utc_now_iso(),
    }


@router.get("/test-api")
async def test_api(gateway: GatewayDep, settings: SettingsDep) -> dict[str, Any]:
    available = await gateway.probe_upstream()
    return {
        "status": "ok",
        "available_models": available,
        "api_key": "Configured" if settings.api_configured else "Missing",
        "timestamp": utc_now_iso(),
    }


@router.get("/download-image")
async def download_image(
    gateway: GatewayDep,
    url: Annotated[str | None, Query(description="Image URL to download")] = None,
) -> StreamingResponse:
    """Stream the image at ``url`` back as an attachment. Bytes are relayed as received."""
    download = await gateway.open_download(url)
    logger.info("Proxying download: %s -> %s", url, download.filename)
    return StreamingResponse(
        download.relay(),
        media_type=download.media_type,
        headers=download.headers,
        # Closes the upstream response even if the body is never iterated.
        background=BackgroundTask(download.aclose),
    )


@router.get("/")
async def root(request: Request, gateway: GatewayDep, settings: SettingsDep) -> dict[str, Any]:
    options = settings.options
    return {
        "message": "Image generation gateway is running",
        "version": __version__,
        "status": "healthy",
        "environment": settings.environment,
        "supported_models": len(gateway.catalog),
        "api_provider": settings.api_base_url,
        "api_configured": settings.api_configured,
        "forced_model": options.forced_model,
        "default_model": options.default_model,
        "enforce_model_catalog": options.enforce_model_catalog,
        "include_legacy_shape": options.include_legacy_shape,
        "uptime_seconds": _uptime_seconds(request),
        "timestamp": utc_now_iso(),
    }


@router.get("/ping")
async def ping(request: Request) -> dict[str, Any]:
    return {"status": "alive", "timestamp": utc_now_iso(), "uptime": _uptime_seconds(request)}
