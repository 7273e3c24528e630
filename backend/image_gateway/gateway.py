"""
Generation gateway: single-shot calls to the upstream image API, response mapping,
live model listing with static fallback, and the streamed download proxy.
No retries; timeouts are the only cancellation mechanism.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import time
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlsplit

import httpx

from image_gateway.catalog import DEFAULT_CATALOG, CapabilityCatalog
from image_gateway.config import GatewaySettings
from image_gateway.errors import (
    ErrorKind,
    GatewayError,
    MissingCredentialError,
    RejectReason,
    RequestRejected,
    map_transport_error,
    map_upstream_status,
)
from image_gateway.schemas import GenerationRequest, GenerationResult, LegacyImage, ModelsResponse

logger = logging.getLogger(__name__)

GENERATIONS_PATH = "/v1/images/generations"
MODELS_PATH = "/v1/models"


def _extract_urls(raw_images: Any) -> list[str]:
    """Upstream images as plain URL strings. Missing or null -> []."""
    if not isinstance(raw_images, list):
        return []
    urls: list[str] = []
    for item in raw_images:
        if isinstance(item, str):
            urls.append(item)
        elif isinstance(item, dict) and isinstance(item.get("url"), str):
            urls.append(item["url"])
    return urls


def build_result(
    req: GenerationRequest,
    upstream_body: dict[str, Any],
    include_legacy_shape: bool = True,
) -> GenerationResult:
    """Map an upstream success body to the outbound result.

    ``images`` and the legacy ``data`` list are built from the same URL list,
    so they always hold the same URLs in the same order.
    """
    urls = _extract_urls(upstream_body.get("images"))
    seed = upstream_body.get("seed")
    if isinstance(seed, bool) or not isinstance(seed, int):
        seed = None
    return GenerationResult(
        images=urls,
        data=[LegacyImage(url=u) for u in urls] if include_legacy_shape else None,
        seed=seed,
        model=req.model_id,
        size=req.size,
        prompt=req.prompt,
        num_images=req.image_count,
    )


def download_filename(content_type: str | None, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    ext = None
    if content_type:
        ext = mimetypes.guess_extension(content_type.split(";")[0].strip().lower())
    if ext == ".jpe":
        ext = ".jpg"
    ext = ext or ".png"
    return f"generated-image-{now.strftime('%Y%m%dT%H%M%S%fZ')}{ext}"


def _check_download_url(url: str | None) -> str:
    if url is None or not url.strip():
        raise RequestRejected(RejectReason.MISSING_URL, "Image URL is required")
    url = url.strip()
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise RequestRejected(
            RejectReason.INVALID_URL,
            "Image URL must be an absolute http(s) URL",
            details={"url": url},
        )
    return url


class _LiveCatalogCache:
    """Time-bounded cache for the live model listing. Only successful reads are stored."""

    def __init__(self, ttl_seconds: float) -> None:
        self._ttl = ttl_seconds
        self._value: list[dict[str, Any]] | None = None
        self._expires_at = 0.0

    def get(self) -> list[dict[str, Any]] | None:
        if self._value is not None and time.monotonic() < self._expires_at:
            return self._value
        return None

    def put(self, models: list[dict[str, Any]]) -> None:
        if self._ttl <= 0:
            return
        self._value = models
        self._expires_at = time.monotonic() + self._ttl

    def clear(self) -> None:
        self._value = None
        self._expires_at = 0.0


class DownloadStream:
    """An open upstream response plus the headers to send to the caller."""

    def __init__(self, response: httpx.Response, filename: str) -> None:
        self.response = response
        self.filename = filename

    @property
    def media_type(self) -> str:
        return self.response.headers.get("content-type", "application/octet-stream")

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Content-Disposition": f'attachment; filename="{self.filename}"',
            "Cache-Control": "no-cache",
        }

    async def relay(self) -> AsyncIterator[bytes]:
        """Yield upstream bytes as they arrive. The upstream response is always closed."""
        try:
            async for chunk in self.response.aiter_bytes():
                yield chunk
        finally:
            await self.response.aclose()

    async def aclose(self) -> None:
        await self.response.aclose()


class GenerationGateway:
    """
    Stateless per request. Holds one lazily created httpx.AsyncClient and the
    live model listing cache; both are released by close().
    """

    def __init__(
        self,
        settings: GatewaySettings,
        catalog: CapabilityCatalog = DEFAULT_CATALOG,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.catalog = catalog
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._closed = False
        self._models_cache = _LiveCatalogCache(settings.catalog_cache_ttl_seconds)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._closed:
            self._client = httpx.AsyncClient(
                base_url=self.settings.api_base_url.rstrip("/"),
                timeout=httpx.Timeout(self.settings.generation_timeout_seconds),
                headers={"User-Agent": self.settings.user_agent},
                transport=self._transport,
            )
            self._closed = False
        return self._client

    async def close(self) -> None:
        """Release resources. Safe to call multiple times."""
        self._closed = True
        self._models_cache.clear()
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _auth_headers(self) -> dict[str, str]:
        api_key = self.settings.api_key.strip()
        if not api_key:
            raise MissingCredentialError()
        return {"Authorization": f"Bearer {api_key}"}

    async def generate(self, req: GenerationRequest) -> GenerationResult:
        headers = self._auth_headers()
        client = self._get_client()
        logger.info(
            "Generating %s image(s) with model=%s size=%s",
            req.image_count,
            req.model_id,
            req.size,
        )
        start = time.perf_counter()
        # httpx timeouts are per phase; wait_for bounds the whole call including the body read.
        try:
            response = await asyncio.wait_for(
                client.post(
                    GENERATIONS_PATH,
                    json=req.upstream_payload(),
                    headers=headers,
                    timeout=httpx.Timeout(self.settings.generation_timeout_seconds),
                ),
                timeout=self.settings.generation_timeout_seconds,
            )
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.warning("Upstream generation call failed: %s: %s", type(e).__name__, e)
            raise map_transport_error(e, expose_detail=self.settings.is_development) from e

        if not response.is_success:
            body = _json_or_text(response)
            logger.warning("Upstream generation returned %s: %s", response.status_code, body)
            raise map_upstream_status(response.status_code, body)

        body = _json_or_text(response)
        if not isinstance(body, dict):
            logger.error("Upstream generation returned a non-object body: %r", body)
            raise GatewayError(
                ErrorKind.UNEXPECTED,
                500,
                "Image generation failed due to server error.",
                details={"upstream_status": response.status_code},
            )

        result = build_result(req, body, include_legacy_shape=self.settings.include_legacy_shape)
        logger.info(
            "Image generation OK, %.2fs, images=%s",
            time.perf_counter() - start,
            len(result.images),
        )
        return result

    async def _fetch_models(self) -> list[dict[str, Any]]:
        client = self._get_client()
        headers = self._auth_headers()
        response = await asyncio.wait_for(
            client.get(
                MODELS_PATH,
                headers=headers,
                timeout=httpx.Timeout(self.settings.models_timeout_seconds),
            ),
            timeout=self.settings.models_timeout_seconds,
        )
        if not response.is_success:
            raise map_upstream_status(response.status_code, _json_or_text(response))
        body = _json_or_text(response)
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            raise GatewayError(ErrorKind.UNEXPECTED, 500, "Upstream model listing is malformed.")
        return [m for m in data if isinstance(m, dict) and isinstance(m.get("id"), str)]

    def _static_models(self) -> list[dict[str, Any]]:
        return [self.catalog.describe(model_id) for model_id in self.catalog.ids()]

    async def list_models(self) -> ModelsResponse:
        """Live listing (cached) with constraints attached; static catalog on any failure."""
        cached = self._models_cache.get()
        if cached is not None:
            return ModelsResponse(models=cached, total=len(cached))
        try:
            upstream = await self._fetch_models()
        except Exception as e:
            logger.warning("Model listing unavailable, serving static catalog: %s", e)
            static = self._static_models()
            return ModelsResponse(models=static, total=len(static), fallback=True)
        models = [
            {**m, "constraints": self.catalog.describe(m["id"])["constraints"]} for m in upstream
        ]
        self._models_cache.put(models)
        return ModelsResponse(models=models, total=len(models))

    async def probe_upstream(self) -> int:
        """Return the number of models the upstream lists. Raises GatewayError on failure."""
        try:
            models = await self._fetch_models()
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            raise map_transport_error(e, expose_detail=self.settings.is_development) from e
        return len(models)

    async def open_download(self, url: str | None) -> DownloadStream:
        """Open a streamed GET on ``url``. The caller must relay() or aclose() the result."""
        url = _check_download_url(url)
        client = self._get_client()
        request = client.build_request(
            "GET",
            url,
            timeout=httpx.Timeout(self.settings.download_timeout_seconds),
        )
        try:
            response = await asyncio.wait_for(
                client.send(request, stream=True, follow_redirects=True),
                timeout=self.settings.download_timeout_seconds,
            )
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.warning("Download of %s failed: %s: %s", url, type(e).__name__, e)
            raise map_transport_error(e, expose_detail=self.settings.is_development) from e
        if not response.is_success:
            status = response.status_code
            await response.aclose()
            logger.warning("Download of %s returned %s", url, status)
            raise map_upstream_status(status)
        return DownloadStream(response, download_filename(response.headers.get("content-type")))


def _json_or_text(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
