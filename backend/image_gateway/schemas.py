"""
Pydantic v2 request/response schemas for the gateway.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class GenerateBody(BaseModel):
    """Inbound POST /generate body. Lenient: the validator decides what is missing."""

    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    prompt: str | None = None
    model: str | None = None
    size: str | None = None
    num_images: int | None = None


class GenerationRequest(BaseModel):
    """A request that passed validation. Prompt is already trimmed."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    prompt: str
    model_id: str
    size: str
    image_count: int

    def upstream_payload(self) -> dict[str, Any]:
        return {
            "prompt": self.prompt,
            "model": self.model_id,
            "size": self.size,
            "num_images": self.image_count,
        }


class LegacyImage(BaseModel):
    url: str


class GenerationResult(BaseModel):
    success: bool = True
    images: list[str] = Field(default_factory=list)
    data: list[LegacyImage] | None = Field(
        default=None,
        description="Legacy shape, the same URLs as images wrapped in {url}.",
    )
    seed: int | None = None
    model: str
    size: str
    prompt: str
    num_images: int
    timestamp: str = Field(default_factory=utc_now_iso)


class ErrorResponse(BaseModel):
    error: str
    error_kind: str
    reason: str | None = None
    details: Any = None
    timestamp: str = Field(default_factory=utc_now_iso)


class ModelsResponse(BaseModel):
    models: list[dict[str, Any]]
    total: int
    fallback: bool = False
    timestamp: str = Field(default_factory=utc_now_iso)
