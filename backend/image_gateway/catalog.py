"""
Model capability catalog: model id -> max images per request and supported sizes.
Built once at import time and never mutated.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

SIZE_SQUARE = "1024x1024"
SIZE_LANDSCAPE = "1792x1024"
SIZE_PORTRAIT = "1024x1792"

SUPPORTED_SIZES: tuple[str, ...] = (SIZE_SQUARE, SIZE_LANDSCAPE, SIZE_PORTRAIT)

# Hard ceiling on images per request, independent of the model.
MAX_IMAGES_PER_REQUEST = 4


class ModelCapability(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    max_images: int = Field(..., ge=1, le=MAX_IMAGES_PER_REQUEST)
    supported_sizes: tuple[str, ...]

    def supports_size(self, size: str) -> bool:
        return size in self.supported_sizes

    def constraints(self) -> dict[str, Any]:
        return {"max_images": self.max_images, "supported_sizes": list(self.supported_sizes)}


def _cap(model_id: str, max_images: int, sizes: tuple[str, ...]) -> ModelCapability:
    return ModelCapability(id=model_id, max_images=max_images, supported_sizes=sizes)


_ALL_SIZES = (SIZE_SQUARE, SIZE_PORTRAIT, SIZE_LANDSCAPE)
_SQUARE_ONLY = (SIZE_SQUARE,)

DEFAULT_CAPABILITIES: tuple[ModelCapability, ...] = (
    _cap("gemini-2.0-flash", 4, _ALL_SIZES),
    _cap("img3", 4, _ALL_SIZES),
    _cap("img4", 4, _ALL_SIZES),
    _cap("uncen", 1, _SQUARE_ONLY),
    _cap("qwen", 4, _ALL_SIZES),
    _cap("kontext-max", 4, _SQUARE_ONLY),
    _cap("kontext-pro", 4, _SQUARE_ONLY),
    _cap("flux-1.1-pro", 1, _SQUARE_ONLY),
    _cap("flux-pro", 1, _SQUARE_ONLY),
    _cap("flux-schnell", 4, _SQUARE_ONLY),
    _cap("flux-dev", 4, _SQUARE_ONLY),
)

# Used to describe models the upstream lists but the table does not know.
UNKNOWN_MODEL_CAPABILITY = ModelCapability(id="", max_images=1, supported_sizes=_SQUARE_ONLY)


def display_name(model_id: str) -> str:
    """'flux-schnell' -> 'Flux schnell'."""
    if not model_id:
        return model_id
    return (model_id[0].upper() + model_id[1:]).replace("-", " ")


class CapabilityCatalog:
    """Read-only lookup over a fixed set of model capabilities."""

    def __init__(self, capabilities: Iterable[ModelCapability]) -> None:
        table: dict[str, ModelCapability] = {}
        for cap in capabilities:
            if cap.id in table:
                raise ValueError(f"Duplicate model id in catalog: {cap.id}")
            table[cap.id] = cap
        self._table: Mapping[str, ModelCapability] = MappingProxyType(table)

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._table

    def __iter__(self) -> Iterator[ModelCapability]:
        return iter(self._table.values())

    def __len__(self) -> int:
        return len(self._table)

    def get(self, model_id: str) -> ModelCapability | None:
        return self._table.get(model_id)

    def ids(self) -> list[str]:
        return list(self._table)

    def as_constraints(self) -> dict[str, dict[str, Any]]:
        return {cap.id: cap.constraints() for cap in self._table.values()}

    def describe(self, model_id: str) -> dict[str, Any]:
        cap = self._table.get(model_id)
        return {
            "id": model_id,
            "name": display_name(model_id),
            "constraints": (cap or UNKNOWN_MODEL_CAPABILITY).constraints(),
        }


DEFAULT_CATALOG = CapabilityCatalog(DEFAULT_CAPABILITIES)
