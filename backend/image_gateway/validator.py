"""
Request validation: raw POST /generate body -> GenerationRequest, or RequestRejected.
Pure function of the body, the variant options and the static catalog. First failing rule wins.
"""

from __future__ import annotations

from image_gateway.catalog import (
    DEFAULT_CATALOG,
    MAX_IMAGES_PER_REQUEST,
    SUPPORTED_SIZES,
    CapabilityCatalog,
)
from image_gateway.config import GatewayOptions
from image_gateway.errors import RejectReason, RequestRejected
from image_gateway.schemas import GenerateBody, GenerationRequest

MAX_PROMPT_LENGTH = 1000


def _check_prompt(prompt: str | None) -> str:
    trimmed = (prompt or "").strip()
    if not trimmed:
        raise RequestRejected(RejectReason.EMPTY_PROMPT, "Prompt is required and cannot be empty")
    if len(trimmed) > MAX_PROMPT_LENGTH:
        raise RequestRejected(
            RejectReason.PROMPT_TOO_LONG,
            f"Prompt too long. Maximum {MAX_PROMPT_LENGTH} characters allowed.",
            details={"max_length": MAX_PROMPT_LENGTH, "length": len(trimmed)},
        )
    return trimmed


def _resolve_model(body: GenerateBody, options: GatewayOptions) -> str:
    if options.forced_model:
        return options.forced_model
    model = (body.model or "").strip()
    return model or options.default_model


def validate_generation_request(
    body: GenerateBody,
    options: GatewayOptions | None = None,
    catalog: CapabilityCatalog = DEFAULT_CATALOG,
) -> GenerationRequest:
    """
    Rules, in order:
      1. prompt present and non-empty after trim      -> EMPTY_PROMPT
      2. trimmed prompt <= 1000 chars                  -> PROMPT_TOO_LONG
      3. model in catalog (when enforced)              -> UNSUPPORTED_MODEL
      4. size supported by that model                  -> UNSUPPORTED_SIZE
      5. 1 <= num_images <= model max                  -> IMAGE_COUNT_OUT_OF_RANGE
      6. 1 <= num_images <= 4 regardless of model      -> IMAGE_COUNT_OUT_OF_RANGE
    """
    options = options or GatewayOptions()

    prompt = _check_prompt(body.prompt)

    model_id = _resolve_model(body, options)
    capability = catalog.get(model_id)
    if capability is None and options.enforce_model_catalog:
        supported = catalog.ids()
        raise RequestRejected(
            RejectReason.UNSUPPORTED_MODEL,
            f"Unsupported model '{model_id}'. Supported models: {', '.join(supported)}",
            details={"supported_models": supported},
        )

    size = (body.size or "").strip() or options.default_size
    valid_sizes = list(capability.supported_sizes) if capability else list(SUPPORTED_SIZES)
    if size not in valid_sizes:
        raise RequestRejected(
            RejectReason.UNSUPPORTED_SIZE,
            f"Size '{size}' not supported for model '{model_id}'. "
            f"Supported sizes: {', '.join(valid_sizes)}",
            details={"model": model_id, "supported_sizes": valid_sizes},
        )

    count = body.num_images if body.num_images is not None else options.default_image_count
    if capability is not None and not 1 <= count <= capability.max_images:
        raise RequestRejected(
            RejectReason.IMAGE_COUNT_OUT_OF_RANGE,
            f"Model '{model_id}' supports 1 to {capability.max_images} images. Requested: {count}",
            details={"model": model_id, "max_images": capability.max_images, "requested": count},
        )
    if not 1 <= count <= MAX_IMAGES_PER_REQUEST:
        raise RequestRejected(
            RejectReason.IMAGE_COUNT_OUT_OF_RANGE,
            f"Number of images must be between 1 and {MAX_IMAGES_PER_REQUEST}",
            details={"max_images": MAX_IMAGES_PER_REQUEST, "requested": count},
        )

    return GenerationRequest(prompt=prompt, model_id=model_id, size=size, image_count=count)
