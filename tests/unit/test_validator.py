"""Tests for image_gateway.validator — request validation rules.

Tests cover:
- Prompt presence and length limits (trimmed).
- Model membership against the capability catalog.
- Per-model size compatibility, with the valid sizes enumerated.
- Per-model and global image count bounds.
- Rule ordering (first failure wins).
- Variant switches: forced model, catalog enforcement, defaults.
"""

from __future__ import annotations

import pytest

from image_gateway.catalog import DEFAULT_CATALOG, SUPPORTED_SIZES
from image_gateway.config import GatewayOptions
from image_gateway.errors import ErrorKind, RejectReason, RequestRejected
from image_gateway.schemas import GenerateBody
from image_gateway.validator import MAX_PROMPT_LENGTH, validate_generation_request


def _body(**overrides) -> GenerateBody:
    values = {"prompt": "a cat", "model": "flux-schnell", "size": "1024x1024", "num_images": 1}
    values.update(overrides)
    return GenerateBody(**values)


def _reject(body: GenerateBody, options: GatewayOptions | None = None) -> RequestRejected:
    with pytest.raises(RequestRejected) as exc_info:
        validate_generation_request(body, options)
    return exc_info.value


class TestPrompt:
    @pytest.mark.parametrize("prompt", [None, "", " ", "   \n\t  "])
    def test_empty_prompt_rejected(self, prompt):
        err = _reject(_body(prompt=prompt))
        assert err.reason is RejectReason.EMPTY_PROMPT
        assert err.kind is ErrorKind.VALIDATION_ERROR
        assert err.status_code == 400

    def test_prompt_too_long_rejected(self):
        err = _reject(_body(prompt="x" * (MAX_PROMPT_LENGTH + 1)))
        assert err.reason is RejectReason.PROMPT_TOO_LONG

    def test_prompt_at_limit_accepted(self):
        req = validate_generation_request(_body(prompt="x" * MAX_PROMPT_LENGTH))
        assert len(req.prompt) == MAX_PROMPT_LENGTH

    def test_length_measured_after_trim(self):
        """Surrounding whitespace does not count towards the limit."""
        req = validate_generation_request(_body(prompt="  " + "x" * MAX_PROMPT_LENGTH + "\n"))
        assert req.prompt == "x" * MAX_PROMPT_LENGTH

    def test_length_counts_code_points(self):
        """Astral characters count once each, not as UTF-16 surrogate pairs."""
        req = validate_generation_request(_body(prompt="\U0001F431" * 600))
        assert len(req.prompt) == 600
        err = _reject(_body(prompt="\U0001F431" * (MAX_PROMPT_LENGTH + 1)))
        assert err.reason is RejectReason.PROMPT_TOO_LONG

    def test_prompt_is_trimmed(self):
        req = validate_generation_request(_body(prompt="  a cat on a mat  "))
        assert req.prompt == "a cat on a mat"


class TestModel:
    def test_unknown_model_lists_all_ids(self):
        err = _reject(_body(model="dall-e-9"))
        assert err.reason is RejectReason.UNSUPPORTED_MODEL
        for model_id in DEFAULT_CATALOG.ids():
            assert model_id in err.message
        assert err.details["supported_models"] == DEFAULT_CATALOG.ids()

    @pytest.mark.parametrize("model_id", DEFAULT_CATALOG.ids())
    def test_every_catalog_model_accepted(self, model_id):
        req = validate_generation_request(_body(model=model_id))
        assert req.model_id == model_id

    def test_missing_model_uses_default(self):
        req = validate_generation_request(_body(model=None), GatewayOptions(default_model="img4"))
        assert req.model_id == "img4"

    def test_forced_model_overrides_body(self):
        req = validate_generation_request(
            _body(model="flux-dev", size="1792x1024"),
            GatewayOptions(forced_model="img4"),
        )
        assert req.model_id == "img4"

    def test_forced_model_outside_catalog_rejected(self):
        err = _reject(_body(), GatewayOptions(forced_model="not-a-model"))
        assert err.reason is RejectReason.UNSUPPORTED_MODEL


class TestSize:
    @pytest.mark.parametrize(
        ("model_id", "size"),
        [
            (cap.id, size)
            for cap in DEFAULT_CATALOG
            for size in SUPPORTED_SIZES
            if size not in cap.supported_sizes
        ],
    )
    def test_unsupported_size_enumerates_model_sizes(self, model_id, size):
        err = _reject(_body(model=model_id, size=size, num_images=1))
        cap = DEFAULT_CATALOG.get(model_id)
        assert err.reason is RejectReason.UNSUPPORTED_SIZE
        assert err.details["supported_sizes"] == list(cap.supported_sizes)
        assert err.details["model"] == model_id
        for valid in cap.supported_sizes:
            assert valid in err.message

    def test_missing_size_uses_default(self):
        req = validate_generation_request(_body(size=None))
        assert req.size == "1024x1024"

    def test_unknown_size_rejected(self):
        err = _reject(_body(model="img3", size="512x512"))
        assert err.reason is RejectReason.UNSUPPORTED_SIZE


class TestImageCount:
    @pytest.mark.parametrize("model_id", DEFAULT_CATALOG.ids())
    def test_counts_within_model_max_accepted(self, model_id):
        cap = DEFAULT_CATALOG.get(model_id)
        for count in range(1, cap.max_images + 1):
            req = validate_generation_request(_body(model=model_id, num_images=count))
            assert req.image_count == count

    @pytest.mark.parametrize("model_id", DEFAULT_CATALOG.ids())
    def test_count_above_model_max_rejected(self, model_id):
        cap = DEFAULT_CATALOG.get(model_id)
        err = _reject(_body(model=model_id, num_images=cap.max_images + 1))
        assert err.reason is RejectReason.IMAGE_COUNT_OUT_OF_RANGE
        assert err.details["max_images"] == cap.max_images

    @pytest.mark.parametrize("count", [0, -1])
    def test_count_below_one_rejected(self, count):
        err = _reject(_body(num_images=count))
        assert err.reason is RejectReason.IMAGE_COUNT_OUT_OF_RANGE

    def test_missing_count_defaults_to_one(self):
        req = validate_generation_request(_body(num_images=None))
        assert req.image_count == 1


class TestRuleOrder:
    def test_empty_prompt_wins_over_bad_model(self):
        err = _reject(_body(prompt="", model="nope", size="1x1", num_images=99))
        assert err.reason is RejectReason.EMPTY_PROMPT

    def test_model_wins_over_size(self):
        err = _reject(_body(model="nope", size="1x1"))
        assert err.reason is RejectReason.UNSUPPORTED_MODEL

    def test_size_wins_over_count(self):
        err = _reject(_body(model="flux-pro", size="1792x1024", num_images=4))
        assert err.reason is RejectReason.UNSUPPORTED_SIZE


class TestCatalogNotEnforced:
    options = GatewayOptions(enforce_model_catalog=False)

    def test_unknown_model_passes(self):
        req = validate_generation_request(_body(model="brand-new", size="1024x1792"), self.options)
        assert req.model_id == "brand-new"

    def test_unknown_model_still_checks_global_sizes(self):
        err = _reject(_body(model="brand-new", size="640x480"), self.options)
        assert err.reason is RejectReason.UNSUPPORTED_SIZE
        assert err.details["supported_sizes"] == list(SUPPORTED_SIZES)

    def test_unknown_model_still_bounded_globally(self):
        err = _reject(_body(model="brand-new", num_images=5), self.options)
        assert err.reason is RejectReason.IMAGE_COUNT_OUT_OF_RANGE
        assert err.details["max_images"] == 4

    def test_known_model_keeps_its_limits(self):
        err = _reject(_body(model="flux-pro", num_images=2), self.options)
        assert err.reason is RejectReason.IMAGE_COUNT_OUT_OF_RANGE
