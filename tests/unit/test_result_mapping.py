"""Tests for image_gateway.gateway response mapping helpers (no network)."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from image_gateway.gateway import build_result, download_filename
from image_gateway.schemas import GenerationRequest


class TestBuildResult:
    def test_plain_and_legacy_lists_match(self, valid_request: GenerationRequest):
        result = build_result(valid_request, {"images": ["a", "b"], "seed": 7})
        assert result.images == ["a", "b"]
        assert [item.url for item in result.data] == result.images
        assert result.seed == 7

    def test_echo_fields(self, valid_request: GenerationRequest):
        result = build_result(valid_request, {"images": ["u1"]})
        assert result.model == "flux-schnell"
        assert result.size == "1024x1024"
        assert result.prompt == "a cat"
        assert result.num_images == 2
        assert result.success is True
        assert result.timestamp.endswith("Z")

    @pytest.mark.parametrize("body", [{}, {"images": None}, {"images": "not-a-list"}])
    def test_missing_images_become_empty(self, valid_request: GenerationRequest, body):
        result = build_result(valid_request, body)
        assert result.images == []
        assert result.data == []

    def test_legacy_shape_disabled(self, valid_request: GenerationRequest):
        result = build_result(valid_request, {"images": ["u1"]}, include_legacy_shape=False)
        assert result.data is None
        assert "data" not in result.model_dump(exclude_none=True)

    def test_url_objects_are_unwrapped(self, valid_request: GenerationRequest):
        result = build_result(valid_request, {"images": [{"url": "u1"}, "u2", 3, {"x": 1}]})
        assert result.images == ["u1", "u2"]

    @pytest.mark.parametrize("seed", [None, "7", True, 1.5])
    def test_non_integer_seed_dropped(self, valid_request: GenerationRequest, seed):
        result = build_result(valid_request, {"images": [], "seed": seed})
        assert result.seed is None


class TestDownloadFilename:
    _NOW = datetime(2026, 10, 18, 9, 30, 15, 123456, tzinfo=timezone.utc)

    def test_contains_timestamp(self):
        name = download_filename("image/png", now=self._NOW)
        assert name == "generated-image-20261018T093015123456Z.png"

    @pytest.mark.parametrize(
        ("content_type", "ext"),
        [
            ("image/jpeg", ".jpg"),
            ("image/png; charset=binary", ".png"),
            (None, ".png"),
            ("application/x-unknown-thing", ".png"),
        ],
    )
    def test_extension_from_content_type(self, content_type, ext):
        assert download_filename(content_type, now=self._NOW).endswith(ext)
