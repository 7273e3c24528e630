"""Shared pytest fixtures for image gateway tests.

The upstream generation API is replaced by ``httpx.MockTransport`` wrapped
around an :class:`UpstreamStub`, so no test touches the network.
"""

from __future__ import annotations

import json
import os
from contextlib import ExitStack
from typing import Callable, Generator

import httpx
import pytest
from fastapi.testclient import TestClient

from image_gateway.config import GatewaySettings
from image_gateway.main import create_app
from image_gateway.schemas import GenerationRequest

UPSTREAM_BASE = "https://upstream.test"


class UpstreamStub:
    """Callable MockTransport handler that records every request it receives.

    Set ``handler`` to control the response; it defaults to a successful
    generation returning two images.
    """

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = self.default_handler

    @staticmethod
    def default_handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/models":
            return httpx.Response(200, json={"data": [{"id": "img3"}, {"id": "flux-schnell"}]})
        return httpx.Response(200, json={"images": ["u1", "u2"], "seed": 7})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        return self.handler(request)

    def json_body(self, index: int = -1) -> dict:
        return json.loads(self.calls[index].content)

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [c for c in self.calls if c.url.path == path]


@pytest.fixture(autouse=True)
def _clean_gateway_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer GATEWAY_* variables from leaking into tests."""
    for key in list(os.environ):
        if key.startswith("GATEWAY_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def make_settings() -> Callable[..., GatewaySettings]:
    """Factory for settings with a test credential and a fake upstream host."""

    def _make(**overrides) -> GatewaySettings:
        values = {
            "api_key": "test-key",
            "api_base_url": UPSTREAM_BASE,
            "environment": "production",
            "_env_file": None,
        }
        values.update(overrides)
        return GatewaySettings(**values)

    return _make


@pytest.fixture
def upstream() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture
def make_client(
    make_settings: Callable[..., GatewaySettings],
    upstream: UpstreamStub,
) -> Generator[Callable[..., TestClient], None, None]:
    """Factory for TestClients (lifespan running) against the stubbed upstream.

    Keyword arguments are settings overrides.  ``raise_server_exceptions`` is
    passed through to :class:`TestClient`.
    """
    with ExitStack() as stack:

        def _make(raise_server_exceptions: bool = True, **overrides) -> TestClient:
            app = create_app(make_settings(**overrides), transport=httpx.MockTransport(upstream))
            client = TestClient(app, raise_server_exceptions=raise_server_exceptions)
            return stack.enter_context(client)

        yield _make


@pytest.fixture
def client(make_client: Callable[..., TestClient]) -> TestClient:
    return make_client()


@pytest.fixture
def valid_request() -> GenerationRequest:
    return GenerationRequest(prompt="a cat", model_id="flux-schnell", size="1024x1024", image_count=2)
