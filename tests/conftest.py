"""Pytest configuration and fixtures for registry proxy tests."""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer
from multidict import CIMultiDict

from registry_proxy import create_app
from registry_proxy.catalog import AuthRealmEntry, RegistryCatalog, RegistryDescriptor
from registry_proxy.config import Config


@dataclass
class RecordedRequest:
    """A request received by a fake upstream."""
    method: str
    path_qs: str
    headers: CIMultiDict
    body: bytes


class FakeUpstream:
    """In-process stand-in for an upstream registry or token issuer.

    Answers every path with a canned response, ``200 {}`` by default.
    """

    def __init__(self):
        self.url = ""
        self.requests: list[RecordedRequest] = []
        self._responses: dict[str, tuple[int, dict, bytes]] = {}
        self.app = web.Application()
        self.app.router.add_route("*", "/{tail:.*}", self._handle)

    def respond(
        self,
        path: str,
        status: int = 200,
        headers: Optional[dict] = None,
        body: bytes = b"",
    ) -> None:
        """Set the canned response for a path."""
        self._responses[path] = (status, headers or {}, body)

    @asynccontextmanager
    async def serve(self):
        """Serve on an ephemeral local port for the duration of the block."""
        async with TestServer(self.app) as server:
            self.url = str(server.make_url("/")).rstrip("/")
            yield self

    @property
    def last_request(self) -> RecordedRequest:
        return self.requests[-1]

    async def _handle(self, request: web.Request) -> web.Response:
        body = await request.read()
        self.requests.append(
            RecordedRequest(
                method=request.method,
                path_qs=request.path_qs,
                headers=CIMultiDict(request.headers),
                body=body,
            )
        )

        status, headers, content = self._responses.get(
            request.path, (200, {"Content-Type": "application/json"}, b"{}")
        )
        return web.Response(status=status, headers=headers, body=content)


@pytest.fixture
async def docker_hub():
    """Fake default registry."""
    async with FakeUpstream().serve() as upstream:
        yield upstream


@pytest.fixture
async def ghcr():
    """Fake prefix-addressed registry."""
    async with FakeUpstream().serve() as upstream:
        yield upstream


@pytest.fixture
async def token_issuer():
    """Fake token issuer."""
    async with FakeUpstream().serve() as upstream:
        yield upstream


@pytest.fixture
async def token_mirror():
    """Fake second token issuer that the first one can redirect to."""
    async with FakeUpstream().serve() as upstream:
        yield upstream


@pytest.fixture
def catalog() -> RegistryCatalog:
    """Catalog built from the built-in registry defaults."""
    return Config().build_catalog()


@pytest.fixture
def test_config(docker_hub, ghcr, token_issuer) -> Config:
    """Create test configuration routed at the fake upstreams."""
    return Config(
        port=5050,
        debug=True,
        public_scheme="https",
        public_host="proxy.example.com",
        default_registry=RegistryDescriptor(
            prefix="docker.io", url=docker_hub.url, host="registry-1.docker.io"
        ),
        registries=[
            RegistryDescriptor(prefix="ghcr.io", url=ghcr.url, host="ghcr.io"),
        ],
        auth_realms=[
            AuthRealmEntry(service="registry.docker.io", token_url=f"{token_issuer.url}/token"),
            AuthRealmEntry(
                service="ghcr.io", token_url=f"{token_issuer.url}/ghcr/token?client=proxy"
            ),
        ],
    )


@pytest.fixture
async def client(test_config):
    """Create test client."""
    async with TestClient(TestServer(create_app(test_config))) as test_client:
        yield test_client


@pytest.fixture
def aiohttp_client_factory():
    """Build a test client for a config adjusted inside the test."""
    @asynccontextmanager
    async def factory(config: Config):
        async with TestClient(TestServer(create_app(config))) as test_client:
            yield test_client

    return factory
