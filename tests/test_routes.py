"""Tests for the landing page, health check and request dispatch."""

import pytest

from registry_proxy.proxy.headers import CORS_HEADERS


@pytest.mark.asyncio
async def test_health_check(client):
    """Test health check endpoint."""
    response = await client.get("/healthz")

    assert response.status == 200
    data = await response.json()
    assert data["status"] == "healthy"
    assert "timestamp" in data


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["POST", "PUT", "DELETE"])
async def test_health_check_other_methods(client, method):
    """Test non-GET requests to /healthz are a 404 like any unknown route."""
    response = await client.request(method, "/healthz")

    assert response.status == 404
    assert response.headers["Access-Control-Allow-Origin"] == "*"


@pytest.mark.asyncio
async def test_landing_page(client, docker_hub):
    """Test the root serves usage instructions without contacting upstreams."""
    response = await client.get("/")

    assert response.status == 200
    assert response.content_type == "text/html"
    assert response.headers["Cache-Control"] == "public, max-age=3600"
    assert response.headers["Access-Control-Allow-Origin"] == "*"

    page = await response.text()
    assert "docker pull proxy.example.com/ubuntu:latest" in page
    assert "proxy.example.com/ghcr.io/&lt;image&gt;" in page
    assert '"registry-mirrors": ["https://proxy.example.com"]' in page
    assert docker_hub.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/", "/v2/ubuntu/manifests/latest", "/v2/auth", "/anything"])
async def test_preflight(client, docker_hub, path):
    """Test OPTIONS is answered locally on every path."""
    response = await client.options(path)

    assert response.status == 204
    for name, value in CORS_HEADERS.items():
        assert response.headers[name] == value
    assert docker_hub.requests == []


@pytest.mark.asyncio
async def test_api_root_redirect(client):
    """Test /v2 redirects permanently to /v2/."""
    response = await client.get("/v2", allow_redirects=False)

    assert response.status == 301
    assert response.headers["Location"] == "/v2/"
    assert response.headers["Access-Control-Allow-Origin"] == "*"


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/favicon.ico", "/v1/search", "/v3/"])
async def test_unknown_path(client, docker_hub, path):
    """Test paths outside the Registry API are a 404 with CORS."""
    response = await client.get(path)

    assert response.status == 404
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert docker_hub.requests == []
