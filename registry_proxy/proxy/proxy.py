"""Forwarding of client requests to upstream registries.

Bodies are streamed in both directions. Nothing is cached and failed
upstream calls are not retried.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import aiohttp
from aiohttp import web
from multidict import CIMultiDict
from yarl import URL

from registry_proxy.catalog import RegistryCatalog
from registry_proxy.config import Config
from registry_proxy.proxy.headers import BODYLESS_METHODS, build_upstream_headers
from registry_proxy.proxy.rewrite import rewrite_response_headers
from registry_proxy.proxy.upstream import UpstreamTarget, resolve_upstream

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536


class UpstreamError(Exception):
    """Raised when an upstream registry or token issuer cannot be reached."""


class StreamInterrupted(Exception):
    """Raised when relaying a body fails after the response has started."""


class ProxyHandler:
    """Forwards Registry API requests to the upstream they resolve to."""

    def __init__(self, catalog: RegistryCatalog, config: Config):
        self.catalog = catalog
        self.user_agent = config.user_agent
        self.timeout = aiohttp.ClientTimeout(total=config.upstream_timeout)

    def _get_session(self) -> aiohttp.ClientSession:
        """Create an aiohttp session for one forwarded request.

        Bodies are relayed byte-for-byte, so transparent decompression is off.
        """
        return aiohttp.ClientSession(timeout=self.timeout, auto_decompress=False)

    @asynccontextmanager
    async def forward(
        self,
        method: str,
        url: str,
        headers: CIMultiDict,
        data: Optional[Any] = None,
        allow_redirects: bool = False,
    ) -> AsyncIterator[aiohttp.ClientResponse]:
        """Send a request upstream and yield the unread response.

        Args:
            method: HTTP method
            url: Fully encoded upstream URL, query string included
            headers: Outbound headers
            data: Request body (stream) or None
            allow_redirects: Follow upstream redirects instead of returning them

        Raises:
            UpstreamError: On connection, DNS, protocol or timeout failures
        """
        async with self._get_session() as session:
            try:
                async with session.request(
                    method,
                    URL(url, encoded=True),
                    headers=headers,
                    data=data,
                    allow_redirects=allow_redirects,
                ) as response:
                    yield response
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise UpstreamError(str(e) or type(e).__name__) from e

    def resolve(self, path: str) -> UpstreamTarget:
        """Resolve a ``/v2/...`` path against the catalog."""
        return resolve_upstream(path, self.catalog)

    async def handle(self, request: web.Request, proxy_origin: str) -> web.StreamResponse:
        """Proxy a Registry API request and stream the response back.

        Args:
            request: Client request under ``/v2/``
            proxy_origin: ``scheme://host`` the client reaches the proxy at

        Returns:
            The prepared, fully written client response
        """
        target = self.resolve(request.rel_url.raw_path)
        url = target.url
        if request.rel_url.raw_query_string:
            url = f"{url}?{request.rel_url.raw_query_string}"

        headers = build_upstream_headers(
            request.headers.items(), target.host, self.user_agent, request.method
        )

        data = None
        if request.method not in BODYLESS_METHODS and request.body_exists:
            data = request.content

        logger.info(f"Proxying {request.method} {request.rel_url.raw_path} -> {url}")

        async with self.forward(request.method, url, headers, data) as upstream:
            response_headers = rewrite_response_headers(
                upstream.headers.items(), upstream.status, target.host, proxy_origin
            )
            return await relay_response(request, upstream, response_headers)


async def relay_response(
    request: web.Request,
    upstream: aiohttp.ClientResponse,
    headers: CIMultiDict,
) -> web.StreamResponse:
    """Stream an upstream response to the client with the given headers."""
    response = web.StreamResponse(
        status=upstream.status,
        reason=upstream.reason,
        headers=headers,
    )
    await response.prepare(request)

    # Status line is out; failures from here on can only drop the connection
    try:
        async for chunk in upstream.content.iter_chunked(CHUNK_SIZE):
            await response.write(chunk)
    except (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError) as e:
        logger.error(f"Stream interrupted for {request.method} {request.rel_url}: {e!r}")
        raise StreamInterrupted(str(e)) from e

    await response.write_eof()
    return response
