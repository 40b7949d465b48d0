"""Token relay for the proxy's own ``/v2/auth`` endpoint.

Rewritten auth challenges send clients here. The request is forwarded to
the real token issuer of the advertised ``service`` and the issuer's
response is returned as-is. Tokens are neither cached nor inspected.
"""

import logging
from typing import Sequence

from aiohttp import web
from yarl import URL

from registry_proxy.catalog import RegistryCatalog
from registry_proxy.proxy.headers import apply_cors, build_upstream_headers, copy_response_headers
from registry_proxy.proxy.proxy import ProxyHandler, relay_response

logger = logging.getLogger(__name__)


class AuthRelayError(ValueError):
    """Raised for token requests the relay cannot serve."""


class AuthRelay:
    """Relays token requests to the issuer registered for a service."""

    def __init__(self, catalog: RegistryCatalog, proxy: ProxyHandler):
        self.catalog = catalog
        self.proxy = proxy

    def build_token_url(self, service: str, scopes: Sequence[str] = ()) -> str:
        """Build the issuer URL for a token request.

        Args:
            service: The ``service`` query parameter
            scopes: Zero or more ``scope`` query parameters

        Returns:
            Issuer URL with ``service`` and ``scope`` attached

        Raises:
            AuthRelayError: If service is missing or has no known issuer
        """
        if not service:
            raise AuthRelayError("Missing 'service' parameter in auth request")

        token_url = self.catalog.token_url(service)
        if not token_url:
            raise AuthRelayError(f"Unsupported auth service: {service}")

        issuer = URL(token_url)
        query = [
            (key, value) for key, value in issuer.query.items()
            if key not in ("service", "scope")
        ]
        query.append(("service", service))
        query.extend(("scope", scope) for scope in scopes if scope)

        return str(issuer.with_query(query))

    async def handle(self, request: web.Request) -> web.StreamResponse:
        """Relay a client token request.

        Raises:
            AuthRelayError: If the request names no supported service
            UpstreamError: If the issuer cannot be reached
        """
        service = request.query.get("service", "")
        scopes = request.query.getall("scope", [])

        token_url = self.build_token_url(service, scopes)

        headers = build_upstream_headers(
            request.headers.items(), "", self.proxy.user_agent
        )
        # Issuers may redirect to another origin; aiohttp sets Host per hop
        headers.popall("Host", None)

        logger.info(f"Relaying token request for service {service} -> {token_url}")

        async with self.proxy.forward("GET", token_url, headers, allow_redirects=True) as upstream:
            response_headers = copy_response_headers(upstream.headers.items())
            apply_cors(response_headers)
            return await relay_response(request, upstream, response_headers)
