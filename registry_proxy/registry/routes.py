"""Registry proxy routes.

Dispatch, first match wins:

- ``OPTIONS *``    CORS preflight (see ``registry_proxy.middleware``)
- ``/v2/auth``     token relay
- ``/v2/...``      proxied to the resolved upstream registry
- ``/v2``          redirect to ``/v2/``
- ``/``            landing page
- anything else    404
"""

import logging
from datetime import datetime, timezone

from aiohttp import web

from registry_proxy.auth.relay import AuthRelay, AuthRelayError
from registry_proxy.catalog import RegistryCatalog
from registry_proxy.config import Config
from registry_proxy.middleware import error_response
from registry_proxy.proxy.proxy import ProxyHandler, UpstreamError
from registry_proxy.registry.landing import render_landing_page

logger = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey("config", Config)
CATALOG_KEY = web.AppKey("catalog", RegistryCatalog)
PROXY_KEY = web.AppKey("proxy", ProxyHandler)
AUTH_RELAY_KEY = web.AppKey("auth_relay", AuthRelay)

routes = web.RouteTableDef()


def proxy_origin(request: web.Request) -> str:
    """Get the ``scheme://host`` clients use to reach the proxy."""
    config = request.app[CONFIG_KEY]
    host = config.public_host or request.host
    return f"{config.public_scheme}://{host}"


# =============================================================================
# Auth Relay
# =============================================================================


@routes.route("*", "/v2/auth")
@routes.route("*", "/v2/auth/{tail:.*}")
async def auth(request: web.Request) -> web.StreamResponse:
    """Relay a token request to the issuer of the requested service."""
    relay = request.app[AUTH_RELAY_KEY]

    try:
        return await relay.handle(request)
    except AuthRelayError as e:
        logger.warning(f"Rejected auth request {request.query_string!r}: {e}")
        return web.Response(text=str(e), status=400)
    except UpstreamError as e:
        logger.error(f"Token issuer request failed: {e}")
        return error_response(str(e))


# =============================================================================
# Registry Proxy
# =============================================================================


@routes.route("*", "/v2/{path:.*}")
async def proxy(request: web.Request) -> web.StreamResponse:
    """Proxy a Registry API request to its upstream."""
    handler = request.app[PROXY_KEY]

    try:
        return await handler.handle(request, proxy_origin(request))
    except UpstreamError as e:
        logger.error(f"Upstream request failed for {request.method} {request.path}: {e}")
        return error_response(str(e))


@routes.route("*", "/v2")
async def api_root(request: web.Request) -> web.StreamResponse:
    """Redirect the bare API root to its canonical form."""
    raise web.HTTPMovedPermanently(location="/v2/")


# =============================================================================
# Landing Page & Health
# =============================================================================


@routes.route("*", "/")
async def index(request: web.Request) -> web.Response:
    """Usage instructions."""
    config = request.app[CONFIG_KEY]
    page = render_landing_page(config.public_host or request.host, request.app[CATALOG_KEY])
    return web.Response(
        text=page,
        content_type="text/html",
        headers={"Cache-Control": "public, max-age=3600"},
    )


@routes.route("*", "/healthz")
async def healthz(request: web.Request) -> web.Response:
    """Health check endpoint."""
    # Unsupported methods fall through to not-found like any other path
    if request.method not in ("GET", "HEAD"):
        raise web.HTTPNotFound()

    return web.json_response({
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })
