"""
Registry Proxy: transparent reverse proxy for container-image registries

An aiohttp service providing:
- Registry HTTP API v2 proxying to Docker Hub and prefix-addressed registries
- Official-image (library/) name normalization for Docker Hub
- Auth challenge rewriting and a token relay at /v2/auth
- Redirect (Location) rewriting and CORS on every response
"""

import logging

from aiohttp import web

from registry_proxy.config import Config

logger = logging.getLogger(__name__)


def create_app(config: Config | None = None) -> web.Application:
    """Create and configure the aiohttp application."""
    from registry_proxy.auth.relay import AuthRelay
    from registry_proxy.middleware import cors_middleware, error_middleware
    from registry_proxy.proxy.proxy import ProxyHandler
    from registry_proxy.registry.routes import (
        AUTH_RELAY_KEY,
        CATALOG_KEY,
        CONFIG_KEY,
        PROXY_KEY,
        routes,
    )

    if config is None:
        config = Config.from_env()

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    catalog = config.build_catalog()
    proxy = ProxyHandler(catalog, config)

    app = web.Application(middlewares=[cors_middleware, error_middleware])
    app[CONFIG_KEY] = config
    app[CATALOG_KEY] = catalog
    app[PROXY_KEY] = proxy
    app[AUTH_RELAY_KEY] = AuthRelay(catalog, proxy)

    app.add_routes(routes)

    logger.info(
        f"Proxying {len(catalog.registries)} prefixed registries, "
        f"default upstream {catalog.default.url}"
    )

    return app
