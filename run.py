#!/usr/bin/env python3
"""Entry point for the registry proxy service."""

import logging

from aiohttp import web

from registry_proxy import create_app
from registry_proxy.config import load_config

logger = logging.getLogger(__name__)


def main():
    """Run the application."""
    config = load_config()
    app = create_app(config)

    logger.info(f"Listening on {config.host}:{config.port}")
    web.run_app(app, host=config.host, port=config.port, access_log=logger if config.debug else None)


if __name__ == "__main__":
    main()
