"""Request middleware: CORS on every response and structured error responses."""

import logging
from datetime import datetime, timezone

from aiohttp import web

from registry_proxy.proxy.headers import CORS_HEADERS, apply_cors
from registry_proxy.proxy.proxy import StreamInterrupted

logger = logging.getLogger(__name__)


def error_response(message: str, status: int = 500) -> web.Response:
    """Create a JSON error response."""
    return web.json_response(
        {
            "error": "Proxy Error",
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        status=status,
    )


@web.middleware
async def cors_middleware(request: web.Request, handler):
    """Answer CORS preflights and attach the CORS header set to every response.

    Streamed responses are already on the wire when the handler returns;
    those carry the CORS headers from the response rewriter.
    """
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=CORS_HEADERS)

    try:
        response = await handler(request)
    except web.HTTPException as e:
        apply_cors(e.headers)
        raise

    if not response.prepared:
        apply_cors(response.headers)
    return response


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Convert unexpected exceptions into a structured 500."""
    try:
        return await handler(request)
    except (web.HTTPException, StreamInterrupted):
        raise
    except Exception as e:
        logger.exception(f"Unhandled error for {request.method} {request.path}")
        return error_response(str(e) or type(e).__name__)
