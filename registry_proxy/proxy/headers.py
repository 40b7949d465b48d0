"""Header transformation between the client, the proxy and upstream registries."""

from typing import Iterable

from multidict import CIMultiDict

# Hop-by-hop headers never cross the proxy in either direction
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-connection",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
})

# Headers identifying the client hop or injected by edge platforms
CLIENT_HOP_HEADERS = frozenset({
    "host",
    "origin",
    "referer",
    "cdn-loop",
    "cf-connecting-ip",
    "cf-ipcountry",
    "cf-ray",
    "cf-visitor",
    "eo-connecting-ip",
    "eo-log-uuid",
    "true-client-ip",
    "x-forwarded-for",
    "x-forwarded-host",
    "x-forwarded-proto",
    "x-real-ip",
})

BODYLESS_METHODS = frozenset({"GET", "HEAD"})

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": (
        "Authorization, Content-Type, Docker-Content-Digest, "
        "Docker-Distribution-Api-Version, Accept, Accept-Encoding"
    ),
    "Access-Control-Expose-Headers": (
        "Docker-Content-Digest, Docker-Distribution-Api-Version, "
        "Www-Authenticate, Location, Content-Length, Content-Type"
    ),
    "Access-Control-Max-Age": "86400",
}


def build_upstream_headers(
    inbound: Iterable[tuple[str, str]],
    upstream_host: str,
    user_agent: str,
    method: str = "GET",
) -> CIMultiDict:
    """Build the headers for a request forwarded upstream.

    Everything is copied except hop-by-hop and client-hop headers.
    ``Authorization`` passes through untouched.

    Args:
        inbound: Header pairs of the client request
        upstream_host: Value for the outbound ``Host`` header
        user_agent: ``User-Agent`` used when the client sent none
        method: Client request method; bodyless methods lose body headers

    Returns:
        Case-insensitive header mapping for the upstream request
    """
    headers: CIMultiDict = CIMultiDict()
    for name, value in inbound:
        lower = name.lower()
        if lower in HOP_BY_HOP_HEADERS or lower in CLIENT_HOP_HEADERS:
            continue
        headers.add(name, value)

    if method.upper() in BODYLESS_METHODS:
        headers.popall("Content-Length", None)

    headers["Host"] = upstream_host
    if "User-Agent" not in headers:
        headers["User-Agent"] = user_agent

    return headers


def copy_response_headers(upstream: Iterable[tuple[str, str]]) -> CIMultiDict:
    """Copy upstream response headers, dropping hop-by-hop ones."""
    return CIMultiDict(
        (name, value) for name, value in upstream
        if name.lower() not in HOP_BY_HOP_HEADERS
    )


def apply_cors(headers) -> None:
    """Overlay the CORS header set onto a header mapping in place."""
    for name, value in CORS_HEADERS.items():
        headers[name] = value
