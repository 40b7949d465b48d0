"""Response rewriting so the client keeps talking to the proxy.

Upstream registries redirect to their own host and point auth challenges
at their own token issuers. Both are rewritten to the proxy's origin.
"""

import logging
import re
from typing import Iterable, Optional
from urllib.parse import urlsplit, urlunsplit

from multidict import CIMultiDict

from registry_proxy.proxy.headers import apply_cors, copy_response_headers

logger = logging.getLogger(__name__)

AUTH_PATH = "/v2/auth"

# key="quoted value" or key=token
_CHALLENGE_PARAM = re.compile(
    r'([A-Za-z_][A-Za-z0-9_-]*)\s*=\s*(?:"((?:[^"\\]|\\.)*)"|([^\s,"]+))'
)

# Auth scheme at the start of the value or after a comma, followed by a param
_CHALLENGE_START = re.compile(
    r'(?:^|,)\s*[A-Za-z][A-Za-z0-9._~+/-]*\s+(?=[A-Za-z_][A-Za-z0-9_-]*\s*=)'
)

_QUOTED = re.compile(r'"(?:[^"\\]|\\.)*"')


def rewrite_location(location: str, upstream_host: str, proxy_origin: str) -> str:
    """Point a redirect target at the proxy.

    Absolute URLs on the upstream host get the proxy's scheme and host,
    root-relative paths are anchored on the proxy. Anything else (for
    example a blob redirect to a CDN) is returned unchanged.

    Args:
        location: Upstream ``Location`` value
        upstream_host: Host the request was forwarded to
        proxy_origin: ``scheme://host`` of the proxy

    Returns:
        The rewritten location
    """
    if location.startswith("/") and not location.startswith("//"):
        return f"{proxy_origin}{location}"

    parts = urlsplit(location)
    if not parts.scheme or not parts.netloc:
        return location

    upstream_host = upstream_host.lower()
    if upstream_host not in (parts.netloc.lower(), parts.hostname):
        return location

    proxy = urlsplit(proxy_origin)
    return urlunsplit((proxy.scheme, proxy.netloc, parts.path, parts.query, parts.fragment))


def parse_challenge(value: str) -> Optional[tuple[str, list[tuple[str, str]]]]:
    """Parse a ``WWW-Authenticate`` challenge.

    Format: ``Bearer realm="...",service="...",scope="..."``

    Returns:
        (scheme, [(key, value), ...]) in header order, or None when the
        value has no parameters
    """
    scheme, _, rest = value.strip().partition(" ")
    if not scheme or not rest:
        return None

    params = []
    for match in _CHALLENGE_PARAM.finditer(rest):
        key, quoted, token = match.groups()
        params.append((key, quoted if quoted is not None else token))

    if not params:
        return None
    return scheme, params


def split_challenges(value: str) -> list[str]:
    """Split a header value holding several comma-joined challenges.

    ``Bearer realm="a",service="s", Basic realm="r"`` yields
    ``['Bearer realm="a",service="s"', 'Basic realm="r"']``. Values that do
    not start with a challenge are returned whole.
    """
    quoted = [match.span() for match in _QUOTED.finditer(value)]
    starts = [
        match.start() for match in _CHALLENGE_START.finditer(value)
        if not any(start < match.start() < end for start, end in quoted)
    ]
    if not starts or starts[0] != 0:
        return [value]

    bounds = starts[1:] + [len(value)]
    return [value[start:end].lstrip(",").strip() for start, end in zip(starts, bounds)]


def rewrite_www_authenticate(value: str, proxy_origin: str) -> str:
    """Point every challenge's realm at the proxy's auth relay.

    Other parameters keep their values and order. A challenge without a
    realm is returned unchanged.
    """
    challenges = split_challenges(value)
    if len(challenges) > 1:
        return ", ".join(_rewrite_challenge(c, proxy_origin) for c in challenges)
    return _rewrite_challenge(value, proxy_origin)


def _rewrite_challenge(value: str, proxy_origin: str) -> str:
    parsed = parse_challenge(value)
    if parsed is None:
        return value

    scheme, params = parsed
    if not any(key.lower() == "realm" for key, _ in params):
        return value

    realm = f"{proxy_origin}{AUTH_PATH}"
    rendered = ",".join(
        f'{key}="{realm if key.lower() == "realm" else val}"' for key, val in params
    )
    return f"{scheme} {rendered}"


def rewrite_response_headers(
    upstream_headers: Iterable[tuple[str, str]],
    status: int,
    upstream_host: str,
    proxy_origin: str,
) -> CIMultiDict:
    """Build the client-facing headers for an upstream response.

    Args:
        upstream_headers: Header pairs of the upstream response
        status: Upstream status code
        upstream_host: Host the request was forwarded to
        proxy_origin: ``scheme://host`` of the proxy

    Returns:
        Headers with CORS applied and Location / WWW-Authenticate rewritten
    """
    headers = copy_response_headers(upstream_headers)
    apply_cors(headers)

    if 300 <= status < 400 and "Location" in headers:
        location = headers["Location"]
        rewritten = rewrite_location(location, upstream_host, proxy_origin)
        if rewritten != location:
            logger.debug(f"Rewrote Location {location} -> {rewritten}")
            headers["Location"] = rewritten

    challenges = headers.popall("WWW-Authenticate", [])
    for challenge in challenges:
        headers.add("WWW-Authenticate", rewrite_www_authenticate(challenge, proxy_origin))

    return headers
