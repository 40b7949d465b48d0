"""Upstream resolution for proxied Registry API paths.

Maps a ``/v2/...`` request path to the upstream registry URL and Host it
must be forwarded to. Supports formats:

- ``/v2/gcr.io/google-containers/busybox/manifests/latest``
  -> ``https://gcr.io/v2/google-containers/busybox/manifests/latest``
- ``/v2/ubuntu/manifests/latest``
  -> ``https://registry-1.docker.io/v2/library/ubuntu/manifests/latest``
- ``/v2/someuser/someimage/manifests/latest``
  -> ``https://registry-1.docker.io/v2/someuser/someimage/manifests/latest``
"""

from dataclasses import dataclass

from registry_proxy.catalog import RegistryCatalog

API_PREFIX = "/v2/"

# Checked in this order, not by position in the path
API_ACTIONS = ("manifests", "blobs", "tags")

OFFICIAL_NAMESPACE = "library"


@dataclass(frozen=True)
class UpstreamTarget:
    """Where a proxied request goes."""
    url: str
    host: str


def _image_name_length(parts: list[str]) -> int:
    """Count the image-name segments preceding the API action segment.

    Returns 0 when the path carries no action segment.
    """
    for action in API_ACTIONS:
        if action in parts:
            return parts.index(action)
    return 0


def resolve_upstream(path: str, catalog: RegistryCatalog) -> UpstreamTarget:
    """Resolve a request path to its upstream target.

    Args:
        path: Request path, with or without the leading ``/v2/``
        catalog: Registry catalog to route against

    Returns:
        UpstreamTarget with the full upstream URL (query string excluded)
    """
    if path.startswith(API_PREFIX):
        path = path[len(API_PREFIX):]

    parts = path.split("/")

    registry = catalog.lookup(parts[0])
    if registry is not None:
        path = "/".join(parts[1:])
    else:
        registry = catalog.default

        # Official images live under the implicit library/ namespace
        if _image_name_length(parts) == 1 and parts[0]:
            path = f"{OFFICIAL_NAMESPACE}/{path}"

    base_url = registry.url.rstrip("/")
    return UpstreamTarget(url=f"{base_url}/v2/{path}", host=registry.host)
