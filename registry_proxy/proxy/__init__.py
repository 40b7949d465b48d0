"""Registry API proxying: upstream resolution, header and response rewriting."""

from registry_proxy.proxy.proxy import ProxyHandler, StreamInterrupted, UpstreamError
from registry_proxy.proxy.upstream import UpstreamTarget, resolve_upstream

__all__ = [
    "ProxyHandler",
    "StreamInterrupted",
    "UpstreamError",
    "UpstreamTarget",
    "resolve_upstream",
]
