"""Token relay for registry auth challenges."""

from registry_proxy.auth.relay import AuthRelay, AuthRelayError

__all__ = ["AuthRelay", "AuthRelayError"]
