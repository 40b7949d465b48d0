"""Configuration management for the registry proxy."""

import json
import os
from dataclasses import dataclass, field
from typing import Any, List, Optional
from urllib.parse import urlsplit

import yaml

from registry_proxy.catalog import AuthRealmEntry, RegistryCatalog, RegistryDescriptor

DEFAULT_USER_AGENT = "Docker/20.10.0 (linux)"


class ConfigError(ValueError):
    """Raised when configuration cannot be loaded."""


def _default_registry() -> RegistryDescriptor:
    return RegistryDescriptor(
        prefix="docker.io",
        url="https://registry-1.docker.io",
        host="registry-1.docker.io",
    )


def _builtin_registries() -> List[RegistryDescriptor]:
    """Get list of built-in upstream registries."""
    return [
        RegistryDescriptor(prefix="gcr.io", url="https://gcr.io", host="gcr.io"),
        RegistryDescriptor(prefix="k8s.gcr.io", url="https://k8s.gcr.io", host="k8s.gcr.io"),
        RegistryDescriptor(prefix="quay.io", url="https://quay.io", host="quay.io"),
        RegistryDescriptor(prefix="ghcr.io", url="https://ghcr.io", host="ghcr.io"),
    ]


def _builtin_auth_realms() -> List[AuthRealmEntry]:
    """Get list of built-in token issuers keyed by registry service."""
    return [
        AuthRealmEntry(service="registry.docker.io", token_url="https://auth.docker.io/token"),
        AuthRealmEntry(service="gcr.io", token_url="https://gcr.io/v2/token"),
        AuthRealmEntry(service="k8s.gcr.io", token_url="https://k8s.gcr.io/v2/token"),
        AuthRealmEntry(service="quay.io", token_url="https://quay.io/v2/auth"),
        AuthRealmEntry(service="ghcr.io", token_url="https://ghcr.io/token"),
    ]


def _registry_from_value(prefix: str, value: Any) -> RegistryDescriptor:
    """Build a descriptor from a config value.

    The value is either a base URL string or a mapping with ``url`` and an
    optional ``host``. When the host is omitted it is taken from the URL.
    """
    if isinstance(value, str):
        url, host = value, ""
    elif isinstance(value, dict):
        url, host = value.get("url", ""), value.get("host", "")
    else:
        raise ConfigError(f"Invalid registry entry for {prefix!r}: {value!r}")

    if not url:
        raise ConfigError(f"Registry {prefix!r} has no url")

    if not host:
        host = urlsplit(url).netloc
        if not host:
            raise ConfigError(f"Cannot determine host for registry {prefix!r}: {url}")

    return RegistryDescriptor(prefix=prefix, url=url.rstrip("/"), host=host)


def _registries_from_mapping(data: Any) -> List[RegistryDescriptor]:
    if not isinstance(data, dict):
        raise ConfigError(f"Registry map must be an object, got {type(data).__name__}")
    return [_registry_from_value(prefix, value) for prefix, value in data.items()]


def _auth_realms_from_mapping(data: Any) -> List[AuthRealmEntry]:
    if not isinstance(data, dict):
        raise ConfigError(f"Auth realm map must be an object, got {type(data).__name__}")

    realms = []
    for service, token_url in data.items():
        if not isinstance(token_url, str) or not token_url:
            raise ConfigError(f"Invalid token issuer for service {service!r}")
        realms.append(AuthRealmEntry(service=service, token_url=token_url))
    return realms


def _json_env(name: str) -> Optional[Any]:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"{name} is not valid JSON: {e}") from e


def _optional_float(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    return float(value)


@dataclass
class Config:
    """Main application configuration."""
    # Server
    host: str = "0.0.0.0"
    port: int = 5050
    debug: bool = False

    # Proxy
    public_scheme: str = "https"
    public_host: str = ""  # empty: use the Host header of each request
    user_agent: str = DEFAULT_USER_AGENT
    upstream_timeout: Optional[float] = None

    # Registry catalog
    default_registry: RegistryDescriptor = field(default_factory=_default_registry)
    registries: List[RegistryDescriptor] = field(default_factory=_builtin_registries)
    auth_realms: List[AuthRealmEntry] = field(default_factory=_builtin_auth_realms)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        config = cls()

        # Server config
        config.host = os.getenv("HOST", config.host)
        config.port = int(os.getenv("PORT", config.port))
        config.debug = os.getenv("DEBUG", "false").lower() == "true"

        # Proxy config
        config.public_scheme = os.getenv("PUBLIC_SCHEME", config.public_scheme)
        config.public_host = os.getenv("PUBLIC_HOST", config.public_host)
        config.user_agent = os.getenv("USER_AGENT", config.user_agent)
        config.upstream_timeout = _optional_float(os.getenv("UPSTREAM_TIMEOUT"))

        # Registry catalog overrides
        default_url = os.getenv("DEFAULT_REGISTRY_URL")
        if default_url:
            config.default_registry = _registry_from_value(
                config.default_registry.prefix,
                {"url": default_url, "host": os.getenv("DEFAULT_REGISTRY_HOST", "")},
            )

        registry_map = _json_env("REGISTRY_MAP")
        if registry_map is not None:
            config.registries = _registries_from_mapping(registry_map)

        auth_realms = _json_env("AUTH_REALMS")
        if auth_realms is not None:
            config.auth_realms = _auth_realms_from_mapping(auth_realms)

        return config

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigError(f"{path}: top level must be a mapping")

        config = cls()

        if "server" in data:
            config.host = data["server"].get("host", config.host)
            config.port = data["server"].get("port", config.port)
            config.debug = data["server"].get("debug", config.debug)

        if "proxy" in data:
            proxy_data = data["proxy"]
            config.public_scheme = proxy_data.get("public_scheme", config.public_scheme)
            config.public_host = proxy_data.get("public_host", config.public_host)
            config.user_agent = proxy_data.get("user_agent", config.user_agent)
            config.upstream_timeout = _optional_float(proxy_data.get("upstream_timeout"))

        if "registries" in data:
            registries_data = data["registries"]
            if "default" in registries_data:
                config.default_registry = _registry_from_value(
                    config.default_registry.prefix, registries_data["default"]
                )
            if "upstreams" in registries_data:
                config.registries = _registries_from_mapping(registries_data["upstreams"])

        if "auth_realms" in data:
            config.auth_realms = _auth_realms_from_mapping(data["auth_realms"])

        return config

    def build_catalog(self) -> RegistryCatalog:
        """Freeze the configured registries into a catalog."""
        try:
            return RegistryCatalog.build(
                self.default_registry, self.registries, self.auth_realms
            )
        except ValueError as e:
            raise ConfigError(str(e)) from e


def load_config() -> Config:
    """Load configuration from ``CONFIG_PATH`` if it exists, else the environment."""
    config_path = os.getenv("CONFIG_PATH")
    if config_path and os.path.exists(config_path):
        return Config.from_yaml(config_path)
    return Config.from_env()
