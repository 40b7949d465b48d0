"""Registry catalog: the static table of upstream registries and token issuers.

Built once at start-up from configuration and shared read-only by every
request handler.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional


@dataclass(frozen=True)
class RegistryDescriptor:
    """An upstream registry addressed by a path-prefix token."""
    prefix: str
    url: str
    host: str


@dataclass(frozen=True)
class AuthRealmEntry:
    """Token issuer for a registry ``service`` advertised in auth challenges."""
    service: str
    token_url: str


@dataclass(frozen=True)
class RegistryCatalog:
    """Immutable lookup tables for upstream routing and auth relay."""
    default: RegistryDescriptor
    registries: Mapping[str, RegistryDescriptor]
    auth_realms: Mapping[str, AuthRealmEntry]

    @classmethod
    def build(
        cls,
        default: RegistryDescriptor,
        registries: Iterable[RegistryDescriptor],
        auth_realms: Iterable[AuthRealmEntry],
    ) -> "RegistryCatalog":
        """Build a catalog, rejecting duplicate prefix tokens and services."""
        registry_map: dict[str, RegistryDescriptor] = {}
        for registry in registries:
            if registry.prefix in registry_map:
                raise ValueError(f"Duplicate registry prefix: {registry.prefix}")
            registry_map[registry.prefix] = registry

        realm_map: dict[str, AuthRealmEntry] = {}
        for realm in auth_realms:
            if realm.service in realm_map:
                raise ValueError(f"Duplicate auth service: {realm.service}")
            realm_map[realm.service] = realm

        return cls(
            default=default,
            registries=MappingProxyType(registry_map),
            auth_realms=MappingProxyType(realm_map),
        )

    def lookup(self, prefix: str) -> Optional[RegistryDescriptor]:
        """Get the registry explicitly addressed by a path prefix, if any."""
        return self.registries.get(prefix)

    def token_url(self, service: str) -> Optional[str]:
        """Get the token issuer URL for a registry service name."""
        realm = self.auth_realms.get(service)
        return realm.token_url if realm else None
