"""
Catalog of public IP lookup services.

The registry order is the fallback order used by the resolver.
"""

from typing import Iterable, Iterator, Optional

from .config import DetectionService
from .enums import AddressFamily


DEFAULT_SERVICES = [
    DetectionService(
        name="ipify",
        ipv4_endpoint="https://api.ipify.org",
        ipv6_endpoint="https://api6.ipify.org",
    ),
    DetectionService(
        name="icanhazip.com",
        ipv4_endpoint="https://ipv4.icanhazip.com",
        ipv6_endpoint="https://ipv6.icanhazip.com",
    ),
    DetectionService(
        name="ident.me",
        ipv4_endpoint="https://v4.ident.me",
        ipv6_endpoint="https://v6.ident.me",
    ),
    DetectionService(
        name="api.ip.sb",
        ipv4_endpoint="https://api-ipv4.ip.sb/ip",
        ipv6_endpoint="https://api-ipv6.ip.sb/ip",
    ),
    DetectionService(
        name="seeip.org",
        ipv4_endpoint="https://ipv4.seeip.org",
        ipv6_endpoint="https://ipv6.seeip.org",
    ),
]

DEFAULT_SERVICE_NAME = "ipify"


def endpoint_for(service: DetectionService, family: AddressFamily) -> str:
    """Return the service endpoint for an address family."""
    if family == AddressFamily.IPV4:
        return service.ipv4_endpoint
    return service.ipv6_endpoint


class ServiceRegistry:
    """Ordered, immutable collection of lookup services with unique names."""

    def __init__(self, services: Optional[Iterable[DetectionService]] = None) -> None:
        """
        Initialize the registry.

        Args:
            services: Services in fallback order (defaults to DEFAULT_SERVICES)

        Raises:
            ValueError: If two services share a name
        """
        ordered = tuple(DEFAULT_SERVICES if services is None else services)
        seen: set[str] = set()
        for service in ordered:
            if service.name in seen:
                raise ValueError(f"Service '{service.name}' already exists")
            seen.add(service.name)
        self._services = ordered

    def __iter__(self) -> Iterator[DetectionService]:
        return iter(self._services)

    def __len__(self) -> int:
        return len(self._services)

    def __contains__(self, name: object) -> bool:
        return self.get(name) is not None if isinstance(name, str) else False

    def get(self, name: str) -> Optional[DetectionService]:
        """Get a service by name."""
        for service in self._services:
            if service.name == name:
                return service
        return None

    def names(self) -> list[str]:
        """List service names in fallback order."""
        return [service.name for service in self._services]
