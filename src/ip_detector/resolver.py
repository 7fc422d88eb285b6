"""
Public address resolver with ordered fallback across lookup services.

Each lookup is a plain HTTP GET whose trimmed response body is the
address. The preferred service is tried first, then every other service
in registry order until one answers.
"""

import time
from dataclasses import dataclass, field
from typing import Optional

import httpx

from .audit_logger import AuditLogger
from .config import DetectionService, ResolverConfig
from .enums import AddressFamily, LogLevel, LookupErrorCode
from .exceptions import AllServicesFailed
from .registry import ServiceRegistry, endpoint_for


@dataclass
class LookupFailure:
    """Why a single lookup attempt failed."""

    code: LookupErrorCode
    message: str
    http_status_code: Optional[int] = None


@dataclass
class LookupResponse:
    """Outcome of one request to one lookup service."""

    service: str
    family: AddressFamily
    endpoint: str
    address: str = ""
    http_status_code: int = 0
    error: Optional[LookupFailure] = None
    response_time_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.error is None and bool(self.address)


@dataclass(frozen=True)
class ResolvedAddress:
    """An address together with the service that reported it."""

    address: str
    service: str
    family: AddressFamily


@dataclass
class ResolutionResult:
    """Both families resolved for one cycle."""

    ipv4: Optional[ResolvedAddress] = None
    ipv6: Optional[ResolvedAddress] = None
    ipv4_error: Optional[AllServicesFailed] = None
    attempts: list[LookupResponse] = field(default_factory=list)

    @property
    def ipv4_address(self) -> str:
        return self.ipv4.address if self.ipv4 else ""

    @property
    def ipv6_address(self) -> str:
        return self.ipv6.address if self.ipv6 else ""


class Resolver:
    """
    Async resolver for the host's public IPv4 and IPv6 addresses.

    IPv4 is mandatory: exhausting every service raises AllServicesFailed.
    IPv6 is optional: exhausting every service yields None, since many
    hosts simply have no IPv6 connectivity.
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        config: Optional[ResolverConfig] = None,
        logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the resolver.

        Args:
            registry: Lookup services in fallback order
            config: Request timeout and user agent
            logger: Optional audit logger
            transport: Optional httpx transport (used by tests)
        """
        self._registry = registry
        self._config = config or ResolverConfig()
        self._logger = logger
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "Resolver":
        """Async context manager entry."""
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    @property
    def registry(self) -> ServiceRegistry:
        return self._registry

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout_seconds),
                headers={"User-Agent": self._config.user_agent},
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def fetch(self, service: DetectionService, family: AddressFamily) -> LookupResponse:
        """
        Query one service once for one address family.

        A non-200 status, a transport error or an empty body is a failure.
        This method never raises for network problems.

        Args:
            service: The lookup service to query
            family: Address family to request

        Returns:
            LookupResponse describing the attempt
        """
        start_time = time.perf_counter()
        endpoint = endpoint_for(service, family)
        client = self._ensure_client()

        def failed(code: LookupErrorCode, message: str, status: int = 0) -> LookupResponse:
            return LookupResponse(
                service=service.name,
                family=family,
                endpoint=endpoint,
                http_status_code=status,
                error=LookupFailure(
                    code=code,
                    message=message,
                    http_status_code=status or None,
                ),
                response_time_ms=self._elapsed_ms(start_time),
            )

        try:
            response = await client.get(endpoint)
        except httpx.TimeoutException:
            return failed(
                LookupErrorCode.TIMEOUT,
                f"Request to {service.name} timed out after {self._config.timeout_seconds}s",
            )
        except httpx.HTTPError as e:
            return failed(
                LookupErrorCode.NETWORK_ERROR,
                f"Failed to fetch IP from {service.name}: {e}",
            )

        if response.status_code != 200:
            return failed(
                LookupErrorCode.HTTP_STATUS,
                f"Unexpected status code from {service.name}: {response.status_code}",
                response.status_code,
            )

        address = response.text.strip()
        if not address:
            return failed(
                LookupErrorCode.EMPTY_BODY,
                f"Empty response from {service.name}",
                response.status_code,
            )

        return LookupResponse(
            service=service.name,
            family=family,
            endpoint=endpoint,
            address=address,
            http_status_code=response.status_code,
            response_time_ms=self._elapsed_ms(start_time),
        )

    async def resolve_family(
        self,
        preferred_name: str,
        family: AddressFamily,
        attempts: Optional[list[LookupResponse]] = None,
    ) -> Optional[ResolvedAddress]:
        """
        Resolve one address family with ordered fallback.

        The preferred service (if it exists in the registry) is tried first,
        then the remaining services in registry order. Each service is tried
        at most once and the first success ends the chain.

        Args:
            preferred_name: Name of the service to try first
            family: Address family to resolve
            attempts: Optional list that receives every attempt made

        Returns:
            ResolvedAddress, or None if IPv6 is unavailable from every service

        Raises:
            AllServicesFailed: If no service returned an IPv4 address
        """
        failures: list[LookupResponse] = []

        for service in self._fallback_chain(preferred_name):
            response = await self.fetch(service, family)
            if attempts is not None:
                attempts.append(response)

            if response.success:
                self._log(LogLevel.DEBUG, f"{family.value} resolved via {service.name}", {
                    "service": service.name,
                    "family": family.value,
                    "address": response.address,
                    "response_time_ms": response.response_time_ms,
                })
                return ResolvedAddress(
                    address=response.address,
                    service=service.name,
                    family=family,
                )

            failures.append(response)
            self._log(LogLevel.DEBUG, f"Lookup via {service.name} failed", {
                "service": service.name,
                "family": family.value,
                "error_code": response.error.code.value if response.error else None,
                "error": response.error.message if response.error else None,
            })

        if family == AddressFamily.IPV6:
            self._log(LogLevel.DEBUG, "IPv6 not available from any service", {
                "services_tried": len(failures),
            })
            return None

        raise AllServicesFailed(
            code="all_services_failed",
            message="All IP detection services failed",
            details={
                "family": family.value,
                "failures": [
                    {
                        "service": failure.service,
                        "error_code": failure.error.code.value if failure.error else None,
                        "error": failure.error.message if failure.error else None,
                    }
                    for failure in failures
                ],
            },
        )

    async def resolve_all(self, preferred_name: str) -> ResolutionResult:
        """
        Resolve both families, never letting an IPv4 failure skip IPv6.

        Args:
            preferred_name: Name of the service to try first

        Returns:
            ResolutionResult with the IPv4 failure captured in ipv4_error
        """
        result = ResolutionResult()

        try:
            result.ipv4 = await self.resolve_family(
                preferred_name, AddressFamily.IPV4, result.attempts
            )
        except AllServicesFailed as e:
            result.ipv4_error = e

        result.ipv6 = await self.resolve_family(
            preferred_name, AddressFamily.IPV6, result.attempts
        )
        return result

    def _fallback_chain(self, preferred_name: str) -> list[DetectionService]:
        preferred = self._registry.get(preferred_name)
        chain = [preferred] if preferred is not None else []
        chain.extend(s for s in self._registry if s.name != preferred_name)
        return chain

    def _elapsed_ms(self, start_time: float) -> float:
        """Calculate elapsed time in milliseconds."""
        return (time.perf_counter() - start_time) * 1000

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "Resolver", message, data)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
