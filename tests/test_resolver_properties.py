"""
Property-based tests for the Resolver module.

Uses httpx.MockTransport to script lookup service answers and checks the
ordered fallback, the per-family failure semantics and request headers.
"""

import asyncio

import httpx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from ip_detector import __version__
from ip_detector.config import DetectionService, ResolverConfig
from ip_detector.enums import AddressFamily, LookupErrorCode
from ip_detector.exceptions import AllServicesFailed, NetworkError
from ip_detector.registry import DEFAULT_SERVICES, ServiceRegistry
from ip_detector.resolver import Resolver


def make_service(name: str) -> DetectionService:
    return DetectionService(
        name=name,
        ipv4_endpoint=f"https://v4.{name}.test/",
        ipv6_endpoint=f"https://v6.{name}.test/",
    )


SERVICE_NAMES = ["a", "b", "c", "d"]


class ScriptedTransport:
    """
    Builds an httpx.MockTransport answering per host.

    ``answers`` maps a host to either a (status, body) tuple or an
    exception instance to raise.
    """

    def __init__(self, answers: dict) -> None:
        self.answers = answers
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.answers.get(request.url.host)
        if answer is None:
            raise httpx.ConnectError("unreachable", request=request)
        if isinstance(answer, Exception):
            raise answer
        status, body = answer
        return httpx.Response(status, text=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def hosts(self) -> list[str]:
        return [request.url.host for request in self.requests]


def run_async(coro):
    """Helper to run async code in tests."""
    return asyncio.run(coro)


async def resolve(registry, script, preferred, family):
    async with Resolver(registry, transport=script.transport) as resolver:
        return await resolver.resolve_family(preferred, family)


async def resolve_all(registry, script, preferred):
    async with Resolver(registry, transport=script.transport) as resolver:
        return await resolver.resolve_all(preferred)


class TestFallbackOrderProperty:
    """The preferred service goes first, then registry order, each at most once."""

    def test_preferred_failure_falls_back_to_first_registry_entry(self) -> None:
        registry = ServiceRegistry([make_service("a"), make_service("b"), make_service("c")])
        script = ScriptedTransport({
            "v4.b.test": (500, "error"),
            "v4.a.test": (200, "1.2.3.4\n"),
            "v4.c.test": (200, "9.9.9.9"),
        })

        result = run_async(resolve(registry, script, "b", AddressFamily.IPV4))

        assert result.address == "1.2.3.4"
        assert result.service == "a"
        assert script.hosts == ["v4.b.test", "v4.a.test"]

    @given(
        preferred=st.sampled_from(SERVICE_NAMES + ["unknown"]),
        working=st.sets(st.sampled_from(SERVICE_NAMES)),
    )
    @settings(max_examples=100)
    def test_chain_order_and_early_return(self, preferred: str, working: set) -> None:
        registry = ServiceRegistry([make_service(n) for n in SERVICE_NAMES])
        script = ScriptedTransport({
            f"v4.{n}.test": (200, f"10.0.0.{i}") for i, n in enumerate(SERVICE_NAMES) if n in working
        })

        expected_chain = ([preferred] if preferred in SERVICE_NAMES else []) + [
            n for n in SERVICE_NAMES if n != preferred
        ]

        if working:
            result = run_async(resolve(registry, script, preferred, AddressFamily.IPV4))
            first_working = next(n for n in expected_chain if n in working)
            assert result.service == first_working
            tried = expected_chain[: expected_chain.index(first_working) + 1]
        else:
            with pytest.raises(AllServicesFailed):
                run_async(resolve(registry, script, preferred, AddressFamily.IPV4))
            tried = expected_chain

        assert script.hosts == [f"v4.{n}.test" for n in tried]
        assert len(set(script.hosts)) == len(script.hosts)


class TestFailureClassification:
    @pytest.mark.parametrize("answer,code", [
        ((404, "nope"), LookupErrorCode.HTTP_STATUS),
        ((200, "   \n"), LookupErrorCode.EMPTY_BODY),
        (httpx.ConnectError("refused"), LookupErrorCode.NETWORK_ERROR),
        (httpx.ReadTimeout("slow"), LookupErrorCode.TIMEOUT),
    ])
    def test_each_failure_kind_is_not_a_success(self, answer, code) -> None:
        registry = ServiceRegistry([make_service("a")])
        script = ScriptedTransport({"v4.a.test": answer})

        async def fetch():
            async with Resolver(registry, transport=script.transport) as resolver:
                return await resolver.fetch(make_service("a"), AddressFamily.IPV4)

        response = run_async(fetch())

        assert not response.success
        assert response.error is not None
        assert response.error.code == code

    def test_body_is_trimmed(self) -> None:
        registry = ServiceRegistry([make_service("a")])
        script = ScriptedTransport({"v6.a.test": (200, "  2001:db8::1 \r\n")})

        result = run_async(resolve(registry, script, "a", AddressFamily.IPV6))

        assert result.address == "2001:db8::1"
        assert result.family == AddressFamily.IPV6


class TestFamilySemanticsProperty:
    """IPv4 exhaustion raises; IPv6 exhaustion is an empty result."""

    def test_ipv4_exhaustion_raises_with_details(self) -> None:
        registry = ServiceRegistry([make_service("a"), make_service("b")])
        script = ScriptedTransport({})

        with pytest.raises(AllServicesFailed) as exc_info:
            run_async(resolve(registry, script, "a", AddressFamily.IPV4))

        assert isinstance(exc_info.value, NetworkError)
        failures = exc_info.value.details["failures"]
        assert [f["service"] for f in failures] == ["a", "b"]

    def test_ipv6_exhaustion_returns_none(self) -> None:
        registry = ServiceRegistry([make_service("a"), make_service("b")])
        script = ScriptedTransport({})

        assert run_async(resolve(registry, script, "a", AddressFamily.IPV6)) is None
        assert script.hosts == ["v6.a.test", "v6.b.test"]

    def test_ipv4_failure_does_not_skip_ipv6(self) -> None:
        registry = ServiceRegistry([make_service("a"), make_service("b")])
        script = ScriptedTransport({"v6.b.test": (200, "2001:db8::2")})

        result = run_async(resolve_all(registry, script, "a"))

        assert result.ipv4 is None
        assert isinstance(result.ipv4_error, AllServicesFailed)
        assert result.ipv6_address == "2001:db8::2"
        assert len(result.attempts) == 4

    def test_both_families_resolved(self) -> None:
        registry = ServiceRegistry([make_service("a")])
        script = ScriptedTransport({
            "v4.a.test": (200, "203.0.113.5"),
            "v6.a.test": (200, "2001:db8::5"),
        })

        result = run_async(resolve_all(registry, script, "a"))

        assert result.ipv4_address == "203.0.113.5"
        assert result.ipv6_address == "2001:db8::5"
        assert result.ipv4_error is None


class TestRequestHeaders:
    def test_user_agent_carries_version(self) -> None:
        registry = ServiceRegistry([make_service("a")])
        script = ScriptedTransport({"v4.a.test": (200, "1.1.1.1")})

        run_async(resolve(registry, script, "a", AddressFamily.IPV4))

        assert script.requests[0].headers["User-Agent"] == f"ip_detector/{__version__}"
        assert script.requests[0].method == "GET"

    def test_default_timeout_is_ten_seconds(self) -> None:
        assert ResolverConfig().timeout_seconds == 10.0


class TestServiceRegistry:
    def test_default_order_starts_with_ipify(self) -> None:
        registry = ServiceRegistry()
        assert registry.names()[0] == "ipify"
        assert len(registry) == len(DEFAULT_SERVICES)
        assert all(s.ipv4_endpoint.startswith("https://") for s in registry)

    def test_duplicate_names_rejected(self) -> None:
        with pytest.raises(ValueError):
            ServiceRegistry([make_service("a"), make_service("a")])

    def test_lookup_by_name(self) -> None:
        registry = ServiceRegistry([make_service("a"), make_service("b")])
        assert "b" in registry
        assert "z" not in registry
        assert registry.get("b") == make_service("b")
        assert registry.get("z") is None
