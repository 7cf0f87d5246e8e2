"""
Tests for the HTTP client and the Prober, using httpx.MockTransport
"""

import asyncio

import httpx
import pytest

from wafdetect.core.errors import (
    BodyReadError,
    InvalidTargetError,
    ProbeTimeoutError,
    ScanCancelledError,
    TransportError,
)
from wafdetect.core.http_client import HTTPClient
from wafdetect.core.model import ProbeType
from wafdetect.core.prober import MALFORMED_HEADERS, Prober, normalize_target


class FailingStream(httpx.AsyncByteStream):
    """Yields one chunk then drops the connection."""

    async def __aiter__(self):
        yield b"partial"
        raise httpx.ReadError("connection reset")

    async def aclose(self):
        pass


class StallingStream(FailingStream):
    """Yields one chunk then hits a read timeout."""

    async def __aiter__(self):
        yield b"partial"
        raise httpx.ReadTimeout("read timed out")


class DripStream(FailingStream):
    """Sends one byte at a time, each well inside any per-read timeout."""

    def __init__(self, count=50, interval=0.1):
        self.count = count
        self.interval = interval

    async def __aiter__(self):
        for _ in range(self.count):
            await asyncio.sleep(self.interval)
            yield b"x"


def recording_transport(handler):
    requests = []

    def _handle(request):
        requests.append(request)
        return handler(request)

    return httpx.MockTransport(_handle), requests


class TestNormalizeTarget:

    @pytest.mark.parametrize("target,expected", [
        ("example.com", "https://example.com/"),
        ("http://example.com", "http://example.com/"),
        ("https://example.com:443/", "https://example.com/"),
        ("http://example.com:80/app/", "http://example.com/app"),
        ("https://example.com:8443", "https://example.com:8443/"),
        ("  example.com/login?next=1#top  ", "https://example.com/login?next=1"),
    ])
    def test_normalization(self, target, expected):
        assert normalize_target(target) == expected

    @pytest.mark.parametrize("target", ["", "   ", "ftp://example.com", "https://", "http://exa mple.com:abc"])
    def test_invalid(self, target):
        with pytest.raises(InvalidTargetError):
            normalize_target(target)


class TestHTTPClient:

    @pytest.mark.asyncio
    async def test_body_cap(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"a" * 100))
        async with HTTPClient(transport=transport, max_body_size=10) as client:
            fetched = await client.fetch("https://example.com/")
        assert fetched.body == "a" * 10
        assert fetched.body_length == 10
        assert fetched.truncated is True

    @pytest.mark.asyncio
    async def test_redirects_capped_at_three(self):
        transport, requests = recording_transport(
            lambda request: httpx.Response(302, headers={"Location": f"/hop{len(requests)}"})
        )
        async with HTTPClient(transport=transport) as client:
            fetched = await client.fetch("https://example.com/")
        assert len(requests) == 4
        assert fetched.status_code == 302
        assert len(fetched.redirect_history) == 3

    @pytest.mark.asyncio
    async def test_redirect_followed(self):
        def handler(request):
            if request.url.path == "/":
                return httpx.Response(301, headers={"Location": "https://example.com/home"})
            return httpx.Response(200, text="home")

        async with HTTPClient(transport=httpx.MockTransport(handler)) as client:
            fetched = await client.fetch("https://example.com/")
        assert fetched.status_code == 200
        assert fetched.body == "home"
        assert fetched.url == "https://example.com/home"

    @pytest.mark.asyncio
    async def test_default_user_agent(self):
        transport, requests = recording_transport(lambda request: httpx.Response(200))
        async with HTTPClient(transport=transport, user_agent="waf-detector/1.0") as client:
            await client.fetch("https://example.com/")
        assert requests[0].headers["User-Agent"] == "waf-detector/1.0"

    @pytest.mark.asyncio
    async def test_error_mapping(self):
        def handler(request):
            if request.url.path == "/timeout":
                raise httpx.ConnectTimeout("timed out", request=request)
            raise httpx.ConnectError("refused", request=request)

        async with HTTPClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(ProbeTimeoutError):
                await client.fetch("https://example.com/timeout")
            with pytest.raises(TransportError):
                await client.fetch("https://example.com/")

    @pytest.mark.asyncio
    async def test_body_read_error_keeps_status(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(403, headers={"Server": "edge"}, stream=FailingStream())
        )
        async with HTTPClient(transport=transport) as client:
            with pytest.raises(BodyReadError) as exc_info:
                await client.fetch("https://example.com/")
        assert exc_info.value.status_code == 403
        assert exc_info.value.headers["server"] == "edge"

    def test_session_config(self):
        client = HTTPClient(timeout=5.0, proxy="http://127.0.0.1:8080")
        assert client.session_config["verify"] is False
        assert client.session_config["follow_redirects"] is False
        assert client.session_config["proxy"] == "http://127.0.0.1:8080"
        assert client.session_config["headers"] == {"User-Agent": "waf-detector/1.0"}
        assert client.max_body_size == 1024 * 1024
        assert client.max_redirects == 3

    def test_no_proxy_by_default(self):
        assert "proxy" not in HTTPClient().session_config

    @pytest.mark.asyncio
    async def test_unknown_charset_falls_back_to_utf8(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(
            200, headers={"Content-Type": "text/html; charset=x-bogus"}, content="caf\u00e9".encode("utf-8")
        ))
        async with HTTPClient(transport=transport) as client:
            fetched = await client.fetch("https://example.com/")
        assert fetched.body == "caf\u00e9"

    @pytest.mark.asyncio
    async def test_declared_charset_is_used(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(
            200, headers={"Content-Type": "text/html; charset=iso-8859-1"}, content=b"caf\xe9"
        ))
        async with HTTPClient(transport=transport) as client:
            fetched = await client.fetch("https://example.com/")
        assert fetched.body == "caf\u00e9"

    @pytest.mark.asyncio
    async def test_timeout_bounds_slow_body(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, stream=DripStream()))
        loop = asyncio.get_running_loop()
        started = loop.time()
        async with HTTPClient(transport=transport, timeout=0.5) as client:
            with pytest.raises(ProbeTimeoutError):
                await asyncio.wait_for(client.fetch("https://example.com/"), timeout=3)
        assert loop.time() - started < 2

    @pytest.mark.asyncio
    async def test_timeout_spans_redirect_hops(self):
        async def handler(request):
            await asyncio.sleep(0.3)
            if request.url.path == "/":
                return httpx.Response(302, headers={"Location": "/next"})
            return httpx.Response(200, text="done")

        async with HTTPClient(transport=httpx.MockTransport(handler), timeout=0.5) as client:
            with pytest.raises(ProbeTimeoutError):
                await client.fetch("https://example.com/")

    @pytest.mark.asyncio
    async def test_body_read_timeout_keeps_status(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(403, headers={"Server": "edge"}, stream=StallingStream())
        )
        async with HTTPClient(transport=transport) as client:
            with pytest.raises(ProbeTimeoutError) as exc_info:
                await client.fetch("https://example.com/")
        assert exc_info.value.status_code == 403
        assert exc_info.value.headers["server"] == "edge"


class TestProber:

    @pytest.mark.asyncio
    async def test_bare_host_uses_https_and_sends_four_probes(self):
        transport, requests = recording_transport(lambda request: httpx.Response(200, text="ok"))
        async with HTTPClient(transport=transport) as client:
            probes = await Prober(client).scan("example.com")

        assert set(probes) == set(ProbeType.ordered())
        assert len(requests) == 4
        assert all(str(r.url).startswith("https://example.com/") for r in requests)
        assert all(r.method == "GET" for r in requests)
        assert all(p.ok and p.status_code == 200 for p in probes.values())

    @pytest.mark.asyncio
    async def test_probe_shapes(self):
        transport, requests = recording_transport(lambda request: httpx.Response(200))
        async with HTTPClient(transport=transport) as client:
            await Prober(client).scan("https://example.com")

        queries = [dict(r.url.params) for r in requests]
        assert {"id": "1' OR '1'='1", "test": "' UNION SELECT NULL--"} in queries
        assert {"q": "<script>alert(1)</script>", "search": "<img src=x onerror=alert(1)>"} in queries
        assert queries.count({}) == 2

        malformed = [r for r in requests if "X-Forwarded-For" in r.headers]
        assert len(malformed) == 1
        for name, value in MALFORMED_HEADERS.items():
            assert malformed[0].headers[name] == value
        assert not malformed[0].url.params

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_others(self):
        def handler(request):
            if "X-Forwarded-For" in request.headers:
                raise httpx.ConnectError("reset", request=request)
            return httpx.Response(200, text="ok")

        async with HTTPClient(transport=httpx.MockTransport(handler)) as client:
            probes = await Prober(client).scan("example.com")

        assert isinstance(probes[ProbeType.MALFORMED].error, TransportError)
        assert probes[ProbeType.MALFORMED].ok is False
        assert all(probes[t].ok for t in (ProbeType.NORMAL, ProbeType.SQLI, ProbeType.XSS))

    @pytest.mark.asyncio
    async def test_body_read_error_recorded_with_status(self):
        def handler(request):
            if "q" in request.url.params:
                return httpx.Response(403, headers={"CF-Ray": "abc"}, stream=FailingStream())
            return httpx.Response(200, text="ok")

        async with HTTPClient(transport=httpx.MockTransport(handler)) as client:
            probes = await Prober(client).scan("example.com")

        xss = probes[ProbeType.XSS]
        assert isinstance(xss.error, BodyReadError)
        assert xss.status_code == 403
        assert xss.header("cf-ray") == "abc"

    @pytest.mark.asyncio
    async def test_unknown_charset_on_xss_request(self):
        def handler(request):
            if "q" in request.url.params:
                return httpx.Response(403, headers={"Content-Type": "text/html; charset=x-bogus"}, text="blocked")
            return httpx.Response(200, text="ok")

        async with HTTPClient(transport=httpx.MockTransport(handler)) as client:
            probes = await Prober(client).scan("example.com")

        assert all(p.ok for p in probes.values())
        assert probes[ProbeType.XSS].status_code == 403
        assert probes[ProbeType.XSS].body == "blocked"

    @pytest.mark.asyncio
    async def test_body_timeout_recorded_with_status(self):
        def handler(request):
            if "id" in request.url.params:
                return httpx.Response(403, headers={"Server": "edge"}, stream=StallingStream())
            return httpx.Response(200, text="ok")

        async with HTTPClient(transport=httpx.MockTransport(handler)) as client:
            probes = await Prober(client).scan("example.com")

        sqli = probes[ProbeType.SQLI]
        assert isinstance(sqli.error, ProbeTimeoutError)
        assert sqli.status_code == 403
        assert sqli.header("server") == "edge"

    @pytest.mark.asyncio
    async def test_invalid_target_raises(self):
        async with HTTPClient(transport=httpx.MockTransport(lambda r: httpx.Response(200))) as client:
            with pytest.raises(InvalidTargetError):
                await Prober(client).scan("ftp://example.com")

    @pytest.mark.asyncio
    async def test_cancellation_aborts_in_flight_probes(self):
        async def handler(request):
            await asyncio.sleep(10)
            return httpx.Response(200)

        cancel_event = asyncio.Event()
        async with HTTPClient(transport=httpx.MockTransport(handler)) as client:
            prober = Prober(client)
            asyncio.get_running_loop().call_later(0.05, cancel_event.set)
            with pytest.raises(ScanCancelledError):
                await asyncio.wait_for(prober.scan("example.com", cancel_event), timeout=2)

    @pytest.mark.asyncio
    async def test_already_cancelled(self):
        transport, requests = recording_transport(lambda request: httpx.Response(200))
        cancel_event = asyncio.Event()
        cancel_event.set()
        async with HTTPClient(transport=transport) as client:
            with pytest.raises(ScanCancelledError):
                await Prober(client).scan("example.com", cancel_event)
        assert requests == []
