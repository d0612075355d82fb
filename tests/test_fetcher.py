"""Tests for universal_read.services.fetcher.fetch_page."""

import asyncio
import socket
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from universal_read.services.errors import FetchError
from universal_read.services.fetcher import _is_private_address, _validate_url, fetch_page

_HTML = "<html><head><title>T</title></head><body><p>Hello</p></body></html>"


@pytest.fixture(autouse=True)
def public_hosts():
    """Treat every hostname as public so no DNS lookups happen."""
    with patch("universal_read.services.fetcher._is_private_address", new=AsyncMock(return_value=False)):
        yield


def _fetch(handler, url: str = "https://example.com/page", **kwargs):
    return asyncio.run(fetch_page(url, transport=httpx.MockTransport(handler), **kwargs))


class TestFetchPageSuccess:
    def test_returns_markup_and_url(self):
        page = _fetch(lambda request: httpx.Response(200, text=_HTML))
        assert page.raw_markup == _HTML
        assert page.source_url == "https://example.com/page"

    def test_sends_browser_like_headers(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(200, text=_HTML)

        _fetch(handler)
        assert seen["user-agent"].startswith("Mozilla/5.0")
        assert "text/html" in seen["accept"]
        assert seen["accept-language"].startswith("en-US")

    def test_follows_redirects(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old":
                return httpx.Response(301, headers={"location": "/new"})
            return httpx.Response(200, text=_HTML)

        page = _fetch(handler, url="https://example.com/old")
        assert page.source_url == "https://example.com/new"
        assert page.raw_markup == _HTML

    def test_decodes_declared_charset(self):
        body = "<p>Café</p>".encode("latin-1")
        page = _fetch(
            lambda request: httpx.Response(
                200, content=body, headers={"content-type": "text/html; charset=iso-8859-1"}
            )
        )
        assert page.raw_markup == "<p>Café</p>"


class TestFetchPageErrors:
    def test_404_is_fetch_error(self):
        with pytest.raises(FetchError) as exc_info:
            _fetch(lambda request: httpx.Response(404))
        assert exc_info.value.upstream_status == 404
        assert exc_info.value.code == "FETCH_ERROR"
        assert exc_info.value.status_code == 502
        assert "404" in str(exc_info.value)

    def test_500_is_fetch_error(self):
        with pytest.raises(FetchError) as exc_info:
            _fetch(lambda request: httpx.Response(503))
        assert exc_info.value.upstream_status == 503

    def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(FetchError) as exc_info:
            _fetch(handler)
        assert exc_info.value.code == "TIMEOUT_ERROR"
        assert exc_info.value.status_code == 504

    def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("name resolution failed", request=request)

        with pytest.raises(FetchError) as exc_info:
            _fetch(handler)
        assert exc_info.value.code == "NETWORK_ERROR"

    def test_body_too_large(self):
        with pytest.raises(FetchError, match="maximum allowed size"):
            _fetch(lambda request: httpx.Response(200, text="x" * 100), max_content_size=10)

    def test_redirect_loop(self):
        with pytest.raises(FetchError, match="Too many redirects"):
            _fetch(lambda request: httpx.Response(302, headers={"location": "/loop"}))

    def test_redirect_to_disallowed_scheme(self):
        with pytest.raises(ValueError):
            _fetch(lambda request: httpx.Response(302, headers={"location": "ftp://example.com/file"}))


class TestValidateUrl:
    def test_rejects_non_http_scheme(self):
        with pytest.raises(ValueError, match="not allowed"):
            asyncio.run(_validate_url("file:///etc/passwd"))

    def test_rejects_missing_hostname(self):
        with pytest.raises(ValueError, match="hostname"):
            asyncio.run(_validate_url("http://"))

    def test_rejects_private_address(self):
        with patch("universal_read.services.fetcher._is_private_address", new=AsyncMock(return_value=True)):
            with pytest.raises(ValueError, match="private"):
                asyncio.run(_validate_url("http://internal.example"))

    def test_accepts_public_url(self):
        asyncio.run(_validate_url("https://example.com/path"))


def _addrinfo(*addresses):
    return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", (address, 0)) for address in addresses]


def _resolve_with(getaddrinfo: AsyncMock, hostname: str) -> bool:
    """Run the private-address check with the event loop's resolver replaced."""

    async def check():
        loop = asyncio.get_running_loop()
        with patch.object(loop, "getaddrinfo", new=getaddrinfo):
            return await _is_private_address(hostname)

    return asyncio.run(check())


class TestPrivateAddressLookup:
    """The hostname is resolved through the event loop, never a blocking socket call."""

    @pytest.fixture(autouse=True)
    def public_hosts(self):
        # Overrides the module-level fixture so the real check runs.
        blocking = AssertionError("blocking DNS lookup")
        with patch("universal_read.services.fetcher.socket.getaddrinfo", side_effect=blocking):
            yield

    def test_private_address_detected(self):
        resolver = AsyncMock(return_value=_addrinfo("93.184.216.34", "10.0.0.5"))
        assert _resolve_with(resolver, "intranet.example") is True
        resolver.assert_awaited_once_with("intranet.example", None)

    def test_loopback_detected(self):
        assert _resolve_with(AsyncMock(return_value=_addrinfo("127.0.0.1")), "localhost") is True

    def test_public_address_allowed(self):
        assert _resolve_with(AsyncMock(return_value=_addrinfo("93.184.216.34")), "example.com") is False

    def test_unresolvable_host_is_not_private(self):
        resolver = AsyncMock(side_effect=socket.gaierror("Name or service not known"))
        assert _resolve_with(resolver, "does-not-exist.invalid") is False
