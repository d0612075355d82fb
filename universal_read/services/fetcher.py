import asyncio
import ipaddress
import logging
import socket
from typing import NamedTuple, Optional
from urllib.parse import urljoin, urlparse

import httpx

from universal_read.services.errors import FetchError

logger = logging.getLogger(__name__)

MAX_CONTENT_SIZE = 10 * 1024 * 1024  # 10 MB
TIMEOUT = 10  # seconds
MAX_REDIRECTS = 10
ALLOWED_SCHEMES = {"http", "https"}

# Many sites reject obviously automated clients, so requests look like a desktop browser.
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "Upgrade-Insecure-Requests": "1",
}


class PageContent(NamedTuple):
    raw_markup: str
    source_url: str


async def _is_private_address(hostname: str) -> bool:
    """Return True if *hostname* resolves to a private, loopback, or link-local address."""
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(hostname, None)
    except socket.gaierror:
        return False

    for info in infos:
        # Strip IPv6 zone IDs (e.g. "::1%eth0" → "::1")
        raw_ip = info[4][0].split("%")[0]
        try:
            addr = ipaddress.ip_address(raw_ip)
        except ValueError:
            continue
        if addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved:
            return True
    return False


async def _validate_url(url: str) -> None:
    """Raise ValueError if *url* fails SSRF / scheme validation."""
    parsed = urlparse(url)

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise ValueError(f"Scheme '{parsed.scheme}' is not allowed. Use http or https.")

    hostname = parsed.hostname
    if not hostname:
        raise ValueError("URL must have a valid hostname.")

    if await _is_private_address(hostname):
        raise ValueError("Requests to private/internal addresses are not allowed.")


async def fetch_page(
    url: str,
    *,
    timeout: float = TIMEOUT,
    max_content_size: int = MAX_CONTENT_SIZE,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PageContent:
    """Fetch *url* and return its markup together with the final URL.

    Redirects are followed manually so that every redirect destination is
    validated against the SSRF rules before the next request is made.

    Raises:
        ValueError: if the URL (or a redirect target) fails SSRF / scheme validation.
        FetchError: on timeouts, network errors, non-2xx statuses, oversized
            bodies, or redirect loops.
    """
    await _validate_url(url)

    current_url = url
    try:
        async with httpx.AsyncClient(
            follow_redirects=False,
            timeout=timeout,
            headers=BROWSER_HEADERS,
            transport=transport,
        ) as client:
            for _ in range(MAX_REDIRECTS + 1):
                async with client.stream("GET", current_url) as response:
                    if response.is_redirect:
                        location = response.headers.get("location", "")
                        next_url = urljoin(current_url, location)
                        await _validate_url(next_url)
                        logger.debug("Following redirect %s -> %s", current_url, next_url)
                        current_url = next_url
                        continue

                    if not response.is_success:
                        raise FetchError(
                            f"Failed to fetch {current_url}: "
                            f"{response.status_code} {response.reason_phrase}".rstrip(),
                            upstream_status=response.status_code,
                        )

                    content_length = response.headers.get("content-length")
                    if content_length and content_length.isdigit() and int(content_length) > max_content_size:
                        raise FetchError(
                            "Response body exceeds the maximum allowed size.", code="NETWORK_ERROR"
                        )

                    chunks = []
                    total = 0
                    async for chunk in response.aiter_bytes():
                        total += len(chunk)
                        if total > max_content_size:
                            raise FetchError(
                                "Response body exceeds the maximum allowed size.", code="NETWORK_ERROR"
                            )
                        chunks.append(chunk)

                    encoding = response.encoding or "utf-8"
                    markup = b"".join(chunks).decode(encoding, errors="replace")
                    return PageContent(raw_markup=markup, source_url=current_url)
    except httpx.TimeoutException as exc:
        raise FetchError(f"Timed out fetching {current_url}.", code="TIMEOUT_ERROR", status_code=504) from exc
    except httpx.RequestError as exc:
        raise FetchError(f"Network error fetching {current_url}: {exc}", code="NETWORK_ERROR") from exc

    raise FetchError("Too many redirects.", code="NETWORK_ERROR")
