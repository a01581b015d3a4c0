"""Web-link extraction — URL scraping with SSRF protection.

Security requirements:
- SSRF guard: ipaddress module blocks private/loopback/link-local ranges before
  any connection is established.
- Allowed URL schemes: https:// and http:// only.
- Content-Type whitelist: text/html and text/plain only.
- Max response body: 5 MB.
- Timeout: 30 seconds (connect + read).
- Max redirects: 3.

The page is converted to text locally and split by the SemanticChunker;
no generative provider is involved.
"""

from __future__ import annotations

import asyncio
import ipaddress
import socket
import urllib.error
import urllib.parse
import urllib.request
from http.client import HTTPResponse
from pathlib import Path

import html2text
from bs4 import BeautifulSoup
from loguru import logger

from notespace.db.models import SourceKind, SourceMetadata
from notespace.errors import InvalidArgumentError, ProviderError, UnsupportedMediaTypeError
from notespace.ingest.base import BaseExtractor
from notespace.ingest.chunker import SemanticChunker, summarize_prefix
from notespace.providers.base import ProcessingResult

_USER_AGENT = "notespace/0.1"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_TIMEOUT = 30  # seconds
_MAX_REDIRECTS = 3
_ALLOWED_SCHEMES = {"https", "http"}
_ALLOWED_CONTENT_TYPES = {"text/html", "text/plain"}


class SsrfError(InvalidArgumentError):
    """Raised when a URL resolves to a private or reserved address."""


class WebPage:
    """Fetched page: plain text plus the HTML <title>, when there is one."""

    def __init__(self, url: str, text: str, title: str | None, content_type: str) -> None:
        self.url = url
        self.text = text
        self.title = title
        self.content_type = content_type


class WebExtractor(BaseExtractor):
    """Fetch a URL, convert HTML/plain text to text, then chunk it semantically."""

    kind = SourceKind.WEB_LINK

    def __init__(self, chunker: SemanticChunker | None = None) -> None:
        self._chunker = chunker or SemanticChunker()

    def validate(self, source: str | Path, mime_type: str | None = None) -> None:
        _validate_url(str(source))

    async def extract(self, source: str | Path, mime_type: str | None = None) -> ProcessingResult:
        url = str(source)
        self.validate(url)
        page = await asyncio.to_thread(fetch_page, url)
        chunks = self._chunker.chunk(page.text)
        logger.info("Fetched {} ({} chunks)", url, len(chunks))
        return ProcessingResult(
            chunks=chunks,
            summary=summarize_prefix(page.text),
            source_metadata=SourceMetadata(
                extra={k: v for k, v in (("page_title", page.title), ("content_type", page.content_type)) if v}
            ),
        )


# ------------------------------------------------------------------
# Fetch pipeline
# ------------------------------------------------------------------


def fetch_page(url: str) -> WebPage:
    """Validate, SSRF-check, fetch and convert *url*. Blocking."""
    _validate_url(url)
    _check_ssrf(url)
    raw, content_type = _fetch(url)
    text, title = _to_plain_text(raw, content_type)
    return WebPage(url=url, text=text, title=title, content_type=content_type)


def _validate_url(url: str) -> None:
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        raise InvalidArgumentError(
            f"Unsupported URL scheme '{parsed.scheme}'. Only https:// and http:// are allowed."
        )
    if not parsed.hostname:
        raise InvalidArgumentError(f"URL has no hostname: {url}")


def _check_ssrf(url: str) -> None:
    """Resolve the hostname and block private/reserved IP ranges."""
    hostname = urllib.parse.urlparse(url).hostname or ""
    try:
        addrinfos = socket.getaddrinfo(hostname, None)
    except socket.gaierror as exc:
        raise InvalidArgumentError(f"DNS resolution failed for '{hostname}': {exc}") from exc

    for addrinfo in addrinfos:
        try:
            ip = ipaddress.ip_address(addrinfo[4][0])
        except ValueError:
            continue
        if (
            ip.is_private
            or ip.is_loopback
            or ip.is_link_local
            or ip.is_reserved
            or ip.is_multicast
            or ip.is_unspecified
        ):
            raise SsrfError(
                f"URL resolves to private address ({ip}). "
                "Access to internal network addresses is not allowed."
            )


def _fetch(url: str) -> tuple[bytes, str]:
    """Fetch *url* with timeout, redirect limit, size cap, and Content-Type check.

    Returns (body_bytes, content_type_without_params).
    """
    request = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
    opener = urllib.request.build_opener(_LimitedRedirectHandler(_MAX_REDIRECTS))

    try:
        response: HTTPResponse = opener.open(request, timeout=_TIMEOUT)
    except urllib.error.URLError as exc:
        raise ProviderError(f"Failed to fetch URL '{url}': {exc}") from exc

    with response:
        raw_ct = response.headers.get("Content-Type", "text/html")
        ct = raw_ct.split(";")[0].strip().lower()
        if ct not in _ALLOWED_CONTENT_TYPES:
            raise UnsupportedMediaTypeError(
                f"Unsupported Content-Type '{ct}' for URL '{url}'. "
                f"Accepted: {', '.join(sorted(_ALLOWED_CONTENT_TYPES))}"
            )
        body = response.read(_MAX_BYTES + 1)

    if len(body) > _MAX_BYTES:
        raise InvalidArgumentError(
            f"Response body exceeds {_MAX_BYTES // (1024 * 1024)} MB limit for URL '{url}'."
        )
    return body, ct


def _to_plain_text(body: bytes, content_type: str) -> tuple[str, str | None]:
    """Convert *body* to plain text; also returns the page title for HTML."""
    text = body.decode("utf-8", errors="replace")
    if content_type == "text/plain":
        return text, None

    soup = BeautifulSoup(text, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else None
    for tag in soup.find_all(["script", "style", "nav", "footer", "head"]):
        tag.decompose()
    return _html_converter().handle(str(soup)).strip(), title or None


def _html_converter() -> html2text.HTML2Text:
    """Return a fresh converter; HTML2Text keeps parse state between calls."""
    h2t = html2text.HTML2Text()
    h2t.ignore_links = True
    h2t.ignore_images = True
    h2t.body_width = 0
    return h2t


class _LimitedRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Raise an error after more than *max_redirects* redirects."""

    def __init__(self, max_redirects: int) -> None:
        self._max_redirects = max_redirects
        self._count = 0

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        self._count += 1
        if self._count > self._max_redirects:
            raise ProviderError(
                f"Too many redirects (>{self._max_redirects}) for URL '{req.full_url}'."
            )
        return super().redirect_request(req, fp, code, msg, headers, newurl)
