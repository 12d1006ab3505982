"""Content fetchers: the collaborators that turn a URL into text, links and markup.

Unlike the detectors, a failure here aborts the scan (``ContentFetchError``).
"""
from __future__ import annotations

import html as html_lib
import logging
import re
from typing import Protocol
from urllib.parse import urljoin, urlparse, urlunparse

import httpx

from .config import DEFAULT_USER_AGENT, ScannerSettings
from .errors import ContentFetchError
from .models import PageContent

logger = logging.getLogger(__name__)

FIRECRAWL_SCRAPE_URL = "https://api.firecrawl.dev/v1/scrape"
MAX_LINKS = 200

_HREF_RE = re.compile(r"href\s*=\s*([\"']?)([^\"'\s>]+)\1", re.IGNORECASE)
_SCRIPT_RE = re.compile(r"<script\b[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"<style\b[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
_NOSCRIPT_RE = re.compile(r"<noscript\b[^>]*>.*?</noscript>", re.IGNORECASE | re.DOTALL)
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_BLOCK_TAG_RE = re.compile(r"</?(?:p|div|br|li|ul|ol|h[1-6]|tr|section|article|header|footer|nav)\b[^>]*>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")


class ContentFetcher(Protocol):
    def fetch(self, url: str) -> PageContent: ...


def html_to_text(markup: str) -> str:
    """Visible text of a page, roughly: no scripts/styles, tags dropped, entities decoded."""
    if not markup:
        return ""
    cleaned = _COMMENT_RE.sub(" ", markup)
    cleaned = _SCRIPT_RE.sub(" ", cleaned)
    cleaned = _STYLE_RE.sub(" ", cleaned)
    cleaned = _NOSCRIPT_RE.sub(" ", cleaned)
    cleaned = _BLOCK_TAG_RE.sub("\n", cleaned)
    cleaned = _TAG_RE.sub(" ", cleaned)
    cleaned = html_lib.unescape(cleaned)

    lines = [re.sub(r"[ \t\r\f\v]+", " ", line).strip() for line in cleaned.split("\n")]
    return "\n".join(line for line in lines if line)


def extract_links(markup: str, base_url: str, limit: int = MAX_LINKS) -> list[str]:
    """Absolute http(s) links in document order, fragments stripped, de-duplicated."""
    if not markup:
        return []

    out: list[str] = []
    seen: set[str] = set()
    for _, href in _HREF_RE.findall(markup):
        href = html_lib.unescape((href or "").strip())
        if not href or href.startswith(("mailto:", "tel:", "javascript:", "#")):
            continue
        try:
            p = urlparse(urljoin(base_url, href))
        except ValueError:
            continue
        if p.scheme not in ("http", "https") or not p.hostname:
            continue
        normalized = urlunparse(p._replace(fragment=""))
        if normalized in seen:
            continue
        seen.add(normalized)
        out.append(normalized)
        if len(out) >= limit:
            break
    return out


class HttpContentFetcher:
    """Fetch the page directly. No JavaScript rendering."""

    def __init__(
        self,
        timeout_ms: int = 20000,
        max_html_kb: int = 512,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.timeout_ms = timeout_ms
        self.max_html_kb = max_html_kb
        self.user_agent = user_agent

    def fetch(self, url: str) -> PageContent:
        timeout = self.timeout_ms / 1000
        try:
            with httpx.Client(timeout=timeout, follow_redirects=True) as client:
                res = client.get(
                    url,
                    headers={
                        "user-agent": self.user_agent,
                        "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                        "accept-language": "en-US,en;q=0.6",
                    },
                )
        except httpx.HTTPError as e:
            raise ContentFetchError(f"Fetching {url} failed: {e}", category="NETWORK_ERROR") from e

        if res.status_code >= 400:
            raise ContentFetchError(
                f"Fetching {url} returned HTTP {res.status_code}",
                category=f"HTTP_{res.status_code}",
            )

        content_type = (res.headers.get("content-type") or "").lower()
        if content_type and "html" not in content_type and "text" not in content_type:
            raise ContentFetchError(f"{url} is not an HTML page ({content_type})", category="NOT_HTML")

        body = res.content[: self.max_html_kb * 1024]
        markup = body.decode(res.encoding or "utf-8", errors="replace")
        text = html_to_text(markup)
        if not text:
            raise ContentFetchError(f"No text content extracted from {url}", category="EMPTY_CONTENT")

        return PageContent(text=text, links=extract_links(markup, str(res.url)), html=markup)


class FirecrawlContentFetcher:
    """Fetch through the Firecrawl scrape API (renders JavaScript, returns markdown)."""

    def __init__(
        self,
        api_key: str,
        timeout_ms: int = 45000,
        endpoint: str = FIRECRAWL_SCRAPE_URL,
    ):
        self.api_key = api_key
        self.timeout_ms = timeout_ms
        self.endpoint = endpoint

    def fetch(self, url: str) -> PageContent:
        payload = {
            "url": url,
            "formats": ["markdown", "links", "html"],
            "onlyMainContent": False,
            "timeout": 30000,
            "waitFor": 2000,
        }
        try:
            with httpx.Client(timeout=self.timeout_ms / 1000) as client:
                res = client.post(
                    self.endpoint,
                    headers={"authorization": f"Bearer {self.api_key}"},
                    json=payload,
                )
        except httpx.HTTPError as e:
            raise ContentFetchError(f"Firecrawl request failed: {e}", category="NETWORK_ERROR") from e

        if res.status_code >= 400:
            logger.error("Firecrawl API error (%s): %s", res.status_code, res.text[:500])
            raise ContentFetchError(
                f"Firecrawl API error: {res.status_code} - {res.text[:200]}",
                category=f"HTTP_{res.status_code}",
            )

        try:
            body = res.json()
        except ValueError as e:
            raise ContentFetchError("Firecrawl returned a non-JSON body", category="BAD_RESPONSE") from e

        data = body.get("data") if isinstance(body, dict) else None
        markdown = data.get("markdown") if isinstance(data, dict) else None
        if not isinstance(markdown, str) or not markdown.strip():
            raise ContentFetchError("Failed to scrape content - no markdown returned", category="EMPTY_CONTENT")

        links = data.get("links") or []
        markup = data.get("html") or ""
        return PageContent(
            text=markdown,
            links=[str(link) for link in links if isinstance(link, str)],
            html=markup if isinstance(markup, str) else "",
        )


def build_content_fetcher(settings: ScannerSettings) -> ContentFetcher:
    if settings.firecrawl_api_key:
        return FirecrawlContentFetcher(settings.firecrawl_api_key, timeout_ms=max(settings.timeout_ms, 45000))
    return HttpContentFetcher(
        timeout_ms=settings.timeout_ms,
        max_html_kb=settings.max_html_kb,
        user_agent=settings.user_agent,
    )
