"""Same-origin web crawler.

Starting from a seed URL, visits every page reachable through links whose
hostname equals the seed's hostname. Depth is unbounded; the crawl is
bounded by the origin, a per-page link cap and a total page cap.

Traversal is an explicit FIFO worklist with a visited set shared by the
whole crawl:
- URLs are marked visited when enqueued, so each URL is fetched at most once
  (self-links and cycles terminate).
- Links are followed in document order, so results come back breadth-first.
- Visited keys drop the fragment and treat an empty path as ``/``.

Failure rules:
- The seed page failing aborts the crawl: navigation timeout raises
  RequestTimeoutError, any other browser error raises BadRequestError.
- A linked page failing is logged and skipped.
- A link that cannot be resolved is logged and skipped.
"""

from collections import deque
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import urljoin, urlsplit, urlunsplit

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from kajix.core.errors import BadRequestError, RequestTimeoutError

logger = structlog.get_logger()

_ALLOWED_SCHEMES = frozenset({"http", "https"})

_LOG_EXCERPT_LENGTH = 200
"""Max characters of browser error messages logged or returned."""

# Runs in the page. Text excludes script/style/noscript/iframe subtrees.
_EXTRACT_CONTENT_JS = """() => {
  const meta = document.querySelector('meta[name="description"]');
  const body = document.body ? document.body.cloneNode(true) : null;
  if (body) {
    body.querySelectorAll('script, style, noscript, iframe').forEach((el) => el.remove());
  }
  return {
    title: document.title || null,
    description: meta ? meta.getAttribute('content') : null,
    text: body ? (body.textContent || '').trim() : '',
    html: document.documentElement.outerHTML,
  };
}"""

_EXTRACT_LINKS_JS = """(maxLinks) => Array.from(document.querySelectorAll('a[href]'))
  .slice(0, maxLinks)
  .map((anchor) => anchor.href)"""


class PageSource(Protocol):
    """Anything that can lend out browser pages (see BrowserManager)."""

    def new_page(self) -> AbstractAsyncContextManager[Any]: ...


@dataclass
class PageContent:
    """Content extracted from one visited page.

    Attributes:
        url: URL that was navigated to.
        title: Document title, if any.
        description: Meta description, if any.
        text: Visible body text.
        html: Full outer HTML of the document.
        is_external: True for pages on another hostname than the seed.
        markdown: Markdown rendering, filled in after conversion.
    """

    url: str
    title: str | None
    description: str | None
    text: str
    html: str
    is_external: bool = False
    markdown: str | None = None


def normalize_seed_url(raw_url: str) -> str:
    """Validate a user-supplied seed URL.

    Scheme-less input gets ``https://`` prepended.

    Args:
        raw_url: URL as supplied by the caller.

    Returns:
        The normalized URL.

    Raises:
        BadRequestError: If the URL is empty, malformed, not http(s), or has
            no hostname.
    """
    url = raw_url.strip()
    if not url:
        raise BadRequestError("Invalid URL provided")
    if "://" not in url:
        url = f"https://{url}"

    try:
        parts = urlsplit(url)
        _ = parts.port
    except ValueError as exc:
        raise BadRequestError("Invalid URL provided") from exc

    if parts.scheme.lower() not in _ALLOWED_SCHEMES:
        raise BadRequestError("URL must use HTTP or HTTPS protocol")
    if not parts.hostname:
        raise BadRequestError("Invalid URL provided")

    return url


def _visit_key(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", parts.query, "")
    )


class WebCrawler:
    """Worklist crawler over a PageSource.

    Args:
        pages: Lends out browser pages.
        timeout_ms: Navigation timeout per page.
        max_links_per_page: Links extracted from any one page.
        max_pages: Total pages a single crawl will visit.
        include_external_links: Also fetch (without following) linked pages
            on other hostnames and return them tagged ``is_external``.
    """

    def __init__(
        self,
        pages: PageSource,
        *,
        timeout_ms: int = 30_000,
        max_links_per_page: int = 1000,
        max_pages: int = 500,
        include_external_links: bool = False,
    ) -> None:
        self._pages = pages
        self._timeout_ms = timeout_ms
        self._max_links = max_links_per_page
        self._max_pages = max_pages
        self._include_external = include_external_links

    async def crawl(self, seed_url: str) -> list[PageContent]:
        """Crawl everything reachable from ``seed_url`` on the same hostname.

        Args:
            seed_url: Normalized seed URL (see normalize_seed_url).

        Returns:
            Visited pages in visit order, seed first, followed by external
            pages when enabled.

        Raises:
            RequestTimeoutError: If the seed page navigation timed out.
            BadRequestError: If the seed page could not be loaded or read.
        """
        seed_host = urlsplit(seed_url).hostname
        visited = {_visit_key(seed_url)}
        worklist: deque[str] = deque([seed_url])
        external_urls: list[str] = []
        external_seen: set[str] = set()
        results: list[PageContent] = []
        cap_reached = False

        while worklist:
            url = worklist.popleft()
            try:
                page, links = await self._visit(url, follow_links=True)
            except (RequestTimeoutError, BadRequestError) as exc:
                if not results:
                    raise
                logger.warning("Skipping linked page", url=url, error=exc.message)
                continue

            results.append(page)

            for link in links:
                resolved = self._resolve(link, url)
                if resolved is None:
                    continue
                key = _visit_key(resolved)
                if urlsplit(resolved).hostname == seed_host:
                    if key in visited:
                        continue
                    if len(visited) >= self._max_pages:
                        cap_reached = True
                        continue
                    visited.add(key)
                    worklist.append(resolved)
                elif self._include_external and key not in external_seen:
                    if len(external_seen) < self._max_pages:
                        external_seen.add(key)
                        external_urls.append(resolved)

        if cap_reached:
            logger.warning(
                "Crawl page cap reached", seed=seed_url, max_pages=self._max_pages
            )

        for url in external_urls:
            try:
                page, _ = await self._visit(url, follow_links=False)
            except (RequestTimeoutError, BadRequestError) as exc:
                logger.warning("Skipping external page", url=url, error=exc.message)
                continue
            page.is_external = True
            results.append(page)

        logger.info("Crawl finished", seed=seed_url, pages=len(results))
        return results

    def _resolve(self, link: str, base_url: str) -> str | None:
        try:
            resolved = urljoin(base_url, link)
            parts = urlsplit(resolved)
            _ = parts.port
        except ValueError as exc:
            logger.warning("Invalid URL", link=link[:_LOG_EXCERPT_LENGTH], error=str(exc))
            return None

        if parts.scheme.lower() not in _ALLOWED_SCHEMES or not parts.hostname:
            return None
        return urlunsplit(parts._replace(fragment=""))

    async def _visit(
        self, url: str, *, follow_links: bool
    ) -> tuple[PageContent, list[str]]:
        """Load one page and read its content and outbound links.

        The page is closed before returning, whatever the outcome.
        """
        try:
            async with self._pages.new_page() as page:
                await page.goto(
                    url, timeout=self._timeout_ms, wait_until="domcontentloaded"
                )
                extracted = await page.evaluate(_EXTRACT_CONTENT_JS)
                links: list[str] = []
                if follow_links:
                    links = await page.evaluate(_EXTRACT_LINKS_JS, self._max_links)
        except PlaywrightTimeoutError as exc:
            logger.error("Navigation timeout", url=url, timeout_ms=self._timeout_ms)
            raise RequestTimeoutError(f"Navigation timeout for {url}") from exc
        except PlaywrightError as exc:
            reason = exc.message[:_LOG_EXCERPT_LENGTH]
            logger.error("Failed to scrape page", url=url, error=reason)
            raise BadRequestError(f"Failed to scrape {url}: {reason}") from exc

        content = PageContent(
            url=url,
            title=extracted.get("title"),
            description=extracted.get("description"),
            text=extracted.get("text") or "",
            html=extracted.get("html") or "",
        )
        return content, [link for link in links[: self._max_links] if link]

