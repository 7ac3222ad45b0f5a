"""
Page fetching for analysis.

Two strategies: a Playwright browser render (markup + full-page screenshot)
and a plain httpx GET (markup only). PageScraper tries them in order and
only fails when every strategy failed.
"""

import hashlib
import logging
import os
import re
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
from playwright.async_api import async_playwright

from content_mapper.errors import ScrapeError
from content_mapper.url_safety import is_safe_url, validate_and_sanitize_url

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

_TITLE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)


@dataclass
class ScrapeResult:
    url: str
    html: str
    title: str
    strategy: str
    screenshot: Optional[bytes] = None
    screenshot_path: Optional[str] = None


class ScrapeStrategy(Protocol):
    name: str

    async def scrape(self, url: str) -> ScrapeResult: ...


def title_from_html(html: str) -> str:
    match = _TITLE.search(html or "")
    return match.group(1).strip() if match else "Untitled"


async def block_unsafe_requests(route):
    """Playwright route handler: abort any request (redirects included) to a private target."""
    url = route.request.url
    if url.startswith(("http://", "https://")) and not is_safe_url(url):
        logger.warning(f"[scraper] Blocked browser request to {url}")
        await route.abort("blockedbyclient")
        return
    await route.continue_()


async def check_request_target(request: httpx.Request):
    """httpx request hook: every hop of a redirect chain must pass the URL checks."""
    validate_and_sanitize_url(str(request.url))


class BrowserScraper:
    """Render the page in headless Chromium. One browser per scrape, always closed."""

    name = "browser"

    def __init__(self, page_load_timeout: int = 30000, viewport_width: int = 1920,
                 viewport_height: int = 1080, full_page: bool = True):
        self.page_load_timeout = page_load_timeout
        self.viewport = {"width": viewport_width, "height": viewport_height}
        self.full_page = full_page

    async def scrape(self, url: str) -> ScrapeResult:
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=True)
            try:
                context = await browser.new_context(viewport=self.viewport, user_agent=USER_AGENT)
                page = await context.new_page()
                await page.route("**/*", block_unsafe_requests)

                # networkidle first, domcontentloaded if the page never settles
                try:
                    await page.goto(url, wait_until="networkidle", timeout=self.page_load_timeout)
                except Exception:
                    try:
                        await page.goto(url, wait_until="domcontentloaded", timeout=self.page_load_timeout // 2)
                        await page.wait_for_timeout(2000)
                    except Exception as e:
                        raise ScrapeError(url, {self.name: f"Failed to load {url}: {e}"}) from e

                html = await page.content()
                title = (await page.title()) or title_from_html(html)
                screenshot = await page.screenshot(full_page=self.full_page, type="png")
            finally:
                await browser.close()

        return ScrapeResult(url=url, html=html, title=title, strategy=self.name, screenshot=screenshot)


class HttpScraper:
    """Fetch raw markup over HTTP. No JavaScript, no screenshot."""

    name = "http"

    def __init__(self, timeout: float = 30, max_redirects: int = 5,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.max_redirects = max_redirects
        self._transport = transport

    async def scrape(self, url: str) -> ScrapeResult:
        async with httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            timeout=self.timeout,
            follow_redirects=True,
            max_redirects=self.max_redirects,
            transport=self._transport,
            event_hooks={"request": [check_request_target]},
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            html = response.text

        return ScrapeResult(url=url, html=html, title=title_from_html(html), strategy=self.name)


class PageScraper:
    def __init__(self, strategies: list[ScrapeStrategy], screenshot_dir: str = ""):
        self.strategies = strategies
        self.screenshot_dir = screenshot_dir

    async def scrape(self, url: str) -> ScrapeResult:
        failures: dict[str, str] = {}
        for strategy in self.strategies:
            try:
                result = await strategy.scrape(url)
            except Exception as e:
                reason = e.failures.get(strategy.name, str(e)) if isinstance(e, ScrapeError) else str(e)
                failures[strategy.name] = reason or type(e).__name__
                logger.warning(f"[scraper] {strategy.name} failed for {url}: {failures[strategy.name]}")
                continue

            logger.info(f"[scraper] {strategy.name} scraped {url} ({len(result.html)} chars, "
                        f"screenshot={'yes' if result.screenshot else 'no'})")
            if result.screenshot and self.screenshot_dir:
                result.screenshot_path = self._save_screenshot(url, result.screenshot)
            return result

        raise ScrapeError(url, failures)

    def _save_screenshot(self, url: str, png: bytes) -> str:
        filename = hashlib.sha1(url.encode()).hexdigest()[:16] + ".png"
        os.makedirs(self.screenshot_dir, exist_ok=True)
        with open(os.path.join(self.screenshot_dir, filename), "wb") as f:
            f.write(png)
        return filename


def build_scraper(settings) -> PageScraper:
    browser = BrowserScraper(
        page_load_timeout=settings.page_load_timeout,
        viewport_width=settings.viewport_width,
        viewport_height=settings.viewport_height,
    )
    http = HttpScraper(timeout=settings.http_fetch_timeout)
    order = {
        "browser": [browser],
        "http": [http],
        "auto": [browser, http],
    }.get(settings.scrape_strategy, [browser, http])
    return PageScraper(order, screenshot_dir=settings.screenshot_dir)
