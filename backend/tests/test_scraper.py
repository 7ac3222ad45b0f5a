from __future__ import annotations

import hashlib
from types import SimpleNamespace

import httpx
import pytest

from content_mapper import scraper as scraper_module
from content_mapper.errors import ScrapeError, UnsafeUrlError
from content_mapper.scraper import (
    BrowserScraper,
    HttpScraper,
    PageScraper,
    ScrapeResult,
    block_unsafe_requests,
    build_scraper,
    title_from_html,
)


class StubStrategy:
    def __init__(self, name, result=None, error=None):
        self.name = name
        self.result = result
        self.error = error
        self.calls = 0

    async def scrape(self, url):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return ScrapeResult(url=url, html="<p>ok</p>", title="Ok", strategy=self.name, screenshot=self.result)


class FakePage:
    def __init__(self, goto_error=None):
        self.goto_error = goto_error
        self.routes = []
        self.gotos = []

    async def route(self, pattern, handler):
        self.routes.append((pattern, handler))

    async def goto(self, url, wait_until=None, timeout=None):
        self.gotos.append(wait_until)
        if self.goto_error is not None:
            raise self.goto_error

    async def wait_for_timeout(self, ms):
        pass

    async def content(self):
        return "<html><title>Rendered</title></html>"

    async def title(self):
        return ""

    async def screenshot(self, full_page=True, type="png"):
        return b"png-bytes"


class FakeBrowser:
    def __init__(self, page):
        self.page = page
        self.closed = False

    async def new_context(self, **kwargs):
        return self

    async def new_page(self):
        return self.page

    async def close(self):
        self.closed = True


class FakePlaywright:
    def __init__(self, browser):
        self.browser = browser
        self.chromium = self

    async def launch(self, headless=True):
        return self.browser

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeRoute:
    def __init__(self, url):
        self.request = SimpleNamespace(url=url)
        self.outcome = None

    async def abort(self, error_code=None):
        self.outcome = "abort"

    async def continue_(self):
        self.outcome = "continue"


def test_title_from_html():
    assert title_from_html("<html><TITLE> Events 2026 </TITLE></html>") == "Events 2026"
    assert title_from_html("<p>no title</p>") == "Untitled"


@pytest.mark.asyncio
async def test_http_scraper_follows_redirects():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/old":
            return httpx.Response(301, headers={"Location": "https://example.com/new"})
        assert "Mozilla" in request.headers["user-agent"]
        return httpx.Response(200, html="<title>New</title><p>hi</p>")

    result = await HttpScraper(transport=httpx.MockTransport(handler)).scrape("https://example.com/old")
    assert result.title == "New"
    assert result.strategy == "http"
    assert result.screenshot is None


@pytest.mark.asyncio
async def test_http_scraper_raises_on_error_status():
    scraper = HttpScraper(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    with pytest.raises(httpx.HTTPStatusError):
        await scraper.scrape("https://example.com/")


@pytest.mark.asyncio
async def test_falls_back_to_next_strategy():
    browser = StubStrategy("browser", error=RuntimeError("chromium missing"))
    http = StubStrategy("http")
    result = await PageScraper([browser, http]).scrape("https://example.com/")
    assert result.strategy == "http"
    assert (browser.calls, http.calls) == (1, 1)


@pytest.mark.asyncio
async def test_stops_at_first_success():
    first = StubStrategy("browser")
    second = StubStrategy("http")
    await PageScraper([first, second]).scrape("https://example.com/")
    assert second.calls == 0


@pytest.mark.asyncio
async def test_all_strategies_failing_raises_scrape_error():
    scraper = PageScraper([
        StubStrategy("browser", error=ScrapeError("https://example.com/", {"browser": "timeout"})),
        StubStrategy("http", error=RuntimeError("HTTP 503")),
    ])
    with pytest.raises(ScrapeError) as exc:
        await scraper.scrape("https://example.com/")
    assert exc.value.failures == {"browser": "timeout", "http": "HTTP 503"}
    assert "browser: timeout" in str(exc.value)


@pytest.mark.asyncio
async def test_screenshot_is_saved(tmp_path):
    url = "https://example.com/"
    scraper = PageScraper([StubStrategy("browser", result=b"\x89PNG fake")], screenshot_dir=str(tmp_path / "shots"))
    result = await scraper.scrape(url)

    expected = hashlib.sha1(url.encode()).hexdigest()[:16] + ".png"
    assert result.screenshot_path == expected
    assert (tmp_path / "shots" / expected).read_bytes() == b"\x89PNG fake"


@pytest.mark.asyncio
async def test_screenshot_not_saved_without_directory():
    result = await PageScraper([StubStrategy("browser", result=b"png")]).scrape("https://example.com/")
    assert result.screenshot_path is None


@pytest.mark.parametrize(
    "strategy,expected",
    [("browser", [BrowserScraper]), ("http", [HttpScraper]), ("auto", [BrowserScraper, HttpScraper])],
)
def test_build_scraper_strategy_order(strategy, expected):
    settings = SimpleNamespace(
        scrape_strategy=strategy, page_load_timeout=1000, viewport_width=800, viewport_height=600,
        http_fetch_timeout=5, screenshot_dir="",
    )
    assert [type(s) for s in build_scraper(settings).strategies] == expected


@pytest.mark.asyncio
async def test_http_scraper_refuses_redirect_to_private_address():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        if request.url.host == "example.com":
            return httpx.Response(302, headers={"Location": "http://169.254.169.254/latest/meta-data/"})
        return httpx.Response(200, html="<title>metadata</title>")

    with pytest.raises(UnsafeUrlError):
        await HttpScraper(transport=httpx.MockTransport(handler)).scrape("https://example.com/")
    assert seen == ["https://example.com/"]


@pytest.mark.asyncio
async def test_private_redirect_fails_the_page_scrape():
    transport = httpx.MockTransport(lambda r: httpx.Response(302, headers={"Location": "http://127.0.0.1:8080/"}))
    with pytest.raises(ScrapeError) as exc:
        await PageScraper([HttpScraper(transport=transport)]).scrape("https://example.com/")
    assert "http" in exc.value.failures


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "url,outcome",
    [
        ("https://example.com/app.js", "continue"),
        ("http://169.254.169.254/latest/meta-data/", "abort"),
        ("http://2130706433/", "abort"),
        ("data:image/png;base64,AAAA", "continue"),
    ],
)
async def test_browser_route_guard(url, outcome):
    route = FakeRoute(url)
    await block_unsafe_requests(route)
    assert route.outcome == outcome


@pytest.mark.asyncio
async def test_browser_scrape_installs_guard_and_closes_browser(monkeypatch):
    browser = FakeBrowser(FakePage())
    monkeypatch.setattr(scraper_module, "async_playwright", lambda: FakePlaywright(browser))

    result = await BrowserScraper().scrape("https://example.com/")

    assert result.title == "Rendered"
    assert result.screenshot == b"png-bytes"
    assert browser.page.routes == [("**/*", block_unsafe_requests)]
    assert browser.closed


@pytest.mark.asyncio
async def test_browser_is_closed_when_navigation_fails(monkeypatch):
    browser = FakeBrowser(FakePage(goto_error=RuntimeError("net::ERR_NAME_NOT_RESOLVED")))
    monkeypatch.setattr(scraper_module, "async_playwright", lambda: FakePlaywright(browser))

    with pytest.raises(ScrapeError) as exc:
        await BrowserScraper().scrape("https://example.com/")

    assert "ERR_NAME_NOT_RESOLVED" in exc.value.failures["browser"]
    assert browser.page.gotos == ["networkidle", "domcontentloaded"]
    assert browser.closed
