"""
Shared test configuration and fixtures for source crawler tests.

This module provides a scripted fetch client, store and engine fixtures, and
HTML/XML builders used across all test modules.
"""
import os
import sys
import pytest
import tempfile
import shutil
from typing import Dict, List, Optional, Tuple, Union

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from sourcecrawler.core.article_detector import ArticleDetector
from sourcecrawler.core.crawl_engine import CrawlEngine
from sourcecrawler.core.source_discovery import SourceDiscovery
from sourcecrawler.interfaces.crawl_interfaces import FetchError, FetchResponse, IFetchClient
from sourcecrawler.models.source_models import CrawlerConfig, Source
from sourcecrawler.monitoring.activity_log import ActivityLogger
from sourcecrawler.storage.memory_store import InMemoryCrawlStore


HOME_URL = "https://blog.example.com"
HTML_TYPE = "text/html; charset=utf-8"


class TestConfig:
    """Test configuration and constants."""

    HOME_URL = HOME_URL
    ORIGIN = HOME_URL
    SOURCE_ID = "example-blog"


class FakeFetchClient(IFetchClient):
    """
    Fetch client scripted by URL.

    Unscripted GETs fail with a 404 FetchError; unscripted HEADs answer 404.
    """

    def __init__(self):
        self.get_routes: Dict[str, Union[FetchResponse, Exception]] = {}
        self.head_routes: Dict[str, Union[FetchResponse, Exception]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.request_headers: List[Optional[Dict[str, str]]] = []
        self.closed = False

    def add_page(self, url: str, body: str = "", content_type: str = HTML_TYPE, status: int = 200):
        self.get_routes[url] = FetchResponse(status=status, headers={"content-type": content_type},
                                             body=body, url=url)

    def add_head(self, url: str, status: int = 200, content_type: str = ""):
        headers = {"content-type": content_type} if content_type else {}
        self.head_routes[url] = FetchResponse(status=status, headers=headers, url=url)

    def add_error(self, url: str, error: Exception, method: str = "GET"):
        routes = self.get_routes if method == "GET" else self.head_routes
        routes[url] = error

    def urls_requested(self, method: str = "GET") -> List[str]:
        return [url for m, url in self.calls if m == method]

    async def get(self, url, headers=None, timeout_ms=None, max_redirects=5):
        self.calls.append(("GET", url))
        self.request_headers.append(headers)
        route = self.get_routes.get(url)
        if route is None:
            raise FetchError(f"HTTP 404 for {url}", url=url, status=404)
        if isinstance(route, Exception):
            raise route
        if route.status >= 400:
            raise FetchError(f"HTTP {route.status} for {url}", url=url, status=route.status)
        return route

    async def head(self, url, headers=None, timeout_ms=None):
        self.calls.append(("HEAD", url))
        route = self.head_routes.get(url)
        if route is None:
            return FetchResponse(status=404, url=url)
        if isinstance(route, Exception):
            raise route
        return route

    async def close(self):
        self.closed = True


class FakeClock:
    """Manual clock whose sleep advances time instead of waiting."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


def words(count: int, prefix: str = "word") -> str:
    """Generate ``count`` distinct whitespace-separated words."""
    return " ".join(f"{prefix}{i}" for i in range(count))


def article_page(title: str = "Understanding Async Crawlers", word_count: int = 250,
                 date: str = "2024-01-01", author: str = "Jane Doe", links: Tuple[str, ...] = ()) -> str:
    anchors = "".join(f'<a href="{href}">link</a>' for href in links)
    return f"""<!DOCTYPE html>
<html>
<head>
    <title>{title} | Example Blog</title>
    <meta name="author" content="{author}">
    <meta name="description" content="A short summary of {title}.">
</head>
<body>
    <nav><a href="/">Home</a></nav>
    <article>
        <h1>{title}</h1>
        <time datetime="{date}">{date}</time>
        <p>{words(word_count)}</p>
        {anchors}
    </article>
    <footer>Footer text</footer>
</body>
</html>"""


def listing_page(links: Tuple[str, ...] = (), title: str = "Example Blog") -> str:
    anchors = "\n".join(f'<li><a href="{href}">{href}</a></li>' for href in links)
    return f"""<!DOCTYPE html>
<html>
<head><title>{title}</title></head>
<body>
    <header><a href="/">Home</a></header>
    <ul>
    {anchors}
    </ul>
</body>
</html>"""


def sitemap_xml(urls: Tuple[str, ...]) -> str:
    entries = "\n".join(f"  <url><loc>{url}</loc></url>" for url in urls)
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
{entries}
</urlset>"""


@pytest.fixture
def test_config():
    """Provide test configuration."""
    return TestConfig()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def crawler_config():
    """Crawler configuration with no politeness delay."""
    return CrawlerConfig(request_delay_ms=0)


@pytest.fixture
def fetch_client():
    return FakeFetchClient()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryCrawlStore()


@pytest.fixture
def activity_log():
    return ActivityLogger()


@pytest.fixture
def source():
    return Source(id=TestConfig.SOURCE_ID, name="Example Blog", home_url=HOME_URL)


@pytest.fixture
def discovery(fetch_client, crawler_config, store, activity_log):
    return SourceDiscovery(fetch_client, crawler_config, store, activity_log)


@pytest.fixture
def detector():
    return ArticleDetector()


@pytest.fixture
def engine(store, fetch_client, discovery, activity_log, crawler_config, fake_clock):
    return CrawlEngine(
        store,
        fetch_client,
        discovery=discovery,
        activity_log=activity_log,
        config=crawler_config,
        sleep=fake_clock.sleep,
        clock=fake_clock,
    )


@pytest.fixture
def html_builders():
    """Provide the HTML/XML page builders."""
    class Builders:
        article = staticmethod(article_page)
        listing = staticmethod(listing_page)
        sitemap = staticmethod(sitemap_xml)
        text = staticmethod(words)

    return Builders
