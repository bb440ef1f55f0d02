"""
Source discovery: robots.txt, feed hints and sitemap probing for a homepage.
"""

import asyncio
from typing import List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from loguru import logger

from sourcecrawler.interfaces.crawl_interfaces import (
    FetchError, IActivityLog, ICrawlStore, IFetchClient, SourceNotFoundError,
)
from sourcecrawler.models.article_models import DiscoveredFeed, DiscoveryResult
from sourcecrawler.models.source_models import (
    CrawlerConfig, DiscoveredSitemap, RobotsRules, SitemapType, SourceType, utc_now,
)
from sourcecrawler.monitoring.activity_log import SOURCE_INITIALIZED, safe_log_event
from sourcecrawler.utils.robots import is_url_allowed, parse_robots_txt
from sourcecrawler.utils.url_filters import get_origin, validate_and_normalize_url

FEED_LINK_TYPES = (
    ("application/rss+xml", "rss"),
    ("application/atom+xml", "atom"),
)

COMMON_FEED_PATHS = ['/feed', '/feed/', '/rss', '/rss/', '/feed.xml', '/rss.xml', '/atom.xml']

COMMON_SITEMAP_PATHS = [
    '/sitemap.xml',
    '/sitemap_index.xml',
    '/sitemap-index.xml',
    '/sitemaps.xml',
    '/sitemap/',
    '/post-sitemap.xml',
    '/page-sitemap.xml',
    '/news-sitemap.xml',
]


def sitemap_type_for_path(path: str) -> SitemapType:
    """Infer the sitemap type from its file name."""
    if 'index' in path:
        return SitemapType.INDEX
    if 'news' in path:
        return SitemapType.NEWS
    if 'image' in path:
        return SitemapType.IMAGE
    if 'video' in path:
        return SitemapType.VIDEO
    return SitemapType.STANDARD


class SourceDiscovery:
    """
    Learns how to reach a source's content.

    Three probes run concurrently for a homepage: robots.txt, feed hints in the
    page head (with well-known fallback paths) and well-known sitemap paths.
    A failing probe contributes an empty result; robots.txt absence is treated
    as "no restrictions".
    """

    def __init__(self, fetch_client: IFetchClient, config: Optional[CrawlerConfig] = None,
                 store: Optional[ICrawlStore] = None, activity_log: Optional[IActivityLog] = None):
        self.fetch_client = fetch_client
        self.config = config or CrawlerConfig()
        self.store = store
        self.activity_log = activity_log

    async def discover_source(self, home_url: str) -> DiscoveryResult:
        """
        Discover feeds, sitemaps and robots rules for a homepage URL.

        Args:
            home_url: Absolute homepage URL

        Returns:
            Merged DiscoveryResult
        """
        origin = get_origin(home_url)
        result = DiscoveryResult()

        robots_result, feeds_result, sitemaps_result = await asyncio.gather(
            self.discover_robots_txt(origin),
            self.discover_feeds_from_page(home_url),
            self.discover_sitemaps(origin),
            return_exceptions=True,
        )

        seen = set()

        if isinstance(robots_result, RobotsRules):
            result.robots_rules = robots_result
            for sitemap_url in robots_result.sitemap_urls:
                if sitemap_url not in seen:
                    seen.add(sitemap_url)
                    result.sitemaps.append(DiscoveredSitemap(source_id="", sitemap_url=sitemap_url))
        else:
            logger.warning(f"⚠️ robots.txt probe failed for {origin}: {robots_result}")

        if isinstance(feeds_result, list):
            result.feeds = feeds_result
        else:
            logger.warning(f"⚠️ Feed probe failed for {home_url}: {feeds_result}")

        if isinstance(sitemaps_result, list):
            for sitemap in sitemaps_result:
                if sitemap.sitemap_url not in seen:
                    seen.add(sitemap.sitemap_url)
                    result.sitemaps.append(sitemap)
        else:
            logger.warning(f"⚠️ Sitemap probe failed for {origin}: {sitemaps_result}")

        if result.feeds:
            result.suggested_type = SourceType.FEED
        elif result.sitemaps:
            result.suggested_type = SourceType.SITEMAP
        else:
            result.suggested_type = SourceType.HOMEPAGE

        logger.info(
            f"🔎 Discovery for {home_url}: {len(result.feeds)} feeds, "
            f"{len(result.sitemaps)} sitemaps, suggested type {result.suggested_type.value}"
        )
        return result

    async def discover_robots_txt(self, origin: str) -> RobotsRules:
        """Fetch and parse {origin}/robots.txt; absence yields empty rules."""
        robots_url = f"{origin}/robots.txt"
        try:
            response = await self.fetch_client.get(
                robots_url,
                timeout_ms=self.config.timeout_ms,
                max_redirects=self.config.max_redirects,
            )
        except FetchError as e:
            logger.debug(f"Could not fetch robots.txt for {origin}: {e}")
            return RobotsRules()

        rules = parse_robots_txt(response.body, self.config.crawler_name)
        logger.debug(
            f"Parsed robots.txt for {origin}: {len(rules.disallowed_paths)} disallow, "
            f"{len(rules.sitemap_urls)} sitemaps"
        )
        return rules

    async def discover_feeds_from_page(self, page_url: str) -> List[DiscoveredFeed]:
        """Find RSS/Atom feeds advertised in the page head, or at common paths."""
        feeds: List[DiscoveredFeed] = []

        try:
            response = await self.fetch_client.get(
                page_url,
                timeout_ms=self.config.timeout_ms,
                max_redirects=self.config.max_redirects,
            )
        except FetchError as e:
            logger.warning(f"⚠️ Failed to discover feeds from {page_url}: {e}")
            return feeds

        soup = BeautifulSoup(response.body, 'html.parser')
        for mime_type, feed_type in FEED_LINK_TYPES:
            for link in soup.find_all('link', attrs={'rel': 'alternate'}):
                if (link.get('type') or '').strip().lower() != mime_type:
                    continue
                href = link.get('href')
                if href:
                    feeds.append(DiscoveredFeed(
                        url=urljoin(page_url, href.strip()),
                        type=feed_type,
                        title=link.get('title') or None,
                    ))

        if not feeds:
            fallback = await self._probe_common_feed_paths(get_origin(page_url))
            if fallback:
                feeds.append(fallback)

        logger.debug(f"Discovered {len(feeds)} feeds from {page_url}")
        return feeds

    async def _probe_common_feed_paths(self, origin: str) -> Optional[DiscoveredFeed]:
        for path in COMMON_FEED_PATHS:
            feed_url = f"{origin}{path}"
            try:
                response = await self.fetch_client.head(feed_url, timeout_ms=self.config.probe_timeout_ms)
            except FetchError:
                continue
            if not response.ok:
                continue

            content_type = response.content_type
            if 'xml' in content_type or 'rss' in content_type or 'atom' in content_type:
                return DiscoveredFeed(url=feed_url, type='atom' if 'atom' in content_type else 'rss')
        return None

    async def discover_sitemaps(self, origin: str) -> List[DiscoveredSitemap]:
        """HEAD-probe well-known sitemap locations."""
        urls = [f"{origin}{path}" for path in COMMON_SITEMAP_PATHS]
        probes = await asyncio.gather(*(self._probe_sitemap(url) for url in urls))

        sitemaps = []
        for path, (url, accepted) in zip(COMMON_SITEMAP_PATHS, probes):
            if accepted:
                sitemaps.append(DiscoveredSitemap(source_id="", sitemap_url=url,
                                                  sitemap_type=sitemap_type_for_path(path)))
        return sitemaps

    async def _probe_sitemap(self, url: str) -> Tuple[str, bool]:
        try:
            response = await self.fetch_client.head(url, timeout_ms=self.config.probe_timeout_ms)
        except FetchError:
            return url, False
        if response.status == 200:
            return url, True
        return url, response.status < 400 and 'xml' in response.content_type

    def is_url_allowed(self, url: str, rules: Optional[RobotsRules]) -> bool:
        return is_url_allowed(url, rules)

    def validate_and_normalize_url(self, url: str) -> Tuple[bool, Optional[str], Optional[str]]:
        return validate_and_normalize_url(url)

    async def initialize_source(self, source_id: str) -> DiscoveryResult:
        """
        Run discovery for a stored source and persist what was found.

        Writes the robots rules, the suggested type, the first feed URL and the
        sitemap records. The frontier itself is seeded on the first crawl.

        Raises:
            SourceNotFoundError: if the source does not exist
        """
        if self.store is None:
            raise SourceNotFoundError("No store configured for source initialization", source_id=source_id)

        source = await self.store.get_source(source_id)
        if source is None:
            raise SourceNotFoundError(f"Source not found: {source_id}", source_id=source_id)

        logger.info(f"🚀 Initializing source {source_id} ({source.home_url})")
        discovery = await self.discover_source(source.home_url)

        updates = {
            "robots_rules": discovery.robots_rules,
            "type": discovery.suggested_type,
            "last_checked_at": utc_now(),
        }
        if discovery.feeds:
            updates["discovered_feed_url"] = discovery.feeds[0].url
        await self.store.update_source(source_id, **updates)

        if discovery.sitemaps:
            for sitemap in discovery.sitemaps:
                sitemap.source_id = source_id
            await self.store.upsert_sitemaps(discovery.sitemaps)

        await safe_log_event(
            self.activity_log,
            SOURCE_INITIALIZED,
            f"Initialized source: {len(discovery.feeds)} feeds, {len(discovery.sitemaps)} sitemaps found",
            entity_type="Source",
            entity_id=source_id,
            metadata={
                "feedCount": len(discovery.feeds),
                "sitemapCount": len(discovery.sitemaps),
                "suggestedType": discovery.suggested_type.value,
            },
        )

        logger.info(f"✅ Source {source_id} initialized as {discovery.suggested_type.value}")
        return discovery
