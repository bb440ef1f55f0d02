"""
Crawl engine: owns each source's frontier and turns pending entries into articles.

A cycle visits active sources one at a time. For each source the frontier is
seeded on first use (home URL plus sitemap URLs), then up to
``max_pages_per_run`` pending entries are fetched in (depth, discovered_at)
order, classified, and either emitted as articles or mined for more links.
"""

import asyncio
import inspect
import time
from dataclasses import replace
from typing import Any, Awaitable, Callable, List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from loguru import logger

from sourcecrawler.core.article_detector import ArticleDetector
from sourcecrawler.core.source_discovery import SourceDiscovery
from sourcecrawler.interfaces.crawl_interfaces import (
    CrawlerError, DuplicateArticleError, FetchError, IActivityLog, ICrawlStore,
    IFetchClient, SitemapParseError, SourceNotFoundError, StorageError,
)
from sourcecrawler.models.article_models import (
    Article, CrawlResult, CrawlStats, DetectionResult, DiscoveryResult,
)
from sourcecrawler.models.source_models import (
    CrawlerConfig, CrawlQueueEntry, CrawlStatus, DiscoveredSitemap, SitemapStatus,
    Source, utc_now,
)
from sourcecrawler.monitoring.activity_log import (
    ARTICLE_DISCOVERED, CRAWL_COMPLETED, safe_log_event,
)
from sourcecrawler.utils.rate_limiter import PolitenessTracker
from sourcecrawler.utils.sitemap_parser import parse_sitemap_urls
from sourcecrawler.utils.url_filters import eligible_link, get_hostname, normalize_url
from sourcecrawler.utils.robots import is_url_allowed
from sourcecrawler.validators.config_validator import ConfigValidator

HTML_ACCEPT = "text/html,application/xhtml+xml"
MAX_TITLE_LENGTH = 255

ArticleHook = Callable[[Article], Any]


def is_html_content_type(content_type: str) -> bool:
    return 'text/html' in content_type or 'application/xhtml' in content_type


class CrawlEngine:
    """Budgeted, depth-limited, polite crawler over the persistent frontier."""

    def __init__(self, store: ICrawlStore, fetch_client: IFetchClient,
                 discovery: Optional[SourceDiscovery] = None,
                 detector: Optional[ArticleDetector] = None,
                 activity_log: Optional[IActivityLog] = None,
                 config: Optional[CrawlerConfig] = None,
                 on_article: Optional[ArticleHook] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.store = store
        self.fetch_client = fetch_client
        self.config = ConfigValidator.ensure_valid(config or CrawlerConfig())
        self.activity_log = activity_log
        self.discovery = discovery or SourceDiscovery(fetch_client, self.config, store, activity_log)
        self.detector = detector or ArticleDetector(
            min_word_count=self.config.min_word_count,
            min_confidence=self.config.min_confidence,
            min_article_word_count=self.config.min_article_word_count,
        )
        self.on_article = on_article
        self._sleep = sleep
        self._clock = clock

    def new_politeness_tracker(self) -> PolitenessTracker:
        return PolitenessTracker(
            default_delay_seconds=self.config.request_delay_ms / 1000,
            clock=self._clock,
            sleep=self._sleep,
        )

    def set_config(self, **overrides: Any) -> CrawlerConfig:
        """
        Update configuration at runtime.

        Raises:
            ConfigurationError: if the resulting configuration is invalid
        """
        config = ConfigValidator.ensure_valid(replace(self.config, **overrides))
        self.config = config
        self.discovery.config = config
        self.detector.set_min_word_count(config.min_word_count)
        self.detector.set_min_confidence(config.min_confidence)
        self.detector.set_min_article_word_count(config.min_article_word_count)
        logger.info(f"⚙️ Crawler configuration updated: {sorted(overrides)}")
        return config

    # Cycle

    async def run_crawl_cycle(self) -> List[CrawlResult]:
        """Crawl every active source once, sequentially."""
        sources = await self.store.list_active_sources()
        tracker = self.new_politeness_tracker()
        results = []

        logger.info(f"🕷️ Starting crawl cycle for {len(sources)} sources")

        for source in sources:
            try:
                results.append(await self._run_source(source, tracker))
            except Exception as e:
                logger.error(f"❌ Failed to crawl source {source.id}: {e}")
                results.append(CrawlResult(source_id=source.id, errors=[str(e)]))

        total_articles = sum(r.articles_found for r in results)
        logger.info(f"✅ Crawl cycle completed: {len(results)} sources, {total_articles} articles")
        return results

    async def crawl_source(self, source_id: str) -> CrawlResult:
        """
        Crawl one source now.

        Raises:
            SourceNotFoundError: if the source does not exist
        """
        source = await self.store.get_source(source_id)
        if source is None:
            raise SourceNotFoundError(f"Source not found: {source_id}", source_id=source_id)
        return await self._run_source(source, self.new_politeness_tracker())

    async def _run_source(self, source: Source, tracker: PolitenessTracker) -> CrawlResult:
        await self.store.update_source(source.id, last_crawl_started_at=utc_now())

        source = await self._ensure_initialized(source, tracker)
        result = await self._crawl(source, tracker)

        now = utc_now()
        await self.store.update_source(source.id, last_crawl_completed_at=now, last_checked_at=now)
        return result

    async def _ensure_initialized(self, source: Source, tracker: PolitenessTracker) -> Source:
        if source.robots_rules is not None or source.last_checked_at is not None:
            return source
        if await self.store.count_queue_entries(source.id) > 0:
            return source

        await self.discovery.initialize_source(source.id)
        tracker.record(get_hostname(source.home_url))
        return await self.store.get_source(source.id) or source

    async def _crawl(self, source: Source, tracker: PolitenessTracker) -> CrawlResult:
        result = CrawlResult(source_id=source.id)

        try:
            await self.seed_crawl_queue(source, tracker)
            pending = await self.store.get_pending_entries(source.id, self.config.max_pages_per_run)
        except CrawlerError as e:
            result.errors.append(str(e))
            logger.error(f"❌ Source crawl failed for {source.id}: {e}")
            return result

        logger.info(f"📋 Processing {len(pending)} queued pages for {source.name}")

        rules = source.robots_rules
        crawl_delay = rules.crawl_delay_seconds if rules else None

        for entry in pending:
            try:
                if self.config.respect_robots_txt and rules is not None and not is_url_allowed(entry.url, rules):
                    await self.store.transition_entry(
                        entry.id, [CrawlStatus.PENDING], CrawlStatus.SKIPPED,
                        error_message="Blocked by robots.txt",
                    )
                    logger.debug(f"Skipped {entry.url}: blocked by robots.txt")
                    continue

                await tracker.wait(get_hostname(entry.url), crawl_delay)

                outcome = await self._process_page(entry, source)
                if outcome is None:
                    continue

                is_article, links_found = outcome
                result.pages_processed += 1
                result.articles_found += 1 if is_article else 0
                result.links_discovered += links_found

            except Exception as e:
                message = str(e) or e.__class__.__name__
                result.errors.append(f"{entry.url}: {message}")
                logger.warning(f"⚠️ Failed to process {entry.url}: {message}")
                await self.store.transition_entry(
                    entry.id, [CrawlStatus.PENDING, CrawlStatus.FETCHING], CrawlStatus.FAILED,
                    error_message=message,
                )

        await safe_log_event(
            self.activity_log,
            CRAWL_COMPLETED,
            f"Crawled {result.pages_processed} pages, found {result.articles_found} articles",
            entity_type="Source",
            entity_id=source.id,
            metadata=result.to_dict(),
        )
        return result

    # Seeding

    async def seed_crawl_queue(self, source: Source, tracker: Optional[PolitenessTracker] = None) -> int:
        """
        Populate an empty frontier from the home URL and pending sitemaps.

        Returns:
            Number of entries created (0 when the frontier already had entries)
        """
        if await self.store.count_queue_entries(source.id) > 0:
            return 0
        tracker = tracker or self.new_politeness_tracker()

        created = await self.store.add_queue_entries(
            source.id, [normalize_url(source.home_url)], depth=0,
            max_total=self.config.max_pages_per_source,
        )

        for sitemap in await self.store.list_sitemaps(source.id, SitemapStatus.PENDING):
            created += await self._process_sitemap(source, sitemap, tracker)

        logger.debug(f"Seeded crawl queue for {source.id} with {created} entries")
        return created

    async def _process_sitemap(self, source: Source, sitemap: DiscoveredSitemap,
                               tracker: PolitenessTracker) -> int:
        crawl_delay = source.robots_rules.crawl_delay_seconds if source.robots_rules else None
        await tracker.wait(get_hostname(sitemap.sitemap_url), crawl_delay)
        try:
            response = await self.fetch_client.get(
                sitemap.sitemap_url,
                headers=self.config.request_headers,
                timeout_ms=self.config.timeout_ms,
                max_redirects=self.config.max_redirects,
            )
            urls = parse_sitemap_urls(response.body, sitemap.sitemap_url)
        except (FetchError, SitemapParseError) as e:
            logger.warning(f"⚠️ Failed to process sitemap {sitemap.sitemap_url}: {e}")
            await self.store.update_sitemap(
                source.id, sitemap.sitemap_url,
                status=SitemapStatus.FAILED, error_message=str(e),
            )
            return 0

        eligible = []
        for url in urls:
            normalized = eligible_link(url, source.home_url, source.robots_rules,
                                       self.config.respect_robots_txt)
            if normalized and normalized not in eligible:
                eligible.append(normalized)

        created = 0
        if eligible and self.config.max_depth >= 1:
            created = await self.store.add_queue_entries(
                source.id, eligible[:self.config.max_sitemap_urls], depth=1,
                max_total=self.config.max_pages_per_source,
            )
            logger.info(f"🗺️ Added {created} URLs from sitemap {sitemap.sitemap_url}")

        await self.store.update_sitemap(
            source.id, sitemap.sitemap_url,
            status=SitemapStatus.FETCHED,
            url_count=len(eligible),
            last_fetched_at=utc_now(),
            error_message=None,
        )
        return created

    # Pages

    async def _process_page(self, entry: CrawlQueueEntry, source: Source) -> Optional[Tuple[bool, int]]:
        """
        Fetch, classify and record one frontier entry.

        Returns:
            (is_article, links_queued), or None if another worker claimed the entry
        """
        claimed = await self.store.transition_entry(
            entry.id, [CrawlStatus.PENDING], CrawlStatus.FETCHING,
            last_tried_at=utc_now(), fetch_count=entry.fetch_count + 1,
        )
        if not claimed:
            logger.debug(f"Entry {entry.id} is no longer pending, skipping")
            return None

        headers = dict(self.config.request_headers)
        headers["Accept"] = HTML_ACCEPT
        response = await self.fetch_client.get(
            entry.url,
            headers=headers,
            timeout_ms=self.config.timeout_ms,
            max_redirects=self.config.max_redirects,
        )

        content_type = response.content_type
        if not is_html_content_type(content_type):
            await self.store.transition_entry(
                entry.id, [CrawlStatus.FETCHING], CrawlStatus.SKIPPED,
                error_message=f"Non-HTML content type: {content_type}",
                content_type=content_type,
            )
            return False, 0

        soup = BeautifulSoup(response.body, 'html.parser')
        page_title = soup.title.get_text().strip()[:MAX_TITLE_LENGTH] if soup.title else None

        detection = self.detector.analyze_page_content(entry.url, response.body)

        if detection.is_article:
            if await self._create_article(entry, source, detection):
                await self.store.transition_entry(
                    entry.id, [CrawlStatus.FETCHING], CrawlStatus.IS_ARTICLE,
                    page_title=page_title, content_type=content_type,
                )
                return True, 0

            await self.store.transition_entry(
                entry.id, [CrawlStatus.FETCHING], CrawlStatus.FETCHED,
                page_title=page_title, content_type=content_type,
                error_message="Article storage failed",
            )
            return False, 0

        links_found = 0
        if entry.depth < self.config.max_depth:
            links_found = await self._extract_and_queue_links(soup, entry, source)

        await self.store.transition_entry(
            entry.id, [CrawlStatus.FETCHING], CrawlStatus.FETCHED,
            page_title=page_title, content_type=content_type,
        )
        return False, links_found

    async def _create_article(self, entry: CrawlQueueEntry, source: Source,
                              detection: DetectionResult) -> bool:
        """Store an article for the entry; False only when storage failed."""
        existing = await self.store.get_article_by_url(source.id, entry.url)
        if existing is not None:
            logger.debug(f"Article already exists for {entry.url}")
            return True

        article = Article(
            source_id=source.id,
            external_id=entry.url,
            url=entry.url,
            title=detection.title or "Untitled",
            raw_summary=detection.summary,
            raw_content=(detection.content or "")[:self.config.max_content_length],
            published_at=detection.published_at,
            author=detection.author,
            confidence=detection.confidence,
            word_count=detection.word_count,
            crawl_queue_entry_id=entry.id,
        )

        try:
            article = await self.store.create_article(article)
        except DuplicateArticleError:
            logger.debug(f"Article already exists for {entry.url}")
            return True
        except StorageError as e:
            logger.error(f"❌ Failed to create article for {entry.url}: {e}")
            return False

        logger.info(f"📰 Created article from {entry.url} (confidence {detection.confidence:.2f})")

        if self.on_article is not None:
            try:
                outcome = self.on_article(article)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.warning(f"⚠️ Downstream article hook failed for {article.id}: {e}")

        await safe_log_event(
            self.activity_log,
            ARTICLE_DISCOVERED,
            f"Discovered article: {detection.title or entry.url}",
            entity_type="Article",
            entity_id=article.id,
            metadata={
                "url": entry.url,
                "confidence": detection.confidence,
                "wordCount": detection.word_count,
            },
        )
        return True

    async def _extract_and_queue_links(self, soup: BeautifulSoup, entry: CrawlQueueEntry,
                                       source: Source) -> int:
        links: List[str] = []
        for anchor in soup.find_all('a', href=True):
            href = (anchor.get('href') or '').strip()
            if not href:
                continue
            try:
                absolute = urljoin(entry.url, href)
            except ValueError:
                continue
            normalized = eligible_link(absolute, source.home_url, source.robots_rules,
                                       self.config.respect_robots_txt)
            if normalized and normalized != entry.url and normalized not in links:
                links.append(normalized)

        queue_size = await self.store.count_queue_entries(source.id)
        if queue_size >= self.config.max_pages_per_source or not links:
            return 0

        # The store stops creating entries once the source budget is reached.
        created = await self.store.add_queue_entries(
            source.id, links[:self.config.max_links_per_page], depth=entry.depth + 1,
            max_total=self.config.max_pages_per_source,
        )
        logger.debug(f"Queued {created} new links from {entry.url}")
        return created

    # Operator actions

    async def get_crawl_stats(self, source_id: str) -> CrawlStats:
        counts = await self.store.count_entries_by_status(source_id)
        return CrawlStats(
            total=sum(counts.values()),
            pending=counts.get(CrawlStatus.PENDING, 0),
            fetching=counts.get(CrawlStatus.FETCHING, 0),
            fetched=counts.get(CrawlStatus.FETCHED, 0),
            articles=counts.get(CrawlStatus.IS_ARTICLE, 0),
            failed=counts.get(CrawlStatus.FAILED, 0),
            skipped=counts.get(CrawlStatus.SKIPPED, 0),
        )

    async def reset_crawl_queue(self, source_id: str) -> int:
        """Delete the frontier and mark every sitemap PENDING again."""
        removed = await self.store.delete_queue_entries(source_id)
        await self.store.reset_sitemaps(source_id)
        logger.info(f"🔄 Reset crawl queue for {source_id} ({removed} entries removed)")
        return removed

    async def rediscover_source(self, source_id: str) -> DiscoveryResult:
        """
        Drop the frontier and sitemap records, then run discovery again.

        Raises:
            SourceNotFoundError: if the source does not exist
        """
        if await self.store.get_source(source_id) is None:
            raise SourceNotFoundError(f"Source not found: {source_id}", source_id=source_id)

        await self.store.delete_queue_entries(source_id)
        await self.store.delete_sitemaps(source_id)
        logger.info(f"🔁 Rediscovering source {source_id}")
        return await self.discovery.initialize_source(source_id)
