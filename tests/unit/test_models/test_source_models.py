"""
Unit tests for source, frontier and configuration models.
"""
import pytest

from sourcecrawler.interfaces.crawl_interfaces import InvalidTransitionError
from sourcecrawler.models.article_models import Article, CrawlResult
from sourcecrawler.models.source_models import (
    ALLOWED_TRANSITIONS, CrawlerConfig, CrawlQueueEntry, CrawlStatus,
    DiscoveredSitemap, RobotsRules, SitemapStatus, SitemapType, Source, SourceType,
    is_transition_allowed,
)


class TestCrawlQueueEntryTransitions:
    """Tests for the queue entry state machine."""

    @pytest.mark.unit
    @pytest.mark.parametrize("current,new_status", [
        (CrawlStatus.PENDING, CrawlStatus.FETCHING),
        (CrawlStatus.PENDING, CrawlStatus.SKIPPED),
        (CrawlStatus.PENDING, CrawlStatus.FAILED),
        (CrawlStatus.FETCHING, CrawlStatus.FETCHED),
        (CrawlStatus.FETCHING, CrawlStatus.IS_ARTICLE),
        (CrawlStatus.FETCHING, CrawlStatus.SKIPPED),
        (CrawlStatus.FETCHING, CrawlStatus.FAILED),
    ])
    def test_permitted_transitions(self, current, new_status):
        assert is_transition_allowed(current, new_status)

    @pytest.mark.unit
    def test_terminal_states_have_no_exits(self):
        for status in (CrawlStatus.FETCHED, CrawlStatus.IS_ARTICLE, CrawlStatus.FAILED, CrawlStatus.SKIPPED):
            assert ALLOWED_TRANSITIONS[status] == frozenset()
            for target in CrawlStatus:
                assert not is_transition_allowed(status, target)

    @pytest.mark.unit
    def test_pending_cannot_jump_to_article(self):
        assert not is_transition_allowed(CrawlStatus.PENDING, CrawlStatus.IS_ARTICLE)
        assert not is_transition_allowed(CrawlStatus.PENDING, CrawlStatus.FETCHED)

    @pytest.mark.unit
    def test_transition_to_returns_updated_copy(self):
        entry = CrawlQueueEntry(source_id="s", url="https://blog.example.com/a")

        fetching = entry.transition_to(CrawlStatus.FETCHING, fetch_count=1)

        assert fetching.status == CrawlStatus.FETCHING
        assert fetching.fetch_count == 1
        assert fetching.id == entry.id
        assert entry.status == CrawlStatus.PENDING

    @pytest.mark.unit
    def test_transition_to_rejects_invalid_move(self):
        entry = CrawlQueueEntry(source_id="s", url="https://blog.example.com/a", status=CrawlStatus.FETCHED)
        with pytest.raises(InvalidTransitionError):
            entry.transition_to(CrawlStatus.PENDING)

    @pytest.mark.unit
    def test_transition_to_rejects_identity_fields(self):
        entry = CrawlQueueEntry(source_id="s", url="https://blog.example.com/a")
        with pytest.raises(ValueError):
            entry.transition_to(CrawlStatus.FETCHING, depth=4)

    @pytest.mark.unit
    def test_negative_depth_rejected(self):
        with pytest.raises(ValueError):
            CrawlQueueEntry(source_id="s", url="https://blog.example.com/a", depth=-1)


class TestSerialization:
    """Round trips used by the JSON snapshot."""

    @pytest.mark.unit
    def test_source_round_trip(self):
        source = Source(
            id="example",
            home_url="https://blog.example.com",
            type=SourceType.SITEMAP,
            robots_rules=RobotsRules(disallowed_paths=("/private",), crawl_delay_seconds=2.0),
        )
        restored = Source.from_dict(source.to_dict())

        assert restored == source
        assert restored.name == "example"

    @pytest.mark.unit
    def test_robots_rules_camel_case_keys(self):
        data = RobotsRules(sitemap_urls=("https://blog.example.com/sitemap.xml",)).to_dict()
        assert data == {
            "disallowedPaths": [],
            "allowedPaths": [],
            "crawlDelay": None,
            "sitemaps": ["https://blog.example.com/sitemap.xml"],
        }
        assert RobotsRules.from_dict(None) is None

    @pytest.mark.unit
    def test_queue_entry_and_sitemap_round_trip(self):
        entry = CrawlQueueEntry(source_id="s", url="https://blog.example.com/a", depth=2,
                                status=CrawlStatus.FAILED, error_message="boom")
        sitemap = DiscoveredSitemap(source_id="s", sitemap_url="https://blog.example.com/news-sitemap.xml",
                                    sitemap_type=SitemapType.NEWS, status=SitemapStatus.FETCHED, url_count=3)

        assert CrawlQueueEntry.from_dict(entry.to_dict()) == entry
        assert DiscoveredSitemap.from_dict(sitemap.to_dict()) == sitemap

    @pytest.mark.unit
    def test_empty_home_url_rejected(self):
        with pytest.raises(ValueError):
            Source(id="x", home_url="  ")

    @pytest.mark.unit
    def test_article_defaults(self):
        article = Article(source_id="s", external_id="https://blog.example.com/a",
                          url="https://blog.example.com/a", title="A")
        data = article.to_dict()

        assert data["status"] == "NEW"
        assert data["published_at"] is None
        assert data["id"]

    @pytest.mark.unit
    def test_crawl_result_to_dict(self):
        result = CrawlResult(source_id="s", pages_processed=2, errors=["x"])
        assert result.to_dict() == {
            "sourceId": "s",
            "pagesProcessed": 2,
            "articlesFound": 0,
            "linksDiscovered": 0,
            "errors": ["x"],
        }


class TestCrawlerConfig:
    """Tests for CrawlerConfig validation."""

    @pytest.mark.unit
    def test_defaults_are_valid(self):
        config = CrawlerConfig()
        assert config.validate() == []
        assert config.max_depth == 3
        assert config.max_pages_per_source == 500
        assert config.max_pages_per_run == 20
        assert config.request_delay_ms == 1000
        assert config.timeout_ms == 15000
        assert config.respect_robots_txt is True
        assert config.min_word_count == 200
        assert config.min_confidence == 0.4
        assert config.max_redirects == 5
        assert config.probe_max_redirects == 3

    @pytest.mark.unit
    def test_invalid_values_reported(self):
        config = CrawlerConfig(max_depth=-1, max_pages_per_run=0, min_confidence=2.0, request_delay_ms=-5,
                               probe_max_redirects=-1)
        errors = config.validate()

        assert "max_depth must be non-negative" in errors
        assert "max_pages_per_run must be positive" in errors
        assert "min_confidence must be between 0 and 1" in errors
        assert "request_delay_ms must be non-negative" in errors
        assert "probe_max_redirects must be non-negative" in errors

    @pytest.mark.unit
    def test_request_headers_identify_crawler(self):
        assert CrawlerConfig().request_headers["User-Agent"].startswith("SourceCrawlerBot/1.0")
