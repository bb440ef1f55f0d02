# sourcecrawler/models/__init__.py
"""
Data models for the source crawler.
"""

from .source_models import (
    SourceType,
    CrawlStatus,
    SitemapType,
    SitemapStatus,
    ALLOWED_TRANSITIONS,
    is_transition_allowed,
    RobotsRules,
    Source,
    DiscoveredSitemap,
    CrawlQueueEntry,
    CrawlerConfig,
)

from .article_models import (
    Article,
    DetectionResult,
    DiscoveredFeed,
    DiscoveryResult,
    CrawlResult,
    CrawlStats,
)

__all__ = [
    # Source models
    'SourceType',
    'CrawlStatus',
    'SitemapType',
    'SitemapStatus',
    'ALLOWED_TRANSITIONS',
    'is_transition_allowed',
    'RobotsRules',
    'Source',
    'DiscoveredSitemap',
    'CrawlQueueEntry',
    'CrawlerConfig',

    # Article models
    'Article',
    'DetectionResult',
    'DiscoveredFeed',
    'DiscoveryResult',
    'CrawlResult',
    'CrawlStats',
]
