"""
Core crawling services.
"""
from .fetch_client import HttpFetchClient
from .source_discovery import SourceDiscovery
from .article_detector import ArticleDetector, ScoringRule, PageSignals
from .crawl_engine import CrawlEngine

__all__ = [
    'HttpFetchClient',
    'SourceDiscovery',
    'ArticleDetector',
    'ScoringRule',
    'PageSignals',
    'CrawlEngine',
]
