"""
Utility modules for the source crawler.
"""
from .robots import parse_robots_txt, path_matches, is_path_allowed, is_url_allowed
from .url_filters import (
    STATIC_EXTENSIONS,
    should_crawl_url,
    normalize_url,
    eligible_link,
    validate_and_normalize_url,
)
from .rate_limiter import PolitenessTracker
from .sitemap_parser import parse_sitemap_urls
from .config_loader import load_crawler_config, load_sources_config

__all__ = [
    'parse_robots_txt',
    'path_matches',
    'is_path_allowed',
    'is_url_allowed',
    'STATIC_EXTENSIONS',
    'should_crawl_url',
    'normalize_url',
    'eligible_link',
    'validate_and_normalize_url',
    'PolitenessTracker',
    'parse_sitemap_urls',
    'load_crawler_config',
    'load_sources_config',
]
