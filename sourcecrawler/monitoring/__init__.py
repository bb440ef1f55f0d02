"""
Activity monitoring for the source crawler.
"""
from .activity_log import (
    ActivityLogger,
    safe_log_event,
    SOURCE_INITIALIZED,
    ARTICLE_DISCOVERED,
    CRAWL_COMPLETED,
)

__all__ = [
    'ActivityLogger',
    'safe_log_event',
    'SOURCE_INITIALIZED',
    'ARTICLE_DISCOVERED',
    'CRAWL_COMPLETED',
]
