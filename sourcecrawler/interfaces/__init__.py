# sourcecrawler/interfaces/__init__.py
"""
Interfaces package for the source crawler.
Contains collaborator contracts and the exception hierarchy.
"""

from .crawl_interfaces import (
    # Collaborator interfaces
    IFetchClient,
    ICrawlStore,
    IActivityLog,

    # Data transfer
    FetchResponse,

    # Exceptions
    CrawlerError,
    FetchError,
    SitemapParseError,
    InvalidTransitionError,
    SourceNotFoundError,
    StorageError,
    DuplicateArticleError,
    ConfigurationError,
)

__all__ = [
    'IFetchClient',
    'ICrawlStore',
    'IActivityLog',
    'FetchResponse',
    'CrawlerError',
    'FetchError',
    'SitemapParseError',
    'InvalidTransitionError',
    'SourceNotFoundError',
    'StorageError',
    'DuplicateArticleError',
    'ConfigurationError',
]
