# sourcecrawler/interfaces/crawl_interfaces.py
"""
Collaborator interfaces for the source crawler.

The engine only talks to the network, the persistent store and the activity
log through these abstractions, so each can be swapped (or faked in tests)
without touching crawl logic.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence

if TYPE_CHECKING:
    from sourcecrawler.models.article_models import Article
    from sourcecrawler.models.source_models import (
        CrawlQueueEntry, CrawlStatus, DiscoveredSitemap, SitemapStatus, Source,
    )


@dataclass
class FetchResponse:
    """Response returned by a fetch client."""
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""
    url: str = ""

    @property
    def content_type(self) -> str:
        """Content-Type header value (lower-cased, empty if absent)."""
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return (value or "").lower()
        return ""

    @property
    def ok(self) -> bool:
        return self.status < 400


class IFetchClient(ABC):
    """Interface for timeout-bounded HTTP access."""

    @abstractmethod
    async def get(self, url: str, headers: Optional[Dict[str, str]] = None,
                  timeout_ms: Optional[int] = None, max_redirects: int = 5) -> FetchResponse:
        """
        GET a URL following redirects.

        Raises:
            FetchError: on transport errors, timeouts or a status >= 400
        """
        pass

    @abstractmethod
    async def head(self, url: str, headers: Optional[Dict[str, str]] = None,
                   timeout_ms: Optional[int] = None) -> FetchResponse:
        """
        HEAD a URL following redirects. Any HTTP status is returned.

        Raises:
            FetchError: on transport errors and timeouts only
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None


class ICrawlStore(ABC):
    """
    Persistent store for sources, the crawl frontier, sitemap records and articles.

    Every mutation keyed by (source_id, url) or (source_id, sitemap_url) must be
    atomic so that re-seeding and link enqueueing stay idempotent.
    """

    # Sources

    @abstractmethod
    async def get_source(self, source_id: str) -> Optional["Source"]:
        pass

    @abstractmethod
    async def list_active_sources(self) -> List["Source"]:
        pass

    @abstractmethod
    async def save_source(self, source: "Source") -> "Source":
        """Insert or replace a source by id."""
        pass

    @abstractmethod
    async def update_source(self, source_id: str, **fields: Any) -> Optional["Source"]:
        pass

    @abstractmethod
    async def delete_source(self, source_id: str) -> bool:
        """Delete a source together with its queue entries, sitemaps and articles."""
        pass

    # Crawl queue

    @abstractmethod
    async def add_queue_entries(self, source_id: str, urls: Iterable[str], depth: int,
                                max_total: Optional[int] = None) -> int:
        """
        Upsert URLs into the frontier, ignoring duplicates.

        Args:
            source_id: Owning source
            urls: Candidate URLs
            depth: Depth assigned to newly created entries
            max_total: Per-source entry budget; no entry is created past it

        Returns:
            Number of entries actually created
        """
        pass

    @abstractmethod
    async def get_pending_entries(self, source_id: str, limit: int) -> List["CrawlQueueEntry"]:
        """PENDING entries ordered by (depth asc, discovered_at asc)."""
        pass

    @abstractmethod
    async def get_queue_entry(self, entry_id: str) -> Optional["CrawlQueueEntry"]:
        pass

    @abstractmethod
    async def list_queue_entries(self, source_id: str) -> List["CrawlQueueEntry"]:
        pass

    @abstractmethod
    async def transition_entry(self, entry_id: str, expected: Sequence["CrawlStatus"],
                               new_status: "CrawlStatus", **fields: Any) -> bool:
        """
        Conditionally move an entry to a new status.

        The update only happens when the current status is in ``expected`` and
        the transition is permitted. Returns True when applied.
        """
        pass

    @abstractmethod
    async def count_queue_entries(self, source_id: str) -> int:
        pass

    @abstractmethod
    async def count_entries_by_status(self, source_id: str) -> Dict["CrawlStatus", int]:
        pass

    @abstractmethod
    async def delete_queue_entries(self, source_id: str) -> int:
        pass

    # Sitemaps

    @abstractmethod
    async def upsert_sitemaps(self, sitemaps: Iterable["DiscoveredSitemap"]) -> int:
        """Insert sitemap records, ignoring existing (source_id, sitemap_url) pairs."""
        pass

    @abstractmethod
    async def list_sitemaps(self, source_id: str,
                            status: Optional["SitemapStatus"] = None) -> List["DiscoveredSitemap"]:
        pass

    @abstractmethod
    async def update_sitemap(self, owner_id: str, url: str, **fields: Any) -> bool:
        """Update fields of the sitemap keyed by (owner_id, url)."""
        pass

    @abstractmethod
    async def reset_sitemaps(self, source_id: str) -> int:
        """Set every sitemap of a source back to PENDING."""
        pass

    @abstractmethod
    async def delete_sitemaps(self, source_id: str) -> int:
        pass

    # Articles

    @abstractmethod
    async def get_article_by_url(self, source_id: str, url: str) -> Optional["Article"]:
        pass

    @abstractmethod
    async def create_article(self, article: "Article") -> "Article":
        """
        Insert an article.

        Raises:
            DuplicateArticleError: if one already exists for (source_id, url)
            StorageError: on write failure
        """
        pass

    @abstractmethod
    async def list_articles(self, source_id: Optional[str] = None) -> List["Article"]:
        pass


class IActivityLog(ABC):
    """Fire-and-forget sink for operator-visible activity events."""

    @abstractmethod
    async def log_event(self, event_type: str, message: str,
                        entity_type: Optional[str] = None,
                        entity_id: Optional[str] = None,
                        metadata: Optional[Dict[str, Any]] = None) -> None:
        pass


# Exceptions

class CrawlerError(Exception):
    """Base exception for crawler operations."""

    def __init__(self, message: str, source_id: str = "", cause: Optional[Exception] = None):
        super().__init__(message)
        self.source_id = source_id
        self.cause = cause


class FetchError(CrawlerError):
    """Raised when a URL cannot be fetched."""

    def __init__(self, message: str, url: str = "", status: Optional[int] = None,
                 cause: Optional[Exception] = None):
        super().__init__(message, cause=cause)
        self.url = url
        self.status = status


class SitemapParseError(CrawlerError):
    """Raised when a sitemap body is not valid sitemap XML."""
    pass


class InvalidTransitionError(CrawlerError):
    """Raised when a queue entry is moved along a transition that is not permitted."""
    pass


class SourceNotFoundError(CrawlerError):
    """Raised when an operation targets an unknown source."""
    pass


class StorageError(CrawlerError):
    """Raised when the store cannot persist a record."""
    pass


class DuplicateArticleError(StorageError):
    """Raised when an article already exists for (source_id, url)."""
    pass


class ConfigurationError(CrawlerError):
    """Raised when crawler configuration is invalid."""
    pass

