# sourcecrawler/models/article_models.py
"""
Article and crawl-result models.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

from pydantic import BaseModel, Field

from .source_models import DiscoveredSitemap, RobotsRules, SourceType


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Article(BaseModel):
    """Candidate article emitted by the crawler for downstream processing."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    source_id: str
    external_id: str
    url: str
    title: str
    raw_summary: Optional[str] = None
    raw_content: str = ""
    published_at: Optional[datetime] = None
    author: Optional[str] = None
    confidence: float = 0.0
    word_count: int = 0
    status: str = "NEW"
    crawl_queue_entry_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_utc_now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the model to a dictionary, converting datetimes to ISO strings."""
        return {
            "id": self.id,
            "source_id": self.source_id,
            "external_id": self.external_id,
            "url": self.url,
            "title": self.title,
            "raw_summary": self.raw_summary,
            "raw_content": self.raw_content,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "author": self.author,
            "confidence": self.confidence,
            "word_count": self.word_count,
            "status": self.status,
            "crawl_queue_entry_id": self.crawl_queue_entry_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class DetectionResult:
    """Outcome of classifying one fetched page."""
    is_article: bool
    confidence: float
    content: str = ""
    word_count: int = 0
    title: Optional[str] = None
    published_at: Optional[datetime] = None
    author: Optional[str] = None
    summary: Optional[str] = None
    reasons: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DiscoveredFeed:
    url: str
    type: str = "rss"
    title: Optional[str] = None


@dataclass
class DiscoveryResult:
    """Merged output of the robots, feed and sitemap probes."""
    feeds: List[DiscoveredFeed] = field(default_factory=list)
    sitemaps: List[DiscoveredSitemap] = field(default_factory=list)
    robots_rules: RobotsRules = field(default_factory=RobotsRules)
    suggested_type: SourceType = SourceType.HOMEPAGE


@dataclass
class CrawlResult:
    """Per-source outcome of one crawl run."""
    source_id: str
    pages_processed: int = 0
    articles_found: int = 0
    links_discovered: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceId": self.source_id,
            "pagesProcessed": self.pages_processed,
            "articlesFound": self.articles_found,
            "linksDiscovered": self.links_discovered,
            "errors": list(self.errors),
        }


@dataclass
class CrawlStats:
    """Frontier counts by status for one source."""
    total: int = 0
    pending: int = 0
    fetching: int = 0
    fetched: int = 0
    articles: int = 0
    failed: int = 0
    skipped: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "pending": self.pending,
            "fetching": self.fetching,
            "fetched": self.fetched,
            "articles": self.articles,
            "failed": self.failed,
            "skipped": self.skipped,
        }
