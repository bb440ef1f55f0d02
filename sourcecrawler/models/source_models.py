# sourcecrawler/models/source_models.py
"""
Data models for sources, the crawl frontier and crawler configuration.
"""
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple
import uuid

from sourcecrawler.interfaces.crawl_interfaces import InvalidTransitionError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def datetime_to_str(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def str_to_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


class SourceType(Enum):
    """How a source is best reached."""
    HOMEPAGE = "homepage"
    FEED = "feed"
    SITEMAP = "sitemap"
    CUSTOM = "custom"


class CrawlStatus(Enum):
    """Lifecycle of a crawl queue entry."""
    PENDING = "PENDING"
    FETCHING = "FETCHING"
    FETCHED = "FETCHED"
    IS_ARTICLE = "IS_ARTICLE"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


# Only these moves are legal; everything not listed is terminal.
ALLOWED_TRANSITIONS: Dict[CrawlStatus, FrozenSet[CrawlStatus]] = {
    CrawlStatus.PENDING: frozenset({
        CrawlStatus.FETCHING, CrawlStatus.SKIPPED, CrawlStatus.FAILED,
    }),
    CrawlStatus.FETCHING: frozenset({
        CrawlStatus.FETCHED, CrawlStatus.IS_ARTICLE, CrawlStatus.SKIPPED, CrawlStatus.FAILED,
    }),
    CrawlStatus.FETCHED: frozenset(),
    CrawlStatus.IS_ARTICLE: frozenset(),
    CrawlStatus.FAILED: frozenset(),
    CrawlStatus.SKIPPED: frozenset(),
}


def is_transition_allowed(current: CrawlStatus, new_status: CrawlStatus) -> bool:
    return new_status in ALLOWED_TRANSITIONS.get(current, frozenset())


class SitemapType(Enum):
    STANDARD = "standard"
    INDEX = "index"
    NEWS = "news"
    IMAGE = "image"
    VIDEO = "video"


class SitemapStatus(Enum):
    PENDING = "PENDING"
    FETCHED = "FETCHED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class RobotsRules:
    """
    Parsed robots.txt snapshot for one source.

    Replaced wholesale on re-discovery. Allow rules win over disallow rules
    when both match a path.
    """
    disallowed_paths: Tuple[str, ...] = ()
    allowed_paths: Tuple[str, ...] = ()
    crawl_delay_seconds: Optional[float] = None
    sitemap_urls: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.disallowed_paths or self.allowed_paths or self.crawl_delay_seconds)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "disallowedPaths": list(self.disallowed_paths),
            "allowedPaths": list(self.allowed_paths),
            "crawlDelay": self.crawl_delay_seconds,
            "sitemaps": list(self.sitemap_urls),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['RobotsRules']:
        if data is None:
            return None
        return cls(
            disallowed_paths=tuple(data.get("disallowedPaths") or ()),
            allowed_paths=tuple(data.get("allowedPaths") or ()),
            crawl_delay_seconds=data.get("crawlDelay"),
            sitemap_urls=tuple(data.get("sitemaps") or ()),
        )


@dataclass
class Source:
    """A registered blog or publication."""
    id: str
    home_url: str
    name: str = ""
    type: SourceType = SourceType.HOMEPAGE
    active: bool = True
    discovered_feed_url: Optional[str] = None
    robots_rules: Optional[RobotsRules] = None
    last_checked_at: Optional[datetime] = None
    last_crawl_started_at: Optional[datetime] = None
    last_crawl_completed_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.home_url or not self.home_url.strip():
            raise ValueError("Source home URL cannot be empty")
        if not self.name:
            self.name = self.id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "home_url": self.home_url,
            "type": self.type.value,
            "active": self.active,
            "discovered_feed_url": self.discovered_feed_url,
            "robots_rules": self.robots_rules.to_dict() if self.robots_rules else None,
            "last_checked_at": datetime_to_str(self.last_checked_at),
            "last_crawl_started_at": datetime_to_str(self.last_crawl_started_at),
            "last_crawl_completed_at": datetime_to_str(self.last_crawl_completed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Source':
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            home_url=data["home_url"],
            type=SourceType(data.get("type", SourceType.HOMEPAGE.value)),
            active=data.get("active", True),
            discovered_feed_url=data.get("discovered_feed_url"),
            robots_rules=RobotsRules.from_dict(data.get("robots_rules")),
            last_checked_at=str_to_datetime(data.get("last_checked_at")),
            last_crawl_started_at=str_to_datetime(data.get("last_crawl_started_at")),
            last_crawl_completed_at=str_to_datetime(data.get("last_crawl_completed_at")),
        )


@dataclass
class DiscoveredSitemap:
    """A sitemap found for a source, consumed once during frontier seeding."""
    source_id: str
    sitemap_url: str
    sitemap_type: SitemapType = SitemapType.STANDARD
    status: SitemapStatus = SitemapStatus.PENDING
    url_count: Optional[int] = None
    last_fetched_at: Optional[datetime] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_id": self.source_id,
            "sitemap_url": self.sitemap_url,
            "sitemap_type": self.sitemap_type.value,
            "status": self.status.value,
            "url_count": self.url_count,
            "last_fetched_at": datetime_to_str(self.last_fetched_at),
            "error_message": self.error_message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DiscoveredSitemap':
        return cls(
            source_id=data["source_id"],
            sitemap_url=data["sitemap_url"],
            sitemap_type=SitemapType(data.get("sitemap_type", "standard")),
            status=SitemapStatus(data.get("status", "PENDING")),
            url_count=data.get("url_count"),
            last_fetched_at=str_to_datetime(data.get("last_fetched_at")),
            error_message=data.get("error_message"),
        )


@dataclass
class CrawlQueueEntry:
    """One URL in a source's frontier."""
    source_id: str
    url: str
    depth: int = 0
    id: str = field(default_factory=new_id)
    status: CrawlStatus = CrawlStatus.PENDING
    discovered_at: datetime = field(default_factory=utc_now)
    last_tried_at: Optional[datetime] = None
    fetch_count: int = 0
    error_message: Optional[str] = None
    page_title: Optional[str] = None
    content_type: Optional[str] = None

    def __post_init__(self):
        if self.depth < 0:
            raise ValueError("Queue entry depth must be non-negative")

    def can_transition_to(self, new_status: CrawlStatus) -> bool:
        return is_transition_allowed(self.status, new_status)

    def transition_to(self, new_status: CrawlStatus, **changes: Any) -> 'CrawlQueueEntry':
        """
        Return a copy moved to ``new_status`` with the given field changes.

        Raises:
            InvalidTransitionError: if the move is not permitted
        """
        if not self.can_transition_to(new_status):
            raise InvalidTransitionError(
                f"Cannot move queue entry {self.id} from {self.status.value} to {new_status.value}",
                source_id=self.source_id,
            )
        allowed = {f.name for f in fields(self)} - {"id", "source_id", "url", "depth", "discovered_at", "status"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Unknown queue entry fields: {sorted(unknown)}")
        return replace(self, status=new_status, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "url": self.url,
            "depth": self.depth,
            "status": self.status.value,
            "discovered_at": datetime_to_str(self.discovered_at),
            "last_tried_at": datetime_to_str(self.last_tried_at),
            "fetch_count": self.fetch_count,
            "error_message": self.error_message,
            "page_title": self.page_title,
            "content_type": self.content_type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CrawlQueueEntry':
        return cls(
            id=data["id"],
            source_id=data["source_id"],
            url=data["url"],
            depth=data.get("depth", 0),
            status=CrawlStatus(data.get("status", "PENDING")),
            discovered_at=str_to_datetime(data.get("discovered_at")) or utc_now(),
            last_tried_at=str_to_datetime(data.get("last_tried_at")),
            fetch_count=data.get("fetch_count", 0),
            error_message=data.get("error_message"),
            page_title=data.get("page_title"),
            content_type=data.get("content_type"),
        )


DEFAULT_CRAWLER_NAME = "SourceCrawlerBot"


@dataclass
class CrawlerConfig:
    """Global crawler configuration."""
    max_depth: int = 3
    max_pages_per_source: int = 500
    max_pages_per_run: int = 20
    request_delay_ms: int = 1000
    timeout_ms: int = 15000
    probe_timeout_ms: int = 5000
    respect_robots_txt: bool = True
    min_word_count: int = 200
    min_confidence: float = 0.4
    min_article_word_count: int = 100
    max_redirects: int = 5
    probe_max_redirects: int = 3
    max_sitemap_urls: int = 200
    max_links_per_page: int = 50
    max_content_length: int = 50000
    crawler_name: str = DEFAULT_CRAWLER_NAME
    user_agent: str = f"{DEFAULT_CRAWLER_NAME}/1.0 (+https://github.com/sourcecrawler)"

    def validate(self) -> List[str]:
        """Validate configuration and return errors."""
        errors = []

        if self.max_depth < 0:
            errors.append("max_depth must be non-negative")

        for name in ("max_pages_per_source", "max_pages_per_run", "timeout_ms",
                     "probe_timeout_ms", "max_sitemap_urls", "max_links_per_page",
                     "max_content_length"):
            if getattr(self, name) <= 0:
                errors.append(f"{name} must be positive")

        if self.request_delay_ms < 0:
            errors.append("request_delay_ms must be non-negative")

        for name in ("max_redirects", "probe_max_redirects"):
            if getattr(self, name) < 0:
                errors.append(f"{name} must be non-negative")

        if not 0.0 <= self.min_confidence <= 1.0:
            errors.append("min_confidence must be between 0 and 1")

        if self.min_word_count < 0 or self.min_article_word_count < 0:
            errors.append("word count thresholds must be non-negative")

        if not self.user_agent.strip():
            errors.append("user_agent cannot be empty")

        return errors

    @property
    def request_headers(self) -> Dict[str, str]:
        return {"User-Agent": self.user_agent}
