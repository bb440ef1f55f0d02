"""
In-process crawl store with an optional JSON snapshot.

All mutations run under one asyncio lock so that upsert-ignore and
conditional status transitions are atomic within the process.
"""
import asyncio
import json
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from sourcecrawler.interfaces.crawl_interfaces import (
    DuplicateArticleError, ICrawlStore, StorageError,
)
from sourcecrawler.models.article_models import Article
from sourcecrawler.models.source_models import (
    CrawlQueueEntry, CrawlStatus, DiscoveredSitemap, SitemapStatus, Source,
    is_transition_allowed,
)

_SOURCE_IMMUTABLE = {"id"}
_SITEMAP_IMMUTABLE = {"source_id", "sitemap_url"}
_ENTRY_IMMUTABLE = {"id", "source_id", "url", "depth", "discovered_at", "status"}


class InMemoryCrawlStore(ICrawlStore):
    """
    Dictionary-backed store.

    When ``snapshot_path`` is given, the previous snapshot is loaded on
    construction and ``save()`` writes the current state back.
    """

    def __init__(self, snapshot_path: Optional[str] = None):
        self.snapshot_path = Path(snapshot_path) if snapshot_path else None
        self._lock = asyncio.Lock()
        self._sources: Dict[str, Source] = {}
        self._entries: Dict[str, CrawlQueueEntry] = {}
        self._entry_index: Dict[Tuple[str, str], str] = {}
        self._sitemaps: Dict[Tuple[str, str], DiscoveredSitemap] = {}
        self._articles: Dict[Tuple[str, str], Article] = {}

        if self.snapshot_path is not None:
            self._load_snapshot()

    # Snapshot

    def _load_snapshot(self) -> None:
        if not self.snapshot_path.exists():
            logger.info("📝 No existing crawl snapshot found, starting fresh")
            return

        try:
            with open(self.snapshot_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"❌ Failed to load crawl snapshot {self.snapshot_path}: {e}")
            return

        for item in data.get("sources", []):
            source = Source.from_dict(item)
            self._sources[source.id] = source
        for item in data.get("queue", []):
            entry = CrawlQueueEntry.from_dict(item)
            self._entries[entry.id] = entry
            self._entry_index[(entry.source_id, entry.url)] = entry.id
        for item in data.get("sitemaps", []):
            sitemap = DiscoveredSitemap.from_dict(item)
            self._sitemaps[(sitemap.source_id, sitemap.sitemap_url)] = sitemap
        for item in data.get("articles", []):
            article = Article(**item)
            self._articles[(article.source_id, article.url)] = article

        logger.info(
            f"✅ Loaded crawl snapshot: {len(self._sources)} sources, "
            f"{len(self._entries)} queue entries, {len(self._articles)} articles"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sources": [s.to_dict() for s in self._sources.values()],
            "queue": [e.to_dict() for e in self._entries.values()],
            "sitemaps": [s.to_dict() for s in self._sitemaps.values()],
            "articles": [a.to_dict() for a in self._articles.values()],
        }

    async def save(self) -> bool:
        """Write the current state to the snapshot file."""
        if self.snapshot_path is None:
            return False

        async with self._lock:
            data = self.to_dict()

        try:
            self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.snapshot_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.error(f"❌ Failed to save crawl snapshot: {e}")
            return False

        logger.debug(f"💾 Saved crawl snapshot to {self.snapshot_path}")
        return True

    # Sources

    async def get_source(self, source_id: str) -> Optional[Source]:
        return self._sources.get(source_id)

    async def list_active_sources(self) -> List[Source]:
        return [s for s in self._sources.values() if s.active]

    async def list_sources(self) -> List[Source]:
        return list(self._sources.values())

    async def save_source(self, source: Source) -> Source:
        async with self._lock:
            self._sources[source.id] = source
        return source

    async def update_source(self, source_id: str, **fields: Any) -> Optional[Source]:
        bad = set(fields) & _SOURCE_IMMUTABLE
        if bad:
            raise StorageError(f"Cannot update source fields: {sorted(bad)}", source_id=source_id)

        async with self._lock:
            source = self._sources.get(source_id)
            if source is None:
                return None
            updated = replace(source, **fields)
            self._sources[source_id] = updated
            return updated

    async def delete_source(self, source_id: str) -> bool:
        async with self._lock:
            if self._sources.pop(source_id, None) is None:
                return False
            self._delete_entries_locked(source_id)
            for key in [k for k in self._sitemaps if k[0] == source_id]:
                del self._sitemaps[key]
            for key in [k for k in self._articles if k[0] == source_id]:
                del self._articles[key]
            return True

    # Crawl queue

    async def add_queue_entries(self, source_id: str, urls: Iterable[str], depth: int,
                                max_total: Optional[int] = None) -> int:
        created = 0
        async with self._lock:
            total = sum(1 for key in self._entry_index if key[0] == source_id)
            for url in urls:
                if max_total is not None and total >= max_total:
                    break
                key = (source_id, url)
                if key in self._entry_index:
                    continue
                entry = CrawlQueueEntry(source_id=source_id, url=url, depth=depth)
                self._entries[entry.id] = entry
                self._entry_index[key] = entry.id
                total += 1
                created += 1
        return created

    async def get_pending_entries(self, source_id: str, limit: int) -> List[CrawlQueueEntry]:
        pending = [
            e for e in self._entries.values()
            if e.source_id == source_id and e.status == CrawlStatus.PENDING
        ]
        pending.sort(key=lambda e: (e.depth, e.discovered_at))
        return pending[:max(0, limit)]

    async def get_queue_entry(self, entry_id: str) -> Optional[CrawlQueueEntry]:
        return self._entries.get(entry_id)

    async def list_queue_entries(self, source_id: str) -> List[CrawlQueueEntry]:
        entries = [e for e in self._entries.values() if e.source_id == source_id]
        entries.sort(key=lambda e: (e.depth, e.discovered_at))
        return entries

    async def transition_entry(self, entry_id: str, expected: Sequence[CrawlStatus],
                               new_status: CrawlStatus, **fields: Any) -> bool:
        bad = set(fields) & _ENTRY_IMMUTABLE
        if bad:
            raise StorageError(f"Cannot update queue entry fields: {sorted(bad)}")

        async with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None or entry.status not in expected:
                return False
            if not is_transition_allowed(entry.status, new_status):
                return False
            self._entries[entry_id] = replace(entry, status=new_status, **fields)
            return True

    async def count_queue_entries(self, source_id: str) -> int:
        return sum(1 for key in self._entry_index if key[0] == source_id)

    async def count_entries_by_status(self, source_id: str) -> Dict[CrawlStatus, int]:
        counts = {status: 0 for status in CrawlStatus}
        for entry in self._entries.values():
            if entry.source_id == source_id:
                counts[entry.status] += 1
        return counts

    def _delete_entries_locked(self, source_id: str) -> int:
        doomed = [entry_id for key, entry_id in self._entry_index.items() if key[0] == source_id]
        for entry_id in doomed:
            entry = self._entries.pop(entry_id)
            del self._entry_index[(entry.source_id, entry.url)]
        return len(doomed)

    async def delete_queue_entries(self, source_id: str) -> int:
        async with self._lock:
            return self._delete_entries_locked(source_id)

    # Sitemaps

    async def upsert_sitemaps(self, sitemaps: Iterable[DiscoveredSitemap]) -> int:
        created = 0
        async with self._lock:
            for sitemap in sitemaps:
                key = (sitemap.source_id, sitemap.sitemap_url)
                if key in self._sitemaps:
                    continue
                self._sitemaps[key] = sitemap
                created += 1
        return created

    async def list_sitemaps(self, source_id: str,
                            status: Optional[SitemapStatus] = None) -> List[DiscoveredSitemap]:
        return [
            s for s in self._sitemaps.values()
            if s.source_id == source_id and (status is None or s.status == status)
        ]

    async def update_sitemap(self, owner_id: str, url: str, **fields: Any) -> bool:
        bad = set(fields) & _SITEMAP_IMMUTABLE
        if bad:
            raise StorageError(f"Cannot update sitemap fields: {sorted(bad)}", source_id=owner_id)

        async with self._lock:
            key = (owner_id, url)
            sitemap = self._sitemaps.get(key)
            if sitemap is None:
                return False
            self._sitemaps[key] = replace(sitemap, **fields)
            return True

    async def reset_sitemaps(self, source_id: str) -> int:
        count = 0
        async with self._lock:
            for key, sitemap in list(self._sitemaps.items()):
                if key[0] == source_id:
                    self._sitemaps[key] = replace(sitemap, status=SitemapStatus.PENDING,
                                                  error_message=None)
                    count += 1
        return count

    async def delete_sitemaps(self, source_id: str) -> int:
        async with self._lock:
            doomed = [key for key in self._sitemaps if key[0] == source_id]
            for key in doomed:
                del self._sitemaps[key]
            return len(doomed)

    # Articles

    async def get_article_by_url(self, source_id: str, url: str) -> Optional[Article]:
        return self._articles.get((source_id, url))

    async def create_article(self, article: Article) -> Article:
        async with self._lock:
            key = (article.source_id, article.url)
            if key in self._articles:
                raise DuplicateArticleError(f"Article already exists for {article.url}",
                                            source_id=article.source_id)
            self._articles[key] = article
        return article

    async def list_articles(self, source_id: Optional[str] = None) -> List[Article]:
        return [a for a in self._articles.values() if source_id is None or a.source_id == source_id]
