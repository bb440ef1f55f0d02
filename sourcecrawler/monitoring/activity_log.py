"""
Activity event logging for the source crawler.
"""
import asyncio
import json
import os
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from loguru import logger

from sourcecrawler.interfaces.crawl_interfaces import IActivityLog

SOURCE_INITIALIZED = "SOURCE_INITIALIZED"
ARTICLE_DISCOVERED = "ARTICLE_DISCOVERED"
CRAWL_COMPLETED = "CRAWL_COMPLETED"


class ActivityLogger(IActivityLog):
    """Records activity events to loguru, an in-memory ring and an optional JSONL file."""

    def __init__(self, events_file: Optional[str] = None, max_events: int = 1000):
        """Initialize the activity logger.

        Args:
            events_file: Optional path of a JSON-lines file to append events to
            max_events: Number of recent events kept in memory
        """
        self.events_file = events_file
        self.events: Deque[Dict[str, Any]] = deque(maxlen=max_events)

        if self.events_file:
            directory = os.path.dirname(self.events_file)
            if directory:
                os.makedirs(directory, exist_ok=True)

    async def log_event(self, event_type: str, message: str,
                        entity_type: Optional[str] = None,
                        entity_id: Optional[str] = None,
                        metadata: Optional[Dict[str, Any]] = None) -> None:
        event = {
            "event_type": event_type,
            "message": message,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "metadata": metadata or {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        self.events.append(event)
        logger.bind(event_type=event_type, entity_id=entity_id).info(f"📣 {event_type}: {message}")

        if self.events_file:
            await asyncio.to_thread(self._append_line, json.dumps(event, default=str))

    def _append_line(self, line: str) -> None:
        with open(self.events_file, 'a', encoding='utf-8') as f:
            f.write(line + "\n")

    def recent_events(self, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        if event_type is None:
            return list(self.events)
        return [e for e in self.events if e["event_type"] == event_type]


async def safe_log_event(activity_log: Optional[IActivityLog], event_type: str, message: str,
                         entity_type: Optional[str] = None,
                         entity_id: Optional[str] = None,
                         metadata: Optional[Dict[str, Any]] = None) -> None:
    """Log an activity event; failures are reported but never raised."""
    if activity_log is None:
        return
    try:
        await activity_log.log_event(event_type, message, entity_type, entity_id, metadata)
    except Exception as e:
        logger.warning(f"⚠️ Failed to record activity event {event_type}: {e}")
