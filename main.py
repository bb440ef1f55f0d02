# main.py
"""
Command-line runner for the source crawler.

Loads configuration, registers sources from YAML and runs crawl cycles on an
interval. The frontier is snapshotted to disk after every cycle so a restart
resumes where the previous run stopped.
"""
import argparse
import asyncio
import json
import os
import sys
import time
from datetime import datetime

from loguru import logger

from sourcecrawler.core import ArticleDetector, CrawlEngine, HttpFetchClient, SourceDiscovery
from sourcecrawler.interfaces import ConfigurationError, SourceNotFoundError
from sourcecrawler.monitoring import ActivityLogger
from sourcecrawler.storage import InMemoryCrawlStore
from sourcecrawler.utils import load_crawler_config, load_sources_config

# Define path to config
CONFIG_PATH = os.path.join(os.path.dirname(__file__), 'config', 'crawler.yaml')
DATA_DIR = os.path.join(os.path.dirname(__file__), 'data')

# Constants
CRAWL_INTERVAL_SECONDS = 3600  # Crawl sources every hour

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "INFO"):
    logger.remove()
    logger.add(sys.stdout, format=LOG_FORMAT, level=level)
    logger.add(os.path.join("logs", "crawler_{time}.log"), rotation="1 day", retention="7 days", level="INFO")


async def register_sources(store: InMemoryCrawlStore, config_path: str) -> int:
    """Add sources from YAML that the store does not know yet."""
    registered = 0
    for source in load_sources_config(config_path):
        if await store.get_source(source.id) is None:
            await store.save_source(source)
            registered += 1
            logger.info(f"📡 Registered source {source.id}: {source.home_url}")
    return registered


def build_engine(config, store, activity_log):
    fetch_client = HttpFetchClient(config)
    discovery = SourceDiscovery(fetch_client, config, store, activity_log)
    detector = ArticleDetector(
        min_word_count=config.min_word_count,
        min_confidence=config.min_confidence,
        min_article_word_count=config.min_article_word_count,
    )
    return CrawlEngine(store, fetch_client, discovery, detector, activity_log, config)


async def main_loop(args):
    """Run crawl cycles until interrupted (or once with --once)."""
    config = load_crawler_config(args.config)
    store = InMemoryCrawlStore(os.path.join(DATA_DIR, 'crawl_state.json'))
    activity_log = ActivityLogger(os.path.join(DATA_DIR, 'activity.jsonl'))
    engine = build_engine(config, store, activity_log)

    await register_sources(store, args.config)

    try:
        if args.stats:
            for source in await store.list_sources():
                stats = await engine.get_crawl_stats(source.id)
                logger.info(f"📊 {source.id}: {json.dumps(stats.to_dict())}")
            return

        if args.reset:
            await engine.reset_crawl_queue(args.reset)
            await store.save()
            return

        if args.rediscover:
            await engine.rediscover_source(args.rediscover)
            await store.save()
            return

        if args.discover:
            result = await engine.discovery.discover_source(args.discover)
            logger.info(f"🔎 Feeds: {[f.url for f in result.feeds]}")
            logger.info(f"🗺️ Sitemaps: {[s.sitemap_url for s in result.sitemaps]}")
            logger.info(f"🤖 Robots: {json.dumps(result.robots_rules.to_dict())}")
            logger.info(f"💡 Suggested type: {result.suggested_type.value}")
            return

        while True:
            start_time = time.monotonic()
            logger.info("=" * 60)
            logger.info("🔄 Starting New Crawl Cycle")
            logger.info(f"⏰ Current time: {datetime.now()}")

            results = await engine.run_crawl_cycle()
            for result in results:
                logger.info(
                    f"  📡 {result.source_id}: {result.pages_processed} pages, "
                    f"{result.articles_found} articles, {result.links_discovered} links, "
                    f"{len(result.errors)} errors"
                )
            await store.save()

            if args.once:
                break

            elapsed_time = time.monotonic() - start_time
            sleep_duration = max(0, args.interval - elapsed_time)
            logger.info(f"😴 Sleeping for {sleep_duration:.2f} seconds...")
            await asyncio.sleep(sleep_duration)

    except KeyboardInterrupt:
        logger.info("⚠️ Received interrupt signal. Shutting down crawler...")
        await store.save()
    finally:
        await engine.fetch_client.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Source crawler: discovery, frontier crawling and article detection")
    parser.add_argument("--config", default=CONFIG_PATH, help="Path to the YAML configuration file")
    parser.add_argument("--once", action="store_true", help="Run a single crawl cycle and exit")
    parser.add_argument("--interval", type=int, default=CRAWL_INTERVAL_SECONDS, help="Seconds between crawl cycles")
    parser.add_argument("--stats", action="store_true", help="Print crawl statistics per source and exit")
    parser.add_argument("--reset", metavar="SOURCE_ID", help="Reset the crawl queue of a source and exit")
    parser.add_argument("--rediscover", metavar="SOURCE_ID", help="Re-run discovery for a source and exit")
    parser.add_argument("--discover", metavar="URL", help="Run discovery for a homepage URL and exit")
    parser.add_argument("--log-level", default="INFO", help="Console log level")
    args = parser.parse_args()

    configure_logging(args.log_level)
    os.makedirs(DATA_DIR, exist_ok=True)

    try:
        logger.info("🚀 Starting source crawler...")
        asyncio.run(main_loop(args))
    except ConfigurationError as e:
        logger.error(f"❌ {e}")
        sys.exit(2)
    except SourceNotFoundError as e:
        logger.error(f"❌ {e}")
        sys.exit(1)
