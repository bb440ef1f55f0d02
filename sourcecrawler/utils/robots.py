"""
robots.txt parsing and path eligibility checks.

Only the subset of the robots exclusion protocol the crawler relies on is
handled: user-agent blocks, Allow/Disallow, Crawl-delay and global Sitemap
directives.
"""
import math
import re
from typing import List, Optional
from urllib.parse import urlparse

from sourcecrawler.models.source_models import DEFAULT_CRAWLER_NAME, RobotsRules


def _is_relevant_agent(token: str, crawler_name: str) -> bool:
    token = token.strip().lower()
    return token == "*" or "bot" in token or token == crawler_name.lower()


def _parse_crawl_delay(value: str) -> Optional[float]:
    try:
        delay = float(value)
    except ValueError:
        return None
    if not math.isfinite(delay) or delay < 0:
        return None
    return delay


def parse_robots_txt(text: str, crawler_name: str = DEFAULT_CRAWLER_NAME) -> RobotsRules:
    """
    Parse robots.txt content into a rules snapshot.

    A user-agent block is relevant when its token is ``*``, contains "bot", or
    equals the crawler name. Sitemap directives are collected regardless of
    the active block.

    Args:
        text: Raw robots.txt body
        crawler_name: Product token of this crawler (without version)

    Returns:
        RobotsRules snapshot
    """
    disallowed: List[str] = []
    allowed: List[str] = []
    sitemaps: List[str] = []
    crawl_delay: Optional[float] = None

    in_block = False
    relevant = False

    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        if ":" not in line:
            continue
        directive, _, value = line.partition(":")
        directive = directive.strip().lower()
        value = value.split("#", 1)[0].strip() if directive != "sitemap" else value.strip()

        if directive == "user-agent":
            in_block = True
            relevant = _is_relevant_agent(value, crawler_name)
        elif directive == "disallow":
            if in_block and relevant and value:
                disallowed.append(value)
        elif directive == "allow":
            if in_block and relevant and value:
                allowed.append(value)
        elif directive == "crawl-delay":
            if in_block and relevant:
                delay = _parse_crawl_delay(value)
                if delay is not None:
                    crawl_delay = delay
        elif directive == "sitemap":
            if value.lower().startswith("http"):
                sitemaps.append(value)

    return RobotsRules(
        disallowed_paths=tuple(disallowed),
        allowed_paths=tuple(allowed),
        crawl_delay_seconds=crawl_delay,
        sitemap_urls=tuple(sitemaps),
    )


def path_matches(url_path: str, pattern: str) -> bool:
    """Match a URL path against one robots pattern."""
    anchored = pattern.endswith("$")

    if "*" in pattern:
        body = pattern[:-1] if anchored else pattern
        regex = ".*".join(re.escape(part) for part in body.split("*"))
        if anchored:
            regex += "$"
        return re.match(regex, url_path) is not None

    if anchored:
        return url_path == pattern[:-1]

    return url_path.startswith(pattern)


def is_path_allowed(url_path: str, rules: Optional[RobotsRules]) -> bool:
    """Allow rules first, then disallow rules, default allowed."""
    if rules is None:
        return True

    for pattern in rules.allowed_paths:
        if path_matches(url_path, pattern):
            return True

    for pattern in rules.disallowed_paths:
        if path_matches(url_path, pattern):
            return False

    return True


def is_url_allowed(url: str, rules: Optional[RobotsRules]) -> bool:
    """Check whether a URL may be crawled under the given rules."""
    try:
        path = urlparse(url).path or "/"
    except ValueError:
        return False
    return is_path_allowed(path, rules)
