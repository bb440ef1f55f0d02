"""
URL eligibility and normalization helpers shared by frontier seeding and link extraction.
"""
import re
from typing import Optional, Tuple
from urllib.parse import urlparse, urlunparse

from sourcecrawler.models.source_models import RobotsRules
from sourcecrawler.utils.robots import is_url_allowed


STATIC_EXTENSIONS = (
    # images
    '.jpg', '.jpeg', '.png', '.gif', '.svg', '.webp', '.ico',
    # documents
    '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',
    # archives
    '.zip', '.rar', '.tar', '.gz',
    # code and data
    '.css', '.js', '.json', '.xml',
    # media
    '.mp3', '.mp4', '.wav', '.avi', '.mov',
    # fonts
    '.woff', '.woff2', '.ttf', '.eot',
)

NON_CONTENT_PATTERNS = [
    re.compile(r'^/?(wp-admin|wp-includes|wp-content/plugins)'),
    re.compile(r'^/?(admin|login|logout|register|signup|signin)'),
    re.compile(r'^/?(cart|checkout|account|my-account)'),
    re.compile(r'^/?(search|tag|category|author)/?\?'),
    re.compile(r'^/?(privacy|terms|cookie|legal)'),
    re.compile(r'[?&](utm_|fbclid|gclid|ref=)'),
]


def get_hostname(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def get_origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def is_same_host(url: str, home_url: str) -> bool:
    host = get_hostname(url)
    return bool(host) and host == get_hostname(home_url)


def has_static_extension(url: str) -> bool:
    try:
        path = urlparse(url).path.lower()
    except ValueError:
        return True
    return path.endswith(STATIC_EXTENSIONS)


def should_crawl_url(url: str) -> bool:
    """
    Check static-file extensions and known non-content paths.

    Hostname and robots checks are separate; see ``eligible_link``.
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return False

    if parsed.scheme not in ("http", "https"):
        return False

    path = parsed.path.lower()
    if path.endswith(STATIC_EXTENSIONS):
        return False

    target = path + ("?" + parsed.query.lower() if parsed.query else "")
    return not any(pattern.search(target) for pattern in NON_CONTENT_PATTERNS)


def normalize_url(url: str) -> str:
    """
    Reduce a URL to origin plus path, without a single trailing slash.

    Query and fragment are dropped; query-based filters must see the raw URL.
    """
    parsed = urlparse(url)
    path = parsed.path
    if path.endswith("/"):
        path = path[:-1]
    return urlunparse((parsed.scheme, parsed.netloc, path, "", "", ""))


def eligible_link(url: str, home_url: str, robots_rules: Optional[RobotsRules] = None,
                  respect_robots: bool = True) -> Optional[str]:
    """
    Apply the link eligibility rule.

    Returns:
        The normalized URL when eligible, otherwise None
    """
    if not is_same_host(url, home_url):
        return None
    if not should_crawl_url(url):
        return None
    if respect_robots and robots_rules is not None and not is_url_allowed(url, robots_rules):
        return None
    return normalize_url(url)


def validate_and_normalize_url(url: str) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Validate a registration URL.

    Returns:
        Tuple of (valid, normalized_url, error)
    """
    try:
        parsed = urlparse((url or "").strip())
    except ValueError:
        return False, None, "Invalid URL format"

    if parsed.scheme not in ("http", "https"):
        return False, None, "URL must use HTTP or HTTPS protocol"
    if not parsed.netloc:
        return False, None, "Invalid URL format"

    path = parsed.path or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return True, f"{parsed.scheme}://{parsed.netloc}{path}", None
