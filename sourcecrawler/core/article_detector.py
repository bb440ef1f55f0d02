"""
Heuristic article detection.

A page is scored by summing the weights of an ordered rule table over a set
of signals computed once per page. The detector never raises for malformed
input; the worst case is a non-article result.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Pattern, Sequence, Tuple
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from dateutil import parser as date_parser
from loguru import logger

from sourcecrawler.models.article_models import DetectionResult


ARTICLE_URL_PATTERNS = [
    re.compile(r'/blog/', re.I),
    re.compile(r'/posts?/', re.I),
    re.compile(r'/news/', re.I),
    re.compile(r'/articles?/', re.I),
    re.compile(r'/insights?/', re.I),
    re.compile(r'/stor(y|ies)/', re.I),
    re.compile(r'/updates?/', re.I),
    re.compile(r'/announcements?/', re.I),
    re.compile(r'/press-releases?/', re.I),
    re.compile(r'/\d{4}/\d{2}/'),
    re.compile(r'/\d{4}-\d{2}-\d{2}'),
]

NON_ARTICLE_URL_PATTERNS = [
    re.compile(r'^/?(category|tag|author|page|search|login|register|cart|checkout|account)', re.I),
    re.compile(r'\.(jpg|png|gif|pdf|zip|css|js)$', re.I),
    re.compile(r'^/?(about|contact|privacy|terms|faq|help|support)$', re.I),
]

DATE_TEXT_PATTERNS = [
    re.compile(r'\b\d{4}[-/]\d{2}[-/]\d{2}\b'),
    re.compile(r'\b(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]* \d{1,2},? \d{4}\b', re.I),
    re.compile(r'\b\d{1,2} (?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]* \d{4}\b', re.I),
]

CONTENT_SELECTORS = [
    'article',
    '[role="article"]',
    '.post-content',
    '.article-content',
    '.entry-content',
    '.blog-content',
    '.content-body',
    '.post-body',
    'main .content',
    '#content article',
    '.single-post',
]

EXCLUDE_SELECTORS = [
    'nav',
    'header',
    'footer',
    'aside',
    '.sidebar',
    '.comments',
    '.related-posts',
    '.social-share',
    '.author-bio',
    '.advertisement',
    '.ad',
    'script',
    'style',
    'noscript',
]

ARTICLE_SCHEMA_PATTERN = re.compile(r'"@type"\s*:\s*"(Article|BlogPosting|NewsArticle)"')
TITLE_SEPARATOR = re.compile(r'\s*[|–—]\s*')
WHITESPACE = re.compile(r'\s+')

MODERATE_WORD_COUNT = 100


@dataclass
class PageSignals:
    """Everything the scoring rules look at, computed once per page."""
    url_path: str = ""
    article_url_pattern: Optional[str] = None
    slug_like: bool = False
    non_article_url_pattern: Optional[str] = None
    has_article_element: bool = False
    content: str = ""
    word_count: int = 0
    title: Optional[str] = None
    published_at: Optional[datetime] = None
    author: Optional[str] = None
    summary: Optional[str] = None
    has_published_time_meta: bool = False
    has_author_meta: bool = False
    has_article_schema: bool = False


@dataclass(frozen=True)
class ScoringRule:
    """One weighted signal; ``reason`` is formatted with the page signals as ``s``."""
    name: str
    weight: float
    predicate: Callable[[PageSignals], bool]
    reason: str
    url_only: bool = False

    def applies(self, signals: PageSignals) -> bool:
        return bool(self.predicate(signals))

    def describe(self, signals: PageSignals) -> str:
        return self.reason.format(s=signals)


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _collapse(text: Optional[str]) -> str:
    return WHITESPACE.sub(' ', text or '').strip()


class ArticleDetector:
    """Scores fetched pages and extracts their article fields."""

    def __init__(self, min_word_count: int = 200, min_confidence: float = 0.4,
                 min_article_word_count: int = MODERATE_WORD_COUNT,
                 url_patterns: Optional[Sequence[Pattern]] = None,
                 content_selectors: Optional[Sequence[str]] = None,
                 exclude_selectors: Optional[Sequence[str]] = None):
        self.min_word_count = min_word_count
        self.min_confidence = _clamp(min_confidence)
        self.min_article_word_count = min_article_word_count
        self.url_patterns = list(url_patterns or ARTICLE_URL_PATTERNS)
        self.content_selectors = list(content_selectors or CONTENT_SELECTORS)
        self.exclude_selectors = list(exclude_selectors or EXCLUDE_SELECTORS)
        self.rules = self._build_rules()

    def _build_rules(self) -> List[ScoringRule]:
        return [
            ScoringRule("article_url", 0.15, lambda s: s.article_url_pattern is not None,
                        "URL matches article pattern: {s.article_url_pattern}", url_only=True),
            ScoringRule("slug_url", 0.10, lambda s: s.slug_like,
                        "URL has slug-like structure", url_only=True),
            ScoringRule("article_element", 0.20, lambda s: s.has_article_element,
                        "Has <article> element"),
            ScoringRule("sufficient_words", 0.20, lambda s: s.word_count >= self.min_word_count,
                        "Sufficient word count ({s.word_count} words)"),
            ScoringRule("moderate_words", 0.10,
                        lambda s: MODERATE_WORD_COUNT <= s.word_count < self.min_word_count,
                        "Moderate word count ({s.word_count} words)"),
            ScoringRule("title", 0.10, lambda s: bool(s.title) and len(s.title) > 10,
                        "Has meaningful title"),
            ScoringRule("publish_date", 0.15, lambda s: s.published_at is not None,
                        "Has publish date"),
            ScoringRule("author", 0.10, lambda s: bool(s.author),
                        "Has author attribution"),
            ScoringRule("published_time_meta", 0.10, lambda s: s.has_published_time_meta,
                        "Has Open Graph article metadata"),
            ScoringRule("author_meta", 0.05, lambda s: s.has_author_meta,
                        "Has author meta tag"),
            ScoringRule("article_schema", 0.15, lambda s: s.has_article_schema,
                        "Has Article schema markup"),
            ScoringRule("non_article_url", -0.20, lambda s: s.non_article_url_pattern is not None,
                        "URL matches non-article pattern: {s.non_article_url_pattern}", url_only=True),
        ]

    def set_min_word_count(self, count: int) -> None:
        self.min_word_count = max(0, int(count))

    def set_min_confidence(self, confidence: float) -> None:
        self.min_confidence = _clamp(float(confidence))

    def set_min_article_word_count(self, count: int) -> None:
        self.min_article_word_count = max(0, int(count))

    def score(self, signals: PageSignals, rules: Optional[Sequence[ScoringRule]] = None) -> Tuple[float, List[str]]:
        """Sum the weights of matching rules and clamp to [0, 1]."""
        total = 0.0
        reasons = []
        for rule in (rules if rules is not None else self.rules):
            if rule.applies(signals):
                total += rule.weight
                reasons.append(rule.describe(signals))
        return _clamp(round(total, 4)), reasons

    def analyze_page_content(self, url: str, html: str) -> DetectionResult:
        """
        Classify a page and extract its article fields.

        Args:
            url: Final page URL
            html: Raw HTML body

        Returns:
            DetectionResult with confidence in [0, 1]
        """
        signals = self.compute_signals(url, html)
        confidence, reasons = self.score(signals)
        is_article = confidence >= self.min_confidence and signals.word_count >= self.min_article_word_count

        logger.debug(
            f"Article detection for {url}: article={is_article} confidence={confidence:.2f} "
            f"words={signals.word_count}"
        )

        return DetectionResult(
            is_article=is_article,
            confidence=confidence,
            content=signals.content,
            word_count=signals.word_count,
            title=signals.title,
            published_at=signals.published_at,
            author=signals.author,
            summary=signals.summary,
            reasons=reasons,
        )

    def quick_url_check(self, url: str) -> Tuple[bool, float]:
        """Score a URL without fetching it. Returns (likely_article, score)."""
        signals = self._url_signals(url)
        score, _ = self.score(signals, [rule for rule in self.rules if rule.url_only])
        return score >= 0.1, score

    def compute_signals(self, url: str, html: str) -> PageSignals:
        html = html or ""
        signals = self._url_signals(url)

        soup = BeautifulSoup(html, 'html.parser')
        signals.has_article_element = bool(soup.find('article') or soup.select_one('[role="article"]'))
        signals.title = self._extract_title(soup)
        signals.author = self._extract_author(soup)
        signals.summary = self._extract_summary(soup)
        signals.has_published_time_meta = soup.find('meta', attrs={'property': 'article:published_time'}) is not None
        signals.has_author_meta = soup.find('meta', attrs={'name': 'author'}) is not None
        signals.has_article_schema = ARTICLE_SCHEMA_PATTERN.search(html) is not None

        content_soup = BeautifulSoup(html, 'html.parser')
        self._strip_boilerplate(content_soup)
        signals.content = self._extract_main_content(content_soup)
        signals.word_count = len(signals.content.split())
        signals.published_at = self._extract_publish_date(soup, content_soup)

        return signals

    def _url_signals(self, url: str) -> PageSignals:
        signals = PageSignals()
        try:
            path = urlparse(url).path or "/"
        except ValueError:
            return signals
        signals.url_path = path

        for pattern in self.url_patterns:
            if pattern.search(path):
                signals.article_url_pattern = pattern.pattern
                break

        parts = [part for part in path.split('/') if part]
        last_part = parts[-1] if parts else ''
        signals.slug_like = '-' in last_part and len(last_part) > 10

        for pattern in NON_ARTICLE_URL_PATTERNS:
            if pattern.search(path):
                signals.non_article_url_pattern = pattern.pattern
                break

        return signals

    def _strip_boilerplate(self, soup: BeautifulSoup) -> None:
        for selector in self.exclude_selectors:
            for element in soup.select(selector):
                if not element.decomposed:
                    element.decompose()

    def _extract_main_content(self, soup: BeautifulSoup) -> str:
        container = None
        for selector in self.content_selectors:
            container = soup.select_one(selector)
            if container is not None:
                break

        if container is None:
            container = soup.body or soup

        return _collapse(container.get_text(' '))

    @staticmethod
    def _meta_content(soup: BeautifulSoup, **attrs) -> Optional[str]:
        tag = soup.find('meta', attrs=attrs)
        if tag is None:
            return None
        return tag.get('content')

    def _extract_title(self, soup: BeautifulSoup) -> Optional[str]:
        h1 = soup.find('h1')
        title_tag = soup.find('title')
        candidates = [
            self._meta_content(soup, property='og:title'),
            self._meta_content(soup, name='twitter:title'),
            h1.get_text(' ') if h1 else None,
            title_tag.get_text(' ') if title_tag else None,
        ]

        for candidate in candidates:
            text = _collapse(candidate)
            if text:
                title = TITLE_SEPARATOR.split(text)[0].strip()
                return title or None
        return None

    def _extract_author(self, soup: BeautifulSoup) -> Optional[str]:
        def text_of(selector: str) -> Optional[str]:
            element = soup.select_one(selector)
            return element.get_text(' ') if element else None

        candidates = [
            self._meta_content(soup, name='author'),
            self._meta_content(soup, property='article:author'),
            text_of('[rel="author"]'),
            text_of('.author-name'),
            text_of('.byline'),
            text_of('[itemprop="author"]'),
        ]

        for candidate in candidates:
            text = _collapse(candidate)
            if text and len(text) < 100:
                return text
        return None

    def _extract_summary(self, soup: BeautifulSoup) -> Optional[str]:
        candidates = [
            self._meta_content(soup, property='og:description'),
            self._meta_content(soup, name='description'),
            self._meta_content(soup, name='twitter:description'),
        ]
        for candidate in candidates:
            text = (candidate or '').strip()
            if text:
                return text
        return None

    def _extract_publish_date(self, soup: BeautifulSoup, content_soup: BeautifulSoup) -> Optional[datetime]:
        time_with_datetime = soup.find('time', attrs={'datetime': True})
        time_pubdate = soup.find('time', attrs={'pubdate': True})
        candidates = [
            self._meta_content(soup, property='article:published_time'),
            self._meta_content(soup, name='date'),
            self._meta_content(soup, name='publish-date'),
            time_with_datetime.get('datetime') if time_with_datetime else None,
            time_pubdate.get('datetime') if time_pubdate else None,
        ]

        for candidate in candidates:
            parsed = self._parse_date(candidate)
            if parsed:
                return parsed

        body = content_soup.body or content_soup
        body_text = body.get_text(' ')
        for pattern in DATE_TEXT_PATTERNS:
            match = pattern.search(body_text)
            if match:
                parsed = self._parse_date(match.group(0))
                if parsed:
                    return parsed
        return None

    @staticmethod
    def _parse_date(value: Optional[str]) -> Optional[datetime]:
        if not value or not value.strip():
            return None
        try:
            parsed = date_parser.parse(value.strip())
        except (ValueError, OverflowError):
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
