"""
Sitemap XML parsing.
"""
from typing import List
from xml.etree import ElementTree

from loguru import logger

from sourcecrawler.interfaces.crawl_interfaces import SitemapParseError


def _local_name(tag: str) -> str:
    return tag.rsplit('}', 1)[-1] if isinstance(tag, str) else ''


def parse_sitemap_urls(xml_content: str, sitemap_url: str = "") -> List[str]:
    """
    Extract page URLs from a ``urlset`` sitemap.

    A ``sitemapindex`` yields no URLs; nested sitemaps are not followed.

    Raises:
        SitemapParseError: if the body is not sitemap XML
    """
    try:
        root = ElementTree.fromstring((xml_content or "").strip())
    except ElementTree.ParseError as e:
        raise SitemapParseError(f"Invalid sitemap XML at {sitemap_url}: {e}", cause=e)

    root_name = _local_name(root.tag)
    if root_name == 'sitemapindex':
        logger.debug(f"Skipping nested sitemaps in index {sitemap_url}")
        return []
    if root_name != 'urlset':
        raise SitemapParseError(f"Unexpected sitemap root <{root_name}> at {sitemap_url}")

    urls = []
    for url_element in root:
        if _local_name(url_element.tag) != 'url':
            continue
        for child in url_element:
            if _local_name(child.tag) == 'loc' and child.text and child.text.strip():
                urls.append(child.text.strip())
                break
    return urls
