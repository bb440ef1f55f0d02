"""
Unit tests for link eligibility and URL normalization.
"""
import pytest

from sourcecrawler.models.source_models import RobotsRules
from sourcecrawler.utils.url_filters import (
    STATIC_EXTENSIONS, eligible_link, is_same_host, normalize_url,
    should_crawl_url, validate_and_normalize_url,
)

HOME = "https://blog.example.com"


class TestShouldCrawlUrl:
    """Tests for static-file and non-content filtering."""

    @pytest.mark.unit
    @pytest.mark.parametrize("extension", STATIC_EXTENSIONS)
    def test_static_extensions_never_eligible(self, extension):
        url = f"{HOME}/assets/file{extension}"
        assert not should_crawl_url(url)
        assert eligible_link(url, HOME) is None

    @pytest.mark.unit
    def test_static_extension_is_case_insensitive(self):
        assert not should_crawl_url(f"{HOME}/images/PHOTO.JPG")

    @pytest.mark.unit
    @pytest.mark.parametrize("path", [
        "/wp-admin/options.php",
        "/login",
        "/cart",
        "/my-account/orders",
        "/privacy-policy",
        "/search?q=python",
        "/tag/?page=2",
        "/posts/hello?utm_source=twitter",
        "/posts/hello?a=1&fbclid=abc",
    ])
    def test_non_content_paths(self, path):
        assert not should_crawl_url(HOME + path)

    @pytest.mark.unit
    @pytest.mark.parametrize("path", [
        "/blog/my-first-post",
        "/tag/python",
        "/2024/01/new-release",
        "/posts/hello?page=2",
    ])
    def test_content_paths(self, path):
        assert should_crawl_url(HOME + path)

    @pytest.mark.unit
    def test_non_http_schemes(self):
        assert not should_crawl_url("mailto:someone@example.com")
        assert not should_crawl_url("javascript:void(0)")
        assert not should_crawl_url("ftp://blog.example.com/file")


class TestEligibleLink:
    """Tests for the combined eligibility rule."""

    @pytest.mark.unit
    def test_same_host_only(self):
        assert eligible_link("https://other.example.com/blog/post", HOME) is None
        assert eligible_link("https://BLOG.example.com/blog/post", HOME) == "https://BLOG.example.com/blog/post"

    @pytest.mark.unit
    def test_normalizes_fragment_and_trailing_slash(self):
        assert eligible_link(f"{HOME}/blog/post/#comments", HOME) == f"{HOME}/blog/post"

    @pytest.mark.unit
    def test_robots_rules_applied_when_enabled(self):
        rules = RobotsRules(disallowed_paths=("/drafts",))
        assert eligible_link(f"{HOME}/drafts/x", HOME, rules) is None
        assert eligible_link(f"{HOME}/drafts/x", HOME, rules, respect_robots=False) == f"{HOME}/drafts/x"


class TestNormalization:
    """Tests for normalize_url and validate_and_normalize_url."""

    @pytest.mark.unit
    def test_normalize_drops_query(self):
        assert normalize_url(f"{HOME}/list/?page=2#top") == f"{HOME}/list"

    @pytest.mark.unit
    def test_query_variants_share_one_key(self):
        variants = {
            eligible_link(f"{HOME}/blog/post-one", HOME),
            eligible_link(f"{HOME}/blog/post-one?replytocom=1", HOME),
            eligible_link(f"{HOME}/blog/post-one/?share=twitter", HOME),
        }
        assert variants == {f"{HOME}/blog/post-one"}

    @pytest.mark.unit
    def test_tracking_query_checked_before_normalizing(self):
        assert eligible_link(f"{HOME}/blog/post-one?utm_source=feed", HOME) is None

    @pytest.mark.unit
    def test_normalize_root(self):
        assert normalize_url(f"{HOME}/") == HOME

    @pytest.mark.unit
    def test_is_same_host(self):
        assert is_same_host(f"{HOME}/a", HOME)
        assert not is_same_host("https://example.com/a", HOME)

    @pytest.mark.unit
    def test_validate_rejects_non_http(self):
        valid, normalized, error = validate_and_normalize_url("ftp://blog.example.com")
        assert not valid
        assert normalized is None
        assert "HTTP" in error

    @pytest.mark.unit
    def test_validate_rejects_garbage(self):
        valid, _, error = validate_and_normalize_url("not a url")
        assert not valid
        assert error

    @pytest.mark.unit
    def test_validate_strips_trailing_slash_and_query(self):
        valid, normalized, error = validate_and_normalize_url("https://blog.example.com/news/?x=1")
        assert valid
        assert error is None
        assert normalized == "https://blog.example.com/news"

    @pytest.mark.unit
    def test_validate_keeps_root_slash(self):
        _, normalized, _ = validate_and_normalize_url("https://blog.example.com")
        assert normalized == "https://blog.example.com/"
