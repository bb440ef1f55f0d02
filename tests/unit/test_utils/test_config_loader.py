"""
Unit tests for YAML and environment configuration loading.
"""
import os
import pytest
from unittest.mock import patch

from sourcecrawler.interfaces.crawl_interfaces import ConfigurationError
from sourcecrawler.models.source_models import CrawlerConfig, SourceType
from sourcecrawler.utils.config_loader import (
    build_crawler_config, load_config_file, load_crawler_config, load_sources_config,
)


CONFIG_YAML = """
crawler:
  max_depth: 2
  request_delay_ms: 500
  respect_robots_txt: false
  min_confidence: 0.5
  not_an_option: 1

sources:
  - id: example-blog
    name: Example Blog
    home_url: https://blog.example.com/
  - id: feed-site
    home_url: https://feeds.example.com
    type: feed
    active: false
  - id: broken
    home_url: ftp://nope.example.com
  - name: no-url
"""


@pytest.fixture
def config_file(temp_dir):
    path = os.path.join(temp_dir, "crawler.yaml")
    with open(path, "w") as f:
        f.write(CONFIG_YAML)
    return path


class TestLoadCrawlerConfig:
    """Tests for crawler option loading."""

    @pytest.mark.unit
    def test_defaults_without_file(self):
        config = load_crawler_config(None, env={})
        assert config == CrawlerConfig()

    @pytest.mark.unit
    def test_yaml_values(self, config_file):
        config = load_crawler_config(config_file, env={})

        assert config.max_depth == 2
        assert config.request_delay_ms == 500
        assert config.respect_robots_txt is False
        assert config.min_confidence == 0.5
        assert config.max_pages_per_run == 20

    @pytest.mark.unit
    def test_environment_overrides_yaml(self, config_file):
        env = {"CRAWLER_MAX_DEPTH": "5", "CRAWLER_RESPECT_ROBOTS_TXT": "yes"}
        config = load_crawler_config(config_file, env=env)

        assert config.max_depth == 5
        assert config.respect_robots_txt is True

    @pytest.mark.unit
    def test_process_environment_used_by_default(self):
        with patch.dict(os.environ, {"CRAWLER_MAX_PAGES_PER_RUN": "7"}):
            config = build_crawler_config({})
        assert config.max_pages_per_run == 7

    @pytest.mark.unit
    def test_bad_type_raises(self):
        with pytest.raises(ConfigurationError):
            build_crawler_config({"max_depth": "deep"}, env={})

    @pytest.mark.unit
    def test_bad_boolean_raises(self):
        with pytest.raises(ConfigurationError):
            build_crawler_config({}, env={"CRAWLER_RESPECT_ROBOTS_TXT": "maybe"})

    @pytest.mark.unit
    def test_invalid_value_raises(self):
        with pytest.raises(ConfigurationError):
            build_crawler_config({"min_confidence": 1.5}, env={})

    @pytest.mark.unit
    def test_missing_file_falls_back_to_defaults(self, temp_dir):
        config = load_crawler_config(os.path.join(temp_dir, "missing.yaml"), env={})
        assert config == CrawlerConfig()

    @pytest.mark.unit
    def test_malformed_yaml_returns_empty(self, temp_dir):
        path = os.path.join(temp_dir, "bad.yaml")
        with open(path, "w") as f:
            f.write("crawler: [unclosed\n")
        assert load_config_file(path) == {}


class TestLoadSourcesConfig:
    """Tests for source registration loading."""

    @pytest.mark.unit
    def test_valid_entries_loaded_invalid_skipped(self, config_file):
        sources = load_sources_config(config_file)

        assert [s.id for s in sources] == ["example-blog", "feed-site"]

    @pytest.mark.unit
    def test_entry_fields(self, config_file):
        first, second = load_sources_config(config_file)

        assert first.name == "Example Blog"
        assert first.home_url == "https://blog.example.com/"
        assert first.type == SourceType.HOMEPAGE
        assert first.active is True
        assert second.name == "feed-site"
        assert second.type == SourceType.FEED
        assert second.active is False

    @pytest.mark.unit
    def test_missing_sources_section(self, temp_dir):
        path = os.path.join(temp_dir, "empty.yaml")
        with open(path, "w") as f:
            f.write("crawler:\n  max_depth: 1\n")
        assert load_sources_config(path) == []
