# sourcecrawler/validators/config_validator.py
"""
Configuration validation utilities.
"""
from typing import List, Dict, Any
import re
from urllib.parse import urlparse

from sourcecrawler.interfaces.crawl_interfaces import ConfigurationError
from sourcecrawler.models.source_models import CrawlerConfig, SourceType


class ConfigValidator:
    """Validator for crawler and source configurations."""

    @classmethod
    def validate_crawler_config(cls, config: CrawlerConfig) -> List[str]:
        """
        Validate crawler configuration.

        Args:
            config: CrawlerConfig to validate

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = list(config.validate())

        if not config.crawler_name or not re.match(r'^[A-Za-z0-9_.-]+$', config.crawler_name):
            errors.append("Crawler name can only contain letters, numbers, dots, underscores, and hyphens")

        if config.max_depth > 0 and config.max_pages_per_source < 1:
            errors.append("max_pages_per_source must allow at least the home page")

        return errors

    @classmethod
    def ensure_valid(cls, config: CrawlerConfig) -> CrawlerConfig:
        """
        Raise ConfigurationError if the configuration is invalid.

        Returns:
            The same config, for chaining
        """
        errors = cls.validate_crawler_config(config)
        if errors:
            raise ConfigurationError("Invalid crawler configuration: " + "; ".join(errors))
        return config

    @classmethod
    def validate_source_dict(cls, source_dict: Dict[str, Any]) -> List[str]:
        """Validate a source registration from dictionary format."""
        errors = []

        if not isinstance(source_dict, dict):
            return ["Source entry must be a mapping"]

        source_id = source_dict.get('id') or source_dict.get('name')
        if not source_id or not str(source_id).strip():
            errors.append("Required field 'id' (or 'name') is missing")
        elif not re.match(r'^[a-zA-Z0-9_.-]+$', str(source_id)):
            errors.append("Source id can only contain letters, numbers, dots, underscores, and hyphens")

        home_url = source_dict.get('home_url')
        if not home_url:
            errors.append("Required field 'home_url' is missing")
        elif not cls._is_valid_url(home_url):
            errors.append(f"Invalid home URL: {home_url}")

        if 'type' in source_dict:
            try:
                SourceType(source_dict['type'])
            except ValueError:
                valid_types = [t.value for t in SourceType]
                errors.append(f"Invalid source type '{source_dict['type']}'. Must be one of: {valid_types}")

        if 'active' in source_dict and not isinstance(source_dict['active'], bool):
            errors.append("Field 'active' must be a boolean")

        return errors

    @classmethod
    def _is_valid_url(cls, url: str) -> bool:
        """Check if URL is a valid http(s) URL."""
        try:
            result = urlparse(str(url))
        except ValueError:
            return False
        return result.scheme in ('http', 'https') and bool(result.netloc)
