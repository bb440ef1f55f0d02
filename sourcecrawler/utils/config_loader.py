"""
Configuration loader for the source crawler.

Options come from the ``crawler:`` section of a YAML file, then from
``CRAWLER_<OPTION>`` environment variables (after ``.env`` is loaded).
"""
import os
from dataclasses import fields
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import load_dotenv
from loguru import logger

from sourcecrawler.interfaces.crawl_interfaces import ConfigurationError
from sourcecrawler.models.source_models import CrawlerConfig, Source, SourceType
from sourcecrawler.utils.url_filters import validate_and_normalize_url
from sourcecrawler.validators.config_validator import ConfigValidator

ENV_PREFIX = "CRAWLER_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def load_config_file(config_path: str) -> Dict[str, Any]:
    """Loads a YAML configuration file, returning an empty dict on failure."""
    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
            if isinstance(config, dict):
                return config
            logger.warning(f"Invalid or empty configuration format in {config_path}")
            return {}
    except FileNotFoundError:
        logger.error(f"Configuration file not found: {config_path}")
        return {}
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML configuration file {config_path}: {e}")
        return {}


def _coerce(name: str, value: Any, target: type) -> Any:
    if target is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        raise ConfigurationError(f"Option '{name}' expects a boolean, got {value!r}")

    try:
        if target is int:
            if isinstance(value, bool):
                raise ValueError(value)
            return int(value)
        if target is float:
            return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Option '{name}' expects {target.__name__}, got {value!r}", cause=e)

    return str(value)


def build_crawler_config(options: Optional[Mapping[str, Any]] = None,
                         env: Optional[Mapping[str, str]] = None) -> CrawlerConfig:
    """
    Build a validated CrawlerConfig from option values and environment overrides.

    Raises:
        ConfigurationError: if a value cannot be converted or fails validation
    """
    field_types = {f.name: f.type for f in fields(CrawlerConfig)}
    values: Dict[str, Any] = {}

    for name, value in (options or {}).items():
        if name not in field_types:
            logger.warning(f"⚠️ Ignoring unknown crawler option '{name}'")
            continue
        values[name] = _coerce(name, value, field_types[name])

    env = os.environ if env is None else env
    for name, target in field_types.items():
        env_key = ENV_PREFIX + name.upper()
        if env_key in env:
            values[name] = _coerce(name, env[env_key], target)
            logger.debug(f"Config override from {env_key}")

    config = CrawlerConfig(**values)
    return ConfigValidator.ensure_valid(config)


def load_crawler_config(config_path: Optional[str] = None,
                        env: Optional[Mapping[str, str]] = None) -> CrawlerConfig:
    """Load crawler options from YAML (if given) plus the environment."""
    load_dotenv()

    options: Dict[str, Any] = {}
    if config_path:
        section = load_config_file(config_path).get('crawler') or {}
        if isinstance(section, dict):
            options = section
        else:
            logger.warning(f"Ignoring non-mapping 'crawler' section in {config_path}")

    return build_crawler_config(options, env)


def parse_source_entry(entry: Dict[str, Any]) -> Source:
    """
    Convert one ``sources:`` entry into a Source.

    Raises:
        ConfigurationError: if the entry is invalid
    """
    errors = ConfigValidator.validate_source_dict(entry)
    if errors:
        raise ConfigurationError("Invalid source entry: " + "; ".join(errors))

    _, home_url, _ = validate_and_normalize_url(entry['home_url'])
    source_id = str(entry.get('id') or entry.get('name'))
    return Source(
        id=source_id,
        name=entry.get('name') or source_id,
        home_url=home_url,
        type=SourceType(entry.get('type', SourceType.HOMEPAGE.value)),
        active=entry.get('active', True),
    )


def load_sources_config(config_path: str) -> List[Source]:
    """Loads the source registrations from the YAML file."""
    config = load_config_file(config_path)
    entries = config.get('sources')
    if not isinstance(entries, list):
        logger.warning(f"No 'sources' list in {config_path}")
        return []

    sources = []
    for entry in entries:
        try:
            sources.append(parse_source_entry(entry))
        except ConfigurationError as e:
            logger.error(f"❌ Skipping source entry {entry!r}: {e}")

    logger.info(f"Loaded {len(sources)} sources from {config_path}")
    return sources
