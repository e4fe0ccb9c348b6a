"""
Configuration dataclasses for the dataset register.

This module defines all configuration structures used throughout the
system (graph store, fetching, crawling, validation, logging and metrics)
and reads them from the environment, optionally seeded from a .env file.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .stores import (
    DEFAULT_ALLOWED_DOMAINS_GRAPH,
    DEFAULT_RATINGS_GRAPH,
    DEFAULT_REGISTRATIONS_GRAPH,
)


@dataclass
class SparqlConfig:
    """Graph store configuration."""

    url: Optional[str] = None  # None selects the in-process store
    update_url: Optional[str] = None
    access_token: Optional[str] = None
    registrations_graph: str = DEFAULT_REGISTRATIONS_GRAPH
    allowed_domains_graph: str = DEFAULT_ALLOWED_DOMAINS_GRAPH
    ratings_graph: str = DEFAULT_RATINGS_GRAPH
    timeout_seconds: float = 30.0


@dataclass
class FetchConfig:
    """Dereferencing and crawling of submitted URLs."""

    timeout_seconds: float = 30.0
    max_pages: int = 100
    user_agent: Optional[str] = None


@dataclass
class CrawlerConfig:
    """Crawler scheduling configuration."""

    registration_ttl_seconds: int = 86400
    schedule: Optional[str] = None  # cron expression; None disables scheduling


@dataclass
class ValidationConfig:
    """Shapes used to validate descriptions."""

    shapes_path: Path = field(default_factory=lambda: Path("requirements/shacl.ttl"))
    shapes_url: Optional[str] = None


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class MetricsConfig:
    """Prometheus exposition configuration."""

    enabled: bool = False
    port: int = 9464


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    sparql: SparqlConfig = field(default_factory=SparqlConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    default_language: str = "nl"


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(
            "invalid_setting", f"{name} must be an integer, got {value!r}", {"setting": name}
        ) from e


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(
            "invalid_setting", f"{name} must be a number, got {value!r}", {"setting": name}
        ) from e


def config_from_env(
    env: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[Path] = None,
) -> SystemConfig:
    """
    Build the system configuration from environment variables.

    Args:
        env: Variables to read (defaults to os.environ after loading .env)
        dotenv_path: Optional .env file to load first

    Returns:
        SystemConfig with defaults for unset variables

    Raises:
        ConfigurationError: If a numeric setting cannot be parsed
    """
    if env is None:
        load_dotenv(dotenv_path)
        env = os.environ

    defaults = SystemConfig()
    return SystemConfig(
        sparql=SparqlConfig(
            url=env.get("SPARQL_URL") or None,
            update_url=env.get("SPARQL_UPDATE_URL") or None,
            access_token=env.get("SPARQL_ACCESS_TOKEN") or None,
            registrations_graph=env.get("REGISTRATIONS_GRAPH", defaults.sparql.registrations_graph),
            allowed_domains_graph=env.get("ALLOWED_DOMAINS_GRAPH", defaults.sparql.allowed_domains_graph),
            ratings_graph=env.get("RATINGS_GRAPH", defaults.sparql.ratings_graph),
            timeout_seconds=_float(env, "SPARQL_TIMEOUT", defaults.sparql.timeout_seconds),
        ),
        fetch=FetchConfig(
            timeout_seconds=_float(env, "FETCH_TIMEOUT", defaults.fetch.timeout_seconds),
            max_pages=_int(env, "CRAWL_MAX_PAGES", defaults.fetch.max_pages),
            user_agent=env.get("USER_AGENT") or None,
        ),
        crawler=CrawlerConfig(
            registration_ttl_seconds=_int(
                env, "REGISTRATION_URL_TTL", defaults.crawler.registration_ttl_seconds
            ),
            schedule=env.get("CRAWLER_SCHEDULE") or None,
        ),
        validation=ValidationConfig(
            shapes_path=Path(env.get("SHACL_SHAPES", str(defaults.validation.shapes_path))),
            shapes_url=env.get("SHACL_SHAPES_URL") or None,
        ),
        logging=LoggingConfig(
            level=env.get("LOG_LEVEL", defaults.logging.level),
            output_format=env.get("LOG_FORMAT", defaults.logging.output_format),
        ),
        metrics=MetricsConfig(
            enabled=env.get("METRICS_ENABLED", "").lower() in ("1", "true", "yes"),
            port=_int(env, "METRICS_PORT", defaults.metrics.port),
        ),
        default_language=env.get("DEFAULT_LANGUAGE", defaults.default_language),
    )
