"""
Command-line interface for the dataset register.

This module provides the main CLI entry point with commands for:
- ingest: Submit a URL for registration
- validate: Validate a URL or a local file without registering it
- crawl: Re-check registrations older than the registration TTL
- schedule: Run crawl passes on the configured cron schedule
- deregister: Remove a registration with its records and ratings
- config: Configuration management
"""

import argparse
import asyncio
import json
import sys
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncIterator, Optional

from . import __version__
from .allow_list import DomainAllowList
from .audit_logger import AuditLogger
from .config import (
    CrawlerConfig,
    FetchConfig,
    LoggingConfig,
    MetricsConfig,
    SparqlConfig,
    SystemConfig,
    ValidationConfig,
    config_from_env,
)
from .crawler import Crawler
from .enums import LogLevel, ValidationState
from .exceptions import ConfigurationError, FetchError, RegistryError
from .fetcher import Fetcher
from .ingestion import IngestionService
from .instrumentation import refresh_counts, start_metrics_server
from .locks import RegistrationLocks
from .scheduler import CronParseError, Scheduler
from .sparql import LocalSparqlClient, SparqlClient
from .stores import Stores, create_stores
from .validator import ShaclValidator

DEFAULT_CONFIG_PATH = Path.home() / ".dataset_register" / "config.json"


def create_default_config() -> SystemConfig:
    """Create a default system configuration."""
    return SystemConfig()


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        defaults = SystemConfig()
        validation_data = data.get("validation", {})
        return SystemConfig(
            sparql=SparqlConfig(**{**asdict(defaults.sparql), **data.get("sparql", {})}),
            fetch=FetchConfig(**{**asdict(defaults.fetch), **data.get("fetch", {})}),
            crawler=CrawlerConfig(**{**asdict(defaults.crawler), **data.get("crawler", {})}),
            validation=ValidationConfig(
                shapes_path=Path(validation_data.get("shapes_path", str(defaults.validation.shapes_path))),
                shapes_url=validation_data.get("shapes_url"),
            ),
            logging=LoggingConfig(**{**asdict(defaults.logging), **data.get("logging", {})}),
            metrics=MetricsConfig(**{**asdict(defaults.metrics), **data.get("metrics", {})}),
            default_language=data.get("default_language", defaults.default_language),
        )

    except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None
    except FileNotFoundError:
        return None


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: SystemConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = asdict(config)
        data["validation"]["shapes_path"] = str(config.validation.shapes_path)

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return True

    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def create_logger(config: SystemConfig) -> AuditLogger:
    try:
        level = LogLevel(config.logging.level.lower())
    except ValueError:
        level = LogLevel.INFO
    return AuditLogger(output_format=config.logging.output_format, level=level)


async def load_validator(config: SystemConfig) -> ShaclValidator:
    if config.validation.shapes_url:
        return await ShaclValidator.from_url(config.validation.shapes_url, config.fetch.timeout_seconds)
    return ShaclValidator.from_path(config.validation.shapes_path)


@dataclass
class Register:
    """The wired-up components of a running register."""

    stores: Stores
    fetcher: Fetcher
    validator: ShaclValidator
    ingestion: IngestionService
    crawler: Crawler


@asynccontextmanager
async def open_register(
    config: SystemConfig,
    logger: Optional[AuditLogger] = None,
    require_store: bool = True,
) -> AsyncIterator[Register]:
    """
    Build the register's components from configuration.

    Without a SPARQL URL an in-process store is used, which only lives for
    the duration of the block.

    Raises:
        ConfigurationError: If a graph store is required but not configured,
            or the shapes cannot be loaded
    """
    if config.sparql.url:
        client = SparqlClient(
            config.sparql.url,
            update_url=config.sparql.update_url,
            access_token=config.sparql.access_token,
            timeout=config.sparql.timeout_seconds,
        )
    elif require_store:
        raise ConfigurationError("missing_setting", "SPARQL_URL must be set", {"setting": "SPARQL_URL"})
    else:
        client = LocalSparqlClient()

    stores = create_stores(
        client,
        registrations_graph=config.sparql.registrations_graph,
        allowed_domains_graph=config.sparql.allowed_domains_graph,
        ratings_graph=config.sparql.ratings_graph,
    )
    validator = await load_validator(config)
    locks = RegistrationLocks()

    try:
        async with Fetcher(
            timeout=config.fetch.timeout_seconds,
            max_pages=config.fetch.max_pages,
            default_language=config.default_language,
            user_agent=config.fetch.user_agent,
        ) as fetcher:
            yield Register(
                stores=stores,
                fetcher=fetcher,
                validator=validator,
                ingestion=IngestionService(
                    fetcher=fetcher,
                    validator=validator,
                    registration_store=stores.registrations,
                    record_store=stores.records,
                    rating_store=stores.ratings,
                    allow_list=DomainAllowList(stores.allowed_domains),
                    logger=logger,
                    locks=locks,
                ),
                crawler=Crawler(
                    registration_store=stores.registrations,
                    record_store=stores.records,
                    rating_store=stores.ratings,
                    validator=validator,
                    fetcher=fetcher,
                    logger=logger,
                    locks=locks,
                ),
            )
    finally:
        if isinstance(client, SparqlClient):
            await client.close()


def resolve_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    """Configuration from --config if given, else from the environment."""
    if getattr(args, "config", None):
        config = load_config_from_file(Path(args.config))
        if config is None:
            print(f"Error: Could not load config from {args.config}", file=sys.stderr)
        return config
    try:
        return config_from_env()
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return None


async def ingest_url(url: str, config: SystemConfig) -> int:
    """Submit a URL; exit code 0 when accepted."""
    logger = create_logger(config)
    async with open_register(config, logger) as register:
        result = await register.ingestion.ingest(url)
        await refresh_counts(register.stores.records)

    print(f"{result.http_status} {result.status.value}: {url}")
    if result.message:
        print(f"  {result.message}")
    for record in result.records:
        print(f"  - {record}")
    if result.validation is not None and result.validation.errors is not None and not result.accepted:
        print(result.validation.errors.serialize(format="turtle"))
    return 0 if result.accepted else 1


async def validate_source(
    config: SystemConfig,
    url: Optional[str] = None,
    file: Optional[Path] = None,
    content_type: Optional[str] = None,
    verbose: bool = False,
) -> int:
    """Validate a URL or file; exit code 0 when valid."""
    async with open_register(config, create_logger(config), require_store=False) as register:
        try:
            if file is not None:
                result = await register.ingestion.validate_only(
                    payload=file.read_bytes(),
                    content_type=content_type or "application/ld+json",
                )
            else:
                result = await register.ingestion.validate_only(url=url)
        except FetchError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 2

    print(f"Validation result: {result.state.value}")
    if result.errors is not None and (verbose or result.state is ValidationState.INVALID):
        print(result.errors.serialize(format="turtle"))
    return 0 if result.is_valid else 1


async def crawl_once(config: SystemConfig, ttl_seconds: Optional[int] = None) -> int:
    """Run one crawl pass; exit code 0 when every registration was checked."""
    ttl = config.crawler.registration_ttl_seconds if ttl_seconds is None else ttl_seconds
    async with open_register(config, create_logger(config)) as register:
        outcomes = await register.crawler.crawl(datetime.now(timezone.utc) - timedelta(seconds=ttl))
        records, publishers = await refresh_counts(register.stores.records)

    valid = sum(1 for outcome in outcomes if outcome.valid)
    print(f"Crawled {len(outcomes)} registration(s): {valid} valid, {len(outcomes) - valid} invalid or gone")
    print(f"Register holds {records} record(s) from {publishers} publisher(s)")
    return 0


async def run_schedule(config: SystemConfig) -> int:
    """Run crawl passes on the configured schedule until interrupted."""
    if not config.crawler.schedule:
        print("Error: CRAWLER_SCHEDULE is not set", file=sys.stderr)
        return 1

    logger = create_logger(config)
    if config.metrics.enabled:
        start_metrics_server(config.metrics.port)

    async with open_register(config, logger) as register:
        scheduler = Scheduler(logger=logger)
        try:
            scheduler.schedule_crawl(
                register.crawler,
                config.crawler.schedule,
                config.crawler.registration_ttl_seconds,
            )
        except CronParseError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        await scheduler.run()
    return 0


async def deregister_url(url: str, config: SystemConfig) -> int:
    async with open_register(config, create_logger(config)) as register:
        removed = await register.ingestion.deregister(url)
    print(f"Removed {url}" if removed else f"No registration for {url}")
    return 0 if removed else 1


def _run(coroutine) -> int:
    try:
        return asyncio.run(coroutine)
    except RegistryError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


def cmd_ingest(args: argparse.Namespace) -> int:
    """Handle the 'ingest' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return _run(ingest_url(args.url, config))


def cmd_validate(args: argparse.Namespace) -> int:
    """Handle the 'validate' command."""
    if (args.url is None) == (args.file is None):
        print("Error: give either a URL or --file", file=sys.stderr)
        return 1
    config = resolve_config(args)
    if config is None:
        return 1
    return _run(validate_source(
        config,
        url=args.url,
        file=Path(args.file) if args.file else None,
        content_type=args.content_type,
        verbose=args.verbose,
    ))


def cmd_crawl(args: argparse.Namespace) -> int:
    """Handle the 'crawl' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return _run(crawl_once(config, args.ttl))


def cmd_schedule(args: argparse.Namespace) -> int:
    """Handle the 'schedule' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    try:
        return _run(run_schedule(config))
    except KeyboardInterrupt:
        return 0


def cmd_deregister(args: argparse.Namespace) -> int:
    """Handle the 'deregister' command."""
    config = resolve_config(args)
    if config is None:
        return 1
    return _run(deregister_url(args.url, config))


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return 1

        print(f"Configuration from: {config_path}")
        print(f"  SPARQL endpoint: {config.sparql.url or '(in-process)'}")
        print(f"  Shapes: {config.validation.shapes_url or config.validation.shapes_path}")
        print(f"  Registration TTL: {config.crawler.registration_ttl_seconds}s")
        print(f"  Crawler schedule: {config.crawler.schedule or '(disabled)'}")
        print(f"  Log level: {config.logging.level}")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1

        config = config_from_env() if args.from_env else create_default_config()
        if save_config_to_file(config, config_path):
            print(f"Configuration created at: {config_path}")
            return 0
        return 1

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return 1
        try:
            ShaclValidator.from_path(config.validation.shapes_path)
        except ConfigurationError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1

        print(f"Configuration at {config_path} is valid.")
        return 0

    return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="dataset-register",
        description="Register, validate and crawl dataset descriptions",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    ingest_parser = subparsers.add_parser("ingest", help="Submit a URL for registration")
    ingest_parser.add_argument("url", help="URL of a dataset description or catalog")
    ingest_parser.add_argument("--config", "-c", help="Path to configuration file")
    ingest_parser.set_defaults(func=cmd_ingest)

    validate_parser = subparsers.add_parser("validate", help="Validate without registering")
    validate_parser.add_argument("url", nargs="?", help="URL to validate")
    validate_parser.add_argument("--file", "-f", help="Local file to validate instead of a URL")
    validate_parser.add_argument(
        "--content-type",
        default=None,
        help="Media type of --file (default: application/ld+json)",
    )
    validate_parser.add_argument("--config", "-c", help="Path to configuration file")
    validate_parser.add_argument("--verbose", "-v", action="store_true", help="Print the full report")
    validate_parser.set_defaults(func=cmd_validate)

    crawl_parser = subparsers.add_parser("crawl", help="Re-check stale registrations once")
    crawl_parser.add_argument(
        "--ttl",
        type=int,
        default=None,
        help="Re-check registrations read more than this many seconds ago",
    )
    crawl_parser.add_argument("--config", "-c", help="Path to configuration file")
    crawl_parser.set_defaults(func=cmd_crawl)

    schedule_parser = subparsers.add_parser("schedule", help="Crawl on the configured cron schedule")
    schedule_parser.add_argument("--config", "-c", help="Path to configuration file")
    schedule_parser.set_defaults(func=cmd_schedule)

    deregister_parser = subparsers.add_parser("deregister", help="Remove a registration")
    deregister_parser.add_argument("url", help="Registered URL")
    deregister_parser.add_argument("--config", "-c", help="Path to configuration file")
    deregister_parser.set_defaults(func=cmd_deregister)

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument("--path", "-p", help="Path to configuration file")
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.add_argument(
        "--from-env",
        action="store_true",
        help="Seed a new configuration from the environment",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
