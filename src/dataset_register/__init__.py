"""
Dataset Register - registry of dataset descriptions published on the web.

This package accepts URLs of dataset descriptions and catalogs, validates
them against SHACL shapes, extracts and rates every dataset record, stores
everything in a SPARQL graph store and periodically re-crawls registered
URLs.
"""

__version__ = "0.1.0"
__author__ = "Dataset Register Team"

from dataset_register.exceptions import (
    RegistryError,
    FetchError,
    HttpError,
    NoRecordFoundAtUrl,
    InvalidContentType,
    StoreError,
    ConfigurationError,
)
from dataset_register.enums import (
    ValidationState,
    RegistrationStatus,
    IngestionStatus,
    FetchErrorCode,
    DomainErrorCode,
    StoreErrorCode,
    LogLevel,
)
from dataset_register.models import (
    Record,
    ValidationResult,
    CrawlOutcome,
    IngestionResult,
)
from dataset_register.registration import (
    Registration,
    registration_to_graph,
)
from dataset_register.literal import (
    LiteralCanonicalizer,
    LiteralRule,
)
from dataset_register.extractor import (
    RecordGrouper,
    extract_iri,
    extract_records,
    group_records,
)
from dataset_register.fetcher import (
    Fetcher,
    classify_error,
    parse_payload,
)
from dataset_register.validator import (
    Validator,
    ShaclValidator,
)
from dataset_register.rating import (
    Rating,
    Penalty,
    PenaltyGroup,
    PENALTY_GROUPS,
    rate,
)
from dataset_register.sparql import (
    SparqlEndpoint,
    SparqlClient,
    LocalSparqlClient,
)
from dataset_register.stores import (
    RegistrationStore,
    RecordStore,
    AllowedDomainStore,
    RatingStore,
    SparqlRegistrationStore,
    SparqlRecordStore,
    SparqlAllowedDomainStore,
    SparqlRatingStore,
    Stores,
    create_stores,
)
from dataset_register.allow_list import (
    DomainAllowList,
    DomainCheckResult,
    registrable_domain,
)
from dataset_register.locks import RegistrationLocks
from dataset_register.audit_logger import (
    AuditLogger,
    LogEntry,
)
from dataset_register.config import (
    SparqlConfig,
    FetchConfig,
    CrawlerConfig,
    ValidationConfig,
    LoggingConfig,
    MetricsConfig,
    SystemConfig,
    config_from_env,
)
from dataset_register.crawler import Crawler
from dataset_register.ingestion import IngestionService
from dataset_register.scheduler import (
    Scheduler,
    CronSchedule,
    CronField,
    CronParser,
    CronParseError,
    ScheduledTask,
)
from dataset_register.cli import (
    main as cli_main,
    create_parser,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
)

__all__ = [
    # Exceptions
    "RegistryError",
    "FetchError",
    "HttpError",
    "NoRecordFoundAtUrl",
    "InvalidContentType",
    "StoreError",
    "ConfigurationError",
    # Enums
    "ValidationState",
    "RegistrationStatus",
    "IngestionStatus",
    "FetchErrorCode",
    "DomainErrorCode",
    "StoreErrorCode",
    "LogLevel",
    # Models
    "Record",
    "ValidationResult",
    "CrawlOutcome",
    "IngestionResult",
    "Registration",
    "registration_to_graph",
    # Literal canonicalization
    "LiteralCanonicalizer",
    "LiteralRule",
    # Record extraction
    "RecordGrouper",
    "extract_iri",
    "extract_records",
    "group_records",
    # Fetcher
    "Fetcher",
    "classify_error",
    "parse_payload",
    # Validator
    "Validator",
    "ShaclValidator",
    # Rating
    "Rating",
    "Penalty",
    "PenaltyGroup",
    "PENALTY_GROUPS",
    "rate",
    # SPARQL
    "SparqlEndpoint",
    "SparqlClient",
    "LocalSparqlClient",
    # Stores
    "RegistrationStore",
    "RecordStore",
    "AllowedDomainStore",
    "RatingStore",
    "SparqlRegistrationStore",
    "SparqlRecordStore",
    "SparqlAllowedDomainStore",
    "SparqlRatingStore",
    "Stores",
    "create_stores",
    # Allow-list
    "DomainAllowList",
    "DomainCheckResult",
    "registrable_domain",
    "RegistrationLocks",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Configuration
    "SparqlConfig",
    "FetchConfig",
    "CrawlerConfig",
    "ValidationConfig",
    "LoggingConfig",
    "MetricsConfig",
    "SystemConfig",
    "config_from_env",
    # Pipelines
    "Crawler",
    "IngestionService",
    # Scheduler
    "Scheduler",
    "CronSchedule",
    "CronField",
    "CronParser",
    "CronParseError",
    "ScheduledTask",
    # CLI
    "cli_main",
    "create_parser",
    "create_default_config",
    "load_config_from_file",
    "save_config_to_file",
]
