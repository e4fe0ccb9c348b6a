"""
Enumeration types for the dataset register.

These enums provide type-safe constants for validation outcomes,
registration states, error codes and configuration options.
"""

from enum import Enum


class ValidationState(Enum):
    """Outcome of validating a description against the shapes graph."""

    VALID = "valid"
    INVALID = "invalid"
    NO_RECORD = "no-dataset"


class RegistrationStatus(Enum):
    """Derived status of a registration."""

    VALID = "valid"
    INVALID = "invalid"
    GONE = "gone"


class IngestionStatus(Enum):
    """Outcome of submitting a URL for registration."""

    ACCEPTED = "accepted"
    DOMAIN_NOT_ALLOWED = "domain_not_allowed"
    NOT_FOUND = "not_found"
    NOT_ACCEPTABLE = "not_acceptable"
    INVALID = "invalid"


class FetchErrorCode(Enum):
    """Error codes for fetch failures."""

    HTTP_ERROR = "http_error"
    NO_RECORD_FOUND = "no_record_found"
    INVALID_CONTENT_TYPE = "invalid_content_type"


class DomainErrorCode(Enum):
    """Error codes for rejected registration hosts."""

    EMPTY_HOST = "empty_host"
    FORBIDDEN_CHARS = "forbidden_chars"
    IDNA_ERROR = "idna_error"
    IP_ADDRESS = "ip_address"
    NO_REGISTRABLE_DOMAIN = "no_registrable_domain"


class StoreErrorCode(Enum):
    """Error codes for graph store operations."""

    QUERY_FAILED = "query_failed"
    UPDATE_FAILED = "update_failed"
    NETWORK_ERROR = "network_error"
    PARSE_ERROR = "parse_error"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
