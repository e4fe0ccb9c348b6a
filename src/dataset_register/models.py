"""
Data models for the dataset register.

This module defines the value objects passed between the fetcher,
validator, rating engine, stores and the crawl/ingestion pipelines.
"""

from dataclasses import dataclass, field
from typing import Optional

from rdflib import Graph, URIRef

from .enums import IngestionStatus, ValidationState


@dataclass(frozen=True, eq=False)
class Record:
    """A single dataset description extracted from a source."""

    uri: URIRef
    graph: Graph

    def __len__(self) -> int:
        return len(self.graph)


@dataclass(frozen=True, eq=False)
class ValidationResult:
    """
    Outcome of validating a graph against the shapes graph.

    ``errors`` holds the SHACL report graph. It is ``None`` only when no
    dataset description was found at all.
    """

    state: ValidationState
    errors: Optional[Graph] = None

    @property
    def is_valid(self) -> bool:
        return self.state is ValidationState.VALID


@dataclass
class CrawlOutcome:
    """Result of re-checking one registration during a crawl pass."""

    url: str
    status_code: int
    valid: bool
    records: list[str] = field(default_factory=list)
    error: Optional[str] = None
    skipped: bool = False


@dataclass
class IngestionResult:
    """Result of submitting a URL for registration."""

    url: str
    status: IngestionStatus
    records: list[str] = field(default_factory=list)
    validation: Optional[ValidationResult] = None
    message: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.status is IngestionStatus.ACCEPTED

    @property
    def http_status(self) -> int:
        """HTTP status an API front end answers with for this outcome."""
        return INGESTION_HTTP_STATUS[self.status]


INGESTION_HTTP_STATUS = {
    IngestionStatus.ACCEPTED: 202,
    IngestionStatus.DOMAIN_NOT_ALLOWED: 403,
    IngestionStatus.NOT_FOUND: 404,
    IngestionStatus.NOT_ACCEPTABLE: 406,
    IngestionStatus.INVALID: 400,
}
