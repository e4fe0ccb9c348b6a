"""
Registration lifecycle.

A Registration is the register's record of a submitted URL. It is an
immutable value: every re-check produces a new instance through ``read``,
which is the only state transition.

Status is derived, never stored:

- ``invalid`` while ``valid_until`` is set (takes precedence);
- ``gone`` when the last observed HTTP status is not 2xx;
- ``valid`` otherwise.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable, Optional

from rdflib import Graph, Literal, URIRef

from .enums import RegistrationStatus
from .vocabulary import RDF, SCHEMA_HTTP, XSD


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Registration:
    """A URL submitted to the register, with the outcome of its last check."""

    url: str
    date_posted: datetime
    records: tuple[str, ...] = ()
    status_code: Optional[int] = None
    valid_until: Optional[datetime] = None
    date_read: Optional[datetime] = None

    @property
    def status(self) -> RegistrationStatus:
        if self.valid_until is not None:
            return RegistrationStatus.INVALID
        if self.status_code is not None and not 200 <= self.status_code < 300:
            return RegistrationStatus.GONE
        return RegistrationStatus.VALID

    def read(
        self,
        records: Iterable[str],
        status_code: int,
        is_valid: bool,
        when: Optional[datetime] = None,
    ) -> "Registration":
        """
        Return the registration as observed by a new check.

        ``valid_until`` marks the onset of invalidity: it is set on the first
        failing check, kept on later failing checks and cleared as soon as the
        URL validates again.

        Args:
            records: URIs of the records currently published at the URL
            status_code: HTTP status observed for the URL
            is_valid: Whether the description validated
            when: Time of the check (defaults to now)
        """
        when = when or utc_now()
        return replace(
            self,
            records=tuple(records),
            status_code=status_code,
            valid_until=None if is_valid else (self.valid_until or when),
            date_read=when,
        )


def registration_to_graph(registration: Registration) -> Graph:
    """Describe a registration as RDF for the registrations graph."""
    graph = Graph()
    subject = URIRef(registration.url)
    graph.add((subject, RDF.type, SCHEMA_HTTP.EntryPoint))
    graph.add((subject, SCHEMA_HTTP.datePosted, Literal(registration.date_posted)))

    if registration.date_read is not None:
        graph.add((subject, SCHEMA_HTTP.dateRead, Literal(registration.date_read)))
    if registration.status_code is not None:
        graph.add((
            subject,
            SCHEMA_HTTP.status,
            Literal(str(registration.status_code), datatype=XSD.integer),
        ))
    if registration.valid_until is not None:
        graph.add((subject, SCHEMA_HTTP.validUntil, Literal(registration.valid_until)))

    for record in registration.records:
        record_uri = URIRef(record)
        graph.add((subject, SCHEMA_HTTP.about, record_uri))
        graph.add((record_uri, RDF.type, SCHEMA_HTTP.Dataset))
        graph.add((record_uri, SCHEMA_HTTP.subjectOf, subject))
        if registration.date_read is not None:
            graph.add((record_uri, SCHEMA_HTTP.dateRead, Literal(registration.date_read)))

    return graph
