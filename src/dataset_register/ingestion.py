"""
Ingestion service for the dataset register.

This module is the boundary through which URLs enter the register. It
coordinates the allow-list, fetcher, validator, rating engine and stores:

1. Reject URLs whose registrable domain is not allowed (before any fetch)
2. Dereference the URL; a 404 is reported as not found, any other fetch
   failure as not acceptable
3. Validate; no description is not acceptable, violations are reported
4. Store the registration, then crawl, store and rate every record, and
   finally store the registration as read, valid, with its record URIs

Requirements covered:
- ingest(url): accepted / domain not allowed / not found / not acceptable / invalid
- validate_only(url | payload): validation without registering
- deregister(url): remove a registration with its records and ratings
"""

from typing import Optional, Union

from .allow_list import DomainAllowList
from .audit_logger import AuditLogger
from .enums import IngestionStatus, LogLevel, ValidationState
from .exceptions import FetchError, HttpError, NoRecordFoundAtUrl
from .fetcher import Fetcher
from .instrumentation import record_registration, record_validation
from .locks import RegistrationLocks
from .models import IngestionResult, ValidationResult
from .rating import rate
from .registration import Registration, utc_now
from .stores import RatingStore, RecordStore, RegistrationStore
from .validator import Validator

PAYLOAD_BASE = "urn:dataset-register:payload"


class IngestionService:
    """
    Accepts URLs for registration.

    Shares its RegistrationLocks with the crawler so a URL is never
    ingested and crawled at the same time.
    """

    COMPONENT = "Ingestion"

    def __init__(
        self,
        fetcher: Fetcher,
        validator: Validator,
        registration_store: RegistrationStore,
        record_store: RecordStore,
        rating_store: RatingStore,
        allow_list: DomainAllowList,
        logger: Optional[AuditLogger] = None,
        locks: Optional[RegistrationLocks] = None,
    ) -> None:
        self._fetcher = fetcher
        self._validator = validator
        self._registrations = registration_store
        self._records = record_store
        self._ratings = rating_store
        self._allow_list = allow_list
        self._logger = logger
        self._locks = locks or RegistrationLocks()

    async def ingest(self, url: str) -> IngestionResult:
        """
        Submit a URL for registration.

        Args:
            url: URL of a dataset description or catalog

        Returns:
            IngestionResult; ``http_status`` gives the matching HTTP answer
        """
        domain = await self._allow_list.check(url)
        if not domain.valid:
            self._log(LogLevel.INFO, "Domain not allowed", {"url": url, "reason": domain.message})
            return IngestionResult(url, IngestionStatus.DOMAIN_NOT_ALLOWED, message=domain.message)

        async with self._locks.hold(url):
            try:
                graph = await self._fetcher.dereference(url)
            except HttpError as e:
                self._log(LogLevel.INFO, f"{url} answered HTTP {e.status_code}", {"url": url})
                status = IngestionStatus.NOT_FOUND if e.status_code == 404 else IngestionStatus.NOT_ACCEPTABLE
                return IngestionResult(url, status, message=e.message)
            except FetchError as e:
                self._log(LogLevel.INFO, f"No usable description at {url}", {"url": url, "code": e.code})
                return IngestionResult(url, IngestionStatus.NOT_ACCEPTABLE, message=e.message)

            result = await self._validator.validate(graph)
            record_validation(result.state)

            if result.state is ValidationState.NO_RECORD:
                return IngestionResult(
                    url, IngestionStatus.NOT_ACCEPTABLE, validation=result,
                    message=f"No dataset description found at {url}",
                )
            if result.state is ValidationState.INVALID:
                record_registration(False)
                self._log(LogLevel.INFO, f"{url} does not validate", {"url": url})
                return IngestionResult(url, IngestionStatus.INVALID, validation=result)

            record_registration(True)
            # A new registration is stored unread before its records, so an
            # interrupted ingestion is picked up by the next crawl pass.
            # An existing one keeps its last read state until this one completes.
            registration = await self._registrations.find_by_url(url)
            if registration is None:
                registration = Registration(url=url, date_posted=utc_now())
                await self._registrations.store(registration)

            stored: list[str] = []
            try:
                async for record in self._fetcher.crawl(url, first_page=graph):
                    await self._records.store(record)
                    rating = rate(await self._validator.validate(record.graph))
                    await self._ratings.store(str(record.uri), rating)
                    if str(record.uri) not in stored:
                        stored.append(str(record.uri))
            except FetchError as e:
                self._log(
                    LogLevel.WARN,
                    f"Ingesting {url} stopped after {len(stored)} record(s): {e.message}",
                    {"url": url, "code": e.code},
                )
                stored += [uri for uri in registration.records if uri not in stored]

            await self._registrations.store(registration.read(stored, 200, True))
            self._log(LogLevel.INFO, f"Registered {url}", {"url": url, "records": len(stored)})
            return IngestionResult(url, IngestionStatus.ACCEPTED, records=stored, validation=result)

    async def validate_only(
        self,
        url: Optional[str] = None,
        payload: Optional[Union[str, bytes]] = None,
        content_type: Optional[str] = "application/ld+json",
    ) -> ValidationResult:
        """
        Validate a URL or an inline payload without registering anything.

        No allow-list check is made. A source without RDF statements
        validates as NO_RECORD.

        Raises:
            ValueError: Unless exactly one of ``url`` and ``payload`` is given
            FetchError: If the URL answers with an error or an unusable media type
        """
        if (url is None) == (payload is None):
            raise ValueError("Provide either a URL or a payload")

        try:
            if url is not None:
                graph = await self._fetcher.dereference(url)
            else:
                graph = await self._fetcher.parse(payload, content_type, PAYLOAD_BASE)
        except NoRecordFoundAtUrl:
            result = ValidationResult(state=ValidationState.NO_RECORD)
        else:
            result = await self._validator.validate(graph)

        record_validation(result.state)
        return result

    async def deregister(self, url: str) -> bool:
        """
        Remove a registration together with its records and their ratings.

        Returns:
            True if a registration was removed, False if none existed
        """
        async with self._locks.hold(url):
            existing = await self._registrations.find_by_url(url)
            if existing is None:
                return False
            for record in existing.records:
                await self._ratings.delete(record)
                await self._records.delete(record)
            await self._registrations.delete(url)
            self._log(LogLevel.INFO, f"Deregistered {url}", {"url": url, "records": len(existing.records)})
            return True

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        """Log a message if logger is available."""
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)
