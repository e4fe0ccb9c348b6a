"""
Crawler for registered URLs.

Re-checks every registration that was last read before a cut-off: the URL
is dereferenced and validated again, its records are re-extracted, stored
and rated, and the registration is re-stamped with the outcome.

Failure handling per registration:
- HTTP error: record the status, keep the previous records, mark invalid
- no description: status 200, no records, mark invalid; the URL is
  reachable but no longer publishes anything
- unusable media type: status 200, keep previous records, mark invalid
- invalid description: keep previous records, mark invalid
- a page failing after records were streamed: keep what was stored,
  merged with the previous records, and keep the top-level validity

Registrations are processed one at a time; a failure on one never aborts
the pass.
"""

from datetime import datetime, timezone
from typing import Optional

from .audit_logger import AuditLogger
from .enums import LogLevel
from .exceptions import FetchError, HttpError, NoRecordFoundAtUrl
from .fetcher import Fetcher
from .instrumentation import record_crawl
from .locks import RegistrationLocks
from .models import CrawlOutcome
from .rating import rate
from .registration import Registration
from .stores import RatingStore, RecordStore, RegistrationStore
from .validator import Validator


class Crawler:
    """Re-validates registrations whose last check is older than a cut-off."""

    COMPONENT = "Crawler"

    def __init__(
        self,
        registration_store: RegistrationStore,
        record_store: RecordStore,
        rating_store: RatingStore,
        validator: Validator,
        fetcher: Fetcher,
        logger: Optional[AuditLogger] = None,
        locks: Optional[RegistrationLocks] = None,
    ) -> None:
        """
        Initialize the crawler.

        Args:
            registration_store: Store of registrations to re-check
            record_store: Store receiving extracted records
            rating_store: Store receiving record ratings
            validator: Validator for sources and records
            fetcher: Fetcher used to dereference and crawl URLs
            logger: Optional audit logger
            locks: Per-URL locks shared with ingestion
        """
        self._registrations = registration_store
        self._records = record_store
        self._ratings = rating_store
        self._validator = validator
        self._fetcher = fetcher
        self._logger = logger
        self._locks = locks or RegistrationLocks()

    async def crawl(self, date_limit: datetime) -> list[CrawlOutcome]:
        """
        Re-check all registrations read before ``date_limit``.

        Returns:
            One outcome per registration, in processing order
        """
        if date_limit.tzinfo is None:
            date_limit = date_limit.replace(tzinfo=timezone.utc)
        registrations = await self._registrations.find_registrations_read_before(date_limit)
        self._log(
            LogLevel.INFO,
            f"Found {len(registrations)} registration(s) to crawl",
            {"read_before": date_limit.isoformat()},
        )

        outcomes = []
        for registration in registrations:
            outcomes.append(await self.crawl_registration(registration, date_limit))

        self._log(
            LogLevel.INFO,
            "Crawl pass finished",
            {
                "crawled": sum(1 for o in outcomes if not o.skipped),
                "valid": sum(1 for o in outcomes if o.valid and not o.skipped),
                "errors": sum(1 for o in outcomes if o.error),
            },
        )
        return outcomes

    async def crawl_registration(
        self, registration: Registration, date_limit: Optional[datetime] = None
    ) -> CrawlOutcome:
        """
        Re-check one registration while holding its URL's lock.

        A naive ``date_limit`` is taken as UTC. The registration is skipped
        when a concurrent ingestion already read it at or after the limit.
        """
        if date_limit is not None and date_limit.tzinfo is None:
            date_limit = date_limit.replace(tzinfo=timezone.utc)

        async with self._locks.hold(registration.url):
            current = registration
            try:
                current = await self._registrations.find_by_url(registration.url) or registration
                if (
                    date_limit is not None
                    and current.date_read is not None
                    and current.date_read >= date_limit
                ):
                    self._log(LogLevel.DEBUG, "Registration refreshed concurrently, skipping", {"url": current.url})
                    return CrawlOutcome(
                        url=current.url,
                        status_code=current.status_code or 200,
                        valid=current.valid_until is None,
                        records=list(current.records),
                        skipped=True,
                    )
                return await self._check(current)
            except Exception as e:
                self._log_error(f"Crawling {current.url} failed", e, current.url)
                return await self._restamp_after_failure(current, e)

    async def _check(self, registration: Registration) -> CrawlOutcome:
        url = registration.url
        previous = list(registration.records)

        try:
            graph = await self._fetcher.dereference(url)
        except HttpError as e:
            self._log(LogLevel.WARN, f"{url} answered HTTP {e.status_code}", {"url": url})
            return await self._finish(registration, previous, e.status_code, False, e)
        except NoRecordFoundAtUrl as e:
            self._log(LogLevel.WARN, f"No dataset description at {url}: {e.message}", {"url": url})
            return await self._finish(registration, [], 200, False, e)
        except FetchError as e:
            self._log(LogLevel.WARN, f"No usable description at {url}: {e.message}", {"url": url, "code": e.code})
            return await self._finish(registration, previous, 200, False, e)

        result = await self._validator.validate(graph)
        if not result.is_valid:
            self._log(LogLevel.INFO, f"{url} no longer validates", {"url": url, "state": result.state.value})
            return await self._finish(registration, previous, 200, False)

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
                f"Crawl of {url} stopped after {len(stored)} record(s): {e.message}",
                {"url": url, "code": e.code},
            )
            merged = stored + [uri for uri in previous if uri not in stored]
            return await self._finish(registration, merged, 200, True, e)

        return await self._finish(registration, stored, 200, True)

    async def _finish(
        self,
        registration: Registration,
        records: list[str],
        status_code: int,
        valid: bool,
        error: Optional[Exception] = None,
    ) -> CrawlOutcome:
        await self._registrations.store(registration.read(records, status_code, valid))
        record_crawl(status_code, valid)
        self._log(
            LogLevel.INFO,
            f"Crawled {registration.url}",
            {"url": registration.url, "status": status_code, "valid": valid, "records": len(records)},
        )
        return CrawlOutcome(
            url=registration.url,
            status_code=status_code,
            valid=valid,
            records=records,
            error=str(error) if error else None,
        )

    async def _restamp_after_failure(self, registration: Registration, error: Exception) -> CrawlOutcome:
        status_code = registration.status_code or 200
        valid = registration.valid_until is None
        try:
            await self._registrations.store(
                registration.read(registration.records, status_code, valid)
            )
        except Exception as e:
            self._log_error(f"Could not re-stamp {registration.url}", e, registration.url)
        return CrawlOutcome(
            url=registration.url,
            status_code=status_code,
            valid=valid,
            records=list(registration.records),
            error=str(error),
        )

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        """Log a message if logger is available."""
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)

    def _log_error(self, message: str, error: Exception, url: str) -> None:
        """Log an error if logger is available."""
        if self._logger:
            self._logger.log_error(self.COMPONENT, message, error=error, request_url=url)
