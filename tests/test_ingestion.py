"""
Tests for the ingestion boundary.

Each test wires the real fetcher, validator and stores together over mocked
HTTP and an in-process graph store.
"""

import asyncio

import pytest

from dataset_register.enums import IngestionStatus, RegistrationStatus, ValidationState
from dataset_register.exceptions import HttpError
from dataset_register.instrumentation import sample
from dataset_register.rating import BEST_RATING, WORST_RATING
from dataset_register.registration import utc_now

from helpers import HTML, JSON_LD, TURTLE, Register, load_fixture

BASE = "https://data.example.org"
COMPLETE = f"{BASE}/id/dataset/complete"
MINIMAL = f"{BASE}/id/dataset/minimal"


def ingest(register: Register, url: str):
    async def run():
        await register.allow()
        return await register.ingestion.ingest(url)

    return asyncio.run(run())


def find(register: Register, url: str):
    return asyncio.run(register.stores.registrations.find_by_url(url))


class BrokenRecordStore:
    """A record store whose writes always fail."""

    async def store(self, record) -> None:
        raise RuntimeError("record store unavailable")


class TestIngest:
    """Outcomes of ``IngestionService.ingest``."""

    def test_accepted(self) -> None:
        url = f"{BASE}/complete.ttl"
        register = Register({url: (200, TURTLE, load_fixture("dataset-dcat-complete.ttl"))})
        registered_before = sample("dataset_register_registrations_total", {"valid": "true"})

        result = ingest(register, url)

        assert result.status is IngestionStatus.ACCEPTED
        assert result.accepted
        assert result.http_status == 202
        assert result.records == [COMPLETE]
        assert result.validation.state is ValidationState.VALID

        registration = find(register, url)
        assert registration.records == (COMPLETE,)
        assert registration.status_code == 200
        assert registration.date_read is not None
        assert registration.status is RegistrationStatus.VALID

        assert register.rating_of(COMPLETE) == BEST_RATING
        assert asyncio.run(register.stores.records.count_records()) == 1
        assert sample("dataset_register_registrations_total", {"valid": "true"}) == registered_before + 1

    def test_minimal_record_gets_worst_rating(self) -> None:
        url = f"{BASE}/minimal.ttl"
        register = Register({url: (200, TURTLE, load_fixture("dataset-dcat-minimal.ttl"))})

        result = ingest(register, url)

        assert result.accepted
        assert register.rating_of(MINIMAL) == WORST_RATING

    def test_schema_org_source(self) -> None:
        url = f"{BASE}/schema.jsonld"
        register = Register({url: (200, JSON_LD, load_fixture("dataset-schema.jsonld"))})

        result = ingest(register, url)

        assert result.accepted
        assert result.records == [f"{BASE}/id/dataset/schema"]

    def test_domain_not_allowed(self) -> None:
        url = "https://data.other.org/catalog.ttl"
        register = Register({url: (200, TURTLE, load_fixture("dataset-dcat-complete.ttl"))})

        result = ingest(register, url)

        assert result.status is IngestionStatus.DOMAIN_NOT_ALLOWED
        assert result.http_status == 403
        assert find(register, url) is None

    def test_not_found(self) -> None:
        result = ingest(Register({}), f"{BASE}/missing.ttl")
        assert result.status is IngestionStatus.NOT_FOUND
        assert result.http_status == 404

    @pytest.mark.parametrize("route", [
        (500, TURTLE, b""),
        (200, "image/png", b"\x89PNG"),
        (200, HTML, b"<html><body>No data</body></html>"),
        (200, TURTLE, b'<https://data.example.org/thing> <http://purl.org/dc/terms/title> "Thing" .'),
    ])
    def test_not_acceptable(self, route) -> None:
        url = f"{BASE}/source"
        register = Register({url: route})

        result = ingest(register, url)

        assert result.status is IngestionStatus.NOT_ACCEPTABLE
        assert result.http_status == 406
        assert find(register, url) is None

    def test_invalid(self) -> None:
        url = f"{BASE}/invalid.ttl"
        register = Register({url: (200, TURTLE, load_fixture("dataset-dcat-invalid.ttl"))})
        rejected_before = sample("dataset_register_registrations_total", {"valid": "false"})

        result = ingest(register, url)

        assert result.status is IngestionStatus.INVALID
        assert result.http_status == 400
        assert result.validation.state is ValidationState.INVALID
        assert result.validation.errors is not None
        assert find(register, url) is None
        assert sample("dataset_register_registrations_total", {"valid": "false"}) == rejected_before + 1

    def test_resubmission_keeps_date_posted(self) -> None:
        url = f"{BASE}/complete.ttl"
        register = Register({url: (200, TURTLE, load_fixture("dataset-dcat-complete.ttl"))})

        ingest(register, url)
        first = find(register, url)
        ingest(register, url)
        second = find(register, url)

        assert second.date_posted == first.date_posted
        assert second.date_read >= first.date_read

    def test_interrupted_ingestion_is_left_for_the_crawler(self) -> None:
        url = f"{BASE}/complete.ttl"
        register = Register({url: (200, TURTLE, load_fixture("dataset-dcat-complete.ttl"))})
        register.ingestion._records = BrokenRecordStore()

        with pytest.raises(RuntimeError):
            ingest(register, url)

        registration = find(register, url)
        assert registration.date_read is None
        stale = asyncio.run(register.stores.registrations.find_registrations_read_before(utc_now()))
        assert [r.url for r in stale] == [url]

    def test_interrupted_resubmission_keeps_last_read_state(self) -> None:
        url = f"{BASE}/complete.ttl"
        register = Register({url: (200, TURTLE, load_fixture("dataset-dcat-complete.ttl"))})
        ingest(register, url)
        first = find(register, url)
        register.ingestion._records = BrokenRecordStore()

        with pytest.raises(RuntimeError):
            ingest(register, url)

        assert find(register, url) == first

    def test_concurrent_submissions_are_serialized(self) -> None:
        url = f"{BASE}/complete.ttl"
        register = Register({url: (200, TURTLE, load_fixture("dataset-dcat-complete.ttl"))})

        async def run():
            await register.allow()
            return await asyncio.gather(*(register.ingestion.ingest(url) for _ in range(3)))

        results = asyncio.run(run())

        assert all(result.accepted for result in results)
        assert find(register, url).records == (COMPLETE,)
        assert len(register.locks) == 0


class TestDeregister:
    """Tests for ``IngestionService.deregister``."""

    def test_removes_registration_records_and_ratings(self) -> None:
        url = f"{BASE}/complete.ttl"
        register = Register({url: (200, TURTLE, load_fixture("dataset-dcat-complete.ttl"))})
        ingest(register, url)

        assert asyncio.run(register.ingestion.deregister(url)) is True

        assert find(register, url) is None
        assert register.rating_of(COMPLETE) is None
        assert asyncio.run(register.stores.records.count_records()) == 0

    def test_unknown_url(self) -> None:
        assert asyncio.run(Register({}).ingestion.deregister(f"{BASE}/unknown")) is False


class TestValidateOnly:
    """Tests for ``IngestionService.validate_only``."""

    def test_url(self) -> None:
        url = f"{BASE}/invalid.ttl"
        register = Register({url: (200, TURTLE, load_fixture("dataset-dcat-invalid.ttl"))})

        result = asyncio.run(register.ingestion.validate_only(url=url))

        assert result.state is ValidationState.INVALID
        # Nothing is registered
        assert find(register, url) is None

    def test_payload(self) -> None:
        register = Register({})
        result = asyncio.run(register.ingestion.validate_only(
            payload=load_fixture("dataset-schema.jsonld"),
            content_type=JSON_LD,
        ))
        assert result.state is ValidationState.VALID

    def test_payload_without_dataset(self) -> None:
        register = Register({})
        result = asyncio.run(register.ingestion.validate_only(payload="{}", content_type=JSON_LD))
        assert result.state is ValidationState.NO_RECORD
        assert result.errors is None

    def test_domain_is_not_checked(self) -> None:
        url = "https://data.other.org/complete.ttl"
        register = Register({url: (200, TURTLE, load_fixture("dataset-dcat-complete.ttl"))})
        result = asyncio.run(register.ingestion.validate_only(url=url))
        assert result.state is ValidationState.VALID

    def test_http_error_propagates(self) -> None:
        with pytest.raises(HttpError):
            asyncio.run(Register({}).ingestion.validate_only(url=f"{BASE}/missing"))

    def test_exactly_one_source(self) -> None:
        register = Register({})
        with pytest.raises(ValueError):
            asyncio.run(register.ingestion.validate_only())
        with pytest.raises(ValueError):
            asyncio.run(register.ingestion.validate_only(url=f"{BASE}/x", payload="{}"))
