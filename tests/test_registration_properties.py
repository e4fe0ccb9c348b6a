"""
Property-based tests for the registration lifecycle.

Uses Hypothesis to verify that ``Registration.read`` is the only state
transition and that status is derived consistently from the stored fields.
"""

from datetime import datetime, timedelta, timezone

from hypothesis import given, settings
from hypothesis import strategies as st

from dataset_register.enums import RegistrationStatus
from dataset_register.registration import Registration, registration_to_graph
from dataset_register.vocabulary import RDF, SCHEMA_HTTP

URL = "https://data.example.org/catalog"


@st.composite
def aware_datetime_strategy(draw) -> datetime:
    return draw(
        st.datetimes(
            min_value=datetime(2000, 1, 1),
            max_value=datetime(2100, 1, 1),
            timezones=st.just(timezone.utc),
        )
    )


@st.composite
def record_uris_strategy(draw) -> list[str]:
    ids = draw(st.lists(st.integers(min_value=0, max_value=999), max_size=5, unique=True))
    return [f"https://data.example.org/id/dataset/{i}" for i in ids]


@st.composite
def check_strategy(draw) -> tuple[list[str], int, bool, datetime]:
    """One observed check: records, status code, validity, time."""
    return (
        draw(record_uris_strategy()),
        draw(st.sampled_from([200, 201, 204, 301, 400, 403, 404, 410, 500, 503])),
        draw(st.booleans()),
        draw(aware_datetime_strategy()),
    )


class TestReadTransitionProperty:
    """
    Property tests for ``Registration.read``.

    **Feature: dataset-register, Property 1: read produces a new value**
    """

    @given(check=check_strategy(), posted=aware_datetime_strategy())
    @settings(max_examples=100)
    def test_read_stamps_the_check(self, check, posted: datetime) -> None:
        """*For any* check, read records its records, status and time and keeps the posting date."""
        records, status_code, is_valid, when = check
        registration = Registration(url=URL, date_posted=posted)

        updated = registration.read(records, status_code, is_valid, when)

        assert updated.url == URL
        assert updated.date_posted == posted
        assert updated.records == tuple(records)
        assert updated.status_code == status_code
        assert updated.date_read == when
        # The original value is untouched
        assert registration.date_read is None
        assert registration.records == ()

    @given(checks=st.lists(check_strategy(), min_size=1, max_size=8))
    @settings(max_examples=100)
    def test_valid_until_marks_onset_of_invalidity(self, checks) -> None:
        """
        *For any* sequence of checks, valid_until is the time of the first
        failing check of the current run of failures, and is cleared by a
        valid check.
        """
        registration = Registration(url=URL, date_posted=datetime(2000, 1, 1, tzinfo=timezone.utc))
        onset = None

        for records, status_code, is_valid, when in checks:
            registration = registration.read(records, status_code, is_valid, when)
            if is_valid:
                onset = None
            elif onset is None:
                onset = when
            assert registration.valid_until == onset

    @given(check=check_strategy())
    @settings(max_examples=100)
    def test_status_precedence(self, check) -> None:
        """*For any* check, invalid wins over gone, and gone requires a non-2xx status."""
        records, status_code, is_valid, when = check
        registration = Registration(url=URL, date_posted=when).read(records, status_code, is_valid, when)

        if not is_valid:
            assert registration.status is RegistrationStatus.INVALID
        elif not 200 <= status_code < 300:
            assert registration.status is RegistrationStatus.GONE
        else:
            assert registration.status is RegistrationStatus.VALID

    def test_new_registration_is_valid(self) -> None:
        registration = Registration(url=URL, date_posted=datetime.now(timezone.utc))
        assert registration.status is RegistrationStatus.VALID
        assert registration.date_read is None

    def test_read_defaults_to_now(self) -> None:
        before = datetime.now(timezone.utc)
        registration = Registration(url=URL, date_posted=before).read([], 200, True)
        assert registration.date_read is not None
        assert before <= registration.date_read <= datetime.now(timezone.utc) + timedelta(seconds=1)


class TestRegistrationGraph:
    """Tests for the RDF description of a registration."""

    def test_graph_describes_registration_and_records(self) -> None:
        when = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        records = ["https://data.example.org/id/dataset/1", "https://data.example.org/id/dataset/2"]
        registration = Registration(url=URL, date_posted=when).read(records, 200, False, when)

        graph = registration_to_graph(registration)
        subject = next(graph.subjects(RDF.type, SCHEMA_HTTP.EntryPoint))

        assert str(subject) == URL
        assert graph.value(subject, SCHEMA_HTTP.status).toPython() == 200
        assert graph.value(subject, SCHEMA_HTTP.validUntil).toPython() == when
        assert sorted(str(o) for o in graph.objects(subject, SCHEMA_HTTP.about)) == records
        for record in graph.objects(subject, SCHEMA_HTTP.about):
            assert graph.value(record, SCHEMA_HTTP.subjectOf) == subject

    def test_unread_registration_has_no_read_statements(self) -> None:
        registration = Registration(url=URL, date_posted=datetime.now(timezone.utc))
        graph = registration_to_graph(registration)
        assert list(graph.objects(None, SCHEMA_HTTP.dateRead)) == []
        assert list(graph.objects(None, SCHEMA_HTTP.validUntil)) == []
