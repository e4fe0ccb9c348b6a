"""
Tests for SHACL validation.

Covers the three validation states against the register's shapes and the
interpretation of report graphs, including nested results.
"""

import asyncio

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from rdflib import BNode, Graph, Literal, URIRef

from dataset_register.enums import ValidationState
from dataset_register.exceptions import ConfigurationError
from dataset_register.fetcher import parse_payload
from dataset_register.validator import ShaclValidator, Validator, has_violation
from dataset_register.vocabulary import DCT, RDF, SH

from helpers import JSON_LD, TURTLE, load_fixture, shacl_validator

BASE = "https://data.example.org"
SEVERITIES = [SH.Violation, SH.Warning, SH.Info]


def validate(graph: Graph):
    return asyncio.run(shacl_validator().validate(graph))


def report_with(severities: list) -> Graph:
    """A report graph with one top-level result per severity."""
    report = Graph()
    node = BNode()
    report.add((node, RDF.type, SH.ValidationReport))
    for severity in severities:
        result = BNode()
        report.add((node, SH.result, result))
        report.add((result, SH.resultSeverity, severity))
    return report


class TestValidationStates:
    """Validation of fixtures against the register's shapes."""

    def test_validator_satisfies_protocol(self) -> None:
        assert isinstance(shacl_validator(), Validator)

    def test_complete_description_is_valid(self) -> None:
        graph = parse_payload(load_fixture("dataset-dcat-complete.ttl"), TURTLE, BASE)
        result = validate(graph)
        assert result.state is ValidationState.VALID
        assert result.is_valid
        assert result.errors is not None
        assert (None, SH.resultSeverity, SH.Violation) not in result.errors

    def test_minimal_description_is_valid_with_warnings(self) -> None:
        graph = parse_payload(load_fixture("dataset-dcat-minimal.ttl"), TURTLE, BASE)
        result = validate(graph)
        assert result.state is ValidationState.VALID
        paths = set(result.errors.objects(None, SH.resultPath))
        assert DCT.description in paths
        assert DCT.modified in paths

    def test_schema_org_description_is_valid(self) -> None:
        graph = parse_payload(load_fixture("dataset-schema.jsonld"), JSON_LD, BASE)
        assert validate(graph).state is ValidationState.VALID

    def test_missing_required_property_is_invalid(self) -> None:
        graph = parse_payload(load_fixture("dataset-dcat-invalid.ttl"), TURTLE, BASE)
        result = validate(graph)
        assert result.state is ValidationState.INVALID
        assert not result.is_valid
        assert (None, SH.resultSeverity, SH.Violation) in result.errors
        assert DCT.license in set(result.errors.objects(None, SH.resultPath))

    def test_graph_without_dataset_is_no_record(self) -> None:
        graph = Graph()
        graph.add((URIRef(f"{BASE}/thing"), DCT.title, Literal("Not a dataset")))
        result = validate(graph)
        assert result.state is ValidationState.NO_RECORD
        assert result.errors is None

    def test_blank_node_dataset_is_no_record(self) -> None:
        graph = Graph()
        dataset = BNode()
        graph.add((dataset, RDF.type, URIRef("http://www.w3.org/ns/dcat#Dataset")))
        graph.add((dataset, DCT.title, Literal("Anonymous")))
        assert validate(graph).state is ValidationState.NO_RECORD

    def test_validate_sync_matches_async(self) -> None:
        graph = parse_payload(load_fixture("dataset-dcat-invalid.ttl"), TURTLE, BASE)
        assert shacl_validator().validate_sync(graph).state is validate(graph).state


class TestReportInterpretationProperty:
    """
    Property tests for report interpretation.

    **Feature: dataset-register, Property 6: invalid iff a violation is reported**
    """

    @given(severities=st.lists(st.sampled_from(SEVERITIES), max_size=8))
    @settings(max_examples=100)
    def test_invalid_iff_violation(self, severities: list) -> None:
        result = ShaclValidator.interpret(report_with(severities))
        if SH.Violation in severities:
            assert result.state is ValidationState.INVALID
        else:
            assert result.state is ValidationState.VALID

    @given(severities=st.lists(st.sampled_from(SEVERITIES), max_size=8))
    @settings(max_examples=100)
    def test_valid_reports_hold_no_violations(self, severities: list) -> None:
        result = ShaclValidator.interpret(report_with(severities))
        if result.is_valid:
            assert (None, SH.resultSeverity, SH.Violation) not in result.errors
            assert len(result.errors) == len(report_with(severities))

    def test_nested_violation_is_invalid(self) -> None:
        report = report_with([SH.Warning])
        top = next(report.objects(None, SH.result))
        detail = BNode()
        report.add((top, SH.detail, detail))
        report.add((detail, SH.resultSeverity, SH.Violation))

        assert has_violation(report, top)
        assert ShaclValidator.interpret(report).state is ValidationState.INVALID

    def test_result_with_details_is_decided_by_details(self) -> None:
        report = report_with([SH.Violation])
        top = next(report.objects(None, SH.result))
        detail = BNode()
        report.add((top, SH.detail, detail))
        report.add((detail, SH.resultSeverity, SH.Warning))

        result = ShaclValidator.interpret(report)
        assert result.state is ValidationState.VALID
        # Violations in a valid report are downgraded
        assert (top, SH.resultSeverity, SH.Warning) in result.errors

    def test_cyclic_details_terminate(self) -> None:
        report = report_with([SH.Warning])
        top = next(report.objects(None, SH.result))
        report.add((top, SH.detail, top))
        assert not has_violation(report, top)


class TestShapesLoading:
    """Tests for loading shapes graphs."""

    def test_empty_shapes_are_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            ShaclValidator(Graph())

    def test_missing_shapes_file(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError) as excinfo:
            ShaclValidator.from_path(tmp_path / "missing.ttl")
        assert excinfo.value.code == "shapes_unreadable"

    def test_unparseable_shapes_file(self, tmp_path) -> None:
        path = tmp_path / "broken.ttl"
        path.write_text("@prefix sh: <http://www.w3.org/ns/shacl#> .\nsh:Shape sh:path", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            ShaclValidator.from_path(path)
