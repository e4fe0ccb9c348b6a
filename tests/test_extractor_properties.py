"""
Property-based tests for record extraction.

Verifies that grouping partitions a statement stream into records without
losing or duplicating statements, and that records completed before a
stream error are still delivered.
"""

import asyncio

from hypothesis import given, settings
from hypothesis import strategies as st
from rdflib import BNode, Graph, Literal, URIRef

from dataset_register.extractor import (
    RecordGrouper,
    extract_iri,
    extract_records,
    group_records,
    iter_record_statements,
)
from dataset_register.vocabulary import DCAT, DCT, RDF, SCHEMA


@st.composite
def catalog_strategy(draw) -> Graph:
    """A graph of DCAT datasets, each with literals and a blank-node distribution."""
    graph = Graph()
    ids = draw(st.lists(st.integers(min_value=0, max_value=500), min_size=0, max_size=6, unique=True))
    for i in ids:
        dataset = URIRef(f"https://data.example.org/id/dataset/{i}")
        graph.add((dataset, RDF.type, DCAT.Dataset))
        graph.add((dataset, DCT.title, Literal(f"Dataset {i}")))
        for keyword in draw(st.lists(st.sampled_from(["a", "b", "c", "d"]), unique=True, max_size=3)):
            graph.add((dataset, DCAT.keyword, Literal(keyword)))
        if draw(st.booleans()):
            distribution = BNode()
            graph.add((dataset, DCAT.distribution, distribution))
            graph.add((distribution, RDF.type, DCAT.Distribution))
            graph.add((distribution, DCAT.accessURL, URIRef(f"https://data.example.org/download/{i}.csv")))
    return graph


class TestRecordPartitionProperty:
    """
    Property tests for record boundaries.

    **Feature: dataset-register, Property 4: every statement lands in exactly one record**
    """

    @given(graph=catalog_strategy())
    @settings(max_examples=100)
    def test_records_partition_the_catalog(self, graph: Graph) -> None:
        """*For any* catalog, the records together hold every statement exactly once."""
        records = extract_records(graph)
        datasets = set(graph.subjects(RDF.type, DCAT.Dataset))

        assert {record.uri for record in records} == datasets
        assert sum(len(record) for record in records) == len(graph)

        union = Graph()
        for record in records:
            union += record.graph
        assert len(union) == len(graph)

    @given(graph=catalog_strategy())
    @settings(max_examples=100)
    def test_each_record_holds_its_type_statement(self, graph: Graph) -> None:
        for record in extract_records(graph):
            assert (record.uri, RDF.type, DCAT.Dataset) in record.graph
            assert set(record.graph.subjects(RDF.type, DCAT.Dataset)) == {record.uri}

    @given(graph=catalog_strategy())
    @settings(max_examples=100)
    def test_streaming_matches_batch(self, graph: Graph) -> None:
        """*For any* catalog, grouping the stream yields the same records as the batch partition."""

        async def statements():
            for triple in iter_record_statements(graph):
                yield triple

        async def collect():
            return [record async for record in group_records(statements())]

        streamed = asyncio.run(collect())
        batch = extract_records(graph)

        assert [r.uri for r in streamed] == [r.uri for r in batch]
        assert [set(r.graph) for r in streamed] == [set(r.graph) for r in batch]


class TestRecordGrouper:
    """Tests for streaming boundary detection."""

    def test_stream_error_keeps_completed_records(self) -> None:
        first = URIRef("https://data.example.org/id/dataset/1")
        second = URIRef("https://data.example.org/id/dataset/2")

        async def statements():
            yield (first, RDF.type, DCAT.Dataset)
            yield (first, DCT.title, Literal("First"))
            yield (second, RDF.type, DCAT.Dataset)
            yield (second, DCT.title, Literal("Second"))
            raise RuntimeError("page 2 failed")

        async def collect():
            received = []
            try:
                async for record in group_records(statements()):
                    received.append(record)
            except RuntimeError as e:
                return received, e
            return received, None

        received, error = asyncio.run(collect())

        assert [record.uri for record in received] == [first]
        assert error is not None

    def test_blank_node_records_are_dropped(self) -> None:
        grouper = RecordGrouper()
        blank = BNode()
        assert grouper.push((blank, RDF.type, DCAT.Dataset)) is None
        assert grouper.push((blank, DCT.title, Literal("Anonymous"))) is None
        assert grouper.finish() is None

    def test_repeated_type_statement_does_not_split(self) -> None:
        grouper = RecordGrouper()
        dataset = URIRef("https://data.example.org/id/dataset/1")
        assert grouper.push((dataset, RDF.type, DCAT.Dataset)) is None
        assert grouper.push((dataset, RDF.type, DCAT.Dataset)) is None
        record = grouper.finish()
        assert record is not None
        assert record.uri == dataset

    def test_empty_stream_has_no_records(self) -> None:
        assert RecordGrouper().finish() is None
        assert extract_records(Graph()) == []


class TestExtractIri:
    """Tests for dataset identifier extraction."""

    def test_first_named_dataset(self) -> None:
        graph = Graph()
        graph.add((URIRef("https://example.org/b"), RDF.type, DCAT.Dataset))
        graph.add((URIRef("https://example.org/a"), RDF.type, SCHEMA.Dataset))
        graph.add((BNode(), RDF.type, DCAT.Dataset))
        assert extract_iri(graph) == URIRef("https://example.org/a")

    def test_no_dataset(self) -> None:
        graph = Graph()
        graph.add((BNode(), RDF.type, DCAT.Dataset))
        graph.add((URIRef("https://example.org/thing"), DCT.title, Literal("Not a dataset")))
        assert extract_iri(graph) is None
