"""
Metadata extraction.

Partitions a stream of statements into one record per dataset. The
stream is expected in record order: each record's ``rdf:type dcat:Dataset``
statement, followed by its bounded description. A new record starts
whenever a type statement names a subject other than the current one;
the remaining buffer is flushed when the stream ends. Every statement
lands in exactly one record.
"""

from collections import deque
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator, Optional

from rdflib import BNode, Graph, URIRef
from rdflib.term import Node

from .models import Record
from .vocabulary import DATASET_TYPES, RDF, RECORD_TYPE

Triple = tuple[Node, Node, Node]


def extract_iri(graph: Graph) -> Optional[URIRef]:
    """Return the first non-blank subject typed as a dataset, if any."""
    candidates = sorted(
        subject
        for dataset_type in DATASET_TYPES
        for subject in graph.subjects(RDF.type, dataset_type)
        if isinstance(subject, URIRef)
    )
    return candidates[0] if candidates else None


def describe(graph: Graph, subject: URIRef, stop: Iterable[Node] = ()) -> Iterator[Triple]:
    """
    Yield the bounded description of ``subject``.

    Follows object links breadth-first through nodes that have statements of
    their own, but never into the nodes in ``stop`` (other records).
    """
    excluded = set(stop)
    seen = {subject}
    queue = deque([subject])
    while queue:
        node = queue.popleft()
        for triple in graph.triples((node, None, None)):
            yield triple
            obj = triple[2]
            if isinstance(obj, (BNode, URIRef)) and obj not in seen and obj not in excluded:
                seen.add(obj)
                if (obj, None, None) in graph:
                    queue.append(obj)


def iter_record_statements(graph: Graph, record_type: URIRef = RECORD_TYPE) -> Iterator[Triple]:
    """Yield the statements of every record in ``graph``, one record after another."""
    records = sorted(
        subject for subject in set(graph.subjects(RDF.type, record_type))
        if isinstance(subject, URIRef)
    )
    record_set = set(records)
    for record in records:
        type_statement = (record, RDF.type, record_type)
        yield type_statement
        for triple in describe(graph, record, record_set - {record}):
            if triple != type_statement:
                yield triple


class RecordGrouper:
    """
    Streaming record boundary detection.

    Push statements one at a time; a completed record is returned when a
    statement opens the next one. Call ``finish`` at the end of the stream.
    """

    def __init__(self, record_type: URIRef = RECORD_TYPE) -> None:
        self._record_type = record_type
        self._current: Optional[Node] = None
        self._buffer: list[Triple] = []

    @property
    def current(self) -> Optional[Node]:
        return self._current

    def push(self, triple: Triple) -> Optional[Record]:
        subject, predicate, obj = triple
        completed = None
        if predicate == RDF.type and obj == self._record_type:
            if self._current is None:
                self._current = subject
            elif subject != self._current:
                completed = self._flush()
                self._current = subject
        self._buffer.append(triple)
        return completed

    def finish(self) -> Optional[Record]:
        return self._flush()

    def _flush(self) -> Optional[Record]:
        record = None
        if isinstance(self._current, URIRef) and self._buffer:
            graph = Graph()
            for triple in self._buffer:
                graph.add(triple)
            record = Record(uri=self._current, graph=graph)
        self._current = None
        self._buffer = []
        return record


def extract_records(graph: Graph, record_type: URIRef = RECORD_TYPE) -> list[Record]:
    """Partition a fully materialized graph into records."""
    grouper = RecordGrouper(record_type)
    records = []
    for triple in iter_record_statements(graph, record_type):
        record = grouper.push(triple)
        if record is not None:
            records.append(record)
    last = grouper.finish()
    if last is not None:
        records.append(last)
    return records


async def group_records(
    statements: AsyncIterable[Triple],
    record_type: URIRef = RECORD_TYPE,
) -> AsyncIterator[Record]:
    """
    Group an ordered statement stream into records as it arrives.

    An error raised by the stream propagates to the consumer after the
    records completed before it were yielded; the unfinished buffer is
    dropped.
    """
    grouper = RecordGrouper(record_type)
    async for triple in statements:
        record = grouper.push(triple)
        if record is not None:
            yield record
    last = grouper.finish()
    if last is not None:
        yield last
