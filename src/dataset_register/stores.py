"""
Graph store backed persistence.

Store contracts and their SPARQL implementations. Every write replaces:
storing a record clears its named graph before inserting, storing a
registration or rating deletes the previous description first, so
stores never accumulate stale statements.

Requirements covered:
- Registrations: store, find read-before, find by URL, delete
- Records: atomic replace of a record's named graph, counts
- Allowed domains: exact registrable-domain membership
- Ratings: store and delete per record
"""

from abc import abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable

from rdflib import BNode, Graph, Literal, URIRef
from rdflib.term import Node

from .models import Record
from .rating import Rating
from .registration import Registration, registration_to_graph
from .sparql import Bindings, SparqlEndpoint
from .vocabulary import ALLOWED_DOMAIN, DCAT, DCT, RDF, SCHEMA, SCHEMA_HTTP, XSD

DEFAULT_REGISTRATIONS_GRAPH = "https://demo.netwerkdigitaalerfgoed.nl/registry/registrations"
DEFAULT_ALLOWED_DOMAINS_GRAPH = "https://demo.netwerkdigitaalerfgoed.nl/registry/allowed_domain_names"
DEFAULT_RATINGS_GRAPH = "https://demo.netwerkdigitaalerfgoed.nl/registry/ratings"


@runtime_checkable
class RegistrationStore(Protocol):
    """Protocol defining the interface for registration persistence."""

    @abstractmethod
    async def store(self, registration: Registration) -> None:
        """Replace the stored description of the registration."""
        ...

    @abstractmethod
    async def find_registrations_read_before(self, date: datetime) -> list[Registration]:
        """Registrations last read strictly before ``date``, or never read at all."""
        ...

    @abstractmethod
    async def find_by_url(self, url: str) -> Optional[Registration]:
        """The registration for ``url``, if any."""
        ...

    @abstractmethod
    async def delete(self, url: str) -> None:
        """Remove the registration for ``url``."""
        ...


@runtime_checkable
class RecordStore(Protocol):
    """Protocol defining the interface for record persistence."""

    @abstractmethod
    async def store(self, record: Record) -> None:
        """Replace the record's named graph with its current statements."""
        ...

    @abstractmethod
    async def count_records(self) -> int:
        ...

    @abstractmethod
    async def count_publishers(self) -> int:
        ...

    @abstractmethod
    async def delete(self, uri: str) -> None:
        ...


@runtime_checkable
class AllowedDomainStore(Protocol):
    """Protocol defining the interface for the domain allow-list."""

    @abstractmethod
    async def contains(self, *domain_names: str) -> bool:
        """Whether any of ``domain_names`` is allowed."""
        ...


@runtime_checkable
class RatingStore(Protocol):
    """Protocol defining the interface for rating persistence."""

    @abstractmethod
    async def store(self, record_uri: str, rating: Rating) -> None:
        ...

    @abstractmethod
    async def delete(self, record_uri: str) -> None:
        ...


def _iri(value: str) -> str:
    return URIRef(value).n3()


def _datetime(term: Optional[Node]) -> Optional[datetime]:
    if term is None:
        return None
    value = term.toPython() if isinstance(term, Literal) else str(term)
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _int(term: Optional[Node]) -> Optional[int]:
    if term is None:
        return None
    return int(term.toPython() if isinstance(term, Literal) else str(term))


def insert_data(graph_iri: str, graph: Graph) -> str:
    """An INSERT DATA request placing ``graph`` in the named graph ``graph_iri``."""
    return f"INSERT DATA {{ GRAPH {_iri(graph_iri)} {{\n{graph.serialize(format='nt')}}} }}"


class SparqlRegistrationStore:
    """Registrations in a single named graph."""

    def __init__(self, client: SparqlEndpoint, graph_iri: str = DEFAULT_REGISTRATIONS_GRAPH) -> None:
        self._client = client
        self._graph = graph_iri

    def _delete(self, url: str) -> str:
        graph = _iri(self._graph)
        return f"""PREFIX schema: <{SCHEMA_HTTP}>
DELETE {{ GRAPH {graph} {{ ?registration ?p ?o . ?record ?recordProperty ?recordValue . }} }}
WHERE {{
  GRAPH {graph} {{
    ?registration ?p ?o .
    OPTIONAL {{ ?record schema:subjectOf ?registration ; ?recordProperty ?recordValue . }}
  }}
  VALUES ?registration {{ {_iri(url)} }}
}}"""

    def _select(self, condition: str) -> str:
        return f"""PREFIX schema: <{SCHEMA_HTTP}>
SELECT ?registration ?datePosted ?dateRead ?validUntil ?statusCode ?record
WHERE {{
  GRAPH {_iri(self._graph)} {{
    ?registration a schema:EntryPoint ;
      schema:datePosted ?datePosted .
    OPTIONAL {{ ?registration schema:dateRead ?dateRead . }}
    OPTIONAL {{ ?registration schema:validUntil ?validUntil . }}
    OPTIONAL {{ ?registration schema:status ?statusCode . }}
    OPTIONAL {{ ?registration schema:about ?record . }}
  }}
  {condition}
}}
ORDER BY ?registration ?record"""

    async def store(self, registration: Registration) -> None:
        await self._client.update(
            self._delete(registration.url)
            + " ;\n"
            + insert_data(self._graph, registration_to_graph(registration))
        )

    async def find_registrations_read_before(self, date: datetime) -> list[Registration]:
        if date.tzinfo is None:
            date = date.replace(tzinfo=timezone.utc)
        cutoff = Literal(date.isoformat(), datatype=XSD.dateTime).n3()
        rows = await self._client.query(
            self._select(f"FILTER(!BOUND(?dateRead) || ?dateRead < {cutoff})")
        )
        return registrations_from_rows(rows)

    async def find_by_url(self, url: str) -> Optional[Registration]:
        rows = await self._client.query(self._select(f"VALUES ?registration {{ {_iri(url)} }}"))
        registrations = registrations_from_rows(rows)
        return registrations[0] if registrations else None

    async def delete(self, url: str) -> None:
        await self._client.update(self._delete(url))


def registrations_from_rows(rows: list[Bindings]) -> list[Registration]:
    """Group one-row-per-record query solutions into registrations."""
    grouped: dict[str, tuple[Bindings, list[str]]] = {}
    for row in rows:
        url = str(row["registration"])
        if url not in grouped:
            grouped[url] = (row, [])
        record = row.get("record")
        records = grouped[url][1]
        if record is not None and str(record) not in records:
            records.append(str(record))

    return [
        Registration(
            url=url,
            date_posted=_datetime(row["datePosted"]),
            records=tuple(records),
            status_code=_int(row.get("statusCode")),
            valid_until=_datetime(row.get("validUntil")),
            date_read=_datetime(row.get("dateRead")),
        )
        for url, (row, records) in grouped.items()
    ]


class SparqlRecordStore:
    """Records, each in the named graph named after the record URI."""

    def __init__(self, client: SparqlEndpoint) -> None:
        self._client = client

    async def store(self, record: Record) -> None:
        await self._client.update(
            f"CLEAR SILENT GRAPH {_iri(record.uri)} ;\n" + insert_data(str(record.uri), record.graph)
        )

    async def count_records(self) -> int:
        return await self._count(
            f"SELECT (COUNT(DISTINCT ?record) AS ?count) WHERE {{ GRAPH ?g {{ ?record a {DCAT.Dataset.n3()} }} }}"
        )

    async def count_publishers(self) -> int:
        return await self._count(
            "SELECT (COUNT(DISTINCT ?publisher) AS ?count) WHERE { GRAPH ?g { "
            f"?record a {DCAT.Dataset.n3()} ; {DCT.publisher.n3()} ?publisher }} }}"
        )

    async def delete(self, uri: str) -> None:
        await self._client.update(f"CLEAR SILENT GRAPH {_iri(uri)}")

    async def _count(self, query: str) -> int:
        rows = await self._client.query(query)
        if not rows or rows[0].get("count") is None:
            return 0
        return _int(rows[0]["count"]) or 0


class SparqlAllowedDomainStore:
    """Allowed registrable domain names in a single named graph."""

    DOMAIN_NAME = ALLOWED_DOMAIN.domain_name

    def __init__(self, client: SparqlEndpoint, graph_iri: str = DEFAULT_ALLOWED_DOMAINS_GRAPH) -> None:
        self._client = client
        self._graph = graph_iri

    async def contains(self, *domain_names: str) -> bool:
        if not domain_names:
            return False
        values = " ".join(Literal(name).n3() for name in domain_names)
        return await self._client.ask(
            f"ASK {{ GRAPH {_iri(self._graph)} {{ "
            f"?entry {self.DOMAIN_NAME.n3()} ?domain . VALUES ?domain {{ {values} }} }} }}"
        )

    async def add(self, *domain_names: str) -> None:
        """Allow registrations from ``domain_names``."""
        graph = Graph()
        for name in domain_names:
            graph.add((BNode(), self.DOMAIN_NAME, Literal(name)))
        await self._client.update(insert_data(self._graph, graph))


class SparqlRatingStore:
    """Record ratings as schema:Rating nodes in a single named graph."""

    def __init__(self, client: SparqlEndpoint, graph_iri: str = DEFAULT_RATINGS_GRAPH) -> None:
        self._client = client
        self._graph = graph_iri

    def _delete(self, record_uri: str) -> str:
        graph = _iri(self._graph)
        return (
            f"DELETE {{ GRAPH {graph} {{ ?record {SCHEMA.contentRating.n3()} ?rating . ?rating ?p ?o . }} }} "
            f"WHERE {{ GRAPH {graph} {{ ?record {SCHEMA.contentRating.n3()} ?rating . ?rating ?p ?o . }} "
            f"VALUES ?record {{ {_iri(record_uri)} }} }}"
        )

    async def store(self, record_uri: str, rating: Rating) -> None:
        await self._client.update(
            self._delete(record_uri) + " ;\n" + insert_data(self._graph, rating_to_graph(record_uri, rating))
        )

    async def delete(self, record_uri: str) -> None:
        await self._client.update(self._delete(record_uri))


def rating_to_graph(record_uri: str, rating: Rating) -> Graph:
    """Describe a rating as a schema:Rating attached to the record."""
    graph = Graph()
    node = BNode()
    graph.add((URIRef(record_uri), SCHEMA.contentRating, node))
    graph.add((node, RDF.type, SCHEMA.Rating))
    graph.add((node, SCHEMA.bestRating, Literal(str(rating.best_rating), datatype=XSD.integer)))
    graph.add((node, SCHEMA.worstRating, Literal(str(rating.worst_rating), datatype=XSD.integer)))
    graph.add((node, SCHEMA.ratingValue, Literal(str(rating.score), datatype=XSD.integer)))
    if rating.explanation:
        graph.add((node, SCHEMA.ratingExplanation, Literal(rating.explanation)))
    return graph


@dataclass
class Stores:
    """The four stores the register works with."""

    registrations: SparqlRegistrationStore
    records: SparqlRecordStore
    allowed_domains: SparqlAllowedDomainStore
    ratings: SparqlRatingStore


def create_stores(
    client: SparqlEndpoint,
    registrations_graph: str = DEFAULT_REGISTRATIONS_GRAPH,
    allowed_domains_graph: str = DEFAULT_ALLOWED_DOMAINS_GRAPH,
    ratings_graph: str = DEFAULT_RATINGS_GRAPH,
) -> Stores:
    """Create all stores over one SPARQL client."""
    return Stores(
        registrations=SparqlRegistrationStore(client, registrations_graph),
        records=SparqlRecordStore(client),
        allowed_domains=SparqlAllowedDomainStore(client, allowed_domains_graph),
        ratings=SparqlRatingStore(client, ratings_graph),
    )
