"""
Shared helpers for the dataset register tests.

Provides fixture loading, an offline HTTP layer built on httpx.MockTransport,
and in-process stores so tests never touch the network.
"""

from functools import lru_cache
from pathlib import Path
from typing import Callable, Optional, Union

import httpx
from rdflib import URIRef

from dataset_register.allow_list import DomainAllowList
from dataset_register.crawler import Crawler
from dataset_register.fetcher import Fetcher
from dataset_register.ingestion import IngestionService
from dataset_register.locks import RegistrationLocks
from dataset_register.sparql import LocalSparqlClient
from dataset_register.stores import DEFAULT_RATINGS_GRAPH, Stores, create_stores
from dataset_register.validator import ShaclValidator
from dataset_register.vocabulary import SCHEMA

FIXTURES = Path(__file__).parent / "fixtures"
SHAPES = Path(__file__).parent.parent / "requirements" / "shacl.ttl"

TURTLE = "text/turtle"
JSON_LD = "application/ld+json"
HTML = "text/html; charset=utf-8"

Route = tuple[int, Optional[str], Union[str, bytes]]


def load_fixture(name: str) -> bytes:
    return (FIXTURES / name).read_bytes()


@lru_cache(maxsize=1)
def shacl_validator() -> ShaclValidator:
    """The register's shapes, parsed once per test session."""
    return ShaclValidator.from_path(SHAPES)


def mock_client(
    routes: dict[str, Union[Route, Callable[[httpx.Request], httpx.Response]]],
) -> httpx.AsyncClient:
    """
    An AsyncClient answering from ``routes`` (URL -> (status, content type, body)).

    Unknown URLs answer 404. A route may also be a callable returning a
    response, for errors raised mid-request.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, content=b"Not Found")
        if callable(route):
            return route(request)
        status, content_type, body = route
        headers = {"content-type": content_type} if content_type else {}
        return httpx.Response(status, content=body, headers=headers)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def mock_fetcher(routes: dict, max_pages: int = 100) -> Fetcher:
    return Fetcher(client=mock_client(routes), max_pages=max_pages)


def local_stores() -> Stores:
    return create_stores(LocalSparqlClient())


class Register:
    """Ingestion service and crawler over in-process stores and mocked HTTP."""

    def __init__(self, routes: dict, allowed: tuple[str, ...] = ("example.org",)) -> None:
        self.routes = routes
        self.client = LocalSparqlClient()
        self.stores = create_stores(self.client)
        self.fetcher = mock_fetcher(routes)
        self.validator = shacl_validator()
        self.locks = RegistrationLocks()
        self.allowed = allowed
        self.ingestion = IngestionService(
            fetcher=self.fetcher,
            validator=self.validator,
            registration_store=self.stores.registrations,
            record_store=self.stores.records,
            rating_store=self.stores.ratings,
            allow_list=DomainAllowList(self.stores.allowed_domains),
            locks=self.locks,
        )
        self.crawler = Crawler(
            registration_store=self.stores.registrations,
            record_store=self.stores.records,
            rating_store=self.stores.ratings,
            validator=self.validator,
            fetcher=self.fetcher,
            locks=self.locks,
        )

    async def allow(self) -> None:
        await self.stores.allowed_domains.add(*self.allowed)

    def rating_of(self, record_uri: str) -> Optional[int]:
        """The stored rating value of a record, if any."""
        graph = self.client.dataset.graph(URIRef(DEFAULT_RATINGS_GRAPH))
        node = graph.value(URIRef(record_uri), SCHEMA.contentRating)
        if node is None:
            return None
        return graph.value(node, SCHEMA.ratingValue).toPython()
