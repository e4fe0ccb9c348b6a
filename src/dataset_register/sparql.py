"""
SPARQL clients.

Two interchangeable clients speak the same small interface (``query``,
``ask``, ``update``):

- SparqlClient talks to a remote SPARQL 1.1 Query/Update endpoint over
  HTTP, authenticating updates with a bearer token;
- LocalSparqlClient evaluates the same requests against an in-process
  rdflib Dataset whose default graph is the union of its named graphs.

Query results are returned as lists of bindings mapping variable names to
rdflib terms.
"""

from abc import abstractmethod
from typing import Optional, Protocol, runtime_checkable

import httpx
from rdflib import BNode, Dataset, Literal, URIRef
from rdflib.term import Node

from .enums import StoreErrorCode
from .exceptions import StoreError

Bindings = dict[str, Node]


@runtime_checkable
class SparqlEndpoint(Protocol):
    """Protocol defining the interface for SPARQL clients."""

    @abstractmethod
    async def query(self, query: str) -> list[Bindings]:
        """Run a SELECT query and return its solutions."""
        ...

    @abstractmethod
    async def ask(self, query: str) -> bool:
        """Run an ASK query."""
        ...

    @abstractmethod
    async def update(self, update: str) -> None:
        """Run a SPARQL update."""
        ...


def decode_term(value: dict) -> Node:
    """Decode one term of the SPARQL 1.1 JSON results format."""
    term_type = value.get("type")
    if term_type == "uri":
        return URIRef(value["value"])
    if term_type == "bnode":
        return BNode(value["value"])
    if term_type in ("literal", "typed-literal"):
        datatype = value.get("datatype")
        return Literal(
            value["value"],
            lang=value.get("xml:lang"),
            datatype=URIRef(datatype) if datatype else None,
        )
    raise StoreError(
        StoreErrorCode.PARSE_ERROR.value,
        f"Unknown term type in SPARQL results: {term_type}",
        {"term": value},
    )


class SparqlClient:
    """
    Async client for a remote SPARQL endpoint.

    Use as an async context manager; the underlying HTTP client lives for
    the duration of the block.
    """

    def __init__(
        self,
        query_url: str,
        update_url: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            query_url: SPARQL query endpoint
            update_url: SPARQL update endpoint (defaults to the query endpoint)
            access_token: Bearer token sent with updates
            timeout: Request timeout in seconds
            client: Optional preconfigured HTTP client (not closed by this client)
        """
        self._query_url = query_url
        self._update_url = update_url or query_url
        self._access_token = access_token
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "SparqlClient":
        """Async context manager entry."""
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
            self._owns_client = True
        return self._client

    async def _post(self, url: str, data: dict, headers: dict, code: StoreErrorCode) -> httpx.Response:
        client = self._ensure_client()
        try:
            response = await client.post(url, data=data, headers=headers)
        except httpx.HTTPError as e:
            raise StoreError(
                StoreErrorCode.NETWORK_ERROR.value,
                f"SPARQL endpoint unreachable: {e}",
                {"endpoint": url},
            ) from e
        if response.status_code >= 400:
            raise StoreError(
                code.value,
                f"SPARQL endpoint returned HTTP {response.status_code}",
                {"endpoint": url, "status_code": response.status_code, "body": response.text[:500]},
            )
        return response

    async def _select(self, query: str) -> dict:
        response = await self._post(
            self._query_url,
            {"query": query},
            {"Accept": "application/sparql-results+json"},
            StoreErrorCode.QUERY_FAILED,
        )
        try:
            return response.json()
        except ValueError as e:
            raise StoreError(
                StoreErrorCode.PARSE_ERROR.value,
                f"Invalid SPARQL results: {e}",
                {"endpoint": self._query_url},
            ) from e

    async def query(self, query: str) -> list[Bindings]:
        data = await self._select(query)
        return [
            {name: decode_term(value) for name, value in binding.items()}
            for binding in data.get("results", {}).get("bindings", [])
        ]

    async def ask(self, query: str) -> bool:
        data = await self._select(query)
        return bool(data.get("boolean", False))

    async def update(self, update: str) -> None:
        headers = {}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        await self._post(self._update_url, {"update": update}, headers, StoreErrorCode.UPDATE_FAILED)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


class LocalSparqlClient:
    """SPARQL client over an in-process rdflib Dataset."""

    def __init__(self, dataset: Optional[Dataset] = None) -> None:
        self._dataset = dataset if dataset is not None else Dataset(default_union=True)

    @property
    def dataset(self) -> Dataset:
        return self._dataset

    async def query(self, query: str) -> list[Bindings]:
        try:
            result = self._dataset.query(query)
            return [
                {str(name): value for name, value in row.asdict().items()}
                for row in result
            ]
        except Exception as e:
            raise StoreError(StoreErrorCode.QUERY_FAILED.value, f"SPARQL query failed: {e}") from e

    async def ask(self, query: str) -> bool:
        try:
            return bool(self._dataset.query(query).askAnswer)
        except Exception as e:
            raise StoreError(StoreErrorCode.QUERY_FAILED.value, f"SPARQL query failed: {e}") from e

    async def update(self, update: str) -> None:
        try:
            self._dataset.update(update)
        except Exception as e:
            raise StoreError(StoreErrorCode.UPDATE_FAILED.value, f"SPARQL update failed: {e}") from e
