"""
Fetcher for dataset descriptions.

Dereferences URLs over HTTP, parses any common RDF serialization (and
JSON-LD embedded in HTML pages), normalizes the Schema.org namespace, and
walks paginated sources lazily, yielding one record at a time.

Every failure leaving this module is one of the FetchError subclasses;
``classify_error`` is the single place where foreign exceptions are
translated.

Requirements covered:
- Dereference a URL into a graph with an RDF Accept header
- Crawl a URL and its Hydra pages into a lazy sequence of records
- Classify fetch failures into HTTP, no-record and content-type errors
"""

import asyncio
import re
from collections import deque
from functools import partial
from html.parser import HTMLParser
from typing import AsyncIterator, Callable, Optional, Union

import httpx
from rdflib import Dataset, Graph, Literal, URIRef
from rdflib.util import guess_format

from . import __version__
from .exceptions import FetchError, HttpError, InvalidContentType, NoRecordFoundAtUrl
from .extractor import Triple, group_records, iter_record_statements
from .literal import LiteralCanonicalizer
from .models import Record
from .query import construct_records
from .vocabulary import HYDRA, SCHEMA, SCHEMA_HTTP

ACCEPT = ", ".join([
    "application/ld+json",
    "application/n-quads",
    "application/n-triples",
    "application/trig;q=0.95",
    "text/turtle;q=0.9",
    "application/rdf+xml;q=0.8",
    "text/n3;q=0.7",
    "text/html;q=0.5",
    "application/json;q=0.4",
])

RDF_FORMATS = {
    "application/ld+json": "json-ld",
    "application/json": "json-ld",
    "text/turtle": "turtle",
    "application/x-turtle": "turtle",
    "application/n-triples": "nt",
    "application/n-quads": "nquads",
    "application/trig": "trig",
    "application/rdf+xml": "xml",
    "text/n3": "n3",
}

HTML_MEDIA_TYPES = frozenset({"text/html", "application/xhtml+xml"})

QUAD_FORMATS = frozenset({"nquads", "trig"})

# Ordered (pattern, factory) table for errors that only carry a message.
ERROR_PATTERNS: tuple[tuple[re.Pattern, Callable[[re.Match, str], FetchError]], ...] = (
    (re.compile(r"(?:^|\s)404\b"), lambda match, url: HttpError(url, 404)),
    (re.compile(r"HTTP status (\d+)"), lambda match, url: HttpError(url, int(match.group(1)))),
    (
        re.compile(r"unrecognized media type: (\S+)", re.IGNORECASE),
        lambda match, url: InvalidContentType(url, match.group(1)),
    ),
)


def classify_error(error: BaseException, url: str) -> FetchError:
    """
    Translate any error raised while fetching ``url`` into a FetchError.

    Structured errors are mapped by type; everything else by the ordered
    message patterns, falling back to NoRecordFoundAtUrl.
    """
    if isinstance(error, FetchError):
        return error
    if isinstance(error, httpx.HTTPStatusError):
        return HttpError(url, error.response.status_code)
    if isinstance(error, httpx.TransportError):
        return NoRecordFoundAtUrl(url, f"Could not retrieve {url}: {error}")

    message = str(error)
    for pattern, factory in ERROR_PATTERNS:
        match = pattern.search(message)
        if match:
            return factory(match, url)
    return NoRecordFoundAtUrl(url, message or None)


class JsonLdScriptExtractor(HTMLParser):
    """Collects the contents of <script type="application/ld+json"> elements."""

    def __init__(self) -> None:
        super().__init__()
        self.scripts: list[str] = []
        self._capturing = False
        self._buffer: list[str] = []

    def handle_starttag(self, tag: str, attrs: list) -> None:
        if tag != "script":
            return
        script_type = dict(attrs).get("type") or ""
        if script_type.split(";")[0].strip().lower() == "application/ld+json":
            self._capturing = True
            self._buffer = []

    def handle_endtag(self, tag: str) -> None:
        if tag == "script" and self._capturing:
            self.scripts.append("".join(self._buffer))
            self._capturing = False

    def handle_data(self, data: str) -> None:
        if self._capturing:
            self._buffer.append(data)


def media_type_of(content_type: Optional[str]) -> str:
    return (content_type or "").split(";")[0].strip().lower()


def normalize_schema_org(graph: Graph) -> Graph:
    """Rewrite http://schema.org/ to https://schema.org/ in predicates, datatypes and object IRIs."""
    http, https = str(SCHEMA_HTTP), str(SCHEMA)

    def upgrade(term):
        if isinstance(term, URIRef) and term.startswith(http):
            return URIRef(https + term[len(http):])
        if isinstance(term, Literal) and term.datatype is not None and term.datatype.startswith(http):
            return Literal(str(term), datatype=URIRef(https + term.datatype[len(http):]))
        return term

    normalized = Graph()
    for subject, predicate, obj in graph:
        normalized.add((subject, upgrade(predicate), upgrade(obj)))
    return normalized


def _parse_rdf(data: Union[str, bytes], rdf_format: str, base: str) -> Graph:
    if rdf_format in QUAD_FORMATS:
        dataset = Dataset()
        dataset.parse(data=data, format=rdf_format, publicID=base)
        graph = Graph()
        for subject, predicate, obj, _ in dataset.quads((None, None, None, None)):
            graph.add((subject, predicate, obj))
        return graph
    graph = Graph()
    graph.parse(data=data, format=rdf_format, publicID=base)
    return graph


def parse_payload(
    data: Union[str, bytes],
    content_type: Optional[str],
    base: str,
) -> Graph:
    """
    Parse a response body into a normalized graph.

    Args:
        data: Response body
        content_type: Content-Type header value, if any
        base: Base IRI for relative references (the request URL)

    Raises:
        InvalidContentType: If the media type is not an RDF serialization
        NoRecordFoundAtUrl: If the body cannot be parsed or holds no statements
    """
    media_type = media_type_of(content_type)

    if media_type in HTML_MEDIA_TYPES:
        text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
        extractor = JsonLdScriptExtractor()
        extractor.feed(text)
        extractor.close()
        if not extractor.scripts:
            raise NoRecordFoundAtUrl(base, f"No JSON-LD found in HTML page {base}")
        graph = Graph()
        for script in extractor.scripts:
            try:
                graph += _parse_rdf(script, "json-ld", base)
            except Exception as e:
                raise NoRecordFoundAtUrl(base, f"Could not parse embedded JSON-LD: {e}") from e
    else:
        if media_type:
            rdf_format = RDF_FORMATS.get(media_type)
            if rdf_format is None:
                raise InvalidContentType(base, media_type)
        else:
            rdf_format = guess_format(base.split("?")[0].split("#")[0])
            if rdf_format not in set(RDF_FORMATS.values()):
                raise NoRecordFoundAtUrl(base, f"Could not determine the media type of {base}")
        try:
            graph = _parse_rdf(data, rdf_format, base)
        except Exception as e:
            raise NoRecordFoundAtUrl(base, f"Could not parse {rdf_format} from {base}: {e}") from e

    if len(graph) == 0:
        raise NoRecordFoundAtUrl(base)

    return normalize_schema_org(graph)


def next_page_urls(graph: Graph) -> list[str]:
    """Hydra pagination links found in a page, in document order of discovery."""
    urls = []
    for predicate in (HYDRA.next, HYDRA.nextPage):
        for obj in graph.objects(None, predicate):
            if isinstance(obj, URIRef) and str(obj) not in urls:
                urls.append(str(obj))
    return urls


class Fetcher:
    """
    Async fetcher for dataset descriptions.

    Use as an async context manager; the underlying HTTP client lives for
    the duration of the block.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_pages: int = 100,
        default_language: str = "nl",
        user_agent: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the fetcher.

        Args:
            timeout: Request timeout in seconds
            max_pages: Upper bound on Hydra pages followed per crawl
            default_language: Language tag for untagged agent names
            user_agent: User-Agent header value
            client: Optional preconfigured HTTP client (not closed by the fetcher)
        """
        self._timeout = timeout
        self._max_pages = max_pages
        self._user_agent = user_agent or f"dataset-register/{__version__}"
        self._canonicalizer = LiteralCanonicalizer(default_language)
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "Fetcher":
        """Async context manager entry."""
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                headers={"User-Agent": self._user_agent},
            )
            self._owns_client = True
        return self._client

    @property
    def canonicalizer(self) -> LiteralCanonicalizer:
        return self._canonicalizer

    async def dereference(self, url: str) -> Graph:
        """
        Retrieve and parse the description at ``url``.

        Raises:
            FetchError: HttpError, NoRecordFoundAtUrl or InvalidContentType
        """
        client = self._ensure_client()
        try:
            response = await client.get(url, headers={"Accept": ACCEPT})
            if response.status_code >= 400:
                raise HttpError(url, response.status_code)
            return await self.parse(
                response.content,
                response.headers.get("content-type"),
                str(response.url) if response.url else url,
            )
        except Exception as e:
            raise classify_error(e, url) from e

    async def parse(self, data: Union[str, bytes], content_type: Optional[str], base: str) -> Graph:
        """Parse a payload off the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(parse_payload, data, content_type, base))

    async def crawl(self, url: str, first_page: Optional[Graph] = None) -> AsyncIterator[Record]:
        """
        Lazily yield the records published at ``url`` and its following pages.

        Args:
            url: URL of the (first page of the) source
            first_page: Already dereferenced graph for ``url``, if available

        Raises:
            FetchError: When a page fails; records completed before it were
                already yielded
        """
        async for record in group_records(self._record_statements(url, first_page)):
            yield record

    async def _record_statements(
        self, url: str, first_page: Optional[Graph]
    ) -> AsyncIterator[Triple]:
        loop = asyncio.get_running_loop()
        pending = deque([url])
        visited: set[str] = set()

        while pending and len(visited) < self._max_pages:
            page_url = pending.popleft()
            if page_url in visited:
                continue
            visited.add(page_url)

            if first_page is not None and page_url == url:
                graph = first_page
            else:
                graph = await self.dereference(page_url)

            try:
                statements = await loop.run_in_executor(None, self._page_statements, graph)
            except Exception as e:
                raise classify_error(e, page_url) from e

            for triple in statements:
                yield triple

            for next_url in next_page_urls(graph):
                if next_url not in visited:
                    pending.append(next_url)

    def _page_statements(self, graph: Graph) -> list[Triple]:
        constructed = construct_records(graph)
        canonical = self._canonicalizer.canonicalize_graph(constructed)
        return list(iter_record_statements(canonical))

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
