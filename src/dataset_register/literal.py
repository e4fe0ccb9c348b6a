"""
Literal canonicalization.

Publishers write dates, licenses, media types and sizes in many shapes.
Before records are validated and stored, every constructed statement is
passed through an ordered table of rewrite rules keyed by predicate. Each
rule maps an RDF term to its canonical form and returns terms that are
already canonical unchanged, so applying the table twice is the same as
applying it once.
"""

import re
from dataclasses import dataclass
from functools import partial
from typing import Callable, Iterable, Optional

from rdflib import Graph, Literal, URIRef
from rdflib.term import Node

from .vocabulary import DCAT, DCT, FOAF, IANA_MEDIA_TYPES, SCHEMA, SCHEMA_HTTP, XSD

Rule = Callable[[Node], Node]
Triple = tuple[Node, Node, Node]

DATE_TIME_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T")

DATE_DATATYPES = frozenset({
    XSD.date, XSD.dateTime, XSD.string,
    SCHEMA.Date, SCHEMA.DateTime, SCHEMA_HTTP.Date, SCHEMA_HTTP.DateTime,
})

BYTE_SIZE_PATTERN = re.compile(
    r"^\s*(?P<amount>\d+(?:[.,]\d+)?)\s*(?P<unit>[kmgt]?i?b)?\s*$",
    re.IGNORECASE,
)

BYTE_MULTIPLIERS = {
    "": 1,
    "b": 1,
    "kb": 1024,
    "kib": 1024,
    "mb": 1024 ** 2,
    "mib": 1024 ** 2,
    "gb": 1024 ** 3,
    "gib": 1024 ** 3,
    "tb": 1024 ** 4,
    "tib": 1024 ** 4,
}


def _is_plain(term: Node) -> bool:
    return isinstance(term, Literal) and term.language is None and term.datatype in (None, XSD.string)


def date_literal(term: Node) -> Node:
    """Type a date as xsd:dateTime when it has a time part, else xsd:date."""
    if not isinstance(term, Literal) or term.language is not None:
        return term
    if term.datatype is not None and term.datatype not in DATE_DATATYPES:
        return term
    value = str(term).strip()
    datatype = XSD.dateTime if DATE_TIME_PATTERN.match(value) else XSD.date
    return Literal(value, datatype=datatype)


def license_iri(term: Node) -> Node:
    """Strip language-specific deed suffixes and upgrade Creative Commons to https."""
    if isinstance(term, Literal):
        value = str(term).strip()
        if not re.match(r"^https?://", value):
            return term
    elif isinstance(term, URIRef):
        value = str(term)
    else:
        return term
    value = value.replace("deed.nl", "")
    value = value.replace("http://creativecommons.org", "https://creativecommons.org")
    return URIRef(value)


def media_type_iri(term: Node) -> Node:
    """Express a media type as its IANA registry IRI."""
    if isinstance(term, URIRef):
        value = str(term)
        if value.startswith("http://"):
            return URIRef("https://" + value[len("http://"):])
        return term
    if isinstance(term, Literal):
        value = str(term).strip()
        if value.startswith(("http://", "https://")):
            return media_type_iri(URIRef(value))
        value = re.sub(r";.*$", "", value).strip()
        if not value:
            return term
        return URIRef(IANA_MEDIA_TYPES + value)
    return term


def byte_size(term: Node) -> Node:
    """Convert a human-readable size such as '12 MB' to an xsd:integer byte count."""
    if not isinstance(term, Literal):
        return term
    match = BYTE_SIZE_PATTERN.match(str(term))
    if match is None:
        return term
    amount = float(match.group("amount").replace(",", "."))
    unit = (match.group("unit") or "").lower()
    multiplier = BYTE_MULTIPLIERS.get(unit)
    if multiplier is None:
        return term
    return Literal(str(int(round(amount * multiplier))), datatype=XSD.integer)


def keyword_literal(term: Node) -> Node:
    """Keywords are literals; IRIs used as keywords become their string form."""
    if isinstance(term, URIRef):
        return Literal(str(term))
    return term


def language_tagged(term: Node, language: str) -> Node:
    """Give untagged plain literals the default language tag."""
    if _is_plain(term) and language:
        return Literal(str(term), lang=language)
    return term


def iri(term: Node) -> Node:
    """Turn a literal holding a URL into an IRI."""
    if isinstance(term, Literal) and re.match(r"^https?://\S+$", str(term).strip()):
        return URIRef(str(term).strip())
    return term


@dataclass(frozen=True)
class LiteralRule:
    """A rewrite applied to the object of statements with one of ``predicates``."""

    predicates: frozenset
    rewrite: Rule


class LiteralCanonicalizer:
    """
    Applies the literal rewrite table to constructed statements.

    Args:
        default_language: Language tag given to agent names without one
    """

    def __init__(self, default_language: str = "nl") -> None:
        self._default_language = default_language
        self._rules: tuple[LiteralRule, ...] = (
            LiteralRule(frozenset({DCT.created, DCT.issued, DCT.modified}), date_literal),
            LiteralRule(frozenset({DCT.license}), license_iri),
            LiteralRule(frozenset({DCAT.mediaType}), media_type_iri),
            LiteralRule(frozenset({DCAT.byteSize}), byte_size),
            LiteralRule(frozenset({DCAT.keyword}), keyword_literal),
            LiteralRule(frozenset({FOAF.name}), partial(language_tagged, language=default_language)),
            LiteralRule(frozenset({DCAT.accessURL}), iri),
        )
        self._by_predicate: dict[Node, list[Rule]] = {}
        for rule in self._rules:
            for predicate in rule.predicates:
                self._by_predicate.setdefault(predicate, []).append(rule.rewrite)

    @property
    def default_language(self) -> str:
        return self._default_language

    @property
    def rules(self) -> tuple[LiteralRule, ...]:
        return self._rules

    def canonicalize(self, triple: Triple) -> Triple:
        subject, predicate, obj = triple
        for rewrite in self._by_predicate.get(predicate, ()):
            obj = rewrite(obj)
        return subject, predicate, obj

    def canonicalize_all(self, triples: Iterable[Triple]) -> Iterable[Triple]:
        for triple in triples:
            yield self.canonicalize(triple)

    def canonicalize_graph(self, graph: Graph, into: Optional[Graph] = None) -> Graph:
        """Return a graph holding the canonical form of every statement in ``graph``."""
        result = into if into is not None else Graph()
        for triple in self.canonicalize_all(graph):
            result.add(triple)
        return result
