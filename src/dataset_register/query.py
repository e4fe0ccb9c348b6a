"""
Mapping query from Schema.org and DCAT descriptions to DCAT records.

The CONSTRUCT query is generated from the mapping tables below. Every
mapping becomes a row of a VALUES block inside one UNION branch, so a
description with many properties produces a sum, not a product, of
solutions. The query runs against each dereferenced page with rdflib's
SPARQL engine.

Schema.org datasets need a name and a license; DCAT datasets need a
title, a publisher and a license. Descriptions lacking those are not
constructed at all and therefore yield no record.
"""

from functools import lru_cache
from typing import Iterable

from rdflib import Graph, URIRef

from .vocabulary import DCAT, DCT, FOAF, ODRL, OWL, SCHEMA, SPARQL_PROTOCOL

# (schema.org property, DCAT property) for properties copied verbatim
SCHEMA_DATASET_PROPERTIES: tuple[tuple[URIRef, URIRef], ...] = (
    (SCHEMA.name, DCT.title),
    (SCHEMA.alternateName, DCT.alternative),
    (SCHEMA.description, DCT.description),
    (SCHEMA.identifier, DCT.identifier),
    (SCHEMA.license, DCT.license),
    (SCHEMA.dateCreated, DCT.created),
    (SCHEMA.datePublished, DCT.issued),
    (SCHEMA.dateModified, DCT.modified),
    (SCHEMA.inLanguage, DCT.language),
    (SCHEMA.isBasedOn, DCT.source),
    (SCHEMA.isBasedOnUrl, DCT.source),
    (SCHEMA.keywords, DCAT.keyword),
    (SCHEMA.mainEntityOfPage, DCAT.landingPage),
    (SCHEMA.temporalCoverage, DCT.temporal),
    (SCHEMA.version, OWL.versionInfo),
    (SCHEMA.includedInDataCatalog, DCT.isPartOf),
    (SCHEMA.hasPart, DCT.hasPart),
    (SCHEMA.citation, DCT.isReferencedBy),
)

SCHEMA_AGENT_LINKS = (
    (SCHEMA.publisher, DCT.publisher),
    (SCHEMA.creator, DCT.creator),
)

SCHEMA_AGENT_TYPES = (
    (SCHEMA.Organization, FOAF.Organization),
    (SCHEMA.Person, FOAF.Person),
)

SCHEMA_PUBLISHER_PROPERTIES = (
    (SCHEMA.alternateName, FOAF.nick),
    (SCHEMA.identifier, DCT.identifier),
)

SCHEMA_DISTRIBUTION_PROPERTIES = (
    (SCHEMA.contentUrl, DCAT.accessURL),
    (SCHEMA.encodingFormat, DCAT.mediaType),
    (SCHEMA.datePublished, DCT.issued),
    (SCHEMA.dateModified, DCT.modified),
    (SCHEMA.description, DCT.description),
    (SCHEMA.inLanguage, DCT.language),
    (SCHEMA.license, DCT.license),
    (SCHEMA.name, DCT.title),
    (SCHEMA.contentSize, DCAT.byteSize),
)

DCAT_DATASET_PROPERTIES = (
    DCT.title,
    DCT.alternative,
    DCT.description,
    DCT.identifier,
    DCT.license,
    DCT.created,
    DCT.issued,
    DCT.modified,
    DCT.language,
    DCT.source,
    DCT.spatial,
    DCT.temporal,
    DCT.type,
    DCT.isPartOf,
    DCT.hasPart,
    DCT.isReferencedBy,
    DCAT.keyword,
    DCAT.landingPage,
    OWL.versionInfo,
)

DCAT_AGENT_PROPERTIES = (
    FOAF.nick,
    DCT.identifier,
    FOAF.mbox,
    OWL.sameAs,
)

DCAT_DISTRIBUTION_PROPERTIES = (
    DCAT.accessURL,
    DCAT.mediaType,
    DCAT.byteSize,
    DCT.issued,
    DCT.modified,
    DCT.description,
    DCT.language,
    DCT.license,
    DCT.title,
    DCT.conformsTo,
)

ODRL_RULES = (
    ODRL.permission,
    ODRL.prohibition,
    ODRL.obligation,
    ODRL.duty,
    ODRL.constraint,
)

PREFIXES = {
    "dcat": DCAT,
    "dct": DCT,
    "foaf": FOAF,
    "odrl": ODRL,
    "owl": OWL,
    "schema": SCHEMA,
}

TEMPLATE = """
    ?dataset a dcat:Dataset .
    ?dataset ?datasetProperty ?datasetValue .
    ?dataset ?agentLink ?agent .
    ?agent a ?agentType .
    ?agent ?agentProperty ?agentValue .
    ?dataset dcat:distribution ?distribution .
    ?distribution a dcat:Distribution .
    ?distribution ?distributionProperty ?distributionValue .
    ?policyNode ?policyProperty ?policyValue .
"""


def _values(variables: Iterable[str], rows: Iterable[Iterable[URIRef]]) -> str:
    header = " ".join(f"?{variable}" for variable in variables)
    body = " ".join("(" + " ".join(term.n3() for term in row) + ")" for row in rows)
    return f"VALUES ({header}) {{ {body} }}"


def _union(branches: Iterable[str]) -> str:
    return "\n      UNION\n".join(f"      {{ {branch} }}" for branch in branches)


def _schema_branches() -> list[str]:
    return [
        # dataset properties
        "?dataset ?sourceProperty ?datasetValue . "
        + _values(("sourceProperty", "datasetProperty"), SCHEMA_DATASET_PROPERTIES),
        "?dataset schema:spatialCoverage ?datasetValue . FILTER(!isBlank(?datasetValue)) "
        "BIND(dct:spatial AS ?datasetProperty)",
        "?dataset schema:genre ?datasetValue . FILTER(isLiteral(?datasetValue)) "
        "BIND(dct:type AS ?datasetProperty)",
        # publisher and creator
        "?dataset ?agentSourceLink ?agent . ?agent a ?agentSourceType ; schema:name ?agentValue . "
        + _values(("agentSourceLink", "agentLink"), SCHEMA_AGENT_LINKS) + " "
        + _values(("agentSourceType", "agentType"), SCHEMA_AGENT_TYPES) + " "
        "BIND(foaf:name AS ?agentProperty)",
        "?dataset schema:publisher ?agent . ?agent ?agentSourceProperty ?agentValue . "
        + _values(("agentSourceProperty", "agentProperty"), SCHEMA_PUBLISHER_PROPERTIES),
        "?dataset schema:publisher ?agent . ?agent schema:sameAs ?agentValue . "
        "FILTER(isIRI(?agentValue)) BIND(owl:sameAs AS ?agentProperty)",
        "?dataset schema:publisher ?agent . ?agent schema:contactPoint ?contactPoint . "
        "?contactPoint schema:email ?agentValue . BIND(foaf:mbox AS ?agentProperty)",
        # distributions
        "?dataset schema:distribution ?distribution . "
        "?distribution a schema:DataDownload ; schema:contentUrl ?contentUrl ; "
        "schema:encodingFormat ?encodingFormat . "
        "?distribution ?distributionSourceProperty ?distributionValue . "
        + _values(("distributionSourceProperty", "distributionProperty"), SCHEMA_DISTRIBUTION_PROPERTIES),
        "?dataset schema:distribution ?distribution . "
        "?distribution a schema:DataDownload ; schema:contentUrl ?contentUrl ; "
        "schema:usageInfo ?distributionValue . FILTER(isIRI(?distributionValue)) "
        "BIND(dct:conformsTo AS ?distributionProperty)",
        "?dataset schema:distribution ?distribution . "
        "?distribution a schema:DataDownload ; schema:contentUrl ?contentUrl ; "
        "schema:encodingFormat ?encodingFormat . "
        'FILTER(CONTAINS(LCASE(STR(?encodingFormat)), "sparql")) '
        f"BIND(dct:conformsTo AS ?distributionProperty) BIND(<{SPARQL_PROTOCOL}> AS ?distributionValue)",
    ]


def _dcat_branches() -> list[str]:
    rules = "|".join(rule.n3() for rule in ODRL_RULES)
    return [
        "?dataset ?datasetProperty ?datasetValue . "
        + _values(("datasetProperty",), [(p,) for p in DCAT_DATASET_PROPERTIES]),
        "?dataset ?agentLink ?agent . ?agent a ?agentType ; foaf:name ?agentValue . "
        + _values(("agentLink",), [(DCT.publisher,), (DCT.creator,)]) + " "
        + _values(("agentType",), [(FOAF.Organization,), (FOAF.Person,)]) + " "
        "BIND(foaf:name AS ?agentProperty)",
        "?dataset dct:publisher ?agent . ?agent ?agentProperty ?agentValue . "
        + _values(("agentProperty",), [(p,) for p in DCAT_AGENT_PROPERTIES]),
        "?dataset dcat:distribution ?distribution . "
        "?distribution a dcat:Distribution ; dcat:accessURL ?accessUrl ; dcat:mediaType ?mediaType . "
        "?distribution ?distributionProperty ?distributionValue . "
        + _values(("distributionProperty",), [(p,) for p in DCAT_DISTRIBUTION_PROPERTIES]),
        "?dataset dcat:distribution ?distribution . "
        "?distribution a dcat:Distribution ; dcat:accessURL ?accessUrl ; odrl:hasPolicy ?distributionValue . "
        "BIND(odrl:hasPolicy AS ?distributionProperty)",
        f"?dataset dcat:distribution/odrl:hasPolicy/({rules})* ?policyNode . "
        "?policyNode ?policyProperty ?policyValue .",
    ]


@lru_cache(maxsize=1)
def construct_query() -> str:
    """The CONSTRUCT query mapping source descriptions to DCAT records."""
    prefixes = "\n".join(f"PREFIX {prefix}: <{namespace}>" for prefix, namespace in PREFIXES.items())
    return f"""{prefixes}
CONSTRUCT {{{TEMPLATE}}}
WHERE {{
  {{
    ?dataset a schema:Dataset ; schema:name ?requiredName ; schema:license ?requiredLicense .
    FILTER(isIRI(?dataset))
    {{
{_union(_schema_branches())}
    }}
  }}
  UNION
  {{
    ?dataset a dcat:Dataset ; dct:title ?requiredTitle ; dct:publisher ?requiredPublisher ;
      dct:license ?requiredLicense .
    FILTER(isIRI(?dataset))
    {{
{_union(_dcat_branches())}
    }}
  }}
}}
"""


def construct_records(graph: Graph) -> Graph:
    """Run the mapping query against a dereferenced graph."""
    constructed = Graph()
    for triple in graph.query(construct_query()):
        constructed.add(triple)
    return constructed
