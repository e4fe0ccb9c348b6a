"""RDF namespaces and terms shared across the register."""

from rdflib import Namespace
from rdflib.namespace import DCAT, DCTERMS, FOAF, OWL, RDF, SH, XSD

SCHEMA = Namespace("https://schema.org/")
# The registrations graph uses the http form, as published by earlier versions.
SCHEMA_HTTP = Namespace("http://schema.org/")
HYDRA = Namespace("http://www.w3.org/ns/hydra/core#")
ODRL = Namespace("http://www.w3.org/ns/odrl/2/")
ALLOWED_DOMAIN = Namespace("https://data.netwerkdigitaalerfgoed.nl/allowed_domain_names/def/")

DCT = DCTERMS

RECORD_TYPE = DCAT.Dataset
DATASET_TYPES = frozenset({SCHEMA.Dataset, DCAT.Dataset})

IANA_MEDIA_TYPES = "https://www.iana.org/assignments/media-types/"
SPARQL_PROTOCOL = "https://www.w3.org/TR/sparql11-protocol/"

__all__ = [
    "ALLOWED_DOMAIN",
    "DATASET_TYPES",
    "DCAT",
    "DCT",
    "FOAF",
    "HYDRA",
    "IANA_MEDIA_TYPES",
    "ODRL",
    "OWL",
    "RDF",
    "RECORD_TYPE",
    "SCHEMA",
    "SCHEMA_HTTP",
    "SH",
    "SPARQL_PROTOCOL",
    "XSD",
]
