"""
Validation of dataset descriptions against a SHACL shapes graph.

Three outcomes are possible: no dataset description at all, a description
with at least one violation, or a valid description. Warnings never make a
description invalid; all findings are kept in the report graph so the
rating engine can score them.

Requirements covered:
- A graph without a non-blank dataset subject is NO_RECORD
- Invalid iff a violation is found, recursing through nested results
- Valid reports keep their findings, with violations downgraded to warnings
"""

import asyncio
from abc import abstractmethod
from functools import partial
from pathlib import Path
from typing import Optional, Protocol, Union, runtime_checkable

import httpx
import pyshacl
from rdflib import Graph
from rdflib.term import Node

from .enums import ValidationState
from .exceptions import ConfigurationError
from .extractor import extract_iri
from .models import ValidationResult
from .vocabulary import SH


@runtime_checkable
class Validator(Protocol):
    """Protocol defining the interface for description validators."""

    @abstractmethod
    async def validate(self, graph: Graph) -> ValidationResult:
        """
        Validate a dataset description.

        Args:
            graph: The description (a dereferenced source or a single record)

        Returns:
            ValidationResult with state and report graph
        """
        ...


def has_violation(report: Graph, result: Node, _seen: Optional[set] = None) -> bool:
    """
    Whether a validation result counts as a violation.

    A result with nested details is decided by its details only; a leaf
    counts when its severity is sh:Violation.
    """
    seen = _seen if _seen is not None else set()
    if result in seen:
        return False
    seen.add(result)

    details = list(report.objects(result, SH.detail))
    if details:
        return any(has_violation(report, detail, seen) for detail in details)
    return (result, SH.resultSeverity, SH.Violation) in report


def report_results(report: Graph) -> list[Node]:
    """Top-level results of every validation report in ``report``."""
    return list(report.objects(None, SH.result))


def downgrade_violations(report: Graph) -> Graph:
    """Return a copy of ``report`` with every sh:Violation severity turned into sh:Warning."""
    downgraded = Graph()
    for subject, predicate, obj in report:
        if predicate == SH.resultSeverity and obj == SH.Violation:
            obj = SH.Warning
        downgraded.add((subject, predicate, obj))
    return downgraded


class ShaclValidator:
    """
    Validator backed by pyshacl.

    pyshacl is CPU-bound and synchronous, so validation runs in the default
    executor.
    """

    def __init__(self, shapes: Graph) -> None:
        """
        Initialize the validator.

        Args:
            shapes: The SHACL shapes graph
        """
        if len(shapes) == 0:
            raise ConfigurationError("empty_shapes", "The SHACL shapes graph is empty")
        self._shapes = shapes

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "ShaclValidator":
        """Load the shapes graph from a local file."""
        shapes = Graph()
        try:
            shapes.parse(str(path))
        except (OSError, ValueError, SyntaxError) as e:
            raise ConfigurationError(
                "shapes_unreadable",
                f"Could not read SHACL shapes from {path}: {e}",
                {"path": str(path)},
            ) from e
        return cls(shapes)

    @classmethod
    async def from_url(cls, url: str, timeout: float = 30.0) -> "ShaclValidator":
        """Load the shapes graph from a URL."""
        async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True) as client:
            try:
                response = await client.get(url, headers={"Accept": "text/turtle"})
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise ConfigurationError(
                    "shapes_unreadable",
                    f"Could not retrieve SHACL shapes from {url}: {e}",
                    {"url": url},
                ) from e
        shapes = Graph()
        shapes.parse(data=response.text, format="turtle", publicID=url)
        return cls(shapes)

    @property
    def shapes(self) -> Graph:
        return self._shapes

    async def validate(self, graph: Graph) -> ValidationResult:
        if extract_iri(graph) is None:
            return ValidationResult(state=ValidationState.NO_RECORD, errors=None)

        loop = asyncio.get_running_loop()
        report = await loop.run_in_executor(None, partial(self._run_shacl, graph))
        return self.interpret(report)

    def validate_sync(self, graph: Graph) -> ValidationResult:
        """Validate without an event loop (for scripts and tests)."""
        if extract_iri(graph) is None:
            return ValidationResult(state=ValidationState.NO_RECORD, errors=None)
        return self.interpret(self._run_shacl(graph))

    @staticmethod
    def interpret(report: Graph) -> ValidationResult:
        """Derive the validation state from a SHACL report graph."""
        invalid = any(has_violation(report, result) for result in report_results(report))
        if invalid:
            return ValidationResult(state=ValidationState.INVALID, errors=report)
        return ValidationResult(state=ValidationState.VALID, errors=downgrade_violations(report))

    def _run_shacl(self, graph: Graph) -> Graph:
        _, report, _ = pyshacl.validate(
            graph,
            shacl_graph=self._shapes,
            inference="none",
            abort_on_first=False,
            allow_warnings=True,
            allow_infos=True,
        )
        return report
