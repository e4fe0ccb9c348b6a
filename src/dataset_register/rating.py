"""
Rating engine.

Scores a validated record from the findings in its SHACL report. Each
penalty group lists property paths that together make up one quality
aspect; a group only costs points when every path in it is reported
missing. The score is deterministic and depends on nothing but the set
of reported paths.
"""

from dataclasses import dataclass, field
from typing import Iterable

from rdflib import URIRef

from .models import ValidationResult
from .vocabulary import DCAT, DCT, SH

BEST_RATING = 100


@dataclass(frozen=True)
class PenaltyGroup:
    """Property paths that cost ``score`` points when all are missing."""

    paths: tuple[URIRef, ...]
    score: int


PENALTY_GROUPS: tuple[PenaltyGroup, ...] = (
    PenaltyGroup((DCT.description,), 20),
    PenaltyGroup((DCAT.distribution,), 20),
    PenaltyGroup((DCT.creator,), 10),
    PenaltyGroup((DCT.created, DCT.issued), 10),
    PenaltyGroup((DCT.modified,), 5),
    PenaltyGroup((DCAT.keyword, DCT.spatial, DCT.temporal), 5),
    PenaltyGroup((DCT.language,), 5),
)

WORST_RATING = BEST_RATING - sum(group.score for group in PENALTY_GROUPS)


@dataclass(frozen=True)
class Penalty:
    """A penalty applied to a rated record."""

    path: URIRef
    score: int


@dataclass(frozen=True)
class Rating:
    """Quality score of a record."""

    penalties: tuple[Penalty, ...] = field(default_factory=tuple)
    best_rating: int = BEST_RATING
    worst_rating: int = WORST_RATING

    @property
    def score(self) -> int:
        return self.best_rating - sum(penalty.score for penalty in self.penalties)

    @property
    def explanation(self) -> str:
        return ", ".join(str(penalty.path) for penalty in self.penalties)


def reported_paths(result: ValidationResult) -> frozenset:
    """All sh:resultPath IRIs in a validation report."""
    if result.errors is None:
        return frozenset()
    return frozenset(
        path for path in result.errors.objects(None, SH.resultPath)
        if isinstance(path, URIRef)
    )


def rate_paths(paths: Iterable[URIRef], groups: tuple[PenaltyGroup, ...] = PENALTY_GROUPS) -> Rating:
    """Rate a record from the set of property paths reported for it."""
    reported = frozenset(paths)
    penalties = tuple(
        Penalty(path=group.paths[0], score=group.score)
        for group in groups
        if all(path in reported for path in group.paths)
    )
    worst = BEST_RATING - sum(group.score for group in groups)
    return Rating(penalties=penalties, best_rating=BEST_RATING, worst_rating=worst)


def rate(result: ValidationResult) -> Rating:
    """
    Rate a validated record.

    A result without findings rates ``BEST_RATING`` with an empty
    explanation; a record missing every rated aspect rates ``WORST_RATING``.
    """
    return rate_paths(reported_paths(result))
