"""
Property-based tests for the rating engine.

Verifies that ratings depend only on the set of reported property paths,
that a penalty group only fires when all of its paths are reported, and the
best and worst scores.
"""

from hypothesis import given, settings
from hypothesis import strategies as st
from rdflib import BNode, Graph, URIRef

from dataset_register.enums import ValidationState
from dataset_register.models import ValidationResult
from dataset_register.rating import (
    BEST_RATING,
    PENALTY_GROUPS,
    WORST_RATING,
    rate,
    rate_paths,
)
from dataset_register.vocabulary import DCAT, DCT, SH

ALL_PATHS = [path for group in PENALTY_GROUPS for path in group.paths]
UNRATED_PATHS = [DCT.title, DCT.license, DCT.publisher, URIRef("https://example.org/other")]


def report_for(paths) -> ValidationResult:
    """A valid result whose report holds one warning per path."""
    report = Graph()
    for path in paths:
        result = BNode()
        report.add((BNode(), SH.result, result))
        report.add((result, SH.resultPath, path))
        report.add((result, SH.resultSeverity, SH.Warning))
    return ValidationResult(state=ValidationState.VALID, errors=report)


@st.composite
def reported_paths_strategy(draw) -> list:
    return draw(st.lists(st.sampled_from(ALL_PATHS + UNRATED_PATHS), max_size=20))


class TestRatingProperty:
    """
    Property tests for ``rate``.

    **Feature: dataset-register, Property 2: ratings are deterministic**
    """

    @given(paths=reported_paths_strategy())
    @settings(max_examples=100)
    def test_score_is_best_minus_fired_groups(self, paths: list) -> None:
        """*For any* reported paths, the score is the best rating minus every fully reported group."""
        rating = rate(report_for(paths))
        reported = set(paths)
        expected = BEST_RATING - sum(
            group.score for group in PENALTY_GROUPS if all(p in reported for p in group.paths)
        )

        assert rating.score == expected
        assert WORST_RATING <= rating.score <= BEST_RATING
        assert rating.best_rating == BEST_RATING
        assert rating.worst_rating == WORST_RATING

    @given(paths=reported_paths_strategy(), shuffle=st.randoms())
    @settings(max_examples=100)
    def test_rating_ignores_order_and_duplicates(self, paths: list, shuffle) -> None:
        """*For any* reported paths, order and repetition do not change the rating."""
        shuffled = list(paths) * 2
        shuffle.shuffle(shuffled)

        assert rate(report_for(paths)) == rate(report_for(shuffled))

    @given(paths=st.lists(st.sampled_from(UNRATED_PATHS), max_size=5))
    @settings(max_examples=50)
    def test_unrated_paths_cost_nothing(self, paths: list) -> None:
        rating = rate(report_for(paths))
        assert rating.score == BEST_RATING
        assert rating.explanation == ""

    def test_worst_rating_is_25(self) -> None:
        rating = rate(report_for(ALL_PATHS))
        assert WORST_RATING == 25
        assert rating.score == 25
        assert len(rating.penalties) == len(PENALTY_GROUPS)

    def test_no_findings_is_best_rating(self) -> None:
        rating = rate(ValidationResult(state=ValidationState.VALID, errors=Graph()))
        assert rating.score == 100
        assert rating.explanation == ""
        assert rating.penalties == ()

    def test_result_without_report_is_best_rating(self) -> None:
        rating = rate(ValidationResult(state=ValidationState.NO_RECORD))
        assert rating.score == BEST_RATING

    def test_partial_group_does_not_fire(self) -> None:
        """Missing dct:created alone is no penalty while dct:issued is present."""
        assert rate(report_for([DCT.created])).score == BEST_RATING
        assert rate(report_for([DCT.issued])).score == BEST_RATING
        assert rate(report_for([DCT.created, DCT.issued])).score == BEST_RATING - 10

        assert rate(report_for([DCAT.keyword, DCT.spatial])).score == BEST_RATING
        assert rate(report_for([DCAT.keyword, DCT.spatial, DCT.temporal])).score == BEST_RATING - 5

    def test_explanation_lists_penalized_paths(self) -> None:
        rating = rate(report_for([DCT.description, DCAT.distribution]))
        assert rating.score == 60
        assert rating.explanation == f"{DCT.description}, {DCAT.distribution}"

    def test_custom_groups(self) -> None:
        groups = (PENALTY_GROUPS[0],)
        rating = rate_paths([DCT.description], groups)
        assert rating.score == BEST_RATING - PENALTY_GROUPS[0].score
        assert rating.worst_rating == BEST_RATING - PENALTY_GROUPS[0].score
