import logging
from collections.abc import Sequence

from .datastructures import DEFAULT_MIN_SIMILARITY, DEFAULT_MIN_WORD_SIMILARITY, SearchRequest
from .expressions import (
    AnyOf,
    Coalesce,
    Contains,
    GreaterThan,
    Greatest,
    Ordering,
    Param,
    QueryDescription,
    Similarity,
    WordSimilarity,
)
from .normalize import NormalizedTerm

logger = logging.getLogger("trgm.search")


def build_predicate(
    term: NormalizedTerm, fields: Sequence[str], min_word_similarity: float, min_similarity: float
) -> AnyOf:
    """
    Builds the candidate selection predicate for ``term`` across ``fields``.

    Each field contributes three conditions, any of which admits the row:

    1. the case-folded field contains the term (cheap, can use ordinary indexes so it comes first)
    2. the word similarity of the term against the field exceeds ``min_word_similarity``
    3. the similarity of the whole field value and the term exceeds ``min_similarity``

    The field groups are OR-ed together, so a row is a candidate when any field matches.
    """
    param = Param.for_term(term)
    conditions = []
    for field in fields:
        conditions.append(
            AnyOf(
                (
                    Contains(field, param),
                    GreaterThan(WordSimilarity(field, param), min_word_similarity),
                    GreaterThan(Similarity(field, param), min_similarity),
                )
            )
        )
    return AnyOf(tuple(conditions))


def build_ranking_expression(term: NormalizedTerm, fields: Sequence[str]) -> Greatest:
    """
    Builds the relevance score: the highest similarity found across any field and either metric.

    Null field values score 0.
    """
    param = Param.for_term(term)
    per_field = [
        Greatest((Coalesce(WordSimilarity(field, param)), Coalesce(Similarity(field, param)))) for field in fields
    ]
    return Greatest(tuple(per_field))


def describe(request: SearchRequest) -> QueryDescription:
    """Builds the full query description for a validated request.

    The predicate and the ranking expression are built from the same normalized term.
    """
    term = request.term
    predicate = build_predicate(term, request.fields, request.min_word_similarity, request.min_similarity)
    ordering = Ordering(build_ranking_expression(term, request.fields))
    logger.debug(
        "Built fuzzy search over %s (word similarity > %s, similarity > %s)",
        ", ".join(request.fields),
        request.min_word_similarity,
        request.min_similarity,
    )
    return QueryDescription(predicate=predicate, ordering=ordering, fields=request.fields)


def search(
    term: str, fields: Sequence[str], min_word_similarity: float | None = None, min_similarity: float | None = None
) -> QueryDescription:
    """
    Describes a fuzzy search for ``term`` over ``fields``.

    Args:
        term: The raw search term.
        fields: The text columns to search.
        min_word_similarity: Word similarity threshold. Defaults to 0.3.
        min_similarity: Whole string similarity threshold. Defaults to 0.2.

    Raises:
        SearchConfigurationError: if the fields, thresholds or term are invalid.
    """
    request = SearchRequest(
        raw_term=term,
        fields=tuple(fields),
        min_word_similarity=DEFAULT_MIN_WORD_SIMILARITY if min_word_similarity is None else min_word_similarity,
        min_similarity=DEFAULT_MIN_SIMILARITY if min_similarity is None else min_similarity,
    )
    return describe(request)


def rank(term: str, fields: Sequence[str]) -> Ordering:
    """Describes the relevance ordering for ``term`` over ``fields`` without any filtering."""
    request = SearchRequest(raw_term=term, fields=tuple(fields))
    return Ordering(build_ranking_expression(request.term, request.fields))
