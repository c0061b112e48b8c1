from django.db.models import Q, QuerySet

from apps.fuzzy_search.backends.django_orm import fuzzy_search
from apps.fuzzy_search.datastructures import DEFAULT_MIN_SIMILARITY, DEFAULT_MIN_WORD_SIMILARITY, SearchRequest


def similarity_search(
    queryset: QuerySet,
    search_phase: str,
    columns: list[str],
    min_word_similarity: float = DEFAULT_MIN_WORD_SIMILARITY,
    min_similarity: float = DEFAULT_MIN_SIMILARITY,
    extra_conditions: Q | None = None,
) -> QuerySet:
    """
    Performs a fuzzy search on the queryset using trigram similarity.

    Args:
        queryset: Base queryset to search on
        search_phase: Search term to match against
        columns: Database columns to search in
        min_word_similarity: The word similarity above which to include results
        min_similarity: The whole value similarity above which to include results
        extra_conditions: Additional filter conditions

    Returns:
        QuerySet annotated with ``relevance`` and ordered by it
    """
    request = SearchRequest(
        raw_term=search_phase,
        fields=tuple(columns),
        min_word_similarity=min_word_similarity,
        min_similarity=min_similarity,
    )
    return fuzzy_search(queryset, request, extra_conditions=extra_conditions)
