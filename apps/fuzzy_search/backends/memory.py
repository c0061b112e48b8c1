"""Runs query descriptions against rows that are already in memory.

Rows may be mappings or plain objects. Field lookups follow ``__`` separated paths
through nested mappings and attributes, and a missing value is treated as null.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence

from .. import trigram
from ..datastructures import FieldScore, RankedResult, SearchRequest
from ..exceptions import SearchConfigurationError, UnsupportedExpression
from ..expressions import Node, QueryDescription, Similarity, WordSimilarity
from ..query import build_ranking_expression, describe

logger = logging.getLogger("trgm.search")


def get_field_value(row, field: str):
    value = row
    for part in field.split("__"):
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


class MemoryBackend:
    name = "memory"

    def __init__(self, allowed_fields: Iterable[str] | None = None):
        self.allowed_fields = frozenset(allowed_fields) if allowed_fields is not None else None

    def check_fields(self, fields: Sequence[str]):
        if self.allowed_fields is None:
            return
        if unknown := [field for field in fields if field not in self.allowed_fields]:
            raise SearchConfigurationError(f"Fields are not searchable: {', '.join(unknown)}")

    def evaluate(self, node: Node, row):
        method = getattr(self, f"evaluate_{type(node).__name__.lower()}", None)
        if method is None:
            raise UnsupportedExpression(node, self.name)
        return method(node, row)

    def _text(self, node, row) -> str | None:
        value = get_field_value(row, node.field)
        if value is None:
            return None
        return str(value).lower()

    def evaluate_contains(self, node, row) -> bool:
        text = self._text(node, row)
        return text is not None and node.param.value in text

    def evaluate_exact(self, node, row) -> bool:
        return self._text(node, row) == node.param.value

    def evaluate_wordsimilarity(self, node, row) -> float | None:
        text = self._text(node, row)
        return None if text is None else trigram.word_similarity(node.param.value, text)

    def evaluate_similarity(self, node, row) -> float | None:
        text = self._text(node, row)
        return None if text is None else trigram.similarity(text, node.param.value)

    def evaluate_coalesce(self, node, row):
        value = self.evaluate(node.expression, row)
        return node.default if value is None else value

    def evaluate_greatest(self, node, row):
        values = [value for value in (self.evaluate(child, row) for child in node.expressions) if value is not None]
        return max(values) if values else None

    def evaluate_greaterthan(self, node, row) -> bool:
        value = self.evaluate(node.expression, row)
        return value is not None and value > node.threshold

    def evaluate_anyof(self, node, row) -> bool:
        return any(self.evaluate(condition, row) for condition in node.conditions)

    def field_scores(self, score: Node, row) -> tuple[FieldScore, ...]:
        """Per field similarities read from the leaves of a ranking expression, nulls scoring 0."""
        word, full = {}, {}
        for node in score.walk():
            if isinstance(node, WordSimilarity):
                word[node.field] = self.evaluate(node, row) or 0.0
            elif isinstance(node, Similarity):
                full[node.field] = self.evaluate(node, row) or 0.0
        fields = dict.fromkeys([*word, *full])
        return tuple(FieldScore(field, word.get(field, 0.0), full.get(field, 0.0)) for field in fields)

    def _ranked(self, score: Node, row) -> RankedResult:
        return RankedResult(
            row=row,
            relevance=self.evaluate(score, row) or 0.0,
            field_scores=self.field_scores(score, row),
        )

    def execute(self, description: QueryDescription, rows: Iterable) -> list[RankedResult]:
        """Filters ``rows`` with the description's predicate and orders them by relevance.

        Rows with equal relevance keep their input order.
        """
        self.check_fields(description.referenced_fields)
        results = []
        for row in rows:
            if not self.evaluate(description.predicate, row):
                continue
            if description.ordering:
                results.append(self._ranked(description.ordering.score, row))
            else:
                results.append(RankedResult(row=row, relevance=0.0))
        if description.ordering:
            results.sort(key=lambda result: result.relevance, reverse=True)
        logger.debug("Matched %d rows in memory", len(results))
        return results

    def search(self, request: SearchRequest, rows: Iterable) -> list[RankedResult]:
        return self.execute(describe(request), rows)

    def rank(self, rows: Iterable, term, fields: Sequence[str]) -> list[RankedResult]:
        """Scores every row without filtering and orders them by relevance, ties in input order."""
        request = SearchRequest(raw_term=str(term), fields=tuple(fields))
        self.check_fields(request.fields)
        score = build_ranking_expression(request.term, request.fields)
        results = [self._ranked(score, row) for row in rows]
        results.sort(key=lambda result: result.relevance, reverse=True)
        return results


def rank(rows: Iterable, term, fields: Sequence[str]) -> list[RankedResult]:
    return MemoryBackend().rank(rows, term, fields)
