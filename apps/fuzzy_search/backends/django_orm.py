"""Compiles query descriptions to Django ORM expressions for PostgreSQL with ``pg_trgm``.

The search term is always passed through ``Value`` so that it ends up as a bound
parameter. Field names are checked against the model's text columns before they are
referenced.
"""

import logging
from collections.abc import Iterable, Sequence

from django.contrib.postgres.search import TrigramSimilarity, TrigramWordSimilarity
from django.core.exceptions import FieldDoesNotExist
from django.db.models import CharField, Model, Q, QuerySet, TextField, Value
from django.db.models.functions import Coalesce, Greatest, Lower
from django.db.models.lookups import Contains, Exact, GreaterThan

from ..datastructures import SearchRequest
from ..exceptions import SearchConfigurationError, UnsupportedExpression
from ..expressions import Node, QueryDescription
from ..query import describe

logger = logging.getLogger("trgm.search")


def is_text_field(model: type[Model], path: str) -> bool:
    """Checks that ``path`` ends at a text column of ``model``.

    ``__`` paths may only follow forward foreign keys and one-to-one relations. Multi-valued
    relations would join once per related row and return each row several times.
    """
    parts = path.split("__")
    current = model
    for index, part in enumerate(parts):
        try:
            field = current._meta.get_field(part)
        except FieldDoesNotExist:
            return False
        if index == len(parts) - 1:
            return field.concrete and not field.is_relation and isinstance(field, CharField | TextField)
        if not (field.concrete and (field.many_to_one or field.one_to_one)):
            return False
        current = field.related_model
    return False


def text_fields(model: type[Model]) -> set[str]:
    """The names of the concrete text columns declared directly on ``model``."""
    return {
        field.name
        for field in model._meta.get_fields()
        if field.concrete and not field.is_relation and isinstance(field, CharField | TextField)
    }


class DjangoCompiler:
    name = "django"

    def __init__(self, model: type[Model], allowed_fields: Iterable[str] | None = None):
        self.model = model
        self.allowed_fields = frozenset(allowed_fields) if allowed_fields is not None else None

    def check_fields(self, fields: Sequence[str]):
        unknown = [
            field
            for field in fields
            if (self.allowed_fields is not None and field not in self.allowed_fields)
            or not is_text_field(self.model, field)
        ]
        if unknown:
            raise SearchConfigurationError(
                f"Fields are not searchable text columns of {self.model.__name__}: {', '.join(unknown)}"
            )

    def compile(self, node: Node):
        method = getattr(self, f"compile_{type(node).__name__.lower()}", None)
        if method is None:
            raise UnsupportedExpression(node, self.name)
        return method(node)

    def compile_predicate(self, node: Node) -> Q:
        compiled = self.compile(node)
        return compiled if isinstance(compiled, Q) else Q(compiled)

    def compile_contains(self, node):
        return Contains(Lower(node.field), node.param.value)

    def compile_exact(self, node):
        return Exact(Lower(node.field), node.param.value)

    def compile_wordsimilarity(self, node):
        return TrigramWordSimilarity(Value(node.param.value), node.field)

    def compile_similarity(self, node):
        return TrigramSimilarity(Lower(node.field), Value(node.param.value))

    def compile_coalesce(self, node):
        return Coalesce(self.compile(node.expression), Value(node.default))

    def compile_greatest(self, node):
        expressions = [self.compile(child) for child in node.expressions]
        # GREATEST needs at least two arguments
        if len(expressions) == 1:
            return expressions[0]
        return Greatest(*expressions)

    def compile_greaterthan(self, node):
        return GreaterThan(self.compile(node.expression), node.threshold)

    def compile_anyof(self, node):
        return Q(*[self.compile(condition) for condition in node.conditions], _connector=Q.OR)

    def apply(self, queryset: QuerySet, description: QueryDescription, extra_conditions: Q | None = None) -> QuerySet:
        """Filters ``queryset`` to the candidates and orders it by relevance.

        Each row is annotated with the relevance under the ordering alias (``relevance`` by default).
        ``extra_conditions`` admit additional rows alongside the fuzzy predicate.
        """
        self.check_fields(description.referenced_fields)
        predicate = self.compile_predicate(description.predicate)
        if extra_conditions:
            predicate |= extra_conditions
        if description.ordering is None:
            return queryset.filter(predicate)

        ordering = description.ordering
        return (
            queryset.annotate(**{ordering.alias: self.compile(ordering.score)})
            .filter(predicate)
            .order_by(f"-{ordering.alias}", ordering.tiebreak)
        )


def fuzzy_search(
    queryset: QuerySet,
    request: SearchRequest,
    allowed_fields: Iterable[str] | None = None,
    extra_conditions: Q | None = None,
) -> QuerySet:
    """Runs ``request`` against ``queryset``. See ``DjangoCompiler.apply``."""
    compiler = DjangoCompiler(queryset.model, allowed_fields=allowed_fields)
    return compiler.apply(queryset, describe(request), extra_conditions=extra_conditions)
