"""Backend agnostic description of a fuzzy search query.

Predicates and scores form a small typed tree. The leaves are ``(field, primitive, Param)``
triples so that a backend never has to interpolate the search term into query text: the
term always travels as a bound parameter and only validated field names are embedded.

Predicates:
    - ``Contains``: the case-folded field contains the term.
    - ``Exact``: the case-folded field equals the term.
    - ``GreaterThan``: a score is strictly greater than a threshold.
    - ``AnyOf``: logical OR of its children, in order.

Scores:
    - ``WordSimilarity``: ``word_similarity(term, field)``.
    - ``Similarity``: ``similarity(lower(field), term)``.
    - ``Coalesce``: the wrapped score, or a default when it is null.
    - ``Greatest``: the largest of its children.
"""

import dataclasses
from collections.abc import Iterator
from typing import ClassVar

from .normalize import NormalizedTerm


@dataclasses.dataclass(frozen=True)
class Param:
    """A bound query parameter."""

    value: str
    name: str = "term"

    @classmethod
    def for_term(cls, term: NormalizedTerm) -> "Param":
        return cls(str(term))


class Node:
    def children(self) -> tuple["Node", ...]:
        return ()

    def walk(self) -> Iterator["Node"]:
        yield self
        for child in self.children():
            yield from child.walk()


@dataclasses.dataclass(frozen=True)
class Primitive(Node):
    """A leaf applying a storage primitive to a field and a bound parameter."""

    function: ClassVar[str]

    field: str
    param: Param


@dataclasses.dataclass(frozen=True)
class Contains(Primitive):
    function = "contains"


@dataclasses.dataclass(frozen=True)
class Exact(Primitive):
    function = "exact"


@dataclasses.dataclass(frozen=True)
class WordSimilarity(Primitive):
    function = "word_similarity"


@dataclasses.dataclass(frozen=True)
class Similarity(Primitive):
    function = "similarity"


@dataclasses.dataclass(frozen=True)
class Coalesce(Node):
    expression: Node
    default: float = 0.0

    def children(self):
        return (self.expression,)


@dataclasses.dataclass(frozen=True)
class Greatest(Node):
    expressions: tuple[Node, ...]

    def __post_init__(self):
        if not self.expressions:
            raise ValueError("Greatest needs at least one expression")

    def children(self):
        return self.expressions


@dataclasses.dataclass(frozen=True)
class GreaterThan(Node):
    expression: Node
    threshold: float

    def children(self):
        return (self.expression,)


@dataclasses.dataclass(frozen=True)
class AnyOf(Node):
    conditions: tuple[Node, ...]

    def __post_init__(self):
        if not self.conditions:
            raise ValueError("AnyOf needs at least one condition")

    def children(self):
        return self.conditions


@dataclasses.dataclass(frozen=True)
class Ordering:
    """Order by ``score`` descending, then by ``tiebreak`` ascending."""

    score: Node
    tiebreak: str = "pk"
    alias: str = "relevance"


@dataclasses.dataclass(frozen=True)
class QueryDescription:
    """Everything a backend needs to run a search: the predicate, the ordering and the parameters."""

    predicate: Node
    ordering: Ordering | None = None
    fields: tuple[str, ...] = ()

    def primitives(self) -> list[Primitive]:
        nodes = list(self.predicate.walk())
        if self.ordering:
            nodes.extend(self.ordering.score.walk())
        return [node for node in nodes if isinstance(node, Primitive)]

    @property
    def params(self) -> list[str]:
        """The bound parameter values, once per usage site in predicate then ordering order."""
        return [node.param.value for node in self.primitives()]

    @property
    def referenced_fields(self) -> tuple[str, ...]:
        """Every field the predicate or the ordering reads, in first use order."""
        return tuple(dict.fromkeys(node.field for node in self.primitives()))
