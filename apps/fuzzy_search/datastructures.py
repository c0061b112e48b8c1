import dataclasses
import re
from functools import cached_property
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, model_validator

from .exceptions import SearchConfigurationError
from .normalize import NormalizedTerm, normalize

DEFAULT_MIN_WORD_SIMILARITY = 0.3
DEFAULT_MIN_SIMILARITY = 0.2

FIELD_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class SearchRequest(BaseModel):
    """A single fuzzy search: the raw term, the fields to match against and the similarity thresholds.

    All validation happens here so that a bad configuration can never reach the query builder.

    Attributes:
        raw_term: The term as typed by the user.
        fields: Ordered names of the text columns to search. Related lookups use ``__``.
        min_word_similarity: A row matches a field when the word similarity of the term
            against the field exceeds this value.
        min_similarity: A row matches a field when the similarity of the whole field value
            and the term exceeds this value.
    """

    model_config = ConfigDict(frozen=True)

    raw_term: str
    fields: tuple[str, ...]
    min_word_similarity: float = DEFAULT_MIN_WORD_SIMILARITY
    min_similarity: float = DEFAULT_MIN_SIMILARITY

    @model_validator(mode="after")
    def validate_configuration(self) -> Self:
        if not self.fields:
            raise SearchConfigurationError("At least one field is required to search")

        for field in self.fields:
            if not FIELD_NAME_RE.fullmatch(field):
                raise SearchConfigurationError(f"Invalid field name: {field!r}")
        if len(set(self.fields)) != len(self.fields):
            raise SearchConfigurationError(f"Duplicate fields in {list(self.fields)}")

        for name in ("min_word_similarity", "min_similarity"):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise SearchConfigurationError(f"{name} must be between 0 and 1, got {value}")

        if not self.term:
            raise SearchConfigurationError("The search term is empty")
        return self

    @cached_property
    def term(self) -> NormalizedTerm:
        return normalize(self.raw_term)

    def cache_key_parts(self) -> tuple:
        return str(self.term), self.fields, self.min_word_similarity, self.min_similarity


@dataclasses.dataclass(frozen=True)
class FieldScore:
    field: str
    word_similarity: float
    full_similarity: float

    @property
    def best(self) -> float:
        return max(self.word_similarity, self.full_similarity)


@dataclasses.dataclass(frozen=True)
class RankedResult:
    row: Any
    relevance: float
    field_scores: tuple[FieldScore, ...] = ()
