import dataclasses
import re

_WHITESPACE_RE = re.compile(r"\s+")


@dataclasses.dataclass(frozen=True)
class NormalizedTerm:
    """The canonical form of a search term, shared by filtering and ranking."""

    value: str

    def __str__(self):
        return self.value

    def __bool__(self):
        return bool(self.value)

    def __len__(self):
        return len(self.value)


def normalize(term) -> NormalizedTerm:
    """Collapse whitespace runs to a single space, trim and lowercase the term.

    ``str.lower`` is Unicode aware so accented and multi-byte characters are lowercased
    the same way PostgreSQL's ``LOWER`` does. This never fails: empty input gives an empty term.
    """
    if isinstance(term, NormalizedTerm):
        return term
    collapsed = _WHITESPACE_RE.sub(" ", str(term or "")).strip()
    return NormalizedTerm(collapsed.lower())
