"""Pure Python rendition of the PostgreSQL ``pg_trgm`` similarity functions.

Text is split into words (runs of alphanumeric characters), each word is lowercased and
padded with two spaces in front and one behind, and the padded word is cut into
trigrams. ``"cat"`` becomes ``"  c", " ca", "cat", "at "``.
"""

import re

_WORD_RE = re.compile(r"[^\W_]+")

LEFT_PADDING = "  "
RIGHT_PADDING = " "


def trigrams(text) -> list[str]:
    """Returns the trigrams of ``text`` in order of appearance, duplicates included."""
    if not text:
        return []
    result = []
    for word in _WORD_RE.findall(str(text).lower()):
        padded = f"{LEFT_PADDING}{word}{RIGHT_PADDING}"
        result.extend(padded[i : i + 3] for i in range(len(padded) - 2))
    return result


def similarity(a, b) -> float:
    """The ratio of shared trigrams to all distinct trigrams of ``a`` and ``b``."""
    first, second = set(trigrams(a)), set(trigrams(b))
    if not first or not second:
        return 0.0
    common = len(first & second)
    return common / (len(first) + len(second) - common)


def word_similarity(needle, haystack) -> float:
    """
    The greatest similarity between the trigrams of ``needle`` and any contiguous extent of
    the ordered trigrams of ``haystack``.

    ``word_similarity("word", "two words") == 0.8``
    """
    wanted = set(trigrams(needle))
    if not wanted:
        return 0.0

    sequence = trigrams(haystack)
    best = 0.0
    for start, trigram in enumerate(sequence):
        if trigram not in wanted:
            continue
        seen = set()
        found = 0
        for current in sequence[start:]:
            if current not in seen:
                seen.add(current)
                if current in wanted:
                    found += 1
            if current in wanted:
                best = max(best, found / (len(wanted) + len(seen) - found))
        if best == 1.0:
            break
    return best
