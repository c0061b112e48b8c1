"""Caller side policies layered on top of the query builder."""

import hashlib
import json
import logging
from collections.abc import Callable
from functools import wraps

from django.conf import settings
from django.core.cache import cache

from .datastructures import SearchRequest
from .expressions import AnyOf, Exact, Param, QueryDescription

logger = logging.getLogger("trgm.cache")

CACHE_KEY_PREFIX = "fuzzy-search"


def exact_match(request: SearchRequest) -> QueryDescription:
    """Describes a search for rows where any field, case-folded, equals the term exactly."""
    param = Param.for_term(request.term)
    predicate = AnyOf(tuple(Exact(field, param) for field in request.fields))
    return QueryDescription(predicate=predicate, fields=request.fields)


def first_non_empty(*runners: Callable[[], object]):
    """
    Calls each runner in turn and returns the first non-empty result.

    Typical use is to try an exact match before falling back to the fuzzy search::

        results = first_non_empty(
            lambda: backend.execute(exact_match(request), rows),
            lambda: backend.search(request, rows),
        )

    Returns the last result (empty) when no runner finds anything.
    """
    result = None
    for runner in runners:
        result = runner()
        if result:
            return result
    return result


def get_cache_key(request: SearchRequest, namespace: str = "") -> str:
    payload = json.dumps([namespace, *request.cache_key_parts()], ensure_ascii=False)
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"{CACHE_KEY_PREFIX}:{digest}"


def cached_search(timeout: int | None = None, namespace: str = ""):
    """
    Caches the result of a search executor keyed by the request's normalized term, fields and thresholds.

    The decorated callable must take the ``SearchRequest`` as its first argument and return
    a picklable value. ``timeout`` defaults to the ``FUZZY_SEARCH_CACHE_TIMEOUT`` setting.

    Args:
        timeout: Cache lifetime in seconds.
        namespace: Separates the cache entries of executors that search different data.
    """

    def decorator(func):
        @wraps(func)
        def _inner(request: SearchRequest, *args, **kwargs):
            key = get_cache_key(request, namespace or func.__qualname__)
            result = cache.get(key)
            if result is not None:
                logger.debug("Fuzzy search cache hit for %s", key)
                return result

            logger.debug("Fuzzy search cache miss for %s", key)
            result = func(request, *args, **kwargs)
            cache.set(key, result, timeout if timeout is not None else settings.FUZZY_SEARCH_CACHE_TIMEOUT)
            return result

        return _inner

    return decorator
