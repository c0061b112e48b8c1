import dataclasses

import pytest

from ..backends.memory import MemoryBackend, get_field_value, rank
from ..datastructures import SearchRequest
from ..exceptions import SearchConfigurationError, UnsupportedExpression
from ..expressions import AnyOf, Contains, Node, Param, QueryDescription
from ..query import search

ROWS = [
    {"id": 1, "name": "João da Silva", "description": "Engineer"},
    {"id": 2, "name": "Maria Souza", "description": "Data analyst"},
    {"id": 3, "name": "Crabapple", "description": None},
    {"id": 4, "name": "Joana Silveira", "description": "Accountant in São Paulo"},
    {"id": 5, "name": None, "description": "joão"},
]


def _ids(results):
    return [result.row["id"] for result in results]


@pytest.fixture()
def backend():
    return MemoryBackend()


class TestScenarios:
    def test_word_similarity_match(self, backend):
        results = backend.execute(search("joao", ["name"]), ROWS[:1])
        assert _ids(results) == [1]
        assert results[0].relevance == pytest.approx(0.4)

    def test_no_match(self, backend):
        assert backend.execute(search("xyz", ["name"]), ROWS) == []

    def test_substring_only_match(self, backend):
        row = ROWS[2]
        results = backend.execute(search("ab", ["name", "description"]), [row])
        assert _ids(results) == [3]
        assert results[0].relevance == 0.0
        assert [score.field for score in results[0].field_scores] == ["name", "description"]
        assert all(score.best < 0.2 for score in results[0].field_scores)


class TestThresholds:
    def test_score_equal_to_threshold_is_excluded(self, backend):
        description = search("joao", ["name"], min_word_similarity=0.4, min_similarity=0.9)
        assert backend.execute(description, ROWS[:1]) == []

    def test_score_above_threshold_is_admitted(self, backend):
        description = search("joao", ["name"], min_word_similarity=0.39, min_similarity=0.9)
        assert _ids(backend.execute(description, ROWS[:1])) == [1]


class TestExecute:
    def test_results_are_ordered_by_relevance(self, backend):
        results = backend.execute(search("joão silva", ["name", "description"]), ROWS)
        relevances = [result.relevance for result in results]
        assert relevances == sorted(relevances, reverse=True)
        assert _ids(results)[0] == 1

    def test_null_fields_score_zero(self, backend):
        results = backend.execute(search("joão", ["name", "description"]), [ROWS[4]])
        assert _ids(results) == [5]
        assert results[0].relevance == 1.0

    def test_accepts_objects(self, backend):
        @dataclasses.dataclass
        class Person:
            name: str

        people = [Person("Maria Souza"), Person("João da Silva")]
        results = backend.execute(search("joao", ["name"]), people)
        assert [result.row for result in results] == [people[1]]

    def test_related_fields(self, backend):
        rows = [{"id": 1, "owner": {"username": "jsilva"}}, {"id": 2, "owner": None}]
        results = backend.execute(search("silva", ["owner__username"]), rows)
        assert _ids(results) == [1]

    def test_allowed_fields(self):
        backend = MemoryBackend(allowed_fields=["name"])
        with pytest.raises(SearchConfigurationError, match="description"):
            backend.execute(search("joao", ["name", "description"]), ROWS)

    def test_allowed_fields_checks_every_referenced_field(self):
        backend = MemoryBackend(allowed_fields=["name"])
        description = QueryDescription(
            predicate=AnyOf((Contains("name", Param("joao")), Contains("description", Param("joao")))),
            fields=("name",),
        )
        with pytest.raises(SearchConfigurationError, match="description"):
            backend.execute(description, ROWS)

    def test_search_results_carry_field_scores(self, backend):
        results = backend.execute(search("joao", ["name", "description"]), ROWS)
        ranked = {result.row["id"]: result for result in rank(ROWS, "joao", ["name", "description"])}
        assert results
        for result in results:
            assert result.field_scores == ranked[result.row["id"]].field_scores
            assert result.relevance == max(score.best for score in result.field_scores)

    def test_unsupported_node(self, backend):
        class Unknown(Node):
            pass

        with pytest.raises(UnsupportedExpression):
            backend.execute(QueryDescription(predicate=Unknown()), ROWS)

    def test_search(self, backend):
        request = SearchRequest(raw_term="Maria", fields=["name"])
        assert _ids(backend.search(request, ROWS)) == [2]


@pytest.mark.parametrize("term", ["joao", "silva", "sao paulo", "mar"])
def test_lower_thresholds_never_shrink_candidates(backend, term):
    fields = ["name", "description"]
    previous = set()
    for threshold in [1.0, 0.8, 0.5, 0.3, 0.2, 0.1, 0.0]:
        results = backend.execute(search(term, fields, min_word_similarity=threshold, min_similarity=threshold), ROWS)
        candidates = set(_ids(results))
        assert previous <= candidates
        previous = candidates


class TestRank:
    def test_rank_is_deterministic(self):
        first = rank(ROWS, "silva", ["name", "description"])
        second = rank(ROWS, "silva", ["name", "description"])
        assert _ids(first) == _ids(second)
        assert [result.relevance for result in first] == [result.relevance for result in second]

    def test_rank_does_not_filter(self):
        assert sorted(_ids(rank(ROWS, "xyz", ["name"]))) == [1, 2, 3, 4, 5]

    def test_ties_keep_input_order(self):
        rows = [{"id": 7, "name": "Ana"}, {"id": 3, "name": "Ana"}, {"id": 5, "name": "Ana Maria"}]
        results = rank(rows, "ana", ["name"])
        assert _ids(results) == [7, 3, 5]
        assert results[0].relevance == results[1].relevance == 1.0

    def test_relevance_bounds(self):
        for result in rank(ROWS, "joão silva", ["name", "description"]):
            assert 0 <= result.relevance <= 1

    def test_exact_match_scores_one(self):
        results = rank(ROWS, "  MARIA   souza ", ["name"])
        assert _ids(results)[0] == 2
        assert results[0].relevance == 1.0
        assert all(result.relevance < 1 for result in results[1:])

    def test_relevance_is_best_field_score(self):
        for result in rank(ROWS, "joao", ["name", "description"]):
            assert result.relevance == max(score.best for score in result.field_scores)

    def test_rank_accepts_normalized_term(self):
        request = SearchRequest(raw_term="Joao", fields=["name"])
        assert _ids(rank(ROWS, request.term, ["name"])) == _ids(rank(ROWS, "joao", ["name"]))


def test_get_field_value():
    row = {"owner": {"profile": {"name": "x"}}}
    assert get_field_value(row, "owner__profile__name") == "x"
    assert get_field_value(row, "owner__missing__name") is None
    assert get_field_value({"name": None}, "name") is None
