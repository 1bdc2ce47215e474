from __future__ import annotations

import pytest

from neardiag.engine.aggregation import WeightedAggregator
from neardiag.engine.selection import CohortTranslator, SelectionPolicy, SelectionResolver
from neardiag.models import (
    MULTI_COHORT_ID, QUARTIER_ID, WARN_EMPTY_COHORT, WARN_MISSING_DATA, WARN_UNMAPPED_COHORT, Cohort,
    PrecomputedResultSet,
)

from .test_aggregation import WEIGHTS, dist

pytestmark = pytest.mark.unit


@pytest.fixture
def translator() -> CohortTranslator:
    return CohortTranslator([
        Cohort(global_id=477, ordinal=1, weight=12.25),
        Cohort(global_id=478, ordinal=2, weight=79.5),
        Cohort(global_id=479, ordinal=3, weight=8.25),
        Cohort(global_id=480, ordinal=4, weight=0.0),
    ])


@pytest.fixture
def results() -> PrecomputedResultSet:
    per_cohort = {477: dist(477, A=10, B=0), 478: dist(478, A=0, B=20), 479: dist(479, A=5, B=5)}
    weights = {477: WEIGHTS[1], 478: WEIGHTS[2], 479: WEIGHTS[3]}
    return PrecomputedResultSet(per_cohort=per_cohort, quartier=WeightedAggregator().aggregate(per_cohort, weights))


def test_translation_is_one_to_one(translator) -> None:
    assert translator.to_global(1) == 477
    assert translator.to_global("2") == 478
    assert translator.to_ordinal(479) == 3
    assert translator.to_ordinal("479") == 3
    assert translator.to_global(9) is None
    assert translator.to_global("abc") is None


def test_known_global_id_passes_through(translator) -> None:
    assert translator.to_global(478) == 478


def test_translation_rejects_aliases_and_quartier() -> None:
    t = CohortTranslator([
        Cohort(global_id=477, ordinal=1),
        Cohort(global_id=478, ordinal=1),
        Cohort(global_id=477, ordinal=2),
        Cohort(global_id=0, ordinal=3),
        Cohort(global_id=479, ordinal=0),
    ])
    assert t.ordinals() == [1]
    assert t.global_ids() == [477]


def test_no_translation_for_ordinal_offset(translator) -> None:
    # ordinal 5 would be 481 with the historical "+476" shortcut; it is not guessed
    assert translator.to_global(5) is None


@pytest.mark.parametrize("selection", [None, []])
def test_quartier_policy_serves_quartier(translator, results, selection) -> None:
    res = SelectionResolver(translator).resolve(selection, results)
    assert res.result is results.quartier
    assert res.cohort_id_used == QUARTIER_ID
    assert res.is_aggregate
    assert not res.has_warning


@pytest.mark.parametrize("selection", [[1, 2], [1, 2, 3, 4], ["1", "3"]])
def test_quartier_policy_warns_on_multiselect(translator, results, selection) -> None:
    res = SelectionResolver(translator).resolve(selection, results)
    assert res.result is results.quartier
    assert res.cohort_id_used == QUARTIER_ID
    assert res.is_aggregate
    assert [w.type for w in res.warnings] == [WARN_MISSING_DATA]
    assert str(len(selection)) in res.warnings[0].message


def test_single_ordinal_serves_cohort(translator, results) -> None:
    res = SelectionResolver(translator).resolve([2], results)
    assert res.result is results.per_cohort[478]
    assert res.cohort_id_used == 478
    assert not res.is_aggregate


def test_empty_cohort_falls_back_to_quartier_with_warning(translator, results) -> None:
    res = SelectionResolver(translator).resolve([4], results)
    assert res.result is results.quartier
    assert res.cohort_id_used == QUARTIER_ID
    assert [w.type for w in res.warnings] == [WARN_EMPTY_COHORT]


def test_unmapped_ordinal_falls_back_to_quartier_with_warning(translator, results) -> None:
    res = SelectionResolver(translator).resolve([42], results)
    assert res.result is results.quartier
    assert [w.type for w in res.warnings] == [WARN_UNMAPPED_COHORT]


def _sum_resolver(translator) -> SelectionResolver:
    return SelectionResolver(translator, SelectionPolicy.SUM_SELECTED_SUBSET,
                             combine=WeightedAggregator().sum_subset)


def test_sum_policy_combines_selected_cohorts(translator, results) -> None:
    res = _sum_resolver(translator).resolve([1, 3], results)
    assert res.cohort_id_used == MULTI_COHORT_ID
    assert res.is_aggregate
    assert [(c.choice_key, c.absolute_count) for c in res.result.choices] == [("A", 15), ("B", 5)]


def test_sum_policy_skips_unmapped_and_empty_members(translator, results) -> None:
    res = _sum_resolver(translator).resolve([1, 3, 4, 42], results)
    assert [(c.choice_key, c.absolute_count) for c in res.result.choices] == [("A", 15), ("B", 5)]
    assert sorted(w.type for w in res.warnings) == [WARN_EMPTY_COHORT, WARN_UNMAPPED_COHORT]


def test_sum_policy_single_and_empty_selection(translator, results) -> None:
    resolver = _sum_resolver(translator)
    assert resolver.resolve([], results).result is results.quartier
    assert resolver.resolve([1], results).result is results.per_cohort[477]
    assert resolver.resolve([1, "1"], results).result is results.per_cohort[477]


def test_sum_policy_needs_combine(translator) -> None:
    with pytest.raises(ValueError):
        SelectionResolver(translator, SelectionPolicy.SUM_SELECTED_SUBSET)
