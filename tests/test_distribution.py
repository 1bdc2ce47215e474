from __future__ import annotations

import pytest

from neardiag.engine.distribution import DistributionCalculator, percentage
from neardiag.engine.metadata import MetadataIndex
from neardiag.engine.respondents import RespondentFilter
from neardiag.models import WARN_MISSING_METADATA, ChoiceMetadata, RespondentAnswer

from .conftest import BARRIER, MEAT

pytestmark = pytest.mark.unit


def test_percentage_rounds_to_one_decimal() -> None:
    assert percentage(1, 3) == 33.3
    assert percentage(2, 3) == 66.7
    assert percentage(5, 0) == 0.0


def test_categorical_counts(context) -> None:
    calc = context.calculators["su"]
    d = calc.compute_for(479, MEAT)
    assert [(c.choice_key, c.absolute_count, c.percentage) for c in d.choices] == [
        ("DAILY", 5, 50.0), ("NEVER", 5, 50.0)]
    assert d.total_responses == 10
    assert d.cohort_id == 479
    assert d.question.label == "Viande"


@pytest.mark.parametrize("cohort", [477, "478", 479])
def test_percentages_sum_to_100(context, cohort) -> None:
    d = context.calculators["su"].compute_for(cohort, "Gender")
    assert d.total > 0
    assert abs(sum(c.percentage for c in d.choices) - 100) <= 0.5


def test_empty_cohort_gives_all_zero_distribution(context) -> None:
    d = context.calculators["su"].compute_for(480, MEAT)
    assert [c.absolute_count for c in d.choices] == [0, 0]
    assert [c.percentage for c in d.choices] == [0.0, 0.0]
    assert d.total_responses == 0


def test_unknown_question_warns_instead_of_raising(context) -> None:
    d = context.calculators["su"].compute_for(477, "Nope")
    assert d.choices == []
    assert d.question.label == "Nope"
    assert [w.type for w in d.warnings] == [WARN_MISSING_METADATA]


def test_answers_outside_the_choice_set_are_ignored() -> None:
    idx = MetadataIndex(choices=[ChoiceMetadata("Q", "A"), ChoiceMetadata("Q", "B")])
    rows = [RespondentAnswer(i, 1, {"Q": v}) for i, v in enumerate(["A", "A", "C", " ", None])]
    d = DistributionCalculator(idx, RespondentFilter(rows)).compute_for(1, "Q")
    assert [(c.choice_key, c.absolute_count, c.percentage) for c in d.choices] == [("A", 2, 100.0), ("B", 0, 0.0)]
    assert d.total_responses == 3


def test_multi_select_with_free_text_other(context) -> None:
    calc = context.calculators["wol"]
    choices = [c for c in context.metadata["wol"].choices_for(BARRIER) if c.type_data == "AbsChoixMultiple"]
    d = calc.compute_multi_select(477, BARRIER, choices)
    counts = {c.choice_key: c.absolute_count for c in d.choices}
    assert counts == {"PRICE": 3, "TIME": 0, "HABIT": 1, "OTHER": 1}
    price = d.choice("PRICE")
    assert price.percentage == 60.0
    assert price.extra["respondentShare"] == 75.0
    assert price.extra["maxPossible"] == 4
    assert d.choice("OTHER").extra["isOtherReasons"] is True
    assert abs(sum(c.percentage for c in d.choices) - 100) <= 0.5


def test_multi_select_other_marker_and_blank_are_not_other() -> None:
    idx = MetadataIndex(choices=[ChoiceMetadata("Q", "A")])
    rows = [RespondentAnswer(1, 1, {"Q": "{A,OTHER}"}), RespondentAnswer(2, 1, {"Q": "{A, }"})]
    d = DistributionCalculator(idx, RespondentFilter(rows)).compute_multi_select(1, "Q")
    assert [c.choice_key for c in d.choices] == ["A"]
    assert d.choice("A").absolute_count == 2


def test_mean_values_ignore_non_positive_and_malformed(context) -> None:
    means = context.calculators["carbon"].mean_values(477, ["Food Total", "Vegetables", "Transport Total", "Car", "x"])
    assert means == {"Food Total": 5.0, "Vegetables": 2.0, "Transport Total": 4.0, "Car": 4.0, "x": 0.0}


def test_continuous_distribution(context) -> None:
    fields = [c for c in context.metadata["carbon"].choices_for("Food Total")] + \
             [c for c in context.metadata["carbon"].choices_for("Transport Total")]
    d = context.calculators["carbon"].compute_means(477, "carbon", fields)
    assert [(c.choice_key, c.value, c.absolute_count) for c in d.choices] == [
        ("Food Total", 5.0, 2), ("Transport Total", 4.0, 1)]
    assert [c.percentage for c in d.choices] == [55.6, 44.4]
