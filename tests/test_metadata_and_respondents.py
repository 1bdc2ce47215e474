from __future__ import annotations

import pytest

from neardiag.engine.metadata import MetadataIndex
from neardiag.engine.respondents import RespondentFilter
from neardiag.models import ChoiceMetadata, DemographicFilter, QuestionMetadata, RespondentAnswer

pytestmark = pytest.mark.unit


@pytest.fixture
def index() -> MetadataIndex:
    return MetadataIndex(
        questions=[
            QuestionMetadata(key="Q1", short="Court", long="Long"),
            QuestionMetadata(key="Q2", long="Seulement long"),
            QuestionMetadata(key="Q3"),
        ],
        choices=[
            ChoiceMetadata("Q1", "B", label_short="Bé", type_data="CatChoixUnique"),
            ChoiceMetadata("Q1", "A", label_long="A long", type_data="CatChoixUnique"),
            ChoiceMetadata("Q1", "X", type_data="AbsOther"),
            ChoiceMetadata("Q1", "B", label_short="duplicate"),
            ChoiceMetadata("Q9", "Z"),
        ],
    )


def test_choices_keep_table_order(index) -> None:
    assert [c.choice_key for c in index.choices_for("Q1")] == ["B", "A", "X"]
    assert [c.choice_key for c in index.choices_for("Q1", "CatChoixUnique")] == ["B", "A"]


def test_duplicate_choice_keeps_first_row(index) -> None:
    assert index.choice("Q1", "B").label_short == "Bé"


def test_label_fallback_chain(index) -> None:
    assert index.question_label("Q1").label == "Court"
    assert index.question_label("Q2").label == "Seulement long"
    assert index.question_label("Q3").label == "Q3"
    choices = {c.choice_key: c for c in index.choices_for("Q1")}
    assert choices["B"].label == "Bé"
    assert choices["A"].label == "A long"
    assert choices["X"].label == "X"


def test_unknown_question_fails_soft(index) -> None:
    assert index.choices_for("nope") == []
    q = index.question_label("nope")
    assert q.key == "nope" and q.label == "nope"
    assert q.to_dict()["short"] == "nope"


def test_choice_only_question_is_known(index) -> None:
    assert index.has_question("Q9")
    assert index.question_keys() == ["Q1", "Q2", "Q3", "Q9"]


def test_respondent_filter_normalises_cohort_ids() -> None:
    rows = [
        RespondentAnswer(1, 478, {"Gender": "WOMAN"}),
        RespondentAnswer(2, "478", {"Gender": "MAN"}),
        RespondentAnswer(3, 478.0, {"Gender": "WOMAN"}),
        RespondentAnswer(4, "n/a", {}),
        RespondentAnswer(5, 479, {}),
    ]
    f = RespondentFilter(rows)
    assert [a.respondent_id for a in f.answers_for("478")] == [1, 2, 3]
    assert [a.respondent_id for a in f.answers_for(478)] == [1, 2, 3]
    assert f.cohort_ids() == [478, 479]
    assert f.answers_for(999) == []
    assert f.answers_for(None) == []


def test_respondent_filter_demographic_subfilter() -> None:
    rows = [
        RespondentAnswer(1, 478, {"Gender": "WOMAN", "Age Category": "FROM_15_TO_29"}),
        RespondentAnswer(2, 478, {"Gender": "MAN", "Age Category": "FROM_15_TO_29"}),
        RespondentAnswer(3, 478, {"Gender": "WOMAN", "Age Category": "ABOVE_75"}),
    ]
    f = RespondentFilter(rows)
    women = f.answers_for(478, DemographicFilter(gender="WOMAN"))
    assert [a.respondent_id for a in women] == [1, 3]
    young_women = f.answers_for(478, DemographicFilter(gender="WOMAN", age_category="FROM_15_TO_29"))
    assert [a.respondent_id for a in young_women] == [1]
    assert f.count(478, DemographicFilter()) == 3
