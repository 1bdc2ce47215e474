"""Shared fixtures: a three-cohort neighbourhood small enough to count by hand.

Cohorts (ordinal -> global id, population share):
    1 -> 477  12.25 %   10 SU respondents, all eat meat daily
    2 -> 478  79.5 %    20 SU respondents, never eat meat ('Su ID' stored as text)
    3 -> 479   8.25 %   10 SU respondents, half and half ('Su ID' stored as 479.0)
    4 -> 480   0 %      nobody answered

Way-of-life testimonies: two kept for 477 (housing, services), one for 478 (housing);
the "ok" and "non" answers are noise.
"""
from __future__ import annotations

from typing import List

import pytest

from neardiag import create_app
from neardiag.datapacks import build_registry
from neardiag.engine.context import EngineContext
from neardiag.models import ChoiceMetadata, Cohort, QuestionMetadata, RespondentAnswer, SurveyTables

MEAT = "Meat Frequency"
WILL = "Will Food"
BARRIER = "Barrier Food"
SAT = "Sat Housing"
HOUSING_TESTIMONY = "Other Housing Information"


def answers(cohort_id, rows: List[dict], start: int = 0) -> List[RespondentAnswer]:
    return [RespondentAnswer(respondent_id=start + i, cohort_id=cohort_id, values={"Su ID": cohort_id, **row})
            for i, row in enumerate(rows)]


def su_rows(n: int, meat: str, gender: List[str], age: List[str]) -> List[dict]:
    return [{MEAT: meat if meat != "split" else ("DAILY" if i < n // 2 else "NEVER"),
             "Gender": gender[i % len(gender)], "Age Category": age[i % len(age)]}
            for i in range(n)]


@pytest.fixture
def cohorts() -> List[Cohort]:
    return [
        Cohort(global_id=477, ordinal=1, weight=12.25, name="Myrtille"),
        Cohort(global_id=478, ordinal=2, weight=79.5, name="Orange"),
        Cohort(global_id=479, ordinal=3, weight=8.25, name="Kiwi"),
        Cohort(global_id=480, ordinal=4, weight=0.0, name="Vide"),
    ]


@pytest.fixture
def tables(cohorts) -> SurveyTables:
    su = (
        answers(477, su_rows(10, "DAILY", ["WOMAN", "WOMAN", "WOMAN", "MAN", "MAN"] * 2, ["FROM_15_TO_29"]))
        + answers("478", su_rows(20, "NEVER", ["WOMAN", "MAN"], ["FROM_30_TO_44"]), start=100)
        + answers(479.0, su_rows(10, "split", ["WOMAN", "MAN"], ["FROM_15_TO_29", "FROM_30_TO_44"]), start=200)
    )
    wol = (
        answers(477, [
            {BARRIER: "{PRICE,HABIT}", WILL: "YES", SAT: "SATISFIED", "Gender": "WOMAN",
             HOUSING_TESTIMONY: "Trop de bruit la nuit", "Comment": "non"},
            {BARRIER: "{PRICE}", WILL: "YES", SAT: "SATISFIED", "Gender": "MAN",
             "Other Services Information": "  Plus de bancs  "},
            {BARRIER: '"PRICE","my own reason"', WILL: "NO", SAT: "SATISFIED", HOUSING_TESTIMONY: "ok"},
            {BARRIER: "", WILL: "", SAT: "UNSATISFIED"},
        ])
        + answers(478, [
            {BARRIER: ["TIME"], WILL: "NO", SAT: "UNSATISFIED", HOUSING_TESTIMONY: "Loyers trop chers"},
            {BARRIER: "{TIME,PRICE}", WILL: "NO", SAT: "SATISFIED"},
        ], start=100)
    )
    carbon = (
        answers(477, [
            {"Food Total": "5", "Meat": 3, "Vegetables": "2,0", "Transport Total": 4, "Car": 4, "Global Note": 9},
            {"Food Total": 5, "Meat": 3, "Vegetables": 2, "Transport Total": 0, "Car": "", "Global Note": 9},
        ])
        + answers(478, [
            {"Food Total": 10, "Meat": 6, "Vegetables": 4, "Transport Total": 0, "Car": 0, "Global Note": 10},
        ], start=100)
    )
    mobility = (
        answers(477, [
            {"Zone": "ZONE_A", "Time": "LESS_THAN_10_MIN", "Usage": "Hobby", "Mode": "WALKING"},
            {"Zone": "ZONE_A", "Time": "MORE_THAN_1_HOUR", "Usage": "Work", "Mode": "CAR"},
            {"Zone": "ZONE_PORTE_ORLEANS", "Time": "", "Usage": "Food", "Mode": "PERSONAL_BICYCLE"},
            {"Zone": "", "Time": "LESS_THAN_10_MIN", "Usage": "Food", "Mode": "CAR"},
        ])
        + answers(478, [
            {"Zone": "ZONE_A", "Time": "BETWEEN_10_AND_20_MIN", "Usage": "Food", "Mode": "PUBLIC_TRANSPORT"},
        ], start=100)
    )
    return SurveyTables(
        su_answers=su,
        way_of_life_answers=wol,
        carbon_answers=carbon,
        mobility_answers=mobility,
        su_questions=[
            QuestionMetadata(key=MEAT, short="Viande", long="Fréquence de consommation de viande", emoji="🥩"),
            QuestionMetadata(key="Gender", short="Genre"),
            QuestionMetadata(key="Age Category", long="Tranche d'âge"),
        ],
        su_choices=[
            ChoiceMetadata(MEAT, "DAILY", label_short="Tous les jours", type_data="CatChoixUnique"),
            ChoiceMetadata(MEAT, "NEVER", label_short="Jamais", type_data="CatChoixUnique"),
            ChoiceMetadata("Gender", "WOMAN", label_short="Femme"),
            ChoiceMetadata("Gender", "MAN", label_short="Homme"),
            ChoiceMetadata("Age Category", "FROM_15_TO_29", label_short="15-29 ans"),
            ChoiceMetadata("Age Category", "FROM_30_TO_44", label_short="30-44 ans"),
        ],
        emdv_questions=[
            QuestionMetadata(key=WILL, short="Changer d'alimentation"),
            QuestionMetadata(key=BARRIER, short="Freins alimentation"),
            QuestionMetadata(key=SAT, short="Logement", category="EmdvSatisfaction", subcategory="Housing"),
            QuestionMetadata(key="Testimony Housing", short="Témoignage logement", emoji="🏠",
                             category="EmdvTestimony", subcategory="Housing"),
        ],
        emdv_choices=[
            ChoiceMetadata(WILL, "YES", label_short="Oui", type_data="CatChoixUnique", is_will=True),
            ChoiceMetadata(WILL, "NO", label_short="Non", type_data="CatChoixUnique", is_will=True),
            ChoiceMetadata(BARRIER, "PRICE", label_short="Prix", type_data="AbsChoixMultiple",
                           is_barrier=True, family="Coût"),
            ChoiceMetadata(BARRIER, "TIME", label_short="Temps", type_data="AbsChoixMultiple",
                           is_barrier=True, family="Coût"),
            ChoiceMetadata(BARRIER, "HABIT", label_short="Habitudes", type_data="AbsChoixMultiple",
                           is_barrier=True, family="Habitudes"),
            ChoiceMetadata(BARRIER, "OTHER", label_short="Autre", type_data="AbsOther", family="Autres raisons"),
            ChoiceMetadata(SAT, "SATISFIED", label_short="Satisfait", category="EmdvSatisfaction"),
            ChoiceMetadata(SAT, "UNSATISFIED", label_short="Insatisfait", category="EmdvSatisfaction"),
        ],
        carbon_nodes=[
            ChoiceMetadata("Food Total", "Food Total", label_short="Alimentation", is_node=True, parent_name="Total"),
            ChoiceMetadata("Meat", "Meat", label_short="Viande", is_node=True, parent_name="Alimentation"),
            ChoiceMetadata("Vegetables", "Vegetables", label_short="Légumes", is_node=True,
                           parent_name="Alimentation"),
            ChoiceMetadata("Transport Total", "Transport Total", label_long="Transport", is_node=True,
                           parent_name="total"),
            ChoiceMetadata("Car", "Car", label_short="Voiture", is_node=True, parent_name="Transport"),
            ChoiceMetadata("Global Note", "Global Note", label_short="Global", is_node=True, parent_name=""),
        ],
        cohorts=cohorts,
        quartier_name="Porte d'Orléans",
        quartier_population=10000,
    )


@pytest.fixture
def context(tables) -> EngineContext:
    return EngineContext(tables)


@pytest.fixture
def registry(context):
    return build_registry(context)


@pytest.fixture
def app(tables):
    return create_app("testing", tables=tables)


@pytest.fixture
def client(app):
    return app.test_client()
