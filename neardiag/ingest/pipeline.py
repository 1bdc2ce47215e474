# neardiag/ingest/pipeline.py
# -*- coding: utf-8 -*-
import logging
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from ..models import (
    ChoiceMetadata, Cohort, QuestionMetadata, RespondentAnswer, SurveyTables,
)
from .mapper import normalize_cohort_id, to_flag, to_number, to_text

logger = logging.getLogger(__name__)

ALLOWED = {".json", ".csv", ".xlsx", ".xls"}

# attribute -> exported table name (file stem in DATA_DIR)
TABLE_FILES = {
    "su_answers": "Su Answer",
    "way_of_life_answers": "Way Of Life Answer",
    "carbon_answers": "Carbon Footprint Answer",
    "mobility_answers": "MobilityData",
    "su_questions": "MetaSuQuestions",
    "su_choices": "MetaSuChoices",
    "emdv_questions": "MetaEmdvQuestions",
    "emdv_choices": "MetaEmdvChoices",
    "carbon_nodes": "MetaCarbon",
    "su_data": "Su Data",
    "su_bank": "Su Bank",
    "surveys": "Surveys",
    "quartiers": "Quartiers",
}

# lower-cased header variants -> canonical header
COL_MAP = {
    "su id": "Su ID",
    "su_id": "Su ID",
    "suid": "Su ID",
    "metabase question key": "Metabase Question Key",
    "question key": "Metabase Question Key",
    "question_key": "Metabase Question Key",
    "metabase choice key": "Metabase Choice Key",
    "choice key": "Metabase Choice Key",
    "choice_key": "Metabase Choice Key",
    "label short": "Label Short",
    "label long": "Label Long",
    "label origin": "Label Origin",
    "question short": "Question Short",
    "question long": "Question Long",
    "question origin": "Question Origin",
    "emoji": "Emoji",
    "typedata": "TypeData",
    "type data": "TypeData",
    "is_bareer": "is_bareer",
    "is_barrier": "is_bareer",
    "famille_barriere": "famille_barriere",
    "is_will": "is_will",
    "category": "Category",
    "subcategory": "Subcategory",
    "is_node": "is_node",
    "parent_node": "parent_node",
    "pop percentage": "Pop Percentage",
    "pop_percentage": "Pop Percentage",
    "survey id": "Survey ID",
    "survey_id": "Survey ID",
    "name fr": "Name Fr",
    "colormain": "colorMain",
    "icon2": "Icon2",
    "population sum": "Population Sum",
}

# answer tables keep every other header untouched (question keys are case sensitive)
ANSWER_TABLES = {"su_answers", "way_of_life_answers", "carbon_answers", "mobility_answers"}


class DataLoadError(ValueError):
    """A table exists but cannot be read."""


def _standardize_columns(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = [str(c).strip() for c in df.columns]
    df.columns = [COL_MAP.get(c.lower(), c) for c in df.columns]
    return df


def _read_any(path: Path) -> pd.DataFrame:
    suf = path.suffix.lower()
    if suf not in ALLOWED:
        raise ValueError(f"Unsupported file type: {suf}")
    if suf == ".json":
        return pd.read_json(path, orient="records", dtype=False, convert_dates=False)
    if suf == ".csv":
        try:
            return pd.read_csv(path, encoding="utf-8-sig", dtype=object)
        except UnicodeDecodeError:
            return pd.read_csv(path, dtype=object)
    return pd.read_excel(path, engine="openpyxl" if suf == ".xlsx" else None)


def _records(df: pd.DataFrame) -> List[dict]:
    if df.empty:
        return []
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


def find_table_file(data_dir: Path, table: str) -> Optional[Path]:
    for suf in (".json", ".csv", ".xlsx", ".xls"):
        p = data_dir / f"{table}{suf}"
        if p.exists():
            return p
    return None


def read_table(data_dir: Path, attr: str) -> List[dict]:
    """Rows of one exported table; a missing file is an empty table."""
    table = TABLE_FILES[attr]
    path = find_table_file(data_dir, table)
    if path is None:
        logger.warning(f"Table '{table}' not found in {data_dir}, using an empty table")
        return []
    try:
        df = _read_any(path)
    except Exception as e:
        raise DataLoadError(f"cannot read table '{table}' from {path}: {e}") from e
    if attr in ANSWER_TABLES:
        df = df.rename(columns=lambda c: COL_MAP.get(str(c).strip().lower(), c)
                       if COL_MAP.get(str(c).strip().lower()) == "Su ID" else c)
    else:
        df = _standardize_columns(df)
    rows = _records(df)
    logger.info(f"Loaded {len(rows)} rows from {path.name}")
    return rows


# === row -> record ===

def answers_from_rows(rows: List[dict]) -> List[RespondentAnswer]:
    out = []
    for i, row in enumerate(rows):
        rid = row.get("ID")
        out.append(RespondentAnswer(
            respondent_id=rid if rid is not None else i,
            cohort_id=row.get("Su ID"),
            values=dict(row),
        ))
    return out


def questions_from_rows(rows: List[dict]) -> List[QuestionMetadata]:
    out = []
    for row in rows:
        key = to_text(row.get("Metabase Question Key"))
        if not key:
            continue
        out.append(QuestionMetadata(
            key=key,
            short=to_text(row.get("Question Short")),
            long=to_text(row.get("Question Long")),
            origin=to_text(row.get("Question Origin")),
            emoji=to_text(row.get("Emoji")),
            category=to_text(row.get("Category")),
            subcategory=to_text(row.get("Subcategory")),
        ))
    return out


def choices_from_rows(rows: List[dict]) -> List[ChoiceMetadata]:
    out = []
    for row in rows:
        qk = to_text(row.get("Metabase Question Key"))
        # MetaCarbon rows have no choice key: the question key is the node id
        ck = to_text(row.get("Metabase Choice Key")) or qk
        if not qk:
            continue
        out.append(ChoiceMetadata(
            question_key=qk,
            choice_key=ck,
            label_short=to_text(row.get("Label Short")),
            label_long=to_text(row.get("Label Long")),
            label_origin=to_text(row.get("Label Origin")),
            emoji=to_text(row.get("Emoji")),
            type_data=to_text(row.get("TypeData")),
            category=to_text(row.get("Category")),
            subcategory=to_text(row.get("Subcategory")),
            family=to_text(row.get("famille_barriere")),
            is_barrier=to_flag(row.get("is_bareer")),
            is_will=to_flag(row.get("is_will")),
            is_node=to_flag(row.get("is_node")),
            parent_name=to_text(row.get("parent_node")),
        ))
    return out


def cohorts_from_rows(su_data: List[dict], su_bank: List[dict], survey_id: Optional[int] = None,
                      quartier_population: Optional[int] = None) -> List[Cohort]:
    """Su Data (+ Su Bank for names/colours) -> cohorts of one survey.

    Ordinals come from Su Data's `Su`; when absent, the rank of the global id
    among Su Bank ids > 0.
    """
    bank: Dict[int, dict] = {}
    for row in su_bank:
        gid = normalize_cohort_id(row.get("Id"))
        if gid is not None:
            bank[gid] = row
    ranked = sorted(g for g in bank if g > 0)

    cohorts = []
    for row in su_data:
        if survey_id is not None and "Survey ID" in row and row.get("Survey ID") is not None:
            if normalize_cohort_id(row.get("Survey ID")) != survey_id:
                continue
        gid = normalize_cohort_id(row.get("ID"))
        if gid is None or gid == 0:
            continue
        ordinal = normalize_cohort_id(row.get("Su"))
        if ordinal is None and gid in ranked:
            ordinal = ranked.index(gid) + 1
        if ordinal is None or ordinal <= 0:
            logger.warning(f"Su Data row {gid} has no usable ordinal, skipped")
            continue
        weight = to_number(row.get("Pop Percentage")) or 0.0
        b = bank.get(gid, {})
        population = None
        if quartier_population:
            population = int(round(weight / 100 * quartier_population))
        cohorts.append(Cohort(
            global_id=gid,
            ordinal=ordinal,
            weight=max(weight, 0.0),
            name=to_text(b.get("Name Fr")) or f"SU {ordinal}",
            color=to_text(b.get("colorMain")),
            icon=to_text(b.get("Icon2")),
            population=population,
        ))
    return sorted(cohorts, key=lambda c: c.ordinal)


def _row_for_survey(rows: List[dict], id_col: str, survey_id: Optional[int]) -> Optional[dict]:
    for row in rows:
        if survey_id is None or normalize_cohort_id(row.get(id_col)) == survey_id:
            return row
    return None


def load_tables(data_dir, survey_id: Optional[int] = 1) -> SurveyTables:
    data_dir = Path(data_dir)
    raw = {attr: read_table(data_dir, attr) for attr in TABLE_FILES}

    survey = _row_for_survey(raw["surveys"], "ID", survey_id)
    quartier = _row_for_survey(raw["quartiers"], "Survey ID", survey_id)
    population = None
    if quartier is not None:
        pop = to_number(quartier.get("Population Sum"))
        population = int(round(pop)) if pop is not None else None
    quartier_bank = next((r for r in raw["su_bank"] if normalize_cohort_id(r.get("Id")) == 0), {})

    return SurveyTables(
        su_answers=answers_from_rows(raw["su_answers"]),
        way_of_life_answers=answers_from_rows(raw["way_of_life_answers"]),
        carbon_answers=answers_from_rows(raw["carbon_answers"]),
        mobility_answers=answers_from_rows(raw["mobility_answers"]),
        su_questions=questions_from_rows(raw["su_questions"]),
        su_choices=choices_from_rows(raw["su_choices"]),
        emdv_questions=questions_from_rows(raw["emdv_questions"]),
        emdv_choices=choices_from_rows(raw["emdv_choices"]),
        carbon_nodes=choices_from_rows(raw["carbon_nodes"]),
        cohorts=cohorts_from_rows(raw["su_data"], raw["su_bank"], survey_id, population),
        quartier_name=to_text((survey or {}).get("Name")) or "Quartier",
        quartier_color=to_text(quartier_bank.get("colorMain")),
        quartier_population=population,
    )
