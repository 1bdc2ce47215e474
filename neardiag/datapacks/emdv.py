"""Way-of-life (EMDV) questionnaire: willingness to change, satisfactions, barriers."""
from typing import Dict, List, Optional

from ..engine.context import EngineContext
from ..engine.distribution import OTHER_KEY, OTHER_LABEL, fill_percentages, percentage, round_half_up
from ..ingest.mapper import parse_multi_answer
from ..models import ChoiceCount, ChoiceMetadata, DemographicFilter, Distribution, QuestionMetadata
from .base import CategoricalDatapack, QuestionAggregator

SATISFACTION_CATEGORY = "EmdvSatisfaction"
SUBCATEGORY_LABELS = {
    "Food": "Alimentation",
    "Politics": "Politique",
    "NghLife": "Vie de quartier",
    "Services": "Services",
    "Mobility": "Mobilité",
    "Housing": "Logement",
}


# === volonté ===

class WillDatapack(CategoricalDatapack):
    source = "wol"
    type_data = "CatChoixUnique"

    def choices(self):
        return [c for c in super().choices() if c.is_will]


def will_question_keys(ctx: EngineContext) -> List[str]:
    keys = {c.question_key for c in ctx.metadata["wol"].choices_where(
        lambda c: c.is_will and c.type_data == "CatChoixUnique")}
    return sorted(keys)


# === satisfactions ===

class SatisfactionDatapack(CategoricalDatapack):
    source = "wol"

    def finish(self, result: Distribution) -> Distribution:
        sub = result.question.subcategory
        result.extra["subcategory"] = sub
        result.extra["subcategoryLabel"] = SUBCATEGORY_LABELS.get(sub, sub)
        return result


def satisfaction_questions(ctx: EngineContext) -> List[QuestionMetadata]:
    qs = ctx.metadata["wol"].questions_where(lambda q: q.category == SATISFACTION_CATEGORY and q.subcategory)
    return sorted(qs, key=lambda q: (q.subcategory, q.key))


# === freins ===

def _is_barrier_choice(c: ChoiceMetadata) -> bool:
    return c.is_barrier and c.type_data == "AbsChoixMultiple" and bool(c.family)


def barrier_question_keys(ctx: EngineContext) -> List[str]:
    return sorted({c.question_key for c in ctx.metadata["wol"].choices_where(_is_barrier_choice)})


class BarrierDatapack(QuestionAggregator):
    """Multi-select 'what stops you' question, choices grouped in barrier families.

    Choices are sorted by descending share; `families` gives, per family, the
    share of respondents who picked at least one of its choices.
    """

    source = "wol"

    def __init__(self, ctx: EngineContext, name: str, question_key: str, title: str = ""):
        super().__init__(ctx, name, question_key, title)
        rows = self.metadata.choices_for(question_key)
        self.choices = [c for c in rows if _is_barrier_choice(c)]
        self.other = next((c for c in rows if c.type_data == "AbsOther"), None)
        self._order = {c.choice_key: i for i, c in enumerate(self.choices)}
        self._families: Dict[str, List[str]] = {}
        for c in self.choices:
            self._families.setdefault(c.family, []).append(c.choice_key)

    @property
    def other_family(self) -> str:
        return (self.other.family if self.other and self.other.family else OTHER_LABEL)

    def compute(self, cohort_id: int, demographic: Optional[DemographicFilter] = None) -> Distribution:
        dist = self.calculator.compute_multi_select(cohort_id, self.question_key, self.choices,
                                                    self.other, demographic)
        by_key = {c.choice_key: c for c in self.choices}
        for cc in dist.choices:
            meta = by_key.get(cc.choice_key)
            cc.extra["family"] = meta.family if meta else self.other_family

        answers = self.respondents.answers_for(cohort_id, demographic)
        selections = [set(parse_multi_answer(a.get(self.question_key))) for a in answers]
        families = []
        for fam, keys in self._families.items():
            n = sum(1 for sel in selections if sel.intersection(keys))
            families.append({"family": fam, "absoluteCount": n, "maxPossible": len(answers),
                             "isOtherReasons": False})
        other = dist.choice(OTHER_KEY)
        if other is not None:
            families.append({"family": self.other_family, "absoluteCount": other.absolute_count,
                             "maxPossible": len(answers), "isOtherReasons": True})
        dist.extra["families"] = families
        return dist

    def aggregate(self, per_cohort: Dict[int, Distribution]) -> Distribution:
        out = super().aggregate(per_cohort)
        weights = self.ctx.weights()
        sums: Dict[str, dict] = {}
        for cid in sorted(per_cohort):
            d, w = per_cohort[cid], float(weights.get(cid, 0) or 0)
            if w <= 0 or d.total_responses <= 0:
                continue
            for f in d.extra.get("families", []):
                s = sums.setdefault(f["family"], {"count": 0.0, "max": 0.0, "other": f["isOtherReasons"]})
                s["count"] += f["absoluteCount"] * w / 100
                s["max"] += f["maxPossible"] * w / 100
        out.extra["families"] = [
            {"family": fam, "absoluteCount": round_half_up(s["count"]), "maxPossible": round_half_up(s["max"]),
             "isOtherReasons": s["other"], "weightedCount": s["count"]}
            for fam, s in sums.items()
        ]
        return out

    def finish(self, result: Distribution) -> Distribution:
        result.choices.sort(key=lambda c: (-c.percentage, self._order.get(c.choice_key, len(self._order))))
        fams = result.extra.get("families", [])
        for f in fams:
            f["percentage"] = percentage(f.get("weightedCount", f["absoluteCount"]), f["maxPossible"])
        fams.sort(key=lambda f: (-f["percentage"], f["isOtherReasons"], f["family"]))
        return result


class BarrierFamiliesDatapack(QuestionAggregator):
    """Every barrier question at once, counted per family."""

    source = "wol"

    def __init__(self, ctx: EngineContext, questions: List[BarrierDatapack]):
        super().__init__(ctx, "barrier_families", "", title="Freins par famille")
        self.questions = questions

    def compute(self, cohort_id: int, demographic: Optional[DemographicFilter] = None) -> Distribution:
        totals: Dict[str, dict] = {}
        respondents = 0
        for q in self.questions:
            d = q.compute(cohort_id, demographic)
            respondents = max(respondents, d.total_responses)
            for f in d.extra["families"]:
                t = totals.setdefault(f["family"], {"count": 0, "max": 0, "other": f["isOtherReasons"]})
                t["count"] += f["absoluteCount"]
                t["max"] += f["maxPossible"]
        dist = Distribution(question_key=self.name, cohort_id=cohort_id,
                            question=QuestionMetadata(key=self.name, short=self.title),
                            total_responses=respondents)
        for fam, t in totals.items():
            dist.choices.append(ChoiceCount(
                choice_key=fam, label=fam, absolute_count=t["count"], percentage=0.0,
                extra={"maxPossible": t["max"], "respondentShare": percentage(t["count"], t["max"]),
                       "isOtherReasons": t["other"]},
            ))
        fill_percentages(dist.choices)
        return dist

    def aggregate(self, per_cohort: Dict[int, Distribution]) -> Distribution:
        return self.ctx.aggregator.aggregate(per_cohort, self.ctx.weights(), question_key=self.name,
                                             question=QuestionMetadata(key=self.name, short=self.title))

    def finish(self, result: Distribution) -> Distribution:
        result.choices.sort(key=lambda c: (-c.extra.get("respondentShare", 0), c.extra.get("isOtherReasons", False),
                                           c.choice_key))
        return result
