import logging
import math
from typing import Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from ..ingest.mapper import normalize_cohort_id, parse_multi_answer, to_number, to_text
from ..models import WARN_MISSING_METADATA, ChoiceCount, ChoiceMetadata, DemographicFilter, Distribution, EngineWarning
from .metadata import MetadataIndex
from .respondents import RespondentFilter

logger = logging.getLogger(__name__)

OTHER_KEY = "OTHER"
OTHER_LABEL = "Autres raisons"


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def percentage(part: float, total: float) -> float:
    """100 * part / total at one decimal; 0 when there is nothing to divide by."""
    if not total or total <= 0:
        return 0.0
    return math.floor(part / total * 1000 + 0.5) / 10


def fill_percentages(choices: List[ChoiceCount], use_value: bool = False) -> List[ChoiceCount]:
    """Percentages against the sum of the choices themselves."""
    if use_value:
        total = sum(c.value or 0.0 for c in choices)
        for c in choices:
            c.percentage = percentage(c.value or 0.0, total)
    else:
        total = sum(c.absolute_count for c in choices)
        for c in choices:
            c.percentage = percentage(c.absolute_count, total)
    return choices


def choice_count(meta: ChoiceMetadata, count, **kw) -> ChoiceCount:
    return ChoiceCount(
        choice_key=meta.choice_key,
        label=meta.label,
        label_long=meta.label_long or meta.label,
        emoji=meta.emoji,
        absolute_count=count,
        percentage=0.0,
        **kw,
    )


class DistributionCalculator:
    """Per-cohort counting (categorical, multi-select) and averaging (continuous)."""

    def __init__(self, metadata: MetadataIndex, respondents: RespondentFilter):
        self.metadata = metadata
        self.respondents = respondents

    def _empty(self, cohort_id, question_key: str) -> Distribution:
        return Distribution(
            question_key=question_key,
            cohort_id=normalize_cohort_id(cohort_id),
            question=self.metadata.question_label(question_key),
        )

    def _no_choices(self, dist: Distribution):
        msg = f"No choice metadata for question '{dist.question_key}'"
        logger.warning(msg)
        dist.warnings.append(EngineWarning(WARN_MISSING_METADATA, msg))

    def compute_for(self, cohort_id, question_key: str,
                    demographic: Optional[DemographicFilter] = None,
                    type_data: Optional[str] = None,
                    choices: Optional[List[ChoiceMetadata]] = None) -> Distribution:
        """Single-choice question: respondents whose answer equals each choice key."""
        dist = self._empty(cohort_id, question_key)
        if choices is None:
            choices = self.metadata.choices_for(question_key, type_data)
        if not choices:
            self._no_choices(dist)
        answers = self.respondents.answers_for(cohort_id, demographic)

        values = pd.Series([to_text(a.get(question_key)) for a in answers], dtype=object)
        values = values[values != ""]
        counts = values.value_counts() if len(values) else pd.Series(dtype="int64")

        dist.choices = [choice_count(c, int(counts.get(c.choice_key, 0))) for c in choices]
        fill_percentages(dist.choices)
        dist.total_responses = int(len(values))
        return dist

    def compute_multi_select(self, cohort_id, question_key: str,
                             choices: Optional[List[ChoiceMetadata]] = None,
                             other: Optional[ChoiceMetadata] = None,
                             demographic: Optional[DemographicFilter] = None) -> Distribution:
        """Multi-select question with free text.

        A respondent counts once per selected choice. Selections that match no
        known key (and are not the OTHER marker itself) make the respondent count
        for a synthesized OTHER choice.
        """
        dist = self._empty(cohort_id, question_key)
        if choices is None:
            choices = [c for c in self.metadata.choices_for(question_key) if c.choice_key != OTHER_KEY]
        if not choices:
            self._no_choices(dist)
        answers = self.respondents.answers_for(cohort_id, demographic)
        selections = [parse_multi_answer(a.get(question_key)) for a in answers]
        known = {c.choice_key for c in choices}
        respondents = len(answers)

        out = []
        for c in choices:
            n = sum(1 for sel in selections if c.choice_key in sel)
            out.append(choice_count(c, n, extra={
                "respondentShare": percentage(n, respondents),
                "maxPossible": respondents,
                "isOtherReasons": False,
            }))

        n_other = sum(
            1 for sel in selections
            if any(s.strip() and s not in known and s != OTHER_KEY for s in sel)
        )
        if n_other > 0:
            other = other or ChoiceMetadata(question_key=question_key, choice_key=OTHER_KEY,
                                            label_short=OTHER_LABEL, label_long=OTHER_LABEL)
            cc = choice_count(other, n_other, extra={
                "respondentShare": percentage(n_other, respondents),
                "maxPossible": respondents,
                "isOtherReasons": True,
            })
            cc.choice_key = OTHER_KEY
            out.append(cc)

        dist.choices = fill_percentages(out)
        dist.total_responses = respondents
        return dist

    def mean_values(self, cohort_id, keys: Iterable[str],
                    demographic: Optional[DemographicFilter] = None) -> Dict[str, float]:
        """Mean of the positive, well-formed numeric answers per field (0 when none)."""
        answers = self.respondents.answers_for(cohort_id, demographic)
        out = {}
        for key in keys:
            nums = [to_number(a.get(key)) for a in answers]
            arr = np.array([n for n in nums if n is not None and n > 0], dtype=float)
            out[key] = float(arr.mean()) if arr.size else 0.0
        return out

    def compute_means(self, cohort_id, question_key: str, fields: List[ChoiceMetadata],
                      demographic: Optional[DemographicFilter] = None) -> Distribution:
        """Continuous metric: each field is a 'choice' valued by its mean answer.

        `absolute_count` is the number of respondents with a usable value and the
        percentage is the field's share of the summed means.
        """
        dist = self._empty(cohort_id, question_key)
        answers = self.respondents.answers_for(cohort_id, demographic)
        means = self.mean_values(cohort_id, [f.choice_key for f in fields], demographic)
        out = []
        for f in fields:
            n = sum(1 for a in answers if (to_number(a.get(f.choice_key)) or 0) > 0)
            out.append(choice_count(f, n, value=means[f.choice_key]))
        dist.choices = fill_percentages(out, use_value=True)
        dist.total_responses = len(answers)
        return dist
