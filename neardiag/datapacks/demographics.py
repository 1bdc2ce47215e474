from typing import List

from ..engine.context import EngineContext
from ..engine.selection import SelectionPolicy
from ..models import Distribution
from .base import CategoricalDatapack

AGE_KEY = "Age Category"
GENDER_KEY = "Gender"
CSP_KEY = "Professional Category"

# middle of each age band, used for the average age
AGE_MIDPOINTS = {
    "FROM_15_TO_29": 22,
    "FROM_30_TO_44": 37,
    "FROM_45_TO_59": 52,
    "FROM_60_TO_74": 67,
    "ABOVE_75": 82,
}


class AgeDatapack(CategoricalDatapack):
    supports_demographics = True

    def __init__(self, ctx: EngineContext):
        super().__init__(ctx, "age", AGE_KEY, title=ctx.metadata["su"].question_label(AGE_KEY).label)

    def finish(self, result: Distribution) -> Distribution:
        num = den = 0.0
        for c in result.choices:
            mid = AGE_MIDPOINTS.get(c.choice_key)
            c.extra["midpoint"] = mid or 0
            if mid:
                num += mid * c.absolute_count
                den += c.absolute_count
        result.extra["averageAge"] = round(num / den, 1) if den > 0 else 0.0
        return result


class GenderDatapack(CategoricalDatapack):
    """Several selected cohorts are summed, not replaced by the quartier."""

    policy = SelectionPolicy.SUM_SELECTED_SUBSET
    supports_demographics = True

    def __init__(self, ctx: EngineContext):
        super().__init__(ctx, "gender", GENDER_KEY, title=ctx.metadata["su"].question_label(GENDER_KEY).label)


class ProfessionalCategoryDatapack(CategoricalDatapack):
    supports_demographics = True

    def __init__(self, ctx: EngineContext):
        super().__init__(ctx, "professional_category", CSP_KEY,
                         title=ctx.metadata["su"].question_label(CSP_KEY).label)


def demographic_datapacks(ctx: EngineContext) -> List[CategoricalDatapack]:
    return [AgeDatapack(ctx), GenderDatapack(ctx), ProfessionalCategoryDatapack(ctx)]
