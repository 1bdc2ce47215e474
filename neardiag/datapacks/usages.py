from typing import List, Optional, Sequence

from ..engine.context import EngineContext
from ..engine.selection import SelectionPolicy
from ..models import QUARTIER_ID, DemographicFilter, DistributionBundle, Resolution
from .base import CategoricalDatapack, _merge_warnings

# datapack name -> question key in "Su Answer"
USAGE_QUESTIONS = {
    "meat_frequency": "Meat Frequency",
    "transportation_mode": "Transportation Mode",
    "digital_intensity": "Digital Intensity",
    "purchasing_strategy": "Purchasing Strategy",
    "air_travel_frequency": "Air Travel Frequency",
    "heat_source": "Heat Source",
}


class UsageDatapack(CategoricalDatapack):
    """Habits of a cohort (single choice answers of the SU questionnaire)."""

    source = "su"
    type_data = "CatChoixUnique"
    ttl_seconds = 3600
    supports_demographics = True


def usage_datapacks(ctx: EngineContext) -> List[UsageDatapack]:
    meta = ctx.metadata["su"]
    return [UsageDatapack(ctx, name, key, title=meta.question_label(key).label)
            for name, key in USAGE_QUESTIONS.items()]


class UsagesBundle:
    """Every usage question at once; each member resolves (and caches) on its own."""

    kind = "bundle"
    policy = SelectionPolicy.QUARTIER_ON_MULTISELECT
    supports_demographics = True

    def __init__(self, members: List[UsageDatapack], name: str = "usages", title: str = "Sphères d'usages"):
        self.name = name
        self.title = title
        self.members = members

    def resolve(self, selected: Optional[Sequence] = None,
                demographic: Optional[DemographicFilter] = None) -> Resolution:
        parts = [dp.resolve(selected, demographic) for dp in self.members]
        cohort_id = parts[0].cohort_id_used if parts else QUARTIER_ID
        is_aggregate = parts[0].is_aggregate if parts else True
        bundle = DistributionBundle(items={dp.name: res.result for dp, res in zip(self.members, parts)},
                                    cohort_id=cohort_id, is_aggregate=is_aggregate)
        return Resolution(result=bundle, cohort_id_used=cohort_id, is_aggregate=is_aggregate,
                          warnings=_merge_warnings(*(res.warnings for res in parts)))

    def get_distribution(self, selected: Optional[Sequence] = None,
                         demographic: Optional[DemographicFilter] = None) -> Resolution:
        return self.resolve(selected, demographic)

    def invalidate(self):
        for dp in self.members:
            dp.invalidate()

    def describe(self) -> dict:
        return {
            "name": self.name,
            "kind": self.kind,
            "questionKey": "",
            "title": self.title,
            "policy": self.policy.value,
            "ttlSeconds": self.members[0].effective_ttl if self.members else None,
            "demographicFilters": self.supports_demographics,
            "members": [dp.name for dp in self.members],
        }
