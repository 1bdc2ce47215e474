"""Trips out of the neighbourhood, per destination zone: purpose and transport mode."""
from typing import Dict, List, Optional, Tuple

from ..engine.context import EngineContext
from ..engine.distribution import percentage
from ..ingest.mapper import to_text
from ..models import ChoiceCount, DemographicFilter, Distribution, QuestionMetadata
from .base import QuestionAggregator

ZONES = {
    "ZONE_A": "Nord",
    "ZONE_B": "Est",
    "ZONE_C": "Sud",
    "ZONE_D": "Ouest",
    "ZONE_PORTE_ORLEANS": "Quartier",
}
CENTRAL_ZONE = "Quartier"   # no near/far split

# < 30 min = proche, >= 30 min = loin
TIME_BANDS = {
    "LESS_THAN_10_MIN": "proche",
    "BETWEEN_10_AND_20_MIN": "proche",
    "BETWEEN_20_AND_30_MIN": "proche",
    "BETWEEN_30_AND_45_MIN": "loin",
    "BETWEEN_45_MIN_AND_1_HOUR": "loin",
    "MORE_THAN_1_HOUR": "loin",
}

USAGES = {"Hobby": "leisure", "Food": "shopping", "Work": "work"}
MODES = {
    "WALKING": "foot",
    "PERSONAL_BICYCLE": "bike",
    "SHARED_BICYCLE": "bike",
    "PUBLIC_TRANSPORT": "transit",
    "CAR": "car",
    "ELECTRIC_CAR": "car",
    "TAXI_VTC": "car",
}
USAGE_LABELS = {"leisure": "Sorties, sports, loisirs", "shopping": "Courses alimentaires", "work": "Travail, études"}
MODE_LABELS = {"foot": "Piéton", "bike": "Vélo", "car": "Voiture, moto", "transit": "Bus, tram, métro"}

DIMENSIONS = (("usages", USAGE_LABELS), ("modes", MODE_LABELS))


def zone_names() -> List[str]:
    out = []
    for base in ZONES.values():
        if base == CENTRAL_ZONE:
            out.append(base)
        else:
            out += [f"{base}_proche", f"{base}_loin"]
    return out


def trip_zone(trip) -> Optional[str]:
    base = ZONES.get(to_text(trip.get("Zone")))
    if base is None:
        return None
    if base == CENTRAL_ZONE:
        return base
    band = TIME_BANDS.get(to_text(trip.get("Time")))
    return f"{base}_{band}" if band else None


class MobilityByZoneDatapack(QuestionAggregator):
    source = "mobility"

    def __init__(self, ctx: EngineContext):
        super().__init__(ctx, "mobility_by_zone", "mobility_by_zone", title="Mobilité par zone")
        self.question = QuestionMetadata(key=self.question_key, short=self.title)

    def compute(self, cohort_id: int, demographic: Optional[DemographicFilter] = None) -> Distribution:
        counts: Dict[Tuple[str, str, str], int] = {}
        for zone in zone_names():
            for dim, labels in DIMENSIONS:
                for cat in labels:
                    counts[(zone, dim, cat)] = 0

        trips = 0
        for trip in self.respondents.answers_for(cohort_id, demographic):
            zone = trip_zone(trip)
            if zone is None:
                continue
            trips += 1
            usage = USAGES.get(to_text(trip.get("Usage")))
            mode = MODES.get(to_text(trip.get("Mode")))
            if usage:
                counts[(zone, "usages", usage)] += 1
            if mode:
                counts[(zone, "modes", mode)] += 1

        dist = Distribution(question_key=self.question_key, cohort_id=cohort_id,
                            question=self.question, total_responses=trips)
        for (zone, dim, cat), n in counts.items():
            labels = USAGE_LABELS if dim == "usages" else MODE_LABELS
            dist.choices.append(ChoiceCount(
                choice_key=f"{zone}:{dim}:{cat}", label=labels[cat], absolute_count=n, percentage=0.0,
                extra={"zone": zone, "dimension": dim, "category": cat},
            ))
        return dist

    def aggregate(self, per_cohort: Dict[int, Distribution]) -> Distribution:
        return self.ctx.aggregator.aggregate(per_cohort, self.ctx.weights(), question=self.question)

    def finish(self, result: Distribution) -> Distribution:
        """Percentages within each (zone, dimension) group, plus the nested zone view."""
        groups: Dict[Tuple[str, str], List[ChoiceCount]] = {}
        for c in result.choices:
            groups.setdefault((c.extra["zone"], c.extra["dimension"]), []).append(c)
        zones = {}
        for (zone, dim), items in groups.items():
            total = sum(c.absolute_count for c in items)
            z = zones.setdefault(zone, {"destination": f"Vers {zone}"})
            z[dim] = {"unit": "%"}
            for c in items:
                c.percentage = percentage(c.absolute_count, total)
                z[dim][c.extra["category"]] = {"label": c.label, "value": c.percentage}
        result.extra["zones"] = zones
        return result
