"""Free-text testimonies of the way-of-life questionnaire, as a subcategory -> testimony network."""
import logging
from typing import Dict, Iterable, List, Optional

from ..engine.context import EngineContext
from ..engine.graph import order_nodes
from ..ingest.mapper import normalize_cohort_id, to_text
from ..models import QUARTIER_ID, DemographicFilter, Graph, GraphNode, RespondentAnswer
from .base import QuestionAggregator
from .emdv import SUBCATEGORY_LABELS

logger = logging.getLogger(__name__)

TESTIMONY_CATEGORY = "EmdvTestimony"

# answer field -> subcategory
TESTIMONY_FIELDS = {
    "Other Food Frequency Information": "Food",
    "Other Food Satisfaction Information": "Food",
    "Other Housing Information": "Housing",
    "Other Local Politic Information": "Politics",
    "Other Mutual Aid Information": "Solidarity",
    "Other Neighborhood Life Information": "NghLife",
    "Other Parks Information": "Parks",
    "Other Repair Shop Satisfaction Information": "Shopping",
    "Other Services Information": "Services",
    "Other Transportation Information": "Mobility",
    "Comment": "General",
}

DEFAULT_EMOJIS = {
    "Food": "🍝🗣️",
    "Housing": "🏘️🗣️",
    "Politics": "🙋‍♂️🗣️",
    "Solidarity": "🧑‍🤝‍🧑🗣️",
    "NghLife": "🏙️🗣️",
    "Parks": "🌳🗣️",
    "Shopping": "🔧🗣️",
    "Services": "🏛️🗣️",
    "Mobility": "🚦🗣️",
    "General": "🏙️💬",
}
FALLBACK_EMOJI = "🗣️"

UNKNOWN = "Non spécifié"
NOISE = {"non", "null", "{}"}
MIN_LENGTH = 3
LABEL_LENGTH = 100


def clean_testimony(raw) -> str:
    """'' when the answer carries nothing worth showing."""
    text = to_text(raw)
    if len(text) < MIN_LENGTH or text.casefold() in NOISE:
        return ""
    return text


def short_label(text: str) -> str:
    return text if len(text) <= LABEL_LENGTH else text[:LABEL_LENGTH] + "..."


class TestimonyDatapack(QuestionAggregator):
    """Each testimony is a child node of its subcategory node.

    The quartier view holds every testimony of every cohort, not a weighted
    sample.
    """

    kind = "graph"
    source = "wol"
    ttl_seconds = 3600
    supports_demographics = True

    def __init__(self, ctx: EngineContext):
        super().__init__(ctx, "testimony", "testimony", title="Réseau de témoignages")
        self.emojis = dict(DEFAULT_EMOJIS)
        for q in self.metadata.questions_where(lambda q: q.category == TESTIMONY_CATEGORY):
            if q.subcategory and q.emoji:
                self.emojis[q.subcategory] = q.emoji

    def testimonies(self, answers: Iterable[RespondentAnswer]) -> Dict[str, List[GraphNode]]:
        """subcategory -> testimony nodes"""
        groups: Dict[str, List[GraphNode]] = {}
        for a in answers:
            cid = normalize_cohort_id(a.cohort_id)
            for field, sub in TESTIMONY_FIELDS.items():
                text = clean_testimony(a.get(field))
                if not text:
                    continue
                groups.setdefault(sub, []).append(GraphNode(
                    id=f"testimony_{cid}_{a.respondent_id}_{field}",
                    name=short_label(text),
                    value=1.0,
                    extra={
                        "type": "child",
                        "group": sub,
                        "testimony": text,
                        "suId": cid,
                        "respondentGender": to_text(a.get("Gender")) or UNKNOWN,
                        "respondentAge": to_text(a.get("Age Category")) or UNKNOWN,
                        "respondentCsp": to_text(a.get("Professional Category")) or UNKNOWN,
                    },
                ))
        return groups

    def network(self, groups: Dict[str, List[GraphNode]]) -> Graph:
        parents, children = [], {}
        for sub, kids in groups.items():
            pid = f"parent_{sub}"
            parents.append(GraphNode(
                id=pid, name=SUBCATEGORY_LABELS.get(sub, sub), value=float(len(kids)),
                emoji=self.emojis.get(sub, FALLBACK_EMOJI),
                extra={"type": "parent", "group": sub, "subcategory": sub},
            ))
            children[pid] = kids
        graph = order_nodes(parents, children)
        graph.meta["totalTestimonies"] = sum(len(k) for k in groups.values())
        graph.meta["subcategories"] = sorted(groups)
        return graph

    def compute(self, cohort_id: int, demographic: Optional[DemographicFilter] = None) -> Graph:
        graph = self.network(self.testimonies(self.respondents.answers_for(cohort_id, demographic)))
        graph.cohort_id = cohort_id
        return graph

    def aggregate(self, per_cohort: Dict[int, Graph]) -> Graph:
        groups: Dict[str, List[GraphNode]] = {}
        for cid in sorted(per_cohort):
            for n in per_cohort[cid].nodes:
                if n.extra.get("type") == "child":
                    groups.setdefault(n.extra["group"], []).append(n)
        graph = self.network(groups)
        graph.cohort_id = QUARTIER_ID
        graph.is_aggregate = True
        logger.debug(f"[{self.name}] {graph.meta['totalTestimonies']} testimonies in the quartier")
        return graph
