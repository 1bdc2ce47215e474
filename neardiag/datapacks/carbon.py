"""Carbon footprint: mean emissions per category, and the category -> sub-category Sankey."""
import logging
from typing import Dict, List, Optional

from ..engine.context import EngineContext
from ..engine.graph import ROOT_MARKER, max_node_value
from ..models import (
    QUARTIER_ID, WARN_MISSING_DATA, ChoiceMetadata, DemographicFilter, Distribution, EngineWarning, Graph,
    QuestionMetadata,
)
from .base import QuestionAggregator

logger = logging.getLogger(__name__)

TOTAL_KEY = "Global Note"


def carbon_nodes(ctx: EngineContext) -> List[ChoiceMetadata]:
    return ctx.metadata["carbon"].choices_where(lambda c: c.is_node)


def _is_top_level(c: ChoiceMetadata) -> bool:
    return c.parent_name.strip().casefold() == ROOT_MARKER.casefold()


class CarbonCategoriesDatapack(QuestionAggregator):
    """Mean footprint of each top-level category; quartier = population-weighted mean."""

    source = "carbon"

    def __init__(self, ctx: EngineContext):
        super().__init__(ctx, "carbon_categories", "carbon_categories", title="Empreinte carbone par catégorie")
        self.fields = [c for c in carbon_nodes(ctx) if _is_top_level(c) and c.choice_key != TOTAL_KEY]
        self.question = QuestionMetadata(key=self.question_key, short=self.title)

    def compute(self, cohort_id: int, demographic: Optional[DemographicFilter] = None) -> Distribution:
        dist = self.calculator.compute_means(cohort_id, self.question_key, self.fields, demographic)
        dist.question = self.question
        return dist

    def aggregate(self, per_cohort: Dict[int, Distribution]) -> Distribution:
        return self.ctx.aggregator.aggregate_means(per_cohort, self.ctx.weights(), question=self.question)

    def finish(self, result: Distribution) -> Distribution:
        result.extra["totalValue"] = sum(c.value or 0.0 for c in result.choices)
        return result


class CarbonSankeyDatapack(QuestionAggregator):
    """Sankey of mean footprint: categories (children of 'Total') -> sub-categories."""

    kind = "graph"
    source = "carbon"
    ttl_seconds = 1800

    def __init__(self, ctx: EngineContext):
        super().__init__(ctx, "carbon_sankey", "carbon_sankey", title="Empreinte carbone")
        # the overall score is a headline figure, not part of the hierarchy
        self.nodes = [n for n in carbon_nodes(ctx) if n.choice_key != TOTAL_KEY]

    def compute(self, cohort_id: int, demographic: Optional[DemographicFilter] = None) -> Graph:
        keys = [n.choice_key for n in self.nodes] + [TOTAL_KEY]
        values = self.calculator.mean_values(cohort_id, keys, demographic)
        graph = self.ctx.graph_builder.build(values, self.nodes)
        graph.cohort_id = cohort_id
        graph.meta["totalValue"] = values.get(TOTAL_KEY, 0.0)
        if not graph.nodes:
            msg = f"No carbon footprint values for cohort {cohort_id}"
            logger.warning(msg)
            graph.warnings.append(EngineWarning(WARN_MISSING_DATA, msg))
        return graph

    def aggregate(self, per_cohort: Dict[int, Graph]) -> Graph:
        weights = self.ctx.weights()
        graph = self.ctx.aggregator.aggregate_graphs(per_cohort, weights)
        num = den = 0.0
        for cid, g in per_cohort.items():
            w = float(weights.get(cid, 0) or 0)
            total = g.meta.get("totalValue", 0.0)
            if w > 0 and total > 0:
                num += total * w
                den += w
        graph.meta["totalValue"] = num / den if den > 0 else 0.0
        graph.cohort_id = QUARTIER_ID
        return graph

    def finish(self, result: Graph) -> Graph:
        result.meta["maxNodeValue"] = max_node_value(result)
        return result
