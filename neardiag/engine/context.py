import logging
from typing import Optional

from ..models import SurveyTables
from .aggregation import WeightedAggregator
from .distribution import DistributionCalculator
from .graph import HierarchicalGraphBuilder
from .metadata import MetadataIndex
from .respondents import RespondentFilter
from .selection import CohortTranslator

logger = logging.getLogger(__name__)

# answer source -> SurveyTables attribute
SOURCES = {
    "su": "su_answers",
    "wol": "way_of_life_answers",
    "carbon": "carbon_answers",
    "mobility": "mobility_answers",
}


class EngineContext:
    """Everything the datapacks share, built once from the loaded tables."""

    def __init__(self, tables: SurveyTables, default_ttl: Optional[float] = None):
        self.tables = tables
        self.default_ttl = default_ttl
        self.translator = CohortTranslator(tables.cohorts)
        self.aggregator = WeightedAggregator()
        self.graph_builder = HierarchicalGraphBuilder()

        self.metadata = {
            "su": MetadataIndex(tables.su_questions, tables.su_choices),
            "wol": MetadataIndex(tables.emdv_questions, tables.emdv_choices),
            "carbon": MetadataIndex((), tables.carbon_nodes),
            "mobility": MetadataIndex(),
        }
        self.respondents = {src: RespondentFilter(getattr(tables, attr)) for src, attr in SOURCES.items()}
        self.calculators = {
            src: DistributionCalculator(self.metadata[src], self.respondents[src]) for src in SOURCES
        }

        unknown = [cid for src in SOURCES for cid in self.respondents[src].cohort_ids()
                   if self.translator.cohort(cid) is None]
        if unknown:
            logger.warning(f"Answers reference cohorts missing from the cohort table: {sorted(set(unknown))}")
        logger.info(f"Engine ready: {len(self.translator)} cohorts, "
                    f"{len(tables.su_answers)} SU answers, {len(tables.way_of_life_answers)} way-of-life answers")

    def weights(self):
        return self.translator.weights()
