from .aggregation import WeightedAggregator
from .cache import AggregationCache
from .context import EngineContext
from .distribution import DistributionCalculator
from .graph import HierarchicalGraphBuilder
from .metadata import MetadataIndex
from .respondents import RespondentFilter
from .selection import CohortTranslator, SelectionPolicy, SelectionResolver

__all__ = [
    "AggregationCache",
    "CohortTranslator",
    "DistributionCalculator",
    "EngineContext",
    "HierarchicalGraphBuilder",
    "MetadataIndex",
    "RespondentFilter",
    "SelectionPolicy",
    "SelectionResolver",
    "WeightedAggregator",
]
