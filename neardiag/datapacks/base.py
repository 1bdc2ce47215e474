import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..engine.cache import AggregationCache
from ..engine.context import EngineContext
from ..engine.selection import SelectionPolicy, SelectionResolver
from ..models import DemographicFilter, Distribution, EngineWarning, PrecomputedResultSet, Resolution

logger = logging.getLogger(__name__)


def _merge_warnings(*groups: List[EngineWarning]) -> List[EngineWarning]:
    out: List[EngineWarning] = []
    for group in groups:
        for w in group:
            if w not in out:
                out.append(w)
    return out


class QuestionAggregator(ABC):
    """One question (or metric) served for a single cohort, a cohort subset or the quartier.

    Subclasses say how one cohort is computed (`compute`) and how cohort results
    combine (`aggregate`, `combine`); caching and selection live here.
    """

    kind = "distribution"
    source = "su"
    policy = SelectionPolicy.QUARTIER_ON_MULTISELECT
    ttl_seconds: Optional[float] = None
    supports_demographics = False

    def __init__(self, context: EngineContext, name: str, question_key: str = "", title: str = ""):
        self.ctx = context
        self.name = name
        self.question_key = question_key
        self.title = title or question_key or name
        combine = self._finished_combine if self.policy is SelectionPolicy.SUM_SELECTED_SUBSET else None
        self.resolver = SelectionResolver(context.translator, self.policy, combine=combine)
        self._caches: Dict[Optional[DemographicFilter], AggregationCache] = {}
        self._caches_lock = threading.Lock()

    # --- per variant ---

    @abstractmethod
    def compute(self, cohort_id: int, demographic: Optional[DemographicFilter] = None) -> Any:
        ...

    def aggregate(self, per_cohort: Dict[int, Any]) -> Any:
        return self.ctx.aggregator.aggregate(per_cohort, self.ctx.weights(), question_key=self.question_key,
                                             question=self.metadata.question_label(self.question_key))

    def combine(self, results: List[Any]) -> Any:
        return self.ctx.aggregator.sum_subset(results, question=self.metadata.question_label(self.question_key))

    def finish(self, result: Any) -> Any:
        """Post-processing applied to every served result (sorting, derived fields)."""
        return result

    # --- shared ---

    @property
    def respondents(self):
        return self.ctx.respondents[self.source]

    @property
    def calculator(self):
        return self.ctx.calculators[self.source]

    @property
    def metadata(self):
        return self.ctx.metadata[self.source]

    @property
    def effective_ttl(self) -> Optional[float]:
        return self.ttl_seconds if self.ttl_seconds is not None else self.ctx.default_ttl

    def _finished_combine(self, results: List[Any]) -> Any:
        return self.finish(self.combine(results))

    def precompute(self, demographic: Optional[DemographicFilter] = None) -> PrecomputedResultSet:
        per_cohort = {}
        warnings: List[EngineWarning] = []
        for gid in self.ctx.translator.global_ids():
            if self.respondents.count(gid, demographic) == 0:
                continue
            result = self.finish(self.compute(gid, demographic))
            warnings = _merge_warnings(warnings, result.warnings)
            per_cohort[gid] = result
        quartier = self.finish(self.aggregate(per_cohort))
        warnings = _merge_warnings(warnings, quartier.warnings)
        logger.info(f"[{self.name}] computed {len(per_cohort)} cohorts + quartier")
        return PrecomputedResultSet(per_cohort=per_cohort, quartier=quartier, warnings=warnings)

    def cache_for(self, demographic: Optional[DemographicFilter] = None) -> AggregationCache:
        key = demographic if demographic is not None and not demographic.is_empty else None
        with self._caches_lock:
            cache = self._caches.get(key)
            if cache is None:
                label = self.name if key is None else f"{self.name}{key.to_dict()}"
                cache = AggregationCache(lambda: self.precompute(key), ttl_seconds=self.effective_ttl, name=label)
                self._caches[key] = cache
            return cache

    def result_set(self, demographic: Optional[DemographicFilter] = None) -> PrecomputedResultSet:
        return self.cache_for(demographic).get_or_compute()

    def resolve(self, selected: Optional[Sequence] = None,
                demographic: Optional[DemographicFilter] = None) -> Resolution:
        if demographic is not None and not demographic.is_empty and not self.supports_demographics:
            raise ValueError(f"{self.name} does not support demographic filters")
        results = self.result_set(demographic)
        res = self.resolver.resolve(selected, results)
        res.warnings = _merge_warnings(results.warnings, res.warnings)
        return res

    def get_distribution(self, selected: Optional[Sequence] = None,
                         demographic: Optional[DemographicFilter] = None) -> Resolution:
        return self.resolve(selected, demographic)

    def get_graph(self, selected: Optional[Sequence] = None,
                  demographic: Optional[DemographicFilter] = None) -> Resolution:
        return self.resolve(selected, demographic)

    def invalidate(self):
        with self._caches_lock:
            caches = list(self._caches.values())
            # filtered result sets are rebuilt on demand
            self._caches = {k: v for k, v in self._caches.items() if k is None}
        for cache in caches:
            cache.invalidate()

    def describe(self) -> dict:
        return {
            "name": self.name,
            "kind": self.kind,
            "questionKey": self.question_key,
            "title": self.title,
            "policy": self.policy.value,
            "ttlSeconds": self.effective_ttl,
            "demographicFilters": self.supports_demographics,
        }


class CategoricalDatapack(QuestionAggregator):
    """Single-choice question counted per cohort."""

    type_data: Optional[str] = None

    def __init__(self, context: EngineContext, name: str, question_key: str, title: str = "", **kw):
        for attr in ("source", "policy", "ttl_seconds", "type_data", "supports_demographics"):
            if attr in kw:
                setattr(self, attr, kw.pop(attr))
        if kw:
            raise TypeError(f"unexpected options: {sorted(kw)}")
        super().__init__(context, name, question_key, title)

    def choices(self):
        return self.metadata.choices_for(self.question_key, self.type_data)

    def compute(self, cohort_id: int, demographic: Optional[DemographicFilter] = None) -> Distribution:
        return self.calculator.compute_for(cohort_id, self.question_key, demographic, choices=self.choices())
