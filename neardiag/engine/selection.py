import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from ..ingest.mapper import normalize_cohort_id
from ..models import (
    MULTI_COHORT_ID, QUARTIER_ID, WARN_EMPTY_COHORT, WARN_MISSING_DATA, WARN_UNMAPPED_COHORT,
    Cohort, EngineWarning, PrecomputedResultSet, Resolution,
)

logger = logging.getLogger(__name__)


class SelectionPolicy(Enum):
    QUARTIER_ON_MULTISELECT = "quartier_on_multiselect"
    SUM_SELECTED_SUBSET = "sum_selected_subset"


class CohortTranslator:
    """Ordinal (1..N, what the UI shows) <-> global id (what the answers store).

    Both directions are one-to-one; a row that would alias an ordinal or a
    global id already taken is dropped.
    """

    def __init__(self, cohorts: Iterable[Cohort]):
        self._by_ordinal: Dict[int, Cohort] = {}
        self._by_global: Dict[int, Cohort] = {}
        for c in sorted(cohorts, key=lambda c: (c.ordinal, c.global_id)):
            if c.ordinal <= 0 or c.global_id == QUARTIER_ID:
                logger.warning(f"Cohort {c.global_id} (ordinal {c.ordinal}) collides with the quartier, skipped")
                continue
            if c.ordinal in self._by_ordinal:
                logger.warning(f"Ordinal {c.ordinal} already maps to {self._by_ordinal[c.ordinal].global_id}, "
                               f"cohort {c.global_id} skipped")
                continue
            if c.global_id in self._by_global:
                logger.warning(f"Global id {c.global_id} already mapped to ordinal "
                               f"{self._by_global[c.global_id].ordinal}, ordinal {c.ordinal} skipped")
                continue
            self._by_ordinal[c.ordinal] = c
            self._by_global[c.global_id] = c

    def to_global(self, ordinal) -> Optional[int]:
        """Ordinal -> global id. A value that is not an ordinal but is a known global id passes through."""
        n = normalize_cohort_id(ordinal)
        if n is None:
            return None
        if n in self._by_ordinal:
            return self._by_ordinal[n].global_id
        if n in self._by_global:
            return n
        return None

    def to_ordinal(self, global_id) -> Optional[int]:
        c = self._by_global.get(normalize_cohort_id(global_id))
        return c.ordinal if c else None

    def cohort(self, global_id) -> Optional[Cohort]:
        return self._by_global.get(normalize_cohort_id(global_id))

    def cohorts(self) -> List[Cohort]:
        return [self._by_ordinal[o] for o in sorted(self._by_ordinal)]

    def ordinals(self) -> List[int]:
        return sorted(self._by_ordinal)

    def global_ids(self) -> List[int]:
        return [c.global_id for c in self.cohorts()]

    def weights(self) -> Dict[int, float]:
        return {c.global_id: c.weight for c in self.cohorts()}

    def __len__(self):
        return len(self._by_ordinal)


class SelectionResolver:
    """Picks which cached result answers a cohort selection."""

    def __init__(self, translator: CohortTranslator,
                 policy: SelectionPolicy = SelectionPolicy.QUARTIER_ON_MULTISELECT,
                 combine: Optional[Callable[[List[Any]], Any]] = None):
        self.translator = translator
        self.policy = policy
        self.combine = combine
        if policy is SelectionPolicy.SUM_SELECTED_SUBSET and combine is None:
            raise ValueError("SUM_SELECTED_SUBSET needs a combine function")

    def _quartier(self, results: PrecomputedResultSet, warnings=None) -> Resolution:
        return Resolution(result=results.quartier, cohort_id_used=QUARTIER_ID,
                          is_aggregate=True, warnings=list(warnings or []))

    def _translate(self, selected: Sequence, warnings: List[EngineWarning]) -> List[int]:
        ids = []
        for s in selected:
            gid = self.translator.to_global(s)
            if gid is None:
                msg = f"Cohort '{s}' has no translation entry"
                logger.warning(msg)
                warnings.append(EngineWarning(WARN_UNMAPPED_COHORT, msg))
                continue
            if gid not in ids:
                ids.append(gid)
        return ids

    def resolve(self, selected: Optional[Sequence], results: PrecomputedResultSet) -> Resolution:
        selected = list(selected or [])
        if not selected:
            return self._quartier(results)
        if len(selected) > 1 and self.policy is SelectionPolicy.QUARTIER_ON_MULTISELECT:
            msg = f"Selection of {len(selected)} cohorts not supported here, serving the quartier (weighted)"
            logger.info(msg)
            return self._quartier(results, [EngineWarning(WARN_MISSING_DATA, msg)])

        warnings: List[EngineWarning] = []
        ids = self._translate(selected, warnings)
        if not ids:
            return self._quartier(results, warnings)

        present = []
        for gid in ids:
            if gid in results.per_cohort:
                present.append(gid)
            else:
                msg = f"Cohort {gid} has no computed result (no respondents)"
                logger.info(msg)
                warnings.append(EngineWarning(WARN_EMPTY_COHORT, msg))
        if not present:
            return self._quartier(results, warnings)

        if len(ids) == 1:
            gid = present[0]
            return Resolution(result=results.per_cohort[gid], cohort_id_used=gid,
                              is_aggregate=False, warnings=warnings)

        combined = self.combine([results.per_cohort[gid] for gid in present])
        return Resolution(result=combined, cohort_id_used=MULTI_COHORT_ID,
                          is_aggregate=True, warnings=warnings)
