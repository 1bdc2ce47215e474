import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from ..ingest.mapper import normalize_cohort_id
from ..models import DemographicFilter, RespondentAnswer

logger = logging.getLogger(__name__)


class RespondentFilter:
    """Answers grouped by cohort global id.

    Source tables mix 478 and "478" for the same cohort, so ids are
    normalised on both sides before matching.
    """

    def __init__(self, answers: Iterable[RespondentAnswer]):
        self._by_cohort: Dict[int, List[RespondentAnswer]] = defaultdict(list)
        skipped = 0
        for a in answers:
            cid = normalize_cohort_id(a.cohort_id)
            if cid is None:
                skipped += 1
                continue
            self._by_cohort[cid].append(a)
        if skipped:
            logger.warning(f"{skipped} answers without a usable 'Su ID' were ignored")

    def answers_for(self, cohort_id, demographic: Optional[DemographicFilter] = None) -> List[RespondentAnswer]:
        cid = normalize_cohort_id(cohort_id)
        if cid is None:
            return []
        rows = self._by_cohort.get(cid, [])
        if demographic is not None and not demographic.is_empty:
            rows = [a for a in rows if demographic.matches(a)]
        return list(rows)

    def count(self, cohort_id, demographic: Optional[DemographicFilter] = None) -> int:
        return len(self.answers_for(cohort_id, demographic))

    def cohort_ids(self) -> List[int]:
        return sorted(self._by_cohort)
