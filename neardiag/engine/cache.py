import logging
import threading
import time
from typing import Callable, Optional

from ..models import PrecomputedResultSet

logger = logging.getLogger(__name__)


class AggregationCache:
    """Lazily computed result set, memoised until `invalidate()` or TTL expiry.

    At most one computation runs at a time; concurrent callers wait for it and
    then share its result.
    """

    def __init__(self, compute: Callable[[], PrecomputedResultSet], ttl_seconds: Optional[float] = None,
                 name: str = "", clock: Callable[[], float] = time.monotonic):
        self._compute = compute
        self.ttl_seconds = ttl_seconds if ttl_seconds and ttl_seconds > 0 else None
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()
        self._entry = None      # (result set, stored at), swapped as one object
        self.computations = 0

    def _fresh(self, entry) -> bool:
        if entry is None:
            return False
        if self.ttl_seconds is None:
            return True
        return self._clock() - entry[1] < self.ttl_seconds

    def get_or_compute(self) -> PrecomputedResultSet:
        entry = self._entry
        if self._fresh(entry):
            return entry[0]
        with self._lock:
            entry = self._entry
            if self._fresh(entry):
                return entry[0]
            if entry is not None:
                logger.info(f"Cache '{self.name}' expired after {self.ttl_seconds}s, recomputing")
            t0 = time.perf_counter()
            result = self._compute()
            self._entry = (result, self._clock())
            self.computations += 1
            logger.info(f"Cache '{self.name}' computed in {time.perf_counter() - t0:.3f}s")
            return result

    def invalidate(self):
        with self._lock:
            self._entry = None
        logger.info(f"Cache '{self.name}' invalidated")

    @property
    def is_populated(self) -> bool:
        return self._fresh(self._entry)
