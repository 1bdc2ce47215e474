import logging
from typing import Dict, Iterator, List, Optional

from ..engine.context import EngineContext
from .base import CategoricalDatapack, QuestionAggregator
from .carbon import CarbonCategoriesDatapack, CarbonSankeyDatapack
from .demographics import demographic_datapacks
from .emdv import (
    BarrierDatapack, BarrierFamiliesDatapack, SatisfactionDatapack, WillDatapack,
    barrier_question_keys, satisfaction_questions, will_question_keys,
)
from .mobility import MobilityByZoneDatapack
from .testimony import TestimonyDatapack
from .usages import UsagesBundle, usage_datapacks

logger = logging.getLogger(__name__)


class DatapackRegistry:
    """name -> QuestionAggregator, in registration order."""

    def __init__(self):
        self._items: Dict[str, QuestionAggregator] = {}

    def register(self, dp: QuestionAggregator) -> QuestionAggregator:
        if dp.name in self._items:
            raise ValueError(f"datapack '{dp.name}' already registered")
        self._items[dp.name] = dp
        return dp

    def get(self, name: str) -> QuestionAggregator:
        try:
            return self._items[name]
        except KeyError:
            raise KeyError(f"unknown datapack '{name}'") from None

    def __contains__(self, name) -> bool:
        return name in self._items

    def __iter__(self) -> Iterator[QuestionAggregator]:
        return iter(self._items.values())

    def __len__(self):
        return len(self._items)

    def names(self, prefix: str = "") -> List[str]:
        return [n for n in self._items if n.startswith(prefix)]

    def describe(self, prefix: str = "") -> List[dict]:
        return [self._items[n].describe() for n in self.names(prefix)]

    def invalidate(self, name: Optional[str] = None) -> List[str]:
        targets = [self.get(name)] if name else list(self._items.values())
        for dp in targets:
            dp.invalidate()
        return [dp.name for dp in targets]


def build_registry(ctx: EngineContext) -> DatapackRegistry:
    reg = DatapackRegistry()
    for dp in demographic_datapacks(ctx):
        reg.register(dp)
    usages = usage_datapacks(ctx)
    for dp in usages:
        reg.register(dp)
    reg.register(UsagesBundle(usages))

    wol = ctx.metadata["wol"]
    for qk in will_question_keys(ctx):
        reg.register(WillDatapack(ctx, f"will:{qk}", qk, title=wol.question_label(qk).label))
    for q in satisfaction_questions(ctx):
        reg.register(SatisfactionDatapack(ctx, f"satisfaction:{q.key}", q.key, title=q.label))
    barriers = [BarrierDatapack(ctx, f"barrier:{qk}", qk, title=wol.question_label(qk).label)
                for qk in barrier_question_keys(ctx)]
    for b in barriers:
        reg.register(b)
    reg.register(BarrierFamiliesDatapack(ctx, barriers))
    reg.register(TestimonyDatapack(ctx))

    reg.register(CarbonCategoriesDatapack(ctx))
    reg.register(CarbonSankeyDatapack(ctx))
    reg.register(MobilityByZoneDatapack(ctx))
    logger.info(f"{len(reg)} datapacks registered")
    return reg


__all__ = [
    "CategoricalDatapack",
    "DatapackRegistry",
    "QuestionAggregator",
    "build_registry",
]
