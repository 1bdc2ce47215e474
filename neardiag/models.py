from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

QUARTIER_ID = 0          # cohort 0 = the whole neighbourhood
MULTI_COHORT_ID = -1     # ad-hoc combination of several cohorts

# warning types carried on results (soft failures, never raised)
WARN_UNMAPPED_COHORT = "unmapped_cohort"
WARN_EMPTY_COHORT = "empty_cohort"
WARN_MISSING_METADATA = "missing_metadata"
WARN_MALFORMED_GRAPH = "malformed_graph_metadata"
WARN_MISSING_DATA = "missing_data"


@dataclass(frozen=True)
class EngineWarning:
    type: str
    message: str

    def to_dict(self):
        return {"type": self.type, "message": self.message}


@dataclass(frozen=True)
class RespondentAnswer:
    """One survey row. `cohort_id` is kept as found in the source (int or text)."""
    respondent_id: Any
    cohort_id: Any
    values: Mapping[str, Any] = field(default_factory=dict)

    def get(self, key: str, default=None):
        return self.values.get(key, default)


@dataclass(frozen=True)
class Cohort:
    global_id: int
    ordinal: int
    weight: float = 0.0       # population share, percent
    name: str = ""
    color: str = ""
    icon: str = ""
    population: Optional[int] = None

    def to_dict(self):
        return {
            "id": self.global_id,
            "su": self.ordinal,
            "popPercentage": self.weight,
            "name": self.name,
            "color": self.color,
            "icon": self.icon,
            "population": self.population,
        }


@dataclass(frozen=True)
class QuestionMetadata:
    key: str
    short: str = ""
    long: str = ""
    origin: str = ""
    emoji: str = ""
    category: str = ""
    subcategory: str = ""

    @property
    def label(self) -> str:
        return self.short or self.long or self.key

    def to_dict(self):
        return {
            "key": self.key,
            "label": self.label,
            "short": self.short or self.label,
            "long": self.long or self.label,
            "emoji": self.emoji,
            "category": self.category,
            "subcategory": self.subcategory,
        }


@dataclass(frozen=True)
class ChoiceMetadata:
    question_key: str
    choice_key: str
    label_short: str = ""
    label_long: str = ""
    label_origin: str = ""
    emoji: str = ""
    type_data: str = ""
    category: str = ""
    subcategory: str = ""
    # variant tags
    family: str = ""           # barrier family
    is_barrier: bool = False
    is_will: bool = False
    is_node: bool = False      # carbon graph node
    parent_name: str = ""      # carbon graph parent, by display name

    @property
    def label(self) -> str:
        return self.label_short or self.label_long or self.choice_key

    @property
    def display_name(self) -> str:
        """Name used by graph children to reference this row."""
        return self.label_short or self.label_long


@dataclass
class ChoiceCount:
    choice_key: str
    label: str
    absolute_count: float
    percentage: float
    label_long: str = ""
    emoji: str = ""
    weighted_count: Optional[float] = None
    value: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self):
        d = {
            "choiceKey": self.choice_key,
            "label": self.label,
            "labelLong": self.label_long or self.label,
            "emoji": self.emoji,
            "absoluteCount": self.absolute_count,
            "percentage": self.percentage,
        }
        if self.weighted_count is not None:
            d["weightedCount"] = self.weighted_count
        if self.value is not None:
            d["value"] = self.value
        d.update(self.extra)
        return d


@dataclass
class Distribution:
    question_key: str
    cohort_id: int
    question: QuestionMetadata
    choices: List[ChoiceCount] = field(default_factory=list)
    total_responses: int = 0
    is_aggregate: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)
    warnings: List[EngineWarning] = field(default_factory=list)

    @property
    def total(self) -> float:
        return sum(c.absolute_count for c in self.choices)

    def choice(self, choice_key: str) -> Optional[ChoiceCount]:
        for c in self.choices:
            if c.choice_key == choice_key:
                return c
        return None

    def to_dict(self):
        d = {
            "questionKey": self.question_key,
            "question": self.question.to_dict(),
            "suId": self.cohort_id,
            "totalResponses": self.total_responses,
            "choices": [c.to_dict() for c in self.choices],
        }
        d.update(self.extra)
        return d


@dataclass(frozen=True)
class GraphNode:
    id: str
    name: str
    value: float
    emoji: str = ""
    # free-form tags, e.g. the respondent profile of a testimony
    extra: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self):
        d = {"id": self.id, "name": self.name, "emoji": self.emoji, "value": self.value}
        d.update(self.extra)
        return d


@dataclass(frozen=True)
class GraphEdge:
    source: int
    target: int
    value: float

    def to_dict(self):
        return {"source": self.source, "target": self.target, "value": self.value}


@dataclass
class Graph:
    nodes: List[GraphNode] = field(default_factory=list)
    links: List[GraphEdge] = field(default_factory=list)
    cohort_id: int = QUARTIER_ID
    is_aggregate: bool = False
    meta: Dict[str, Any] = field(default_factory=dict)
    warnings: List[EngineWarning] = field(default_factory=list)

    def node(self, node_id: str) -> Optional[GraphNode]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def edge_map(self) -> Dict[tuple, float]:
        """(source id, target id) -> value; edges keyed by node identity, not index."""
        return {(self.nodes[e.source].id, self.nodes[e.target].id): e.value for e in self.links}

    def to_dict(self):
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "links": [e.to_dict() for e in self.links],
            "suId": self.cohort_id,
            "meta": dict(self.meta),
        }


@dataclass
class PrecomputedResultSet:
    per_cohort: Dict[int, Any]
    quartier: Any
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    warnings: List[EngineWarning] = field(default_factory=list)


@dataclass
class DistributionBundle:
    """Several distributions served together for the same selection."""
    items: Dict[str, Distribution] = field(default_factory=dict)
    cohort_id: int = QUARTIER_ID
    is_aggregate: bool = False

    def to_dict(self):
        return {
            "suId": self.cohort_id,
            "questions": {name: d.to_dict() for name, d in self.items.items()},
        }


@dataclass
class Resolution:
    """What a selection resolved to: the served result plus how it was picked."""
    result: Any
    cohort_id_used: int
    is_aggregate: bool
    warnings: List[EngineWarning] = field(default_factory=list)

    @property
    def has_warning(self) -> bool:
        return bool(self.warnings)

    def to_dict(self):
        d = self.result.to_dict() if self.result is not None else {}
        d["cohortIdUsed"] = self.cohort_id_used
        d["isAggregate"] = self.is_aggregate
        d["warnings"] = [w.to_dict() for w in self.warnings]
        return d


@dataclass(frozen=True)
class DemographicFilter:
    gender: Optional[str] = None
    age_category: Optional[str] = None

    # answer field holding each demographic
    FIELDS = {"gender": "Gender", "age_category": "Age Category"}

    @property
    def is_empty(self) -> bool:
        return not self.gender and not self.age_category

    def matches(self, answer: RespondentAnswer) -> bool:
        for attr, column in self.FIELDS.items():
            wanted = getattr(self, attr)
            if wanted and str(answer.get(column, "")).strip() != wanted:
                return False
        return True

    def to_dict(self):
        return {"gender": self.gender, "ageCategory": self.age_category}


@dataclass
class SurveyTables:
    """All raw tables the engine consumes, already parsed into records."""
    su_answers: List[RespondentAnswer] = field(default_factory=list)
    way_of_life_answers: List[RespondentAnswer] = field(default_factory=list)
    carbon_answers: List[RespondentAnswer] = field(default_factory=list)
    mobility_answers: List[RespondentAnswer] = field(default_factory=list)
    su_questions: List[QuestionMetadata] = field(default_factory=list)
    su_choices: List[ChoiceMetadata] = field(default_factory=list)
    emdv_questions: List[QuestionMetadata] = field(default_factory=list)
    emdv_choices: List[ChoiceMetadata] = field(default_factory=list)
    carbon_nodes: List[ChoiceMetadata] = field(default_factory=list)
    cohorts: List[Cohort] = field(default_factory=list)
    quartier_name: str = "Quartier"
    quartier_color: str = ""
    quartier_population: Optional[int] = None
