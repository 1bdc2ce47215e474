import logging
from typing import Dict, List, Mapping, Optional

from ..models import (
    MULTI_COHORT_ID, QUARTIER_ID, ChoiceCount, Distribution, Graph, GraphEdge, GraphNode, QuestionMetadata,
)
from .distribution import fill_percentages, percentage, round_half_up
from .graph import order_nodes, parent_of

logger = logging.getLogger(__name__)


def _contributing(per_cohort: Mapping[int, Distribution], weights: Mapping[int, float]):
    """(cohort id, distribution, weight) for cohorts with weight > 0 and respondents, id order."""
    out = []
    for cid in sorted(per_cohort):
        d = per_cohort[cid]
        w = float(weights.get(cid, 0) or 0)
        if w > 0 and d.total_responses > 0:
            out.append((cid, d, w))
    return out


def _template(dists: List[Distribution]) -> Dict[str, ChoiceCount]:
    """First occurrence of every choice key across the distributions, in order."""
    seen: Dict[str, ChoiceCount] = {}
    for d in dists:
        for c in d.choices:
            if c.choice_key not in seen:
                seen[c.choice_key] = c
    return seen


def _blank_like(c: ChoiceCount, count, **kw) -> ChoiceCount:
    return ChoiceCount(
        choice_key=c.choice_key,
        label=c.label,
        label_long=c.label_long,
        emoji=c.emoji,
        absolute_count=count,
        percentage=0.0,
        extra=dict(c.extra),
        **kw,
    )


class WeightedAggregator:
    """Per-cohort results -> neighbourhood (quartier) result, by population share."""

    def aggregate(self, per_cohort: Mapping[int, Distribution], weights: Mapping[int, float],
                  question: Optional[QuestionMetadata] = None, question_key: str = "") -> Distribution:
        """Weighted count per choice = sum(count * weight / 100), rounded once at the end."""
        dists = [per_cohort[cid] for cid in sorted(per_cohort)]
        if question is None and dists:
            question = dists[0].question
        question = question or QuestionMetadata(key=question_key)
        out = Distribution(
            question_key=question_key or question.key,
            cohort_id=QUARTIER_ID,
            question=question,
            is_aggregate=True,
        )
        template = _template(dists)
        contributing = _contributing(per_cohort, weights)

        weighted_total = sum(d.total_responses * w / 100 for _, d, w in contributing)
        for key, proto in template.items():
            weighted = 0.0
            max_possible = 0.0
            for _, d, w in contributing:
                c = d.choice(key)
                if c is None:
                    continue
                weighted += c.absolute_count * w / 100
                max_possible += float(c.extra.get("maxPossible", 0) or 0) * w / 100
            cc = _blank_like(proto, round_half_up(weighted), weighted_count=weighted)
            if "maxPossible" in proto.extra:
                cc.extra["maxPossible"] = round_half_up(max_possible)
                cc.extra["respondentShare"] = percentage(weighted, max_possible)
            out.choices.append(cc)

        fill_percentages(out.choices)
        out.total_responses = round_half_up(weighted_total)
        return out

    def aggregate_means(self, per_cohort: Mapping[int, Distribution], weights: Mapping[int, float],
                        question: Optional[QuestionMetadata] = None, question_key: str = "") -> Distribution:
        """Continuous metrics: weighted mean of each field over the cohorts that have a value."""
        dists = [per_cohort[cid] for cid in sorted(per_cohort)]
        if question is None and dists:
            question = dists[0].question
        question = question or QuestionMetadata(key=question_key)
        out = Distribution(
            question_key=question_key or question.key,
            cohort_id=QUARTIER_ID,
            question=question,
            is_aggregate=True,
        )
        contributing = _contributing(per_cohort, weights)
        for key, proto in _template(dists).items():
            num = den = 0.0
            n = 0
            for _, d, w in contributing:
                c = d.choice(key)
                if c is None or not c.value or c.value <= 0:
                    continue
                num += c.value * w
                den += w
                n += int(c.absolute_count)
            out.choices.append(_blank_like(proto, n, value=num / den if den > 0 else 0.0))
        fill_percentages(out.choices, use_value=True)
        out.total_responses = sum(d.total_responses for _, d, _w in contributing)
        return out

    def sum_subset(self, selected: List[Distribution], question: Optional[QuestionMetadata] = None) -> Distribution:
        """Unweighted sum of the selected cohorts' counts, percentages recomputed."""
        question = question or (selected[0].question if selected else QuestionMetadata(key=""))
        out = Distribution(
            question_key=question.key,
            cohort_id=MULTI_COHORT_ID,
            question=question,
            is_aggregate=True,
            extra={"cohortIds": [d.cohort_id for d in selected]},
        )
        for key, proto in _template(selected).items():
            total = sum(d.choice(key).absolute_count for d in selected if d.choice(key) is not None)
            cc = _blank_like(proto, total)
            if "maxPossible" in proto.extra:
                mp = sum(int(d.choice(key).extra.get("maxPossible", 0)) for d in selected if d.choice(key) is not None)
                cc.extra["maxPossible"] = mp
                cc.extra["respondentShare"] = percentage(total, mp)
            out.choices.append(cc)
        fill_percentages(out.choices)
        out.total_responses = sum(d.total_responses for d in selected)
        return out

    def aggregate_graphs(self, per_cohort: Mapping[int, Graph], weights: Mapping[int, float]) -> Graph:
        """Merge cohort graphs by node id.

        Node value = population-weighted mean over the cohorts holding the node.
        Edge value = plain mean over the cohorts holding the edge.
        """
        contributing = [(cid, per_cohort[cid], float(weights.get(cid, 0) or 0)) for cid in sorted(per_cohort)]
        contributing = [(cid, g, w) for cid, g, w in contributing if w > 0 and g.nodes]

        proto: Dict[str, GraphNode] = {}
        num: Dict[str, float] = {}
        den: Dict[str, float] = {}
        edge_sum: Dict[tuple, float] = {}
        edge_n: Dict[tuple, int] = {}
        parents: Dict[str, str] = {}
        for _, g, w in contributing:
            for n in g.nodes:
                proto.setdefault(n.id, n)
                num[n.id] = num.get(n.id, 0.0) + n.value * w
                den[n.id] = den.get(n.id, 0.0) + w
            for pair, v in g.edge_map().items():
                edge_sum[pair] = edge_sum.get(pair, 0.0) + v
                edge_n[pair] = edge_n.get(pair, 0) + 1
            for child, parent in parent_of(g).items():
                if parents.setdefault(child, parent) != parent:
                    logger.warning(f"Graph node '{child}' has different parents across cohorts, keeping '{parents[child]}'")

        merged = {nid: GraphNode(id=nid, name=p.name, emoji=p.emoji, value=num[nid] / den[nid], extra=p.extra)
                  for nid, p in proto.items() if den.get(nid, 0) > 0}

        children: Dict[str, List[GraphNode]] = {}
        for child, parent in parents.items():
            if child in merged and parent in merged and (parent, child) in edge_sum:
                children.setdefault(parent, []).append(merged[child])
        attached = {c.id for nodes in children.values() for c in nodes}
        top = [merged[pid] for pid in children if pid not in attached]
        graph = order_nodes(top, children)

        # edges carry their own mean, not the child's merged value
        links = []
        for e in graph.links:
            pair = (graph.nodes[e.source].id, graph.nodes[e.target].id)
            links.append(GraphEdge(source=e.source, target=e.target, value=edge_sum[pair] / edge_n[pair]))
        graph.links = links
        graph.cohort_id = QUARTIER_ID
        graph.is_aggregate = True
        return graph
