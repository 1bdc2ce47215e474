import logging
import math
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..ingest.mapper import to_number
from ..models import WARN_MALFORMED_GRAPH, ChoiceMetadata, EngineWarning, Graph, GraphEdge, GraphNode

logger = logging.getLogger(__name__)

ROOT_MARKER = "Total"


def _norm(name: str) -> str:
    return " ".join(str(name or "").split()).casefold()


def node_sort_key(node: GraphNode) -> Tuple[str, str, str]:
    return (node.name.casefold(), node.name, node.id)


def order_nodes(roots: List[GraphNode], children: Mapping[str, List[GraphNode]]) -> Graph:
    """Roots first (label order), then level by level, each node's children in label order.

    One edge parent -> child per child, valued with the child's value.
    """
    nodes: List[GraphNode] = sorted(roots, key=node_sort_key)
    index: Dict[str, int] = {n.id: i for i, n in enumerate(nodes)}
    links: List[GraphEdge] = []
    i = 0
    while i < len(nodes):
        parent = nodes[i]
        for child in sorted(children.get(parent.id, []), key=node_sort_key):
            if child.id in index:
                continue
            index[child.id] = len(nodes)
            nodes.append(child)
            links.append(GraphEdge(source=index[parent.id], target=index[child.id], value=child.value))
        i += 1
    return Graph(nodes=nodes, links=links)


class HierarchicalGraphBuilder:
    """Flat parent/child node table -> ordered Sankey nodes and index links.

    A top-level row's `parent_name` is the root marker; any other row names its
    parent by the parent's display label (or key), at any depth. Leaves carry
    their own value, every inner node the sum of its surviving children, so a
    node's value always equals its outflow.
    """

    def __init__(self, root_marker: str = ROOT_MARKER):
        self.root_marker = _norm(root_marker)

    def _rows(self, node_metadata: Iterable[ChoiceMetadata], warnings: List[EngineWarning]) -> Dict[str, ChoiceMetadata]:
        kept: Dict[str, ChoiceMetadata] = {}
        # input order must not leak into the result
        for row in sorted(node_metadata, key=lambda r: (r.choice_key, r.display_name, r.parent_name)):
            if row.choice_key in kept:
                logger.warning(f"Graph node '{row.choice_key}' declared twice, keeping one row")
                continue
            if not _norm(row.parent_name):
                log = logger.warning if row.is_node else logger.debug
                log(f"Graph node '{row.choice_key}' has no parent reference, skipped")
                continue
            if not row.display_name:
                msg = f"Graph node '{row.choice_key}' has no display name, dropped"
                logger.warning(msg)
                warnings.append(EngineWarning(WARN_MALFORMED_GRAPH, msg))
                continue
            kept[row.choice_key] = row
        return kept

    def _parents(self, rows: Dict[str, ChoiceMetadata], warnings: List[EngineWarning]) -> Dict[str, Optional[str]]:
        """node id -> parent id (None for top-level nodes)."""
        # labels first, first in label order wins on duplicates; keys as a last resort
        by_name: Dict[str, str] = {}
        for row in sorted(rows.values(), key=lambda r: (r.display_name.casefold(), r.display_name, r.choice_key)):
            for name in (row.label_short, row.label_long):
                if name:
                    by_name.setdefault(_norm(name), row.choice_key)
        for key in sorted(rows):
            by_name.setdefault(_norm(key), key)

        parent_of: Dict[str, Optional[str]] = {}
        for key, row in rows.items():
            ref = _norm(row.parent_name)
            if ref == self.root_marker:
                parent_of[key] = None
                continue
            pid = by_name.get(ref)
            if pid is None or pid == key:
                msg = f"Parent '{row.parent_name}' of graph node '{key}' not found, node dropped"
                logger.warning(msg)
                warnings.append(EngineWarning(WARN_MALFORMED_GRAPH, msg))
                continue
            parent_of[key] = pid

        # a node is kept only if its chain of parents reaches the root
        reachable: Dict[str, Optional[str]] = {}
        for key in sorted(parent_of):
            seen = {key}
            p = parent_of[key]
            while p is not None:
                if p in seen or p not in parent_of:
                    msg = f"Graph node '{key}' is not attached to the root (cycle or dropped ancestor), dropped"
                    logger.warning(msg)
                    warnings.append(EngineWarning(WARN_MALFORMED_GRAPH, msg))
                    break
                seen.add(p)
                p = parent_of[p]
            else:
                reachable[key] = parent_of[key]
        return reachable

    def build(self, per_choice_values: Mapping[str, float], node_metadata: Iterable[ChoiceMetadata]) -> Graph:
        warnings: List[EngineWarning] = []
        rows = self._rows(node_metadata, warnings)
        parent_of = self._parents(rows, warnings)

        kids: Dict[str, List[str]] = {}
        for key in sorted(parent_of):
            if parent_of[key] is not None:
                kids.setdefault(parent_of[key], []).append(key)

        totals: Dict[str, float] = {}

        def total(key: str) -> float:
            if key not in totals:
                if key in kids:
                    totals[key] = sum(v for v in (total(c) for c in kids[key]) if v > 0)
                else:
                    v = to_number(per_choice_values.get(key))
                    totals[key] = float(v) if v is not None and math.isfinite(v) and v > 0 else 0.0
            return totals[key]

        nodes: Dict[str, GraphNode] = {}
        for key in parent_of:
            value = total(key)
            if value > 0:
                row = rows[key]
                nodes[key] = GraphNode(id=key, name=row.display_name, value=value, emoji=row.emoji)

        children: Dict[str, List[GraphNode]] = {}
        for pid, keys in kids.items():
            alive = [nodes[k] for k in keys if k in nodes]
            if pid in nodes and alive:
                children[pid] = alive
        roots = [nodes[k] for k, p in parent_of.items() if p is None and k in children]

        graph = order_nodes(roots, children)
        graph.warnings = warnings
        return graph


def max_node_value(graph: Graph) -> float:
    return max((n.value for n in graph.nodes), default=0.0)


def parent_of(graph: Graph) -> Dict[str, str]:
    """child id -> parent id, read from the links."""
    return {graph.nodes[e.target].id: graph.nodes[e.source].id for e in graph.links}
