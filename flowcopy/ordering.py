#!/usr/bin/env python3
"""
Ordering Engine

Derives the linear reading order of a flow from its sequential edges.

Algorithm: Kahn's topological sort. Whenever several nodes are eligible at
once, the one that comes first by (x, y, id) wins, so the same graph always
yields the same order regardless of input order.

Cycles never raise. Nodes that can't be reached because they sit on (or
behind) a cycle are appended after the acyclic prefix, sorted by the same
(x, y, id) rule, and ``has_cycle`` is set.
"""

import heapq
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from flowcopy.graph_model import Edge, Node, index_nodes, node_sort_key

logger = logging.getLogger(__name__)


@dataclass
class OrderingResult:
    """Reading order of a flow."""
    ordered_ids: List[str] = field(default_factory=list)
    sequence_by_node_id: Dict[str, int] = field(default_factory=dict)
    has_cycle: bool = False

    def to_dict(self) -> Dict:
        return {
            'ordered_ids': list(self.ordered_ids),
            'sequence_by_node_id': dict(self.sequence_by_node_id),
            'has_cycle': self.has_cycle,
        }


def build_sequential_adjacency(node_by_id: Dict[str, Node],
                               edges: Sequence[Edge]) -> Dict[str, set]:
    """Adjacency sets over sequential edges between known nodes.

    A repeated (source, target) pair is stored once.
    """
    adjacency = {node_id: set() for node_id in node_by_id}

    for edge in edges:
        if not edge.is_sequential:
            continue
        if edge.source not in node_by_id or edge.target not in node_by_id:
            continue
        adjacency[edge.source].add(edge.target)

    return adjacency


def compute_ordering(nodes: Sequence[Node], edges: Sequence[Edge]) -> OrderingResult:
    """Compute the reading order of a flow.

    Args:
        nodes: Flow nodes (ids expected unique; the first of a repeated id wins)
        edges: All flow edges; only sequential ones are considered

    Returns:
        OrderingResult with every node exactly once and 1-based sequence numbers

    Example:
        A(0,0), B(100,0), edge A->B  =>  ['A', 'B'], {'A': 1, 'B': 2}
    """
    node_by_id = index_nodes(nodes)
    adjacency = build_sequential_adjacency(node_by_id, edges)

    indegree = {node_id: 0 for node_id in node_by_id}
    for targets in adjacency.values():
        for target in targets:
            indegree[target] += 1

    available = [
        (node_sort_key(node), node.id)
        for node in node_by_id.values()
        if indegree[node.id] == 0
    ]
    heapq.heapify(available)

    ordered_ids = []
    while available:
        _, current_id = heapq.heappop(available)
        ordered_ids.append(current_id)

        successors = sorted((node_by_id[target] for target in adjacency[current_id]),
                            key=node_sort_key)
        for successor in successors:
            indegree[successor.id] -= 1
            if indegree[successor.id] == 0:
                heapq.heappush(available, (node_sort_key(successor), successor.id))

    has_cycle = len(ordered_ids) != len(node_by_id)

    if has_cycle:
        emitted = set(ordered_ids)
        unresolved = sorted((node for node in node_by_id.values() if node.id not in emitted),
                            key=node_sort_key)
        logger.debug(f"Sequential cycle detected; {len(unresolved)} node(s) appended in position order")
        ordered_ids.extend(node.id for node in unresolved)

    sequence_by_node_id = {node_id: index + 1 for index, node_id in enumerate(ordered_ids)}

    return OrderingResult(
        ordered_ids=ordered_ids,
        sequence_by_node_id=sequence_by_node_id,
        has_cycle=has_cycle,
    )
