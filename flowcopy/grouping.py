#!/usr/bin/env python3
"""
Grouping Engine

Collects nodes tied together by parallel edges into groups. Parallel edges
are undirected for this purpose: A-B and B-C put A, B and C in one group.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from flowcopy.graph_model import Edge, Node, index_nodes, node_sort_key

GROUP_ID_PREFIX = 'PG-'


@dataclass
class ParallelGroup:
    """Nodes that share one step in the reading order."""
    id: str
    members: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {'id': self.id, 'members': list(self.members)}


@dataclass
class GroupingResult:
    group_by_node_id: Dict[str, str] = field(default_factory=dict)
    components: List[ParallelGroup] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'group_by_node_id': dict(self.group_by_node_id),
            'components': [component.to_dict() for component in self.components],
        }


def make_group_id(member_ids: Sequence[str]) -> str:
    """Group id from member ids, e.g. ['B', 'A'] -> 'PG-A|B'."""
    return GROUP_ID_PREFIX + '|'.join(sorted(member_ids))


def build_parallel_adjacency(node_by_id: Dict[str, Node],
                             edges: Sequence[Edge]) -> Dict[str, set]:
    adjacency = {node_id: set() for node_id in node_by_id}

    for edge in edges:
        if not edge.is_parallel:
            continue
        if edge.source not in node_by_id or edge.target not in node_by_id:
            continue
        # A self-loop doesn't tie a node to anything
        if edge.source == edge.target:
            continue
        adjacency[edge.source].add(edge.target)
        adjacency[edge.target].add(edge.source)

    return adjacency


def compute_parallel_groups(nodes: Sequence[Node], edges: Sequence[Edge]) -> GroupingResult:
    """Find connected components of the parallel-edge graph.

    Args:
        nodes: Flow nodes
        edges: All flow edges; only parallel ones are considered

    Returns:
        GroupingResult; nodes without parallel neighbors are absent from
        ``group_by_node_id``
    """
    node_by_id = index_nodes(nodes)
    adjacency = build_parallel_adjacency(node_by_id, edges)

    visited = set()
    components = []

    for node in sorted(node_by_id.values(), key=node_sort_key):
        if node.id in visited or not adjacency[node.id]:
            continue

        members = []
        stack = [node.id]
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            members.append(current)
            # Reverse so the lexicographically smallest neighbor is popped first
            for neighbor in sorted(adjacency[current], reverse=True):
                if neighbor not in visited:
                    stack.append(neighbor)

        members.sort()
        components.append(ParallelGroup(id=make_group_id(members), members=members))

    components.sort(key=lambda component: component.members[0])

    group_by_node_id = {}
    for component in components:
        for member in component.members:
            group_by_node_id[member] = component.id

    return GroupingResult(group_by_node_id=group_by_node_id, components=components)
