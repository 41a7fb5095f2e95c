#!/usr/bin/env python3
"""
Sequence Projector

Merges the reading order with parallel groups into the sequence numbers an
author sees, and derives the project sequence id: a short token that changes
whenever the sequential structure of the flow changes.

Functions:
- project_sequence(ordering, grouping) -> Dict: Final per-node sequence numbers
- display_order(nodes, final_sequence) -> List: Node ids in display order
- compute_project_sequence_id(ordered_ids, nodes, edges) -> str: FLOW-XXXXXXX
- compute_flow_state(nodes, edges) -> FlowState: All of the above at once
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from flowcopy.graph_model import Edge, Node, index_nodes, node_sort_key
from flowcopy.grouping import GroupingResult, compute_parallel_groups
from flowcopy.identity import hash_to_base36
from flowcopy.ordering import OrderingResult, compute_ordering

SEQUENCE_ID_PREFIX = 'FLOW-'
SEQUENCE_ID_VERSION = 'v1'


def project_sequence(ordering: OrderingResult, grouping: GroupingResult) -> Dict[str, int]:
    """Give every member of a parallel group the group's smallest sequence number.

    Ungrouped nodes keep the number assigned by the ordering engine.
    """
    final_sequence = dict(ordering.sequence_by_node_id)

    for component in grouping.components:
        ranks = [final_sequence[member] for member in component.members if member in final_sequence]
        if not ranks:
            continue
        shared = min(ranks)
        for member in component.members:
            if member in final_sequence:
                final_sequence[member] = shared

    return final_sequence


def display_order(nodes: Sequence[Node], final_sequence: Dict[str, int]) -> List[str]:
    """Node ids sorted by (final sequence, x, y, id)."""
    node_by_id = index_nodes(nodes)
    ranked = [node for node in node_by_id.values() if node.id in final_sequence]
    ranked.sort(key=lambda node: (final_sequence[node.id],) + node_sort_key(node))
    return [node.id for node in ranked]


def sequential_edge_signatures(nodes: Sequence[Node], edges: Sequence[Edge]) -> List[str]:
    """Sorted 'source->target' strings for sequential edges between known nodes."""
    valid_node_ids = {node.id for node in nodes}
    return sorted(
        f"{edge.source}->{edge.target}"
        for edge in edges
        if edge.is_sequential
        and edge.source in valid_node_ids
        and edge.target in valid_node_ids
    )


def compute_project_sequence_id(ordered_ids: Sequence[str], nodes: Sequence[Node],
                                edges: Sequence[Edge]) -> str:
    """Calculate the project sequence id.

    The payload covers the reading order and the sequential edge set.
    Parallel edges are left out so regrouping nodes never changes the id.

    Args:
        ordered_ids: Reading order from compute_ordering
        nodes: Flow nodes
        edges: Flow edges

    Returns:
        Token of the form 'FLOW-' + 7 base-36 characters
    """
    payload = (f"{SEQUENCE_ID_VERSION}|order:{'>'.join(ordered_ids)}"
               f"|edges:{'|'.join(sequential_edge_signatures(nodes, edges))}")
    return SEQUENCE_ID_PREFIX + hash_to_base36(payload)


@dataclass
class FlowState:
    """Everything derived from a (nodes, edges) snapshot."""
    ordering: OrderingResult
    grouping: GroupingResult
    final_sequence: Dict[str, int] = field(default_factory=dict)
    display_order: List[str] = field(default_factory=list)
    sequence_id: str = ''

    def to_dict(self) -> Dict:
        return {
            'sequence_id': self.sequence_id,
            'has_cycle': self.ordering.has_cycle,
            'ordered_ids': list(self.ordering.ordered_ids),
            'display_order': list(self.display_order),
            'final_sequence': dict(self.final_sequence),
            'parallel_groups': [component.to_dict() for component in self.grouping.components],
        }


def compute_flow_state(nodes: Sequence[Node], edges: Sequence[Edge]) -> FlowState:
    """Run ordering, grouping and projection over one snapshot."""
    ordering = compute_ordering(nodes, edges)
    grouping = compute_parallel_groups(nodes, edges)
    final_sequence = project_sequence(ordering, grouping)

    return FlowState(
        ordering=ordering,
        grouping=grouping,
        final_sequence=final_sequence,
        display_order=display_order(nodes, final_sequence),
        sequence_id=compute_project_sequence_id(ordering.ordered_ids, nodes, edges),
    )
