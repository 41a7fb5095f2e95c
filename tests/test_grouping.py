#!/usr/bin/env python3
"""
Tests for flowcopy/grouping.py

Tests parallel-group detection over parallel edges.
"""

import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from flowcopy.graph_model import Edge, Node
from flowcopy.grouping import compute_parallel_groups, make_group_id


def par(source, target):
    return Edge(id=f"p-{source}-{target}", source=source, target=target, kind='parallel')


def test_single_parallel_edge_forms_group():
    """A and B joined by one parallel edge share group PG-A|B."""
    nodes = [Node('A', 0, 0), Node('B', 100, 0)]
    result = compute_parallel_groups(nodes, [par('A', 'B')])

    assert result.group_by_node_id == {'A': 'PG-A|B', 'B': 'PG-A|B'}
    assert len(result.components) == 1
    assert result.components[0].id == 'PG-A|B'
    assert result.components[0].members == ['A', 'B']


def test_direction_does_not_matter():
    """B->A groups exactly like A->B."""
    nodes = [Node('A', 0, 0), Node('B', 100, 0)]
    forward = compute_parallel_groups(nodes, [par('A', 'B')])
    backward = compute_parallel_groups(nodes, [par('B', 'A')])

    assert forward.group_by_node_id == backward.group_by_node_id


def test_grouping_is_transitive():
    """A-B and B-C put all three in one group."""
    nodes = [Node('C', 0, 0), Node('A', 50, 0), Node('B', 100, 0)]
    result = compute_parallel_groups(nodes, [par('A', 'B'), par('C', 'B')])

    assert set(result.group_by_node_id.values()) == {'PG-A|B|C'}
    assert result.components[0].members == ['A', 'B', 'C']


def test_isolated_nodes_get_no_group():
    """Nodes without parallel neighbors stay ungrouped."""
    nodes = [Node('A', 0, 0), Node('B', 100, 0), Node('C', 200, 0)]
    result = compute_parallel_groups(nodes, [par('A', 'B')])

    assert 'C' not in result.group_by_node_id


def test_sequential_edges_ignored():
    """Only parallel edges group nodes."""
    nodes = [Node('A', 0, 0), Node('B', 100, 0)]
    edges = [Edge(id='e1', source='A', target='B')]
    result = compute_parallel_groups(nodes, edges)

    assert result.group_by_node_id == {}
    assert result.components == []


def test_unknown_endpoints_and_self_loops_ignored():
    """Edges to missing nodes and parallel self-loops don't form groups."""
    nodes = [Node('A', 0, 0), Node('B', 100, 0)]
    result = compute_parallel_groups(nodes, [par('A', 'ghost'), par('B', 'B')])

    assert result.group_by_node_id == {}


def test_components_sorted_by_smallest_member():
    """Output order follows each group's smallest member id, not position."""
    nodes = [Node('X', 0, 0), Node('Y', 10, 0), Node('B', 500, 0), Node('C', 600, 0)]
    result = compute_parallel_groups(nodes, [par('X', 'Y'), par('C', 'B')])

    assert [component.id for component in result.components] == ['PG-B|C', 'PG-X|Y']


def test_make_group_id_sorts_members():
    assert make_group_id(['node-2', 'node-1']) == 'PG-node-1|node-2'


def test_to_dict():
    nodes = [Node('A', 0, 0), Node('B', 100, 0)]
    result = compute_parallel_groups(nodes, [par('A', 'B')])

    assert result.to_dict() == {
        'group_by_node_id': {'A': 'PG-A|B', 'B': 'PG-A|B'},
        'components': [{'id': 'PG-A|B', 'members': ['A', 'B']}],
    }
