#!/usr/bin/env python3
"""
Tests for flowcopy/reconcile.py

Tests rebuilding a project graph from exported rows, including the
export -> import round trip through both file formats.
"""

import json
import sys
from pathlib import Path

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from flowcopy.csv_codec import build_csv
from flowcopy.errors import NoMatchingRowsError
from flowcopy.flat_rows import ExportContext, FlatRow, ParsedTabular, create_flat_export_rows
from flowcopy.graph_model import load_canvas
from flowcopy.reconcile import (
    DEFAULT_LAYOUT_ORIGIN_X,
    DEFAULT_LAYOUT_SPACING_X,
    DEFAULT_LAYOUT_Y,
    import_tabular_text,
    reconcile_import,
    safe_json_parse,
)
from flowcopy.xml_codec import build_xml


@pytest.fixture
def export_context():
    """Three-node project: A -> B, A -> C sequential, B ~ C parallel."""
    nodes, edges, admin_options = load_canvas({
        'nodes': [
            {'id': 'A', 'position': {'x': 0, 'y': 0}, 'data': {'title': 'Welcome'}},
            {'id': 'B', 'position': {'x': 200, 'y': -40}, 'data': {'title': 'Pay, now', 'tone': 'urgent'}},
            {'id': 'C', 'position': {'x': 200, 'y': 40}, 'data': {'body_text': 'Line 1\nLine "2"'}},
        ],
        'edges': [
            {'id': 'e1', 'source': 'A', 'target': 'B', 'animated': True},
            {'id': 'e2', 'source': 'A', 'target': 'C'},
            {'id': 'p1', 'source': 'B', 'target': 'C', 'kind': 'parallel'},
        ],
    })
    return ExportContext(
        account_id='acct-000',
        project_id='PRJ-X',
        nodes=nodes,
        edges=edges,
        admin_options=admin_options,
    )


class TestRoundTrip:
    """Export then import reproduces the graph."""

    @pytest.mark.parametrize('file_name,serialize', [
        ('export.csv', build_csv),
        ('export.xml', build_xml),
    ])
    def test_round_trip(self, export_context, file_name, serialize):
        rows = create_flat_export_rows(export_context)
        feedback = import_tabular_text(file_name, serialize(rows), 'PRJ-X')

        assert feedback.ok
        result = feedback.result
        assert sorted(node.id for node in result.nodes) == ['A', 'B', 'C']
        assert [edge.to_dict() for edge in result.edges] == \
            [edge.to_dict() for edge in export_context.edges]
        assert result.flow_state.sequence_id == rows[0].project_sequence_id

        by_id = {node.id: node for node in result.nodes}
        original = {node.id: node for node in export_context.nodes}
        for node_id, node in by_id.items():
            assert node.data == original[node_id].data
            assert (node.x, node.y) == (original[node_id].x, original[node_id].y)

    def test_success_message(self, export_context):
        text = build_xml(create_flat_export_rows(export_context))
        feedback = import_tabular_text('export.xml', text, 'PRJ-X')
        assert feedback.message == 'Imported 3 node(s) from XML.'

    def test_placeholder_only_export(self):
        rows = create_flat_export_rows(ExportContext(account_id='acct-000', project_id='PRJ-X'))
        feedback = import_tabular_text('empty.csv', build_csv(rows), 'PRJ-X')

        assert feedback.ok
        assert feedback.result.nodes == []
        assert feedback.result.edges == []
        assert feedback.message == 'Imported 0 node(s) from CSV.'


class TestProjectFiltering:
    """Rows from other projects are ignored."""

    def test_mismatched_project_raises(self):
        rows = [FlatRow(project_id='PRJ-Y', node_id='A')]
        with pytest.raises(NoMatchingRowsError) as excinfo:
            reconcile_import(rows, 'PRJ-X')
        assert str(excinfo.value) == 'No rows matched active project PRJ-X.'

    def test_mismatched_project_feedback(self, export_context):
        text = build_csv(create_flat_export_rows(export_context))
        feedback = import_tabular_text('export.csv', text, 'PRJ-Y')

        assert feedback.type == 'error'
        assert feedback.message == 'No rows matched active project PRJ-Y.'
        assert feedback.result is None

    def test_other_project_rows_skipped(self):
        result = reconcile_import([
            FlatRow(project_id='PRJ-Y', node_id='Z'),
            FlatRow(project_id=' PRJ-X ', node_id='A'),
        ], 'PRJ-X')
        assert [node.id for node in result.nodes] == ['A']

    def test_accepts_parsed_tabular(self):
        parsed = ParsedTabular(rows=[FlatRow(project_id='PRJ-X', node_id='A')], headers=['project_id'])
        assert [node.id for node in reconcile_import(parsed, 'PRJ-X').nodes] == ['A']


class TestNodeLayout:
    """Import order and fallback positions."""

    def test_node_order_id_wins(self):
        result = reconcile_import([
            FlatRow(project_id='PRJ-X', node_id='A', node_order_id='2', sequence_index='1'),
            FlatRow(project_id='PRJ-X', node_id='B', node_order_id='1', sequence_index='2'),
        ], 'PRJ-X')
        assert [node.id for node in result.nodes] == ['B', 'A']

    def test_sequence_index_then_row_position(self):
        result = reconcile_import([
            FlatRow(project_id='PRJ-X', node_id='A', sequence_index='3'),
            FlatRow(project_id='PRJ-X', node_id='B', sequence_index='1'),
            FlatRow(project_id='PRJ-X', node_id='C'),
        ], 'PRJ-X')
        # C has no weight columns and falls back to its row position (3)
        assert [node.id for node in result.nodes] == ['B', 'A', 'C']

    def test_default_layout(self):
        result = reconcile_import([
            FlatRow(project_id='PRJ-X', node_id='A'),
            FlatRow(project_id='PRJ-X', node_id='B', position_x='5', position_y='not a number'),
            FlatRow(project_id='PRJ-X', node_id='C', position_y='  '),
        ], 'PRJ-X')

        positions = [(node.x, node.y) for node in result.nodes]
        assert positions == [
            (DEFAULT_LAYOUT_ORIGIN_X, DEFAULT_LAYOUT_Y),
            (5.0, DEFAULT_LAYOUT_Y),
            (DEFAULT_LAYOUT_ORIGIN_X + 2 * DEFAULT_LAYOUT_SPACING_X, DEFAULT_LAYOUT_Y),
        ]

    def test_rows_without_node_id_skipped(self):
        result = reconcile_import([
            FlatRow(project_id='PRJ-X', node_id='  '),
            FlatRow(project_id='PRJ-X', node_id='A'),
        ], 'PRJ-X')
        assert [node.id for node in result.nodes] == ['A']

    def test_duplicate_node_ids_suffixed(self):
        result = reconcile_import([
            FlatRow(project_id='PRJ-X', node_id='A'),
            FlatRow(project_id='PRJ-X', node_id='A'),
        ], 'PRJ-X')
        assert [node.id for node in result.nodes] == ['A', 'A-1']

    def test_sequence_recomputed_from_edges(self):
        edges = json.dumps([{'id': 'e1', 'source': 'B', 'target': 'A'}])
        result = reconcile_import([
            FlatRow(project_id='PRJ-X', node_id='A', position_x='0', position_y='0',
                    sequence_index='1', project_edges_json=edges),
            FlatRow(project_id='PRJ-X', node_id='B', position_x='100', position_y='0',
                    sequence_index='2'),
        ], 'PRJ-X')
        assert result.flow_state.final_sequence == {'B': 1, 'A': 2}


class TestSanitation:
    """Imported content goes through ordinary load rules."""

    def test_edges_to_unknown_nodes_dropped(self):
        edges = json.dumps([
            {'id': 'e1', 'source': 'A', 'target': 'B'},
            {'id': 'e2', 'source': 'A', 'target': 'ghost'},
        ])
        result = reconcile_import([
            FlatRow(project_id='PRJ-X', node_id='A', project_edges_json=edges),
            FlatRow(project_id='PRJ-X', node_id='B'),
        ], 'PRJ-X')
        assert [edge.id for edge in result.edges] == ['e1']

    def test_edges_read_from_first_matching_row(self):
        first = json.dumps([{'id': 'e1', 'source': 'A', 'target': 'B'}])
        second = json.dumps([{'id': 'e9', 'source': 'B', 'target': 'A'}])
        result = reconcile_import([
            FlatRow(project_id='PRJ-Y', node_id='Z', project_edges_json=second),
            FlatRow(project_id='PRJ-X', node_id='A', project_edges_json=first),
            FlatRow(project_id='PRJ-X', node_id='B', project_edges_json=second),
        ], 'PRJ-X')
        assert [edge.id for edge in result.edges] == ['e1']

    def test_malformed_json_columns(self):
        result = reconcile_import([
            FlatRow(project_id='PRJ-X', node_id='A', project_edges_json='[{',
                    project_admin_options_json='{"tone": '),
        ], 'PRJ-X')

        assert result.edges == []
        assert result.admin_options['tone'] == ['neutral', 'friendly', 'formal', 'urgent']

    def test_deeply_nested_json_columns(self):
        rows = [FlatRow(project_id='PRJ-X', node_id='A', project_edges_json='[' * 100000,
                        project_admin_options_json='{"tone":' * 100000)]
        feedback = import_tabular_text('deep.csv', build_csv(rows), 'PRJ-X')

        assert feedback.ok
        assert [node.id for node in feedback.result.nodes] == ['A']
        assert feedback.result.edges == []
        assert feedback.result.admin_options['tone'] == ['neutral', 'friendly', 'formal', 'urgent']

    def test_vocabulary_merged_and_synced(self):
        options = json.dumps({'tone': ['calm', 'neutral']})
        result = reconcile_import([
            FlatRow(project_id='PRJ-X', node_id='A', tone='playful',
                    project_admin_options_json=options),
        ], 'PRJ-X')

        assert result.admin_options['tone'] == ['calm', 'neutral', 'friendly', 'formal', 'urgent', 'playful']
        assert result.nodes[0].data['tone'] == 'playful'

    def test_invalid_shape_becomes_rectangle(self):
        result = reconcile_import([
            FlatRow(project_id='PRJ-X', node_id='A', node_shape='hexagon'),
            FlatRow(project_id='PRJ-X', node_id='B', node_shape='pill'),
        ], 'PRJ-X')
        assert [node.data['node_shape'] for node in result.nodes] == ['rectangle', 'pill']


class TestImportFeedback:
    """Classification of import outcomes."""

    def test_no_data_rows_is_info(self):
        feedback = import_tabular_text('export.csv', 'project_id,node_id\n', 'PRJ-X')

        assert feedback.type == 'info'
        assert feedback.message == 'Import file has no data rows.'
        assert not feedback.ok

    def test_unrecognized_format(self):
        feedback = import_tabular_text('notes.txt', 'hello', 'PRJ-X')

        assert feedback.type == 'error'
        assert feedback.message == 'Unsupported file. Please import CSV or XML.'

    def test_malformed_xml(self):
        feedback = import_tabular_text('export.xml', '<flowcopyExport><row>', 'PRJ-X')

        assert feedback.type == 'error'
        assert feedback.message.startswith('Invalid XML file')


def test_safe_json_parse():
    assert safe_json_parse('') is None
    assert safe_json_parse('   ') is None
    assert safe_json_parse('{bad') is None
    assert safe_json_parse('[1, 2]') == [1, 2]
    assert safe_json_parse('[' * 100000) is None
