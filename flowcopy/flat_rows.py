#!/usr/bin/env python3
"""
Flat Rows Module

Projects a flow (plus its project context) into denormalized table rows, one
per node, for the CSV and XML exports. The same row type is what the parsers
hand back on import.

Every row repeats the full edge list and the admin option vocabulary as JSON
so any single row is enough to rebuild the project's connections.
"""

import json
import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from flowcopy.admin_options import GLOBAL_OPTION_FIELDS, normalize_admin_options
from flowcopy.graph_model import NODE_CONTENT_FIELDS, Edge, Node, index_nodes
from flowcopy.sequence import compute_flow_state

FLAT_EXPORT_COLUMNS = (
    'session_activeAccountId',
    'session_activeProjectId',
    'session_view',
    'session_editorMode',
    'account_id',
    'account_code',
    'project_id',
    'project_name',
    'project_createdAt',
    'project_updatedAt',
    'project_sequence_id',
    'node_id',
    'node_order_id',
    'sequence_index',
    'parallel_group_id',
    'position_x',
    'position_y',
    'title',
    'body_text',
    'primary_cta',
    'secondary_cta',
    'helper_text',
    'error_text',
    'tone',
    'polarity',
    'reversibility',
    'concept',
    'notes',
    'action_type_name',
    'action_type_color',
    'card_style',
    'node_shape',
    'project_admin_options_json',
    'project_edges_json',
)

BYTE_ORDER_MARK = '\ufeff'


# =============================================================================
# ROW TYPE
# =============================================================================

@dataclass
class FlatRow:
    """One table row: the fixed export columns plus any unrecognized ones."""
    session_activeAccountId: str = ''
    session_activeProjectId: str = ''
    session_view: str = ''
    session_editorMode: str = ''
    account_id: str = ''
    account_code: str = ''
    project_id: str = ''
    project_name: str = ''
    project_createdAt: str = ''
    project_updatedAt: str = ''
    project_sequence_id: str = ''
    node_id: str = ''
    node_order_id: str = ''
    sequence_index: str = ''
    parallel_group_id: str = ''
    position_x: str = ''
    position_y: str = ''
    title: str = ''
    body_text: str = ''
    primary_cta: str = ''
    secondary_cta: str = ''
    helper_text: str = ''
    error_text: str = ''
    tone: str = ''
    polarity: str = ''
    reversibility: str = ''
    concept: str = ''
    notes: str = ''
    action_type_name: str = ''
    action_type_color: str = ''
    card_style: str = ''
    node_shape: str = ''
    project_admin_options_json: str = ''
    project_edges_json: str = ''
    unknown: Dict[str, str] = field(default_factory=dict)

    def get(self, column: str) -> str:
        if column in FLAT_EXPORT_COLUMNS:
            return getattr(self, column)
        return self.unknown.get(column, '')

    def to_dict(self) -> Dict[str, str]:
        """Known columns only, in export order."""
        return {column: getattr(self, column) for column in FLAT_EXPORT_COLUMNS}

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> 'FlatRow':
        """Build a row from a header -> cell mapping.

        Keys are trimmed (and a byte-order mark stripped from the first key);
        empty keys are skipped and keys outside FLAT_EXPORT_COLUMNS land in
        ``unknown``.
        """
        known = {}
        unknown = {}
        for index, (key, value) in enumerate(mapping.items()):
            normalized_key = normalize_header(key, index)
            if not normalized_key:
                continue
            if normalized_key in FLAT_EXPORT_COLUMNS:
                known[normalized_key] = value
            else:
                unknown[normalized_key] = value
        return cls(unknown=unknown, **known)


@dataclass
class ParsedTabular:
    """Rows and headers read from a CSV or XML file."""
    rows: List[FlatRow] = field(default_factory=list)
    headers: List[str] = field(default_factory=list)


def normalize_header(header: str, index: int) -> str:
    if index == 0 and header.startswith(BYTE_ORDER_MARK):
        header = header[len(BYTE_ORDER_MARK):]
    return header.strip()


# =============================================================================
# NUMBERS
# =============================================================================

def to_numeric(value: Optional[str]) -> Optional[float]:
    """Parse a cell as a finite number, or None.

    Empty and whitespace-only cells are None rather than zero. Digit
    separators ('1_000') are not accepted.
    """
    if value is None or not value.strip() or '_' in value:
        return None
    try:
        parsed = float(value.strip())
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def format_number(value: float) -> str:
    """Render a coordinate the way it was entered: 100 not 100.0."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# =============================================================================
# EXPORT PROJECTION
# =============================================================================

@dataclass
class ExportContext:
    """Everything create_flat_export_rows needs to know about a project."""
    account_id: str
    project_id: str
    nodes: Sequence[Node] = field(default_factory=list)
    edges: Sequence[Edge] = field(default_factory=list)
    admin_options: Optional[Dict[str, List[str]]] = None
    account_code: str = '000'
    project_name: str = 'Untitled Project'
    project_created_at: str = ''
    project_updated_at: str = ''
    session_active_account_id: Optional[str] = None
    session_active_project_id: Optional[str] = None
    session_view: str = 'editor'
    session_editor_mode: str = 'canvas'


def encode_edges_json(edges: Sequence[Edge]) -> str:
    return json.dumps([edge.to_dict() for edge in edges], ensure_ascii=False, separators=(',', ':'))


def encode_admin_options_json(admin_options: Dict[str, List[str]]) -> str:
    ordered = {option_field: admin_options[option_field] for option_field in GLOBAL_OPTION_FIELDS}
    return json.dumps(ordered, ensure_ascii=False, separators=(',', ':'))


def create_flat_export_rows(context: ExportContext) -> List[FlatRow]:
    """Project a flow into flat export rows.

    Args:
        context: Project context, sanitized nodes/edges and admin options

    Returns:
        One FlatRow per node in display order, or a single placeholder row
        with empty node columns when the flow has no nodes
    """
    state = compute_flow_state(context.nodes, context.edges)
    node_by_id = index_nodes(context.nodes)

    shared = {
        'session_activeAccountId': context.session_active_account_id or '',
        'session_activeProjectId': context.session_active_project_id or '',
        'session_view': context.session_view,
        'session_editorMode': context.session_editor_mode,
        'account_id': context.account_id,
        'account_code': context.account_code,
        'project_id': context.project_id,
        'project_name': context.project_name,
        'project_createdAt': context.project_created_at,
        'project_updatedAt': context.project_updated_at,
        'project_sequence_id': state.sequence_id,
        'project_admin_options_json': encode_admin_options_json(
            normalize_admin_options(context.admin_options)),
        'project_edges_json': encode_edges_json(context.edges),
    }

    if not node_by_id:
        return [FlatRow(**shared)]

    rows = []
    for rank, node_id in enumerate(state.display_order, start=1):
        node = node_by_id[node_id]
        content = {content_field: node.get(content_field) for content_field in NODE_CONTENT_FIELDS}
        rows.append(FlatRow(
            node_id=node.id,
            node_order_id=str(rank),
            sequence_index=str(state.final_sequence[node.id]),
            parallel_group_id=state.grouping.group_by_node_id.get(node.id, ''),
            position_x=format_number(node.x),
            position_y=format_number(node.y),
            **content,
            **shared,
        ))

    return rows

