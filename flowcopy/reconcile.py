#!/usr/bin/env python3
"""
Import Reconciler

Turns parsed table rows back into a project graph for the active project.

Steps:
1. Keep only rows whose project_id matches the active project
2. Rows with a node_id become nodes, laid out in exported order
   (node_order_id, else sequence_index, else row position)
3. Edges and admin options come from the JSON columns of the first matching row
4. Everything goes through the same sanitation as an ordinary project load
5. Sequence numbers are recomputed from the rebuilt graph; imported
   sequence columns only influence layout

import_tabular_text() wraps the whole thing (format detection, parsing,
reconciliation) and reports the outcome as an ImportFeedback instead of
raising, which is what an editor shows to the author.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from flowcopy.admin_options import (
    default_admin_options,
    merge_admin_options,
    normalize_admin_options,
    sync_admin_options_with_nodes,
)
from flowcopy.errors import FlowCopyError, NoMatchingRowsError, UnrecognizedFormatError
from flowcopy.flat_rows import FlatRow, ParsedTabular, to_numeric
from flowcopy.formats import FORMAT_CSV, detect_format
from flowcopy.csv_codec import parse_csv
from flowcopy.xml_codec import parse_xml
from flowcopy.graph_model import (
    NODE_CONTENT_FIELDS,
    Edge,
    Node,
    sanitize_edges,
    sanitize_edges_for_storage,
    sanitize_nodes,
)
from flowcopy.sequence import FlowState, compute_flow_state

logger = logging.getLogger(__name__)

# Layout for imported nodes without a usable position
DEFAULT_LAYOUT_ORIGIN_X = 120
DEFAULT_LAYOUT_SPACING_X = 220
DEFAULT_LAYOUT_Y = 120

FEEDBACK_SUCCESS = 'success'
FEEDBACK_ERROR = 'error'
FEEDBACK_INFO = 'info'


@dataclass
class ImportResult:
    """Graph rebuilt from an import, ready to replace the active canvas."""
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    admin_options: Dict[str, List[str]] = field(default_factory=default_admin_options)
    flow_state: Optional[FlowState] = None


@dataclass
class ImportFeedback:
    """Outcome of an import attempt, phrased for the author."""
    type: str
    message: str
    result: Optional[ImportResult] = None

    @property
    def ok(self) -> bool:
        return self.type == FEEDBACK_SUCCESS


def safe_json_parse(value: str, column: str = '') -> Any:
    """Decode JSON, or None if the cell is empty, malformed or nested too deeply."""
    if not value or not value.strip():
        return None
    try:
        return json.loads(value)
    except (ValueError, RecursionError) as e:
        logger.warning(f"Ignoring malformed JSON in {column or 'cell'}: {e}")
        return None


def _sort_weight(row: FlatRow, fallback_index: int) -> float:
    order_value = to_numeric(row.node_order_id)
    if order_value is None:
        order_value = to_numeric(row.sequence_index)
    if order_value is None:
        order_value = fallback_index + 1
    return order_value


def rows_to_nodes(rows: Sequence[FlatRow]) -> List[Node]:
    """Build unsanitized nodes from rows that carry a node id.

    Args:
        rows: Rows already filtered to the active project

    Returns:
        Nodes in exported order with content copied verbatim
    """
    candidates = [row for row in rows if row.node_id.strip()]
    weighted = sorted(
        ((index, row) for index, row in enumerate(candidates)),
        key=lambda item: _sort_weight(item[1], item[0]),
    )

    nodes = []
    for index, (_, row) in enumerate(weighted):
        x = to_numeric(row.position_x)
        y = to_numeric(row.position_y)
        nodes.append(Node(
            id=row.node_id.strip(),
            x=x if x is not None else DEFAULT_LAYOUT_ORIGIN_X + index * DEFAULT_LAYOUT_SPACING_X,
            y=y if y is not None else DEFAULT_LAYOUT_Y,
            data={content_field: row.get(content_field) for content_field in NODE_CONTENT_FIELDS},
        ))

    return nodes


def reconcile_import(rows: Union[ParsedTabular, Sequence[FlatRow]],
                     active_project_id: str) -> ImportResult:
    """Rebuild the active project's graph from imported rows.

    Args:
        rows: Parser output (or its row list)
        active_project_id: Id of the project being edited

    Returns:
        ImportResult with sanitized nodes, edges, merged admin options and a
        freshly computed flow state

    Raises:
        NoMatchingRowsError: If no row belongs to the active project
    """
    if isinstance(rows, ParsedTabular):
        rows = rows.rows

    project_rows = [row for row in rows if row.project_id.strip() == active_project_id]
    if not project_rows:
        raise NoMatchingRowsError(active_project_id)

    imported_nodes = rows_to_nodes(project_rows)

    first_row = project_rows[0]
    raw_edges = safe_json_parse(first_row.project_edges_json, 'project_edges_json')
    raw_admin_options = safe_json_parse(first_row.project_admin_options_json,
                                        'project_admin_options_json')

    imported_options = normalize_admin_options(raw_admin_options)
    admin_options = sync_admin_options_with_nodes(
        merge_admin_options(imported_options, default_admin_options()),
        sanitize_nodes(imported_nodes, imported_options),
    )

    nodes = sanitize_nodes(imported_nodes, admin_options)
    edges = sanitize_edges(sanitize_edges_for_storage(raw_edges), nodes)

    logger.info(f"Reconciled {len(nodes)} node(s) and {len(edges)} edge(s) "
                f"from {len(project_rows)} row(s) for {active_project_id}")

    return ImportResult(
        nodes=nodes,
        edges=edges,
        admin_options=admin_options,
        flow_state=compute_flow_state(nodes, edges),
    )


def import_tabular_text(file_name: str, text: str, active_project_id: str) -> ImportFeedback:
    """Detect, parse and reconcile an import file.

    Never raises for bad input; every failure is classified into an
    ImportFeedback:
    - unrecognized format / malformed XML / no matching rows -> 'error'
    - a file with no data rows -> 'info'
    - otherwise 'success' with the ImportResult attached
    """
    try:
        tabular_format = detect_format(file_name, text)
        if tabular_format is None:
            raise UnrecognizedFormatError()

        parsed = parse_csv(text) if tabular_format == FORMAT_CSV else parse_xml(text)

        if not parsed.rows:
            return ImportFeedback(type=FEEDBACK_INFO, message='Import file has no data rows.')

        result = reconcile_import(parsed, active_project_id)
    except FlowCopyError as e:
        logger.info(f"Import of {file_name or 'file'} rejected: {e}")
        return ImportFeedback(type=FEEDBACK_ERROR, message=str(e))

    return ImportFeedback(
        type=FEEDBACK_SUCCESS,
        message=f"Imported {len(result.nodes)} node(s) from {tabular_format.upper()}.",
        result=result,
    )
