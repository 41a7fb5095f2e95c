#!/usr/bin/env python3
"""
Graph Model Module

Node and edge types shared by every stage, plus the load-time sanitation that
turns loosely-typed project data (JSON from disk or an import blob) into a
clean graph:

- node ids are trimmed, generated when missing, and suffixed to uniqueness
- node content is filled from the project's admin option defaults
- edges with a missing or unknown endpoint are dropped
- edge ids are generated when missing and suffixed to uniqueness

Nothing here mutates its inputs.
"""

import logging
import math
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from flowcopy.admin_options import first_option_or_fallback, normalize_admin_options

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

EDGE_KIND_SEQUENTIAL = 'sequential'
EDGE_KIND_PARALLEL = 'parallel'
EDGE_KINDS = (EDGE_KIND_SEQUENTIAL, EDGE_KIND_PARALLEL)

NODE_SHAPE_OPTIONS = ('rectangle', 'rounded', 'pill', 'diamond')
DEFAULT_NODE_SHAPE = 'rectangle'

# Editable node content, in export column order
NODE_CONTENT_FIELDS = (
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
)


# =============================================================================
# TYPES
# =============================================================================

@dataclass
class Node:
    """A content node on the canvas."""
    id: str
    x: float = 0
    y: float = 0
    data: Dict[str, str] = field(default_factory=dict)
    group: Optional[str] = None

    def get(self, content_field: str) -> str:
        return self.data.get(content_field, '')

    def to_dict(self) -> Dict:
        result = {
            'id': self.id,
            'position': {'x': self.x, 'y': self.y},
            'data': dict(self.data),
        }
        if self.group:
            result['group'] = self.group
        return result

    @classmethod
    def from_dict(cls, data: Dict) -> 'Node':
        """Build a node from a persisted record.

        A missing or blank id is generated; a position without finite
        numeric x and y becomes (0, 0).
        """
        raw_id = data['id'].strip() if isinstance(data.get('id'), str) else ''
        position = data.get('position')
        if (isinstance(position, dict)
                and is_finite_number(position.get('x'))
                and is_finite_number(position.get('y'))):
            x, y = position['x'], position['y']
        else:
            x, y = 0, 0

        node_data = data.get('data')
        group = data.get('group')
        return cls(
            id=raw_id or create_node_id(),
            x=x,
            y=y,
            data=dict(node_data) if isinstance(node_data, dict) else {},
            group=group if isinstance(group, str) and group else None,
        )


@dataclass
class Edge:
    """A directed connection between two nodes.

    Keys the core does not interpret (visual style, labels, markers) are kept
    in ``extra`` and written back out untouched.
    """
    id: str
    source: str
    target: str
    kind: str = EDGE_KIND_SEQUENTIAL
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_sequential(self) -> bool:
        return self.kind == EDGE_KIND_SEQUENTIAL

    @property
    def is_parallel(self) -> bool:
        return self.kind == EDGE_KIND_PARALLEL

    def to_dict(self) -> Dict:
        result = dict(self.extra)
        result.update({
            'id': self.id,
            'source': self.source,
            'target': self.target,
            'kind': self.kind,
        })
        if self.source_handle is not None:
            result['sourceHandle'] = self.source_handle
        if self.target_handle is not None:
            result['targetHandle'] = self.target_handle
        return result

    @classmethod
    def from_dict(cls, data: Dict) -> 'Edge':
        known = {'id', 'source', 'target', 'kind', 'sourceHandle', 'targetHandle'}
        kind = data.get('kind')
        return cls(
            id=_as_text(data.get('id')),
            source=_as_text(data.get('source')),
            target=_as_text(data.get('target')),
            kind=kind if kind in EDGE_KINDS else EDGE_KIND_SEQUENTIAL,
            source_handle=data.get('sourceHandle'),
            target_handle=data.get('targetHandle'),
            extra={key: value for key, value in data.items() if key not in known},
        )


# =============================================================================
# ORDERING HELPERS
# =============================================================================

def node_sort_key(node: Node) -> Tuple[float, float, str]:
    """Tie-break key: ascending x, then ascending y, then id."""
    return (node.x, node.y, node.id)


def index_nodes(nodes: Iterable[Node]) -> Dict[str, Node]:
    """Map node id -> node, keeping the first node seen for a repeated id."""
    node_by_id = {}
    for node in nodes:
        node_by_id.setdefault(node.id, node)
    return node_by_id


def is_finite_number(value: Any) -> bool:
    return (isinstance(value, (int, float))
            and not isinstance(value, bool)
            and math.isfinite(value))


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ''


def create_node_id() -> str:
    return str(uuid.uuid4())


def _unique_id(base_id: str, used_ids: set) -> str:
    unique_id = base_id
    duplicate_counter = 1
    while unique_id in used_ids:
        unique_id = f"{base_id}-{duplicate_counter}"
        duplicate_counter += 1
    return unique_id


# =============================================================================
# NODE CONTENT DEFAULTS
# =============================================================================

def create_default_node_data(admin_options: Dict[str, List[str]],
                             overrides: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
    """Build complete node content, filling gaps from the admin options.

    Args:
        admin_options: Normalized admin option vocabularies
        overrides: Content values already known for the node

    Returns:
        Dict with every field of NODE_CONTENT_FIELDS
    """
    overrides = overrides or {}

    defaults = {
        'title': 'Untitled Node',
        'body_text': '',
        'primary_cta': 'Continue',
        'secondary_cta': '',
        'helper_text': '',
        'error_text': '',
        'tone': first_option_or_fallback(admin_options['tone'], 'neutral'),
        'polarity': first_option_or_fallback(admin_options['polarity'], 'neutral'),
        'reversibility': first_option_or_fallback(admin_options['reversibility'], 'reversible'),
        'concept': first_option_or_fallback(admin_options['concept'], ''),
        'notes': '',
        'action_type_name': first_option_or_fallback(admin_options['action_type_name'], 'Submit Data'),
        'action_type_color': first_option_or_fallback(admin_options['action_type_color'], '#4f46e5'),
        'card_style': first_option_or_fallback(admin_options['card_style'], 'default'),
    }

    data = {}
    for content_field, default in defaults.items():
        value = overrides.get(content_field)
        data[content_field] = value if isinstance(value, str) else default

    shape = overrides.get('node_shape')
    data['node_shape'] = shape if shape in NODE_SHAPE_OPTIONS else DEFAULT_NODE_SHAPE

    return data


# =============================================================================
# SANITATION
# =============================================================================

def sanitize_serializable_nodes(value: Any) -> List[Node]:
    """Coerce raw JSON node records into Node values.

    Non-object entries are dropped; missing ids are generated; a position
    without numeric x and y becomes (0, 0).
    """
    if not isinstance(value, list):
        return []

    nodes = []
    for item in value:
        if isinstance(item, Node):
            nodes.append(item)
            continue
        if isinstance(item, dict):
            nodes.append(Node.from_dict(item))

    return nodes


def sanitize_nodes(nodes: Sequence[Node], admin_options: Any = None) -> List[Node]:
    """Normalize node content and make every node id unique.

    Repeated ids get ``-1``, ``-2``, ... suffixes in input order.
    """
    options = normalize_admin_options(admin_options)
    used_ids = set()
    sanitized = []

    for node in nodes:
        base_id = node.id.strip() if isinstance(node.id, str) else ''
        unique_id = _unique_id(base_id or create_node_id(), used_ids)
        if base_id and unique_id != base_id:
            logger.warning(f"Renamed node id {base_id!r} to {unique_id!r}")
        used_ids.add(unique_id)

        sanitized.append(Node(
            id=unique_id,
            x=node.x,
            y=node.y,
            data=create_default_node_data(options, node.data),
            group=node.group,
        ))

    return sanitized


def sanitize_edges_for_storage(value: Any) -> List[Edge]:
    """Coerce a raw JSON edge list into Edge values, dropping non-objects."""
    if not isinstance(value, list):
        return []

    edges = []
    for item in value:
        if isinstance(item, Edge):
            edges.append(item)
        elif isinstance(item, dict):
            edges.append(Edge.from_dict(item))
    return edges


def sanitize_edges(edges: Sequence[Edge], nodes: Sequence[Node]) -> List[Edge]:
    """Drop edges whose endpoints are missing and make edge ids unique.

    Args:
        edges: Candidate edges
        nodes: Nodes already passed through sanitize_nodes

    Returns:
        Edges safe to hand to the ordering and grouping engines
    """
    valid_node_ids = {node.id for node in nodes}
    used_ids = set()
    sanitized = []

    for edge in edges:
        source = _as_text(edge.source)
        target = _as_text(edge.target)

        if not source or not target:
            continue

        if source not in valid_node_ids or target not in valid_node_ids:
            logger.warning(f"Dropping edge {edge.id!r}: unknown endpoint {source!r} -> {target!r}")
            continue

        raw_id = edge.id.strip() if isinstance(edge.id, str) else ''
        unique_id = _unique_id(raw_id or f"e-{source}-{target}", used_ids)
        used_ids.add(unique_id)

        sanitized.append(Edge(
            id=unique_id,
            source=source,
            target=target,
            kind=edge.kind if edge.kind in EDGE_KINDS else EDGE_KIND_SEQUENTIAL,
            source_handle=edge.source_handle,
            target_handle=edge.target_handle,
            extra=dict(edge.extra),
        ))

    return sanitized


def load_canvas(canvas: Any) -> Tuple[List[Node], List[Edge], Dict[str, List[str]]]:
    """Hydrate a persisted canvas dict into sanitized nodes, edges and options.

    This is the ordinary project-load path; imports reuse the same rules.
    """
    canvas = canvas if isinstance(canvas, dict) else {}
    admin_options = normalize_admin_options(canvas.get('adminOptions'))
    nodes = sanitize_nodes(sanitize_serializable_nodes(canvas.get('nodes')), admin_options)
    edges = sanitize_edges(sanitize_edges_for_storage(canvas.get('edges')), nodes)
    return nodes, edges, admin_options


def dump_canvas(nodes: Sequence[Node], edges: Sequence[Edge],
                admin_options: Dict[str, List[str]]) -> Dict:
    """Inverse of load_canvas: plain JSON-ready canvas dict."""
    return {
        'nodes': [node.to_dict() for node in nodes],
        'edges': [edge.to_dict() for edge in edges],
        'adminOptions': {key: list(values) for key, values in admin_options.items()},
    }
