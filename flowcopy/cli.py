#!/usr/bin/env python3
"""
FlowCopy command-line interface.

Works on a project JSON document:

    {
        "session": {"activeAccountId": "...", "activeProjectId": "...",
                    "view": "editor", "editorMode": "canvas"},
        "account": {"id": "acct-000", "code": "000"},
        "project": {
            "id": "PRJ-X", "name": "...", "createdAt": "...", "updatedAt": "...",
            "canvas": {"nodes": [...], "edges": [...], "adminOptions": {...}}
        }
    }

Usage:
    flowcopy order project.json
    flowcopy export project.json --format csv --output-dir dist/
    flowcopy import project.json export.csv --output updated.json
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

from flowcopy.flat_rows import ExportContext, create_flat_export_rows
from flowcopy.formats import SUPPORTED_FORMATS, build_download_file_name, iso_timestamp, serialize_rows
from flowcopy.graph_model import dump_canvas, load_canvas
from flowcopy.reconcile import import_tabular_text
from flowcopy.sequence import compute_flow_state

DEFAULT_LOG_LEVEL = os.getenv('FLOWCOPY_LOG_LEVEL', 'WARNING')
DEFAULT_ACCOUNT_CODE = '000'


# =============================================================================
# PROJECT DOCUMENTS
# =============================================================================

def load_project_document(path: Path) -> Dict:
    with open(path, 'r', encoding='utf-8') as f:
        document = json.load(f)
    if not isinstance(document, dict):
        raise ValueError(f"Project file must contain a JSON object: {path}")
    return document


def _section(document: Dict, key: str) -> Dict:
    value = document.get(key)
    return value if isinstance(value, dict) else {}


def build_export_context(document: Dict) -> ExportContext:
    """Build an ExportContext from a project document, sanitizing the canvas."""
    session = _section(document, 'session')
    account = _section(document, 'account')
    project = _section(document, 'project')

    nodes, edges, admin_options = load_canvas(project.get('canvas'))
    account_code = account.get('code') or DEFAULT_ACCOUNT_CODE
    project_id = project.get('id') or ''

    return ExportContext(
        account_id=account.get('id') or f"acct-{account_code}",
        account_code=account_code,
        project_id=project_id,
        project_name=project.get('name') or 'Untitled Project',
        project_created_at=project.get('createdAt') or '',
        project_updated_at=project.get('updatedAt') or project.get('createdAt') or '',
        nodes=nodes,
        edges=edges,
        admin_options=admin_options,
        session_active_account_id=session.get('activeAccountId'),
        session_active_project_id=session.get('activeProjectId') or project_id,
        session_view=session.get('view') or 'editor',
        session_editor_mode=session.get('editorMode') or 'canvas',
    )


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_order(args: argparse.Namespace) -> int:
    context = build_export_context(load_project_document(args.project))
    state = compute_flow_state(context.nodes, context.edges)
    print(json.dumps(state.to_dict(), indent=2, ensure_ascii=False))
    if state.ordering.has_cycle:
        print("⚠ Sequential edges contain a cycle; unresolved nodes ordered by position",
              file=sys.stderr)
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    context = build_export_context(load_project_document(args.project))
    if not context.project_id:
        print("Error: Project document has no project id", file=sys.stderr)
        return 1

    rows = create_flat_export_rows(context)
    payload = serialize_rows(rows, args.format)

    args.output_dir.mkdir(parents=True, exist_ok=True)
    output_path = args.output_dir / build_download_file_name(context.project_id, args.format)
    with open(output_path, 'w', encoding='utf-8', newline='') as f:
        f.write(payload)

    print(f"✓ Exported {len(rows)} row(s) to {args.format.upper()}", file=sys.stderr)
    print(f"✓ Output: {output_path}", file=sys.stderr)
    return 0


def cmd_import(args: argparse.Namespace) -> int:
    document = load_project_document(args.project)
    project = _section(document, 'project')
    project_id = project.get('id') or ''

    if not args.input_file.exists():
        print(f"Error: Input file not found: {args.input_file}", file=sys.stderr)
        return 1

    # newline='' keeps '\r' inside quoted cells intact
    try:
        with open(args.input_file, 'r', encoding='utf-8', newline='') as f:
            text = f.read()
    except UnicodeDecodeError as e:
        print(f"Error: Could not read {args.input_file} as UTF-8: {e}", file=sys.stderr)
        return 1

    feedback = import_tabular_text(args.input_file.name, text, project_id)
    if feedback.result is None:
        prefix = 'Error: ' if feedback.type == 'error' else ''
        print(f"{prefix}{feedback.message}", file=sys.stderr)
        return 1 if feedback.type == 'error' else 0

    result = feedback.result
    updated_project = dict(project)
    updated_project['updatedAt'] = iso_timestamp()
    updated_project['canvas'] = dump_canvas(result.nodes, result.edges, result.admin_options)
    updated_document = dict(document)
    updated_document['project'] = updated_project

    output_path = args.output or args.project
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(updated_document, f, indent=2, ensure_ascii=False)

    print(f"✓ {feedback.message}", file=sys.stderr)
    print(f"✓ Sequence id: {result.flow_state.sequence_id}", file=sys.stderr)
    print(f"✓ Output: {output_path}", file=sys.stderr)
    return 0


# =============================================================================
# CLI INTERFACE
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='flowcopy',
        description='Order, export and import FlowCopy microcopy flows'
    )
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    order_parser = subparsers.add_parser('order', help='Print reading order, groups and sequence id')
    order_parser.add_argument('project', type=Path, help='Path to project JSON file')
    order_parser.set_defaults(handler=cmd_order)

    export_parser = subparsers.add_parser('export', help='Export a project to CSV or XML')
    export_parser.add_argument('project', type=Path, help='Path to project JSON file')
    export_parser.add_argument('--format', choices=SUPPORTED_FORMATS, default='csv',
                               help='Export format (default: csv)')
    export_parser.add_argument('--output-dir', type=Path, default=Path('.'),
                               help='Directory for the export file (default: current directory)')
    export_parser.set_defaults(handler=cmd_export)

    import_parser = subparsers.add_parser('import', help='Import a CSV or XML export into a project')
    import_parser.add_argument('project', type=Path, help='Path to project JSON file')
    import_parser.add_argument('input_file', type=Path, help='CSV or XML file to import')
    import_parser.add_argument('--output', type=Path, default=None,
                               help='Where to write the updated project (default: overwrite project)')
    import_parser.set_defaults(handler=cmd_import)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for command-line usage."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else DEFAULT_LOG_LEVEL.upper(),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    if not args.project.exists():
        print(f"Error: Input file not found: {args.project}", file=sys.stderr)
        return 1

    try:
        return args.handler(args)
    except ValueError as e:
        print(f"Error: Could not read project {args.project}: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
