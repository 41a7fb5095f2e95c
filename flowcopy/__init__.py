"""
FlowCopy Core Library

Pure functions for ordering, identifying and exchanging microcopy flow graphs.
The canvas and storage layers hand plain node/edge data to these modules and
consume their plain results.

Modules:
- identity: Base-36 rolling hash used for project tokens
- ordering: Reading order over sequential edges (Kahn's algorithm)
- grouping: Parallel groups over parallel edges
- sequence: Final sequence numbers and project sequence id
- graph_model: Node/edge types and load-time sanitation
- admin_options: Project-scoped classification vocabularies
- flat_rows: Flat export row projection
- csv_codec / xml_codec / formats: Tabular serialization and parsing
- reconcile: Import reconciliation against the active project
- errors: Errors reported back to the author on import
- cli: Command-line interface over project JSON files
"""

__version__ = "1.0.0"
