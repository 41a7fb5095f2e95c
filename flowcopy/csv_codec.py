#!/usr/bin/env python3
"""
CSV Codec

Serializes flat rows to CSV and parses CSV text back into flat rows.

Writing: fixed header row (FLAT_EXPORT_COLUMNS), RFC 4180 style quoting,
rows joined with '\\n'.

Reading: a character-level state machine that accepts anything a spreadsheet
is likely to save:
- quoted fields with doubled quotes inside
- commas and line breaks inside quoted fields
- '\\r\\n', '\\r' or '\\n' row endings
- a byte-order mark before the first header
Rows whose cells are all blank are dropped. Cells under a blank header are
skipped; cells under a header outside the export columns are kept in the
row's ``unknown`` bucket.
"""

import re
from typing import List, Sequence

from flowcopy.flat_rows import FLAT_EXPORT_COLUMNS, FlatRow, ParsedTabular, normalize_header

_NEEDS_QUOTING = re.compile(r'[",\n\r]')


# =============================================================================
# WRITING
# =============================================================================

def escape_csv_cell(value: str) -> str:
    """Quote a cell if it contains a comma, quote or line break."""
    if _NEEDS_QUOTING.search(value):
        return '"' + value.replace('"', '""') + '"'
    return value


def build_csv(rows: Sequence[FlatRow]) -> str:
    """Serialize rows under the fixed export header.

    Args:
        rows: Rows from create_flat_export_rows (or parse_csv/parse_xml)

    Returns:
        CSV text without a trailing newline
    """
    lines = [','.join(FLAT_EXPORT_COLUMNS)]
    for row in rows:
        lines.append(','.join(escape_csv_cell(row.get(column)) for column in FLAT_EXPORT_COLUMNS))
    return '\n'.join(lines)


# =============================================================================
# READING
# =============================================================================

def split_csv_records(text: str) -> List[List[str]]:
    """Split CSV text into records of raw cell strings.

    Always returns at least one record (possibly ``[['']]`` for empty text).
    """
    records = []
    current_record = []
    current_cell = []
    in_quotes = False
    index = 0
    length = len(text)

    while index < length:
        char = text[index]

        if in_quotes:
            if char == '"':
                if index + 1 < length and text[index + 1] == '"':
                    current_cell.append('"')
                    index += 2
                    continue
                in_quotes = False
                index += 1
                continue

            current_cell.append(char)
            index += 1
            continue

        if char == '"':
            in_quotes = True
        elif char == ',':
            current_record.append(''.join(current_cell))
            current_cell = []
        elif char in '\r\n':
            if char == '\r' and index + 1 < length and text[index + 1] == '\n':
                index += 1
            current_record.append(''.join(current_cell))
            records.append(current_record)
            current_record = []
            current_cell = []
        else:
            current_cell.append(char)

        index += 1

    current_record.append(''.join(current_cell))
    records.append(current_record)

    return records


def parse_csv(text: str) -> ParsedTabular:
    """Parse CSV text into flat rows.

    Args:
        text: Full file contents

    Returns:
        ParsedTabular with one FlatRow per non-blank data record and the
        trimmed header list
    """
    raw_headers, *body = split_csv_records(text)
    headers = [normalize_header(header, index) for index, header in enumerate(raw_headers)]

    rows = []
    for record in body:
        if not any(cell.strip() for cell in record):
            continue

        mapping = {}
        for header_index, header in enumerate(headers):
            if not header:
                continue
            mapping[header] = record[header_index] if header_index < len(record) else ''

        rows.append(FlatRow.from_mapping(mapping))

    return ParsedTabular(rows=rows, headers=headers)
