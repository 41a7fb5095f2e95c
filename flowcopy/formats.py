#!/usr/bin/env python3
"""
Tabular format helpers: detection, dispatch and export file names.
"""

from datetime import datetime, timezone
from typing import Optional

from flowcopy.csv_codec import build_csv, parse_csv
from flowcopy.errors import UnrecognizedFormatError
from flowcopy.flat_rows import ParsedTabular
from flowcopy.xml_codec import build_xml, parse_xml

FORMAT_CSV = 'csv'
FORMAT_XML = 'xml'
SUPPORTED_FORMATS = (FORMAT_CSV, FORMAT_XML)

MIME_TYPES = {
    FORMAT_CSV: 'text/csv;charset=utf-8',
    FORMAT_XML: 'application/xml',
}


def detect_format(file_name: str, text: str) -> Optional[str]:
    """Decide whether a file is CSV or XML.

    The extension wins; otherwise the content is sniffed: a leading '<'
    (after whitespace) means XML, any comma means CSV.

    Returns:
        'csv', 'xml', or None if neither applies
    """
    lowered_file_name = (file_name or '').lower()

    if lowered_file_name.endswith('.csv'):
        return FORMAT_CSV

    if lowered_file_name.endswith('.xml'):
        return FORMAT_XML

    trimmed = text.lstrip()
    if trimmed.startswith('<'):
        return FORMAT_XML

    if ',' in trimmed:
        return FORMAT_CSV

    return None


def parse_tabular(file_name: str, text: str) -> ParsedTabular:
    """Detect the format of text and parse it.

    Raises:
        UnrecognizedFormatError: If the format can't be detected
        MalformedDocumentError: If XML text doesn't parse
    """
    tabular_format = detect_format(file_name, text)
    if tabular_format == FORMAT_CSV:
        return parse_csv(text)
    if tabular_format == FORMAT_XML:
        return parse_xml(text)
    raise UnrecognizedFormatError()


def serialize_rows(rows, tabular_format: str) -> str:
    if tabular_format == FORMAT_CSV:
        return build_csv(rows)
    if tabular_format == FORMAT_XML:
        return build_xml(rows)
    raise UnrecognizedFormatError(f"Unsupported export format: {tabular_format}")


def iso_timestamp(now: Optional[datetime] = None) -> str:
    """UTC ISO 8601 timestamp with millisecond precision, e.g. 2025-01-15T10:30:00.000Z."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime('%Y-%m-%dT%H:%M:%S') + f".{now.microsecond // 1000:03d}Z"


def build_download_file_name(project_id: str, extension: str,
                             now: Optional[datetime] = None) -> str:
    """File name for an export, e.g. 'PRJ-X-2025-01-15T10-30-00-000Z.csv'.

    Args:
        project_id: Active project id
        extension: 'csv' or 'xml'
        now: Timestamp to use (defaults to the current UTC time)
    """
    timestamp = iso_timestamp(now)
    return f"{project_id}-{timestamp.replace(':', '-').replace('.', '-')}.{extension}"
