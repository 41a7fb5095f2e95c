#!/usr/bin/env python3
"""
XML Codec

Serializes flat rows to XML (rendered from templates/export.xml.jinja2) and
parses XML text back into flat rows.

Document shape:

    <?xml version="1.0" encoding="UTF-8"?>
    <flowcopyExport formatVersion="1">
      <row>
        <project_id>PRJ-X</project_id>
        ...
      </row>
    </flowcopyExport>

The reader is lenient about structure (every <row> element anywhere in the
document counts, unknown child tags are kept aside) but strict about
well-formedness: a document that does not parse raises
MalformedDocumentError instead of quietly yielding zero rows.
"""

import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Sequence

from jinja2 import Environment, FileSystemLoader

from flowcopy.errors import MalformedDocumentError
from flowcopy.flat_rows import BYTE_ORDER_MARK, FLAT_EXPORT_COLUMNS, FlatRow, ParsedTabular

logger = logging.getLogger(__name__)

XML_ROOT_TAG = 'flowcopyExport'
XML_FORMAT_VERSION = '1'
XML_ROW_TAG = 'row'

TEMPLATE_DIR = Path(__file__).parent / 'templates'
TEMPLATE_NAME = 'export.xml.jinja2'

_XML_ESCAPES = (
    ('&', '&amp;'),
    ('<', '&lt;'),
    ('>', '&gt;'),
    ('"', '&quot;'),
    ("'", '&apos;'),
    # Parsers normalize raw carriage returns to '\n'; a character reference survives
    ('\r', '&#13;'),
)


# Code points XML 1.0 does not allow anywhere in a document
_XML_FORBIDDEN_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]')


def escape_xml_text(value: str) -> str:
    """Escape cell text for an XML element body.

    Characters XML 1.0 forbids (most C0 controls, lone surrogates, U+FFFE
    and U+FFFF) are dropped, so such text does not survive an XML round
    trip unchanged. The CSV export keeps it.
    """
    value = _XML_FORBIDDEN_CHARS.sub('', value)
    for raw, entity in _XML_ESCAPES:
        value = value.replace(raw, entity)
    return value


def _create_environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters['xml_escape'] = escape_xml_text
    return env


# =============================================================================
# WRITING
# =============================================================================

def build_xml(rows: Sequence[FlatRow]) -> str:
    """Serialize rows into an export document.

    Args:
        rows: Rows from create_flat_export_rows (or a parser)

    Returns:
        XML text without a trailing newline
    """
    template = _create_environment().get_template(TEMPLATE_NAME)
    return template.render(
        root_tag=XML_ROOT_TAG,
        format_version=XML_FORMAT_VERSION,
        columns=FLAT_EXPORT_COLUMNS,
        rows=[row.to_dict() for row in rows],
    )


# =============================================================================
# READING
# =============================================================================

def parse_xml(text: str) -> ParsedTabular:
    """Parse XML text into flat rows.

    Args:
        text: Full file contents

    Returns:
        ParsedTabular with one FlatRow per <row> element (document order) and
        the child tag names seen, in first-seen order

    Raises:
        MalformedDocumentError: If the text is not well-formed XML
    """
    if text.startswith(BYTE_ORDER_MARK):
        text = text[len(BYTE_ORDER_MARK):]

    try:
        root = ET.fromstring(text.lstrip())
    except ET.ParseError as e:
        logger.warning(f"XML import failed to parse: {e}")
        raise MalformedDocumentError(f"Invalid XML file: {e}") from e

    headers = []
    seen_headers = set()
    rows = []

    for row_element in root.iter(XML_ROW_TAG):
        mapping = {}
        for cell_element in row_element:
            key = cell_element.tag.strip()
            if not key:
                continue
            if key not in seen_headers:
                seen_headers.add(key)
                headers.append(key)
            mapping[key] = ''.join(cell_element.itertext())
        rows.append(FlatRow.from_mapping(mapping))

    return ParsedTabular(rows=rows, headers=headers)
