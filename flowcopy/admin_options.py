#!/usr/bin/env python3
"""
Admin Options Module

Project-scoped vocabularies for the classification fields of a node (tone,
polarity, concept, ...). These are not owned by any node; nodes pick values
from them and imports merge new values into them.
"""

from typing import Any, Dict, Iterable, List

GLOBAL_OPTION_FIELDS = (
    'tone',
    'polarity',
    'reversibility',
    'concept',
    'action_type_name',
    'action_type_color',
    'card_style',
)

DEFAULT_GLOBAL_OPTIONS = {
    'tone': ['neutral', 'friendly', 'formal', 'urgent'],
    'polarity': ['neutral', 'positive', 'destructive'],
    'reversibility': ['reversible', 'irreversible'],
    'concept': ['Entry point', 'Confirmation', 'Error handling'],
    'action_type_name': ['Submit Data', 'Acknowledge', 'Navigate'],
    'action_type_color': ['#4f46e5', '#047857', '#dc2626'],
    'card_style': ['default', 'subtle', 'warning', 'success'],
}


def clone_admin_options(options: Dict[str, List[str]]) -> Dict[str, List[str]]:
    return {option_field: list(options[option_field]) for option_field in GLOBAL_OPTION_FIELDS}


def default_admin_options() -> Dict[str, List[str]]:
    return clone_admin_options(DEFAULT_GLOBAL_OPTIONS)


def unique_trimmed_strings(values: Iterable[str]) -> List[str]:
    """Trim values, drop empties and duplicates, keep first-seen order."""
    seen = set()
    unique_values = []
    for value in values:
        trimmed = value.strip()
        if not trimmed or trimmed in seen:
            continue
        seen.add(trimmed)
        unique_values.append(trimmed)
    return unique_values


def first_option_or_fallback(options: List[str], fallback: str) -> str:
    for option in options:
        if option.strip():
            return option.strip()
    return fallback


def _ensure_list_of_strings(value: Any, fallback: List[str]) -> List[str]:
    if not isinstance(value, list):
        return list(fallback)

    valid_items = [item for item in value if isinstance(item, str)]
    return valid_items if valid_items else list(fallback)


def normalize_admin_options(value: Any) -> Dict[str, List[str]]:
    """Coerce arbitrary decoded JSON into a complete option set.

    Any field that is missing, not a list, or has no string entries falls
    back to its default vocabulary.
    """
    source = value if isinstance(value, dict) else {}
    return {
        option_field: _ensure_list_of_strings(source.get(option_field),
                                              DEFAULT_GLOBAL_OPTIONS[option_field])
        for option_field in GLOBAL_OPTION_FIELDS
    }


def merge_admin_options(base: Dict[str, List[str]],
                        incoming: Dict[str, List[str]]) -> Dict[str, List[str]]:
    """Union of two option sets (trimmed, de-duplicated, base values first)."""
    return {
        option_field: unique_trimmed_strings(list(base[option_field]) + list(incoming[option_field]))
        for option_field in GLOBAL_OPTION_FIELDS
    }


def sync_admin_options_with_nodes(base: Dict[str, List[str]], nodes) -> Dict[str, List[str]]:
    """Add every classification value a node uses to its vocabulary.

    Args:
        base: Option set to extend
        nodes: Nodes whose content may reference values not yet in ``base``

    Returns:
        A new, normalized option set
    """
    merged = clone_admin_options(base)

    for option_field in GLOBAL_OPTION_FIELDS:
        for node in nodes:
            value = node.data.get(option_field)
            if not isinstance(value, str):
                continue

            value = value.strip()
            if not value or value in merged[option_field]:
                continue

            merged[option_field].append(value)

    return normalize_admin_options(merged)
