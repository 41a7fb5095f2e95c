#!/usr/bin/env python3
"""
Identity Hasher

Deterministic string -> fixed-width token hashing used for project
sequence ids.

The hash is a 32-bit FNV-1a style rolling hash over UTF-16 code units so the
same text gives the same token no matter which runtime produced it.
"""

HASH_SEED = 2166136261
TOKEN_WIDTH = 7

_MASK_32 = 0xFFFFFFFF
_BASE36_DIGITS = '0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ'


def _utf16_code_units(text: str):
    """Yield the UTF-16 code units of text (surrogate pairs split)."""
    encoded = text.encode('utf-16-le', 'surrogatepass')
    for index in range(0, len(encoded), 2):
        yield encoded[index] | (encoded[index + 1] << 8)


def to_base36(value: int) -> str:
    """Render a non-negative integer as an upper-case base-36 string."""
    if value == 0:
        return '0'

    digits = []
    while value > 0:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])

    return ''.join(reversed(digits))


def rolling_hash(text: str) -> int:
    """Calculate the unsigned 32-bit rolling hash of text.

    Args:
        text: Any string, including the empty string

    Returns:
        Integer in the range [0, 2**32)
    """
    value = HASH_SEED

    for unit in _utf16_code_units(text):
        value = (value ^ unit) & _MASK_32
        value = (value
                 + (value << 1)
                 + (value << 4)
                 + (value << 7)
                 + (value << 8)
                 + (value << 24)) & _MASK_32

    return value


def hash_to_base36(text: str) -> str:
    """Hash text into a 7-character upper-case base-36 token.

    Example:
        hash_to_base36('')  # '0ZTNTFP'
    """
    return to_base36(rolling_hash(text)).rjust(TOKEN_WIDTH, '0')
