"""
Encryption primitives for protected fields.

This module provides the canonical codec that turns field values into
bytes and the deterministic cipher that encrypts them.
"""

from .cipher import CipherEngine, derive_key_and_iv
from .codec import CanonicalCodec, FieldKind, format_timestamp, parse_timestamp

__all__ = [
    "CipherEngine",
    "derive_key_and_iv",
    "CanonicalCodec",
    "FieldKind",
    "format_timestamp",
    "parse_timestamp",
]
