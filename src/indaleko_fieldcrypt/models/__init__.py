"""
Schema-level models for field encryption.

This module provides the field policy that maps a document schema's
protected fields to their kinds and bookkeeping companions.
"""

from .field_policy import FieldPolicy, infer_kind, MARKER_PREFIX, DIGEST_SUFFIX

__all__ = ["FieldPolicy", "infer_kind", "MARKER_PREFIX", "DIGEST_SUFFIX"]
