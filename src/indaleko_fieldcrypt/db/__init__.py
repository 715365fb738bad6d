"""
Database integration for field encryption.

This module provides store bindings that call the field encryption hooks,
with current support for ArangoDB.
"""

from .arangodb import ArangoDBClient, EncryptedCollection

__all__ = ["ArangoDBClient", "EncryptedCollection"]
