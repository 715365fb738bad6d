"""
Interceptors for protected document fields.

This module provides the lifecycle interceptor for whole documents, the
update interceptor for partial-update payloads, and the hook contract a
document store binding calls.
"""

from .hooks import FieldEncryptionHooks
from .lifecycle import LifecycleInterceptor, encrypt_value, decrypt_value
from .update import UpdateInterceptor, UpdateShape, ParsedUpdate, parse_update

__all__ = [
    "FieldEncryptionHooks",
    "LifecycleInterceptor",
    "encrypt_value",
    "decrypt_value",
    "UpdateInterceptor",
    "UpdateShape",
    "ParsedUpdate",
    "parse_update",
]
