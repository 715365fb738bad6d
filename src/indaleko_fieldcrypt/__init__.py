"""
Field Crypt - transparent field-level encryption for document stores.

This package encrypts configured document fields before they are saved and
decrypts them after they are loaded, including fields written through
partial-update payloads.
"""

from .config import FieldCryptConfig
from .errors import FieldEncryptionError, ConfigError, CodecError, CipherError
from .encryption import CanonicalCodec, CipherEngine, FieldKind
from .models import FieldPolicy
from .interceptors import FieldEncryptionHooks, LifecycleInterceptor, UpdateInterceptor

__version__ = "0.1.0"

__all__ = [
    "FieldCryptConfig",
    "FieldEncryptionError",
    "ConfigError",
    "CodecError",
    "CipherError",
    "CanonicalCodec",
    "CipherEngine",
    "FieldKind",
    "FieldPolicy",
    "FieldEncryptionHooks",
    "LifecycleInterceptor",
    "UpdateInterceptor",
]
