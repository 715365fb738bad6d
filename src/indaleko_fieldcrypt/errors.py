"""
Error types for field encryption.

Configuration mistakes are fatal and surface at setup time. Codec and cipher
errors are per-record failures that surface at runtime from the hook that
hit them.
"""


class FieldEncryptionError(Exception):
    """Base class for all field encryption errors."""


class ConfigError(FieldEncryptionError, ValueError):
    """Invalid field list, schema, or secret."""


class CodecError(FieldEncryptionError, ValueError):
    """A value could not be converted to or from its canonical text."""


class CipherError(FieldEncryptionError, ValueError):
    """Ciphertext is malformed or was produced with a different secret."""
