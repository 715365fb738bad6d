"""
Lifecycle interceptor.

This module encrypts protected fields of a fully materialized document
right before it is saved, and decrypts them right after it is loaded.
Each field moves independently between its plaintext and encrypted state,
tracked by its marker companion, so both directions are idempotent.
"""

import logging
from collections.abc import MutableMapping
from typing import Any

from ..encryption import CanonicalCodec
from ..errors import CipherError, CodecError
from ..models import FieldPolicy


logger = logging.getLogger(__name__)


def encrypt_value(policy: FieldPolicy, name: str, value: Any) -> str:
    """
    Encode and encrypt one protected field value.

    Args:
        policy: The field policy of the document's schema
        name: The protected field name
        value: The plaintext value

    Returns:
        Hex ciphertext

    Raises:
        CodecError: If the value does not match the field's kind
    """
    try:
        payload = CanonicalCodec.encode(policy.kind_of(name), value)
    except CodecError as e:
        raise CodecError(f"Field '{name}': {e}") from e
    return policy.cipher.encrypt(payload)


def decrypt_value(policy: FieldPolicy, name: str, ciphertext: str) -> Any:
    """
    Decrypt and decode one protected field value.

    Args:
        policy: The field policy of the document's schema
        name: The protected field name
        ciphertext: Hex ciphertext

    Returns:
        The plaintext value

    Raises:
        CipherError: If the ciphertext is malformed or the secret is wrong
        CodecError: If the decrypted text is not valid for the field's kind
    """
    try:
        payload = policy.cipher.decrypt(ciphertext)
    except CipherError as e:
        raise CipherError(f"Field '{name}': {e}") from e

    try:
        return CanonicalCodec.decode(policy.kind_of(name), payload)
    except CodecError as e:
        raise CodecError(f"Field '{name}': {e}") from e


class LifecycleInterceptor:
    """
    Encrypts and decrypts protected fields on whole documents.

    Documents are plain mutable mappings (the dump of a model, or the raw
    dict read from the store). They are changed in place.
    """

    def __init__(self, policy: FieldPolicy) -> None:
        self.policy = policy

    def encrypt_document(self, doc: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        """
        Encrypt every protected field that is still plaintext.

        String fields get their ciphertext in place. Other fields are
        removed and their ciphertext goes into the digest companion.
        Fields with no value are left alone.

        Args:
            doc: The document to encrypt in place

        Returns:
            The same document
        """
        policy = self.policy
        policy.apply_defaults(doc)

        for name in policy.fields:
            marker = policy.marker_name(name)
            if doc.get(marker):
                continue

            value = doc.get(name)
            if value is None:
                continue

            ciphertext = encrypt_value(policy, name, value)
            digest = policy.digest_name(name)
            if digest is None:
                doc[name] = ciphertext
            else:
                doc[digest] = ciphertext
                del doc[name]
            doc[marker] = True
            logger.debug("Encrypted field %s on %s", name, policy.schema_name)

        return doc

    def decrypt_document(self, doc: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        """
        Decrypt every protected field that currently holds ciphertext.

        Args:
            doc: The document to decrypt in place

        Returns:
            The same document

        Raises:
            CipherError: If a field's ciphertext is missing, malformed or
                was written with a different secret
            CodecError: If a decrypted field is not valid canonical text
        """
        policy = self.policy

        for name in policy.fields:
            marker = policy.marker_name(name)
            if not doc.get(marker):
                continue

            digest = policy.digest_name(name)
            ciphertext = doc.get(name if digest is None else digest)
            if not isinstance(ciphertext, str) or (digest is not None and not ciphertext):
                raise CipherError(f"Field '{name}' is marked encrypted but holds no ciphertext")

            doc[name] = decrypt_value(policy, name, ciphertext)
            if digest is not None:
                doc[digest] = ""
            doc[marker] = False
            logger.debug("Decrypted field %s on %s", name, policy.schema_name)

        return doc
