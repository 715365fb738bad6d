"""
Hook contract for document stores.

A store binding calls these three hooks at fixed points: before a document
is saved, after a document is loaded, and before a partial update runs.
"""

from collections.abc import MutableMapping
from typing import Any

from ..models import FieldPolicy
from .lifecycle import LifecycleInterceptor
from .update import UpdateInterceptor


class FieldEncryptionHooks:
    """Binds one schema's field policy to the store hook points."""

    def __init__(self, policy: FieldPolicy) -> None:
        """
        Initialize the hooks.

        Args:
            policy: The field policy of the schema being stored
        """
        self.policy = policy
        self.lifecycle = LifecycleInterceptor(policy)
        self.updates = UpdateInterceptor(policy)

    def before_save(self, doc: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        """Encrypt a document about to be inserted or replaced."""
        return self.lifecycle.encrypt_document(doc)

    def after_load(
        self, doc: MutableMapping[str, Any] | None
    ) -> MutableMapping[str, Any] | None:
        """Decrypt a document just read from the store; None means not found."""
        if doc is None:
            return None
        return self.lifecycle.decrypt_document(doc)

    def before_update(
        self,
        filters: object,
        payload: MutableMapping[str, Any],
    ) -> tuple[object, MutableMapping[str, Any]]:
        """
        Rewrite an update payload about to be executed.

        Args:
            filters: The update's filter, passed through untouched
            payload: The update payload, rewritten in place

        Returns:
            Tuple of (filters, payload)
        """
        return filters, self.updates.rewrite(payload)
