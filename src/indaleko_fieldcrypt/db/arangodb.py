"""
ArangoDB binding for field encryption.

This module wraps python-arango collections so that protected fields are
encrypted on every save, decrypted on every load, and rewritten in every
partial update, following the hook contract in ``interceptors.hooks``.
"""

import json
import logging
import sys
from collections.abc import Mapping, MutableMapping
from datetime import datetime
from typing import Any, Generic, TypeVar

from arango import ArangoClient
from arango.exceptions import (
    ArangoError,
    CollectionCreateError,
    DocumentGetError,
    DocumentInsertError,
    DocumentReplaceError,
    DocumentUpdateError,
)
from pydantic import BaseModel, TypeAdapter

from ..config import FieldCryptConfig
from ..encryption import format_timestamp
from ..interceptors import FieldEncryptionHooks
from ..interceptors.update import OPERATOR_PREFIX, SET_OPERATOR
from ..models import FieldPolicy


logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

UNSET_OPERATOR = "$unset"

# Arango document metadata returned by insert/replace/update
_METADATA_KEYS = ("_id", "_key", "_rev")


def _json_default(value: object) -> str:
    if isinstance(value, datetime):
        return format_timestamp(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize(document: object) -> str:
    """Serialize a request body, rendering datetimes as timestamp text."""
    return json.dumps(document, default=_json_default)


class EncryptedCollection(Generic[M]):
    """
    An ArangoDB collection whose documents carry protected fields.

    Documents go in as models or dicts and come out as decrypted dicts
    that still include the bookkeeping fields and Arango metadata.
    """

    def __init__(
        self,
        collection: Any,
        model_cls: type[M],
        policy: FieldPolicy,
    ) -> None:
        """
        Initialize the encrypted collection.

        Args:
            collection: A python-arango collection
            model_cls: The pydantic model class of the documents
            policy: The field policy for the model
        """
        self.collection = collection
        self.model_cls = model_cls
        self.policy = policy
        self.hooks = FieldEncryptionHooks(policy)

        # Cast layer: one adapter per declared and bookkeeping field
        self._adapters: dict[str, TypeAdapter] = {
            name: TypeAdapter(annotation)
            for name, annotation in policy.document_schema().items()
        }

    def save(self, document: M | Mapping[str, Any], key: str | None = None) -> dict[str, Any]:
        """
        Encrypt and store a document.

        The document is inserted, or replaced when it already has a key.
        The caller's object is not modified.

        Args:
            document: A model instance or a document dict
            key: Optional document key to replace

        Returns:
            The stored (encrypted) document with Arango metadata
        """
        if isinstance(document, BaseModel):
            doc = document.model_dump()
        else:
            doc = dict(document)
        if key is not None:
            doc["_key"] = key

        self.hooks.before_save(doc)

        try:
            if "_key" in doc and self.collection.has(doc["_key"]):
                meta = self.collection.replace(doc)
            else:
                meta = self.collection.insert(doc)
        except (DocumentInsertError, DocumentReplaceError) as e:
            logger.error("Failed to save document in %s: %s", self.policy.schema_name, e)
            raise

        doc.update({k: meta[k] for k in _METADATA_KEYS if k in meta})
        return doc

    def get(self, key: str) -> dict[str, Any] | None:
        """
        Load and decrypt a document by key.

        Args:
            key: The document key

        Returns:
            The decrypted document, or None if not found
        """
        try:
            doc = self.collection.get(key)
        except DocumentGetError as e:
            logger.error("Failed to get document %s: %s", key, e)
            raise
        return self.hooks.after_load(doc)

    def get_model(self, key: str) -> M | None:
        """
        Load a document by key as a model instance.

        Args:
            key: The document key

        Returns:
            The model, or None if not found
        """
        doc = self.get(key)
        if doc is None:
            return None
        return self.model_cls.model_validate(doc)

    def find(self, filters: Mapping[str, Any], limit: int | None = None) -> list[dict[str, Any]]:
        """
        Load and decrypt documents matching an example.

        Filters on protected fields must use ciphertext, since that is what
        is stored.

        Args:
            filters: Attribute values to match
            limit: Maximum number of results to return

        Returns:
            List of decrypted documents
        """
        cursor = self.collection.find(dict(filters), limit=limit)
        return [self.hooks.after_load(doc) for doc in cursor]

    def update(self, key: str, payload: MutableMapping[str, Any]) -> dict[str, Any]:
        """
        Apply a partial update to one document.

        Args:
            key: The document key
            payload: Flat fields and/or $set/$unset sections

        Returns:
            Arango metadata of the updated document
        """
        patch = self._prepare_update({"_key": key}, payload)
        patch["_key"] = key

        try:
            return self.collection.update(patch, merge=False, keep_none=False)
        except DocumentUpdateError as e:
            logger.error("Failed to update document %s: %s", key, e)
            raise

    def update_match(self, filters: Mapping[str, Any], payload: MutableMapping[str, Any]) -> int:
        """
        Apply a partial update to every matching document.

        Args:
            filters: Attribute values to match
            payload: Flat fields and/or $set/$unset sections

        Returns:
            Number of documents updated
        """
        patch = self._prepare_update(filters, payload)

        try:
            return self.collection.update_match(dict(filters), patch, merge=False, keep_none=False)
        except DocumentUpdateError as e:
            logger.error("Failed to update documents in %s: %s", self.policy.schema_name, e)
            raise

    def find_and_update(
        self, filters: Mapping[str, Any], payload: MutableMapping[str, Any]
    ) -> dict[str, Any] | None:
        """
        Update the first matching document and return its new version.

        Args:
            filters: Attribute values to match
            payload: Flat fields and/or $set/$unset sections

        Returns:
            The decrypted updated document, or None if nothing matched
        """
        matches = list(self.collection.find(dict(filters), limit=1))
        if not matches:
            return None

        key = matches[0]["_key"]
        self.update(key, payload)
        return self.get(key)

    def _prepare_update(
        self, filters: Mapping[str, Any], payload: MutableMapping[str, Any]
    ) -> dict[str, Any]:
        """Rewrite, cast and flatten an update payload into an Arango patch."""
        for key in payload:
            if key.startswith(OPERATOR_PREFIX) and key not in (SET_OPERATOR, UNSET_OPERATOR):
                raise ValueError(f"Unsupported update operator: {key}")

        self.hooks.before_update(filters, payload)

        patch: dict[str, Any] = {
            k: v for k, v in payload.items() if not k.startswith(OPERATOR_PREFIX)
        }
        patch.update(payload.get(SET_OPERATOR, {}))
        self._cast(patch)

        for name in payload.get(UNSET_OPERATOR, {}):
            patch[name] = None
            if self.policy.is_encrypted_field(name):
                # An unset protected field is plaintext again
                patch.setdefault(self.policy.marker_name(name), False)
                digest = self.policy.digest_name(name)
                if digest is not None:
                    patch.setdefault(digest, "")

        return patch

    def _cast(self, assignments: Mapping[str, Any]) -> None:
        """
        Validate update values against the declared field types.

        Raises:
            pydantic.ValidationError: If a value does not fit its field
        """
        for name, value in assignments.items():
            adapter = self._adapters.get(name)
            if adapter is not None:
                adapter.validate_python(value)


class ArangoDBClient:
    """
    ArangoDB client for encrypted collections.

    This client connects using the configured credentials and hands out
    EncryptedCollection wrappers for model classes.
    """

    def __init__(self) -> None:
        """
        Initialize the ArangoDB client.

        Connection failures are fatal.
        """
        db_config = FieldCryptConfig.get_database_credentials()
        db_url = FieldCryptConfig.get_database_url()

        try:
            self.client = ArangoClient(hosts=db_url, serializer=serialize)

            self.db = self.client.db(
                name=db_config["database"],
                username=db_config["username"],
                password=db_config["password"],
                auth_method="basic",
                verify=True,
            )
        except ArangoError as e:
            logger.critical("Failed to connect to ArangoDB at %s: %s", db_url, e)
            sys.exit(1)

    def _ensure_collection_exists(self, name: str) -> Any:
        """
        Get a collection, creating it if it does not exist.

        Args:
            name: Name of the collection

        Returns:
            The python-arango collection
        """
        try:
            if not self.db.has_collection(name):
                logger.info("Creating collection: %s", name)
                self.db.create_collection(name)
        except CollectionCreateError as e:
            logger.critical("Failed to create collection %s: %s", name, e)
            sys.exit(1)

        return self.db.collection(name)

    def collection(
        self,
        name: str,
        model_cls: type[M],
        policy: FieldPolicy | None = None,
    ) -> EncryptedCollection[M]:
        """
        Get an encrypted collection for a model.

        Args:
            name: Name of the collection
            model_cls: The pydantic model class of the documents
            policy: Optional field policy; built from configuration if omitted

        Returns:
            The encrypted collection
        """
        if policy is None:
            policy = FieldCryptConfig.policy_for(model_cls)
        return EncryptedCollection(self._ensure_collection_exists(name), model_cls, policy)

    def close(self) -> None:
        """Close the database connection."""
        self.client.close()
