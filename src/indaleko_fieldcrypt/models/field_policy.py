"""
Field policy for protected document schemas.

A FieldPolicy is built once per schema. It records which fields are
protected, what kind of value each one holds, and the names of the
bookkeeping companions that track encryption state. Both interceptors
read from it; nothing writes to it after construction.
"""

import logging
import types
from collections.abc import Mapping, MutableMapping, Sequence
from datetime import datetime
from types import MappingProxyType
from typing import Annotated, Any, Union, get_args, get_origin, is_typeddict

from pydantic import BaseModel

from ..encryption import CipherEngine, FieldKind
from ..errors import ConfigError


logger = logging.getLogger(__name__)

# Bookkeeping names are __enc_<field> (marker) and __enc_<field>_d (digest)
MARKER_PREFIX = "__enc_"
DIGEST_SUFFIX = "_d"

_NONE_TYPE = type(None)


def _unwrap(annotation: Any) -> Any:
    """Strip Annotated and Optional wrappers from an annotation."""
    origin = get_origin(annotation)

    if origin is Annotated:
        return _unwrap(get_args(annotation)[0])

    if origin is Union or origin is getattr(types, "UnionType", None):
        members = [arg for arg in get_args(annotation) if arg is not _NONE_TYPE]
        if len(members) != 1:
            raise ConfigError(f"Union annotation {annotation!r} cannot be protected")
        return _unwrap(members[0])

    return annotation


def infer_kind(annotation: Any) -> FieldKind:
    """
    Infer the field kind from a declared type annotation.

    Args:
        annotation: The type annotation of the field

    Returns:
        The FieldKind the field's values will be encoded as

    Raises:
        ConfigError: If the annotation has no supported kind
    """
    annotation = _unwrap(annotation)
    origin = get_origin(annotation) or annotation

    if not isinstance(origin, type):
        raise ConfigError(f"Unsupported type for a protected field: {annotation!r}")

    if issubclass(origin, str):
        return FieldKind.STRING
    if issubclass(origin, (bytes, bytearray)):
        raise ConfigError("Binary fields cannot be protected")
    if issubclass(origin, datetime):
        return FieldKind.TIMESTAMP
    if issubclass(origin, (bool, int, float)):
        return FieldKind.SCALAR
    if issubclass(origin, (Mapping, BaseModel)) or is_typeddict(origin):
        return FieldKind.OBJECT
    if issubclass(origin, (Sequence, set, frozenset)):
        return FieldKind.ARRAY

    raise ConfigError(f"Unsupported type for a protected field: {annotation!r}")


class FieldPolicy:
    """
    Registry of protected fields for one schema.

    The policy owns the cipher for its fields, so the secret is turned into
    a key exactly once per schema.
    """

    def __init__(
        self,
        schema: Mapping[str, Any],
        fields: Sequence[str],
        secret: str,
        *,
        schema_name: str | None = None,
    ) -> None:
        """
        Initialize a field policy.

        Args:
            schema: Mapping of field names to their declared annotations
            fields: Names of the fields to protect, in order
            secret: The secret used to derive the encryption key
            schema_name: Optional name of the schema, for messages

        Raises:
            ConfigError: If the field list or secret is invalid
        """
        self.schema_name = schema_name or "document"

        if not isinstance(secret, str) or not secret.strip():
            raise ConfigError(f"No encryption secret configured for {self.schema_name}")
        if isinstance(fields, str) or not fields:
            raise ConfigError(f"No protected fields configured for {self.schema_name}")

        kinds: dict[str, FieldKind] = {}
        for name in fields:
            if name in kinds:
                raise ConfigError(f"Field '{name}' is listed more than once")
            if name.startswith(MARKER_PREFIX):
                raise ConfigError(f"Field '{name}' is a bookkeeping field and cannot be protected")
            if name not in schema:
                raise ConfigError(f"Field '{name}' does not exist on {self.schema_name}")
            kinds[name] = infer_kind(schema[name])

        for name, kind in kinds.items():
            companions = [self.marker_name(name)]
            if kind.is_opaque:
                companions.append(self.digest_name_for(name))
            for companion in companions:
                if companion in schema:
                    raise ConfigError(
                        f"{self.schema_name} already declares bookkeeping field '{companion}'"
                    )

        self._fields = tuple(kinds)
        self._kinds = MappingProxyType(kinds)
        self._schema = MappingProxyType(dict(schema))
        self.cipher = CipherEngine(secret)

        logger.info(
            "Protecting %d field(s) on %s: %s",
            len(self._fields),
            self.schema_name,
            ", ".join(self._fields),
        )

    @classmethod
    def for_model(
        cls, model_cls: type[BaseModel], fields: Sequence[str], secret: str
    ) -> "FieldPolicy":
        """
        Build a policy from a pydantic model class.

        Args:
            model_cls: The model class describing the document schema
            fields: Names of the fields to protect
            secret: The secret used to derive the encryption key

        Returns:
            A new FieldPolicy
        """
        schema = {name: info.annotation for name, info in model_cls.model_fields.items()}
        return cls(schema, fields, secret, schema_name=model_cls.__name__)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(schema={self.schema_name!r}, fields={self._fields!r})"

    @property
    def fields(self) -> tuple[str, ...]:
        """Protected field names in configuration order."""
        return self._fields

    def is_encrypted_field(self, name: str) -> bool:
        return name in self._kinds

    def kind_of(self, name: str) -> FieldKind:
        return self._kinds[name]

    @staticmethod
    def marker_name(name: str) -> str:
        return f"{MARKER_PREFIX}{name}"

    @staticmethod
    def digest_name_for(name: str) -> str:
        return f"{MARKER_PREFIX}{name}{DIGEST_SUFFIX}"

    def digest_name(self, name: str) -> str | None:
        """Digest companion name, or None for string fields which have none."""
        if self._kinds[name].is_opaque:
            return self.digest_name_for(name)
        return None

    def companion_defaults(self) -> dict[str, object]:
        """
        Get the default values of every bookkeeping field.

        Returns:
            Dictionary of companion names to their defaults
        """
        defaults: dict[str, object] = {}
        for name in self._fields:
            defaults[self.marker_name(name)] = False
            digest = self.digest_name(name)
            if digest is not None:
                defaults[digest] = ""
        return defaults

    def apply_defaults(self, doc: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        """Fill in missing bookkeeping fields on a document, in place."""
        for key, value in self.companion_defaults().items():
            doc.setdefault(key, value)
        return doc

    def is_bookkeeping_field(self, name: str) -> bool:
        return name in self.companion_defaults()

    def document_schema(self) -> dict[str, Any]:
        """
        Get the protected schema: declared fields plus bookkeeping companions.

        Returns:
            Dictionary of field names to annotations
        """
        schema = dict(self._schema)
        for name in self._fields:
            schema[self.marker_name(name)] = bool
            digest = self.digest_name(name)
            if digest is not None:
                schema[digest] = str
        return schema
