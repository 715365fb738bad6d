"""
Canonical codec for protected field values.

This module converts native field values to the byte form that gets
encrypted, and back again. Strings are stored as-is; everything else is
rendered as compact JSON text so that it round-trips through any JSON
parser.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ..errors import CodecError


class FieldKind(str, Enum):
    """Value kinds a protected field can have."""

    STRING = "string"
    OBJECT = "object"
    ARRAY = "array"
    TIMESTAMP = "timestamp"
    SCALAR = "scalar"

    @property
    def is_opaque(self) -> bool:
        """Opaque kinds keep their ciphertext in a digest companion field."""
        return self is not FieldKind.STRING


def format_timestamp(value: datetime) -> str:
    """
    Render a datetime as ISO-8601 text with millisecond precision.

    Aware datetimes are converted to UTC and get a ``Z`` suffix. Naive
    datetimes are rendered as they are, with no offset.

    Args:
        value: The datetime to render

    Returns:
        Text such as ``2017-01-28T22:04:08.338Z``
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(text: str) -> datetime:
    """
    Parse text produced by format_timestamp back into a datetime.

    Args:
        text: ISO-8601 timestamp text

    Returns:
        A datetime in UTC when the text carries an offset, otherwise a
        naive datetime

    Raises:
        CodecError: If the text is not an ISO-8601 timestamp
    """
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        value = datetime.fromisoformat(text)
    except ValueError as e:
        raise CodecError(f"Invalid timestamp text: {e}") from e

    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc)


def _json_default(value: object) -> str:
    # Nested datetimes have no JSON type; they are stored as timestamp text
    if isinstance(value, datetime):
        return format_timestamp(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dump_json(value: Any) -> bytes:
    try:
        text = json.dumps(
            value,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
            default=_json_default,
        )
    except (TypeError, ValueError) as e:
        raise CodecError(f"Value cannot be rendered as canonical text: {e}") from e
    return text.encode("utf-8")


class CanonicalCodec:
    """
    Converts field values to and from their canonical byte form.

    The codec is stateless; both methods are static so a single instance
    (or the class itself) can be shared freely.
    """

    # Python type accepted on encode and required after decode, per kind
    _SHAPES: dict[FieldKind, tuple[type, ...]] = {
        FieldKind.STRING: (str,),
        FieldKind.OBJECT: (dict,),
        FieldKind.ARRAY: (list, tuple, set, frozenset),
        FieldKind.TIMESTAMP: (datetime,),
        FieldKind.SCALAR: (int, float, bool),
    }

    @staticmethod
    def encode(kind: FieldKind, value: Any) -> bytes:
        """
        Encode a native value into canonical bytes.

        Args:
            kind: The declared kind of the field
            value: The plaintext value

        Returns:
            UTF-8 bytes of the canonical text

        Raises:
            CodecError: If the value does not match the declared kind
        """
        if not isinstance(value, CanonicalCodec._SHAPES[kind]):
            raise CodecError(
                f"Expected a {kind.value} value, got {type(value).__name__}"
            )

        if kind is FieldKind.STRING:
            return value.encode("utf-8")
        if kind is FieldKind.TIMESTAMP:
            return _dump_json(format_timestamp(value))
        if kind is FieldKind.ARRAY:
            return _dump_json(list(value))
        return _dump_json(value)

    @staticmethod
    def decode(kind: FieldKind, payload: bytes) -> Any:
        """
        Decode canonical bytes back into a native value.

        Args:
            kind: The declared kind of the field
            payload: UTF-8 bytes of the canonical text

        Returns:
            The native value

        Raises:
            CodecError: If the payload is not valid canonical text for the kind
        """
        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CodecError(f"Canonical text is not valid UTF-8: {e}") from e

        if kind is FieldKind.STRING:
            return text

        try:
            value = json.loads(text)
        except json.JSONDecodeError as e:
            raise CodecError(f"Malformed canonical text for {kind.value} field: {e}") from e

        if kind is FieldKind.TIMESTAMP:
            if not isinstance(value, str):
                raise CodecError("Timestamp canonical text must be a JSON string")
            return parse_timestamp(value)

        if kind is FieldKind.ARRAY and not isinstance(value, list):
            raise CodecError(f"Expected a JSON array, got {type(value).__name__}")
        if kind is FieldKind.OBJECT and not isinstance(value, dict):
            raise CodecError(f"Expected a JSON object, got {type(value).__name__}")
        if kind is FieldKind.SCALAR and not isinstance(value, (int, float, bool)):
            raise CodecError(f"Expected a JSON number or boolean, got {type(value).__name__}")

        return value
