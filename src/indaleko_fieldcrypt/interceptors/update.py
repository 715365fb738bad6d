"""
Update interceptor.

This module rewrites partial-update payloads before they reach the store,
so protected fields are written as ciphertext without loading the target
document. A payload is either a flat mapping of fields to new values, a
mapping of update operators (``$set`` and friends), or a mix of both.
"""

import logging
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..models import FieldPolicy
from .lifecycle import encrypt_value


logger = logging.getLogger(__name__)

OPERATOR_PREFIX = "$"
SET_OPERATOR = "$set"


class UpdateShape(str, Enum):
    """How an update payload names the fields it writes."""

    # Field names at the top level only
    FLAT = "flat"

    # Update operators only, fields nested under $set
    OPERATOR = "operator"

    # Both top-level fields and operators
    MIXED = "mixed"


@dataclass
class ParsedUpdate:
    """
    An update payload classified by shape.

    Sections are the mappings that hold field assignments: the payload
    itself for top-level fields and/or its $set section. They are the
    payload's own objects, so rewriting a section rewrites the payload.
    """

    shape: UpdateShape
    payload: MutableMapping[str, Any]
    sections: list[MutableMapping[str, Any]] = field(default_factory=list)

    def assigns(self, name: str) -> bool:
        """Check whether any section writes the given field."""
        return any(name in section for section in self.sections)


def parse_update(payload: MutableMapping[str, Any]) -> ParsedUpdate:
    """
    Classify an update payload and collect its writable sections.

    Args:
        payload: The update payload

    Returns:
        The parsed update

    Raises:
        TypeError: If the payload or its $set section is not a mapping
    """
    if not isinstance(payload, MutableMapping):
        raise TypeError(f"Update payload must be a mapping, got {type(payload).__name__}")

    has_operators = any(key.startswith(OPERATOR_PREFIX) for key in payload)
    has_fields = any(not key.startswith(OPERATOR_PREFIX) for key in payload)

    if has_operators and has_fields:
        shape = UpdateShape.MIXED
    elif has_operators:
        shape = UpdateShape.OPERATOR
    else:
        shape = UpdateShape.FLAT

    parsed = ParsedUpdate(shape=shape, payload=payload)
    if has_fields:
        parsed.sections.append(payload)

    if SET_OPERATOR in payload:
        set_section = payload[SET_OPERATOR]
        if not isinstance(set_section, MutableMapping):
            raise TypeError(f"{SET_OPERATOR} must be a mapping, got {type(set_section).__name__}")
        parsed.sections.append(set_section)

    return parsed


class UpdateInterceptor:
    """
    Encrypts protected fields inside partial-update payloads.

    A caller that writes a field's marker explicitly in the same update is
    trusted: the field's value is passed through unchanged. This is how an
    already-encrypted value, or deliberate plaintext, is stored.

    Setting a field to None clears it. The marker is reset and any digest
    emptied in the same section, so the old ciphertext is not read back.
    """

    def __init__(self, policy: FieldPolicy) -> None:
        self.policy = policy

    def rewrite(self, payload: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        """
        Rewrite an update payload in place.

        Args:
            payload: The update payload

        Returns:
            The same payload
        """
        parsed = parse_update(payload)
        policy = self.policy

        for name in policy.fields:
            marker = policy.marker_name(name)
            if parsed.assigns(marker):
                logger.debug("Marker for %s set explicitly, leaving value as given", name)
                continue

            for section in parsed.sections:
                if name not in section:
                    continue

                digest = policy.digest_name(name)
                if section[name] is None:
                    # A cleared field is plaintext; drop any stale ciphertext
                    section[marker] = False
                    if digest is not None:
                        section[digest] = ""
                    logger.debug("Cleared field %s on %s", name, policy.schema_name)
                    continue

                ciphertext = encrypt_value(policy, name, section[name])
                if digest is None:
                    section[name] = ciphertext
                else:
                    section[digest] = ciphertext
                    section[name] = None
                section[marker] = True
                logger.debug(
                    "Encrypted field %s in %s update on %s",
                    name,
                    parsed.shape.value,
                    policy.schema_name,
                )

        return payload
