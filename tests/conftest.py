"""
Pytest configuration for field encryption tests.
"""

import os
from datetime import datetime, timezone
from typing import Any, Generator

import pytest
from pydantic import BaseModel, Field

from indaleko_fieldcrypt.models import FieldPolicy


SECRET = "icanhazcheezburger"

PROTECTED_FIELDS = ["toEncryptString", "toEncryptObject", "toEncryptArray", "toEncryptDate"]


class NestedFieldEncryption(BaseModel):
    """Document schema with one protected field of each kind."""

    toEncryptString: str
    toEncryptObject: dict[str, str] = Field(default_factory=dict)
    toEncryptArray: list[int] = Field(default_factory=list)
    toEncryptDate: datetime | None = None
    label: str = "plain"


@pytest.fixture
def model_cls() -> type[NestedFieldEncryption]:
    """The protected document schema."""
    return NestedFieldEncryption


@pytest.fixture
def policy() -> FieldPolicy:
    """Field policy protecting every field of NestedFieldEncryption except label."""
    return FieldPolicy.for_model(NestedFieldEncryption, PROTECTED_FIELDS, SECRET)


@pytest.fixture
def plain_document() -> dict[str, Any]:
    """
    A plaintext document with every protected field populated.

    The bookkeeping fields are present with their defaults, as they are on
    any document of a protected schema.
    """
    return {
        "toEncryptString": "hide me!",
        "toEncryptObject": {"nested": "some stuff to encrypt"},
        "toEncryptArray": [1, 2, 3],
        "toEncryptDate": datetime(2017, 1, 28, 22, 4, 8, 338000, tzinfo=timezone.utc),
        "label": "plain",
        "__enc_toEncryptString": False,
        "__enc_toEncryptObject": False,
        "__enc_toEncryptObject_d": "",
        "__enc_toEncryptArray": False,
        "__enc_toEncryptArray_d": "",
        "__enc_toEncryptDate": False,
        "__enc_toEncryptDate_d": "",
    }


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """
    Remove field encryption environment variables during the test.

    The original values are restored afterward.
    """
    keys = [
        "INDALEKO_FIELDCRYPT_SECRET",
        "INDALEKO_DB_URL",
        "INDALEKO_DB_NAME",
        "INDALEKO_DB_USERNAME",
        "INDALEKO_DB_PASSWORD",
        "INDALEKO_LOG_LEVEL",
    ]
    original = {key: os.environ.pop(key, None) for key in keys}

    yield

    for key, value in original.items():
        if value is not None:
            os.environ[key] = value
        elif key in os.environ:
            del os.environ[key]
