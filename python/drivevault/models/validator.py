"""
drivevault/models/validator.py

Validation of decoded JSON (token responses, decrypted credential blobs,
Drive replies) against pydantic-based types. TypeAdapters are built once per
type, since the same few types are validated on every token and upload.
"""

import json
from functools import lru_cache
from typing import Any, Type, TypeVar

from pydantic import TypeAdapter, ValidationError

T = TypeVar("T")


@lru_cache(maxsize=None)
def _adapter(expected_type: Any) -> TypeAdapter:
    return TypeAdapter(expected_type)


def validate_type(obj: Any, expected_type: Type[T]) -> T:
    """
    Check that a decoded JSON value conforms to expected_type.

    Args:
        obj (Any): The value to validate.
        expected_type (Type[T]): A pydantic model or typing construct.

    Returns:
        T: The validated value.

    Raises:
        ValueError: If validation fails.
    """
    try:
        return _adapter(expected_type).validate_python(obj)
    except ValidationError as e:
        raise ValueError(f"Validation failed for type {expected_type}: {e}") from e


def parse_json_as(text: str, expected_type: Type[T]) -> T:
    """
    Parse JSON text and validate the result as expected_type.

    Raises:
        ValueError: If the text is not JSON or the value does not validate.
    """
    return validate_type(json.loads(text), expected_type)
