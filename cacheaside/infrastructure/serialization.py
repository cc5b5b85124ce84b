"""
Cache value serialization.

Values kept in a remote store travel as indented UTF-8 JSON. ``None`` fields
are left out on encode and trailing commas are tolerated on decode. Typed
values (pydantic models, lists of them, dataclasses) are rebuilt through a
pydantic ``TypeAdapter`` so they round-trip to an equal value.
"""

import json
from functools import lru_cache
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from ..domain.cache.exceptions import CacheSerializationException


@lru_cache(maxsize=128)
def _adapter(value_type: Any) -> TypeAdapter:
    return TypeAdapter(value_type)


def strip_trailing_commas(text: str) -> str:
    """Drop commas that directly precede a closing bracket or brace."""
    result = []
    in_string = False
    escaped = False
    pending_comma = None

    for char in text:
        if in_string:
            result.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if pending_comma is not None:
            if char.isspace():
                pending_comma.append(char)
                continue
            if char not in "]}":
                result.append(",")
            result.extend(pending_comma)
            pending_comma = None

        if char == ",":
            pending_comma = []
        else:
            if char == '"':
                in_string = True
            result.append(char)

    if pending_comma is not None:
        result.append(",")
        result.extend(pending_comma)

    return "".join(result)


class JsonCacheSerializer:
    """Encodes cache values to JSON bytes and back."""

    def __init__(self, indent: Optional[int] = 2, encoding: str = "utf-8"):
        self.indent = indent
        self.encoding = encoding

    def encode(self, value: Any, key: Optional[str] = None) -> bytes:
        """Serialize a value to bytes."""
        try:
            payload = to_jsonable_python(value, exclude_none=True)
            return json.dumps(payload, indent=self.indent, ensure_ascii=False).encode(
                self.encoding
            )
        except (PydanticSerializationError, TypeError, ValueError) as e:
            raise CacheSerializationException("encode", key=key, original_error=e)

    def decode(
        self, data: bytes, value_type: Optional[Any] = None, key: Optional[str] = None
    ) -> Any:
        """Deserialize bytes, validating against ``value_type`` when given."""
        try:
            text = data.decode(self.encoding) if isinstance(data, bytes) else data
            payload = json.loads(strip_trailing_commas(text))
            if value_type is None:
                return payload
            return _adapter(value_type).validate_python(payload)
        except (UnicodeDecodeError, ValueError, ValidationError, TypeError) as e:
            raise CacheSerializationException("decode", key=key, original_error=e)
