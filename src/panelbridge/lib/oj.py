"""Thin JSON helpers backed by orjson."""

from typing import Any

import orjson

JSONDecodeError = orjson.JSONDecodeError


def loads(data: bytes | bytearray | memoryview | str) -> Any:
    """Decode JSON text or bytes."""
    return orjson.loads(data)


def dumps(obj: Any) -> bytes:
    """Encode an object as compact JSON bytes."""
    return orjson.dumps(obj)
