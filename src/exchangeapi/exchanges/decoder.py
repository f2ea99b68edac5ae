"""Generic JSON decoding into caller-requested shapes."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from .errors import DecodeError

T = TypeVar("T")

_PREVIEW_LENGTH = 200


@lru_cache(maxsize=256)
def _adapter(shape: Any) -> TypeAdapter[Any]:
    return TypeAdapter(shape)


def _shape_name(shape: Any) -> str:
    return getattr(shape, "__name__", None) or repr(shape)


def decode(raw: str | bytes, shape: type[T] | Any = Any) -> T:
    """Parse ``raw`` JSON and validate it against ``shape``.

    Args:
        raw: Response body
        shape: Any type pydantic can validate (models, ``dict[str, Any]``,
            ``list[...]``, ``Any`` for plain JSON data)

    Returns:
        Decoded value

    Raises:
        DecodeError: If the body is not JSON or does not match ``shape``
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    try:
        return _adapter(shape).validate_json(text)
    except ValidationError as exc:
        preview = text[:_PREVIEW_LENGTH]
        raise DecodeError(
            f"Cannot decode response as {_shape_name(shape)}: {exc.errors()[0]['msg']}; body={preview!r}",
            body=text,
        ) from exc


def encode(value: Any, shape: Any = Any) -> Any:
    """Dump ``value`` back into JSON-compatible Python data."""
    return _adapter(shape).dump_python(value, mode="json")
