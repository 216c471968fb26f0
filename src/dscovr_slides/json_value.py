"""Path-addressable view over parsed JSON, plus typed decoding.

A JSONValue wraps whatever json.loads produced and never changes it. Lookups
return None instead of raising so callers can chain them:

    post.get("entities", "media", 0, "media_url_https")

Any class with a ``from_json(value)`` classmethod can be the target of
``decode()``. ``list[T]`` targets decode element by element and fail on the
first element that does not convert.
"""

import copy
import json
from typing import Any, Protocol, Self, TypeVar, get_args, get_origin, runtime_checkable

T = TypeVar("T")

PathComponent = str | int


class DecodeError(Exception):
    """Base class for JSON decoding failures."""


class MalformedInput(DecodeError):
    """The raw input is not valid JSON."""


class TypeMismatch(DecodeError):
    """The JSON does not have the shape the target type needs."""


@runtime_checkable
class Convertible(Protocol):
    @classmethod
    def from_json(cls, value: "JSONValue") -> Self: ...


class JSONValue:
    """Immutable wrapper around a parsed JSON value."""

    __slots__ = ("_storage",)

    def __init__(self, storage: Any):
        object.__setattr__(self, "_storage", storage)

    def __setattr__(self, name, value):
        raise AttributeError("JSONValue is immutable")

    @classmethod
    def from_json(cls, value: "JSONValue") -> "JSONValue":
        return value

    def get(self, *path: PathComponent) -> "JSONValue | None":
        """Walk ``path`` and return the value there, or None if any step fails."""
        storage = self._storage
        for component in path:
            if isinstance(component, bool):
                return None
            if isinstance(component, int):
                if not isinstance(storage, list) or not 0 <= component < len(storage):
                    return None
                storage = storage[component]
            elif isinstance(component, str):
                if not isinstance(storage, dict) or component not in storage:
                    return None
                storage = storage[component]
            else:
                return None
        return JSONValue(storage)

    def as_string(self) -> str | None:
        return self._storage if isinstance(self._storage, str) else None

    def as_number(self) -> int | float | None:
        if isinstance(self._storage, bool):
            return None
        if isinstance(self._storage, (int, float)):
            return self._storage
        return None

    def as_bool(self) -> bool | None:
        return self._storage if isinstance(self._storage, bool) else None

    def as_array(self) -> list["JSONValue"] | None:
        if not isinstance(self._storage, list):
            return None
        return [JSONValue(item) for item in self._storage]

    def as_object(self) -> dict[str, "JSONValue"] | None:
        if not isinstance(self._storage, dict):
            return None
        return {key: JSONValue(item) for key, item in self._storage.items()}

    @property
    def is_null(self) -> bool:
        return self._storage is None

    def to_python(self) -> Any:
        """Return a copy of the underlying value."""
        return copy.deepcopy(self._storage)

    def __eq__(self, other):
        if not isinstance(other, JSONValue):
            return NotImplemented
        return self._storage == other._storage

    def __repr__(self) -> str:
        return f"JSONValue({self._storage!r})"


def _reject_constant(name: str) -> None:
    raise ValueError(f"{name} is not valid JSON")


def parse(data: bytes | str) -> JSONValue:
    """Parse raw JSON into a JSONValue. Raises MalformedInput on bad input."""
    try:
        return JSONValue(json.loads(data, parse_constant=_reject_constant))
    except (ValueError, TypeError) as e:
        # UnicodeDecodeError is a ValueError
        raise MalformedInput(f"Invalid JSON: {e}") from e


def decode(value: JSONValue, target: type[T] | Any) -> T:
    """Convert ``value`` into ``target``.

    ``target`` is either a class with a ``from_json`` classmethod or a
    ``list[...]`` of such classes (nesting allowed). Raises TypeMismatch,
    including when ``from_json`` itself fails.
    """
    if get_origin(target) is list:
        args = get_args(target)
        if len(args) != 1:
            raise TypeMismatch(f"Cannot decode into bare {target!r}")
        items = value.as_array()
        if items is None:
            raise TypeMismatch(f"Expected a JSON array for {target!r}")
        return [decode(item, args[0]) for item in items]

    from_json = getattr(target, "from_json", None)
    if from_json is None:
        raise TypeMismatch(f"{target!r} cannot be constructed from JSON")
    try:
        return from_json(value)
    except DecodeError:
        raise
    except Exception as e:
        raise TypeMismatch(f"Could not build {target!r}: {e}") from e
