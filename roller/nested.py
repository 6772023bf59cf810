"""Reading and writing values inside nested mappings."""

from __future__ import annotations

from collections.abc import MutableMapping, Sequence
from typing import Any


class KeyNotFoundError(LookupError):
    """A key along a nested path does not exist."""

    def __init__(self, key: Any) -> None:
        super().__init__(f"key not found: {key}")
        self.key = key


def get_nested_value(data: Any, keys: Sequence[Any]) -> Any:
    """Return the value found by following ``keys`` through nested mappings."""
    current = data
    for key in keys:
        if not isinstance(current, MutableMapping):
            raise TypeError(f"cannot look up {key!r}: value is not a mapping")
        if key not in current:
            raise KeyNotFoundError(key)
        current = current[key]
    return current


def set_nested_value(data: Any, keys: Sequence[Any], value: Any) -> None:
    """Set the value at ``keys``, creating missing intermediate mappings."""
    if not keys:
        raise ValueError("key path must not be empty")
    *parents, last = keys
    current = data
    for key in parents:
        if not isinstance(current, MutableMapping):
            raise TypeError(f"cannot descend into {key!r}: value is not a mapping")
        child = current.get(key)
        if child is None:
            child = {}
            current[key] = child
        current = child
    if not isinstance(current, MutableMapping):
        raise TypeError(f"cannot set {last!r}: value is not a mapping")
    current[last] = value