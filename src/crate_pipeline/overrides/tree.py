"""Typed view over parsed override documents with total, default-returning navigation."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Final, TypeAlias, TypeVar

T = TypeVar("T")

Scalar: TypeAlias = str | int | float | bool | None


@dataclass(frozen=True, slots=True)
class ObjectNode:
    """Mapping node; keys keep document order."""

    children: Mapping[str, Node]


@dataclass(frozen=True, slots=True)
class ListNode:
    items: tuple[Node, ...]


@dataclass(frozen=True, slots=True)
class ScalarNode:
    value: Scalar


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final[_Missing] = _Missing()

Node: TypeAlias = ObjectNode | ListNode | ScalarNode | _Missing


def from_python(value: object) -> Node:
    """Convert a parsed YAML/JSON value into a typed tree."""

    if isinstance(value, Mapping):
        children = {str(key): from_python(item) for key, item in value.items()}
        return ObjectNode(MappingProxyType(children))
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return ListNode(tuple(from_python(item) for item in value))
    if value is None or isinstance(value, (str, int, float, bool)):
        return ScalarNode(value)
    # Dates and other YAML scalars are carried as their text.
    return ScalarNode(str(value))


def to_python(node: Node) -> object:
    """Convert a typed tree back into plain dicts/lists/scalars."""

    if isinstance(node, ObjectNode):
        return {key: to_python(child) for key, child in node.children.items()}
    if isinstance(node, ListNode):
        return [to_python(item) for item in node.items]
    if isinstance(node, ScalarNode):
        return node.value
    return None


def step(node: Node, segment: str) -> Node:
    """Descend one path segment; anything not traversable bottoms out at ``MISSING``."""

    if isinstance(node, ObjectNode):
        return node.children.get(segment, MISSING)
    if isinstance(node, ListNode) and segment.isdigit():
        index = int(segment)
        if index < len(node.items):
            return node.items[index]
    return MISSING


def navigate(node: Node, segments: Sequence[str], default: T) -> object | T:
    """Walk ``segments`` from ``node`` and return the plain value or ``default``."""

    current = node
    for segment in segments:
        current = step(current, segment)
        if current is MISSING:
            return default
    if current is MISSING:
        return default
    return to_python(current)


def split_path(path: str) -> tuple[str, ...]:
    return tuple(part for part in path.split(".") if part)


__all__ = [
    "MISSING",
    "ListNode",
    "Node",
    "ObjectNode",
    "Scalar",
    "ScalarNode",
    "from_python",
    "navigate",
    "split_path",
    "step",
    "to_python",
]
