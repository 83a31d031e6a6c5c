from __future__ import annotations

import abc
from typing import Any, List, Optional, Union


PopResult = Union[Any, List[Any]]


def coerce_limit(limit) -> int:
    """Validate a pop size; booleans mean a single entry."""
    if isinstance(limit, bool):
        return 1
    try:
        value = int(limit)
    except (TypeError, ValueError):
        value = 0
    if value <= 0:
        raise ValueError(f"Invalid limit value: must be an integer greater than 0 (got {limit!r}).")
    return value


def unwrap_single(values: List[Any]) -> PopResult:
    """A single popped entry is returned bare, anything else as a list."""
    if len(values) == 1:
        return values[0]
    return values


class OverflowQueue(abc.ABC):
    """Capability set every overflow queue backend implements."""

    supports_length = True

    @abc.abstractmethod
    def length(self) -> Optional[int]:
        ...

    @abc.abstractmethod
    def empty(self) -> bool:
        ...

    @abc.abstractmethod
    def clear(self) -> None:
        ...

    @abc.abstractmethod
    def push(self, data: Optional[str]):
        """Append a JSON envelope; ``None`` is ignored."""

    @abc.abstractmethod
    def pop(self, n: int = 1) -> PopResult:
        """Remove and return up to ``n`` of the oldest payloads."""

    def size(self) -> Optional[int]:
        return self.length()
