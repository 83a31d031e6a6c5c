import json
import threading
from collections import deque
from typing import Optional

from crawlvault.errors import InvalidEnvelope
from crawlvault.storage.queue.base import OverflowQueue, coerce_limit, unwrap_single


def parse_envelope(data: str) -> dict:
    try:
        envelope = json.loads(data)
    except (TypeError, ValueError) as exc:
        raise InvalidEnvelope(f"Queue envelope is not valid JSON: {exc}") from exc
    if not isinstance(envelope, dict):
        raise InvalidEnvelope(f"Queue envelope must be a JSON object (got {type(envelope).__name__})")
    return envelope


def envelope_payload(envelope: dict):
    payload = envelope.get("payload")
    if payload is None or (hasattr(payload, "__len__") and len(payload) == 0):
        return None
    return payload


class NullQueue(OverflowQueue):
    """Overflow disabled: pushes are discarded and the queue is always empty."""

    def length(self) -> int:
        return 0

    def empty(self) -> bool:
        return True

    def clear(self) -> None:
        pass

    def push(self, data: Optional[str]):
        return None

    def pop(self, n: int = 1):
        coerce_limit(n)
        return []


class MemoryQueue(OverflowQueue):
    """Process local FIFO with the same envelope handling as the durable queue."""

    def __init__(self, name: str = "memory"):
        self.name = name
        self._entries = deque()
        self._lock = threading.Lock()
        self._sequence = 0

    def length(self) -> int:
        return len(self._entries)

    def empty(self) -> bool:
        return not self._entries

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def push(self, data: Optional[str]):
        if data is None:
            return None
        payload = envelope_payload(parse_envelope(data))
        with self._lock:
            self._sequence += 1
            self._entries.append(payload)
            return (self.name, self._sequence)

    def pop(self, n: int = 1):
        limit = coerce_limit(n)
        with self._lock:
            values = [self._entries.popleft() for _ in range(min(limit, len(self._entries)))]
        return unwrap_single(values)
