import uuid
from dataclasses import dataclass
from typing import NamedTuple, Optional, Union

from crawlvault.storage.codec import decode_payload


class QueueToken(NamedTuple):
    """Identifies the row written by a push."""
    queue_name: str
    key: Union[uuid.UUID, str]

    def __str__(self) -> str:
        return f"[{self.queue_name}, {self.key}]"


@dataclass
class QueueEntry:
    """
    One row of the overflow queue. ``payload`` holds the JSON encoded user
    payload, or None when the pushed envelope carried none. Rows of the keyed
    layout carry ``id`` instead of ``created_at``.
    """
    queue_name: str
    created_at: Optional[uuid.UUID] = None
    payload: Optional[str] = None
    id: Optional[str] = None

    @property
    def value(self):
        return decode_payload(self.payload)

    @property
    def token(self) -> QueueToken:
        return QueueToken(self.queue_name, self.created_at if self.created_at is not None else self.id)
