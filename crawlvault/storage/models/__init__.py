from .page import Page
from .queue_entry import QueueEntry, QueueToken

__all__ = [
    "Page",
    "QueueEntry",
    "QueueToken",
]
