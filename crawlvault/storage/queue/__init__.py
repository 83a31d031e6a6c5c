from .base import OverflowQueue
from .cassandra_queue import CassandraQueue
from .memory import MemoryQueue, NullQueue
from .schemas import QUEUE_SCHEMAS, KeyedQueueSchema, QueueSchema, TimeOrderedQueueSchema

__all__ = [
    "OverflowQueue",
    "CassandraQueue",
    "MemoryQueue",
    "NullQueue",
    "QueueSchema",
    "TimeOrderedQueueSchema",
    "KeyedQueueSchema",
    "QUEUE_SCHEMAS",
]
