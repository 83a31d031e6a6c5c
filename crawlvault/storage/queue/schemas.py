"""Table layouts for the durable overflow queue.

``TimeOrderedQueueSchema`` is the one to use: ``queue_name`` is the partition
key and a ``timeuuid`` clustering key keeps rows in arrival order, so
``LIMIT n`` returns the n oldest entries.

``KeyedQueueSchema`` is the older layout keyed by a digest of the payload.
Identical payloads collapse into one row, pops come back in token order
rather than arrival order, and counting is not supported.
"""

from __future__ import annotations

import abc
import hashlib
import uuid
from typing import Any, Optional, Tuple

from crawlvault.errors import CountNotSupported
from crawlvault.storage.models import QueueEntry


class QueueSchema(abc.ABC):
    name = ""
    supports_length = True
    ordered = True
    columns = ""
    clustering: Optional[str] = None

    @abc.abstractmethod
    def insert_cql(self, table: str) -> str:
        ...

    @abc.abstractmethod
    def new_row(self, queue_name: str, payload: Optional[str]) -> Tuple[Tuple[Any, ...], QueueEntry]:
        """Bind arguments for the insert, and the entry they describe."""

    @abc.abstractmethod
    def select_cql(self, table: str, columns: Optional[str] = None) -> str:
        ...

    @abc.abstractmethod
    def select_args(self, queue_name: str, limit: int) -> Tuple[Any, ...]:
        ...

    @abc.abstractmethod
    def delete_cql(self, table: str, conditional: bool = False) -> str:
        ...

    @abc.abstractmethod
    def delete_args(self, entry: QueueEntry) -> Tuple[Any, ...]:
        ...

    @abc.abstractmethod
    def to_entry(self, row, queue_name: str) -> QueueEntry:
        ...

    def count_cql(self, table: str) -> str:
        raise CountNotSupported(f"the {self.name} layout cannot count a queue")

    def count_args(self, queue_name: str) -> Tuple[Any, ...]:
        return ()

    @staticmethod
    def _if_exists(cql: str, conditional: bool) -> str:
        return f"{cql} IF EXISTS" if conditional else cql


class TimeOrderedQueueSchema(QueueSchema):
    name = "time_ordered"
    columns = "queue_name text, created_at timeuuid, payload text, PRIMARY KEY (queue_name, created_at)"
    clustering = "CLUSTERING ORDER BY (created_at ASC)"

    def insert_cql(self, table: str) -> str:
        return f"INSERT INTO {table} (queue_name, created_at, payload) VALUES (?, ?, ?)"

    def new_row(self, queue_name, payload):
        created_at = uuid.uuid1()
        return (queue_name, created_at, payload), QueueEntry(queue_name, created_at, payload)

    def select_cql(self, table, columns=None):
        columns = columns or "queue_name, created_at, payload"
        return f"SELECT {columns} FROM {table} WHERE queue_name = ? LIMIT ?"

    def select_args(self, queue_name, limit):
        return (queue_name, limit)

    def delete_cql(self, table, conditional=False):
        return self._if_exists(f"DELETE FROM {table} WHERE queue_name = ? AND created_at = ?", conditional)

    def delete_args(self, entry):
        return (entry.queue_name, entry.created_at)

    def to_entry(self, row, queue_name):
        return QueueEntry(queue_name=row.queue_name, created_at=row.created_at, payload=row.payload)

    def count_cql(self, table):
        return f"SELECT COUNT(*) FROM {table} WHERE queue_name = ?"

    def count_args(self, queue_name):
        return (queue_name,)


class KeyedQueueSchema(QueueSchema):
    name = "keyed"
    supports_length = False
    ordered = False
    columns = "id text PRIMARY KEY, payload text"

    def insert_cql(self, table):
        return f"INSERT INTO {table} (id, payload) VALUES (?, ?)"

    def new_row(self, queue_name, payload):
        key = hashlib.md5((payload or "null").encode("utf-8")).hexdigest()
        return (key, payload), QueueEntry(queue_name, payload=payload, id=key)

    def select_cql(self, table, columns=None):
        return f"SELECT {columns or 'id, payload'} FROM {table} LIMIT ?"

    def select_args(self, queue_name, limit):
        return (limit,)

    def delete_cql(self, table, conditional=False):
        return self._if_exists(f"DELETE FROM {table} WHERE id = ?", conditional)

    def delete_args(self, entry):
        return (entry.id,)

    def to_entry(self, row, queue_name):
        return QueueEntry(queue_name=queue_name, payload=row.payload, id=row.id)


QUEUE_SCHEMAS = {
    TimeOrderedQueueSchema.name: TimeOrderedQueueSchema,
    KeyedQueueSchema.name: KeyedQueueSchema,
}
