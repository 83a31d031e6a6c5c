from __future__ import annotations

import abc
import threading
from typing import Any, Dict, Optional, Sequence, Tuple

from crawlvault.storage.retry import JitteredBackoff, RetryExecutor
from crawlvault.storage.schema import SchemaManager
from crawlvault.utils.db_utils import Properties, Replication
from crawlvault.utils.logger import component_logger


class CassandraTable(abc.ABC):
    """Shared plumbing for the Cassandra backed queue and store.

    Each instance serializes its own prepare/execute sequence with a private
    lock. The lock gives no isolation between instances or processes.
    """

    def __init__(
        self,
        cluster,
        keyspace: str,
        table: str,
        *,
        logger=None,
        max_attempts: int = 3,
        retry_jitter: Tuple[float, float] = (1.5, 2.5),
        replication: Replication = None,
        retry_executor: Optional[RetryExecutor] = None,
    ):
        if cluster is None or not keyspace or not table:
            raise ValueError("cluster, keyspace and table are required")

        self.schema_manager = SchemaManager(cluster, keyspace, table)
        self.cluster = cluster
        self.keyspace = self.schema_manager.keyspace
        self.table = self.schema_manager.table
        self.replication = replication
        self.logger = component_logger(type(self).__name__, logger)
        self.retry = retry_executor or RetryExecutor(
            max_attempts=max_attempts,
            backoff=JitteredBackoff(*retry_jitter),
            logger=self.logger,
        )
        self._lock = threading.Lock()
        self._prepared: Dict[str, Any] = {}

    @property
    def qualified_name(self) -> str:
        return self.schema_manager.qualified_name

    @property
    def session(self):
        return self.schema_manager.session

    # -------------------------------------------------------
    # Statement execution (callers hold self._lock)
    # -------------------------------------------------------

    def _prepare(self, cql: str):
        statement = self._prepared.get(cql)
        if statement is None:
            statement = self.session.prepare(cql)
            self._prepared[cql] = statement
        return statement

    def _execute(self, cql: str, arguments: Sequence[Any] = ()):
        return self.session.execute(self._prepare(cql), tuple(arguments))

    def _locked_execute(self, cql: str, arguments: Sequence[Any] = ()):
        with self._lock:
            return self._execute(cql, arguments)

    # -------------------------------------------------------
    # DDL
    # -------------------------------------------------------

    def ensure_keyspace(self, replication: Replication = None, durable_writes: bool = True):
        return self.retry.call(
            self.schema_manager.create_keyspace,
            replication if replication is not None else self.replication,
            durable_writes,
        )

    @abc.abstractmethod
    def ensure_table(self, properties: Properties = None):
        """Create the table for this layout if it does not exist."""

    def clear(self):
        """Drop the table. Destructive: this is not a row level purge."""
        with self._lock:
            self._prepared.clear()
        return self.retry.call(self.schema_manager.drop_table)
