from __future__ import annotations

import threading
from typing import Optional

from loguru import logger

from crawlvault.utils.db_utils import (
    Properties,
    Replication,
    join_properties,
    qualified_table,
    render_replication,
    to_cql_identifier,
)


class SchemaManager:
    """Idempotent DDL for one ``keyspace.table`` pair.

    Owns the lazily opened session used by the queue and the store, so that
    DDL and data statements go through the same connection.
    """

    def __init__(self, cluster, keyspace: str, table: str):
        if cluster is None:
            raise ValueError("A Cassandra cluster handle is required")
        self.cluster = cluster
        self.keyspace = to_cql_identifier(keyspace)
        self.table = to_cql_identifier(table)
        self._session = None
        self._session_lock = threading.Lock()

    @property
    def qualified_name(self) -> str:
        return qualified_table(self.keyspace, self.table)

    @property
    def session(self):
        if self._session is None:
            with self._session_lock:
                if self._session is None:
                    # The keyspace may not exist yet; statements are fully qualified.
                    self._session = self.cluster.connect()
        return self._session

    def create_keyspace(self, replication: Replication = None, durable_writes: bool = True):
        statement = (
            f"CREATE KEYSPACE IF NOT EXISTS {self.keyspace} "
            f"WITH replication = {render_replication(replication)} "
            f"AND durable_writes = {'true' if durable_writes else 'false'}"
        )
        logger.info(f"Ensuring keyspace {self.keyspace}")
        return self.session.execute(statement)

    def create_table(self, columns: str, properties: Properties = None, clustering: Optional[str] = None):
        """``CREATE TABLE IF NOT EXISTS`` with ``columns`` as the body.

        ``clustering`` comes first in the ``WITH`` clause, caller supplied
        ``properties`` are appended verbatim.
        """
        options = " AND ".join(p for p in (clustering, join_properties(properties)) if p)
        statement = f"CREATE TABLE IF NOT EXISTS {self.qualified_name} ({columns})"
        if options:
            statement = f"{statement} WITH {options}"
        logger.info(f"Ensuring table {self.qualified_name}")
        return self.session.execute(statement)

    def drop_table(self):
        logger.warning(f"Dropping table {self.qualified_name}")
        return self.session.execute(f"DROP TABLE IF EXISTS {self.qualified_name}")
