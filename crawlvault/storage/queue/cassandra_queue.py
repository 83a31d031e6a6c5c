from __future__ import annotations

from typing import List, Optional, Tuple

from crawlvault.errors import CountNotSupported
from crawlvault.monitoring.metrics import QUEUE_LENGTH, QUEUE_POPPED, QUEUE_PUSHED
from crawlvault.storage.base import CassandraTable
from crawlvault.storage.codec import encode_payload
from crawlvault.storage.models import QueueEntry, QueueToken
from crawlvault.storage.queue.base import OverflowQueue, coerce_limit, unwrap_single
from crawlvault.storage.queue.memory import envelope_payload, parse_envelope
from crawlvault.storage.queue.schemas import QueueSchema, TimeOrderedQueueSchema
from crawlvault.storage.retry import RetryExecutor
from crawlvault.utils.db_utils import Properties, Replication, to_cql_identifier


class CassandraQueue(CassandraTable, OverflowQueue):
    """Durable overflow queue on a Cassandra table.

    Envelopes look like ``{"payload": ...}``; the payload is stored JSON
    encoded in a ``text`` column, one partition per ``queue_name``.

    ``pop`` reads the oldest rows and then deletes them by primary key. Both
    steps run under the instance lock, so callers sharing an instance never
    see the same entry twice. Other processes can still race: a reader that
    dies between read and delete, or two consumers reading the same rows,
    lead to duplicate delivery (at-least-once). With ``claim_with_lwt`` the
    delete becomes ``IF EXISTS`` and only rows whose delete applied are
    returned, trading duplicates for possible loss (at-most-once). A
    conditional delete that times out still counts as a claim.
    """

    def __init__(
        self,
        cluster,
        keyspace: str,
        table: str,
        *,
        queue_name: Optional[str] = None,
        schema: Optional[QueueSchema] = None,
        logger=None,
        max_attempts: int = 3,
        retry_jitter: Tuple[float, float] = (1.5, 2.5),
        replication: Replication = None,
        allow_count: bool = True,
        claim_with_lwt: bool = False,
        retry_executor: Optional[RetryExecutor] = None,
    ):
        super().__init__(
            cluster,
            keyspace,
            table,
            logger=logger,
            max_attempts=max_attempts,
            retry_jitter=retry_jitter,
            replication=replication,
            retry_executor=retry_executor,
        )
        self.schema = schema or TimeOrderedQueueSchema()
        self.queue_name = to_cql_identifier(queue_name) if queue_name else self.keyspace
        self.allow_count = allow_count
        self.claim_with_lwt = claim_with_lwt

    @property
    def supports_length(self) -> bool:
        return self.allow_count and self.schema.supports_length

    # -------------------------------------------------------
    # DDL
    # -------------------------------------------------------

    def ensure_table(self, properties: Properties = None):
        return self.retry.call(
            self.schema_manager.create_table,
            self.schema.columns,
            properties,
            self.schema.clustering,
        )

    # -------------------------------------------------------
    # Queue operations
    # -------------------------------------------------------

    def length(self) -> Optional[int]:
        """Rows in this queue's partition.

        Returns None when the count could not be confirmed.
        """
        if not self.supports_length:
            raise CountNotSupported(f"COUNT is disabled for {self.qualified_name} ({self.schema.name} layout)")

        result = self.retry.call(
            self._locked_execute,
            self.schema.count_cql(self.qualified_name),
            self.schema.count_args(self.queue_name),
        )
        if result is None:
            return None
        count = result.one().count
        QUEUE_LENGTH.labels(queue=self.queue_name).set(count)
        return count

    def empty(self) -> bool:
        """True if a ``LIMIT 1`` probe finds no row (or could not run)."""
        cql = self.schema.select_cql(self.qualified_name)
        result = self.retry.call(self._locked_execute, cql, self.schema.select_args(self.queue_name, 1))
        if result is None:
            return True
        return result.one() is None

    def push(self, data: Optional[str]) -> Optional[QueueToken]:
        if data is None:
            return None

        payload = encode_payload(envelope_payload(parse_envelope(data)))
        arguments, entry = self.schema.new_row(self.queue_name, payload)

        written = self.retry.call(self._locked_execute, self.schema.insert_cql(self.qualified_name), arguments)
        if written is None:
            self.logger.warning(f"Push to {self.qualified_name} not confirmed: {entry.token}")
            return None

        QUEUE_PUSHED.labels(queue=self.queue_name).inc()
        self.logger.debug(f"Writing this entry {entry.token}")
        return entry.token

    def pop(self, n: int = 1):
        """Remove the ``n`` oldest entries.

        A single entry comes back as its decoded payload, anything else as a
        list of payloads. Use :meth:`pop_entries` for the full rows.
        """
        return unwrap_single([entry.value for entry in self.pop_entries(n)])

    def pop_entries(self, n: int = 1) -> List[QueueEntry]:
        limit = coerce_limit(n)
        claimed: List[QueueEntry] = []
        # ``claimed`` outlives a failed attempt, so a retry only reads what
        # is still missing.
        self.retry.call(self._read_and_delete, limit, claimed)
        if claimed:
            QUEUE_POPPED.labels(queue=self.queue_name).inc(len(claimed))
        return claimed

    def _read_and_delete(self, limit: int, claimed: List[QueueEntry]) -> List[QueueEntry]:
        """One attempt of :meth:`pop_entries`.

        An entry joins ``claimed`` before its delete is sent. A delete that
        applies and then times out therefore cannot drop the entry, and a
        claimed row still present on the next read only has its delete
        reissued.
        """
        if len(claimed) >= limit:
            return claimed

        seen = {entry.token for entry in claimed}
        select = self.schema.select_cql(self.qualified_name)
        delete = self.schema.delete_cql(self.qualified_name, conditional=self.claim_with_lwt)

        with self._lock:
            # LIMIT covers claimed rows that may still be stored
            rows = self._execute(select, self.schema.select_args(self.queue_name, limit))
            for row in rows:
                entry = self.schema.to_entry(row, self.queue_name)
                if entry.token in seen:
                    self._execute(delete, self.schema.delete_args(entry))
                    continue
                if len(claimed) >= limit:
                    continue

                claimed.append(entry)
                seen.add(entry.token)
                result = self._execute(delete, self.schema.delete_args(entry))
                if self.claim_with_lwt and not result.was_applied:
                    self.logger.debug(f"Entry {entry.token} claimed by another consumer")
                    claimed.pop()
                    seen.discard(entry.token)
        return claimed
