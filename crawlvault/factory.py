from typing import Optional

from loguru import logger

from crawlvault.storage.queue import QUEUE_SCHEMAS, CassandraQueue, MemoryQueue, NullQueue, OverflowQueue
from crawlvault.storage.store import PAGE_SCHEMAS, CassandraStore
from crawlvault.utils.config_loader import VaultSettings


def build_queue(settings: VaultSettings, cluster=None, queue_name: Optional[str] = None) -> OverflowQueue:
    """Overflow queue for the configured backend and table layout."""
    if settings.queue_backend == "null":
        return NullQueue()
    if settings.queue_backend == "memory":
        return MemoryQueue(queue_name or settings.queue_name or settings.queue_table)

    queue = CassandraQueue(
        cluster,
        settings.keyspace,
        settings.queue_table,
        queue_name=queue_name or settings.queue_name,
        schema=QUEUE_SCHEMAS[settings.queue_schema](),
        max_attempts=settings.max_attempts,
        retry_jitter=settings.retry_jitter,
        replication=settings.replication,
        allow_count=settings.allow_count,
        claim_with_lwt=settings.claim_with_lwt,
    )
    logger.info(f"Overflow queue {queue.qualified_name} ({queue.schema.name}) for {queue.queue_name}")
    return queue


def build_store(settings: VaultSettings, cluster) -> CassandraStore:
    store = CassandraStore(
        cluster,
        settings.keyspace,
        settings.store_table,
        schema=PAGE_SCHEMAS[settings.store_schema](),
        except_fields=settings.except_fields,
        include_query_string_in_id=settings.include_query_string_in_id,
        max_attempts=settings.max_attempts,
        retry_jitter=settings.retry_jitter,
        replication=settings.replication,
        allow_count=settings.allow_count,
    )
    logger.info(f"Document store {store.qualified_name} ({store.schema.name})")
    return store


def bootstrap_schema(settings: VaultSettings, *tables) -> None:
    """Create the keyspace and every table the given queue/store objects use."""
    created = set()
    for table in tables:
        if not isinstance(table, (CassandraQueue, CassandraStore)):
            continue
        if table.keyspace not in created:
            table.ensure_keyspace(settings.replication, settings.durable_writes)
            created.add(table.keyspace)
        table.ensure_table(settings.table_properties or None)
