from .cassandra_store import CassandraStore
from .schemas import PAGE_SCHEMAS, CompactPageSchema, FlatPageSchema

__all__ = [
    "CassandraStore",
    "CompactPageSchema",
    "FlatPageSchema",
    "PAGE_SCHEMAS",
]
