from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

from crawlvault.errors import CapabilityNotSupported, CountNotSupported, InvalidEnvelope
from crawlvault.monitoring.metrics import PAGES_STORED
from crawlvault.storage.base import CassandraTable
from crawlvault.storage.codec import decode_document, encode_document, sanitize_value
from crawlvault.storage.models import Page
from crawlvault.storage.retry import RetryExecutor
from crawlvault.storage.store.schemas import METADATA_COLUMNS, CompactPageSchema, FlatPageSchema
from crawlvault.utils.db_utils import Properties, Replication
from crawlvault.utils.url_utils import document_id


# Fields that may carry raw fetched bytes.
BINARY_FIELDS = ("body", "headers", "user_data")

PageLike = Union[Page, Mapping[str, Any]]


class CassandraStore(CassandraTable):
    """Compressed crawl results keyed by the md5 of the canonical url.

    Adding the same url twice overwrites the row. Whether the query string
    takes part in the id is fixed at construction
    (``include_query_string_in_id``) and can be overridden per call.
    """

    def __init__(
        self,
        cluster,
        keyspace: str,
        table: str,
        *,
        schema: Optional[CompactPageSchema] = None,
        except_fields: Iterable[str] = (),
        include_query_string_in_id: bool = True,
        logger=None,
        max_attempts: int = 3,
        retry_jitter: Tuple[float, float] = (1.5, 2.5),
        replication: Replication = None,
        allow_count: bool = True,
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
        self.schema = schema or FlatPageSchema()
        self.except_fields = tuple(str(f) for f in (except_fields or ()))
        self.include_query_string_in_id = include_query_string_in_id
        self.allow_count = allow_count

    # -------------------------------------------------------
    # Identity
    # -------------------------------------------------------

    def page_id(self, page: PageLike, include_query_string: Optional[bool] = None) -> str:
        url = page.url if isinstance(page, Page) else (page or {}).get("url")
        if not url:
            raise InvalidEnvelope("A page needs a url to be stored or looked up")
        if include_query_string is None:
            include_query_string = self.include_query_string_in_id
        return document_id(url, include_query_string)

    # -------------------------------------------------------
    # DDL
    # -------------------------------------------------------

    def ensure_table(self, properties: Properties = None):
        return self.retry.call(self.schema_manager.create_table, self.schema.columns, properties)

    # -------------------------------------------------------
    # Document operations
    # -------------------------------------------------------

    def add(self, page: PageLike, include_query_string: Optional[bool] = None) -> Optional[str]:
        """Upsert ``page`` and return its id, or None if the write was not confirmed."""
        doc_id = self.page_id(page, include_query_string)
        document = self._prepare_document(Page.coerce(page))
        blob = encode_document(document)
        arguments = self.schema.row_values(doc_id, document, blob)

        written = self.retry.call(self._locked_execute, self.schema.insert_cql(self.qualified_name), arguments)
        if written is None:
            self.logger.warning(f"Write of {document.get('url')} ({doc_id}) not confirmed")
            return None

        PAGES_STORED.labels(table=self.table).inc()
        return doc_id

    def get(self, page: PageLike, include_query_string: Optional[bool] = None) -> Optional[Page]:
        cql = f"SELECT id, page FROM {self.qualified_name} WHERE id = ? LIMIT 1"
        result = self.retry.call(self._locked_execute, cql, (self.page_id(page, include_query_string),))
        row = result.one() if result is not None else None
        if row is None:
            return None
        return self.load_page(row.page)

    def exists(self, page: PageLike, include_query_string: Optional[bool] = None) -> bool:
        cql = f"SELECT id FROM {self.qualified_name} WHERE id = ? LIMIT 1"
        result = self.retry.call(self._locked_execute, cql, (self.page_id(page, include_query_string),))
        return result is not None and result.one() is not None

    def metadata(self, page: PageLike, include_query_string: Optional[bool] = None) -> Optional[Dict[str, Any]]:
        """Scalar columns of a stored page, read without touching the blob."""
        if not self.schema.supports_metadata:
            raise CapabilityNotSupported(f"{self.schema.name} layout keeps no metadata columns")
        cql = f"SELECT {', '.join(METADATA_COLUMNS)} FROM {self.qualified_name} WHERE id = ? LIMIT 1"
        result = self.retry.call(self._locked_execute, cql, (self.page_id(page, include_query_string),))
        row = result.one() if result is not None else None
        if row is None:
            return None
        return FlatPageSchema.metadata_from_row(row)

    def remove(self, page: PageLike, include_query_string: Optional[bool] = None) -> Optional[bool]:
        cql = f"DELETE FROM {self.qualified_name} WHERE id = ?"
        result = self.retry.call(self._locked_execute, cql, (self.page_id(page, include_query_string),))
        return None if result is None else True

    def count(self) -> Optional[int]:
        if not self.allow_count:
            raise CountNotSupported(f"COUNT is disabled for {self.qualified_name}")
        result = self.retry.call(self._locked_execute, f"SELECT COUNT(*) FROM {self.qualified_name}")
        if result is None:
            return None
        return result.one().count

    def iter_pages(self) -> Iterator[Tuple[str, Page]]:
        """Full table scan yielding ``(id, page)`` pairs in token order.

        Rows are fetched page by page as the generator is consumed, each
        fetch going through the retry executor. If a fetch still fails the
        scan ends early with a warning. The scan cannot be resumed; start a
        new one instead.
        """
        result = self.retry.call(self._locked_execute, f"SELECT id, page FROM {self.qualified_name}")
        while result is not None:
            for row in result.current_rows:
                yield row.id, self.load_page(row.page)
            if not result.has_more_pages:
                return
            result = self.retry.call(self._fetch_next_page, result)
            if result is None:
                self.logger.warning(f"Scan of {self.qualified_name} stopped, next page not fetched")

    def _fetch_next_page(self, result):
        with self._lock:
            result.fetch_next_page()
        return result

    __iter__ = iter_pages

    def each(self, visit: Callable[[str, Page], Any]) -> None:
        for doc_id, page in self.iter_pages():
            visit(doc_id, page)

    # -------------------------------------------------------
    # Encoding
    # -------------------------------------------------------

    def _prepare_document(self, page: Page) -> Dict[str, Any]:
        document = page.to_dict()
        for name in self.except_fields:
            document.pop(name, None)
        for name in BINARY_FIELDS:
            if name in document:
                document[name] = sanitize_value(document[name], name)
        return document

    @staticmethod
    def load_page(blob: bytes) -> Page:
        page = Page.from_dict(decode_document(blob))
        if page.fetched_at is None:
            page.fetched_at = 0
        return page
