"""Table layouts for the document store.

Both layouts key rows by the url digest and keep the whole page, JSON encoded
and zlib compressed, in ``page``. The flat layout also copies the scalar
fields into their own columns so metadata reads skip decompression.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple


METADATA_COLUMNS = (
    "url",
    "code",
    "depth",
    "referer",
    "redirect_to",
    "response_time",
    "fetched",
    "user_data",
    "fetched_at",
    "error",
)


def to_timestamp(value) -> Optional[datetime]:
    """Unix seconds or ISO 8601 text to an aware datetime."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None


class CompactPageSchema:
    name = "compact"
    supports_metadata = False
    columns = "id text PRIMARY KEY, page blob"

    def insert_cql(self, table: str) -> str:
        return f"INSERT INTO {table} (id, page) VALUES (?, ?)"

    def row_values(self, doc_id: str, document: Mapping[str, Any], blob: bytes) -> Tuple[Any, ...]:
        return (doc_id, blob)


class FlatPageSchema(CompactPageSchema):
    name = "flat"
    supports_metadata = True
    columns = (
        "id text PRIMARY KEY, url text, code int, depth int, referer text, "
        "redirect_to text, response_time bigint, fetched boolean, user_data text, "
        "fetched_at timestamp, error text, page blob"
    )

    def insert_cql(self, table: str) -> str:
        names = ("id",) + METADATA_COLUMNS + ("page",)
        placeholders = ", ".join("?" for _ in names)
        return f"INSERT INTO {table} ({', '.join(names)}) VALUES ({placeholders})"

    def row_values(self, doc_id, document, blob):
        user_data = document.get("user_data")
        return (
            doc_id,
            document.get("url"),
            document.get("code"),
            document.get("depth"),
            document.get("referer"),
            document.get("redirect_to"),
            document.get("response_time"),
            document.get("fetched"),
            json.dumps(user_data) if user_data else None,
            to_timestamp(document.get("fetched_at")),
            document.get("error"),
            blob,
        )

    @staticmethod
    def metadata_from_row(row) -> Dict[str, Any]:
        metadata = {column: getattr(row, column) for column in METADATA_COLUMNS}
        if metadata["user_data"]:
            metadata["user_data"] = json.loads(metadata["user_data"])
        return metadata


PAGE_SCHEMAS = {
    CompactPageSchema.name: CompactPageSchema,
    FlatPageSchema.name: FlatPageSchema,
}
