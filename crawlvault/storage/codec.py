"""Serialization helpers shared by the queue and the store.

Documents are JSON encoded and zlib compressed before they reach a ``blob``
column. Fetched bodies sometimes carry undecodable byte sequences; those are
replaced with ``?`` instead of failing the whole write.
"""

from __future__ import annotations

import codecs
import json
import zlib
from typing import Any, Mapping, Optional

from loguru import logger

from crawlvault.monitoring.metrics import SANITIZED_FIELDS


PLACEHOLDER = "?"
_ERROR_HANDLER = "crawlvault.placeholder"


def _placeholder(error: UnicodeError):
    return PLACEHOLDER, error.end


codecs.register_error(_ERROR_HANDLER, _placeholder)


def sanitize_text(value, field: str = "") -> Any:
    """Return ``value`` as clean UTF-8 text, logging what had to be replaced."""
    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError as exc:
            bad = exc.object[exc.start:exc.end]
            logger.warning(f"Undecodable bytes {bad!r} in field '{field}', replacing with '{PLACEHOLDER}'")
            SANITIZED_FIELDS.labels(field=field or "unknown").inc()
            return bytes(value).decode("utf-8", errors=_ERROR_HANDLER)

    if isinstance(value, str):
        try:
            value.encode("utf-8")
            return value
        except UnicodeEncodeError as exc:
            bad = exc.object[exc.start:exc.end]
            logger.warning(f"Unencodable characters {bad!r} in field '{field}', replacing with '{PLACEHOLDER}'")
            SANITIZED_FIELDS.labels(field=field or "unknown").inc()
            return value.encode("utf-8", errors=_ERROR_HANDLER).decode("utf-8")

    return value


def sanitize_value(value, field: str = "") -> Any:
    """Sanitize strings and bytes, recursing into lists and mappings."""
    if isinstance(value, Mapping):
        return {sanitize_text(k, field): sanitize_value(v, field) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_value(v, field) for v in value]
    if value is None or (isinstance(value, (str, bytes, bytearray)) and not value):
        return value
    return sanitize_text(value, field)


def encode_document(document: Mapping[str, Any]) -> bytes:
    return zlib.compress(json.dumps(document, separators=(",", ":")).encode("utf-8"))


def decode_document(blob: bytes) -> dict:
    return json.loads(zlib.decompress(blob).decode("utf-8"))


def _is_blank(value) -> bool:
    return value is None or (hasattr(value, "__len__") and len(value) == 0)


def encode_payload(payload) -> Optional[str]:
    """JSON encode a queue payload; blank payloads are stored as null."""
    if _is_blank(payload):
        return None
    return json.dumps(payload)


def decode_payload(raw: Optional[str]):
    if raw is None:
        return None
    return json.loads(raw)
