"""Helpers for building CQL fragments.

Keyspace and table names reach us from crawler job names such as
``linkedin-jobs`` while Cassandra only accepts ``[a-z0-9_]`` in unquoted
identifiers. These helpers normalize names and render the small pieces of
DDL that the queue and the store share.
"""

from __future__ import annotations

import re
from typing import Iterable, Mapping, Optional, Union


DEFAULT_REPLICATION = {"class": "SimpleStrategy", "replication_factor": "3"}

_ILLEGAL_IDENTIFIER_CHARS = re.compile(r"[^a-z0-9_]")

Replication = Union[str, Mapping[str, object], None]
Properties = Union[str, Iterable[str], None]


def to_cql_identifier(name: Optional[str]) -> str:
    """Lowercase ``name`` and replace every illegal character with ``_``.

    ``my-crawl.v2`` becomes ``my_crawl_v2``.
    """

    if name is None or not str(name).strip():
        raise ValueError("A keyspace or table name is required")
    return _ILLEGAL_IDENTIFIER_CHARS.sub("_", str(name).strip().lower())


def qualified_table(keyspace: Optional[str], table: str) -> str:
    return ".".join(part for part in (keyspace, table) if part)


def render_replication(replication: Replication = None) -> str:
    """Render a replication map as CQL.

    Strings are trusted and passed through verbatim, mappings are quoted
    the way ``DESCRIBE KEYSPACE`` prints them.
    """

    if replication is None:
        replication = DEFAULT_REPLICATION
    if isinstance(replication, str):
        return replication
    pairs = ", ".join(f"'{key}': '{value}'" for key, value in replication.items())
    return "{" + pairs + "}"


def join_properties(properties: Properties = None) -> str:
    if properties is None:
        return ""
    if isinstance(properties, str):
        return properties.strip()
    return " AND ".join(p.strip() for p in properties if p and p.strip())
