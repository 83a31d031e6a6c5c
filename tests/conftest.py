import os
import re
import sys
import uuid
from pathlib import Path
from types import SimpleNamespace

import pytest
from cassandra import InvalidRequest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))


# -------------------------------------------------------
# In-memory Cassandra stand-in
# -------------------------------------------------------

_INSERT = re.compile(r"^INSERT INTO (\S+) \(([^)]*)\) VALUES")
_SELECT = re.compile(r"^SELECT (.+?) FROM (\S+)(?: WHERE (.+?))?(?: LIMIT (\?|\d+))?$")
_DELETE = re.compile(r"^DELETE FROM (\S+) WHERE (.+?)( IF EXISTS)?$")
_CREATE_TABLE = re.compile(r"^CREATE TABLE IF NOT EXISTS (\S+) \((.*)\)(?: WITH .*)?$")
_DROP_TABLE = re.compile(r"^DROP TABLE IF EXISTS (\S+)$")


class PreparedStatement:
    def __init__(self, query_string):
        self.query_string = query_string


class RecordingResult:
    has_more_pages = False

    def __init__(self, rows=(), was_applied=True):
        self.rows = list(rows)
        self.was_applied = was_applied

    @property
    def current_rows(self):
        return self.rows

    def fetch_next_page(self):
        raise RuntimeError("single page result")

    def one(self):
        return self.rows[0] if self.rows else None

    def __iter__(self):
        return iter(self.rows)


def _sort_key(value):
    if isinstance(value, uuid.UUID) and value.version == 1:
        return value.time
    return value


class RecordingSession:
    """Executes the small CQL dialect the queue and store emit."""

    def __init__(self, cluster):
        self.cluster = cluster

    @property
    def executed(self):
        return self.cluster.executed

    def prepare(self, query):
        self.cluster.prepared.append(query)
        return PreparedStatement(query)

    def execute(self, statement, parameters=None):
        query = statement.query_string if isinstance(statement, PreparedStatement) else statement
        query = " ".join(query.split())
        params = list(parameters or ())
        self.cluster.executed.append((query, tuple(params)))

        if self.cluster.failures:
            raise self.cluster.failures.pop(0)

        return self._dispatch(query, params)

    # -------------------------------------------------------

    def _table(self, name):
        tables = self.cluster.tables
        if name not in tables:
            raise InvalidRequest(f"unconfigured table {name}")
        return tables[name]

    def _dispatch(self, query, params):
        if query.startswith("CREATE KEYSPACE"):
            self.cluster.keyspaces.append(query)
            return RecordingResult()

        match = _CREATE_TABLE.match(query)
        if match:
            name, body = match.groups()
            if name not in self.cluster.tables:
                self.cluster.tables[name] = {"pk": _primary_key(body), "rows": {}}
            return RecordingResult()

        match = _DROP_TABLE.match(query)
        if match:
            self.cluster.tables.pop(match.group(1), None)
            return RecordingResult()

        match = _INSERT.match(query)
        if match:
            table = self._table(match.group(1))
            columns = [c.strip() for c in match.group(2).split(",")]
            row = dict(zip(columns, params))
            key = tuple(row[c] for c in table["pk"])
            table["rows"][key] = {**table["rows"].get(key, {}), **row}
            return RecordingResult()

        match = _DELETE.match(query)
        if match:
            table = self._table(match.group(1))
            conditions = _conditions(match.group(2), params)
            key = tuple(conditions[c] for c in table["pk"])
            existed = table["rows"].pop(key, None) is not None
            return RecordingResult(was_applied=existed if match.group(3) else True)

        match = _SELECT.match(query)
        if match:
            projection, name, where, limit = match.groups()
            table = self._table(name)
            conditions = _conditions(where, params) if where else {}
            if limit == "?":
                limit = params[len(conditions)]
            rows = [r for r in table["rows"].values() if all(r.get(c) == v for c, v in conditions.items())]
            if len(table["pk"]) > 1:
                rows.sort(key=lambda r: _sort_key(r[table["pk"][1]]))
            if projection == "COUNT(*)":
                return RecordingResult([SimpleNamespace(count=len(rows))])
            if limit is not None:
                rows = rows[: int(limit)]
            columns = [c.strip() for c in projection.split(",")]
            return RecordingResult([SimpleNamespace(**{c: r.get(c) for c in columns}) for r in rows])

        raise AssertionError(f"unexpected statement: {query}")


def _primary_key(body):
    compound = re.search(r"PRIMARY KEY \(([^)]*)\)", body)
    if compound:
        return [c.strip() for c in compound.group(1).split(",")]
    inline = re.search(r"(\w+) \w+ PRIMARY KEY", body)
    return [inline.group(1)]


def _conditions(where, params):
    columns = [part.split("=")[0].strip() for part in where.split(" AND ")]
    return dict(zip(columns, params))


class RecordingCluster:
    def __init__(self):
        self.tables = {}
        self.keyspaces = []
        self.executed = []
        self.prepared = []
        self.failures = []
        self.connect_calls = 0

    def connect(self, keyspace=None):
        self.connect_calls += 1
        return RecordingSession(self)

    def fail_with(self, *errors):
        """Raise ``errors`` from the next executes, one per call."""
        self.failures.extend(errors)

    def statements(self, prefix):
        return [q for q, _ in self.executed if q.startswith(prefix)]


@pytest.fixture
def cluster():
    return RecordingCluster()


@pytest.fixture(autouse=True)
def recorded_sleeps(monkeypatch):
    """Backoff sleeps are recorded instead of slept."""
    sleeps = []
    monkeypatch.setattr("crawlvault.storage.retry.time.sleep", sleeps.append)
    monkeypatch.setattr("crawlvault.storage.policies.time.sleep", sleeps.append)
    return sleeps


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep CRAWLVAULT_* variables and stray config files out of tests."""
    for key in list(os.environ):
        if key.startswith("CRAWLVAULT_") or key == "CASSANDRA_HOSTS":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("CRAWLVAULT_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.chdir(tmp_path)
    yield
