import random

import pytest
from cassandra import InvalidRequest, OperationTimedOut, ReadTimeout, Unavailable
from cassandra.cluster import NoHostAvailable
from cassandra.connection import ConnectionShutdown

from crawlvault.monitoring.metrics import RETRY_ATTEMPTS, RETRY_EXHAUSTED
from crawlvault.storage.retry import (
    ErrorKind,
    JitteredBackoff,
    RetryExecutor,
    classify_error,
    with_retries,
)


class Flaky:
    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def test_success_returns_immediately(recorded_sleeps):
    work = Flaky([])

    assert RetryExecutor(max_attempts=3).call(work) == "ok"
    assert work.calls == 1
    assert recorded_sleeps == []


def test_retriable_error_is_absorbed(recorded_sleeps):
    work = Flaky([OperationTimedOut("slow")])

    assert RetryExecutor(max_attempts=3).call(work) == "ok"
    assert work.calls == 2
    assert len(recorded_sleeps) == 1


def test_exhausted_attempts_return_none(recorded_sleeps):
    errors = [NoHostAvailable("no hosts", {}) for _ in range(10)]
    work = Flaky(errors)
    before = RETRY_EXHAUSTED._value.get()

    assert RetryExecutor(max_attempts=4).call(work) is None
    assert work.calls == 4
    assert len(recorded_sleeps) == 3
    assert RETRY_EXHAUSTED._value.get() == before + 1


def test_programmer_errors_propagate_without_retry(recorded_sleeps):
    work = Flaky([InvalidRequest("line 1:0 no viable alternative")])

    with pytest.raises(InvalidRequest):
        RetryExecutor(max_attempts=5).call(work)

    assert work.calls == 1
    assert recorded_sleeps == []


def test_encoding_errors_propagate(recorded_sleeps):
    work = Flaky([TypeError("Received an argument of invalid type for column")])

    with pytest.raises(TypeError):
        RetryExecutor().call(work)
    assert recorded_sleeps == []


def test_backoff_scales_with_attempt():
    backoff = JitteredBackoff(1.5, 2.5, rng=random.Random(7))

    for attempt in range(1, 5):
        delay = backoff.delay(attempt)
        assert attempt * 1.5 <= delay <= attempt * 2.5


def test_custom_backoff_drives_sleeps(recorded_sleeps):
    work = Flaky([OperationTimedOut(), OperationTimedOut()])

    RetryExecutor(max_attempts=3, backoff=JitteredBackoff(1.0, 1.0)).call(work)

    assert recorded_sleeps == [1.0, 2.0]


def test_injected_sleep_is_used(recorded_sleeps):
    slept = []
    work = Flaky([OperationTimedOut()])

    RetryExecutor(max_attempts=2, sleep=slept.append).call(work)

    assert len(slept) == 1
    assert recorded_sleeps == []


def test_invalid_configuration_is_rejected():
    with pytest.raises(ValueError):
        RetryExecutor(max_attempts=0)
    with pytest.raises(ValueError):
        JitteredBackoff(3.0, 1.0)


@pytest.mark.parametrize(
    "error, kind",
    [
        (ReadTimeout("read timeout"), ErrorKind.TIMEOUT),
        (OperationTimedOut(), ErrorKind.TIMEOUT),
        (NoHostAvailable("none", {}), ErrorKind.NO_HOSTS),
        (Unavailable("not enough replicas"), ErrorKind.EXECUTION),
        (ConnectionShutdown("closed"), ErrorKind.IO),
        (ConnectionResetError(), ErrorKind.IO),
        (InvalidRequest("bad"), None),
        (ValueError("bad"), None),
    ],
)
def test_classify_error(error, kind):
    assert classify_error(error) is kind


def test_failed_attempts_are_counted():
    before = RETRY_ATTEMPTS.labels(kind="timeout")._value.get()

    RetryExecutor(max_attempts=2).call(Flaky([OperationTimedOut(), OperationTimedOut()]))

    assert RETRY_ATTEMPTS.labels(kind="timeout")._value.get() == before + 2


def test_with_retries_decorator(recorded_sleeps):
    calls = []

    @with_retries(max_attempts=2)
    def write(value):
        calls.append(value)
        raise OperationTimedOut()

    assert write("x") is None
    assert calls == ["x", "x"]
    assert write.retry_executor.max_attempts == 2
