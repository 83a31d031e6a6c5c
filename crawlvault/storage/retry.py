"""Operation level retries for work against the Cassandra cluster.

Every queue and store call funnels through :class:`RetryExecutor`. Failures
are classified by :func:`classify_error`; retriable ones are absorbed with a
jittered, attempt-scaled sleep, everything else propagates untouched.

When all attempts fail the executor returns ``None``. For writes this means
"not confirmed": the write may or may not have been applied before the last
timeout. No attempt is made to find out.

Retried:

- ``cassandra.RequestExecutionException`` (unavailable, read/write failure)
- ``cassandra.connection.ConnectionException`` and ``OSError``
- overloaded or bootstrapping coordinators
- ``cassandra.cluster.NoHostAvailable``
- ``cassandra.protocol.ServerError``
- ``cassandra.Timeout`` and client side ``cassandra.OperationTimedOut``

Not retried: ``InvalidRequest``, ``ConfigurationException`` and the rest of
the validation family, plus encoding errors such as ``TypeError``. Those are
bugs in the caller.
"""

from __future__ import annotations

import enum
import functools
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from cassandra import OperationTimedOut, RequestExecutionException, Timeout
from cassandra.cluster import NoHostAvailable
from cassandra.connection import ConnectionException
from cassandra.protocol import IsBootstrappingErrorMessage, OverloadedErrorMessage, ServerError
from loguru import logger as default_logger

from crawlvault.monitoring.metrics import RETRY_ATTEMPTS, RETRY_EXHAUSTED


T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


class ErrorKind(str, enum.Enum):
    EXECUTION = "execution"
    IO = "io"
    INTERNAL = "internal"
    NO_HOSTS = "no_hosts"
    SERVER = "server"
    TIMEOUT = "timeout"


# Order matters: the first matching entry wins.
_CLASSIFICATION = (
    ((Timeout, OperationTimedOut), ErrorKind.TIMEOUT),
    ((NoHostAvailable,), ErrorKind.NO_HOSTS),
    ((ServerError,), ErrorKind.SERVER),
    ((OverloadedErrorMessage, IsBootstrappingErrorMessage), ErrorKind.INTERNAL),
    ((RequestExecutionException,), ErrorKind.EXECUTION),
    ((ConnectionException, OSError), ErrorKind.IO),
)


def classify_error(exc: BaseException) -> Optional[ErrorKind]:
    """Return the retriable kind of ``exc`` or ``None`` if it must propagate."""
    for types, kind in _CLASSIFICATION:
        if isinstance(exc, types):
            return kind
    return None


@dataclass(frozen=True)
class RetryAttempt:
    attempt: int
    sleep_for: float
    kind: ErrorKind


class JitteredBackoff:
    """``attempt * uniform(low, high)`` seconds, rounded to hundredths."""

    def __init__(self, low: float = 1.5, high: float = 2.5, rng: Optional[random.Random] = None):
        if low < 0 or low > high:
            raise ValueError(f"invalid jitter window ({low}, {high})")
        self.low = low
        self.high = high
        self._rng = rng or random

    def delay(self, attempt: int) -> float:
        return round(attempt * self._rng.uniform(self.low, self.high), 2)


class RetryExecutor:
    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff: Optional[JitteredBackoff] = None,
        classify: Callable[[BaseException], Optional[ErrorKind]] = classify_error,
        sleep: Optional[Callable[[float], Any]] = None,
        logger=None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff = backoff or JitteredBackoff()
        self.classify = classify
        self.sleep = sleep
        self.logger = logger or default_logger

    def call(self, unit_of_work: Callable[..., T], *args, **kwargs) -> Optional[T]:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return unit_of_work(*args, **kwargs)
            except Exception as exc:
                kind = self.classify(exc)
                if kind is None:
                    raise
                RETRY_ATTEMPTS.labels(kind=kind.value).inc()

                if attempt == self.max_attempts:
                    self.logger.error(
                        f"({attempt}/{self.max_attempts} attempts) giving up after "
                        f"{kind.value} failure: {type(exc).__name__}: {exc}"
                    )
                    break

                record = RetryAttempt(attempt=attempt, sleep_for=self.backoff.delay(attempt), kind=kind)
                self.logger.warning(
                    f"({record.attempt}/{self.max_attempts} attempts) {record.kind.value} failure, "
                    f"retry in {record.sleep_for} seconds: {type(exc).__name__}: {exc}"
                )
                (self.sleep or time.sleep)(record.sleep_for)

        RETRY_EXHAUSTED.inc()
        return None

    __call__ = call


def with_retries(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff: Optional[JitteredBackoff] = None,
    classify: Callable[[BaseException], Optional[ErrorKind]] = classify_error,
):
    """Decorator form of :class:`RetryExecutor`."""
    executor = RetryExecutor(max_attempts=max_attempts, backoff=backoff, classify=classify)

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return executor.call(func, *args, **kwargs)

        wrapper.retry_executor = executor
        return wrapper

    return decorator
