import random
import time

from cassandra.policies import RetryPolicy
from loguru import logger

from crawlvault.monitoring.metrics import STATEMENT_RETRIES


class BackoffRetryPolicy(RetryPolicy):
    """Driver level retry policy: sleep ``retry_num + uniform(0, 1)`` and retry
    at the same consistency, giving up once ``retry_num`` reaches
    ``max_retries``.

    It runs inside the driver for a single statement, beneath
    :class:`~crawlvault.storage.retry.RetryExecutor`, which re-runs whole
    units of work.
    """

    def __init__(self, max_retries: int = 5):
        self.max_retries = max_retries

    def _backoff(self, retry_num: int) -> None:
        time.sleep(retry_num + random.uniform(0.0, 1.0))

    def _give_up(self, outcome: str):
        STATEMENT_RETRIES.labels(outcome=outcome).inc()
        return self.RETHROW, None

    def _try_again(self, outcome: str, consistency):
        STATEMENT_RETRIES.labels(outcome=outcome).inc()
        return self.RETRY, consistency

    def on_read_timeout(self, query, consistency, required_responses,
                        received_responses, data_retrieved, retry_num):
        if retry_num >= self.max_retries:
            return self._give_up("read_timeout_rethrow")
        self._backoff(retry_num)
        if data_retrieved:
            return self._give_up("read_timeout_rethrow")
        logger.debug(f"Read timeout at {consistency}, retry #{retry_num + 1}")
        return self._try_again("read_timeout_retry", consistency)

    def on_write_timeout(self, query, consistency, write_type,
                         required_responses, received_responses, retry_num):
        if retry_num >= self.max_retries:
            return self._give_up("write_timeout_rethrow")
        self._backoff(retry_num)
        logger.debug(f"Write timeout ({write_type}) at {consistency}, retry #{retry_num + 1}")
        return self._try_again("write_timeout_retry", consistency)

    def on_unavailable(self, query, consistency, required_replicas,
                       alive_replicas, retry_num):
        if retry_num >= self.max_retries:
            return self._give_up("unavailable_rethrow")
        self._backoff(retry_num)
        logger.debug(
            f"Unavailable at {consistency} ({alive_replicas}/{required_replicas} alive), "
            f"retry #{retry_num + 1}"
        )
        return self._try_again("unavailable_retry", consistency)
