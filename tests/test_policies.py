from cassandra import ConsistencyLevel
from cassandra.policies import RetryPolicy, WriteType

from crawlvault.storage.policies import BackoffRetryPolicy


def test_read_timeout_retries_at_same_consistency(recorded_sleeps):
    policy = BackoffRetryPolicy()

    decision = policy.on_read_timeout(
        None, ConsistencyLevel.QUORUM, 2, 1, data_retrieved=False, retry_num=2
    )

    assert decision == (RetryPolicy.RETRY, ConsistencyLevel.QUORUM)
    assert len(recorded_sleeps) == 1
    assert 2.0 <= recorded_sleeps[0] <= 3.0


def test_read_timeout_with_data_retrieved_rethrows(recorded_sleeps):
    decision = BackoffRetryPolicy().on_read_timeout(
        None, ConsistencyLevel.ONE, 1, 1, data_retrieved=True, retry_num=0
    )

    assert decision == (RetryPolicy.RETHROW, None)


def test_write_timeout_retries_until_limit(recorded_sleeps):
    policy = BackoffRetryPolicy()

    for retry_num in range(5):
        decision = policy.on_write_timeout(
            None, ConsistencyLevel.ONE, WriteType.SIMPLE, 1, 0, retry_num
        )
        assert decision == (RetryPolicy.RETRY, ConsistencyLevel.ONE)

    assert policy.on_write_timeout(
        None, ConsistencyLevel.ONE, WriteType.SIMPLE, 1, 0, 5
    ) == (RetryPolicy.RETHROW, None)
    assert len(recorded_sleeps) == 5


def test_unavailable_retries_then_gives_up_at_limit(recorded_sleeps):
    policy = BackoffRetryPolicy(max_retries=2)

    assert policy.on_unavailable(None, ConsistencyLevel.ALL, 3, 1, 1) == (
        RetryPolicy.RETRY,
        ConsistencyLevel.ALL,
    )
    assert policy.on_unavailable(None, ConsistencyLevel.ALL, 3, 1, 2) == (
        RetryPolicy.RETHROW,
        None,
    )
    assert len(recorded_sleeps) == 1
