from cassandra.cluster import EXEC_PROFILE_DEFAULT, Cluster, ExecutionProfile
from loguru import logger

from crawlvault.storage.policies import BackoffRetryPolicy
from crawlvault.utils.config_loader import VaultSettings


def build_cluster(settings: VaultSettings, **cluster_kwargs) -> Cluster:
    """Cluster handle whose default profile retries timeouts and unavailable
    replicas through :class:`BackoffRetryPolicy`.

    Nothing connects until the first session is opened.
    """
    profile = ExecutionProfile(retry_policy=BackoffRetryPolicy())
    cluster = Cluster(
        contact_points=settings.cassandra_hosts,
        port=settings.cassandra_port,
        execution_profiles={EXEC_PROFILE_DEFAULT: profile},
        **cluster_kwargs,
    )
    logger.info(f"Cassandra cluster configured for {settings.cassandra_hosts}:{settings.cassandra_port}")
    return cluster
