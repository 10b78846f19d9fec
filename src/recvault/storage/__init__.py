"""Object store implementations for recvault."""

from recvault.config import RecVaultConfig
from recvault.errors import ConfigError
from recvault.storage.backend import ObjectStore


def create_object_store(config: RecVaultConfig) -> ObjectStore:
    """Create the object store selected by ``storage.backend``.

    The returned store is not yet initialized; call ``init()`` before use.

    Raises:
        ConfigError: If the aws backend is selected without a bucket.
    """
    if config.storage.backend == "memory":
        from recvault.storage.memory import MemoryObjectStore

        return MemoryObjectStore()

    if not config.aws.bucket:
        raise ConfigError("aws.bucket (or AWS_BUCKETS) is required for the aws backend")

    from recvault.storage.aws import S3ObjectStore

    return S3ObjectStore(
        bucket_name=config.aws.bucket,
        region=config.aws.region,
        endpoint_url=config.aws.endpoint_url,
        access_key_id=config.aws.access_key,
        secret_access_key=config.aws.secret_key,
    )


__all__ = ["ObjectStore", "create_object_store"]
