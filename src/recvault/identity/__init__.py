"""Identity (IAM user + namespace) provisioning for recvault."""

from recvault.config import RecVaultConfig
from recvault.identity.provisioner import (
    IdentityDeprovisioner,
    IdentityProvisioner,
    identity_status,
    namespace_key,
    validate_identity_name,
)
from recvault.identity.service import IdentityService

__all__ = [
    "create_identity_service",
    "identity_status",
    "IdentityDeprovisioner",
    "IdentityProvisioner",
    "IdentityService",
    "namespace_key",
    "validate_identity_name",
]


def create_identity_service(config: RecVaultConfig) -> IdentityService:
    """Create the IAM identity service. Call ``init()`` before use."""
    from recvault.identity.aws import IAMIdentityService

    return IAMIdentityService(
        region=config.aws.region,
        endpoint_url=config.identity.endpoint_url,
        access_key_id=config.aws.access_key,
        secret_access_key=config.aws.secret_key,
    )
