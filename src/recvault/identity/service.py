"""Abstract identity service protocol for recvault."""

from typing import Protocol

from recvault.models import AccessKey, AttachedPolicy, PrincipalSummary


class IdentityService(Protocol):
    """Protocol defining the identity (IAM) operations recvault needs.

    The service enforces that a principal can only be deleted once every
    access key and attached policy has been removed.
    """

    async def init(self) -> None:
        """Open the connection to the identity service."""
        ...

    async def close(self) -> None:
        """Release resources held by the client."""
        ...

    async def list_principals(self) -> list[PrincipalSummary]:
        """List every principal in the account."""
        ...

    async def principal_exists(self, name: str) -> bool:
        """Check whether a principal named ``name`` exists."""
        ...

    async def create_principal(self, name: str) -> PrincipalSummary:
        """Create a principal.

        Args:
            name: The principal name.

        Returns:
            The created principal.
        """
        ...

    async def delete_principal(self, name: str) -> None:
        """Delete a principal that has no keys or policies left."""
        ...

    async def attach_policy(self, name: str, policy_arn: str) -> None:
        """Attach a managed policy to a principal."""
        ...

    async def detach_policy(self, name: str, policy_arn: str) -> None:
        """Detach a managed policy from a principal."""
        ...

    async def list_attached_policies(self, name: str) -> list[AttachedPolicy]:
        """List the managed policies attached to a principal."""
        ...

    async def create_access_key(self, name: str) -> AccessKey:
        """Issue a new access key pair.

        Returns:
            The key, including its secret. The secret cannot be retrieved
            again later.
        """
        ...

    async def list_access_keys(self, name: str) -> list[AccessKey]:
        """List a principal's access keys (secrets are never included)."""
        ...

    async def delete_access_key(self, name: str, key_id: str) -> None:
        """Revoke one access key."""
        ...
