"""Paired provisioning and teardown of IAM users and their storage namespace.

A user is "ready" when the principal exists with the configured policy
attached, one access key issued, and the ``<name>/`` marker object present
in the archive bucket.

Neither workflow rolls anything back. When a step fails after an earlier
step changed state, :class:`~recvault.errors.PartialStateError` is raised
listing what was completed; re-running provisioning or running
deprovisioning resolves it. :func:`identity_status` reports the current
state of every piece.
"""

import logging
import re

from botocore.exceptions import ClientError

from recvault import metrics
from recvault.errors import ConfigError, InvalidIdentityName, PartialStateError, RecVaultError
from recvault.identity.service import IdentityService
from recvault.models import DeprovisionResult, Identity, IdentityStatus, ProvisionResult
from recvault.storage.backend import ObjectStore

logger = logging.getLogger(__name__)

# IAM user names: 1-64 of letters, digits and +=,.@_-
_NAME_RE = re.compile(r"^[\w+=,.@-]{1,64}$", re.ASCII)


def validate_identity_name(name: str) -> None:
    """Raise InvalidIdentityName unless ``name`` is a valid IAM user name."""
    if not name or not _NAME_RE.match(name):
        raise InvalidIdentityName(name)


def namespace_key(name: str) -> str:
    """Key of the marker object that represents a user's namespace."""
    return f"{name}/"


class IdentityProvisioner:
    """Creates a principal, its policy, one key pair and its namespace."""

    def __init__(self, identity: IdentityService, store: ObjectStore, policy_arn: str) -> None:
        self._identity = identity
        self._store = store
        self._policy_arn = policy_arn

    async def provision(self, name: str) -> ProvisionResult:
        """Provision ``name``.

        Args:
            name: The IAM user name, also used as the namespace prefix.

        Returns:
            ProvisionResult. ``created`` is False if the principal already
            existed, in which case nothing was changed. When created, the
            returned identity carries the only copy of the secret key.

        Raises:
            InvalidIdentityName: If ``name`` is not a valid IAM user name.
            ConfigError: If no policy ARN is configured.
            PartialStateError: If a step after principal creation failed.
        """
        validate_identity_name(name)
        if not self._policy_arn:
            raise ConfigError("identity.policy_arn (or AWS_IAM_POLICY) is required")

        prefix = namespace_key(name)
        if await self._identity.principal_exists(name):
            namespace_exists = await self._store.exists(prefix)
            logger.info(
                "IAM user %s already exists (namespace %s %s); nothing created",
                name,
                prefix,
                "exists" if namespace_exists else "missing",
                extra={"identity": name},
            )
            metrics.identity_operations_total.labels(
                operation="provision", status="exists"
            ).inc()
            return ProvisionResult(name=name, created=False)

        try:
            await self._identity.create_principal(name)
        except Exception:
            metrics.identity_operations_total.labels(operation="provision", status="error").inc()
            raise
        logger.info("Created IAM user %s", name, extra={"identity": name, "step": "create_principal"})

        completed = ["create_principal"]
        step = "attach_policy"
        try:
            await self._identity.attach_policy(name, self._policy_arn)
            completed.append(step)

            step = "create_access_key"
            key = await self._identity.create_access_key(name)
            completed.append(step)

            step = "create_namespace"
            namespace_created = await self._ensure_namespace(prefix)
            completed.append(step)
        except Exception as e:
            metrics.identity_operations_total.labels(
                operation="provision", status="partial"
            ).inc()
            logger.error(
                "Provisioning of %s stopped at %s; completed: %s",
                name,
                step,
                ", ".join(completed),
                extra={"identity": name, "step": step},
            )
            raise PartialStateError(name, completed, step, e) from e

        metrics.identity_operations_total.labels(operation="provision", status="created").inc()
        logger.info(
            "IAM user %s created, policy attached and access key issued",
            name,
            extra={"identity": name},
        )
        return ProvisionResult(
            name=name,
            created=True,
            identity=Identity(
                name=name,
                attached_policy_arn=self._policy_arn,
                access_keys=[key],
                namespace_prefix=prefix,
            ),
            namespace_created=namespace_created,
        )

    async def _ensure_namespace(self, prefix: str) -> bool:
        if await self._store.exists(prefix):
            logger.info("Namespace %s already exists; left untouched", prefix)
            return False
        await self._store.put(prefix, b"")
        logger.info("Created namespace %s", prefix)
        return True


class IdentityDeprovisioner:
    """Removes keys, policies, the principal and then its namespace."""

    def __init__(self, identity: IdentityService, store: ObjectStore) -> None:
        self._identity = identity
        self._store = store

    async def deprovision(self, name: str) -> DeprovisionResult:
        """Tear down ``name``.

        Keys are revoked and policies detached before the principal is
        deleted; IAM refuses to delete a user that still has either. The
        namespace marker is removed last and a failure there is reported
        in the result, not raised.

        Raises:
            InvalidIdentityName: If ``name`` is not a valid IAM user name.
            PartialStateError: If a step failed after state was changed.
        """
        validate_identity_name(name)
        if not await self._identity.principal_exists(name):
            logger.info("IAM user %s does not exist; nothing to delete", name, extra={"identity": name})
            metrics.identity_operations_total.labels(
                operation="deprovision", status="absent"
            ).inc()
            return DeprovisionResult(name=name, deleted=False)

        result = DeprovisionResult(name=name, deleted=False)
        completed: list[str] = []
        step = "revoke_access_keys"
        try:
            for key in await self._identity.list_access_keys(name):
                await self._identity.delete_access_key(name, key.key_id)
                result.revoked_keys.append(key.key_id)
                logger.info("Access key %s removed from %s", key.key_id, name)
            completed.append(step)

            step = "detach_policies"
            for policy in await self._identity.list_attached_policies(name):
                await self._identity.detach_policy(name, policy.arn)
                result.detached_policies.append(policy.arn)
                logger.info("Policy %s detached from %s", policy.name or policy.arn, name)
            completed.append(step)

            step = "delete_principal"
            await self._identity.delete_principal(name)
            completed.append(step)
        except Exception as e:
            metrics.identity_operations_total.labels(operation="deprovision", status="error").inc()
            if not (result.revoked_keys or result.detached_policies):
                raise
            raise PartialStateError(name, completed, step, e) from e

        result.deleted = True
        prefix = namespace_key(name)
        try:
            await self._store.delete(prefix)
            result.namespace_deleted = True
            logger.info("Namespace %s deleted", prefix)
        except (RecVaultError, ClientError) as e:
            logger.error(
                "IAM user %s deleted but namespace %s could not be removed: %s",
                name,
                prefix,
                e,
                extra={"identity": name, "step": "delete_namespace"},
            )

        metrics.identity_operations_total.labels(operation="deprovision", status="deleted").inc()
        logger.info("IAM user %s deleted", name, extra={"identity": name})
        return result


async def identity_status(
    identity: IdentityService, store: ObjectStore, name: str
) -> IdentityStatus:
    """Report which parts of ``name`` currently exist. Read-only."""
    validate_identity_name(name)
    status = IdentityStatus(
        name=name,
        principal_exists=await identity.principal_exists(name),
        namespace_exists=await store.exists(namespace_key(name)),
    )
    if status.principal_exists:
        status.attached_policies = [
            p.arn for p in await identity.list_attached_policies(name)
        ]
        status.access_key_ids = [k.key_id for k in await identity.list_access_keys(name)]
    return status
