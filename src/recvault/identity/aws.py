"""AWS IAM identity service for recvault.

Wraps the IAM user, access-key and managed-policy calls via aiobotocore.
``NoSuchEntity`` errors on calls that assume the principal exists are raised
as :class:`~recvault.errors.NotFoundError`; connection failures as
:class:`~recvault.errors.TransportError`.
"""

import contextlib
import logging
from collections.abc import Iterator
from typing import Any

from aiobotocore.session import AioSession
from botocore.exceptions import ClientError

from recvault.errors import NotFoundError
from recvault.models import AccessKey, AttachedPolicy, PrincipalSummary
from recvault.storage.aws import error_code, transport_errors

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def _iam_call(operation: str, name: str) -> Iterator[None]:
    with transport_errors("iam", operation):
        try:
            yield
        except ClientError as e:
            if error_code(e) == "NoSuchEntity":
                raise NotFoundError(f"IAM user {name}") from e
            raise


class IAMIdentityService:
    """Identity service backed by AWS IAM users."""

    def __init__(
        self,
        region: str = "ap-southeast-1",
        endpoint_url: str = "",
        access_key_id: str = "",
        secret_access_key: str = "",
    ) -> None:
        self.region = region
        self.endpoint_url = endpoint_url
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self._session = AioSession()
        self._client: Any = None
        self._client_ctx: Any = None

    async def init(self) -> None:
        """Create the aiobotocore IAM client."""
        client_kwargs: dict = {"region_name": self.region}
        if self.endpoint_url:
            client_kwargs["endpoint_url"] = self.endpoint_url
        if self.access_key_id and self.secret_access_key:
            self._session.set_credentials(self.access_key_id, self.secret_access_key)
        self._client_ctx = self._session.create_client("iam", **client_kwargs)
        self._client = await self._client_ctx.__aenter__()
        logger.debug("IAM client initialized (region=%s)", self.region)

    async def close(self) -> None:
        """Close the aiobotocore client session."""
        if self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)
            self._client = None
            self._client_ctx = None

    async def list_principals(self) -> list[PrincipalSummary]:
        paginator = self._client.get_paginator("list_users")
        users: list[PrincipalSummary] = []
        with transport_errors("iam", "list_users"):
            async for page in paginator.paginate():
                for user in page.get("Users", []):
                    users.append(
                        PrincipalSummary(
                            name=user["UserName"],
                            user_id=user.get("UserId", ""),
                            arn=user.get("Arn", ""),
                        )
                    )
        return users

    async def principal_exists(self, name: str) -> bool:
        return any(user.name == name for user in await self.list_principals())

    async def create_principal(self, name: str) -> PrincipalSummary:
        with transport_errors("iam", "create_user"):
            resp = await self._client.create_user(UserName=name)
        user = resp.get("User", {})
        return PrincipalSummary(
            name=user.get("UserName", name),
            user_id=user.get("UserId", ""),
            arn=user.get("Arn", ""),
        )

    async def delete_principal(self, name: str) -> None:
        with _iam_call("delete_user", name):
            await self._client.delete_user(UserName=name)

    async def attach_policy(self, name: str, policy_arn: str) -> None:
        with _iam_call("attach_user_policy", name):
            await self._client.attach_user_policy(UserName=name, PolicyArn=policy_arn)

    async def detach_policy(self, name: str, policy_arn: str) -> None:
        with _iam_call("detach_user_policy", name):
            await self._client.detach_user_policy(UserName=name, PolicyArn=policy_arn)

    async def list_attached_policies(self, name: str) -> list[AttachedPolicy]:
        paginator = self._client.get_paginator("list_attached_user_policies")
        policies: list[AttachedPolicy] = []
        with _iam_call("list_attached_user_policies", name):
            async for page in paginator.paginate(UserName=name):
                for policy in page.get("AttachedPolicies", []):
                    policies.append(
                        AttachedPolicy(
                            arn=policy["PolicyArn"], name=policy.get("PolicyName", "")
                        )
                    )
        return policies

    async def create_access_key(self, name: str) -> AccessKey:
        with _iam_call("create_access_key", name):
            resp = await self._client.create_access_key(UserName=name)
        key = resp["AccessKey"]
        return AccessKey(
            key_id=key["AccessKeyId"],
            secret=key["SecretAccessKey"],
            status=key.get("Status", "Active"),
        )

    async def list_access_keys(self, name: str) -> list[AccessKey]:
        paginator = self._client.get_paginator("list_access_keys")
        keys: list[AccessKey] = []
        with _iam_call("list_access_keys", name):
            async for page in paginator.paginate(UserName=name):
                for meta in page.get("AccessKeyMetadata", []):
                    keys.append(
                        AccessKey(
                            key_id=meta["AccessKeyId"],
                            status=meta.get("Status", "Active"),
                        )
                    )
        return keys

    async def delete_access_key(self, name: str, key_id: str) -> None:
        with _iam_call("delete_access_key", name):
            await self._client.delete_access_key(UserName=name, AccessKeyId=key_id)
