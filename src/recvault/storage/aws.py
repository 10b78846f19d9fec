"""AWS S3 object store for recvault.

Talks to the archive bucket via aiobotocore. Credentials are taken from the
configuration when both halves are set, otherwise from the standard AWS
credential chain (env vars, ~/.aws/credentials, IAM role, etc.).

Connection-level failures (botocore ``BotoCoreError``) are raised as
:class:`~recvault.errors.TransportError`. Service-side ``ClientError``s
propagate unchanged, except for the 404 handled by :meth:`exists`.
"""

import contextlib
import logging
from collections.abc import Iterator
from typing import Any

from aiobotocore.session import AioSession
from botocore.exceptions import BotoCoreError, ClientError

from recvault.errors import TransportError
from recvault.models import StorageObject

logger = logging.getLogger(__name__)

_PUBLIC_READ = "public-read"


def error_code(exc: ClientError) -> str:
    """Return the service error code carried by a botocore ClientError."""
    return exc.response.get("Error", {}).get("Code", "")


@contextlib.contextmanager
def transport_errors(service: str, operation: str) -> Iterator[None]:
    """Re-raise botocore connection failures as TransportError."""
    try:
        yield
    except BotoCoreError as e:
        raise TransportError(f"{service} {operation} failed: {e}") from e


class S3ObjectStore:
    """Object store backed by a single AWS S3 bucket.

    Attributes:
        bucket_name: The S3 bucket holding the archive.
        region: The AWS region of the bucket.
    """

    def __init__(
        self,
        bucket_name: str,
        region: str = "ap-southeast-1",
        endpoint_url: str = "",
        access_key_id: str = "",
        secret_access_key: str = "",
    ) -> None:
        self.bucket_name = bucket_name
        self.region = region
        self.endpoint_url = endpoint_url
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self._session = AioSession()
        self._client: Any = None
        self._client_ctx: Any = None

    async def init(self) -> None:
        """Create the aiobotocore S3 client."""
        client_kwargs: dict = {"region_name": self.region}
        if self.endpoint_url:
            client_kwargs["endpoint_url"] = self.endpoint_url

        if self.access_key_id and self.secret_access_key:
            self._session.set_credentials(self.access_key_id, self.secret_access_key)
        self._client_ctx = self._session.create_client("s3", **client_kwargs)
        self._client = await self._client_ctx.__aenter__()

        logger.info(
            "S3 object store initialized: bucket=%s region=%s",
            self.bucket_name,
            self.region,
        )

    async def close(self) -> None:
        """Close the aiobotocore client session."""
        if self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)
            self._client = None
            self._client_ctx = None

    async def list_objects(self, prefix: str = "") -> list[StorageObject]:
        """List all objects under ``prefix``, following pagination."""
        paginator = self._client.get_paginator("list_objects_v2")
        objects: list[StorageObject] = []
        with transport_errors("s3", "list_objects_v2"):
            async for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
                for entry in page.get("Contents", []):
                    objects.append(
                        StorageObject(
                            key=entry["Key"],
                            size=entry.get("Size", 0),
                            last_modified=entry.get("LastModified"),
                        )
                    )
        return objects

    async def set_public_read(self, key: str) -> None:
        with transport_errors("s3", "put_object_acl"):
            await self._client.put_object_acl(
                Bucket=self.bucket_name, Key=key, ACL=_PUBLIC_READ
            )

    async def copy(self, src_key: str, dst_key: str, public_read: bool = True) -> None:
        """Server-side copy within the archive bucket."""
        kwargs: dict = {
            "Bucket": self.bucket_name,
            "Key": dst_key,
            "CopySource": {"Bucket": self.bucket_name, "Key": src_key},
        }
        if public_read:
            kwargs["ACL"] = _PUBLIC_READ
        with transport_errors("s3", "copy_object"):
            await self._client.copy_object(**kwargs)

    async def delete(self, key: str) -> None:
        """Delete an object.

        Idempotent, S3 delete_object does not error on missing keys.
        """
        with transport_errors("s3", "delete_object"):
            await self._client.delete_object(Bucket=self.bucket_name, Key=key)

    async def exists(self, key: str) -> bool:
        with transport_errors("s3", "head_object"):
            try:
                await self._client.head_object(Bucket=self.bucket_name, Key=key)
                return True
            except ClientError as e:
                if error_code(e) in ("404", "NoSuchKey", "NotFound"):
                    return False
                raise

    async def put(self, key: str, data: bytes = b"") -> None:
        with transport_errors("s3", "put_object"):
            await self._client.put_object(Bucket=self.bucket_name, Key=key, Body=data)
