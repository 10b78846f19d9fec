"""Unit tests for the S3 object store.

All tests use mocked aiobotocore, no real AWS credentials or network
access required. The mock S3 client is injected directly onto
store._client to bypass session creation.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from recvault.errors import TransportError
from recvault.models import StorageObject
from recvault.storage.aws import S3ObjectStore

from conftest import client_error, paginator_of


def _make_store(bucket="archive", region="ap-southeast-1") -> S3ObjectStore:
    """Create an S3ObjectStore with a mock client (skip init)."""
    store = S3ObjectStore(bucket_name=bucket, region=region)
    store._client = AsyncMock()
    store._client_ctx = AsyncMock()
    return store


class TestInit:
    """Tests for init() and close()."""

    async def test_init_creates_client(self):
        with patch("recvault.storage.aws.AioSession") as mock_session_cls:
            mock_client = AsyncMock()
            mock_ctx = AsyncMock()
            mock_ctx.__aenter__ = AsyncMock(return_value=mock_client)
            mock_ctx.__aexit__ = AsyncMock(return_value=False)
            mock_session_cls.return_value.create_client.return_value = mock_ctx

            store = S3ObjectStore(bucket_name="archive", region="ap-southeast-1")
            await store.init()

            mock_session_cls.return_value.create_client.assert_called_once_with(
                "s3", region_name="ap-southeast-1"
            )
            mock_session_cls.return_value.set_credentials.assert_not_called()
            assert store._client is mock_client
            await store.close()

    async def test_init_with_explicit_credentials(self):
        with patch("recvault.storage.aws.AioSession") as mock_session_cls:
            mock_ctx = AsyncMock()
            mock_ctx.__aenter__ = AsyncMock(return_value=AsyncMock())
            mock_session_cls.return_value.create_client.return_value = mock_ctx

            store = S3ObjectStore(
                bucket_name="b",
                endpoint_url="http://localhost:9000",
                access_key_id="AK",
                secret_access_key="SK",
            )
            await store.init()

            mock_session_cls.return_value.set_credentials.assert_called_once_with("AK", "SK")
            kwargs = mock_session_cls.return_value.create_client.call_args[1]
            assert kwargs["endpoint_url"] == "http://localhost:9000"

    async def test_close_exits_context(self):
        store = _make_store()
        ctx_ref = store._client_ctx
        await store.close()
        ctx_ref.__aexit__.assert_awaited_once()
        assert store._client is None
        assert store._client_ctx is None

    async def test_close_noop_when_not_initialized(self):
        store = S3ObjectStore(bucket_name="b")
        await store.close()


class TestListObjects:
    """Tests for list_objects()."""

    async def test_follows_pages(self):
        store = _make_store()
        modified = datetime(2024, 3, 10, tzinfo=timezone.utc)
        store._client.get_paginator = MagicMock(
            return_value=paginator_of(
                [
                    {"Contents": [{"Key": "a.mp4", "Size": 10, "LastModified": modified}]},
                    {"Contents": [{"Key": "b.mp4", "Size": 20}]},
                    {},
                ]
            )
        )

        result = await store.list_objects()

        assert result == [
            StorageObject(key="a.mp4", size=10, last_modified=modified),
            StorageObject(key="b.mp4", size=20),
        ]
        store._client.get_paginator.assert_called_once_with("list_objects_v2")
        paginator = store._client.get_paginator.return_value
        paginator.paginate.assert_called_once_with(Bucket="archive", Prefix="")

    async def test_connection_error_is_transport_error(self):
        store = _make_store()
        paginator = MagicMock()
        paginator.paginate = MagicMock(
            side_effect=EndpointConnectionError(endpoint_url="https://s3")
        )
        store._client.get_paginator = MagicMock(return_value=paginator)

        with pytest.raises(TransportError):
            await store.list_objects()


class TestObjectOperations:
    """Tests for ACL, copy, delete, put and exists."""

    async def test_set_public_read(self):
        store = _make_store()
        await store.set_public_read("T/a b.mp4")
        store._client.put_object_acl.assert_awaited_once_with(
            Bucket="archive", Key="T/a b.mp4", ACL="public-read"
        )

    async def test_copy_public(self):
        store = _make_store()
        await store.copy("T/a.mp4", "ADMIN_RESULT/T/1-1-2024/x.mp4")
        store._client.copy_object.assert_awaited_once_with(
            Bucket="archive",
            Key="ADMIN_RESULT/T/1-1-2024/x.mp4",
            CopySource={"Bucket": "archive", "Key": "T/a.mp4"},
            ACL="public-read",
        )

    async def test_copy_private(self):
        store = _make_store()
        await store.copy("a", "b", public_read=False)
        assert "ACL" not in store._client.copy_object.call_args[1]

    async def test_copy_client_error_propagates(self):
        store = _make_store()
        store._client.copy_object = AsyncMock(side_effect=client_error("AccessDenied"))
        with pytest.raises(ClientError):
            await store.copy("a", "b")

    async def test_delete(self):
        store = _make_store()
        await store.delete("T/a.mp4")
        store._client.delete_object.assert_awaited_once_with(Bucket="archive", Key="T/a.mp4")

    async def test_put_empty_marker(self):
        store = _make_store()
        await store.put("alice/")
        store._client.put_object.assert_awaited_once_with(
            Bucket="archive", Key="alice/", Body=b""
        )

    async def test_exists_true(self):
        store = _make_store()
        assert await store.exists("alice/") is True
        store._client.head_object.assert_awaited_once_with(Bucket="archive", Key="alice/")

    @pytest.mark.parametrize("code", ["404", "NoSuchKey", "NotFound"])
    async def test_exists_false_on_not_found(self, code):
        store = _make_store()
        store._client.head_object = AsyncMock(side_effect=client_error(code))
        assert await store.exists("alice/") is False

    async def test_exists_other_error_propagates(self):
        store = _make_store()
        store._client.head_object = AsyncMock(side_effect=client_error("403"))
        with pytest.raises(ClientError):
            await store.exists("alice/")

    async def test_delete_connection_error(self):
        store = _make_store()
        store._client.delete_object = AsyncMock(
            side_effect=EndpointConnectionError(endpoint_url="https://s3")
        )
        with pytest.raises(TransportError, match="delete_object"):
            await store.delete("a")
