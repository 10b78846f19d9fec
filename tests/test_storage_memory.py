"""Tests for the in-memory object store."""

import pytest

from recvault.errors import NotFoundError
from recvault.storage.memory import MemoryObjectStore


class TestMemoryObjectStore:
    async def test_put_list_sorted(self, store: MemoryObjectStore):
        await store.put("b.mp4", b"2")
        await store.put("a.mp4", b"1")
        await store.put("x/c.mp4", b"333")

        listed = await store.list_objects()
        assert [o.key for o in listed] == ["a.mp4", "b.mp4", "x/c.mp4"]
        assert listed[2].size == 3
        assert [o.key for o in await store.list_objects("x/")] == ["x/c.mp4"]

    async def test_copy_and_delete(self, store):
        await store.put("src.mp4", b"data")
        await store.copy("src.mp4", "dst.mp4")
        assert store.is_public("dst.mp4")
        assert not store.is_public("src.mp4")
        await store.delete("src.mp4")
        assert store.keys() == ["dst.mp4"]

    async def test_copy_missing_source(self, store):
        with pytest.raises(NotFoundError):
            await store.copy("nope", "dst")

    async def test_set_public_read(self, store):
        await store.put("a.mp4")
        await store.set_public_read("a.mp4")
        assert store.is_public("a.mp4")

    async def test_delete_missing_is_noop(self, store):
        await store.delete("ghost")
        assert await store.exists("ghost") is False

    async def test_close(self, store):
        await store.init()
        await store.close()
        assert store.closed
