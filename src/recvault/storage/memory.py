"""In-memory object store for recvault.

Implements the ObjectStore protocol with a dictionary. Nothing is
persisted; every process starts with an empty bucket. Used for dry runs
(``storage.backend: memory``) and by the test suite.
"""

import logging
from datetime import datetime, timezone

from recvault.errors import NotFoundError
from recvault.models import StorageObject

logger = logging.getLogger(__name__)


class MemoryObjectStore:
    """Object store holding all objects in memory.

    Objects are stored in a dictionary keyed by object key with values of
    (data, public_read, last_modified).
    """

    def __init__(self) -> None:
        self._objects: dict[str, tuple[bytes, bool, datetime]] = {}
        self.closed = False

    async def init(self) -> None:
        self.closed = False

    async def close(self) -> None:
        self.closed = True

    def is_public(self, key: str) -> bool:
        """Whether ``key`` is currently publicly readable."""
        if key not in self._objects:
            raise NotFoundError(key)
        return self._objects[key][1]

    def keys(self) -> list[str]:
        return sorted(self._objects)

    async def list_objects(self, prefix: str = "") -> list[StorageObject]:
        return [
            StorageObject(key=key, size=len(data), last_modified=modified)
            for key, (data, _public, modified) in sorted(self._objects.items())
            if key.startswith(prefix)
        ]

    async def set_public_read(self, key: str) -> None:
        if key not in self._objects:
            raise NotFoundError(key)
        data, _public, modified = self._objects[key]
        self._objects[key] = (data, True, modified)

    async def copy(self, src_key: str, dst_key: str, public_read: bool = True) -> None:
        if src_key not in self._objects:
            raise NotFoundError(src_key)
        data = self._objects[src_key][0]
        self._objects[dst_key] = (data, public_read, datetime.now(timezone.utc))

    async def delete(self, key: str) -> None:
        self._objects.pop(key, None)

    async def exists(self, key: str) -> bool:
        return key in self._objects

    async def put(self, key: str, data: bytes = b"") -> None:
        self._objects[key] = (data, False, datetime.now(timezone.utc))
