"""Abstract object store protocol for recvault."""

from typing import Protocol

from recvault.models import StorageObject


class ObjectStore(Protocol):
    """Protocol defining the object store operations recvault needs.

    All operations address keys inside a single archive bucket chosen at
    construction time.
    """

    async def init(self) -> None:
        """Open the connection to the store."""
        ...

    async def close(self) -> None:
        """Release resources held by the store."""
        ...

    async def list_objects(self, prefix: str = "") -> list[StorageObject]:
        """List every object whose key starts with ``prefix``.

        Args:
            prefix: Key prefix to filter on ("" for the whole bucket).

        Returns:
            Objects in the store's listing order (lexicographic by key).
        """
        ...

    async def set_public_read(self, key: str) -> None:
        """Make an object publicly readable.

        Args:
            key: The object key.
        """
        ...

    async def copy(self, src_key: str, dst_key: str, public_read: bool = True) -> None:
        """Server-side copy of an object within the bucket.

        Args:
            src_key: The source object key.
            dst_key: The destination object key.
            public_read: Whether the copy is publicly readable.
        """
        ...

    async def delete(self, key: str) -> None:
        """Delete an object. Deleting a missing key is not an error.

        Args:
            key: The object key.
        """
        ...

    async def exists(self, key: str) -> bool:
        """Check if an object exists.

        Args:
            key: The object key.

        Returns:
            True if the object exists.
        """
        ...

    async def put(self, key: str, data: bytes = b"") -> None:
        """Store an object's bytes (empty body for namespace markers).

        Args:
            key: The object key.
            data: The raw bytes to store.
        """
        ...
