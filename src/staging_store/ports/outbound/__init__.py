"""Outbound ports - contracts for external collaborators.

The staging store consumes two external capabilities:
- a key-addressed resource (blob) store holding chunks and completed pieces
- a remote endpoint accepting resumable, range-addressed uploads
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, BinaryIO, Optional, Protocol


# =============================================================================
# Resource Store Port
# =============================================================================


class ResourceInstance(Protocol):
    """Protocol for a single string-keyed entry in the resource store.

    Container keys (directories) hold child instances and support
    ``list_children``.

    Thread Safety:
        Independent instances may be used concurrently. ``put`` replaces
        the whole entry; readers never observe a partially written entry.
    """

    @property
    @abstractmethod
    def key(self) -> str:
        """Return the key this instance is addressed by."""
        ...

    @abstractmethod
    def put(self, stream: BinaryIO) -> int:
        """Replace the entry with the contents of a stream.

        Args:
            stream: Readable binary stream.

        Returns:
            Number of bytes stored.

        Raises:
            ResourceError: If the store is unavailable.
        """
        ...

    @abstractmethod
    def read_at(self, offset: int, size: int) -> bytes:
        """Read up to ``size`` bytes starting at ``offset``.

        Args:
            offset: Byte offset within the entry.
            size: Maximum number of bytes.

        Returns:
            The bytes read; shorter than ``size`` at the end of the entry.

        Raises:
            ResourceNotFoundError: If the entry does not exist.
        """
        ...

    @abstractmethod
    def size(self) -> int:
        """Return the entry length in bytes.

        Raises:
            ResourceNotFoundError: If the entry does not exist.
        """
        ...

    @abstractmethod
    def delete(self) -> None:
        """Delete the entry.

        Raises:
            ResourceNotFoundError: If the entry does not exist.
        """
        ...

    @abstractmethod
    def list_children(self) -> list[str]:
        """List child names of a container key.

        Raises:
            ResourceNotFoundError: If the container does not exist.
        """
        ...


class ResourceProvider(Protocol):
    """Protocol for creating resource instances by key."""

    @abstractmethod
    def new_instance(self, key: str) -> ResourceInstance:
        """Return a handle for ``key``; the entry need not exist yet.

        Raises:
            ResourceError: If the key is invalid for this store.
        """
        ...


# =============================================================================
# Upload Transport Port
# =============================================================================


@dataclass(frozen=True)
class TransferResponse:
    """Outcome of one range-addressed transfer."""

    status_code: int
    range_header: Optional[str] = None
    body: str = ""

    @property
    def acknowledged_end(self) -> Optional[int]:
        """Inclusive last byte the remote reports as persisted.

        Parsed from a ``Range: bytes=0-<end>`` header; None if absent.
        """
        if not self.range_header:
            return None
        _, _, span = self.range_header.partition("=")
        _, _, end = span.partition("-")
        try:
            return int(end)
        except ValueError:
            return None


class UploadTransport(Protocol):
    """Protocol for the remote object-storage endpoint.

    Example:
        file_id = transport.generate_id()
        locator = transport.initiate({"id": file_id, ...}, "video/mp4")
        response = transport.put_range(locator, data, "bytes 0-99/*")
    """

    @abstractmethod
    def generate_id(self) -> str:
        """Pre-allocate one object id on the remote.

        Raises:
            SessionNegotiationError: If the remote does not return an id.
        """
        ...

    @abstractmethod
    def create_folder(self, name: str, parent_container: str) -> str:
        """Create a container under ``parent_container`` and return its id.

        Raises:
            SessionNegotiationError: If the folder cannot be created.
        """
        ...

    @abstractmethod
    def initiate(self, metadata: dict[str, Any], mime_type: str) -> Optional[str]:
        """Open a resumable session for the described object.

        Returns:
            Session locator, or None if the remote did not supply one.

        Raises:
            SessionNegotiationError: If the request fails.
        """
        ...

    @abstractmethod
    def put_range(
        self, locator: str, data: bytes | memoryview, content_range: str
    ) -> TransferResponse:
        """Send one byte range to the session locator.

        Raises:
            TransferError: If the request could not be delivered.
        """
        ...


__all__ = [
    "ResourceInstance",
    "ResourceProvider",
    "TransferResponse",
    "UploadTransport",
]
