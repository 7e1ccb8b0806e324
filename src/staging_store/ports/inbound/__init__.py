"""Inbound ports - API contracts for the staging store.

Inbound ports define the interfaces the surrounding scheduler uses to
stage pieces and to stream completed objects to the remote endpoint.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import Optional, Protocol

from staging_store.domain.entities.chunk import Chunk
from staging_store.domain.entities.piece import PieceCompletion
from staging_store.domain.entities.upload import SourceFile, UploadSession, UploadState


# =============================================================================
# Piece Storage Port
# =============================================================================


class PieceStoragePort(Protocol):
    """Protocol for staging one piece.

    Thread Safety:
        Writes and reads may run concurrently. ``mark_complete`` calls
        on the same piece must be serialized by the caller.

    Example:
        storage = store.piece(piece)
        storage.write(0, b"ABCDE")
        storage.write(5, b"FGHIJ")
        storage.mark_complete()
        assert storage.completion().complete
    """

    @abstractmethod
    def write(self, offset: int, data: bytes) -> int:
        """Store a partial write as a new chunk.

        Args:
            offset: Byte offset within the piece.
            data: Bytes of one write call.

        Returns:
            Number of bytes stored.

        Raises:
            ResourceError: If the resource store fails.
        """
        ...

    @abstractmethod
    def read(self, offset: int, size: int) -> bytes:
        """Read from the piece.

        Args:
            offset: Byte offset within the piece.
            size: Maximum number of bytes.

        Returns:
            Bytes read; empty bytes signal end-of-data.
        """
        ...

    @abstractmethod
    def completion(self) -> PieceCompletion:
        """Report whether the piece is complete."""
        ...

    @abstractmethod
    def mark_complete(self) -> None:
        """Merge chunks into the completed instance.

        Raises:
            IncompletePieceError: If some byte has no covering chunk.
        """
        ...

    @abstractmethod
    def mark_incomplete(self) -> None:
        """Delete the completed instance. Idempotent."""
        ...

    @abstractmethod
    def chunks(self) -> list[Chunk]:
        """List the chunks currently stored for the piece."""
        ...


# =============================================================================
# Upload Service Port
# =============================================================================


@dataclass
class UploadStatus:
    """Snapshot of one upload for monitoring."""

    object_name: str
    state: UploadState
    next_offset: int
    total_length: int
    error: Optional[str] = None


class UploadServicePort(Protocol):
    """Protocol for streaming completed objects to the remote endpoint.

    Example:
        handle = service.start_upload(source)
        handle.wait()
    """

    @abstractmethod
    def start_upload(self, source: SourceFile) -> object:
        """Open a session and start streaming a source file.

        Raises:
            SessionNegotiationError: If no session could be opened.
        """
        ...

    @abstractmethod
    def get_status(self, object_name: str) -> Optional[UploadStatus]:
        """Get the status of an upload, or None if unknown."""
        ...

    @abstractmethod
    def cancel_upload(self, object_name: str) -> bool:
        """Stop an in-flight upload.

        Returns:
            True if an in-flight upload was cancelled.
        """
        ...


__all__ = [
    "PieceStoragePort",
    "UploadServicePort",
    "UploadStatus",
]
