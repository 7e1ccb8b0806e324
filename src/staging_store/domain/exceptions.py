"""Error taxonomy for the staging store and upload pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from staging_store.domain.entities.piece import Piece


class StagingStoreError(Exception):
    """Base class for all staging store errors."""

    pass


class ResourceError(StagingStoreError):
    """Raised when the resource store is unavailable or a write is short."""

    pass


class ResourceNotFoundError(ResourceError):
    """Raised when a resource instance does not exist."""

    def __init__(self, key: str):
        super().__init__(f"Resource not found: {key}")
        self.key = key


class IncompletePieceError(StagingStoreError):
    """Raised when the chunks of a piece do not cover its full length.

    No chunk is deleted when this is raised, so completion may be retried
    once the missing ranges have been written.
    """

    def __init__(self, piece: "Piece", available: int):
        super().__init__(
            f"Piece {piece.piece_hash} has {available} of {piece.length} bytes"
        )
        self.piece = piece
        self.available = available


class SessionNegotiationError(StagingStoreError):
    """Raised when the remote endpoint does not hand out an upload session."""

    pass


class TransferError(StagingStoreError):
    """Raised when a range transfer is not accepted by the remote.

    ``next_offset`` is the first byte the remote has not acknowledged, so
    the transfer can be resumed from there. It is None when the failure
    happened below the session (e.g. in the transport).
    """

    def __init__(
        self,
        message: str,
        next_offset: Optional[int] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.next_offset = next_offset
        self.status_code = status_code


class PipelineAbortedError(StagingStoreError):
    """Raised when an upload pipeline stops before finalization."""

    pass
