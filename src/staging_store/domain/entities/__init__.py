"""Domain entities."""

from staging_store.domain.entities.chunk import Chunk
from staging_store.domain.entities.piece import Piece, PieceCompletion
from staging_store.domain.entities.upload import (
    SourceFile,
    UploadSession,
    UploadState,
    UploadUnit,
)

__all__ = [
    "Piece",
    "PieceCompletion",
    "Chunk",
    "SourceFile",
    "UploadSession",
    "UploadState",
    "UploadUnit",
]
