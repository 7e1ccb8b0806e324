"""Domain services."""

from staging_store.domain.services.chunk_reader import ChunkUnion
from staging_store.domain.services.handoff import BoundedHandoff, HandoffCancelled
from staging_store.domain.services.piece_store import ChunkedPieceStore, PieceStorage
from staging_store.domain.services.session_negotiator import UploadSessionNegotiator
from staging_store.domain.services.upload_pipeline import (
    DEFAULT_WINDOW_SIZE,
    ChunkProducer,
    ChunkUploader,
    UploadPipeline,
)

__all__ = [
    "ChunkUnion",
    "BoundedHandoff",
    "HandoffCancelled",
    "ChunkedPieceStore",
    "PieceStorage",
    "UploadSessionNegotiator",
    "DEFAULT_WINDOW_SIZE",
    "ChunkProducer",
    "ChunkUploader",
    "UploadPipeline",
]
