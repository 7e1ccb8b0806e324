"""Chunked piece store.

Partial writes to a piece land as independent chunk instances keyed by
offset under ``<incomplete_prefix>/<piece hash>/``. Reads before completion
are served from the union of chunks; completion merges the chunks into a
single instance at ``<completed_prefix>/<piece hash>`` and only then
deletes them.

Layout in the resource store:
    completed/<hash>                    completed piece, exactly piece.length bytes
    incompleted/<hash>/<offset>.<seq>   one chunk per write call

Concurrency:
    No internal locking. Writes to the same piece are independent creates
    and safe to run concurrently. ``mark_complete`` calls on the same piece
    must be serialized by the caller.
"""

from __future__ import annotations

import io
import itertools
import posixpath
import time
from typing import TYPE_CHECKING, Optional

from staging_store.domain.entities.chunk import Chunk, format_chunk_name, parse_chunk_name
from staging_store.domain.entities.piece import Piece, PieceCompletion
from staging_store.domain.exceptions import (
    IncompletePieceError,
    ResourceError,
    ResourceNotFoundError,
)
from staging_store.domain.services.chunk_reader import ChunkUnion
from staging_store.infrastructure.logging import get_logger
from staging_store.ports.inbound import PieceStoragePort

if TYPE_CHECKING:
    from staging_store.infrastructure.metrics import StagingStoreMetrics
    from staging_store.ports.outbound import ResourceInstance, ResourceProvider

logger = get_logger("piece_store")


class ChunkedPieceStore:
    """Maps pieces to chunk instances in a resource store."""
    
    def __init__(
        self,
        provider: "ResourceProvider",
        completed_prefix: str = "completed",
        incomplete_prefix: str = "incompleted",
        metrics: Optional["StagingStoreMetrics"] = None,
    ):
        """Initialize the piece store.
        
        Args:
            provider: Resource store backing chunks and completed pieces.
            completed_prefix: Key prefix for completed instances.
            incomplete_prefix: Key prefix for chunk directories.
            metrics: Optional metrics collector.
        """
        self.provider = provider
        self.completed_prefix = completed_prefix
        self.incomplete_prefix = incomplete_prefix
        self._metrics = metrics
        # Seeded from the clock so sequences keep increasing across restarts
        self._sequence = itertools.count(time.time_ns())
    
    def open_torrent(self, info_hash: str) -> "ChunkedPieceStore":
        """Open storage for a torrent.
        
        Pieces are keyed by their own hash, so every torrent shares the
        same store.
        
        Args:
            info_hash: Torrent info-hash.
            
        Returns:
            This store.
        """
        logger.debug("torrent_storage_opened", info_hash=info_hash)
        return self
    
    def close(self) -> None:
        """Release the store. Nothing is held open between calls."""
        return None
    
    def piece(self, piece: Piece) -> "PieceStorage":
        """Get the storage handle for a piece.
        
        Args:
            piece: Piece identity.
            
        Returns:
            Handle exposing write/read/completion operations.
        """
        return PieceStorage(self, piece)
    
    def next_sequence(self) -> int:
        return next(self._sequence)
    
    def completed_key(self, piece: Piece) -> str:
        return posixpath.join(self.completed_prefix, piece.piece_hash)
    
    def incomplete_dir_key(self, piece: Piece) -> str:
        return posixpath.join(self.incomplete_prefix, piece.piece_hash)


class PieceStorage(PieceStoragePort):
    """Write/read/completion operations for one piece."""
    
    def __init__(self, store: ChunkedPieceStore, piece: Piece):
        self._store = store
        self._provider = store.provider
        self._metrics = store._metrics
        self.piece = piece
    
    def write(self, offset: int, data: bytes) -> int:
        """Store a partial write as a new chunk.
        
        Never rejects a write for overlap or ordering.
        
        Args:
            offset: Byte offset within the piece where ``data`` begins.
            data: Bytes written by one write call.
            
        Returns:
            Number of bytes stored.
            
        Raises:
            ResourceError: If the resource store fails or stores fewer bytes.
        """
        if offset < 0:
            raise ValueError(f"Negative write offset: {offset}")
        
        name = format_chunk_name(offset, self._store.next_sequence())
        instance = self._provider.new_instance(
            posixpath.join(self._store.incomplete_dir_key(self.piece), name)
        )
        written = instance.put(io.BytesIO(data))
        if written != len(data):
            raise ResourceError(
                f"Short chunk write for piece {self.piece.piece_hash} at {offset}: "
                f"{written} of {len(data)} bytes"
            )
        
        if self._metrics:
            self._metrics.chunks_written.inc()
            self._metrics.bytes_written.inc(written)
        
        return written
    
    def read(self, offset: int, size: int) -> bytes:
        """Read from the piece.
        
        Routes to the completed instance when the piece is complete,
        otherwise to the union of chunks.
        
        Args:
            offset: Byte offset within the piece.
            size: Maximum number of bytes.
            
        Returns:
            Bytes read; empty bytes signal end-of-data.
        """
        if self.completion().complete:
            return self._read_completed(offset, size)
        
        try:
            data = self._chunk_union().read(offset, size)
        except ResourceNotFoundError:
            # A chunk vanished under us: completion merged it meanwhile
            if not self.completion().complete:
                raise
            return self._read_completed(offset, size)
        
        if self._metrics:
            self._metrics.piece_reads.labels(route="chunks").inc()
        return data
    
    def completion(self) -> PieceCompletion:
        """Report whether the piece is complete.
        
        Complete iff the completed instance exists with exactly the
        declared piece length.
        """
        try:
            size = self._completed().size()
        except ResourceError:
            return PieceCompletion(complete=False)
        return PieceCompletion(complete=size == self.piece.length)
    
    def mark_complete(self) -> None:
        """Merge all chunks into the completed instance.
        
        Chunks are deleted only after the completed instance has been
        written in full. Re-invoking on a complete piece is a no-op.
        
        Raises:
            IncompletePieceError: If some byte of the piece has no chunk.
            ResourceError: If the completed instance cannot be written.
        """
        if self.completion().complete:
            if self._metrics:
                self._metrics.piece_completions.labels(result="already_complete").inc()
            return
        
        union = self._chunk_union()
        data = union.read(0, self.piece.length)
        if len(data) < self.piece.length:
            if self._metrics:
                self._metrics.piece_completions.labels(result="incomplete").inc()
            raise IncompletePieceError(self.piece, len(data))
        
        written = self._completed().put(io.BytesIO(data))
        if written != self.piece.length:
            raise ResourceError(
                f"Short completed write for piece {self.piece.piece_hash}: "
                f"{written} of {self.piece.length} bytes"
            )
        
        for chunk in union.chunks:
            self._delete_chunk(chunk)
        self._delete_incomplete_dir()
        
        if self._metrics:
            self._metrics.piece_completions.labels(result="merged").inc()
            self._metrics.chunks_merged.inc(len(union))
        
        logger.info(
            "piece_completed",
            piece_hash=self.piece.piece_hash,
            length=self.piece.length,
            chunks=len(union),
        )
    
    def mark_incomplete(self) -> None:
        """Delete the completed instance. Idempotent."""
        try:
            self._completed().delete()
        except ResourceNotFoundError:
            return
        logger.info("piece_marked_incomplete", piece_hash=self.piece.piece_hash)
    
    def chunks(self) -> list[Chunk]:
        """List the chunks currently stored for the piece.
        
        Returns:
            Chunks ordered by (offset, sequence).
        """
        dir_key = self._store.incomplete_dir_key(self.piece)
        try:
            names = self._provider.new_instance(dir_key).list_children()
        except ResourceNotFoundError:
            return []
        
        chunks = []
        for name in names:
            parsed = parse_chunk_name(name)
            if parsed is None:
                continue
            offset, sequence = parsed
            chunks.append(
                Chunk(
                    piece_hash=self.piece.piece_hash,
                    offset=offset,
                    sequence=sequence,
                    instance=self._provider.new_instance(posixpath.join(dir_key, name)),
                )
            )
        
        chunks.sort(key=lambda c: c.sort_key)
        return chunks
    
    def _chunk_union(self) -> ChunkUnion:
        return ChunkUnion(self.chunks())
    
    def _completed(self) -> "ResourceInstance":
        return self._provider.new_instance(self._store.completed_key(self.piece))
    
    def _read_completed(self, offset: int, size: int) -> bytes:
        if self._metrics:
            self._metrics.piece_reads.labels(route="completed").inc()
        return self._completed().read_at(offset, size)
    
    def _delete_chunk(self, chunk: Chunk) -> None:
        try:
            chunk.instance.delete()
        except ResourceNotFoundError:
            pass
        except ResourceError as e:
            # The piece is already complete; a leftover chunk is never read again
            logger.warning(
                "piece_chunk_delete_failed",
                piece_hash=self.piece.piece_hash,
                chunk=chunk.name,
                error=str(e),
            )
    
    def _delete_incomplete_dir(self) -> None:
        instance = self._provider.new_instance(self._store.incomplete_dir_key(self.piece))
        try:
            if not instance.list_children():
                instance.delete()
        except ResourceNotFoundError:
            pass
