"""Offset-correct reads over the union of a piece's chunks."""

from __future__ import annotations

from bisect import bisect_right
from typing import Optional, Sequence

from staging_store.domain.entities.chunk import Chunk


class ChunkUnion:
    """Read view over a set of chunks belonging to one piece.
    
    Chunks are ordered by (offset, sequence). At any read cursor the
    applicable chunk with the highest (offset, sequence) wins: a chunk is
    applicable when it starts at or before the cursor and still has bytes
    at the cursor. Zero-length chunks are never applicable.
    """
    
    def __init__(self, chunks: Sequence[Chunk]):
        """Initialize the view.
        
        Args:
            chunks: Chunks of a single piece, in any order.
        """
        self._chunks = sorted(chunks, key=lambda c: c.sort_key)
        self._keys = [c.sort_key for c in self._chunks]
        self._sizes: dict[tuple[int, int], int] = {}
    
    def __len__(self) -> int:
        return len(self._chunks)
    
    @property
    def chunks(self) -> list[Chunk]:
        return list(self._chunks)
    
    def read(self, offset: int, size: int) -> bytes:
        """Read up to ``size`` bytes starting at ``offset``.
        
        Reading stops at the first cursor no chunk covers.
        
        Args:
            offset: Byte offset within the piece.
            size: Maximum number of bytes.
            
        Returns:
            Bytes read; empty when no chunk covers ``offset``.
        """
        if offset < 0:
            raise ValueError(f"Negative read offset: {offset}")
        
        parts: list[bytes] = []
        cursor = offset
        remaining = size
        
        while remaining > 0:
            chunk = self._applicable(cursor)
            if chunk is None:
                break
            
            data = chunk.instance.read_at(cursor - chunk.offset, remaining)
            if not data:
                break
            
            parts.append(data)
            cursor += len(data)
            remaining -= len(data)
        
        return b"".join(parts)
    
    def _applicable(self, cursor: int) -> Optional[Chunk]:
        # Everything left of this index starts at or before the cursor
        end = bisect_right(self._keys, (cursor, float("inf")))
        for index in range(end - 1, -1, -1):
            chunk = self._chunks[index]
            if chunk.offset + self._size_of(chunk) > cursor:
                return chunk
        return None
    
    def _size_of(self, chunk: Chunk) -> int:
        size = self._sizes.get(chunk.sort_key)
        if size is None:
            size = chunk.instance.size()
            self._sizes[chunk.sort_key] = size
        return size
