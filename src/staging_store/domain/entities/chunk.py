"""Chunk entity for partial piece writes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from staging_store.ports.outbound import ResourceInstance


@dataclass(frozen=True)
class Chunk:
    """An independently stored partial write to a piece.
    
    ``sequence`` orders chunks created at the same offset; the higher
    sequence is the later write.
    """
    
    piece_hash: str
    offset: int
    sequence: int
    instance: "ResourceInstance"
    
    @property
    def name(self) -> str:
        """Resource name of this chunk inside its piece directory."""
        return format_chunk_name(self.offset, self.sequence)
    
    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.offset, self.sequence)


def format_chunk_name(offset: int, sequence: int) -> str:
    """Build the resource name for a chunk.
    
    Args:
        offset: Byte offset of the chunk within the piece.
        sequence: Creation sequence number.
        
    Returns:
        Name of the form ``<offset>.<sequence>``.
    """
    return f"{offset}.{sequence}"


def parse_chunk_name(name: str) -> Optional[tuple[int, int]]:
    """Parse a chunk resource name.
    
    Bare ``<offset>`` names are accepted with sequence 0.
    
    Args:
        name: Resource name.
        
    Returns:
        (offset, sequence) or None if the name is not a chunk name.
    """
    offset_part, _, sequence_part = name.partition(".")
    try:
        offset = int(offset_part)
        sequence = int(sequence_part) if sequence_part else 0
    except ValueError:
        return None
    
    if offset < 0 or sequence < 0:
        return None
    return offset, sequence
