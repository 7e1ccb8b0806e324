"""Piece entity for chunked staging."""

from __future__ import annotations

from dataclasses import dataclass

from staging_store.domain.value_objects.identifiers import PieceHash, create_piece_hash


@dataclass(frozen=True)
class Piece:
    """A fixed-identity unit of a larger object.
    
    Identity is the content hash plus the declared byte length. Completion
    state is not stored here; it is derived from the resource store.
    """
    
    piece_hash: PieceHash
    length: int
    
    def __post_init__(self) -> None:
        object.__setattr__(self, "piece_hash", create_piece_hash(self.piece_hash))
        if self.length < 0:
            raise ValueError(f"Piece length must be non-negative, got {self.length}")


@dataclass(frozen=True)
class PieceCompletion:
    """Completion state of a piece.

    ``ok`` is always True here: completion is derived from the completed
    instance and never reported as unknown.
    """

    complete: bool
    ok: bool = True
