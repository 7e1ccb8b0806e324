"""Domain value objects."""

from staging_store.domain.value_objects.identifiers import (
    PIECE_HASH_HEX_LENGTH,
    PieceHash,
    create_piece_hash,
)

__all__ = [
    "PIECE_HASH_HEX_LENGTH",
    "PieceHash",
    "create_piece_hash",
]
