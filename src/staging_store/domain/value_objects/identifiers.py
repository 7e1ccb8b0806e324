"""Staging store value objects."""

from typing import NewType

# Type-safe identifier
PieceHash = NewType('PieceHash', str)

# SHA-1 digest rendered as hex
PIECE_HASH_HEX_LENGTH = 40

_HEX_DIGITS = frozenset("0123456789abcdef")


def create_piece_hash(value: str | bytes) -> PieceHash:
    """Create a piece hash from a raw digest or its hex form.
    
    Args:
        value: 20-byte digest or 40-character hex string.
        
    Returns:
        Lowercase hex piece hash.
        
    Raises:
        ValueError: If the value is not a fixed-length hash.
    """
    if isinstance(value, bytes):
        value = value.hex()
    
    normalized = value.strip().lower()
    if len(normalized) != PIECE_HASH_HEX_LENGTH or not set(normalized) <= _HEX_DIGITS:
        raise ValueError(f"Invalid piece hash: {value!r}")
    
    return PieceHash(normalized)
