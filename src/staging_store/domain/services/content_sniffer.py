"""Content-based MIME type detection.

Only the first 512 bytes of an object are inspected; the object's name and
extension play no part.
"""

from __future__ import annotations

from typing import BinaryIO

from staging_store.domain.exceptions import StagingStoreError

SNIFF_LENGTH = 512
DEFAULT_MIME_TYPE = "application/octet-stream"


def detect_mime_type(head: bytes) -> str:
    """Detect the MIME type of content from its leading bytes.
    
    Args:
        head: Leading bytes of the object; anything past 512 is ignored.
        
    Returns:
        MIME type such as ``video/mp4``.
        
    Raises:
        StagingStoreError: If libmagic is not available.
    """
    try:
        import magic
    except ImportError as exc:
        raise StagingStoreError(
            "python-magic and libmagic are required for content type detection. "
            "Install with: pip install python-magic"
        ) from exc
    
    head = head[:SNIFF_LENGTH]
    if not head:
        return DEFAULT_MIME_TYPE
    
    mime = magic.from_buffer(head, mime=True)
    return mime or DEFAULT_MIME_TYPE


def sniff_stream(stream: BinaryIO) -> str:
    """Detect the MIME type of a stream without consuming it.
    
    Reads the first 512 bytes and seeks back to the start.
    
    Args:
        stream: Seekable binary stream positioned at byte 0.
        
    Returns:
        MIME type.
    """
    head = stream.read(SNIFF_LENGTH)
    stream.seek(0)
    return detect_mime_type(head)
