"""Test helpers shared across the Staging Store test suite."""

import hashlib
import io
import threading
from typing import Any, Callable, Optional

from staging_store.domain.entities.piece import Piece
from staging_store.domain.entities.upload import SourceFile
from staging_store.ports.outbound import TransferResponse


def make_piece(length: int, seed: str = "piece") -> Piece:
    """Create a piece with a deterministic hash."""
    return Piece(piece_hash=hashlib.sha1(seed.encode()).hexdigest(), length=length)


def make_source(data: bytes, name: str = "movie.mkv", **kwargs: Any) -> SourceFile:
    """Create an in-memory source file."""
    return SourceFile(name=name, length=len(data), opener=lambda: io.BytesIO(data), **kwargs)


class FakeTransport:
    """Scripted UploadTransport recording every call.

    ``responder`` decides the response for each range transfer; by default
    non-final ranges get 308 with a matching Range header and the final
    range gets 200.
    """

    def __init__(
        self,
        responder: Optional[Callable[[bytes, str], TransferResponse]] = None,
        locator: Optional[str] = "https://upload.example/session/1",
    ):
        self.locator = locator
        self.responder = responder or self.default_response
        self.transfers: list[tuple[str, int]] = []
        self.payloads: list[bytes] = []
        self.initiated: list[tuple[dict, str]] = []
        self.folders: list[tuple[str, str]] = []
        self.ids_generated = 0
        self.lock = threading.Lock()

    @staticmethod
    def default_response(data: bytes, content_range: str) -> TransferResponse:
        span, _, total = content_range[len("bytes "):].partition("/")
        if total != "*":
            return TransferResponse(status_code=200)
        end = span.split("-")[1]
        return TransferResponse(status_code=308, range_header=f"bytes=0-{end}")

    def generate_id(self) -> str:
        self.ids_generated += 1
        return f"file-{self.ids_generated}"

    def create_folder(self, name: str, parent_container: str) -> str:
        self.folders.append((name, parent_container))
        return f"folder-{name}"

    def initiate(self, metadata: dict, mime_type: str) -> Optional[str]:
        self.initiated.append((metadata, mime_type))
        return self.locator

    def put_range(self, locator: str, data, content_range: str) -> TransferResponse:
        with self.lock:
            self.transfers.append((content_range, len(data)))
            self.payloads.append(bytes(data))
        return self.responder(data, content_range)

    @property
    def content_ranges(self) -> list[str]:
        return [content_range for content_range, _ in self.transfers]

    @property
    def uploaded(self) -> bytes:
        return b"".join(self.payloads)


