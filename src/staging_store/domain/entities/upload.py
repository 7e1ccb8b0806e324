"""Upload session entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import BinaryIO, Callable, Optional


class UploadState(Enum):
    """Upload lifecycle states."""
    NOT_STARTED = "not_started"
    SESSION_OPEN = "session_open"
    STREAMING = "streaming"
    FINALIZED = "finalized"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadState.FINALIZED, UploadState.ABORTED)


_TRANSITIONS: dict[UploadState, frozenset[UploadState]] = {
    UploadState.NOT_STARTED: frozenset({UploadState.SESSION_OPEN, UploadState.ABORTED}),
    UploadState.SESSION_OPEN: frozenset({UploadState.STREAMING, UploadState.ABORTED}),
    UploadState.STREAMING: frozenset(
        {UploadState.STREAMING, UploadState.FINALIZED, UploadState.ABORTED}
    ),
    UploadState.FINALIZED: frozenset(),
    UploadState.ABORTED: frozenset(),
}


@dataclass
class SourceFile:
    """A finished local object that can be streamed to the remote.

    ``opener`` returns a fresh sequential reader positioned at byte 0.
    """

    name: str
    length: int
    opener: Callable[[], BinaryIO]
    torrent_hash: Optional[str] = None


@dataclass(frozen=True)
class UploadUnit:
    """One window of a source file, in upload order.

    ``data`` is a view over the window buffer so it can be handed between
    the stages and sliced for resends without copying.
    """

    start_offset: int
    data: bytes | memoryview
    eof: bool = False

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def end_offset(self) -> int:
        """Inclusive offset of the last byte in this unit."""
        return self.start_offset + len(self.data) - 1


@dataclass
class UploadSession:
    """Remote-assigned context for streaming one object.

    A session is single-use: one object, one locator.
    """

    locator: str
    object_name: str
    mime_type: str
    total_length: int
    next_offset: int = 0
    file_id: Optional[str] = None
    parent_container: str = "root"
    state: UploadState = UploadState.SESSION_OPEN
    created_at: datetime = field(default_factory=datetime.utcnow)

    def transition(self, new_state: UploadState) -> None:
        """Move the session to a new lifecycle state.

        Args:
            new_state: Target state.

        Raises:
            ValueError: If the transition is not allowed.
        """
        if new_state not in _TRANSITIONS[self.state]:
            raise ValueError(
                f"Invalid upload transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state

    def acknowledge(self, next_offset: int) -> None:
        """Record the first byte the remote has not yet acknowledged.

        Args:
            next_offset: Sum of bytes acknowledged by the remote.

        Raises:
            ValueError: If the offset would move backwards.
        """
        if next_offset < self.next_offset:
            raise ValueError(
                f"Acknowledged offset moved backwards: {self.next_offset} -> {next_offset}"
            )
        self.next_offset = next_offset

    def content_range(self, start: int, end: int, eof: bool) -> str:
        """Build the Content-Range header for a transfer.

        Args:
            start: First byte offset of the transfer.
            end: Inclusive last byte offset.
            eof: Whether this transfer ends the object.

        Returns:
            Header value of the form ``bytes <start>-<end>/<total-or-*>``.
        """
        if end < start:
            # Nothing left to send; only the total is declared.
            return f"bytes */{start}" if eof else "bytes */*"
        total = str(end + 1) if eof else "*"
        return f"bytes {start}-{end}/{total}"
