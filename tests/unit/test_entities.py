"""Unit tests for staging_store domain entities."""

import pytest

from staging_store.domain.entities.chunk import format_chunk_name, parse_chunk_name
from staging_store.domain.entities.piece import Piece
from staging_store.domain.entities.upload import UploadSession, UploadState, UploadUnit
from staging_store.domain.value_objects.identifiers import create_piece_hash


HASH = "a" * 40


@pytest.mark.unit
class TestPieceHash:
    """Test piece hash construction."""

    def test_hex_is_normalized(self):
        assert create_piece_hash(("AB" * 20) + "  ") == "ab" * 20

    def test_raw_digest(self):
        assert create_piece_hash(bytes(range(20))) == bytes(range(20)).hex()

    @pytest.mark.parametrize("value", ["", "abc", "z" * 40, "a" * 41])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            create_piece_hash(value)


@pytest.mark.unit
class TestPiece:
    """Test piece entity."""

    def test_piece_creation(self):
        piece = Piece(piece_hash=HASH.upper(), length=10)
        assert piece.piece_hash == HASH
        assert piece.length == 10

    def test_negative_length(self):
        with pytest.raises(ValueError):
            Piece(piece_hash=HASH, length=-1)


@pytest.mark.unit
class TestChunkNames:
    """Test chunk resource naming."""

    def test_format(self):
        assert format_chunk_name(5, 42) == "5.42"

    def test_parse(self):
        assert parse_chunk_name("5.42") == (5, 42)

    def test_parse_bare_offset(self):
        assert parse_chunk_name("1024") == (1024, 0)

    @pytest.mark.parametrize("name", ["", "abc", "5.x", "-1.3", ".tmp"])
    def test_parse_rejects(self, name):
        assert parse_chunk_name(name) is None


@pytest.mark.unit
class TestUploadUnit:
    """Test upload units."""

    def test_end_offset_is_inclusive(self):
        unit = UploadUnit(start_offset=16, data=b"x" * 4)
        assert unit.size == 4
        assert unit.end_offset == 19


@pytest.mark.unit
class TestUploadSession:
    """Test upload session state and headers."""

    def _session(self) -> UploadSession:
        return UploadSession(
            locator="https://upload.example/1",
            object_name="movie.mkv",
            mime_type="video/x-matroska",
            total_length=100,
        )

    def test_content_range_open_ended(self):
        assert self._session().content_range(0, 15, eof=False) == "bytes 0-15/*"

    def test_content_range_final(self):
        assert self._session().content_range(16, 19, eof=True) == "bytes 16-19/20"

    def test_content_range_empty_final(self):
        assert self._session().content_range(20, 19, eof=True) == "bytes */20"

    def test_lifecycle(self):
        session = self._session()
        assert session.state == UploadState.SESSION_OPEN
        session.transition(UploadState.STREAMING)
        session.transition(UploadState.STREAMING)
        session.transition(UploadState.FINALIZED)
        assert session.state.is_terminal

    def test_terminal_states_are_final(self):
        session = self._session()
        session.transition(UploadState.ABORTED)
        with pytest.raises(ValueError):
            session.transition(UploadState.STREAMING)

    def test_cannot_finalize_without_streaming(self):
        with pytest.raises(ValueError):
            self._session().transition(UploadState.FINALIZED)

    def test_acknowledge_is_monotonic(self):
        session = self._session()
        session.acknowledge(16)
        assert session.next_offset == 16
        with pytest.raises(ValueError):
            session.acknowledge(8)
