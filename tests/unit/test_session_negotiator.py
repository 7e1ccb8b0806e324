"""Unit tests for upload session negotiation."""

import pytest

from staging_store.domain.entities.upload import UploadState
from staging_store.domain.exceptions import SessionNegotiationError
from staging_store.domain.services.session_negotiator import UploadSessionNegotiator
from tests.helpers import FakeTransport, make_source


@pytest.mark.unit
class TestUploadSessionNegotiator:
    """Test session opening."""

    def test_open_returns_fresh_session(self, transport):
        negotiator = UploadSessionNegotiator(transport, parent_container="folder-1")

        session = negotiator.open("movie.mkv", "video/x-matroska", 1024)

        assert session.locator == transport.locator
        assert session.next_offset == 0
        assert session.state == UploadState.SESSION_OPEN
        assert session.total_length == 1024
        assert session.file_id == "file-1"

    def test_initiation_metadata(self, transport):
        UploadSessionNegotiator(transport, parent_container="folder-1").open(
            "movie.mkv", "video/x-matroska", 1024
        )

        metadata, mime_type = transport.initiated[0]
        assert mime_type == "video/x-matroska"
        assert metadata == {
            "mimeType": "video/x-matroska",
            "name": "movie.mkv",
            "parents": ["folder-1"],
            "id": "file-1",
        }

    def test_without_generated_ids(self, transport):
        session = UploadSessionNegotiator(transport, generate_ids=False).open(
            "a.bin", "application/octet-stream", 1
        )
        assert session.file_id is None
        assert "id" not in transport.initiated[0][0]
        assert transport.ids_generated == 0

    def test_explicit_parent_container(self, transport):
        session = UploadSessionNegotiator(transport).open(
            "a.bin", "application/octet-stream", 1, parent_container="other"
        )
        assert session.parent_container == "other"
        assert transport.initiated[0][0]["parents"] == ["other"]

    def test_folder_per_object(self, transport):
        negotiator = UploadSessionNegotiator(transport, folder_per_object=True)
        session = negotiator.open("a.bin", "text/plain", 1, torrent_hash="abc123")

        assert transport.folders == [("abc123", "root")]
        assert session.parent_container == "folder-abc123"

    def test_folder_needs_torrent_hash(self, transport):
        UploadSessionNegotiator(transport, folder_per_object=True).open("a.bin", "text/plain", 1)
        assert transport.folders == []

    def test_missing_locator_is_fatal(self, metrics, registry):
        transport = FakeTransport(locator=None)
        negotiator = UploadSessionNegotiator(transport, metrics=metrics)

        with pytest.raises(SessionNegotiationError):
            negotiator.open("a.bin", "text/plain", 1)
        assert len(transport.initiated) == 1
        assert registry.get_sample_value("staging_store_uploads_started_total") == 0.0

    def test_open_for_sniffs_content(self, transport, fixed_mime, metrics, registry):
        source = make_source(b"\x00\x00\x00\x18ftypmp42", name="clip.bin", torrent_hash="ab")
        session = UploadSessionNegotiator(transport, metrics=metrics).open_for(source)

        assert session.mime_type == fixed_mime
        assert session.object_name == "clip.bin"
        assert session.total_length == len(source.opener().read())
        assert registry.get_sample_value("staging_store_uploads_started_total") == 1.0
