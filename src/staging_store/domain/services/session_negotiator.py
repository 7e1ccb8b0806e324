"""Upload session negotiation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from staging_store.domain.entities.upload import SourceFile, UploadSession, UploadState
from staging_store.domain.exceptions import SessionNegotiationError
from staging_store.domain.services.content_sniffer import sniff_stream
from staging_store.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from staging_store.infrastructure.metrics import StagingStoreMetrics
    from staging_store.ports.outbound import UploadTransport

logger = get_logger("session_negotiator")


class UploadSessionNegotiator:
    """Obtains a session locator from the remote for an object's metadata.
    
    Failures are fatal for the object and never retried: a missing
    locator points at configuration or credentials, not a transient fault.
    """
    
    def __init__(
        self,
        transport: "UploadTransport",
        parent_container: str = "root",
        generate_ids: bool = True,
        folder_per_object: bool = False,
        metrics: Optional["StagingStoreMetrics"] = None,
    ):
        """Initialize the negotiator.
        
        Args:
            transport: Remote endpoint.
            parent_container: Default container for uploaded objects.
            generate_ids: Pre-allocate the object id on the remote.
            folder_per_object: Create a folder named after the torrent
                info-hash and upload into it.
            metrics: Optional metrics collector.
        """
        self._transport = transport
        self.parent_container = parent_container
        self.generate_ids = generate_ids
        self.folder_per_object = folder_per_object
        self._metrics = metrics
    
    def open(
        self,
        object_name: str,
        mime_type: str,
        total_length: int,
        parent_container: Optional[str] = None,
        torrent_hash: Optional[str] = None,
    ) -> UploadSession:
        """Open a resumable upload session.
        
        Args:
            object_name: Name of the object on the remote.
            mime_type: Content type of the object.
            total_length: Size estimate of the object in bytes.
            parent_container: Container id; defaults to the configured one.
            torrent_hash: Info-hash used to name the per-object folder.
            
        Returns:
            Open session with ``next_offset`` 0.
            
        Raises:
            SessionNegotiationError: If the remote does not return a locator.
        """
        parent = parent_container or self.parent_container
        if self.folder_per_object and torrent_hash:
            parent = self._transport.create_folder(torrent_hash, parent)
            logger.info("upload_folder_created", folder_id=parent, name=torrent_hash)
        
        file_id = self._transport.generate_id() if self.generate_ids else None
        
        metadata: dict[str, Any] = {
            "mimeType": mime_type,
            "name": object_name,
            "parents": [parent],
        }
        if file_id:
            metadata["id"] = file_id
        
        locator = self._transport.initiate(metadata, mime_type)
        if not locator:
            raise SessionNegotiationError(
                f"Remote returned no session locator for {object_name!r}"
            )
        
        if self._metrics:
            self._metrics.uploads_started.inc()
        
        logger.info(
            "upload_session_opened",
            object_name=object_name,
            mime_type=mime_type,
            file_id=file_id,
            locator=locator,
        )
        
        return UploadSession(
            locator=locator,
            object_name=object_name,
            mime_type=mime_type,
            total_length=total_length,
            file_id=file_id,
            parent_container=parent,
            state=UploadState.SESSION_OPEN,
        )
    
    def open_for(self, source: SourceFile, parent_container: Optional[str] = None) -> UploadSession:
        """Open a session for a source file, sniffing its content type.
        
        Args:
            source: Finished local object.
            parent_container: Container id; defaults to the configured one.
            
        Returns:
            Open session.
        """
        with source.opener() as reader:
            mime_type = sniff_stream(reader)
        
        return self.open(
            object_name=source.name,
            mime_type=mime_type,
            total_length=source.length,
            parent_container=parent_container,
            torrent_hash=source.torrent_hash,
        )
