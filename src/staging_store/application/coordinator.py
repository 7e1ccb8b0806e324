"""Staging Store Application Coordinator.

Starts and tracks uploads of completed objects. All bookkeeping that the
surrounding service needs (in-flight uploads, readers per object path)
lives in an ``UploadRegistry`` owned by the coordinator and passed to
whoever needs it, never in module-level state.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from staging_store.domain.entities.upload import SourceFile, UploadSession, UploadState
from staging_store.domain.services.session_negotiator import UploadSessionNegotiator
from staging_store.domain.services.upload_pipeline import (
    DEFAULT_WINDOW_SIZE,
    ChunkUploader,
    UploadPipeline,
)
from staging_store.infrastructure.logging import get_logger
from staging_store.ports.inbound import UploadServicePort, UploadStatus

if TYPE_CHECKING:
    from staging_store.infrastructure.metrics import StagingStoreMetrics
    from staging_store.ports.outbound import UploadTransport

logger = get_logger("coordinator")


def select_largest(files: Iterable[SourceFile]) -> Optional[SourceFile]:
    """Pick the upload candidate of a torrent: its largest file.
    
    Args:
        files: Files of one torrent.
        
    Returns:
        The largest file (first one on ties), or None if there are none.
    """
    largest: Optional[SourceFile] = None
    for source in files:
        if largest is None or source.length > largest.length:
            largest = source
    return largest


@dataclass
class UploadHandle:
    """An upload started by the coordinator."""
    
    source: SourceFile
    session: UploadSession
    pipeline: UploadPipeline
    
    @property
    def done(self) -> threading.Event:
        return self.pipeline.done
    
    @property
    def state(self) -> UploadState:
        return self.session.state
    
    def wait(self, timeout: Optional[float] = None) -> UploadSession:
        return self.pipeline.wait(timeout)
    
    def status(self) -> UploadStatus:
        return UploadStatus(
            object_name=self.session.object_name,
            state=self.session.state,
            next_offset=self.session.next_offset,
            total_length=self.session.total_length,
            error=str(self.pipeline.error) if self.pipeline.error else None,
        )


@dataclass
class UploadRegistry:
    """Uploads and reader counts, keyed by object name / path.
    
    ``pending`` holds names whose session is being negotiated; a second
    caller for such a name waits on the event instead of negotiating too.
    """
    
    uploads: dict[str, UploadHandle] = field(default_factory=dict)
    readers: dict[str, int] = field(default_factory=dict)
    pending: dict[str, threading.Event] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)
    
    def reserve(self, name: str) -> Optional[UploadHandle]:
        """Claim the right to start ``name``.
        
        Returns:
            None once claimed, or the upload already running for ``name``.
        """
        while True:
            with self.lock:
                existing = self.uploads.get(name)
                if existing is not None and not existing.state.is_terminal:
                    return existing
                in_progress = self.pending.get(name)
                if in_progress is None:
                    self.pending[name] = threading.Event()
                    return None
            in_progress.wait()
    
    def release(self, name: str) -> None:
        """Give up a claim taken with ``reserve`` and wake waiting callers."""
        with self.lock:
            in_progress = self.pending.pop(name, None)
        if in_progress is not None:
            in_progress.set()
    
    def acquire_reader(self, path: str) -> int:
        """Count a new reader of ``path``; returns the new count."""
        with self.lock:
            count = self.readers.get(path, 0) + 1
            self.readers[path] = count
            return count
    
    def release_reader(self, path: str) -> int:
        """Drop a reader of ``path``; the count never goes below zero."""
        with self.lock:
            count = max(self.readers.get(path, 0) - 1, 0)
            self.readers[path] = count
            return count


class UploadCoordinator(UploadServicePort):
    """Coordinates session negotiation and upload pipelines."""
    
    def __init__(
        self,
        transport: "UploadTransport",
        negotiator: UploadSessionNegotiator,
        window_size: int = DEFAULT_WINDOW_SIZE,
        queue_capacity: int = 1,
        max_retries: int = 3,
        registry: Optional[UploadRegistry] = None,
        metrics: Optional["StagingStoreMetrics"] = None,
        tracer: Optional[trace.Tracer] = None,
    ) -> None:
        """Initialize the coordinator.
        
        Args:
            transport: Remote endpoint.
            negotiator: Session negotiator bound to ``transport``.
            window_size: Bytes per upload unit.
            queue_capacity: Units that may wait for the uploader.
            max_retries: Resends per unit before aborting.
            registry: Shared registry; a fresh one is created if None.
            metrics: Optional metrics collector.
            tracer: Tracer for upload spans.
        """
        self._transport = transport
        self._negotiator = negotiator
        self.window_size = window_size
        self.queue_capacity = queue_capacity
        self.max_retries = max_retries
        self.registry = registry or UploadRegistry()
        self._metrics = metrics
        self._tracer = tracer or trace.get_tracer("staging_store")
    
    def start_upload(self, source: SourceFile) -> UploadHandle:
        """Open a session and start streaming a source file.
        
        An object that is already uploading is not started twice.
        
        Args:
            source: Finished local object.
            
        Returns:
            Handle of the (possibly already running) upload.
            
        Raises:
            SessionNegotiationError: If no session could be opened.
        """
        existing = self.registry.reserve(source.name)
        if existing is not None:
            return existing
        try:
            return self._launch(source)
        finally:
            self.registry.release(source.name)
    
    def _launch(self, source: SourceFile) -> UploadHandle:
        with self._tracer.start_as_current_span("upload_session_open") as span:
            span.set_attribute("object.name", source.name)
            span.set_attribute("object.length", source.length)
            try:
                session = self._negotiator.open_for(source)
            except Exception as e:
                logger.error("upload_session_failed", object_name=source.name, error=str(e))
                raise
        
        uploader = ChunkUploader(
            self._transport,
            session,
            max_retries=self.max_retries,
            metrics=self._metrics,
        )
        pipeline = UploadPipeline(
            source,
            session,
            uploader,
            window_size=self.window_size,
            queue_capacity=self.queue_capacity,
            metrics=self._metrics,
        )
        handle = UploadHandle(source=source, session=session, pipeline=pipeline)
        
        with self.registry.lock:
            self.registry.uploads[source.name] = handle
        
        # The pipeline reads the object until it finishes
        self.registry.acquire_reader(source.name)
        pipeline.add_done_callback(lambda _: self.registry.release_reader(source.name))
        pipeline.add_done_callback(self._stream_span(session))
        pipeline.start()
        logger.info("upload_started", object_name=source.name, length=source.length)
        return handle
    
    def _stream_span(self, session: UploadSession) -> Callable[[UploadPipeline], None]:
        """Open the span covering one streamed object; the returned callback ends it."""
        span = self._tracer.start_span(
            "upload_stream",
            attributes={"object.name": session.object_name, "upload.locator": session.locator},
        )
        
        def finish(pipeline: UploadPipeline) -> None:
            span.set_attribute("upload.bytes", session.next_offset)
            span.set_attribute("upload.units", pipeline.units_sent)
            span.set_attribute("upload.state", session.state.value)
            if pipeline.error is not None:
                span.record_exception(pipeline.error)
                span.set_status(Status(StatusCode.ERROR, str(pipeline.error)))
            span.end()
        
        return finish
    
    def upload_largest(self, files: Iterable[SourceFile]) -> Optional[UploadHandle]:
        """Start uploading the largest of a torrent's files.
        
        Returns:
            Handle of the upload, or None if there are no files.
        """
        source = select_largest(files)
        if source is None:
            return None
        return self.start_upload(source)
    
    def get_upload(self, object_name: str) -> Optional[UploadHandle]:
        with self.registry.lock:
            return self.registry.uploads.get(object_name)
    
    def get_status(self, object_name: str) -> Optional[UploadStatus]:
        handle = self.get_upload(object_name)
        return handle.status() if handle else None
    
    def list_uploads(self) -> list[UploadStatus]:
        with self.registry.lock:
            handles = list(self.registry.uploads.values())
        return [handle.status() for handle in handles]
    
    def cancel_upload(self, object_name: str) -> bool:
        """Stop an in-flight upload.
        
        Returns:
            True if an in-flight upload was cancelled.
        """
        handle = self.get_upload(object_name)
        if handle is None or handle.state.is_terminal:
            return False
        handle.pipeline.cancel()
        return True
    
    def cancel_all(self) -> None:
        """Cancel every in-flight upload."""
        with self.registry.lock:
            names = list(self.registry.uploads)
        for name in names:
            self.cancel_upload(name)
