"""Two-stage streaming upload pipeline.

The producer reads a finished object in fixed-size windows and hands
ordered units to the uploader through a bounded handoff; the uploader sends
each unit as a range-addressed transfer against the session locator.

State machine per object:
    NotStarted -> SessionOpen -> Streaming -> Finalized | Aborted

Finalization only happens on the ``eof`` unit, so an aborted pipeline
never leaves a finalized object on the remote.
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING, BinaryIO, Callable, Iterator, Optional, Union

from staging_store.domain.entities.upload import (
    SourceFile,
    UploadSession,
    UploadState,
    UploadUnit,
)
from staging_store.domain.exceptions import (
    PipelineAbortedError,
    TransferError,
)
from staging_store.domain.services.handoff import BoundedHandoff, HandoffCancelled
from staging_store.infrastructure.logging import get_logger, upload_log_context

if TYPE_CHECKING:
    from staging_store.infrastructure.metrics import StagingStoreMetrics
    from staging_store.ports.outbound import TransferResponse, UploadTransport

logger = get_logger("upload_pipeline")

DEFAULT_WINDOW_SIZE = 16 * 1024 * 1024

FINALIZED_STATUSES = frozenset({200, 201})
CONTINUE_STATUS = 308


class _ReadFailed:
    """Handed to the uploader in place of a unit when the producer fails."""

    def __init__(self, error: BaseException):
        self.error = error


def _fill_window(reader: BinaryIO, size: int, carry: bytes = b"") -> memoryview:
    """Read one window into a single buffer, stopping early only at end of data.

    Returns a view over the filled part; the buffer is never copied.
    """
    buffer = bytearray(size)
    view = memoryview(buffer)
    view[:len(carry)] = carry
    filled = len(carry)
    while filled < size:
        count = reader.readinto(view[filled:])
        if not count:
            break
        filled += count
    return view[:filled]


class ChunkProducer:
    """Reads a finished object sequentially in fixed-size windows."""
    
    def __init__(self, source: SourceFile, window_size: int = DEFAULT_WINDOW_SIZE):
        """Initialize the producer.
        
        Args:
            source: Finished local object.
            window_size: Bytes per unit.
        """
        if window_size <= 0:
            raise ValueError(f"Window size must be positive, got {window_size}")
        self.source = source
        self.window_size = window_size
    
    def iter_units(self) -> Iterator[UploadUnit]:
        """Yield the object's units in order.
        
        The end of data is found by reading, never from ``source.length``,
        which is only an estimate. A full window is followed by a one-byte
        look-ahead; the unit is last when that look-ahead comes back empty.
        An empty object yields a single empty ``eof`` unit so the remote can
        still finalize it. The reader is closed once the last unit has been
        produced.
        """
        with self.source.opener() as reader:
            start = 0
            carry = b""
            while True:
                data = _fill_window(reader, self.window_size, carry)
                carry = reader.read(1) if len(data) == self.window_size else b""
                eof = not carry
                yield UploadUnit(start_offset=start, data=data, eof=eof)
                if eof:
                    return
                start += len(data)
    
    def run(self, handoff: BoundedHandoff[Union[UploadUnit, _ReadFailed]]) -> None:
        """Feed units into the handoff until the last one is accepted.
        
        A read failure is handed over as well, so the uploader aborts.
        """
        units = self.iter_units()
        try:
            for unit in units:
                if not handoff.put(unit):
                    return
        except Exception as e:
            logger.error("upload_read_failed", object_name=self.source.name, error=str(e))
            handoff.put(_ReadFailed(e))
        finally:
            units.close()


class ChunkUploader:
    """Sends units as range-addressed transfers against a session locator.
    
    A transfer the remote does not accept is retried from the session's
    ``next_offset``; the range addressing makes the resend idempotent.
    """
    
    def __init__(
        self,
        transport: "UploadTransport",
        session: UploadSession,
        max_retries: int = 3,
        metrics: Optional["StagingStoreMetrics"] = None,
    ):
        """Initialize the uploader.
        
        Args:
            transport: Remote endpoint.
            session: Open session; its ``next_offset`` is advanced in place.
            max_retries: Resends per unit before giving up.
            metrics: Optional metrics collector.
        """
        self._transport = transport
        self.session = session
        self.max_retries = max_retries
        self._metrics = metrics
    
    def send(self, unit: UploadUnit) -> bool:
        """Send one unit.
        
        Args:
            unit: Next unit; must start at the session's ``next_offset``.
            
        Returns:
            True if the remote finalized the object.
            
        Raises:
            TransferError: If the remote does not accept the unit within
                ``max_retries`` resends, or answers out of protocol.
        """
        if unit.start_offset != self.session.next_offset:
            raise TransferError(
                f"Unit starts at {unit.start_offset} but remote expects "
                f"{self.session.next_offset}",
                next_offset=self.session.next_offset,
            )
        
        failures = 0
        while True:
            start = self.session.next_offset
            content_range = self.session.content_range(start, unit.end_offset, unit.eof)
            
            try:
                response = self._put(
                    memoryview(unit.data)[start - unit.start_offset:], content_range
                )
            except TransferError as e:
                failure = e
            else:
                result = self._interpret(unit, response)
                if result is not None:
                    return result
                if self.session.next_offset > start:
                    # Partial acknowledgement; resend only the rest
                    self._count("retried")
                    continue
                failure = TransferError(
                    f"Remote did not accept {content_range} (status {response.status_code})",
                    status_code=response.status_code,
                )
            
            failures += 1
            if failures > self.max_retries:
                self._count("failed")
                raise TransferError(
                    f"Transfer of {content_range} failed after {failures} attempts: {failure}",
                    next_offset=self.session.next_offset,
                    status_code=failure.status_code,
                ) from failure
            
            self._count("retried")
            logger.warning(
                "upload_unit_retry",
                object_name=self.session.object_name,
                content_range=content_range,
                attempt=failures,
                error=str(failure),
            )
    
    def _put(self, data: memoryview, content_range: str) -> "TransferResponse":
        logger.info(
            "upload_unit_sent",
            object_name=self.session.object_name,
            content_range=content_range,
        )
        started = time.perf_counter()
        response = self._transport.put_range(self.session.locator, data, content_range)
        if self._metrics:
            self._metrics.upload_unit_latency.observe(time.perf_counter() - started)
        logger.info(
            "upload_unit_response",
            object_name=self.session.object_name,
            status=response.status_code,
            range=response.range_header,
        )
        return response
    
    def _interpret(self, unit: UploadUnit, response: "TransferResponse") -> Optional[bool]:
        """Apply a response to the session.
        
        Returns:
            True when finalized, False when the unit is fully accepted,
            None when it must be resent.
        """
        status = response.status_code
        
        if status in FINALIZED_STATUSES:
            if not unit.eof:
                raise TransferError(
                    f"Remote finalized {self.session.object_name!r} before the last unit",
                    next_offset=self.session.next_offset,
                    status_code=status,
                )
            self._advance(unit.end_offset + 1)
            self._count("finalized")
            return True
        
        if status == CONTINUE_STATUS:
            acknowledged_end = response.acknowledged_end
            if acknowledged_end is not None:
                self._advance(acknowledged_end + 1)
            if self.session.next_offset <= unit.end_offset:
                return None
            if unit.eof:
                raise TransferError(
                    f"Remote did not finalize {self.session.object_name!r} "
                    f"after the last unit",
                    next_offset=self.session.next_offset,
                    status_code=status,
                )
            self._count("continued")
            return False
        
        logger.error(
            "upload_unrecognized_status",
            object_name=self.session.object_name,
            status=status,
            body=response.body[:1024],
        )
        return None
    
    def _advance(self, next_offset: int) -> None:
        if next_offset < self.session.next_offset:
            raise TransferError(
                f"Remote acknowledged up to {next_offset} after {self.session.next_offset}",
                next_offset=self.session.next_offset,
            )
        acknowledged = next_offset - self.session.next_offset
        self.session.acknowledge(next_offset)
        if self._metrics and acknowledged:
            self._metrics.bytes_uploaded.inc(acknowledged)
    
    def _count(self, outcome: str) -> None:
        if self._metrics:
            self._metrics.upload_units.labels(outcome=outcome).inc()


class UploadPipeline:
    """Runs a producer and an uploader as two concurrent stages.
    
    Example:
        session = negotiator.open_for(source)
        pipeline = UploadPipeline(source, session, ChunkUploader(transport, session))
        pipeline.start()
        pipeline.wait()
    """
    
    def __init__(
        self,
        source: SourceFile,
        session: UploadSession,
        uploader: ChunkUploader,
        window_size: int = DEFAULT_WINDOW_SIZE,
        queue_capacity: int = 1,
        metrics: Optional["StagingStoreMetrics"] = None,
    ):
        """Initialize the pipeline.
        
        Args:
            source: Finished local object.
            session: Open session for the object.
            uploader: Uploader bound to ``session``.
            window_size: Bytes per unit.
            queue_capacity: Units that may wait for the uploader.
            metrics: Optional metrics collector.
        """
        self.source = source
        self.session = session
        self._producer = ChunkProducer(source, window_size)
        self._uploader = uploader
        self._handoff: BoundedHandoff[Union[UploadUnit, _ReadFailed]] = BoundedHandoff(
            queue_capacity
        )
        self._metrics = metrics
        self._thread: Optional[threading.Thread] = None
        self.done = threading.Event()
        self.error: Optional[PipelineAbortedError] = None
        self.units_sent = 0
        self._done_callbacks: list[Callable[["UploadPipeline"], None]] = []
    
    @property
    def state(self) -> UploadState:
        return self.session.state
    
    def run(self) -> UploadSession:
        """Stream the whole object on the calling thread.
        
        Returns:
            The finalized session.
            
        Raises:
            PipelineAbortedError: On a read failure, a transfer failure,
                or cancellation.
        """
        producer = threading.Thread(
            target=self._produce,
            args=(self._handoff,),
            name=f"upload-producer-{self.session.object_name}",
            daemon=True,
        )
        
        if self._metrics:
            self._metrics.uploads_in_flight.inc()
        try:
            with upload_log_context(self.session.object_name):
                try:
                    return self._stream(producer)
                except Exception as e:
                    self._abort(e)
                    if self.error is e:
                        raise
                    raise self.error from e
        finally:
            self._handoff.cancel()
            if producer.is_alive():
                producer.join()
            if self._metrics:
                self._metrics.uploads_in_flight.dec()
            for callback in self._done_callbacks:
                callback(self)
            self.done.set()
    
    def _stream(self, producer: threading.Thread) -> UploadSession:
        self.session.transition(UploadState.STREAMING)
        producer.start()
        self._consume()
        self.session.transition(UploadState.FINALIZED)
        logger.info(
            "upload_finalized",
            object_name=self.session.object_name,
            length=self.session.next_offset,
            units=self.units_sent,
        )
        self._finish("finalized")
        return self.session
    
    def _produce(self, handoff: BoundedHandoff[Union[UploadUnit, _ReadFailed]]) -> None:
        with upload_log_context(self.session.object_name):
            self._producer.run(handoff)
    
    def start(self) -> threading.Event:
        """Run the pipeline in a background thread.
        
        Returns:
            Event set once the pipeline reached a terminal state.
        """
        if self._thread is not None:
            raise RuntimeError("Pipeline already started")
        self._thread = threading.Thread(
            target=self._run_in_background,
            name=f"upload-{self.session.object_name}",
            daemon=True,
        )
        self._thread.start()
        return self.done
    
    def wait(self, timeout: Optional[float] = None) -> UploadSession:
        """Wait for a started pipeline to finish.
        
        Returns:
            The finalized session.
            
        Raises:
            PipelineAbortedError: If the pipeline aborted.
            TimeoutError: If ``timeout`` elapsed first.
        """
        if not self.done.wait(timeout):
            raise TimeoutError(f"Upload of {self.session.object_name!r} still running")
        if self.error is not None:
            raise self.error
        return self.session
    
    def add_done_callback(self, callback: Callable[["UploadPipeline"], None]) -> None:
        """Call ``callback(pipeline)`` once the pipeline reached a terminal state.
        
        Register callbacks before the pipeline runs.
        """
        if self.done.is_set():
            raise RuntimeError("Pipeline already finished")
        self._done_callbacks.append(callback)
    
    def cancel(self) -> None:
        """Stop both stages; no further units are sent."""
        logger.info("upload_cancel_requested", object_name=self.session.object_name)
        self._handoff.cancel()
    
    def _run_in_background(self) -> None:
        try:
            self.run()
        except PipelineAbortedError:
            # Recorded on self.error and surfaced by wait()
            return
    
    def _consume(self) -> None:
        while True:
            item = self._handoff.get()
            if isinstance(item, _ReadFailed):
                raise PipelineAbortedError(
                    f"Reading {self.source.name!r} failed: {item.error}"
                ) from item.error
            if self._handoff.cancelled:
                raise HandoffCancelled("Upload cancelled")
            
            finalized = self._uploader.send(item)
            # Drop the sent window before the producer may fill the next one
            del item
            self.units_sent += 1
            if finalized:
                return
            self.session.transition(UploadState.STREAMING)
    
    def _abort(self, cause: BaseException) -> None:
        if not self.session.state.is_terminal:
            self.session.transition(UploadState.ABORTED)
        if isinstance(cause, PipelineAbortedError):
            self.error = cause
        else:
            self.error = PipelineAbortedError(
                f"Upload of {self.session.object_name!r} aborted at offset "
                f"{self.session.next_offset}: {cause}"
            )
        logger.error(
            "upload_aborted",
            object_name=self.session.object_name,
            next_offset=self.session.next_offset,
            error=str(cause),
        )
        self._finish("aborted")
    
    def _finish(self, state: str) -> None:
        if self._metrics:
            self._metrics.uploads_finished.labels(state=state).inc()
