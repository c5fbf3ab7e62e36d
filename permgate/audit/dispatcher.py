"""Background delivery of audit records."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Optional

from .base import AuditRecord, AuditSink

logger = logging.getLogger(__name__)


class AuditDispatcher:
    """Queues audit records and hands them to a sink off the caller's thread.

    ``submit`` never blocks and never raises: a full queue drops the record
    and sink failures are logged. With ``async_processing=False`` records are
    delivered inline, which is convenient for tests.
    """

    def __init__(
        self,
        sink: AuditSink,
        async_processing: bool = True,
        max_queue_size: int = 10000,
    ) -> None:
        self.sink = sink
        self._async = async_processing
        self._queue: queue.Queue[AuditRecord] = queue.Queue(maxsize=max_queue_size)
        self._running = False
        self._worker: Optional[threading.Thread] = None
        self._start_lock = threading.Lock()
        self._dropped_lock = threading.Lock()
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the background delivery thread."""
        with self._start_lock:
            if self._async and not self._running:
                self._running = True
                self._worker = threading.Thread(
                    target=self._process_loop, name="permgate-audit", daemon=True
                )
                self._worker.start()
                logger.info("Audit dispatcher started with async processing")

    def stop(self) -> None:
        """Stop the worker, deliver what is still queued and close the sink."""
        self._running = False
        if self._worker:
            self._worker.join(timeout=5.0)
            self._worker = None
        self._drain()
        self.sink.close()

    def submit(self, entry: AuditRecord) -> None:
        if not self._async:
            self._deliver(entry)
            return
        if not self._running:
            self.start()
        try:
            self._queue.put_nowait(entry)
        except queue.Full:
            with self._dropped_lock:
                self.dropped += 1
            logger.warning("Audit queue full, dropping record")

    def flush(self) -> None:
        """Block until every queued record has been handed to the sink."""
        if self._running:
            self._queue.join()
        else:
            self._drain()
        self.sink.flush()

    # ------------------------------------------------------------------
    def _process_loop(self) -> None:
        while self._running:
            try:
                entry = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            try:
                self._deliver(entry)
            finally:
                self._queue.task_done()

    def _drain(self) -> None:
        while True:
            try:
                entry = self._queue.get_nowait()
            except queue.Empty:
                break
            try:
                self._deliver(entry)
            finally:
                self._queue.task_done()

    def _deliver(self, entry: AuditRecord) -> None:
        try:
            self.sink.record(entry)
        except Exception as e:
            logger.error(f"Audit sink {self.sink.__class__.__name__} failed: {e}")
