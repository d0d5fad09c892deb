"""Fire-and-forget telemetry for model calls.

Every call attempt produces one :class:`TelemetryRecord`.  Records are
placed on a bounded in-memory queue and written to the
:class:`~ingestkit_study.protocols.TelemetryBackend` by a daemon worker
thread, so a slow or failing telemetry store never blocks or fails the
calling request.  A full queue drops the record and logs a warning.
"""

from __future__ import annotations

import logging
import queue
import threading

from ingestkit_study.errors import ErrorCode
from ingestkit_study.models import EffortLevel, TaskType, TelemetryRecord, TelemetryStatus
from ingestkit_study.pricing import PRICING_VERSION, estimate_cost
from ingestkit_study.protocols import TelemetryBackend

logger = logging.getLogger("ingestkit_study")

_STOP = object()


class TelemetryLogger:
    """Bounded queue of telemetry records drained by a worker thread.

    Args:
        backend: Destination for records.  With ``None`` every record is
            built but discarded.
        queue_size: Maximum number of records waiting to be written.
    """

    def __init__(self, backend: TelemetryBackend | None = None, queue_size: int = 1000) -> None:
        self._backend = backend
        self._queue: queue.Queue[object] = queue.Queue(maxsize=queue_size)
        self._worker: threading.Thread | None = None
        self._lock = threading.Lock()
        self._closed = False
        self._pending = 0
        self._idle = threading.Condition()
        self.dropped = 0

    # -- public API ----------------------------------------------------------

    def log(
        self,
        *,
        task: TaskType,
        model_id: str,
        effort: EffortLevel,
        latency_ms: int,
        status: TelemetryStatus,
        input_tokens: int = 0,
        output_tokens: int = 0,
        thinking_tokens: int = 0,
        error_message: str | None = None,
        attempt_number: int = 1,
        document_id: str | None = None,
        quiz_id: str | None = None,
        user_id: str | None = None,
    ) -> TelemetryRecord:
        """Build a record for one attempt and enqueue it.  Never raises."""
        record = TelemetryRecord(
            task_type=task,
            model_id=model_id,
            effort=effort,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            thinking_tokens=thinking_tokens,
            estimated_cost_usd=estimate_cost(model_id, input_tokens, output_tokens),
            latency_ms=latency_ms,
            status=status,
            error_message=error_message,
            attempt_number=attempt_number,
            pricing_version=PRICING_VERSION,
            document_id=document_id,
            quiz_id=quiz_id,
            user_id=user_id,
        )
        self.submit(record)
        return record

    def submit(self, record: TelemetryRecord) -> bool:
        """Enqueue *record*; return False when it was discarded or dropped."""
        if self._backend is None or self._closed:
            return False
        self._ensure_worker()
        with self._idle:
            self._pending += 1
        try:
            self._queue.put_nowait(record)
        except queue.Full:
            self._record_done()
            self.dropped += 1
            logger.warning(
                "ingestkit_study | code=%s | task=%s | model=%s | detail=telemetry queue full, record dropped",
                ErrorCode.W_TELEMETRY_DROPPED.value,
                record.task_type.value,
                record.model_id,
            )
            return False
        return True

    def flush(self, timeout: float | None = None) -> bool:
        """Wait until every queued record has been handed to the backend.

        Returns False if *timeout* elapsed first.
        """
        if timeout is None:
            self._queue.join()
            return True
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout)

    def close(self, timeout: float | None = 5.0) -> None:
        """Drain pending records and stop the worker thread."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            worker = self._worker
        if worker is None:
            return
        self._queue.put(_STOP)
        worker.join(timeout)

    # -- internal helpers ----------------------------------------------------

    def _ensure_worker(self) -> None:
        if self._worker is not None:
            return
        with self._lock:
            if self._worker is None:
                self._worker = threading.Thread(
                    target=self._run,
                    name="ingestkit-study-telemetry",
                    daemon=True,
                )
                self._worker.start()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._write(item)  # type: ignore[arg-type]
                self._record_done()
            finally:
                self._queue.task_done()

    def _record_done(self) -> None:
        with self._idle:
            self._pending -= 1
            if self._pending == 0:
                self._idle.notify_all()

    def _write(self, record: TelemetryRecord) -> None:
        try:
            self._backend.insert_record(record)  # type: ignore[union-attr]
        except Exception:
            logger.warning(
                "ingestkit_study | task=%s | model=%s | attempt=%d | detail=telemetry write failed",
                record.task_type.value,
                record.model_id,
                record.attempt_number,
                exc_info=True,
            )
