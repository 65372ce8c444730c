"""
Ingestion pipeline.

    source ──line_q──▶ parser pool (N) ──record_q──▶ aggregator ──redraw──▶ renderer

Every stage is a daemon thread. Queues are bounded, so a slow aggregator
throttles the parsers and they in turn throttle the file reader. All blocking
queue calls time out every POLL seconds to re-check the one cancellation
event; once it is set nothing is retried and whatever is still queued is
dropped.

The aggregator is the only writer of the table and history. It writes under
``lock``; the dashboard paints under the same lock.
"""

import heapq
import logging
import os
import queue
import threading

from .errors import InputIOError, MissingFieldError, RenderError
from .follow import LogFollower
from .history import RawRecordHistory
from .ltsv import parse_ltsv
from .record import RecordParser, Skip
from .stats import AggregationTable

logger = logging.getLogger(__name__)

POLL = 0.1
_END = object()   # end of input marker, one per worker


class RedrawSignal:
    """Single-slot redraw request. Posting while one is pending is a no-op."""

    def __init__(self):
        self._q: queue.Queue = queue.Queue(maxsize=1)

    def post(self) -> bool:
        try:
            self._q.put_nowait(True)
            return True
        except queue.Full:
            return False

    @property
    def pending(self) -> bool:
        return not self._q.empty()

    def wait(self, cancel: threading.Event, timeout: float = POLL) -> bool:
        # Block until a redraw is requested (True) or the run is cancelled (False).
        while not cancel.is_set():
            try:
                self._q.get(timeout=timeout)
                return True
            except queue.Empty:
                continue
        return False


class IngestionPipeline:
    def __init__(self, path: str,
                 parser: RecordParser | None = None,
                 table: AggregationTable | None = None,
                 history: RawRecordHistory | None = None,
                 workers: int | None = None,
                 follow: bool = True,
                 ordered: bool = True,
                 on_frame=None,
                 poll_interval: float = POLL):
        self.path     = path
        self.parser   = parser or RecordParser()
        self.table    = table if table is not None else AggregationTable()
        self.history  = history
        self.workers  = workers or os.cpu_count() or 1
        self.ordered  = ordered
        self.on_frame = on_frame

        self.cancel = threading.Event()
        self.redraw = RedrawSignal()
        self.lock   = threading.RLock()   # table + history
        self.error: Exception | None = None

        # Counters, guarded by _counter_lock
        self._counter_lock = threading.Lock()
        self.lines_read    = 0
        self.lines_ignored = 0
        self.records       = 0
        self.in_flight     = 0

        self._line_q:   queue.Queue = queue.Queue(maxsize=4 * self.workers)
        self._record_q: queue.Queue = queue.Queue(maxsize=4 * self.workers)
        self._follower  = LogFollower(path, follow=follow,
                                      poll_interval=poll_interval,
                                      cancel=self.cancel)
        self._stages: list     = []
        self._renderer         = None
        self._on_cancel: list  = []

    # Lifecycle

    def add_cancel_callback(self, cb) -> None:
        # cb() runs once, on whichever thread first cancels the run
        self._on_cancel.append(cb)

    def start(self) -> 'IngestionPipeline':
        self._follower.check()
        self._stages.append(threading.Thread(
            target=self._source, daemon=True, name='source'))
        for i in range(self.workers):
            self._stages.append(threading.Thread(
                target=self._parse_worker, daemon=True, name=f'parser-{i}'))
        self._stages.append(threading.Thread(
            target=self._aggregate, daemon=True, name='aggregator'))
        for t in self._stages:
            t.start()
        if self.on_frame is not None:
            self._renderer = threading.Thread(
                target=self._render, daemon=True, name='renderer')
            self._renderer.start()
        logger.debug('pipeline started on %s with %d parser(s), ordered=%s',
                     self.path, self.workers, self.ordered)
        return self

    def stop(self) -> None:
        with self._counter_lock:
            if self.cancel.is_set():
                return
            self.cancel.set()
        logger.debug('pipeline cancelled')
        for cb in self._on_cancel:
            cb()

    def wait(self, timeout: float | None = None) -> bool:
        """Join the ingestion stages; True once all of them have exited."""
        for t in self._stages:
            t.join(timeout)
        return not any(t.is_alive() for t in self._stages)

    def close(self, timeout: float | None = 2.0) -> None:
        self.stop()
        self.wait(timeout)
        if self._renderer is not None:
            self._renderer.join(timeout)

    def fail(self, exc: Exception) -> None:
        with self._counter_lock:
            if self.error is None:
                self.error = exc
        logger.error('pipeline failed: %s', exc)
        self.stop()

    # Counters

    def counters(self) -> tuple:
        with self._counter_lock:
            return self.lines_read, self.lines_ignored

    def _count(self, read: int = 0, ignored: int = 0,
               records: int = 0, in_flight: int = 0) -> None:
        with self._counter_lock:
            self.lines_read    += read
            self.lines_ignored += ignored
            self.records       += records
            self.in_flight     += in_flight

    # Queue helpers

    def _put(self, q: queue.Queue, item) -> bool:
        while not self.cancel.is_set():
            try:
                q.put(item, timeout=POLL)
                return True
            except queue.Full:
                continue
        return False

    def _get(self, q: queue.Queue):
        # None once cancelled
        while not self.cancel.is_set():
            try:
                return q.get(timeout=POLL)
            except queue.Empty:
                continue
        return None

    # Stages

    def _source(self) -> None:
        try:
            for lineno, line in self._follower:
                self._count(read=1, in_flight=1)
                if not self._put(self._line_q, (lineno, line)):
                    return
        except InputIOError as exc:
            self.fail(exc)
            return
        except OSError as exc:
            self.fail(InputIOError(f'reading {self.path}: {exc}'))
            return
        logger.debug('source reached end of %s', self.path)
        for _ in range(self.workers):
            if not self._put(self._line_q, _END):
                return

    def _parse_worker(self) -> None:
        while True:
            item = self._get(self._line_q)
            if item is None:
                return
            if item is _END:
                self._put(self._record_q, _END)
                return
            lineno, line = item
            fields = parse_ltsv(line)
            try:
                outcome = self.parser.parse(fields)
            except MissingFieldError as exc:
                self.fail(exc.at_line(lineno))
                return
            if isinstance(outcome, Skip):
                self._count(ignored=1, in_flight=-1)
                if not self.ordered:
                    continue
                # keeps the aggregator's line sequence gap free
                outcome, fields = None, None
            if not self._put(self._record_q, (lineno, outcome, fields)):
                return

    def _aggregate(self) -> None:
        ended    = 0
        pending: list = []
        next_seq = 1
        while ended < self.workers:
            item = self._get(self._record_q)
            if item is None:
                return
            if item is _END:
                ended += 1
                continue
            if not self.ordered:
                self._apply(*item)
                continue
            heapq.heappush(pending, item)
            while pending and pending[0][0] == next_seq:
                lineno, record, fields = heapq.heappop(pending)
                next_seq += 1
                if record is not None:
                    self._apply(lineno, record, fields)
        logger.debug('aggregator done: %d record(s)', self.records)
        self.redraw.post()

    def _apply(self, lineno: int, record, fields: dict) -> None:
        with self.lock:
            self.table.upsert(record.key, record)
            if self.history is not None:
                self.history.append(lineno, fields)
        self._count(records=1, in_flight=-1)
        self.redraw.post()

    def _render(self) -> None:
        while self.redraw.wait(self.cancel):
            try:
                self.on_frame()
            except Exception as exc:
                self.fail(RenderError(f'redraw failed: {exc}'))
                return


class BatchResult:
    def __init__(self, table: AggregationTable, lines_read: int, lines_ignored: int):
        self.table         = table
        self.lines_read    = lines_read
        self.lines_ignored = lines_ignored


def aggregate_file(path: str, parser: RecordParser | None = None,
                   table: AggregationTable | None = None) -> BatchResult:
    # Single threaded pass over a static file; the first missing label aborts.
    parser  = parser or RecordParser()
    table   = table if table is not None else AggregationTable()
    read    = 0
    ignored = 0
    for lineno, line in LogFollower(path).lines():
        read += 1
        try:
            outcome = parser.parse(parse_ltsv(line))
        except MissingFieldError as exc:
            exc.at_line(lineno)
            raise
        if isinstance(outcome, Skip):
            ignored += 1
            continue
        table.upsert(outcome.key, outcome)
    return BatchResult(table, read, ignored)
