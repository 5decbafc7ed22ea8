"""
Line Sinks
==========

Destinations for generated records. The pacer only calls ``emit``; the
CLI picks one sink per run and closes it when the run ends.
"""

import json
import logging
import sys
import threading
import time
from datetime import datetime, timezone
from queue import Full, Queue
from typing import Optional, TextIO

from .elasticsearch_client import LogIndexClient
from .records import LogRecord

logger = logging.getLogger(__name__)

OUTPUT_LOGGER_NAME = "loggen.output"

LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARN': logging.WARNING,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'FATAL': logging.CRITICAL,
}


class LineSink:
    """Base class for record sinks."""

    def emit(self, record: LogRecord) -> None:
        """Deliver one record."""
        raise NotImplementedError

    def close(self) -> None:
        """Flush buffered records and release resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


def _utc_timestamp(created: float) -> str:
    return datetime.fromtimestamp(created, timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'


class ConsoleFormatter(logging.Formatter):
    """Tab-separated human readable lines with the structured fields as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        fields = {
            'counter': getattr(record, 'counter', None),
            'service.instance.id': getattr(record, 'instance_id', None),
        }
        return f"{_utc_timestamp(record.created)}\t{record.levelname}\t{record.getMessage()}\t{json.dumps(fields)}"


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps({
            '@timestamp': _utc_timestamp(record.created),
            'level': record.levelname,
            'message': record.getMessage(),
            'counter': getattr(record, 'counter', None),
            'service.instance.id': getattr(record, 'instance_id', None),
        })


class LoggerSink(LineSink):
    """
    Writes records through the ``loggen.output`` logger.

    The output logger has its own handler and does not propagate, so
    generated traffic never mixes with the diagnostic log format.
    """

    FORMATTERS = {
        'console': ConsoleFormatter,
        'json': JsonFormatter,
    }

    def __init__(self, fmt: str = 'console', stream: Optional[TextIO] = None):
        if fmt not in self.FORMATTERS:
            raise ValueError(f"Unknown output format: {fmt}")
        self.logger = logging.getLogger(OUTPUT_LOGGER_NAME)
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False
        self._handler = logging.StreamHandler(stream or sys.stdout)
        self._handler.setFormatter(self.FORMATTERS[fmt]())
        self.logger.addHandler(self._handler)

    def emit(self, record: LogRecord) -> None:
        self.logger.log(
            LEVELS.get(record.level.upper(), logging.INFO),
            record.payload,
            extra={'counter': record.sequence_number, 'instance_id': record.instance_id}
        )

    def close(self) -> None:
        self._handler.flush()
        self.logger.removeHandler(self._handler)


class ElasticsearchSink(LineSink):
    """
    Buffers records and bulk-indexes them every ``batch_size`` records.

    Indexing runs on a background flush thread, so a slow or failing
    cluster never stalls the caller of ``emit``. When ``max_pending``
    batches are already waiting, new batches are dropped and counted as
    failed. Documents rejected by the cluster are logged and dropped; the
    run keeps going.
    """

    def __init__(self, client, batch_size: int = 500, max_pending: int = 8, join_timeout: float = 30.0):
        self.client = client
        self.batch_size = batch_size
        self.join_timeout = join_timeout
        self._buffer = []
        self._queue: Queue = Queue(maxsize=max_pending)
        self._lock = threading.Lock()
        self.indexed = 0
        self.failed = 0
        self._closed = False
        self._flush_thread = threading.Thread(
            target=self._flush_loop,
            daemon=True,
            name="elasticsearch-flush"
        )
        self._flush_thread.start()

    def emit(self, record: LogRecord) -> None:
        self._buffer.append(record.to_document())
        if len(self._buffer) >= self.batch_size:
            self.flush()

    def flush(self) -> None:
        """Hand the buffered documents to the flush thread without waiting."""
        if not self._buffer:
            return
        documents, self._buffer = self._buffer, []
        try:
            self._queue.put_nowait(documents)
        except Full:
            logger.warning(f"Indexing is falling behind, dropping {len(documents)} documents")
            self._count(0, len(documents))

    def _count(self, indexed: int, failed: int) -> None:
        with self._lock:
            self.indexed += indexed
            self.failed += failed

    def _flush_loop(self) -> None:
        """Index queued batches until the stop marker arrives."""
        while True:
            documents = self._queue.get()
            if documents is None:
                return
            try:
                indexed, failed = self.client.bulk_index(documents)
            except Exception as e:
                logger.error(f"Error in flush loop: {e}")
                indexed, failed = 0, len(documents)
            self._count(indexed, failed)

    def close(self) -> None:
        """Send the remaining documents, stop the flush thread and close the client."""
        if self._closed:
            return
        self._closed = True

        self.client.interrupt()
        pending, self._buffer = self._buffer, []
        try:
            if pending:
                self._queue.put(pending, timeout=self.join_timeout)
        except Full:
            logger.warning(f"Indexing queue is still full, dropping {len(pending)} documents")
            self._count(0, len(pending))
        try:
            self._queue.put(None, timeout=self.join_timeout)
        except Full:
            pass
        else:
            self._flush_thread.join(timeout=self.join_timeout)
        if self._flush_thread.is_alive():
            logger.warning("Flush thread did not finish, some documents may not have been indexed")

        with self._lock:
            logger.info(f"Indexed {self.indexed} documents ({self.failed} failed)")
        self.client.close()


class ProgressReporter(LineSink):
    """Wraps a sink and logs progress every ``interval`` seconds."""

    def __init__(self, sink: LineSink, interval: float = 10.0, clock=time.monotonic):
        self.sink = sink
        self.interval = interval
        self.clock = clock
        self.count = 0
        self._start: Optional[float] = None
        self._last_report = 0.0

    def emit(self, record: LogRecord) -> None:
        now = self.clock()
        if self._start is None:
            # Measure from the first line, not from sink construction
            self._start = self._last_report = now

        self.sink.emit(record)
        self.count += 1

        if now - self._last_report >= self.interval:
            elapsed = now - self._start
            rate = self.count / elapsed if elapsed > 0 else 0
            logger.info(f"Emitted {self.count} lines ({rate:.1f} lines/sec)")
            self._last_report = now

    def close(self) -> None:
        self.sink.close()


def build_sink(config, clock=time.monotonic) -> LineSink:
    """
    Build the sink selected by ``config.output``.

    Raises:
        SinkError: if the Elasticsearch cluster cannot be reached.
    """
    kind = config.output.sink

    if kind == 'elasticsearch':
        client = LogIndexClient(config.elasticsearch)
        client.connect()
        client.ensure_index_template()
        sink: LineSink = ElasticsearchSink(client, batch_size=config.elasticsearch.batch_size)
    else:
        stream = sys.stderr if config.output.stream == 'stderr' else sys.stdout
        sink = LoggerSink(fmt=kind, stream=stream)

    if config.generator.status_interval and config.generator.status_interval > 0:
        sink = ProgressReporter(sink, interval=config.generator.status_interval, clock=clock)
    return sink
