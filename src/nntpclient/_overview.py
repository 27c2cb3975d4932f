from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Iterator, Sequence

from typing_extensions import IO, Self

from nntpclient._constants import _MAXDATALINE, _OVERVIEW_ARTICLE_COLUMN, _OVERVIEW_FULL_FLAG, _OVERVIEW_QUEUE_SIZE
from nntpclient._exceptions import NNTPDataError
from nntpclient._types import Headers, OverviewColumn, OverviewRecord

_log = logging.getLogger(__name__)

# Marks the end of the record sequence in the queue
_END = object()


def _parse_overview_fmt(lines: Sequence[str]) -> list[OverviewColumn]:
    """Turn the block returned by LIST OVERVIEW.FMT into the column list
    of an overview line.  The article number always comes first."""
    columns = [OverviewColumn(_OVERVIEW_ARTICLE_COLUMN)]
    for line in lines:
        line = line.strip()
        if not line:
            continue
        if line[0] == ":":
            # Metadata name (e.g. ":bytes")
            name, _, suffix = line[1:].partition(":")
        else:
            # Header name (e.g. "Subject:" or "Xref:full")
            name, _, suffix = line.partition(":")
        columns.append(OverviewColumn(name, suffix.strip().lower() == _OVERVIEW_FULL_FLAG))
    return columns


def _strip_field_name(value: str) -> str:
    # "Xref: news.example.com misc.test:10" -> "news.example.com misc.test:10"
    _, sep, rest = value.partition(":")
    if not sep:
        return value
    return rest[1:] if rest.startswith(" ") else rest


def _parse_overview_line(line: str, columns: Sequence[OverviewColumn]) -> Headers:
    """Split one overview line on tabs and name its fields.  Fields beyond
    the known columns are dropped; missing trailing fields stay absent."""
    headers = Headers()
    for column, value in zip(columns, line.split("\t")):
        if column.full:
            value = _strip_field_name(value)
        headers[column.name] = value
    return headers


class OverviewStream:
    """Overview records decoded by a background thread.

    Iterating yields OverviewRecord values in server order.  A read or
    decompression failure is delivered as one final record whose `error`
    is set.  close() stops delivery, releases a producer blocked on the
    queue and waits until the rest of the response has been read off
    the connection.  If reading that rest fails, or a failure record was
    discarded unread, close() raises the failure; the connection is then
    out of step with the server and the session should be closed.
    """

    def __init__(
        self,
        reader: IO[bytes],
        columns: Sequence[OverviewColumn],
        encoding: str = "utf-8",
        errors: str = "surrogateescape",
        maxsize: int = _OVERVIEW_QUEUE_SIZE,
    ) -> None:
        self.columns = list(columns)
        self.encoding = encoding
        self.errors = errors
        self._queue: queue.Queue = queue.Queue(maxsize)
        self._closed = threading.Event()
        self._done = False
        self._error: Exception | None = None
        self._thread = threading.Thread(target=self._produce, args=(reader,), name="nntp-overview", daemon=True)
        self._thread.start()

    def _publish(self, item: object) -> None:
        # After close() has emptied the queue at most one more put can
        # happen, and it always fits.
        if not self._closed.is_set():
            self._queue.put(item)

    def _produce(self, reader: IO[bytes]) -> None:
        try:
            with reader:
                for raw in iter(lambda: reader.readline(_MAXDATALINE + 1), b""):
                    if len(raw) > _MAXDATALINE:
                        raise NNTPDataError("line too long")
                    if self._closed.is_set():
                        # Keep reading so the connection ends up after the block
                        continue
                    line = raw.decode(self.encoding, self.errors).rstrip("\r\n")
                    self._publish(OverviewRecord(headers=_parse_overview_line(line, self.columns)))
        except Exception as exc:
            _log.debug("overview stream failed: %r", exc)
            self._error = exc
            self._publish(OverviewRecord(error=exc))
        finally:
            self._publish(_END)

    def __iter__(self) -> Iterator[OverviewRecord]:
        return self

    def __next__(self) -> OverviewRecord:
        if self._done:
            raise StopIteration
        item = self._queue.get()
        if item is _END:
            self._done = True
            raise StopIteration
        if item.failed:
            # Handed to the caller, close() has nothing left to report
            self._error = None
        return item

    def _discard_pending(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return

    def close(self) -> None:
        self._done = True
        self._closed.set()
        self._discard_pending()
        self._thread.join()
        self._discard_pending()
        error, self._error = self._error, None
        if error is not None:
            raise error

    @property
    def closed(self) -> bool:
        return self._done and not self._thread.is_alive()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
