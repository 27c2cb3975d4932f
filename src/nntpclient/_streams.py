"""Byte-stream decorators used by the protocol driver.

- DotReader: reads a dot-terminated block, undoing dot-stuffing, and
  stops at the terminating "." line without reading past it.
- DotWriter: applies dot-stuffing to everything written through it and
  appends the terminating "." line when the block is terminated.
- DeflateReader: inflates a zlib stream read from a buffered file, and
  never consumes bytes beyond the end of the compressed stream.

All of them are raw IO objects; wrap them in io.BufferedReader to get
readline() and line iteration.
"""

from __future__ import annotations

import io
import zlib
from collections.abc import Callable
from typing import Any

from typing_extensions import IO

from nntpclient._constants import _CRLF, _DEFLATE_CHUNK, _DOT_TERMINATORS
from nntpclient._exceptions import NNTPDataError, NNTPTransportError


class DotReader(io.RawIOBase):
    """Read the body of a dot-terminated block.

    `readline` must return one raw line from the connection, line
    terminator included.  Lines are handed out with their terminators;
    a leading "." is removed from every data line.
    """

    def __init__(self, readline: Callable[[], bytes]) -> None:
        io.RawIOBase.__init__(self)
        self._readline = readline
        self._pending = b""
        self._eof = False

    def readable(self) -> bool:
        return True

    @property
    def at_eof(self) -> bool:
        return self._eof and not self._pending

    def readinto(self, buf: Any) -> int:
        while not self._pending and not self._eof:
            line = self._readline()
            if not line:
                raise NNTPTransportError("connection closed inside a dot-terminated block")
            if line in _DOT_TERMINATORS:
                self._eof = True
            elif line.startswith(b"."):
                self._pending = line[1:]
            else:
                self._pending = line
        n = min(len(buf), len(self._pending))
        buf[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n

    def drain(self) -> None:
        """Discard whatever is left of the block."""
        self._pending = b""
        while not self._eof:
            line = self._readline()
            if not line:
                raise NNTPTransportError("connection closed inside a dot-terminated block")
            if line in _DOT_TERMINATORS:
                self._eof = True


class DotWriter(io.RawIOBase):
    """Write a dot-terminated block to `file`.

    Line ends are normalized to CRLF and lines starting with "." get an
    extra leading dot.  Nothing marks the block as complete until
    terminate() is called; close() on its own abandons the block, so a
    failed copy never reaches the server as a finished article.

    Failures writing to `file` are raised as NNTPTransportError.  Lines
    already handed to `file` may still sit in its buffer, so after any
    failure the connection must be closed.
    """

    def __init__(self, file: IO[bytes]) -> None:
        io.RawIOBase.__init__(self)
        self._file = file
        self._pending = b""

    def writable(self) -> bool:
        return True

    def write(self, b: Any) -> int:
        data = bytes(b)
        lines = (self._pending + data).split(b"\n")
        self._pending = lines.pop()
        for line in lines:
            self._putline(line)
        return len(data)

    def _send(self, data: bytes, flush: bool = False) -> None:
        try:
            self._file.write(data)
            if flush:
                self._file.flush()
        except OSError as exc:
            raise NNTPTransportError(str(exc)) from exc

    def _putline(self, line: bytes) -> None:
        if line.endswith(b"\r"):
            line = line[:-1]
        if line.startswith(b"."):
            line = b"." + line
        self._send(line + _CRLF)

    def terminate(self) -> None:
        """Finish any partial last line, then send the "." line."""
        if self._pending:
            self._putline(self._pending)
            self._pending = b""
        self._send(b"." + _CRLF, flush=True)
        self.close()

    def __exit__(self, exc_type: Any, *args: Any) -> None:
        try:
            if exc_type is None and not self.closed:
                self.terminate()
        finally:
            self.close()


class DeflateReader(io.RawIOBase):
    """Inflate a zlib stream from `file`.

    `file` must support peek(), as io.BufferedReader and
    io.BufferedRWPair do.  Only the bytes the decompressor actually
    used are consumed from it, so whatever follows the compressed data
    stays readable on the connection.
    """

    def __init__(self, file: IO[bytes], wbits: int = zlib.MAX_WBITS) -> None:
        io.RawIOBase.__init__(self)
        self._file = file
        self._inflater = zlib.decompressobj(wbits)
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buf: Any) -> int:
        while not self._pending and not self._inflater.eof:
            try:
                chunk = self._file.peek(_DEFLATE_CHUNK)[:_DEFLATE_CHUNK]
            except OSError as exc:
                raise NNTPTransportError(str(exc)) from exc
            if not chunk:
                raise NNTPTransportError("connection closed inside compressed data")
            try:
                self._pending = self._inflater.decompress(chunk)
            except zlib.error as exc:
                raise NNTPDataError("bad compressed data: {0}".format(exc)) from exc
            self._file.read(len(chunk) - len(self._inflater.unused_data))
        n = min(len(buf), len(self._pending))
        buf[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n
