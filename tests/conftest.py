"""
Shared fixtures: an in-memory NNTP server.

The server side is scripted up front.  Everything the server will ever
send is loaded before the session starts, and everything the client
writes is captured for inspection.
"""

from __future__ import annotations

import io

import pytest

from nntpclient._core import _NNTPBase


class FakeServerIO(io.RawIOBase):
    """A raw IO object standing in for the server end of a connection."""

    def __init__(self, script: bytes, fail_on: bytes | None = None):
        io.RawIOBase.__init__(self)
        self.s2c = io.BytesIO(script)
        self.c2s = bytearray()
        self.fail_on = fail_on
        self.failed = False

    def readable(self):
        return True

    def writable(self):
        return True

    def readinto(self, buf):
        b = self.s2c.read(len(buf))
        n = len(b)
        buf[:n] = b
        return n

    def write(self, b):
        data = bytes(b)
        if self.failed:
            # Later flushes of the failed buffer are dropped
            return len(data)
        if self.fail_on is not None and self.fail_on in data:
            self.failed = True
            raise BrokenPipeError("connection reset by peer")
        self.c2s += data
        return len(data)

    @property
    def sent(self) -> bytes:
        return bytes(self.c2s)

    @property
    def unread(self) -> bytes:
        return self.s2c.getvalue()[self.s2c.tell():]


def make_file(script: bytes, **kwargs):
    sio = FakeServerIO(script, **kwargs)
    return sio, io.BufferedRWPair(sio, sio)


@pytest.fixture
def server():
    """Factory: server(*responses) -> (session, sio)."""

    def make(*responses: bytes, fail_on: bytes | None = None, **kwargs):
        sio, file = make_file(b"".join(responses), fail_on=fail_on)
        session = _NNTPBase(file, "news.example.com", **kwargs)
        return session, sio

    return make


GREETING = b"200 news.example.com server ready\r\n"

OVERVIEW_FMT = (
    b"215 Order of fields in overview database.\r\n"
    b"Subject:\r\n"
    b"From:\r\n"
    b"Date:\r\n"
    b"Message-ID:\r\n"
    b"References:\r\n"
    b"Bytes:\r\n"
    b"Lines:\r\n"
    b"Xref:full\r\n"
    b".\r\n"
)
