"""
Tests for overview streaming: format negotiation, line decoding and the
background producer behind xover().
"""

import zlib

import pytest

from conftest import GREETING, OVERVIEW_FMT
from nntpclient import NNTPDataError, NNTPPermanentError, NNTPTemporaryError, NNTPTransportError, OverviewColumn
from nntpclient._overview import _parse_overview_fmt, _parse_overview_line

SHORT_FMT = b"215 Order of fields in overview database.\r\nSubject:\r\nXref:full\r\n.\r\n"


def overview_line(n: int) -> bytes:
    return b"%d\tSubject %d\tXref: news.example.com misc.test:%d\r\n" % (n, n, n)


def test_overview_fmt_columns():
    columns = _parse_overview_fmt(["Subject:", "From:", "Bytes:", ":lines", "Xref:full", ""])
    assert columns == [
        OverviewColumn("Article"),
        OverviewColumn("Subject"),
        OverviewColumn("From"),
        OverviewColumn("Bytes"),
        OverviewColumn("lines"),
        OverviewColumn("Xref", True),
    ]


def test_full_columns_lose_their_prefix():
    columns = _parse_overview_fmt(["Subject:full", "Bytes:"])
    headers = _parse_overview_line("1\tsubj:hello\t100", columns)
    assert headers == {"Article": "1", "Subject": "hello", "Bytes": "100"}


def test_extra_fields_are_dropped():
    columns = _parse_overview_fmt(["Subject:"])
    assert _parse_overview_line("1\thello\tunexpected", columns) == {"Article": "1", "Subject": "hello"}


def test_missing_fields_stay_absent():
    columns = _parse_overview_fmt(["Subject:", "From:", "Xref:full"])
    headers = _parse_overview_line("1\thello", columns)
    assert headers == {"Article": "1", "Subject": "hello"}
    assert "From" not in headers


def test_empty_full_field():
    columns = _parse_overview_fmt(["Xref:full"])
    assert _parse_overview_line("7\t", columns) == {"Article": "7", "Xref": ""}


def test_xover(server):
    session, sio = server(
        GREETING,
        OVERVIEW_FMT,
        b"224 Overview information follows\r\n",
        b"3000234\tI am just a test article\t\"Demo User\" <nobody@example.com>\t"
        b"6 Oct 1998 04:38:40 -0500\t<45223423@example.com>\t<45454@example.net>\t1234\t17\t"
        b"Xref: news.example.com misc.test:3000363\r\n",
        b"3000235\tAnother test article\tnobody@nowhere.to (Demo User)\t"
        b"6 Oct 1998 04:38:45 -0500\t<45223425@to.to>\t\t4818\t37\t\r\n",
        b".\r\n",
        b"211 2 3000234 3000235 misc.test\r\n",
    )
    with session.xover((3000234, 3000235)) as stream:
        records = list(stream)
    assert sio.sent == b"LIST OVERVIEW.FMT\r\nXOVER 3000234-3000235\r\n"
    assert not any(r.failed for r in records)
    first, second = (r.headers for r in records)
    assert first["article"] == "3000234"
    assert first["SUBJECT"] == "I am just a test article"
    assert first["message-id"] == "<45223423@example.com>"
    assert first["Xref"] == "news.example.com misc.test:3000363"
    assert first["Lines"] == "17"
    assert second["Subject"] == "Another test article"
    assert second["References"] == ""
    assert session.group("misc.test").count == 2


def test_xover_open_range(server):
    session, sio = server(GREETING, SHORT_FMT, b"224 follows\r\n", b".\r\n")
    with session.xover((5, None)) as stream:
        assert list(stream) == []
    assert sio.sent.endswith(b"XOVER 5-\r\n")


def test_xover_refused(server):
    session, _ = server(GREETING, SHORT_FMT, b"412 No newsgroup selected\r\n")
    with pytest.raises(NNTPTemporaryError):
        session.xover("1-10")


def test_xover_without_overview_fmt(server):
    session, sio = server(GREETING, b"503 program error\r\n")
    with pytest.raises(NNTPPermanentError):
        session.xover("1-10")
    assert sio.sent == b"LIST OVERVIEW.FMT\r\n"


def test_xzver(server):
    payload = b"".join(overview_line(n) for n in range(1, 201))
    session, sio = server(
        GREETING,
        SHORT_FMT,
        b"224 compressed data follows\r\n",
        zlib.compress(payload),
        b"211 200 1 200 misc.test\r\n",
    )
    with session.xover("1-200", compress=True) as stream:
        records = list(stream)
    assert sio.sent == b"LIST OVERVIEW.FMT\r\nXZVER 1-200\r\n"
    assert len(records) == 200
    assert records[41].headers == {"Article": "42", "Subject": "Subject 42", "Xref": "news.example.com misc.test:42"}
    # nothing past the compressed data was consumed
    assert session.group("misc.test").high == 200


def test_xzver_corrupt_data(server):
    session, _ = server(GREETING, SHORT_FMT, b"224 compressed data follows\r\n", b"not compressed\r\n")
    with session.xover("1-2", compress=True) as stream:
        records = list(stream)
    assert len(records) == 1
    assert records[0].failed
    assert isinstance(records[0].error, NNTPDataError)


def test_error_record_is_last(server):
    session, _ = server(
        GREETING,
        SHORT_FMT,
        b"224 Overview information follows\r\n",
        overview_line(1),
        overview_line(2),
    )
    with session.xover("1-3") as stream:
        records = list(stream)
    assert [r.headers["Article"] for r in records[:2]] == ["1", "2"]
    assert records[2].failed
    assert isinstance(records[2].error, NNTPTransportError)
    assert len(records) == 3


def test_close_early_keeps_session_usable(server):
    session, _ = server(
        GREETING,
        SHORT_FMT,
        b"224 Overview information follows\r\n",
        *(overview_line(n) for n in range(1, 101)),
        b".\r\n",
        b"211 100 1 100 misc.test\r\n",
        overview_queue_size=1,
    )
    stream = session.xover("1-100")
    assert next(stream).headers["Article"] == "1"
    stream.close()
    assert stream.closed
    assert list(stream) == []
    assert session.group("misc.test").count == 100


def test_queue_is_bounded(server):
    session, _ = server(
        GREETING,
        SHORT_FMT,
        b"224 Overview information follows\r\n",
        *(overview_line(n) for n in range(1, 11)),
        b".\r\n",
        overview_queue_size=2,
    )
    with session.xover("1-10") as stream:
        assert stream._queue.maxsize == 2
        assert [r.headers["Article"] for r in stream] == [str(n) for n in range(1, 11)]


REFERENCES = b" ".join(b"<%d.thread@example.com>" % n for n in range(150))


def test_long_overview_line(server):
    long_line = (
        b"1\tRe: a long thread\tnobody@example.com\t6 Oct 1998 04:38:40 -0500\t<1@example.com>\t"
        + REFERENCES
        + b"\t9000\t120\t\r\n"
    )
    assert len(long_line) > 3000
    session, _ = server(
        GREETING,
        OVERVIEW_FMT,
        b"224 Overview information follows\r\n",
        long_line,
        b"2\tworld\tnobody@example.com\t6 Oct 1998 04:38:45 -0500\t<2@example.com>\t<1@example.com>\t10\t1\t\r\n",
        b".\r\n",
        b"211 2 1 2 misc.test\r\n",
    )
    with session.xover("1-2") as stream:
        records = list(stream)
    assert not any(r.failed for r in records)
    assert records[0].headers["References"] == REFERENCES.decode()
    assert records[1].headers["Subject"] == "world"
    assert session.group("misc.test").high == 2


def test_long_compressed_overview_line(server):
    payload = b"1\thello\tXref: " + b"x" * 5000 + b"\r\n" + overview_line(2)
    session, _ = server(GREETING, SHORT_FMT, b"224 compressed data follows\r\n", zlib.compress(payload))
    with session.xover("1-2", compress=True) as stream:
        records = list(stream)
    assert not any(r.failed for r in records)
    assert records[0].headers["Xref"] == "x" * 5000
    assert records[1].headers["Article"] == "2"


def test_oversized_compressed_line_is_an_error(server):
    payload = b"1\t" + b"x" * (70 * 1024) + b"\r\n"
    session, _ = server(GREETING, SHORT_FMT, b"224 compressed data follows\r\n", zlib.compress(payload))
    with session.xover("1-1", compress=True) as stream:
        records = list(stream)
    assert len(records) == 1
    assert isinstance(records[0].error, NNTPDataError)


def test_close_reports_failure_while_draining(server):
    session, _ = server(
        GREETING,
        SHORT_FMT,
        b"224 Overview information follows\r\n",
        *(overview_line(n) for n in range(1, 21)),
        b"21\t" + b"x" * (70 * 1024) + b"\r\n",
        b".\r\n",
        b"211 21 1 21 misc.test\r\n",
        overview_queue_size=1,
    )
    stream = session.xover("1-21")
    assert next(stream).headers["Article"] == "1"
    with pytest.raises(NNTPDataError):
        stream.close()
    assert stream.closed
    # reported once
    stream.close()


@pytest.mark.parametrize("queue_size", [1, 64])
def test_close_reports_undelivered_failure(server, queue_size):
    session, _ = server(
        GREETING,
        SHORT_FMT,
        b"224 Overview information follows\r\n",
        overview_line(1),
        overview_line(2),
        overview_queue_size=queue_size,
    )
    stream = session.xover("1-3")
    assert next(stream).headers["Article"] == "1"
    with pytest.raises(NNTPTransportError):
        stream.close()


def test_delivered_failure_is_not_raised_again(server):
    session, _ = server(GREETING, SHORT_FMT, b"224 Overview information follows\r\n", overview_line(1))
    stream = session.xover("1-2")
    records = list(stream)
    assert isinstance(records[-1].error, NNTPTransportError)
    stream.close()
