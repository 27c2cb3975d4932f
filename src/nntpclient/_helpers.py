from __future__ import annotations

import datetime
import re
import socket
import ssl
from email.header import decode_header as _email_decode_header

from nntpclient._exceptions import NNTPDataError
from nntpclient._types import GroupInfo, PostingStatus

_NUMBER_RE = re.compile(r"[0-9]+")


# Helper function(s)
def decode_header(header_str: str) -> str:
    """Decode RFC 2047 encoded-words in a header or overview value.
    Charsets Python does not know are decoded as Latin-1."""
    decoded = []
    for chunk, charset in _email_decode_header(header_str):
        if isinstance(chunk, str):
            decoded.append(chunk)
            continue
        try:
            decoded.append(chunk.decode(charset or "ascii", "replace"))
        except LookupError:
            decoded.append(chunk.decode("latin-1"))
    return "".join(decoded)


def _parse_number(token: str) -> int | None:
    if _NUMBER_RE.fullmatch(token) is None:
        return None
    return int(token)


def _parse_list_line(line: str) -> GroupInfo | None:
    """Parse one "group high low flag" line of a LIST response.
    Returns None if the line is not well formed."""
    parts = line.split(" ")
    if len(parts) != 4:
        return None
    name, high, low, flag = parts
    high_num = _parse_number(high)
    low_num = _parse_number(low)
    if high_num is None or low_num is None:
        return None
    # LIST carries no article count; the watermarks give the usual estimate
    count = max(0, high_num - low_num + 1)
    return GroupInfo(name, count, low_num, high_num, PostingStatus.from_flag(flag))


def _parse_list(lines: list[str]) -> list[GroupInfo]:
    groups = []
    for line in lines:
        info = _parse_list_line(line)
        if info is not None:
            groups.append(info)
    return groups


def _parse_group(text: str) -> GroupInfo:
    """Parse the text of a 211 reply to GROUP: "count low high name"."""
    parts = text.split(" ")
    if len(parts) != 4:
        raise NNTPDataError("Don't know how to parse result: " + text)
    count, low, high = (_parse_number(p) for p in parts[:3])
    if count is None or low is None or high is None:
        raise NNTPDataError("Don't know how to parse result: " + text)
    return GroupInfo(parts[3], count, low, high)


def _parse_article_status(text: str) -> tuple[int, str]:
    """Parse the text of a 22x reply: "number message-id [...]"."""
    parts = text.split(" ", 1)
    if len(parts) != 2:
        raise NNTPDataError("Don't know how to parse result: " + text)
    number = _parse_number(parts[0])
    if number is None:
        raise NNTPDataError("Bad article number in result: " + text)
    return number, parts[1]


def _parse_timestamp(stamp: str) -> datetime.datetime:
    """Parse the yyyymmddhhmmss time carried by a DATE reply."""
    if len(stamp) != 14 or not stamp.isascii() or not stamp.isdigit():
        raise NNTPDataError("bad timestamp: {0!r}".format(stamp))
    try:
        return datetime.datetime.strptime(stamp, "%Y%m%d%H%M%S")
    except ValueError as exc:
        raise NNTPDataError("bad timestamp: {0!r}".format(stamp)) from exc


def _parse_address(address: str | tuple[str, int], default_port: int) -> tuple[str, int]:
    """Accept ("host", port), "host:port" or "host"."""
    if isinstance(address, tuple):
        host, port = address
        return host, int(port)
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, default_port
    if not host or _parse_number(port) is None:
        raise ValueError("bad address: {0!r}".format(address))
    return host.strip("[]"), int(port)


def _encrypt_on(sock: socket.socket, context: ssl.SSLContext | None, hostname: str) -> ssl.SSLSocket:
    """Wrap a socket in SSL/TLS. Arguments:
    - sock: Socket to wrap
    - context: SSL context to use for the encrypted connection
    Returns:
    - sock: New, encrypted socket.
    """
    # Generate a default SSL context if none was passed.
    if context is None:
        context = ssl.create_default_context()
    return context.wrap_socket(sock, server_hostname=hostname)
