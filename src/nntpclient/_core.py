"""An NNTP client built around a small command/response driver:
- RFC 977: Network News Transfer Protocol
- RFC 2980: Common NNTP Extensions (XOVER, XZVER)
- RFC 3977: Network News Transfer Protocol (version 2)

Example:

>>> from nntpclient import NNTP
>>> s = NNTP('news')
>>> info = s.group('comp.lang.python')
>>> print('Group', info.name, 'has', info.count, 'articles, range', info.low, 'to', info.high)
Group comp.lang.python has 51 articles, range 5770 to 5821
>>> with s.xover((info.high - 10, info.high)) as records:
...     for record in records:
...         print(record.headers['Subject'])
>>> resp = s.quit()
>>>

Every exchange yields a StatusResponse (code, message).  Replies that do
not match what a command expects are turned into exceptions.

To post an article from a file:
>>> f = open(filename, 'rb') # file containing article, including header
>>> resp = s.post(f)
>>>

Only one exchange may be in progress on a session at a time.  The body
reader returned by article(), head() and body() and the OverviewStream
returned by xover() read straight from the connection, so they have to
be consumed (or closed) before the next command is sent.
"""

from __future__ import annotations

import io
import logging
import shutil
import socket
import sys
from typing import TYPE_CHECKING, Any

from typing_extensions import IO, Self

from nntpclient._constants import _CRLF, _MAXDATALINE, _MAXLINE, _OVERVIEW_QUEUE_SIZE, NNTP_PORT, NNTP_SSL_PORT
from nntpclient._exceptions import (
    NNTPConnectError,
    NNTPDataError,
    NNTPPermanentError,
    NNTPProtocolError,
    NNTPReplyError,
    NNTPTemporaryError,
    NNTPTransportError,
)
from nntpclient._helpers import (
    _encrypt_on,
    _parse_address,
    _parse_article_status,
    _parse_group,
    _parse_list,
    _parse_timestamp,
    decode_header,
)
from nntpclient._overview import OverviewStream, _parse_overview_fmt
from nntpclient._streams import DeflateReader, DotReader, DotWriter
from nntpclient._types import (
    ANY,
    ArticleInfo,
    ArticleSource,
    CodeClass,
    Exact,
    Expectation,
    GroupInfo,
    OverviewColumn,
    StatusResponse,
)

if TYPE_CHECKING:
    import datetime
    from ssl import SSLContext, SSLSocket

    from _typeshed import Unused

__all__ = [
    "NNTP",
    "connect",
]

_log = logging.getLogger(__name__)


def _status_error(line: str, status: StatusResponse, expected: Expectation) -> NNTPReplyError:
    if 400 <= status.code < 500:
        cls = NNTPTemporaryError
    elif 500 <= status.code < 600:
        cls = NNTPPermanentError
    else:
        cls = NNTPReplyError
    return cls(line, status.code, status.message, expected)


class _NNTPBase:
    # UTF-8 is the character set for all NNTP commands and responses: they
    # are automatically encoded (when sending) and decoded (and receiving)
    # by this class.
    # However, some multi-line data blocks can contain arbitrary bytes (for
    # example, latin-1 or utf-16 data in the body of a message). Commands
    # taking (POST) or returning (HEAD, BODY, ARTICLE) raw message data
    # will therefore only accept and produce bytes.
    # Furthermore, since there could be non-compliant servers out there,
    # we use 'surrogateescape' as the error handler for fault tolerance
    # and easy round-tripping.

    encoding: str = "utf-8"
    errors: str = "surrogateescape"

    def __init__(self, file: IO[bytes], host: str, overview_queue_size: int = _OVERVIEW_QUEUE_SIZE) -> None:
        """Initialize an instance over an already connected binary file.
        Arguments:
        - file: buffered read/write file; it must support peek() for
          compressed overviews
        - host: name of the server, used for .netrc lookups
        - overview_queue_size: how many decoded overview records may wait
          for the consumer of xover()

        The server greeting is read immediately; anything other than a
        2xx greeting raises NNTPConnectError.
        """
        self.host = host
        self.file = file
        self.debugging = 0
        self.overview_queue_size = overview_queue_size
        self.authenticated = False
        try:
            greeting = self.read_status(CodeClass(2))
        except (NNTPReplyError, NNTPTransportError, NNTPProtocolError) as exc:
            raise NNTPConnectError("bad greeting: {0}".format(exc)) from exc
        self.welcome = str(greeting)
        # 200 means posting is allowed, 201 means it is not
        self.posting_allowed = greeting.code == 200

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: Unused) -> None:
        if self.file is not None:
            try:
                self.quit()
            except (OSError, NNTPTransportError):
                pass
            finally:
                if self.file is not None:
                    self.close()

    def getwelcome(self) -> str:
        """Get the welcome message from the server
        (this is read and squirreled away by __init__()).
        If the response code is 200, posting is allowed;
        if it 201, posting is not allowed."""

        if self.debugging:
            _log.debug("*welcome* %r", self.welcome)
        return self.welcome

    def set_debuglevel(self, level: int) -> None:
        """Set the debugging level.  Argument 'level' means:
        0: no debugging output (default)
        1: log commands and responses but not body text etc.
        2: also log raw lines read and sent before stripping CR/LF"""

        self.debugging = level

    debug = set_debuglevel

    # Protocol driver

    def _putline(self, line: bytes) -> None:
        """Internal: send one line to the server, appending CRLF.
        The `line` must be a bytes-like object."""
        sys.audit("nntpclient.putline", self, line)
        line = line + _CRLF
        if self.debugging > 1:
            _log.debug("*put* %r", line)
        try:
            self.file.write(line)
            self.file.flush()
        except OSError as exc:
            raise NNTPTransportError(str(exc)) from exc

    def send_line(self, line: str) -> None:
        """Send one command line to the server.
        The `line` must be a unicode string without CRLF."""
        if self.debugging:
            shown = line
            if line.upper().startswith("AUTHINFO PASS "):
                shown = line[:14] + "****"
            _log.debug("*cmd* %r", shown)
        self._putline(line.encode(self.encoding, self.errors))

    def _getline(self, strip_crlf: bool = True, maxline: int = _MAXLINE) -> bytes:
        """Internal: return one line from the server, stripping _CRLF.
        Raise NNTPTransportError if the connection is closed, and
        NNTPDataError if the line is longer than `maxline`.
        Returns a bytes object."""
        try:
            line = self.file.readline(maxline + 1)
        except OSError as exc:
            raise NNTPTransportError(str(exc)) from exc
        if len(line) > maxline:
            raise NNTPDataError("line too long")
        if self.debugging > 1:
            _log.debug("*get* %r", line)
        if not line:
            raise NNTPTransportError("connection closed by server")
        if strip_crlf:
            if line[-2:] == _CRLF:
                line = line[:-2]
            elif line[-1:] in _CRLF:
                line = line[:-1]
        return line

    def read_status(self, expected: Expectation = ANY) -> StatusResponse:
        """Read a status line and check its code against `expected`
        (Exact(code), CodeClass(digit) or ANY).
        Raise NNTPProtocolError if the line is not "<3 digits> <text>",
        and an NNTPReplyError (4xx: NNTPTemporaryError, 5xx:
        NNTPPermanentError) if the code is not acceptable."""
        line = self._getline().decode(self.encoding, self.errors)
        if self.debugging:
            _log.debug("*resp* %r", line)
        code, sep, message = line.partition(" ")
        if not sep or len(code) != 3 or not code.isascii() or not code.isdigit():
            raise NNTPProtocolError(line)
        status = StatusResponse(int(code), message)
        if not expected.matches(status.code):
            raise _status_error(line, status, expected)
        return status

    def read_dot_block(self) -> io.BufferedReader:
        """Return a reader over the dot-terminated block that follows.
        It ends at the "." line and never reads past it."""
        return io.BufferedReader(DotReader(lambda: self._getline(False, _MAXDATALINE)))

    def read_dot_lines(self) -> list[str]:
        """Read a whole dot-terminated block as a list of unicode
        strings, line terminators removed."""
        lines = []
        terminator = b"."
        while 1:
            line = self._getline(maxline=_MAXDATALINE)
            if line == terminator:
                break
            if line.startswith(b"."):
                line = line[1:]
            lines.append(line.decode(self.encoding, self.errors))
        return lines

    def write_dot_block(self, data: ArticleSource) -> None:
        """Send `data` as a dot-terminated block.  `data` may be bytes, a
        binary file object or an iterable of byte lines.
        If the connection fails NNTPTransportError is raised; errors
        reading `data` propagate unchanged.  Either way the block is
        left unterminated and the session must be closed."""
        with DotWriter(self.file) as writer:
            if isinstance(data, (bytes, bytearray)):
                writer.write(data)
            elif hasattr(data, "read"):
                shutil.copyfileobj(data, writer)
            else:
                for line in data:
                    if not line.endswith(b"\n"):
                        line = line + _CRLF
                    writer.write(line)

    def command(self, line: str, expected: Expectation = ANY) -> StatusResponse:
        """Send a command and read its status line.  Use this for
        commands without a dedicated method."""
        self.send_line(line)
        return self.read_status(expected)

    def multiline_command(self, line: str, expected: Expectation = ANY) -> tuple[StatusResponse, list[str]]:
        """Send a command, read its status line and the dot-terminated
        block that follows it."""
        status = self.command(line, expected)
        return status, self.read_dot_lines()

    # Commands

    def close(self) -> None:
        """Release the connection without saying goodbye."""
        if self.file is not None:
            try:
                self.file.close()
            finally:
                self.file = None

    def quit(self) -> StatusResponse:
        """Process a QUIT command and close the connection."""
        try:
            resp = self.command("QUIT", CodeClass(2))
        finally:
            self.close()
        return resp

    def authenticate(self, user: str, password: str) -> StatusResponse:
        """Log in with AUTHINFO USER/PASS.  The server must answer 381 to
        the user name and 281 to the password; any other reply is raised
        as-is.  Returns the 281 response."""
        self.command("AUTHINFO USER " + user, Exact(381))
        resp = self.command("AUTHINFO PASS " + password, Exact(281))
        self.authenticated = True
        return resp

    def login(self, user: str | None = None, password: str | None = None, usenetrc: bool = True) -> None:
        if self.authenticated:
            raise ValueError("Already logged in.")
        if not user and not usenetrc:
            raise ValueError("At least one of `user` and `usenetrc` must be specified")
        # If no login/password was specified but netrc was requested,
        # try to get them from ~/.netrc
        # Presume that if .netrc has an entry, NNRP authentication is required.
        try:
            if usenetrc and not user:
                import netrc

                credentials = netrc.netrc()
                auth = credentials.authenticators(self.host)
                if auth:
                    user = auth[0]
                    password = auth[2]
        except OSError:
            pass
        if not user:
            return
        self.authenticate(user, password or "")

    def capabilities(self) -> dict[str, list[str]]:
        """Process a CAPABILITIES command.  Not supported by all servers.
        Returns a dictionary mapping capability names to lists of tokens
        (for example {'VERSION': ['2'], 'OVER': [], LIST: ['ACTIVE', 'HEADERS'] })
        """
        caps = {}
        _, lines = self.multiline_command("CAPABILITIES", Exact(101))
        for line in lines:
            if not line.strip():
                continue
            name, *tokens = line.split()
            caps[name] = tokens
        return caps

    def list(self, group_pattern: str = "") -> list[GroupInfo]:
        """Process a LIST command.  Argument:
        - group_pattern: what follows LIST, e.g. "ACTIVE comp.lang.*"
        Returns a list of GroupInfo.  Lines that are not
        "group high low flag" with numeric watermarks are skipped.
        """
        command = "LIST " + group_pattern if group_pattern else "LIST"
        _, lines = self.multiline_command(command, Exact(215))
        return _parse_list(lines)

    def group(self, name: str) -> GroupInfo:
        """Process a GROUP command and return the selected group's
        GroupInfo (count, low and high watermarks, name)."""
        resp = self.command("GROUP " + name, Exact(211))
        return _parse_group(resp.message)

    def stat(self, message_spec: Any = None) -> tuple[int, str]:
        """Process a STAT command.  Argument:
        - message_spec: article number or message id (if not specified,
          the current article is selected)
        Returns (article number, message id).
        """
        resp = self.command(self._with_spec("STAT", message_spec), Exact(223))
        number, rest = _parse_article_status(resp.message)
        return number, rest.split(" ", 1)[0]

    @staticmethod
    def _with_spec(verb: str, message_spec: Any) -> str:
        if message_spec is None or message_spec == "":
            return verb
        return "{0} {1}".format(verb, message_spec)

    def _artcmd(self, verb: str, message_spec: Any, expected: int) -> ArticleInfo:
        """Internal: process a HEAD, BODY or ARTICLE command."""
        resp = self.command(self._with_spec(verb, message_spec), Exact(expected))
        number, rest = _parse_article_status(resp.message)
        return ArticleInfo(number, rest, self.read_dot_block())

    def article(self, message_spec: Any = None) -> ArticleInfo:
        """Process an ARTICLE command.  Argument:
        - message_spec: article number or message id
        Returns ArticleInfo (article number, message id, body reader).
        The reader yields the whole article, headers included.
        """
        return self._artcmd("ARTICLE", message_spec, 220)

    def head(self, message_spec: Any = None) -> ArticleInfo:
        """Process a HEAD command.  Same as article(), but the reader only
        yields the headers."""
        return self._artcmd("HEAD", message_spec, 221)

    def body(self, message_spec: Any = None) -> ArticleInfo:
        """Process a BODY command.  Same as article(), but the reader only
        yields the body."""
        return self._artcmd("BODY", message_spec, 222)

    def overview_fmt(self) -> list[OverviewColumn]:
        """Process LIST OVERVIEW.FMT and return the overview columns,
        starting with the article number."""
        _, lines = self.multiline_command("LIST OVERVIEW.FMT", Exact(215))
        _log.info("LIST OVERVIEW.FMT\n  %s", "\n  ".join(lines))
        return _parse_overview_fmt(lines)

    def xover(self, message_spec: Any = None, compress: bool = False) -> OverviewStream:
        """Process an XOVER command, or XZVER if `compress` is true.
        Arguments:
        - message_spec: a range string ("1-10", "5-"), or a (start, end)
          tuple where end may be None for an open range
        - compress: ask for a zlib compressed overview
        Returns an OverviewStream of OverviewRecord.  The overview format
        is negotiated first, so this is three exchanges in a row.
        """
        columns = self.overview_fmt()
        if isinstance(message_spec, (tuple, list)):
            start, end = message_spec
            message_spec = "{0}-{1}".format(start, "" if end is None else end)
        verb = "XZVER" if compress else "XOVER"
        resp = self.command(self._with_spec(verb, message_spec), Exact(224))
        _log.info("%s", resp)
        if compress:
            reader = io.BufferedReader(DeflateReader(self.file))
        else:
            reader = self.read_dot_block()
        return OverviewStream(reader, columns, self.encoding, self.errors, self.overview_queue_size)

    def date(self) -> datetime.datetime:
        """Process the DATE command and return the server's time."""
        resp = self.command("DATE", Exact(111))
        stamp, _, _ = resp.message.partition(" ")
        return _parse_timestamp(stamp)

    def post(self, data: ArticleSource) -> StatusResponse:
        """Process a POST command.  Arguments:
        - data: bytes object, iterable or file containing the article,
          headers and body
        Returns the 240 response.  Nothing is sent if the server does
        not answer POST with 340.  If sending the article fails the
        session is out of step with the server and must be closed."""
        self.command("POST", Exact(340))
        self.write_dot_block(data)
        return self.read_status(Exact(240))


class NNTP(_NNTPBase):
    def __init__(
        self,
        host: str,
        port: int = NNTP_PORT,
        user: str | None = None,
        password: str | None = None,
        usenetrc: bool = False,
        timeout: float | None = None,
        overview_queue_size: int = _OVERVIEW_QUEUE_SIZE,
    ) -> None:
        """Initialize an instance.  Arguments:
        - host: hostname to connect to
        - port: port to connect to (default the standard NNTP port)
        - user: username to authenticate with
        - password: password to use with username
        - usenetrc: allow loading username and password from ~/.netrc file
                    if not specified explicitly
        - timeout: timeout (in seconds) used for socket connections
        - overview_queue_size: bound of the xover() record queue
        """
        self.host = host
        self.port = port
        try:
            self.sock = self._create_socket(timeout)
        except OSError as exc:
            raise NNTPConnectError("cannot connect to {0}:{1}: {2}".format(host, port, exc)) from exc
        file = None
        try:
            file = self.sock.makefile("rwb")
            _NNTPBase.__init__(self, file, host, overview_queue_size)
            if user or usenetrc:
                self.login(user, password, usenetrc)
        except Exception:
            if file:
                file.close()
            self.sock.close()
            raise

    def _create_socket(self, timeout: float | None) -> socket.socket:
        if timeout is not None and not timeout:
            raise ValueError("Non-blocking socket (timeout=0) is not supported")
        sys.audit("nntpclient.connect", self, self.host, self.port)
        return socket.create_connection((self.host, self.port), timeout)

    def close(self) -> None:
        try:
            _NNTPBase.close(self)
        finally:
            self.sock.close()


class NNTP_SSL(NNTP):
    def __init__(
        self,
        host: str,
        port: int = NNTP_SSL_PORT,
        user: str | None = None,
        password: str | None = None,
        ssl_context: SSLContext | None = None,
        usenetrc: bool = False,
        timeout: float | None = None,
        overview_queue_size: int = _OVERVIEW_QUEUE_SIZE,
    ) -> None:
        """This works identically to NNTP.__init__, except for the change
        in default port and the `ssl_context` argument for SSL connections.
        """
        self.ssl_context = ssl_context
        super().__init__(host, port, user, password, usenetrc, timeout, overview_queue_size)

    def _create_socket(self, timeout: float | None) -> SSLSocket:
        sock = super()._create_socket(timeout)
        try:
            sock = _encrypt_on(sock, self.ssl_context, self.host)
        except Exception:
            sock.close()
            raise
        else:
            return sock


__all__.append("NNTP_SSL")


def connect(
    address: str | tuple[str, int],
    *,
    use_ssl: bool = False,
    ssl_context: SSLContext | None = None,
    **kwargs: Any,
) -> NNTP:
    """Open a session to `address` ("host", "host:port" or a
    (host, port) tuple).  Other keyword arguments go to NNTP."""
    if use_ssl or ssl_context is not None:
        host, port = _parse_address(address, NNTP_SSL_PORT)
        return NNTP_SSL(host, port, ssl_context=ssl_context, **kwargs)
    host, port = _parse_address(address, NNTP_PORT)
    return NNTP(host, port, **kwargs)


# Test retrieval when run as a script.
if __name__ == "__main__":
    import argparse
    import textwrap

    parser = argparse.ArgumentParser(
        description="""\
        nntpclient built-in demo - display the latest articles in a newsgroup"""
    )
    parser.add_argument(
        "-g",
        "--group",
        default="gmane.comp.python.general",
        help="group to fetch messages from (default: %(default)s)",
    )
    parser.add_argument(
        "-s",
        "--server",
        default="news.gmane.io",
        help="NNTP server hostname (default: %(default)s)",
    )
    parser.add_argument(
        "-p",
        "--port",
        default=-1,
        type=int,
        help="NNTP port number (default: %s / %s)" % (NNTP_PORT, NNTP_SSL_PORT),
    )
    parser.add_argument(
        "-n",
        "--nb-articles",
        default=10,
        type=int,
        help="number of articles to fetch (default: %(default)s)",
    )
    parser.add_argument("-S", "--ssl", action="store_true", default=False, help="use NNTP over SSL")
    parser.add_argument("-z", "--compress", action="store_true", default=False, help="use XZVER")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    if args.port == -1:
        args.port = NNTP_SSL_PORT if args.ssl else NNTP_PORT

    def _shorten(text: str, width: int) -> str:
        # Whole words only, "[...]" marks the cut
        return textwrap.shorten(text.strip(), width, placeholder=" [...]")

    with connect((args.server, args.port), use_ssl=args.ssl) as session:
        info = session.group(args.group)
        print("{0.name}: {0.count} articles, {0.low}-{0.high}".format(info))
        start = max(info.low, info.high - args.nb_articles + 1)
        with session.xover((start, info.high), compress=args.compress) as records:
            for record in records:
                if record.failed:
                    raise record.error
                fields = record.headers
                sender = decode_header(fields.get("From", "")).partition("<")[0]
                subject = decode_header(fields.get("Subject", ""))
                lines = fields.get("Lines", "?")
                print("{:>8}  {:<20}  {:<42}  {} lines".format(fields["Article"], _shorten(sender, 20), _shorten(subject, 42), lines))
