from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nntpclient._types import Expectation


# Exceptions raised when an error or invalid response is received
class NNTPError(Exception):
    """Base class for all nntpclient exceptions"""

    def __init__(self, *args: str) -> None:
        Exception.__init__(self, *args)
        try:
            self.response = args[0]
        except IndexError:
            self.response = "No response given"


class NNTPTransportError(NNTPError):
    """I/O failure on the underlying connection"""


class NNTPConnectError(NNTPTransportError):
    """Connection could not be established or the greeting was refused"""


class NNTPReplyError(NNTPError):
    """Status code does not match what the command expects"""

    def __init__(self, response: str, code: int = 0, message: str = "", expected: Expectation | None = None) -> None:
        NNTPError.__init__(self, response)
        self.code = code
        self.message = message
        self.expected = expected

    def __str__(self) -> str:
        if self.expected is None:
            return self.response
        return "{0} (expected {1})".format(self.response, self.expected)


class NNTPTemporaryError(NNTPReplyError):
    """4xx errors"""


class NNTPPermanentError(NNTPReplyError):
    """5xx errors"""


class NNTPProtocolError(NNTPError):
    """Response line is not <3 digits><space><text>"""


class NNTPDataError(NNTPProtocolError):
    """Error in response data"""
