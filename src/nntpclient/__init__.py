from __future__ import annotations

from nntpclient._core import NNTP, NNTP_SSL, connect
from nntpclient._exceptions import (
    NNTPConnectError,
    NNTPDataError,
    NNTPError,
    NNTPPermanentError,
    NNTPProtocolError,
    NNTPReplyError,
    NNTPTemporaryError,
    NNTPTransportError,
)
from nntpclient._helpers import decode_header
from nntpclient._overview import OverviewStream
from nntpclient._streams import DeflateReader, DotReader, DotWriter
from nntpclient._types import (
    ANY,
    ArticleInfo,
    CodeClass,
    Exact,
    GroupInfo,
    Headers,
    OverviewColumn,
    OverviewRecord,
    PostingStatus,
    StatusResponse,
)

__all__ = [
    "NNTP",
    "NNTP_SSL",
    "connect",
    "NNTPError",
    "NNTPTransportError",
    "NNTPConnectError",
    "NNTPReplyError",
    "NNTPTemporaryError",
    "NNTPPermanentError",
    "NNTPProtocolError",
    "NNTPDataError",
    "decode_header",
    "ANY",
    "Exact",
    "CodeClass",
    "StatusResponse",
    "GroupInfo",
    "PostingStatus",
    "ArticleInfo",
    "Headers",
    "OverviewColumn",
    "OverviewRecord",
    "OverviewStream",
    "DotReader",
    "DotWriter",
    "DeflateReader",
]
