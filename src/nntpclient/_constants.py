from __future__ import annotations

# Default port numbers
NNTP_PORT = 119
NNTP_SSL_PORT = 563

# Line terminators (we always output CRLF, but accept any of CRLF, CR, LF)
_CRLF = b"\r\n"

# maximal line length when calling readline(). This is to prevent
# reading arbitrary length lines. RFC 3977 limits NNTP line length to
# 512 characters, including CRLF. We have selected 2048 just to be on
# the safe side.
_MAXLINE = 2048

# Lines inside dot-terminated blocks (articles, overviews) are not held
# to the status line limit; overview lines with long References headers
# easily run to several kilobytes.
_MAXDATALINE = 64 * 1024

# Terminating lines of a dot-terminated block
_DOT_TERMINATORS = (b"." + _CRLF, b".\n")

# The overview always starts with the article number, which LIST
# OVERVIEW.FMT does not advertise
_OVERVIEW_ARTICLE_COLUMN = "Article"

# Overview columns whose values carry a redundant "name:" prefix
_OVERVIEW_FULL_FLAG = "full"

# Number of decoded overview records that may wait for the consumer
_OVERVIEW_QUEUE_SIZE = 64

# Size of the chunks handed to the decompressor in compressed overview mode
_DEFLATE_CHUNK = 8192
