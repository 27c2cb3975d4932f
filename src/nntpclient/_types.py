from __future__ import annotations

import enum
import io
from collections.abc import Iterable, Iterator, Mapping, MutableMapping
from typing import Optional

from typing_extensions import IO, NamedTuple, TypeAlias, Union

ArticleSource: TypeAlias = Union[IO[bytes], bytes, bytearray, Iterable[bytes]]


# Status expectations: what a command is prepared to accept as a reply
class Exact(NamedTuple):
    """The status code must equal `code`."""

    code: int

    def matches(self, code: int) -> bool:
        return code == self.code

    def __str__(self) -> str:
        return "{0:03d}".format(self.code)


class CodeClass(NamedTuple):
    """The status code must start with `digit`, i.e. lie in
    [digit*100, digit*100 + 100)."""

    digit: int

    def matches(self, code: int) -> bool:
        return self.digit * 100 <= code < self.digit * 100 + 100

    def __str__(self) -> str:
        return "{0}xx".format(self.digit)


class AnyCode(NamedTuple):
    """Accept every status code; the caller inspects it."""

    def matches(self, code: int) -> bool:
        return True

    def __str__(self) -> str:
        return "any"


ANY = AnyCode()

Expectation: TypeAlias = Union[Exact, CodeClass, AnyCode]


class StatusResponse(NamedTuple):
    code: int
    message: str

    def __str__(self) -> str:
        return "{0:03d} {1}".format(self.code, self.message)


class PostingStatus(enum.Enum):
    PERMITTED = "y"
    MODERATED = "m"
    NOT_PERMITTED = "n"

    @classmethod
    def from_flag(cls, flag: str) -> PostingStatus:
        """Anything other than "y" or "m" means posting is not permitted."""
        if flag == "y":
            return cls.PERMITTED
        if flag == "m":
            return cls.MODERATED
        return cls.NOT_PERMITTED


class GroupInfo(NamedTuple):
    name: str
    count: int
    low: int
    high: int
    posting: Optional[PostingStatus] = None


class ArticleInfo(NamedTuple):
    number: int
    message_id: str
    body: io.BufferedReader


class OverviewColumn(NamedTuple):
    name: str
    full: bool = False


class Headers(MutableMapping):
    """A header-name -> value mapping with case-insensitive keys.
    The spelling of the first insertion of a key is kept for iteration."""

    def __init__(self, data: Mapping[str, str] | Iterable[tuple[str, str]] = ()) -> None:
        self._store: dict[str, tuple[str, str]] = {}
        self.update(data)

    def __setitem__(self, key: str, value: str) -> None:
        folded = key.lower()
        if folded in self._store:
            key = self._store[folded][0]
        self._store[folded] = (key, value)

    def __getitem__(self, key: str) -> str:
        return self._store[key.lower()][1]

    def __delitem__(self, key: str) -> None:
        del self._store[key.lower()]

    def __iter__(self) -> Iterator[str]:
        return (key for key, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            other = Headers(other)
        else:
            return NotImplemented
        return {k: v for k, (_, v) in self._store.items()} == {k: v for k, (_, v) in other._store.items()}

    def __repr__(self) -> str:
        return "Headers({0!r})".format(dict(self.items()))


class OverviewRecord(NamedTuple):
    """One article's overview, or the terminal error of the stream."""

    headers: Optional[Headers] = None
    error: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return self.error is not None
