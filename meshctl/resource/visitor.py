"""Sources of resource documents.

Each source is a small value describing where documents come from. ``visit``
is the single place that knows how to read every kind of source.
"""
import logging
import sys
from dataclasses import dataclass, field
from typing import IO, Iterator, Optional, Union

import requests

from ..config import Config
from ..errors import VisitorError
from ..utils import RetryError, retry
from .decoder import Decoder
from .document import ResourceDocument

logger = logging.getLogger(__name__)

DEFAULT_HTTP_ATTEMPTS = 3


@dataclass(eq=False)
class StdinSource:
    """Standard input. It can be read only once."""
    stream: Optional[IO] = None
    consumed: bool = field(default=False, init=False)

    def __str__(self) -> str:
        return "STDIN"


@dataclass(frozen=True)
class FileSource:
    path: str

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class URLSource:
    url: str
    attempts: int = DEFAULT_HTTP_ATTEMPTS

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class CommandSource:
    """A resource named on the command line; an empty name means all of the kind."""
    kind: str
    name: str = ""

    def __str__(self) -> str:
        return f"{self.kind}/{self.name}" if self.name else self.kind


Source = Union[StdinSource, FileSource, URLSource, CommandSource]


class _TransientHTTPStatus(Exception):
    pass


def _get_url(url: str) -> bytes:
    response = requests.get(url, timeout=Config.API_TIMEOUT)
    if response.status_code == 429 or response.status_code >= 500:
        raise _TransientHTTPStatus(f"{url}: HTTP {response.status_code} {response.reason}")
    if response.status_code != 200:
        raise VisitorError(
            f"unable to read URL {url!r}, server reported {response.status_code} {response.reason}"
        )
    return response.content


def fetch_url(url: str, attempts: int = DEFAULT_HTTP_ATTEMPTS) -> bytes:
    """Download a URL, retrying connection failures and 429/5xx responses."""
    fetch = retry(
        attempts=attempts,
        exceptions=(requests.ConnectionError, requests.Timeout, _TransientHTTPStatus),
    )(_get_url)
    try:
        return fetch(url)
    except RetryError as e:
        raise VisitorError(
            f"unable to read URL {url!r} after {e.attempts} attempt(s): {e.__cause__}"
        ) from e


def visit(source: Source, decoder: Optional[Decoder] = None) -> Iterator[ResourceDocument]:
    """Lazily yield the documents held by ``source``.

    Raises:
        VisitorError: If the source cannot be read
        DecodeError: If the source content is malformed
    """
    decoder = decoder or Decoder()

    if isinstance(source, CommandSource):
        yield ResourceDocument(kind=source.kind, name=source.name, source=str(source))

    elif isinstance(source, FileSource):
        logger.debug(f"📄 Reading {source.path}")
        try:
            with open(source.path, "rb") as f:
                documents = decoder.decode(f, source=source.path)
        except OSError as e:
            raise VisitorError(f"error reading {source.path!r}: {e}") from e
        yield from documents

    elif isinstance(source, URLSource):
        logger.debug(f"🌐 Fetching {source.url}")
        body = fetch_url(source.url, source.attempts)
        yield from decoder.decode(body, source=source.url)

    elif isinstance(source, StdinSource):
        if source.consumed:
            raise VisitorError("STDIN has already been consumed")
        source.consumed = True
        stream = source.stream if source.stream is not None else sys.stdin
        yield from decoder.decode(stream, source="STDIN")

    else:
        raise TypeError(f"unknown resource source: {source!r}")
