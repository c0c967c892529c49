"""Transport adapter: sends a finalized request and reads its JSON body.

The body is consumed incrementally. Reading stops as soon as one complete
top-level JSON value is available, so trailing data is never read. Every
outcome is classified:
- `Complete(value)`: a full JSON value was read
- `Incomplete`: the stream ended while the value was still a valid, unfinished
  prefix (an empty body included)
- `Malformed(message)`: the input can not be JSON

This is the only place a request blocks on I/O.
"""

import codecs
import json
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

import httpx

from couch_dal.errors import CouchError, ErrorKind
from couch_dal.models.datatypes import Cookie, CookieJar, Header, JsonValue, Request

logger = logging.getLogger(__name__)

_WHITESPACE = frozenset(" \t\r\n")
_CLOSERS = {"{": "}", "[": "]"}
_SCALAR_START = frozenset("-0123456789tfn")
_LITERALS = ("true", "false", "null")
# What can follow the digits of a number cut off before its fraction or exponent.
_NUMBER_TAIL = re.compile(r"\.|[eE][-+]?")


@dataclass(frozen=True, slots=True)
class Complete:
    value: JsonValue


@dataclass(frozen=True, slots=True)
class Incomplete:
    pass


@dataclass(frozen=True, slots=True)
class Malformed:
    message: str


type ParseOutcome = Complete | Incomplete | Malformed


class IncrementalJsonReader:
    """Consume a JSON document chunk by chunk.

    Tracks just enough structure (open containers, string state) to know when
    the top-level value has ended; the text is then decoded with `json`.
    """

    __slots__ = (
        "_buffer",
        "_decoder",
        "_escaped",
        "_in_string",
        "_scalar",
        "_scanned",
        "_stack",
        "_started",
    )

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""
        self._scanned = 0
        self._stack: list[str] = []
        self._in_string = False
        self._escaped = False
        self._started = False
        self._scalar = False

    def feed(self, chunk: bytes) -> ParseOutcome | None:
        """Consume a chunk. Returns an outcome once one is known, else None."""
        try:
            self._buffer += self._decoder.decode(chunk)
        except UnicodeDecodeError as e:
            return Malformed(f"Invalid UTF-8 in response body: {e}")
        return self._scan()

    def finish(self) -> ParseOutcome:
        """Signal the end of the stream and classify what was read."""
        try:
            self._buffer += self._decoder.decode(b"", final=True)
        except UnicodeDecodeError as e:
            return Malformed(f"Invalid UTF-8 in response body: {e}")
        outcome = self._scan()
        if outcome is not None:
            return outcome
        if not self._started:
            return Incomplete()
        text = self._buffer.strip()
        try:
            return Complete(json.loads(text))
        except json.JSONDecodeError as e:
            if self._is_truncation(text, e):
                return Incomplete()
            return Malformed(str(e))

    def _scan(self) -> ParseOutcome | None:
        text = self._buffer
        for i in range(self._scanned, len(text)):
            ch = text[i]
            if self._in_string:
                if self._escaped:
                    self._escaped = False
                elif ch == "\\":
                    self._escaped = True
                elif ch == '"':
                    self._in_string = False
                    if not self._stack:
                        return self._decode(i + 1)
                continue
            if not self._started:
                if ch in _WHITESPACE:
                    continue
                self._started = True
                if ch in _CLOSERS:
                    self._stack.append(_CLOSERS[ch])
                elif ch == '"':
                    self._in_string = True
                elif ch in _SCALAR_START:
                    self._scalar = True
                else:
                    return Malformed(f"Unexpected character {ch!r} at position {i}")
                continue
            if self._scalar:
                # A top-level number or literal only ends at whitespace.
                if ch in _WHITESPACE:
                    return self._decode(i)
                continue
            if ch == '"':
                self._in_string = True
            elif ch in _CLOSERS:
                self._stack.append(_CLOSERS[ch])
            elif ch in "}]":
                expected = self._stack.pop()
                if ch != expected:
                    return Malformed(f"Expected {expected!r} but found {ch!r} at position {i}")
                if not self._stack:
                    return self._decode(i + 1)
        self._scanned = len(text)
        return None

    def _decode(self, end: int) -> ParseOutcome:
        try:
            return Complete(json.loads(self._buffer[:end]))
        except json.JSONDecodeError as e:
            return Malformed(str(e))

    @staticmethod
    def _is_truncation(text: str, error: json.JSONDecodeError) -> bool:
        """Whether decoding failed only because the text stops early."""
        if error.msg.startswith("Unterminated string"):
            return True
        rest = text[error.pos :]
        if not rest:
            return True
        if error.msg == "Expecting value":
            return rest == "-" or any(literal.startswith(rest) for literal in _LITERALS)
        # Any other error with text left over is a syntax error, unless a number
        # was cut off right after its digits, as in `1.` or `1e-`.
        return error.pos > 0 and text[error.pos - 1].isdigit() and _NUMBER_TAIL.fullmatch(rest) is not None


def read_json(chunks: Iterable[bytes]) -> ParseOutcome:
    """Read chunks until a complete value, a syntax error or the end of the stream."""
    reader = IncrementalJsonReader()
    for chunk in chunks:
        outcome = reader.feed(chunk)
        if outcome is not None:
            return outcome
    return reader.finish()


def _response_cookies(request: Request, response: httpx.Response) -> CookieJar:
    """The request's cookie jar, updated with the response's `Set-Cookie` headers.

    A cookie without a domain is bound to the request host, the same way the
    server's host-only cookies are, so a renewed or expired cookie replaces it.
    Host-only cookies come back with an empty domain.
    """
    host = _effective_host(request.host)
    jar = httpx.Cookies()
    for cookie in request.cookies:
        jar.set(cookie.name, cookie.value, domain=cookie.domain or host, path=cookie.path)
    jar.extract_cookies(response)
    return frozenset(
        Cookie(
            name=c.name,
            value=c.value or "",
            domain="" if c.domain == host else c.domain,
            path=c.path,
        )
        for c in jar.jar
    )


def _effective_host(host: str) -> str:
    # `http.cookiejar` stores host-only cookies of dotless hosts under `<host>.local`.
    host = host.lower()
    return host if "." in host else f"{host}.local"


def _transport_error(request: Request, e: httpx.TransportError) -> CouchError:
    logger.warning("%s %s failed: %s", request.method, request.url, e)
    if isinstance(e, httpx.TimeoutException):
        msg = f"Request to {request.url} timed out: {e}"
        return CouchError(msg, kind=ErrorKind.TIMEOUT, source=e)
    msg = f"Failed to reach {request.url}: {e}"
    return CouchError(msg, kind=ErrorKind.CONNECTION, source=e)


def raw_json_request(
    client: httpx.Client,
    request: Request,
) -> tuple[tuple[Header, ...], int, CookieJar, JsonValue]:
    """Perform `request` and parse the response body into a JSON value.

    Returns the response headers, status, cookie jar and value. The body of a
    HEAD response is not read and its value is `None`.
    """
    http_request = client.build_request(
        request.method,
        request.url,
        headers=list(request.headers),
        content=request.body,
    )
    # The context's jar is the only cookie source, not the client's.
    if request.header("Cookie") is None:
        _ = http_request.headers.pop("Cookie", None)

    logger.debug("%s %s", request.method, request.url)
    try:
        response = client.send(http_request, stream=True)
    except httpx.TransportError as e:
        raise _transport_error(request, e) from e

    try:
        logger.debug("%s %s -> %d", request.method, request.url, response.status_code)
        if request.method == "HEAD":
            outcome: ParseOutcome = Complete(None)
        else:
            try:
                outcome = read_json(response.iter_bytes())
            except httpx.DecodingError as e:
                msg = f"Response body from {request.url} could not be decoded: {e}"
                raise CouchError(msg, kind=ErrorKind.PARSE_FAIL, status=response.status_code, source=e) from e
            except httpx.TransportError as e:
                raise _transport_error(request, e) from e

        match outcome:
            case Complete(value=value):
                headers = tuple(response.headers.multi_items())
                return headers, response.status_code, _response_cookies(request, response), value
            case Incomplete():
                logger.debug("%s %s: incomplete body", request.method, request.url)
                msg = f"Response body from {request.url} ended before a complete JSON value"
                raise CouchError(msg, kind=ErrorKind.PARSE_INCOMPLETE, status=response.status_code)
            case Malformed(message=message):
                logger.debug("%s %s: malformed body: %s", request.method, request.url, message)
                msg = f"Response body from {request.url} is not valid JSON: {message}"
                raise CouchError(msg, kind=ErrorKind.PARSE_FAIL, status=response.status_code)
    finally:
        response.close()
