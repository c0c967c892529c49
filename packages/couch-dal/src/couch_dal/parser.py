"""Response parsing.

A response parser is any callable taking a `RawResponse` and returning the
value the caller wants. Parsers never perform I/O; they only look at the
headers, status and JSON value that were already fetched, and report failures
by raising `CouchError`.

Endpoints compose their parsers from the helpers here, e.g.:

    def parse_uuids(response: RawResponse) -> list[str]:
        return get_key(check_status(response), "uuids", list[str])
"""

from collections.abc import Callable
from functools import lru_cache
from typing import Any

from pydantic import TypeAdapter, ValidationError

from couch_dal.errors import CouchError, ErrorKind, kind_for_status
from couch_dal.models.datatypes import DocRev, JsonValue, RawResponse

type ResponseParser[T] = Callable[[RawResponse], T]


@lru_cache(maxsize=128)
def _adapter(type_: Any) -> TypeAdapter[Any]:
    return TypeAdapter(type_)


def _validate[T](value: object, type_: type[T] | Any, what: str) -> T:
    try:
        return _adapter(type_).validate_python(value)
    except ValidationError as e:
        msg = f"Unexpected shape for {what}: {e}"
        raise CouchError(msg, kind=ErrorKind.PARSE_FAIL, source=e) from e


def _error_body(value: JsonValue) -> tuple[str | None, str | None]:
    """Extract `error` and `reason` from CouchDB's structured error body."""
    if not isinstance(value, dict):
        return None, None
    error = value.get("error")
    reason = value.get("reason")
    return (
        error if isinstance(error, str) else None,
        reason if isinstance(reason, str) else None,
    )


def check_status(response: RawResponse) -> RawResponse:
    """Fail unless the status is 2xx, mapping it to an `ErrorKind`."""
    if 200 <= response.status < 300:
        return response
    error, reason = _error_body(response.value)
    msg = f"HTTP {response.status}"
    if error:
        msg = f"{msg} {error}"
    if reason:
        msg = f"{msg}: {reason}"
    raise CouchError(msg, kind=kind_for_status(response.status), status=response.status, reason=reason)


def require_status(response: RawResponse, *statuses: int) -> RawResponse:
    """Fail unless the status is one of `statuses`.

    Error statuses are still mapped by `check_status`; an unexpected success
    status fails with `HTTP_ERROR`.
    """
    if response.status in statuses:
        return response
    _ = check_status(response)
    expected = ", ".join(str(s) for s in statuses)
    msg = f"Unexpected status {response.status}, expected one of {expected}"
    raise CouchError(msg, kind=ErrorKind.HTTP_ERROR, status=response.status)


def get_key[T](response: RawResponse, key: str, type_: type[T] | Any = Any) -> T:
    """Get `key` from the JSON object as `type_`, failing if absent or mistyped."""
    if not isinstance(response.value, dict):
        msg = f"Expected a JSON object with key {key!r}, got {type(response.value).__name__}"
        raise CouchError(msg, kind=ErrorKind.PARSE_FAIL, status=response.status)
    if key not in response.value:
        msg = f"Missing key {key!r} in response"
        raise CouchError(msg, kind=ErrorKind.PARSE_FAIL, status=response.status)
    return _validate(response.value[key], type_, f"key {key!r}")


def expect_key(response: RawResponse, key: str, expected: JsonValue) -> RawResponse:
    """Assert that `key` holds exactly `expected`."""
    actual = get_key(response, key)
    if actual != expected:
        msg = f"Expected {key!r} to be {expected!r}, got {actual!r}"
        raise CouchError(msg, kind=ErrorKind.PARSE_FAIL, status=response.status)
    return response


def expect_ok(response: RawResponse) -> bool:
    """Check the status and assert the body is `{"ok": true}`."""
    _ = expect_key(check_status(response), "ok", True)
    return True


def get_header[T](response: RawResponse, name: str, type_: type[T] | Any = str) -> T:
    """Get a response header as `type_`, failing if absent or mistyped."""
    value = response.header(name)
    if value is None:
        msg = f"Missing header {name!r} in response"
        raise CouchError(msg, kind=ErrorKind.PARSE_FAIL, status=response.status)
    return _validate(value, type_, f"header {name!r}")


def get_rev_header(response: RawResponse) -> DocRev:
    """Get the document revision from the `ETag` header."""
    return get_header(response, "ETag").strip('"')


def standard_parse[T](type_: type[T] | Any = Any) -> ResponseParser[T]:
    """The standard parser: check the status, then read the body as `type_`."""

    def parse(response: RawResponse) -> T:
        return _validate(check_status(response).value, type_, "response body")

    return parse
