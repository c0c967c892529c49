"""Error types for CouchDB operations."""

from enum import StrEnum
from typing import final


class ErrorKind(StrEnum):
    """Classification of request failures."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    ALREADY_EXISTS = "already_exists"
    INVALID_INPUT = "invalid_input"
    PARSE_INCOMPLETE = "parse_incomplete"
    PARSE_FAIL = "parse_fail"
    HTTP_ERROR = "http_error"
    CONNECTION = "connection"
    TIMEOUT = "timeout"


_STATUS_KINDS: dict[int, ErrorKind] = {
    400: ErrorKind.INVALID_INPUT,
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.CONFLICT,
    412: ErrorKind.ALREADY_EXISTS,
}


def kind_for_status(status: int) -> ErrorKind:
    """Map a non-success HTTP status to its error kind."""
    return _STATUS_KINDS.get(status, ErrorKind.HTTP_ERROR)


@final
class CouchError(Exception):
    """Base error for all CouchDB operations.

    `status` and `reason` are set when the failure came from a server response;
    `reason` is the `reason` member of CouchDB's structured error body.
    """

    __slots__ = ("kind", "message", "reason", "source", "status")

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.HTTP_ERROR,
        status: int | None = None,
        reason: str | None = None,
        source: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status = status
        self.reason = reason
        self.source = source

    def __repr__(self) -> str:
        return f"CouchError({self.message!r}, kind={self.kind!r}, status={self.status!r})"
