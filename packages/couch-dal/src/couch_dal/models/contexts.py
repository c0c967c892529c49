"""Context types for CouchDB sessions.

A `Context` is the single source of connection and authentication state and is
passed explicitly to every operation. It is never mutated: when a response
renews the session cookie, a new `Context` is handed back to the caller.
"""

from types import TracebackType
from typing import Self

import httpx
from pydantic import BaseModel

from couch_dal.models.datatypes import CookieJar
from couch_dal.models.params import BasicCredentials, CouchParams


class Context(BaseModel, frozen=True, arbitrary_types_allowed=True):
    """Connection, credential and cookie state for one logical session."""

    client: httpx.Client
    """HTTP transport handle; owns pooling, TLS and timeouts."""

    host: str = "localhost"
    port: int = 5984
    secure: bool = False

    credentials: BasicCredentials | None = None
    """Applied as a Basic `Authorization` header on every request."""

    database: str | None = None
    """Database selected by `select_db`."""

    cookies: CookieJar = frozenset()
    """Session cookies sent with every request."""

    @classmethod
    def connect(
        cls,
        params: CouchParams,
        credentials: BasicCredentials | None = None,
        cookies: CookieJar = frozenset(),
    ) -> Self:
        """Create a context with a fresh HTTP client."""
        client = httpx.Client(timeout=params.timeout)
        return cls(
            client=client,
            host=params.host,
            port=params.port,
            secure=params.secure,
            credentials=credentials,
            database=params.database,
            cookies=cookies,
        )

    def close(self) -> None:
        """Close the HTTP client shared by every context derived from this one."""
        self.client.close()

    def with_cookies(self, cookies: CookieJar) -> Self:
        """Return a copy of this context carrying another cookie jar."""
        return self.model_copy(update={"cookies": frozenset(cookies)})

    def with_database(self, database: str | None) -> Self:
        """Return a copy of this context selecting another database."""
        return self.model_copy(update={"database": database})

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
