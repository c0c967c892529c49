"""Data types exchanged with the server.

These types represent what flows through a request:
- `Cookie` is a session cookie; a `CookieJar` is a frozen set of them
- `Request` is the finalized, immutable output of the request builder
- `RawResponse` is what response parsers see: headers, status and JSON value
- `DocUpdate`, `DocMeta`, `ViewResult` are typed results of common endpoints
- `DesignDoc` and `ViewSpec` describe design documents
"""

from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field

# JSON-compatible value type
type JsonValue = str | int | float | bool | None | list["JsonValue"] | dict[str, "JsonValue"]

# Document identifier.
type DocId = str

# Document revision, e.g. "1-967a00dff5e02add41819138abb3284d".
type DocRev = str

type Header = tuple[str, str]
type QueryParam = tuple[str, str | None]


class Cookie(BaseModel, frozen=True):
    """A session cookie, compared structurally."""

    name: str
    value: str
    domain: str = ""
    """Empty for a host-only cookie, bound to the host the request goes to."""

    path: str = "/"


type CookieJar = frozenset[Cookie]


def _lookup(headers: tuple[Header, ...], name: str) -> str | None:
    wanted = name.lower()
    for key, value in headers:
        if key.lower() == wanted:
            return value
    return None


class Request(BaseModel, frozen=True):
    """A fully specified HTTP request, produced once by the builder."""

    method: str
    scheme: str
    host: str
    port: int
    path: str
    """Already percent-encoded, always starting with "/"."""

    query: tuple[QueryParam, ...] = ()
    headers: tuple[Header, ...] = ()
    body: bytes = b""

    cookies: CookieJar = frozenset()
    """Cookie jar the request was built with, also rendered in `headers`."""

    @property
    def query_string(self) -> str:
        """Encode the query parameters; a `None` value renders a bare key."""
        parts = []
        for key, value in self.query:
            if value is None:
                parts.append(quote(key, safe=""))
            else:
                parts.append(f"{quote(key, safe='')}={quote(value, safe='')}")
        return "&".join(parts)

    @property
    def url(self) -> str:
        query = self.query_string
        base = f"{self.scheme}://{self.host}:{self.port}{self.path}"
        return f"{base}?{query}" if query else base

    def header(self, name: str) -> str | None:
        """Return the first value of a header, compared case-insensitively."""
        return _lookup(self.headers, name)


class RawResponse(BaseModel, frozen=True):
    """The low-level result handed to response parsers."""

    headers: tuple[Header, ...] = ()
    status: int
    value: JsonValue = None
    """Parsed body; `None` for HEAD requests."""

    def header(self, name: str) -> str | None:
        """Return the first value of a header, compared case-insensitively."""
        return _lookup(self.headers, name)


class DocUpdate(BaseModel, frozen=True):
    """Server acknowledgement of a document write."""

    ok: bool = True
    id: DocId
    rev: DocRev | None = None
    """Absent when the write was accepted in batch mode."""


class DocMeta(BaseModel, frozen=True):
    """Revision and size of a document, read from a HEAD request."""

    rev: DocRev
    size: int


class ViewRow(BaseModel, frozen=True):
    """A single row of a view or `_all_docs` result."""

    id: DocId | None = None
    key: JsonValue = None
    value: JsonValue = None
    doc: dict[str, JsonValue] | None = None
    error: str | None = None
    """Set for requested keys that do not exist."""


class ViewResult(BaseModel, frozen=True):
    """Result of a view or `_all_docs` query."""

    total_rows: int | None = None
    offset: int | None = None
    update_seq: JsonValue = None
    rows: list[ViewRow] = Field(default_factory=list)


class ViewSpec(BaseModel, frozen=True):
    """Map/reduce source of a single view."""

    model_config = ConfigDict(populate_by_name=True)

    map_: str = Field(alias="map")
    reduce: str | None = None


class DesignDoc(BaseModel, frozen=True):
    """A design document. Unset members are omitted when serialized."""

    model_config = ConfigDict(populate_by_name=True)

    id: DocId | None = Field(default=None, alias="_id")
    rev: DocRev | None = Field(default=None, alias="_rev")
    language: str = "javascript"
    options: dict[str, JsonValue] | None = None
    filters: dict[str, str] | None = None
    lists: dict[str, str] | None = None
    rewrites: list[dict[str, JsonValue]] | None = None
    shows: dict[str, str] | None = None
    updates: dict[str, str] | None = None
    validate_doc_update: str | None = None
    views: dict[str, ViewSpec] | None = None

