"""Request builder.

A request is described as an ordered list of steps. A step is any callable
taking the state under construction and the session `Context` and returning
the next state. `run_builder` folds the default steps, then the caller's steps,
over an empty state and finalizes the result into an immutable `Request`.

Headers and query parameters follow the same three-tier merge policy:
- `add_*` appends, leaving existing entries undisturbed (keys may repeat)
- `default_*` inserts only keys that are not already present
- `set_*` replaces every existing entry for the keys it is given

Header names are compared case-insensitively, query keys exactly.
"""

import base64
import json
from collections.abc import Callable, Iterable, Mapping
from urllib.parse import quote

from pydantic import BaseModel

from couch_dal.errors import CouchError, ErrorKind
from couch_dal.models.contexts import Context
from couch_dal.models.datatypes import CookieJar, DocId, DocRev, Header, QueryParam, Request

type Step = Callable[[BuilderState, Context], BuilderState]
type Pairs[V] = Mapping[str, V] | Iterable[tuple[str, V]]


class BuilderState(BaseModel, frozen=True):
    """The state of a request as it is being built."""

    method: str = "GET"
    headers: tuple[Header, ...] = ()

    query: tuple[QueryParam, ...] = ()
    """Accumulated as pairs, encoded into the query string by the request."""

    database: str = ""
    """If set, prepended to the path."""

    segments: tuple[str, ...] = ()
    """Path components, joined with "/" on finalization."""

    body: bytes = b""
    host: str = "localhost"
    port: int = 80
    secure: bool = False
    cookies: CookieJar = frozenset()

    def finalize(self) -> Request:
        """Assemble the accumulated pieces into a `Request`."""
        parts = [self.database] if self.database else []
        parts.extend(self.segments)
        headers = self.headers
        if self.cookies:
            headers = _union_by(headers, [("Cookie", _cookie_header(self.cookies))], str.lower)
        return Request(
            method=self.method,
            scheme="https" if self.secure else "http",
            host=self.host,
            port=self.port,
            path="/" + "/".join(parts),
            query=self.query,
            headers=headers,
            body=self.body,
            cookies=self.cookies,
        )


def _cookie_header(cookies: CookieJar) -> str:
    return "; ".join(f"{c.name}={c.value}" for c in sorted(cookies, key=lambda c: (c.name, c.path)))


def _pairs[V](items: Pairs[V]) -> tuple[tuple[str, V], ...]:
    if isinstance(items, Mapping):
        return tuple(items.items())
    return tuple(items)


def _union_by[V](
    first: Iterable[tuple[str, V]],
    second: Iterable[tuple[str, V]],
    key: Callable[[str], str],
) -> tuple[tuple[str, V], ...]:
    """Keep all of `first`, then the entries of `second` whose key is new."""
    merged = list(first)
    seen = {key(name) for name, _ in merged}
    for name, value in second:
        if key(name) not in seen:
            seen.add(key(name))
            merged.append((name, value))
    return tuple(merged)


def _same(name: str) -> str:
    return name


def _noop(state: BuilderState, _: Context) -> BuilderState:
    return state


# * Applying the Context to the request


def select_db(state: BuilderState, context: Context) -> BuilderState:
    """Prefix the path with the database named in the context.

    This is the one step that can fail: a context without a database raises
    `CouchError` with kind `INVALID_INPUT` before anything is sent.
    """
    if not context.database:
        msg = "No database selected in context"
        raise CouchError(msg, kind=ErrorKind.INVALID_INPUT)
    return state.model_copy(update={"database": quote(context.database, safe="")})


def set_auth(state: BuilderState, context: Context) -> BuilderState:
    """Apply Basic authentication from the context's credentials, if any."""
    if context.credentials is None:
        return state
    pair = f"{context.credentials.user}:{context.credentials.password}".encode()
    token = base64.b64encode(pair).decode("ascii")
    return set_headers({"Authorization": f"Basic {token}"})(state, context)


def set_connection(state: BuilderState, context: Context) -> BuilderState:
    """Set host, port and scheme from the context."""
    return state.model_copy(
        update={"host": context.host, "port": context.port, "secure": context.secure}
    )


def set_cookie_jar(state: BuilderState, context: Context) -> BuilderState:
    """Attach the context's session cookies."""
    return state.model_copy(update={"cookies": context.cookies})


# * Setting headers


def add_headers(headers: Pairs[str]) -> Step:
    """Add headers, leaving existing instances undisturbed."""
    new = _pairs(headers)

    def step(state: BuilderState, _: Context) -> BuilderState:
        return state.model_copy(update={"headers": (*state.headers, *new)})

    return step


def default_headers(headers: Pairs[str]) -> Step:
    """Add headers that are not already present."""
    new = _pairs(headers)

    def step(state: BuilderState, _: Context) -> BuilderState:
        return state.model_copy(update={"headers": _union_by(state.headers, new, str.lower)})

    return step


def set_headers(headers: Pairs[str]) -> Step:
    """Set headers, overriding any existing instances."""
    new = _pairs(headers)

    def step(state: BuilderState, _: Context) -> BuilderState:
        return state.model_copy(update={"headers": _union_by(new, state.headers, str.lower)})

    return step


# * Setting query parameters


def add_query_param(params: Pairs[str | None]) -> Step:
    """Add query parameters, leaving existing parameters undisturbed."""
    new = _pairs(params)

    def step(state: BuilderState, _: Context) -> BuilderState:
        return state.model_copy(update={"query": (*state.query, *new)})

    return step


def default_query_param(params: Pairs[str | None]) -> Step:
    """Add query parameters that are not already present."""
    new = _pairs(params)

    def step(state: BuilderState, _: Context) -> BuilderState:
        return state.model_copy(update={"query": _union_by(state.query, new, _same)})

    return step


def set_query_param(params: Pairs[str | None]) -> Step:
    """Set query parameters, overriding any existing instances."""
    new = _pairs(params)

    def step(state: BuilderState, _: Context) -> BuilderState:
        return state.model_copy(update={"query": _union_by(new, state.query, _same)})

    return step


# * Setting the path


def add_path(segment: str) -> Step:
    """Append a raw path segment. Only appropriate for static paths."""

    def step(state: BuilderState, _: Context) -> BuilderState:
        return state.model_copy(update={"segments": (*state.segments, segment)})

    return step


def select_doc(doc_id: DocId) -> Step:
    """Append a path segment naming a document."""
    return add_path(quote(doc_id, safe=""))


# * Revisions


def add_rev(rev: DocRev) -> Step:
    """Set the revision the request applies to."""
    return set_headers({"ETag": rev})


def maybe_add_rev(rev: DocRev | None) -> Step:
    """Set the revision if there is one."""
    return _noop if rev is None else add_rev(rev)


# * Body and method


def set_json_body(value: object) -> Step:
    """Set the body to the JSON encoding of `value`.

    Pydantic models are dumped by alias, leaving unset members out.
    """
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True, exclude_none=True)
    try:
        encoded = json.dumps(value).encode()
    except (TypeError, ValueError) as e:
        msg = f"Body is not JSON serializable: {e}"
        raise CouchError(msg, kind=ErrorKind.INVALID_INPUT, source=e) from e
    return set_body(encoded)


def set_body(content: bytes | str) -> Step:
    """Set the raw body of the request."""
    body = content.encode() if isinstance(content, str) else content

    def step(state: BuilderState, _: Context) -> BuilderState:
        return state.model_copy(update={"body": body})

    return step


def set_method(method: str) -> Step:
    """Set the HTTP method of the request."""
    verb = method.upper()

    def step(state: BuilderState, _: Context) -> BuilderState:
        return state.model_copy(update={"method": verb})

    return step


DEFAULT_STEPS: tuple[Step, ...] = (
    default_headers({"Accept": "application/json", "Content-Type": "application/json"}),
    set_auth,
    set_connection,
    set_cookie_jar,
    set_method("GET"),
)
"""Applied before every caller's steps. They may be overridden, but probably shouldn't be."""


def run_builder(steps: Iterable[Step], context: Context) -> Request:
    """Run the default steps and `steps` against `context`, then finalize."""
    state = BuilderState()
    for step in (*DEFAULT_STEPS, *steps):
        state = step(state, context)
    return state.finalize()
