"""
Pytest configuration and shared fixtures for the couch-dal test suite.

The network is replaced by `httpx.MockTransport` backed by `FakeCouch`, a
small in-memory imitation of the CouchDB endpoints the library talks to.
"""

import base64
import hashlib
import json
import uuid
from collections.abc import Callable, Iterator
from urllib.parse import parse_qsl, unquote

import httpx
import pytest

from couch_dal import Context

TEST_DB = "test-db"

type Handler = Callable[[httpx.Request], httpx.Response]


def _json(status: int, body: object, headers: dict[str, str] | None = None) -> httpx.Response:
    return httpx.Response(status, json=body, headers=headers)


def _not_found(reason: str = "missing") -> httpx.Response:
    return _json(404, {"error": "not_found", "reason": reason})


def _conflict() -> httpx.Response:
    return _json(409, {"error": "conflict", "reason": "Document update conflict."})


class FakeCouch:
    """In-memory stand-in for a CouchDB server."""

    def __init__(self, user: str = "admin", password: str = "secret") -> None:
        self.user = user
        self.password = password
        self.databases: dict[str, dict[str, dict[str, object]]] = {}
        self.sessions: dict[str, str] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        raw_path, _, raw_query = request.url.raw_path.decode().partition("?")
        parts = [unquote(p) for p in raw_path.split("/") if p]
        query = dict(parse_qsl(raw_query, keep_blank_values=True))

        match parts:
            case []:
                return _json(200, {"couchdb": "Welcome", "version": "3.3.3"})
            case ["_all_dbs"]:
                return _json(200, sorted(self.databases))
            case ["_uuids"]:
                count = int(query.get("count", "1"))
                return _json(200, {"uuids": [uuid.uuid4().hex for _ in range(count)]})
            case ["_session"]:
                return self._session(request)
            case [db]:
                return self._database(request, db)
            case [db, "_all_docs"]:
                return self._all_docs(request, db, query)
            case [db, "_design", name, "_info"]:
                return self._with_db(db, lambda docs: self._design_info(docs, name))
            case [db, "_design", name, "_view", view]:
                return self._with_db(db, lambda docs: self._view(request, docs, name, view))
            case [db, "_design", name]:
                return self._document(request, db, f"_design/{name}", query)
            case [db, doc_id]:
                return self._document(request, db, doc_id, query)
        return _not_found()

    # Sessions

    def _session(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            body = json.loads(request.content)
            if body.get("name") != self.user or body.get("password") != self.password:
                return _json(401, {"error": "unauthorized", "reason": "Name or password is incorrect."})
            token = uuid.uuid4().hex
            self.sessions[token] = self.user
            cookie = f"AuthSession={token}; Version=1; Path=/; HttpOnly"
            return _json(200, {"ok": True, "name": self.user, "roles": []}, {"Set-Cookie": cookie})
        if request.method == "DELETE":
            expired = "AuthSession=; Version=1; Path=/; HttpOnly; Max-Age=0"
            return _json(200, {"ok": True}, {"Set-Cookie": expired})
        return _json(200, {"ok": True, "userCtx": {"name": self._user_of(request), "roles": []}})

    def _user_of(self, request: httpx.Request) -> str | None:
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Basic "):
            user, _, password = base64.b64decode(auth[6:]).decode().partition(":")
            return user if (user, password) == (self.user, self.password) else None
        for part in request.headers.get("Cookie", "").split(";"):
            name, _, value = part.strip().partition("=")
            if name == "AuthSession":
                return self.sessions.get(value)
        return None

    # Databases

    def _with_db(
        self,
        db: str,
        action: Callable[[dict[str, dict[str, object]]], httpx.Response],
    ) -> httpx.Response:
        if db not in self.databases:
            return _not_found("Database does not exist.")
        return action(self.databases[db])

    def _database(self, request: httpx.Request, db: str) -> httpx.Response:
        if request.method == "PUT":
            if db in self.databases:
                return _json(
                    412,
                    {"error": "file_exists", "reason": "The database could not be created, the file already exists."},
                )
            self.databases[db] = {}
            return _json(201, {"ok": True})
        if db not in self.databases:
            if request.method == "HEAD":
                return httpx.Response(404)
            return _not_found("Database does not exist.")
        docs = self.databases[db]
        match request.method:
            case "HEAD":
                return httpx.Response(200)
            case "GET":
                live = [d for d in docs.values() if not d.get("_deleted")]
                return _json(200, {"db_name": db, "doc_count": len(live)})
            case "DELETE":
                del self.databases[db]
                return _json(200, {"ok": True})
            case "POST":
                body = json.loads(request.content)
                doc_id = body.get("_id") or uuid.uuid4().hex
                if "batch" in request.url.params:
                    self._store(docs, doc_id, body)
                    return _json(202, {"ok": True, "id": doc_id})
                if doc_id in docs and not docs[doc_id].get("_deleted"):
                    return _conflict()
                rev = self._store(docs, doc_id, body)
                return _json(201, {"ok": True, "id": doc_id, "rev": rev})
        return _json(405, {"error": "method_not_allowed", "reason": "Only DELETE,GET,HEAD,POST,PUT allowed"})

    def _all_docs(self, request: httpx.Request, db: str, query: dict[str, str]) -> httpx.Response:
        if db not in self.databases:
            return _not_found("Database does not exist.")
        docs = self.databases[db]
        include_docs = query.get("include_docs") == "true"
        if request.method == "POST":
            ids = json.loads(request.content)["keys"]
        else:
            ids = sorted(k for k, d in docs.items() if not d.get("_deleted"))
        rows: list[dict[str, object]] = []
        for doc_id in ids:
            doc = docs.get(doc_id)
            if doc is None or doc.get("_deleted"):
                rows.append({"key": doc_id, "error": "not_found"})
                continue
            row: dict[str, object] = {"id": doc_id, "key": doc_id, "value": {"rev": doc["_rev"]}}
            if include_docs:
                row["doc"] = doc
            rows.append(row)
        if "limit" in query:
            rows = rows[: int(query["limit"])]
        return _json(200, {"total_rows": len(docs), "offset": 0, "rows": rows})

    def _design_info(self, docs: dict[str, dict[str, object]], name: str) -> httpx.Response:
        if f"_design/{name}" not in docs:
            return _not_found()
        return _json(200, {"name": name, "view_index": {"language": "javascript", "updater_running": False}})

    def _view(
        self,
        request: httpx.Request,
        docs: dict[str, dict[str, object]],
        name: str,
        view: str,
    ) -> httpx.Response:
        ddoc = docs.get(f"_design/{name}")
        if ddoc is None or view not in ddoc.get("views", {}):
            return _not_found("missing_named_view")
        # Views are not evaluated: every document emits (id, title).
        rows = [
            {"id": doc_id, "key": doc_id, "value": doc.get("title")}
            for doc_id, doc in sorted(docs.items())
            if not doc_id.startswith("_design/") and not doc.get("_deleted")
        ]
        if request.method == "POST":
            keys = json.loads(request.content)["keys"]
            rows = [row for row in rows if row["key"] in keys]
        return _json(200, {"total_rows": len(rows), "offset": 0, "rows": rows})

    # Documents

    @staticmethod
    def _store(docs: dict[str, dict[str, object]], doc_id: str, body: dict[str, object]) -> str:
        current = docs.get(doc_id)
        generation = int(str(current["_rev"]).split("-")[0]) + 1 if current else 1
        digest = hashlib.md5(json.dumps(body, sort_keys=True).encode()).hexdigest()  # noqa: S324
        rev = f"{generation}-{digest}"
        docs[doc_id] = {**body, "_id": doc_id, "_rev": rev}
        return rev

    def _document(
        self,
        request: httpx.Request,
        db: str,
        doc_id: str,
        query: dict[str, str],
    ) -> httpx.Response:
        if db not in self.databases:
            return _not_found("Database does not exist.")
        docs = self.databases[db]
        current = docs.get(doc_id)
        live = current is not None and not current.get("_deleted")
        rev = query.get("rev") or request.headers.get("If-Match")

        match request.method:
            case "GET" | "HEAD":
                if not live or (rev is not None and rev != current["_rev"]):
                    if request.method == "HEAD":
                        return httpx.Response(404)
                    return _not_found("deleted" if current is not None else "missing")
                body = json.dumps(current).encode()
                if request.method == "HEAD":
                    headers = {"ETag": f'"{current["_rev"]}"', "Content-Length": str(len(body))}
                    return httpx.Response(200, headers=headers)
                return httpx.Response(200, content=body, headers={"ETag": f'"{current["_rev"]}"'})
            case "PUT":
                body = json.loads(request.content)
                rev = rev or body.get("_rev")
                if live and rev != current["_rev"]:
                    return _conflict()
                if not live and rev is not None and current is None:
                    return _conflict()
                new_rev = self._store(docs, doc_id, body)
                return _json(201, {"ok": True, "id": doc_id, "rev": new_rev})
            case "DELETE":
                if not live:
                    return _not_found("deleted" if current is not None else "missing")
                if rev != current["_rev"]:
                    return _conflict()
                new_rev = self._store(docs, doc_id, {"_deleted": True})
                return _json(200, {"ok": True, "id": doc_id, "rev": new_rev})
            case "COPY":
                if not live or (rev is not None and rev != current["_rev"]):
                    return _not_found()
                destination = request.headers["Destination"]
                target = docs.get(destination)
                if target is not None and not target.get("_deleted"):
                    return _conflict()
                body = {k: v for k, v in current.items() if k not in ("_id", "_rev")}
                new_rev = self._store(docs, destination, body)
                return _json(201, {"ok": True, "id": destination, "rev": new_rev})
        return _json(405, {"error": "method_not_allowed", "reason": "Only DELETE,GET,HEAD,PUT,COPY allowed"})


@pytest.fixture
def couch() -> FakeCouch:
    """Provide an empty fake server."""
    return FakeCouch()


@pytest.fixture
def make_context() -> Iterator[Callable[..., Context]]:
    """Build contexts whose client is served by an arbitrary handler."""
    contexts: list[Context] = []

    def factory(handler: Handler, **fields: object) -> Context:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        context = Context.model_validate({"client": client, **fields})
        contexts.append(context)
        return context

    yield factory
    for context in contexts:
        context.close()


@pytest.fixture
def context(couch: FakeCouch, make_context: Callable[..., Context]) -> Context:
    """Provide a context on the fake server with `TEST_DB` selected but not created."""
    return make_context(couch, database=TEST_DB)


@pytest.fixture
def db_context(couch: FakeCouch, context: Context) -> Context:
    """Provide a context whose database exists."""
    couch.databases[TEST_DB] = {}
    return context
