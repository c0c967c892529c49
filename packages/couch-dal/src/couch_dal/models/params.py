"""Parameter types for connections and queries.

Params define how requests are made (where to connect, which query options to
send), while contexts carry the runtime state of a session (cookies, client).
"""

import json
import os
from typing import ClassVar, Self

from pydantic import BaseModel, Field

from couch_dal.models.datatypes import JsonValue


class BasicCredentials(BaseModel, frozen=True):
    """Credentials for HTTP Basic authentication."""

    user: str
    password: str = Field(repr=False)

    @classmethod
    def from_env(cls) -> Self | None:
        """Read `COUCHDB_USER` and `COUCHDB_PASSWORD`, if a user is set."""
        user = os.environ.get("COUCHDB_USER")
        if not user:
            return None
        return cls(user=user, password=os.environ.get("COUCHDB_PASSWORD", ""))


class CouchParams(BaseModel, frozen=True):
    """Connection parameters for a CouchDB server."""

    host: str = "localhost"
    """Server host name."""

    port: int = 5984
    """Server port."""

    database: str | None = None
    """Database selected by `select_db`; unset for server-level sessions."""

    secure: bool = False
    """Use HTTPS instead of HTTP."""

    timeout: float = Field(default=30.0, gt=0)
    """Connect/read timeout in seconds, applied by the HTTP transport."""

    @classmethod
    def from_env(cls) -> Self:
        """Build params from `COUCHDB_*` environment variables.

        Unset variables keep their defaults; values are validated by pydantic,
        so `COUCHDB_PORT=abc` fails here rather than at request time.
        """
        env = {
            "host": os.environ.get("COUCHDB_HOST"),
            "port": os.environ.get("COUCHDB_PORT"),
            "database": os.environ.get("COUCHDB_DATABASE"),
            "secure": os.environ.get("COUCHDB_SECURE"),
            "timeout": os.environ.get("COUCHDB_TIMEOUT"),
        }
        return cls.model_validate({k: v for k, v in env.items() if v is not None})


class QueryParams(BaseModel, frozen=True):
    """Base for option sets rendered into query parameters.

    Unset (`None`) options are not sent. Booleans render as `true`/`false`,
    fields named in `json_fields` are JSON-encoded.
    """

    json_fields: ClassVar[frozenset[str]] = frozenset()

    def query_pairs(self) -> list[tuple[str, str | None]]:
        """Render the set options as query parameter pairs."""
        pairs: list[tuple[str, str | None]] = []
        for name, value in self.model_dump(exclude_none=True, by_alias=True).items():
            if name in self.json_fields:
                pairs.append((name, json.dumps(value, separators=(",", ":"))))
            elif isinstance(value, bool):
                pairs.append((name, "true" if value else "false"))
            else:
                pairs.append((name, str(value)))
        return pairs


class ViewParams(QueryParams, frozen=True):
    """Options for `_all_docs` and view queries."""

    json_fields: ClassVar[frozenset[str]] = frozenset({"key", "startkey", "endkey"})

    key: JsonValue = None
    startkey: JsonValue = None
    startkey_docid: str | None = None
    endkey: JsonValue = None
    endkey_docid: str | None = None
    limit: int | None = Field(default=None, ge=0)
    skip: int | None = Field(default=None, ge=0)
    descending: bool | None = None
    include_docs: bool | None = None
    inclusive_end: bool | None = None
    reduce: bool | None = None
    group: bool | None = None
    group_level: int | None = Field(default=None, ge=0)
    stale: str | None = None
    update_seq: bool | None = None


class DocGetParams(QueryParams, frozen=True):
    """Options for reading a single document."""

    attachments: bool | None = None
    conflicts: bool | None = None
    deleted_conflicts: bool | None = None
    latest: bool | None = None
    local_seq: bool | None = None
    meta: bool | None = None
    revs: bool | None = None
    revs_info: bool | None = None


class DocPutParams(QueryParams, frozen=True):
    """Options for writing a single document."""

    batch: str | None = None
    """Set to "ok" to let the server defer the write."""

    new_edits: bool | None = None
