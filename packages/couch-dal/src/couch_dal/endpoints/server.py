"""Server-level endpoints: info, database listing, UUIDs and cookie sessions."""

from couch_dal.builder import add_path, set_json_body, set_method, set_query_param
from couch_dal.models.contexts import Context
from couch_dal.models.datatypes import JsonValue, RawResponse
from couch_dal.parser import check_status, expect_ok, get_key
from couch_dal.request import Result, standard_request, structure_request


def info(context: Context) -> Result[dict[str, JsonValue]]:
    """Get the server's welcome banner and version."""
    return standard_request([], context, dict[str, JsonValue])


def all_dbs(context: Context) -> Result[list[str]]:
    """List every database on the server."""
    return standard_request([add_path("_all_dbs")], context, list[str])


def uuids(context: Context, count: int = 1) -> Result[list[str]]:
    """Get `count` server-generated UUIDs."""

    def parse(response: RawResponse) -> list[str]:
        return get_key(check_status(response), "uuids", list[str])

    return structure_request(
        [add_path("_uuids"), set_query_param({"count": str(count)})],
        parse,
        context,
    )


def create_session(context: Context, user: str, password: str) -> Result[bool]:
    """Log in with cookie authentication.

    On success the result carries a context holding the `AuthSession` cookie.
    """
    return structure_request(
        [
            add_path("_session"),
            set_method("POST"),
            set_json_body({"name": user, "password": password}),
        ],
        expect_ok,
        context,
    )


def get_session(context: Context) -> Result[dict[str, JsonValue]]:
    """Get information about the current session."""
    return standard_request([add_path("_session")], context, dict[str, JsonValue])


def delete_session(context: Context) -> Result[bool]:
    """Log out, expiring the session cookie."""
    return structure_request([add_path("_session"), set_method("DELETE")], expect_ok, context)
