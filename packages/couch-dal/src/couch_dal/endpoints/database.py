"""Database-level endpoints.

Every operation here works on the database selected in the context.
"""

from collections.abc import Sequence

from couch_dal.builder import add_path, select_db, set_json_body, set_method, set_query_param
from couch_dal.errors import ErrorKind, kind_for_status
from couch_dal.models.contexts import Context
from couch_dal.models.datatypes import DocId, DocUpdate, JsonValue, RawResponse, ViewResult
from couch_dal.models.params import ViewParams
from couch_dal.parser import check_status, expect_ok
from couch_dal.request import Result, standard_request, structure_request


def exists(context: Context) -> Result[bool]:
    """Check whether the database exists."""

    def parse(response: RawResponse) -> bool:
        if kind_for_status(response.status) is ErrorKind.NOT_FOUND:
            return False
        _ = check_status(response)
        return True

    return structure_request([select_db, set_method("HEAD")], parse, context)


def info(context: Context) -> Result[dict[str, JsonValue]]:
    """Get document counts, sizes and update sequence of the database."""
    return standard_request([select_db], context, dict[str, JsonValue])


def create(context: Context) -> Result[bool]:
    """Create the database. Fails with `ALREADY_EXISTS` if it exists."""
    return structure_request([select_db, set_method("PUT")], expect_ok, context)


def delete(context: Context) -> Result[bool]:
    """Delete the database and everything in it."""
    return structure_request([select_db, set_method("DELETE")], expect_ok, context)


def create_doc(context: Context, doc: object, batch: bool = False) -> Result[DocUpdate]:
    """Create a document with a server-generated id, unless the doc has an `_id`.

    With `batch`, the server acknowledges before writing and no revision is returned.
    """
    steps = [select_db, set_method("POST"), set_json_body(doc)]
    if batch:
        steps.append(set_query_param({"batch": "ok"}))
    return standard_request(steps, context, DocUpdate)


def all_docs(context: Context, params: ViewParams | None = None) -> Result[ViewResult]:
    """Query the `_all_docs` index."""
    query = (params or ViewParams()).query_pairs()
    return standard_request(
        [select_db, add_path("_all_docs"), set_query_param(query)],
        context,
        ViewResult,
    )


def some_docs(
    context: Context,
    ids: Sequence[DocId],
    params: ViewParams | None = None,
) -> Result[ViewResult]:
    """Query the `_all_docs` index for the given document ids."""
    query = (params or ViewParams()).query_pairs()
    return standard_request(
        [
            select_db,
            add_path("_all_docs"),
            set_method("POST"),
            set_query_param(query),
            set_json_body({"keys": list(ids)}),
        ],
        context,
        ViewResult,
    )
