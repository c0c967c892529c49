"""Design document endpoints, including view queries."""

from collections.abc import Sequence

from couch_dal.builder import add_path, select_db, select_doc, set_json_body, set_method, set_query_param
from couch_dal.endpoints import doc
from couch_dal.models.contexts import Context
from couch_dal.models.datatypes import DesignDoc, DocMeta, DocRev, DocUpdate, JsonValue, ViewResult
from couch_dal.models.params import DocGetParams, DocPutParams, ViewParams
from couch_dal.request import Result, standard_request


def locate(name: str) -> doc.Location:
    """Steps addressing `_design/<name>` in the context's database."""
    return [select_db, add_path("_design"), select_doc(name)]


def meta(context: Context, name: str, rev: DocRev | None = None) -> Result[DocMeta]:
    """Get the current revision and size of a design document."""
    return doc.meta_at(locate(name), context, rev)


def get(
    context: Context,
    name: str,
    rev: DocRev | None = None,
    params: DocGetParams | None = None,
) -> Result[DesignDoc]:
    """Get a design document."""
    return doc.get_at(locate(name), context, rev, params, DesignDoc)


def put(
    context: Context,
    name: str,
    ddoc: DesignDoc,
    rev: DocRev | None = None,
    params: DocPutParams | None = None,
) -> Result[DocUpdate]:
    """Create or update a design document."""
    return doc.put_at(locate(name), context, ddoc, rev, params)


def delete(context: Context, name: str, rev: DocRev | None = None) -> Result[DocUpdate]:
    """Delete a design document."""
    return doc.delete_at(locate(name), context, rev)


def copy(context: Context, name: str, to_name: str, rev: DocRev | None = None) -> Result[DocUpdate]:
    """Copy a design document to `_design/<to_name>`."""
    return doc.copy_at(locate(name), context, f"_design/{to_name}", rev)


def info(context: Context, name: str) -> Result[dict[str, JsonValue]]:
    """Get index information for a design document."""
    return standard_request([*locate(name), add_path("_info")], context, dict[str, JsonValue])


def all_docs(
    context: Context,
    name: str,
    view: str,
    params: ViewParams | None = None,
) -> Result[ViewResult]:
    """Query a view."""
    query = (params or ViewParams()).query_pairs()
    return standard_request(
        [*locate(name), add_path("_view"), select_doc(view), set_query_param(query)],
        context,
        ViewResult,
    )


def some_docs(
    context: Context,
    name: str,
    view: str,
    keys: Sequence[JsonValue],
    params: ViewParams | None = None,
) -> Result[ViewResult]:
    """Query a view for the given keys."""
    query = (params or ViewParams()).query_pairs()
    return standard_request(
        [
            *locate(name),
            add_path("_view"),
            select_doc(view),
            set_method("POST"),
            set_query_param(query),
            set_json_body({"keys": list(keys)}),
        ],
        context,
        ViewResult,
    )
