"""Document endpoints.

Each public function addresses a document by id within the context's
database. The `*_at` variants take the steps that locate the document instead,
so design documents (`_design/<name>`) share the same request shapes.
"""

from collections.abc import Sequence
from typing import Any

from couch_dal.builder import (
    Step,
    add_headers,
    add_rev,
    select_db,
    select_doc,
    set_json_body,
    set_method,
    set_query_param,
)
from couch_dal.models.contexts import Context
from couch_dal.models.datatypes import DocId, DocMeta, DocRev, DocUpdate, JsonValue, RawResponse
from couch_dal.models.params import DocGetParams, DocPutParams
from couch_dal.parser import check_status, get_header, get_rev_header
from couch_dal.request import Result, standard_request, structure_request

type Location = Sequence[Step]


def locate(doc_id: DocId) -> Location:
    """Steps addressing a document in the context's database."""
    return [select_db, select_doc(doc_id)]


def _rev(rev: DocRev | None) -> list[Step]:
    # Sent as the ETag header and as the `rev` query parameter.
    if rev is None:
        return []
    return [add_rev(rev), set_query_param({"rev": rev})]


def _parse_meta(response: RawResponse) -> DocMeta:
    _ = check_status(response)
    return DocMeta(rev=get_rev_header(response), size=get_header(response, "Content-Length", int))


def meta_at(location: Location, context: Context, rev: DocRev | None = None) -> Result[DocMeta]:
    return structure_request([*location, set_method("HEAD"), *_rev(rev)], _parse_meta, context)


def get_at(
    location: Location,
    context: Context,
    rev: DocRev | None = None,
    params: DocGetParams | None = None,
    type_: Any = dict[str, JsonValue],
) -> Result[Any]:
    query = (params or DocGetParams()).query_pairs()
    return standard_request([*location, set_query_param(query), *_rev(rev)], context, type_)


def put_at(
    location: Location,
    context: Context,
    doc: object,
    rev: DocRev | None = None,
    params: DocPutParams | None = None,
) -> Result[DocUpdate]:
    query = (params or DocPutParams()).query_pairs()
    steps = [*location, set_method("PUT"), set_query_param(query), *_rev(rev), set_json_body(doc)]
    return standard_request(steps, context, DocUpdate)


def delete_at(location: Location, context: Context, rev: DocRev | None = None) -> Result[DocUpdate]:
    return standard_request([*location, set_method("DELETE"), *_rev(rev)], context, DocUpdate)


def copy_at(
    location: Location,
    context: Context,
    destination: str,
    rev: DocRev | None = None,
) -> Result[DocUpdate]:
    steps = [*location, set_method("COPY"), add_headers({"Destination": destination}), *_rev(rev)]
    return standard_request(steps, context, DocUpdate)


def meta(context: Context, doc_id: DocId, rev: DocRev | None = None) -> Result[DocMeta]:
    """Get the current revision and size of a document without fetching it."""
    return meta_at(locate(doc_id), context, rev)


def get(
    context: Context,
    doc_id: DocId,
    rev: DocRev | None = None,
    params: DocGetParams | None = None,
    type_: Any = dict[str, JsonValue],
) -> Result[Any]:
    """Get a document, optionally at a given revision, validated as `type_`."""
    return get_at(locate(doc_id), context, rev, params, type_)


def put(
    context: Context,
    doc_id: DocId,
    doc: object,
    rev: DocRev | None = None,
    params: DocPutParams | None = None,
) -> Result[DocUpdate]:
    """Create or update a document.

    Updating requires the current revision; without it the server answers
    with a conflict.
    """
    return put_at(locate(doc_id), context, doc, rev, params)


def delete(context: Context, doc_id: DocId, rev: DocRev | None = None) -> Result[DocUpdate]:
    """Delete a document. Fails with `CONFLICT` unless `rev` is current."""
    return delete_at(locate(doc_id), context, rev)


def copy(
    context: Context,
    doc_id: DocId,
    to_id: DocId,
    rev: DocRev | None = None,
) -> Result[DocUpdate]:
    """Copy a document to `to_id`, which must not exist yet."""
    return copy_at(locate(doc_id), context, to_id, rev)
