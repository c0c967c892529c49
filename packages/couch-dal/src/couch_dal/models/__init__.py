"""Models for contexts, parameters and data exchanged with the server."""

from couch_dal.models.contexts import Context
from couch_dal.models.datatypes import (
    Cookie,
    CookieJar,
    DesignDoc,
    DocId,
    DocMeta,
    DocRev,
    DocUpdate,
    Header,
    JsonValue,
    QueryParam,
    RawResponse,
    Request,
    ViewResult,
    ViewRow,
    ViewSpec,
)
from couch_dal.models.params import (
    BasicCredentials,
    CouchParams,
    DocGetParams,
    DocPutParams,
    QueryParams,
    ViewParams,
)

__all__ = [
    # Contexts (session state)
    "Context",
    # Params (configuration)
    "BasicCredentials",
    "CouchParams",
    "DocGetParams",
    "DocPutParams",
    "QueryParams",
    "ViewParams",
    # Data types
    "Cookie",
    "CookieJar",
    "DesignDoc",
    "DocId",
    "DocMeta",
    "DocRev",
    "DocUpdate",
    "Header",
    "JsonValue",
    "QueryParam",
    "RawResponse",
    "Request",
    "ViewResult",
    "ViewRow",
    "ViewSpec",
]
