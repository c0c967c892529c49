"""A client for the CouchDB HTTP API built on composable requests."""

from couch_dal.errors import CouchError, ErrorKind
from couch_dal.models import BasicCredentials, Context, Cookie, CouchParams
from couch_dal.request import Result, standard_request, structure_request

__all__ = [
    "BasicCredentials",
    "Context",
    "Cookie",
    "CouchError",
    "CouchParams",
    "ErrorKind",
    "Result",
    "standard_request",
    "structure_request",
]
