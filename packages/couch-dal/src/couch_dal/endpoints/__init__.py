"""Endpoint modules for the CouchDB HTTP API.

Each module groups thin callers that supply builder steps and a response
parser to `couch_dal.request`:
- server: server info, database listing, UUIDs, cookie sessions
- database: database lifecycle, bulk document reads
- doc: single documents
- design: design documents and view queries
"""

from couch_dal.endpoints import database, design, doc, server

__all__ = [
    "database",
    "design",
    "doc",
    "server",
]
