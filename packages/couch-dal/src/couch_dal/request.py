"""Request orchestration: builder, transport and parser glued together.

Endpoints are defined declaratively as a list of builder steps plus a
response parser. The cookie jar returned by the server is compared with the
one in the context; when they differ (e.g. a renewed `AuthSession` cookie) the
result carries a new context the caller should use from then on.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from couch_dal.builder import Step, run_builder
from couch_dal.models.contexts import Context
from couch_dal.models.datatypes import RawResponse
from couch_dal.parser import ResponseParser, standard_parse
from couch_dal.transport import raw_json_request

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Result[T]:
    """A parsed value, with the context to use next if the session changed."""

    value: T
    context: Context | None = None

    def next_context(self, current: Context) -> Context:
        """The context to use for the following request."""
        return current if self.context is None else self.context


def structure_request[T](
    steps: Iterable[Step],
    parser: ResponseParser[T],
    context: Context,
) -> Result[T]:
    """Build a request from `steps`, perform it and parse the response.

    Transport and body-level failures are raised before `parser` runs.
    """
    request = run_builder(steps, context)
    headers, status, cookies, value = raw_json_request(context.client, request)
    parsed = parser(RawResponse(headers=headers, status=status, value=value))
    if cookies == context.cookies:
        return Result(parsed)
    logger.info("Session cookies changed on %s %s", request.method, request.path)
    return Result(parsed, context.with_cookies(cookies))


def standard_request[T](
    steps: Iterable[Step],
    context: Context,
    type_: type[T] | Any = Any,
) -> Result[T]:
    """Make a request with the standard parser, reading the body as `type_`."""
    return structure_request(steps, standard_parse(type_), context)
