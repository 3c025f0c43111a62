"""
LoadMock Middleware Pipeline

Runs a handler chain with explicit continuation control:

- each handler is called as handler(req, res, next)
- calling next() lets the following handler run once this one returns
- returning without calling next() ends the chain
- running off the end of the chain with nothing written yields a 404
- an exception ends the chain, discards buffered output and yields a 500
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence

from ..errors import HandlerFailure
from .router import HandlerFunc


logger = logging.getLogger("loadmock.pipeline")

DEFAULT_NOT_FOUND_BODY = '{"error": "No route matches the request"}'
DEFAULT_ERROR_BODY = '{"error": "Internal server error"}'


class Outcome(Enum):
    """How a pipeline run ended."""

    COMPLETED = 'completed'
    NOT_FOUND = 'not_found'
    FAILED = 'failed'


@dataclass
class PipelineResult:
    """Outcome of one pipeline run, with the failure when there was one."""

    outcome: Outcome
    handlers_run: int = 0
    failure: Optional[HandlerFailure] = None


class _Continuation:
    """The next() callable handed to each handler."""

    __slots__ = ('called',)

    def __init__(self):
        self.called = False

    def __call__(self) -> None:
        self.called = True


def not_found(res: Any, status: int = 404, body: str = DEFAULT_NOT_FOUND_BODY) -> None:
    """Write the default response for a request nothing handled."""
    res.reset()
    res.status(status).type('application/json').write(body.encode('utf-8'))


def internal_error(res: Any, status: int = 500, body: str = DEFAULT_ERROR_BODY) -> None:
    """Replace anything buffered with the default failure response."""
    res.reset()
    res.status(status).type('application/json').write(body.encode('utf-8'))


def execute(
    req: Any,
    res: Any,
    chain: Sequence[HandlerFunc],
    fallback_status: int = 404,
    fallback_body: str = DEFAULT_NOT_FOUND_BODY,
    error_status: int = 500,
    error_body: str = DEFAULT_ERROR_BODY
) -> PipelineResult:
    """
    Execute a handler chain against one request/response pair.

    Args:
        req: Request handed to every handler
        res: Response handed to every handler; left ready to commit
        chain: Handlers in execution order
        fallback_status: Status written when the chain runs out unhandled
        fallback_body: Body written when the chain runs out unhandled
        error_status: Status written when a handler raises
        error_body: Body written when a handler raises

    Returns:
        PipelineResult describing how the chain ended
    """
    handlers_run = 0

    for handler in chain:
        proceed = _Continuation()
        handlers_run += 1

        try:
            handler(req, res, proceed)
        except Exception as e:
            failure = HandlerFailure(req.method, req.path, e)
            logger.error(str(failure), exc_info=e)
            internal_error(res, error_status, error_body)
            return PipelineResult(Outcome.FAILED, handlers_run, failure)

        if not proceed.called:
            return PipelineResult(Outcome.COMPLETED, handlers_run)

    if res.written:
        return PipelineResult(Outcome.COMPLETED, handlers_run)

    not_found(res, fallback_status, fallback_body)
    return PipelineResult(Outcome.NOT_FOUND, handlers_run)
