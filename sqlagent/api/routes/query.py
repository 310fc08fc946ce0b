"""
Query endpoint: POST / runs SQL and streams rows; POST /ping only connects.

Flow: Accept -> decode body -> check driver -> pool.get_or_create -> execute ->
encoder (CSV / JSON / LDJSON) streamed from a worker thread.

Pool and query calls block, so they run in a thread (asyncio.to_thread) to keep
the event loop free for other requests.
"""

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from sqlagent.api.deps import PoolDep
from sqlagent.core import errors
from sqlagent.core.drivers import DRIVERS
from sqlagent.core.pool import ping
from sqlagent.core.request_response import (
    RequestDecodeError,
    format_for,
    negotiate_mimetype,
    read_request,
)
from sqlagent.engines import ENCODERS, execute
from sqlagent.engines.streaming import prepend, stream_encoded
from sqlagent.schemas import ConnectRequest, Envelope, QueryRequest

_log = logging.getLogger(__name__)

router = APIRouter(tags=["query"])


def _error(status_code: int, detail: str) -> JSONResponse:
    """Standard envelope { success: false, message, data: [] } for errors."""
    body = Envelope(success=False, message=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@router.post("/", response_model=None)
async def run_query(request: Request, pool: PoolDep) -> Response:
    """
    Run ``sql`` against the database described by ``driver`` + ``connection``.

    The output format follows the Accept header: text/csv, application/json,
    application/x-ldjson (or application/json; boundary=NL).
    """
    mimetype = negotiate_mimetype(request.headers.get("accept"))
    if mimetype is None:
        return _error(406, "Not Acceptable")

    try:
        payload = await read_request(request, QueryRequest)
    except RequestDecodeError as e:
        return _error(422, str(e))

    if payload.driver not in DRIVERS:
        return _error(422, f"unknown driver: {payload.driver}")

    try:
        engine = await asyncio.to_thread(
            pool.get_or_create, payload.driver, payload.connection
        )
    except errors.ConnectionError as e:
        return _error(503, f"problem connecting to database: {e}")

    try:
        iterator = await asyncio.to_thread(execute, engine, payload.sql, payload.params)
    except (errors.ConnectionError, errors.QueryError) as e:
        return _error(503, f"error executing query: {e}")

    chunks = stream_encoded(ENCODERS[format_for(mimetype)], iterator)
    try:
        first = await anext(chunks)
    except StopAsyncIteration:
        first = b""
    except errors.SQLAgentError as e:
        _log.warning("encoding failed before any output: %s", e)
        return _error(500, f"error encoding data: {e}")

    return StreamingResponse(prepend(first, chunks), media_type=mimetype)


@router.post("/ping", response_model=None)
async def ping_database(request: Request, pool: PoolDep) -> JSONResponse:
    """Connectivity-only mode: open (or reuse) the pooled handle and ping it."""
    try:
        payload = await read_request(request, ConnectRequest)
    except RequestDecodeError as e:
        return _error(422, str(e))

    if payload.driver not in DRIVERS:
        return _error(422, f"unknown driver: {payload.driver}")

    try:
        engine = await asyncio.to_thread(
            pool.get_or_create, payload.driver, payload.connection
        )
        await asyncio.to_thread(ping, engine)
    except errors.ConnectionError as e:
        return _error(503, f"problem connecting to database: {e}")

    return JSONResponse(content=Envelope(success=True).model_dump())
