from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from ..permissions import Capability
from ..sse import MEDIA_TYPE, STREAM_HEADERS
from .dependencies import SessionToken, authorize

router = APIRouter(prefix="/api/orders", tags=["Realtime"])


def _check_access(session_factory, token):
    db = session_factory()
    try:
        return authorize(db, token, Capability.orders)
    finally:
        db.close()


@router.get("/realtime")
async def order_stream(request: Request, token: SessionToken):
    # A short-lived session for the auth check; the stream itself holds none.
    await run_in_threadpool(_check_access, request.app.state.session_factory, token)
    relay = request.app.state.relay
    return StreamingResponse(
        relay.stream(request.is_disconnected),
        media_type=MEDIA_TYPE,
        headers=STREAM_HEADERS,
    )
