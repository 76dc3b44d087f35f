import asyncio
import hmac
import json
import logging
from typing import Any, AsyncIterator, Callable, Dict, Optional

from fastapi import Header, HTTPException
from fastapi.responses import JSONResponse

from config import settings
from services.live_store import CollectionQuery, Snapshot, get_live_store

logger = logging.getLogger(__name__)

STORE_UNAVAILABLE_MESSAGE = "Database not available."


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def store_unavailable_response(
    exc: Exception, message: str = STORE_UNAVAILABLE_MESSAGE, **extra: Any
) -> JSONResponse:
    logger.error(f"Store unavailable: {exc}")
    return error_response(503, message, **extra)


def require_admin_capability(x_admin_token: Optional[str] = Header(None)) -> None:
    """Gate for admin actions.

    The admin surface is open unless ADMIN_ACTIONS_OPEN is switched off, in which
    case the caller must present the configured X-Admin-Token.
    """
    if settings.ADMIN_ACTIONS_OPEN:
        return
    expected = settings.ADMIN_TOKEN
    if not expected or not hmac.compare_digest(x_admin_token or "", expected):
        raise HTTPException(status_code=403, detail="Admin capability required")


def _format_event(snapshot: Snapshot, serialize: Callable[[Any], Dict[str, Any]]) -> str:
    payload = {
        "status": snapshot.status,
        "data": [serialize(item) for item in snapshot.data],
        "error": snapshot.error,
    }
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def snapshot_event_stream(
    query: CollectionQuery,
    transform: Callable[[Dict[str, Any]], Any],
    serialize: Callable[[Any], Dict[str, Any]],
    max_events: Optional[int] = None,
    heartbeat_seconds: Optional[float] = None,
) -> AsyncIterator[str]:
    """Bridge a live subscription into a Server-Sent Events body.

    Snapshots arrive on the store's worker thread and are handed to the event
    loop through a queue. The subscription is cancelled when the client goes
    away or after `max_events` snapshots.
    """
    loop = asyncio.get_running_loop()
    queue: "asyncio.Queue[Snapshot]" = asyncio.Queue()
    heartbeat = heartbeat_seconds or settings.STREAM_HEARTBEAT_SECONDS

    def _on_snapshot(snapshot: Snapshot) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, snapshot)

    subscription = get_live_store().subscribe(query, _on_snapshot, transform)
    sent = 0
    try:
        while max_events is None or sent < max_events:
            try:
                snapshot = await asyncio.wait_for(queue.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield _format_event(snapshot, serialize)
            sent += 1
    finally:
        subscription.cancel()
