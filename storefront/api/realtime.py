import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ..services.realtime import ChangeFeed, Subscription
from .deps import get_change_feed

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Realtime"])


async def _forward(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        event = await subscription.get()
        await websocket.send_json(event.model_dump(by_alias=True, mode="json"))


async def _watch_disconnect(websocket: WebSocket) -> None:
    # Clients never send anything meaningful; reading only surfaces the disconnect
    while True:
        await websocket.receive_text()


@router.websocket("/ws/changes")
async def change_stream(websocket: WebSocket, feed: ChangeFeed = Depends(get_change_feed)):
    """
    Push change notices to a client

    The subscriber is identified by the X-User-Id header or the userId query
    parameter; `tables` (comma separated) narrows the feed. Each message is a
    ChangeEvent; clients re-fetch whatever the event names.
    """
    user_id = websocket.headers.get("x-user-id") or websocket.query_params.get("userId")
    tables = [t.strip() for t in websocket.query_params.get("tables", "").split(",") if t.strip()]

    subscription = feed.subscribe(user_id, tables)
    await websocket.accept()
    tasks = [
        asyncio.create_task(_forward(websocket, subscription)),
        asyncio.create_task(_watch_disconnect(websocket)),
    ]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            error = task.exception()
            if error and not isinstance(error, WebSocketDisconnect):
                logger.error(f"Change stream for user {user_id} failed: {error}")
    finally:
        feed.unsubscribe(subscription)
        logger.info(f"Change feed subscriber for user {user_id} disconnected")
