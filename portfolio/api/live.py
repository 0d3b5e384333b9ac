"""WebSocket streams of live album and photo snapshots."""

import asyncio
import json
import logging
from typing import Awaitable, List

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from portfolio.services.errors import InputValidationError, RemoteStoreError
from portfolio.services.sync_store import Subscription

logger = logging.getLogger(__name__)

router = APIRouter()


async def _receive_until_disconnect(ws: WebSocket) -> None:
    """Answer pings until the client goes away."""
    try:
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                await ws.send_json({"type": "error", "message": "Invalid JSON"})
                continue
            if msg.get("type") == "ping":
                await ws.send_json({"type": "pong"})
            else:
                await ws.send_json({"type": "error", "message": f"Unknown type: {msg.get('type', '')}"})
    except WebSocketDisconnect:
        return


async def _forward_albums(ws: WebSocket, subscription: Subscription) -> None:
    async for albums in subscription:
        await ws.send_json({"type": "albums", "data": [album.to_view() for album in albums]})


async def _forward_album(ws: WebSocket, subscription: Subscription, album_id: str) -> None:
    async for album in subscription:
        if album is None:
            await ws.send_json({"type": "album_not_found", "album_id": album_id})
            return
        await ws.send_json({"type": "album", "data": album.to_view()})


async def _forward_photos(ws: WebSocket, subscription: Subscription) -> None:
    async for photos in subscription:
        await ws.send_json({"type": "photos", "data": [photo.to_view() for photo in photos]})


async def _serve(ws: WebSocket, streams: List[Awaitable[None]]) -> None:
    """Run the streams next to the receive loop; stop everything once one of them ends."""
    receiver = asyncio.create_task(_receive_until_disconnect(ws))
    tasks = [receiver, *(asyncio.create_task(stream) for stream in streams)]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        # Children go away on every exit path, including cancellation of this handler
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.shield(asyncio.gather(*tasks, return_exceptions=True))

    if receiver in done:
        return

    for task in done:
        if task.cancelled():
            continue
        error = task.exception()
        if isinstance(error, RemoteStoreError):
            await ws.send_json({"type": "error", "message": str(error)})
        elif isinstance(error, WebSocketDisconnect):
            return
        elif error is not None:
            logger.error(f"[Live] Stream failed: {error}", exc_info=error)
    await ws.close()


async def _accept(ws: WebSocket):
    context = getattr(ws.app.state, "context", None)
    if context is None:
        await ws.close(code=1013, reason="Document store unavailable")
        return None
    await ws.accept()
    return context


@router.websocket("/ws/albums")
async def albums_stream(ws: WebSocket):
    context = await _accept(ws)
    if context is None:
        return

    try:
        async with context.sync_store.subscribe_albums() as albums:
            await _serve(ws, [_forward_albums(ws, albums)])
    except RemoteStoreError as e:
        context.notifications.error(f"Error fetching albums: {e}")
        await ws.send_json({"type": "error", "message": str(e)})
        await ws.close()


@router.websocket("/ws/albums/{album_id}")
async def album_detail_stream(ws: WebSocket, album_id: str):
    context = await _accept(ws)
    if context is None:
        return

    store = context.sync_store
    try:
        async with store.subscribe_album(album_id) as album, store.subscribe_photos_by_album(album_id) as photos:
            await _serve(ws, [_forward_album(ws, album, album_id), _forward_photos(ws, photos)])
    except (InputValidationError, RemoteStoreError) as e:
        context.notifications.error(f"Error fetching album {album_id}: {e}")
        await ws.send_json({"type": "error", "message": str(e)})
        await ws.close()
