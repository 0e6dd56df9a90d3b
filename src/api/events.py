"""
リアルタイムイベント WebSocket エンドポイント
"""

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from src.config.logging import get_logger
from src.services.notifier import EventBroadcaster, get_broadcaster

logger = get_logger(__name__)
router = APIRouter(tags=["Events"])


@router.websocket("/ws/events")
async def stream_events(
    websocket: WebSocket,
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """購読中のイベントを {event, payload} 形式で送信し続ける"""
    await websocket.accept()
    subscription = broadcaster.subscribe()
    logger.info("Event subscriber connected")

    try:
        while True:
            event = await subscription.get()
            await websocket.send_json(event.to_message())
    except WebSocketDisconnect:
        logger.info("Event subscriber disconnected")
    finally:
        broadcaster.unsubscribe(subscription)
