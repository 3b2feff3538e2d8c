"""
Server-sent events stream of artifact status changes for the calling owner.
"""

import asyncio
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from ...core.config import get_settings
from ...core.logger import logger
from ...dependencies.owner import get_owner_id
from ...dependencies.services import get_pipeline
from ...services.notification_hub import NotificationChannel
from ...services.pipeline import DocumentPipeline

router = APIRouter()

HEARTBEAT = ": heartbeat\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def event_stream(
    request: Request,
    pipeline: DocumentPipeline,
    owner_id: str,
    channel: NotificationChannel,
    heartbeat_seconds: float,
) -> AsyncIterator[str]:
    # waits on the event loop rather than in a threadpool worker
    channel.attach(asyncio.get_running_loop())
    try:
        while not channel.closed:
            if await request.is_disconnected():
                break
            event = await channel.read_async(heartbeat_seconds)
            if event is None:
                if channel.closed:
                    break
                yield HEARTBEAT
                continue
            yield event.to_sse()
    finally:
        pipeline.unsubscribe(owner_id, channel)


@router.get("")
async def stream_events(
    request: Request,
    owner_id: str = Depends(get_owner_id),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    try:
        channel = pipeline.subscribe(owner_id)
    except RuntimeError as e:
        logger.warning(f"Rejected event stream for owner {owner_id}: {str(e)}")
        raise HTTPException(status_code=503, detail="Notifications are not available")

    return StreamingResponse(
        event_stream(
            request,
            pipeline,
            owner_id,
            channel,
            get_settings().SSE_HEARTBEAT_SECONDS,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
