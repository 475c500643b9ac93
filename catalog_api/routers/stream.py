# catalog_api/routers/stream.py
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.engine import Engine

from catalog_api.deps import get_engine
from catalog_api.stream.channel import ChannelHub, ListingChannel, StreamSettings, sse_frames

router = APIRouter(prefix="/api", tags=["stream"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def get_hub(request: Request) -> ChannelHub:
    return request.app.state.channel_hub


def get_stream_settings() -> StreamSettings:
    return StreamSettings.from_env()


@router.get("/stream/listings")
async def stream_listings(
    request: Request,
    engine: Engine = Depends(get_engine),
    hub: ChannelHub = Depends(get_hub),
    settings: StreamSettings = Depends(get_stream_settings),
):
    """Long-lived text/event-stream of connected, heartbeat and listing_updated events."""
    channel = ListingChannel(engine, hub, settings, is_disconnected=request.is_disconnected)
    return StreamingResponse(sse_frames(channel), media_type="text/event-stream", headers=SSE_HEADERS)
