from __future__ import annotations

import json as _json

from fastapi import APIRouter, HTTPException
from sse_starlette.sse import EventSourceResponse

from godeep.models.events import ProgressEvent, ProgressStatus
from godeep.services import logger as log_service
from godeep.services.progress import get_progress_registry

router = APIRouter(prefix="/api/research-progress", tags=["progress"])


def _progress_sse(event: ProgressEvent) -> dict[str, str]:
    return {"event": "progress", "data": _json.dumps(event.to_dict())}


@router.get("")
async def research_progress(chat_id: str | None = None):
    """Stream progress events for the research run of one chat."""
    if not chat_id:
        raise HTTPException(status_code=400, detail="Chat ID is required")

    channel = get_progress_registry().subscribe(chat_id)
    events = channel.stream()

    async def event_generator():
        try:
            yield _progress_sse(
                ProgressEvent(
                    chat_id=chat_id,
                    current_step=0,
                    total_steps=0,
                    status=ProgressStatus.STARTING,
                    message="Waiting for research to begin...",
                )
            )
            async for event in events:
                yield _progress_sse(event)
        finally:
            await events.aclose()
            log_service.log_event(
                event_type="progress_stream_closed",
                message="Progress stream closed",
                chat_id=chat_id,
            )

    return EventSourceResponse(event_generator())
