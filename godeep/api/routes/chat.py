from __future__ import annotations

import asyncio
import json as _json
from datetime import date

from fastapi import APIRouter, HTTPException
from sse_starlette.sse import EventSourceResponse

from godeep.agents.orchestrator import ResearchOrchestrator
from godeep.config import settings
from godeep.llm_client import client as llm_client
from godeep.models.events import SSEEvent
from godeep.models.research import ResearchOutcome, ResearchRequest
from godeep.models.schemas import ChatRequest
from godeep.services import logger as log_service
from godeep.services import streaming
from godeep.services.documents import Document, get_document_store
from godeep.services.progress import ProgressChannel, ProgressStateError, get_progress_registry
from godeep.services.prompt_store import render_prompt

router = APIRouter(prefix="/api/chat", tags=["chat"])

REPORT_READY_MESSAGE = (
    "I've created a detailed research report based on your query. "
    "You can view it in the artifacts panel."
)
APOLOGY_MESSAGE = "I'm sorry, something went wrong while answering. Please try again."

# Deep research runs outlive their HTTP stream; keep references until they finish.
_research_tasks: set[asyncio.Task] = set()


def _sse(event: SSEEvent) -> dict[str, str]:
    return {"event": event.event.value, "data": _json.dumps(event.data)}


async def _run_deep_research(
    request: ChatRequest,
    channel: ProgressChannel,
) -> tuple[ResearchOutcome, Document | None]:
    """Run the orchestrator and store its report as a document."""
    orchestrator = ResearchOrchestrator()
    outcome = await orchestrator.run(
        ResearchRequest(
            query=request.query,
            max_sub_queries=settings.deep_mode_max_sub_queries,
            chat_id=request.chat_id,
        ),
        progress=channel,
    )
    if outcome.error or outcome.report is None:
        return outcome, None

    document = await get_document_store().create(
        title=f"Research Report: {request.query[:50]}",
        content=outcome.report.text,
        kind="text",
        user_id=request.user_id,
    )
    log_service.log_event(
        event_type="document_created",
        message="Research report stored",
        chat_id=request.chat_id,
        document_id=document.id,
    )
    return outcome, document


async def _wander_events(request: ChatRequest):
    messages = [m.model_dump() for m in request.history]
    messages.append({"role": "user", "content": request.query})
    try:
        async for text in llm_client().stream_text(
            model=settings.chat_model,
            system=render_prompt("chat.wander_system", today_iso=date.today().isoformat()),
            messages=messages,
            caller="chat.wander",
        ):
            yield _sse(streaming.text_delta(text))
        yield _sse(streaming.finish())
    except Exception as e:
        log_service.log_event(
            event_type="stream_error",
            message="Unhandled error in wander stream",
            error=str(e),
            chat_id=request.chat_id,
        )
        yield _sse(streaming.error(APOLOGY_MESSAGE))


def _start_deep_research(request: ChatRequest, channel: ProgressChannel) -> asyncio.Task:
    """Start the run on a claimed channel; it continues if the client goes away."""
    log_service.log_event(
        event_type="research_started",
        message="Deep research started",
        chat_id=request.chat_id,
        query=request.query[:100],
    )
    task = asyncio.create_task(_run_deep_research(request, channel))
    _research_tasks.add(task)
    task.add_done_callback(_research_tasks.discard)
    return task


async def _deep_research_events(request: ChatRequest, task: asyncio.Task):
    yield _sse(streaming.research_started(request.chat_id, request.query, settings.deep_mode_max_sub_queries))
    try:
        # shield: a client disconnect cancels this stream, not the research run
        outcome, document = await asyncio.shield(task)
    except Exception as e:
        log_service.log_event(
            event_type="stream_error",
            message="Unhandled error in research stream",
            error=str(e),
            chat_id=request.chat_id,
        )
        yield _sse(streaming.error(APOLOGY_MESSAGE))
        return

    if document is None:
        yield _sse(streaming.error(outcome.report.text if outcome.report else APOLOGY_MESSAGE))
        return

    yield _sse(streaming.artifact(document.to_dict()))
    yield _sse(streaming.text_delta(REPORT_READY_MESSAGE))
    yield _sse(streaming.finish(document_id=document.id))


@router.post("")
async def chat(request: ChatRequest):
    """Answer a chat message as an SSE stream, in wander or deep research mode."""
    if request.mode == "deep-research-mode":
        try:
            channel = get_progress_registry().open(request.chat_id)
        except ProgressStateError as e:
            raise HTTPException(status_code=409, detail=str(e))
        task = _start_deep_research(request, channel)
        return EventSourceResponse(_deep_research_events(request, task))

    return EventSourceResponse(_wander_events(request))
