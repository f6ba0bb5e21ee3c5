from __future__ import annotations

from typing import Any

from godeep.models.events import EventType, SSEEvent


def text_delta(text: str) -> SSEEvent:
    return SSEEvent(event=EventType.TEXT_DELTA, data={"text": text})


def research_started(chat_id: str, query: str, max_sub_queries: int) -> SSEEvent:
    return SSEEvent(
        event=EventType.RESEARCH_STARTED,
        data={"chat_id": chat_id, "query": query, "max_sub_queries": max_sub_queries},
    )


def artifact(document: dict[str, Any]) -> SSEEvent:
    """Document metadata only; clients fetch the content from /api/documents/{id}."""
    return SSEEvent(
        event=EventType.ARTIFACT,
        data={
            "id": document["id"],
            "title": document["title"],
            "kind": document["kind"],
        },
    )


def finish(reason: str = "stop", **kwargs: Any) -> SSEEvent:
    return SSEEvent(event=EventType.FINISH, data={"reason": reason, **kwargs})


def error(message: str, recoverable: bool = False) -> SSEEvent:
    return SSEEvent(
        event=EventType.ERROR,
        data={"message": message, "recoverable": recoverable},
    )
