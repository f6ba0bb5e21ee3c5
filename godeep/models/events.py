from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    TEXT_DELTA = "text-delta"
    RESEARCH_STARTED = "research-started"
    ARTIFACT = "artifact"
    FINISH = "finish"
    ERROR = "error"


class ProgressStatus(str, Enum):
    STARTING = "starting"
    GENERATING_QUERIES = "generating-queries"
    PROCESSING_QUERY = "processing-query"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ProgressStatus.COMPLETE, ProgressStatus.ERROR)


@dataclass
class SSEEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    def format(self) -> str:
        return f"event: {self.event.value}\ndata: {json.dumps(self.data)}\n\n"


@dataclass(frozen=True)
class ProgressEvent:
    chat_id: str
    current_step: int
    total_steps: int
    status: ProgressStatus
    message: str

    def to_dict(self) -> dict[str, Any]:
        """Wire shape, camelCase keys."""
        return {
            "chatId": self.chat_id,
            "currentStep": self.current_step,
            "totalSteps": self.total_steps,
            "status": self.status.value,
            "message": self.message,
        }
