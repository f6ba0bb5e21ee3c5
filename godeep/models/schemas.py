from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


ChatMode = Literal["wander-mode", "deep-research-mode"]


# --- Requests ---


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    chat_id: str = Field(min_length=1)
    query: str = Field(min_length=1)
    mode: ChatMode = "wander-mode"
    user_id: str | None = None
    history: list[ChatMessage] = Field(default_factory=list)


# --- Responses ---


class DocumentResponse(BaseModel):
    id: str
    title: str
    content: str
    kind: str
    user_id: str | None
    created_at: datetime


class ModelInfo(BaseModel):
    id: str
    name: str
    description: str


class ModelsResponse(BaseModel):
    models: list[ModelInfo]


# --- Model output contracts ---


class ReasoningOutput(BaseModel):
    reasoning: str = ""
    answer: str
