"""OpenAI client factory with thin completion, web search and embedding helpers."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from godeep.config import settings
from godeep.services import logger as log_service


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class Completion:
    text: str
    usage: Usage = field(default_factory=Usage)


@dataclass
class WebSource:
    title: str
    url: str


@dataclass
class WebSearchResponse:
    text: str
    sources: list[WebSource] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)


def _chat_usage(usage: Any) -> Usage:
    return Usage(
        input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        output_tokens=getattr(usage, "completion_tokens", 0) or 0,
    )


def _response_usage(usage: Any) -> Usage:
    return Usage(
        input_tokens=getattr(usage, "input_tokens", 0) or 0,
        output_tokens=getattr(usage, "output_tokens", 0) or 0,
    )


def _log_call(model: str, caller: str, usage: Usage, t0: float, error: str | None = None) -> None:
    log_service.log_llm_call(
        model=model,
        caller=caller,
        input_tokens=usage.input_tokens,
        output_tokens=usage.output_tokens,
        duration_ms=int((time.monotonic() - t0) * 1000),
        status="error" if error else "success",
        error=error,
    )


class LLMClient:
    """Async wrapper over the OpenAI SDK used by every agent."""

    def __init__(self, openai_client: Any):
        self._client = openai_client

    @staticmethod
    def _temperature_for_model(model: str) -> float | None:
        # Reasoning model families reject a custom temperature.
        lowered = (model or "").lower()
        if lowered.startswith(("o1", "o3", "o4", "gpt-5")):
            return None
        return 0.3

    @staticmethod
    def _to_messages(system: str, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        converted: list[dict[str, Any]] = [{"role": "system", "content": system}]
        for message in messages:
            converted.append({"role": message["role"], "content": str(message["content"])})
        return converted

    async def complete(
        self,
        *,
        model: str,
        system: str,
        user: str | None = None,
        messages: list[dict[str, Any]] | None = None,
        json_mode: bool = False,
        max_tokens: int | None = None,
        caller: str = "llm",
    ) -> Completion:
        history = list(messages or [])
        if user is not None:
            history.append({"role": "user", "content": user})

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": self._to_messages(system, history),
        }
        temperature = self._temperature_for_model(model)
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        t0 = time.monotonic()
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except Exception as e:
            _log_call(model, caller, Usage(), t0, error=str(e))
            raise

        choices = getattr(response, "choices", None) or []
        text = ""
        if choices:
            text = getattr(choices[0].message, "content", None) or ""
        usage = _chat_usage(getattr(response, "usage", None))
        _log_call(model, caller, usage, t0)
        return Completion(text=text, usage=usage)

    async def stream_text(
        self,
        *,
        model: str,
        system: str,
        messages: list[dict[str, Any]],
        caller: str = "llm.stream",
    ) -> AsyncIterator[str]:
        """Yield text deltas of a streamed chat completion."""
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": self._to_messages(system, messages),
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        temperature = self._temperature_for_model(model)
        if temperature is not None:
            kwargs["temperature"] = temperature

        t0 = time.monotonic()
        usage = Usage()
        stream = await self._client.chat.completions.create(**kwargs)
        try:
            async for chunk in stream:
                chunk_usage = getattr(chunk, "usage", None)
                if chunk_usage:
                    usage = _chat_usage(chunk_usage)
                choices = getattr(chunk, "choices", None) or []
                if not choices:
                    continue
                delta = getattr(choices[0], "delta", None)
                text = getattr(delta, "content", None) if delta else None
                if text:
                    yield text
        finally:
            await stream.close()
            _log_call(model, caller, usage, t0)

    async def web_search(
        self,
        *,
        model: str,
        query: str,
        instructions: str | None = None,
        caller: str = "web_search",
    ) -> WebSearchResponse:
        """Run a Responses API call with the hosted web search tool."""
        kwargs: dict[str, Any] = {
            "model": model,
            "input": query,
            "tools": [{"type": "web_search_preview"}],
        }
        if instructions:
            kwargs["instructions"] = instructions

        t0 = time.monotonic()
        try:
            response = await self._client.responses.create(**kwargs)
        except Exception as e:
            _log_call(model, caller, Usage(), t0, error=str(e))
            raise

        usage = _response_usage(getattr(response, "usage", None))
        _log_call(model, caller, usage, t0)
        return WebSearchResponse(
            text=getattr(response, "output_text", "") or "",
            sources=extract_url_citations(response),
            usage=usage,
        )

    async def embed(
        self,
        *,
        model: str,
        inputs: list[str],
        dimensions: int | None = None,
        caller: str = "embeddings",
    ) -> list[list[float]]:
        kwargs: dict[str, Any] = {"model": model, "input": inputs}
        if dimensions:
            kwargs["dimensions"] = dimensions

        t0 = time.monotonic()
        try:
            response = await self._client.embeddings.create(**kwargs)
        except Exception as e:
            _log_call(model, caller, Usage(), t0, error=str(e))
            raise

        usage = getattr(response, "usage", None)
        _log_call(
            model,
            caller,
            Usage(input_tokens=getattr(usage, "prompt_tokens", 0) or 0),
            t0,
        )
        items = sorted(response.data, key=lambda item: getattr(item, "index", 0))
        return [list(item.embedding) for item in items]


def extract_url_citations(response: Any) -> list[WebSource]:
    """Collect url_citation annotations from a Responses API result, in order."""
    sources: list[WebSource] = []
    seen: set[str] = set()
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) != "message":
            continue
        for part in getattr(item, "content", None) or []:
            for annotation in getattr(part, "annotations", None) or []:
                if getattr(annotation, "type", None) != "url_citation":
                    continue
                url = getattr(annotation, "url", "") or ""
                if not url or url in seen:
                    continue
                seen.add(url)
                title = getattr(annotation, "title", "") or url
                sources.append(WebSource(title=title, url=url))
    return sources


def get_client() -> LLMClient:
    """Get an OpenAI-backed client."""
    from openai import AsyncOpenAI

    kwargs: dict[str, Any] = {
        "api_key": settings.openai_api_key,
        "timeout": settings.openai_timeout_seconds,
    }
    base_url = settings.openai_base_url.strip()
    if base_url:
        kwargs["base_url"] = base_url
    return LLMClient(AsyncOpenAI(**kwargs))


def get_model() -> str:
    """Get the default model id."""
    return settings.default_model


def get_reasoning_model() -> str:
    """Get the model used for per-sub-query reasoning."""
    return settings.reasoning_model.strip() or settings.default_model


_client: LLMClient | None = None


def client() -> LLMClient:
    """Get or create the LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client
